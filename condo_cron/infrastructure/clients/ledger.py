"""Payment provider HTTP client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from condo_cron.config import Settings
from condo_cron.domain.exceptions import LedgerAPIError
from condo_cron.infrastructure.observability.metrics import provider_error_counter, provider_latency_histogram

logger = logging.getLogger(__name__)


class LedgerClient:
    """Client for the external payment provider's ledger"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str],
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_base: float = 0.5,
        payment_path: str = "/v1/payments/{payment_id}",
        whoami_path: str = "/users/me",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.payment_path = payment_path
        self.whoami_path = whoami_path
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        return cls(
            base_url=settings.payment_provider_base_url,
            token=settings.payment_provider_token,
            timeout=settings.http_timeout_seconds,
            max_retries=settings.provider_max_retries,
            backoff_base=settings.provider_backoff_base,
            payment_path=settings.payment_provider_payment_path,
            whoami_path=settings.payment_provider_whoami_path,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.token}"},
            transport=self._transport,
        )

    async def get_payment_status(self, provider_payment_id: str) -> str:
        """
        Fetch the provider-side status of one payment.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures, never on 4xx
        - Each attempt is bounded by the client timeout

        Raises:
            LedgerAPIError: On timeout, HTTP errors, or a body without a string status
        """
        if not self.is_configured:
            raise LedgerAPIError("Payment provider token is not configured")

        path = self.payment_path.format(payment_id=provider_payment_id)
        attempt = 0
        async with self._client() as client:
            while True:
                attempt += 1
                try:
                    with provider_latency_histogram.time():
                        response = await client.get(path)
                    response.raise_for_status()
                    data = response.json()
                    status = data.get("status") if isinstance(data, dict) else None
                    if not isinstance(status, str):
                        raise LedgerAPIError(f"Malformed provider response for {provider_payment_id}: no status")
                    return status

                except httpx.HTTPStatusError as e:
                    provider_error_counter.inc()
                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        raise LedgerAPIError(f"Provider API error: {e.response.status_code}") from e

                except httpx.TimeoutException as e:
                    provider_error_counter.inc()
                    if attempt >= self.max_retries:
                        raise LedgerAPIError(f"Provider API timeout after {self.timeout}s") from e

                except httpx.RequestError as e:
                    provider_error_counter.inc()
                    if attempt >= self.max_retries:
                        raise LedgerAPIError(f"Provider API unreachable: {e}") from e

                except ValueError as e:
                    provider_error_counter.inc()
                    raise LedgerAPIError(f"Invalid JSON from provider: {e}") from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logger.info(
                    f"Retrying provider call in {backoff}s",
                    extra={"provider_payment_id": provider_payment_id, "attempt": attempt},
                )
                await asyncio.sleep(backoff)

    async def whoami(self) -> Dict[str, Any]:
        """
        Authenticated identity call used by the health probe.

        Raises:
            LedgerAPIError: On timeout, transport or HTTP errors
        """
        async with self._client() as client:
            try:
                response = await client.get(self.whoami_path)
                response.raise_for_status()
                data = response.json()
                return data if isinstance(data, dict) else {}
            except httpx.TimeoutException as e:
                raise LedgerAPIError(f"Provider API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise LedgerAPIError(f"HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise LedgerAPIError(f"Provider API unreachable: {e}") from e
            except ValueError as e:
                raise LedgerAPIError(f"Invalid JSON from provider: {e}") from e
