"""Outbound channel senders (email, WhatsApp, push) over HTTP messaging APIs"""

import logging
from typing import Any, Dict, Optional

import httpx

from condo_cron.config import Settings
from condo_cron.domain.exceptions import ChannelNotConfiguredError, ChannelSendError, UnknownChannelError
from condo_cron.domain.models import NotificationRecord

logger = logging.getLogger(__name__)


class HttpChannelSender:
    """POSTs {to, template, payload} to a messaging provider with bearer auth"""

    def __init__(
        self,
        channel: str,
        api_url: Optional[str],
        api_key: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.channel = channel
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    async def send(self, to: str, template: Optional[str], payload: Dict[str, Any]) -> None:
        """
        Deliver one message.

        Raises:
            ChannelNotConfiguredError: Channel has no URL/key in this environment
            ChannelSendError: On timeout or HTTP errors
        """
        if not self.is_configured:
            raise ChannelNotConfiguredError(f"{self.channel} channel is not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.api_url,
                    json={"to": to, "template": template, "payload": payload},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
            except httpx.TimeoutException as e:
                raise ChannelSendError(f"{self.channel} timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ChannelSendError(f"{self.channel} error: HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ChannelSendError(f"{self.channel} unreachable: {e}") from e


class ChannelRegistry:
    """Routes notifications to the sender registered for their channel"""

    def __init__(self, senders: Dict[str, HttpChannelSender]):
        self.senders = senders

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChannelRegistry":
        timeout = settings.http_timeout_seconds
        return cls(
            {
                "email": HttpChannelSender("email", settings.email_api_url, settings.email_api_key, timeout),
                "whatsapp": HttpChannelSender(
                    "whatsapp", settings.whatsapp_api_url, settings.whatsapp_api_key, timeout
                ),
                "push": HttpChannelSender("push", settings.push_api_url, settings.push_api_key, timeout),
            }
        )

    def configuration_status(self) -> Dict[str, bool]:
        return {name: sender.is_configured for name, sender in self.senders.items()}

    async def deliver(self, notification: NotificationRecord) -> None:
        """
        Send a queued notification through its channel.

        Raises:
            ChannelSendError: Missing address, unknown channel, or delivery failure
        """
        if not notification.to_address:
            raise ChannelSendError("No address provided")

        sender = self.senders.get(notification.channel)
        if sender is None:
            raise UnknownChannelError(f"Unknown channel: {notification.channel}")

        await sender.send(notification.to_address, notification.template_name, notification.payload)
        logger.info(
            "Notification delivered",
            extra={"notification_id": notification.id, "channel": notification.channel},
        )
