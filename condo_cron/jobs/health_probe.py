"""Health probe - checks each external dependency independently"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Iterable

from sqlalchemy.orm import Session

from condo_cron.domain.models import DependencyCheck, DependencyStatus, HealthCheckResult, OverallHealth
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.infrastructure.clients.channels import ChannelRegistry
from condo_cron.infrastructure.clients.ledger import LedgerClient
from condo_cron.infrastructure.database.repositories import ping
from condo_cron.infrastructure.observability.metrics import record_dependency
from condo_cron.jobs.base import as_payload
from condo_cron.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

HEALTHY_STATUSES = frozenset({DependencyStatus.OK.value, DependencyStatus.NOT_CONFIGURED.value})


def compute_overall_status(checks: Iterable[DependencyCheck]) -> OverallHealth:
    """
    degraded: any dependency errored
    healthy:  every dependency is ok or intentionally not configured
    warning:  some dependency reported a status outside the recognized set
    """
    statuses = [check.status for check in checks]
    if DependencyStatus.ERROR.value in statuses:
        return OverallHealth.DEGRADED
    if all(status in HEALTHY_STATUSES for status in statuses):
        return OverallHealth.HEALTHY
    return OverallHealth.WARNING


class HealthProbe:
    name = "health-check"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ledger: LedgerClient,
        channels: ChannelRegistry,
        audit: AuditLog,
        clock: Callable = utc_now,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.channels = channels
        self.audit = audit
        self.clock = clock

    async def _timed(self, probe: Callable[[], Awaitable[str]]) -> DependencyCheck:
        """Run one probe; its exception becomes an error entry and never reaches the others"""
        start = time.perf_counter()
        try:
            status = await probe()
            return DependencyCheck(status=status, latency_ms=round((time.perf_counter() - start) * 1000, 2))
        except Exception as e:
            return DependencyCheck(
                status=DependencyStatus.ERROR.value,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
                error=str(e) or e.__class__.__name__,
            )

    async def _check_database(self) -> str:
        db = self.session_factory()
        try:
            ping(db)
        finally:
            db.close()
        return DependencyStatus.OK.value

    async def _check_payment_provider(self) -> str:
        if not self.ledger.is_configured:
            return DependencyStatus.NOT_CONFIGURED.value
        await self.ledger.whoami()
        return DependencyStatus.OK.value

    def _channel_probe(self, configured: bool) -> Callable[[], Awaitable[str]]:
        async def probe() -> str:
            return DependencyStatus.OK.value if configured else DependencyStatus.NOT_CONFIGURED.value

        return probe

    def _probes(self) -> Dict[str, Callable[[], Awaitable[str]]]:
        probes: Dict[str, Callable[[], Awaitable[str]]] = {
            "database": self._check_database,
            "payment_provider": self._check_payment_provider,
        }
        for channel, configured in self.channels.configuration_status().items():
            probes[channel] = self._channel_probe(configured)
        return probes

    async def run(self) -> HealthCheckResult:
        start = time.perf_counter()
        probes = self._probes()
        checks = await asyncio.gather(*(self._timed(probe) for probe in probes.values()))
        services = dict(zip(probes.keys(), checks))

        for dependency, check in services.items():
            record_dependency(dependency, check.status)

        result = HealthCheckResult(
            status=compute_overall_status(services.values()),
            timestamp=self.clock().isoformat(),
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            services=services,
        )
        self._audit(result)
        return result

    def _audit(self, result: HealthCheckResult) -> None:
        payload = as_payload(result)
        failed = result.failed_services

        self.audit.log_or_ignore(
            level="error" if failed else "info",
            source="health_check",
            message=f"Health check: {result.status.value}",
            metadata={"results": payload["services"], "total_latency_ms": result.latency_ms},
        )

        if failed:
            logger.error("Dependencies degraded", extra={"failed_services": failed})
            self.audit.log_or_ignore(
                level="error",
                source="health_alert",
                message=f"ALERT: Services degraded: {', '.join(failed)}",
                metadata={"results": payload["services"]},
            )
