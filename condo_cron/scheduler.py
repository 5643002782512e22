"""Master scheduler - runs every job concurrently and reports each outcome separately"""

import asyncio
import hmac
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from condo_cron.config import Settings
from condo_cron.domain.exceptions import UnauthorizedTriggerError
from condo_cron.domain.models import JobOutcome, SchedulerReport
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.infrastructure.clients.channels import ChannelRegistry
from condo_cron.infrastructure.clients.ledger import LedgerClient
from condo_cron.infrastructure.observability.logging import log_job_outcome
from condo_cron.infrastructure.observability.metrics import record_job
from condo_cron.jobs.base import Job, as_payload
from condo_cron.jobs.dispatch_notifications import NotificationDispatcher
from condo_cron.jobs.health_probe import HealthProbe
from condo_cron.jobs.maintenance_sweep import MaintenanceSweep
from condo_cron.jobs.reconcile_payments import PaymentReconciler
from condo_cron.utils.date_utils import utc_now

logger = logging.getLogger(__name__)


def authorize_trigger(authorization: Optional[str], secret: Optional[str]) -> None:
    """
    Bearer check against the shared trigger secret.

    With no secret configured every caller is accepted.

    Raises:
        UnauthorizedTriggerError: Secret configured and header absent or different
    """
    if not secret:
        return
    expected = f"Bearer {secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise UnauthorizedTriggerError("Unauthorized")


def _error_message(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "Job timed out"
    return str(error) or error.__class__.__name__


class MasterScheduler:
    """Fans out to all jobs and waits for every one of them to settle"""

    def __init__(
        self,
        jobs: Sequence[Job],
        job_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.jobs: Dict[str, Job] = {job.name: job for job in jobs}
        self.job_timeout = job_timeout
        self.clock = clock

    @property
    def job_names(self) -> List[str]:
        return list(self.jobs)

    async def _timed_run(self, job: Job, durations: Dict[str, float]):
        start = time.perf_counter()
        try:
            if self.job_timeout:
                return await asyncio.wait_for(job.run(), timeout=self.job_timeout)
            return await job.run()
        finally:
            durations[job.name] = time.perf_counter() - start

    async def run(self) -> SchedulerReport:
        """
        Run all jobs concurrently (settle-all join).

        A job that raises or times out is reported as an error entry; it never
        aborts the others and never raises out of this method.
        """
        started_at = self.clock()
        start = time.perf_counter()
        logger.info("Master run starting", extra={"jobs": self.job_names})

        jobs = list(self.jobs.values())
        durations: Dict[str, float] = {}
        settled = await asyncio.gather(*(self._timed_run(job, durations) for job in jobs), return_exceptions=True)

        summary = []
        for job, outcome in zip(jobs, settled):
            duration = durations.get(job.name, 0.0)
            if isinstance(outcome, BaseException):
                logger.error(f"Task {job.name} failed: {_error_message(outcome)}", extra={"job": job.name})
                entry = JobOutcome(task=job.name, status="error", error=_error_message(outcome))
            else:
                entry = JobOutcome(task=job.name, status="ok", result=as_payload(outcome))
            record_job(job.name, entry.status, duration)
            log_job_outcome(job.name, entry.status, round(duration * 1000, 2), entry.result)
            summary.append(entry)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(f"Master run finished in {duration_ms} ms", extra={"duration_ms": duration_ms})
        return SchedulerReport(timestamp=started_at.isoformat(), duration_ms=duration_ms, summary=summary)

    async def run_one(self, name: str):
        """
        Run a single job directly; its exceptions propagate to the caller.

        Raises:
            KeyError: No job with that name
        """
        job = self.jobs[name]
        start = time.perf_counter()
        try:
            result = await job.run()
        except Exception:
            record_job(name, "error", time.perf_counter() - start)
            raise
        record_job(name, "ok", time.perf_counter() - start)
        return result


def build_scheduler(
    settings: Settings,
    session_factory: Callable[[], Session],
    ledger: Optional[LedgerClient] = None,
    channels: Optional[ChannelRegistry] = None,
    clock: Callable[[], datetime] = utc_now,
) -> MasterScheduler:
    """Wire every job with explicit configuration and collaborators"""
    ledger = ledger or LedgerClient.from_settings(settings)
    channels = channels or ChannelRegistry.from_settings(settings)
    audit = AuditLog(session_factory)

    jobs: List[Job] = [
        HealthProbe(session_factory, ledger, channels, audit, clock=clock),
        MaintenanceSweep(session_factory, audit, lookahead_days=settings.maintenance_lookahead_days, clock=clock),
        NotificationDispatcher(
            session_factory,
            channels,
            audit,
            batch_size=settings.notification_batch_size,
            max_attempts=settings.notification_max_attempts,
            retry_base_minutes=settings.notification_retry_base_minutes,
            clock=clock,
        ),
        PaymentReconciler(
            session_factory,
            ledger,
            audit,
            lookback_hours=settings.reconcile_lookback_hours,
            stale_alert_hours=settings.reconcile_stale_alert_hours,
            clock=clock,
        ),
    ]
    return MasterScheduler(jobs, job_timeout=settings.job_timeout_seconds, clock=clock)
