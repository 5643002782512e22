"""Notification dispatch - sends due notifications in bounded, concurrently processed batches"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from condo_cron.domain.exceptions import CandidateFetchError
from condo_cron.domain.models import DispatchResult, NotificationRecord
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.infrastructure.clients.channels import ChannelRegistry
from condo_cron.infrastructure.database.repositories import NotificationRepository
from condo_cron.infrastructure.observability.metrics import notification_counter
from condo_cron.utils.date_utils import utc_now

logger = logging.getLogger(__name__)


def retry_delay(attempts: int, base_minutes: int) -> timedelta:
    """Backoff before the next attempt: base, 2*base, 4*base ..."""
    return timedelta(minutes=base_minutes * (2 ** (attempts - 1)))


class NotificationDispatcher:
    name = "process-notifications"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        channels: ChannelRegistry,
        audit: AuditLog,
        batch_size: int = 50,
        max_attempts: int = 3,
        retry_base_minutes: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.channels = channels
        self.audit = audit
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.retry_base_minutes = retry_base_minutes
        self.clock = clock

    async def run(self) -> DispatchResult:
        """
        Dispatch one batch of due notifications.

        Every record is sent concurrently and settles on its own: a failing
        sender never cancels its siblings. Each unit writes its own record's
        outcome in its own session; this method only tallies the settled results.

        Raises:
            CandidateFetchError: The due-notification query itself failed
        """
        now = self.clock()
        db = self.session_factory()
        try:
            due = NotificationRepository(db).get_due(now, self.batch_size)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error fetching notifications: {e}", extra={"job": self.name})
            raise CandidateFetchError(self.name, str(e)) from e
        finally:
            db.close()

        if not due:
            return DispatchResult(message="No pending notifications")

        logger.info(f"Processing {len(due)} notifications", extra={"job": self.name})
        settled = await asyncio.gather(
            *(self._dispatch_one(notification) for notification in due),
            return_exceptions=True,
        )

        successes = sum(1 for outcome in settled if outcome is True)
        return DispatchResult(
            processed=len(due),
            successes=successes,
            failures=len(settled) - successes,
            message="Processing complete",
        )

    async def _dispatch_one(self, notification: NotificationRecord) -> bool:
        attempts = notification.attempts + 1
        try:
            await self.channels.deliver(notification)
        except Exception as e:
            self._record_failure(notification, attempts, str(e) or e.__class__.__name__)
            raise

        self._record_sent(notification, attempts)
        notification_counter.labels(channel=notification.channel, outcome="sent").inc()
        return True

    def _write(self, apply: Callable[[NotificationRepository], None]) -> None:
        """Run one status write in a short session of its own"""
        db = self.session_factory()
        try:
            apply(NotificationRepository(db))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def _record_sent(self, notification: NotificationRecord, attempts: int) -> None:
        """
        The message is already out, so the sent status gets a second write
        attempt; a record left pending would be delivered again next run.

        Raises:
            SQLAlchemyError: Both writes failed (audited as notification_status_lost)
        """
        def mark(repo: NotificationRepository) -> None:
            repo.mark_sent(notification.id, attempts, self.clock())

        try:
            self._write(mark)
            return
        except SQLAlchemyError as e:
            logger.warning(
                f"Retrying sent status for notification {notification.id}: {e}",
                extra={"notification_id": notification.id},
            )

        try:
            self._write(mark)
        except SQLAlchemyError as e:
            logger.error(
                f"Notification {notification.id} delivered but its status was not saved: {e}",
                extra={"notification_id": notification.id, "channel": notification.channel},
            )
            self.audit.log_or_ignore(
                level="error",
                source="notification_status_lost",
                message=f"Notification {notification.id} delivered but still marked pending",
                metadata={"notification_id": notification.id, "error": str(e), "attempt": attempts},
            )
            raise

    def _record_failure(self, notification: NotificationRecord, attempts: int, reason: str) -> None:
        now = self.clock()
        final = attempts >= self.max_attempts

        def mark(repo: NotificationRepository) -> None:
            if final:
                repo.mark_failed(notification.id, attempts, now, reason)
            else:
                repo.reschedule(notification.id, attempts, now + retry_delay(attempts, self.retry_base_minutes), reason)

        try:
            self._write(mark)
        except SQLAlchemyError as e:
            logger.error(
                f"Could not record failure for notification {notification.id}: {e}",
                extra={"notification_id": notification.id},
            )

        outcome = "failed" if final else "retry"
        notification_counter.labels(channel=notification.channel, outcome=outcome).inc()
        logger.warning(
            f"Notification {notification.id} attempt {attempts} failed: {reason}",
            extra={"notification_id": notification.id, "channel": notification.channel, "attempt": attempts},
        )
        self.audit.log_or_ignore(
            level="error",
            source="notification_failed",
            message=f"Notification {notification.id} failed ({outcome})",
            metadata={"notification_id": notification.id, "error": reason, "attempt": attempts},
        )
