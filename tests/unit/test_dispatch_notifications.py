"""Unit tests for the notification dispatcher"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError
from condo_cron.domain.exceptions import CandidateFetchError, ChannelSendError
from condo_cron.infrastructure.database.models import DeliveryNotification
from condo_cron.infrastructure.database.repositories import NotificationRepository
from condo_cron.jobs.dispatch_notifications import NotificationDispatcher, retry_delay
from conftest import NOW, add_notification, audit_rows, fixed_clock


@pytest.fixture
def dispatcher(session_factory, channels, audit) -> NotificationDispatcher:
    return NotificationDispatcher(
        session_factory,
        channels,
        audit,
        batch_size=50,
        max_attempts=3,
        retry_base_minutes=5,
        clock=fixed_clock,
    )


def statuses(db) -> dict:
    db.expire_all()
    return {n.id: n.status for n in db.query(DeliveryNotification).all()}


async def test_no_due_notifications_is_fast_noop(dispatcher, channels):
    result = await dispatcher.run()

    assert result.processed == 0
    assert result.successes == 0
    assert result.failures == 0
    assert result.message == "No pending notifications"
    channels.deliver.assert_not_called()


async def test_due_notification_is_sent(dispatcher, channels, db):
    notification = add_notification(db)

    result = await dispatcher.run()

    assert result.processed == 1
    assert result.successes == 1
    db.refresh(notification)
    assert notification.status == "sent"
    assert notification.attempts == 1
    assert notification.processed_at is not None
    assert notification.failure_reason is None


async def test_future_and_non_pending_notifications_are_skipped(dispatcher, channels, db):
    add_notification(db, scheduled_at=NOW + timedelta(minutes=1))
    add_notification(db, status="sent")
    add_notification(db, status="failed")

    result = await dispatcher.run()

    assert result.processed == 0
    channels.deliver.assert_not_called()


async def test_scheduled_exactly_now_is_due(dispatcher, db):
    add_notification(db, scheduled_at=NOW)

    result = await dispatcher.run()

    assert result.processed == 1


async def test_batch_cap_respected_across_runs(session_factory, channels, audit, db):
    """Test a run takes at most `cap` records and the next run takes the rest"""
    for i in range(7):
        add_notification(db, scheduled_at=NOW - timedelta(minutes=10 + i))
    dispatcher = NotificationDispatcher(session_factory, channels, audit, batch_size=5, clock=fixed_clock)

    first = await dispatcher.run()
    second = await dispatcher.run()
    third = await dispatcher.run()

    assert first.processed == 5
    assert second.processed == 2
    assert third.processed == 0
    assert channels.deliver.await_count == 7
    assert set(statuses(db).values()) == {"sent"}


async def test_one_failure_does_not_cancel_siblings(dispatcher, channels, db):
    """Test settle-all: failing sender isolated, others still sent"""
    good_1 = add_notification(db, to_address="a@example.com")
    bad = add_notification(db, to_address="b@example.com")
    good_2 = add_notification(db, to_address="c@example.com")

    async def deliver(notification):
        await asyncio.sleep(0)
        if notification.to_address == "b@example.com":
            raise ChannelSendError("email error: HTTP 502")

    channels.deliver.side_effect = deliver

    result = await dispatcher.run()

    assert result.processed == 3
    assert result.successes == 2
    assert result.failures == 1
    current = statuses(db)
    assert current[good_1.id] == "sent"
    assert current[good_2.id] == "sent"
    assert current[bad.id] == "pending"  # rescheduled, attempts left


async def test_failed_attempt_is_rescheduled_with_backoff(dispatcher, channels, db, session_factory):
    notification = add_notification(db, attempts=1)
    channels.deliver.side_effect = ChannelSendError("whatsapp timeout after 10.0s")

    result = await dispatcher.run()

    assert result.failures == 1
    db.refresh(notification)
    assert notification.status == "pending"
    assert notification.attempts == 2
    assert notification.failure_reason == "whatsapp timeout after 10.0s"
    assert notification.scheduled_at.replace(tzinfo=None) == (NOW + timedelta(minutes=10)).replace(tzinfo=None)
    assert len(audit_rows(session_factory, "notification_failed")) == 1


async def test_last_attempt_marks_failed(dispatcher, channels, db):
    notification = add_notification(db, attempts=2)
    channels.deliver.side_effect = ChannelSendError("No address provided")

    await dispatcher.run()

    db.refresh(notification)
    assert notification.status == "failed"
    assert notification.attempts == 3
    assert notification.failure_reason == "No address provided"
    assert notification.processed_at is not None


async def test_rescheduled_notification_not_retried_in_same_run(dispatcher, channels, db):
    """Dispatched at most once per invocation"""
    add_notification(db)
    channels.deliver.side_effect = ChannelSendError("boom")

    await dispatcher.run()
    second = await dispatcher.run()

    assert second.processed == 0
    assert channels.deliver.await_count == 1


async def test_unexpected_exception_is_isolated(dispatcher, channels, db):
    add_notification(db)
    add_notification(db)
    calls = []

    async def deliver(notification):
        calls.append(notification.id)
        if len(calls) == 1:
            raise RuntimeError("sender crashed")

    channels.deliver.side_effect = deliver

    result = await dispatcher.run()

    assert result.successes == 1
    assert result.failures == 1


async def test_sent_status_write_failure_does_not_resend(dispatcher, channels, db, monkeypatch):
    """A delivered message whose first status write fails is not delivered again next run"""
    notification = add_notification(db)
    original = NotificationRepository.mark_sent
    calls = []

    def flaky_mark_sent(self, *args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        return original(self, *args, **kwargs)

    monkeypatch.setattr(NotificationRepository, "mark_sent", flaky_mark_sent)

    first = await dispatcher.run()
    second = await dispatcher.run()

    assert first.successes == 1
    assert second.processed == 0
    assert channels.deliver.await_count == 1
    db.refresh(notification)
    assert notification.status == "sent"
    assert notification.attempts == 1


async def test_lost_sent_status_is_audited(dispatcher, channels, db, session_factory, monkeypatch):
    add_notification(db)

    def broken_mark_sent(self, *args, **kwargs):
        raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

    monkeypatch.setattr(NotificationRepository, "mark_sent", broken_mark_sent)

    result = await dispatcher.run()

    assert result.successes == 0
    assert result.failures == 1
    [row] = audit_rows(session_factory, "notification_status_lost")
    assert row.level == "error"


async def test_candidate_query_failure_raises(channels, audit):
    session = MagicMock()
    session.scalars.side_effect = OperationalError("SELECT", {}, Exception("no such table"))
    dispatcher = NotificationDispatcher(lambda: session, channels, audit, clock=fixed_clock)

    with pytest.raises(CandidateFetchError):
        await dispatcher.run()


def test_retry_delay_doubles():
    assert retry_delay(1, 5) == timedelta(minutes=5)
    assert retry_delay(2, 5) == timedelta(minutes=10)
    assert retry_delay(3, 5) == timedelta(minutes=20)
