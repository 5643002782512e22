"""Payment reconciliation - moves pending payments to the state the provider reports"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from condo_cron.domain.exceptions import CandidateFetchError
from condo_cron.domain.models import PaymentIntent, ReconciliationResult
from condo_cron.domain.reconciliation import (
    STALE_ALERT_MARKER,
    is_unmapped,
    lookback_cutoff,
    plan_expiration,
    plan_provider_transition,
)
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.infrastructure.clients.ledger import LedgerClient
from condo_cron.infrastructure.database.repositories import PaymentRepository
from condo_cron.infrastructure.observability.metrics import (
    payment_transition_counter,
    unmapped_provider_status_counter,
)
from condo_cron.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

STALE_IDS_REPORTED = 20


class PaymentReconciler:
    name = "reconcile-payments"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ledger: LedgerClient,
        audit: AuditLog,
        lookback_hours: int = 72,
        stale_alert_hours: int = 168,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.audit = audit
        self.lookback_hours = lookback_hours
        self.stale_alert_hours = stale_alert_hours
        self.clock = clock

    async def run(self) -> ReconciliationResult:
        """
        Reconcile pending payments created inside the lookback window.

        Flow:
        1. Fetch pending payments with a provider id created at or after the cutoff
        2. Expire payments whose expiration lies in the past (no provider call)
        3. Query the provider for the rest, one at a time, and apply mapped transitions
        4. Report pending payments that aged out of the window unresolved
        5. Write one audit row with the counts

        Raises:
            CandidateFetchError: The candidate query itself failed
        """
        now = self.clock()
        cutoff = lookback_cutoff(now, self.lookback_hours)

        db = self.session_factory()
        try:
            repo = PaymentRepository(db)
            try:
                candidates = repo.get_reconciliation_candidates(cutoff)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error fetching payments: {e}", extra={"job": self.name})
                raise CandidateFetchError(self.name, str(e)) from e

            logger.info(f"Found {len(candidates)} pending payments", extra={"job": self.name})
            if candidates and not self.ledger.is_configured:
                logger.warning("Payment provider not configured; only expirations will be applied")

            result = ReconciliationResult(processed=len(candidates))
            for payment in candidates:
                try:
                    await self._reconcile_one(db, repo, payment, now, result)
                except Exception as e:
                    db.rollback()
                    result.errors += 1
                    logger.error(
                        f"Error processing payment {payment.id}: {e}",
                        extra={"job": self.name, "payment_id": payment.id},
                    )

            result.stale = self._report_stale(repo, cutoff, now)
        finally:
            db.close()

        if result.processed == 0:
            result.message = "No pending payments to reconcile"

        self.audit.log_or_ignore(
            level="info",
            source="cron_reconcile_payments",
            message=(
                f"Reconciliation complete: {result.updated} updated, "
                f"{result.expired} expired, {result.errors} errors"
            ),
            metadata={
                "updated": result.updated,
                "expired": result.expired,
                "errors": result.errors,
                "unmapped": result.unmapped,
                "stale": result.stale,
                "total": result.processed,
            },
        )
        return result

    async def _reconcile_one(
        self,
        db: Session,
        repo: PaymentRepository,
        payment: PaymentIntent,
        now: datetime,
        result: ReconciliationResult,
    ) -> None:
        # Expiration is a local fact and wins over whatever the provider says
        expiration = plan_expiration(payment, now)
        if expiration is not None:
            if repo.apply_transition(expiration):
                result.expired += 1
                payment_transition_counter.labels(status=expiration.status.value).inc()
            db.commit()
            return

        if not payment.provider_payment_id or not self.ledger.is_configured:
            return

        provider_status = await self.ledger.get_payment_status(payment.provider_payment_id)

        if is_unmapped(provider_status):
            result.unmapped += 1
            unmapped_provider_status_counter.labels(provider_status=provider_status).inc()
            logger.warning(
                f"Unmapped provider status '{provider_status}'",
                extra={"payment_id": payment.id, "provider_status": provider_status},
            )

        transition = plan_provider_transition(payment, provider_status, now)
        if transition is None:
            return

        if repo.apply_transition(transition):
            result.updated += 1
            payment_transition_counter.labels(status=transition.status.value).inc()
            logger.info(
                f"Payment {payment.id} -> {transition.status.value}",
                extra={"payment_id": payment.id, "provider_status": provider_status},
            )
        db.commit()

    def _report_stale(self, repo: PaymentRepository, cutoff: datetime, now: datetime) -> int:
        """
        Count pending payments older than the lookback window and alert on the
        ones not alerted before. A payment is stamped only after its alert row
        is written, so a failed audit write is retried on the next run.
        """
        try:
            stale = repo.get_stale_pending(
                created_before=cutoff,
                created_since=now - timedelta(hours=self.stale_alert_hours),
            )
        except SQLAlchemyError as e:
            repo.db.rollback()
            logger.warning(f"Could not check for stale payments: {e}")
            return 0

        fresh = [payment for payment in stale if STALE_ALERT_MARKER not in payment.metadata]
        if not fresh:
            return len(stale)

        reported = fresh[:STALE_IDS_REPORTED]
        written = self.audit.log_or_ignore(
            level="warning",
            source="reconcile_stale_payments",
            message=f"{len(fresh)} pending payments aged out of the {self.lookback_hours}h window unresolved",
            metadata={"payment_ids": [payment.id for payment in reported]},
        )
        if written:
            try:
                for payment in reported:
                    repo.mark_stale_alerted(payment, now)
                repo.db.commit()
            except SQLAlchemyError as e:
                repo.db.rollback()
                logger.warning(f"Could not mark stale payments as alerted: {e}")
        return len(stale)
