"""Data access layer for payments, notifications, automation settings and maintenance"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from condo_cron.infrastructure.database.models import (
    AutomationSettingsRow,
    DeliveryNotification,
    MaintenanceSchedule,
    Payment,
    SystemLog,
)
from condo_cron.domain.models import (
    AutomationSettings,
    MaintenanceDue,
    NotificationRecord,
    NotificationStatus,
    PaymentIntent,
    PaymentStatus,
    PaymentTransition,
)
from condo_cron.domain.reconciliation import STALE_ALERT_MARKER
from condo_cron.utils.date_utils import ensure_utc


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


class PaymentRepository:
    """Repository for payment intents"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: Payment) -> PaymentIntent:
        return PaymentIntent(
            id=row.id,
            tenant_id=row.condo_id,
            amount=float(row.amount),
            status=PaymentStatus(row.status),
            provider_payment_id=row.provider_payment_id,
            expires_at=_aware(row.expires_at),
            created_at=ensure_utc(row.created_at),
            updated_at=_aware(row.updated_at),
            paid_at=_aware(row.paid_at),
            metadata=dict(row.meta or {}),
        )

    def get_reconciliation_candidates(self, created_since: datetime) -> List[PaymentIntent]:
        """Pending payments with a provider id created at or after the cutoff"""
        rows = self.db.scalars(
            select(Payment)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .where(Payment.created_at >= created_since)
            .where(Payment.provider_payment_id.is_not(None))
            .order_by(Payment.created_at)
        ).all()
        return [self._to_domain(row) for row in rows]

    def get_stale_pending(self, created_before: datetime, created_since: datetime) -> List[PaymentIntent]:
        """Pending payments with a provider id that already aged out of the lookback window"""
        rows = self.db.scalars(
            select(Payment)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .where(Payment.created_at < created_before)
            .where(Payment.created_at >= created_since)
            .where(Payment.provider_payment_id.is_not(None))
            .order_by(Payment.created_at)
        ).all()
        return [self._to_domain(row) for row in rows]

    def mark_stale_alerted(self, payment: PaymentIntent, alerted_at: datetime) -> None:
        """Stamp the stale-alert marker into a still-pending payment's metadata"""
        metadata = dict(payment.metadata or {})
        metadata[STALE_ALERT_MARKER] = alerted_at.isoformat()
        self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .values(meta=metadata)
            .execution_options(synchronize_session=False)
        )

    def apply_transition(self, transition: PaymentTransition) -> bool:
        """
        Single-row conditional write: only a still-pending row is updated.

        Returns False when the row was no longer pending (another run got there first).
        """
        values: Dict[str, Any] = {
            "status": transition.status.value,
            "paid_at": transition.paid_at,
            "updated_at": transition.updated_at,
        }
        if transition.metadata is not None:
            values["meta"] = transition.metadata

        result = self.db.execute(
            update(Payment)
            .where(Payment.id == transition.payment_id)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class NotificationRepository:
    """Repository for the outbound notification queue"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: DeliveryNotification) -> NotificationRecord:
        return NotificationRecord(
            id=row.id,
            tenant_id=row.condo_id,
            channel=row.channel,
            to_address=row.to_address,
            template_name=row.template_name,
            payload=dict(row.payload or {}),
            status=NotificationStatus(row.status),
            scheduled_at=ensure_utc(row.scheduled_at),
            attempts=row.attempts or 0,
            processed_at=_aware(row.processed_at),
            failure_reason=row.failure_reason,
        )

    def get_due(self, now: datetime, limit: int) -> List[NotificationRecord]:
        """Pending notifications scheduled for now or earlier, oldest first"""
        rows = self.db.scalars(
            select(DeliveryNotification)
            .where(DeliveryNotification.status == NotificationStatus.PENDING.value)
            .where(DeliveryNotification.scheduled_at <= now)
            .order_by(DeliveryNotification.scheduled_at)
            .limit(limit)
        ).all()
        return [self._to_domain(row) for row in rows]

    def mark_sent(self, notification_id: str, attempts: int, processed_at: datetime) -> None:
        self.db.execute(
            update(DeliveryNotification)
            .where(DeliveryNotification.id == notification_id)
            .values(
                status=NotificationStatus.SENT.value,
                attempts=attempts,
                processed_at=processed_at,
                failure_reason=None,
            )
            .execution_options(synchronize_session=False)
        )

    def mark_failed(self, notification_id: str, attempts: int, processed_at: datetime, reason: str) -> None:
        self.db.execute(
            update(DeliveryNotification)
            .where(DeliveryNotification.id == notification_id)
            .values(
                status=NotificationStatus.FAILED.value,
                attempts=attempts,
                processed_at=processed_at,
                failure_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )

    def reschedule(self, notification_id: str, attempts: int, scheduled_at: datetime, reason: str) -> None:
        """Keep the record pending for another attempt later"""
        self.db.execute(
            update(DeliveryNotification)
            .where(DeliveryNotification.id == notification_id)
            .values(
                attempts=attempts,
                scheduled_at=scheduled_at,
                failure_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )


class AutomationSettingsRepository:
    """Repository for per-condo automation settings"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: AutomationSettingsRow) -> AutomationSettings:
        return AutomationSettings(
            tenant_id=row.condo_id,
            reminder_days=row.dias_lembrete,
            reminder_enabled=row.lembrete_ativo,
            late_fee_days=row.dias_multa,
            late_fee_percentage=row.multa_percentual,
            daily_interest_rate=row.juros_diario,
            late_fee_enabled=row.multa_automatica,
            auto_charge_days=row.dias_cobranca_automatica,
            auto_charge_enabled=row.cobranca_automatica,
            delinquency_report_days=row.dias_relatorio_inadimplentes,
            delinquency_report_enabled=row.relatorio_automatico,
            send_email=row.enviar_email,
            send_whatsapp=row.enviar_whatsapp,
        )

    def get(self, tenant_id: str) -> Optional[AutomationSettings]:
        row = self.db.scalars(
            select(AutomationSettingsRow).where(AutomationSettingsRow.condo_id == tenant_id)
        ).first()
        return self._to_domain(row) if row else None

    def get_or_create(self, tenant_id: str) -> AutomationSettings:
        """Read the condo's settings, inserting the defaults on first access"""
        existing = self.get(tenant_id)
        if existing is not None:
            return existing

        defaults = AutomationSettings(tenant_id=tenant_id)
        row = AutomationSettingsRow(
            condo_id=tenant_id,
            dias_lembrete=defaults.reminder_days,
            lembrete_ativo=defaults.reminder_enabled,
            dias_multa=defaults.late_fee_days,
            multa_percentual=defaults.late_fee_percentage,
            juros_diario=defaults.daily_interest_rate,
            multa_automatica=defaults.late_fee_enabled,
            dias_cobranca_automatica=defaults.auto_charge_days,
            cobranca_automatica=defaults.auto_charge_enabled,
            dias_relatorio_inadimplentes=defaults.delinquency_report_days,
            relatorio_automatico=defaults.delinquency_report_enabled,
            enviar_email=defaults.send_email,
            enviar_whatsapp=defaults.send_whatsapp,
        )
        try:
            self.db.add(row)
            self.db.flush()
        except IntegrityError:
            # Another writer created the row first
            self.db.rollback()
            return self.get(tenant_id) or defaults
        return defaults


class MaintenanceRepository:
    """Repository for equipment maintenance schedules"""

    def __init__(self, db: Session):
        self.db = db

    def get_due_unalerted(self, horizon: date, today: date) -> List[MaintenanceDue]:
        """Occurrences on or before the horizon that have not been alerted yet"""
        rows = self.db.scalars(
            select(MaintenanceSchedule)
            .where(MaintenanceSchedule.next_date <= horizon)
            .order_by(MaintenanceSchedule.condo_id, MaintenanceSchedule.next_date)
        ).all()
        return [
            MaintenanceDue(
                schedule_id=row.id,
                tenant_id=row.condo_id,
                equipment_name=row.equipment_name,
                next_date=row.next_date,
                overdue=row.next_date < today,
            )
            for row in rows
            if row.alerted_for != row.next_date
        ]

    def mark_alerted(self, schedule_id: str, next_date: date) -> None:
        self.db.execute(
            update(MaintenanceSchedule)
            .where(MaintenanceSchedule.id == schedule_id)
            .values(alerted_for=next_date)
            .execution_options(synchronize_session=False)
        )


class SystemLogRepository:
    """Append-only writer for the audit sink"""

    def __init__(self, db: Session):
        self.db = db

    def append(self, level: str, source: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.db.add(SystemLog(level=level, source=source, message=message, meta=metadata))
        self.db.flush()


def ping(db: Session) -> None:
    """Minimal round trip against the data store"""
    db.execute(text("SELECT 1"))
