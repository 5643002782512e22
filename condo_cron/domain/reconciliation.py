"""Payment state machine - pure rules applied by the reconciliation job"""

from datetime import datetime, timedelta
from typing import Dict, Optional

from condo_cron.domain.models import (
    PaymentIntent,
    PaymentStatus,
    PaymentTransition,
    TERMINAL_PAYMENT_STATUSES,
)
from condo_cron.utils.date_utils import ensure_utc

# Provider vocabulary -> internal state. Anything else means "no transition".
PROVIDER_STATUS_MAP: Dict[str, PaymentStatus] = {
    "approved": PaymentStatus.PAID,
    "rejected": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
}

# Provider statuses that are known and legitimately leave a payment pending.
# Refunds and chargebacks arrive through webhooks and never move a pending record here.
IN_FLIGHT_PROVIDER_STATUSES = frozenset(
    {"pending", "in_process", "authorized", "in_mediation", "refunded", "charged_back"}
)


# Metadata key stamped on a pending payment once it has been reported as stale
STALE_ALERT_MARKER = "stale_alerted_at"


def map_provider_status(provider_status: str) -> Optional[PaymentStatus]:
    """Translate a raw provider status into an internal status, or None"""
    return PROVIDER_STATUS_MAP.get(provider_status)


def is_unmapped(provider_status: str) -> bool:
    """True for provider values outside both the mapping and the known in-flight set"""
    return provider_status not in PROVIDER_STATUS_MAP and provider_status not in IN_FLIGHT_PROVIDER_STATUSES


def lookback_cutoff(now: datetime, lookback_hours: int) -> datetime:
    """Oldest creation time still considered by a sweep (inclusive)"""
    return now - timedelta(hours=lookback_hours)


def is_expired(payment: PaymentIntent, now: datetime) -> bool:
    """A payment is expired once its expiration timestamp lies strictly in the past"""
    if payment.expires_at is None:
        return False
    return ensure_utc(payment.expires_at) < now


def plan_expiration(payment: PaymentIntent, now: datetime) -> Optional[PaymentTransition]:
    """Build the pending -> expired transition, or None if it does not apply"""
    if payment.status in TERMINAL_PAYMENT_STATUSES or not is_expired(payment, now):
        return None
    return PaymentTransition(
        payment_id=payment.id,
        status=PaymentStatus.EXPIRED,
        paid_at=None,
        updated_at=now,
    )


def plan_provider_transition(
    payment: PaymentIntent,
    provider_status: str,
    now: datetime,
) -> Optional[PaymentTransition]:
    """
    Decide how a provider-reported status changes a local payment.

    Rules:
    - Terminal payments never move (paid/failed/cancelled/expired are permanent)
    - Unknown provider statuses leave the payment unchanged
    - Re-confirming the current status is a no-op
    - paid_at is set iff the new status is paid
    - Metadata is merged: prior keys survive, reconciled_at/provider_status are overwritten
    """
    if payment.status in TERMINAL_PAYMENT_STATUSES:
        return None

    new_status = map_provider_status(provider_status)
    if new_status is None or new_status == payment.status:
        return None

    metadata = dict(payment.metadata or {})
    metadata.update(
        {
            "reconciled_at": now.isoformat(),
            "provider_status": provider_status,
        }
    )

    return PaymentTransition(
        payment_id=payment.id,
        status=new_status,
        paid_at=now if new_status == PaymentStatus.PAID else None,
        updated_at=now,
        metadata=metadata,
    )
