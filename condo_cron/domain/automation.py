"""Billing automation rules - decides which actions are due for an overdue invoice"""

from dataclasses import replace
from typing import List, Optional

from condo_cron.domain.models import AutomationDecision, AutomationSettings

# Bounds enforced by the settings screen; re-applied here for rows edited elsewhere
MAX_LATE_FEE_PERCENTAGE = 10.0
MAX_DAILY_INTEREST_RATE = 1.0
MIN_THRESHOLD_DAYS = 1


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


def sanitize_settings(settings: AutomationSettings) -> AutomationSettings:
    """Return a copy with out-of-range values clamped into their valid ranges"""
    return replace(
        settings,
        reminder_days=max(settings.reminder_days, MIN_THRESHOLD_DAYS),
        late_fee_days=max(settings.late_fee_days, MIN_THRESHOLD_DAYS),
        auto_charge_days=max(settings.auto_charge_days, MIN_THRESHOLD_DAYS),
        delinquency_report_days=max(settings.delinquency_report_days, MIN_THRESHOLD_DAYS),
        late_fee_percentage=_clamp(settings.late_fee_percentage, 0.0, MAX_LATE_FEE_PERCENTAGE),
        daily_interest_rate=_clamp(settings.daily_interest_rate, 0.0, MAX_DAILY_INTEREST_RATE),
    )


def compute_late_fee(
    principal: float,
    percentage: float,
    daily_interest_rate: float,
    threshold_days: int,
    age_days: int,
) -> float:
    """
    Late fee for an invoice that is age_days past due.

    Formula:
        fee = principal * percentage/100
            + principal * daily_interest_rate/100 * max(0, age_days - threshold_days)

    The flat percentage applies once on the trigger day; interest accrues only
    for days past the trigger, not from the original due date. Both rates are
    percentages (2.0 = 2 %, 0.0333 = 0.0333 % per day).

    Example:
        principal=1000, percentage=2, daily=0.0333, threshold=5, age=10
        1000 * 0.02 + 1000 * 0.000333 * 5 = 20 + 1.665 = 21.665
    """
    if principal < 0:
        raise ValueError("principal must be non-negative")
    if age_days < 0:
        raise ValueError("age_days must be non-negative")

    if age_days < threshold_days:
        return 0.0

    flat = principal * (percentage / 100)
    interest = principal * (daily_interest_rate / 100) * max(0, age_days - threshold_days)
    return flat + interest


def _channels(settings: AutomationSettings) -> List[str]:
    channels = []
    if settings.send_email:
        channels.append("email")
    if settings.send_whatsapp:
        channels.append("whatsapp")
    return channels


def evaluate_automation(
    settings: AutomationSettings,
    invoice_age_days: int,
    principal: Optional[float] = None,
) -> AutomationDecision:
    """
    Decide which automated actions are due for an invoice.

    Each action fires when its own flag is enabled and age >= threshold
    (equality counts). The function is pure: callers persist any invoice change
    and must not re-apply a late fee to an invoice already flagged.
    """
    if invoice_age_days < 0:
        raise ValueError("invoice_age_days must be non-negative")

    rules = sanitize_settings(settings)

    apply_late_fee = rules.late_fee_enabled and invoice_age_days >= rules.late_fee_days
    late_fee = None
    if apply_late_fee and principal is not None:
        late_fee = compute_late_fee(
            principal,
            rules.late_fee_percentage,
            rules.daily_interest_rate,
            rules.late_fee_days,
            invoice_age_days,
        )

    return AutomationDecision(
        send_reminder=rules.reminder_enabled and invoice_age_days >= rules.reminder_days,
        apply_late_fee=apply_late_fee,
        auto_charge=rules.auto_charge_enabled and invoice_age_days >= rules.auto_charge_days,
        include_in_delinquency_report=(
            rules.delinquency_report_enabled and invoice_age_days >= rules.delinquency_report_days
        ),
        channels=_channels(rules),
        late_fee=late_fee,
    )
