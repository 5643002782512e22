"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.EXPIRED, PaymentStatus.CANCELLED}
)


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class DependencyStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


class OverallHealth(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    WARNING = "warning"


@dataclass
class PaymentIntent:
    """One expected inbound payment"""

    id: str
    tenant_id: str
    amount: float
    status: PaymentStatus
    provider_payment_id: Optional[str]
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentTransition:
    """State change to apply to a single pending payment"""

    payment_id: str
    status: PaymentStatus
    paid_at: Optional[datetime]
    updated_at: datetime
    metadata: Optional[Dict[str, Any]] = None  # None leaves metadata untouched


@dataclass
class NotificationRecord:
    """One unit of outbound communication"""

    id: str
    tenant_id: str
    channel: str
    to_address: Optional[str]
    template_name: Optional[str]
    payload: Dict[str, Any]
    status: NotificationStatus
    scheduled_at: datetime
    attempts: int = 0
    processed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None


@dataclass
class AutomationSettings:
    """Per-tenant billing automation thresholds"""

    tenant_id: str
    reminder_days: int = 3
    reminder_enabled: bool = True
    late_fee_days: int = 5
    late_fee_percentage: float = 2.0
    daily_interest_rate: float = 0.0333  # percent per day
    late_fee_enabled: bool = False
    auto_charge_days: int = 15
    auto_charge_enabled: bool = False
    delinquency_report_days: int = 30
    delinquency_report_enabled: bool = True
    send_email: bool = True
    send_whatsapp: bool = True


@dataclass
class AutomationDecision:
    """Actions due for one invoice given its age"""

    send_reminder: bool
    apply_late_fee: bool
    auto_charge: bool
    include_in_delinquency_report: bool
    channels: List[str]
    late_fee: Optional[float] = None

    @property
    def any_due(self) -> bool:
        return self.send_reminder or self.apply_late_fee or self.auto_charge or self.include_in_delinquency_report


@dataclass
class MaintenanceDue:
    """An equipment maintenance occurrence inside the alert horizon"""

    schedule_id: str
    tenant_id: str
    equipment_name: str
    next_date: date
    overdue: bool


@dataclass
class DependencyCheck:
    """Outcome of probing one external dependency"""

    status: str
    latency_ms: float
    error: Optional[str] = None


@dataclass
class HealthCheckResult:
    status: OverallHealth
    timestamp: str
    latency_ms: float
    services: Dict[str, DependencyCheck]

    @property
    def failed_services(self) -> List[str]:
        return [name for name, check in self.services.items() if check.status == DependencyStatus.ERROR]


@dataclass
class ReconciliationResult:
    processed: int = 0
    updated: int = 0
    expired: int = 0
    errors: int = 0
    unmapped: int = 0
    stale: int = 0
    message: Optional[str] = None


@dataclass
class DispatchResult:
    processed: int = 0
    successes: int = 0
    failures: int = 0
    message: Optional[str] = None


@dataclass
class MaintenanceSweepResult:
    checked: int = 0
    alerts: int = 0
    overdue: int = 0


@dataclass
class JobOutcome:
    """Settled result of one job inside a scheduler run"""

    task: str
    status: str  # "ok" | "error"
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class SchedulerReport:
    timestamp: str
    duration_ms: float
    summary: List[JobOutcome]

    @property
    def failed_tasks(self) -> List[str]:
        return [outcome.task for outcome in self.summary if outcome.status == "error"]
