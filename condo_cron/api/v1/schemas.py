"""Pydantic schemas for API responses"""

from pydantic import BaseModel
from typing import Any, Dict, List, Literal, Optional


class TaskSummary(BaseModel):
    """Settled outcome of one job in a master run"""

    task: str
    status: Literal["ok", "error"]
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class MasterRunResponse(BaseModel):
    """Response for GET /v1/cron/master"""

    timestamp: str
    duration_ms: float
    summary: List[TaskSummary]


class DependencyCheckSchema(BaseModel):
    status: str
    latency_ms: float
    error: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Response for GET /v1/cron/health-check"""

    status: str
    timestamp: str
    latency_ms: float
    services: Dict[str, DependencyCheckSchema]


class ReconciliationResponse(BaseModel):
    """Response for GET /v1/cron/reconcile-payments"""

    processed: int
    updated: int
    expired: int
    errors: int
    unmapped: int
    stale: int
    message: Optional[str] = None


class DispatchResponse(BaseModel):
    """Response for GET /v1/cron/process-notifications"""

    processed: int
    successes: int
    failures: int
    message: Optional[str] = None


class MaintenanceSweepResponse(BaseModel):
    """Response for GET /v1/cron/maintenance-check"""

    checked: int
    alerts: int
    overdue: int


class AutomationDecisionResponse(BaseModel):
    """Response for GET /v1/automation/{condo_id}/decision"""

    condo_id: str
    invoice_age_days: int
    send_reminder: bool
    apply_late_fee: bool
    auto_charge: bool
    include_in_delinquency_report: bool
    any_due: bool
    channels: List[str]
    late_fee: Optional[float] = None
