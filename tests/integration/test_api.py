"""Integration tests for API endpoints"""

import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from condo_cron.api.dependencies import get_scheduler
from condo_cron.config import get_settings
from condo_cron.domain.exceptions import CandidateFetchError
from condo_cron.scheduler import MasterScheduler
from condo_cron.utils.date_utils import utc_now
from conftest import add_payment

pytestmark = pytest.mark.integration


class FailingJob:
    def __init__(self, name, error):
        self.name = name
        self.error = error

    async def run(self):
        raise self.error


@pytest.fixture
def secured_client(client: TestClient, settings) -> TestClient:
    secured = settings.model_copy(update={"cron_secret": "s3cret"})
    client.app.dependency_overrides[get_settings] = lambda: secured
    return client


def test_health_endpoint(client: TestClient):
    """Test liveness endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "condo_cron_job_runs_total" in response.text


def test_master_run_reports_every_job(client: TestClient):
    """Test GET /v1/cron/master with no provider or channels configured"""
    response = client.get("/v1/cron/master")

    assert response.status_code == 200
    data = response.json()
    assert "timestamp" in data
    assert data["duration_ms"] >= 0
    tasks = {entry["task"]: entry for entry in data["summary"]}
    assert set(tasks) == {"health-check", "maintenance-check", "process-notifications", "reconcile-payments"}
    assert all(entry["status"] == "ok" for entry in tasks.values())
    assert tasks["health-check"]["result"]["services"]["payment_provider"]["status"] == "not_configured"
    assert tasks["reconcile-payments"]["result"]["message"] == "No pending payments to reconcile"


def test_master_run_is_200_even_when_a_job_fails(client: TestClient):
    scheduler = MasterScheduler([FailingJob("health-check", RuntimeError("probe exploded"))])
    client.app.dependency_overrides[get_scheduler] = lambda: scheduler

    response = client.get("/v1/cron/master")

    assert response.status_code == 200
    [entry] = response.json()["summary"]
    assert entry == {"task": "health-check", "status": "error", "result": None, "error": "probe exploded"}


def test_master_requires_secret_when_configured(secured_client: TestClient):
    assert secured_client.get("/v1/cron/master").status_code == 401
    assert (
        secured_client.get("/v1/cron/master", headers={"Authorization": "Bearer wrong"}).status_code == 401
    )
    assert secured_client.get("/v1/cron/master", headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_unauthorized_trigger_runs_no_job(secured_client: TestClient):
    scheduler = MasterScheduler([FailingJob("health-check", AssertionError("must not run"))])
    secured_client.app.dependency_overrides[get_scheduler] = lambda: scheduler

    response = secured_client.get("/v1/cron/health-check")

    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


def test_single_health_check(client: TestClient):
    response = client.get("/v1/cron/health-check")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"]["database"]["status"] == "ok"


def test_single_reconcile_expires_overdue_payment(client: TestClient, db):
    add_payment(db, expires_at=utc_now() - timedelta(minutes=1), created_at=utc_now() - timedelta(hours=2))

    response = client.get("/v1/cron/reconcile-payments")

    assert response.status_code == 200
    assert response.json()["expired"] == 1


def test_single_notifications_and_maintenance(client: TestClient):
    notifications = client.get("/v1/cron/process-notifications")
    maintenance = client.get("/v1/cron/maintenance-check")

    assert notifications.status_code == 200
    assert notifications.json()["message"] == "No pending notifications"
    assert maintenance.status_code == 200
    assert maintenance.json() == {"checked": 0, "alerts": 0, "overdue": 0}


def test_candidate_failure_returns_503(client: TestClient):
    error = CandidateFetchError("reconcile-payments", "database is locked")
    client.app.dependency_overrides[get_scheduler] = lambda: MasterScheduler([FailingJob("reconcile-payments", error)])

    response = client.get("/v1/cron/reconcile-payments")

    assert response.status_code == 503
    assert "database is locked" in response.json()["detail"]


def test_automation_decision(client: TestClient):
    response = client.get("/v1/automation/condo-1/decision", params={"invoice_age_days": 30, "principal": 1000})

    assert response.status_code == 200
    data = response.json()
    assert data["condo_id"] == "condo-1"
    assert data["send_reminder"] is True
    assert data["apply_late_fee"] is False  # disabled by default
    assert data["include_in_delinquency_report"] is True
    assert data["any_due"] is True
    assert data["channels"] == ["email", "whatsapp"]


def test_automation_decision_rejects_negative_age(client: TestClient):
    response = client.get("/v1/automation/condo-1/decision", params={"invoice_age_days": -1})
    assert response.status_code == 422


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"

    generated = client.get("/health")
    assert generated.headers["X-Request-ID"]


def test_automation_decision_nothing_due_yet(client: TestClient):
    response = client.get("/v1/automation/condo-2/decision", params={"invoice_age_days": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["any_due"] is False
    assert data["late_fee"] is None
