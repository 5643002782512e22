"""Unit tests for the dependency health probe"""

import pytest
from unittest.mock import MagicMock
from condo_cron.domain.exceptions import LedgerAPIError
from condo_cron.domain.models import DependencyCheck, OverallHealth
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.jobs.health_probe import HealthProbe, compute_overall_status
from conftest import audit_rows, fixed_clock


@pytest.fixture
def probe(session_factory, ledger, channels, audit) -> HealthProbe:
    return HealthProbe(session_factory, ledger, channels, audit, clock=fixed_clock)


def test_overall_status_rules():
    ok = DependencyCheck(status="ok", latency_ms=1.0)
    off = DependencyCheck(status="not_configured", latency_ms=0.0)
    err = DependencyCheck(status="error", latency_ms=2.0, error="HTTP 500")
    odd = DependencyCheck(status="configured", latency_ms=0.0)

    assert compute_overall_status([ok, off]) == OverallHealth.HEALTHY
    assert compute_overall_status([ok, err, off]) == OverallHealth.DEGRADED
    assert compute_overall_status([ok, odd]) == OverallHealth.WARNING
    assert compute_overall_status([odd, err]) == OverallHealth.DEGRADED


async def test_all_dependencies_healthy(probe, session_factory):
    result = await probe.run()

    assert result.status == OverallHealth.HEALTHY
    assert result.services["database"].status == "ok"
    assert result.services["payment_provider"].status == "ok"
    assert result.services["email"].status == "ok"
    assert result.services["whatsapp"].status == "not_configured"
    assert result.services["push"].status == "not_configured"
    assert all(check.latency_ms >= 0 for check in result.services.values())

    rows = audit_rows(session_factory)
    assert [row.source for row in rows] == ["health_check"]
    assert rows[0].level == "info"
    assert rows[0].message == "Health check: healthy"


async def test_unconfigured_provider_is_not_an_error(probe, ledger):
    ledger.is_configured = False

    result = await probe.run()

    assert result.services["payment_provider"].status == "not_configured"
    assert result.status == OverallHealth.HEALTHY
    ledger.whoami.assert_not_called()


async def test_provider_error_degrades_and_alerts(probe, ledger, session_factory):
    """Test one failed dependency does not mask the others"""
    ledger.whoami.side_effect = LedgerAPIError("HTTP 401")

    result = await probe.run()

    assert result.status == OverallHealth.DEGRADED
    assert result.services["payment_provider"].status == "error"
    assert result.services["payment_provider"].error == "HTTP 401"
    assert result.services["database"].status == "ok"

    rows = audit_rows(session_factory)
    assert [row.source for row in rows] == ["health_check", "health_alert"]
    assert rows[0].level == "error"
    assert rows[1].message == "ALERT: Services degraded: payment_provider"


async def test_database_error_recorded(ledger, channels, audit):
    broken_session = MagicMock()
    broken_session.execute.side_effect = RuntimeError("connection refused")
    probe = HealthProbe(lambda: broken_session, ledger, channels, audit, clock=fixed_clock)

    result = await probe.run()

    assert result.status == OverallHealth.DEGRADED
    assert result.services["database"].status == "error"
    assert result.services["database"].error == "connection refused"
    assert result.services["payment_provider"].status == "ok"


async def test_multiple_failures_are_comma_joined(ledger, channels, session_factory):
    broken_session = MagicMock()
    broken_session.execute.side_effect = RuntimeError("connection refused")
    ledger.whoami.side_effect = LedgerAPIError("HTTP 503")
    probe = HealthProbe(lambda: broken_session, ledger, channels, AuditLog(session_factory), clock=fixed_clock)

    await probe.run()

    [alert] = audit_rows(session_factory, "health_alert")
    assert alert.message == "ALERT: Services degraded: database, payment_provider"


async def test_audit_failure_never_fails_health_check(session_factory, ledger, channels):
    failing_session = MagicMock()
    failing_session.flush.side_effect = RuntimeError("disk full")
    probe = HealthProbe(session_factory, ledger, channels, AuditLog(lambda: failing_session), clock=fixed_clock)

    result = await probe.run()

    assert result.status == OverallHealth.HEALTHY
    failing_session.rollback.assert_called()
