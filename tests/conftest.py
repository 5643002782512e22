"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from condo_cron.api.dependencies import get_session_factory
from condo_cron.api.main import create_app
from condo_cron.config import Settings, get_settings
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.infrastructure.clients.channels import ChannelRegistry
from condo_cron.infrastructure.clients.ledger import LedgerClient
from condo_cron.infrastructure.database.models import (
    Base,
    DeliveryNotification,
    MaintenanceSchedule,
    Payment,
    SystemLog,
)
from condo_cron.infrastructure.database.session import build_engine, build_session_factory


NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Create a fresh SQLite test database per test"""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield build_session_factory(engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Session used by tests to seed and inspect rows"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def audit(session_factory: sessionmaker) -> AuditLog:
    return AuditLog(session_factory)


@pytest.fixture
def ledger() -> AsyncMock:
    """Configured provider client whose calls are stubbed per test"""
    client = AsyncMock(spec=LedgerClient)
    client.is_configured = True
    client.whoami.return_value = {"id": 1}
    return client


@pytest.fixture
def channels() -> AsyncMock:
    registry = AsyncMock(spec=ChannelRegistry)
    registry.deliver.return_value = None
    registry.configuration_status.return_value = {"email": True, "whatsapp": False, "push": False}
    return registry


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'test.db'}", cron_secret=None)


@pytest.fixture
def client(settings: Settings, session_factory: sessionmaker) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return TestClient(app)


def add_payment(db: Session, **overrides) -> Payment:
    """Insert a pending payment created one hour ago unless overridden"""
    values = {
        "condo_id": "condo-1",
        "amount": 350,
        "status": "pending",
        "provider_payment_id": "mp-1",
        "created_at": NOW - timedelta(hours=1),
        "meta": {"source": "checkout"},
    }
    values.update(overrides)
    payment = Payment(**values)
    db.add(payment)
    db.commit()
    return payment


def add_notification(db: Session, **overrides) -> DeliveryNotification:
    values = {
        "condo_id": "condo-1",
        "channel": "email",
        "to_address": "morador@example.com",
        "template_name": "delivery_arrived",
        "payload": {"delivery_id": "d-1"},
        "status": "pending",
        "scheduled_at": NOW - timedelta(minutes=5),
        "attempts": 0,
    }
    values.update(overrides)
    notification = DeliveryNotification(**values)
    db.add(notification)
    db.commit()
    return notification


def add_schedule(db: Session, **overrides) -> MaintenanceSchedule:
    values = {
        "condo_id": "condo-1",
        "equipment_name": "Elevador A",
        "frequency": "monthly",
        "next_date": NOW.date() + timedelta(days=3),
    }
    values.update(overrides)
    schedule = MaintenanceSchedule(**values)
    db.add(schedule)
    db.commit()
    return schedule


def audit_rows(session_factory: sessionmaker, source: str | None = None) -> list[SystemLog]:
    session = session_factory()
    try:
        query = session.query(SystemLog)
        if source is not None:
            query = query.filter(SystemLog.source == source)
        return query.order_by(SystemLog.id).all()
    finally:
        session.close()
