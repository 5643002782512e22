"""SQLAlchemy ORM models for the tables the scheduled jobs read and write"""

import uuid
from sqlalchemy import Column, String, Boolean, Float, Numeric, DateTime, Date, Integer, Text, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from condo_cron.utils.date_utils import utc_now

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Payment(Base):
    """Payment intent awaiting confirmation from the provider"""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    condo_id = Column(Text, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)
    provider_payment_id = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class DeliveryNotification(Base):
    """Outbound notification queue with retry tracking"""

    __tablename__ = "delivery_notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    condo_id = Column(Text, nullable=False, index=True)
    channel = Column(Text, nullable=False)
    to_address = Column(Text, nullable=True)
    template_name = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    attempts = Column(Integer, nullable=False, default=0)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())


class AutomationSettingsRow(Base):
    """Per-condo billing automation configuration (one row per condo)"""

    __tablename__ = "automation_settings"

    id = Column(String(36), primary_key=True, default=_uuid)
    condo_id = Column(Text, nullable=False, unique=True)
    dias_lembrete = Column(Integer, nullable=False, default=3)
    lembrete_ativo = Column(Boolean, nullable=False, default=True)
    dias_multa = Column(Integer, nullable=False, default=5)
    multa_percentual = Column(Float, nullable=False, default=2.0)
    juros_diario = Column(Float, nullable=False, default=0.0333)
    multa_automatica = Column(Boolean, nullable=False, default=False)
    dias_cobranca_automatica = Column(Integer, nullable=False, default=15)
    cobranca_automatica = Column(Boolean, nullable=False, default=False)
    dias_relatorio_inadimplentes = Column(Integer, nullable=False, default=30)
    relatorio_automatico = Column(Boolean, nullable=False, default=True)
    enviar_email = Column(Boolean, nullable=False, default=True)
    enviar_whatsapp = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())


class SystemLog(Base):
    """Append-only audit sink"""

    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    level = Column(Text, nullable=False)
    source = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())


class MaintenanceSchedule(Base):
    """Recurring maintenance occurrence for a piece of equipment"""

    __tablename__ = "maintenance_schedules"

    id = Column(String(36), primary_key=True, default=_uuid)
    condo_id = Column(Text, nullable=False, index=True)
    equipment_name = Column(Text, nullable=False)
    frequency = Column(Text, nullable=False, default="monthly")
    next_date = Column(Date, nullable=False)
    alerted_for = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
