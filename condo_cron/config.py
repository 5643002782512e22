"""Configuration management using Pydantic Settings"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./condo_cron.db"

    # Trigger authentication (unset = open access)
    cron_secret: Optional[str] = None

    # Payment provider
    payment_provider_base_url: str = "https://api.mercadopago.com"
    payment_provider_token: Optional[str] = None
    payment_provider_payment_path: str = "/v1/payments/{payment_id}"
    payment_provider_whoami_path: str = "/users/me"

    # Channel senders, each independently optional
    email_api_url: Optional[str] = None
    email_api_key: Optional[str] = None
    whatsapp_api_url: Optional[str] = None
    whatsapp_api_key: Optional[str] = None
    push_api_url: Optional[str] = None
    push_api_key: Optional[str] = None

    # HTTP Client
    http_timeout_seconds: float = 10.0
    provider_max_retries: int = 2
    provider_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Payment reconciliation
    reconcile_lookback_hours: int = 72
    reconcile_stale_alert_hours: int = 168

    # Notification dispatch
    notification_batch_size: int = 50
    notification_max_attempts: int = 3
    notification_retry_base_minutes: int = 5

    # Maintenance sweep
    maintenance_lookahead_days: int = 7

    # Scheduler
    job_timeout_seconds: float = 55.0

    # Service
    service_name: str = "condo-cron"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Build settings once per process"""
    return Settings()
