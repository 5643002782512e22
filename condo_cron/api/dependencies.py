"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from condo_cron.billing import AutomationRuleEvaluator
from condo_cron.config import Settings, get_settings
from condo_cron.domain.exceptions import UnauthorizedTriggerError
from condo_cron.infrastructure.database.session import build_engine, build_session_factory
from condo_cron.scheduler import MasterScheduler, authorize_trigger, build_scheduler


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def _session_factory_for(database_url: str) -> sessionmaker:
    return build_session_factory(build_engine(database_url))


def get_session_factory(settings: Settings = Depends(get_settings)) -> sessionmaker:
    """One engine per database URL for the life of the process"""
    return _session_factory_for(settings.database_url)


def get_scheduler(
    settings: Settings = Depends(get_settings),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> MasterScheduler:
    """Provide a scheduler wired with all jobs"""
    return build_scheduler(settings, session_factory)


def get_rule_evaluator(session_factory: sessionmaker = Depends(get_session_factory)) -> AutomationRuleEvaluator:
    return AutomationRuleEvaluator(session_factory)


def verify_trigger(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the call with 401 before any job runs when the bearer secret does not match"""
    try:
        authorize_trigger(authorization, settings.cron_secret)
    except UnauthorizedTriggerError:
        raise HTTPException(status_code=401, detail="Unauthorized")
