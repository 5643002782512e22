"""Automation rule lookups for billing sweeps"""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from condo_cron.domain.automation import evaluate_automation
from condo_cron.domain.models import AutomationDecision, AutomationSettings
from condo_cron.infrastructure.database.repositories import AutomationSettingsRepository


class AutomationRuleEvaluator:
    """Loads a condo's automation settings (creating defaults lazily) and evaluates them"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def settings_for(self, tenant_id: str) -> AutomationSettings:
        db = self.session_factory()
        try:
            settings = AutomationSettingsRepository(db).get_or_create(tenant_id)
            db.commit()
            return settings
        finally:
            db.close()

    def decide(self, tenant_id: str, invoice_age_days: int, principal: Optional[float] = None) -> AutomationDecision:
        return evaluate_automation(self.settings_for(tenant_id), invoice_age_days, principal)
