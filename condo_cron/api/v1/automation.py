"""GET /v1/automation/{condo_id}/decision - evaluate billing automation for an invoice age"""

from fastapi import APIRouter, Depends, Query

from condo_cron.api.dependencies import get_rule_evaluator, verify_trigger
from condo_cron.api.v1.schemas import AutomationDecisionResponse
from condo_cron.billing import AutomationRuleEvaluator

router = APIRouter(dependencies=[Depends(verify_trigger)])


@router.get("/automation/{condo_id}/decision", response_model=AutomationDecisionResponse)
def get_automation_decision(
    condo_id: str,
    invoice_age_days: int = Query(..., ge=0, description="Days since the invoice due date"),
    principal: float | None = Query(None, ge=0, description="Invoice amount, for late fee computation"),
    evaluator: AutomationRuleEvaluator = Depends(get_rule_evaluator),
):
    """
    Used by the billing sweep to decide reminder, late fee, auto-charge and
    delinquency-report actions. Settings are created with defaults on first use.
    """
    decision = evaluator.decide(condo_id, invoice_age_days, principal)
    return AutomationDecisionResponse(
        condo_id=condo_id,
        invoice_age_days=invoice_age_days,
        send_reminder=decision.send_reminder,
        apply_late_fee=decision.apply_late_fee,
        auto_charge=decision.auto_charge,
        include_in_delinquency_report=decision.include_in_delinquency_report,
        any_due=decision.any_due,
        channels=decision.channels,
        late_fee=decision.late_fee,
    )
