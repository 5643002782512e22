"""GET /v1/cron/* - wall-clock trigger endpoints"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from condo_cron.api.dependencies import get_request_id, get_scheduler, verify_trigger
from condo_cron.api.v1.schemas import (
    DispatchResponse,
    HealthCheckResponse,
    MaintenanceSweepResponse,
    MasterRunResponse,
    ReconciliationResponse,
)
from condo_cron.domain.exceptions import CandidateFetchError
from condo_cron.jobs.base import as_payload
from condo_cron.scheduler import MasterScheduler

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_trigger)])


@router.get("/cron/master", response_model=MasterRunResponse)
async def run_master(request: Request, scheduler: MasterScheduler = Depends(get_scheduler)):
    """
    Run every scheduled job concurrently.

    Always 200 once authenticated: a failed job shows up as an "error" entry in
    the summary, so alerting should read the body, not the status code.
    """
    report = await scheduler.run()
    if report.failed_tasks:
        logger.warning(
            f"Master run finished with failed tasks: {', '.join(report.failed_tasks)}",
            extra={"request_id": get_request_id(request)},
        )
    return as_payload(report)


async def _run_single(name: str, request: Request, scheduler: MasterScheduler):
    try:
        result = await scheduler.run_one(name)
    except CandidateFetchError as e:
        logger.error(f"Job {name} could not start: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail=str(e))
    return as_payload(result)


@router.get("/cron/health-check", response_model=HealthCheckResponse)
async def run_health_check(request: Request, scheduler: MasterScheduler = Depends(get_scheduler)):
    return await _run_single("health-check", request, scheduler)


@router.get("/cron/reconcile-payments", response_model=ReconciliationResponse)
async def run_reconcile_payments(request: Request, scheduler: MasterScheduler = Depends(get_scheduler)):
    return await _run_single("reconcile-payments", request, scheduler)


@router.get("/cron/process-notifications", response_model=DispatchResponse)
async def run_process_notifications(request: Request, scheduler: MasterScheduler = Depends(get_scheduler)):
    return await _run_single("process-notifications", request, scheduler)


@router.get("/cron/maintenance-check", response_model=MaintenanceSweepResponse)
async def run_maintenance_check(request: Request, scheduler: MasterScheduler = Depends(get_scheduler)):
    return await _run_single("maintenance-check", request, scheduler)
