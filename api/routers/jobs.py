"""
Job API Endpoints.

Entry points for an external scheduler (cron) that prefers HTTP over running
scripts/run_jobs.py. Neither endpoint takes input; both use the current time.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_fanout_service, get_status_service
from api.models import FanoutResponse, ReconciliationResponse
from services.notification_fanout_service import NotificationFanoutService
from services.status_reconciliation_service import StatusReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/jobs/notification-fanout",
    response_model=FanoutResponse,
    summary="Run Notification Fan-out",
)
def run_notification_fanout(
    service: NotificationFanoutService = Depends(get_fanout_service),
):
    try:
        result = service.run()
    except Exception as e:
        logger.exception("Notification fan-out failed")
        return JSONResponse(status_code=500, content={"error": str(e)})

    return FanoutResponse(
        events_processed=result.events_processed,
        notifications_sent=result.notifications_sent,
    )


@router.post(
    "/jobs/status-reconciliation",
    response_model=ReconciliationResponse,
    summary="Run Status Reconciliation",
)
def run_status_reconciliation(
    service: StatusReconciliationService = Depends(get_status_service),
):
    try:
        result = service.run()
    except Exception as e:
        logger.exception("Status reconciliation failed")
        return JSONResponse(status_code=500, content={"error": str(e)})

    return ReconciliationResponse(
        events_checked=result.events_checked,
        events_updated=result.events_updated,
        failures=len(result.failed_event_ids),
    )
