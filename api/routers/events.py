"""
Events API Endpoints.

Status reads reconcile the event on the way out, so a client never sees a
status that wall-clock time has already moved past.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_status_service
from api.models import EventStatusResponse
from services.status_reconciliation_service import StatusReconciliationService

router = APIRouter()


@router.get(
    "/events/{event_id}/status",
    response_model=EventStatusResponse,
    summary="Get Event Status",
)
def get_event_status(
    event_id: str,
    service: StatusReconciliationService = Depends(get_status_service),
):
    try:
        event = service.reconcile_event(event_id)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load event: {str(e)}"
        )

    if event is None:
        raise HTTPException(status_code=404, detail=f"Event not found: {event_id}")

    return EventStatusResponse(
        event_id=event.event_id,
        status=event.stored_status.value,
        start_time=event.start_time,
        end_time=event.end_time,
    )
