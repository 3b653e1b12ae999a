"""
Tickets API Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_ticket_ledger
from api.models import ActiveTicketResponse
from domain.ticket import PurchaserIdentity
from repositories.ticket_repository import TicketLedger

router = APIRouter()


@router.get(
    "/tickets/active",
    response_model=ActiveTicketResponse,
    summary="Check Active Ticket",
    description="Whether a purchaser (user id or guest email) holds an active ticket for an event."
)
def check_active_ticket(
    event_id: str = Query(..., alias="eventId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    email: Optional[str] = Query(None),
    ledger: TicketLedger = Depends(get_ticket_ledger),
):
    identity = PurchaserIdentity.from_parts(user_id, email)
    if identity is None:
        raise HTTPException(status_code=400, detail="userId or email is required")

    try:
        has_ticket = ledger.has_active_ticket(event_id, identity)
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Failed to check tickets: {str(e)}"
        )

    return ActiveTicketResponse(event_id=event_id, has_active_ticket=has_ticket)
