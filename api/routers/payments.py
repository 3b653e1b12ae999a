"""
Payments API Endpoints.

Receives the payment gateway's webhook and issues tickets for paid sessions.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dependencies import get_issuance_service, get_settings
from api.models import WebhookResponse
from config.settings import Settings
from services.ticket_issuance_service import (
    TicketIssuanceService,
    WebhookVerificationError,
    parse_payment_confirmation,
    verify_webhook,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/payments/webhook",
    response_model=WebhookResponse,
    summary="Payment Gateway Webhook",
)
async def payment_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    issuance: TicketIssuanceService = Depends(get_issuance_service),
):
    """
    Handle `checkout.session.completed`.

    Returns 400 for unverifiable payloads. Returns 500 when tickets could not
    be checked at all, or when any ticket insert failed, so the gateway
    retries the delivery. A retry only writes the tickets still missing:
    events already held are skipped.
    """
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=503, detail="Webhook secret is not configured")

    payload = await request.body()
    try:
        event = verify_webhook(
            payload,
            request.headers.get("stripe-signature"),
            settings.stripe_webhook_secret,
        )
    except WebhookVerificationError as e:
        logger.warning("Rejected payment webhook", extra={"reason": str(e)})
        raise HTTPException(status_code=400, detail=str(e))

    confirmation = parse_payment_confirmation(event)
    if confirmation is None:
        return WebhookResponse()

    try:
        result = issuance.issue(confirmation)
    except Exception as e:
        logger.exception("Ticket issuance failed", extra={"session_id": confirmation.session_id})
        raise HTTPException(status_code=500, detail=f"Failed to issue tickets: {str(e)}")

    # Without an identity a redelivery cannot succeed either.
    if result.failed_event_ids and confirmation.identity is not None:
        logger.error(
            "Ticket issuance incomplete; asking gateway to retry",
            extra={"session_id": confirmation.session_id, "event_ids": result.failed_event_ids},
        )
        raise HTTPException(
            status_code=500,
            detail=f"Failed to issue tickets for events: {', '.join(result.failed_event_ids)}",
        )

    return WebhookResponse(
        tickets_created=len(result.created),
        skipped_event_ids=result.skipped_event_ids,
        failed_event_ids=result.failed_event_ids,
    )
