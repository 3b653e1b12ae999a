"""
Checkout API Endpoints.

Endpoints that start a checkout for one event or for a whole cart.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_orchestrator
from api.models import CartCheckoutRequest, CheckoutRequest, CheckoutResponse, IdentityPayload
from domain.ticket import PurchaserIdentity
from services.checkout_service import CheckoutOrchestrator, CheckoutResult, CheckoutState

router = APIRouter()

_STATUS_CODES = {
    CheckoutState.REDIRECT_ISSUED: 200,
    CheckoutState.GUARD_REJECTED: 409,
    CheckoutState.CONFIGURATION_MISSING: 400,
    CheckoutState.GATEWAY_ERROR: 502,
}


def _identity(payload: Optional[IdentityPayload]) -> Optional[PurchaserIdentity]:
    if payload is None:
        return None
    return PurchaserIdentity.from_parts(payload.user_id, payload.email)


def _respond(result: CheckoutResult) -> JSONResponse:
    body = CheckoutResponse(
        state=result.state.value,
        url=result.redirect_url,
        session_id=result.session_id,
        publishable_key=result.publishable_key,
        message=result.message,
        held_event_ids=result.held_event_ids,
    )
    return JSONResponse(
        status_code=_STATUS_CODES.get(result.state, 500),
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Start Checkout",
    description="Check the purchaser holds no active ticket, then create a payment-gateway session."
)
def start_checkout(
    request: CheckoutRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    """
    Start a single-event checkout.

    **Outcomes:**
    - `redirect_issued` (200): navigate to `url`, or redirect with `sessionId` + `publishableKey`
    - `guard_rejected` (409): the purchaser already holds an active ticket
    - `configuration_missing` (400): no event id, or no gateway client key
    - `gateway_error` (502): the payment service failed; `message` says why
    """
    result = orchestrator.start_checkout(
        request.event_id, _identity(request.identity), phone=request.phone
    )
    return _respond(result)


@router.post(
    "/checkout/cart",
    response_model=CheckoutResponse,
    summary="Start Cart Checkout",
    description="Checkout every event in the cart in one payment session."
)
def start_cart_checkout(
    request: CartCheckoutRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.start_cart_checkout(
        request.event_ids, _identity(request.identity), phone=request.phone
    )
    return _respond(result)
