"""
Checkout orchestration.

Drives one checkout attempt through

    REQUESTED -> GUARD_CHECKED -> SESSION_CREATED -> REDIRECT_ISSUED

with the error exits GUARD_REJECTED, GATEWAY_ERROR and CONFIGURATION_MISSING.
Every attempt ends in exactly one of REDIRECT_ISSUED or an error exit, and the
result is returned to the caller, never raised.

Error message precedence for gateway failures (see extract_gateway_error_message):
1. "service unavailable" transport failures -> SERVICE_UNAVAILABLE_MESSAGE
2. structured {"error": ...} body from the gateway
3. transport-level message
4. GENERIC_FAILURE_MESSAGE
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from domain.ticket import PurchaserIdentity
from repositories.checkout_gateway import (
    FUNCTION_NOT_FOUND,
    CheckoutGateway,
    CheckoutGatewayError,
    CheckoutSessionRequest,
)
from repositories.event_repository import EventRepository
from services.ticket_guard_service import TicketIssuanceGuard

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to create checkout session. Please try again."
SERVICE_UNAVAILABLE_MESSAGE = (
    "Payment service is temporarily unavailable. Please try again later or contact support."
)
TICKET_CHECK_FAILED_MESSAGE = (
    "We could not verify your existing tickets right now. Please try again later."
)
MISSING_EVENT_MESSAGE = "An event must be selected before checkout."
MISSING_CLIENT_KEY_MESSAGE = (
    "Payment is not configured correctly. Please contact support."
)

# Substrings of a transport message that mean the payment service itself could
# not be reached.
_UNAVAILABLE_MARKERS = (FUNCTION_NOT_FOUND, "Failed to send")


class CheckoutState(str, Enum):
    REQUESTED = "requested"
    GUARD_CHECKED = "guard_checked"
    SESSION_CREATED = "session_created"
    REDIRECT_ISSUED = "redirect_issued"
    GUARD_REJECTED = "guard_rejected"
    GATEWAY_ERROR = "gateway_error"
    CONFIGURATION_MISSING = "configuration_missing"


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    """
    Terminal outcome of a checkout attempt.

    On REDIRECT_ISSUED exactly one redirect mechanism is usable:
    - redirect_url: navigate there directly, or
    - session_id + publishable_key: hand both to the gateway's client library.
    On an error exit, `message` is the text to show the user.
    """

    state: CheckoutState
    message: Optional[str] = None
    redirect_url: Optional[str] = None
    session_id: Optional[str] = None
    publishable_key: Optional[str] = None
    held_event_ids: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is CheckoutState.REDIRECT_ISSUED

    @property
    def retryable(self) -> bool:
        """Transient failures may be retried by starting a fresh attempt."""

        return self.state is CheckoutState.GATEWAY_ERROR


def _parse_body(body: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(body, Mapping):
        return body
    if isinstance(body, (str, bytes)):
        try:
            parsed = json.loads(body)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Could not parse gateway error body")
            return None
        return parsed if isinstance(parsed, Mapping) else None
    return None


def extract_gateway_error_message(error: CheckoutGatewayError) -> str:
    """
    Pick the user-facing message for a failed gateway call.

    Example:
        err = CheckoutGatewayError("non-2xx", context={"body": '{"error": "Sold out"}'})
        extract_gateway_error_message(err)  # "Sold out"
    """

    message = GENERIC_FAILURE_MESSAGE
    context = error.context or {}

    body = _parse_body(context.get("body"))
    if body and body.get("error"):
        message = str(body["error"])

    if context.get("message") and message == GENERIC_FAILURE_MESSAGE:
        message = str(context["message"])

    data = context.get("data")
    if isinstance(data, Mapping) and data.get("error") and message == GENERIC_FAILURE_MESSAGE:
        message = str(data["error"])

    if error.message:
        if any(marker in error.message for marker in _UNAVAILABLE_MARKERS):
            message = SERVICE_UNAVAILABLE_MESSAGE
        elif message == GENERIC_FAILURE_MESSAGE and context.get("body") is None:
            message = error.message

    return message


def already_purchased_message(titles: Sequence[str]) -> str:
    if len(titles) == 1:
        return (
            f'You have already purchased a ticket for "{titles[0]}". '
            "Please check your tickets or contact support if you believe this is an error."
        )
    return (
        f"You have already purchased tickets for the following events: {', '.join(titles)}. "
        "Please check your tickets or contact support if you believe this is an error."
    )


class CheckoutOrchestrator:
    """
    Guard-then-gateway checkout.

    The guard runs once per attempt. A failed attempt is never retried
    automatically; the user starts a new attempt, which re-runs the guard.
    """

    def __init__(
        self,
        guard: TicketIssuanceGuard,
        gateway: CheckoutGateway,
        events: Optional[EventRepository] = None,
        publishable_key: Optional[str] = None,
    ) -> None:
        self._guard = guard
        self._gateway = gateway
        self._events = events
        self._publishable_key = publishable_key

    def start_checkout(
        self,
        event_id: Optional[str],
        identity: Optional[PurchaserIdentity],
        phone: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Run a single-event ("buy now") checkout.

        Args:
            event_id: Event being purchased
            identity: Purchaser; None for a guest who has not given an email yet
                (the gateway collects it and the duplicate check happens when
                the ticket is issued)
            phone: Optional contact phone forwarded to the gateway

        Returns:
            CheckoutResult in REDIRECT_ISSUED or one of the error exits
        """

        if not event_id:
            return self._configuration_missing(MISSING_EVENT_MESSAGE)
        return self._run([event_id], identity, is_cart=False, phone=phone)

    def start_cart_checkout(
        self,
        event_ids: Sequence[str],
        identity: Optional[PurchaserIdentity],
        phone: Optional[str] = None,
    ) -> CheckoutResult:
        """Run a checkout covering every event in the cart."""

        wanted = [event_id for event_id in dict.fromkeys(event_ids) if event_id]
        if not wanted:
            return self._configuration_missing(MISSING_EVENT_MESSAGE)
        return self._run(wanted, identity, is_cart=True, phone=phone)

    def _configuration_missing(self, message: str) -> CheckoutResult:
        logger.warning("Checkout stopped: configuration missing", extra={"reason": message})
        return CheckoutResult(state=CheckoutState.CONFIGURATION_MISSING, message=message)

    def _run(
        self,
        event_ids: List[str],
        identity: Optional[PurchaserIdentity],
        *,
        is_cart: bool,
        phone: Optional[str],
    ) -> CheckoutResult:
        # REQUESTED -> GUARD_CHECKED
        if identity is not None:
            try:
                if is_cart:
                    verdict = self._guard.ensure_no_active_tickets(event_ids, identity)
                else:
                    verdict = self._guard.ensure_no_active_ticket(event_ids[0], identity)
            except Exception:
                logger.exception("Ticket check failed during checkout", extra={"event_ids": event_ids})
                return CheckoutResult(
                    state=CheckoutState.GATEWAY_ERROR, message=TICKET_CHECK_FAILED_MESSAGE
                )

            if not verdict.ok:
                held = sorted(verdict.held_event_ids)
                return CheckoutResult(
                    state=CheckoutState.GUARD_REJECTED,
                    message=already_purchased_message(self._titles_for(held)),
                    held_event_ids=held,
                )

        # GUARD_CHECKED -> SESSION_CREATED
        request = CheckoutSessionRequest(
            event_ids=event_ids, identity=identity, is_cart=is_cart, phone=phone
        )
        try:
            session = self._gateway.create_session(request)
        except CheckoutGatewayError as e:
            message = extract_gateway_error_message(e)
            logger.error(
                "Checkout session creation failed",
                extra={"event_ids": event_ids, "transport_message": e.message, "user_message": message},
            )
            return CheckoutResult(state=CheckoutState.GATEWAY_ERROR, message=message)

        logger.info(
            "Checkout session created",
            extra={"event_ids": event_ids, "has_url": session.url is not None},
        )

        # SESSION_CREATED -> REDIRECT_ISSUED
        if session.url:
            return CheckoutResult(
                state=CheckoutState.REDIRECT_ISSUED,
                redirect_url=session.url,
                session_id=session.session_id,
            )

        if not self._publishable_key:
            return self._configuration_missing(MISSING_CLIENT_KEY_MESSAGE)

        return CheckoutResult(
            state=CheckoutState.REDIRECT_ISSUED,
            session_id=session.session_id,
            publishable_key=self._publishable_key,
        )

    def _titles_for(self, event_ids: List[str]) -> List[str]:
        """Event titles for a rejection message; falls back to ids."""

        titles = {event_id: f"Event {event_id}" for event_id in event_ids}
        if self._events is not None:
            try:
                for event in self._events.get_events(event_ids):
                    titles[event.event_id] = event.display_title
            except Exception:
                logger.warning("Could not load event titles for rejection message", exc_info=True)
        return [titles[event_id] for event_id in event_ids]


__all__ = [
    "CheckoutOrchestrator",
    "CheckoutResult",
    "CheckoutState",
    "GENERIC_FAILURE_MESSAGE",
    "SERVICE_UNAVAILABLE_MESSAGE",
    "already_purchased_message",
    "extract_gateway_error_message",
]
