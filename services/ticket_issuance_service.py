"""
Ticket issuance after payment confirmation.

The gateway calls back (webhook) once a checkout session is paid. This module
verifies that callback, extracts what was bought and by whom, and creates one
ACTIVE ticket per event.

Payment has already been taken at this point, so an existing active ticket
does not abort the whole confirmation: that event is skipped and logged as a
refund candidate, the others are still issued. Both the pre-check and the
store's unique index can report the duplicate; they are treated the same way.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

import stripe

from domain.ticket import DuplicateActiveTicketError, PurchaserIdentity, Ticket
from domain.time import Clock, utc_now
from repositories.event_repository import EventRepository
from repositories.ticket_repository import TicketLedger

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class WebhookVerificationError(Exception):
    """Raised when a webhook payload or its signature is invalid."""


@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    """What a paid checkout session bought, and for whom."""

    session_id: str
    event_ids: List[str]
    user_id: Optional[str] = None
    email: Optional[str] = None
    payment_id: Optional[str] = None

    @property
    def identity(self) -> Optional[PurchaserIdentity]:
        return PurchaserIdentity.from_parts(self.user_id, self.email)


@dataclass(frozen=True, slots=True)
class IssuanceResult:
    """
    created: tickets written
    skipped_event_ids: events the purchaser already held (refund candidates)
    failed_event_ids: events whose ticket could not be written
    """

    created: List[Ticket] = field(default_factory=list)
    skipped_event_ids: List[str] = field(default_factory=list)
    failed_event_ids: List[str] = field(default_factory=list)


def verify_webhook(payload: bytes, signature: Optional[str], secret: str) -> Dict[str, Any]:
    """
    Verify a gateway webhook and return its decoded JSON body.

    Raises:
        WebhookVerificationError: Missing/invalid signature or malformed payload.
    """

    if not signature:
        raise WebhookVerificationError("No signature found")

    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as e:
        raise WebhookVerificationError(f"Webhook signature verification failed: {e}") from e
    except ValueError as e:
        raise WebhookVerificationError(f"Invalid payload: {e}") from e

    return json.loads(payload)


def parse_payment_confirmation(event: Mapping[str, Any]) -> Optional[PaymentConfirmation]:
    """
    Extract a PaymentConfirmation from a webhook event.

    Returns None for anything other than a paid one-time checkout session, or
    when the session metadata names no events.

    Example:
        parse_payment_confirmation({
            "type": "checkout.session.completed",
            "data": {"object": {
                "id": "cs_1", "mode": "payment", "payment_status": "paid",
                "customer_email": "fan@example.com",
                "metadata": {"eventIds": "e1,e2", "userId": ""},
            }},
        })
        # PaymentConfirmation(session_id="cs_1", event_ids=["e1", "e2"], email="fan@example.com", ...)
    """

    if event.get("type") != CHECKOUT_COMPLETED:
        return None

    session = (event.get("data") or {}).get("object") or {}
    if session.get("mode") != "payment" or session.get("payment_status") != "paid":
        return None

    metadata = session.get("metadata") or {}
    if metadata.get("eventIds"):
        event_ids = [e.strip() for e in str(metadata["eventIds"]).split(",") if e.strip()]
    elif metadata.get("eventId"):
        event_ids = [str(metadata["eventId"]).strip()]
    else:
        event_ids = []

    if not event_ids:
        logger.warning(
            "Paid checkout session has no event ids in metadata",
            extra={"session_id": session.get("id"), "metadata_keys": sorted(metadata)},
        )
        return None

    email = session.get("customer_email") or (session.get("customer_details") or {}).get("email")
    payment_intent = session.get("payment_intent")
    if isinstance(payment_intent, Mapping):
        payment_intent = payment_intent.get("id")

    return PaymentConfirmation(
        session_id=str(session.get("id")),
        event_ids=list(dict.fromkeys(event_ids)),
        user_id=metadata.get("userId") or None,
        email=email or None,
        payment_id=payment_intent or None,
    )


class TicketIssuanceService:
    def __init__(
        self,
        ledger: TicketLedger,
        events: EventRepository,
        clock: Clock = utc_now,
    ) -> None:
        self._ledger = ledger
        self._events = events
        self._clock = clock

    def issue(self, confirmation: PaymentConfirmation) -> IssuanceResult:
        """
        Create tickets for a confirmed payment.

        Store errors on the pre-check propagate (the webhook is retried by the
        gateway); per-event insert failures are isolated.
        """

        identity = confirmation.identity
        if identity is None:
            logger.error(
                "Paid session has neither user id nor email; cannot issue tickets",
                extra={"session_id": confirmation.session_id},
            )
            return IssuanceResult(failed_event_ids=list(confirmation.event_ids))

        held = self._ledger.events_with_active_tickets(confirmation.event_ids, identity)
        prices = self._prices(confirmation.event_ids)
        purchased_at = self._clock()

        created: List[Ticket] = []
        skipped: List[str] = []
        failed: List[str] = []

        for event_id in confirmation.event_ids:
            if event_id in held:
                skipped.append(event_id)
                continue

            try:
                ticket = self._ledger.create_ticket(
                    event_id,
                    identity,
                    prices.get(event_id),
                    purchased_at=purchased_at,
                    gateway_session_id=confirmation.session_id,
                    gateway_payment_id=confirmation.payment_id,
                )
            except DuplicateActiveTicketError:
                skipped.append(event_id)
                continue
            except Exception:
                logger.exception(
                    "Failed to create ticket",
                    extra={"event_id": event_id, "session_id": confirmation.session_id},
                )
                failed.append(event_id)
                continue

            created.append(ticket)

        if skipped:
            logger.warning(
                "Payment received for events already held; consider refunding",
                extra={"session_id": confirmation.session_id, "event_ids": skipped},
            )

        return IssuanceResult(created=created, skipped_event_ids=skipped, failed_event_ids=failed)

    def _prices(self, event_ids: List[str]) -> Dict[str, Decimal]:
        try:
            return {e.event_id: e.price for e in self._events.get_events(event_ids)}
        except Exception:
            logger.warning("Could not load event prices; tickets stored without price", exc_info=True)
            return {}


__all__ = [
    "CHECKOUT_COMPLETED",
    "IssuanceResult",
    "PaymentConfirmation",
    "TicketIssuanceService",
    "WebhookVerificationError",
    "parse_payment_confirmation",
    "verify_webhook",
]
