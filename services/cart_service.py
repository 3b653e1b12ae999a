"""
Session-scoped cart.

One CartSession per user session: created on session start, cleared on
logout or after a completed purchase. It is an ordinary object handed to
whoever needs it, not a module-level singleton, so sessions (and tests) never
share state.

Adding to the cart runs the ticket guard first, exactly like "buy now". The
cart itself has no authority; checkout re-runs the guard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from domain.cart import CartReservation
from domain.event import Event
from domain.ticket import PurchaserIdentity
from domain.time import Clock, utc_now
from services.checkout_service import CheckoutOrchestrator, CheckoutResult
from services.ticket_guard_service import TicketIssuanceGuard

logger = logging.getLogger(__name__)


class AddToCartOutcome(str, Enum):
    ADDED = "added"
    ALREADY_IN_CART = "already_in_cart"
    ALREADY_HAS_TICKET = "already_has_ticket"


@dataclass(frozen=True, slots=True)
class AddToCartResult:
    outcome: AddToCartOutcome
    reservation: Optional[CartReservation] = None


class CartSession:
    """
    Example:
        cart = CartSession(guard, user_id=current_user.id)
        cart.add(event)
        result = cart.checkout(orchestrator)
        # after the payment webhook confirms: cart.complete_purchase()
    """

    def __init__(
        self,
        guard: TicketIssuanceGuard,
        user_id: Optional[str] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._guard = guard
        self._clock = clock
        self._user_id: Optional[str] = None
        self._items: Dict[str, CartReservation] = {}
        self.guest_email: Optional[str] = None
        self.guest_phone: Optional[str] = None
        self.init(user_id)

    def init(self, user_id: Optional[str] = None) -> None:
        """Start a fresh session for `user_id` (None for a guest)."""

        self._user_id = user_id
        self.clear()

    def clear(self) -> None:
        """Drop all reservations and guest contact details."""

        self._items.clear()
        self.guest_email = None
        self.guest_phone = None

    @property
    def identity(self) -> Optional[PurchaserIdentity]:
        """Authenticated user preferred, otherwise the guest email given so far."""

        return PurchaserIdentity.from_parts(self._user_id, self.guest_email)

    @property
    def items(self) -> List[CartReservation]:
        return list(self._items.values())

    def is_in_cart(self, event_id: str) -> bool:
        return event_id in self._items

    def item_count(self) -> int:
        return len(self._items)

    def total_price(self) -> Decimal:
        return sum((item.price for item in self._items.values()), Decimal("0"))

    def add(self, event: Event) -> AddToCartResult:
        """
        Reserve `event` in the cart unless it is already there or the
        purchaser already holds an active ticket for it.

        Store errors from the guard propagate.
        """

        if self.is_in_cart(event.event_id):
            return AddToCartResult(outcome=AddToCartOutcome.ALREADY_IN_CART)

        identity = self.identity
        if identity is not None:
            verdict = self._guard.ensure_no_active_ticket(event.event_id, identity)
            if not verdict.ok:
                return AddToCartResult(outcome=AddToCartOutcome.ALREADY_HAS_TICKET)

        reservation = CartReservation(
            event_id=event.event_id,
            price=event.price,
            added_at=self._clock(),
            event_title=event.title,
        )
        self._items[event.event_id] = reservation
        return AddToCartResult(outcome=AddToCartOutcome.ADDED, reservation=reservation)

    def remove(self, event_id: str) -> None:
        self._items.pop(event_id, None)

    def checkout(self, orchestrator: CheckoutOrchestrator) -> CheckoutResult:
        """
        Check out every reserved event.

        The cart is kept until the purchase is confirmed (`complete_purchase`),
        so a user who abandons the payment page still has it.
        """

        return orchestrator.start_cart_checkout(
            list(self._items), self.identity, phone=self.guest_phone
        )

    def complete_purchase(self) -> None:
        """Called once the gateway confirms payment."""

        logger.info("Purchase complete; clearing cart", extra={"item_count": self.item_count()})
        self.clear()


__all__ = ["AddToCartOutcome", "AddToCartResult", "CartSession"]
