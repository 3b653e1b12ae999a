"""
Domain: Tickets and purchaser identities.

Contract excerpts implemented here:
- A purchaser is identified either by an authenticated user id or by a
  normalized (trimmed, lower-cased) email address, never both.
- For a fixed (event_id, purchaser identity) at most one ticket is ACTIVE at
  any instant.
- A ticket moves ACTIVE -> USED or ACTIVE -> REFUNDED and never back.

The at-most-one-active rule cannot be checked from a single Ticket; it is
enforced by the guard before checkout and by the store's unique index.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp


class TicketStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    REFUNDED = "refunded"


_ALLOWED_TRANSITIONS = {
    TicketStatus.ACTIVE: {TicketStatus.USED, TicketStatus.REFUNDED},
    TicketStatus.USED: set(),
    TicketStatus.REFUNDED: set(),
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class PurchaserIdentity:
    """
    Key used for ticket-uniqueness checks.

    Build it with `for_user`, `for_email` or `from_parts`; the constructor
    rejects anything but exactly one populated component.
    """

    user_id: Optional[str] = None
    email: Optional[str] = None

    def __post_init__(self) -> None:
        if bool(self.user_id) == bool(self.email):
            raise ValueError("PurchaserIdentity needs exactly one of user_id or email")
        if self.email is not None and self.email != normalize_email(self.email):
            raise ValueError("email must be normalized (trimmed, lower-case)")

    @staticmethod
    def for_user(user_id: str) -> "PurchaserIdentity":
        return PurchaserIdentity(user_id=user_id)

    @staticmethod
    def for_email(email: str) -> "PurchaserIdentity":
        return PurchaserIdentity(email=normalize_email(email))

    @staticmethod
    def from_parts(
        user_id: Optional[str] = None, email: Optional[str] = None
    ) -> Optional["PurchaserIdentity"]:
        """
        Pick the identity to check against.

        The authenticated user id is preferred; the guest email is only used
        when no user id is available. Returns None when neither is usable.
        """

        if user_id and user_id.strip():
            return PurchaserIdentity.for_user(user_id.strip())
        if email and email.strip():
            return PurchaserIdentity.for_email(email)
        return None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def kind(self) -> str:
        """'user' or 'email'; safe to log."""

        return "user" if self.is_authenticated else "email"


@dataclass(frozen=True, slots=True)
class Ticket:
    """Immutable ticket record for one (event, purchaser)."""

    ticket_id: str
    event_id: str
    purchaser: PurchaserIdentity
    status: TicketStatus
    purchase_date: datetime
    price: Optional[Decimal] = None
    gateway_session_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("purchase_date", self.purchase_date)

    @property
    def is_active(self) -> bool:
        return self.status is TicketStatus.ACTIVE

    def transition_to(self, status: TicketStatus) -> "Ticket":
        """Return a copy in `status`; raises ValueError on a forbidden move."""

        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Ticket cannot move from {self.status.value} to {status.value}"
            )
        return Ticket(
            ticket_id=self.ticket_id,
            event_id=self.event_id,
            purchaser=self.purchaser,
            status=status,
            purchase_date=self.purchase_date,
            price=self.price,
            gateway_session_id=self.gateway_session_id,
            gateway_payment_id=self.gateway_payment_id,
        )


class DuplicateActiveTicketError(Exception):
    """
    Raised when the store rejects a ticket because the purchaser already holds
    an active one for the event (unique-index violation).
    """

    def __init__(self, event_id: str, purchaser: PurchaserIdentity) -> None:
        super().__init__(f"Active ticket already exists for event {event_id}")
        self.event_id = event_id
        self.purchaser = purchaser


__all__ = [
    "DuplicateActiveTicketError",
    "PurchaserIdentity",
    "Ticket",
    "TicketStatus",
    "normalize_email",
]
