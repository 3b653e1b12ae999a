"""
Ticket issuance guard.

Pre-checkout check that a purchaser does not already hold an ACTIVE ticket for
the event(s) being bought. Both "add to cart" and "buy now" go through it.

This is a best-effort fast path, not a durable constraint: two concurrent
checkouts for the same purchaser can both pass it. The store's partial unique
index on active tickets is what finally rejects the second ticket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable

from domain.ticket import PurchaserIdentity
from repositories.ticket_repository import TicketLedger

logger = logging.getLogger(__name__)


class GuardOutcome(str, Enum):
    OK = "ok"
    ALREADY_HAS_TICKET = "already_has_ticket"


@dataclass(frozen=True, slots=True)
class GuardResult:
    """
    outcome: OK or ALREADY_HAS_TICKET
    held_event_ids: events (among those checked) the purchaser already holds
    """

    outcome: GuardOutcome
    held_event_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def ok(self) -> bool:
        return self.outcome is GuardOutcome.OK


_OK = GuardResult(outcome=GuardOutcome.OK)


class TicketIssuanceGuard:
    def __init__(self, ledger: TicketLedger) -> None:
        self._ledger = ledger

    def ensure_no_active_ticket(self, event_id: str, identity: PurchaserIdentity) -> GuardResult:
        """
        Check a single event.

        ALREADY_HAS_TICKET is a normal outcome, not an exception. Store errors
        propagate to the caller.
        """

        if not self._ledger.has_active_ticket(event_id, identity):
            return _OK

        logger.warning(
            "Guard rejected purchase: active ticket exists",
            extra={"event_id": event_id, "identity_kind": identity.kind},
        )
        return GuardResult(
            outcome=GuardOutcome.ALREADY_HAS_TICKET,
            held_event_ids=frozenset({event_id}),
        )

    def ensure_no_active_tickets(
        self, event_ids: Iterable[str], identity: PurchaserIdentity
    ) -> GuardResult:
        """Check several events at once (cart checkout)."""

        held = self._ledger.events_with_active_tickets(event_ids, identity)
        if not held:
            return _OK

        logger.warning(
            "Guard rejected cart purchase: active tickets exist",
            extra={"event_ids": sorted(held), "identity_kind": identity.kind},
        )
        return GuardResult(outcome=GuardOutcome.ALREADY_HAS_TICKET, held_event_ids=frozenset(held))


__all__ = ["GuardOutcome", "GuardResult", "TicketIssuanceGuard"]
