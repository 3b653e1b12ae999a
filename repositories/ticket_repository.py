"""
Ticket ledger (persistence).

Read/write boundary over the `tickets` table. Lookups are split by identity
kind: an authenticated purchaser is matched by exact user_id, a guest by a
case-insensitive match on email. A single call never mixes the two.

`create_ticket` does not re-check the one-active-ticket rule; callers run the
guard first. The authoritative check is the partial unique index declared in
sql/ticketing_constraints.sql, whose violation surfaces here as
DuplicateActiveTicketError. No retries at this layer.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Set
from uuid import uuid4

from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.ticket import DuplicateActiveTicketError, PurchaserIdentity, Ticket, TicketStatus
from repositories.rows import is_unique_violation, response_rows, to_iso_utc

logger = logging.getLogger(__name__)

# Supabase table name for tickets.
# Keep this aligned with your database schema.
_TICKETS_TABLE: str = "tickets"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so an email is matched literally."""

    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TicketLedger:
    """Supabase-backed access to the `tickets` table."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def _active_query(self, columns: str, identity: PurchaserIdentity):
        query = (
            self._client.table(_TICKETS_TABLE)
            .select(columns)
            .eq("status", TicketStatus.ACTIVE.value)
        )
        if identity.is_authenticated:
            return query.eq("user_id", identity.user_id)
        return query.ilike("email", escape_like(identity.email or ""))

    def has_active_ticket(self, event_id: str, identity: PurchaserIdentity) -> bool:
        """
        Check whether `identity` holds an ACTIVE ticket for `event_id`.

        Raises:
            RuntimeError / APIError: Store failures propagate unchanged.
        """

        response = self._active_query("id", identity).eq("event_id", event_id).limit(1).execute()
        rows = response_rows(response, action="check active ticket")
        return bool(rows)

    def events_with_active_tickets(
        self, event_ids: Iterable[str], identity: PurchaserIdentity
    ) -> Set[str]:
        """
        Return the subset of `event_ids` for which `identity` holds an ACTIVE ticket.
        """

        wanted = list(dict.fromkeys(event_ids))
        if not wanted:
            return set()

        response = self._active_query("event_id", identity).in_("event_id", wanted).execute()
        rows = response_rows(response, action="check active tickets")
        return {str(row["event_id"]) for row in rows}

    def active_holder_ids(self, event_id: str) -> List[str]:
        """
        Distinct user ids holding an ACTIVE ticket for an event, in first-seen order.

        Only the user_id column is read, so guest rows and rows with unrelated
        bad data cannot fail the lookup.
        """

        response = (
            self._client.table(_TICKETS_TABLE)
            .select("user_id")
            .eq("event_id", event_id)
            .eq("status", TicketStatus.ACTIVE.value)
            .execute()
        )
        rows = response_rows(response, action="list ticket holders")
        user_ids = [str(row["user_id"]) for row in rows if row.get("user_id")]
        return list(dict.fromkeys(user_ids))

    def create_ticket(
        self,
        event_id: str,
        identity: PurchaserIdentity,
        price: Optional[Decimal],
        *,
        purchased_at: datetime,
        gateway_session_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> Ticket:
        """
        Insert a new ACTIVE ticket.

        Args:
            event_id: Event the ticket admits to
            identity: Purchaser the ticket belongs to
            price: Amount paid (None when the gateway did not report it)
            purchased_at: UTC timestamp of the confirmed payment
            gateway_session_id: Checkout session that paid for the ticket
            gateway_payment_id: Payment reference from the gateway

        Returns:
            The created Ticket

        Raises:
            DuplicateActiveTicketError: If the store's unique index rejects the
                insert because an ACTIVE ticket already exists.
        """

        ticket_id = str(uuid4())
        payload: dict[str, Any] = {
            "id": ticket_id,
            "event_id": event_id,
            "user_id": identity.user_id,
            "email": identity.email,
            "status": TicketStatus.ACTIVE.value,
            "purchase_date": to_iso_utc(purchased_at, name="purchased_at"),
            "price": str(price) if price is not None else None,
            "stripe_session_id": gateway_session_id,
            "stripe_payment_id": gateway_payment_id,
        }

        try:
            response = self._client.table(_TICKETS_TABLE).insert(payload).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise DuplicateActiveTicketError(event_id, identity) from e
            raise

        response_rows(response, action="create ticket")

        logger.info(
            "Ticket created",
            extra={"ticket_id": ticket_id, "event_id": event_id, "identity_kind": identity.kind},
        )

        return Ticket(
            ticket_id=ticket_id,
            event_id=event_id,
            purchaser=identity,
            status=TicketStatus.ACTIVE,
            purchase_date=purchased_at,
            price=price,
            gateway_session_id=gateway_session_id,
            gateway_payment_id=gateway_payment_id,
        )


__all__ = ["TicketLedger", "escape_like"]
