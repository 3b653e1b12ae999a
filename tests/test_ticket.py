"""
Tests for `domain/ticket.py` and `domain/notification.py`.

Covers contract rules:
- A purchaser identity has exactly one component; emails are normalized.
- The authenticated user id is preferred when both are known.
- Tickets move ACTIVE -> USED / REFUNDED and never back.
- The "starting soon" notification text.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from domain.notification import NotificationType, event_starting_notification
from domain.ticket import PurchaserIdentity, Ticket, TicketStatus, normalize_email


def test_normalize_email() -> None:
    assert normalize_email("  Fan@Example.COM ") == "fan@example.com"


def test_identity_requires_exactly_one_component() -> None:
    with pytest.raises(ValueError):
        PurchaserIdentity()

    with pytest.raises(ValueError):
        PurchaserIdentity(user_id="u1", email="fan@example.com")

    with pytest.raises(ValueError):
        PurchaserIdentity(email="Fan@Example.com")


def test_identity_for_email_normalizes() -> None:
    identity = PurchaserIdentity.for_email(" Fan@Example.com")

    assert identity.email == "fan@example.com"
    assert identity.user_id is None
    assert identity.kind == "email"
    assert not identity.is_authenticated


@pytest.mark.parametrize(
    "user_id, email, expected",
    [
        ("u1", "fan@example.com", PurchaserIdentity(user_id="u1")),
        (None, "Fan@Example.com", PurchaserIdentity(email="fan@example.com")),
        ("   ", "fan@example.com", PurchaserIdentity(email="fan@example.com")),
        (None, None, None),
        ("", "  ", None),
    ],
)
def test_identity_from_parts_prefers_user_id(
    user_id: str | None, email: str | None, expected: PurchaserIdentity | None
) -> None:
    assert PurchaserIdentity.from_parts(user_id, email) == expected


def _ticket(status: TicketStatus = TicketStatus.ACTIVE) -> Ticket:
    return Ticket(
        ticket_id="t1",
        event_id="e1",
        purchaser=PurchaserIdentity.for_user("u1"),
        status=status,
        purchase_date=datetime(2025, 5, 1, tzinfo=timezone.utc),
    )


@pytest.mark.parametrize("target", [TicketStatus.USED, TicketStatus.REFUNDED])
def test_active_ticket_can_be_used_or_refunded(target: TicketStatus) -> None:
    moved = _ticket().transition_to(target)

    assert moved.status is target
    assert not moved.is_active


@pytest.mark.parametrize(
    "start, target",
    [
        (TicketStatus.USED, TicketStatus.ACTIVE),
        (TicketStatus.REFUNDED, TicketStatus.ACTIVE),
        (TicketStatus.USED, TicketStatus.REFUNDED),
        (TicketStatus.ACTIVE, TicketStatus.ACTIVE),
    ],
)
def test_forbidden_ticket_transitions(start: TicketStatus, target: TicketStatus) -> None:
    with pytest.raises(ValueError):
        _ticket(start).transition_to(target)


def test_ticket_purchase_date_must_be_utc() -> None:
    with pytest.raises(ValueError):
        Ticket(
            ticket_id="t1",
            event_id="e1",
            purchaser=PurchaserIdentity.for_user("u1"),
            status=TicketStatus.ACTIVE,
            purchase_date=datetime(2025, 5, 1),
        )


def test_event_starting_notification_text() -> None:
    notification = event_starting_notification("e1", "u1", "Midnight Set", 15)

    assert notification.type is NotificationType.EVENT_STARTING
    assert notification.title == "Event Starting Soon!"
    assert notification.message == "Midnight Set starts in 15 minutes. Get ready!"
    assert notification.to_row() == {
        "event_id": "e1",
        "user_id": "u1",
        "type": "event_starting",
        "title": "Event Starting Soon!",
        "message": "Midnight Set starts in 15 minutes. Get ready!",
        "read": False,
        "sent": True,
    }
