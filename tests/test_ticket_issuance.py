"""
Tests for `services/ticket_issuance_service.py`.

Covers:
- Webhook signature verification (stripe's `t=...,v1=...` scheme).
- Extraction of what was bought, and by whom, from checkout.session.completed.
- One ACTIVE ticket per event; events already held are skipped, not re-issued.
"""

from __future__ import annotations

import json
import time
from decimal import Decimal

import pytest

from conftest import (
    WEBHOOK_SECRET,
    checkout_completed_event,
    event_row,
    stripe_signature,
    ticket_row,
)
from domain.ticket import PurchaserIdentity
from repositories.event_repository import EventRepository
from repositories.ticket_repository import TicketLedger
from services.ticket_issuance_service import (
    PaymentConfirmation,
    TicketIssuanceService,
    WebhookVerificationError,
    parse_payment_confirmation,
    verify_webhook,
)


# ---------------------------------------------------------------------------
# verify_webhook
# ---------------------------------------------------------------------------

def test_verify_webhook_accepts_valid_signature() -> None:
    payload = json.dumps(checkout_completed_event()).encode("utf-8")

    event = verify_webhook(payload, stripe_signature(payload), WEBHOOK_SECRET)

    assert event["type"] == "checkout.session.completed"
    assert event["data"]["object"]["id"] == "cs_test_1"


def test_verify_webhook_rejects_wrong_secret() -> None:
    payload = json.dumps(checkout_completed_event()).encode("utf-8")

    with pytest.raises(WebhookVerificationError):
        verify_webhook(payload, stripe_signature(payload, secret="whsec_other"), WEBHOOK_SECRET)


def test_verify_webhook_rejects_stale_timestamp() -> None:
    payload = json.dumps(checkout_completed_event()).encode("utf-8")

    with pytest.raises(WebhookVerificationError):
        verify_webhook(payload, stripe_signature(payload, timestamp=int(time.time()) - 3600), WEBHOOK_SECRET)


@pytest.mark.parametrize("signature", [None, ""])
def test_verify_webhook_requires_signature(signature) -> None:
    with pytest.raises(WebhookVerificationError):
        verify_webhook(b"{}", signature, WEBHOOK_SECRET)


# ---------------------------------------------------------------------------
# parse_payment_confirmation
# ---------------------------------------------------------------------------

def test_parse_single_event_guest() -> None:
    confirmation = parse_payment_confirmation(checkout_completed_event())

    assert confirmation == PaymentConfirmation(
        session_id="cs_test_1",
        event_ids=["e1"],
        user_id=None,
        email="Fan@Example.com",
        payment_id="pi_1",
    )
    assert confirmation.identity == PurchaserIdentity.for_email("fan@example.com")


def test_parse_cart_with_user() -> None:
    confirmation = parse_payment_confirmation(
        checkout_completed_event(
            metadata={"eventIds": "e1, e2,,e1", "userId": "u1", "isCart": "true"},
            customer_email="fan@example.com",
            payment_intent={"id": "pi_2"},
        )
    )

    assert confirmation is not None
    assert confirmation.event_ids == ["e1", "e2"]
    assert confirmation.identity == PurchaserIdentity.for_user("u1")
    assert confirmation.payment_id == "pi_2"


@pytest.mark.parametrize(
    "event",
    [
        {**checkout_completed_event(), "type": "payment_intent.succeeded"},
        checkout_completed_event(payment_status="unpaid"),
        checkout_completed_event(mode="subscription"),
        checkout_completed_event(metadata={}),
    ],
)
def test_parse_ignores_irrelevant_events(event) -> None:
    assert parse_payment_confirmation(event) is None


# ---------------------------------------------------------------------------
# TicketIssuanceService
# ---------------------------------------------------------------------------

def _confirmation(event_ids, user_id=None, email=None) -> PaymentConfirmation:
    return PaymentConfirmation(
        session_id="cs_test_1", event_ids=list(event_ids), user_id=user_id, email=email, payment_id="pi_1"
    )


def test_issue_creates_one_ticket_per_event(db, client, clock) -> None:
    db.seed(
        "events",
        event_row("e1", clock.now, price="12.50"),
        event_row("e2", clock.now, price="20.00"),
    )
    service = TicketIssuanceService(TicketLedger(client), EventRepository(client), clock=clock)

    result = service.issue(_confirmation(["e1", "e2"], user_id="u1"))

    assert [t.event_id for t in result.created] == ["e1", "e2"]
    assert [t.price for t in result.created] == [Decimal("12.50"), Decimal("20.00")]
    assert all(t.purchase_date == clock.now for t in result.created)
    assert result.skipped_event_ids == []
    assert {r["stripe_payment_id"] for r in db.rows("tickets")} == {"pi_1"}


def test_issue_skips_events_already_held(db, client, clock) -> None:
    db.seed("tickets", ticket_row("e1", email="fan@example.com"))
    service = TicketIssuanceService(TicketLedger(client), EventRepository(client), clock=clock)

    result = service.issue(_confirmation(["e1", "e2"], email="FAN@example.com"))

    assert [t.event_id for t in result.created] == ["e2"]
    assert result.skipped_event_ids == ["e1"]
    assert len([r for r in db.rows("tickets") if r["event_id"] == "e1"]) == 1


def test_issue_treats_unique_violation_as_skip(db, client, clock, monkeypatch) -> None:
    """The pre-check missed a concurrent issue; the store's index catches it."""

    ledger = TicketLedger(client)
    service = TicketIssuanceService(ledger, EventRepository(client), clock=clock)
    service.issue(_confirmation(["e1"], user_id="u1"))

    monkeypatch.setattr(ledger, "events_with_active_tickets", lambda ids, identity: set())
    result = service.issue(_confirmation(["e1"], user_id="u1"))

    assert result.created == []
    assert result.skipped_event_ids == ["e1"]


def test_issue_without_identity_fails_all(client, clock) -> None:
    service = TicketIssuanceService(TicketLedger(client), EventRepository(client), clock=clock)

    result = service.issue(_confirmation(["e1", "e2"]))

    assert result.failed_event_ids == ["e1", "e2"]
    assert result.created == []


def test_issue_isolates_insert_failures(db, client, clock) -> None:
    db.fail_when(
        "tickets",
        "insert",
        RuntimeError("write timeout"),
        where=lambda q: q.payload["event_id"] == "e1",
    )
    service = TicketIssuanceService(TicketLedger(client), EventRepository(client), clock=clock)

    result = service.issue(_confirmation(["e1", "e2"], user_id="u1"))

    assert result.failed_event_ids == ["e1"]
    assert [t.event_id for t in result.created] == ["e2"]


def test_issue_without_prices_still_creates_tickets(db, client, clock) -> None:
    db.fail_when("events", "select", RuntimeError("events unavailable"))
    service = TicketIssuanceService(TicketLedger(client), EventRepository(client), clock=clock)

    result = service.issue(_confirmation(["e1"], user_id="u1"))

    assert result.created[0].price is None
