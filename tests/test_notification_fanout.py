"""
Tests for `services/notification_fanout_service.py`.

Covers contract rules:
- Only SCHEDULED events starting in [now + 15min, now + 16min) are processed.
- One EVENT_STARTING notification per distinct authenticated holder.
- Running twice in the same window sends nothing the second time.
- An insert conflict on the unique constraint counts as "already notified".
- A failure on one event or one ticket row does not stop the others.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from postgrest.exceptions import APIError

from conftest import event_row, ticket_row
from repositories.event_repository import EventRepository
from repositories.notification_repository import NotificationRepository
from repositories.ticket_repository import TicketLedger
from services.notification_fanout_service import NotificationFanoutService


def _service(client, clock, **kwargs) -> NotificationFanoutService:
    return NotificationFanoutService(
        EventRepository(client),
        TicketLedger(client),
        NotificationRepository(client),
        clock=clock,
        **kwargs,
    )


def test_notifies_each_holder_once_across_runs(db, client, clock) -> None:
    """e2 starts in 15.5 minutes; first run notifies every holder, second run nothing."""

    db.seed("events", event_row("e2", clock.now + timedelta(minutes=15, seconds=30), title="Late Show"))
    db.seed(
        "tickets",
        ticket_row("e2", user_id="u1"),
        ticket_row("e2", user_id="u2"),
        ticket_row("e2", user_id="u3"),
    )
    service = _service(client, clock)

    first = service.run()
    second = service.run()

    assert (first.events_processed, first.notifications_sent) == (1, 3)
    assert (second.events_processed, second.notifications_sent) == (1, 0)

    rows = db.rows("notifications")
    assert sorted(r["user_id"] for r in rows) == ["u1", "u2", "u3"]
    assert all(r["message"] == "Late Show starts in 15 minutes. Get ready!" for r in rows)
    assert all(r["type"] == "event_starting" and r["read"] is False for r in rows)


@pytest.mark.parametrize(
    "offset, included",
    [
        (timedelta(minutes=14, seconds=59), False),
        (timedelta(minutes=15), True),
        (timedelta(minutes=15, seconds=59), True),
        (timedelta(minutes=16), False),
        (timedelta(minutes=30), False),
    ],
)
def test_window_is_half_open(db, client, clock, offset: timedelta, included: bool) -> None:
    db.seed("events", event_row("e1", clock.now + offset))
    db.seed("tickets", ticket_row("e1", user_id="u1"))

    result = _service(client, clock).run()

    assert result.events_processed == (1 if included else 0)
    assert result.notifications_sent == (1 if included else 0)


def test_only_scheduled_events_are_considered(db, client, clock) -> None:
    db.seed("events", event_row("e1", clock.now + timedelta(minutes=15, seconds=10), status="live"))
    db.seed("tickets", ticket_row("e1", user_id="u1"))

    assert _service(client, clock).run().events_processed == 0


def test_duplicate_holders_and_guests(db, client, clock) -> None:
    """Holders are deduplicated; email-only tickets get no in-app notification."""

    db.seed("events", event_row("e1", clock.now + timedelta(minutes=15, seconds=5)))
    db.seed(
        "tickets",
        ticket_row("e1", user_id="u1", ticket_id="t1"),
        ticket_row("e1", user_id="u1", ticket_id="t2"),
        ticket_row("e1", email="guest@example.com"),
        ticket_row("e1", user_id="u2", status="refunded"),
    )

    result = _service(client, clock).run()

    assert result.notifications_sent == 1
    assert [r["user_id"] for r in db.rows("notifications")] == ["u1"]


def test_malformed_ticket_row_does_not_block_other_holders(db, client, clock) -> None:
    db.seed("events", event_row("e2", clock.now + timedelta(minutes=15, seconds=30)))
    db.seed(
        "tickets",
        ticket_row("e2", user_id="u1"),
        ticket_row("e2", user_id="u2"),
        {**ticket_row("e2", ticket_id="t-orphan"), "purchase_date": "not-a-date"},
    )

    result = _service(client, clock).run()

    assert result.notifications_sent == 2
    assert result.failures == 0
    assert sorted(r["user_id"] for r in db.rows("notifications")) == ["u1", "u2"]


def test_insert_conflict_counts_as_already_notified(db, client, clock) -> None:
    """A concurrent run wrote the row between the existence check and the insert."""

    db.seed("events", event_row("e1", clock.now + timedelta(minutes=15, seconds=5)))
    db.seed("tickets", ticket_row("e1", user_id="u1"))
    db.fail_when(
        "notifications",
        "insert",
        APIError({"message": "duplicate key value", "code": "23505"}),
    )

    result = _service(client, clock).run()

    assert result.notifications_sent == 0
    assert result.failures == 0


def test_failure_on_one_event_does_not_stop_others(db, client, clock) -> None:
    db.seed(
        "events",
        event_row("bad", clock.now + timedelta(minutes=15, seconds=5)),
        event_row("good", clock.now + timedelta(minutes=15, seconds=10)),
    )
    db.seed(
        "tickets",
        ticket_row("bad", user_id="u1"),
        ticket_row("good", user_id="u1"),
    )
    db.fail_when(
        "tickets",
        "select",
        RuntimeError("store timeout"),
        where=lambda q: q.filter_value("event_id") == "bad",
    )

    result = _service(client, clock).run()

    assert result.events_processed == 2
    assert result.notifications_sent == 1
    assert result.failures == 1
    assert [r["event_id"] for r in db.rows("notifications")] == ["good"]


def test_invalid_event_row_does_not_stop_others(db, client, clock) -> None:
    db.seed(
        "events",
        event_row("bad", clock.now + timedelta(minutes=15, seconds=5), duration=0),
        event_row("good", clock.now + timedelta(minutes=15, seconds=10)),
    )
    db.seed("tickets", ticket_row("bad", user_id="u1"), ticket_row("good", user_id="u1"))

    result = _service(client, clock).run()

    assert result.events_processed == 1
    assert [r["event_id"] for r in db.rows("notifications")] == ["good"]


def test_notification_write_failure_is_isolated(db, client, clock) -> None:
    db.seed("events", event_row("e1", clock.now + timedelta(minutes=15, seconds=5)))
    db.seed("tickets", ticket_row("e1", user_id="u1"), ticket_row("e1", user_id="u2"))
    db.fail_when(
        "notifications",
        "select",
        RuntimeError("store timeout"),
        where=lambda q: q.filter_value("user_id") == "u1",
    )

    result = _service(client, clock).run()

    assert result.notifications_sent == 1
    assert result.failures == 1


def test_listing_failure_propagates(db, client, clock) -> None:
    db.fail_when("events", "select", RuntimeError("store unavailable"))

    with pytest.raises(RuntimeError):
        _service(client, clock).run()


def test_configurable_lead_and_window(db, client, clock) -> None:
    db.seed("events", event_row("e1", clock.now + timedelta(minutes=31)))
    db.seed("tickets", ticket_row("e1", user_id="u1"))

    result = _service(client, clock, lead_minutes=30, window_minutes=5).run()

    assert result.notifications_sent == 1
    assert db.rows("notifications")[0]["message"].endswith("starts in 30 minutes. Get ready!")


@pytest.mark.parametrize("kwargs", [{"lead_minutes": 0}, {"window_minutes": -1}])
def test_rejects_non_positive_window(client, clock, kwargs) -> None:
    with pytest.raises(ValueError):
        _service(client, clock, **kwargs)
