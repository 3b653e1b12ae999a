"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
domain, repositories, services and api, and provides an in-memory Supabase
stand-in (see tests/fake_supabase.py) with the ticketing constraints applied.
"""

import hashlib
import hmac
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from fake_supabase import FakeDatabase, FakeSupabase, with_ticketing_constraints  # noqa: E402


class ManualClock:
    """Clock pinned by the test; advance it explicitly."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db() -> FakeDatabase:
    return with_ticketing_constraints(FakeDatabase())


@pytest.fixture
def client(db: FakeDatabase) -> FakeSupabase:
    return FakeSupabase(db)


@pytest.fixture
def noon() -> datetime:
    return datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(noon: datetime) -> ManualClock:
    return ManualClock(noon)


def event_row(
    event_id: str,
    start_time: datetime,
    *,
    duration: int = 60,
    status: str = "scheduled",
    price: str = "10.00",
    title: str | None = None,
) -> dict:
    return {
        "id": event_id,
        "title": title,
        "start_time": start_time.isoformat(),
        "duration": duration,
        "price": price,
        "status": status,
    }


def ticket_row(
    event_id: str,
    *,
    user_id: str | None = None,
    email: str | None = None,
    status: str = "active",
    ticket_id: str | None = None,
) -> dict:
    return {
        "id": ticket_id or f"t-{event_id}-{user_id or email}-{status}",
        "event_id": event_id,
        "user_id": user_id,
        "email": email,
        "status": status,
        "purchase_date": "2025-05-01T10:00:00+00:00",
        "price": "10.00",
        "stripe_session_id": None,
        "stripe_payment_id": None,
    }


WEBHOOK_SECRET = "whsec_test_secret"


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a `Stripe-Signature` header value (t=<ts>,v1=<hmac-sha256>)."""

    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def checkout_completed_event(**session_overrides: Any) -> Dict[str, Any]:
    session = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "mode": "payment",
        "payment_status": "paid",
        "customer_email": None,
        "customer_details": {"email": "Fan@Example.com"},
        "payment_intent": "pi_1",
        "metadata": {"eventId": "e1", "userId": ""},
    }
    session.update(session_overrides)
    return {
        "id": "evt_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": session},
    }
