"""
Domain: Cart reservations.

A cart reservation is client-session state only. It keeps the UI from
offering "add to cart" twice for the same event; it carries no authority.
The durable one-active-ticket rule is checked again at checkout.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class CartReservation:
    event_id: str
    price: Decimal
    added_at: datetime
    event_title: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("added_at", self.added_at)
        if self.price < 0:
            raise ValueError("price must be non-negative")
