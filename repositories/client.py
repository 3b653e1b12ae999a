"""
Supabase client initialization.

This module contains *only* the database connection setup. Repositories take a
`Client` in their constructor; production wiring gets it from `get_supabase()`.

The client is created on first use rather than at import so that modules can be
imported (and tested) without credentials.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import threading
from typing import Optional

from supabase import Client, create_client  # type: ignore[import-not-found]

from config.settings import Settings

_client: Optional[Client] = None
_lock = threading.Lock()


def create_supabase_client(settings: Settings) -> Client:
    """Create a new client from settings, failing loudly on missing credentials."""

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(settings.supabase_url, settings.supabase_key)


def get_supabase(settings: Optional[Settings] = None) -> Client:
    """Process-wide client, created once."""

    global _client
    with _lock:
        if _client is None:
            _client = create_supabase_client(settings or Settings.from_env())
        return _client


__all__ = ["create_supabase_client", "get_supabase"]
