"""
Runtime settings.

All tunables come from environment variables. A `.env` file in the project
root is loaded first so local runs behave like deployed ones.

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: store access (server-side key only)
- CHECKOUT_FUNCTION_URL: payment-gateway checkout endpoint
- CHECKOUT_TIMEOUT_SECONDS: bound on a single gateway call
- STRIPE_PUBLISHABLE_KEY: client key needed to redirect with a bare session id
- STRIPE_WEBHOOK_SECRET: signature secret for payment confirmations
- NOTIFICATION_LEAD_MINUTES / NOTIFICATION_WINDOW_MINUTES: "starting soon" window
- STATUS_RECONCILE_INTERVAL_SECONDS / NOTIFICATION_FANOUT_INTERVAL_SECONDS
- LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).parent.parent / ".env"


def _optional(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _optional(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _optional(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    checkout_function_url: Optional[str] = None
    checkout_timeout_seconds: float = 10.0
    stripe_publishable_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    notification_lead_minutes: int = 15
    notification_window_minutes: int = 1
    status_reconcile_interval_seconds: float = 30.0
    notification_fanout_interval_seconds: float = 60.0
    log_level: str = "INFO"

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from `env` (defaults to os.environ after loading .env).

        Raises:
            ValueError: If a numeric setting is malformed or not positive.
        """

        if env is None:
            load_dotenv(dotenv_path=_ENV_PATH)
            env = os.environ

        supabase_url = _optional(env, "SUPABASE_URL")
        checkout_url = _optional(env, "CHECKOUT_FUNCTION_URL")
        if checkout_url is None and supabase_url is not None:
            checkout_url = f"{supabase_url.rstrip('/')}/functions/v1/create-checkout-session"

        return Settings(
            supabase_url=supabase_url,
            supabase_key=_optional(env, "SUPABASE_KEY"),
            checkout_function_url=checkout_url,
            checkout_timeout_seconds=_positive_float(env, "CHECKOUT_TIMEOUT_SECONDS", 10.0),
            stripe_publishable_key=_optional(env, "STRIPE_PUBLISHABLE_KEY"),
            stripe_webhook_secret=_optional(env, "STRIPE_WEBHOOK_SECRET"),
            notification_lead_minutes=_positive_int(env, "NOTIFICATION_LEAD_MINUTES", 15),
            notification_window_minutes=_positive_int(env, "NOTIFICATION_WINDOW_MINUTES", 1),
            status_reconcile_interval_seconds=_positive_float(
                env, "STATUS_RECONCILE_INTERVAL_SECONDS", 30.0
            ),
            notification_fanout_interval_seconds=_positive_float(
                env, "NOTIFICATION_FANOUT_INTERVAL_SECONDS", 60.0
            ),
            log_level=(_optional(env, "LOG_LEVEL") or "INFO").upper(),
        )


__all__ = ["Settings"]
