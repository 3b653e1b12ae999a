"""
Tests for `config/settings.py`.
"""

from __future__ import annotations

import pytest

from config.settings import Settings


def test_defaults_from_empty_env() -> None:
    settings = Settings.from_env({})

    assert settings.supabase_url is None
    assert settings.checkout_function_url is None
    assert settings.checkout_timeout_seconds == 10.0
    assert settings.notification_lead_minutes == 15
    assert settings.notification_window_minutes == 1
    assert settings.status_reconcile_interval_seconds == 30.0
    assert settings.notification_fanout_interval_seconds == 60.0
    assert settings.log_level == "INFO"


def test_checkout_url_derived_from_supabase_url() -> None:
    settings = Settings.from_env({"SUPABASE_URL": "https://abc.supabase.co/", "SUPABASE_KEY": "k"})

    assert settings.checkout_function_url == "https://abc.supabase.co/functions/v1/create-checkout-session"


def test_explicit_values() -> None:
    settings = Settings.from_env(
        {
            "SUPABASE_URL": "https://abc.supabase.co",
            "CHECKOUT_FUNCTION_URL": "https://pay.example/checkout",
            "CHECKOUT_TIMEOUT_SECONDS": "2.5",
            "STRIPE_PUBLISHABLE_KEY": " pk_test_1 ",
            "NOTIFICATION_WINDOW_MINUTES": "5",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.checkout_function_url == "https://pay.example/checkout"
    assert settings.checkout_timeout_seconds == 2.5
    assert settings.stripe_publishable_key == "pk_test_1"
    assert settings.notification_window_minutes == 5
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"CHECKOUT_TIMEOUT_SECONDS": "0"},
        {"CHECKOUT_TIMEOUT_SECONDS": "soon"},
        {"NOTIFICATION_LEAD_MINUTES": "-15"},
        {"NOTIFICATION_WINDOW_MINUTES": "1.5"},
    ],
)
def test_invalid_numbers_are_rejected(env) -> None:
    with pytest.raises(ValueError):
        Settings.from_env(env)


def test_blank_values_are_unset() -> None:
    settings = Settings.from_env({"STRIPE_WEBHOOK_SECRET": "   ", "NOTIFICATION_LEAD_MINUTES": ""})

    assert settings.stripe_webhook_secret is None
    assert settings.notification_lead_minutes == 15
