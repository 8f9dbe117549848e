"""
Tests for provider selection and the process-wide provider registry.
"""

import logging

import pytest

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.providers import config as provider_config
from app.providers.config import (
    build_payment_provider,
    build_providers,
    get_config,
    initialize_config,
    reset_config,
)
from app.providers.mongo_database import MongoDatabaseProvider
from app.providers.payment import MockPaymentProvider
from app.providers.stripe_payment import StripePaymentProvider
from app.providers.supabase_auth import SupabaseAuthProvider


def _settings(**overrides):
    values = {
        "SUPABASE_URL": "https://project.supabase.co",
        "SUPABASE_ANON_KEY": "anon",
        "STRIPE_SECRET_KEY": None,
        "STRIPE_WEBHOOK_SECRET": None,
        "PAYMENT_PROVIDER": "auto",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def clean_registry():
    reset_config()
    yield
    reset_config()


# ---------------------------------------------------------------------------
# Payment provider selection
# ---------------------------------------------------------------------------

class TestPaymentProviderSelection:
    def test_auto_with_credentials_uses_stripe(self):
        provider = build_payment_provider(_settings(
            STRIPE_SECRET_KEY="sk_test_real", STRIPE_WEBHOOK_SECRET="whsec_1"
        ))
        assert isinstance(provider, StripePaymentProvider)

    def test_auto_with_placeholder_key_uses_mock(self, caplog):
        with caplog.at_level(logging.WARNING):
            provider = build_payment_provider(_settings(
                STRIPE_SECRET_KEY="sk_test_mock_key", STRIPE_WEBHOOK_SECRET="whsec_1"
            ))

        assert isinstance(provider, MockPaymentProvider)
        assert "placeholder" in caplog.text

    def test_auto_without_webhook_secret_uses_mock(self):
        provider = build_payment_provider(_settings(STRIPE_SECRET_KEY="sk_test_real"))
        assert isinstance(provider, MockPaymentProvider)

    def test_forced_mock(self):
        provider = build_payment_provider(_settings(
            PAYMENT_PROVIDER="mock", STRIPE_SECRET_KEY="sk_test_real", STRIPE_WEBHOOK_SECRET="whsec_1"
        ))
        assert isinstance(provider, MockPaymentProvider)

    def test_forced_stripe_without_credentials_fails(self):
        with pytest.raises(ConfigurationError, match="STRIPE_SECRET_KEY"):
            build_payment_provider(_settings(PAYMENT_PROVIDER="stripe"))

    def test_unknown_choice_fails(self):
        with pytest.raises(ConfigurationError):
            build_payment_provider(_settings(PAYMENT_PROVIDER="paypal"))


# ---------------------------------------------------------------------------
# Provider bundles
# ---------------------------------------------------------------------------

class TestProviders:
    def test_defaults(self):
        providers = build_providers(_settings())

        assert isinstance(providers.database, MongoDatabaseProvider)
        assert isinstance(providers.auth, SupabaseAuthProvider)
        assert isinstance(providers.payment, MockPaymentProvider)
        assert providers.auth.database is providers.database

    def test_explicit_providers_win(self, db, auth):
        providers = build_providers(_settings(), database=db, auth=auth)

        assert providers.database is db
        assert providers.auth is auth

    def test_registry_is_a_single_instance(self, db, auth, monkeypatch):
        monkeypatch.setattr(provider_config, "get_settings", _settings)

        first = get_config()
        assert get_config() is first

        reset_config()
        assert get_config() is not first

    def test_initialize_replaces_registry(self, db, auth):
        providers = initialize_config(database=db, auth=auth, settings=_settings())

        assert get_config() is providers
        assert get_config().database is db
