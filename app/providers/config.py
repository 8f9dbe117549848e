"""
Provider configuration.

`build_providers` assembles a database/auth/payment bundle from settings.
The app builds one at startup and hands it to request handlers through
`Depends(get_providers)`. `initialize_config`/`get_config`/`reset_config`
keep a process-wide default bundle for scripts and tests.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings, get_settings
from app.core.constants import MOCK_STRIPE_KEY
from app.core.exceptions import ConfigurationError
from app.db.mongo import MongoDB
from app.providers.auth import AuthProvider
from app.providers.database import DatabaseProvider
from app.providers.mongo_database import MongoDatabaseProvider
from app.providers.payment import MockPaymentProvider, PaymentProvider
from app.providers.stripe_payment import StripePaymentProvider
from app.providers.supabase_auth import SupabaseAuthProvider

logger = logging.getLogger(__name__)


@dataclass
class Providers:
    database: DatabaseProvider
    auth: AuthProvider
    payment: PaymentProvider


def _missing_stripe_credentials(settings: Settings) -> Optional[str]:
    if not settings.STRIPE_SECRET_KEY:
        return "STRIPE_SECRET_KEY is not set"
    if not settings.STRIPE_WEBHOOK_SECRET:
        return "STRIPE_WEBHOOK_SECRET is not set"
    if settings.STRIPE_SECRET_KEY == MOCK_STRIPE_KEY:
        return "STRIPE_SECRET_KEY is the placeholder key"
    return None


def build_payment_provider(settings: Settings) -> PaymentProvider:
    """Select the payment provider named by PAYMENT_PROVIDER and log the choice."""
    choice = settings.PAYMENT_PROVIDER.lower()
    if choice not in ("auto", "stripe", "mock"):
        raise ConfigurationError(f"Unknown PAYMENT_PROVIDER '{settings.PAYMENT_PROVIDER}'")

    if choice == "mock":
        logger.warning("Payment provider: mock (PAYMENT_PROVIDER=mock). No payments will be processed.")
        return MockPaymentProvider()

    missing = _missing_stripe_credentials(settings)
    if missing is None:
        logger.info("Payment provider: stripe")
        return StripePaymentProvider(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)

    if choice == "stripe":
        raise ConfigurationError(f"PAYMENT_PROVIDER=stripe but {missing}")

    logger.warning(f"Payment provider: mock ({missing}). No payments will be processed.")
    return MockPaymentProvider()


def build_providers(
    settings: Optional[Settings] = None,
    database: Optional[DatabaseProvider] = None,
    auth: Optional[AuthProvider] = None,
    payment: Optional[PaymentProvider] = None,
) -> Providers:
    """Build a provider bundle. Explicit providers replace the defaults."""
    settings = settings or get_settings()

    if database is None:
        database = MongoDatabaseProvider(MongoDB(settings.MONGO_URI, settings.MONGO_DB_NAME))
    if auth is None:
        if not settings.SUPABASE_URL:
            logger.warning("SUPABASE_URL is not set; authentication calls will fail.")
        auth = SupabaseAuthProvider(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            database,
            timeout=settings.AUTH_TIMEOUT_SECONDS,
        )
    if payment is None:
        payment = build_payment_provider(settings)

    return Providers(database=database, auth=auth, payment=payment)


_app_config: Optional[Providers] = None


def initialize_config(
    database: Optional[DatabaseProvider] = None,
    auth: Optional[AuthProvider] = None,
    payment: Optional[PaymentProvider] = None,
    settings: Optional[Settings] = None,
) -> Providers:
    """Build the process-wide provider bundle, replacing any existing one."""
    global _app_config
    _app_config = build_providers(settings=settings, database=database, auth=auth, payment=payment)
    return _app_config


def get_config() -> Providers:
    """Return the process-wide provider bundle, building it on first use."""
    if _app_config is None:
        return initialize_config()
    return _app_config


def reset_config() -> None:
    """Forget the process-wide provider bundle."""
    global _app_config
    _app_config = None
