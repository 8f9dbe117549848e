from fastapi import Depends, Request

from app.providers.config import Providers, get_config
from app.services.auth_service import AuthService
from app.services.billing_service import BillingService
from app.services.notification_service import NotificationService
from app.services.permissions import PermissionsService
from app.services.subscription_service import SubscriptionService
from app.services.support_service import SupportService
from app.services.user_management import UserManagementService


def get_providers(request: Request) -> Providers:
    """Providers built at startup, falling back to the process-wide bundle."""
    providers = getattr(request.app.state, "providers", None)
    return providers or get_config()


def get_subscription_service(providers: Providers = Depends(get_providers)) -> SubscriptionService:
    return SubscriptionService(providers.database)


def get_notification_service(providers: Providers = Depends(get_providers)) -> NotificationService:
    return NotificationService(providers.database)


def get_support_service(providers: Providers = Depends(get_providers)) -> SupportService:
    return SupportService(providers.database)


def get_user_management_service(providers: Providers = Depends(get_providers)) -> UserManagementService:
    return UserManagementService(providers.database, providers.auth)


def get_auth_service(
    providers: Providers = Depends(get_providers),
    users: UserManagementService = Depends(get_user_management_service),
) -> AuthService:
    return AuthService(providers.auth, users)


def get_permissions_service(providers: Providers = Depends(get_providers)) -> PermissionsService:
    return PermissionsService(database=providers.database)


def get_billing_service(
    providers: Providers = Depends(get_providers),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    users: UserManagementService = Depends(get_user_management_service),
) -> BillingService:
    return BillingService(providers.payment, subscriptions, users)
