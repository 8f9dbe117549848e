from fastapi import APIRouter, HTTPException, Depends
from typing import List
from app.api.deps import get_subscription_service
from app.api.v1.auth import get_current_user, require_permission
from app.core.exceptions import (
    AuthorizationError,
    DatabaseError,
    FeatureNotAvailableError,
    NotFoundError,
    QuotaExceededError,
)
from app.providers.auth import User
from app.schemas.subscription import (
    CreateSubscriptionInput,
    CreateSubscriptionTypeInput,
    FeatureAccessResponse,
    QuotaStatusResponse,
    Subscription,
    SubscriptionConsumption,
    SubscriptionType,
    SubscriptionUser,
    UpdateSubscriptionTypeInput,
    UsageIncrementRequest,
    UserSubscription,
)
from app.services.permissions import ADMIN_ACCESS, PermissionsService
from app.services.subscription_service import SubscriptionService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

require_admin = require_permission(ADMIN_ACCESS)


def require_feature(feature_flag: str):
    """Dependency factory: 403 unless an active subscription enables `feature_flag`."""

    async def dependency(
        user: User = Depends(get_current_user),
        service: SubscriptionService = Depends(get_subscription_service),
    ) -> User:
        if not await service.has_feature_access(user.id, feature_flag):
            raise FeatureNotAvailableError(feature_flag)
        return user

    return dependency


def enforce_quota(feature: str):
    """Dependency factory: 429 once this month's usage of `feature` reaches the limit."""

    async def dependency(
        user: User = Depends(get_current_user),
        service: SubscriptionService = Depends(get_subscription_service),
    ) -> User:
        if await service.has_exceeded_quota(user.id, feature):
            logger.info(f"User {user.id} exceeded quota for {feature}")
            raise QuotaExceededError(feature)
        return user

    return dependency


async def _check_member(service: SubscriptionService, subscription_id: str, user: User):
    if PermissionsService().has_permission(user.role, ADMIN_ACCESS):
        return
    members = await service.get_subscription_users(subscription_id)
    if not any(member.user_id == user.id for member in members):
        raise AuthorizationError()


# Plans

@router.get("/types", response_model=List[SubscriptionType])
async def list_subscription_types(service: SubscriptionService = Depends(get_subscription_service)):
    return await service.get_subscription_types()


@router.post("/types", response_model=SubscriptionType, status_code=201, dependencies=[Depends(require_admin)])
async def create_subscription_type(
    data: CreateSubscriptionTypeInput,
    service: SubscriptionService = Depends(get_subscription_service)
):
    return await service.create_subscription_type(data)


@router.put("/types/{type_id}", response_model=SubscriptionType, dependencies=[Depends(require_admin)])
async def update_subscription_type(
    type_id: str,
    data: UpdateSubscriptionTypeInput,
    service: SubscriptionService = Depends(get_subscription_service)
):
    if not await service.get_subscription_type_by_id(type_id):
        raise NotFoundError("Subscription type", type_id)
    return await service.update_subscription_type(type_id, data)


@router.delete("/types/{type_id}", dependencies=[Depends(require_admin)])
async def delete_subscription_type(type_id: str, service: SubscriptionService = Depends(get_subscription_service)):
    if not await service.get_subscription_type_by_id(type_id):
        raise NotFoundError("Subscription type", type_id)
    await service.delete_subscription_type(type_id)
    return {"success": True}


# Current user

@router.get("/me", response_model=List[UserSubscription])
async def get_my_subscriptions(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Active subscriptions of the current user."""
    try:
        return await service.get_user_subscriptions(user.id)
    except DatabaseError as e:
        logger.error(f"Error fetching subscriptions for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch subscriptions")


@router.get("/me/features/{feature_flag}", response_model=FeatureAccessResponse)
async def check_feature_access(
    feature_flag: str,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    return FeatureAccessResponse(
        feature_flag=feature_flag,
        has_access=await service.has_feature_access(user.id, feature_flag),
    )


@router.get("/me/quota/{feature}", response_model=QuotaStatusResponse)
async def get_quota_status(
    feature: str,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    limit = await service.get_quota_limit(user.id, feature)
    usage = await service.get_total_usage(user.id, feature)
    return QuotaStatusResponse(
        feature=feature,
        limit=limit,
        usage=usage,
        exceeded=limit is not None and usage >= limit,
    )


# Subscriptions

@router.post("", response_model=Subscription, status_code=201, dependencies=[Depends(require_admin)])
async def create_subscription(
    data: CreateSubscriptionInput,
    service: SubscriptionService = Depends(get_subscription_service)
):
    if not await service.get_subscription_type_by_id(data.subscription_type_id):
        raise NotFoundError("Subscription type", data.subscription_type_id)
    return await service.create_subscription(data)


@router.get("/{subscription_id}", response_model=Subscription)
async def get_subscription(
    subscription_id: str,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    await _check_member(service, subscription_id, user)
    subscription = await service.get_subscription_by_id(subscription_id)
    if not subscription:
        raise NotFoundError("Subscription", subscription_id)
    return subscription


@router.post("/{subscription_id}/cancel", response_model=Subscription)
async def cancel_subscription(
    subscription_id: str,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    await _check_member(service, subscription_id, user)
    if not await service.get_subscription_by_id(subscription_id):
        raise NotFoundError("Subscription", subscription_id)
    return await service.cancel_subscription(subscription_id)


@router.post("/{subscription_id}/usage", response_model=SubscriptionConsumption)
async def record_usage(
    subscription_id: str,
    request: UsageIncrementRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Add to this month's usage counter of a feature."""
    await _check_member(service, subscription_id, user)
    if not await service.get_subscription_by_id(subscription_id):
        raise NotFoundError("Subscription", subscription_id)
    return await service.increment_usage(subscription_id, request.feature, request.amount)


@router.get("/{subscription_id}/users", response_model=List[SubscriptionUser], dependencies=[Depends(require_admin)])
async def list_subscription_users(subscription_id: str, service: SubscriptionService = Depends(get_subscription_service)):
    return await service.get_subscription_users(subscription_id)


@router.post(
    "/{subscription_id}/users/{user_id}",
    response_model=SubscriptionUser,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def add_subscription_user(
    subscription_id: str,
    user_id: str,
    service: SubscriptionService = Depends(get_subscription_service)
):
    if not await service.get_subscription_by_id(subscription_id):
        raise NotFoundError("Subscription", subscription_id)
    return await service.add_user_to_subscription(subscription_id, user_id)


@router.delete("/{subscription_id}/users/{user_id}", dependencies=[Depends(require_admin)])
async def remove_subscription_user(
    subscription_id: str,
    user_id: str,
    service: SubscriptionService = Depends(get_subscription_service)
):
    await service.remove_user_from_subscription(subscription_id, user_id)
    return {"success": True}
