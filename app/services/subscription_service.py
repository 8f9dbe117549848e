from app.core.constants import (
    SUBSCRIPTIONS,
    SUBSCRIPTION_CONSUMPTION,
    SUBSCRIPTION_TYPES,
    SUBSCRIPTION_USERS,
)
from app.providers.database import DatabaseProvider
from app.schemas.subscription import (
    SUBSCRIPTION_OWNER,
    CreateSubscriptionInput,
    CreateSubscriptionTypeInput,
    Subscription,
    SubscriptionConsumption,
    SubscriptionStatus,
    SubscriptionType,
    SubscriptionUser,
    UpdateSubscriptionInput,
    UpdateSubscriptionTypeInput,
    UserSubscription,
)
from datetime import datetime, timezone
from typing import List, Optional

import logging

logger = logging.getLogger(__name__)


def current_month() -> str:
    """Usage bucket key for the current UTC month, e.g. '2024-05-01'."""
    return datetime.now(timezone.utc).strftime("%Y-%m-01")


class SubscriptionService:
    def __init__(self, database: DatabaseProvider):
        self.db = database

    # Subscription types

    async def get_subscription_types(self) -> List[SubscriptionType]:
        rows = await self.db.query(SUBSCRIPTION_TYPES)
        return [SubscriptionType(**row) for row in rows]

    async def get_subscription_type_by_id(self, type_id: str) -> Optional[SubscriptionType]:
        row = await self.db.get_by_id(SUBSCRIPTION_TYPES, type_id)
        return SubscriptionType(**row) if row else None

    async def get_subscription_type_by_name(self, name: str) -> Optional[SubscriptionType]:
        rows = await self.db.query(SUBSCRIPTION_TYPES, {"name": name})
        return SubscriptionType(**rows[0]) if rows else None

    async def get_subscription_type_by_price_id(self, price_id: str) -> Optional[SubscriptionType]:
        """Find the plan sold under a payment provider price, monthly or annual."""
        for field in ("stripe_monthly_id", "stripe_annual_id"):
            rows = await self.db.query(SUBSCRIPTION_TYPES, {field: price_id})
            if rows:
                return SubscriptionType(**rows[0])
        return None

    async def create_subscription_type(self, data: CreateSubscriptionTypeInput) -> SubscriptionType:
        now = datetime.now(timezone.utc)
        row = await self.db.insert(
            SUBSCRIPTION_TYPES,
            {**data.model_dump(), "created_at": now, "updated_at": now},
        )
        logger.info(f"Created subscription type {row['id']} ({data.name})")
        return SubscriptionType(**row)

    async def update_subscription_type(self, type_id: str, data: UpdateSubscriptionTypeInput) -> SubscriptionType:
        row = await self.db.update(
            SUBSCRIPTION_TYPES,
            type_id,
            {
                **data.model_dump(exclude_unset=True, exclude_none=True),
                "updated_at": datetime.now(timezone.utc),
            },
        )
        return SubscriptionType(**row)

    async def delete_subscription_type(self, type_id: str) -> None:
        await self.db.delete(SUBSCRIPTION_TYPES, type_id)

    # Subscriptions

    async def create_subscription(self, data: CreateSubscriptionInput) -> Subscription:
        now = datetime.now(timezone.utc)
        row = await self.db.insert(SUBSCRIPTIONS, {
            "subscription_type_id": data.subscription_type_id,
            "start_date": data.start_date or now,
            "end_date": None,
            "status": SubscriptionStatus.ACTIVE.value,
            "external_id": data.external_id,
            "created_at": now,
            "updated_at": now,
        })
        await self.db.insert(SUBSCRIPTION_USERS, {
            "subscription_id": row["id"],
            "user_id": data.user_id,
            "role": SUBSCRIPTION_OWNER,
        })
        logger.info(f"Created subscription {row['id']} for user {data.user_id}")
        return Subscription(**row)

    async def get_subscription_by_id(self, subscription_id: str) -> Optional[Subscription]:
        row = await self.db.get_by_id(SUBSCRIPTIONS, subscription_id)
        return Subscription(**row) if row else None

    async def get_subscriptions_by_external_id(self, external_id: str) -> List[Subscription]:
        rows = await self.db.query(SUBSCRIPTIONS, {"external_id": external_id})
        return [Subscription(**row) for row in rows]

    async def update_subscription(self, subscription_id: str, data: UpdateSubscriptionInput) -> Subscription:
        changes = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        if data.end_date is not None:
            changes["end_date"] = data.end_date
        changes["updated_at"] = datetime.now(timezone.utc)
        row = await self.db.update(SUBSCRIPTIONS, subscription_id, changes)
        return Subscription(**row)

    async def cancel_subscription(self, subscription_id: str) -> Subscription:
        logger.info(f"Cancelling subscription {subscription_id}")
        return await self.update_subscription(
            subscription_id,
            UpdateSubscriptionInput(
                status=SubscriptionStatus.CANCELLED,
                end_date=datetime.now(timezone.utc),
            ),
        )

    async def add_user_to_subscription(
        self,
        subscription_id: str,
        user_id: str,
        role: str = SUBSCRIPTION_OWNER
    ) -> SubscriptionUser:
        row = await self.db.insert(SUBSCRIPTION_USERS, {
            "subscription_id": subscription_id,
            "user_id": user_id,
            "role": role,
        })
        return SubscriptionUser(**row)

    async def remove_user_from_subscription(self, subscription_id: str, user_id: str) -> None:
        rows = await self.db.query(SUBSCRIPTION_USERS, {
            "subscription_id": subscription_id,
            "user_id": user_id,
        })
        if rows:
            await self.db.delete(SUBSCRIPTION_USERS, rows[0]["id"])

    async def get_subscription_users(self, subscription_id: str) -> List[SubscriptionUser]:
        rows = await self.db.query(SUBSCRIPTION_USERS, {"subscription_id": subscription_id})
        return [SubscriptionUser(**row) for row in rows]

    # Feature flags and quotas

    async def get_user_subscriptions(self, user_id: str) -> List[UserSubscription]:
        """Active subscriptions the user belongs to, each with its plan."""
        memberships = await self.db.query(SUBSCRIPTION_USERS, {"user_id": user_id})

        user_subscriptions = []
        for membership in memberships:
            subscription = await self.db.get_by_id(SUBSCRIPTIONS, membership["subscription_id"])
            if not subscription or subscription.get("status") != SubscriptionStatus.ACTIVE.value:
                continue

            subscription_type = await self.db.get_by_id(SUBSCRIPTION_TYPES, subscription["subscription_type_id"])
            if subscription_type:
                user_subscriptions.append(UserSubscription(
                    subscription=Subscription(**subscription),
                    subscription_type=SubscriptionType(**subscription_type),
                    role=membership.get("role", SUBSCRIPTION_OWNER),
                ))

        return user_subscriptions

    async def has_feature_access(self, user_id: str, feature_flag: str) -> bool:
        """True when any active plan turns the flag on."""
        subscriptions = await self.get_user_subscriptions(user_id)
        return any(
            sub.subscription_type.feature_flags.get(feature_flag) is True
            for sub in subscriptions
        )

    async def get_quota_limit(self, user_id: str, feature: str) -> Optional[float]:
        """Highest limit any active plan sets for the feature; None means unlimited."""
        subscriptions = await self.get_user_subscriptions(user_id)
        limits = [
            sub.subscription_type.quota_limits[feature]
            for sub in subscriptions
            if feature in sub.subscription_type.quota_limits
        ]
        return max(limits) if limits else None

    async def get_usage(self, subscription_id: str, feature: str, month: Optional[str] = None) -> float:
        rows = await self.db.query(SUBSCRIPTION_CONSUMPTION, {
            "subscription_id": subscription_id,
            "feature": feature,
            "month": month or current_month(),
        })
        return rows[0]["usage"] if rows else 0

    async def increment_usage(
        self,
        subscription_id: str,
        feature: str,
        amount: float = 1,
        month: Optional[str] = None
    ) -> SubscriptionConsumption:
        row = await self.db.increment(
            SUBSCRIPTION_CONSUMPTION,
            {
                "subscription_id": subscription_id,
                "feature": feature,
                "month": month or current_month(),
            },
            "usage",
            amount,
        )
        return SubscriptionConsumption(**row)

    async def get_total_usage(self, user_id: str, feature: str) -> float:
        """This month's usage of a feature summed over all of the user's active subscriptions."""
        subscriptions = await self.get_user_subscriptions(user_id)
        total = 0
        for sub in subscriptions:
            total += await self.get_usage(sub.subscription.id, feature)
        return total

    async def has_exceeded_quota(self, user_id: str, feature: str) -> bool:
        # Limit is the max over plans while usage is the sum over plans.
        limit = await self.get_quota_limit(user_id, feature)
        if limit is None:
            return False
        return await self.get_total_usage(user_id, feature) >= limit
