"""
Tests for subscription types, memberships, feature flags and quotas.
"""

import pytest

from app.core.constants import SUBSCRIPTION_CONSUMPTION, SUBSCRIPTION_USERS
from app.schemas.subscription import (
    SUBSCRIPTION_OWNER,
    CreateSubscriptionInput,
    CreateSubscriptionTypeInput,
    SubscriptionStatus,
    UpdateSubscriptionInput,
    UpdateSubscriptionTypeInput,
)
from app.services.subscription_service import SubscriptionService, current_month


@pytest.fixture
def service(db):
    return SubscriptionService(db)


async def _subscribe(service, user_id, **plan):
    plan.setdefault("name", "plan")
    subscription_type = await service.create_subscription_type(CreateSubscriptionTypeInput(**plan))
    subscription = await service.create_subscription(CreateSubscriptionInput(
        subscription_type_id=subscription_type.id,
        user_id=user_id,
    ))
    return subscription_type, subscription


# ---------------------------------------------------------------------------
# Subscription types
# ---------------------------------------------------------------------------

class TestSubscriptionTypes:
    @pytest.mark.asyncio
    async def test_create_and_lookup(self, service):
        created = await service.create_subscription_type(CreateSubscriptionTypeInput(
            name="Pro",
            feature_flags={"export": True},
            quota_limits={"api_calls": 1000},
            stripe_monthly_id="price_pro_monthly",
            stripe_annual_id="price_pro_annual",
        ))

        assert (await service.get_subscription_type_by_id(created.id)).name == "Pro"
        assert (await service.get_subscription_type_by_name("Pro")).id == created.id
        assert (await service.get_subscription_type_by_price_id("price_pro_annual")).id == created.id
        assert await service.get_subscription_type_by_name("Missing") is None
        assert len(await service.get_subscription_types()) == 1

    @pytest.mark.asyncio
    async def test_update_only_changes_given_fields(self, service):
        created = await service.create_subscription_type(
            CreateSubscriptionTypeInput(name="Basic", price_monthly=9)
        )

        updated = await service.update_subscription_type(
            created.id, UpdateSubscriptionTypeInput(price_monthly=12)
        )

        assert updated.name == "Basic"
        assert updated.price_monthly == 12

    @pytest.mark.asyncio
    async def test_update_ignores_null_name(self, service):
        created = await service.create_subscription_type(CreateSubscriptionTypeInput(name="Basic"))

        updated = await service.update_subscription_type(
            created.id, UpdateSubscriptionTypeInput.model_validate({"name": None, "price_annual": 90})
        )

        assert updated.name == "Basic"
        assert updated.price_annual == 90
        assert [t.name for t in await service.get_subscription_types()] == ["Basic"]

    @pytest.mark.asyncio
    async def test_delete(self, service):
        created = await service.create_subscription_type(CreateSubscriptionTypeInput(name="Gone"))
        await service.delete_subscription_type(created.id)
        assert await service.get_subscription_type_by_id(created.id) is None


# ---------------------------------------------------------------------------
# Subscriptions and members
# ---------------------------------------------------------------------------

class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_create_adds_owner_membership(self, service, db):
        _, subscription = await _subscribe(service, "user_1")

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.start_date is not None
        members = await service.get_subscription_users(subscription.id)
        assert [(m.user_id, m.role) for m in members] == [("user_1", SUBSCRIPTION_OWNER)]

    @pytest.mark.asyncio
    async def test_cancel_sets_status_and_end_date(self, service):
        _, subscription = await _subscribe(service, "user_1")

        cancelled = await service.cancel_subscription(subscription.id)

        assert cancelled.status == SubscriptionStatus.CANCELLED
        assert cancelled.end_date is not None

    @pytest.mark.asyncio
    async def test_update_status(self, service):
        _, subscription = await _subscribe(service, "user_1")

        updated = await service.update_subscription(
            subscription.id, UpdateSubscriptionInput(status=SubscriptionStatus.SUSPENDED)
        )

        assert updated.status == SubscriptionStatus.SUSPENDED
        assert updated.end_date is None

    @pytest.mark.asyncio
    async def test_add_and_remove_member(self, service, db):
        _, subscription = await _subscribe(service, "user_1")

        await service.add_user_to_subscription(subscription.id, "user_2", role="member")
        assert len(await service.get_subscription_users(subscription.id)) == 2

        await service.remove_user_from_subscription(subscription.id, "user_2")
        members = await db.query(SUBSCRIPTION_USERS, {"subscription_id": subscription.id})
        assert [m["user_id"] for m in members] == ["user_1"]

    @pytest.mark.asyncio
    async def test_lookup_by_external_id(self, service):
        subscription_type = await service.create_subscription_type(CreateSubscriptionTypeInput(name="Pro"))
        created = await service.create_subscription(CreateSubscriptionInput(
            subscription_type_id=subscription_type.id,
            user_id="user_1",
            external_id="sub_123",
        ))

        found = await service.get_subscriptions_by_external_id("sub_123")

        assert [s.id for s in found] == [created.id]


# ---------------------------------------------------------------------------
# Feature flags and quotas
# ---------------------------------------------------------------------------

class TestFeatureAccess:
    @pytest.mark.asyncio
    async def test_flag_from_any_active_plan(self, service):
        await _subscribe(service, "user_1", name="A", feature_flags={"export": False})
        await _subscribe(service, "user_1", name="B", feature_flags={"export": True})

        assert await service.has_feature_access("user_1", "export") is True
        assert await service.has_feature_access("user_1", "sso") is False

    @pytest.mark.asyncio
    async def test_cancelled_plans_do_not_count(self, service):
        _, subscription = await _subscribe(service, "user_1", feature_flags={"export": True})
        await service.cancel_subscription(subscription.id)

        assert await service.get_user_subscriptions("user_1") == []
        assert await service.has_feature_access("user_1", "export") is False

    @pytest.mark.asyncio
    async def test_no_subscriptions(self, service):
        assert await service.has_feature_access("nobody", "export") is False
        assert await service.get_quota_limit("nobody", "api_calls") is None
        assert await service.has_exceeded_quota("nobody", "api_calls") is False


class TestQuota:
    @pytest.mark.asyncio
    async def test_limit_is_highest_plan_and_usage_is_summed(self, service):
        _, first = await _subscribe(service, "user_1", name="Small", quota_limits={"api_calls": 100})
        _, second = await _subscribe(service, "user_1", name="Large", quota_limits={"api_calls": 500})

        assert await service.get_quota_limit("user_1", "api_calls") == 500

        await service.increment_usage(first.id, "api_calls", 300)
        await service.increment_usage(second.id, "api_calls", 250)

        assert await service.get_total_usage("user_1", "api_calls") == 550
        assert await service.has_exceeded_quota("user_1", "api_calls") is True

    @pytest.mark.asyncio
    async def test_reaching_limit_counts_as_exceeded(self, service):
        _, subscription = await _subscribe(service, "user_1", quota_limits={"api_calls": 10})

        await service.increment_usage(subscription.id, "api_calls", 9)
        assert await service.has_exceeded_quota("user_1", "api_calls") is False

        await service.increment_usage(subscription.id, "api_calls")
        assert await service.has_exceeded_quota("user_1", "api_calls") is True

    @pytest.mark.asyncio
    async def test_feature_without_limit_is_unlimited(self, service):
        _, subscription = await _subscribe(service, "user_1", quota_limits={"api_calls": 10})
        await service.increment_usage(subscription.id, "storage", 10_000)

        assert await service.has_exceeded_quota("user_1", "storage") is False

    @pytest.mark.asyncio
    async def test_increment_creates_then_accumulates_one_row(self, service, db):
        _, subscription = await _subscribe(service, "user_1")

        first = await service.increment_usage(subscription.id, "api_calls", 2)
        second = await service.increment_usage(subscription.id, "api_calls", 3)

        assert first.usage == 2
        assert second.usage == 5
        assert second.month == current_month()
        rows = await db.query(SUBSCRIPTION_CONSUMPTION)
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_usage_is_bucketed_per_month(self, service):
        _, subscription = await _subscribe(service, "user_1")

        await service.increment_usage(subscription.id, "api_calls", 7, month="2000-01-01")

        assert await service.get_usage(subscription.id, "api_calls", month="2000-01-01") == 7
        assert await service.get_usage(subscription.id, "api_calls") == 0


def test_current_month_format():
    month = current_month()
    assert len(month) == 10
    assert month.endswith("-01")
