from app.core.config import settings
from app.providers.auth import User
from app.providers.payment import CheckoutSession, PaymentProvider, PortalSession, WebhookEvent
from app.schemas.subscription import CreateSubscriptionInput, SubscriptionStatus, UpdateSubscriptionInput
from app.services.subscription_service import SubscriptionService
from app.services.user_management import UserManagementService
from typing import Optional

import logging

logger = logging.getLogger(__name__)

# Payment provider subscription status -> local subscription status
STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "past_due": SubscriptionStatus.SUSPENDED,
    "unpaid": SubscriptionStatus.SUSPENDED,
    "paused": SubscriptionStatus.SUSPENDED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


class BillingService:
    """Checkout, billing portal and payment webhooks, kept in sync with local subscriptions."""

    def __init__(
        self,
        payment: PaymentProvider,
        subscriptions: SubscriptionService,
        users: UserManagementService,
    ):
        self.payment = payment
        self.subscriptions = subscriptions
        self.users = users

    async def get_or_create_customer(self, user: User) -> str:
        profile = await self.users.ensure_profile(user)
        if profile.stripe_customer_id:
            return profile.stripe_customer_id

        customer_id = await self.payment.create_customer(user.email, {"user_id": user.id})
        await self.users.set_stripe_customer_id(user.id, customer_id)
        return customer_id

    async def create_checkout_session(
        self,
        user: User,
        price_id: str,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> CheckoutSession:
        customer_id = await self.get_or_create_customer(user)
        return await self.payment.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url or f"{settings.APP_URL}/subscription?success=true",
            cancel_url=cancel_url or f"{settings.APP_URL}/subscription?canceled=true",
        )

    async def create_portal_session(self, user: User, return_url: Optional[str] = None) -> PortalSession:
        customer_id = await self.get_or_create_customer(user)
        return await self.payment.create_portal_session(
            customer_id,
            return_url or f"{settings.APP_URL}/subscription",
        )

    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook and apply it. Verification failures raise before anything is changed."""
        event = await self.payment.handle_webhook(payload, signature)
        logger.info(f"Received payment event {event.id} ({event.type})")

        if event.type == "checkout.session.completed":
            await self.handle_checkout_session_completed(event.data)
        elif event.type == "customer.subscription.updated":
            await self.handle_subscription_updated(event.data)
        elif event.type == "customer.subscription.deleted":
            await self.handle_subscription_deleted(event.data)
        elif event.type == "invoice.payment_failed":
            await self.handle_payment_failed(event.data)

        return event

    async def handle_checkout_session_completed(self, session: dict):
        customer_id = session.get("customer")
        external_id = session.get("subscription")
        if not customer_id or not external_id:
            logger.error("Checkout session without customer or subscription")
            return

        if await self.subscriptions.get_subscriptions_by_external_id(external_id):
            logger.info(f"Subscription {external_id} already recorded")
            return

        profile = await self.users.find_by_stripe_customer_id(customer_id)
        if not profile:
            logger.error(f"No user found for customer {customer_id}")
            return

        payment_subscription = await self.payment.get_subscription(external_id)
        if not payment_subscription:
            logger.error(f"Subscription {external_id} not found at payment provider")
            return

        subscription_type = await self.subscriptions.get_subscription_type_by_price_id(payment_subscription.price_id)
        if not subscription_type:
            logger.error(f"No subscription type sells price {payment_subscription.price_id}")
            return

        await self.subscriptions.create_subscription(CreateSubscriptionInput(
            subscription_type_id=subscription_type.id,
            user_id=profile.id,
            external_id=external_id,
        ))

    async def handle_subscription_updated(self, payment_subscription: dict):
        status = STATUS_MAP.get(payment_subscription.get("status"))
        if status is None:
            return
        for subscription in await self.subscriptions.get_subscriptions_by_external_id(payment_subscription.get("id")):
            await self.subscriptions.update_subscription(subscription.id, UpdateSubscriptionInput(status=status))

    async def handle_subscription_deleted(self, payment_subscription: dict):
        for subscription in await self.subscriptions.get_subscriptions_by_external_id(payment_subscription.get("id")):
            await self.subscriptions.cancel_subscription(subscription.id)

    async def handle_payment_failed(self, invoice: dict):
        external_id = invoice.get("subscription")
        if not external_id:
            return
        for subscription in await self.subscriptions.get_subscriptions_by_external_id(external_id):
            await self.subscriptions.update_subscription(
                subscription.id,
                UpdateSubscriptionInput(status=SubscriptionStatus.SUSPENDED),
            )
