import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import PaymentError
from app.providers.payment import (
    CheckoutSession,
    CreateSubscriptionParams,
    PaymentProvider,
    PaymentSubscription,
    PortalSession,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


def _field(obj, key: str):
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


class StripePaymentProvider(PaymentProvider):
    """PaymentProvider backed by the Stripe API. SDK calls block, so they run in the threadpool."""

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await run_in_threadpool(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            raise PaymentError(f"{operation} error: {e.user_message or str(e)}") from e

    def _map_subscription(self, subscription) -> PaymentSubscription:
        item = subscription["items"]["data"][0]
        # Newer API versions report the billing period per item
        period_end = _field(subscription, "current_period_end") or _field(item, "current_period_end")
        return PaymentSubscription(
            id=subscription["id"],
            customer_id=subscription["customer"],
            price_id=item["price"]["id"],
            status=subscription["status"],
            current_period_end=datetime.fromtimestamp(period_end, tz=timezone.utc) if period_end else None,
            cancel_at_period_end=bool(_field(subscription, "cancel_at_period_end")),
        )

    async def create_customer(self, email: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        customer = await self._call(
            "Create customer", stripe.Customer.create, email=email, metadata=metadata or {}
        )
        logger.info(f"Created Stripe customer {customer['id']}")
        return customer["id"]

    async def create_subscription(self, params: CreateSubscriptionParams) -> PaymentSubscription:
        subscription = await self._call(
            "Create subscription",
            stripe.Subscription.create,
            customer=params.customer_id,
            items=[{"price": params.price_id}],
            metadata=params.metadata,
        )
        return self._map_subscription(subscription)

    async def cancel_subscription(self, subscription_id: str, immediately: bool = False) -> PaymentSubscription:
        if immediately:
            subscription = await self._call("Cancel subscription", stripe.Subscription.cancel, subscription_id)
        else:
            subscription = await self._call(
                "Cancel subscription", stripe.Subscription.modify, subscription_id, cancel_at_period_end=True
            )
        return self._map_subscription(subscription)

    async def get_subscription(self, subscription_id: str) -> Optional[PaymentSubscription]:
        try:
            subscription = await run_in_threadpool(
                stripe.Subscription.retrieve, subscription_id, api_key=self.api_key
            )
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                return None
            raise PaymentError(f"Get subscription error: {e}") from e
        except stripe.StripeError as e:
            raise PaymentError(f"Get subscription error: {e}") from e
        return self._map_subscription(subscription)

    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise PaymentError(f"Webhook signature verification failed: {e}") from e

        body = json.loads(payload)
        return WebhookEvent(
            id=event["id"],
            type=event["type"],
            data=body.get("data", {}).get("object", {}),
        )

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        session = await self._call(
            "Create checkout session",
            stripe.checkout.Session.create,
            customer=customer_id,
            line_items=[
                {
                    "price": price_id,
                    "quantity": 1,
                },
            ],
            mode="subscription",
            success_url=success_url,
            cancel_url=cancel_url,
        )
        if not session["url"]:
            raise PaymentError("Checkout session URL not generated")
        return CheckoutSession(url=session["url"], session_id=session["id"])

    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalSession:
        session = await self._call(
            "Create portal session",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return PortalSession(url=session["url"])
