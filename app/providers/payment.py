"""
Payment provider interface and the canned provider used for local development.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

PaymentSubscriptionStatus = Literal[
    "active", "canceled", "past_due", "incomplete", "incomplete_expired", "trialing", "unpaid", "paused"
]


class PaymentSubscription(BaseModel):
    id: str
    customer_id: str
    price_id: str
    status: PaymentSubscriptionStatus
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


class CreateSubscriptionParams(BaseModel):
    customer_id: str
    price_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    id: str
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class CheckoutSession(BaseModel):
    url: str
    session_id: str


class PortalSession(BaseModel):
    url: str


class PaymentProvider(ABC):

    @abstractmethod
    async def create_customer(self, email: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Create a customer and return its id."""

    @abstractmethod
    async def create_subscription(self, params: CreateSubscriptionParams) -> PaymentSubscription:
        """Subscribe a customer to a price."""

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str, immediately: bool = False) -> PaymentSubscription:
        """Cancel now, or at the end of the current period when `immediately` is False."""

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> Optional[PaymentSubscription]:
        """Return a subscription, or None when it does not exist."""

    @abstractmethod
    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook signature and normalize the event."""

    @abstractmethod
    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a hosted checkout page for a subscription."""

    @abstractmethod
    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalSession:
        """Create a billing portal session for the customer to manage subscriptions."""


class MockPaymentProvider(PaymentProvider):
    """
    Returns fixed values and persists nothing.

    Selected when no payment credentials are configured so the rest of the
    application can run locally; it does not process payments.
    """

    def _subscription(self, status: str = "active", cancel_at_period_end: bool = False) -> PaymentSubscription:
        return PaymentSubscription(
            id="mock_sub_id",
            customer_id="mock_customer_id",
            price_id="mock_price_id",
            status=status,
            current_period_end=datetime.now(timezone.utc),
            cancel_at_period_end=cancel_at_period_end,
        )

    async def create_customer(self, email: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        return "mock_customer_id"

    async def create_subscription(self, params: CreateSubscriptionParams) -> PaymentSubscription:
        return self._subscription()

    async def cancel_subscription(self, subscription_id: str, immediately: bool = False) -> PaymentSubscription:
        return self._subscription(status="canceled", cancel_at_period_end=True)

    async def get_subscription(self, subscription_id: str) -> Optional[PaymentSubscription]:
        return self._subscription()

    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        return WebhookEvent(id="mock_event_id", type="mock.event", data={})

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        return CheckoutSession(url="https://checkout.mock.com", session_id="mock_session_id")

    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalSession:
        return PortalSession(url="https://portal.mock.com")
