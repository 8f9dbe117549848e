from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


SUBSCRIPTION_OWNER = "subscription_owner"


class SubscriptionType(BaseModel):
    """A named plan: feature flags, monthly quota ceilings and prices."""
    id: str
    name: str
    description: Optional[str] = None
    marketing_points: Optional[List[str]] = None
    feature_flags: Dict[str, bool] = Field(default_factory=dict)
    quota_limits: Dict[str, float] = Field(default_factory=dict)
    price_monthly: Optional[float] = None
    price_annual: Optional[float] = None
    stripe_monthly_id: Optional[str] = None
    stripe_annual_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Subscription(BaseModel):
    """One purchased plan instance."""
    id: str
    subscription_type_id: str
    start_date: datetime
    end_date: Optional[datetime] = None
    status: SubscriptionStatus
    external_id: Optional[str] = None  # payment provider subscription id
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubscriptionUser(BaseModel):
    id: str
    subscription_id: str
    user_id: str
    role: str = SUBSCRIPTION_OWNER


class SubscriptionConsumption(BaseModel):
    id: str
    subscription_id: str
    feature: str
    usage: float = 0
    month: str  # YYYY-MM-01


class UserSubscription(BaseModel):
    subscription: Subscription
    subscription_type: SubscriptionType
    role: str = SUBSCRIPTION_OWNER


class CreateSubscriptionTypeInput(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    marketing_points: Optional[List[str]] = None
    feature_flags: Dict[str, bool] = Field(default_factory=dict)
    quota_limits: Dict[str, float] = Field(default_factory=dict)
    price_monthly: Optional[float] = None
    price_annual: Optional[float] = None
    stripe_monthly_id: Optional[str] = None
    stripe_annual_id: Optional[str] = None


class UpdateSubscriptionTypeInput(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    marketing_points: Optional[List[str]] = None
    feature_flags: Optional[Dict[str, bool]] = None
    quota_limits: Optional[Dict[str, float]] = None
    price_monthly: Optional[float] = None
    price_annual: Optional[float] = None
    stripe_monthly_id: Optional[str] = None
    stripe_annual_id: Optional[str] = None


class CreateSubscriptionInput(BaseModel):
    subscription_type_id: str
    user_id: str
    start_date: Optional[datetime] = None
    external_id: Optional[str] = None


class UpdateSubscriptionInput(BaseModel):
    status: Optional[SubscriptionStatus] = None
    end_date: Optional[datetime] = None


class UsageIncrementRequest(BaseModel):
    feature: str = Field(..., min_length=1)
    amount: float = Field(default=1, gt=0)


class FeatureAccessResponse(BaseModel):
    feature_flag: str
    has_access: bool


class QuotaStatusResponse(BaseModel):
    feature: str
    limit: Optional[float]  # None means unlimited
    usage: float
    exceeded: bool
