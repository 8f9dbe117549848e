from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class NotificationType(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    enabled_by_default: bool = False
    channel: NotificationChannel = NotificationChannel.EMAIL
    category: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NotificationPreference(BaseModel):
    """A user's explicit override of a notification type's default."""
    id: str
    user_id: str
    notification_id: str
    preference: bool


class CreateNotificationTypeParams(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    enabled_by_default: bool = False
    channel: NotificationChannel = NotificationChannel.EMAIL
    category: str = Field(..., min_length=1)


class UpdateNotificationTypeParams(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    enabled_by_default: Optional[bool] = None
    channel: Optional[NotificationChannel] = None
    category: Optional[str] = None


class UserNotificationPreference(BaseModel):
    notification_type: NotificationType
    enabled: bool


class SetNotificationPreferenceRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    notification_id: Optional[str] = Field(default=None, alias="notificationId")
    preference: Optional[bool] = None

    class Config:
        populate_by_name = True
