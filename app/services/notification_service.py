from app.core.constants import NOTIFICATION_PREFERENCES, NOTIFICATION_TYPES
from app.providers.database import DatabaseProvider
from app.schemas.notification import (
    CreateNotificationTypeParams,
    NotificationPreference,
    NotificationType,
    UpdateNotificationTypeParams,
    UserNotificationPreference,
)
from datetime import datetime, timezone
from typing import List, Optional

import logging

logger = logging.getLogger(__name__)


class NotificationService:
    """Notification types and each user's overrides of their defaults."""

    def __init__(self, database: DatabaseProvider):
        self.db = database

    async def get_all_notification_types(self) -> List[NotificationType]:
        rows = await self.db.query(NOTIFICATION_TYPES)
        return [NotificationType(**row) for row in rows]

    async def get_notification_type_by_id(self, notification_id: str) -> Optional[NotificationType]:
        row = await self.db.get_by_id(NOTIFICATION_TYPES, notification_id)
        return NotificationType(**row) if row else None

    async def create_notification_type(self, params: CreateNotificationTypeParams) -> NotificationType:
        now = datetime.now(timezone.utc)
        row = await self.db.insert(NOTIFICATION_TYPES, {
            **params.model_dump(mode="json"),
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Created notification type {row['id']} ({params.name})")
        return NotificationType(**row)

    async def update_notification_type(
        self,
        notification_id: str,
        params: UpdateNotificationTypeParams
    ) -> NotificationType:
        row = await self.db.update(NOTIFICATION_TYPES, notification_id, {
            **params.model_dump(exclude_unset=True, exclude_none=True, mode="json"),
            "updated_at": datetime.now(timezone.utc),
        })
        return NotificationType(**row)

    async def delete_notification_type(self, notification_id: str) -> None:
        await self.db.delete(NOTIFICATION_TYPES, notification_id)

    async def get_user_notification_preferences(self, user_id: str) -> List[UserNotificationPreference]:
        """
        Every notification type with the user's effective setting.

        A type without an override row falls back to its `enabled_by_default`.
        """
        notification_types = await self.get_all_notification_types()
        overrides = await self.db.query(NOTIFICATION_PREFERENCES, {"user_id": user_id})
        preferences = {row["notification_id"]: row["preference"] for row in overrides}

        return [
            UserNotificationPreference(
                notification_type=notification_type,
                enabled=preferences.get(notification_type.id, notification_type.enabled_by_default),
            )
            for notification_type in notification_types
        ]

    async def is_notification_enabled(self, user_id: str, notification_id: str) -> bool:
        overrides = await self.db.query(NOTIFICATION_PREFERENCES, {
            "user_id": user_id,
            "notification_id": notification_id,
        })
        if overrides:
            return overrides[0]["preference"]

        notification_type = await self.get_notification_type_by_id(notification_id)
        return notification_type.enabled_by_default if notification_type else False

    async def set_user_notification_preference(
        self,
        user_id: str,
        notification_id: str,
        preference: bool
    ) -> NotificationPreference:
        existing = await self.db.query(NOTIFICATION_PREFERENCES, {
            "user_id": user_id,
            "notification_id": notification_id,
        })

        if existing:
            row = await self.db.update(NOTIFICATION_PREFERENCES, existing[0]["id"], {"preference": preference})
        else:
            row = await self.db.insert(NOTIFICATION_PREFERENCES, {
                "user_id": user_id,
                "notification_id": notification_id,
                "preference": preference,
            })
        return NotificationPreference(**row)
