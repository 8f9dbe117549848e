from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from app.api.deps import get_notification_service
from app.api.v1.auth import get_current_user, require_permission
from app.core.exceptions import AuthorizationError, DatabaseError, NotFoundError
from app.providers.auth import User
from app.schemas.notification import (
    CreateNotificationTypeParams,
    SetNotificationPreferenceRequest,
    UpdateNotificationTypeParams,
)
from app.services.notification_service import NotificationService
from app.services.permissions import ADMIN_ACCESS, PermissionsService
import logging

logger = logging.getLogger(__name__)

admin_router = APIRouter(
    prefix="/admin/notifications",
    tags=["Notifications"],
    dependencies=[Depends(require_permission(ADMIN_ACCESS))],
)
user_router = APIRouter(prefix="/user/notification-preferences", tags=["Notifications"])


@admin_router.get("")
async def list_notification_types(service: NotificationService = Depends(get_notification_service)):
    try:
        notification_types = await service.get_all_notification_types()
    except DatabaseError as e:
        logger.error(f"Error fetching notification types: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch notification types")
    return {"notification_types": notification_types}


@admin_router.post("", status_code=201)
async def create_notification_type(
    params: CreateNotificationTypeParams,
    service: NotificationService = Depends(get_notification_service)
):
    try:
        notification_type = await service.create_notification_type(params)
    except DatabaseError as e:
        logger.error(f"Error creating notification type: {e}")
        raise HTTPException(status_code=500, detail="Failed to create notification type")
    return {"notification_type": notification_type}


@admin_router.get("/{notification_id}")
async def get_notification_type(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service)
):
    try:
        notification_type = await service.get_notification_type_by_id(notification_id)
    except DatabaseError as e:
        logger.error(f"Error fetching notification type: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch notification type")
    if not notification_type:
        raise NotFoundError("Notification type", notification_id)
    return {"notification_type": notification_type}


@admin_router.put("/{notification_id}")
async def update_notification_type(
    notification_id: str,
    params: UpdateNotificationTypeParams,
    service: NotificationService = Depends(get_notification_service)
):
    try:
        if not await service.get_notification_type_by_id(notification_id):
            raise NotFoundError("Notification type", notification_id)
        notification_type = await service.update_notification_type(notification_id, params)
    except DatabaseError as e:
        logger.error(f"Error updating notification type: {e}")
        raise HTTPException(status_code=500, detail="Failed to update notification type")
    return {"notification_type": notification_type}


@admin_router.delete("/{notification_id}")
async def delete_notification_type(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service)
):
    try:
        if not await service.get_notification_type_by_id(notification_id):
            raise NotFoundError("Notification type", notification_id)
        await service.delete_notification_type(notification_id)
    except DatabaseError as e:
        logger.error(f"Error deleting notification type: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete notification type")
    return {"success": True}


def _check_owner(user: User, user_id: str):
    """Users manage their own preferences; admins may manage anyone's."""
    if user.id != user_id and not PermissionsService().has_permission(user.role, ADMIN_ACCESS):
        raise AuthorizationError()


@user_router.get("")
async def get_notification_preferences(
    user_id: Optional[str] = Query(None, alias="userId"),
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID is required")
    _check_owner(user, user_id)

    try:
        preferences = await service.get_user_notification_preferences(user_id)
    except DatabaseError as e:
        logger.error(f"Error fetching notification preferences: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch notification preferences")
    return {"preferences": preferences}


@user_router.post("")
async def set_notification_preference(
    request: SetNotificationPreferenceRequest,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    if not request.user_id or not request.notification_id or request.preference is None:
        raise HTTPException(status_code=400, detail="userId, notificationId, and preference are required")
    _check_owner(user, request.user_id)

    try:
        if not await service.get_notification_type_by_id(request.notification_id):
            raise NotFoundError("Notification type", request.notification_id)
        preference = await service.set_user_notification_preference(
            request.user_id,
            request.notification_id,
            request.preference
        )
    except DatabaseError as e:
        logger.error(f"Error updating notification preference: {e}")
        raise HTTPException(status_code=500, detail="Failed to update notification preference")
    return {"preference": preference}
