from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from app.api.deps import get_user_management_service
from app.api.v1.auth import get_current_user, require_permission
from app.core.exceptions import AuthError, DatabaseError, NotFoundError
from app.providers.auth import User
from app.providers.database import PaginatedResult, PaginationOptions
from app.schemas.user import AdminUpdateProfileParams, CreateUserParams, UpdateProfileParams, UserProfile
from app.services.permissions import ADMIN_ACCESS
from app.services.user_management import UserManagementService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

require_admin = require_permission(ADMIN_ACCESS)


@router.get("/me", response_model=UserProfile)
async def get_my_profile(
    user: User = Depends(get_current_user),
    service: UserManagementService = Depends(get_user_management_service)
):
    return await service.ensure_profile(user)


@router.patch("/me", response_model=UserProfile)
async def update_my_profile(
    params: UpdateProfileParams,
    user: User = Depends(get_current_user),
    service: UserManagementService = Depends(get_user_management_service)
):
    await service.ensure_profile(user)
    return await service.update_profile(user.id, params)


# Admin

@router.get("", response_model=PaginatedResult, dependencies=[Depends(require_admin)])
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    role: Optional[str] = None,
    order_by: Optional[str] = "created_at",
    order_direction: str = Query("desc", pattern="^(asc|desc)$"),
    service: UserManagementService = Depends(get_user_management_service)
):
    """Paginated user list with optional email search and role filter."""
    options = PaginationOptions(
        page=page,
        page_size=page_size,
        filters={"role": role} if role else None,
        search_column="email" if search else None,
        search_term=search,
        order_by=order_by,
        order_direction=order_direction,
    )
    try:
        return await service.list_users_paginated(options)
    except DatabaseError as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(status_code=500, detail="Failed to list users")


@router.post("", response_model=UserProfile, status_code=201, dependencies=[Depends(require_admin)])
async def create_user(
    params: CreateUserParams,
    service: UserManagementService = Depends(get_user_management_service)
):
    try:
        return await service.create_user(params)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}", response_model=UserProfile, dependencies=[Depends(require_admin)])
async def get_user(user_id: str, service: UserManagementService = Depends(get_user_management_service)):
    profile = await service.get_user_profile(user_id)
    if not profile:
        raise NotFoundError("User", user_id)
    return profile


@router.patch("/{user_id}", response_model=UserProfile, dependencies=[Depends(require_admin)])
async def update_user(
    user_id: str,
    params: AdminUpdateProfileParams,
    service: UserManagementService = Depends(get_user_management_service)
):
    if not await service.get_user_profile(user_id):
        raise NotFoundError("User", user_id)
    return await service.update_profile(user_id, params)


@router.delete("/{user_id}", dependencies=[Depends(require_admin)])
async def delete_user(user_id: str, service: UserManagementService = Depends(get_user_management_service)):
    if not await service.get_user_profile(user_id):
        raise NotFoundError("User", user_id)
    await service.delete_user(user_id)
    return {"success": True}
