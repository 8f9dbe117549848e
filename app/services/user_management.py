from app.core.constants import DEFAULT_USER_ROLE, PROFILES, USER_PROFILES
from app.providers.auth import AuthProvider, SignUpParams, User
from app.providers.database import DatabaseProvider, PaginatedResult, PaginationOptions
from app.schemas.user import CreateUserParams, UpdateProfileParams, UserProfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import logging

logger = logging.getLogger(__name__)


class UserManagementService:
    """Profile records for users whose identities live in the auth provider."""

    def __init__(self, database: DatabaseProvider, auth: AuthProvider):
        self.db = database
        self.auth = auth

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        row = await self.db.get_by_id(PROFILES, user_id)
        return UserProfile(**row) if row else None

    async def create_profile(
        self,
        user: User,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> UserProfile:
        now = datetime.now(timezone.utc)
        row = await self.db.insert(PROFILES, {
            "id": user.id,
            "email": user.email,
            "role": role or DEFAULT_USER_ROLE,
            "first_name": first_name,
            "last_name": last_name,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Created profile {user.id} with role {row['role']}")
        return UserProfile(**row)

    async def ensure_profile(self, user: User) -> UserProfile:
        """Profile for an authenticated user, created with the default role when absent."""
        profile = await self.get_user_profile(user.id)
        if profile:
            return profile
        logger.warning(f"No profile for user {user.id}; creating one")
        return await self.create_profile(
            user,
            first_name=user.metadata.get("first_name"),
            last_name=user.metadata.get("last_name"),
        )

    async def create_user(self, params: CreateUserParams) -> UserProfile:
        """Create the auth identity, then its profile with the same id."""
        user = await self.auth.sign_up(SignUpParams(
            email=params.email,
            password=params.password,
            metadata={
                "first_name": params.first_name,
                "last_name": params.last_name,
            },
        ))
        return await self.create_profile(user, params.first_name, params.last_name, params.role)

    async def update_profile(self, user_id: str, params: UpdateProfileParams) -> UserProfile:
        row = await self.db.update(PROFILES, user_id, {
            **params.model_dump(exclude_unset=True, exclude_none=True),
            "updated_at": datetime.now(timezone.utc),
        })
        return UserProfile(**row)

    async def set_stripe_customer_id(self, user_id: str, customer_id: str) -> UserProfile:
        row = await self.db.update(PROFILES, user_id, {
            "stripe_customer_id": customer_id,
            "updated_at": datetime.now(timezone.utc),
        })
        return UserProfile(**row)

    async def find_by_stripe_customer_id(self, customer_id: str) -> Optional[UserProfile]:
        rows = await self.db.query(PROFILES, {"stripe_customer_id": customer_id})
        return UserProfile(**rows[0]) if rows else None

    async def delete_user(self, user_id: str) -> None:
        # The auth identity itself is managed by the auth provider.
        await self.db.delete(PROFILES, user_id)
        logger.info(f"Deleted profile {user_id}")

    async def list_users(self, filters: Optional[Dict[str, Any]] = None) -> List[UserProfile]:
        rows = await self.db.query(PROFILES, filters)
        return [UserProfile(**row) for row in rows]

    async def list_users_paginated(self, options: PaginationOptions) -> PaginatedResult:
        return await self.db.query_with_pagination(USER_PROFILES, options)
