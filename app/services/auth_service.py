from app.core.constants import DEFAULT_USER_ROLE
from app.providers.auth import AuthProvider, AuthSession, SignInParams, SignUpParams, User
from app.schemas.user import LoginCredentials, RegisterCredentials
from app.services.user_management import UserManagementService
from typing import Any, Dict, Optional

import logging

logger = logging.getLogger(__name__)


def _with_role(user: User) -> User:
    if user.role:
        return user
    return user.model_copy(update={"role": DEFAULT_USER_ROLE})


class AuthService:
    """Authentication flows on top of the configured AuthProvider."""

    def __init__(self, auth: AuthProvider, users: Optional[UserManagementService] = None):
        self.auth = auth
        self.users = users

    async def register(self, credentials: RegisterCredentials) -> User:
        user = await self.auth.sign_up(SignUpParams(
            email=credentials.email,
            password=credentials.password,
            metadata={
                "first_name": credentials.first_name,
                "last_name": credentials.last_name,
                "role": DEFAULT_USER_ROLE,
            },
        ))
        if self.users:
            await self.users.create_profile(user, credentials.first_name, credentials.last_name)
        logger.info(f"Registered user {user.id}")
        return _with_role(user)

    async def login(self, credentials: LoginCredentials) -> AuthSession:
        session = await self.auth.sign_in(SignInParams(email=credentials.email, password=credentials.password))
        return session.model_copy(update={"user": _with_role(session.user)})

    async def login_with_oauth(self, provider: str, redirect_to: Optional[str] = None) -> Dict[str, str]:
        return await self.auth.sign_in_with_oauth(provider, redirect_to)

    async def logout(self, access_token: str) -> None:
        await self.auth.sign_out(access_token)

    async def refresh(self, refresh_token: str) -> AuthSession:
        session = await self.auth.refresh_session(refresh_token)
        return session.model_copy(update={"user": _with_role(session.user)})

    async def get_current_user(self, access_token: str) -> Optional[User]:
        user = await self.auth.get_user(access_token)
        return _with_role(user) if user else None

    async def request_password_reset(self, email: str) -> None:
        await self.auth.reset_password(email)

    async def update_profile(self, access_token: str, data: Dict[str, Any]) -> User:
        return _with_role(await self.auth.update_user(access_token, data))

    async def is_authenticated(self, access_token: str) -> bool:
        return await self.auth.get_session(access_token) is not None
