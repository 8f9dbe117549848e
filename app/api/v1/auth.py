from fastapi import APIRouter, HTTPException, Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import List, Optional
from app.api.deps import get_auth_service, get_permissions_service
from app.core.config import settings
from app.core.constants import DEFAULT_USER_ROLE
from app.core.exceptions import AuthError, AuthenticationError, AuthorizationError, DatabaseError
from app.providers.auth import (
    AuthSession,
    MFAChallenge,
    MFAEnrollment,
    MFAEnrollParams,
    MFAFactor,
    MFAVerifyParams,
    User,
)
from app.schemas.user import (
    LoginCredentials,
    OAuthRequest,
    PasswordResetRequest,
    RefreshRequest,
    RegisterCredentials,
    UpdateMetadataRequest,
)
from app.services.auth_service import AuthService
from app.services.permissions import PermissionsService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

security = HTTPBearer(auto_error=False)

# For testing without Supabase - set TEST_MODE=true in .env
TEST_USER_ID = "test_user_123"


async def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    if not credentials:
        raise AuthenticationError("Authentication required")
    return credentials.credentials


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_test_user: Optional[str] = Header(None),
    x_test_role: Optional[str] = Header(None),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Resolve the signed-in user from the bearer token.

    For testing: Set TEST_MODE=true in .env and use the X-Test-User and
    X-Test-Role headers.
    """
    if settings.TEST_MODE:
        return User(
            id=x_test_user or TEST_USER_ID,
            email=f"{x_test_user or TEST_USER_ID}@example.com",
            role=x_test_role or DEFAULT_USER_ROLE,
        )

    if not credentials:
        raise AuthenticationError("Authentication required")

    user = await auth_service.get_current_user(credentials.credentials)
    if user is None:
        raise AuthenticationError("Invalid authentication token")
    return user


def require_permission(permission: str):
    """Dependency factory: the current user's role must grant `permission`."""

    async def dependency(
        user: User = Depends(get_current_user),
        permissions: PermissionsService = Depends(get_permissions_service),
    ) -> User:
        if not permissions.has_permission(user.role, permission):
            logger.warning(f"User {user.id} ({user.role}) denied {permission}")
            raise AuthorizationError()
        return user

    return dependency


@router.post("/signup", response_model=User, status_code=201)
async def sign_up(credentials: RegisterCredentials, auth_service: AuthService = Depends(get_auth_service)):
    """Register with email and password."""
    try:
        return await auth_service.register(credentials)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DatabaseError as e:
        logger.error(f"Error creating profile on sign up: {e}")
        raise HTTPException(status_code=500, detail="Failed to create user profile")


@router.post("/signin", response_model=AuthSession)
async def sign_in(credentials: LoginCredentials, auth_service: AuthService = Depends(get_auth_service)):
    """Sign in with email and password."""
    try:
        return await auth_service.login(credentials)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/oauth/{provider}")
async def sign_in_with_oauth(
    provider: str,
    request: OAuthRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Get the URL that starts an OAuth sign in."""
    try:
        return await auth_service.login_with_oauth(provider, request.redirect_to)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/signout")
async def sign_out(
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        await auth_service.logout(access_token)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success"}


@router.post("/refresh", response_model=AuthSession)
async def refresh_session(request: RefreshRequest, auth_service: AuthService = Depends(get_auth_service)):
    try:
        return await auth_service.refresh(request.refresh_token)
    except AuthError as e:
        raise AuthenticationError(str(e))


@router.post("/reset-password")
async def reset_password(request: PasswordResetRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Send a password reset email."""
    try:
        await auth_service.request_password_reset(request.email)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success"}


@router.get("/me", response_model=User)
async def get_me(user: User = Depends(get_current_user)):
    """Get current user information."""
    return user


@router.patch("/me", response_model=User)
async def update_me(
    request: UpdateMetadataRequest,
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Update the current user's metadata."""
    try:
        return await auth_service.update_profile(access_token, request.metadata)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


# MFA

@router.get("/mfa/factors", response_model=List[MFAFactor])
async def list_mfa_factors(
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        return await auth_service.auth.list_mfa_factors(access_token)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/mfa/enroll", response_model=MFAEnrollment)
async def enroll_mfa(
    params: MFAEnrollParams,
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Start TOTP enrollment. Returns the secret and QR code to show the user."""
    try:
        return await auth_service.auth.enroll_mfa(access_token, params)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/mfa/{factor_id}/challenge", response_model=MFAChallenge)
async def challenge_mfa(
    factor_id: str,
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        return await auth_service.auth.challenge_mfa(access_token, factor_id)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/mfa/verify")
async def verify_mfa(
    params: MFAVerifyParams,
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        await auth_service.auth.verify_mfa(access_token, params)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success"}


@router.delete("/mfa/{factor_id}")
async def unenroll_mfa(
    factor_id: str,
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        await auth_service.auth.unenroll_mfa(access_token, factor_id)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success"}
