"""
Authentication provider interface.

The service is stateless between requests, so calls that act on a signed-in
user take the caller's access or refresh token instead of reading an
ambient session.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

OAuthProvider = Literal["google", "azure", "apple", "github"]

# Session events delivered to live-session subscribers.
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"
MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"


class User(BaseModel):
    id: str
    email: str = ""
    role: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AuthSession(BaseModel):
    user: User
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


class SignUpParams(BaseModel):
    email: str
    password: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SignInParams(BaseModel):
    email: str
    password: str


class TOTPSecret(BaseModel):
    qr_code: str
    secret: str
    uri: str


class MFAEnrollParams(BaseModel):
    factor_type: Literal["totp"] = "totp"
    friendly_name: Optional[str] = None


class MFAEnrollment(BaseModel):
    id: str
    totp: Optional[TOTPSecret] = None


class MFAChallenge(BaseModel):
    id: str
    expires_at: Optional[int] = None


class MFAVerifyParams(BaseModel):
    factor_id: str
    code: str
    challenge_id: Optional[str] = None


class MFAFactor(BaseModel):
    id: str
    type: Literal["totp"] = "totp"
    status: Literal["verified", "unverified"]
    friendly_name: Optional[str] = None


SessionListener = Callable[[str, Optional[AuthSession]], None]
Unsubscribe = Callable[[], None]
Subscribe = Callable[[SessionListener], Unsubscribe]


class AuthProvider(ABC):

    @abstractmethod
    async def sign_up(self, params: SignUpParams) -> User:
        """Register a new user."""

    @abstractmethod
    async def sign_in(self, params: SignInParams) -> AuthSession:
        """Sign in with email and password."""

    @abstractmethod
    async def sign_in_with_oauth(self, provider: str, redirect_to: Optional[str] = None) -> Dict[str, str]:
        """Return `{"url": ...}` to send the browser to for an OAuth sign in."""

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind `access_token`."""

    @abstractmethod
    async def get_user(self, access_token: str) -> Optional[User]:
        """Return the user behind `access_token`, or None if it is not valid."""

    @abstractmethod
    async def get_session(self, access_token: str) -> Optional[AuthSession]:
        """Return the session behind `access_token`, or None if it is not valid."""

    @abstractmethod
    async def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new session."""

    @abstractmethod
    async def reset_password(self, email: str) -> None:
        """Send a password reset email."""

    @abstractmethod
    async def update_user(self, access_token: str, metadata: Dict[str, Any]) -> User:
        """Merge `metadata` into the signed-in user's metadata."""

    @abstractmethod
    async def enroll_mfa(self, access_token: str, params: MFAEnrollParams) -> MFAEnrollment:
        """Start enrolling a new MFA factor. The factor stays unverified until verify_mfa."""

    @abstractmethod
    async def challenge_mfa(self, access_token: str, factor_id: str) -> MFAChallenge:
        """Issue a challenge for an enrolled factor."""

    @abstractmethod
    async def verify_mfa(self, access_token: str, params: MFAVerifyParams) -> None:
        """Verify a code, issuing a challenge first when none is supplied."""

    @abstractmethod
    async def unenroll_mfa(self, access_token: str, factor_id: str) -> None:
        """Remove an MFA factor."""

    @abstractmethod
    async def list_mfa_factors(self, access_token: str) -> List[MFAFactor]:
        """List the signed-in user's MFA factors."""

    def supports_live_session_events(self) -> Optional[Subscribe]:
        """
        Return a subscribe function for session change events, or None when
        the provider cannot report them.
        """
        return None
