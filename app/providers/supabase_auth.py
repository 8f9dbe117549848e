"""
Supabase Auth provider.

Talks to the Supabase Auth (GoTrue) REST API with httpx. The role of every
returned user is merged from the `user_profiles` view:
profile role > user_metadata role > auth record role > "user".
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from app.core.config import settings
from app.core.constants import DEFAULT_USER_ROLE, USER_PROFILES
from app.core.exceptions import AuthError
from app.providers.auth import (
    MFA_CHALLENGE_VERIFIED,
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    USER_UPDATED,
    AuthProvider,
    AuthSession,
    MFAChallenge,
    MFAEnrollment,
    MFAEnrollParams,
    MFAFactor,
    MFAVerifyParams,
    SessionListener,
    SignInParams,
    SignUpParams,
    Subscribe,
    TOTPSecret,
    Unsubscribe,
    User,
)
from app.providers.database import DatabaseProvider

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


class SupabaseAuthProvider(AuthProvider):

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        database: DatabaseProvider,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.supabase_url = supabase_url.rstrip("/")
        self.supabase_key = supabase_key
        self.database = database
        self.client = httpx.AsyncClient(
            base_url=f"{self.supabase_url}/auth/v1",
            headers={"apikey": supabase_key},
            timeout=timeout,
            transport=transport,
        )
        self._listeners: List[SessionListener] = []

    async def aclose(self):
        await self.client.aclose()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {access_token or self.supabase_key}"}
        try:
            response = await self.client.request(method, path, headers=headers, json=json, params=params)
        except httpx.HTTPError as e:
            raise AuthError(f"{operation} error: {e}") from e

        if response.is_error:
            raise AuthError(f"{operation} error: {_error_message(response)}")
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Profile merge
    # ------------------------------------------------------------------

    async def _get_user_with_profile(self, auth_user: Dict[str, Any]) -> User:
        metadata = auth_user.get("user_metadata") or {}
        fallback_role = metadata.get("role") or auth_user.get("role") or DEFAULT_USER_ROLE

        profile_role = None
        try:
            profiles = await self.database.query(USER_PROFILES, {"id": auth_user["id"]})
            if profiles:
                profile_role = profiles[0].get("role")
        except Exception as e:
            logger.warning(f"Failed to fetch user profile for {auth_user.get('id')}: {e}")

        return User(
            id=auth_user["id"],
            email=auth_user.get("email") or "",
            role=profile_role or fallback_role,
            metadata=metadata,
        )

    async def _to_session(self, data: Dict[str, Any]) -> AuthSession:
        user = await self._get_user_with_profile(data["user"])
        return AuthSession(
            user=user,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
        )

    # ------------------------------------------------------------------
    # Live session events
    # ------------------------------------------------------------------

    def supports_live_session_events(self) -> Optional[Subscribe]:
        return self._subscribe

    def _subscribe(self, listener: SessionListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, session: Optional[AuthSession]):
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception as e:
                logger.error(f"Auth session listener failed on {event}: {e}")

    # ------------------------------------------------------------------
    # Credentials and sessions
    # ------------------------------------------------------------------

    async def sign_up(self, params: SignUpParams) -> User:
        metadata = {**params.metadata, "role": params.metadata.get("role") or DEFAULT_USER_ROLE}
        data = await self._request(
            "Sign up", "POST", "/signup",
            json={"email": params.email, "password": params.password, "data": metadata},
        )
        # With email confirmation enabled the body is the bare user, otherwise a session.
        auth_user = (data or {}).get("user") or data
        if not auth_user or not auth_user.get("id"):
            raise AuthError("Sign up failed: No user returned")

        user = await self._get_user_with_profile(auth_user)
        if data.get("access_token"):
            self._emit(SIGNED_IN, await self._to_session(data))
        return user

    async def sign_in(self, params: SignInParams) -> AuthSession:
        data = await self._request(
            "Sign in", "POST", "/token",
            params={"grant_type": "password"},
            json={"email": params.email, "password": params.password},
        )
        if not data or not data.get("access_token") or not data.get("user"):
            raise AuthError("Sign in failed: No session returned")

        session = await self._to_session(data)
        self._emit(SIGNED_IN, session)
        return session

    async def sign_in_with_oauth(self, provider: str, redirect_to: Optional[str] = None) -> Dict[str, str]:
        if not self.supabase_url:
            raise AuthError("OAuth sign in error: SUPABASE_URL is not configured")
        query = urlencode({
            "provider": provider,
            "redirect_to": redirect_to or f"{settings.APP_URL}/auth/callback",
        })
        return {"url": f"{self.supabase_url}/auth/v1/authorize?{query}"}

    async def sign_out(self, access_token: str) -> None:
        await self._request("Sign out", "POST", "/logout", access_token=access_token)
        self._emit(SIGNED_OUT, None)

    async def get_user(self, access_token: str) -> Optional[User]:
        try:
            data = await self._request("Get user", "GET", "/user", access_token=access_token)
        except AuthError as e:
            logger.info(f"Rejected access token: {e}")
            return None
        if not data or not data.get("id"):
            return None
        return await self._get_user_with_profile(data)

    async def get_session(self, access_token: str) -> Optional[AuthSession]:
        user = await self.get_user(access_token)
        if user is None:
            return None
        return AuthSession(user=user, access_token=access_token)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        data = await self._request(
            "Refresh session", "POST", "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if not data or not data.get("access_token") or not data.get("user"):
            raise AuthError("Refresh session failed: No session returned")

        session = await self._to_session(data)
        self._emit(TOKEN_REFRESHED, session)
        return session

    async def reset_password(self, email: str) -> None:
        await self._request(
            "Reset password", "POST", "/recover",
            params={"redirect_to": f"{settings.APP_URL}/auth/callback"},
            json={"email": email},
        )

    async def update_user(self, access_token: str, metadata: Dict[str, Any]) -> User:
        data = await self._request(
            "Update user", "PUT", "/user",
            access_token=access_token,
            json={"data": metadata},
        )
        if not data or not data.get("id"):
            raise AuthError("Update user failed: No user returned")

        user = await self._get_user_with_profile(data)
        self._emit(USER_UPDATED, AuthSession(user=user, access_token=access_token))
        return user

    # ------------------------------------------------------------------
    # MFA
    # ------------------------------------------------------------------

    async def enroll_mfa(self, access_token: str, params: MFAEnrollParams) -> MFAEnrollment:
        body: Dict[str, Any] = {"factor_type": params.factor_type}
        if params.friendly_name:
            body["friendly_name"] = params.friendly_name
        data = await self._request("MFA enrollment", "POST", "/factors", access_token=access_token, json=body)
        if not data:
            raise AuthError("MFA enrollment failed: No data returned")

        totp = data.get("totp")
        return MFAEnrollment(
            id=data["id"],
            totp=TOTPSecret(qr_code=totp["qr_code"], secret=totp["secret"], uri=totp["uri"]) if totp else None,
        )

    async def challenge_mfa(self, access_token: str, factor_id: str) -> MFAChallenge:
        data = await self._request(
            "MFA challenge", "POST", f"/factors/{factor_id}/challenge", access_token=access_token
        )
        if not data:
            raise AuthError("MFA challenge failed: No data returned")
        return MFAChallenge(id=data["id"], expires_at=data.get("expires_at"))

    async def verify_mfa(self, access_token: str, params: MFAVerifyParams) -> None:
        challenge_id = params.challenge_id
        if not challenge_id:
            challenge = await self.challenge_mfa(access_token, params.factor_id)
            challenge_id = challenge.id

        data = await self._request(
            "MFA verification", "POST", f"/factors/{params.factor_id}/verify",
            access_token=access_token,
            json={"challenge_id": challenge_id, "code": params.code},
        )
        session = await self._to_session(data) if data and data.get("user") else None
        self._emit(MFA_CHALLENGE_VERIFIED, session)

    async def unenroll_mfa(self, access_token: str, factor_id: str) -> None:
        await self._request("MFA unenrollment", "DELETE", f"/factors/{factor_id}", access_token=access_token)

    async def list_mfa_factors(self, access_token: str) -> List[MFAFactor]:
        data = await self._request("List MFA factors", "GET", "/user", access_token=access_token)
        if not data:
            return []
        return [
            MFAFactor(
                id=factor["id"],
                status=factor.get("status", "unverified"),
                friendly_name=factor.get("friendly_name"),
            )
            for factor in data.get("factors") or []
            if factor.get("factor_type") == "totp"
        ]
