"""
Tests for SupabaseAuthProvider against a mocked GoTrue REST API.
"""

import json

import httpx
import pytest

from app.core.constants import USER_PROFILES
from app.core.exceptions import AuthError
from app.providers.auth import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    MFAEnrollParams,
    MFAVerifyParams,
    SignInParams,
    SignUpParams,
)
from app.providers.supabase_auth import SupabaseAuthProvider

AUTH_USER = {
    "id": "user_1",
    "email": "user@example.com",
    "role": "authenticated",
    "user_metadata": {"role": "editor", "first_name": "Ada"},
}


def _session_body(user=None):
    return {
        "access_token": "access_1",
        "refresh_token": "refresh_1",
        "expires_at": 1700000000,
        "user": user or AUTH_USER,
    }


class FakeGoTrue:
    """Routes requests to canned responses and records what was called."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, status=200, body=None):
        self.routes[(method, path)] = (status, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"msg": "not found"})
        status, body = self.routes[key]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def paths(self):
        return [(r.method, r.url.path) for r in self.requests]


@pytest.fixture
def gotrue():
    return FakeGoTrue()


@pytest.fixture
def provider(gotrue, db):
    return SupabaseAuthProvider(
        "https://project.supabase.co",
        "anon-key",
        db,
        transport=httpx.MockTransport(gotrue),
    )


# ---------------------------------------------------------------------------
# Sign in / sign up / sessions
# ---------------------------------------------------------------------------

class TestSessions:
    @pytest.mark.asyncio
    async def test_sign_in_sends_credentials_and_api_key(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/token", body=_session_body())

        session = await provider.sign_in(SignInParams(email="user@example.com", password="pw"))

        request = gotrue.requests[0]
        assert request.url.params["grant_type"] == "password"
        assert request.headers["apikey"] == "anon-key"
        assert json.loads(request.content) == {"email": "user@example.com", "password": "pw"}
        assert session.access_token == "access_1"
        assert session.refresh_token == "refresh_1"

    @pytest.mark.asyncio
    async def test_sign_in_error_is_wrapped(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/token", status=400, body={
            "error": "invalid_grant",
            "error_description": "Invalid login credentials",
        })

        with pytest.raises(AuthError, match="Sign in error: Invalid login credentials"):
            await provider.sign_in(SignInParams(email="user@example.com", password="bad"))

    @pytest.mark.asyncio
    async def test_sign_up_with_confirmation_returns_bare_user(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/signup", body=AUTH_USER)

        user = await provider.sign_up(SignUpParams(email="user@example.com", password="pw"))

        assert user.id == "user_1"
        assert json.loads(gotrue.requests[0].content)["data"]["role"] == "user"

    @pytest.mark.asyncio
    async def test_get_user_with_bad_token_is_none(self, provider, gotrue):
        gotrue.add("GET", "/auth/v1/user", status=401, body={"msg": "invalid JWT"})

        assert await provider.get_user("expired") is None
        assert await provider.get_session("expired") is None

    @pytest.mark.asyncio
    async def test_get_user_sends_bearer_token(self, provider, gotrue):
        gotrue.add("GET", "/auth/v1/user", body=AUTH_USER)

        session = await provider.get_session("access_1")

        assert gotrue.requests[0].headers["authorization"] == "Bearer access_1"
        assert session.user.id == "user_1"

    @pytest.mark.asyncio
    async def test_oauth_url(self, provider, monkeypatch):
        monkeypatch.setattr("app.providers.supabase_auth.settings.APP_URL", "https://app.example.com")

        result = await provider.sign_in_with_oauth("github")

        assert result["url"].startswith("https://project.supabase.co/auth/v1/authorize?provider=github")
        assert "redirect_to=https%3A%2F%2Fapp.example.com%2Fauth%2Fcallback" in result["url"]

    @pytest.mark.asyncio
    async def test_update_user_sends_metadata(self, provider, gotrue):
        gotrue.add("PUT", "/auth/v1/user", body={**AUTH_USER, "user_metadata": {"theme": "dark"}})

        user = await provider.update_user("access_1", {"theme": "dark"})

        assert json.loads(gotrue.requests[0].content) == {"data": {"theme": "dark"}}
        assert user.metadata == {"theme": "dark"}


# ---------------------------------------------------------------------------
# Role merge
# ---------------------------------------------------------------------------

class TestRoleMerge:
    @pytest.mark.asyncio
    async def test_profile_role_wins(self, provider, gotrue, db):
        await db.insert(USER_PROFILES, {"id": "user_1", "role": "admin"})
        gotrue.add("GET", "/auth/v1/user", body=AUTH_USER)

        assert (await provider.get_user("access_1")).role == "admin"

    @pytest.mark.asyncio
    async def test_metadata_role_without_profile(self, provider, gotrue):
        gotrue.add("GET", "/auth/v1/user", body=AUTH_USER)

        assert (await provider.get_user("access_1")).role == "editor"

    @pytest.mark.asyncio
    async def test_profile_failure_degrades_to_metadata(self, provider, gotrue, db):
        db.fail_on = "query"
        gotrue.add("GET", "/auth/v1/user", body=AUTH_USER)

        assert (await provider.get_user("access_1")).role == "editor"

    @pytest.mark.asyncio
    async def test_record_role_then_default(self, provider, gotrue):
        gotrue.add("GET", "/auth/v1/user", body={"id": "user_2", "email": "b@example.com", "role": "authenticated"})
        assert (await provider.get_user("access_1")).role == "authenticated"

        gotrue.add("GET", "/auth/v1/user", body={"id": "user_3", "email": "c@example.com"})
        assert (await provider.get_user("access_1")).role == "user"


# ---------------------------------------------------------------------------
# MFA
# ---------------------------------------------------------------------------

class TestMFA:
    @pytest.mark.asyncio
    async def test_verify_without_challenge_issues_one(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/factors/f1/challenge", body={"id": "ch_1", "expires_at": 1700000000})
        gotrue.add("POST", "/auth/v1/factors/f1/verify", body=_session_body())

        await provider.verify_mfa("access_1", MFAVerifyParams(factor_id="f1", code="123456"))

        assert gotrue.paths() == [
            ("POST", "/auth/v1/factors/f1/challenge"),
            ("POST", "/auth/v1/factors/f1/verify"),
        ]
        assert json.loads(gotrue.requests[1].content) == {"challenge_id": "ch_1", "code": "123456"}

    @pytest.mark.asyncio
    async def test_verify_with_challenge_skips_challenge(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/factors/f1/verify", body=_session_body())

        await provider.verify_mfa("access_1", MFAVerifyParams(factor_id="f1", code="123456", challenge_id="ch_9"))

        assert gotrue.paths() == [("POST", "/auth/v1/factors/f1/verify")]

    @pytest.mark.asyncio
    async def test_enroll_returns_totp_secret(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/factors", body={
            "id": "f1",
            "type": "totp",
            "totp": {"qr_code": "data:image/svg+xml;...", "secret": "SECRET", "uri": "otpauth://totp/x"},
        })

        enrollment = await provider.enroll_mfa("access_1", MFAEnrollParams(friendly_name="phone"))

        assert enrollment.id == "f1"
        assert enrollment.totp.secret == "SECRET"
        assert json.loads(gotrue.requests[0].content) == {"factor_type": "totp", "friendly_name": "phone"}

    @pytest.mark.asyncio
    async def test_list_factors_keeps_totp_only(self, provider, gotrue):
        gotrue.add("GET", "/auth/v1/user", body={**AUTH_USER, "factors": [
            {"id": "f1", "factor_type": "totp", "status": "verified", "friendly_name": "phone"},
            {"id": "f2", "factor_type": "phone", "status": "verified"},
        ]})

        factors = await provider.list_mfa_factors("access_1")

        assert [(f.id, f.status) for f in factors] == [("f1", "verified")]

    @pytest.mark.asyncio
    async def test_unenroll(self, provider, gotrue):
        gotrue.add("DELETE", "/auth/v1/factors/f1", body={"id": "f1"})

        await provider.unenroll_mfa("access_1", "f1")

        assert gotrue.paths() == [("DELETE", "/auth/v1/factors/f1")]


# ---------------------------------------------------------------------------
# Live session events
# ---------------------------------------------------------------------------

class TestSessionEvents:
    @pytest.mark.asyncio
    async def test_subscribers_receive_events_until_unsubscribed(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/token", body=_session_body())
        gotrue.add("POST", "/auth/v1/logout", status=204)
        events = []

        subscribe = provider.supports_live_session_events()
        unsubscribe = subscribe(lambda event, session: events.append((event, session.user.id if session else None)))

        await provider.sign_in(SignInParams(email="user@example.com", password="pw"))
        await provider.refresh_session("refresh_1")
        await provider.sign_out("access_1")
        unsubscribe()
        await provider.sign_in(SignInParams(email="user@example.com", password="pw"))

        assert events == [(SIGNED_IN, "user_1"), (TOKEN_REFRESHED, "user_1"), (SIGNED_OUT, None)]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_sign_in(self, provider, gotrue):
        gotrue.add("POST", "/auth/v1/token", body=_session_body())

        def broken(event, session):
            raise RuntimeError("boom")

        provider.supports_live_session_events()(broken)

        session = await provider.sign_in(SignInParams(email="user@example.com", password="pw"))
        assert session.user.id == "user_1"
