"""
Pytest configuration for the microSaaS backend tests.

Provides an in-memory DatabaseProvider and a scripted AuthProvider so
services and routers can be tested without MongoDB or Supabase.
"""

import copy
import math
import uuid
from typing import Any, Dict, List, Optional

import pytest

from app.core.exceptions import AuthError, DatabaseError
from app.providers.auth import (
    AuthProvider,
    AuthSession,
    MFAChallenge,
    MFAEnrollment,
    MFAFactor,
    User,
)
from app.providers.config import Providers
from app.providers.database import DatabaseProvider, PaginatedResult, PaginationOptions
from app.providers.payment import MockPaymentProvider


class InMemoryDatabaseProvider(DatabaseProvider):
    """DatabaseProvider over plain dicts. Tables keep insertion order."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_on: Optional[str] = None

    def _check(self, operation: str):
        if self.fail_on == operation:
            raise DatabaseError(f"Database {operation} error: simulated failure")

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        return all(row.get(key) == value for key, value in (filters or {}).items())

    async def query(self, table, filters=None):
        self._check("query")
        return [copy.deepcopy(row) for row in self._rows(table) if self._matches(row, filters)]

    async def query_with_pagination(self, table, options: PaginationOptions):
        self._check("paginated query")
        rows = [row for row in self._rows(table) if self._matches(row, options.filters)]
        if options.search_column and options.search_term:
            term = options.search_term.lower()
            rows = [row for row in rows if term in str(row.get(options.search_column, "")).lower()]
        if options.order_by:
            rows = sorted(
                rows,
                key=lambda row: row.get(options.order_by),
                reverse=options.order_direction == "desc",
            )
        start = (options.page - 1) * options.page_size
        return PaginatedResult(
            data=copy.deepcopy(rows[start:start + options.page_size]),
            total=len(rows),
            page=options.page,
            page_size=options.page_size,
            total_pages=math.ceil(len(rows) / options.page_size),
        )

    async def get_by_id(self, table, record_id):
        self._check("getById")
        for row in self._rows(table):
            if row.get("id") == record_id:
                return copy.deepcopy(row)
        return None

    async def insert(self, table, data):
        self._check("insert")
        record = {"id": str(uuid.uuid4()), **copy.deepcopy(data)}
        self._rows(table).append(record)
        return copy.deepcopy(record)

    async def update(self, table, record_id, data):
        self._check("update")
        for row in self._rows(table):
            if row.get("id") == record_id:
                row.update(copy.deepcopy(data))
                return copy.deepcopy(row)
        raise DatabaseError(f"Database update error: no record '{record_id}' in {table}")

    async def delete(self, table, record_id):
        self._check("delete")
        self.tables[table] = [row for row in self._rows(table) if row.get("id") != record_id]

    async def increment(self, table, filters, field, amount=1):
        self._check("increment")
        for row in self._rows(table):
            if self._matches(row, filters):
                row[field] = row.get(field, 0) + amount
                return copy.deepcopy(row)
        record = {"id": str(uuid.uuid4()), **filters, field: amount}
        self._rows(table).append(record)
        return copy.deepcopy(record)

    async def raw(self, query, params=None):
        self._check("raw query")
        return {"ok": 1.0, "command": query}


class FakeAuthProvider(AuthProvider):
    """Accepts any access token listed in `tokens`; everything else is rejected."""

    def __init__(self):
        self.tokens: Dict[str, User] = {}
        self.calls: List[str] = []

    async def sign_up(self, params):
        self.calls.append("sign_up")
        if params.email == "taken@example.com":
            raise AuthError("Sign up error: User already registered")
        return User(id="new_user_id", email=params.email, metadata=params.metadata)

    async def sign_in(self, params):
        self.calls.append("sign_in")
        if params.password != "Correct1pass":
            raise AuthError("Sign in error: Invalid login credentials")
        user = User(id="user_1", email=params.email, role="user")
        return AuthSession(user=user, access_token="token_1", refresh_token="refresh_1")

    async def sign_in_with_oauth(self, provider, redirect_to=None):
        return {"url": f"https://auth.example.com/authorize?provider={provider}"}

    async def sign_out(self, access_token):
        self.calls.append("sign_out")

    async def get_user(self, access_token):
        return self.tokens.get(access_token)

    async def get_session(self, access_token):
        user = await self.get_user(access_token)
        return AuthSession(user=user, access_token=access_token) if user else None

    async def refresh_session(self, refresh_token):
        if refresh_token != "refresh_1":
            raise AuthError("Refresh session error: Invalid Refresh Token")
        return AuthSession(user=User(id="user_1", email="a@example.com"), access_token="token_2")

    async def reset_password(self, email):
        self.calls.append("reset_password")

    async def update_user(self, access_token, metadata):
        user = self.tokens[access_token]
        return user.model_copy(update={"metadata": {**user.metadata, **metadata}})

    async def enroll_mfa(self, access_token, params):
        return MFAEnrollment(id="factor_1")

    async def challenge_mfa(self, access_token, factor_id):
        return MFAChallenge(id="challenge_1")

    async def verify_mfa(self, access_token, params):
        self.calls.append("verify_mfa")

    async def unenroll_mfa(self, access_token, factor_id):
        self.calls.append("unenroll_mfa")

    async def list_mfa_factors(self, access_token):
        return [MFAFactor(id="factor_1", status="verified")]


@pytest.fixture
def db():
    return InMemoryDatabaseProvider()


@pytest.fixture
def auth():
    provider = FakeAuthProvider()
    provider.tokens["user_token"] = User(id="user_1", email="user@example.com", role="user")
    provider.tokens["admin_token"] = User(id="admin_1", email="admin@example.com", role="admin")
    return provider


@pytest.fixture
def providers(db, auth):
    return Providers(database=db, auth=auth, payment=MockPaymentProvider())


@pytest.fixture
def user_headers():
    return {"Authorization": "Bearer user_token"}


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer admin_token"}
