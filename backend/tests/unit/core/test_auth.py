"""
Unit tests for token handling and principal resolution.

WHAT: create_access_token/verify_token, Principal and the
get_current_principal / require_admin dependencies.

WHY: Every endpoint trusts these to tell a requester from an admin.
"""

import pytest
from datetime import timedelta
from fastapi.security import HTTPAuthorizationCredentials

from helpdesk.core.auth import create_access_token, verify_token
from helpdesk.core.deps import get_current_principal, require_admin
from helpdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    TokenExpiredError,
    TokenInvalidError,
)
from helpdesk.core.principal import Principal
from helpdesk.models.user import UserRole


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestTokens:
    """Tests for JWT creation and verification."""

    def test_round_trip_keeps_claims(self):
        token = create_access_token({"user_id": 42, "role": "admin"})

        payload = verify_token(token)

        assert payload["user_id"] == 42
        assert payload["role"] == "admin"
        assert {"exp", "iat", "nbf"} <= set(payload)

    def test_expired_token(self):
        token = create_access_token({"user_id": 1}, expires_delta=timedelta(seconds=-10))

        with pytest.raises(TokenExpiredError):
            verify_token(token)

    def test_tampered_token(self):
        token = create_access_token({"user_id": 1})

        with pytest.raises(TokenInvalidError):
            verify_token(token[:-4] + "AAAA")

    def test_garbage_token(self):
        with pytest.raises(TokenInvalidError):
            verify_token("not-a-jwt")


class TestPrincipal:
    """Tests for the Principal value object."""

    def test_is_admin(self):
        admin = Principal(id=1, role=UserRole.ADMIN, email="a@example.com", username="a")
        user = Principal(id=2, role=UserRole.USER, email="u@example.com", username="u")

        assert admin.is_admin is True
        assert user.is_admin is False

    def test_unknown_role_is_rejected(self):
        """A role outside the enum must never be treated as either side."""
        principal = Principal(id=3, role="superuser", email="x@example.com", username="x")

        with pytest.raises(ValueError):
            principal.is_admin

    @pytest.mark.asyncio
    async def test_from_user(self, test_admin):
        principal = Principal.from_user(test_admin)

        assert principal.id == test_admin.id
        assert principal.role is UserRole.ADMIN
        assert principal.email == "root@example.com"
        assert principal.username == "root"


class TestGetCurrentPrincipal:
    """Tests for the bearer-token dependency."""

    @pytest.mark.asyncio
    async def test_valid_token(self, db_session, test_user):
        token = create_access_token({"user_id": test_user.id})

        principal = await get_current_principal(_credentials(token), db_session)

        assert principal.id == test_user.id
        assert principal.is_admin is False

    @pytest.mark.asyncio
    async def test_missing_credentials(self, db_session):
        with pytest.raises(AuthenticationError):
            await get_current_principal(None, db_session)

    @pytest.mark.asyncio
    async def test_expired_token_becomes_authentication_error(self, db_session, test_user):
        token = create_access_token({"user_id": test_user.id}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(AuthenticationError) as exc_info:
            await get_current_principal(_credentials(token), db_session)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_user_id(self, db_session):
        token = create_access_token({"role": "admin"})

        with pytest.raises(AuthenticationError):
            await get_current_principal(_credentials(token), db_session)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        token = create_access_token({"user_id": 9999})

        with pytest.raises(AuthenticationError):
            await get_current_principal(_credentials(token), db_session)

    @pytest.mark.asyncio
    async def test_role_comes_from_database(self, db_session, test_user):
        """A forged role claim does not promote the caller."""
        token = create_access_token({"user_id": test_user.id, "role": "admin"})

        principal = await get_current_principal(_credentials(token), db_session)

        assert principal.is_admin is False


class TestRequireAdmin:
    """Tests for the admin gate."""

    @pytest.mark.asyncio
    async def test_admin_passes(self):
        admin = Principal(id=1, role=UserRole.ADMIN, email="a@example.com", username="a")

        assert await require_admin(admin) is admin

    @pytest.mark.asyncio
    async def test_user_rejected(self):
        user = Principal(id=2, role=UserRole.USER, email="u@example.com", username="u")

        with pytest.raises(AuthorizationError):
            await require_admin(user)
