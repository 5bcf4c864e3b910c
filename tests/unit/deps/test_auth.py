"""Unit tests for auth dependencies - JWT validation and user auto-creation."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from jose import JWTError

from app.api.deps.auth import (
    decode_access_token,
    get_current_user,
    get_current_user_optional,
)

from tests.helpers.auth import make_token
from tests.helpers.mock_factories import make_mock_user


def _credentials(token: str) -> MagicMock:
    creds = MagicMock()
    creds.credentials = token
    return creds


# ---------------------------------------------------------------------------
# decode_access_token
# ---------------------------------------------------------------------------


class TestDecodeAccessToken:
    """Tests for HS256 verification."""

    def test_valid_token(self, jwt_settings):
        user_id = str(uuid.uuid4())
        claims = decode_access_token(make_token(user_id))
        assert claims["sub"] == user_id

    def test_wrong_secret(self, jwt_settings):
        with pytest.raises(JWTError):
            decode_access_token(make_token(str(uuid.uuid4()), secret="other-secret"))

    def test_wrong_audience(self, jwt_settings):
        with pytest.raises(JWTError):
            decode_access_token(make_token(str(uuid.uuid4()), aud="someone-else"))


# ---------------------------------------------------------------------------
# get_current_user
# ---------------------------------------------------------------------------


class TestGetCurrentUser:
    """Tests for bearer authentication."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None, AsyncMock())
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, jwt_settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials("not-a-jwt"), AsyncMock())
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_uuid_subject(self, jwt_settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(make_token("not-a-uuid")), AsyncMock())
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_returns_or_creates_user(self, jwt_settings):
        user_id = uuid.uuid4()
        user = make_mock_user(id=user_id, username="alex")
        token = make_token(str(user_id), preferred_username="alex", email="alex@example.com")
        db = AsyncMock()

        with patch("app.api.deps.auth.user_ops") as mock_ops:
            mock_ops.get_or_create = AsyncMock(return_value=user)
            result = await get_current_user(_credentials(token), db)

        assert result == user
        mock_ops.get_or_create.assert_awaited_once_with(
            db, user_id=user_id, username="alex", email="alex@example.com"
        )

    @pytest.mark.asyncio
    async def test_username_falls_back_to_email(self, jwt_settings):
        user_id = uuid.uuid4()
        token = make_token(str(user_id), email="sam@example.com")

        with patch("app.api.deps.auth.user_ops") as mock_ops:
            mock_ops.get_or_create = AsyncMock(return_value=make_mock_user())
            await get_current_user(_credentials(token), AsyncMock())

        assert mock_ops.get_or_create.call_args.kwargs["username"] == "sam"


class TestGetCurrentUserOptional:
    """Tests for optional authentication."""

    @pytest.mark.asyncio
    async def test_anonymous(self):
        assert await get_current_user_optional(None, AsyncMock()) is None

    @pytest.mark.asyncio
    async def test_invalid_token_is_anonymous(self, jwt_settings):
        assert await get_current_user_optional(_credentials("garbage"), AsyncMock()) is None
