"""
Unit tests for bearer token authentication.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from app.core.auth import (
    CurrentUser,
    _is_dev_mode_safe,
    _validate_jwt_token,
    get_current_admin_user,
)
from app.core.config import Settings
from app.core.security import create_access_token, decode_token


class TestValidateJwtToken:
    @pytest.mark.asyncio
    async def test_claims_become_current_user(self):
        token = create_access_token(
            "user-123",
            additional_claims={"email": "jane@cam.ac.uk", "name": "Jane Doe", "admin": True},
        )

        user = await _validate_jwt_token(token)

        assert user == CurrentUser(
            id="user-123", email="jane@cam.ac.uk", name="Jane Doe", is_admin=True
        )

    @pytest.mark.asyncio
    async def test_admin_claim_must_be_true(self):
        token = create_access_token("user-123", additional_claims={"admin": "true"})

        user = await _validate_jwt_token(token)

        assert user.is_admin is False

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self):
        token = create_access_token("user-123", expires_delta=timedelta(seconds=-30))

        with pytest.raises(HTTPException) as exc_info:
            await _validate_jwt_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_non_access_token_rejected(self):
        token = create_access_token("user-123", additional_claims={"type": "refresh"})

        with pytest.raises(HTTPException) as exc_info:
            await _validate_jwt_token(token)

        assert exc_info.value.detail["error"] == "INVALID_TOKEN_TYPE"

    @pytest.mark.asyncio
    async def test_garbage_token_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            await _validate_jwt_token("not-a-jwt")

        assert exc_info.value.status_code == 401


def test_decode_token_round_trip():
    payload = decode_token(create_access_token("user-123"))

    assert payload["sub"] == "user-123"
    assert payload["type"] == "access"


class TestGetCurrentAdminUser:
    @pytest.mark.asyncio
    async def test_admin_passes(self):
        admin = CurrentUser(id="admin-1", email="a@b.com", is_admin=True)

        assert await get_current_admin_user(admin) is admin

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self):
        user = CurrentUser(id="user-123", email="a@b.com")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin_user(user)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["error"] == "ADMIN_ACCESS_REQUIRED"


def test_display_name_falls_back_to_email():
    assert CurrentUser(id="a", email="a@b.com").display_name == "a@b.com"
    assert CurrentUser(id="a", email="a@b.com", name="Ada").display_name == "Ada"


class TestDevelopmentMode:
    def test_environment_defaults_to_production(self, monkeypatch):
        monkeypatch.delenv("PYTHON_ENV", raising=False)

        config = Settings(_env_file=None)

        assert config.is_production is True
        assert config.is_development is False

    def test_dev_mode_off_when_python_env_unset(self, monkeypatch):
        monkeypatch.delenv("PYTHON_ENV", raising=False)

        with patch("app.core.auth.settings", Settings(_env_file=None)):
            assert _is_dev_mode_safe() is False

    def test_dev_mode_on_when_explicitly_enabled(self, monkeypatch):
        monkeypatch.setenv("PYTHON_ENV", "development")

        with patch("app.core.auth.settings", Settings(_env_file=None)):
            assert _is_dev_mode_safe() is True

    def test_dev_mode_off_in_staging(self, monkeypatch):
        monkeypatch.setenv("PYTHON_ENV", "staging")

        with patch("app.core.auth.settings", Settings(_env_file=None)):
            assert _is_dev_mode_safe() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["dev-token", "dev-user:victim"])
    async def test_dev_tokens_rejected_outside_development(self, token):
        with patch("app.core.auth._DEVELOPMENT_MODE", False):
            with pytest.raises(HTTPException) as exc_info:
                await _validate_jwt_token(token)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_dev_tokens_accepted_in_development(self):
        with patch("app.core.auth._DEVELOPMENT_MODE", True):
            admin = await _validate_jwt_token("dev-token")
            applicant = await _validate_jwt_token("dev-user:user-123")

        assert admin.is_admin is True
        assert applicant.id == "user-123"
        assert applicant.is_admin is False
