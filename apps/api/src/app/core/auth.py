"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
Bearer tokens are JWTs issued by the identity provider. The ``sub`` claim is
the user's identity (and the key of their application record); the boolean
``admin`` claim is the only authorization signal the API trusts.

SECURITY NOTE:
- Development mode test tokens are ONLY accepted when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production to disable them
"""

import logging
import os
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.security import decode_token

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    Represents an authenticated user.

    Populated from JWT claims after token validation.

    Attributes:
        id: Opaque identity from the ``sub`` claim
        email: User's email address
        name: User's display name (optional)
        is_admin: Value of the ``admin`` claim
    """

    id: str
    email: str
    name: str | None = None
    is_admin: bool = False

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Admin"

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, admin={self.is_admin})"


def _is_dev_mode_safe() -> bool:
    """
    Check if development mode is safe to enable.

    Requires settings.is_development, not settings.is_production, and a
    PYTHON_ENV variable that is neither "production" nor "staging".
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var != "production"
        and env_var != "staging"
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

_DEV_ADMIN = CurrentUser(
    id="dev-admin",
    email="admin@tutor-programme.dev",
    name="Development Admin",
    is_admin=True,
)

# Prefix for development applicant tokens: "dev-user:<uid>"
_DEV_USER_PREFIX = "dev-user:"


def _credentials_error(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate a bearer token and extract user claims.

    Args:
        token: JWT token string from Authorization header

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If token is invalid, expired or missing claims
    """
    if _DEVELOPMENT_MODE:
        if token == "dev-token":
            logger.debug("Development mode: Using admin test token")
            return _DEV_ADMIN

        if token.startswith(_DEV_USER_PREFIX) and len(token) > len(_DEV_USER_PREFIX):
            uid = token[len(_DEV_USER_PREFIX) :]
            return CurrentUser(id=uid, email=f"{uid}@tutor-programme.dev", name="Test Applicant")

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _credentials_error("INVALID_TOKEN", "Invalid or expired authentication token.")

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token is missing the 'sub' claim")
        raise _credentials_error(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        )

    token_type = payload.get("type", "access")
    if token_type != "access":
        logger.warning(f"Invalid token type: {token_type}")
        raise _credentials_error(
            "INVALID_TOKEN_TYPE", "This endpoint requires an access token."
        )

    return CurrentUser(
        id=str(user_id),
        email=payload.get("email", ""),
        name=payload.get("name"),
        is_admin=payload.get("admin") is True,
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency that validates the bearer token and returns the user.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
    """
    user = await _validate_jwt_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id}")
    return user


async def get_current_admin_user(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    FastAPI dependency for administrator endpoints.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
        HTTPException 403: If the token has no admin claim
    """
    if not user.is_admin:
        logger.warning(f"Access denied: user {user.id} ({user.email}) has no admin claim")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ADMIN_ACCESS_REQUIRED",
                "message": "Administrator access is required for this endpoint.",
            },
        )

    return user


__all__ = [
    "CurrentUser",
    "get_current_user",
    "get_current_admin_user",
]
