"""
Core package - settings, persistence, identity and shared infrastructure
used by the applications module.
"""

from app.core.auth import CurrentUser, get_current_admin_user, get_current_user
from app.core.config import get_settings, settings
from app.core.database import Base, async_session_maker, get_db
from app.core.logging import configure_logging
from app.core.rate_limit import RateLimitExceeded, check_rate_limit

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "async_session_maker",
    "get_db",
    "configure_logging",
    # Identity
    "CurrentUser",
    "get_current_user",
    "get_current_admin_user",
    # Admin action throttling
    "RateLimitExceeded",
    "check_rate_limit",
]
