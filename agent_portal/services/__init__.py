"""Services package exports."""

from agent_portal.services.logging_service import configure_logging, get_logger
from agent_portal.services.permissions import get_permissions_by_role
from agent_portal.services.rate_limiter import LoginRateLimiter

__all__ = [
    "LoginRateLimiter",
    "configure_logging",
    "get_logger",
    "get_permissions_by_role",
]
