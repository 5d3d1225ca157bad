"""FastAPI dependencies for credentials, client identity and auth components."""

from datetime import timedelta
from typing import Optional

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from agent_portal.api.cookies import AUTH_COOKIE, SESSION_COOKIE
from agent_portal.config import get_settings
from agent_portal.services.errors import (
    PasswordResetRateLimitedError,
    RegistrationRateLimitedError,
    ServiceUnavailableError,
)
from agent_portal.services.lockout import LockoutPolicy
from agent_portal.services.rate_limiter import LoginRateLimiter

bearer_scheme = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> str:
    """Client address: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return "unknown"


async def get_auth_token(
    auth_token: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Bearer token from the auth-token cookie, falling back to the Authorization header.

    Returns:
        Raw token string, or None when neither source is present
    """
    if auth_token:
        return auth_token
    if credentials:
        return credentials.credentials
    return None


async def get_session_cookie(
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> Optional[str]:
    return session_id or None


def _limiter(request: Request, name: str) -> LoginRateLimiter:
    limiter: Optional[LoginRateLimiter] = getattr(request.app.state, name, None)
    if limiter is None:
        raise ServiceUnavailableError()
    return limiter


def get_login_rate_limiter(request: Request) -> LoginRateLimiter:
    """Login limiter owned by the application (created in the lifespan)."""
    return _limiter(request, "login_rate_limiter")


def get_register_rate_limiter(request: Request) -> LoginRateLimiter:
    """Registration limiter owned by the application (created in the lifespan)."""
    return _limiter(request, "register_rate_limiter")


def enforce_register_rate_limit(request: Request) -> None:
    """Count a registration attempt before the body is validated.

    Runs as a route dependency, so malformed submissions use up the
    allowance too.
    """
    limiter = get_register_rate_limiter(request)
    client_ip = get_client_ip(request)
    if not limiter.check(client_ip):
        raise RegistrationRateLimitedError(retry_after=limiter.retry_after(client_ip))


def enforce_password_reset_rate_limit(request: Request) -> None:
    """Throttle reset requests and completions per client address."""
    limiter = _limiter(request, "password_reset_rate_limiter")
    client_ip = get_client_ip(request)
    if not limiter.check(client_ip):
        raise PasswordResetRateLimitedError(retry_after=limiter.retry_after(client_ip))


def get_lockout_policy() -> LockoutPolicy:
    settings = get_settings()
    return LockoutPolicy(
        max_attempts=settings.lockout_max_attempts,
        lock_duration=timedelta(minutes=settings.lockout_duration_minutes),
    )
