"""Authentication error taxonomy.

Each error knows the HTTP status it maps to and renders as an
``{"error": ..., "details": ...}`` body. Handlers raise these; the
application-level exception handler turns them into responses.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import status


class AuthError(Exception):
    """Base class for terminal authentication/authorization failures."""

    status_code: int = status.HTTP_401_UNAUTHORIZED
    error: str = "Authentication failed"
    details: str = "Authentication failed"

    def __init__(self, details: Optional[str] = None):
        if details is not None:
            self.details = details
        super().__init__(self.details)

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.details}


class MissingCredentialsError(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Missing credentials"
    details = "Agent ID and password are required"


class InvalidCredentialsError(AuthError):
    """Wrong identifier or password. The message never says which."""

    error = "Invalid credentials"
    details = "Agent ID or password is incorrect"

    def __init__(self, attempts_remaining: Optional[int] = None):
        self.attempts_remaining = attempts_remaining
        details = None
        if attempts_remaining is not None:
            details = (
                f"Agent ID or password is incorrect. "
                f"{attempts_remaining} attempts remaining."
            )
        super().__init__(details)

    def to_body(self) -> dict[str, Any]:
        body = super().to_body()
        if self.attempts_remaining is not None:
            body["attempts_remaining"] = self.attempts_remaining
        return body


class AccountInactiveError(AuthError):
    error = "Account inactive"
    details = "Your account has been deactivated. Please contact an administrator."


class AccountLockedError(AuthError):
    status_code = status.HTTP_423_LOCKED
    error = "Account locked"

    def __init__(self, locked_until: datetime, after_failure: bool = False):
        self.locked_until = locked_until
        unlock = locked_until.isoformat()
        if after_failure:
            details = f"Too many failed attempts. Account locked until {unlock}."
        else:
            details = f"Account is locked until {unlock}. Please try again later."
        super().__init__(details)

    def to_body(self) -> dict[str, Any]:
        body = super().to_body()
        body["locked_until"] = self.locked_until.isoformat()
        return body


class RateLimitedError(AuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Too many login attempts"
    details = "Please wait 15 minutes before trying again"

    def __init__(self, retry_after: int, details: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(details)

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class RegistrationRateLimitedError(RateLimitedError):
    error = "Too many registration attempts"
    details = "Please wait 15 minutes before trying again"


class UnauthenticatedError(AuthError):
    error = "No authentication token provided"
    details = "An auth-token cookie or Bearer token is required"


class InvalidTokenError(AuthError):
    error = "Invalid or expired token"
    details = "The authentication token is invalid or has expired"


class AccountNotFoundError(AuthError):
    error = "Agent not found"
    details = "The account for this token no longer exists"


class InvalidSessionError(AuthError):
    error = "Invalid session"
    details = "The session does not exist or has been ended"


class SessionExpiredError(AuthError):
    error = "Session expired"
    details = "The session has expired. Please log in again."


class EmailAlreadyRegisteredError(AuthError):
    status_code = status.HTTP_409_CONFLICT
    error = "Email already registered"
    details = "An agent with this email already exists"


class ServiceUnavailableError(AuthError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Service unavailable"
    details = "Authentication service not initialized"


class PasswordResetRateLimitedError(RateLimitedError):
    error = "Too many password reset attempts"
    details = "Please wait 15 minutes before trying again"


class EmailRequiredError(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Email is required"
    details = "An email address is required to reset a password"


class ResetFieldsMissingError(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Reset token and new password are required"
    details = "Both token and new_password must be provided"


class PasswordResetError(AuthError):
    """A reset token that cannot be used. All variants are 400."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid reset token"
    details = "Request a new password reset link"


class MalformedResetTokenError(PasswordResetError):
    error = "Invalid or expired reset token"


class ResetTokenTypeError(PasswordResetError):
    error = "Invalid token type"


class ResetTokenExpiredError(PasswordResetError):
    error = "Reset token has expired"
