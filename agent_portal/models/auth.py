"""Auth request and response models with validation."""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from agent_portal.models.account import Role

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SELF_REGISTRATION_ROLES = {Role.AGENT, Role.SUPER_AGENT}

MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes and bcrypt 5 rejects anything longer
MAX_PASSWORD_BYTES = 72


def check_new_password(password: str) -> str:
    """Apply the strength and size rules for a password being set."""
    if not password.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return password


class LoginRequest(BaseModel):
    """Login credentials.

    Both fields are optional at the schema level so that a missing value is
    reported as missing credentials rather than a schema violation.

    Attributes:
        agent_id: Agent code, or email address when it contains '@'
        password: Plain-text password
    """

    agent_id: Optional[str] = None
    password: Optional[str] = None


class AgentSummary(BaseModel):
    """Public view of an account. Never carries the password hash."""

    id: UUID
    agent_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    role: Role
    last_login: Optional[datetime] = None


class SessionSummary(BaseModel):
    """Session identifier and absolute expiry returned at login."""

    id: str
    expires_at: datetime


class LoginResponse(BaseModel):
    """Successful login response.

    The bearer token itself is delivered only as an HttpOnly cookie.
    """

    success: bool = True
    message: str = "Login successful"
    agent: AgentSummary
    session: SessionSummary
    permissions: dict[str, bool]


class SessionStatus(BaseModel):
    """Session check result reported by /auth/me."""

    id: str
    valid: bool


class MeResponse(BaseModel):
    """Authenticated identity, permissions and session status."""

    authenticated: bool = True
    agent: AgentSummary
    permissions: dict[str, bool]
    session: Optional[SessionStatus] = None


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logout successful"


class RegisterRequest(BaseModel):
    """Agent self-registration request.

    Attributes:
        name: Display name (1-255 chars)
        email: Contact and alternate login identifier
        password: Plain-text password (8 chars to 72 bytes)
        role: agent or super_agent
    """

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    password: str
    role: Role = Role.AGENT

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be empty or whitespace only")
        return stripped

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        """Normalize to lower case and require a plausible address."""
        normalized = v.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError("Invalid email format")
        return normalized

    @field_validator("password")
    @classmethod
    def password_rules(cls, v: str) -> str:
        return check_new_password(v)

    @field_validator("role")
    @classmethod
    def role_allowed(cls, v: Role) -> Role:
        if v not in SELF_REGISTRATION_ROLES:
            raise ValueError("Invalid role specified")
        return v


class RegisteredAgent(BaseModel):
    id: UUID
    agent_id: str
    name: str
    email: str
    role: Role
    is_active: bool
    created_at: datetime


class RegisterResponse(BaseModel):
    success: bool = True
    message: str = "Agent registered successfully"
    agent: RegisteredAgent


class ForgotPasswordRequest(BaseModel):
    """Password reset request. A missing email is reported by the handler."""

    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    """Password reset completion.

    Attributes:
        token: Reset token from the reset email
        new_password: Replacement password (8 chars to 72 bytes)
    """

    token: Optional[str] = None
    new_password: Optional[str] = None

    @field_validator("new_password")
    @classmethod
    def password_rules(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return v
        return check_new_password(v)


class MessageResponse(BaseModel):
    message: str
