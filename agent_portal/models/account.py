"""Account, session and audit models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Account roles.

    The same enumeration is enforced by the agents.role check constraint
    and by permission derivation.
    """

    ADMIN = "admin"
    SUPER_AGENT = "super_agent"
    AGENT = "agent"
    USER = "user"


class Account(BaseModel):
    """A login-capable agent record (password hash excluded)."""

    id: UUID
    agent_id: str
    name: str
    email: Optional[str] = None
    role: Role = Role.AGENT
    is_active: bool = True
    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AgentSession(BaseModel):
    """A server-tracked login session, revocable independent of token expiry."""

    id: UUID
    session_id: str
    agent_id: UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None
    is_active: bool = True


class AuditEvent(BaseModel):
    """An append-only security event."""

    agent_id: Optional[UUID] = None
    action: str
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    created_at: datetime


class TokenClaims(BaseModel):
    """Verified claims carried by a bearer token."""

    sub: UUID
    agent_id: str
    role: Role
    # Required key, nullable value
    email: Optional[str]
    iat: int
    exp: int
