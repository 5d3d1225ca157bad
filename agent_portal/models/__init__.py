"""Models package exports."""

from agent_portal.models.account import Account, AgentSession, AuditEvent, Role, TokenClaims
from agent_portal.models.auth import (
    AgentSummary,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
)

__all__ = [
    "Account",
    "AgentSession",
    "AgentSummary",
    "AuditEvent",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "MeResponse",
    "RegisterRequest",
    "RegisterResponse",
    "Role",
    "TokenClaims",
]
