"""Best-effort audit trail for authentication events."""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from agent_portal.database import get_pool
from agent_portal.models.account import AuditEvent

logger = structlog.get_logger(__name__)

LOGIN_FAILED = "login_failed"
LOGIN_SUCCESSFUL = "login_successful"
LOGOUT = "logout"
AGENT_REGISTERED = "agent_registered"
PASSWORD_RESET_REQUESTED = "password_reset_requested"
PASSWORD_RESET = "password_reset"


class AuditService:
    """Append events to auth_audit_log without ever failing the caller."""

    async def record(
        self,
        agent_id: Optional[UUID],
        action: str,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Write an audit event.

        Failures are logged and reported through the return value only;
        this method does not raise.

        Args:
            agent_id: Account UUID, or None before the account is known
            action: Event tag such as login_failed or logout
            details: Structured payload stored as JSON
            ip_address: Client address

        Returns:
            True if the event was stored, False otherwise
        """
        event = AuditEvent(
            agent_id=agent_id,
            action=action,
            details=details or {},
            ip_address=ip_address,
            created_at=datetime.now(timezone.utc),
        )
        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO auth_audit_log (id, agent_id, action, details, ip_address, created_at)
                    VALUES ($1, $2, $3, $4::jsonb, $5, $6)
                    """,
                    uuid4(),
                    event.agent_id,
                    event.action,
                    json.dumps(event.details, default=str),
                    event.ip_address,
                    event.created_at,
                )
        except Exception as e:
            logger.warning(
                "audit_event_write_failed",
                action=action,
                agent_id=str(agent_id) if agent_id else None,
                error=str(e),
            )
            return False

        logger.debug("audit_event_recorded", action=action)
        return True
