"""Server-side session lifecycle for agent logins."""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import structlog

from agent_portal.config import get_settings
from agent_portal.database import as_utc, get_pool
from agent_portal.models.account import AgentSession
from agent_portal.services.errors import InvalidSessionError, SessionExpiredError

logger = structlog.get_logger(__name__)

SESSION_COLUMNS = (
    "id, session_id, agent_id, ip_address, user_agent, created_at, "
    "last_activity, expires_at, ended_at, is_active"
)


def _row_to_session(row) -> AgentSession:
    return AgentSession(
        id=row["id"],
        session_id=row["session_id"],
        agent_id=row["agent_id"],
        ip_address=row["ip_address"],
        user_agent=row["user_agent"],
        created_at=as_utc(row["created_at"]),
        last_activity=as_utc(row["last_activity"]),
        expires_at=as_utc(row["expires_at"]),
        ended_at=as_utc(row["ended_at"]),
        is_active=row["is_active"],
    )


class SessionService:
    """Create, validate and invalidate rows in agent_sessions.

    Sessions expire at a fixed time after creation. Expiry is detected
    lazily when a session is validated; nothing sweeps the table.
    """

    def __init__(self):
        self.settings = get_settings()

    @property
    def lifetime(self) -> timedelta:
        return timedelta(days=self.settings.session_lifetime_days)

    async def create(
        self, account_id: UUID, ip_address: str | None, user_agent: str | None
    ) -> AgentSession:
        """Start a session for an authenticated account.

        Args:
            account_id: Owning account UUID
            ip_address: Client address
            user_agent: Client User-Agent header

        Returns:
            The created AgentSession
        """
        now = datetime.now(timezone.utc)
        session = AgentSession(
            id=uuid4(),
            session_id=secrets.token_urlsafe(32),
            agent_id=account_id,
            ip_address=ip_address,
            user_agent=user_agent or "Unknown",
            created_at=now,
            last_activity=now,
            expires_at=now + self.lifetime,
            is_active=True,
        )

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO agent_sessions
                    (id, session_id, agent_id, ip_address, user_agent,
                     created_at, last_activity, expires_at, is_active)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, TRUE)
                """,
                session.id,
                session.session_id,
                session.agent_id,
                session.ip_address,
                session.user_agent,
                session.created_at,
                session.last_activity,
                session.expires_at,
            )

        logger.info(
            "session_created",
            agent_id=str(account_id),
            expires_at=session.expires_at.isoformat(),
        )
        return session

    async def validate(self, session_id: str, account_id: UUID) -> AgentSession:
        """Check that a session is live for the given account.

        An expired session is ended (is_active=false, ended_at set) before
        being reported, so later checks see it as simply invalid. A valid
        session has its last_activity refreshed; expires_at never moves.

        Args:
            session_id: Opaque session identifier from the session-id cookie
            account_id: Account the token claims

        Returns:
            The live AgentSession

        Raises:
            InvalidSessionError: No active session with this id for the account
            SessionExpiredError: The session was active but past expires_at
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {SESSION_COLUMNS}
                FROM agent_sessions
                WHERE session_id = $1 AND agent_id = $2 AND is_active = TRUE
                """,
                session_id,
                account_id,
            )

            if row is None:
                logger.warning("session_not_found", agent_id=str(account_id))
                raise InvalidSessionError()

            expires_at = as_utc(row["expires_at"])
            if expires_at <= now:
                await conn.execute(
                    """
                    UPDATE agent_sessions
                    SET is_active = FALSE, ended_at = $1, updated_at = $1
                    WHERE id = $2
                    """,
                    now,
                    row["id"],
                )
                logger.info(
                    "session_expired",
                    agent_id=str(account_id),
                    expired_at=expires_at.isoformat(),
                )
                raise SessionExpiredError()

            await conn.execute(
                """
                UPDATE agent_sessions
                SET last_activity = $1, updated_at = $1
                WHERE id = $2
                """,
                now,
                row["id"],
            )

        session = _row_to_session(row)
        return session.model_copy(update={"last_activity": now})

    async def invalidate(self, session_id: str, account_id: UUID) -> bool:
        """End a session on logout.

        Args:
            session_id: Opaque session identifier
            account_id: Owning account UUID

        Returns:
            True if an active session was ended, False otherwise
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE agent_sessions
                SET is_active = FALSE, ended_at = $1, updated_at = $1
                WHERE session_id = $2 AND agent_id = $3 AND is_active = TRUE
                """,
                now,
                session_id,
                account_id,
            )

        ended = result != "UPDATE 0"
        logger.info("session_invalidated", agent_id=str(account_id), ended=ended)
        return ended

    async def invalidate_all(self, account_id: UUID) -> int:
        """End every active session of an account.

        Returns:
            Number of sessions ended
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE agent_sessions
                SET is_active = FALSE, ended_at = $1, updated_at = $1
                WHERE agent_id = $2 AND is_active = TRUE
                """,
                now,
                account_id,
            )

        ended = int(result.split()[-1]) if result else 0
        logger.info("sessions_invalidated", agent_id=str(account_id), count=ended)
        return ended
