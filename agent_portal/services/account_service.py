"""Agent account lookups and login-state persistence."""

import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from agent_portal.database import as_utc, get_pool
from agent_portal.models.account import Account, Role
from agent_portal.services.auth_service import AuthService
from agent_portal.services.lockout import LockoutDecision, LockoutPolicy

logger = structlog.get_logger(__name__)

ACCOUNT_COLUMNS = (
    "id, agent_id, name, email, role, is_active, failed_login_attempts, "
    "locked_until, last_login, created_at"
)
AGENT_CODE_PREFIX = "AG"


def _row_to_account(row) -> Account:
    return Account(
        id=row["id"],
        agent_id=row["agent_id"],
        name=row["name"],
        email=row["email"],
        role=row["role"],
        is_active=row["is_active"],
        failed_login_attempts=row["failed_login_attempts"] or 0,
        locked_until=as_utc(row["locked_until"]),
        last_login=as_utc(row["last_login"]),
        created_at=as_utc(row["created_at"]),
    )


def generate_agent_code() -> str:
    """Return a random agent login code such as AG482913."""
    return f"{AGENT_CODE_PREFIX}{secrets.randbelow(10**6):06d}"


class AccountService:
    """Service over the agents table."""

    def __init__(self):
        self.auth_service = AuthService()

    async def get_for_login(self, identifier: str) -> Optional[tuple[Account, str]]:
        """Look up an account by agent code, or by email when it contains '@'.

        Args:
            identifier: Agent code or email address (already stripped)

        Returns:
            Tuple of (Account, password_hash) or None if not found
        """
        if "@" in identifier:
            where = "LOWER(email) = LOWER($1)"
        else:
            where = "agent_id = $1"

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {ACCOUNT_COLUMNS}, password_hash
                FROM agents
                WHERE {where}
                """,
                identifier,
            )

        if row is None:
            return None

        return _row_to_account(row), row["password_hash"]

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        """Get an account by UUID.

        Args:
            account_id: Account UUID

        Returns:
            Account or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {ACCOUNT_COLUMNS}
                FROM agents
                WHERE id = $1
                """,
                account_id,
            )

        if row is None:
            return None

        return _row_to_account(row)

    async def record_failed_login(
        self, account_id: UUID, policy: LockoutPolicy, now: datetime
    ) -> LockoutDecision:
        """Count a wrong password and lock the account at the threshold.

        The increment and the lock happen in one UPDATE, so concurrent
        failures against the same account are all counted.

        Args:
            account_id: Account UUID
            policy: Threshold and lock duration
            now: Time of the failure

        Returns:
            LockoutDecision built from the stored counter and lock
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE agents
                SET failed_login_attempts = COALESCE(failed_login_attempts, 0) + 1,
                    locked_until = CASE
                        WHEN COALESCE(failed_login_attempts, 0) + 1 >= $1 THEN $2
                        ELSE NULL
                    END,
                    updated_at = $3
                WHERE id = $4
                RETURNING failed_login_attempts, locked_until
                """,
                policy.max_attempts,
                policy.lock_expiry(now),
                now,
                account_id,
            )

        if row is None:
            # Account removed between lookup and update
            logger.warning("failed_login_account_missing", agent_id=str(account_id))
            return policy.register_failure(0, now)

        decision = policy.decision_from_counter(
            row["failed_login_attempts"], as_utc(row["locked_until"])
        )

        if decision.locked:
            logger.warning(
                "account_locked",
                agent_id=str(account_id),
                locked_until=decision.locked_until.isoformat(),
            )

        return decision

    async def record_successful_login(self, account_id: UUID) -> datetime:
        """Reset lockout state and stamp last_login.

        Returns:
            The recorded login time
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE agents
                SET failed_login_attempts = 0, locked_until = NULL,
                    last_login = $1, updated_at = $1
                WHERE id = $2
                """,
                now,
                account_id,
            )

        return now

    async def email_exists(self, email: str) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM agents WHERE LOWER(email) = LOWER($1)",
                email,
            )
        return found is not None

    async def agent_code_exists(self, agent_code: str) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM agents WHERE agent_id = $1",
                agent_code,
            )
        return found is not None

    async def create_agent(
        self,
        agent_code: str,
        name: str,
        email: str,
        password: str,
        role: Role = Role.AGENT,
    ) -> Account:
        """Create an active agent with a hashed password.

        Args:
            agent_code: Unique login code
            name: Display name
            email: Lower-cased email address
            password: Plain-text password (will be hashed)
            role: Account role

        Returns:
            Created Account
        """
        account_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = self.auth_service.hash_password(password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO agents
                    (id, agent_id, name, email, password_hash, role, is_active,
                     failed_login_attempts, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, TRUE, 0, $7, $7)
                """,
                account_id,
                agent_code,
                name,
                email,
                password_hash,
                role.value,
                now,
            )

        logger.info("agent_created", agent_id=str(account_id), role=role.value)

        return Account(
            id=account_id,
            agent_id=agent_code,
            name=name,
            email=email,
            role=role,
            is_active=True,
            failed_login_attempts=0,
            created_at=now,
        )

    async def get_by_email(self, email: str) -> Optional[Account]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {ACCOUNT_COLUMNS}
                FROM agents
                WHERE LOWER(email) = LOWER($1)
                """,
                email,
            )

        if row is None:
            return None

        return _row_to_account(row)

    async def store_reset_token(
        self, account_id: UUID, reset_token: str, expires_at: datetime
    ) -> None:
        """Replace any outstanding reset token for the account."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE agents
                SET reset_token = $1, reset_token_expires = $2, updated_at = $3
                WHERE id = $4
                """,
                reset_token,
                expires_at,
                datetime.now(timezone.utc),
                account_id,
            )

    async def get_by_reset_token(
        self, reset_token: str
    ) -> Optional[tuple[Account, Optional[datetime]]]:
        """Find the account holding a reset token.

        Returns:
            Tuple of (Account, reset_token_expires) or None if no account
            holds this token
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {ACCOUNT_COLUMNS}, reset_token_expires
                FROM agents
                WHERE reset_token = $1
                """,
                reset_token,
            )

        if row is None:
            return None

        return _row_to_account(row), as_utc(row["reset_token_expires"])

    async def reset_password(self, account_id: UUID, password: str) -> None:
        """Store a new password hash and consume the reset token."""
        password_hash = self.auth_service.hash_password(password)
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE agents
                SET password_hash = $1, reset_token = NULL, reset_token_expires = NULL,
                    updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                account_id,
            )

        logger.info("password_reset_completed", agent_id=str(account_id))
