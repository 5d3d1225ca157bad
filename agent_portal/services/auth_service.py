"""Authentication service for JWT tokens and password hashing."""

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
import structlog
from pydantic import ValidationError

from agent_portal.config import get_settings
from agent_portal.models.account import Account, TokenClaims
from agent_portal.models.auth import MAX_PASSWORD_BYTES
from agent_portal.services.errors import (
    InvalidTokenError,
    MalformedResetTokenError,
    ResetTokenTypeError,
)

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
# Non-null claims; email must be present but may be null (see TokenClaims)
REQUIRED_CLAIMS = ["sub", "agent_id", "role", "iat", "exp"]
RESET_TOKEN_TYPE = "reset"


class AuthService:
    """Password verification and stateless token issue/verify."""

    def __init__(self):
        self.settings = get_settings()

    @property
    def token_lifetime(self) -> timedelta:
        """Tokens live exactly as long as the session they accompany."""
        return timedelta(days=self.settings.session_lifetime_days)

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string

        Raises:
            ValueError: If the password exceeds bcrypt's 72-byte input limit
        """
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str | None) -> bool:
        """Verify a password against a bcrypt hash.

        A missing or malformed stored hash counts as a mismatch, as does a
        password longer than bcrypt accepts (no stored hash can match it).

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        if not password_hash:
            return False
        candidate = password.encode("utf-8")
        if len(candidate) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(candidate, password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("password_hash_malformed")
            return False

    def create_access_token(self, account: Account) -> str:
        """Create a signed JWT for an account.

        Args:
            account: Authenticated account

        Returns:
            Encoded JWT string carrying id, agent code, role and email
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(account.id),
            "agent_id": account.agent_id,
            "role": account.role.value,
            "email": account.email,
            "iat": now,
            "exp": now + self.token_lifetime,
        }
        token = jwt.encode(payload, self.settings.jwt_secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_created",
            agent_id=str(account.id),
            expires_days=self.settings.session_lifetime_days,
        )
        return token

    def validate_access_token(self, token: str) -> TokenClaims:
        """Decode and validate a JWT access token.

        Verification fails closed: any problem yields InvalidTokenError and
        no claims are returned.

        Args:
            token: Encoded JWT string

        Returns:
            Verified TokenClaims

        Raises:
            InvalidTokenError: If the token is malformed, badly signed,
                expired, or missing claims
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
            return TokenClaims(**payload)
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("The authentication token has expired")
        except jwt.InvalidTokenError as e:
            logger.info("access_token_rejected", reason=str(e))
            raise InvalidTokenError()
        except ValidationError:
            logger.info("access_token_rejected", reason="claims_invalid")
            raise InvalidTokenError()

    def create_reset_token(self, email: str) -> tuple[str, datetime]:
        """Create a short-lived password reset token bound to an email.

        Returns:
            Tuple of (encoded token, expiry time)
        """
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(minutes=self.settings.password_reset_token_minutes)
        payload = {
            "type": RESET_TOKEN_TYPE,
            "email": email,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.settings.jwt_secret, algorithm=JWT_ALGORITHM)
        return token, expires_at

    def validate_reset_token(self, token: str) -> str:
        """Verify a reset token and return the email it was issued for.

        Raises:
            MalformedResetTokenError: Bad signature, expired or malformed
            ResetTokenTypeError: A validly signed token that is not a reset token
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp"]},
            )
        except jwt.InvalidTokenError as e:
            logger.info("reset_token_rejected", reason=str(e))
            raise MalformedResetTokenError()

        if payload.get("type") != RESET_TOKEN_TYPE:
            raise ResetTokenTypeError()

        return (payload.get("email") or "").lower()
