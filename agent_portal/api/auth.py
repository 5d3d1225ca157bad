"""Authentication API endpoints: login, me, logout, register, password reset."""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from agent_portal.api.cookies import clear_auth_cookies, set_auth_cookies
from agent_portal.api.dependencies import (
    get_auth_token,
    get_client_ip,
    enforce_password_reset_rate_limit,
    enforce_register_rate_limit,
    get_lockout_policy,
    get_login_rate_limiter,
    get_session_cookie,
)
from agent_portal.config import get_settings
from agent_portal.models.account import Account
from agent_portal.models.auth import (
    AgentSummary,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    MeResponse,
    MessageResponse,
    RegisteredAgent,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionStatus,
    SessionSummary,
)
from agent_portal.services.account_service import AccountService, generate_agent_code
from agent_portal.services.audit_service import (
    AGENT_REGISTERED,
    LOGIN_FAILED,
    LOGIN_SUCCESSFUL,
    LOGOUT,
    PASSWORD_RESET,
    PASSWORD_RESET_REQUESTED,
    AuditService,
)
from agent_portal.services.auth_service import AuthService
from agent_portal.services.errors import (
    AccountInactiveError,
    AccountLockedError,
    AccountNotFoundError,
    AuthError,
    EmailAlreadyRegisteredError,
    EmailRequiredError,
    InvalidCredentialsError,
    MissingCredentialsError,
    PasswordResetError,
    RateLimitedError,
    ResetFieldsMissingError,
    ResetTokenExpiredError,
    UnauthenticatedError,
)
from agent_portal.services.lockout import LockoutPolicy
from agent_portal.services.permissions import get_permissions_by_role
from agent_portal.services.rate_limiter import LoginRateLimiter
from agent_portal.services.session_service import SessionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

MAX_AGENT_CODE_ATTEMPTS = 10
PASSWORD_RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


def _agent_summary(account: Account) -> AgentSummary:
    """Convert an Account to its public summary."""
    return AgentSummary(
        id=account.id,
        agent_id=account.agent_id,
        name=account.name,
        email=account.email,
        role=account.role,
        last_login=account.last_login,
    )


def _internal_error(details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "details": details},
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    rate_limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
    lockout: LockoutPolicy = Depends(get_lockout_policy),
):
    """Authenticate an agent and start a session.

    Order of checks: credentials present, client rate limit, account
    lookup, active flag, lock state, password. A wrong password advances
    the lockout counter. Success resets it, issues a token, creates a
    session and sets both auth cookies.

    Raises:
        MissingCredentialsError 400, InvalidCredentialsError 401,
        AccountInactiveError 401, AccountLockedError 423,
        RateLimitedError 429
    """
    identifier = (credentials.agent_id or "").strip()
    password = credentials.password or ""

    if not identifier or not password:
        raise MissingCredentialsError()

    client_ip = get_client_ip(request)
    user_agent = request.headers.get("user-agent")

    if not rate_limiter.check(client_ip):
        retry_after = rate_limiter.retry_after(client_ip)
        logger.warning("login_rate_limited", retry_after=retry_after)
        raise RateLimitedError(retry_after=retry_after)

    settings = get_settings()
    account_service = AccountService()
    auth_service = AuthService()
    audit = AuditService()

    try:
        result = await account_service.get_for_login(identifier)

        if result is None:
            await audit.record(
                None,
                LOGIN_FAILED,
                {"reason": "invalid_agent_id", "attempted_agent_id": identifier},
                client_ip,
            )
            raise InvalidCredentialsError()

        account, password_hash = result
        now = datetime.now(timezone.utc)

        try:
            lockout.ensure_can_attempt(account, now)
        except (AccountInactiveError, AccountLockedError) as e:
            details = {"agent_id": account.agent_id}
            if isinstance(e, AccountLockedError):
                details.update(reason="account_locked", locked_until=e.locked_until.isoformat())
            else:
                details["reason"] = "account_inactive"
            await audit.record(account.id, LOGIN_FAILED, details, client_ip)
            raise

        if not auth_service.verify_password(password, password_hash):
            decision = await account_service.record_failed_login(account.id, lockout, now)
            await audit.record(
                account.id,
                LOGIN_FAILED,
                {
                    "reason": "invalid_password",
                    "agent_id": account.agent_id,
                    "failed_attempts": decision.failed_attempts,
                    "account_locked": decision.locked,
                },
                client_ip,
            )
            if decision.locked:
                raise AccountLockedError(decision.locked_until, after_failure=True)
            raise InvalidCredentialsError(attempts_remaining=decision.attempts_remaining)

        login_time = await account_service.record_successful_login(account.id)
        account = account.model_copy(
            update={"failed_login_attempts": 0, "locked_until": None, "last_login": login_time}
        )

        token = auth_service.create_access_token(account)
        session = await SessionService().create(account.id, client_ip, user_agent)

        await audit.record(
            account.id,
            LOGIN_SUCCESSFUL,
            {
                "agent_id": account.agent_id,
                "session_id": session.session_id,
                "user_agent": user_agent,
            },
            client_ip,
        )
    except AuthError:
        raise
    except Exception as e:
        logger.exception("login_error", error=str(e))
        return _internal_error("Login failed due to an unexpected error")

    set_auth_cookies(
        response,
        token=token,
        session_id=session.session_id,
        max_age=settings.session_lifetime_seconds,
        secure=settings.secure_cookies,
    )

    logger.info("login_successful", agent_id=str(account.id), role=account.role.value)

    return LoginResponse(
        agent=_agent_summary(account),
        session=SessionSummary(id=session.session_id, expires_at=session.expires_at),
        permissions=get_permissions_by_role(account.role),
    )


def _unauthenticated(error: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"authenticated": False, "error": error.error},
    )


@router.get("/me", response_model=MeResponse)
async def get_me(
    token: Optional[str] = Depends(get_auth_token),
    session_id: Optional[str] = Depends(get_session_cookie),
):
    """Return the authenticated agent, permissions and session status.

    The token is verified before any database access. When a session-id
    cookie is present the session must also be live; without one the
    session check is skipped and ``session`` is null.
    """
    try:
        if not token:
            raise UnauthenticatedError()

        claims = AuthService().validate_access_token(token)

        account = await AccountService().get_by_id(claims.sub)
        if account is None:
            raise AccountNotFoundError()
        if not account.is_active:
            raise AccountInactiveError("Account deactivated")

        session_status = None
        if session_id:
            await SessionService().validate(session_id, account.id)
            session_status = SessionStatus(id=session_id, valid=True)

    except AuthError as e:
        logger.info("me_unauthenticated", reason=e.error)
        return _unauthenticated(e)
    except Exception as e:
        logger.exception("me_error", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"authenticated": False, "error": "Internal server error"},
        )

    return MeResponse(
        agent=_agent_summary(account),
        permissions=get_permissions_by_role(account.role),
        session=session_status,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    token: Optional[str] = Depends(get_auth_token),
    session_id: Optional[str] = Depends(get_session_cookie),
):
    """End the current session and clear both auth cookies.

    Session invalidation and the audit write are best-effort. Cookies are
    cleared on every outcome, including errors.
    """
    settings = get_settings()

    try:
        if not token:
            raise UnauthenticatedError()
        claims = AuthService().validate_access_token(token)
    except AuthError as e:
        result = JSONResponse(status_code=e.status_code, content={"error": e.error})
        clear_auth_cookies(result, secure=settings.secure_cookies)
        return result

    try:
        client_ip = get_client_ip(request)

        if session_id:
            try:
                await SessionService().invalidate(session_id, claims.sub)
            except Exception as e:
                logger.warning(
                    "session_invalidation_failed",
                    agent_id=str(claims.sub),
                    error=str(e),
                )

        await AuditService().record(
            claims.sub,
            LOGOUT,
            {
                "session_id": session_id,
                "user_agent": request.headers.get("user-agent"),
                "logout_type": "manual",
            },
            client_ip,
        )

        result = JSONResponse(
            status_code=status.HTTP_200_OK,
            content=LogoutResponse().model_dump(),
        )
        logger.info("logout_successful", agent_id=str(claims.sub))
    except Exception as e:
        logger.exception("logout_error", error=str(e))
        result = _internal_error("Logout completed but with errors")

    clear_auth_cookies(result, secure=settings.secure_cookies)
    return result


async def _allocate_agent_code(account_service: AccountService) -> Optional[str]:
    for _ in range(MAX_AGENT_CODE_ATTEMPTS):
        code = generate_agent_code()
        if not await account_service.agent_code_exists(code):
            return code
    return None


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_register_rate_limit)],
)
async def register(payload: RegisterRequest, request: Request):
    """Self-register an agent account.

    A unique agent login code is generated for the new account. The
    response never includes the password hash.

    Raises:
        RequestValidationError 400: Invalid name, email, password or role
        EmailAlreadyRegisteredError 409
        RegistrationRateLimitedError 429: Raised by the route dependency,
            before the body is validated
    """
    client_ip = get_client_ip(request)
    account_service = AccountService()

    try:
        if await account_service.email_exists(payload.email):
            raise EmailAlreadyRegisteredError()

        agent_code = await _allocate_agent_code(account_service)
        if agent_code is None:
            logger.error("agent_code_allocation_failed", attempts=MAX_AGENT_CODE_ATTEMPTS)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Failed to generate unique agent ID",
                    "details": "Please try again",
                },
            )

        account = await account_service.create_agent(
            agent_code=agent_code,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )
    except AuthError:
        raise
    except Exception as e:
        logger.exception("registration_error", error=str(e))
        return _internal_error("Registration failed due to an unexpected error")

    await AuditService().record(
        account.id,
        AGENT_REGISTERED,
        {"agent_id": account.agent_id, "email": account.email, "role": account.role.value},
        client_ip,
    )

    return RegisterResponse(
        agent=RegisteredAgent(
            id=account.id,
            agent_id=account.agent_id,
            name=account.name,
            email=account.email,
            role=account.role,
            is_active=account.is_active,
            created_at=account.created_at,
        )
    )


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_password_reset_rate_limit)],
)
async def forgot_password(payload: ForgotPasswordRequest, request: Request):
    """Issue a one-hour password reset token for an email address.

    The reply is identical whether or not the email belongs to an account.
    Mail delivery is not wired up; the ``password_reset_email_queued`` log
    event marks where it is handed off.

    Raises:
        EmailRequiredError 400
        PasswordResetRateLimitedError 429
    """
    email = (payload.email or "").strip().lower()
    if not email:
        raise EmailRequiredError()

    client_ip = get_client_ip(request)
    account_service = AccountService()

    try:
        account = await account_service.get_by_email(email)
        if account is None:
            logger.info("password_reset_unknown_email")
            return MessageResponse(message=PASSWORD_RESET_REQUESTED_MESSAGE)

        reset_token, expires_at = AuthService().create_reset_token(email)
        await account_service.store_reset_token(account.id, reset_token, expires_at)
    except Exception as e:
        logger.exception("password_reset_request_error", error=str(e))
        return _internal_error("Failed to process password reset request")

    logger.info(
        "password_reset_email_queued",
        agent_id=str(account.id),
        expires_at=expires_at.isoformat(),
    )
    await AuditService().record(
        account.id,
        PASSWORD_RESET_REQUESTED,
        {"expires_at": expires_at.isoformat()},
        client_ip,
    )

    return MessageResponse(message=PASSWORD_RESET_REQUESTED_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_password_reset_rate_limit)],
)
async def reset_password(payload: ResetPasswordRequest, request: Request):
    """Set a new password using a reset token.

    The token must verify, be of the reset type, be the one stored for the
    account it names, and be within its stored expiry. On success the hash
    is replaced, the token is consumed and every active session of the
    account is ended.

    Raises:
        ResetFieldsMissingError 400
        PasswordResetError 400: Invalid, mistyped, unknown or expired token
        PasswordResetRateLimitedError 429
    """
    if not payload.token or not payload.new_password:
        raise ResetFieldsMissingError()

    auth_service = AuthService()
    token_email = auth_service.validate_reset_token(payload.token)

    client_ip = get_client_ip(request)
    account_service = AccountService()

    try:
        result = await account_service.get_by_reset_token(payload.token)
        if result is None:
            raise PasswordResetError()

        account, expires_at = result
        if (account.email or "").lower() != token_email:
            raise PasswordResetError()
        if expires_at is None or datetime.now(timezone.utc) > expires_at:
            raise ResetTokenExpiredError()

        await account_service.reset_password(account.id, payload.new_password)
    except AuthError:
        raise
    except Exception as e:
        logger.exception("password_reset_error", error=str(e))
        return _internal_error("Failed to reset password")

    try:
        ended = await SessionService().invalidate_all(account.id)
    except Exception as e:
        ended = 0
        logger.warning("session_invalidation_failed", agent_id=str(account.id), error=str(e))

    await AuditService().record(
        account.id,
        PASSWORD_RESET,
        {"agent_id": account.agent_id, "sessions_ended": ended},
        client_ip,
    )

    return MessageResponse(message="Password reset successfully")
