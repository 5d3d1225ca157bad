"""FastAPI application initialization."""

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent_portal.api.auth import router as auth_router
from agent_portal.api.middleware import CorrelationIdMiddleware
from agent_portal.api.routes import router
from agent_portal.config import get_settings
from agent_portal.services.errors import AuthError
from agent_portal.services.logging_service import configure_logging, get_logger
from agent_portal.services.rate_limiter import LoginRateLimiter


def create_rate_limiters(app: FastAPI) -> None:
    """Attach fresh login, registration and password reset limiters to the app state."""
    settings = get_settings()
    window_seconds = settings.login_rate_limit_window_minutes * 60

    app.state.login_rate_limiter = LoginRateLimiter(
        max_attempts=settings.login_rate_limit_attempts,
        window_seconds=window_seconds,
        max_tracked=settings.rate_limit_max_tracked_addresses,
    )
    app.state.register_rate_limiter = LoginRateLimiter(
        max_attempts=settings.register_rate_limit_attempts,
        window_seconds=window_seconds,
        max_tracked=settings.rate_limit_max_tracked_addresses,
    )
    app.state.password_reset_rate_limiter = LoginRateLimiter(
        max_attempts=settings.password_reset_rate_limit_attempts,
        window_seconds=window_seconds,
        max_tracked=settings.rate_limit_max_tracked_addresses,
    )


def _rate_limiters(app: FastAPI) -> list[LoginRateLimiter]:
    return [
        app.state.login_rate_limiter,
        app.state.register_rate_limiter,
        app.state.password_reset_rate_limiter,
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        from agent_portal.database import init_database

        await init_database()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - login will return 500 until it is reachable",
        )

    create_rate_limiters(app)

    async def _sweep_loop():
        """Periodically drop idle addresses from the limiters."""
        while True:
            try:
                await asyncio.sleep(settings.rate_limit_sweep_interval_seconds)
                removed = sum(limiter.sweep() for limiter in _rate_limiters(app))
                if removed:
                    logger.info("rate_limiter_sweep", removed=removed)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning("rate_limiter_sweep_error", error=str(e))

    sweep_task = asyncio.create_task(_sweep_loop())

    logger.info(
        "application_started",
        environment=settings.environment,
        secure_cookies=settings.secure_cookies,
        log_level=settings.log_level,
    )

    yield

    # Shutdown
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass

    try:
        from agent_portal.database import close_database

        await close_database()
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("application_shutdown")


app = FastAPI(
    title="Agent Portal - Auth API",
    description="Agent login, session and audit endpoints for the CRM portal",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render authentication failures as {error, details} bodies."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers or None,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 with a readable detail."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "details": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render anything not handled closer to the route as a JSON 500."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    structlog.get_logger().error(
        "unhandled_exception",
        correlation_id=correlation_id,
        path=request.url.path,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": "An unexpected error occurred",
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router)
app.include_router(router)
