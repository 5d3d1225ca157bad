"""Service-level routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format, database reachability and the
        number of client addresses tracked by the login limiter
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        from agent_portal.database import health_check as db_health_check
        db_healthy = await db_health_check()
        health_status["database"] = "healthy" if db_healthy else "unhealthy"
    except Exception:
        health_status["database"] = "unavailable"

    limiter = getattr(request.app.state, "login_rate_limiter", None)
    if limiter is not None:
        health_status["rate_limiter_tracked_addresses"] = limiter.tracked_addresses

    return health_status
