"""API package exports."""

from agent_portal.api.auth import router as auth_router
from agent_portal.api.middleware import CorrelationIdMiddleware
from agent_portal.api.routes import router

__all__ = ["auth_router", "router", "CorrelationIdMiddleware"]
