"""
API package for the Auth Relay.

This package contains FastAPI routers for all endpoints.
"""

from .auth import router as auth_router
from .health import router as health_router
from .proxy import router as proxy_router

__all__ = [
    "auth_router",
    "health_router",
    "proxy_router",
]
