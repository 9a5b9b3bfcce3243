"""API routers."""

from nivaro.routers.auth import router as auth_router
from nivaro.routers.csrf import router as csrf_router

__all__ = ["auth_router", "csrf_router"]
