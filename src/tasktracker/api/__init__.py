"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in the tasks router
without modifying individual handlers. Health and auth routers are open;
the auth router protects its /profile routes per handler.
"""

from fastapi import APIRouter, Depends

from tasktracker.api.auth import router as auth_router
from tasktracker.api.health import router as health_router
from tasktracker.api.tasks import router as tasks_router
from tasktracker.auth.dependencies import get_current_principal

# All protected routers require authentication
_auth = [Depends(get_current_principal)]

api_router = APIRouter(prefix="/api")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid bearer token
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
