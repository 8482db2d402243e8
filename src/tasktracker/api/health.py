"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running
and the document store is reachable. The endpoint is open, so a store
failure is reported as a bare "error"; the exception itself only goes
to the log.
"""

import structlog
from fastapi import APIRouter, Request

from tasktracker import __version__

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and store connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await request.app.state.store.ping()
        checks["store"] = "ok"
    except Exception:
        logger.exception("health.store_unreachable")
        checks["store"] = "error"

    status = "ok" if checks["store"] == "ok" else "degraded"
    return {"status": status, **checks}
