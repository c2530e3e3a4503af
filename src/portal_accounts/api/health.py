"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and the
database is reachable. The identity provider is not probed; it is an
external service with its own status page.
"""

import structlog
from fastapi import APIRouter, Request
from sqlalchemy import text

from portal_accounts import __version__

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and database connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.warning("health.database_unreachable", error=str(e))
        checks["database"] = "error"

    status = "ok" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
