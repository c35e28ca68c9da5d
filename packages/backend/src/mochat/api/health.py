"""Health check endpoint.

Learn: Verifies the server is running, the database answers, and reports
how many identities currently hold a live connection.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from mochat import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        **checks,
        "online_identities": request.app.state.registry.online_count(),
    }
