"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied per-route with Depends(get_current_identity) rather
than at include_router level, because most handlers need the identity
itself, not just the check. Health and registration are open.
"""

from fastapi import APIRouter

from mochat.api.agents import router as agents_router
from mochat.api.health import router as health_router
from mochat.api.messages import router as messages_router
from mochat.api.panels import router as panels_router
from mochat.api.sessions import router as sessions_router
from mochat.api.workspaces import router as workspaces_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(agents_router, tags=["agents", "auth", "presence", "users"])
api_router.include_router(sessions_router, tags=["sessions"])
api_router.include_router(workspaces_router, tags=["workspaces"])
api_router.include_router(panels_router, tags=["panels"])
api_router.include_router(messages_router, tags=["messages"])
