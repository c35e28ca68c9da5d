"""Shared route dependencies — services wired to the request's DB session."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.db.engine import get_db
from mochat.realtime.distributor import EventDistributor
from mochat.services.agent_service import AgentService
from mochat.services.panel_service import PanelService
from mochat.services.session_service import SessionService
from mochat.services.workspace_service import WorkspaceService


def get_distributor(request: Request) -> EventDistributor:
    return request.app.state.distributor


def session_service(
    db: AsyncSession = Depends(get_db),
    distributor: EventDistributor = Depends(get_distributor),
) -> SessionService:
    return SessionService(db, distributor)


def panel_service(
    db: AsyncSession = Depends(get_db),
    distributor: EventDistributor = Depends(get_distributor),
) -> PanelService:
    return PanelService(db, distributor)


def page_limit(request: Request, limit: int) -> int:
    """Clamp a requested page size to the configured maximum."""
    return max(1, min(limit, request.app.state.settings.history_page_max))


def workspace_service(db: AsyncSession = Depends(get_db)) -> WorkspaceService:
    return WorkspaceService(db)


def agent_service(
    db: AsyncSession = Depends(get_db),
    distributor: EventDistributor = Depends(get_distributor),
) -> AgentService:
    return AgentService(db, distributor)
