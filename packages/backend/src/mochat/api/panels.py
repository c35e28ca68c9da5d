"""Panel routes — lifecycle, membership, and messages."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from mochat.api.deps import page_limit, panel_service
from mochat.auth.dependencies import get_current_identity
from mochat.schemas.conversation import (
    MessageCreate,
    MessagePage,
    MessageRead,
    PanelCreate,
    PanelRead,
    PanelUpdate,
)
from mochat.schemas.identity import IdentityRead
from mochat.services.panel_service import PanelService

router = APIRouter()


# ─── Panels ───────────────────────────────────────────────────


@router.post("/groups/{group_id}/panels", response_model=PanelRead, status_code=201)
async def create_panel(
    group_id: str,
    body: PanelCreate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.create_panel(group_id, identity, body)


@router.get("/groups/{group_id}/panels", response_model=list[PanelRead])
async def list_panels(
    group_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    """Public panels plus private ones the caller belongs to."""
    return await svc.list_panels(group_id, identity.id)


@router.get("/panels/{panel_id}", response_model=PanelRead)
async def get_panel(
    panel_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.get_panel(panel_id, identity.id)


@router.patch("/panels/{panel_id}", response_model=PanelRead)
async def update_panel(
    panel_id: str,
    body: PanelUpdate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.update_panel(panel_id, identity.id, body)


@router.delete("/panels/{panel_id}")
async def delete_panel(
    panel_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    """Delete a panel and its history (creator only)."""
    await svc.delete_panel(panel_id, identity.id)
    return {"deleted": True}


@router.post("/panels/{panel_id}/join", response_model=PanelRead)
async def join_panel(
    panel_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.join_panel(panel_id, identity.id)


@router.post("/panels/{panel_id}/leave", response_model=PanelRead)
async def leave_panel(
    panel_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.leave_panel(panel_id, identity.id)


# ─── Messages ─────────────────────────────────────────────────


@router.post("/panels/{panel_id}/messages", response_model=MessageRead, status_code=201)
async def send_panel_message(
    panel_id: str,
    body: MessageCreate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.send_message(panel_id, identity, body)


@router.get("/panels/{panel_id}/messages", response_model=MessagePage)
async def get_panel_messages(
    panel_id: str,
    request: Request,
    limit: int = Query(50, ge=1),
    before: Optional[str] = Query(None),
    identity: IdentityRead = Depends(get_current_identity),
    svc: PanelService = Depends(panel_service),
):
    return await svc.get_messages(
        panel_id, identity.id, page_limit(request, limit), before=before
    )
