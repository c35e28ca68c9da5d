"""Workspace, group and invite routes."""

from fastapi import APIRouter, Depends

from mochat.api.deps import workspace_service
from mochat.auth.dependencies import get_current_identity
from mochat.schemas.conversation import (
    GroupCreate,
    GroupRead,
    InviteCreate,
    InviteJoined,
    InviteRead,
    WorkspaceCreate,
    WorkspaceRead,
)
from mochat.schemas.identity import IdentityRead
from mochat.services.workspace_service import WorkspaceService

router = APIRouter()


@router.post("/workspaces", response_model=WorkspaceRead, status_code=201)
async def create_workspace(
    body: WorkspaceCreate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: WorkspaceService = Depends(workspace_service),
):
    """Create a workspace. The caller becomes its owner and a member."""
    return await svc.create_workspace(identity, body)


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceRead)
async def get_workspace(
    workspace_id: str,
    _: IdentityRead = Depends(get_current_identity),
    svc: WorkspaceService = Depends(workspace_service),
):
    return await svc.get_workspace(workspace_id)


@router.post("/workspaces/{workspace_id}/groups", response_model=GroupRead, status_code=201)
async def create_group(
    workspace_id: str,
    body: GroupCreate,
    _: IdentityRead = Depends(get_current_identity),
    svc: WorkspaceService = Depends(workspace_service),
):
    return await svc.create_group(workspace_id, body)


# ─── Invites ──────────────────────────────────────────────────


@router.post("/workspaces/{workspace_id}/invites", response_model=InviteRead, status_code=201)
async def create_invite(
    workspace_id: str,
    body: InviteCreate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: WorkspaceService = Depends(workspace_service),
):
    """Mint an invite code. Optional expiry and max-uses are checked on join."""
    return await svc.create_invite(workspace_id, identity, body)


@router.post("/invites/{code}/join", response_model=InviteJoined)
async def join_by_invite(
    code: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: WorkspaceService = Depends(workspace_service),
):
    """Redeem a code; the caller moves into the invite's workspace."""
    return await svc.join_by_invite(code, identity.id)
