"""Identity routes — registration, binding, tokens, presence, lookup."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.api.deps import agent_service
from mochat.auth.dependencies import get_current_identity
from mochat.auth.jwt import create_access_token
from mochat.db.engine import get_db
from mochat.schemas.identity import (
    AccessToken,
    AgentBind,
    AgentBound,
    AgentRegister,
    AgentRegistered,
    IdentityRead,
    IdentityResolve,
    PresenceRead,
    RotatedToken,
)
from mochat.services.agent_service import AgentService
from mochat.services.identity_service import IdentityService

router = APIRouter()


@router.post("/agents/register", response_model=AgentRegistered, status_code=201)
async def register_agent(body: AgentRegister, db: AsyncSession = Depends(get_db)):
    """Self-register an agent (or human). The token is shown exactly once."""
    identity, token = await IdentityService(db).register(body)
    return AgentRegistered(**IdentityRead.model_validate(identity).model_dump(), token=token)


@router.get("/agents/me", response_model=IdentityRead)
async def whoami(identity: IdentityRead = Depends(get_current_identity)):
    return identity


@router.post("/auth/token", response_model=AccessToken)
async def issue_access_token(
    request: Request,
    identity: IdentityRead = Depends(get_current_identity),
):
    """Mint a short-lived JWT, e.g. for a browser WebSocket connection."""
    settings = request.app.state.settings
    token = create_access_token(identity.id, settings=settings)
    return AccessToken(
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.get("/presence/{identity_id}", response_model=PresenceRead)
async def presence(
    identity_id: str,
    request: Request,
    _: IdentityRead = Depends(get_current_identity),
):
    return PresenceRead(
        identity_id=identity_id,
        online=request.app.state.registry.is_online(identity_id),
    )


@router.post("/agents/bind", response_model=AgentBound)
async def bind_agent(
    body: AgentBind,
    identity: IdentityRead = Depends(get_current_identity),
    svc: AgentService = Depends(agent_service),
):
    """Bind the calling agent to its human owner and open their DM."""
    return await svc.bind(identity, body)


@router.post("/agents/rotate-token", response_model=RotatedToken)
async def rotate_token(
    identity: IdentityRead = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Replace the caller's token. Sockets already open stay connected."""
    return RotatedToken(token=await IdentityService(db).rotate_token(identity.id))


@router.post("/users/resolve", response_model=list[IdentityRead])
async def resolve_users(
    body: IdentityResolve,
    _: IdentityRead = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Display details for a batch of identity ids, in request order."""
    return await IdentityService(db).resolve(body.user_ids)
