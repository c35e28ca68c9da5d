"""Session routes — DMs, group sessions, and their messages."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from mochat.api.deps import page_limit, session_service
from mochat.auth.dependencies import get_current_identity
from mochat.schemas.conversation import (
    MessageCreate,
    MessagePage,
    MessageRead,
    ParticipantsChange,
    SessionCreate,
    SessionRead,
)
from mochat.schemas.identity import IdentityRead
from mochat.services.session_service import SessionService

router = APIRouter()


# ─── Session lifecycle ────────────────────────────────────────


@router.post("/sessions", response_model=SessionRead, status_code=201)
async def create_session(
    body: SessionCreate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    return await svc.create_session(identity, body)


@router.get("/sessions", response_model=list[SessionRead])
async def list_sessions(
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    """Every session the caller participates in."""
    return await svc.list_sessions(identity.id)


@router.get("/sessions/{session_id}", response_model=SessionRead)
async def get_session(
    session_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    return await svc.get_session(session_id, identity.id)


@router.post("/sessions/{session_id}/participants", response_model=SessionRead)
async def add_participants(
    session_id: str,
    body: ParticipantsChange,
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    return await svc.add_participants(session_id, identity.id, body.participant_ids)


@router.post("/sessions/{session_id}/participants/remove", response_model=SessionRead)
async def remove_participants(
    session_id: str,
    body: ParticipantsChange,
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    return await svc.remove_participants(session_id, identity.id, body.participant_ids)


@router.post("/sessions/{session_id}/close")
async def close_session(
    session_id: str,
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    """Delete the session and its history."""
    await svc.close_session(session_id, identity.id)
    return {"closed": True}


# ─── Messages ─────────────────────────────────────────────────


@router.post("/sessions/{session_id}/messages", response_model=MessageRead, status_code=201)
async def send_session_message(
    session_id: str,
    body: MessageCreate,
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    """Post a message; live subscribers are notified after it is saved."""
    return await svc.send_message(session_id, identity, body)


@router.get("/sessions/{session_id}/messages", response_model=MessagePage)
async def get_session_messages(
    session_id: str,
    request: Request,
    limit: int = Query(50, ge=1),
    before: Optional[str] = Query(None),
    identity: IdentityRead = Depends(get_current_identity),
    svc: SessionService = Depends(session_service),
):
    return await svc.get_messages(
        session_id, identity.id, page_limit(request, limit), before=before
    )
