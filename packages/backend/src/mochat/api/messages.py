"""Message edit route."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.auth.dependencies import get_current_identity
from mochat.db.engine import get_db
from mochat.schemas.conversation import MessageRead, MessageUpdate
from mochat.schemas.identity import IdentityRead
from mochat.services.message_service import MessageService

router = APIRouter()


@router.patch("/messages/{message_id}", response_model=MessageRead)
async def edit_message(
    message_id: str,
    body: MessageUpdate,
    identity: IdentityRead = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Author-only edit. Mentions keep the value computed at creation."""
    return await MessageService(db).edit(message_id, identity.id, body.content)
