"""Session service — private DMs and group conversations.

Learn: A session's participant list is fixed at creation and only changes
through explicit add/remove. DMs have exactly two participants and can't
be resized. Posting requires participation; after the message is
committed it is handed to the distributor for live fan-out.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.db.models import Message, Session
from mochat.errors import AuthorizationDenied, NotFoundError, ValidationError
from mochat.realtime.distributor import EventDistributor
from mochat.schemas.conversation import (
    MessageCreate,
    MessagePage,
    MessageRead,
    SessionCreate,
    SessionRead,
)
from mochat.schemas.identity import IdentityRead
from mochat.services.directory import sessions_with_participant
from mochat.services.identity_service import IdentityService
from mochat.services.message_service import MessageService


class SessionService:
    """Manages sessions and session messages."""

    def __init__(self, db: AsyncSession, distributor: Optional[EventDistributor] = None):
        self.db = db
        self.distributor = distributor
        self.messages = MessageService(db)
        self.identities = IdentityService(db)

    # ─── Session lifecycle ────────────────────────────────

    async def create_session(self, creator: IdentityRead, body: SessionCreate) -> Session:
        participants = list(dict.fromkeys(body.participants))
        found = await self.identities.get_many(participants)
        if len(found) != len(participants):
            raise ValidationError("One or more participants not found")
        if body.kind == "dm" and len(participants) != 2:
            raise ValidationError("DM sessions must have exactly 2 participants")

        session = Session(
            kind=body.kind,
            name=body.name,
            participants=participants,
            created_by=creator.id,
            meta=dict(body.metadata),
        )
        self.db.add(session)
        await self.db.commit()
        return session

    async def get_session(self, session_id: str, identity_id: str) -> Session:
        session = await self.db.get(Session, session_id)
        if session is None:
            raise NotFoundError("Session not found")
        if identity_id not in session.participants:
            raise AuthorizationDenied("You are not a participant in this session")
        return session

    async def list_sessions(self, identity_id: str) -> list[SessionRead]:
        rows = await sessions_with_participant(self.db, identity_id)
        return [SessionRead.model_validate(row) for row in rows]

    async def add_participants(
        self, session_id: str, identity_id: str, participant_ids: list[str]
    ) -> Session:
        session = await self._get_resizable(session_id, identity_id)
        found = await self.identities.get_many(list(set(participant_ids)))
        if len(found) != len(set(participant_ids)):
            raise ValidationError("One or more participants not found")

        session.participants = list(dict.fromkeys([*session.participants, *participant_ids]))
        await self.db.commit()
        return session

    async def remove_participants(
        self, session_id: str, identity_id: str, participant_ids: list[str]
    ) -> Session:
        session = await self._get_resizable(session_id, identity_id)
        remaining = [p for p in session.participants if p not in participant_ids]
        if not remaining:
            raise ValidationError("Cannot remove all participants")

        session.participants = remaining
        await self.db.commit()
        return session

    async def close_session(self, session_id: str, identity_id: str) -> None:
        """Delete the session and its history. Participants or the creator only."""
        session = await self.db.get(Session, session_id)
        if session is None:
            raise NotFoundError("Session not found")
        if identity_id not in session.participants and session.created_by != identity_id:
            raise AuthorizationDenied("You do not have permission to close this session")

        await self.db.execute(delete(Message).where(Message.session_id == session_id))
        await self.db.delete(session)
        await self.db.commit()

    # ─── Messages ─────────────────────────────────────────

    async def send_message(
        self, session_id: str, sender: IdentityRead, body: MessageCreate
    ) -> MessageRead:
        """Persist, commit, then distribute. Distribution never fails the write."""
        session = await self.get_session(session_id, sender.id)

        message = self.messages.build(sender.id, body, session_id=session.id)
        session.last_message_at = datetime.now(timezone.utc)
        await self.db.commit()

        result = MessageRead.model_validate(message)
        if self.distributor is not None:
            await self.distributor.distribute_session_message(
                SessionRead.model_validate(session), result, sender
            )
        return result

    async def get_messages(
        self,
        session_id: str,
        identity_id: str,
        limit: int,
        before: Optional[str] = None,
    ) -> MessagePage:
        await self.get_session(session_id, identity_id)
        return await self.messages.history(limit, before=before, session_id=session_id)

    async def _get_resizable(self, session_id: str, identity_id: str) -> Session:
        session = await self.get_session(session_id, identity_id)
        if session.kind == "dm":
            raise ValidationError("Cannot change participants of a DM session")
        return session

