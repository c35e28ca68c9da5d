"""Message persistence — create, history pages, edits.

Learn: Mentions are extracted exactly once, here, when the row is created.
Editing later rewrites `content` but leaves `mentions` alone, so an edit
can't retroactively ping (or un-ping) anybody.
"""

from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.db.models import Message, Panel, Session
from mochat.errors import AuthorizationDenied, NotFoundError, ValidationError
from mochat.mentions import extract_mentions
from mochat.schemas.conversation import MessageCreate, MessagePage, MessageRead


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def build(
        self,
        sender_id: str,
        body: MessageCreate,
        session_id: Optional[str] = None,
        panel_id: Optional[str] = None,
    ) -> Message:
        """Stage a new message row (caller commits)."""
        message = Message(
            session_id=session_id,
            panel_id=panel_id,
            sender_id=sender_id,
            content=body.content,
            kind=body.kind,
            mentions=extract_mentions(body.content),
            reply_to=body.reply_to,
            meta=dict(body.metadata),
        )
        self.db.add(message)
        return message

    async def history(
        self,
        limit: int,
        before: Optional[str] = None,
        session_id: Optional[str] = None,
        panel_id: Optional[str] = None,
    ) -> MessagePage:
        """One page of a conversation's history, newest first."""
        if session_id is not None:
            scope = Message.session_id == session_id
        else:
            scope = Message.panel_id == panel_id

        query = select(Message).where(scope)
        if before:
            cursor = await self.db.get(Message, before)
            if cursor is None or (cursor.session_id, cursor.panel_id) != (session_id, panel_id):
                raise ValidationError("Invalid cursor")
            query = query.where(
                or_(
                    Message.created_at < cursor.created_at,
                    and_(Message.created_at == cursor.created_at, Message.id < cursor.id),
                )
            )

        result = await self.db.execute(
            query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit + 1)
        )
        rows = list(result.scalars().all())
        has_more = len(rows) > limit
        rows = rows[:limit]
        return MessagePage(
            items=[MessageRead.model_validate(r) for r in rows],
            cursor=rows[-1].id if has_more and rows else None,
            has_more=has_more,
        )

    async def edit(self, message_id: str, editor_id: str, content: str) -> Message:
        message = await self.db.get(Message, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.sender_id != editor_id:
            raise AuthorizationDenied("Only the author can edit a message")

        # Still a member of the conversation?
        if message.session_id:
            session = await self.db.get(Session, message.session_id)
            if session is None or editor_id not in session.participants:
                raise AuthorizationDenied("You are not a participant in this session")
        else:
            panel = await self.db.get(Panel, message.panel_id)
            if panel is None:
                raise NotFoundError("Panel not found")

        message.content = content
        await self.db.commit()
        await self.db.refresh(message)
        return message
