"""Conversation directory — read-only lookups the realtime layer depends on.

Learn: The realtime engine never holds an ORM session. It asks the directory,
which opens a short-lived session per lookup and returns detached pydantic
Read models. Anything that satisfies ConversationDirectory works, which is
how the realtime unit tests run against plain in-memory fakes.
"""

from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mochat.db.models import Group, Identity, Panel, Session
from mochat.schemas.conversation import PanelRead, SessionRead
from mochat.schemas.identity import IdentityRead


class ConversationDirectory(Protocol):
    async def session_by_id(self, session_id: str) -> Optional[SessionRead]: ...

    async def panel_by_id(self, panel_id: str) -> Optional[PanelRead]: ...

    async def sessions_for_identity(self, identity_id: str) -> list[SessionRead]: ...

    async def panels_for_workspace(self, workspace_id: str) -> list[PanelRead]: ...

    async def identity_by_id(self, identity_id: str) -> Optional[IdentityRead]: ...


class SqlConversationDirectory:
    """ConversationDirectory backed by the SQLAlchemy models."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def session_by_id(self, session_id: str) -> Optional[SessionRead]:
        async with self.session_factory() as db:
            row = await db.get(Session, session_id)
            return SessionRead.model_validate(row) if row else None

    async def panel_by_id(self, panel_id: str) -> Optional[PanelRead]:
        async with self.session_factory() as db:
            row = await db.get(Panel, panel_id)
            return PanelRead.model_validate(row) if row else None

    async def sessions_for_identity(self, identity_id: str) -> list[SessionRead]:
        async with self.session_factory() as db:
            rows = await sessions_with_participant(db, identity_id)
            return [SessionRead.model_validate(row) for row in rows]

    async def panels_for_workspace(self, workspace_id: str) -> list[PanelRead]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Panel)
                .join(Group, Panel.group_id == Group.id)
                .where(Group.workspace_id == workspace_id)
                .order_by(Panel.created_at)
            )
            return [PanelRead.model_validate(row) for row in result.scalars().all()]

    async def identity_by_id(self, identity_id: str) -> Optional[IdentityRead]:
        async with self.session_factory() as db:
            row = await db.get(Identity, identity_id)
            return IdentityRead.model_validate(row) if row else None


async def sessions_with_participant(db: AsyncSession, identity_id: str) -> list[Session]:
    """Every session the identity participates in, oldest first.

    Learn: participants is a JSON list, which SQLite and PostgreSQL query
    differently, so we filter in Python.
    """
    # TODO: move participants into a join table once session counts grow
    result = await db.execute(select(Session).order_by(Session.created_at))
    return [row for row in result.scalars().all() if identity_id in (row.participants or [])]
