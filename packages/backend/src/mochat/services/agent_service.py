"""Agent binding — attach an agent to the human who owns it.

Learn: Binding is keyed on the owner's email. If no identity has that
email yet, a human identity is created for it (no token; the human signs
in some other way). The agent and its owner always share exactly one DM
session: binding again reuses it instead of opening a second one.
"""

import re
import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.db.models import Identity, Session
from mochat.errors import NotFoundError, ValidationError
from mochat.realtime.distributor import EventDistributor
from mochat.schemas.conversation import MessageCreate
from mochat.schemas.identity import AgentBind, AgentBound, IdentityRead
from mochat.services.directory import sessions_with_participant
from mochat.services.identity_service import IdentityService
from mochat.services.session_service import SessionService

logger = structlog.get_logger()

_USERNAME_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class AgentService:
    def __init__(self, db: AsyncSession, distributor: Optional[EventDistributor] = None):
        self.db = db
        self.identities = IdentityService(db)
        self.sessions = SessionService(db, distributor)

    async def bind(self, agent: IdentityRead, body: AgentBind) -> AgentBound:
        if agent.kind != "agent":
            raise ValidationError("Only agents can be bound to an owner")
        row = await self.identities.get(agent.id)
        if row is None:
            raise NotFoundError("Agent not found")

        owner = await self.identities.get_by_email(body.email)
        if owner is None:
            owner = Identity(
                kind="human",
                username=await self._free_username(body.email.split("@")[0]),
                display_name=body.email.split("@")[0],
                email=body.email,
                workspace_id=row.workspace_id,
            )
            self.db.add(owner)
            await self.db.flush()
        elif owner.id == agent.id:
            raise ValidationError("An agent cannot be its own owner")

        row.owner_id = owner.id
        session = await self._dm_between(agent.id, owner.id)
        await self.db.commit()
        logger.info("mochat.agent.bound", agent_id=agent.id, owner_id=owner.id, session_id=session.id)

        if body.greeting_msg:
            await self.sessions.send_message(
                session.id, agent, MessageCreate(content=body.greeting_msg)
            )
        return AgentBound(owner_user_id=owner.id, session_id=session.id)

    async def _dm_between(self, agent_id: str, owner_id: str) -> Session:
        for session in await sessions_with_participant(self.db, agent_id):
            if session.kind == "dm" and owner_id in session.participants:
                return session
        session = Session(kind="dm", participants=[agent_id, owner_id], created_by=agent_id)
        self.db.add(session)
        await self.db.flush()
        return session

    async def _free_username(self, wanted: str) -> str:
        base = _USERNAME_UNSAFE.sub("-", wanted)[:90] or "owner"
        candidate = base
        while await self._username_taken(candidate):
            candidate = f"{base}-{uuid.uuid4().hex[:6]}"
        return candidate

    async def _username_taken(self, username: str) -> bool:
        return await self.identities.get_by_username(username) is not None
