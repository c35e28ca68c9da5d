"""Panel service — broadcast panels inside workspace groups.

Learn: Panels belong to a group, groups to a workspace. A public panel is
visible to everyone; a private one only to its participants. Unlike
sessions, a panel's participant list grows on its own: the first time
somebody posts, they are added.
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.db.models import Group, Message, Panel
from mochat.errors import AuthorizationDenied, NotFoundError, ValidationError
from mochat.realtime.distributor import EventDistributor
from mochat.schemas.conversation import (
    MessageCreate,
    MessagePage,
    MessageRead,
    PanelCreate,
    PanelRead,
    PanelUpdate,
)
from mochat.schemas.identity import IdentityRead
from mochat.services.message_service import MessageService


class PanelService:
    def __init__(self, db: AsyncSession, distributor: Optional[EventDistributor] = None):
        self.db = db
        self.distributor = distributor
        self.messages = MessageService(db)

    # ─── Panels ───────────────────────────────────────────

    async def create_panel(self, group_id: str, creator: IdentityRead, body: PanelCreate) -> Panel:
        if not await self.db.get(Group, group_id):
            raise NotFoundError("Group not found")

        existing = await self.db.execute(
            select(Panel).where(Panel.group_id == group_id, Panel.name == body.name)
        )
        if existing.scalars().first():
            raise ValidationError("Panel with this name already exists in group")

        panel = Panel(
            group_id=group_id,
            name=body.name,
            description=body.description,
            is_public=body.is_public,
            participants=[creator.id],
            created_by=creator.id,
            meta=dict(body.metadata),
        )
        self.db.add(panel)
        await self.db.commit()
        return panel

    async def get_panel(self, panel_id: str, identity_id: str) -> Panel:
        panel = await self.db.get(Panel, panel_id)
        if panel is None:
            raise NotFoundError("Panel not found")
        if not panel.is_public and identity_id not in panel.participants:
            raise AuthorizationDenied("You do not have access to this panel")
        return panel

    async def list_panels(self, group_id: str, identity_id: str) -> list[Panel]:
        """Panels in a group that the identity can see."""
        if not await self.db.get(Group, group_id):
            raise NotFoundError("Group not found")
        result = await self.db.execute(
            select(Panel).where(Panel.group_id == group_id).order_by(Panel.created_at)
        )
        return [
            p for p in result.scalars().all()
            if p.is_public or identity_id in p.participants
        ]

    async def join_panel(self, panel_id: str, identity_id: str) -> Panel:
        panel = await self.db.get(Panel, panel_id)
        if panel is None:
            raise NotFoundError("Panel not found")
        if not panel.is_public:
            raise AuthorizationDenied("Cannot join private panel")
        if identity_id not in panel.participants:
            panel.participants.append(identity_id)
            await self.db.commit()
        return panel

    async def leave_panel(self, panel_id: str, identity_id: str) -> Panel:
        panel = await self.db.get(Panel, panel_id)
        if panel is None:
            raise NotFoundError("Panel not found")
        if identity_id in panel.participants:
            panel.participants.remove(identity_id)
            await self.db.commit()
        return panel

    async def update_panel(self, panel_id: str, identity_id: str, body: PanelUpdate) -> Panel:
        """Creator or participants may rename, describe, or change visibility."""
        panel = await self.db.get(Panel, panel_id)
        if panel is None:
            raise NotFoundError("Panel not found")
        if panel.created_by != identity_id and identity_id not in panel.participants:
            raise AuthorizationDenied("You do not have permission to update this panel")

        if body.name is not None and body.name != panel.name:
            existing = await self.db.execute(
                select(Panel).where(Panel.group_id == panel.group_id, Panel.name == body.name)
            )
            if existing.scalars().first():
                raise ValidationError("Panel with this name already exists in group")
            panel.name = body.name
        if body.description is not None:
            panel.description = body.description
        if body.is_public is not None:
            panel.is_public = body.is_public

        await self.db.commit()
        await self.db.refresh(panel)
        return panel

    async def delete_panel(self, panel_id: str, identity_id: str) -> None:
        """Creator only. Messages go with it; live subscriptions just stop resolving."""
        panel = await self.db.get(Panel, panel_id)
        if panel is None:
            raise NotFoundError("Panel not found")
        if panel.created_by != identity_id:
            raise AuthorizationDenied("Only the panel creator can delete it")

        # Delete messages first (FK constraint)
        await self.db.execute(delete(Message).where(Message.panel_id == panel_id))
        await self.db.delete(panel)
        await self.db.commit()

    # ─── Messages ─────────────────────────────────────────

    async def send_message(
        self, panel_id: str, sender: IdentityRead, body: MessageCreate
    ) -> MessageRead:
        """Persist (auto-joining first-time posters), commit, then distribute."""
        panel = await self.get_panel(panel_id, sender.id)
        if sender.id not in panel.participants:
            panel.participants.append(sender.id)

        message = self.messages.build(sender.id, body, panel_id=panel.id)
        await self.db.commit()

        result = MessageRead.model_validate(message)
        if self.distributor is not None:
            await self.distributor.distribute_panel_message(
                PanelRead.model_validate(panel), result, sender
            )
        return result

    async def get_messages(
        self,
        panel_id: str,
        identity_id: str,
        limit: int,
        before: Optional[str] = None,
    ) -> MessagePage:
        await self.get_panel(panel_id, identity_id)
        return await self.messages.history(limit, before=before, panel_id=panel_id)
