"""Workspace service — workspaces, groups, and invite codes.

Learn: An identity belongs to at most one workspace at a time
(Identity.workspace_id). Creating a workspace or redeeming an invite moves
the identity into it. That membership is what wildcard panel
subscriptions expand over, so it has to be set here and not left to the
client.

Invite codes are 8 characters from an alphabet without look-alikes
(no 0/O, 1/I). Expiry and max-uses are checked on redemption.
"""

import secrets
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from mochat.db.models import Group, Identity, InviteCode, Workspace
from mochat.errors import AuthorizationDenied, NotFoundError, ValidationError
from mochat.schemas.conversation import (
    GroupCreate,
    InviteCreate,
    InviteJoined,
    WorkspaceCreate,
)
from mochat.schemas.identity import IdentityRead

INVITE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_LENGTH = 8


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(INVITE_LENGTH))


class WorkspaceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Workspaces / groups ──────────────────────────────

    async def create_workspace(self, owner: IdentityRead, body: WorkspaceCreate) -> Workspace:
        """Create a workspace and move its owner into it."""
        workspace = Workspace(
            name=body.name,
            description=body.description,
            owner_id=owner.id,
            meta=dict(body.metadata),
        )
        self.db.add(workspace)
        await self.db.flush()

        await self._move_into(owner.id, workspace.id)
        await self.db.commit()
        return workspace

    async def get_workspace(self, workspace_id: str) -> Workspace:
        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return workspace

    async def create_group(self, workspace_id: str, body: GroupCreate) -> Group:
        await self.get_workspace(workspace_id)
        group = Group(workspace_id=workspace_id, name=body.name, description=body.description)
        self.db.add(group)
        await self.db.commit()
        return group

    # ─── Invites ──────────────────────────────────────────

    async def create_invite(
        self, workspace_id: str, creator: IdentityRead, body: InviteCreate
    ) -> InviteCode:
        workspace = await self.get_workspace(workspace_id)
        member = await self.db.get(Identity, creator.id)
        if workspace.owner_id != creator.id and (
            member is None or member.workspace_id != workspace_id
        ):
            raise AuthorizationDenied("Only workspace members can create invites")

        if body.group_id is not None:
            group = await self.db.get(Group, body.group_id)
            if group is None or group.workspace_id != workspace_id:
                raise NotFoundError("Group not found in workspace")

        code = generate_invite_code()
        while await self.db.get(InviteCode, code) is not None:
            code = generate_invite_code()

        invite = InviteCode(
            code=code,
            workspace_id=workspace_id,
            group_id=body.group_id,
            created_by=creator.id,
            expires_at=body.expires_at,
            max_uses=body.max_uses,
            current_uses=0,
        )
        self.db.add(invite)
        await self.db.commit()
        return invite

    async def join_by_invite(self, code: str, identity_id: str) -> InviteJoined:
        invite = await self.db.get(InviteCode, code.upper())
        if invite is None:
            raise NotFoundError("Invalid invite code")
        if invite.expires_at is not None and _aware(invite.expires_at) < datetime.now(timezone.utc):
            raise ValidationError("Invite code has expired")
        if invite.max_uses is not None and invite.current_uses >= invite.max_uses:
            raise ValidationError("Invite code has reached maximum uses")

        invite.current_uses += 1
        await self._move_into(identity_id, invite.workspace_id)
        await self.db.commit()
        return InviteJoined(workspace_id=invite.workspace_id, group_id=invite.group_id)

    async def _move_into(self, identity_id: str, workspace_id: str) -> None:
        identity = await self.db.get(Identity, identity_id)
        if identity is None:
            raise NotFoundError("Identity not found")
        identity.workspace_id = workspace_id


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
