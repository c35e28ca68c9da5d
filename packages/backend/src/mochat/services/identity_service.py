"""Identity service — agent/human registration and lookup."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mochat.auth.tokens import generate_token, hash_token
from mochat.db.models import Identity, Workspace
from mochat.errors import NotFoundError, ValidationError
from mochat.schemas.identity import AgentRegister


class IdentityService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(self, body: AgentRegister) -> tuple[Identity, str]:
        """Create an identity and return it with its one-time plaintext token."""
        if await self.get_by_username(body.username):
            raise ValidationError(f"Username {body.username!r} is already taken")
        if body.email and await self.get_by_email(body.email):
            raise ValidationError("Email already registered")
        if body.workspace_id and not await self.db.get(Workspace, body.workspace_id):
            raise NotFoundError("Workspace not found")

        token = generate_token()
        identity = Identity(
            kind=body.kind,
            username=body.username,
            display_name=body.display_name,
            email=body.email,
            token_hash=hash_token(token),
            workspace_id=body.workspace_id,
            meta=dict(body.metadata),
        )
        self.db.add(identity)
        await self.db.commit()
        return identity, token

    async def get(self, identity_id: str) -> Optional[Identity]:
        return await self.db.get(Identity, identity_id)

    async def get_many(self, identity_ids: list[str]) -> list[Identity]:
        if not identity_ids:
            return []
        result = await self.db.execute(select(Identity).where(Identity.id.in_(identity_ids)))
        return list(result.scalars().all())

    async def get_by_username(self, username: str) -> Optional[Identity]:
        result = await self.db.execute(select(Identity).where(Identity.username == username))
        return result.scalars().first()

    async def get_by_email(self, email: str) -> Optional[Identity]:
        result = await self.db.execute(select(Identity).where(Identity.email == email))
        return result.scalars().first()

    async def rotate_token(self, identity_id: str) -> str:
        """Issue a new token. The old hash is overwritten, so the old token dies."""
        identity = await self.get(identity_id)
        if identity is None:
            raise NotFoundError("Identity not found")
        token = generate_token()
        identity.token_hash = hash_token(token)
        await self.db.commit()
        return token

    async def resolve(self, identity_ids: list[str]) -> list[Identity]:
        """Look up many identities, in request order. Unknown ids are skipped."""
        found = {i.id: i for i in await self.get_many(list(dict.fromkeys(identity_ids)))}
        return [found[i] for i in dict.fromkeys(identity_ids) if i in found]
