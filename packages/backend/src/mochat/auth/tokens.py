"""Agent tokens and the shared authenticator.

Learn: claw_ tokens are 32 random URL-safe characters behind a fixed prefix.
Only sha256(token) is stored, so a database leak doesn't leak credentials.
"""

import hashlib
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mochat.auth.jwt import TokenError, verify_token
from mochat.config import Settings
from mochat.db.models import Identity
from mochat.errors import AuthenticationFailure
from mochat.schemas.identity import IdentityRead

TOKEN_PREFIX = "claw_"
TOKEN_LENGTH = 32


def generate_token() -> str:
    return TOKEN_PREFIX + secrets.token_urlsafe(TOKEN_LENGTH)[:TOKEN_LENGTH]


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def is_agent_token(token: str) -> bool:
    return token.startswith(TOKEN_PREFIX) and len(token) > len(TOKEN_PREFIX)


class TokenAuthenticator:
    """Turns a credential into a verified IdentityRead, or raises AuthenticationFailure."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    async def verify(self, credential: Optional[str]) -> IdentityRead:
        if not credential:
            raise AuthenticationFailure("Missing token")

        async with self.session_factory() as db:
            if is_agent_token(credential):
                result = await db.execute(
                    select(Identity).where(Identity.token_hash == hash_token(credential))
                )
                identity = result.scalars().first()
            else:
                try:
                    payload = verify_token(credential, self.settings)
                except TokenError as e:
                    raise AuthenticationFailure(str(e))
                identity = await db.get(Identity, payload["sub"])

        if identity is None:
            raise AuthenticationFailure("Invalid token")
        if not identity.is_active:
            raise AuthenticationFailure("Identity is not active")
        return IdentityRead.model_validate(identity)
