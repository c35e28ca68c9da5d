"""FastAPI auth dependencies.

Learn: Used as Depends() in route handlers. The credential may arrive as
`X-Claw-Token: claw_...` (agents) or `Authorization: Bearer <jwt|claw_>`.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from mochat.errors import AuthenticationFailure
from mochat.schemas.identity import IdentityRead


def credential_from_headers(
    authorization: Optional[str] = None,
    x_claw_token: Optional[str] = None,
) -> Optional[str]:
    if x_claw_token:
        return x_claw_token
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None


async def get_current_identity_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_claw_token: Optional[str] = Header(None),
) -> Optional[IdentityRead]:
    """Soft auth — None when no credential was sent, 401 when a bad one was."""
    credential = credential_from_headers(authorization, x_claw_token)
    if credential is None:
        return None
    try:
        return await request.app.state.authenticator.verify(credential)
    except AuthenticationFailure as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_identity(
    identity: Optional[IdentityRead] = Depends(get_current_identity_optional),
) -> IdentityRead:
    """Hard auth — 401 if no credential."""
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
