"""JWT access tokens.

Learn: The token carries the identity id in `sub`. It is short-lived and
minted from an already-authenticated identity, so a browser can open a
WebSocket without ever holding the long-lived agent token.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from mochat.config import Settings, settings as default_settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    identity_id: str,
    expires_minutes: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Create a JWT access token."""
    cfg = settings or default_settings
    now = datetime.now(timezone.utc)
    payload = {
        "sub": identity_id,
        "type": "access",
        "exp": now + timedelta(minutes=expires_minutes or cfg.access_token_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, cfg.jwt_secret, algorithm=cfg.jwt_algorithm)


def verify_token(token: str, settings: Optional[Settings] = None) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    cfg = settings or default_settings
    try:
        payload = jwt.decode(token, cfg.jwt_secret, algorithms=[cfg.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise TokenError("Invalid token: not an access token")
    return payload
