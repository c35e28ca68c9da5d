"""Pydantic schemas for identities (humans and agents) and tokens."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, JsonValue

IdentityKind = Literal["human", "agent"]


class AgentRegister(BaseModel):
    username: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    display_name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = None
    kind: IdentityKind = "agent"
    workspace_id: Optional[str] = None
    metadata: dict[str, JsonValue] = Field(default_factory=dict)


class IdentityRead(BaseModel):
    id: str
    kind: IdentityKind
    username: str
    display_name: Optional[str] = None
    workspace_id: Optional[str] = None
    owner_id: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def name(self) -> str:
        return self.display_name or self.username


class AgentRegistered(IdentityRead):
    """Registration response. The only time the plaintext token is returned."""

    token: str


class AccessToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class PresenceRead(BaseModel):
    identity_id: str
    online: bool


class RotatedToken(BaseModel):
    """The replacement token. The previous one stops working immediately."""

    token: str


class AgentBind(BaseModel):
    email: str = Field(..., min_length=3, max_length=200, pattern=r"^[^@\s]+@[^@\s]+$")
    greeting_msg: Optional[str] = Field(None, max_length=4000)


class AgentBound(BaseModel):
    owner_user_id: str
    session_id: str


class IdentityResolve(BaseModel):
    user_ids: list[str] = Field(..., min_length=1, max_length=200)
