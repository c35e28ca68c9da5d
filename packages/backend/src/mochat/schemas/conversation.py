"""Pydantic schemas for workspaces, groups, panels, sessions and messages.

Learn: Separate "Create" schemas (input) from "Read" schemas (output).
The Read models double as the detached values handed to the realtime
layer, so nothing there ever touches an ORM session.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, JsonValue

SessionKind = Literal["dm", "group"]
MessageKind = Literal["text", "system", "image", "file"]

# Open-ended metadata is a string-keyed map of JSON values
Metadata = dict[str, JsonValue]


# ─── Workspaces / groups ──────────────────────────────────

class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    metadata: Metadata = Field(default_factory=dict)


class WorkspaceRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class GroupRead(BaseModel):
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class InviteCreate(BaseModel):
    group_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, ge=1)


class InviteRead(BaseModel):
    code: str
    workspace_id: str
    group_id: Optional[str] = None
    created_by: str
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: int
    created_at: datetime

    model_config = {"from_attributes": True}


class InviteJoined(BaseModel):
    workspace_id: str
    group_id: Optional[str] = None


# ─── Panels ───────────────────────────────────────────────

class PanelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_public: bool = True
    metadata: Metadata = Field(default_factory=dict)


class PanelUpdate(BaseModel):
    """Partial update: only the fields that are sent change."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_public: Optional[bool] = None


class PanelRead(BaseModel):
    id: str
    group_id: str
    name: str
    description: Optional[str] = None
    is_public: bool
    participants: list[str]
    created_by: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    def is_visible_to(self, identity_id: str) -> bool:
        return self.is_public or identity_id in self.participants


# ─── Sessions ─────────────────────────────────────────────

class SessionCreate(BaseModel):
    kind: SessionKind = "group"
    participants: list[str] = Field(..., min_length=1)
    name: Optional[str] = Field(None, max_length=200)
    metadata: Metadata = Field(default_factory=dict)


class SessionRead(BaseModel):
    id: str
    kind: SessionKind
    name: Optional[str] = None
    participants: list[str]
    created_by: str
    created_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ParticipantsChange(BaseModel):
    participant_ids: list[str] = Field(..., min_length=1)


# ─── Messages ─────────────────────────────────────────────

class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1)
    kind: MessageKind = "text"
    reply_to: Optional[str] = None
    metadata: Metadata = Field(default_factory=dict)


class MessageUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class MessageRead(BaseModel):
    id: str
    session_id: Optional[str] = None
    panel_id: Optional[str] = None
    sender_id: str
    content: str
    kind: MessageKind = "text"
    mentions: list[str] = Field(default_factory=list)
    reply_to: Optional[str] = None
    metadata: Metadata = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "populate_by_name": True}


class MessagePage(BaseModel):
    """One page of history, newest first. Pass `cursor` as `before` for the next."""

    items: list[MessageRead]
    cursor: Optional[str] = None
    has_more: bool
