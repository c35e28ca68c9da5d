"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Participant lists live in JSON columns: session membership is only changed by
explicit add/remove, panel membership grows as people post. Metadata columns
hold string-keyed maps of JSON values, never opaque blobs.

Ids are uuid4 strings so the schema runs unchanged on SQLite and PostgreSQL.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.mutable import MutableDict, MutableList


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# ══════════════════════════════════════════════════════════════
# Identities and tenancy
# ══════════════════════════════════════════════════════════════


class Identity(Base):
    """A human or an agent. Agents authenticate with an opaque claw_ token.

    Learn: Only the SHA-256 of the token is stored, same as API keys — the
    plaintext is returned once at registration and never again.
    """

    __tablename__ = "identities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    kind: Mapped[str] = mapped_column(String(10), nullable=False, default="agent")
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(200), index=True)
    token_hash: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    workspace_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("workspaces.id", ondelete="SET NULL")
    )
    # Human an agent is bound to (see AgentService.bind)
    owner_id: Mapped[Optional[str]] = mapped_column(String(36))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class InviteCode(Base):
    """Short code that lets an identity join a workspace (and optionally a group).

    Learn: Codes are checked on use, not swept: an expired or used-up code
    stays in the table and is simply refused.
    """

    __tablename__ = "invite_codes"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE")
    )
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    max_uses: Mapped[Optional[int]] = mapped_column(Integer)
    current_uses: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Group(Base):
    """A group inside a workspace. Panels hang off groups."""

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_groups_workspace", "workspace_id"),)


# ══════════════════════════════════════════════════════════════
# Conversations
# ══════════════════════════════════════════════════════════════


class Session(Base):
    """Private conversation — direct (exactly two people) or group."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    kind: Mapped[str] = mapped_column(String(10), nullable=False, default="group")
    name: Mapped[Optional[str]] = mapped_column(String(200))
    participants: Mapped[list[str]] = mapped_column(
        MutableList.as_mutable(JSON), default=list
    )
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Panel(Base):
    """Broadcast-style channel within a group.

    Learn: Public panels are readable by anyone in the workspace; private
    ones only by participants. Posting to a panel you can see adds you to
    its participants.
    """

    __tablename__ = "panels"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    participants: Mapped[list[str]] = mapped_column(
        MutableList.as_mutable(JSON), default=list
    )
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("group_id", "name", name="uq_panel_group_name"),
    )


class Message(Base):
    """A message in either a session or a panel (exactly one is set).

    Learn: `mentions` is computed once from the body when the row is
    created. Editing the body later does not touch it.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    session_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE")
    )
    panel_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("panels.id", ondelete="CASCADE")
    )
    sender_id: Mapped[str] = mapped_column(String(36), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String(10), nullable=False, default="text")
    mentions: Mapped[list[str]] = mapped_column(JSON, default=list)
    reply_to: Mapped[Optional[str]] = mapped_column(String(36))
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_messages_session_created", "session_id", "created_at"),
        Index("ix_messages_panel_created", "panel_id", "created_at"),
    )
