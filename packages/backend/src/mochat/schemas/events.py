"""Wire schemas for the WebSocket protocol.

Learn: Python side is snake_case; frames on the wire are camelCase
(conversationId, senderId, displayName) to match what clients expect.
Always dump with by_alias=True.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from mochat.events.types import ACK
from mochat.schemas.conversation import MessageRead
from mochat.schemas.identity import IdentityRead


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessagePayload(_Wire):
    id: str
    sender_id: str
    content: str
    timestamp: datetime
    reply_to: Optional[str] = None
    mentions: Optional[list[str]] = None

    @classmethod
    def from_message(cls, message: MessageRead) -> "MessagePayload":
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            content=message.content,
            timestamp=message.created_at,
            reply_to=message.reply_to,
            mentions=message.mentions or None,
        )


class SenderPayload(_Wire):
    id: str
    display_name: str
    kind: str

    @classmethod
    def from_identity(cls, identity: IdentityRead) -> "SenderPayload":
        return cls(id=identity.id, display_name=identity.name, kind=identity.kind)


class ConversationEvent(_Wire):
    """Body of notify:session / notify:panel frames."""

    conversation_id: str
    message: MessagePayload
    sender: SenderPayload


class CommandAck(BaseModel):
    """Acknowledgement for one inbound command frame."""

    type: str = ACK
    command: str
    result: bool
    error: Optional[str] = None
    ref: Optional[str] = None

    def to_frame(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
