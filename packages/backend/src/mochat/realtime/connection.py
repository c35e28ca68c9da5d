"""A single live transport instance.

Learn: The distributor never writes to a socket directly. It drops frames
into the connection's outbox with put_nowait and moves on; the WebSocket
handler runs a writer task that drains the outbox. A slow client therefore
can't stall fan-out to everybody else. If the outbox is full the frame is
dropped (delivery is at-most-once; clients catch up from history).
"""

import asyncio
import enum
import uuid
from typing import Any, Optional

import structlog

from mochat.schemas.identity import IdentityRead

logger = structlog.get_logger()


class ConnectionState(str, enum.Enum):
    HANDSHAKING = "handshaking"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class Connection:
    """One socket. Owned by exactly one identity once authenticated."""

    def __init__(self, connection_id: Optional[str] = None, queue_size: int = 256):
        self.id = connection_id or uuid.uuid4().hex
        self.state = ConnectionState.HANDSHAKING
        self.identity: Optional[IdentityRead] = None
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"<Connection {self.id} {self.state.value} identity={self.identity_id}>"

    @property
    def identity_id(self) -> Optional[str]:
        return self.identity.id if self.identity else None

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    def authenticate(self, identity: IdentityRead) -> None:
        if self.state is not ConnectionState.HANDSHAKING:
            raise RuntimeError(f"cannot authenticate a connection in state {self.state.value}")
        self.identity = identity
        self.state = ConnectionState.AUTHENTICATED

    def close(self) -> bool:
        """Move to the terminal state. Returns False if already closed."""
        if self.state is ConnectionState.CLOSED:
            return False
        self.state = ConnectionState.CLOSED
        self._closed.set()
        return True

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def push(self, frame: dict[str, Any]) -> bool:
        """Queue a frame for the writer. Never blocks."""
        if self.state is not ConnectionState.AUTHENTICATED:
            return False
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "mochat.ws.frame_dropped",
                connection_id=self.id,
                identity_id=self.identity_id,
                frame_type=frame.get("type"),
                dropped=self.dropped,
            )
            return False
        return True

    def drain(self) -> list[dict[str, Any]]:
        """Pop everything queued so far without waiting."""
        frames = []
        while not self.outbox.empty():
            frames.append(self.outbox.get_nowait())
        return frames
