"""Connection registry — who is online, and on which sockets.

Learn: Bidirectional map, identity → connections and connection → identity.
Both sides change under one lock so they can never disagree. An identity
with no connections has no entry at all; absence of an entry *is* the
offline signal.
"""

import threading
from typing import Optional

from mochat.realtime.connection import Connection


class ConnectionRegistry:
    """Thread-safe identity ↔ connection map. One identity, many connections."""

    def __init__(self):
        self._lock = threading.RLock()
        # dict-as-ordered-set keeps registration order for connections_for()
        self._by_identity: dict[str, dict[Connection, None]] = {}
        self._owner: dict[Connection, str] = {}

    def register(self, identity_id: str, connection: Connection) -> None:
        with self._lock:
            current = self._owner.get(connection)
            if current is not None and current != identity_id:
                raise ValueError(
                    f"connection {connection.id} already belongs to {current}"
                )
            self._owner[connection] = identity_id
            self._by_identity.setdefault(identity_id, {})[connection] = None

    def unregister(self, connection: Connection) -> Optional[str]:
        """Forget a connection. Returns its identity, or None if unknown."""
        with self._lock:
            identity_id = self._owner.pop(connection, None)
            if identity_id is None:
                return None
            connections = self._by_identity.get(identity_id)
            if connections is not None:
                connections.pop(connection, None)
                if not connections:
                    del self._by_identity[identity_id]
            return identity_id

    def connections_for(self, identity_id: str) -> list[Connection]:
        with self._lock:
            return list(self._by_identity.get(identity_id, ()))

    def identity_of(self, connection: Connection) -> Optional[str]:
        with self._lock:
            return self._owner.get(connection)

    def is_online(self, identity_id: str) -> bool:
        with self._lock:
            return identity_id in self._by_identity

    def online_count(self) -> int:
        with self._lock:
            return len(self._by_identity)

    def all_connections(self) -> list[Connection]:
        with self._lock:
            return list(self._owner)

    def __len__(self) -> int:
        with self._lock:
            return len(self._owner)
