"""Event distributor — connection lifecycle, subscribe commands, and fan-out.

Learn: Per-connection state machine:

    handshaking ──verify ok──▶ authenticated ──close──▶ closed
         │                          ▲   │
         └──verify fails──▶ closed  └───┘ subscribe / unsubscribe

A failed handshake never touches the registry. Closing only unregisters
the connection; subscriptions stay with the identity and apply again the
next time it connects.

distribute_* is called by the write path *after* the message is committed.
Each call resolves recipients once, builds one frame, and push()es it onto
every live connection of every recipient without waiting on any of them.
There is no retry: offline recipients read history instead.
"""

from collections.abc import Iterable
from typing import Any, Optional, Protocol

import structlog

from mochat.errors import AuthenticationFailure, MochatError
from mochat.events.types import (
    COMMANDS,
    NOTIFY_PANEL,
    NOTIFY_SESSION,
    PANEL_SUBSCRIBE,
    SESSION_SUBSCRIBE,
    WILDCARD,
)
from mochat.realtime.connection import Connection, ConnectionState
from mochat.realtime.registry import ConnectionRegistry
from mochat.realtime.routing import RecipientResolver, RoutingDecision
from mochat.realtime.subscriptions import PANEL, SESSION, SubscriptionIndex, Target
from mochat.schemas.conversation import MessageRead, PanelRead, SessionRead
from mochat.schemas.events import CommandAck, ConversationEvent, MessagePayload, SenderPayload
from mochat.schemas.identity import IdentityRead
from mochat.services.directory import ConversationDirectory

logger = structlog.get_logger()


class Authenticator(Protocol):
    async def verify(self, credential: Optional[str]) -> IdentityRead: ...


class EventDistributor:
    """Owns live connections and pushes conversation events to them."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        subscriptions: SubscriptionIndex,
        resolver: RecipientResolver,
        directory: ConversationDirectory,
        authenticator: Authenticator,
        queue_size: int = 256,
    ):
        self.registry = registry
        self.subscriptions = subscriptions
        self.resolver = resolver
        self.directory = directory
        self.authenticator = authenticator
        self.queue_size = queue_size
        self._running = False

    # ═══════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True
        logger.info("mochat.distributor.started")

    async def stop(self) -> None:
        """Close every live connection. Subscriptions are kept."""
        self._running = False
        connections = self.registry.all_connections()
        for connection in connections:
            self.disconnect(connection)
        logger.info("mochat.distributor.stopped", closed=len(connections))

    def new_connection(self) -> Connection:
        return Connection(queue_size=self.queue_size)

    async def connect(self, connection: Connection, credential: Optional[str]) -> IdentityRead:
        """Handshake: verify the credential, then register the connection.

        Raises AuthenticationFailure (and closes the connection) when the
        credential is rejected; nothing is registered in that case.
        """
        if connection.state is not ConnectionState.HANDSHAKING:
            raise RuntimeError(f"connection {connection.id} is {connection.state.value}")
        if not self._running:
            connection.close()
            raise AuthenticationFailure("Server is not accepting connections")

        try:
            identity = await self.authenticator.verify(credential)
        except AuthenticationFailure as e:
            connection.close()
            logger.info("mochat.ws.refused", connection_id=connection.id, reason=str(e))
            raise

        connection.authenticate(identity)
        self.registry.register(identity.id, connection)
        logger.info(
            "mochat.ws.connected",
            connection_id=connection.id,
            identity_id=identity.id,
            connections=len(self.registry.connections_for(identity.id)),
        )
        return identity

    def disconnect(self, connection: Connection) -> None:
        """Terminal transition. Only the registry is touched."""
        connection.close()
        identity_id = self.registry.unregister(connection)
        if identity_id is not None:
            logger.info(
                "mochat.ws.disconnected",
                connection_id=connection.id,
                identity_id=identity_id,
                still_online=self.registry.is_online(identity_id),
            )

    # ═══════════════════════════════════════════════════════
    # Commands
    # ═══════════════════════════════════════════════════════

    async def handle_command(self, connection: Connection, frame: dict[str, Any]) -> CommandAck:
        """Apply one inbound subscribe/unsubscribe frame and build its ack."""
        command = str(frame.get("type") or "")
        ref = frame.get("ref")
        ref = str(ref) if ref is not None else None

        def ack(result: bool, error: Optional[str] = None) -> CommandAck:
            return CommandAck(command=command, result=result, error=error, ref=ref)

        if not connection.is_open or connection.identity is None:
            return ack(False, "Connection is not authenticated")
        if command not in COMMANDS:
            return ack(False, f"Unknown command: {command or '<missing>'}")

        kind = SESSION if command.startswith(SESSION) else PANEL
        ids = _target_ids(frame, kind)
        if not ids:
            return ack(False, f"Missing {kind}_id")

        try:
            if command in (SESSION_SUBSCRIBE, PANEL_SUBSCRIBE):
                await self.subscribe(connection.identity, kind, ids)
            else:
                self.unsubscribe(connection.identity, kind, ids)
        except MochatError as e:
            return ack(False, str(e))
        except Exception:
            logger.exception(
                "mochat.ws.command_failed",
                connection_id=connection.id,
                command=command,
            )
            return ack(False, "Internal error")
        return ack(True)

    async def subscribe(self, identity: IdentityRead, kind: str, ids: Iterable[str]) -> list[Target]:
        """Subscribe to specific ids and/or the wildcard. Returns new subscriptions.

        Known conversations the identity can't see are skipped without error.
        Unknown ids are recorded as-is; they resolve once such a conversation
        exists.
        """
        added: list[Target] = []
        for target_id in ids:
            if target_id == WILDCARD:
                added.extend(await self._subscribe_wildcard(identity, kind))
            elif await self._can_subscribe(identity, kind, target_id):
                target = Target(kind, target_id)
                if self.subscriptions.subscribe(identity.id, target):
                    added.append(target)
                logger.info("mochat.subscriptions.added", identity_id=identity.id, target=str(target))
        return added

    def unsubscribe(self, identity: IdentityRead, kind: str, ids: Iterable[str]) -> list[Target]:
        removed: list[Target] = []
        for target_id in ids:
            if target_id == WILDCARD:
                removed.extend(self.subscriptions.unsubscribe_kind(identity.id, kind))
                continue
            target = Target(kind, target_id)
            if self.subscriptions.unsubscribe(identity.id, target):
                removed.append(target)
        if removed:
            logger.info("mochat.subscriptions.removed", identity_id=identity.id, count=len(removed))
        return removed

    async def _subscribe_wildcard(self, identity: IdentityRead, kind: str) -> list[Target]:
        # Only conversations already visible to the identity, as of right now
        if kind == SESSION:
            sessions = await self.directory.sessions_for_identity(identity.id)
            return self.subscriptions.subscribe_wildcard_session(
                identity.id, [s.id for s in sessions]
            )
        # Workspace membership can change after the handshake
        current = await self.directory.identity_by_id(identity.id) or identity
        if not current.workspace_id:
            return []
        panels = await self.directory.panels_for_workspace(current.workspace_id)
        return self.subscriptions.subscribe_wildcard_panel(
            identity.id, [p.id for p in panels if p.is_visible_to(identity.id)]
        )

    async def _can_subscribe(self, identity: IdentityRead, kind: str, target_id: str) -> bool:
        if kind == SESSION:
            session = await self.directory.session_by_id(target_id)
            allowed = session is None or identity.id in session.participants
        else:
            panel = await self.directory.panel_by_id(target_id)
            allowed = panel is None or panel.is_visible_to(identity.id)
        if not allowed:
            logger.info(
                "mochat.subscriptions.denied",
                identity_id=identity.id,
                kind=kind,
                target_id=target_id,
            )
        return allowed

    # ═══════════════════════════════════════════════════════
    # Fan-out
    # ═══════════════════════════════════════════════════════

    async def distribute_session_message(
        self, session: SessionRead, message: MessageRead, sender: IdentityRead
    ) -> RoutingDecision:
        decision = await self.resolver.route_session_message(message, session.id)
        delivered = self._deliver(NOTIFY_SESSION, session.id, message, sender, decision)
        logger.info(
            "mochat.distribute.session",
            session_id=session.id,
            message_id=message.id,
            recipients=len(decision.recipients),
            delivered=delivered,
            rationale=decision.rationale,
        )
        return decision

    async def distribute_panel_message(
        self, panel: PanelRead, message: MessageRead, sender: IdentityRead
    ) -> RoutingDecision:
        decision = await self.resolver.route_panel_message(message, panel.id)
        delivered = self._deliver(NOTIFY_PANEL, panel.id, message, sender, decision)
        logger.info(
            "mochat.distribute.panel",
            panel_id=panel.id,
            message_id=message.id,
            recipients=len(decision.recipients),
            delivered=delivered,
            rationale=decision.rationale,
        )
        return decision

    def send_to_identity(self, identity_id: str, event_type: str, data: dict[str, Any]) -> int:
        """Push an arbitrary event to every live connection of one identity."""
        frame = {"type": event_type, "data": data}
        return sum(1 for c in self.registry.connections_for(identity_id) if c.push(frame))

    def is_online(self, identity_id: str) -> bool:
        return self.registry.is_online(identity_id)

    def _deliver(
        self,
        event_type: str,
        conversation_id: str,
        message: MessageRead,
        sender: IdentityRead,
        decision: RoutingDecision,
    ) -> int:
        if not decision.notify or not decision.recipients:
            return 0
        event = ConversationEvent(
            conversation_id=conversation_id,
            message=MessagePayload.from_message(message),
            sender=SenderPayload.from_identity(sender),
        )
        # One frame object per pass: every connection gets identical bytes
        frame = {"type": event_type, "data": event.model_dump(mode="json", by_alias=True, exclude_none=True)}
        delivered = 0
        for identity_id in decision.recipients:
            for connection in self.registry.connections_for(identity_id):
                if connection.push(frame):
                    delivered += 1
        return delivered


def _target_ids(frame: dict[str, Any], kind: str) -> list[str]:
    """Accept `<kind>_id`, `<kind>_ids`, and the camelCase spellings."""
    ids: list[str] = []
    for key in (f"{kind}_id", f"{kind}Id"):
        value = frame.get(key)
        if isinstance(value, str) and value:
            ids.append(value)
    for key in (f"{kind}_ids", f"{kind}Ids"):
        values = frame.get(key)
        if isinstance(values, list):
            ids.extend(v for v in values if isinstance(v, str) and v)
    return list(dict.fromkeys(ids))
