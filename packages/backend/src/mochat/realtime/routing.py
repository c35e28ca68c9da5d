"""Recipient resolution — who should hear about a message.

Learn: Two different questions, answered separately:

1. Membership — who gets the event at all?
   Session: participants ∪ session subscribers, minus the author.
            Mentions never narrow this.
   Panel:   panel subscribers, minus the author. Mentions and @all never
            filter anyone out; they only change the rationale tag so
            clients can decide how loudly to ring.

   A subscription only counts while its holder can still see the
   conversation. Someone removed from a session, or left out of a panel
   that went private, keeps the entry in the index but gets nothing.

2. Urgency — should this identity be interrupted right now?
   should_notify_immediately(): always for sessions; for panels only when
   the identity is mentioned or the message addresses everyone.

A decision is computed per message and never cached. Lookup failures
degrade to an empty decision instead of raising, so a message to a
conversation that just vanished is still saved, it simply has no live
fan-out.
"""

from dataclasses import dataclass

import structlog

from mochat.errors import NotFoundError
from mochat.mentions import is_mention_all
from mochat.realtime.subscriptions import SubscriptionIndex, Target
from mochat.schemas.conversation import MessageRead, PanelRead, SessionRead
from mochat.services.directory import ConversationDirectory

logger = structlog.get_logger()

RATIONALE_SESSION = "session-message"
RATIONALE_MENTION_ALL = "mention-all"
RATIONALE_DIRECT_MENTION = "direct-mention"
RATIONALE_PANEL = "panel-message"
RATIONALE_NOT_FOUND = "not found"


@dataclass(frozen=True)
class RoutingDecision:
    recipients: frozenset[str]
    notify: bool
    rationale: str

    @classmethod
    def not_found(cls) -> "RoutingDecision":
        return cls(recipients=frozenset(), notify=False, rationale=RATIONALE_NOT_FOUND)


class RecipientResolver:
    def __init__(self, directory: ConversationDirectory, subscriptions: SubscriptionIndex):
        self.directory = directory
        self.subscriptions = subscriptions

    # ─── Lookup + resolve ─────────────────────────────────

    async def route_session_message(self, message: MessageRead, session_id: str) -> RoutingDecision:
        session = await self._lookup(self.directory.session_by_id, session_id, "session")
        if session is None:
            return RoutingDecision.not_found()
        return self.resolve_session(session, message)

    async def route_panel_message(self, message: MessageRead, panel_id: str) -> RoutingDecision:
        panel = await self._lookup(self.directory.panel_by_id, panel_id, "panel")
        if panel is None:
            return RoutingDecision.not_found()
        return self.resolve_panel(panel, message)

    # ─── Pure resolution ──────────────────────────────────

    def resolve_session(self, session: SessionRead, message: MessageRead) -> RoutingDecision:
        subscribers = {
            i for i in self.subscriptions.subscribers_of(Target.session(session.id))
            if i in session.participants
        }
        recipients = (set(session.participants) | subscribers) - {message.sender_id}
        return RoutingDecision(
            recipients=frozenset(recipients),
            notify=True,
            rationale=RATIONALE_SESSION,
        )

    def resolve_panel(self, panel: PanelRead, message: MessageRead) -> RoutingDecision:
        recipients = {
            i for i in self.subscriptions.subscribers_of(Target.panel(panel.id))
            if panel.is_visible_to(i)
        } - {message.sender_id}
        if is_mention_all(message.content):
            rationale = RATIONALE_MENTION_ALL
        elif message.mentions:
            rationale = RATIONALE_DIRECT_MENTION
        else:
            rationale = RATIONALE_PANEL
        return RoutingDecision(
            recipients=frozenset(recipients),
            notify=bool(recipients),
            rationale=rationale,
        )

    @staticmethod
    def should_notify_immediately(message: MessageRead, identity_id: str, is_session: bool) -> bool:
        """Urgency, not membership: DMs/groups always, panels only when addressed."""
        if is_session:
            return True
        if identity_id in (message.mentions or ()):
            return True
        return is_mention_all(message.content)

    async def _lookup(self, fetch, conversation_id: str, kind: str):
        try:
            return await fetch(conversation_id)
        except NotFoundError:
            return None
        except Exception:
            # Never raise into the write path
            logger.exception("mochat.routing.lookup_failed", kind=kind, conversation_id=conversation_id)
            return None
