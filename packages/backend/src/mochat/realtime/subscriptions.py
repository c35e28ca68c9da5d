"""Subscription index — which identities want live events for which targets.

Learn: Forward map (identity → targets) answers "what am I subscribed to";
reverse map (target → identities) answers "who hears about this session"
in O(1) during fan-out. Every mutation updates both under one lock.

Subscriptions belong to the identity, not the socket: they survive
disconnects and apply to every connection the identity opens later.

Wildcard subscribes are a one-time expansion over a snapshot the caller
takes at call time. Conversations created afterwards are not picked up.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from mochat.errors import InvariantViolation

logger = structlog.get_logger()

SESSION = "session"
PANEL = "panel"


@dataclass(frozen=True)
class Target:
    """A conversation someone can subscribe to."""

    kind: str
    id: str

    @classmethod
    def session(cls, session_id: str) -> "Target":
        return cls(SESSION, session_id)

    @classmethod
    def panel(cls, panel_id: str) -> "Target":
        return cls(PANEL, panel_id)

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


class SubscriptionIndex:
    """Thread-safe bidirectional identity ↔ target index.

    With verify=True every mutation re-checks that both maps agree and
    raises InvariantViolation if they don't (debug builds only).
    """

    def __init__(self, verify: bool = False):
        self._lock = threading.RLock()
        self._forward: dict[str, set[Target]] = {}
        self._reverse: dict[Target, set[str]] = {}
        self._verify = verify

    # ─── Mutations ────────────────────────────────────────

    def subscribe(self, identity_id: str, target: Target) -> bool:
        """Idempotent. Returns True if the pair is new."""
        with self._lock:
            added = self._add(identity_id, target)
            self._maybe_verify()
            return added

    def subscribe_many(self, identity_id: str, targets: Iterable[Target]) -> list[Target]:
        """Subscribe to several targets in one critical section. Returns the new ones."""
        with self._lock:
            added = [t for t in targets if self._add(identity_id, t)]
            self._maybe_verify()
            return added

    def subscribe_wildcard_session(self, identity_id: str, snapshot: Iterable[str]) -> list[Target]:
        """Expand "all my sessions" into one subscription per id in the snapshot."""
        added = self.subscribe_many(identity_id, [Target.session(sid) for sid in snapshot])
        logger.info(
            "mochat.subscriptions.wildcard",
            identity_id=identity_id,
            kind=SESSION,
            added=len(added),
        )
        return added

    def subscribe_wildcard_panel(self, identity_id: str, snapshot: Iterable[str]) -> list[Target]:
        """Expand "all panels I can see" into one subscription per id in the snapshot."""
        added = self.subscribe_many(identity_id, [Target.panel(pid) for pid in snapshot])
        logger.info(
            "mochat.subscriptions.wildcard",
            identity_id=identity_id,
            kind=PANEL,
            added=len(added),
        )
        return added

    def unsubscribe(self, identity_id: str, target: Target) -> bool:
        """Remove the pair. No-op (returns False) if it isn't there."""
        with self._lock:
            targets = self._forward.get(identity_id)
            if not targets or target not in targets:
                return False
            targets.discard(target)
            if not targets:
                del self._forward[identity_id]
            subscribers = self._reverse.get(target)
            if subscribers is not None:
                subscribers.discard(identity_id)
                if not subscribers:
                    del self._reverse[target]
            self._maybe_verify()
            return True

    def unsubscribe_kind(self, identity_id: str, kind: str) -> list[Target]:
        """Drop every subscription of one kind (all sessions or all panels)."""
        with self._lock:
            doomed = [t for t in self._forward.get(identity_id, ()) if t.kind == kind]
            for target in doomed:
                self.unsubscribe(identity_id, target)
            return doomed

    # ─── Reads ────────────────────────────────────────────

    def subscribers_of(self, target: Target) -> set[str]:
        with self._lock:
            return set(self._reverse.get(target, ()))

    def subscriptions_of(self, identity_id: str) -> set[Target]:
        with self._lock:
            return set(self._forward.get(identity_id, ()))

    def is_subscribed(self, identity_id: str, target: Target) -> bool:
        with self._lock:
            return target in self._forward.get(identity_id, ())

    def __len__(self) -> int:
        with self._lock:
            return sum(len(targets) for targets in self._forward.values())

    # ─── Invariants ───────────────────────────────────────

    def check_invariants(self) -> None:
        """Raise InvariantViolation unless forward and reverse describe the same pairs."""
        with self._lock:
            forward_pairs = {
                (identity, target)
                for identity, targets in self._forward.items()
                for target in targets
            }
            reverse_pairs = {
                (identity, target)
                for target, identities in self._reverse.items()
                for identity in identities
            }
            if forward_pairs != reverse_pairs:
                raise InvariantViolation(
                    f"subscription index diverged: "
                    f"{len(forward_pairs - reverse_pairs)} forward-only, "
                    f"{len(reverse_pairs - forward_pairs)} reverse-only"
                )
            if any(not v for v in self._forward.values()) or any(
                not v for v in self._reverse.values()
            ):
                raise InvariantViolation("subscription index holds empty entries")

    def _add(self, identity_id: str, target: Target) -> bool:
        targets = self._forward.setdefault(identity_id, set())
        if target in targets:
            return False
        targets.add(target)
        self._reverse.setdefault(target, set()).add(identity_id)
        return True

    def _maybe_verify(self) -> None:
        if self._verify:
            self.check_invariants()
