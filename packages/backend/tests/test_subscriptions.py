"""SubscriptionIndex tests — lockstep maps, idempotency, wildcard snapshots."""

import threading

import pytest

from mochat.errors import InvariantViolation
from mochat.realtime.subscriptions import PANEL, SESSION, SubscriptionIndex, Target


def test_subscribe_then_unsubscribe_restores_state():
    idx = SubscriptionIndex(verify=True)
    idx.subscribe("other", Target.session("s1"))
    before_subs = idx.subscribers_of(Target.session("s1"))
    before_targets = idx.subscriptions_of("i")

    idx.subscribe("i", Target.session("s1"))
    assert idx.subscribers_of(Target.session("s1")) == {"other", "i"}
    idx.unsubscribe("i", Target.session("s1"))

    assert idx.subscribers_of(Target.session("s1")) == before_subs
    assert idx.subscriptions_of("i") == before_targets


def test_duplicate_subscribe_is_noop():
    idx = SubscriptionIndex(verify=True)
    assert idx.subscribe("i", Target.panel("p1")) is True
    assert idx.subscribe("i", Target.panel("p1")) is False
    assert len(idx) == 1


def test_unsubscribe_never_subscribed_is_noop():
    idx = SubscriptionIndex(verify=True)
    assert idx.unsubscribe("i", Target.session("nope")) is False
    assert idx.subscriptions_of("i") == set()
    assert len(idx) == 0


def test_session_and_panel_targets_with_same_id_are_distinct():
    idx = SubscriptionIndex(verify=True)
    idx.subscribe("i", Target.session("x"))
    assert idx.subscribers_of(Target.panel("x")) == set()
    assert str(Target.session("x")) == "session:x"


def test_unknown_targets_can_be_subscribed():
    idx = SubscriptionIndex(verify=True)
    assert idx.subscribe("i", Target.session("does-not-exist-yet"))
    assert idx.is_subscribed("i", Target.session("does-not-exist-yet"))


def test_wildcard_session_is_a_snapshot():
    """One subscription per id in the snapshot; later sessions aren't included."""
    idx = SubscriptionIndex(verify=True)
    added = idx.subscribe_wildcard_session("i", ["s1", "s2"])

    assert set(added) == {Target.session("s1"), Target.session("s2")}
    assert idx.subscriptions_of("i") == {Target.session("s1"), Target.session("s2")}
    # A session created afterwards has no subscribers
    assert idx.subscribers_of(Target.session("s3")) == set()


def test_wildcard_panel_skips_existing_subscriptions():
    idx = SubscriptionIndex(verify=True)
    idx.subscribe("i", Target.panel("p1"))
    added = idx.subscribe_wildcard_panel("i", ["p1", "p2"])
    assert added == [Target.panel("p2")]


def test_unsubscribe_kind_only_touches_that_kind():
    idx = SubscriptionIndex(verify=True)
    idx.subscribe_wildcard_session("i", ["s1", "s2"])
    idx.subscribe("i", Target.panel("p1"))

    removed = idx.unsubscribe_kind("i", SESSION)

    assert {t.kind for t in removed} == {SESSION}
    assert idx.subscriptions_of("i") == {Target.panel("p1")}
    assert idx.unsubscribe_kind("i", SESSION) == []
    assert [t.kind for t in idx.subscriptions_of("i")] == [PANEL]


def test_returned_sets_are_copies():
    idx = SubscriptionIndex()
    idx.subscribe("i", Target.session("s1"))
    idx.subscribers_of(Target.session("s1")).add("intruder")
    idx.subscriptions_of("i").clear()
    assert idx.subscribers_of(Target.session("s1")) == {"i"}
    idx.check_invariants()


def test_check_invariants_detects_divergence():
    idx = SubscriptionIndex()
    idx.subscribe("i", Target.session("s1"))
    # Simulate a bug that only updated one side
    idx._reverse[Target.session("s1")].discard("i")
    with pytest.raises(InvariantViolation):
        idx.check_invariants()


def test_concurrent_subscribe_unsubscribe_keeps_maps_in_lockstep():
    idx = SubscriptionIndex()
    targets = [Target.session(f"s{n}") for n in range(10)]

    def churn(identity_id):
        for _ in range(50):
            for t in targets:
                idx.subscribe(identity_id, t)
            for t in targets[::2]:
                idx.unsubscribe(identity_id, t)

    threads = [threading.Thread(target=churn, args=(f"i{n}",)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    idx.check_invariants()
    for t in targets[1::2]:
        assert len(idx.subscribers_of(t)) == 8
    for t in targets[::2]:
        assert idx.subscribers_of(t) == set()
