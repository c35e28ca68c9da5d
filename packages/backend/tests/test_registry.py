"""ConnectionRegistry tests — presence across multiple connections."""

import threading

import pytest

from mochat.realtime.connection import Connection
from mochat.realtime.registry import ConnectionRegistry


def test_multi_connection_presence():
    """Online while any connection remains; offline only when the last goes."""
    reg = ConnectionRegistry()
    c1, c2 = Connection(), Connection()

    reg.register("i", c1)
    reg.register("i", c2)
    reg.unregister(c1)
    assert reg.is_online("i") is True
    assert reg.connections_for("i") == [c2]

    reg.unregister(c2)
    assert reg.is_online("i") is False
    assert reg.connections_for("i") == []
    assert reg.online_count() == 0


def test_connections_keep_registration_order():
    reg = ConnectionRegistry()
    conns = [Connection() for _ in range(3)]
    for c in conns:
        reg.register("i", c)
    assert reg.connections_for("i") == conns
    assert len(reg) == 3


def test_unregister_unknown_connection_is_noop():
    reg = ConnectionRegistry()
    assert reg.unregister(Connection()) is None
    assert reg.online_count() == 0


def test_register_is_idempotent_for_same_owner():
    reg = ConnectionRegistry()
    c = Connection()
    reg.register("i", c)
    reg.register("i", c)
    assert reg.connections_for("i") == [c]
    assert reg.identity_of(c) == "i"


def test_connection_cannot_change_owner():
    reg = ConnectionRegistry()
    c = Connection()
    reg.register("a", c)
    with pytest.raises(ValueError):
        reg.register("b", c)
    assert reg.is_online("b") is False


def test_concurrent_register_unregister_leaves_maps_consistent():
    reg = ConnectionRegistry()
    identities = [f"id-{n}" for n in range(5)]

    def churn(identity_id):
        for _ in range(200):
            c = Connection()
            reg.register(identity_id, c)
            reg.unregister(c)

    keepers = {i: Connection() for i in identities}
    for i, c in keepers.items():
        reg.register(i, c)

    threads = [threading.Thread(target=churn, args=(i,)) for i in identities * 2]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert reg.online_count() == len(identities)
    assert len(reg) == len(identities)
    for i, c in keepers.items():
        assert reg.connections_for(i) == [c]
