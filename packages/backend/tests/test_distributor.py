"""EventDistributor tests — lifecycle, commands, and fan-out."""

import pytest

from fakes import identity, message, panel, session
from mochat.errors import AuthenticationFailure
from mochat.events.types import ACK, NOTIFY_PANEL, NOTIFY_SESSION
from mochat.realtime.connection import ConnectionState
from mochat.realtime.subscriptions import Target


async def _connect(distributor, directory, identity_id, **kwargs):
    if identity_id not in directory.identities:
        directory.add_identity(identity(identity_id, **kwargs))
    conn = distributor.new_connection()
    await distributor.connect(conn, f"token-{identity_id}")
    return conn


# ═══════════════════════════════════════════════════════════
# Connection lifecycle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_handshake_registers_connection(distributor, directory, registry):
    conn = await _connect(distributor, directory, "agent-1")
    assert conn.state is ConnectionState.AUTHENTICATED
    assert conn.identity_id == "agent-1"
    assert registry.connections_for("agent-1") == [conn]


@pytest.mark.asyncio
async def test_failed_handshake_creates_no_state(distributor, registry):
    conn = distributor.new_connection()
    with pytest.raises(AuthenticationFailure):
        await distributor.connect(conn, "bogus")
    assert conn.state is ConnectionState.CLOSED
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_missing_credential_is_refused(distributor, registry):
    with pytest.raises(AuthenticationFailure):
        await distributor.connect(distributor.new_connection(), None)
    assert registry.online_count() == 0


@pytest.mark.asyncio
async def test_connection_cannot_handshake_twice(distributor, directory):
    conn = await _connect(distributor, directory, "agent-1")
    with pytest.raises(RuntimeError):
        await distributor.connect(conn, "token-agent-1")


@pytest.mark.asyncio
async def test_disconnect_keeps_subscriptions(distributor, directory, registry, subscriptions):
    directory.add_session(session("s1", ["agent-1", "agent-2"]))
    conn = await _connect(distributor, directory, "agent-2")
    ack = await distributor.handle_command(conn, {"type": "session:subscribe", "session_id": "s1"})
    assert ack.result is True

    distributor.disconnect(conn)

    assert conn.state is ConnectionState.CLOSED
    assert registry.is_online("agent-2") is False
    assert subscriptions.subscribers_of(Target.session("s1")) == {"agent-2"}

    # Reconnecting picks the subscription back up without re-subscribing
    again = await _connect(distributor, directory, "agent-2")
    await distributor.distribute_session_message(
        directory.sessions["s1"], message("agent-1", "welcome back"), identity("agent-1")
    )
    assert len(again.drain()) == 1


@pytest.mark.asyncio
async def test_stop_closes_all_connections(distributor, directory, registry):
    c1 = await _connect(distributor, directory, "a")
    c2 = await _connect(distributor, directory, "b")

    await distributor.stop()

    assert c1.state is ConnectionState.CLOSED
    assert c2.state is ConnectionState.CLOSED
    assert registry.online_count() == 0
    with pytest.raises(AuthenticationFailure):
        await distributor.connect(distributor.new_connection(), "token-a")


# ═══════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_subscribe_and_unsubscribe_ack(distributor, directory, subscriptions):
    directory.add_panel(panel("p1", ["u1"]))
    conn = await _connect(distributor, directory, "u2")

    ack = await distributor.handle_command(conn, {"type": "panel:subscribe", "panel_id": "p1", "ref": "7"})
    assert ack.to_frame() == {"type": ACK, "command": "panel:subscribe", "result": True, "ref": "7"}
    assert subscriptions.is_subscribed("u2", Target.panel("p1"))

    ack = await distributor.handle_command(conn, {"type": "panel:unsubscribe", "panelIds": ["p1"]})
    assert ack.result is True
    assert not subscriptions.is_subscribed("u2", Target.panel("p1"))


@pytest.mark.asyncio
async def test_unsubscribe_unknown_target_is_ok(distributor, directory):
    conn = await _connect(distributor, directory, "u1")
    ack = await distributor.handle_command(conn, {"type": "session:unsubscribe", "session_id": "never"})
    assert ack.result is True
    assert ack.error is None


@pytest.mark.asyncio
async def test_bad_commands_get_failed_acks(distributor, directory):
    conn = await _connect(distributor, directory, "u1")

    ack = await distributor.handle_command(conn, {"type": "session:explode"})
    assert ack.result is False
    assert "Unknown command" in ack.error

    ack = await distributor.handle_command(conn, {"type": "panel:subscribe"})
    assert ack.result is False
    assert ack.error == "Missing panel_id"


@pytest.mark.asyncio
async def test_lookup_failure_becomes_failed_ack(distributor, directory, registry):
    conn = await _connect(distributor, directory, "u1")
    directory.fail_with = RuntimeError("database went away")

    ack = await distributor.handle_command(conn, {"type": "session:subscribe", "session_id": "s1", "ref": "9"})

    assert ack.to_frame() == {
        "type": ACK,
        "command": "session:subscribe",
        "result": False,
        "error": "Internal error",
        "ref": "9",
    }
    assert conn.is_open
    assert registry.is_online("u1")


@pytest.mark.asyncio
async def test_commands_on_closed_connection_fail(distributor, directory):
    conn = await _connect(distributor, directory, "u1")
    distributor.disconnect(conn)
    ack = await distributor.handle_command(conn, {"type": "session:subscribe", "session_id": "s1"})
    assert ack.result is False


@pytest.mark.asyncio
async def test_invisible_conversations_are_silently_skipped(distributor, directory, subscriptions):
    directory.add_session(session("s-private", ["a", "b"]))
    directory.add_panel(panel("p-private", ["a"], is_public=False))
    conn = await _connect(distributor, directory, "eve")

    for frame in (
        {"type": "session:subscribe", "session_id": "s-private"},
        {"type": "panel:subscribe", "panel_id": "p-private"},
    ):
        ack = await distributor.handle_command(conn, frame)
        assert ack.result is True

    assert subscriptions.subscriptions_of("eve") == set()


@pytest.mark.asyncio
async def test_unknown_ids_are_recorded(distributor, directory, subscriptions):
    conn = await _connect(distributor, directory, "u1")
    await distributor.handle_command(conn, {"type": "session:subscribe", "session_id": "future"})
    assert subscriptions.is_subscribed("u1", Target.session("future"))


@pytest.mark.asyncio
async def test_wildcard_session_subscribe_uses_snapshot(distributor, directory, subscriptions):
    directory.add_session(session("s1", ["i", "x"]))
    directory.add_session(session("s2", ["y", "i"]))
    directory.add_session(session("s-other", ["x", "y"]))
    conn = await _connect(distributor, directory, "i")

    ack = await distributor.handle_command(conn, {"type": "session:subscribe", "session_id": "*"})

    assert ack.result is True
    assert subscriptions.subscriptions_of("i") == {Target.session("s1"), Target.session("s2")}

    # Created after the wildcard: not included
    directory.add_session(session("s3", ["i", "z"]))
    assert not subscriptions.is_subscribed("i", Target.session("s3"))


@pytest.mark.asyncio
async def test_wildcard_panel_subscribe_only_covers_visible_panels(distributor, directory, subscriptions):
    directory.add_panel(panel("p-public", ["x"]))
    directory.add_panel(panel("p-mine", ["i"], is_public=False))
    directory.add_panel(panel("p-secret", ["x"], is_public=False))
    directory.add_panel(panel("p-elsewhere", ["x"]), workspace_id="ws-2")
    conn = await _connect(distributor, directory, "i")

    await distributor.handle_command(conn, {"type": "panel:subscribe", "panel_id": "*"})

    assert subscriptions.subscriptions_of("i") == {Target.panel("p-public"), Target.panel("p-mine")}


@pytest.mark.asyncio
async def test_wildcard_panel_without_workspace_subscribes_nothing(distributor, directory, subscriptions):
    directory.add_panel(panel("p1", ["x"]))
    conn = await _connect(distributor, directory, "loner", workspace_id=None)
    ack = await distributor.handle_command(conn, {"type": "panel:subscribe", "panel_id": "*"})
    assert ack.result is True
    assert subscriptions.subscriptions_of("loner") == set()


@pytest.mark.asyncio
async def test_wildcard_panel_uses_current_workspace(distributor, directory, subscriptions):
    directory.add_panel(panel("p-new", ["x"]), workspace_id="ws-new")
    conn = await _connect(distributor, directory, "mover", workspace_id=None)

    # Joined a workspace after the socket was opened
    directory.add_identity(identity("mover", workspace_id="ws-new"))
    await distributor.handle_command(conn, {"type": "panel:subscribe", "panel_id": "*"})

    assert subscriptions.subscriptions_of("mover") == {Target.panel("p-new")}


@pytest.mark.asyncio
async def test_wildcard_unsubscribe_drops_that_kind(distributor, directory, subscriptions):
    conn = await _connect(distributor, directory, "i")
    await distributor.handle_command(conn, {"type": "session:subscribe", "session_ids": ["a", "b"]})
    await distributor.handle_command(conn, {"type": "panel:subscribe", "panel_id": "p"})

    await distributor.handle_command(conn, {"type": "session:unsubscribe", "session_id": "*"})

    assert subscriptions.subscriptions_of("i") == {Target.panel("p")}


# ═══════════════════════════════════════════════════════════
# Fan-out
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_session_message_reaches_subscriber(distributor, directory):
    s1 = directory.add_session(session("s1", ["agent-1", "agent-2"]))
    sender = directory.add_identity(identity("agent-1"))
    author_conn = await _connect(distributor, directory, "agent-1")
    conn = await _connect(distributor, directory, "agent-2")
    await distributor.handle_command(conn, {"type": "session:subscribe", "session_id": "s1"})

    decision = await distributor.distribute_session_message(s1, message("agent-1", "hello"), sender)

    assert decision.recipients == {"agent-2"}
    [frame] = conn.drain()
    assert frame["type"] == NOTIFY_SESSION
    assert frame["data"]["conversationId"] == "s1"
    assert frame["data"]["message"]["content"] == "hello"
    assert frame["data"]["message"]["senderId"] == "agent-1"
    assert frame["data"]["sender"] == {"id": "agent-1", "displayName": "AGENT-1", "kind": "agent"}
    assert author_conn.drain() == []


@pytest.mark.asyncio
async def test_every_connection_of_a_recipient_gets_the_same_frame(distributor, directory, subscriptions):
    p1 = directory.add_panel(panel("p1", ["u1"]))
    conns = [await _connect(distributor, directory, "u2") for _ in range(3)]
    subscriptions.subscribe("u2", Target.panel("p1"))

    await distributor.distribute_panel_message(
        p1, message("u1", "@u2 please review", panel_id="p1"), identity("u1")
    )

    frames = [c.drain() for c in conns]
    assert all(len(f) == 1 for f in frames)
    assert frames[0][0] == frames[1][0] == frames[2][0]
    assert frames[0][0]["type"] == NOTIFY_PANEL
    assert frames[0][0]["data"]["message"]["mentions"] == ["u2"]


@pytest.mark.asyncio
async def test_panel_fanout_reaches_unaddressed_subscribers(distributor, directory, subscriptions):
    p1 = directory.add_panel(panel("p1", ["u1"]))
    c2 = await _connect(distributor, directory, "u2")
    c3 = await _connect(distributor, directory, "u3")
    for u in ("u1", "u2", "u3"):
        subscriptions.subscribe(u, Target.panel("p1"))

    decision = await distributor.distribute_panel_message(
        p1, message("u1", "@u2 please review"), identity("u1")
    )

    assert decision.recipients == {"u2", "u3"}
    assert len(c2.drain()) == 1
    assert len(c3.drain()) == 1


@pytest.mark.asyncio
async def test_offline_recipients_are_skipped(distributor, directory, registry):
    s1 = directory.add_session(session("s1", ["a", "b", "c"]))
    cb = await _connect(distributor, directory, "b")

    decision = await distributor.distribute_session_message(s1, message("a", "hi"), identity("a"))

    assert decision.recipients == {"b", "c"}
    assert registry.is_online("c") is False
    assert len(cb.drain()) == 1


@pytest.mark.asyncio
async def test_unsubscribed_before_post_receives_nothing(distributor, directory):
    p1 = directory.add_panel(panel("p1", ["u1"]))
    conn = await _connect(distributor, directory, "u2")
    await distributor.handle_command(conn, {"type": "panel:subscribe", "panel_id": "p1"})
    await distributor.handle_command(conn, {"type": "panel:unsubscribe", "panel_id": "p1"})

    await distributor.distribute_panel_message(p1, message("u1", "hi"), identity("u1"))

    assert conn.drain() == []


@pytest.mark.asyncio
async def test_vanished_conversation_produces_no_fanout(distributor, directory):
    s1 = session("s1", ["a", "b"])  # never added to the directory
    cb = await _connect(distributor, directory, "b")

    decision = await distributor.distribute_session_message(s1, message("a", "hi"), identity("a"))

    assert decision.notify is False
    assert cb.drain() == []


@pytest.mark.asyncio
async def test_full_outbox_drops_without_blocking(distributor, directory):
    s1 = directory.add_session(session("s1", ["a", "b"]))
    cb = await _connect(distributor, directory, "b")

    for n in range(10):  # queue_size is 8 in the fixture
        await distributor.distribute_session_message(
            s1, message("a", f"msg {n}", message_id=f"m-{n}"), identity("a")
        )

    assert len(cb.drain()) == 8
    assert cb.dropped == 2


@pytest.mark.asyncio
async def test_send_to_identity(distributor, directory):
    c1 = await _connect(distributor, directory, "u1")
    c2 = await _connect(distributor, directory, "u1")

    sent = distributor.send_to_identity("u1", "notice", {"text": "hi"})

    assert sent == 2
    assert c1.drain() == c2.drain() == [{"type": "notice", "data": {"text": "hi"}}]
    assert distributor.send_to_identity("nobody", "notice", {}) == 0
