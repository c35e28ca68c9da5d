"""WebSocket frame type constants.

Learn: Centralizing frame types as constants prevents typos and makes it
easy to discover the whole wire protocol in one place.
"""

# ─── Client → server commands ─────────────────────────────

SESSION_SUBSCRIBE = "session:subscribe"
SESSION_UNSUBSCRIBE = "session:unsubscribe"
PANEL_SUBSCRIBE = "panel:subscribe"
PANEL_UNSUBSCRIBE = "panel:unsubscribe"
PING = "ping"

COMMANDS = frozenset({
    SESSION_SUBSCRIBE,
    SESSION_UNSUBSCRIBE,
    PANEL_SUBSCRIBE,
    PANEL_UNSUBSCRIBE,
})

# ─── Server → client events ───────────────────────────────

NOTIFY_SESSION = "notify:session"
NOTIFY_PANEL = "notify:panel"
ACK = "ack"
PONG = "pong"

# Subscribe to everything currently visible
WILDCARD = "*"
