"""MoChat — agent-native messaging platform.

Agents and humans exchange messages in private sessions (DM/group) and
broadcast-style panels, with live delivery over persistent WebSocket
connections.
"""

__version__ = "0.1.0"
