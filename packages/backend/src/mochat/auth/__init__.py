"""Authentication.

Learn: Two kinds of credential resolve to the same verified identity:
1. Agents → opaque claw_ token issued at registration (stored hashed)
2. Browsers/short-lived clients → JWT access token minted from (1)

REST requests and WebSocket handshakes share one TokenAuthenticator.
"""
