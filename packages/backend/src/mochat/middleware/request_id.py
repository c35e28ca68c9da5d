"""Request ID middleware — unique ID per HTTP request for tracing.

Learn: Every request gets an ID, either from the incoming X-Request-ID
header or a fresh uuid4. It is bound to structlog's contextvars so it shows
up on every log line the request produces (including distribution logs
emitted while the write path fans a message out), and echoed back in the
response header. WebSocket scopes pass straight through; the socket
handler binds its own connection_id instead.
"""

import uuid

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestIdMiddleware:
    """Pure-ASGI so it can sit in front of WebSocket routes untouched."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        incoming = headers.get(b"x-request-id")
        request_id = incoming.decode("latin-1") if incoming else str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                raw = list(message.get("headers", []))
                raw.append((b"x-request-id", request_id.encode("latin-1")))
                message["headers"] = raw
            await send(message)

        await self.app(scope, receive, send_with_id)
