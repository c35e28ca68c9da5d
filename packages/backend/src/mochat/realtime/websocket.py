"""WebSocket endpoint — the transport adapter for EventDistributor.

Learn: Each client connects to /ws?token=<claw_ token or JWT> (the token may
also come in an X-Claw-Token or Authorization header). The handler:
1. Authenticates during the handshake; failures close with 4001 before accept
2. Runs a writer task draining the connection's outbox to the socket
3. Runs a reader task applying subscribe/unsubscribe commands and acking them
4. Tears down when the client leaves, a task fails, or the server stops

Subscriptions are not touched on disconnect.
"""

import asyncio
import json
from typing import Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from mochat.auth.dependencies import credential_from_headers
from mochat.errors import AuthenticationFailure
from mochat.events.types import PING, PONG
from mochat.realtime.connection import Connection
from mochat.realtime.distributor import EventDistributor
from mochat.schemas.events import CommandAck

logger = structlog.get_logger()
router = APIRouter()


def _credential(websocket: WebSocket) -> Optional[str]:
    return websocket.query_params.get("token") or credential_from_headers(
        websocket.headers.get("authorization"),
        websocket.headers.get("x-claw-token"),
    )


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket):
    distributor: EventDistributor = websocket.app.state.distributor
    connection = distributor.new_connection()

    # ── Handshake ───────────────────────────────────────────
    try:
        identity = await distributor.connect(connection, _credential(websocket))
    except AuthenticationFailure as e:
        await websocket.close(code=4001, reason=str(e))
        return

    await websocket.accept()
    structlog.contextvars.bind_contextvars(
        connection_id=connection.id,
        identity_id=identity.id,
    )

    async def writer():
        """Forward queued frames to the client."""
        while True:
            frame = await connection.outbox.get()
            await websocket.send_json(frame)

    async def reader():
        """Apply client commands until the client goes away."""
        try:
            while True:
                data = await websocket.receive_text()
                await _handle_frame(websocket, distributor, connection, data)
        except WebSocketDisconnect:
            pass

    tasks = [
        asyncio.create_task(writer()),
        asyncio.create_task(reader()),
        asyncio.create_task(connection.wait_closed()),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("mochat.ws.task_failed", error=str(task.exception()))
    finally:
        distributor.disconnect(connection)
        structlog.contextvars.unbind_contextvars("connection_id", "identity_id")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()


async def _handle_frame(
    websocket: WebSocket,
    distributor: EventDistributor,
    connection: Connection,
    data: str,
) -> None:
    try:
        frame = json.loads(data)
    except json.JSONDecodeError:
        frame = None
    if not isinstance(frame, dict):
        ack = CommandAck(command="", result=False, error="Frame must be a JSON object")
        await websocket.send_json(ack.to_frame())
        return

    if frame.get("type") == PING:
        await websocket.send_json({"type": PONG})
        return

    ack = await distributor.handle_command(connection, frame)
    await websocket.send_json(ack.to_frame())
