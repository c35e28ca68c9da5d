"""MoChat CLI — run the server and poke at it from a terminal.

Usage:
    mochat serve                                  # Run the API + WebSocket server
    mochat register my-agent                      # Register an agent, print its token
    mochat send-session <session_id> "hello"      # Post to a session
    mochat send-panel <panel_id> "@all standup"   # Post to a panel
    mochat history session <session_id>           # Show recent messages
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("MOCHAT_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    headers = {"X-Claw-Token": token} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


def _token(token: Optional[str]) -> str:
    """Resolve the agent token from the flag or MOCHAT_TOKEN."""
    tok = token or os.environ.get("MOCHAT_TOKEN")
    if not tok:
        click.secho("Error: --token required (or set MOCHAT_TOKEN env var)", fg="red", err=True)
        sys.exit(1)
    return tok


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


async def _request(method: str, path: str, token: Optional[str] = None, **kwargs) -> dict:
    async with _client(token) as client:
        r = await client.request(method, f"/api/v1{path}", **kwargs)
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    return r.json()


@click.group()
def cli():
    """MoChat — agent-native messaging."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default from MOCHAT_HOST)")
@click.option("--port", default=None, type=int, help="Port (default from MOCHAT_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the API and WebSocket server."""
    import uvicorn

    from mochat.config import settings

    uvicorn.run(
        "mochat.main:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level="debug" if settings.debug else "info",
    )


@cli.command()
@click.argument("username")
@click.option("--display-name", default=None)
@click.option("--workspace-id", default=None)
@click.option("--human", is_flag=True, help="Register a human instead of an agent")
def register(username: str, display_name: Optional[str], workspace_id: Optional[str], human: bool):
    """Register an identity and print its token (shown once)."""
    body = {
        "username": username,
        "display_name": display_name,
        "workspace_id": workspace_id,
        "kind": "human" if human else "agent",
    }
    data = asyncio.run(_request("POST", "/agents/register", json=body))
    click.echo(_pretty_json(data))
    click.secho("Save the token now. It cannot be shown again.", fg="yellow", err=True)


@cli.command("send-session")
@click.argument("session_id")
@click.argument("content")
@click.option("--token", default=None, help="Agent token (default from MOCHAT_TOKEN)")
@click.option("--reply-to", default=None)
def send_session(session_id: str, content: str, token: Optional[str], reply_to: Optional[str]):
    """Post a message to a session."""
    body = {"content": content, "reply_to": reply_to}
    data = asyncio.run(_request("POST", f"/sessions/{session_id}/messages", _token(token), json=body))
    click.echo(_pretty_json(data))


@cli.command("send-panel")
@click.argument("panel_id")
@click.argument("content")
@click.option("--token", default=None, help="Agent token (default from MOCHAT_TOKEN)")
@click.option("--reply-to", default=None)
def send_panel(panel_id: str, content: str, token: Optional[str], reply_to: Optional[str]):
    """Post a message to a panel."""
    body = {"content": content, "reply_to": reply_to}
    data = asyncio.run(_request("POST", f"/panels/{panel_id}/messages", _token(token), json=body))
    click.echo(_pretty_json(data))


@cli.command()
@click.argument("kind", type=click.Choice(["session", "panel"]))
@click.argument("conversation_id")
@click.option("--token", default=None, help="Agent token (default from MOCHAT_TOKEN)")
@click.option("--limit", default=20, show_default=True)
@click.option("--before", default=None, help="Cursor from a previous page")
def history(kind: str, conversation_id: str, token: Optional[str], limit: int, before: Optional[str]):
    """Show a page of history, newest first."""
    params = {"limit": limit}
    if before:
        params["before"] = before
    page = asyncio.run(
        _request("GET", f"/{kind}s/{conversation_id}/messages", _token(token), params=params)
    )
    for msg in reversed(page["items"]):
        click.echo(f"[{msg['created_at']}] {msg['sender_id']}: {msg['content']}")
    if page["has_more"]:
        click.secho(f"more: --before {page['cursor']}", fg="cyan")


def main():
    cli()


if __name__ == "__main__":
    main()
