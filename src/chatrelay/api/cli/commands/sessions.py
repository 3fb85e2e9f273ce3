"""Sessions command - Manage session bindings and pending sessions."""

import typer
from rich.table import Table

from chatrelay.api.cli import runtime
from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.errors import ChatRelayError

app = typer.Typer(help="Session bindings and pending sessions")


@app.command("list")
def list_bindings(ctx: typer.Context):
    """List session → channel bindings."""
    admin = runtime.open_admin(ctx)
    bindings = admin.session_bindings()
    if not bindings:
        runtime.console.print("[yellow]No session bindings[/yellow]")
        return

    table = Table(title="Session Bindings")
    table.add_column("Session ID", style="cyan")
    table.add_column("Channel", style="white")
    for session_id, channel in sorted(bindings.items()):
        table.add_row(session_id, channel)
    runtime.console.print(table)


@app.command("bind")
def bind_session(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
    channel: str = typer.Argument(..., help="Channel name"),
):
    """Bind a session to a channel."""
    admin = runtime.open_admin(ctx)
    try:
        admin.bind_session(session_id, channel)
    except ChatRelayError as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Session '{session_id}' → '{channel}'[/green]")


@app.command("unbind")
def unbind_session(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
):
    """Remove a session binding; the session falls back to the default channel."""
    admin = runtime.open_admin(ctx)
    try:
        admin.unbind_session(session_id)
    except ChatRelayError as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Session '{session_id}' unbound[/green]")


@app.command("pending")
def list_pending(ctx: typer.Context):
    """List sessions waiting for a channel."""
    admin = runtime.open_admin(ctx)
    pending = admin.pending_sessions()
    if not pending:
        runtime.console.print("[yellow]No pending sessions[/yellow]")
        return

    table = Table(title="Pending Sessions")
    table.add_column("Session ID", style="cyan")
    table.add_column("Recorded", style="white")
    for entry in pending:
        table.add_row(entry.session_id, entry.recorded_at.isoformat())
    runtime.console.print(table)


@app.command("ignore")
def ignore_pending(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
):
    """Dismiss a pending session; it keeps using the default channel."""
    admin = runtime.open_admin(ctx)
    if not admin.ignore_pending_session(session_id):
        runtime.fail(f"Session '{session_id}' is not pending")
    runtime.console.print(f"[green]Session '{session_id}' ignored[/green]")


@app.command("configure")
def configure_session(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
    name: str = typer.Option(..., "--name", help="Channel name to create or reuse"),
    token: str = typer.Option(..., "--token", help="Bot token"),
    chat_id: str = typer.Option(..., "--chat-id", help="Target chat id"),
    api_base_url: str = typer.Option("", "--api-base-url", help="Custom Bot API root"),
):
    """Create a channel for a session and bind the session to it."""
    admin = runtime.open_admin(ctx)
    try:
        admin.configure_session_channel(
            session_id,
            ChannelEndpoint(
                name=name, token=token, conversation_id=chat_id, api_base_url=api_base_url
            ),
        )
    except (ChatRelayError, ValueError) as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Session '{session_id}' → '{name}'[/green]")
