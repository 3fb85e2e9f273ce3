"""Channels command - Manage Telegram bot endpoints."""

import asyncio

import typer
from rich.table import Table

from chatrelay.api.cli import runtime
from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.errors import ChatRelayError

app = typer.Typer(help="Channel management")


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}…{token[-4:]}"


@app.command("list")
def list_channels(ctx: typer.Context):
    """List configured channels."""
    admin = runtime.open_admin(ctx)
    endpoints = admin.list_channels()
    if not endpoints:
        runtime.console.print("[yellow]No channels configured[/yellow]")
        return

    default_name = admin.registry.default_name
    table = Table(title="Channels")
    table.add_column("Name", style="cyan")
    table.add_column("Chat", style="white")
    table.add_column("Token", style="dim")
    table.add_column("API", style="white")
    table.add_column("Default", style="green")
    for endpoint in endpoints:
        table.add_row(
            endpoint.name,
            endpoint.conversation_id,
            _mask(endpoint.token),
            "telegram" if endpoint.uses_default_api else endpoint.api_base_url,
            "✓" if endpoint.name == default_name else "",
        )
    runtime.console.print(table)


@app.command("add")
def add_channel(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Unique channel name"),
    token: str = typer.Option(..., "--token", help="Bot token"),
    chat_id: str = typer.Option(..., "--chat-id", help="Target chat id"),
    api_base_url: str = typer.Option("", "--api-base-url", help="Custom Bot API root"),
    make_default: bool = typer.Option(False, "--default", help="Make this the default channel"),
):
    """Add a channel."""
    admin = runtime.open_admin(ctx)
    try:
        admin.add_channel(
            ChannelEndpoint(
                name=name, token=token, conversation_id=chat_id, api_base_url=api_base_url
            )
        )
        if make_default:
            admin.set_default_channel(name)
    except (ChatRelayError, ValueError) as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Channel '{name}' added[/green]")


@app.command("remove")
def remove_channel(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Channel name"),
):
    """Remove a channel and the session bindings that point to it."""
    admin = runtime.open_admin(ctx)
    try:
        admin.remove_channel(name)
    except ChatRelayError as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Channel '{name}' removed[/green]")


@app.command("update")
def update_channel(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Current channel name"),
    new_name: str | None = typer.Option(None, "--name", help="Rename the channel"),
    token: str | None = typer.Option(None, "--token", help="New bot token"),
    chat_id: str | None = typer.Option(None, "--chat-id", help="New target chat id"),
    api_base_url: str | None = typer.Option(None, "--api-base-url", help="New Bot API root"),
):
    """Update or rename a channel. Omitted fields keep their value."""
    admin = runtime.open_admin(ctx)
    current = admin.registry.get(name)
    if current is None:
        runtime.fail(f"Channel '{name}' does not exist")
    try:
        admin.update_channel(
            name,
            ChannelEndpoint(
                name=new_name or current.name,
                token=current.token if token is None else token,
                conversation_id=current.conversation_id if chat_id is None else chat_id,
                api_base_url=current.api_base_url if api_base_url is None else api_base_url,
            ),
        )
    except (ChatRelayError, ValueError) as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Channel '{new_name or name}' updated[/green]")


@app.command("default")
def set_default(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Channel name"),
):
    """Set the default channel."""
    admin = runtime.open_admin(ctx)
    try:
        admin.set_default_channel(name)
    except ChatRelayError as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Default channel set to '{name}'[/green]")


@app.command("test")
def test_channel(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Channel name (default channel if omitted)"),
):
    """Check the bot token and send a test message to the channel's chat."""
    admin = runtime.open_admin(ctx)
    try:
        endpoint = admin.registry.get_default() if name is None else admin.registry.get(name)
    except ChatRelayError as exc:
        runtime.fail(exc)
    if endpoint is None:
        runtime.fail(f"Channel '{name}' does not exist")

    async def _test() -> str:
        transport = runtime.transport_factory(endpoint)
        try:
            return await transport.test_connection(endpoint.conversation_id)
        finally:
            await transport.close()

    try:
        bot = asyncio.run(_test())
    except ChatRelayError as exc:
        runtime.fail(exc)
    runtime.console.print(f"[green]Connected as @{bot}, test message sent to {endpoint.conversation_id}[/green]")


@app.command("detect-chat")
def detect_chat(
    ctx: typer.Context,
    token: str = typer.Option(..., "--token", help="Bot token to listen with"),
    api_base_url: str = typer.Option("", "--api-base-url", help="Custom Bot API root"),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait for a message"),
):
    """Wait for a message to the bot and print the chat id it came from."""
    # Chat id is unknown yet; a placeholder endpoint carries the token.
    endpoint = ChannelEndpoint(
        name="detect", token=token, conversation_id="", api_base_url=api_base_url
    )
    runtime.console.print(f"Send any message to the bot within {timeout:.0f}s…")

    async def _detect():
        transport = runtime.transport_factory(endpoint)
        try:
            return await transport.detect_chat(timeout_seconds=timeout)
        finally:
            await transport.close()

    detected = asyncio.run(_detect())
    if detected is None:
        runtime.fail("No message received before the timeout")

    runtime.console.print(f"[bold]Chat id:[/bold] [cyan]{detected.chat_id}[/cyan]")
    runtime.console.print(f"[bold]Chat:[/bold] {detected.title}")
    runtime.console.print(f"[bold]From:[/bold] @{detected.username}")
    if detected.text:
        runtime.console.print(f"[bold]Message:[/bold] {detected.text}")
