"""chatrelay CLI entry point."""

import typer
from rich.console import Console

from chatrelay.api.cli.commands import ask, channels, sessions
from chatrelay.api.cli.runtime import configure_logging

app = typer.Typer(
    name="chatrelay",
    help="chatrelay - Relay agent questions to humans over Telegram",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("ask", help="Ask a human and print the answer")(ask.ask)

# Register command groups
app.add_typer(channels.app, name="channels", help="Channel management")
app.add_typer(sessions.app, name="sessions", help="Session bindings and pending sessions")


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="CHATRELAY_CONFIG",
        help="Path to the YAML configuration file",
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """chatrelay CLI."""
    configure_logging(debug)
    # Store global options in context for subcommands
    ctx.obj = {"config": config, "debug": debug}


@app.command()
def version():
    """Show chatrelay version."""
    from chatrelay import __version__

    console.print(f"[bold blue]Version:[/bold blue] [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
