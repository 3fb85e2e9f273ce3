"""Shared CLI plumbing: logging setup, config access and error output."""

import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import structlog
import typer
from rich.console import Console

from chatrelay.application.channel_admin import ChannelAdminService
from chatrelay.application.config_loader import RelayState, load_relay_state
from chatrelay.core.domain.errors import ChatRelayError
from chatrelay.infrastructure.communication.telegram_transport import TelegramTransport
from chatrelay.infrastructure.persistence.yaml_config_store import YamlConfigStore

console = Console()
err_console = Console(stderr=True)

# Replaced in tests to avoid real network calls.
transport_factory = TelegramTransport.for_endpoint


def configure_logging(debug: bool) -> None:
    """Route stdlib logging and structlog to stderr.

    stdout is reserved for command output such as the ``ask`` JSON result.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def global_options(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj or {}


def open_store(ctx: typer.Context) -> YamlConfigStore:
    config_path = global_options(ctx).get("config")
    return YamlConfigStore(Path(config_path) if config_path else None)


def open_state(ctx: typer.Context) -> tuple[YamlConfigStore, RelayState]:
    store = open_store(ctx)
    try:
        state = load_relay_state(store)
    except ChatRelayError as exc:
        fail(exc)
    return store, state


def open_admin(ctx: typer.Context) -> ChannelAdminService:
    store, state = open_state(ctx)
    return ChannelAdminService(state=state, store=store)


def fail(error: ChatRelayError | str) -> NoReturn:
    """Print an error in red on stderr and exit with status 1."""
    err_console.print(f"[red]Error: {error}[/red]")
    raise typer.Exit(1)
