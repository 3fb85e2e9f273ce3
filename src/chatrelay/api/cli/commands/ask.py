"""Ask command - Deliver one interaction request and print the result."""

import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from chatrelay.api.cli import runtime
from chatrelay.application.bridge import InteractionBridge
from chatrelay.application.config_loader import RelayState
from chatrelay.core.domain.errors import ChatRelayError, error_payload
from chatrelay.core.domain.formatter import result_to_json
from chatrelay.core.domain.interaction import InteractionRequest
from chatrelay.infrastructure.persistence.yaml_config_store import YamlConfigStore


def _read_request(source: str) -> dict[str, Any]:
    raw = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("request must be a JSON object")
    return data


async def _run_bridge(
    state: RelayState,
    store: YamlConfigStore,
    request: InteractionRequest,
    derive_session_ids: bool,
) -> dict[str, Any] | None:
    bridge = InteractionBridge(
        state=state,
        transport_factory=runtime.transport_factory,
        config_store=store,
        derive_session_ids=derive_session_ids,
    )
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, bridge.request_stop)
            installed.append(sig)
    try:
        return await bridge.handle_request(request)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def ask(
    ctx: typer.Context,
    request_file: str = typer.Argument(
        "-", help="JSON request file, or '-' to read it from stdin"
    ),
    channel: str | None = typer.Option(
        None, "--channel", help="Deliver through this channel (overrides the request)"
    ),
    session_id: str | None = typer.Option(
        None, "--session-id", help="Caller session id used for routing"
    ),
    derive_session_id: bool = typer.Option(
        True,
        "--derive-session-id/--no-derive-session-id",
        help="Derive a session id from the working directory when none is given",
    ),
):
    """Post a request to a human and print the JSON answer on stdout.

    The request is a JSON object with ``message`` and optional
    ``predefined_options``, ``is_markdown``, ``channel_name``,
    ``session_id`` and ``working_directory``.
    """
    try:
        data = _read_request(request_file)
    except (OSError, ValueError) as exc:
        runtime.fail(f"Invalid request: {exc}")
    if channel:
        data["channel_name"] = channel
    if session_id:
        data["session_id"] = session_id
    try:
        request = InteractionRequest.model_validate(data)
    except ValidationError as exc:
        runtime.fail(f"Invalid request: {exc}")

    store, state = runtime.open_state(ctx)
    try:
        result = asyncio.run(_run_bridge(state, store, request, derive_session_id))
    except ChatRelayError as exc:
        typer.echo(json.dumps(error_payload(exc, {"request_id": request.request_id})))
        runtime.fail(exc)

    if result is None:
        runtime.err_console.print("[yellow]Interrupted before the human answered[/yellow]")
        raise typer.Exit(130)
    typer.echo(result_to_json(result))
