"""Result and feedback formatting.

Builds the two canonical JSON result shapes returned to the agent and the
one-line feedback text echoed back to the chat.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from chatrelay.core.utils.time import utc_now_iso

SOURCE_TELEGRAM = "telegram"
SOURCE_TELEGRAM_CONTINUE = "telegram_continue"
DEFAULT_CONTINUE_PROMPT = "Please continue following best practices"

FEEDBACK_CONTINUE = "⏩ Continuing."
FEEDBACK_SENT = "✅ Response sent."
FEEDBACK_SEPARATOR = ", "


def build_result(
    user_input: str | None,
    selected_options: Iterable[str],
    request_id: str | None,
    source: str,
) -> dict[str, Any]:
    """Assemble the structured result consumed by the agent."""
    return {
        "user_input": user_input,
        "selected_options": list(selected_options),
        # Image delivery is not supported on chat channels.
        "images": [],
        "metadata": {
            "timestamp": utc_now_iso(),
            "request_id": request_id,
            "source": source,
        },
    }


def build_answered_result(
    user_input: str,
    selected_options: Iterable[str],
    request_id: str | None,
    source: str = SOURCE_TELEGRAM,
) -> dict[str, Any]:
    """Result for a Send commit; empty text becomes ``None``."""
    return build_result(user_input or None, selected_options, request_id, source)


def build_continue_result(
    request_id: str | None,
    continue_prompt: str | None = None,
    source: str = SOURCE_TELEGRAM_CONTINUE,
) -> dict[str, Any]:
    """Result for a Continue commit: the continue prompt and no selections."""
    return build_result(continue_prompt or DEFAULT_CONTINUE_PROMPT, [], request_id, source)


def build_feedback_message(
    selected_options: Iterable[str],
    user_input: str,
    is_continue: bool,
) -> str:
    """One-line summary of what was recorded, sent back to the human."""
    if is_continue:
        return FEEDBACK_CONTINUE

    selected = FEEDBACK_SEPARATOR.join(selected_options)
    text = user_input.strip()
    if selected and text:
        return f"✅ Selected: {selected} | Input: {text}"
    if text:
        return f"✅ Input: {text}"
    if selected:
        return f"✅ Selected: {selected}"
    return FEEDBACK_SENT


def result_to_json(result: dict[str, Any]) -> str:
    return json.dumps(result, ensure_ascii=False)
