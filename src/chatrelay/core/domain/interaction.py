"""Domain models for one human interaction.

All structured types that flow through an interaction session: the inbound
request, transport-neutral channel updates, the closed set of domain events
produced by classification, and the button markup posted to the channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

TOGGLE_PREFIX = "toggle:"
SEND_LABEL = "↗️ Send"
CONTINUE_LABEL = "⏩ Continue"
SELECTED_MARK = "✅"
UNSELECTED_MARK = "☐"


def encode_toggle(option: str) -> str:
    """Callback payload for an option button; the label is carried verbatim."""
    return f"{TOGGLE_PREFIX}{option}"


def decode_toggle(payload: str) -> str | None:
    """Return the option label of a toggle payload, or None for other payloads."""
    if not payload.startswith(TOGGLE_PREFIX):
        return None
    return payload[len(TOGGLE_PREFIX):]


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class InteractionRequest(BaseModel):
    """A request for human input emitted by the agent."""

    model_config = ConfigDict(extra="ignore")

    message: str = Field(..., description="Prompt shown to the human")
    predefined_options: list[str] = Field(
        default_factory=list,
        description="Multiple-choice options the human may toggle",
    )
    is_markdown: bool = Field(True, description="Render the prompt as Markdown")
    channel_name: str | None = Field(None, description="Explicit target channel")
    session_id: str | None = Field(None, description="Caller session for routing")
    working_directory: str | None = Field(
        None, description="Working directory used to derive a session id"
    )
    request_id: str = Field(default_factory=lambda: uuid4().hex)

    @field_validator("predefined_options", mode="before")
    @classmethod
    def _none_means_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("predefined_options")
    @classmethod
    def _dedupe_options(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        ordered: list[str] = []
        for option in value:
            if option not in seen:
                seen.add(option)
                ordered.append(option)
        return ordered

    @field_validator("channel_name", "session_id", "working_directory")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


# ---------------------------------------------------------------------------
# Channel updates (produced by a ChannelTransport)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ButtonPress:
    """A press on an inline button attached to a message."""

    update_id: int
    payload: str
    message_id: int | None
    conversation_id: str
    callback_id: str = ""


@dataclass(frozen=True)
class IncomingMessage:
    """A message written in the conversation.

    ``button_payloads`` lists the callback payloads of any inline keyboard
    attached to the message (used to recognise the options message).
    """

    update_id: int
    message_id: int
    conversation_id: str
    text: str = ""
    button_payloads: tuple[str, ...] = ()


@dataclass(frozen=True)
class OtherUpdate:
    """Any update kind the bridge does not interpret."""

    update_id: int


ChannelUpdate = Union[ButtonPress, IncomingMessage, OtherUpdate]


# ---------------------------------------------------------------------------
# Domain events (produced by the update classifier)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OptionToggled:
    """An option button was pressed.

    ``now_selected`` is filled in by the session once the toggle is applied.
    """

    option: str
    now_selected: bool | None = None
    callback_id: str = ""


@dataclass(frozen=True)
class TextUpdated:
    text: str


@dataclass(frozen=True)
class SendPressed:
    pass


@dataclass(frozen=True)
class ContinuePressed:
    pass


@dataclass(frozen=True)
class Ignored:
    reason: str = ""


DomainEvent = Union[OptionToggled, TextUpdated, SendPressed, ContinuePressed, Ignored]


# ---------------------------------------------------------------------------
# Markup
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InlineButton:
    text: str
    payload: str


@dataclass(frozen=True)
class OptionKeyboard:
    """Inline toggle buttons, one row per option."""

    rows: tuple[tuple[InlineButton, ...], ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class CommandKeyboard:
    """Reply keyboard whose buttons send their label as a plain message."""

    labels: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RemoveKeyboard:
    """Hide the command keyboard once the session is over."""


Markup = Union[OptionKeyboard, CommandKeyboard, RemoveKeyboard]


def build_option_keyboard(options: list[str], selected: set[str] | frozenset[str]) -> OptionKeyboard:
    """Render one toggle button per option, marking the selected ones."""
    rows = tuple(
        (
            InlineButton(
                text=f"{SELECTED_MARK if option in selected else UNSELECTED_MARK} {option}",
                payload=encode_toggle(option),
            ),
        )
        for option in options
    )
    return OptionKeyboard(rows=rows)


def build_command_keyboard(
    continue_enabled: bool,
    *,
    send_label: str = SEND_LABEL,
    continue_label: str = CONTINUE_LABEL,
) -> CommandKeyboard:
    labels = (send_label, continue_label) if continue_enabled else (send_label,)
    return CommandKeyboard(labels=labels)
