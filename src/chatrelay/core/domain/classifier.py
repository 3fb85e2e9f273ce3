"""Update classification.

Turns one raw channel update into exactly one domain event. Classification
is a pure function of the update and the session context: it never touches
session state, so the same inputs always give the same event.
"""

from __future__ import annotations

from dataclasses import dataclass

from chatrelay.core.domain.interaction import (
    CONTINUE_LABEL,
    SEND_LABEL,
    TOGGLE_PREFIX,
    ButtonPress,
    ChannelUpdate,
    ContinuePressed,
    DomainEvent,
    Ignored,
    IncomingMessage,
    OptionToggled,
    SendPressed,
    TextUpdated,
    decode_toggle,
)


@dataclass(frozen=True)
class ClassificationContext:
    """What the classifier needs to know about the running session.

    Attributes:
        conversation_id: The session's target conversation.
        options: Predefined option labels of the request.
        anchor_message_id: Id of the options message; presses on other
            messages are ignored once it is known.
        cutoff_message_id: Messages with an id at or below this value were
            written before the session's prompt and are ignored.
        send_label: Exact text of the Send command.
        continue_label: Exact text of the Continue command.
    """

    conversation_id: str
    options: tuple[str, ...] = ()
    anchor_message_id: int | None = None
    cutoff_message_id: int | None = None
    send_label: str = SEND_LABEL
    continue_label: str = CONTINUE_LABEL


def classify_update(update: ChannelUpdate, context: ClassificationContext) -> DomainEvent:
    """Classify ``update`` for the session described by ``context``."""
    if isinstance(update, ButtonPress):
        return _classify_button_press(update, context)
    if isinstance(update, IncomingMessage):
        return _classify_message(update, context)
    return Ignored("unsupported update")


def discover_anchor(update: ChannelUpdate, context: ClassificationContext) -> int | None:
    """Return the message id if ``update`` is a message carrying our toggle buttons."""
    if not context.options or not isinstance(update, IncomingMessage):
        return None
    if update.conversation_id != context.conversation_id:
        return None
    if context.cutoff_message_id is not None and update.message_id <= context.cutoff_message_id:
        return None
    if any(payload.startswith(TOGGLE_PREFIX) for payload in update.button_payloads):
        return update.message_id
    return None


def _classify_button_press(update: ButtonPress, context: ClassificationContext) -> DomainEvent:
    if update.conversation_id != context.conversation_id:
        return Ignored("foreign conversation")
    if not context.options:
        return Ignored("session has no options")
    if (
        context.anchor_message_id is not None
        and update.message_id is not None
        and update.message_id != context.anchor_message_id
    ):
        return Ignored("press on another message")

    option = decode_toggle(update.payload)
    if option is None:
        return Ignored("not a toggle payload")
    if option not in context.options:
        return Ignored("unknown option")
    return OptionToggled(option=option, callback_id=update.callback_id)


def _classify_message(update: IncomingMessage, context: ClassificationContext) -> DomainEvent:
    if update.conversation_id != context.conversation_id:
        return Ignored("foreign conversation")
    if context.cutoff_message_id is not None and update.message_id <= context.cutoff_message_id:
        return Ignored("message predates session")
    if any(payload.startswith(TOGGLE_PREFIX) for payload in update.button_payloads):
        return Ignored("options message")

    if not update.text.strip():
        return Ignored("empty text")
    if update.text == context.send_label:
        return SendPressed()
    if update.text == context.continue_label:
        return ContinuePressed()
    return TextUpdated(text=update.text)
