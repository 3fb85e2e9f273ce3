"""Interaction session: one request's lifecycle on a chat channel.

The session posts the interactive prompt, long-polls the channel, applies
classified events to its local state and ends on the first commit event
(Send or Continue). Its poll loop is the only writer of that state.

State flow::

    POSTING ──post ok──▶ POLLING ──Send/Continue──▶ COMPLETED
       │                    │
       └─post failed─▶ FAILED └─stop signal──▶ CANCELLED
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

import structlog

from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.classifier import (
    ClassificationContext,
    classify_update,
    discover_anchor,
)
from chatrelay.core.domain.config_schema import RelayConfigSchema
from chatrelay.core.domain.errors import TransportError
from chatrelay.core.domain.formatter import (
    DEFAULT_CONTINUE_PROMPT,
    build_answered_result,
    build_continue_result,
    build_feedback_message,
)
from chatrelay.core.domain.interaction import (
    ButtonPress,
    ChannelUpdate,
    ContinuePressed,
    DomainEvent,
    Ignored,
    InteractionRequest,
    OptionToggled,
    RemoveKeyboard,
    SendPressed,
    TextUpdated,
    build_command_keyboard,
    build_option_keyboard,
)
from chatrelay.core.interfaces.channel_transport import ChannelTransportProtocol
from chatrelay.core.interfaces.logging import LoggerProtocol

T = TypeVar("T")

EventObserver = Callable[[DomainEvent], Awaitable[None]]


class SessionState(str, Enum):
    POSTING = "posting"
    POLLING = "polling"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSettings:
    """Tunables for one interaction session.

    Attributes:
        poll_timeout: Long-poll timeout handed to the transport (seconds).
        poll_interval: Delay after every successful poll cycle.
        error_backoff: First delay after a failed poll; doubles per failure.
        max_error_backoff: Upper bound for the failure delay.
        post_delay: Pause between the prompt and the operation message.
        enable_continue_reply: Offer the Continue command.
        continue_prompt: Text returned to the agent on Continue.
    """

    poll_timeout: int = 10
    poll_interval: float = 1.0
    error_backoff: float = 1.0
    max_error_backoff: float = 5.0
    post_delay: float = 0.5
    enable_continue_reply: bool = True
    continue_prompt: str = DEFAULT_CONTINUE_PROMPT

    @classmethod
    def from_config(cls, config: RelayConfigSchema) -> SessionSettings:
        return cls(
            poll_timeout=config.polling.poll_timeout,
            poll_interval=config.polling.poll_interval,
            error_backoff=config.polling.error_backoff,
            max_error_backoff=config.polling.max_error_backoff,
            post_delay=config.polling.post_delay,
            enable_continue_reply=config.reply.enable_continue_reply,
            continue_prompt=config.reply.continue_prompt,
        )


class _StopRequested(Exception):
    """Raised internally when the stop signal wins a race."""


class InteractionSession:
    """Drive one interactive prompt from posting to the human's commit."""

    def __init__(
        self,
        *,
        request: InteractionRequest,
        endpoint: ChannelEndpoint,
        transport: ChannelTransportProtocol,
        settings: SessionSettings | None = None,
        stop_event: asyncio.Event | None = None,
        on_event: EventObserver | None = None,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._request = request
        self._endpoint = endpoint
        self._transport = transport
        self._settings = settings or SessionSettings()
        self._stop_event = stop_event
        self._on_event = on_event
        self._logger = logger or structlog.get_logger(__name__).bind(
            request_id=request.request_id, channel=endpoint.name
        )

        self._options: tuple[str, ...] = tuple(request.predefined_options)
        self._selected: set[str] = set()
        self._text = ""
        self._anchor_message_id: int | None = None
        self._cutoff_message_id: int | None = None
        self._cursor = 0
        self._consecutive_failures = 0
        self._state = SessionState.POSTING

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def selected(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def text(self) -> str:
        return self._text

    @property
    def anchor_message_id(self) -> int | None:
        return self._anchor_message_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> dict[str, Any] | None:
        """Post, poll until commit, and return the structured result.

        Returns:
            The answered or continue result, or ``None`` when the stop
            signal fired before a commit.

        Raises:
            TransportError: If posting the prompt failed (never retried).
        """
        try:
            await self.post()
            return await self.poll_until_commit()
        except _StopRequested:
            self._cancel()
            return None

    async def post(self) -> None:
        """Send the prompt with option buttons, then the operation message."""
        self._state = SessionState.POSTING
        keyboard = build_option_keyboard(list(self._options), self._selected)
        try:
            self._anchor_message_id = await self._race(
                self._transport.send(
                    self._endpoint.conversation_id,
                    self._request.message,
                    None if keyboard.is_empty else keyboard,
                    markdown=self._request.is_markdown,
                )
            )
            # Keeps the two messages in order on the client.
            await self._sleep(self._settings.post_delay)
            self._cutoff_message_id = await self._race(
                self._transport.send(
                    self._endpoint.conversation_id,
                    self._operation_text(),
                    build_command_keyboard(self._settings.enable_continue_reply),
                )
            )
        except TransportError as exc:
            self._state = SessionState.FAILED
            self._logger.error("interaction_session.post_failed", error=str(exc))
            raise

        self._state = SessionState.POLLING
        self._logger.info(
            "interaction_session.posted",
            anchor_message_id=self._anchor_message_id,
            operation_message_id=self._cutoff_message_id,
            options=len(self._options),
        )

    async def poll_until_commit(self) -> dict[str, Any]:
        """Poll the transport until a commit event arrives."""
        while True:
            self._check_stop()
            try:
                updates = await self._race(
                    self._transport.poll(self._cursor, self._settings.poll_timeout)
                )
            except TransportError as exc:
                delay = self._next_backoff()
                self._logger.warning(
                    "interaction_session.poll_failed",
                    error=str(exc),
                    cursor=self._cursor,
                    retry_in=delay,
                )
                await self._sleep(delay)
                continue

            self._consecutive_failures = 0
            for update in updates:
                # Every update moves the cursor, ignored or not.
                self._cursor = max(self._cursor, update.update_id + 1)
                result = await self.handle_update(update)
                if result is not None:
                    return result

            await self._sleep(self._settings.poll_interval)

    async def handle_update(self, update: ChannelUpdate) -> dict[str, Any] | None:
        """Apply one update; returns the result when it commits the session."""
        context = self._context()
        anchor = discover_anchor(update, context)
        if anchor is not None and anchor != self._anchor_message_id:
            self._logger.debug("interaction_session.anchor_discovered", message_id=anchor)
            self._anchor_message_id = anchor

        event = classify_update(update, context)
        if isinstance(event, Ignored):
            self._logger.debug(
                "interaction_session.update_ignored",
                update_id=update.update_id,
                reason=event.reason,
            )
            # Telegram keeps a spinner on the button until the press is answered.
            if isinstance(update, ButtonPress) and update.callback_id:
                await self._answer_callback(update.callback_id)
            return None
        if isinstance(event, OptionToggled):
            await self._apply_toggle(event)
            return None
        if isinstance(event, TextUpdated):
            self._text = event.text
            await self._emit(event)
            return None
        if isinstance(event, SendPressed):
            return await self._complete(is_continue=False)
        if isinstance(event, ContinuePressed):
            return await self._complete(is_continue=True)
        return None

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def _apply_toggle(self, event: OptionToggled) -> None:
        if event.option in self._selected:
            self._selected.discard(event.option)
            now_selected = False
        else:
            self._selected.add(event.option)
            now_selected = True

        if event.callback_id:
            await self._answer_callback(event.callback_id)

        if self._anchor_message_id is not None:
            try:
                await self._transport.edit_markup(
                    self._endpoint.conversation_id,
                    self._anchor_message_id,
                    build_option_keyboard(list(self._options), self._selected),
                )
            except TransportError as exc:
                self._logger.warning("interaction_session.edit_markup_failed", error=str(exc))

        await self._emit(dataclasses.replace(event, now_selected=now_selected))

    async def _complete(self, *, is_continue: bool) -> dict[str, Any]:
        if is_continue:
            result = build_continue_result(
                self._request.request_id, self._settings.continue_prompt
            )
            feedback = build_feedback_message([], "", True)
            await self._emit(ContinuePressed())
        else:
            ordered = self._ordered_selection()
            result = build_answered_result(self._text, ordered, self._request.request_id)
            feedback = build_feedback_message(ordered, self._text, False)
            await self._emit(SendPressed())

        self._state = SessionState.COMPLETED
        self._logger.info(
            "interaction_session.completed",
            is_continue=is_continue,
            selected=len(result["selected_options"]),
            has_text=result["user_input"] is not None,
        )

        try:
            await self._transport.send(
                self._endpoint.conversation_id, feedback, RemoveKeyboard()
            )
        except TransportError as exc:
            self._logger.warning("interaction_session.feedback_failed", error=str(exc))
        return result

    async def _answer_callback(self, callback_id: str) -> None:
        try:
            await self._transport.answer_callback(callback_id)
        except TransportError as exc:
            self._logger.debug("interaction_session.answer_callback_failed", error=str(exc))

    async def _emit(self, event: DomainEvent) -> None:
        if self._on_event is None:
            return
        try:
            await self._on_event(event)
        except Exception as exc:
            self._logger.warning(
                "interaction_session.observer_failed",
                event=type(event).__name__,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _context(self) -> ClassificationContext:
        return ClassificationContext(
            conversation_id=self._endpoint.conversation_id,
            options=self._options,
            anchor_message_id=self._anchor_message_id,
            cutoff_message_id=self._cutoff_message_id,
        )

    def _ordered_selection(self) -> list[str]:
        return [option for option in self._options if option in self._selected]

    def _operation_text(self) -> str:
        if self._settings.enable_continue_reply:
            return "Pick options or type a reply, then press Send (or Continue to skip)."
        return "Pick options or type a reply, then press Send."

    def _next_backoff(self) -> float:
        self._consecutive_failures += 1
        delay = self._settings.error_backoff * 2 ** (self._consecutive_failures - 1)
        return min(delay, self._settings.max_error_backoff)

    def _cancel(self) -> None:
        self._state = SessionState.CANCELLED
        self._selected.clear()
        self._text = ""
        self._logger.info("interaction_session.cancelled", cursor=self._cursor)

    def _check_stop(self) -> None:
        if self._stop_event is not None and self._stop_event.is_set():
            raise _StopRequested()

    async def _sleep(self, seconds: float) -> None:
        await self._race(asyncio.sleep(seconds))

    async def _race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the stop signal fires first."""
        if self._stop_event is not None and self._stop_event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise _StopRequested()
        if self._stop_event is None:
            return await awaitable

        work = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({work, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work, stopper):
                if not task.done():
                    task.cancel()

        if work in done:
            return work.result()
        await asyncio.gather(work, return_exceptions=True)
        raise _StopRequested()
