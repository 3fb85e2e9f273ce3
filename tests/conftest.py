"""Test configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.interaction import ChannelUpdate, Markup


class FakeTransport:
    """Scripted in-memory ChannelTransportProtocol implementation.

    Each ``poll`` consumes the next script entry: a list of updates is
    returned, an exception is raised. Once the script is exhausted ``poll``
    blocks until cancelled.
    """

    def __init__(
        self,
        script: list[list[ChannelUpdate] | Exception] | None = None,
        *,
        first_message_id: int = 10,
        send_error: Exception | None = None,
    ) -> None:
        self.script = list(script or [])
        self.sent: list[dict[str, Any]] = []
        self.edits: list[tuple[str, int, Markup]] = []
        self.answered: list[str] = []
        self.polls: list[int] = []
        self.closed = False
        self.send_error = send_error
        self.edit_error: Exception | None = None
        self._next_message_id = first_message_id

    async def send(
        self,
        conversation_id: str,
        text: str,
        markup: Markup | None = None,
        *,
        markdown: bool = False,
    ) -> int:
        if self.send_error is not None:
            raise self.send_error
        message_id = self._next_message_id
        self._next_message_id += 1
        self.sent.append(
            {
                "conversation_id": conversation_id,
                "text": text,
                "markup": markup,
                "markdown": markdown,
                "message_id": message_id,
            }
        )
        return message_id

    async def edit_markup(self, conversation_id: str, message_id: int, markup: Markup) -> None:
        if self.edit_error is not None:
            raise self.edit_error
        self.edits.append((conversation_id, message_id, markup))

    async def poll(self, cursor: int, timeout: int) -> list[ChannelUpdate]:
        self.polls.append(cursor)
        if not self.script:
            await asyncio.Event().wait()
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        self.answered.append(callback_id)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def endpoint() -> ChannelEndpoint:
    return ChannelEndpoint(name="main", token="123:FAKE", conversation_id="100")


@pytest.fixture
def fake_transport_cls() -> type[FakeTransport]:
    return FakeTransport
