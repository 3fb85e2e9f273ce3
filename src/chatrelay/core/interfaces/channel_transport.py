"""Protocol for chat channel transports.

A transport talks to one channel endpoint (one bot, one conversation API):
it posts messages with button markup, edits that markup, and long-polls
for updates. Interaction sessions depend only on this contract.
"""

from __future__ import annotations

from typing import Protocol

from chatrelay.core.domain.interaction import ChannelUpdate, Markup


class ChannelTransportProtocol(Protocol):
    """Send, edit and poll on a single channel endpoint.

    Every method raises ``TransportError`` when the provider cannot be
    reached or rejects the call.
    """

    async def send(
        self,
        conversation_id: str,
        text: str,
        markup: Markup | None = None,
        *,
        markdown: bool = False,
    ) -> int:
        """Post a message and return its message id.

        Args:
            conversation_id: Target conversation.
            text: Message body.
            markup: Optional inline or reply keyboard.
            markdown: Render ``text`` as Markdown.

        Returns:
            The provider's id for the new message.
        """
        ...

    async def edit_markup(self, conversation_id: str, message_id: int, markup: Markup) -> None:
        """Replace the button markup of an existing message."""
        ...

    async def poll(self, cursor: int, timeout: int) -> list[ChannelUpdate]:
        """Long-poll for updates with ``update_id >= cursor``.

        Args:
            cursor: First update id of interest.
            timeout: Seconds the provider may hold the request open.

        Returns:
            Updates in provider order.
        """
        ...

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        """Acknowledge a button press so the client stops its spinner."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
