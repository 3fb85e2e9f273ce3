"""Telegram Bot API transport implementing ChannelTransportProtocol.

Talks to ``{api_base_url}/bot{token}/{method}`` with a lazily created
``aiohttp.ClientSession``. Provider payloads are converted into the
transport-neutral update types of the domain layer.

Usage::

    transport = TelegramTransport.for_endpoint(endpoint)
    message_id = await transport.send(endpoint.conversation_id, "Ready?")
    updates = await transport.poll(cursor=0, timeout=10)
    await transport.close()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import aiohttp
import structlog

from chatrelay.core.domain.channel import DEFAULT_API_BASE_URL, ChannelEndpoint
from chatrelay.core.domain.errors import TransportError
from chatrelay.core.domain.interaction import (
    ButtonPress,
    ChannelUpdate,
    CommandKeyboard,
    IncomingMessage,
    Markup,
    OptionKeyboard,
    OtherUpdate,
    RemoveKeyboard,
)

TELEGRAM_MSG_LIMIT = 4096
CONNECTION_TEST_MESSAGE = "chatrelay connection test ✅"


@dataclass(frozen=True)
class DetectedChat:
    """A chat that wrote to the bot, found by ``detect_chat``."""

    chat_id: str
    title: str
    username: str
    text: str


def render_markup(markup: Markup) -> dict[str, Any]:
    """Convert domain markup into a Telegram ``reply_markup`` object."""
    if isinstance(markup, OptionKeyboard):
        return {
            "inline_keyboard": [
                [{"text": button.text, "callback_data": button.payload} for button in row]
                for row in markup.rows
            ]
        }
    if isinstance(markup, CommandKeyboard):
        return {
            "keyboard": [[{"text": label} for label in markup.labels]],
            "resize_keyboard": True,
            "is_persistent": True,
        }
    if isinstance(markup, RemoveKeyboard):
        return {"remove_keyboard": True}
    raise TypeError(f"Unsupported markup: {type(markup).__name__}")


def parse_update(raw: dict[str, Any]) -> ChannelUpdate:
    """Convert one Telegram ``Update`` object into a domain update."""
    update_id = int(raw.get("update_id", 0))

    callback = raw.get("callback_query")
    if callback:
        message = callback.get("message") or {}
        chat = message.get("chat") or {}
        message_id = message.get("message_id")
        return ButtonPress(
            update_id=update_id,
            payload=str(callback.get("data") or ""),
            message_id=int(message_id) if message_id is not None else None,
            conversation_id=str(chat.get("id", "")),
            callback_id=str(callback.get("id") or ""),
        )

    message = raw.get("message")
    if message:
        chat = message.get("chat") or {}
        keyboard = (message.get("reply_markup") or {}).get("inline_keyboard") or []
        payloads = tuple(
            str(button["callback_data"])
            for row in keyboard
            for button in row
            if button.get("callback_data")
        )
        return IncomingMessage(
            update_id=update_id,
            message_id=int(message.get("message_id", 0)),
            conversation_id=str(chat.get("id", "")),
            text=str(message.get("text") or ""),
            button_payloads=payloads,
        )

    return OtherUpdate(update_id=update_id)


class TelegramTransport:
    """Send, edit and long-poll against one Telegram bot."""

    def __init__(
        self,
        *,
        token: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
        request_timeout: float = 15.0,
    ) -> None:
        self._base_url = f"{(api_base_url or DEFAULT_API_BASE_URL).rstrip('/')}/bot{token}"
        self._request_timeout = request_timeout
        self._session: aiohttp.ClientSession | None = None
        self._logger = structlog.get_logger(__name__)

    @classmethod
    def for_endpoint(cls, endpoint: ChannelEndpoint) -> TelegramTransport:
        return cls(token=endpoint.token, api_base_url=endpoint.api_base_url)

    # ------------------------------------------------------------------
    # ChannelTransportProtocol
    # ------------------------------------------------------------------

    async def send(
        self,
        conversation_id: str,
        text: str,
        markup: Markup | None = None,
        *,
        markdown: bool = False,
    ) -> int:
        """Send a message; Markdown that Telegram cannot parse is resent as plain text."""
        if len(text) > TELEGRAM_MSG_LIMIT:
            text = text[: TELEGRAM_MSG_LIMIT - 20] + "\n\n... (truncated)"
        payload: dict[str, Any] = {"chat_id": conversation_id, "text": text}
        if markup is not None:
            payload["reply_markup"] = render_markup(markup)

        if markdown:
            try:
                result = await self._call("sendMessage", {**payload, "parse_mode": "Markdown"})
                return int(result["message_id"])
            except TransportError as exc:
                if not (exc.details or {}).get("rejected"):
                    raise
                self._logger.warning(
                    "telegram_transport.markdown_rejected",
                    chat_id=conversation_id,
                    error=str(exc),
                )

        result = await self._call("sendMessage", payload)
        return int(result["message_id"])

    async def edit_markup(self, conversation_id: str, message_id: int, markup: Markup) -> None:
        await self._call(
            "editMessageReplyMarkup",
            {
                "chat_id": conversation_id,
                "message_id": message_id,
                "reply_markup": render_markup(markup),
            },
        )

    async def poll(self, cursor: int, timeout: int) -> list[ChannelUpdate]:
        params: dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if cursor:
            params["offset"] = cursor
        result = await self._call(
            "getUpdates", params, timeout=timeout + self._request_timeout
        )
        return [parse_update(raw) for raw in result or []]

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        payload: dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        await self._call("answerCallbackQuery", payload)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    async def get_me(self) -> dict[str, Any]:
        return await self._call("getMe", {})

    async def test_connection(self, conversation_id: str) -> str:
        """Verify the token and chat by sending a test message.

        Returns:
            The bot's username.
        """
        me = await self.get_me()
        await self.send(conversation_id, CONNECTION_TEST_MESSAGE)
        username = str(me.get("username") or me.get("first_name") or "")
        self._logger.info("telegram_transport.connection_ok", bot=username, chat_id=conversation_id)
        return username

    async def detect_chat(
        self, *, timeout_seconds: float = 30.0, poll_timeout: int = 1
    ) -> DetectedChat | None:
        """Wait for the first message sent to the bot and report its chat.

        Returns:
            The detected chat, or None when nothing arrived in time.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds
        cursor = 0
        while loop.time() < deadline:
            try:
                raw_updates = await self._call(
                    "getUpdates",
                    {"offset": cursor, "timeout": poll_timeout} if cursor else {"timeout": poll_timeout},
                    timeout=poll_timeout + self._request_timeout,
                )
            except TransportError as exc:
                self._logger.warning("telegram_transport.detect_poll_failed", error=str(exc))
                await asyncio.sleep(1.0)
                continue
            for raw in raw_updates or []:
                cursor = max(cursor, int(raw.get("update_id", 0)) + 1)
                message = raw.get("message")
                if not message:
                    continue
                chat = message.get("chat") or {}
                sender = message.get("from") or {}
                return DetectedChat(
                    chat_id=str(chat.get("id", "")),
                    title=str(chat.get("title") or "private chat"),
                    username=str(sender.get("username") or "unknown"),
                    text=str(message.get("text") or ""),
                )
        return None

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _call(
        self, method: str, payload: dict[str, Any], *, timeout: float | None = None
    ) -> Any:
        """POST a Bot API method and return its ``result``.

        Raises:
            TransportError: On network failure or a non-ok API response.
                ``details["rejected"]`` is True when Telegram answered with
                ``ok: false`` (the request reached the provider).
        """
        session = await self._get_session()
        client_timeout = aiohttp.ClientTimeout(total=timeout or self._request_timeout)
        try:
            async with session.post(
                f"{self._base_url}/{method}", json=payload, timeout=client_timeout
            ) as resp:
                try:
                    data = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = await resp.text()
                    raise TransportError(
                        f"Telegram {method} returned HTTP {resp.status}",
                        method=method,
                        details={"status": resp.status, "body": body[:200]},
                    ) from None
        except (TimeoutError, aiohttp.ClientError) as exc:
            raise TransportError(
                f"Telegram {method} failed: {exc or type(exc).__name__}", method=method
            ) from exc

        if not isinstance(data, dict) or not data.get("ok"):
            description = (data or {}).get("description", "unknown error") if isinstance(data, dict) else "invalid response"
            raise TransportError(
                f"Telegram {method} rejected: {description}",
                method=method,
                details={
                    "rejected": True,
                    "error_code": data.get("error_code") if isinstance(data, dict) else None,
                },
            )
        return data.get("result")
