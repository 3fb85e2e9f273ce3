"""Unit tests for TelegramTransport with mocked aiohttp."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.errors import TransportError
from chatrelay.core.domain.interaction import (
    ButtonPress,
    CommandKeyboard,
    IncomingMessage,
    OtherUpdate,
    RemoveKeyboard,
    build_option_keyboard,
)
from chatrelay.infrastructure.communication.telegram_transport import (
    TelegramTransport,
    parse_update,
    render_markup,
)


def _mock_response(json_data: Any, status: int = 200) -> MagicMock:
    """Create a mock aiohttp response context manager."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value="")
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def _with_session(transport: TelegramTransport, *responses: MagicMock) -> MagicMock:
    session = MagicMock()
    session.closed = False
    session.post = MagicMock(side_effect=list(responses))
    session.close = AsyncMock()
    transport._session = session
    return session


@pytest.fixture
def transport() -> TelegramTransport:
    return TelegramTransport(token="123:FAKE", api_base_url="https://tg.example/")


# ---------------------------------------------------------------------------
# Update parsing
# ---------------------------------------------------------------------------


class TestParseUpdate:
    def test_callback_query(self):
        update = parse_update(
            {
                "update_id": 7,
                "callback_query": {
                    "id": "cb1",
                    "data": "toggle:A",
                    "message": {"message_id": 10, "chat": {"id": -100}},
                },
            }
        )
        assert update == ButtonPress(
            update_id=7,
            payload="toggle:A",
            message_id=10,
            conversation_id="-100",
            callback_id="cb1",
        )

    def test_message_with_inline_keyboard(self):
        update = parse_update(
            {
                "update_id": 8,
                "message": {
                    "message_id": 12,
                    "chat": {"id": 5},
                    "text": "Pick",
                    "reply_markup": {
                        "inline_keyboard": [[{"text": "☐ A", "callback_data": "toggle:A"}]]
                    },
                },
            }
        )
        assert update == IncomingMessage(
            update_id=8,
            message_id=12,
            conversation_id="5",
            text="Pick",
            button_payloads=("toggle:A",),
        )

    def test_message_without_text(self):
        update = parse_update({"update_id": 9, "message": {"message_id": 1, "chat": {"id": 5}}})
        assert isinstance(update, IncomingMessage)
        assert update.text == ""

    def test_other_update_kinds(self):
        assert parse_update({"update_id": 11, "edited_message": {}}) == OtherUpdate(update_id=11)


def test_render_markup():
    inline = render_markup(build_option_keyboard(["A"], {"A"}))
    assert inline == {"inline_keyboard": [[{"text": "✅ A", "callback_data": "toggle:A"}]]}

    reply = render_markup(CommandKeyboard(labels=("Send", "Continue")))
    assert reply["keyboard"] == [[{"text": "Send"}, {"text": "Continue"}]]
    assert reply["resize_keyboard"] is True

    assert render_markup(RemoveKeyboard()) == {"remove_keyboard": True}


def test_for_endpoint_uses_endpoint_api_root():
    endpoint = ChannelEndpoint(
        name="main", token="abc", conversation_id="1", api_base_url="https://proxy.local/"
    )
    transport = TelegramTransport.for_endpoint(endpoint)
    assert transport._base_url == "https://proxy.local/botabc"


# ---------------------------------------------------------------------------
# API calls
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_posts_markdown_and_returns_message_id(transport: TelegramTransport):
    session = _with_session(transport, _mock_response({"ok": True, "result": {"message_id": 42}}))

    message_id = await transport.send("100", "*hi*", CommandKeyboard(labels=("Send",)), markdown=True)

    assert message_id == 42
    url = session.post.call_args.args[0]
    payload = session.post.call_args.kwargs["json"]
    assert url == "https://tg.example/bot123:FAKE/sendMessage"
    assert payload["parse_mode"] == "Markdown"
    assert payload["reply_markup"]["keyboard"] == [[{"text": "Send"}]]


@pytest.mark.asyncio
async def test_send_falls_back_to_plain_text_when_markdown_rejected(transport: TelegramTransport):
    session = _with_session(
        transport,
        _mock_response({"ok": False, "error_code": 400, "description": "can't parse entities"}),
        _mock_response({"ok": True, "result": {"message_id": 43}}),
    )

    assert await transport.send("100", "bad_*markdown", markdown=True) == 43

    retry_payload = session.post.call_args_list[1].kwargs["json"]
    assert "parse_mode" not in retry_payload


@pytest.mark.asyncio
async def test_network_error_is_not_retried_as_plain(transport: TelegramTransport):
    session = _with_session(transport)
    session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("down"))

    with pytest.raises(TransportError) as exc_info:
        await transport.send("100", "hi", markdown=True)

    assert exc_info.value.method == "sendMessage"
    assert session.post.call_count == 1


@pytest.mark.asyncio
async def test_rejected_call_raises_transport_error(transport: TelegramTransport):
    _with_session(transport, _mock_response({"ok": False, "description": "Unauthorized"}, 401))

    with pytest.raises(TransportError) as exc_info:
        await transport.get_me()

    assert "Unauthorized" in str(exc_info.value)
    assert exc_info.value.details["rejected"] is True


@pytest.mark.asyncio
async def test_poll_passes_offset_and_parses_updates(transport: TelegramTransport):
    session = _with_session(
        transport,
        _mock_response(
            {
                "ok": True,
                "result": [
                    {"update_id": 5, "message": {"message_id": 3, "chat": {"id": 1}, "text": "x"}},
                    {"update_id": 6, "poll": {}},
                ],
            }
        ),
    )

    updates = await transport.poll(cursor=5, timeout=10)

    payload = session.post.call_args.kwargs["json"]
    assert payload["offset"] == 5
    assert payload["timeout"] == 10
    assert [type(u) for u in updates] == [IncomingMessage, OtherUpdate]


@pytest.mark.asyncio
async def test_first_poll_omits_offset(transport: TelegramTransport):
    session = _with_session(transport, _mock_response({"ok": True, "result": []}))

    assert await transport.poll(cursor=0, timeout=0) == []
    assert "offset" not in session.post.call_args.kwargs["json"]


@pytest.mark.asyncio
async def test_close_closes_session(transport: TelegramTransport):
    session = _with_session(transport)
    await transport.close()
    session.close.assert_awaited_once()
    assert transport._session is None


# ---------------------------------------------------------------------------
# Setup helpers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_test_connection_sends_test_message(transport: TelegramTransport):
    with patch.object(transport, "_call", new_callable=AsyncMock) as mock_call:
        mock_call.side_effect = [{"username": "relay_bot"}, {"message_id": 1}]
        assert await transport.test_connection("100") == "relay_bot"

    methods = [call.args[0] for call in mock_call.call_args_list]
    assert methods == ["getMe", "sendMessage"]


@pytest.mark.asyncio
async def test_detect_chat_returns_first_message(transport: TelegramTransport):
    with patch.object(transport, "_call", new_callable=AsyncMock) as mock_call:
        mock_call.side_effect = [
            [{"update_id": 1, "callback_query": {"id": "x"}}],
            [
                {
                    "update_id": 2,
                    "message": {
                        "message_id": 9,
                        "chat": {"id": -200, "title": "Ops"},
                        "from": {"username": "alice"},
                        "text": "hello",
                    },
                }
            ],
        ]
        detected = await transport.detect_chat(timeout_seconds=5)

    assert detected.chat_id == "-200"
    assert detected.title == "Ops"
    assert detected.username == "alice"
    assert mock_call.call_args_list[1].args[1]["offset"] == 2


@pytest.mark.asyncio
async def test_detect_chat_times_out(transport: TelegramTransport):
    with patch.object(transport, "_call", new_callable=AsyncMock, return_value=[]):
        assert await transport.detect_chat(timeout_seconds=0) is None
