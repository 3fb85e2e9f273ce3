"""Tests for the chatrelay CLI commands.

Commands run against a temporary YAML config file; the ``ask`` and
``channels test`` commands get a scripted fake transport instead of the
Telegram one.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from chatrelay import __version__
from chatrelay.api.cli import runtime
from chatrelay.api.cli.main import app
from chatrelay.core.domain.interaction import SEND_LABEL, ButtonPress, IncomingMessage

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("CHATRELAY_CONFIG", raising=False)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "telegram": {
                    "bots": [{"name": "main", "token": "111:AAAA", "conversation_id": "100"}],
                    "default_bot": "main",
                },
                "polling": {"poll_interval": 0, "post_delay": 0},
            }
        ),
        encoding="utf-8",
    )
    return path


def _invoke(config_path: Path, *args: str, **kwargs):
    return runner.invoke(app, ["--config", str(config_path), *args], **kwargs)


def _saved(config_path: Path) -> dict:
    return yaml.safe_load(config_path.read_text(encoding="utf-8"))


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


# ---------------------------------------------------------------------------
# channels
# ---------------------------------------------------------------------------


class TestChannels:
    def test_list_masks_tokens(self, config_path: Path):
        result = _invoke(config_path, "channels", "list")

        assert result.exit_code == 0
        assert "main" in result.stdout
        assert "111:AAAA" not in result.stdout

    def test_add_with_default(self, config_path: Path):
        result = _invoke(
            config_path, "channels", "add", "ops", "--token", "222:B", "--chat-id", "-5", "--default"
        )

        assert result.exit_code == 0
        saved = _saved(config_path)["telegram"]
        assert [bot["name"] for bot in saved["bots"]] == ["main", "ops"]
        assert saved["default_bot"] == "ops"

    def test_add_duplicate_fails(self, config_path: Path):
        result = _invoke(config_path, "channels", "add", "main", "--token", "x", "--chat-id", "1")
        assert result.exit_code == 1

    def test_update_keeps_unspecified_fields(self, config_path: Path):
        result = _invoke(config_path, "channels", "update", "main", "--name", "primary")

        assert result.exit_code == 0
        bot = _saved(config_path)["telegram"]["bots"][0]
        assert bot["name"] == "primary"
        assert bot["token"] == "111:AAAA"
        assert _saved(config_path)["telegram"]["default_bot"] == "primary"

    def test_remove_unknown_fails(self, config_path: Path):
        assert _invoke(config_path, "channels", "remove", "ghost").exit_code == 1

    def test_default_sets_designation(self, config_path: Path):
        _invoke(config_path, "channels", "add", "ops", "--token", "t", "--chat-id", "2")
        result = _invoke(config_path, "channels", "default", "ops")

        assert result.exit_code == 0
        assert _saved(config_path)["telegram"]["default_bot"] == "ops"

    def test_connection_test_uses_transport(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch, fake_transport_cls
    ):
        class ProbeTransport(fake_transport_cls):
            async def test_connection(self, conversation_id: str) -> str:
                await self.send(conversation_id, "probe")
                return "relay_bot"

        built = []

        def factory(endpoint):
            transport = ProbeTransport()
            built.append(transport)
            return transport

        monkeypatch.setattr(runtime, "transport_factory", factory)

        result = _invoke(config_path, "channels", "test", "main")

        assert result.exit_code == 0
        assert "relay_bot" in result.stdout
        assert built[0].sent[0]["conversation_id"] == "100"
        assert built[0].closed is True


# ---------------------------------------------------------------------------
# sessions
# ---------------------------------------------------------------------------


class TestSessions:
    def test_bind_and_list(self, config_path: Path):
        assert _invoke(config_path, "sessions", "bind", "/repo", "main").exit_code == 0

        result = _invoke(config_path, "sessions", "list")
        assert "/repo" in result.stdout
        assert _saved(config_path)["telegram"]["session_bindings"] == {"/repo": "main"}

    def test_bind_unknown_channel_fails(self, config_path: Path):
        assert _invoke(config_path, "sessions", "bind", "/repo", "ghost").exit_code == 1

    def test_unbind(self, config_path: Path):
        _invoke(config_path, "sessions", "bind", "/repo", "main")
        assert _invoke(config_path, "sessions", "unbind", "/repo").exit_code == 0
        assert _saved(config_path)["telegram"]["session_bindings"] == {}

    def test_configure_pending_session(self, config_path: Path):
        data = _saved(config_path)
        data["telegram"]["pending_sessions"] = [{"session_id": "/new"}]
        config_path.write_text(yaml.safe_dump(data), encoding="utf-8")

        assert "/new" in _invoke(config_path, "sessions", "pending").stdout
        result = _invoke(
            config_path,
            "sessions",
            "configure",
            "/new",
            "--name",
            "team",
            "--token",
            "333:C",
            "--chat-id",
            "7",
        )

        assert result.exit_code == 0
        saved = _saved(config_path)["telegram"]
        assert saved["session_bindings"] == {"/new": "team"}
        assert saved["pending_sessions"] == []

    def test_ignore_unknown_pending_fails(self, config_path: Path):
        assert _invoke(config_path, "sessions", "ignore", "/nobody").exit_code == 1


# ---------------------------------------------------------------------------
# ask
# ---------------------------------------------------------------------------


class TestAsk:
    def _install(self, monkeypatch, fake_transport_cls, script):
        built = []

        def factory(endpoint):
            transport = fake_transport_cls(list(script))
            built.append(transport)
            return transport

        monkeypatch.setattr(runtime, "transport_factory", factory)
        return built

    def test_prints_json_result(self, config_path: Path, monkeypatch, fake_transport_cls):
        built = self._install(
            monkeypatch,
            fake_transport_cls,
            [
                [
                    ButtonPress(
                        update_id=1,
                        payload="toggle:yes",
                        message_id=10,
                        conversation_id="100",
                        callback_id="cb",
                    ),
                    IncomingMessage(
                        update_id=2, message_id=50, conversation_id="100", text=SEND_LABEL
                    ),
                ]
            ],
        )
        request = {"message": "Deploy?", "predefined_options": ["yes", "no"]}

        result = _invoke(
            config_path, "ask", "-", "--no-derive-session-id", input=json.dumps(request)
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["selected_options"] == ["yes"]
        assert payload["user_input"] is None
        assert built[0].sent[0]["text"] == "Deploy?"

    def test_unbound_session_is_recorded_as_pending(
        self, config_path: Path, monkeypatch, fake_transport_cls
    ):
        self._install(
            monkeypatch,
            fake_transport_cls,
            [[IncomingMessage(update_id=1, message_id=50, conversation_id="100", text=SEND_LABEL)]],
        )

        result = _invoke(
            config_path, "ask", "--session-id", "/proj", input=json.dumps({"message": "Hi"})
        )

        assert result.exit_code == 0, result.output
        pending = _saved(config_path)["telegram"]["pending_sessions"]
        assert [entry["session_id"] for entry in pending] == ["/proj"]

    def test_unknown_channel_prints_error_payload(
        self, config_path: Path, monkeypatch, fake_transport_cls
    ):
        built = self._install(monkeypatch, fake_transport_cls, [])

        result = _invoke(
            config_path,
            "ask",
            "--channel",
            "ghost",
            "--no-derive-session-id",
            input=json.dumps({"message": "Hi"}),
        )

        assert result.exit_code == 1
        payload = json.loads(result.stdout.splitlines()[0])
        assert payload["code"] == "unknown_channel"
        assert built == []

    def test_invalid_request_fails(self, config_path: Path):
        result = _invoke(config_path, "ask", input="[1, 2]")
        assert result.exit_code == 1

    def test_request_file(self, config_path: Path, tmp_path: Path, monkeypatch, fake_transport_cls):
        self._install(
            monkeypatch,
            fake_transport_cls,
            [[IncomingMessage(update_id=1, message_id=50, conversation_id="100", text="hello")],
             [IncomingMessage(update_id=2, message_id=51, conversation_id="100", text=SEND_LABEL)]],
        )
        request_file = tmp_path / "request.json"
        request_file.write_text(json.dumps({"message": "Hi"}), encoding="utf-8")

        result = _invoke(config_path, "ask", str(request_file), "--no-derive-session-id")

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["user_input"] == "hello"
