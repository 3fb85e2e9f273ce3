"""Channel endpoint and pending-session models.

A channel endpoint is a named Telegram bot destination (token + chat +
API base). Endpoints are frozen so that a running interaction session can
hold one as a snapshot while the registry keeps changing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from chatrelay.core.utils.time import utc_now

DEFAULT_API_BASE_URL = "https://api.telegram.org"


@dataclass(frozen=True)
class ChannelEndpoint:
    """A named destination for interactive messages.

    Attributes:
        name: Unique endpoint name inside the registry.
        token: Bot credential used against the provider API.
        conversation_id: Target chat the prompts are posted to.
        api_base_url: Provider API root; empty means the public Telegram API.
    """

    name: str
    token: str
    conversation_id: str
    api_base_url: str = DEFAULT_API_BASE_URL

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Channel endpoint name must not be empty")
        # Normalise so that callers may pass "" or None for "use the default".
        object.__setattr__(
            self, "api_base_url", (self.api_base_url or DEFAULT_API_BASE_URL).rstrip("/")
        )
        object.__setattr__(self, "conversation_id", str(self.conversation_id))

    @property
    def uses_default_api(self) -> bool:
        return self.api_base_url == DEFAULT_API_BASE_URL

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "token": self.token,
            "conversation_id": self.conversation_id,
            "api_base_url": self.api_base_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChannelEndpoint:
        return cls(
            name=str(data["name"]),
            token=str(data.get("token", "")),
            conversation_id=str(data.get("conversation_id", "")),
            api_base_url=str(data.get("api_base_url") or DEFAULT_API_BASE_URL),
        )


@dataclass(frozen=True)
class PendingSession:
    """A session id that was seen without a channel binding."""

    session_id: str
    recorded_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {"session_id": self.session_id, "recorded_at": self.recorded_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingSession:
        raw = data.get("recorded_at")
        recorded_at = datetime.fromisoformat(raw) if isinstance(raw, str) and raw else utc_now()
        return cls(session_id=str(data["session_id"]), recorded_at=recorded_at)
