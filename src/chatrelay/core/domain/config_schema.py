"""
Configuration Schema Validation

Pydantic models for validating the chatrelay configuration file: the
Telegram channel registry, reply behaviour and polling cadence.
Provides clear error messages with file and field context.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from chatrelay.core.domain.channel import DEFAULT_API_BASE_URL
from chatrelay.core.domain.errors import ConfigError
from chatrelay.core.domain.formatter import DEFAULT_CONTINUE_PROMPT


class BotConfigSchema(BaseModel):
    """Schema for one named Telegram bot endpoint."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=128, description="Unique bot name")
    token: str = Field("", description="Bot API token")
    conversation_id: str = Field("", description="Target chat id")
    api_base_url: str = Field(DEFAULT_API_BASE_URL, description="Bot API root URL")

    @model_validator(mode="before")
    @classmethod
    def coerce_chat_id(cls, data: Any) -> Any:
        """Accept numeric chat ids and the legacy ``bot_token`` / ``chat_id`` keys."""
        if isinstance(data, dict):
            data = dict(data)
            if "bot_token" in data and "token" not in data:
                data["token"] = data.pop("bot_token")
            if "chat_id" in data and "conversation_id" not in data:
                data["conversation_id"] = data.pop("chat_id")
            if data.get("conversation_id") is not None:
                data["conversation_id"] = str(data["conversation_id"])
            if not data.get("api_base_url"):
                data["api_base_url"] = DEFAULT_API_BASE_URL
        return data


class PendingSessionSchema(BaseModel):
    """Schema for a queued session awaiting manual binding."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(..., min_length=1)
    recorded_at: str | None = None


class TelegramConfigSchema(BaseModel):
    """Schema for the Telegram channel section."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(True, description="Master switch for the Telegram channel")
    bots: list[BotConfigSchema] = Field(default_factory=list)
    default_bot: str = Field("", description="Name of the default bot")
    session_bindings: dict[str, str] = Field(
        default_factory=dict,
        description="Session id -> bot name",
    )
    pending_sessions: list[PendingSessionSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_names(self) -> TelegramConfigSchema:
        """Bot names must be unique."""
        names = [bot.name for bot in self.bots]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate bot names: {', '.join(duplicates)}")
        return self


class ReplyConfigSchema(BaseModel):
    """Schema for reply behaviour."""

    model_config = ConfigDict(extra="forbid")

    enable_continue_reply: bool = Field(True, description="Offer the Continue command")
    continue_prompt: str = Field(
        DEFAULT_CONTINUE_PROMPT,
        min_length=1,
        description="Text returned to the agent when Continue is pressed",
    )


class PollingConfigSchema(BaseModel):
    """Schema for long-polling cadence (all values in seconds)."""

    model_config = ConfigDict(extra="forbid")

    poll_timeout: int = Field(10, ge=0, le=50, description="getUpdates long-poll timeout")
    poll_interval: float = Field(1.0, ge=0, description="Delay between successful polls")
    error_backoff: float = Field(1.0, gt=0, description="First delay after a poll failure")
    max_error_backoff: float = Field(5.0, gt=0, description="Upper bound for failure delays")
    post_delay: float = Field(0.5, ge=0, description="Pause between the two posted messages")

    @model_validator(mode="after")
    def validate_backoff(self) -> PollingConfigSchema:
        if self.max_error_backoff < self.error_backoff:
            raise ValueError("max_error_backoff must be >= error_backoff")
        return self


class RelayConfigSchema(BaseModel):
    """Root schema of the configuration file."""

    model_config = ConfigDict(extra="forbid")

    telegram: TelegramConfigSchema = Field(default_factory=TelegramConfigSchema)
    reply: ReplyConfigSchema = Field(default_factory=ReplyConfigSchema)
    polling: PollingConfigSchema = Field(default_factory=PollingConfigSchema)


def validate_relay_config(data: dict[str, Any] | None, source: Path | None = None) -> RelayConfigSchema:
    """
    Validate raw configuration data.

    Args:
        data: Parsed YAML mapping (``None`` means an empty file)
        source: File the data came from, used in error messages

    Returns:
        Validated RelayConfigSchema

    Raises:
        ConfigError: With field locations when validation fails
    """
    try:
        return RelayConfigSchema.model_validate(data or {})
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        where = f" in {source}" if source else ""
        raise ConfigError(
            f"Invalid configuration{where}: " + "; ".join(errors),
            details={"errors": errors, "source": str(source) if source else None},
        ) from exc
