"""Domain-specific exception types for chatrelay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class ChatRelayError(Exception):
    """Base exception for chatrelay domain errors."""

    message: str
    code: str = "chatrelay_error"
    details: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}


class UnknownChannelError(ChatRelayError):
    """An explicitly requested channel is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            message=f"Channel '{name}' does not exist",
            code="unknown_channel",
            details={"channel": name},
        )


class NoChannelConfiguredError(ChatRelayError):
    """Neither a binding nor a default channel is available."""

    def __init__(self, message: str = "No channel endpoint is configured") -> None:
        super().__init__(message=message, code="no_channel_configured")


class DuplicateNameError(ChatRelayError):
    """A channel with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            message=f"Channel '{name}' already exists",
            code="duplicate_name",
            details={"channel": name},
        )


class NotFoundError(ChatRelayError):
    """Error raised when a registry entry is not found."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="not_found", details=details)


class TransportError(ChatRelayError):
    """Network or API failure while talking to the chat provider."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if method:
            details.setdefault("method", method)
        self.method = method
        super().__init__(message=message, code="transport_error", details=details)


class ConfigError(ChatRelayError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)


class ChannelDisabledError(ChatRelayError):
    """The chat channel is switched off in the configuration."""

    def __init__(self, message: str = "Telegram channel is disabled") -> None:
        super().__init__(message=message, code="channel_disabled")


def error_payload(
    error: ChatRelayError, extra: Dict[str, Any] | None = None
) -> Dict[str, Any]:
    """Convert a ChatRelayError into a standardized JSON error object."""
    payload = {
        "success": False,
        "error": str(error),
        "error_type": type(error).__name__,
        "code": error.code,
        "details": error.details or {},
    }
    if extra:
        payload.update(extra)
    return payload
