"""Protocol for configuration persistence.

The registry never touches the disk itself; it produces a plain snapshot
that a ConfigStore persists and later hands back.
"""

from __future__ import annotations

from typing import Protocol

from chatrelay.core.domain.config_schema import RelayConfigSchema


class ConfigStoreProtocol(Protocol):
    """Load and save the relay configuration."""

    def load(self) -> RelayConfigSchema:
        """Return the stored configuration, or defaults when none exists.

        Raises:
            ConfigError: If the stored configuration is invalid.
        """
        ...

    def save(self, config: RelayConfigSchema) -> None:
        """Persist ``config``, replacing the stored one.

        Raises:
            OSError: If the configuration cannot be written.
        """
        ...
