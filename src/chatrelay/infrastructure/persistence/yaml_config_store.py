"""YAML-file ConfigStore.

Default location::

    $CHATRELAY_CONFIG            if set
    .chatrelay/config.yaml       otherwise (relative to the working directory)
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
import yaml

from chatrelay.core.domain.config_schema import RelayConfigSchema, validate_relay_config
from chatrelay.core.domain.errors import ConfigError
from chatrelay.infrastructure.persistence.yaml_io import atomic_write_yaml, load_yaml

CONFIG_ENV = "CHATRELAY_CONFIG"
DEFAULT_CONFIG_PATH = Path(".chatrelay") / "config.yaml"

logger = structlog.get_logger(__name__)


def default_config_path() -> Path:
    override = os.getenv(CONFIG_ENV)
    return Path(override) if override else DEFAULT_CONFIG_PATH


class YamlConfigStore:
    """File-backed implementation of ConfigStoreProtocol."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else default_config_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> RelayConfigSchema:
        """Load and validate the configuration; defaults when the file is missing."""
        try:
            data = load_yaml(self._path)
        except (yaml.YAMLError, ValueError, OSError) as exc:
            raise ConfigError(
                f"Cannot read configuration {self._path}: {exc}",
                details={"source": str(self._path)},
            ) from exc
        if data is None:
            logger.debug("config_store.defaults", path=str(self._path))
        return validate_relay_config(data, source=self._path)

    def save(self, config: RelayConfigSchema) -> None:
        atomic_write_yaml(self._path, config.model_dump(mode="json"))
        logger.info("config_store.saved", path=str(self._path))


class InMemoryConfigStore:
    """In-memory config store for tests."""

    def __init__(self, config: RelayConfigSchema | None = None) -> None:
        self.config = config or RelayConfigSchema()
        self.saves = 0

    def load(self) -> RelayConfigSchema:
        return self.config.model_copy(deep=True)

    def save(self, config: RelayConfigSchema) -> None:
        self.config = config.model_copy(deep=True)
        self.saves += 1
