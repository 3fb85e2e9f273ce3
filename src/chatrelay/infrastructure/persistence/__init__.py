"""Configuration persistence."""

from chatrelay.infrastructure.persistence.yaml_config_store import (
    InMemoryConfigStore,
    YamlConfigStore,
)

__all__ = ["InMemoryConfigStore", "YamlConfigStore"]
