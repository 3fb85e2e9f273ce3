"""Configuration loading and registry wiring.

Builds the in-memory ChannelRegistry from the stored configuration and
writes registry changes back into it. Environment variables can seed a
bot when the configuration defines none:

- ``TELEGRAM_BOT_TOKEN``: bot token of the seeded endpoint
- ``TELEGRAM_CHAT_ID``: target chat of the seeded endpoint
- ``TELEGRAM_API_BASE_URL``: optional API root override
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.config_schema import RelayConfigSchema, validate_relay_config
from chatrelay.core.domain.registry import ChannelRegistry
from chatrelay.core.interfaces.config_store import ConfigStoreProtocol

ENV_BOT_NAME = "default"

logger = structlog.get_logger(__name__)


@dataclass
class RelayState:
    """Validated configuration plus the registry built from it."""

    config: RelayConfigSchema
    registry: ChannelRegistry


def registry_from_config(config: RelayConfigSchema) -> ChannelRegistry:
    """Build a registry from the ``telegram`` section of ``config``."""
    return ChannelRegistry.from_snapshot(config.telegram.model_dump())


def apply_registry(config: RelayConfigSchema, registry: ChannelRegistry) -> RelayConfigSchema:
    """Return a copy of ``config`` whose telegram section mirrors ``registry``."""
    telegram = config.telegram.model_dump()
    telegram.update(registry.snapshot())
    data = config.model_dump()
    data["telegram"] = telegram
    return validate_relay_config(data)


def seed_from_environment(
    registry: ChannelRegistry, environ: Mapping[str, str] | None = None
) -> bool:
    """Register an endpoint from environment variables if the registry is empty.

    Returns:
        True if an endpoint was added.
    """
    env = os.environ if environ is None else environ
    token = env.get("TELEGRAM_BOT_TOKEN", "")
    chat_id = env.get("TELEGRAM_CHAT_ID", "")
    if not token or not chat_id or registry.list_endpoints():
        return False
    registry.add(
        ChannelEndpoint(
            name=ENV_BOT_NAME,
            token=token,
            conversation_id=chat_id,
            api_base_url=env.get("TELEGRAM_API_BASE_URL", ""),
        )
    )
    logger.info("config_loader.seeded_from_env", channel=ENV_BOT_NAME)
    return True


def load_relay_state(
    store: ConfigStoreProtocol, environ: Mapping[str, str] | None = None
) -> RelayState:
    """Load configuration from ``store`` and build the registry.

    Raises:
        ConfigError: If the stored configuration is invalid.
    """
    config = store.load()
    registry = registry_from_config(config)
    seed_from_environment(registry, environ)
    logger.debug(
        "config_loader.loaded",
        channels=len(registry.list_endpoints()),
        bindings=len(registry.bindings()),
        pending=len(registry.pending_sessions()),
    )
    return RelayState(config=config, registry=registry)
