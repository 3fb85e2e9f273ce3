"""Application service for managing channels and session bindings.

Every mutation is applied to the shared registry first (which validates it
and leaves itself untouched on error) and then persisted through the
ConfigStore.
"""

from __future__ import annotations

import structlog

from chatrelay.application.config_loader import RelayState, apply_registry
from chatrelay.core.domain.channel import ChannelEndpoint, PendingSession
from chatrelay.core.domain.errors import DuplicateNameError
from chatrelay.core.domain.registry import ChannelRegistry
from chatrelay.core.interfaces.config_store import ConfigStoreProtocol


class ChannelAdminService:
    """Registry mutations followed by a configuration save."""

    def __init__(self, *, state: RelayState, store: ConfigStoreProtocol) -> None:
        self._state = state
        self._store = store
        self._logger = structlog.get_logger(__name__)

    @property
    def registry(self) -> ChannelRegistry:
        return self._state.registry

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def add_channel(self, endpoint: ChannelEndpoint) -> None:
        self.registry.add(endpoint)
        self._persist()

    def remove_channel(self, name: str) -> None:
        self.registry.remove(name)
        self._persist()

    def update_channel(self, old_name: str, endpoint: ChannelEndpoint) -> None:
        self.registry.rename_or_update(old_name, endpoint)
        self._persist()

    def set_default_channel(self, name: str) -> None:
        self.registry.set_default(name)
        self._persist()

    def list_channels(self) -> list[ChannelEndpoint]:
        return self.registry.list_endpoints()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def bind_session(self, session_id: str, channel_name: str) -> None:
        self.registry.bind_session(session_id, channel_name)
        self._persist()

    def unbind_session(self, session_id: str) -> None:
        self.registry.unbind_session(session_id)
        self._persist()

    def session_bindings(self) -> dict[str, str]:
        return self.registry.bindings()

    def pending_sessions(self) -> list[PendingSession]:
        return self.registry.pending_sessions()

    def ignore_pending_session(self, session_id: str) -> bool:
        """Dismiss a pending session; it keeps using the default channel."""
        removed = self.registry.dequeue_pending(session_id)
        if removed:
            self._persist()
        return removed

    def configure_session_channel(self, session_id: str, endpoint: ChannelEndpoint) -> None:
        """Create a channel for a pending session and bind the session to it.

        An existing channel with identical settings is reused; a different
        channel under the same name is a conflict.

        Raises:
            DuplicateNameError: If ``endpoint.name`` exists with other settings.
        """
        existing = self.registry.get(endpoint.name)
        if existing is None:
            self.registry.add(endpoint)
        elif existing != endpoint:
            raise DuplicateNameError(endpoint.name)
        self.registry.bind_session(session_id, endpoint.name)
        self._persist()

    def _persist(self) -> None:
        self._state.config = apply_registry(self._state.config, self.registry)
        self._store.save(self._state.config)
        self._logger.debug("channel_admin.saved", channels=len(self.registry.list_endpoints()))
