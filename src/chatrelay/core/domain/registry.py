"""Channel registry: endpoints, default designation, session bindings.

The registry is shared by every request in the process. All state lives
behind a single re-entrant lock; every public method holds it for the
whole operation, so readers never see a half-applied rename or removal.
No I/O happens here; ``snapshot()`` hands a plain dict to a ConfigStore.
"""

from __future__ import annotations

import threading
from typing import Any

import structlog

from chatrelay.core.domain.channel import ChannelEndpoint, PendingSession
from chatrelay.core.domain.errors import (
    DuplicateNameError,
    NoChannelConfiguredError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)


class ChannelRegistry:
    """Named channel endpoints plus the session-to-channel routing table."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        # Insertion-ordered; the first entry is the implicit default.
        self._endpoints: dict[str, ChannelEndpoint] = {}
        self._default_name: str | None = None
        self._bindings: dict[str, str] = {}
        self._pending: dict[str, PendingSession] = {}

    # ------------------------------------------------------------------
    # Endpoint management
    # ------------------------------------------------------------------

    def add(self, endpoint: ChannelEndpoint) -> None:
        """Register a new endpoint.

        Raises:
            DuplicateNameError: If an endpoint with the same name exists.
        """
        with self._lock:
            if endpoint.name in self._endpoints:
                raise DuplicateNameError(endpoint.name)
            self._endpoints[endpoint.name] = endpoint
        logger.info("channel_registry.added", channel=endpoint.name)

    def remove(self, name: str) -> None:
        """Remove an endpoint and every session binding pointing to it.

        Raises:
            NotFoundError: If no endpoint has this name.
        """
        with self._lock:
            if name not in self._endpoints:
                raise NotFoundError(f"Channel '{name}' does not exist", details={"channel": name})
            dropped = self._remove_locked(name)
        logger.info("channel_registry.removed", channel=name, dropped_bindings=dropped)

    def rename_or_update(self, old_name: str, endpoint: ChannelEndpoint) -> None:
        """Replace ``old_name`` with ``endpoint`` (remove-then-add).

        Both steps are validated before anything changes, so either the whole
        replacement is applied or the registry is left untouched.

        Raises:
            NotFoundError: If ``old_name`` is not registered.
            DuplicateNameError: If the new name belongs to another endpoint.
        """
        with self._lock:
            if old_name not in self._endpoints:
                raise NotFoundError(
                    f"Channel '{old_name}' does not exist", details={"channel": old_name}
                )
            if endpoint.name != old_name and endpoint.name in self._endpoints:
                raise DuplicateNameError(endpoint.name)

            was_default = self._default_name == old_name
            dropped = self._remove_locked(old_name)
            self._endpoints[endpoint.name] = endpoint
            if was_default:
                self._default_name = endpoint.name
        logger.info(
            "channel_registry.updated",
            old_name=old_name,
            channel=endpoint.name,
            dropped_bindings=dropped,
        )

    def set_default(self, name: str) -> None:
        """Designate ``name`` as the default endpoint.

        Raises:
            NotFoundError: If no endpoint has this name.
        """
        with self._lock:
            if name not in self._endpoints:
                raise NotFoundError(f"Channel '{name}' does not exist", details={"channel": name})
            self._default_name = name
        logger.info("channel_registry.default_set", channel=name)

    def get(self, name: str) -> ChannelEndpoint | None:
        with self._lock:
            return self._endpoints.get(name)

    def get_default(self) -> ChannelEndpoint:
        """Return the designated default, else the first registered endpoint.

        Raises:
            NoChannelConfiguredError: If no endpoint is registered at all.
        """
        with self._lock:
            if self._default_name and self._default_name in self._endpoints:
                return self._endpoints[self._default_name]
            for endpoint in self._endpoints.values():
                return endpoint
        raise NoChannelConfiguredError()

    @property
    def default_name(self) -> str | None:
        with self._lock:
            return self._default_name

    def list_endpoints(self) -> list[ChannelEndpoint]:
        with self._lock:
            return list(self._endpoints.values())

    # ------------------------------------------------------------------
    # Session bindings
    # ------------------------------------------------------------------

    def bind_session(self, session_id: str, name: str) -> None:
        """Bind ``session_id`` to endpoint ``name`` and clear its pending entry.

        Raises:
            NotFoundError: If no endpoint has this name.
        """
        with self._lock:
            if name not in self._endpoints:
                raise NotFoundError(f"Channel '{name}' does not exist", details={"channel": name})
            self._bindings[session_id] = name
            self._pending.pop(session_id, None)
        logger.info("channel_registry.session_bound", session_id=session_id, channel=name)

    def unbind_session(self, session_id: str) -> None:
        """Remove the binding for ``session_id``.

        Raises:
            NotFoundError: If the session has no binding.
        """
        with self._lock:
            if session_id not in self._bindings:
                raise NotFoundError(
                    f"Session '{session_id}' has no binding",
                    details={"session_id": session_id},
                )
            del self._bindings[session_id]
        logger.info("channel_registry.session_unbound", session_id=session_id)

    def resolve_for_session(self, session_id: str) -> ChannelEndpoint | None:
        with self._lock:
            name = self._bindings.get(session_id)
            if name is None:
                return None
            return self._endpoints.get(name)

    def bindings(self) -> dict[str, str]:
        with self._lock:
            return dict(self._bindings)

    # ------------------------------------------------------------------
    # Pending sessions
    # ------------------------------------------------------------------

    def record_pending(self, session_id: str) -> bool:
        """Queue a session that has no resolvable binding.

        Returns:
            True if a new entry was added; False when the session is already
            pending or already bound.
        """
        with self._lock:
            if session_id in self._pending or self._resolvable_locked(session_id):
                return False
            self._pending[session_id] = PendingSession(session_id=session_id)
        logger.info("channel_registry.pending_recorded", session_id=session_id)
        return True

    def dequeue_pending(self, session_id: str) -> bool:
        """Drop a pending entry. Returns True if one existed."""
        with self._lock:
            removed = self._pending.pop(session_id, None) is not None
        if removed:
            logger.info("channel_registry.pending_dequeued", session_id=session_id)
        return removed

    def pending_sessions(self) -> list[PendingSession]:
        with self._lock:
            return list(self._pending.values())

    def is_pending(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._pending

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Return a plain, serialisable copy of the registry state."""
        with self._lock:
            return {
                "bots": [endpoint.to_dict() for endpoint in self._endpoints.values()],
                "default_bot": self._default_name or "",
                "session_bindings": dict(self._bindings),
                "pending_sessions": [p.to_dict() for p in self._pending.values()],
            }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> ChannelRegistry:
        """Rebuild a registry from ``snapshot()`` output.

        Bindings that name an unknown endpoint are dropped, and pending
        entries that already have a binding are skipped.
        """
        registry = cls()
        for raw in data.get("bots") or []:
            endpoint = ChannelEndpoint.from_dict(raw)
            if endpoint.name in registry._endpoints:
                logger.warning("channel_registry.duplicate_in_snapshot", channel=endpoint.name)
                continue
            registry._endpoints[endpoint.name] = endpoint

        default_name = data.get("default_bot") or None
        if default_name in registry._endpoints:
            registry._default_name = default_name

        for session_id, name in (data.get("session_bindings") or {}).items():
            if name in registry._endpoints:
                registry._bindings[str(session_id)] = str(name)
            else:
                logger.warning(
                    "channel_registry.dangling_binding_dropped",
                    session_id=session_id,
                    channel=name,
                )

        for raw in data.get("pending_sessions") or []:
            pending = PendingSession.from_dict(raw)
            if pending.session_id not in registry._bindings:
                registry._pending[pending.session_id] = pending
        return registry

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _remove_locked(self, name: str) -> int:
        del self._endpoints[name]
        if self._default_name == name:
            self._default_name = None
        stale = [sid for sid, bound in self._bindings.items() if bound == name]
        for session_id in stale:
            del self._bindings[session_id]
        return len(stale)

    def _resolvable_locked(self, session_id: str) -> bool:
        name = self._bindings.get(session_id)
        return name is not None and name in self._endpoints
