"""
Channel Router

Decides which channel endpoint an interaction request is delivered to.

Architecture:
    Request → ChannelRouter.route() → RouteDecision
                                      ├── EXPLICIT  → named channel (unknown name is fatal)
                                      ├── SESSION   → channel bound to the session id
                                      └── DEFAULT   → default channel (unbound sessions
                                                      are queued as pending first)

Explicit intent is never overridden: when a channel name is given, neither
the session binding nor the default is consulted. An unbound session does
not block delivery; it degrades to the default channel and is enrolled in
the pending queue for later manual binding.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.errors import UnknownChannelError
from chatrelay.core.domain.registry import ChannelRegistry


class RouteReason(Enum):
    """Which step of the priority chain produced the endpoint."""

    EXPLICIT = "explicit"
    SESSION = "session"
    DEFAULT = "default"


@dataclass(frozen=True)
class RouteDecision:
    """
    Result of routing a request.

    Attributes:
        endpoint: Snapshot of the chosen channel endpoint
        reason: Priority step that matched
        pending_recorded: True when this call newly queued the session as pending
    """

    endpoint: ChannelEndpoint
    reason: RouteReason
    pending_recorded: bool = False


class ChannelRouter:
    """Resolve endpoints with the explicit → session → default priority chain."""

    def __init__(self, registry: ChannelRegistry) -> None:
        self._registry = registry
        self._logger = structlog.get_logger(__name__)

    def route(
        self,
        explicit_name: str | None = None,
        session_id: str | None = None,
    ) -> RouteDecision:
        """
        Pick the endpoint for a request.

        Args:
            explicit_name: Channel requested by the caller, if any
            session_id: Session identifier used for binding lookup, if any

        Returns:
            RouteDecision with the endpoint snapshot

        Raises:
            UnknownChannelError: explicit_name is not registered
            NoChannelConfiguredError: nothing matched and no endpoint exists
        """
        if explicit_name:
            endpoint = self._registry.get(explicit_name)
            if endpoint is None:
                self._logger.warning("router.unknown_channel", channel=explicit_name)
                raise UnknownChannelError(explicit_name)
            return self._decide(endpoint, RouteReason.EXPLICIT, session_id=session_id)

        pending_recorded = False
        if session_id:
            endpoint = self._registry.resolve_for_session(session_id)
            if endpoint is not None:
                return self._decide(endpoint, RouteReason.SESSION, session_id=session_id)
            pending_recorded = self._registry.record_pending(session_id)

        endpoint = self._registry.get_default()
        return self._decide(
            endpoint,
            RouteReason.DEFAULT,
            session_id=session_id,
            pending_recorded=pending_recorded,
        )

    def _decide(
        self,
        endpoint: ChannelEndpoint,
        reason: RouteReason,
        *,
        session_id: str | None,
        pending_recorded: bool = False,
    ) -> RouteDecision:
        self._logger.info(
            "router.resolved",
            channel=endpoint.name,
            reason=reason.value,
            session_id=session_id,
            pending_recorded=pending_recorded,
        )
        return RouteDecision(endpoint=endpoint, reason=reason, pending_recorded=pending_recorded)
