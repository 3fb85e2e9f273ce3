"""
Domain Models and Business Logic

This package contains the core domain models of chatrelay:
- Channel endpoints, the channel registry and routing
- Interaction requests, channel updates and domain events
- Update classification and result formatting
- Configuration schemas
"""

from chatrelay.core.domain.channel import ChannelEndpoint, PendingSession
from chatrelay.core.domain.errors import ChatRelayError
from chatrelay.core.domain.interaction import InteractionRequest
from chatrelay.core.domain.registry import ChannelRegistry
from chatrelay.core.domain.router import ChannelRouter, RouteDecision, RouteReason

__all__ = [
    "ChannelEndpoint",
    "ChannelRegistry",
    "ChannelRouter",
    "ChatRelayError",
    "InteractionRequest",
    "PendingSession",
    "RouteDecision",
    "RouteReason",
]
