"""Interaction bridge: the entry point used by protocol callers.

The bridge accepts an interaction request, routes it to a channel endpoint,
runs one InteractionSession against a transport built for that endpoint and
returns the structured result. Several requests may run concurrently; each
gets its own session, transport and stop signal.

Usage::

    bridge = InteractionBridge(
        state=state,
        transport_factory=TelegramTransport.for_endpoint,
        config_store=store,
    )
    result = await bridge.handle_request(InteractionRequest(message="Deploy?"))
    ...
    await bridge.shutdown()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from chatrelay.application.config_loader import RelayState, apply_registry
from chatrelay.application.interaction_session import (
    EventObserver,
    InteractionSession,
    SessionSettings,
)
from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.errors import ChannelDisabledError
from chatrelay.core.domain.interaction import InteractionRequest
from chatrelay.core.domain.router import ChannelRouter
from chatrelay.core.interfaces.channel_transport import ChannelTransportProtocol
from chatrelay.core.interfaces.config_store import ConfigStoreProtocol
from chatrelay.core.utils.session_ids import resolve_session_id

TransportFactory = Callable[[ChannelEndpoint], ChannelTransportProtocol]


class InteractionBridge:
    """Route requests to channels and run their interaction sessions."""

    def __init__(
        self,
        *,
        state: RelayState,
        transport_factory: TransportFactory,
        config_store: ConfigStoreProtocol | None = None,
        on_event: EventObserver | None = None,
        derive_session_ids: bool = False,
    ) -> None:
        """
        Args:
            state: Loaded configuration and the shared channel registry.
            transport_factory: Builds a transport for a routed endpoint.
            config_store: Where pending-session enrolments are persisted.
            on_event: Observer receiving toggle / text / commit events.
            derive_session_ids: Fill in a missing session id from the
                working directory and environment.
        """
        self._state = state
        self._router = ChannelRouter(state.registry)
        self._transport_factory = transport_factory
        self._config_store = config_store
        self._on_event = on_event
        self._derive_session_ids = derive_session_ids
        self._stop_events: set[asyncio.Event] = set()
        self._logger = structlog.get_logger(__name__)

    @property
    def active_sessions(self) -> int:
        return len(self._stop_events)

    async def handle_request(self, request: InteractionRequest) -> dict[str, Any] | None:
        """Deliver ``request`` to a human and wait for the answer.

        Returns:
            The answered / continue result, or ``None`` if the bridge was
            shut down before the human committed.

        Raises:
            ChannelDisabledError: The Telegram channel is switched off.
            UnknownChannelError: ``channel_name`` is not registered.
            NoChannelConfiguredError: No endpoint could be chosen.
            TransportError: The prompt could not be posted.
        """
        if not self._state.config.telegram.enabled:
            raise ChannelDisabledError()

        if request.session_id is None and self._derive_session_ids:
            request = request.model_copy(
                update={"session_id": resolve_session_id(request.working_directory)}
            )

        decision = self._router.route(request.channel_name, request.session_id)
        if decision.pending_recorded:
            self._persist_pending(request.session_id)

        settings = SessionSettings.from_config(self._state.config)
        transport = self._transport_factory(decision.endpoint)
        stop_event = asyncio.Event()
        self._stop_events.add(stop_event)
        self._logger.info(
            "bridge.request_started",
            request_id=request.request_id,
            channel=decision.endpoint.name,
            reason=decision.reason.value,
            session_id=request.session_id,
        )
        try:
            session = InteractionSession(
                request=request,
                endpoint=decision.endpoint,
                transport=transport,
                settings=settings,
                stop_event=stop_event,
                on_event=self._on_event,
            )
            return await session.run()
        finally:
            self._stop_events.discard(stop_event)
            await transport.close()

    def request_stop(self) -> None:
        """Set every running session's stop event.

        Synchronous so it can be installed directly as a signal handler.
        """
        for stop_event in list(self._stop_events):
            stop_event.set()
        self._logger.info("bridge.shutdown", sessions=len(self._stop_events))

    async def shutdown(self) -> None:
        """Signal every running session to stop without emitting a result."""
        self.request_stop()

    def _persist_pending(self, session_id: str | None) -> None:
        if self._config_store is None:
            return
        try:
            self._state.config = apply_registry(self._state.config, self._state.registry)
            self._config_store.save(self._state.config)
        except OSError as exc:
            # Delivery still proceeds on the default channel.
            self._logger.warning(
                "bridge.pending_save_failed", session_id=session_id, error=str(exc)
            )
