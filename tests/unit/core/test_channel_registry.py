"""Unit tests for ChannelRegistry."""

from __future__ import annotations

import pytest

from chatrelay.core.domain.channel import ChannelEndpoint
from chatrelay.core.domain.errors import (
    DuplicateNameError,
    NoChannelConfiguredError,
    NotFoundError,
)
from chatrelay.core.domain.registry import ChannelRegistry


def _endpoint(name: str, chat: str = "100") -> ChannelEndpoint:
    return ChannelEndpoint(name=name, token=f"{name}-token", conversation_id=chat)


@pytest.fixture
def registry() -> ChannelRegistry:
    reg = ChannelRegistry()
    reg.add(_endpoint("alpha", "1"))
    reg.add(_endpoint("beta", "2"))
    return reg


class TestEndpoints:
    def test_add_duplicate_name_fails_and_keeps_existing(self, registry: ChannelRegistry):
        with pytest.raises(DuplicateNameError):
            registry.add(_endpoint("alpha", "999"))
        assert registry.get("alpha").conversation_id == "1"

    def test_remove_unknown_raises_not_found(self, registry: ChannelRegistry):
        with pytest.raises(NotFoundError):
            registry.remove("gamma")

    def test_remove_drops_bindings_and_default(self, registry: ChannelRegistry):
        registry.set_default("beta")
        registry.bind_session("s1", "beta")
        registry.bind_session("s2", "alpha")

        registry.remove("beta")

        assert registry.get("beta") is None
        assert registry.default_name is None
        assert registry.bindings() == {"s2": "alpha"}
        assert registry.resolve_for_session("s1") is None

    def test_get_default_prefers_designated(self, registry: ChannelRegistry):
        registry.set_default("beta")
        assert registry.get_default().name == "beta"

    def test_get_default_falls_back_to_first_registered(self, registry: ChannelRegistry):
        assert registry.default_name is None
        assert registry.get_default().name == "alpha"

    def test_get_default_on_empty_registry_raises(self):
        with pytest.raises(NoChannelConfiguredError):
            ChannelRegistry().get_default()

    def test_set_default_unknown_raises(self, registry: ChannelRegistry):
        with pytest.raises(NotFoundError):
            registry.set_default("missing")

    def test_list_endpoints_keeps_insertion_order(self, registry: ChannelRegistry):
        assert [e.name for e in registry.list_endpoints()] == ["alpha", "beta"]


class TestRenameOrUpdate:
    def test_update_in_place_replaces_settings(self, registry: ChannelRegistry):
        registry.rename_or_update("alpha", _endpoint("alpha", "42"))
        assert registry.get("alpha").conversation_id == "42"

    def test_rename_moves_default_designation(self, registry: ChannelRegistry):
        registry.set_default("alpha")
        registry.rename_or_update("alpha", _endpoint("gamma", "1"))

        assert registry.get("alpha") is None
        assert registry.default_name == "gamma"
        assert registry.get_default().name == "gamma"

    def test_rename_drops_bindings_to_old_name(self, registry: ChannelRegistry):
        registry.bind_session("s1", "alpha")
        registry.rename_or_update("alpha", _endpoint("gamma"))
        assert registry.bindings() == {}

    def test_rename_onto_existing_name_changes_nothing(self, registry: ChannelRegistry):
        registry.bind_session("s1", "alpha")
        with pytest.raises(DuplicateNameError):
            registry.rename_or_update("alpha", _endpoint("beta", "7"))

        assert registry.get("alpha").conversation_id == "1"
        assert registry.get("beta").conversation_id == "2"
        assert registry.bindings() == {"s1": "alpha"}

    def test_update_unknown_raises_not_found(self, registry: ChannelRegistry):
        with pytest.raises(NotFoundError):
            registry.rename_or_update("nope", _endpoint("nope"))


class TestSessions:
    def test_bind_unknown_channel_raises(self, registry: ChannelRegistry):
        with pytest.raises(NotFoundError):
            registry.bind_session("s1", "missing")
        assert registry.bindings() == {}

    def test_bind_clears_pending_entry(self, registry: ChannelRegistry):
        assert registry.record_pending("s1") is True
        registry.bind_session("s1", "beta")
        assert not registry.is_pending("s1")
        assert registry.resolve_for_session("s1").name == "beta"

    def test_record_pending_is_idempotent(self, registry: ChannelRegistry):
        assert registry.record_pending("s1") is True
        assert registry.record_pending("s1") is False
        assert [p.session_id for p in registry.pending_sessions()] == ["s1"]

    def test_record_pending_skips_bound_session(self, registry: ChannelRegistry):
        registry.bind_session("s1", "alpha")
        assert registry.record_pending("s1") is False
        assert registry.pending_sessions() == []

    def test_dequeue_pending(self, registry: ChannelRegistry):
        registry.record_pending("s1")
        assert registry.dequeue_pending("s1") is True
        assert registry.dequeue_pending("s1") is False

    def test_unbind_session(self, registry: ChannelRegistry):
        registry.bind_session("s1", "alpha")
        registry.unbind_session("s1")
        assert registry.resolve_for_session("s1") is None
        with pytest.raises(NotFoundError):
            registry.unbind_session("s1")


class TestSnapshot:
    def test_snapshot_roundtrip_preserves_state(self, registry: ChannelRegistry):
        registry.set_default("beta")
        registry.bind_session("s1", "alpha")
        registry.record_pending("s2")

        restored = ChannelRegistry.from_snapshot(registry.snapshot())

        assert [e.name for e in restored.list_endpoints()] == ["alpha", "beta"]
        assert restored.default_name == "beta"
        assert restored.bindings() == {"s1": "alpha"}
        assert [p.session_id for p in restored.pending_sessions()] == ["s2"]

    def test_from_snapshot_drops_dangling_bindings(self):
        restored = ChannelRegistry.from_snapshot(
            {
                "bots": [{"name": "alpha", "token": "t", "conversation_id": "1"}],
                "default_bot": "ghost",
                "session_bindings": {"s1": "alpha", "s2": "ghost"},
            }
        )
        assert restored.bindings() == {"s1": "alpha"}
        assert restored.default_name is None
        assert restored.get_default().name == "alpha"
