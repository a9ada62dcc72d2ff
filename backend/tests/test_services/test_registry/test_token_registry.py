"""
Tests for the send/block token registry.
"""

import pytest

from apns_gateway.core.errors import ArgumentError
from apns_gateway.services.push.constants import Environment
from apns_gateway.services.registry.token_registry import (
    NAMESPACES,
    RegisterOutcome,
    TokenEntry,
    TokenList,
    TokenRegistry,
)


def as_pairs(entries):
    return sorted((e.environment.value, e.ip, e.token) for e in entries)


# =============================================================================
# register
# =============================================================================

class TestRegister:
    """Tests for token registration."""

    def test_stored(self, registry):
        outcome = registry.register("sandbox", "10.0.0.5", "aa01")

        assert outcome == RegisterOutcome.STORED
        assert outcome.stored
        assert outcome.reason is None
        assert registry.get_send("sandbox", "10.0.0.5") == "aa01"

    def test_same_token_twice(self, registry):
        """Second identical registration is ignored; one entry remains."""
        first = registry.register("sandbox", "10.0.0.5", "aa01")
        second = registry.register("sandbox", "10.0.0.5", "aa01")

        assert first == RegisterOutcome.STORED
        assert second == RegisterOutcome.IGNORED_NO_CHANGE
        assert second.reason == "no_change"
        assert registry.list_send("sandbox") == [
            TokenEntry(environment=Environment.SANDBOX, ip="10.0.0.5", token="aa01")
        ]

    def test_updates_changed_token(self, registry):
        registry.register("sandbox", "10.0.0.5", "aa01")

        assert registry.register("sandbox", "10.0.0.5", "bb02") == RegisterOutcome.STORED
        assert registry.get_send("sandbox", "10.0.0.5") == "bb02"

    def test_blocked_ip_ignored(self, registry):
        """A blocked (env, ip) is not added to the send list."""
        registry.add_block("10.0.0.5", "01d0")

        outcome = registry.register("sandbox", "10.0.0.5", "aa01")

        assert outcome == RegisterOutcome.IGNORED_BLOCKED
        assert outcome.reason == "blocked"
        assert registry.get_send("sandbox", "10.0.0.5") is None
        assert registry.get_block("sandbox", "10.0.0.5") == "01d0"

    def test_partitions_independent(self, registry):
        registry.register("sandbox", "10.0.0.5", "5a01")
        registry.register(Environment.PRODUCTION, "10.0.0.5", "ff01")

        assert registry.get_send("sandbox", "10.0.0.5") == "5a01"
        assert registry.get_send("production", "10.0.0.5") == "ff01"

    def test_block_in_other_partition_does_not_apply(self, registry):
        """Blocking moved in one partition only affects that partition."""
        registry.register("production", "10.0.0.5", "ff01")
        registry.move_to_block("10.0.0.5")

        assert registry.register("sandbox", "10.0.0.5", "5a01") == RegisterOutcome.STORED

    @pytest.mark.parametrize("environment,ip,token", [
        ("staging", "10.0.0.5", "abc"),
        ("sandbox", "", "abc"),
        ("sandbox", "1" * 16, "abc"),
        ("sandbox", "10.0.0.5", ""),
        ("sandbox", "10.0.0.5", "t" * 100),
    ])
    def test_invalid_arguments(self, registry, environment, ip, token):
        with pytest.raises(ArgumentError):
            registry.register(environment, ip, token)

    @pytest.mark.parametrize("token", ["abc?x=1", "abc#frag", "abc/def", "not-hex", "ab cd"])
    def test_non_hex_token_rejected(self, registry, token):
        """Only hex tokens are stored, so a blast never posts to a different device path."""
        with pytest.raises(ArgumentError):
            registry.register("sandbox", "10.0.0.5", token)
        with pytest.raises(ArgumentError):
            registry.add_block("10.0.0.5", token)

        assert registry.list_send() == []
        assert registry.list_block() == []

    def test_uppercase_hex_accepted(self, registry):
        assert registry.register("sandbox", "10.0.0.5", "ABCDEF0123").stored

    def test_argument_error_is_value_error(self, registry):
        with pytest.raises(ValueError):
            registry.register("sandbox", "", "abc")


# =============================================================================
# Listing
# =============================================================================

class TestListing:
    """Tests for list_send / list_block."""

    def test_filtered_and_unfiltered(self, registry):
        registry.register("sandbox", "10.0.0.1", "aa01")
        registry.register("production", "10.0.0.2", "bb02")

        assert as_pairs(registry.list_send("sandbox")) == [("sandbox", "10.0.0.1", "aa01")]
        assert as_pairs(registry.list_send("production")) == [("production", "10.0.0.2", "bb02")]
        assert as_pairs(registry.list_send()) == [
            ("production", "10.0.0.2", "bb02"),
            ("sandbox", "10.0.0.1", "aa01"),
        ]

    def test_empty(self, registry):
        assert registry.list_send() == []
        assert registry.list_block("sandbox") == []

    def test_to_dict(self):
        entry = TokenEntry(environment=Environment.PRODUCTION, ip="10.0.0.1", token="tok")
        assert entry.to_dict() == {"ip": "10.0.0.1", "token": "tok", "server_type": "production"}

    def test_namespace_names(self):
        assert NAMESPACES[(TokenList.SEND, Environment.SANDBOX)] == "tok_snd_s"
        assert NAMESPACES[(TokenList.SEND, Environment.PRODUCTION)] == "tok_snd_p"
        assert NAMESPACES[(TokenList.BLOCK, Environment.SANDBOX)] == "tok_blk_s"
        assert NAMESPACES[(TokenList.BLOCK, Environment.PRODUCTION)] == "tok_blk_p"


# =============================================================================
# Deletes
# =============================================================================

class TestDeletes:
    """Tests for delete_send / delete_block across partitions."""

    def test_delete_send_both_partitions(self, registry):
        registry.register("sandbox", "10.0.0.5", "5a01")
        registry.register("production", "10.0.0.5", "ff01")

        assert registry.delete_send("10.0.0.5") is True
        assert registry.list_send() == []

    def test_delete_send_unknown(self, registry):
        registry.register("sandbox", "10.0.0.1", "aa01")

        assert registry.delete_send("10.0.0.5") is False
        assert len(registry.list_send()) == 1

    def test_delete_block(self, registry):
        registry.add_block("10.0.0.5", "tok")

        assert registry.delete_block("10.0.0.5") is True
        assert registry.delete_block("10.0.0.5") is False
        assert registry.list_block() == []


# =============================================================================
# Moves and add_block
# =============================================================================

class TestMoves:
    """Tests for moves between lists and the registry invariant."""

    def test_move_to_block(self, registry):
        registry.register("sandbox", "10.0.0.5", "aa01")

        assert registry.move_to_block("10.0.0.5") is True
        assert registry.get_send("sandbox", "10.0.0.5") is None
        assert registry.get_block("sandbox", "10.0.0.5") == "aa01"

    def test_move_to_block_only_matching_partitions(self, registry):
        registry.register("production", "10.0.0.5", "ff01")

        registry.move_to_block("10.0.0.5")

        assert registry.get_block("production", "10.0.0.5") == "ff01"
        assert registry.get_block("sandbox", "10.0.0.5") is None

    def test_move_to_block_unknown_ip(self, registry):
        """Unknown IP: NotFound and lists unchanged."""
        registry.register("sandbox", "10.0.0.1", "aa01")

        assert registry.move_to_block("10.0.0.5") is False
        assert as_pairs(registry.list_send()) == [("sandbox", "10.0.0.1", "aa01")]
        assert registry.list_block() == []

    def test_move_to_send(self, registry):
        registry.register("sandbox", "10.0.0.5", "aa01")
        registry.move_to_block("10.0.0.5")

        assert registry.move_to_send("10.0.0.5") is True
        assert registry.get_send("sandbox", "10.0.0.5") == "aa01"
        assert registry.get_block("sandbox", "10.0.0.5") is None

    def test_move_to_send_unknown_ip(self, registry):
        assert registry.move_to_send("10.0.0.5") is False

    def test_add_block_both_partitions(self, registry):
        registry.add_block("10.0.0.5", "ee09")

        assert registry.get_block("sandbox", "10.0.0.5") == "ee09"
        assert registry.get_block("production", "10.0.0.5") == "ee09"

    def test_add_block_removes_send_entries(self, registry):
        """An IP is never in both lists of one partition."""
        registry.register("sandbox", "10.0.0.5", "5a01")
        registry.register("production", "10.0.0.5", "ff01")

        registry.add_block("10.0.0.5", "ee09")

        assert registry.list_send() == []

    def test_write_then_delete_order(self, kv_store):
        """A move writes the destination before deleting the source."""
        calls = []
        original_set, original_delete = kv_store.set, kv_store.delete

        def tracking_set(namespace, key, value):
            calls.append(("set", namespace))
            original_set(namespace, key, value)

        def tracking_delete(namespace, key):
            calls.append(("delete", namespace))
            return original_delete(namespace, key)

        registry = TokenRegistry(kv_store)
        registry.register("sandbox", "10.0.0.5", "aa01")
        calls.clear()

        kv_store.set, kv_store.delete = tracking_set, tracking_delete
        registry.move_to_block("10.0.0.5")

        assert calls == [("set", "tok_blk_s"), ("delete", "tok_snd_s")]
