"""
Tests for the namespace-scoped key/value store.
"""

import pytest
from sqlalchemy.orm import sessionmaker

from apns_gateway.core.database import build_engine
from apns_gateway.core.errors import ArgumentError, StorageError
from apns_gateway.services.registry.kv_store import KeyValueStore


class TestKeyValueStore:
    """Tests for KeyValueStore CRUD."""

    def test_get_missing(self, kv_store):
        assert kv_store.get("tok_snd_s", "10.0.0.1") is None

    def test_set_and_get(self, kv_store):
        kv_store.set("tok_snd_s", "10.0.0.1", "tok-A")
        assert kv_store.get("tok_snd_s", "10.0.0.1") == "tok-A"

    def test_overwrite(self, kv_store):
        kv_store.set("tok_snd_s", "10.0.0.1", "tok-A")
        kv_store.set("tok_snd_s", "10.0.0.1", "tok-B")

        assert kv_store.get("tok_snd_s", "10.0.0.1") == "tok-B"
        assert kv_store.items("tok_snd_s") == [("10.0.0.1", "tok-B")]

    def test_namespaces_isolated(self, kv_store):
        kv_store.set("tok_snd_s", "10.0.0.1", "tok-A")

        assert kv_store.get("tok_snd_p", "10.0.0.1") is None
        assert kv_store.items("tok_blk_s") == []

    def test_delete(self, kv_store):
        kv_store.set("tok_snd_s", "10.0.0.1", "tok-A")

        assert kv_store.delete("tok_snd_s", "10.0.0.1") is True
        assert kv_store.delete("tok_snd_s", "10.0.0.1") is False
        assert kv_store.get("tok_snd_s", "10.0.0.1") is None

    def test_items(self, kv_store):
        kv_store.set("tok_snd_s", "10.0.0.1", "tok-A")
        kv_store.set("tok_snd_s", "10.0.0.2", "tok-B")

        assert sorted(kv_store.items("tok_snd_s")) == [
            ("10.0.0.1", "tok-A"),
            ("10.0.0.2", "tok-B"),
        ]

    def test_durable_across_instances(self, session_factory):
        KeyValueStore(session_factory).set("tok_blk_p", "10.0.0.9", "tok-Z")

        assert KeyValueStore(session_factory).get("tok_blk_p", "10.0.0.9") == "tok-Z"

    @pytest.mark.parametrize("namespace,key,value", [
        ("", "10.0.0.1", "tok"),
        ("n" * 16, "10.0.0.1", "tok"),
        ("tok_snd_s", "", "tok"),
        ("tok_snd_s", "1" * 16, "tok"),
        ("tok_snd_s", "10.0.0.1", ""),
        ("tok_snd_s", "10.0.0.1", "t" * 100),
    ])
    def test_limits(self, kv_store, namespace, key, value):
        with pytest.raises(ArgumentError):
            kv_store.set(namespace, key, value)

    def test_max_sizes_accepted(self, kv_store):
        kv_store.set("n" * 15, "1" * 15, "t" * 99)
        assert kv_store.get("n" * 15, "1" * 15) == "t" * 99

    def test_storage_failure(self, tmp_path):
        """Database errors surface as StorageError."""
        engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        store = KeyValueStore(sessionmaker(bind=engine))  # tables never created

        try:
            with pytest.raises(StorageError):
                store.get("tok_snd_s", "10.0.0.1")
            with pytest.raises(StorageError):
                store.set("tok_snd_s", "10.0.0.1", "tok")
            with pytest.raises(StorageError):
                store.items("tok_snd_s")
        finally:
            engine.dispose()
