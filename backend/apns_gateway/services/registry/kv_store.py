"""
Namespace-scoped durable key/value store.

Every write commits on its own, so each single-key operation is atomic and
survives a restart. Multi-key sequences are not transactional; callers that
need ordering guarantees (registry moves) sequence the writes themselves.
"""

import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apns_gateway.core.database import get_db_session
from apns_gateway.core.errors import ArgumentError, StorageError
from apns_gateway.models.kv_entry import (
    KEY_MAX_LENGTH,
    NAMESPACE_MAX_LENGTH,
    VALUE_MAX_LENGTH,
    KeyValueEntry,
)

logger = logging.getLogger(__name__)


def _check(label: str, text: str, max_length: int) -> None:
    if not isinstance(text, str) or not text:
        raise ArgumentError(f"{label} must be a non-empty string")
    if len(text) > max_length:
        raise ArgumentError(f"{label} exceeds {max_length} characters")


class KeyValueStore:
    """
    String key/value storage partitioned into namespaces.

    Backed by the kv_entries table through SQLAlchemy. Database failures
    surface as StorageError.

    Usage:
        store = KeyValueStore()
        store.set("tok_snd_s", "10.0.0.5", "a1b2...")
        store.get("tok_snd_s", "10.0.0.5")
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        """
        Args:
            session_factory: Optional session factory; defaults to SessionLocal
        """
        self._session_factory = session_factory

    def get(self, namespace: str, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""
        _check("namespace", namespace, NAMESPACE_MAX_LENGTH)
        _check("key", key, KEY_MAX_LENGTH)
        try:
            with get_db_session(self._session_factory) as db:
                entry = db.get(KeyValueEntry, (namespace, key))
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {namespace}/{key}: {e}") from e

    def set(self, namespace: str, key: str, value: str) -> None:
        """Insert or overwrite the value stored under key."""
        _check("namespace", namespace, NAMESPACE_MAX_LENGTH)
        _check("key", key, KEY_MAX_LENGTH)
        _check("value", value, VALUE_MAX_LENGTH)
        try:
            with get_db_session(self._session_factory) as db:
                entry = db.get(KeyValueEntry, (namespace, key))
                if entry is None:
                    db.add(KeyValueEntry(namespace=namespace, key=key, value=value))
                else:
                    entry.value = value
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write {namespace}/{key}: {e}") from e

    def delete(self, namespace: str, key: str) -> bool:
        """Remove key; returns False when it was not present."""
        _check("namespace", namespace, NAMESPACE_MAX_LENGTH)
        _check("key", key, KEY_MAX_LENGTH)
        try:
            with get_db_session(self._session_factory) as db:
                deleted = db.query(KeyValueEntry).filter(
                    KeyValueEntry.namespace == namespace,
                    KeyValueEntry.key == key,
                ).delete(synchronize_session=False)
                db.commit()
                return deleted > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete {namespace}/{key}: {e}") from e

    def items(self, namespace: str) -> List[Tuple[str, str]]:
        """Return (key, value) pairs of a namespace; order is unspecified."""
        _check("namespace", namespace, NAMESPACE_MAX_LENGTH)
        try:
            with get_db_session(self._session_factory) as db:
                rows = db.query(KeyValueEntry.key, KeyValueEntry.value).filter(
                    KeyValueEntry.namespace == namespace
                ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list {namespace}: {e}") from e

        return [(key, value) for key, value in rows]
