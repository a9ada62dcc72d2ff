"""
Persistent token registry.

KeyValueStore provides namespace-scoped durable string storage;
TokenRegistry layers the send/block lists on top of it.
"""

from apns_gateway.services.registry.kv_store import KeyValueStore
from apns_gateway.services.registry.token_registry import (
    NAMESPACES,
    RegisterOutcome,
    TokenEntry,
    TokenList,
    TokenRegistry,
    parse_environment,
)

__all__ = [
    "KeyValueStore",
    "NAMESPACES",
    "RegisterOutcome",
    "TokenEntry",
    "TokenList",
    "TokenRegistry",
    "parse_environment",
]
