"""SQLAlchemy ORM models"""
from apns_gateway.models.kv_entry import KeyValueEntry

__all__ = [
    "KeyValueEntry",
]
