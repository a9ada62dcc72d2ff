"""Key/value entry SQLAlchemy ORM model backing the token registry"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime

from apns_gateway.core.database import Base

# Size limits inherited from the registry's storage contract
NAMESPACE_MAX_LENGTH = 15
KEY_MAX_LENGTH = 15
VALUE_MAX_LENGTH = 99


class KeyValueEntry(Base):
    """
    One string value stored under (namespace, key).

    Namespaces partition the registry into list x environment, e.g.
    "tok_snd_s" holds the sandbox send list. Keys are client IPv4
    addresses and values are APNS device tokens.

    Attributes:
        namespace: Storage namespace (<= 15 chars)
        key: Entry key within the namespace (<= 15 chars)
        value: Stored string (<= 99 chars)
        updated_at: Last write timestamp (UTC)
    """

    __tablename__ = "kv_entries"

    namespace = Column(String(NAMESPACE_MAX_LENGTH), primary_key=True)
    key = Column(String(KEY_MAX_LENGTH), primary_key=True)
    value = Column(String(VALUE_MAX_LENGTH), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<KeyValueEntry(namespace={self.namespace}, key={self.key})>"
