"""
Models for the APNS delivery engine.

Pydantic models validate identity and notification input; dataclasses carry
per-target delivery outcomes and blast summaries.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from apns_gateway.services.push.constants import DEVICE_TOKEN_PATTERN, Environment

# Registry storage limit for device tokens
DEVICE_TOKEN_MAX_LENGTH = 99


class DeliveryStatus(str, Enum):
    """Outcome of one delivery attempt."""

    DELIVERED = "delivered"
    UNREGISTERED = "unregistered"
    FAILED = "failed"


@dataclass
class DeliveryOutcome:
    """Result of a push notification delivery attempt to one target."""

    device_token: str
    status: DeliveryStatus
    environment: Environment
    ip: Optional[str] = None  # Registry key, set for blast targets
    error: Optional[str] = None
    error_reason: Optional[str] = None  # APNS "reason" from the error body
    status_code: Optional[int] = None
    duration_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def delivered(self) -> bool:
        """True if APNS accepted the notification."""
        return self.status == DeliveryStatus.DELIVERED


@dataclass
class BlastSummary:
    """Aggregated result of a blast over one send-list partition.

    Attributes:
        environment: Partition the targets were resolved from
        outcomes: Per-target DeliveryOutcome list, in delivery order
        duration_ms: Total blast duration in milliseconds
        timestamp: When the blast started
    """

    environment: Environment
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    duration_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def delivered_count(self) -> int:
        return sum(1 for o in self.outcomes if o.delivered)

    @property
    def failure_count(self) -> int:
        """Every target that was not delivered, unregistered ones included."""
        return self.total - self.delivered_count

    @property
    def unregistered_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == DeliveryStatus.UNREGISTERED)

    @property
    def unregistered_targets(self) -> List[DeliveryOutcome]:
        """Targets APNS reported as permanently invalid (candidates for pruning)."""
        return [o for o in self.outcomes if o.status == DeliveryStatus.UNREGISTERED]


class GatewayIdentity(BaseModel):
    """Process-wide APNS identity, set once at startup.

    Attributes:
        team_id: 10-character team identifier (JWT "iss")
        key_id: 10-character key identifier (JWT "kid")
        topic: App bundle identifier, sent as apns-topic
        private_key_pem: PEM-encoded EC P-256 key (.p8 contents)
        use_sandbox: Default environment when a request does not name one
    """

    model_config = ConfigDict(frozen=True)

    team_id: str = Field(..., min_length=10, max_length=10, description="10-character team ID")
    key_id: str = Field(..., min_length=10, max_length=10, description="10-character key ID")
    topic: str = Field(..., min_length=1, description="App bundle identifier")
    private_key_pem: str = Field(..., min_length=1, repr=False, description="PEM .p8 key")
    use_sandbox: bool = Field(default=True, description="Default to sandbox environment")

    @field_validator("key_id", "team_id")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Validate that identifiers are alphanumeric."""
        if not v.isalnum():
            raise ValueError("Must be alphanumeric")
        return v.upper()

    @property
    def default_environment(self) -> Environment:
        return Environment.SANDBOX if self.use_sandbox else Environment.PRODUCTION

    @classmethod
    def from_key_file(
        cls,
        key_file: str,
        team_id: str,
        key_id: str,
        topic: str,
        use_sandbox: bool = True,
    ) -> "GatewayIdentity":
        """Build an identity from a .p8 file on disk."""
        key_path = Path(key_file)
        if not key_path.exists():
            raise FileNotFoundError(f"APNS key file not found: {key_path}")

        return cls(
            team_id=team_id,
            key_id=key_id,
            topic=topic,
            private_key_pem=key_path.read_text(encoding="utf-8"),
            use_sandbox=use_sandbox,
        )


def parse_custom_payload(fragment: str) -> Dict[str, Any]:
    """
    Parse a raw custom JSON fragment into root-level payload fields.

    Accepts either a full object ('{"type":"alert"}') or bare members
    ('"type":"alert","id":42').

    Raises:
        ValueError: If the fragment is not a JSON object or touches "aps"
    """
    text = fragment.strip()
    if not text:
        return {}
    if not text.startswith("{"):
        text = "{" + text + "}"

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"custom_payload is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise ValueError("custom_payload must be a JSON object")
    if "aps" in data:
        raise ValueError("custom_payload must not contain the 'aps' key")
    return data


class NotificationTemplate(BaseModel):
    """Notification content without a target, as used by a blast.

    Optional fields are omitted from the APNS payload when None.
    """

    title: str = Field(..., description="Alert title")
    body: str = Field(..., description="Alert body text")
    badge: Optional[int] = Field(None, ge=0, description="Badge number")
    sound: Optional[str] = Field(None, description="Sound name or 'default'")
    custom_payload: Optional[str] = Field(
        None,
        description="Raw JSON fields merged at the payload root",
    )
    environment: Optional[Environment] = Field(
        None,
        description="Target environment; identity default when omitted",
    )

    @field_validator("custom_payload")
    @classmethod
    def validate_custom_payload(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_custom_payload(v)
        return v

    def to_apns_dict(self) -> Dict[str, Any]:
        """Convert to the APNS JSON document.

        Returns:
            {"aps": {"alert": {...}, "badge"?, "sound"?}, ...custom fields}
        """
        aps: Dict[str, Any] = {
            "alert": {
                "title": self.title,
                "body": self.body,
            },
        }
        if self.badge is not None:
            aps["badge"] = self.badge
        if self.sound is not None:
            aps["sound"] = self.sound

        payload: Dict[str, Any] = {"aps": aps}
        if self.custom_payload:
            payload.update(parse_custom_payload(self.custom_payload))
        return payload

    def for_target(self, device_token: str) -> "Notification":
        """Stamp a device token into a copy of this template."""
        return Notification(device_token=device_token, **self.model_dump())


class Notification(NotificationTemplate):
    """A notification addressed to one device token."""

    device_token: str = Field(
        ...,
        min_length=1,
        max_length=DEVICE_TOKEN_MAX_LENGTH,
        pattern=DEVICE_TOKEN_PATTERN,
        description="APNS device token (hex string)",
    )

    @field_validator("device_token", mode="before")
    @classmethod
    def strip_device_token(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v
