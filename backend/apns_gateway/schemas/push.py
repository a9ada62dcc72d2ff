"""Push and blast request schemas"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from apns_gateway.services.push.constants import DEVICE_TOKEN_PATTERN, Environment
from apns_gateway.services.push.models import (
    DEVICE_TOKEN_MAX_LENGTH,
    Notification,
    NotificationTemplate,
    parse_custom_payload,
)


class BlastRequest(BaseModel):
    """Request body for a blast to every send-list entry of one environment."""
    title: str = Field(..., description="Alert title")
    body: str = Field(..., description="Alert body text")
    badge: Optional[int] = Field(None, ge=0, description="Badge number")
    sound: Optional[str] = Field(None, description="Sound name or 'default'")
    custom_payload: Optional[str] = Field(
        None,
        description="Raw JSON fields merged at the payload root, e.g. '\"type\":\"alert\"'"
    )
    server_type: Optional[Environment] = Field(
        None,
        description="APNS environment; the gateway default when omitted"
    )

    @field_validator('custom_payload')
    @classmethod
    def validate_custom_payload(cls, v: Optional[str]) -> Optional[str]:
        """Reject fragments that are not a JSON object or that touch 'aps'."""
        if v is not None:
            parse_custom_payload(v)
        return v

    def to_template(self) -> NotificationTemplate:
        return NotificationTemplate(
            title=self.title,
            body=self.body,
            badge=self.badge,
            sound=self.sound,
            custom_payload=self.custom_payload,
            environment=self.server_type,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Maintenance",
                "body": "Service restarts at 02:00",
                "sound": "default",
                "server_type": "production"
            }
        }


class PushRequest(BlastRequest):
    """Request body for a single push notification."""
    device_token: str = Field(
        ...,
        min_length=1,
        max_length=DEVICE_TOKEN_MAX_LENGTH,
        pattern=DEVICE_TOKEN_PATTERN,
        description="APNS device token (hex string)"
    )

    def to_notification(self) -> Notification:
        return self.to_template().for_target(self.device_token)


class QueuedResponse(BaseModel):
    """Response for accepted background work."""
    status: str = Field("queued", description="Always 'queued'")
