"""
APNS delivery engine.

This package contains:
- JWTIssuer - ES256 provider tokens, cached for 55 minutes
- APNSClient - one HTTP/2 exchange per notification
- DeliveryOrchestrator - serialized single sends and sequential blasts
  (in apns_gateway.services.push.orchestrator)
"""

from apns_gateway.services.push.apns_client import APNSClient
from apns_gateway.services.push.constants import Environment
from apns_gateway.services.push.jwt_issuer import CachedCredential, JWTIssuer
from apns_gateway.services.push.models import (
    BlastSummary,
    DeliveryOutcome,
    DeliveryStatus,
    GatewayIdentity,
    Notification,
    NotificationTemplate,
)

__all__ = [
    # Protocol
    "APNSClient",
    "JWTIssuer",
    "CachedCredential",
    # Models
    "Environment",
    "GatewayIdentity",
    "Notification",
    "NotificationTemplate",
    "DeliveryOutcome",
    "DeliveryStatus",
    "BlastSummary",
]
