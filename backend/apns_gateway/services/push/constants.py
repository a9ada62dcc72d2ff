"""
Constants for the APNS delivery engine.
"""
from enum import Enum


class Environment(str, Enum):
    """APNS delivery environment, also the registry partition."""

    SANDBOX = "sandbox"
    PRODUCTION = "production"


# APNS Hosts
APNS_PRODUCTION_HOST = "api.push.apple.com"
APNS_SANDBOX_HOST = "api.sandbox.push.apple.com"
APNS_PORT = 443

APNS_HOSTS = {
    Environment.SANDBOX: APNS_SANDBOX_HOST,
    Environment.PRODUCTION: APNS_PRODUCTION_HOST,
}

# APNS API path
APNS_DEVICE_PATH = "/3/device/{device_token}"

# Device tokens are hex strings; anything else could alter the request path
DEVICE_TOKEN_PATTERN = r"^[0-9A-Fa-f]+$"

# Marker in an error body that means the token is permanently invalid
APNS_UNREGISTERED_MARKER = "Unregistered"

# Reasons meaning the provider JWT itself was refused; the cached token is dropped
APNS_PROVIDER_TOKEN_REASONS = frozenset({
    "ExpiredProviderToken",
    "InvalidProviderToken",
    "MissingProviderToken",
})

# JWT configuration
JWT_ALGORITHM = "ES256"
# Reuse a provider token for 55 minutes; Apple rejects tokens older than
# 1 hour and answers TooManyProviderTokenUpdates if they are refreshed too often.
JWT_CACHE_SECONDS = 3300
JWT_MAX_LENGTH = 1024

# Response polling defaults (~15s budget)
DEFAULT_POLL_INTERVAL_SECONDS = 0.1
DEFAULT_MAX_POLL_ROUNDS = 150
CONNECT_TIMEOUT_SECONDS = 10.0

# APNS Error Codes (from the "reason" field of an error body)
APNS_ERROR_CODES = {
    # Client errors
    "BadCollapseId": "The collapse identifier exceeds the maximum allowed size",
    "BadDeviceToken": "The specified device token is invalid",
    "BadExpirationDate": "The apns-expiration value is invalid",
    "BadMessageId": "The apns-id value is invalid",
    "BadPriority": "The apns-priority value is invalid",
    "BadTopic": "The apns-topic value is invalid",
    "DeviceTokenNotForTopic": "The device token doesn't match the specified topic",
    "DuplicateHeaders": "One or more headers are repeated",
    "IdleTimeout": "Idle timeout",
    "InvalidPushType": "The apns-push-type value is invalid",
    "MissingDeviceToken": "The device token is not specified in the request path",
    "MissingTopic": "The apns-topic header is missing from the request",
    "PayloadEmpty": "The message payload is empty",
    "PayloadTooLarge": "The message payload is too large",
    "TopicDisallowed": "Pushing to this topic is not allowed",

    # Token errors
    "BadCertificate": "The certificate is invalid",
    "BadCertificateEnvironment": "The client certificate is for the wrong environment",
    "ExpiredProviderToken": "The provider token is stale and a new token should be generated",
    "Forbidden": "The specified action is not allowed",
    "InvalidProviderToken": "The provider token is not valid or the token signature cannot be verified",
    "MissingProviderToken": "No provider certificate was used to connect to APNs",

    # Device token errors
    "Unregistered": "The device token is no longer active for the topic",

    # Server errors
    "TooManyProviderTokenUpdates": "The provider token has been updated too often",
    "TooManyRequests": "Too many requests were made consecutively to the same device token",
    "InternalServerError": "An internal server error occurred",
    "ServiceUnavailable": "The service is unavailable",
    "Shutdown": "The server is shutting down",
}
