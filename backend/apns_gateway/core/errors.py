"""
Gateway error taxonomy.

Registry and argument errors propagate synchronously to callers. Delivery
errors are caught by the orchestrator and recorded as per-target outcomes;
they never escape a background worker.
"""
from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors"""
    pass


class ArgumentError(GatewayError, ValueError):
    """Malformed or missing required fields, rejected before any work"""
    pass


class CodecError(GatewayError):
    """Malformed DER signature encoding"""
    pass


class StorageError(GatewayError):
    """Token registry read/write failure"""
    pass


# =============================================================================
# Authentication (JWT issuance)
# =============================================================================

class AuthError(GatewayError):
    """JWT issuance failed; fatal for that send attempt"""
    pass


class KeyParseError(AuthError):
    """Private key material could not be parsed as an EC P-256 key"""
    pass


class RandomSourceError(AuthError):
    """Entropy source failed while producing the ECDSA nonce"""
    pass


class SignError(AuthError):
    """ECDSA signing or signature conversion failed"""
    pass


class TokenTooLargeError(AuthError):
    """Assembled JWT exceeds the allowed length"""
    pass


# =============================================================================
# Delivery (APNS exchange)
# =============================================================================

class DeliveryError(GatewayError):
    """A single APNS delivery attempt failed"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class ConnectionFailedError(DeliveryError):
    """TLS/HTTP2 transport failure"""
    pass


class DeliveryTimeoutError(DeliveryError):
    """No response within the poll budget"""
    pass


class RejectedError(DeliveryError):
    """APNS returned an error body; may be transient"""
    pass


class UnregisteredError(DeliveryError):
    """APNS reports the device token as permanently invalid"""
    pass
