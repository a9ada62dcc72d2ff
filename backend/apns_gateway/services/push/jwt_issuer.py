"""
APNS provider token (JWT) issuer.

Builds ES256 tokens by hand: compact JSON header and claims, Base64URL
segments, SHA-256 digest of the signing input, ECDSA P-256 signature
re-encoded from DER to raw r||s. Tokens are cached for 55 minutes.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InternalError, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from apns_gateway.core.errors import (
    CodecError,
    KeyParseError,
    RandomSourceError,
    SignError,
    TokenTooLargeError,
)
from apns_gateway.core.metrics import record_jwt_issued
from apns_gateway.services.push.codecs import decode_der_signature, encode_url_safe
from apns_gateway.services.push.constants import (
    JWT_ALGORITHM,
    JWT_CACHE_SECONDS,
    JWT_MAX_LENGTH,
)
from apns_gateway.services.push.models import GatewayIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedCredential:
    """Most recently issued provider token."""

    token: str
    issued_at: int
    team_id: str
    key_id: str

    def is_valid(self, identity: GatewayIdentity, now: int) -> bool:
        return (
            self.team_id == identity.team_id
            and self.key_id == identity.key_id
            and now - self.issued_at < JWT_CACHE_SECONDS
        )


def _compact_json(obj: dict) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _load_signing_key(private_key_pem: str) -> ec.EllipticCurvePrivateKey:
    """Parse the .p8 key; only EC P-256 keys can sign ES256."""
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.encode("utf-8"),
            password=None,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyParseError(f"Failed to parse APNS private key: {e}") from e

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise KeyParseError("APNS key must be an EC private key (ES256)")
    if not isinstance(key.curve, ec.SECP256R1):
        raise KeyParseError(f"APNS key must use P-256, got {key.curve.name}")
    return key


class JWTIssuer:
    """
    Issues and caches the bearer token used to authenticate to APNS.

    The cache is the issuer's only state. The parsed private key lives only
    for the duration of one issuance. A lock guarantees a single
    regeneration at a time when several callers race past an expired cache.

    Usage:
        issuer = JWTIssuer()
        token = issuer.get_bearer_token(identity)
        headers = {"authorization": f"bearer {token}"}
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cached: Optional[CachedCredential] = None

    def get_bearer_token(self, identity: GatewayIdentity, now: Optional[int] = None) -> str:
        """
        Return a provider token, reusing the cached one while it is fresh.

        Args:
            identity: Gateway identity (team, key id, private key)
            now: Current UNIX time in seconds; defaults to time.time()

        Returns:
            Compact JWT "<header>.<claims>.<signature>"

        Raises:
            KeyParseError: Private key material is unusable
            RandomSourceError: Entropy source failed during signing
            SignError: Signing or signature conversion failed
            TokenTooLargeError: Assembled token exceeds JWT_MAX_LENGTH
        """
        if now is None:
            now = int(time.time())

        with self._lock:
            cached = self._cached
            if cached is not None and cached.is_valid(identity, now):
                logger.debug(
                    "APNS JWT cache hit",
                    extra={"age_seconds": now - cached.issued_at},
                )
                return cached.token

            token = self._issue(identity, now)
            self._cached = CachedCredential(
                token=token,
                issued_at=now,
                team_id=identity.team_id,
                key_id=identity.key_id,
            )

        record_jwt_issued()
        logger.info(
            "Generated new APNS JWT",
            extra={
                "team_id": identity.team_id,
                "key_id": identity.key_id,
                "length": len(token),
                "reuse_seconds": JWT_CACHE_SECONDS,
            }
        )
        return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call signs a new one."""
        with self._lock:
            self._cached = None

    def _issue(self, identity: GatewayIdentity, now: int) -> str:
        header = {"alg": JWT_ALGORITHM, "kid": identity.key_id}
        claims = {"iss": identity.team_id, "iat": now}

        header_b64 = encode_url_safe(_compact_json(header))
        claims_b64 = encode_url_safe(_compact_json(claims))
        signing_input = f"{header_b64}.{claims_b64}".encode("ascii")
        digest = hashlib.sha256(signing_input).digest()

        key = _load_signing_key(identity.private_key_pem)
        try:
            der_signature = key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        except InternalError as e:
            raise RandomSourceError(f"Entropy source failed during ECDSA signing: {e}") from e
        except (ValueError, TypeError) as e:
            raise SignError(f"ECDSA signing failed: {e}") from e

        try:
            raw_signature = decode_der_signature(der_signature)
        except CodecError as e:
            raise SignError(f"Could not convert DER signature: {e}") from e

        token = f"{header_b64}.{claims_b64}.{encode_url_safe(raw_signature)}"
        if len(token) > JWT_MAX_LENGTH:
            raise TokenTooLargeError(
                f"JWT is {len(token)} chars, limit is {JWT_MAX_LENGTH}"
            )
        return token
