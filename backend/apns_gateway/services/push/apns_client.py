"""
APNS (Apple Push Notification Service) protocol client.

One delivery = one TLS HTTP/2 connection to the environment's APNS host,
one POST to /3/device/<token>, one classified response. The connection is
closed on every exit path.

Response classification:
- empty body                     -> delivered
- body containing "Unregistered" -> UnregisteredError
- any other body                 -> RejectedError
- no response within the budget  -> DeliveryTimeoutError
- transport failure              -> ConnectionFailedError
"""

import asyncio
import json
import logging
import ssl
import time
from typing import Optional
from urllib.parse import quote

import certifi
import httpx

from apns_gateway.core.errors import (
    ConnectionFailedError,
    DeliveryTimeoutError,
    RejectedError,
    UnregisteredError,
)
from apns_gateway.core.logging_config import mask_token
from apns_gateway.services.push.constants import (
    APNS_DEVICE_PATH,
    APNS_ERROR_CODES,
    APNS_HOSTS,
    APNS_PORT,
    APNS_UNREGISTERED_MARKER,
    CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_POLL_ROUNDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    Environment,
)
from apns_gateway.services.push.models import GatewayIdentity, Notification

logger = logging.getLogger(__name__)


def _parse_reason(body: bytes) -> Optional[str]:
    """Extract Apple's "reason" from an error body, if it is JSON."""
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(data, dict):
        reason = data.get("reason")
        return str(reason) if reason is not None else None
    return None


class APNSClient:
    """
    Sends a single notification to APNS over HTTP/2.

    The request runs as a task that is polled in fixed intervals, so the
    wait stays cooperative and is bounded by poll_interval * max_poll_rounds.

    Usage:
        client = APNSClient()
        await client.deliver(identity, bearer_token, notification)

    Attributes:
        poll_interval: Seconds between response polls
        max_poll_rounds: Polls before giving up with DeliveryTimeoutError
    """

    def __init__(
        self,
        ca_bundle: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_poll_rounds: int = DEFAULT_MAX_POLL_ROUNDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the protocol client.

        Args:
            ca_bundle: PEM trust bundle for verifying Apple's certificate
                (certifi's bundle when None)
            poll_interval: Seconds between response polls
            max_poll_rounds: Maximum number of polls per delivery
            transport: Optional httpx transport override (tests, proxies)
        """
        self.poll_interval = poll_interval
        self.max_poll_rounds = max_poll_rounds
        self._transport = transport
        self._ssl_context = ssl.create_default_context(cafile=ca_bundle or certifi.where())

    def _build_client(self, environment: Environment) -> httpx.AsyncClient:
        """Create a fresh HTTP/2 client bound to the environment's host."""
        host = APNS_HOSTS[environment]
        return httpx.AsyncClient(
            base_url=f"https://{host}:{APNS_PORT}",
            http2=True,
            verify=self._ssl_context,
            timeout=httpx.Timeout(None, connect=CONNECT_TIMEOUT_SECONDS),
            transport=self._transport,
        )

    @staticmethod
    def build_headers(identity: GatewayIdentity, credential: str) -> dict:
        """Build request headers for APNS."""
        return {
            "authorization": f"bearer {credential}",
            "apns-topic": identity.topic,
            "apns-push-type": "alert",
            "content-type": "application/json",
        }

    async def _await_response(self, request_task: asyncio.Task) -> httpx.Response:
        """Poll the in-flight request until it completes or the budget runs out."""
        rounds = 0
        while rounds < self.max_poll_rounds:
            done, _ = await asyncio.wait({request_task}, timeout=self.poll_interval)
            if done:
                break
            rounds += 1

        if not request_task.done():
            request_task.cancel()
            await asyncio.wait({request_task})
            raise DeliveryTimeoutError(
                f"No APNS response after {rounds} polls "
                f"({rounds * self.poll_interval:.1f}s)"
            )

        try:
            return request_task.result()
        except (httpx.HTTPError, OSError) as e:
            raise ConnectionFailedError(f"APNS connection failed: {e}") from e

    async def deliver(
        self,
        identity: GatewayIdentity,
        credential: str,
        notification: Notification,
    ) -> None:
        """
        Deliver one notification.

        Args:
            identity: Gateway identity (topic)
            credential: Bearer JWT from the issuer
            notification: Target and content

        Raises:
            UnregisteredError: Device token is permanently invalid
            RejectedError: APNS refused the notification
            DeliveryTimeoutError: No response within the poll budget
            ConnectionFailedError: Transport-level failure
        """
        environment = notification.environment or identity.default_environment
        path = APNS_DEVICE_PATH.format(device_token=quote(notification.device_token, safe=""))
        body = json.dumps(notification.to_apns_dict(), separators=(",", ":")).encode("utf-8")
        headers = self.build_headers(identity, credential)

        logger.debug(
            "Sending APNS request",
            extra={
                "host": APNS_HOSTS[environment],
                "device_token": mask_token(notification.device_token),
                "payload_bytes": len(body),
            }
        )

        start_time = time.time()
        client = self._build_client(environment)
        try:
            request_task = asyncio.ensure_future(
                client.post(path, content=body, headers=headers)
            )
            response = await self._await_response(request_task)
        finally:
            await client.aclose()

        duration_ms = int((time.time() - start_time) * 1000)
        content = response.content
        apns_id = response.headers.get("apns-id")

        if not content:
            if response.status_code >= 400:
                raise RejectedError(
                    f"APNS returned HTTP {response.status_code} without a body",
                    status_code=response.status_code,
                )
            logger.debug(
                "APNS accepted notification",
                extra={"apns_id": apns_id, "duration_ms": duration_ms},
            )
            return

        reason = _parse_reason(content)
        detail = APNS_ERROR_CODES.get(reason, reason) if reason else content.decode("utf-8", "replace")

        if APNS_UNREGISTERED_MARKER.encode() in content:
            raise UnregisteredError(
                f"APNS error: {detail}",
                status_code=response.status_code,
                reason=reason or APNS_UNREGISTERED_MARKER,
            )

        raise RejectedError(
            f"APNS error: {detail}",
            status_code=response.status_code,
            reason=reason,
        )
