"""
Delivery orchestrator.

Runs single sends and blasts against APNS. All delivery activity (credential
issuance plus the APNS exchange) is serialized process-wide by one lock,
held for a full send or a full blast loop.

Features:
- Fire-and-forget scheduling from HTTP handlers (enqueue_send / enqueue_blast)
- One credential per blast, targets delivered in sequence
- Per-target failures recorded as outcomes, never raised out of a worker
- Graceful drain of in-flight work on shutdown
"""

import asyncio
import logging
import time
from typing import Optional, Set, Union

from apns_gateway.core.errors import (
    AuthError,
    DeliveryError,
    GatewayError,
    UnregisteredError,
)
from apns_gateway.core.logging_config import mask_token
from apns_gateway.core.metrics import record_blast, record_delivery
from apns_gateway.services.push.apns_client import APNSClient
from apns_gateway.services.push.constants import APNS_PROVIDER_TOKEN_REASONS, Environment
from apns_gateway.services.push.jwt_issuer import JWTIssuer
from apns_gateway.services.push.models import (
    BlastSummary,
    DeliveryOutcome,
    DeliveryStatus,
    GatewayIdentity,
    Notification,
    NotificationTemplate,
)
from apns_gateway.services.registry.token_registry import TokenRegistry, parse_environment

logger = logging.getLogger(__name__)


class DeliveryOrchestrator:
    """
    Serializes and schedules APNS deliveries.

    Usage:
        orchestrator = DeliveryOrchestrator(identity)
        orchestrator.enqueue_send(notification)       # returns immediately
        summary = await orchestrator.blast("sandbox", template)
        await orchestrator.drain()                    # on shutdown
    """

    def __init__(
        self,
        identity: GatewayIdentity,
        issuer: Optional[JWTIssuer] = None,
        client: Optional[APNSClient] = None,
        registry: Optional[TokenRegistry] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            identity: Process-wide APNS identity
            issuer: Provider token issuer (a fresh one when None)
            client: APNS protocol client (default settings when None)
            registry: Token registry used to resolve blast targets
        """
        self.identity = identity
        self._issuer = issuer or JWTIssuer()
        self._client = client or APNSClient()
        self._registry = registry or TokenRegistry()

        self._send_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._closing = False

        logger.info(
            "DeliveryOrchestrator initialized",
            extra={
                "topic": identity.topic,
                "default_environment": identity.default_environment.value,
            }
        )

    @property
    def pending(self) -> int:
        """Number of scheduled deliveries not finished yet."""
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Direct (awaited) operations
    # ------------------------------------------------------------------

    async def send_one(self, notification: Notification) -> DeliveryOutcome:
        """
        Deliver one notification.

        Never raises for delivery or auth failures; they come back as a
        FAILED or UNREGISTERED outcome.
        """
        environment = notification.environment or self.identity.default_environment

        async with self._send_lock:
            try:
                credential = self._issuer.get_bearer_token(self.identity)
            except AuthError as e:
                outcome = self._auth_failure(notification.device_token, environment, e)
            else:
                outcome = await self._deliver(credential, notification, environment)

        self._log_outcome(outcome)
        return outcome

    async def blast(
        self,
        environment: Optional[Union[Environment, str]],
        template: NotificationTemplate,
    ) -> BlastSummary:
        """
        Deliver the template to every send-list entry of one environment.

        Targets are delivered in sequence under a single credential; a
        failing target never stops the loop.

        Args:
            environment: Send-list partition to target; falls back to the
                template's environment, then to the identity default
            template: Notification content without a device token

        Returns:
            BlastSummary with one outcome per target

        Raises:
            ArgumentError: Unknown environment
            StorageError: Targets could not be read from the registry
        """
        env = parse_environment(environment) if environment else (
            template.environment or self.identity.default_environment
        )
        template = template.model_copy(update={"environment": env})

        start_time = time.time()
        summary = BlastSummary(environment=env)

        async with self._send_lock:
            record_blast(env.value)
            targets = self._registry.list_send(env)

            if not targets:
                logger.info("Blast skipped: send list is empty", extra={"environment": env.value})
                summary.duration_ms = (time.time() - start_time) * 1000
                return summary

            try:
                credential = self._issuer.get_bearer_token(self.identity)
            except AuthError as e:
                for entry in targets:
                    summary.outcomes.append(self._auth_failure(entry.token, env, e, ip=entry.ip))
                credential = None

            if credential is not None:
                for entry in targets:
                    try:
                        notification = template.for_target(entry.token)
                    except ValueError as e:
                        summary.outcomes.append(DeliveryOutcome(
                            device_token=entry.token,
                            status=DeliveryStatus.FAILED,
                            environment=env,
                            ip=entry.ip,
                            error=f"Invalid stored token: {e}",
                        ))
                        continue

                    outcome = await self._deliver(credential, notification, env, ip=entry.ip)
                    summary.outcomes.append(outcome)

        summary.duration_ms = (time.time() - start_time) * 1000

        logger.info(
            f"Blast complete: {summary.delivered_count}/{summary.total} delivered",
            extra={
                "environment": env.value,
                "total": summary.total,
                "delivered": summary.delivered_count,
                "failed": summary.failure_count,
                "unregistered": summary.unregistered_count,
                "duration_ms": round(summary.duration_ms, 2),
            }
        )
        for outcome in summary.unregistered_targets:
            logger.warning(
                "Blast target is unregistered",
                extra={
                    "environment": env.value,
                    "ip": outcome.ip,
                    "device_token": mask_token(outcome.device_token),
                }
            )
        return summary

    # ------------------------------------------------------------------
    # Background scheduling
    # ------------------------------------------------------------------

    def enqueue_send(self, notification: Notification) -> bool:
        """Schedule send_one in the background; False when shutting down."""
        if self._closing:
            logger.warning("Push rejected: orchestrator is shutting down")
            return False
        self._spawn(self.send_one(notification), "send")
        return True

    def enqueue_blast(
        self,
        template: NotificationTemplate,
        environment: Optional[Union[Environment, str]] = None,
    ) -> bool:
        """Schedule blast in the background; False when shutting down."""
        if self._closing:
            logger.warning("Blast rejected: orchestrator is shutting down")
            return False
        self._spawn(self.blast(environment, template), "blast")
        return True

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting work and wait for in-flight deliveries.

        Args:
            timeout: Seconds to wait before giving up on stragglers
        """
        self._closing = True
        if not self._tasks:
            return

        logger.info("Draining in-flight deliveries", extra={"pending": len(self._tasks)})
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning(
                "Deliveries still running after drain timeout",
                extra={"pending": len(still_running)},
            )

    def _spawn(self, coro, kind: str) -> None:
        task = asyncio.create_task(self._run(coro, kind))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, coro, kind: str) -> None:
        try:
            await coro
        except GatewayError as e:
            logger.error(f"Background {kind} failed: {e}", extra={"error_type": type(e).__name__})
        except Exception as e:
            logger.error(f"Unexpected error in background {kind}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _deliver(
        self,
        credential: str,
        notification: Notification,
        environment: Environment,
        ip: Optional[str] = None,
    ) -> DeliveryOutcome:
        """One APNS exchange, classified into an outcome."""
        outcome = DeliveryOutcome(
            device_token=notification.device_token,
            status=DeliveryStatus.DELIVERED,
            environment=environment,
            ip=ip,
        )

        start_time = time.time()
        try:
            await self._client.deliver(self.identity, credential, notification)
        except UnregisteredError as e:
            outcome.status = DeliveryStatus.UNREGISTERED
            outcome.error = str(e)
            outcome.error_reason = e.reason
            outcome.status_code = e.status_code
        except DeliveryError as e:
            outcome.status = DeliveryStatus.FAILED
            outcome.error = str(e)
            outcome.error_reason = e.reason
            outcome.status_code = e.status_code
            if e.reason in APNS_PROVIDER_TOKEN_REASONS:
                logger.warning(
                    "APNS refused the provider token; it will be re-signed on the next send",
                    extra={"reason": e.reason, "status_code": e.status_code},
                )
                self._issuer.invalidate()
        except Exception as e:
            logger.error(f"APNS unexpected error: {e}", exc_info=True)
            outcome.status = DeliveryStatus.FAILED
            outcome.error = f"Unexpected error: {e}"

        duration = time.time() - start_time
        outcome.duration_ms = duration * 1000
        record_delivery(environment.value, outcome.status.value, duration)
        return outcome

    def _auth_failure(
        self,
        device_token: str,
        environment: Environment,
        error: AuthError,
        ip: Optional[str] = None,
    ) -> DeliveryOutcome:
        logger.error(
            f"APNS credential unavailable: {error}",
            extra={"error_type": type(error).__name__},
        )
        record_delivery(environment.value, DeliveryStatus.FAILED.value)
        return DeliveryOutcome(
            device_token=device_token,
            status=DeliveryStatus.FAILED,
            environment=environment,
            ip=ip,
            error=str(error),
        )

    def _log_outcome(self, outcome: DeliveryOutcome) -> None:
        extra = {
            "environment": outcome.environment.value,
            "device_token": mask_token(outcome.device_token),
            "status": outcome.status.value,
            "duration_ms": round(outcome.duration_ms, 2),
        }
        if outcome.delivered:
            logger.info("Push delivered", extra=extra)
        elif outcome.status == DeliveryStatus.UNREGISTERED:
            logger.warning("Push target is unregistered", extra={**extra, "reason": outcome.error_reason})
        else:
            logger.warning(
                f"Push failed: {outcome.error}",
                extra={**extra, "reason": outcome.error_reason, "status_code": outcome.status_code},
            )
