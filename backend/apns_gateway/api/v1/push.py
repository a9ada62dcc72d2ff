"""
Push API endpoints

Endpoints:
- POST /api/v1/push - Queue one notification to one device token
- POST /api/v1/blast - Queue a notification to every send-list entry

Both answer 202 immediately; per-target outcomes are only logged.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from apns_gateway.api.v1.auth import require_basic_auth
from apns_gateway.api.v1.dependencies import get_orchestrator
from apns_gateway.core.logging_config import mask_token
from apns_gateway.schemas.push import BlastRequest, PushRequest, QueuedResponse
from apns_gateway.services.push.orchestrator import DeliveryOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["push"],
    dependencies=[Depends(require_basic_auth)],
)


def _shutting_down() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Gateway is shutting down",
    )


@router.post("/push", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def push_notification(
    request_body: PushRequest,
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    """
    Queue a single push notification

    Returns 503 when APNS is not configured or the gateway is stopping.
    """
    notification = request_body.to_notification()

    if not orchestrator.enqueue_send(notification):
        raise _shutting_down()

    logger.info(
        "Push queued",
        extra={
            "device_token": mask_token(notification.device_token),
            "environment": (notification.environment or orchestrator.identity.default_environment).value,
        }
    )
    return QueuedResponse()


@router.post("/blast", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def blast_notification(
    request_body: BlastRequest,
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    """
    Queue a blast to every send-list entry of one environment

    Returns 503 when APNS is not configured or the gateway is stopping.
    """
    template = request_body.to_template()
    environment = request_body.server_type or orchestrator.identity.default_environment

    if not orchestrator.enqueue_blast(template, environment):
        raise _shutting_down()

    logger.info("Blast queued", extra={"environment": environment.value})
    return QueuedResponse()
