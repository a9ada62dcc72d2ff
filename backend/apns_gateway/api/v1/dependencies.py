"""Request-scoped access to the services created in the application lifespan"""
from typing import Optional

from fastapi import HTTPException, Request, status

from apns_gateway.services.push.constants import Environment
from apns_gateway.services.push.orchestrator import DeliveryOrchestrator
from apns_gateway.services.registry.token_registry import TokenRegistry


def get_registry(request: Request) -> TokenRegistry:
    """Token registry shared by all requests."""
    return request.app.state.registry


def get_orchestrator(request: Request) -> DeliveryOrchestrator:
    """
    Delivery orchestrator, or 503 when APNS is not configured.

    Raises:
        HTTPException: 503 if no identity was loaded at startup
    """
    orchestrator: Optional[DeliveryOrchestrator] = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="APNS is not configured",
        )
    return orchestrator


def get_default_environment(request: Request) -> Environment:
    """Environment used when a request omits server_type."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is not None:
        return orchestrator.identity.default_environment
    return Environment.SANDBOX
