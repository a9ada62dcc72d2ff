"""
FastAPI application entry point for the APNS gateway

Initializes the FastAPI app, registers routers, and wires the token registry
and delivery orchestrator into the application lifespan.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from apns_gateway.core.config import settings
from apns_gateway.core.database import engine, Base
from apns_gateway.core.errors import ArgumentError, StorageError
from apns_gateway.core.logging_config import setup_logging
from apns_gateway.core.metrics import init_metrics, get_metrics, get_content_type
from apns_gateway.middleware.logging_middleware import RequestLoggingMiddleware
from apns_gateway.api.v1.tokens import router as tokens_router
from apns_gateway.api.v1.push import router as push_router
from apns_gateway.models import KeyValueEntry  # noqa: F401  (registers the table)
from apns_gateway.services.push.apns_client import APNSClient
from apns_gateway.services.push.jwt_issuer import JWTIssuer
from apns_gateway.services.push.models import GatewayIdentity
from apns_gateway.services.push.orchestrator import DeliveryOrchestrator
from apns_gateway.services.registry.token_registry import TokenRegistry

# Application version
APP_VERSION = "1.0.0"

# Seconds to wait for in-flight deliveries on shutdown
SHUTDOWN_DRAIN_TIMEOUT = 30.0

# Initialize structured JSON logging
setup_logging(app_version=APP_VERSION)
logger = logging.getLogger(__name__)

# Initialize Prometheus metrics
init_metrics(version=APP_VERSION)


def load_identity() -> GatewayIdentity:
    """
    Build the gateway identity from settings.

    Raises:
        FileNotFoundError: Key file is missing
        ValidationError: Team id, key id or topic are malformed
    """
    return GatewayIdentity.from_key_file(
        key_file=settings.APNS_KEY_FILE,
        team_id=settings.APNS_TEAM_ID,
        key_id=settings.APNS_KEY_ID,
        topic=settings.APNS_BUNDLE_ID,
        use_sandbox=settings.APNS_USE_SANDBOX,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.

    - Startup: creates database tables, loads the APNS identity and starts
      the delivery orchestrator
    - Shutdown: drains queued deliveries
    """
    logger.info(
        "Application starting",
        extra={
            "event_type": "app_startup",
            "version": APP_VERSION,
            "log_level": settings.LOG_LEVEL,
            "debug_mode": settings.DEBUG,
        }
    )

    Base.metadata.create_all(bind=engine)
    logger.info(
        "Database initialized",
        extra={"event_type": "database_init", "status": "success"}
    )

    registry = TokenRegistry()
    app.state.registry = registry
    app.state.orchestrator = None

    if settings.apns_ready:
        try:
            identity = load_identity()
        except (FileNotFoundError, ValidationError) as e:
            logger.error(
                f"APNS identity could not be loaded: {e}",
                extra={"event_type": "apns_init_error", "error": str(e)}
            )
        else:
            client = APNSClient(
                ca_bundle=settings.APNS_CA_BUNDLE,
                poll_interval=settings.APNS_POLL_INTERVAL_SECONDS,
                max_poll_rounds=settings.APNS_MAX_POLL_ROUNDS,
            )
            app.state.orchestrator = DeliveryOrchestrator(
                identity=identity,
                issuer=JWTIssuer(),
                client=client,
                registry=registry,
            )
            logger.info(
                "APNS delivery enabled",
                extra={
                    "event_type": "apns_init",
                    "topic": identity.topic,
                    "default_environment": identity.default_environment.value,
                }
            )
    else:
        logger.warning(
            "APNS not configured; /push and /blast are disabled",
            extra={"event_type": "apns_not_configured"}
        )

    yield

    orchestrator = app.state.orchestrator
    if orchestrator is not None:
        await orchestrator.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
        logger.info(
            "Delivery orchestrator drained",
            extra={"event_type": "orchestrator_shutdown"}
        )

    logger.info(
        "Application shutdown complete",
        extra={"event_type": "app_shutdown_complete", "version": APP_VERSION}
    )


# Create FastAPI app
app = FastAPI(
    title="APNS Gateway API",
    description="Device token registry and Apple Push Notification gateway",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


@app.exception_handler(ArgumentError)
async def argument_error_handler(request: Request, exc: ArgumentError):
    """Malformed input that passed schema validation."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """Token registry read/write failure."""
    logger.error(
        f"Registry storage error: {exc}",
        extra={"event_type": "storage_error", "path": request.url.path}
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Token registry unavailable"},
    )


# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

app.include_router(tokens_router, prefix=settings.API_V1_PREFIX)
app.include_router(push_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint - API status check"""
    return {
        "name": "APNS Gateway API",
        "version": APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint (no authentication required)"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "apns_configured": orchestrator is not None,
        "default_environment": (
            orchestrator.identity.default_environment.value if orchestrator else None
        ),
        "pending_deliveries": orchestrator.pending if orchestrator else 0,
    }


@app.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint

    Returns Prometheus-compatible metrics for scraping.
    """
    return Response(
        content=get_metrics(),
        media_type=get_content_type()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
