"""
Prometheus Metrics Registry

Provides Prometheus-compatible metrics for:
- HTTP request counts and latencies
- APNS delivery outcomes per environment
- JWT issuance
- Blast fan-out runs
"""
import logging
from prometheus_client import (
    Counter, Histogram, Info,
    CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)

logger = logging.getLogger(__name__)

# Create a custom registry to avoid conflicts with default registry
REGISTRY = CollectorRegistry()

app_info = Info(
    'app',
    'Application information',
    registry=REGISTRY
)

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status_code'],
    registry=REGISTRY
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY
)

# ============================================================================
# APNS Delivery Metrics
# ============================================================================

apns_deliveries_total = Counter(
    'apns_deliveries_total',
    'Total APNS delivery attempts by outcome',
    ['environment', 'status'],
    registry=REGISTRY
)

apns_delivery_duration_seconds = Histogram(
    'apns_delivery_duration_seconds',
    'APNS request/response exchange duration in seconds',
    ['environment'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
    registry=REGISTRY
)

apns_jwt_issued_total = Counter(
    'apns_jwt_issued_total',
    'Total provider JWTs signed (cache misses)',
    registry=REGISTRY
)

apns_blasts_total = Counter(
    'apns_blasts_total',
    'Total blast fan-out runs',
    ['environment'],
    registry=REGISTRY
)


def init_metrics(version: str = "1.0.0"):
    """
    Initialize metrics with application info.

    Args:
        version: Application version string
    """
    app_info.info({
        'version': version,
        'name': 'apns-gateway'
    })

    logger.info("Prometheus metrics initialized", extra={"version": version})


def record_request_metrics(
    method: str,
    path: str,
    status_code: int,
    response_time_seconds: float
):
    """
    Record HTTP request metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status_code: Response status code
        response_time_seconds: Response time in seconds
    """
    http_requests_total.labels(
        method=method,
        path=path,
        status_code=str(status_code)
    ).inc()

    http_request_duration_seconds.labels(
        method=method,
        path=path
    ).observe(response_time_seconds)


def record_delivery(environment: str, status: str, duration_seconds: float = 0.0):
    """
    Record a single APNS delivery outcome.

    Args:
        environment: sandbox or production
        status: delivered, unregistered or failed
        duration_seconds: Exchange duration
    """
    apns_deliveries_total.labels(environment=environment, status=status).inc()
    if duration_seconds > 0:
        apns_delivery_duration_seconds.labels(environment=environment).observe(duration_seconds)


def record_jwt_issued():
    """Record a freshly signed provider token."""
    apns_jwt_issued_total.inc()


def record_blast(environment: str):
    """Record a blast run."""
    apns_blasts_total.labels(environment=environment).inc()


def get_metrics() -> bytes:
    """Render all metrics in Prometheus text format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type for the Prometheus text format."""
    return CONTENT_TYPE_LATEST
