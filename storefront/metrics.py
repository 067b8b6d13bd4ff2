"""
Prometheus metrics for the storefront service.

Tracks request performance, authentication outcomes and cart operations.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Request metrics
http_requests_total = Counter(
    "storefront_http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "storefront_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Authentication metrics
auth_signin_total = Counter(
    "storefront_auth_signin_total", "Sign-in attempts by strategy", ["strategy", "status"]
)

auth_token_verification_total = Counter(
    "storefront_auth_token_verification_total",
    "Bearer token verifications by outcome",
    ["outcome"],
)

auth_authorization_denied_total = Counter(
    "storefront_auth_authorization_denied_total",
    "Requests rejected by the role gate",
    ["required_role"],
)

# Cart metrics
cart_operations_total = Counter(
    "storefront_cart_operations_total", "Cart operations by outcome", ["operation", "outcome"]
)


def track_request_metrics(method: str, endpoint: str, status_code: int, duration: float):
    """Track HTTP request metrics."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def track_signin(strategy: str, success: bool):
    """Track sign-in metrics."""
    status = "success" if success else "failure"
    auth_signin_total.labels(strategy=strategy, status=status).inc()


def track_token_verification(outcome: str):
    """Track bearer token verification, labelled 'valid' or the rejection reason."""
    auth_token_verification_total.labels(outcome=outcome).inc()


def track_authorization_denied(required_role: str):
    auth_authorization_denied_total.labels(required_role=required_role).inc()


def track_cart_operation(operation: str, outcome: str):
    cart_operations_total.labels(operation=operation, outcome=outcome).inc()


async def metrics_endpoint():
    """
    Prometheus metrics endpoint.

    Returns:
        Response with Prometheus metrics in text format
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
