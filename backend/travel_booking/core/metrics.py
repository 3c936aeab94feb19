"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_commits = Counter(
    'booking_commits_total',
    'Booking commit attempts',
    ['status']  # success, insufficient_capacity, conflict, duplicate, error
)

booking_commit_latency = Histogram(
    'booking_commit_latency_seconds',
    'Booking commit latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_retries = Counter(
    'booking_version_retries_total',
    'Slot reservation retries caused by package version conflicts'
)

quote_requests = Counter(
    'quote_requests_total',
    'Price quotes computed',
    ['discounted']  # yes, no
)

booking_status_changes = Counter(
    'booking_status_changes_total',
    'Staff booking status transitions',
    ['status']
)

# Auth metrics
login_attempts = Counter(
    'login_attempts_total',
    'Login attempts by outcome',
    ['outcome']  # success, invalid_credentials, account_banned, locked
)

login_lockouts = Counter(
    'login_lockouts_total',
    'Lockouts applied by the login guard',
    ['kind']  # short, long
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

# Collaborators
email_failures = Counter(
    'email_failures_total',
    'Outbound emails that failed or timed out',
    ['template']
)

payment_gateway_errors = Counter(
    'payment_gateway_errors_total',
    'Checkout session creation failures'
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis errors swallowed by advisory stores',
    ['store']
)


def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint body."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_commit(status: str):
    """Record booking commit outcome. Status: success, insufficient_capacity, conflict, duplicate, error"""
    booking_commits.labels(status=status).inc()


def record_login_attempt(outcome: str):
    login_attempts.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
