"""Prometheus metrics configuration"""

from prometheus_client import Counter, Info
from prometheus_fastapi_instrumentator import Instrumentator

from ..config import settings

# Application info
app_info = Info('storefront_interactions', 'Storefront Interaction Service Information')
app_info.info({
    'version': settings.VERSION,
    'service': 'storefront-interactions'
})

# Ingestion metrics
interactions_ingested_total = Counter(
    'interactions_ingested_total',
    'Interaction events merged into a record',
    ['interaction_type', 'outcome']
)

interaction_write_conflicts_total = Counter(
    'interaction_write_conflicts_total',
    'Concurrent writes detected and retried by the record store'
)

purchase_batch_lines_total = Counter(
    'purchase_batch_lines_total',
    'Purchase batch line items by result status',
    ['status']
)

# Recommendation proxy metrics
recommendation_requests_total = Counter(
    'recommendation_requests_total',
    'Recommendation proxy requests by outcome',
    ['outcome']
)

cache_hits_total = Counter(
    'cache_hits_total',
    'Total cache hits',
    ['cache_type']
)

cache_misses_total = Counter(
    'cache_misses_total',
    'Total cache misses',
    ['cache_type']
)


def setup_metrics(app):
    """
    Setup Prometheus metrics for FastAPI app

    Args:
        app: FastAPI application instance
    """
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics"],
        env_var_name="ENABLE_METRICS",
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True
    )

    instrumentator.instrument(app).expose(app, endpoint="/metrics")

    return instrumentator


def record_interaction(interaction_type: str, created: bool):
    """Record a merged interaction event"""
    interactions_ingested_total.labels(
        interaction_type=interaction_type,
        outcome="created" if created else "updated"
    ).inc()


def record_write_conflict():
    """Record a retried concurrent write"""
    interaction_write_conflicts_total.inc()


def record_batch_line(status: str):
    """Record the outcome of one purchase batch line"""
    purchase_batch_lines_total.labels(status=status).inc()


def record_recommendation_request(outcome: str):
    """Record a recommendation proxy outcome (ok, cached, upstream_error, error)"""
    recommendation_requests_total.labels(outcome=outcome).inc()


def increment_cache_hit(cache_type: str = "redis"):
    """Increment cache hit counter"""
    cache_hits_total.labels(cache_type=cache_type).inc()


def increment_cache_miss(cache_type: str = "redis"):
    """Increment cache miss counter"""
    cache_misses_total.labels(cache_type=cache_type).inc()
