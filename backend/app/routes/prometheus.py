"""
Prometheus metrics endpoint for monitoring infrastructure.

This is a PUBLIC endpoint (no authentication required) following
standard Prometheus practices. It exposes the service operation, lock,
reservation and bulk-apply metrics from the custom registry.
"""

from fastapi import APIRouter, Request, Response
from prometheus_client import Counter

from app.monitoring.prometheus_metrics import REGISTRY, PrometheusMetrics, prometheus_metrics

router = APIRouter()

_scrape_counter = Counter(
    "classbooking_prometheus_scrapes_total",
    "Total number of Prometheus metrics scrapes",
    registry=REGISTRY,
)


@router.get("/metrics", include_in_schema=False, response_class=Response, response_model=None)
async def get_prometheus_metrics(request: Request) -> Response:
    """
    Expose Prometheus metrics for scraping.

    Pass ?refresh=1 to bypass the short-lived payload cache.

    Returns:
        Response with Prometheus exposition format (text/plain)
    """
    _scrape_counter.inc()
    if request.query_params.get("refresh", "").lower() in {"1", "true", "yes"}:
        PrometheusMetrics._invalidate_cache()
    metrics_data = prometheus_metrics.get_metrics()

    return Response(
        content=metrics_data,
        media_type=prometheus_metrics.get_content_type(),
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )
