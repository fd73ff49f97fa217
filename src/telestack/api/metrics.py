"""
Prometheus metrics endpoint.

Exposes the application's metrics registry in Prometheus text format.
"""

import structlog
from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="""
    Prometheus metrics endpoint in standard text format.

    **Key Metrics:**
    - http_requests_total{method,endpoint,status_code} - Requests served
    - http_request_duration_seconds{method,endpoint} - Request latency histogram
    - products_total, products_low_stock_total, products_out_of_stock_total - Catalogue gauges
    - products_by_category_total{category} - Products per category
    - database_operations_total{operation,status} - Data access operations
    - memory_alloc_bytes, live_tasks_total - Runtime gauges
    """,
)
async def get_metrics(request: Request) -> Response:
    """Render the registry attached to the application."""
    registry = getattr(request.app.state, "metrics", None)

    if registry is None:
        logger.warning("Metrics registry not initialized")
        return Response(
            content="# Metrics registry not initialized\n",
            media_type=CONTENT_TYPE_LATEST,
        )

    try:
        metrics_data = registry.render()
    except Exception as e:
        logger.error(
            "Failed to generate metrics",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )

        error_metrics = f"""# HELP telestack_metrics_error Metrics generation errors
# TYPE telestack_metrics_error counter
telestack_metrics_error{{error="{type(e).__name__}"}} 1
"""
        return Response(
            content=error_metrics,
            media_type=CONTENT_TYPE_LATEST,
        )

    logger.debug("Metrics scraped successfully", size_bytes=len(metrics_data))
    return Response(
        content=metrics_data,
        media_type=CONTENT_TYPE_LATEST,
    )
