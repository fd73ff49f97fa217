"""
Health check endpoint.

- /healthz: Liveness probe with memory and live-task checks
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request, Response, status

from ..config import MetricsSettings
from ..core.snapshot import MetricsSnapshot

logger = structlog.get_logger(__name__)

router = APIRouter()


def run_checks(snapshot: MetricsSnapshot, settings: MetricsSettings) -> Dict[str, Dict[str, Any]]:
    """
    Evaluate liveness checks against a resource snapshot.

    The memory check reads current usage, never the peak, so the probe
    recovers once memory is released.
    """
    memory_bytes = snapshot.allocated_bytes
    return {
        "memory": {
            "healthy": memory_bytes < settings.memory_limit_bytes,
            "value_bytes": memory_bytes,
            "limit_bytes": settings.memory_limit_bytes,
        },
        "tasks": {
            "healthy": snapshot.live_tasks < settings.task_limit,
            "value": snapshot.live_tasks,
            "limit": settings.task_limit,
        },
    }


@router.get(
    "/healthz",
    summary="Liveness probe",
    description="""
    Liveness probe endpoint.

    Returns 200 while memory use and the live asyncio task count stay under
    their configured limits, 503 otherwise.
    """,
)
async def liveness_check(request: Request, response: Response) -> Dict[str, Any]:
    settings = request.app.state.settings
    checks = run_checks(MetricsSnapshot.capture(), settings.metrics)
    failed = [name for name, check in checks.items() if not check["healthy"]]

    if failed:
        logger.warning("Liveness check failed", failed_checks=failed)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "unhealthy" if failed else "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.service_name,
        "version": request.app.version,
        "checks": checks,
    }
