"""
Request telemetry middleware.

Wraps every request with correlation ids, before/after resource snapshots,
masked request logging and Prometheus request metrics. Telemetry failures
are logged and never change the response.
"""

from typing import Any, Dict

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from .correlation import RequestContext
from .masking import Masker
from .metrics import MetricsRegistry
from .snapshot import MetricsSnapshot, diff, log_performance

logger = structlog.get_logger(__name__)

TELEMETRY_STATE_KEY = "telemetry"


def _content_length(headers: Any) -> int:
    try:
        return max(int(headers.get("content-length") or 0), 0)
    except ValueError:
        return 0


def _endpoint_label(request: Request) -> str:
    """Route template when the request matched one, raw path otherwise."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


class TelemetryMiddleware(BaseHTTPMiddleware):
    """
    Per-request telemetry pipeline.

    Features:
    - Request and correlation ids on request.state and on every response
    - Masked incoming/completed request records
    - Snapshot delta logged as a performance record
    - HTTP and system metrics recorded on the app's registry
    """

    def __init__(
        self,
        app: ASGIApp,
        masker: Masker,
        registry: MetricsRegistry,
    ) -> None:
        super().__init__(app)
        self.masker = masker
        self.registry = registry

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        ctx = RequestContext.from_headers(request.headers)
        setattr(request.state, TELEMETRY_STATE_KEY, ctx)

        before = MetricsSnapshot.capture()
        request_size = _content_length(request.headers)

        ctx.logger.info(
            "Incoming HTTP request",
            **self.masker.mask_fields({
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query,
                "user_agent": request.headers.get("user-agent", ""),
                "ip": request.client.host if request.client else "",
            }),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            ctx.logger.error(
                "Unhandled exception during request",
                error=str(e),
                error_type=type(e).__name__,
                path=request.url.path,
                method=request.method,
                exc_info=True,
            )
            response = JSONResponse(
                status_code=500,
                content={
                    "error": "internal_server_error",
                    "message": "An unexpected error occurred",
                },
            )

        response.headers.update(ctx.response_headers())

        self._record(ctx, request, response, before, request_size)
        return response

    def _record(
        self,
        ctx: RequestContext,
        request: Request,
        response: Response,
        before: MetricsSnapshot,
        request_size: int,
    ) -> None:
        try:
            after = MetricsSnapshot.capture()
            delta = diff(before, after)
            endpoint = _endpoint_label(request)
            response_size = _content_length(response.headers)

            log_performance(
                ctx.logger,
                delta,
                after,
                masker=self.masker,
                method=request.method,
                endpoint=endpoint,
                status_code=response.status_code,
                request_size=request_size,
                response_size=response_size,
            )
            self.registry.record_request(
                request.method,
                endpoint,
                response.status_code,
                delta.duration_seconds,
                request_size=request_size,
                response_size=response_size,
            )
            self.registry.update_system_metrics(after)

            fields: Dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": delta.duration_ms,
                "response_size": response_size,
            }
            ctx.logger.info("HTTP request completed", **self.masker.mask_fields(fields))
        except Exception as e:
            logger.error(
                "Failed to record request telemetry",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
