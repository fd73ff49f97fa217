"""
Shared FastAPI dependencies.
"""

from fastapi import Request

from ..core.correlation import RequestContext
from ..core.middleware import TELEMETRY_STATE_KEY
from ..core.service import ProductService


def get_request_context(request: Request) -> RequestContext:
    """
    Request context built by the telemetry middleware.

    Falls back to a fresh context when the middleware is not installed.
    """
    ctx = getattr(request.state, TELEMETRY_STATE_KEY, None)
    if ctx is None:
        ctx = RequestContext.from_headers(request.headers)
        setattr(request.state, TELEMETRY_STATE_KEY, ctx)
    return ctx


def get_product_service(request: Request) -> ProductService:
    return request.app.state.product_service
