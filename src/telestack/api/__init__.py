"""
API endpoints package.

Contains FastAPI routers for all service endpoints:
- /v1/products - Product catalogue
- /metrics - Prometheus metrics
- /healthz - Liveness probe
"""
from .healthz import router as healthz_router
from .metrics import router as metrics_router
from .products import router as products_router

__all__ = ["healthz_router", "metrics_router", "products_router"]
