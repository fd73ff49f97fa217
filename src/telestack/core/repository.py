"""
In-memory product storage.

Every operation is timed and reported as a database operation: a
Prometheus counter and histogram, a slow-query check, and started/completed
records on the request logger.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ..config import MetricsSettings
from ..models.product import Product
from .aggregator import BusinessMetricsAggregator
from .correlation import RequestContext
from .exceptions import ConflictError, NotFoundError, TelestackException
from .metrics import MetricsRegistry
from .snapshot import log_slow_query


class ProductRepository:
    """
    Thread-safe product store.

    Features:
    - Copies in and copies out, stored products are never shared
    - Unique product names
    - Business metrics refreshed on every full read
    """

    def __init__(
        self,
        registry: MetricsRegistry,
        aggregator: BusinessMetricsAggregator,
        settings: Optional[MetricsSettings] = None,
    ) -> None:
        self.registry = registry
        self.aggregator = aggregator
        self.settings = settings or MetricsSettings()

        self._products: Dict[int, Product] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    @contextmanager
    def _operation(
        self,
        ctx: RequestContext,
        operation: str,
        action: str,
        threshold_seconds: float,
        **fields: Any,
    ) -> Iterator[Dict[str, Any]]:
        """
        Time one operation and report it.

        The yielded dict collects extra fields for the completion record.
        Domain errors are reported with status "error" and re-raised.
        """
        op_logger = ctx.logger.bind(operation=operation, action=action, **fields)
        op_logger.info("Database operation started")

        result: Dict[str, Any] = {}
        start = time.perf_counter()
        try:
            yield result
        except TelestackException as e:
            duration = time.perf_counter() - start
            self.registry.record_db_operation(operation, "error", duration)
            op_logger.warning(
                "Database operation failed",
                duration_ms=int(duration * 1000),
                error=str(e),
            )
            raise

        duration = time.perf_counter() - start
        self.registry.record_db_operation(operation, "success", duration)
        log_slow_query(ctx.logger, operation, duration, threshold_seconds)
        op_logger.info(
            "Database operation completed",
            duration_ms=int(duration * 1000),
            **result,
        )

    def next_id(self) -> int:
        with self._lock:
            product_id = self._next_id
            self._next_id += 1
            return product_id

    def list_all(self, ctx: RequestContext) -> List[Product]:
        """Return every product ordered by id and refresh business metrics."""
        with self._operation(ctx, "GetAllProducts", "SELECT", self.settings.slow_bulk_read_seconds) as result:
            with self._lock:
                products = [p.model_copy() for _, p in sorted(self._products.items())]
            result["record_count"] = len(products)

        self.aggregator.aggregate(products)
        return products

    def get(self, ctx: RequestContext, product_id: int) -> Product:
        with self._operation(
            ctx, "GetProductByID", "SELECT", self.settings.slow_point_read_seconds, product_id=product_id
        ) as result:
            with self._lock:
                product = self._products.get(product_id)
                if product is None:
                    raise NotFoundError(entity_id=product_id)
                result["found"] = True
                return product.model_copy()

    def create(self, ctx: RequestContext, product: Product) -> Product:
        with self._operation(
            ctx,
            "CreateProduct",
            "INSERT",
            self.settings.slow_point_read_seconds,
            product_id=product.id,
            product_name=product.name,
        ):
            with self._lock:
                if product.id in self._products:
                    raise ConflictError(f"Product with id {product.id} already exists")
                self._ensure_unique_name(product.name)
                self._products[product.id] = product.model_copy()
                return product.model_copy()

    def update(self, ctx: RequestContext, product: Product) -> Product:
        """Replace a stored product; id and created_at are kept from the stored copy."""
        with self._operation(
            ctx, "UpdateProduct", "UPDATE", self.settings.slow_point_read_seconds, product_id=product.id
        ):
            with self._lock:
                existing = self._products.get(product.id)
                if existing is None:
                    raise NotFoundError(entity_id=product.id)
                self._ensure_unique_name(product.name, exclude_id=product.id)

                updated = product.model_copy(update={"created_at": existing.created_at})
                self._products[product.id] = updated
                return updated.model_copy()

    def delete(self, ctx: RequestContext, product_id: int) -> Product:
        """Remove a product and return the removed copy."""
        with self._operation(
            ctx, "DeleteProduct", "DELETE", self.settings.slow_point_read_seconds, product_id=product_id
        ):
            with self._lock:
                product = self._products.pop(product_id, None)
                if product is None:
                    raise NotFoundError(entity_id=product_id)
                return product

    def list_low_stock(self, ctx: RequestContext, max_stock: int) -> List[Product]:
        """Products with stock strictly below ``max_stock``."""
        with self._operation(
            ctx, "GetLowStockProducts", "SELECT", self.settings.slow_bulk_read_seconds, max_stock=max_stock
        ) as result:
            with self._lock:
                products = [
                    p.model_copy() for _, p in sorted(self._products.items()) if p.stock < max_stock
                ]
            result["record_count"] = len(products)
            return products

    def list_by_category(self, ctx: RequestContext, category: str) -> List[Product]:
        with self._operation(
            ctx, "GetProductsByCategory", "SELECT", self.settings.slow_bulk_read_seconds, category=category
        ) as result:
            with self._lock:
                products = [
                    p.model_copy() for _, p in sorted(self._products.items()) if p.category == category
                ]
            result["record_count"] = len(products)
            return products

    def top_most_expensive(self, ctx: RequestContext, limit: int) -> List[Product]:
        """Most expensive products first; ties keep id order."""
        with self._operation(
            ctx, "GetTopMostExpensive", "SELECT", self.settings.slow_bulk_read_seconds, limit=limit
        ) as result:
            with self._lock:
                products = [p.model_copy() for _, p in sorted(self._products.items())]
            products.sort(key=lambda p: p.price, reverse=True)
            products = products[:max(limit, 0)]
            result["record_count"] = len(products)
            return products

    def count(self) -> int:
        with self._lock:
            return len(self._products)

    def _ensure_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        for product_id, existing in self._products.items():
            if product_id != exclude_id and existing.name == name:
                raise ConflictError(name=name)
