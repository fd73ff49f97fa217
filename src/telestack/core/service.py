"""
Product service layer.

Validates input, delegates storage to the repository and emits business
events and counters once an operation has succeeded.
"""

from datetime import datetime, timezone
from typing import List, Optional

from ..config import MetricsSettings
from ..models.product import Product, ProductCreate, ProductUpdate
from .correlation import RequestContext
from .events import EventLogger
from .exceptions import ValidationError
from .metrics import MetricsRegistry
from .repository import ProductRepository

DEFAULT_TOP_LIMIT = 5
MAX_TOP_LIMIT = 100


def validate_product_id(product_id: int) -> None:
    if product_id <= 0:
        raise ValidationError("Invalid product ID", details={"product_id": product_id})


def validate_product(data: ProductCreate) -> None:
    """Check the domain rules for a product payload."""
    if not data.name.strip():
        raise ValidationError("Product name is required", details={"field": "name"})
    if data.price <= 0:
        raise ValidationError("Product price must be greater than 0", details={"field": "price"})
    if data.stock < 0:
        raise ValidationError("Product stock cannot be negative", details={"field": "stock"})


class ProductService:
    """
    Product use cases.

    Features:
    - Domain validation before any storage access
    - Business events for the product lifecycle
    - Low-stock alerts on create, high-value access events on read
    """

    def __init__(
        self,
        repository: ProductRepository,
        events: EventLogger,
        registry: MetricsRegistry,
        settings: Optional[MetricsSettings] = None,
    ) -> None:
        self.repository = repository
        self.events = events
        self.registry = registry
        self.settings = settings or MetricsSettings()

    def list_products(self, ctx: RequestContext) -> List[Product]:
        return self.repository.list_all(ctx)

    def get_product(self, ctx: RequestContext, product_id: int) -> Product:
        validate_product_id(product_id)
        product = self.repository.get(ctx, product_id)

        if product.price > self.settings.high_value_threshold:
            self.events.high_value_access(ctx, product, self.settings.high_value_threshold)

        return product

    def create_product(self, ctx: RequestContext, data: ProductCreate) -> Product:
        validate_product(data)

        now = datetime.now(timezone.utc)
        product = Product(
            id=self.repository.next_id(),
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        created = self.repository.create(ctx, product)

        self.registry.record_product_created()
        self.events.product_created(ctx, created)
        if created.stock < self.settings.low_stock_threshold:
            self.events.low_stock_alert(ctx, created, self.settings.low_stock_threshold)

        return created

    def update_product(self, ctx: RequestContext, product_id: int, data: ProductUpdate) -> Product:
        validate_product_id(product_id)
        validate_product(data)

        existing = self.repository.get(ctx, product_id)
        updated = self.repository.update(
            ctx,
            existing.model_copy(update={**data.model_dump(), "updated_at": datetime.now(timezone.utc)}),
        )

        self.registry.record_product_updated()
        self.events.product_updated(ctx, existing, updated)
        return updated

    def delete_product(self, ctx: RequestContext, product_id: int) -> Product:
        validate_product_id(product_id)
        deleted = self.repository.delete(ctx, product_id)

        self.registry.record_product_deleted()
        self.events.product_deleted(ctx, deleted)
        return deleted

    def list_low_stock(self, ctx: RequestContext, max_stock: Optional[int] = None) -> List[Product]:
        """Products below ``max_stock``, defaulting to the configured low-stock threshold."""
        threshold = self.settings.low_stock_threshold if max_stock is None else max_stock
        if threshold < 0:
            raise ValidationError("max_stock cannot be negative", details={"max_stock": threshold})
        return self.repository.list_low_stock(ctx, threshold)

    def list_by_category(self, ctx: RequestContext, category: str) -> List[Product]:
        if not category.strip():
            raise ValidationError("Category is required", details={"field": "category"})
        return self.repository.list_by_category(ctx, category)

    def top_most_expensive(self, ctx: RequestContext, limit: int = DEFAULT_TOP_LIMIT) -> List[Product]:
        if limit <= 0 or limit > MAX_TOP_LIMIT:
            raise ValidationError(
                f"limit must be between 1 and {MAX_TOP_LIMIT}",
                details={"limit": limit},
            )
        return self.repository.top_most_expensive(ctx, limit)
