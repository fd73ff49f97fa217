"""
Business event logging.

Events are assembled from a product and the request context, masked field by
field and emitted as a single structured record marked with
``business_event=True`` so log queries can select them.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from ..models.events import BusinessEvent
from ..models.product import Product
from .correlation import RequestContext
from .masking import Masker

logger = structlog.get_logger(__name__)

PRODUCT_EVENT = "product"
INVENTORY_EVENT = "inventory"


class EventLogger:
    """
    Emits masked business events through a request logger.

    Features:
    - Flat, masked field set with a fixed business_event marker
    - Factories for the product lifecycle and inventory alerts
    - Never raises: the business operation already succeeded
    """

    def __init__(self, masker: Masker) -> None:
        self.masker = masker
        self._sink_failed = False

    def log_event(self, request_logger: Any, event: BusinessEvent) -> None:
        """Mask and emit one business event."""
        self._emit(request_logger, lambda: event)

    def _emit(self, request_logger: Any, build: Callable[[], BusinessEvent]) -> None:
        """Build, mask and emit an event; any failure along the way is swallowed."""
        event_name = None
        try:
            event = build()
            event_name = event.event_name
            masked = self.masker.mask_fields(event.to_fields())
            request_logger.info("Business event occurred", **masked)
        except Exception as e:
            if not self._sink_failed:
                self._sink_failed = True
                logger.error(
                    "Failed to log business event",
                    event_name=event_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def product_created(self, ctx: RequestContext, product: Product, user_id: Optional[str] = None) -> None:
        self._emit(ctx.logger, lambda: self._product_event(
            ctx,
            product,
            "product_created",
            user_id=user_id,
            metadata={
                "description": product.description,
                "created_at": product.created_at.isoformat(),
            },
        ))

    def product_updated(
        self,
        ctx: RequestContext,
        old: Product,
        new: Product,
        user_id: Optional[str] = None,
    ) -> None:
        """Update events carry both snapshots for audit diffing."""
        self._emit(ctx.logger, lambda: self._product_event(
            ctx,
            new,
            "product_updated",
            user_id=user_id,
            old_value=old.snapshot(),
            new_value=new.snapshot(),
            metadata={"updated_at": new.updated_at.isoformat()},
        ))

    def product_deleted(self, ctx: RequestContext, product: Product, user_id: Optional[str] = None) -> None:
        self._emit(ctx.logger, lambda: self._product_event(
            ctx,
            product,
            "product_deleted",
            user_id=user_id,
            metadata={"deleted_at": datetime.now(timezone.utc).isoformat()},
        ))

    def low_stock_alert(self, ctx: RequestContext, product: Product, threshold: int) -> None:
        self._emit(ctx.logger, lambda: BusinessEvent(
            event_type=INVENTORY_EVENT,
            event_name="low_stock_alert",
            correlation_id=ctx.correlation_id,
            request_id=ctx.request_id,
            entity_id=product.id,
            entity_name=product.name,
            category=product.category,
            stock=product.stock,
            metadata={"threshold": threshold, "alert_type": "low_stock"},
        ))

    def high_value_access(
        self,
        ctx: RequestContext,
        product: Product,
        threshold: float,
        user_id: Optional[str] = None,
    ) -> None:
        self._emit(ctx.logger, lambda: BusinessEvent(
            event_type=PRODUCT_EVENT,
            event_name="high_value_product_accessed",
            correlation_id=ctx.correlation_id,
            request_id=ctx.request_id,
            user_id=user_id,
            entity_id=product.id,
            entity_name=product.name,
            category=product.category,
            price=product.price,
            metadata={"value_threshold": threshold, "access_type": "view"},
        ))

    @staticmethod
    def _product_event(
        ctx: RequestContext,
        product: Product,
        event_name: str,
        **extra: Any,
    ) -> BusinessEvent:
        return BusinessEvent(
            event_type=PRODUCT_EVENT,
            event_name=event_name,
            correlation_id=ctx.correlation_id,
            request_id=ctx.request_id,
            entity_id=product.id,
            entity_name=product.name,
            category=product.category,
            price=product.price,
            stock=product.stock,
            **extra,
        )
