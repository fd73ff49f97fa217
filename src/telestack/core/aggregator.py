"""
Business metrics aggregation.

Derives gauge-style statistics from a freshly fetched product collection in a
single pass. Nothing is carried over between passes: the result depends only
on the collection given to the call.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Mapping, Optional

import structlog

if TYPE_CHECKING:
    from .metrics import MetricsRegistry

logger = structlog.get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_HIGH_VALUE_THRESHOLD = 1000.0


@dataclass(frozen=True)
class AggregateStats:
    """Summary statistics for one product collection."""

    total_count: int
    per_category_count: Mapping[str, int] = field(default_factory=dict)
    per_category_average_price: Mapping[str, float] = field(default_factory=dict)
    low_stock_count: int = 0
    out_of_stock_count: int = 0
    high_value_count: int = 0
    total_inventory_value: float = 0.0
    average_price: float = 0.0

    @classmethod
    def empty(cls) -> "AggregateStats":
        return cls(total_count=0)


def _field(record: Any, name: str, default: Any) -> Any:
    if isinstance(record, Mapping):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def compute_stats(
    records: Iterable[Any],
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    high_value_threshold: float = DEFAULT_HIGH_VALUE_THRESHOLD,
    on_record: Optional[Callable[[str, int, float], None]] = None,
) -> AggregateStats:
    """
    Aggregate a collection of products in one pass.

    Records may be objects or mappings exposing price, stock and category.
    Out-of-stock (stock == 0) and low-stock (0 < stock < threshold) are
    disjoint buckets. An empty collection yields zeroes, never an error.

    Args:
        records: Iterable consumed exactly once
        low_stock_threshold: Stock strictly below this counts as low
        high_value_threshold: Price strictly above this counts as high value
        on_record: Called with (category, stock, price) for every record
    """
    total_count = 0
    low_stock_count = 0
    out_of_stock_count = 0
    high_value_count = 0
    total_price = 0.0
    inventory_value = 0.0
    category_counts: Dict[str, int] = {}
    category_prices: Dict[str, float] = {}

    for record in records:
        price = float(_field(record, "price", 0.0))
        stock = int(_field(record, "stock", 0))
        category = str(_field(record, "category", ""))

        total_count += 1
        category_counts[category] = category_counts.get(category, 0) + 1
        category_prices[category] = category_prices.get(category, 0.0) + price

        if stock == 0:
            out_of_stock_count += 1
        elif stock < low_stock_threshold:
            low_stock_count += 1

        if price > high_value_threshold:
            high_value_count += 1

        total_price += price
        inventory_value += price * stock

        if on_record is not None:
            on_record(category, stock, price)

    return AggregateStats(
        total_count=total_count,
        per_category_count=category_counts,
        per_category_average_price={
            category: category_prices[category] / count
            for category, count in category_counts.items()
        },
        low_stock_count=low_stock_count,
        out_of_stock_count=out_of_stock_count,
        high_value_count=high_value_count,
        total_inventory_value=inventory_value,
        average_price=total_price / total_count if total_count > 0 else 0.0,
    )


class BusinessMetricsAggregator:
    """
    Publishes aggregate product statistics to a metrics registry.

    Each call recomputes the full state and overwrites the previous one in a
    single swap, so concurrent callers follow last-writer-wins.
    """

    def __init__(
        self,
        registry: Optional["MetricsRegistry"] = None,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
        high_value_threshold: float = DEFAULT_HIGH_VALUE_THRESHOLD,
    ) -> None:
        self.registry = registry
        self.low_stock_threshold = low_stock_threshold
        self.high_value_threshold = high_value_threshold

    def aggregate(self, records: Iterable[Any]) -> AggregateStats:
        """Compute statistics for ``records`` and publish them."""
        stats = compute_stats(
            records,
            low_stock_threshold=self.low_stock_threshold,
            high_value_threshold=self.high_value_threshold,
            on_record=self.registry.observe_product if self.registry is not None else None,
        )

        if self.registry is not None:
            self.registry.publish_business_stats(stats)

        logger.debug(
            "Business metrics updated",
            total_count=stats.total_count,
            low_stock_count=stats.low_stock_count,
            out_of_stock_count=stats.out_of_stock_count,
            categories=len(stats.per_category_count),
        )
        return stats
