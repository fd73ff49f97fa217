"""
Tests for business metrics aggregation.
"""

import threading
from types import SimpleNamespace
from typing import Dict, List, Tuple

import pytest

from telestack.core.aggregator import AggregateStats, BusinessMetricsAggregator, compute_stats
from telestack.core.metrics import MetricsRegistry


def read_business_gauges(registry: MetricsRegistry) -> Tuple[float, Dict[str, float]]:
    """Read products_total and the per-category counts from one scrape."""
    total = 0.0
    by_category: Dict[str, float] = {}
    for family in registry.business_stats.collect():
        if family.name == "products_total":
            total = family.samples[0].value
        elif family.name == "products_by_category_total":
            by_category = {s.labels["category"]: s.value for s in family.samples}
    return total, by_category


class TestComputeStats:
    """Test the pure aggregation pass."""

    def test_empty_collection(self) -> None:
        """Test an empty collection yields zeroes and no division error."""
        stats = compute_stats([])

        assert stats == AggregateStats.empty()
        assert stats.total_count == 0
        assert stats.average_price == 0.0
        assert dict(stats.per_category_count) == {}

    def test_two_record_example(self) -> None:
        """Test out-of-stock and low-stock are disjoint buckets."""
        stats = compute_stats([{"price": 10, "stock": 0}, {"price": 20, "stock": 5}])

        assert stats.total_count == 2
        assert stats.out_of_stock_count == 1
        assert stats.low_stock_count == 1
        assert stats.average_price == pytest.approx(15.0)
        assert stats.total_inventory_value == pytest.approx(100.0)

    def test_categories_and_high_value(self) -> None:
        """Test per-category counts, averages and the high value bucket."""
        records = [
            SimpleNamespace(price=1500.0, stock=3, category="electronics"),
            SimpleNamespace(price=10.0, stock=200, category="electronics"),
            SimpleNamespace(price=5.0, stock=0, category="stationery"),
        ]

        stats = compute_stats(records, low_stock_threshold=10, high_value_threshold=1000.0)

        assert dict(stats.per_category_count) == {"electronics": 2, "stationery": 1}
        assert dict(stats.per_category_average_price) == {
            "electronics": pytest.approx(755.0),
            "stationery": pytest.approx(5.0),
        }
        assert stats.high_value_count == 1
        assert stats.low_stock_count == 1
        assert stats.out_of_stock_count == 1

    def test_thresholds_are_strict(self) -> None:
        """Test values equal to a threshold fall outside its bucket."""
        stats = compute_stats(
            [{"price": 1000.0, "stock": 10}],
            low_stock_threshold=10,
            high_value_threshold=1000.0,
        )

        assert stats.low_stock_count == 0
        assert stats.high_value_count == 0

    def test_input_consumed_once(self) -> None:
        """Test a one-shot iterator is enough."""
        records = iter([{"price": 2.0, "stock": 1}, {"price": 4.0, "stock": 1}])
        seen: List[Tuple[str, int, float]] = []

        stats = compute_stats(records, on_record=lambda *args: seen.append(args))

        assert stats.total_count == 2
        assert seen == [("", 1, 2.0), ("", 1, 4.0)]


class TestBusinessMetricsAggregator:
    """Test publication to the metrics registry."""

    def test_publishes_gauges(self, registry: MetricsRegistry) -> None:
        """Test gauges reflect the last aggregation."""
        aggregator = BusinessMetricsAggregator(registry)

        aggregator.aggregate([
            {"price": 10, "stock": 0, "category": "books"},
            {"price": 20, "stock": 5, "category": "games"},
        ])

        sample = registry.registry.get_sample_value
        assert sample("products_total") == 2
        assert sample("products_out_of_stock_total") == 1
        assert sample("products_low_stock_total") == 1
        assert sample("average_product_price") == pytest.approx(15.0)
        assert sample("total_inventory_value") == pytest.approx(100.0)
        assert sample("products_by_category_total", {"category": "books"}) == 1
        assert sample("product_stock_levels_count", {"category": "games"}) == 1

    def test_no_state_carried_between_passes(self, registry: MetricsRegistry) -> None:
        """Test categories missing from a pass disappear from the export."""
        aggregator = BusinessMetricsAggregator(registry)

        aggregator.aggregate([{"price": 1, "stock": 1, "category": "a"}, {"price": 1, "stock": 1, "category": "b"}])
        aggregator.aggregate([{"price": 3, "stock": 1, "category": "a"}])

        sample = registry.registry.get_sample_value
        assert sample("products_total") == 1
        assert sample("products_by_category_total", {"category": "a"}) == 1
        assert sample("products_by_category_total", {"category": "b"}) is None
        assert sample("average_product_price_by_category", {"category": "a"}) == pytest.approx(3.0)

    def test_empty_pass_resets_gauges(self, registry: MetricsRegistry) -> None:
        """Test aggregating nothing publishes zeroes."""
        aggregator = BusinessMetricsAggregator(registry)
        aggregator.aggregate([{"price": 10, "stock": 1, "category": "a"}])

        stats = aggregator.aggregate([])

        assert stats.total_count == 0
        assert registry.registry.get_sample_value("products_total") == 0
        assert registry.registry.get_sample_value("products_by_category_total", {"category": "a"}) is None

    def test_works_without_registry(self) -> None:
        """Test the aggregator can compute stats standalone."""
        stats = BusinessMetricsAggregator().aggregate([{"price": 5, "stock": 0}])
        assert stats.out_of_stock_count == 1

    def test_concurrent_aggregation_never_mixes_passes(self, registry: MetricsRegistry) -> None:
        """Test a scrape always sees one complete pass."""
        aggregator = BusinessMetricsAggregator(registry)
        pass_x = [{"price": 10.0, "stock": 1, "category": "x"}] * 3
        pass_y = [{"price": 20.0, "stock": 1, "category": "y"}] * 5
        allowed = [(0.0, {}), (3.0, {"x": 3.0}), (5.0, {"y": 5.0})]

        stop = threading.Event()
        observed: List[Tuple[float, Dict[str, float]]] = []

        def writer(records) -> None:
            while not stop.is_set():
                aggregator.aggregate(records)

        def reader() -> None:
            for _ in range(500):
                observed.append(read_business_gauges(registry))

        writers = [threading.Thread(target=writer, args=(records,)) for records in (pass_x, pass_y)]
        for thread in writers:
            thread.start()
        try:
            reader_thread = threading.Thread(target=reader)
            reader_thread.start()
            reader_thread.join()
        finally:
            stop.set()
            for thread in writers:
                thread.join()

        assert len(observed) == 500
        assert all(state in allowed for state in observed)
