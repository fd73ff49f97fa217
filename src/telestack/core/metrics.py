"""
Prometheus metrics collection.

An explicit MetricsRegistry owns its own CollectorRegistry and is handed to
every component that records metrics, so tests and multiple apps never share
hidden process-wide state.
"""

import gc
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Set

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info, generate_latest
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from .aggregator import AggregateStats
from .snapshot import MetricsSnapshot

logger = structlog.get_logger(__name__)

SIZE_BUCKETS = [100, 1000, 10000, 100000, 1000000, 10000000, 100000000, 1000000000]
STOCK_BUCKETS = [0, 1, 5, 10, 25, 50, 100, 250, 500, 1000]
PRICE_BUCKETS = [0, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000]
GC_PAUSE_BUCKETS = [0.0001, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0]


class BusinessStatsCollector(Collector):
    """
    Exposes the latest AggregateStats as gauges.

    The whole stats object is swapped under a lock and each scrape reads the
    reference once, so a scrape sees one complete aggregation pass.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats = AggregateStats.empty()

    def publish(self, stats: AggregateStats) -> None:
        with self._lock:
            self._stats = stats

    @property
    def current(self) -> AggregateStats:
        with self._lock:
            return self._stats

    def collect(self) -> Iterator[GaugeMetricFamily]:
        stats = self.current

        yield GaugeMetricFamily("products_total", "Total number of products", value=stats.total_count)
        yield GaugeMetricFamily(
            "products_low_stock_total", "Total number of products with low stock", value=stats.low_stock_count
        )
        yield GaugeMetricFamily(
            "products_out_of_stock_total", "Total number of products out of stock", value=stats.out_of_stock_count
        )
        yield GaugeMetricFamily(
            "products_high_value_total", "Total number of high-value products", value=stats.high_value_count
        )
        yield GaugeMetricFamily("average_product_price", "Average product price", value=stats.average_price)
        yield GaugeMetricFamily(
            "total_inventory_value", "Total inventory value (price * stock)", value=stats.total_inventory_value
        )

        by_category = GaugeMetricFamily(
            "products_by_category_total", "Total number of products by category", labels=["category"]
        )
        for category, count in sorted(stats.per_category_count.items()):
            by_category.add_metric([category], count)
        yield by_category

        price_by_category = GaugeMetricFamily(
            "average_product_price_by_category", "Average product price by category", labels=["category"]
        )
        for category, price in sorted(stats.per_category_average_price.items()):
            price_by_category.add_metric([category], price)
        yield price_by_category


class GCPauseRecorder:
    """
    Times garbage collection pauses through gc.callbacks.

    Collections never overlap, so a single start mark is enough.
    """

    def __init__(self, histogram: Histogram) -> None:
        self.histogram = histogram
        self._started: Optional[float] = None

    def __call__(self, phase: str, info: Dict[str, Any]) -> None:
        if phase == "start":
            self._started = time.perf_counter()
        elif phase == "stop" and self._started is not None:
            pause = time.perf_counter() - self._started
            self._started = None
            self.histogram.labels(generation=str(info["generation"])).observe(pause)

    @property
    def installed(self) -> bool:
        return self in gc.callbacks

    def install(self) -> None:
        if not self.installed:
            gc.callbacks.append(self)

    def uninstall(self) -> None:
        if self.installed:
            gc.callbacks.remove(self)
        self._started = None

class MetricsRegistry:
    """
    Centralized metrics collection for the product service.

    Recording is best-effort: if the sink fails the error is logged once per
    operation and the caller carries on.
    """

    def __init__(
        self,
        service_name: str = "product-service",
        version: str = "0.1.0",
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._failed_operations: Set[str] = set()

        # Service info
        self.service_info = Info(
            "telestack_service",
            "Telestack service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": version,
            "service": service_name,
        })

        # Request metrics
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.request_size = Histogram(
            "http_request_size_bytes",
            "HTTP request size in bytes",
            ["method", "endpoint"],
            buckets=SIZE_BUCKETS,
            registry=self.registry,
        )

        self.response_size = Histogram(
            "http_response_size_bytes",
            "HTTP response size in bytes",
            ["method", "endpoint"],
            buckets=SIZE_BUCKETS,
            registry=self.registry,
        )

        # Business metrics
        self.business_stats = BusinessStatsCollector()
        self.registry.register(self.business_stats)

        self.products_created_total = Counter(
            "products_created_total",
            "Total number of products created",
            registry=self.registry,
        )

        self.products_updated_total = Counter(
            "products_updated_total",
            "Total number of products updated",
            registry=self.registry,
        )

        self.products_deleted_total = Counter(
            "products_deleted_total",
            "Total number of products deleted",
            registry=self.registry,
        )

        self.stock_levels = Histogram(
            "product_stock_levels",
            "Distribution of product stock levels",
            ["category"],
            buckets=STOCK_BUCKETS,
            registry=self.registry,
        )

        self.price_ranges = Histogram(
            "product_price_ranges",
            "Distribution of product prices",
            ["category"],
            buckets=PRICE_BUCKETS,
            registry=self.registry,
        )

        # System metrics
        self.memory_alloc_bytes = Gauge(
            "memory_alloc_bytes",
            "Current allocated memory in bytes",
            registry=self.registry,
        )

        self.memory_sys_bytes = Gauge(
            "memory_sys_bytes",
            "Peak resident memory obtained from the OS in bytes",
            registry=self.registry,
        )

        self.live_tasks = Gauge(
            "live_tasks_total",
            "Current number of asyncio tasks",
            registry=self.registry,
        )

        self.threads = Gauge(
            "threads_total",
            "Current number of threads",
            registry=self.registry,
        )

        self.gc_cycles = Gauge(
            "gc_cycles",
            "Cumulative garbage collection cycles",
            registry=self.registry,
        )

        self.gc_duration = Histogram(
            "gc_duration_seconds",
            "Garbage collection pause duration in seconds",
            ["generation"],
            buckets=GC_PAUSE_BUCKETS,
            registry=self.registry,
        )
        self.gc_pauses = GCPauseRecorder(self.gc_duration)

        self.uptime_seconds = Gauge(
            "uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        # Database metrics
        self.db_operations_total = Counter(
            "database_operations_total",
            "Total number of database operations",
            ["operation", "status"],
            registry=self.registry,
        )

        self.db_operation_duration = Histogram(
            "database_operation_duration_seconds",
            "Database operation duration in seconds",
            ["operation"],
            registry=self.registry,
        )

        # Track start time for uptime calculation
        self._start_time = time.time()

    @contextmanager
    def _best_effort(self, operation: str) -> Iterator[None]:
        try:
            yield
        except Exception as e:
            if operation not in self._failed_operations:
                self._failed_operations.add(operation)
                logger.error(
                    "Metrics sink unavailable",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    def record_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_seconds: float,
        request_size: int = 0,
        response_size: int = 0,
    ) -> None:
        """Record HTTP request metrics."""
        with self._best_effort("record_request"):
            self.requests_total.labels(
                method=method,
                endpoint=endpoint,
                status_code=str(status_code)
            ).inc()

            self.request_duration.labels(method=method, endpoint=endpoint).observe(duration_seconds)
            self.request_size.labels(method=method, endpoint=endpoint).observe(request_size)
            self.response_size.labels(method=method, endpoint=endpoint).observe(response_size)

    def record_db_operation(self, operation: str, status: str, duration_seconds: float) -> None:
        """Record a data-access operation."""
        with self._best_effort("record_db_operation"):
            self.db_operations_total.labels(operation=operation, status=status).inc()
            self.db_operation_duration.labels(operation=operation).observe(duration_seconds)

    def record_product_created(self) -> None:
        with self._best_effort("record_product_created"):
            self.products_created_total.inc()

    def record_product_updated(self) -> None:
        with self._best_effort("record_product_updated"):
            self.products_updated_total.inc()

    def record_product_deleted(self) -> None:
        with self._best_effort("record_product_deleted"):
            self.products_deleted_total.inc()

    def observe_product(self, category: str, stock: int, price: float) -> None:
        """Record one product's stock level and price distribution."""
        with self._best_effort("observe_product"):
            self.stock_levels.labels(category=category).observe(stock)
            self.price_ranges.labels(category=category).observe(price)

    def publish_business_stats(self, stats: AggregateStats) -> None:
        """Replace the exported business gauges with a complete aggregation pass."""
        with self._best_effort("publish_business_stats"):
            self.business_stats.publish(stats)

    def update_system_metrics(self, snapshot: MetricsSnapshot) -> None:
        """Update system-level gauges from a resource snapshot."""
        with self._best_effort("update_system_metrics"):
            self.memory_alloc_bytes.set(snapshot.allocated_bytes)
            self.memory_sys_bytes.set(snapshot.system_bytes)
            self.live_tasks.set(snapshot.live_tasks)
            self.threads.set(snapshot.live_threads)
            self.gc_cycles.set(snapshot.gc_count)
            self.uptime_seconds.set(time.time() - self._start_time)

    def start_gc_tracking(self) -> None:
        """Start recording GC pauses into gc_duration_seconds."""
        self.gc_pauses.install()

    def stop_gc_tracking(self) -> None:
        self.gc_pauses.uninstall()

    def render(self) -> bytes:
        """Prometheus text exposition of everything in this registry."""
        self.uptime_seconds.set(time.time() - self._start_time)
        return generate_latest(self.registry)
