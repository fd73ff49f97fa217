"""
Per-request resource snapshots.

A snapshot is a fixed-cost read of interpreter counters taken at the start
and end of request handling; the delta between the two is logged as an
advisory performance record. Nothing here ever rejects or delays a request.
"""

import asyncio
import gc
import resource
import sys
import threading
import time
import tracemalloc
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import psutil

from .masking import Masker


def saturating_sub(after: int, before: int) -> int:
    """Counter difference that clamps at zero when the counter was reset."""
    return after - before if after >= before else 0


def current_memory_bytes() -> int:
    """Current resident set size of this process."""
    return int(psutil.Process().memory_info().rss)


def _peak_rss_bytes() -> int:
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    if sys.platform == "darwin":
        return int(usage)
    return int(usage) * 1024


def _live_tasks() -> int:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return 0
    return len(asyncio.all_tasks(loop))


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Point-in-time resource reading.

    allocated_bytes is the current resident set size, or tracemalloc's
    current traced size while allocation tracing is on. system_bytes is the
    peak resident size and never goes down. forced_gc_count counts full
    collections of the oldest generation, which is where explicit
    gc.collect() calls land.
    """

    allocated_bytes: int
    system_bytes: int
    live_tasks: int
    live_threads: int
    gc_count: int
    forced_gc_count: int
    timestamp: float
    monotonic: float

    @classmethod
    def capture(cls) -> "MetricsSnapshot":
        if tracemalloc.is_tracing():
            allocated = tracemalloc.get_traced_memory()[0]
        else:
            allocated = current_memory_bytes()
        gc_stats = gc.get_stats()
        return cls(
            allocated_bytes=allocated,
            system_bytes=_peak_rss_bytes(),
            live_tasks=_live_tasks(),
            live_threads=threading.active_count(),
            gc_count=sum(generation["collections"] for generation in gc_stats),
            forced_gc_count=gc_stats[-1]["collections"],
            timestamp=time.time(),
            monotonic=time.perf_counter(),
        )


@dataclass(frozen=True)
class MetricsDelta:
    """Field-by-field difference between two snapshots."""

    allocated_bytes: int
    system_bytes: int
    live_tasks: int
    live_threads: int
    gc_count: int
    forced_gc_count: int
    duration_seconds: float

    @property
    def duration_ms(self) -> int:
        return int(self.duration_seconds * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def diff(before: MetricsSnapshot, after: MetricsSnapshot) -> MetricsDelta:
    """Compute after - before without ever going negative."""
    return MetricsDelta(
        allocated_bytes=saturating_sub(after.allocated_bytes, before.allocated_bytes),
        system_bytes=saturating_sub(after.system_bytes, before.system_bytes),
        live_tasks=saturating_sub(after.live_tasks, before.live_tasks),
        live_threads=saturating_sub(after.live_threads, before.live_threads),
        gc_count=saturating_sub(after.gc_count, before.gc_count),
        forced_gc_count=saturating_sub(after.forced_gc_count, before.forced_gc_count),
        duration_seconds=max(0.0, after.monotonic - before.monotonic),
    )


def log_performance(
    request_logger: Any,
    delta: MetricsDelta,
    after: MetricsSnapshot,
    *,
    masker: Optional[Masker] = None,
    method: str,
    endpoint: str,
    status_code: int,
    request_size: int,
    response_size: int,
) -> None:
    """Emit the per-request performance record, masked when a masker is given."""
    fields: Dict[str, Any] = dict(
        performance=True,
        method=method,
        endpoint=endpoint,
        status_code=status_code,
        response_time_ms=delta.duration_ms,
        memory_alloc_bytes=after.allocated_bytes,
        memory_sys_bytes=after.system_bytes,
        memory_alloc_delta_bytes=delta.allocated_bytes,
        memory_sys_delta_bytes=delta.system_bytes,
        live_tasks=after.live_tasks,
        live_threads=after.live_threads,
        num_gc=delta.gc_count,
        gc_forced_runs=delta.forced_gc_count,
        request_size_bytes=request_size,
        response_size_bytes=response_size,
    )
    if masker is not None:
        fields = masker.mask_fields(fields)
    request_logger.info("Performance metrics", **fields)


def log_slow_query(
    request_logger: Any,
    operation: str,
    duration_seconds: float,
    threshold_seconds: float,
) -> bool:
    """Warn when an operation exceeded its latency threshold. Returns True if it did."""
    if duration_seconds <= threshold_seconds:
        return False

    request_logger.warning(
        "Slow query detected",
        slow_query=True,
        operation=operation,
        duration_ms=int(duration_seconds * 1000),
        threshold_ms=int(threshold_seconds * 1000),
    )
    return True
