"""Runtime metrics for derivative processing and batch reprocessing."""

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

IMAGE_PROCESSING = "image_processing"
IMAGE_REPROCESSING = "image_reprocessing"

IMAGES_PROCESSED = "images.processed"
IMAGES_FAILED = "images.failed"
BATCH_PROCESSED = "batch.processed"
BATCH_FAILED = "batch.failed"
BATCH_SKIPPED = "batch.skipped"


@dataclass
class PerformanceMetrics:
    """Performance metrics for operations."""

    operation: str
    start_time: float
    end_time: float
    success: bool
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Calculate operation duration in seconds."""
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000


@dataclass
class _OperationStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    total_duration: float = 0.0
    min_duration: float = float("inf")
    max_duration: float = 0.0

    def add(self, metric: PerformanceMetrics) -> None:
        self.total += 1
        if metric.success:
            self.successful += 1
        else:
            self.failed += 1
        self.total_duration += metric.duration
        self.min_duration = min(self.min_duration, metric.duration)
        self.max_duration = max(self.max_duration, metric.duration)


class MetricsCollector:
    """
    Thread-safe collector for timers and counters.

    Aggregates are kept per operation for the life of the collector;
    individual measurements are only kept for the most recent
    ``history_size`` operations.
    """

    def __init__(self, history_size: int = 1000):
        self._lock = threading.Lock()
        self._recent: Deque[PerformanceMetrics] = deque(maxlen=history_size)
        self._stats: Dict[str, _OperationStats] = {}
        self._counters: Dict[str, int] = defaultdict(int)

    def record_metric(self, metric: PerformanceMetrics) -> None:
        """Record a performance metric."""
        with self._lock:
            self._recent.append(metric)
            self._stats.setdefault(metric.operation, _OperationStats()).add(metric)

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def get_metrics(self, operation: Optional[str] = None) -> List[PerformanceMetrics]:
        """Get recent metrics, optionally filtered by operation."""
        with self._lock:
            if operation:
                return [m for m in self._recent if m.operation == operation]
            return list(self._recent)

    def get_summary(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics over every metric recorded so far."""
        with self._lock:
            if operation:
                stats = [self._stats[operation]] if operation in self._stats else []
            else:
                stats = list(self._stats.values())

        total = sum(s.total for s in stats)
        if not total:
            return {}

        successful = sum(s.successful for s in stats)
        total_duration = sum(s.total_duration for s in stats)
        return {
            "total_operations": total,
            "successful_operations": successful,
            "failed_operations": total - successful,
            "success_rate": successful / total,
            "avg_duration": total_duration / total,
            "min_duration": min(s.min_duration for s in stats),
            "max_duration": max(s.max_duration for s in stats),
            "total_duration": total_duration,
        }

    def clear_metrics(self) -> None:
        """Clear all recorded metrics and counters."""
        with self._lock:
            self._recent.clear()
            self._stats.clear()
            self._counters.clear()


class OperationTimer:
    """
    Context manager timing one operation into a collector.

    The operation counts as failed when the block raises or when
    ``fail`` was called inside it.
    """

    def __init__(
        self,
        collector: Optional[MetricsCollector],
        operation: str,
        **metadata: Any,
    ):
        self._collector = collector
        self._operation = operation
        self._metadata = metadata
        self._error: Optional[str] = None
        self.start_time = 0.0

    def fail(self, error_message: str) -> None:
        self._error = error_message

    def __enter__(self) -> "OperationTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is not None and self._error is None:
            self._error = str(exc_val)
        if self._collector is not None:
            self._collector.record_metric(
                PerformanceMetrics(
                    operation=self._operation,
                    start_time=self.start_time,
                    end_time=time.time(),
                    success=self._error is None,
                    error_message=self._error,
                    metadata=self._metadata,
                )
            )
        return False
