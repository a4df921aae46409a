import threading
from dataclasses import asdict, dataclass
from typing import Dict


@dataclass(frozen=True)
class PerformanceMetrics:
    total_execution_time: int = 0
    max_memory_used: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_execution_time: int = 0


@dataclass(frozen=True)
class PerformanceSummary:
    total_execution_time: int = 0
    max_memory_used: int = 0
    total_success_count: int = 0
    total_failure_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class PerformanceMonitor:
    """Cross-call execution counters keyed by case slot (``case_0``, ``case_1``, ...).

    Shared by every judge call; all updates happen under one lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: Dict[str, PerformanceMetrics] = {}

    def record_execution(self, case_id: str, execution_time: int, memory_used: int, success: bool) -> None:
        with self._lock:
            current = self._metrics.get(case_id, PerformanceMetrics())
            self._metrics[case_id] = PerformanceMetrics(
                total_execution_time=current.total_execution_time + execution_time,
                max_memory_used=max(current.max_memory_used, memory_used),
                success_count=current.success_count + (1 if success else 0),
                failure_count=current.failure_count + (0 if success else 1),
                last_execution_time=execution_time,
            )

    def get_metrics(self, case_id: str) -> PerformanceMetrics:
        with self._lock:
            return self._metrics.get(case_id, PerformanceMetrics())

    def get_summary(self) -> PerformanceSummary:
        with self._lock:
            metrics = list(self._metrics.values())
        return PerformanceSummary(
            total_execution_time=sum(m.total_execution_time for m in metrics),
            max_memory_used=max((m.max_memory_used for m in metrics), default=0),
            total_success_count=sum(m.success_count for m in metrics),
            total_failure_count=sum(m.failure_count for m in metrics),
        )

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
