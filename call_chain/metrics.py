"""
Observability for call-chain traversals.

Counts what a traversal touched (files read or skipped, nodes built,
calls that resolved nowhere) and how long each analysis took, so a host
can log a one-line summary after a run or export the numbers as a dict.

Counter names:
    files.read               project files read successfully
    files.read_failures      project files skipped as unreadable
    nodes.created            call-chain nodes built (external ones included)
    nodes.external           depth-cut, cycle-cut and unresolved leaves
    calls.unresolved         downward call sites with no definition
    <operation>.success      timed operations that completed
    <operation>.failure      timed operations that raised
    errors.total             errors recorded by type
"""

import logging
import threading
import time
from collections import Counter
from contextlib import contextmanager
from typing import Dict, Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Thread-safe counters and timings for call_chain operations.

    Usage:
        metrics = MetricsCollector()

        with metrics.timer("analyze_call_chain"):
            result = builder.analyze_call_chain("src/A.java", 41)

        metrics.summary()["traversal"]["nodes_created"]
    """

    def __init__(self):
        # Reentrant: summary() reads timing stats while holding the lock
        self._lock = threading.RLock()
        self._counters: Counter = Counter()
        self._errors: Counter = Counter()
        self._durations: Dict[str, List[Tuple[float, bool]]] = {}
        self._started = time.time()

    # --- Counters ---

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    # --- Timings ---

    @contextmanager
    def timer(self, operation: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Time the enclosed block and count it as ``<operation>.success`` or
        ``<operation>.failure``.  Exceptions propagate unchanged.
        """
        started = time.perf_counter()
        ok = False
        try:
            yield
            ok = True
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.record_timing(operation, elapsed_ms, ok)
            if metadata:
                logger.debug(f"{operation} took {elapsed_ms:.1f} ms {metadata}")

    def record_timing(self, operation: str, duration_ms: float, success: bool = True) -> None:
        with self._lock:
            self._durations.setdefault(operation, []).append((duration_ms, success))
            self._counters[f"{operation}.{'success' if success else 'failure'}"] += 1

    def get_timing_stats(self, operation: str) -> Optional[Dict[str, float]]:
        """count, total_ms, avg_ms, min_ms, max_ms and success_rate, or None if never timed."""
        with self._lock:
            samples = self._durations.get(operation)
            if not samples:
                return None
            durations = [ms for ms, _ in samples]
            return {
                "count": len(samples),
                "total_ms": sum(durations),
                "avg_ms": sum(durations) / len(samples),
                "min_ms": min(durations),
                "max_ms": max(durations),
                "success_rate": sum(1 for _, ok in samples if ok) / len(samples),
            }

    # --- Project files ---

    def record_file_read(self, file_path: str = "") -> None:
        self.increment("files.read")
        logger.debug(f"Read: {file_path}")

    def record_file_read_failure(self, file_path: str = "", reason: str = "") -> None:
        self.increment("files.read_failures")
        self.record_error("SourceReadError", f"{file_path}: {reason}")

    # --- Traversal ---

    def record_node(self, external: bool = False) -> None:
        self.increment("nodes.created")
        if external:
            self.increment("nodes.external")

    def record_unresolved_call(self, callee: str = "") -> None:
        self.increment("calls.unresolved")
        logger.debug(f"Unresolved call: {callee}")

    # --- Errors ---

    def record_error(self, error_type: str, message: str = "") -> None:
        with self._lock:
            self._errors[error_type] += 1
            self._counters["errors.total"] += 1
        logger.debug(f"Error recorded: {error_type} - {message}")

    def get_error_counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._errors)

    # --- Export ---

    def summary(self) -> Dict[str, Any]:
        """Everything collected so far, as plain dicts suitable for JSON."""
        with self._lock:
            counters = self._counters
            return {
                "uptime_seconds": round(time.time() - self._started, 2),
                "counters": dict(counters),
                "timings": {op: self.get_timing_stats(op) for op in self._durations},
                "errors": dict(self._errors),
                "files": {
                    "read": counters["files.read"],
                    "read_failures": counters["files.read_failures"],
                },
                "traversal": {
                    "nodes_created": counters["nodes.created"],
                    "nodes_external": counters["nodes.external"],
                    "calls_unresolved": counters["calls.unresolved"],
                },
            }

    def log_summary(self, level: int = logging.INFO) -> None:
        logger.log(level, f"Call Chain Metrics: {self.summary()}")

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._errors.clear()
            self._durations.clear()
            self._started = time.time()


# Process-wide collector shared by builders created without one
_global_metrics: Optional[MetricsCollector] = None
_metrics_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    global _global_metrics
    with _metrics_lock:
        if _global_metrics is None:
            _global_metrics = MetricsCollector()
        return _global_metrics


def reset_metrics() -> None:
    with _metrics_lock:
        if _global_metrics is not None:
            _global_metrics.reset()
