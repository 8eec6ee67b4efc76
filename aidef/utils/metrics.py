"""
Metrics collection and emission for compile and build runs.

Tracks run timing, node/leaf/file counters and provider call latency.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from aidef.utils.logging import get_logger, log_provider_call

logger = get_logger(__name__)


class MetricsCollector:
    """
    Collects metrics during one compile or build run.

    Tracks:
    - Run start/end time
    - Nodes compiled, leaves found, cache hits
    - Files written
    - Provider call counts and latency
    """

    def __init__(self, run_id: str, phase: str):
        """
        Initialize metrics collector.

        Args:
            run_id: Identifier of the run
            phase: 'compile' or 'build'
        """
        self.run_id = run_id
        self.phase = phase

        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        self.nodes_compiled: int = 0
        self.leaves: int = 0
        self.cache_hits: int = 0
        self.files_written: int = 0

        self.provider_calls: Dict[str, int] = {}
        self.provider_latencies: Dict[str, List[float]] = {}
        self.provider_failures: int = 0

        self.status: str = "running"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark run start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"
        logger.info(
            f"Metrics collection started for {self.phase} run {self.run_id}",
            extra={"run_id": self.run_id, "phase": self.phase}
        )

    def complete(self, status: str = "completed", error_message: Optional[str] = None) -> None:
        """
        Mark run completion.

        Args:
            status: Final status ('completed', 'failed', 'aborted', 'budget_exceeded')
            error_message: Error message if the run did not complete cleanly
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        logger.info(
            f"Metrics collection completed for {self.phase} run {self.run_id}",
            extra={
                "run_id": self.run_id,
                "phase": self.phase,
                "status": self.status,
                "duration_ms": self.duration_ms,
                "nodes_compiled": self.nodes_compiled,
                "leaves": self.leaves,
                "files_written": self.files_written,
            }
        )

    def record_node(self, is_leaf: bool, cache_hit: bool = False) -> None:
        self.nodes_compiled += 1
        if is_leaf:
            self.leaves += 1
        if cache_hit:
            self.cache_hits += 1

    def record_files_written(self, count: int) -> None:
        self.files_written += count

    def record_provider_call(self, operation: str, duration_ms: float, failed: bool = False) -> None:
        """
        Record a provider call and its latency.

        Args:
            operation: 'compile' or 'generate'
            duration_ms: Call duration in milliseconds
            failed: Whether the call raised
        """
        self.provider_calls[operation] = self.provider_calls.get(operation, 0) + 1
        self.provider_latencies.setdefault(operation, []).append(duration_ms)
        if failed:
            self.provider_failures += 1

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary: Dict[str, Any] = {
            "run_id": self.run_id,
            "phase": self.phase,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "nodes_compiled": self.nodes_compiled,
            "leaves": self.leaves,
            "cache_hits": self.cache_hits,
            "files_written": self.files_written,
            "provider_calls": self.provider_calls,
            "provider_failures": self.provider_failures,
        }

        if self.provider_latencies:
            latency_stats = {}
            for operation, latencies in self.provider_latencies.items():
                if latencies:
                    latency_stats[operation] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["provider_latencies"] = latency_stats

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_provider_call(
    metrics_collector: Optional[MetricsCollector],
    provider: str,
    operation: str,
    node_path: str,
    logger_adapter=None
):
    """
    Context manager to time a provider call.

    Usage:
        async with track_provider_call(metrics, "openai", "compile", "server"):
            result = await provider.compile(request)
    """
    start_time = time.time()
    error = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.time() - start_time) * 1000

        if metrics_collector:
            metrics_collector.record_provider_call(operation, duration_ms, failed=error is not None)

        log_provider_call(
            logger_adapter or logger,
            provider=provider,
            operation=operation,
            node_path=node_path,
            duration_ms=duration_ms,
            error=(str(error) or repr(error)) if error is not None else None
        )


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a structured log line.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
