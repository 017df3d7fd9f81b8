"""Metrics collector: counters and latency percentiles for log delivery."""

import time
from collections import deque

# Latency samples kept for the average and p95
SEND_TIME_WINDOW = 1000


class MetricsCollector:
    """Collects and reports metrics about log delivery.

    Everything runs on the shipper's event loop, so no lock is taken.
    """

    def __init__(self, window: int = SEND_TIME_WINDOW) -> None:
        self._batches_sent: int = 0
        self._records_sent: int = 0
        self._batches_failed: int = 0
        self._records_requeued: int = 0
        self._single_failures: int = 0
        self._retries_succeeded: int = 0
        self._retries_dropped: int = 0
        self._send_times: deque = deque(maxlen=window)
        self._flush_triggers: dict = {"size": 0, "timer": 0, "stop": 0}
        self._start_time = time.monotonic()

    def record_batch(self, batch_size: int, send_time_ms: float, trigger: str = "timer") -> None:
        """Record a successfully delivered batch.

        Args:
            batch_size: Number of records in the batch.
            send_time_ms: Time taken by the request, in milliseconds.
            trigger: What caused the flush: "size", "timer" or "stop".
        """
        self._batches_sent += 1
        self._records_sent += batch_size
        self._send_times.append(send_time_ms)
        self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1

    def record_batch_failure(self, batch_size: int) -> None:
        self._batches_failed += 1
        self._records_requeued += batch_size

    def record_single(self, send_time_ms: float) -> None:
        self._records_sent += 1
        self._send_times.append(send_time_ms)

    def record_single_failure(self) -> None:
        self._single_failures += 1

    def record_retry(self, succeeded: bool, dropped: bool = False) -> None:
        if succeeded:
            self._retries_succeeded += 1
            self._records_sent += 1
        elif dropped:
            self._retries_dropped += 1

    def snapshot(self) -> dict:
        send_times = list(self._send_times)
        avg_send = sum(send_times) / len(send_times) if send_times else 0.0
        return {
            "batches_sent": self._batches_sent,
            "records_sent": self._records_sent,
            "batches_failed": self._batches_failed,
            "records_requeued": self._records_requeued,
            "single_failures": self._single_failures,
            "retries_succeeded": self._retries_succeeded,
            "retries_dropped": self._retries_dropped,
            "avg_send_time_ms": avg_send,
            "p95_send_time_ms": self._percentile(send_times, 95),
            "flush_triggers": dict(self._flush_triggers),
            "uptime_seconds": time.monotonic() - self._start_time,
        }

    @staticmethod
    def _percentile(data: list, pct: float) -> float:
        """Compute an interpolated percentile from a list of numeric values."""
        if not data:
            return 0.0

        sorted_data = sorted(data)
        n = len(sorted_data)

        if n == 1:
            return float(sorted_data[0])

        idx = (pct / 100) * (n - 1)
        lower = int(idx)
        upper = lower + 1
        fraction = idx - lower

        if upper >= n:
            return float(sorted_data[-1])

        return float(sorted_data[lower] + fraction * (sorted_data[upper] - sorted_data[lower]))
