"""
Metrics utilities - request timing and the in-process collector behind /metrics.
"""
import threading
import time
from collections import deque
from datetime import datetime, timezone, timedelta
from typing import Optional

SLOW_REQUEST_MS = 5000
RESPONSE_TIME_WINDOW = 100
RESET_INTERVAL = timedelta(hours=1)


class Timer:
    """Simple timer for measuring operation latency."""

    def __init__(self):
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def start(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def stop(self) -> int:
        """Stop timer and return elapsed milliseconds."""
        self._end = time.monotonic()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> int:
        if self._start is None:
            return 0
        end = self._end or time.monotonic()
        return int((end - self._start) * 1000)


class RequestMetrics:
    """
    Rolling request counters for the current process.

    Counters reset hourly; the average covers the last RESPONSE_TIME_WINDOW
    requests. Nothing is persisted, every worker process reports its own view.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._reset_locked(datetime.now(timezone.utc))

    def _reset_locked(self, now: datetime) -> None:
        self.request_count = 0
        self.error_count = 0
        self.slow_requests = 0
        self._response_times: deque[int] = deque(maxlen=RESPONSE_TIME_WINDOW)
        self.last_reset = now

    def reset(self) -> None:
        with self._lock:
            self._reset_locked(datetime.now(timezone.utc))

    def record(self, duration_ms: int, status_code: int) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            if now - self.last_reset >= RESET_INTERVAL:
                self._reset_locked(now)
            self.request_count += 1
            self._response_times.append(duration_ms)
            if status_code >= 400:
                self.error_count += 1
            if duration_ms > SLOW_REQUEST_MS:
                self.slow_requests += 1

    @property
    def average_response_time_ms(self) -> float:
        if not self._response_times:
            return 0.0
        return round(sum(self._response_times) / len(self._response_times), 2)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "requestCount": self.request_count,
                "averageResponseTimeMs": self.average_response_time_ms,
                "errorCount": self.error_count,
                "slowRequests": self.slow_requests,
                "lastReset": self.last_reset.isoformat(),
            }


request_metrics = RequestMetrics()
