"""
In-process metric accumulators.

The harness keeps three series for a run:

- a custom error-rate :class:`Rate` that the scenario feeds once per
  step (``True`` = the step failed),
- ``http_req_duration``: a :class:`Trend` of request latencies in
  milliseconds, and
- ``http_req_failed``: a :class:`Rate` of transport-level request
  failures (connection errors and unexpected status codes).

Observations arrive from many worker threads at once, so every
accumulator guards its state with a lock.  Callers only ever append.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass


class Rate:
    """Fraction of non-zero observations, e.g. the share of failed steps."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._hits = 0
        self._total = 0

    def add(self, value: bool) -> None:
        with self._lock:
            self._total += 1
            if value:
                self._hits += 1

    @property
    def hits(self) -> int:
        with self._lock:
            return self._hits

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def rate(self) -> float:
        """Hits divided by observations; ``0.0`` before the first observation."""
        with self._lock:
            if self._total == 0:
                return 0.0
            return self._hits / self._total


class Trend:
    """Collection of numeric samples with percentile statistics."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._samples: list[float] = []

    def add(self, value: float) -> None:
        with self._lock:
            self._samples.append(float(value))

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._samples)

    def percentile(self, pct: float) -> float:
        """
        Return the *pct*-th percentile using linear interpolation.

        Returns ``0.0`` when no samples have been recorded, so an empty
        run never trips a latency threshold on its own.
        """
        if not 0 <= pct <= 100:
            raise ValueError("Percentile must be between 0 and 100")

        with self._lock:
            samples = sorted(self._samples)
        if not samples:
            return 0.0

        position = (len(samples) - 1) * pct / 100.0
        lower = math.floor(position)
        upper = math.ceil(position)
        if lower == upper:
            return samples[lower]
        weight = position - lower
        return samples[lower] + (samples[upper] - samples[lower]) * weight

    def average(self) -> float:
        with self._lock:
            if not self._samples:
                return 0.0
            return sum(self._samples) / len(self._samples)

    def maximum(self) -> float:
        with self._lock:
            return max(self._samples, default=0.0)


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the registry, used for reporting and thresholds."""

    error_rate: float
    error_count: int
    step_count: int
    p95_ms: float
    avg_ms: float
    max_ms: float
    request_count: int
    request_failure_rate: float


class MetricsRegistry:
    """
    Named series shared by every iteration of one run.

    Attributes:
        error_rate: Custom per-step failure rate.
        http_req_duration: Latency of every request, in milliseconds.
        http_req_failed: Per-request failure rate.
    """

    def __init__(self, error_rate_name: str = "errors") -> None:
        self.error_rate = Rate(error_rate_name)
        self.http_req_duration = Trend("http_req_duration")
        self.http_req_failed = Rate("http_req_failed")

    def record_request(self, latency_ms: float, failed: bool) -> None:
        """Add one request's latency and transport outcome."""
        self.http_req_duration.add(latency_ms)
        self.http_req_failed.add(failed)

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            error_rate=self.error_rate.rate,
            error_count=self.error_rate.hits,
            step_count=self.error_rate.total,
            p95_ms=self.http_req_duration.percentile(95),
            avg_ms=self.http_req_duration.average(),
            max_ms=self.http_req_duration.maximum(),
            request_count=self.http_req_duration.count,
            request_failure_rate=self.http_req_failed.rate,
        )
