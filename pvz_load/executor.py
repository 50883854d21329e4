"""
Iteration executors.

An executor decides *when* iterations start and *how many* run at once;
the scenario decides what an iteration does.  Executors accept any
zero-argument callable that returns an object with an ``ok`` attribute
(normally :class:`~pvz_load.scenario.IterationResult`).

- :class:`ConstantArrivalRateExecutor` starts iterations at a fixed rate
  for a fixed duration, independent of how long each one takes.  Starts
  that find every worker busy are dropped and counted, never queued.
- :class:`SharedIterationsExecutor` runs a fixed number of iterations
  over a fixed number of workers.  Used for smoke runs and tests.

An exception escaping an iteration is logged and counted as a failed
iteration; it never stops the run.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

Iteration = Callable[[], Any]


@dataclass(frozen=True)
class ExecutionSummary:
    """Iteration-level accounting for one executor run."""

    started: int
    succeeded: int
    failed: int
    dropped: int
    duration_s: float

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed


class _Tally:
    """Thread-safe iteration counters shared by the worker threads."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.started = 0
        self.succeeded = 0
        self.failed = 0
        self.dropped = 0
        self.in_flight = 0


class Executor:
    """Base class holding the per-iteration bookkeeping."""

    def __init__(self) -> None:
        self._stop = threading.Event()

    def run(self, iteration: Iteration) -> ExecutionSummary:
        raise NotImplementedError

    def stop(self) -> None:
        """Stop scheduling new iterations; in-flight ones still finish."""
        self._stop.set()

    def _run_one(self, iteration: Iteration, tally: _Tally) -> None:
        try:
            result = iteration()
        except Exception:
            logger.exception("Iteration raised an unexpected error")
            ok = False
        else:
            ok = bool(getattr(result, "ok", False))

        with tally.lock:
            tally.in_flight -= 1
            if ok:
                tally.succeeded += 1
            else:
                tally.failed += 1

    @staticmethod
    def _summary(tally: _Tally, started_at: float) -> ExecutionSummary:
        with tally.lock:
            return ExecutionSummary(
                started=tally.started,
                succeeded=tally.succeeded,
                failed=tally.failed,
                dropped=tally.dropped,
                duration_s=time.monotonic() - started_at,
            )


class ConstantArrivalRateExecutor(Executor):
    """
    Start ``rate`` iterations every ``time_unit`` seconds for ``duration`` seconds.

    Iteration *n* is scheduled at ``n * time_unit / rate`` seconds after
    the run starts.  The worker pool grows on demand up to
    ``max_workers``; crossing ``preallocated_workers`` is logged once as
    a sign that the profile is under-provisioned.

    Args:
        rate: Iteration starts per ``time_unit``.
        time_unit: Length of the rate window in seconds.
        duration: How long to keep starting iterations, in seconds.
        preallocated_workers: Expected steady-state concurrency.
        max_workers: Hard cap on concurrently running iterations.
    """

    def __init__(
        self,
        *,
        rate: int,
        time_unit: float = 1.0,
        duration: float,
        preallocated_workers: int,
        max_workers: int,
    ) -> None:
        super().__init__()
        if rate < 1 or time_unit <= 0 or duration < 0:
            raise ValueError("rate, time_unit and duration must be positive")
        if not 1 <= preallocated_workers <= max_workers:
            raise ValueError("Need 1 <= preallocated_workers <= max_workers")
        self.rate = rate
        self.time_unit = time_unit
        self.duration = duration
        self.preallocated_workers = preallocated_workers
        self.max_workers = max_workers

    @property
    def interval(self) -> float:
        return self.time_unit / self.rate

    def run(self, iteration: Iteration) -> ExecutionSummary:
        tally = _Tally()
        warned = False
        started_at = time.monotonic()
        deadline = started_at + self.duration

        logger.info(
            "Starting constant arrival rate: %d/%.3gs for %.3gs (workers %d..%d)",
            self.rate,
            self.time_unit,
            self.duration,
            self.preallocated_workers,
            self.max_workers,
        )

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="pvz-worker"
        ) as pool:
            index = 0
            while not self._stop.is_set():
                scheduled = started_at + index * self.interval
                if scheduled >= deadline:
                    break
                delay = scheduled - time.monotonic()
                if delay > 0 and self._stop.wait(delay):
                    break
                index += 1

                with tally.lock:
                    if tally.in_flight >= self.max_workers:
                        tally.dropped += 1
                        continue
                    tally.in_flight += 1
                    tally.started += 1
                    over_preallocated = tally.in_flight > self.preallocated_workers

                if over_preallocated and not warned:
                    warned = True
                    logger.warning(
                        "Concurrency exceeded %d pre-allocated workers; growing pool",
                        self.preallocated_workers,
                    )
                pool.submit(self._run_one, iteration, tally)

        summary = self._summary(tally, started_at)
        if summary.dropped:
            logger.warning("Dropped %d iterations: all workers busy", summary.dropped)
        return summary


class SharedIterationsExecutor(Executor):
    """
    Run exactly ``iterations`` iterations spread over ``workers`` threads.

    Args:
        iterations: Total number of iterations to run.
        workers: Number of concurrent worker threads.
    """

    def __init__(self, *, iterations: int, workers: int = 1) -> None:
        super().__init__()
        if iterations < 0 or workers < 1:
            raise ValueError("iterations must be >= 0 and workers >= 1")
        self.iterations = iterations
        self.workers = workers

    def run(self, iteration: Iteration) -> ExecutionSummary:
        tally = _Tally()
        started_at = time.monotonic()
        logger.info("Starting %d iterations on %d workers", self.iterations, self.workers)

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="pvz-worker") as pool:
            for _ in range(self.iterations):
                if self._stop.is_set():
                    break
                with tally.lock:
                    tally.in_flight += 1
                    tally.started += 1
                pool.submit(self._run_one, iteration, tally)

        return self._summary(tally, started_at)
