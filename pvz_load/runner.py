"""
Standalone run orchestration.

Wires settings, metrics, HTTP client, scenario and executor together,
runs the load profile, and evaluates the thresholds.  The CLI in
:mod:`pvz_load.cli` is a thin layer over :func:`run_load_test`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pvz_load.api_client import ApiClient, RequestsApiClient
from pvz_load.config import LoadTestSettings
from pvz_load.executor import (
    ConstantArrivalRateExecutor,
    ExecutionSummary,
    Executor,
    SharedIterationsExecutor,
)
from pvz_load.metrics import MetricsRegistry, MetricsSnapshot
from pvz_load.scenario import PvzScenario
from pvz_load.thresholds import (
    EXIT_PASS,
    EXIT_THRESHOLD_BREACH,
    ThresholdResult,
    Thresholds,
    all_passed,
    evaluate_snapshot,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunReport:
    """Everything a finished run produced."""

    summary: ExecutionSummary
    snapshot: MetricsSnapshot
    results: list[ThresholdResult]

    @property
    def passed(self) -> bool:
        return all_passed(self.results)

    @property
    def exit_code(self) -> int:
        return EXIT_PASS if self.passed else EXIT_THRESHOLD_BREACH


def build_executor(
    settings: LoadTestSettings, *, iterations: int | None = None, workers: int | None = None
) -> Executor:
    """
    Pick the executor for a run.

    With *iterations* a fixed-count run is returned (a smoke test);
    otherwise the constant-arrival-rate profile from *settings*.
    """
    if iterations is not None:
        return SharedIterationsExecutor(
            iterations=iterations, workers=workers or settings.preallocated_workers
        )
    return ConstantArrivalRateExecutor(
        rate=settings.arrival_rate,
        time_unit=settings.time_unit,
        duration=settings.duration,
        preallocated_workers=settings.preallocated_workers,
        max_workers=settings.max_workers,
    )


def run_load_test(
    settings: LoadTestSettings,
    thresholds: Thresholds,
    *,
    executor: Executor | None = None,
    client: ApiClient | None = None,
    metrics: MetricsRegistry | None = None,
) -> RunReport:
    """
    Run the PVZ scenario under *executor* and evaluate *thresholds*.

    Args:
        settings: Validated settings.
        thresholds: Limits applied once the executor returns.
        executor: Defaults to :func:`build_executor` for *settings*.
        client: Defaults to a :class:`RequestsApiClient` for
            ``settings.base_url``, closed when the run ends.  A custom
            client should report into the same *metrics* registry.
        metrics: Defaults to a fresh registry.

    Returns:
        A :class:`RunReport`; iteration failures only show up in its
        counters and metrics, they are never raised.
    """
    metrics = metrics or MetricsRegistry(settings.error_rate_metric)
    owns_client = client is None
    if client is None:
        client = RequestsApiClient(settings.base_url, metrics, timeout=settings.request_timeout)
    executor = executor or build_executor(settings)
    scenario = PvzScenario(settings, metrics)

    logger.info("Running PVZ scenario against %s", settings.base_url)
    try:
        summary = executor.run(lambda: scenario.run_iteration(client))
    finally:
        if owns_client:
            client.close()

    snapshot = metrics.snapshot()
    results = evaluate_snapshot(thresholds, snapshot)
    logger.info(
        "Finished: %d started, %d succeeded, %d failed, %d dropped in %.1fs",
        summary.started,
        summary.succeeded,
        summary.failed,
        summary.dropped,
        summary.duration_s,
    )
    if snapshot.request_count == 0:
        logger.warning("No requests were sent; thresholds were checked against empty series")
    return RunReport(summary=summary, snapshot=snapshot, results=results)
