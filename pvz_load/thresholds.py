"""
Pass/fail thresholds for a load-test run.

Limits live in a small YAML file (:file:`thresholds.yml` by default)::

    max_p95_ms: 100
    max_error_rate_percent: 0.01
    max_request_failure_percent: 0.01   # optional

A run passes when every actual value is strictly below its limit:

- **P95 latency (ms)**: 95th-percentile request duration
- **Error rate (%)**: failed scenario steps / all scenario steps × 100
- **Request failures (%)**: failed requests / all requests × 100

The same limits are applied to the in-process registry of a standalone
run, and to Locust's aggregated statistics: live when a Locust run
quits, or read back from the ``*_stats.csv`` it leaves behind (see
:mod:`pvz_load.check_thresholds`).

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "harness crashed".
"""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from pvz_load.metrics import MetricsRegistry, MetricsSnapshot

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2


@dataclass(frozen=True)
class Thresholds:
    """Limits read from the thresholds file."""

    max_p95_ms: float
    max_error_rate_percent: float
    max_request_failure_percent: float | None = None


@dataclass(frozen=True)
class ThresholdResult:
    """One row of the summary table."""

    label: str
    actual: float
    limit: float

    @property
    def passed(self) -> bool:
        return self.actual < self.limit


def load_thresholds(path: Path | str) -> Thresholds:
    """
    Read threshold limits from a YAML file.

    Args:
        path: Path to a YAML file containing ``max_p95_ms`` and
            ``max_error_rate_percent`` and, optionally,
            ``max_request_failure_percent``.

    Raises:
        ValueError: If the file is not valid YAML, a required key is
            missing, or any value is non-numeric.
    """
    with Path(path).open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Thresholds file is not valid YAML: {exc}") from exc

    try:
        max_p95_ms = float(data["max_p95_ms"])
        max_error_rate = float(data["max_error_rate_percent"])
        raw_failures = data.get("max_request_failure_percent")
        max_failures = float(raw_failures) if raw_failures is not None else None
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(
            "Thresholds file must define numeric max_p95_ms and max_error_rate_percent"
        ) from exc

    return Thresholds(
        max_p95_ms=max_p95_ms,
        max_error_rate_percent=max_error_rate,
        max_request_failure_percent=max_failures,
    )


def evaluate(
    thresholds: Thresholds,
    *,
    p95_ms: float,
    error_rate_percent: float,
    request_failure_percent: float | None = None,
) -> list[ThresholdResult]:
    """Compare actual values with *thresholds*, one result per checked metric."""
    results = [
        ThresholdResult("P95 latency (ms)", p95_ms, thresholds.max_p95_ms),
        ThresholdResult("Error rate (%)", error_rate_percent, thresholds.max_error_rate_percent),
    ]
    if thresholds.max_request_failure_percent is not None and request_failure_percent is not None:
        results.append(
            ThresholdResult(
                "Request failures (%)",
                request_failure_percent,
                thresholds.max_request_failure_percent,
            )
        )
    return results


def evaluate_snapshot(thresholds: Thresholds, snapshot: MetricsSnapshot) -> list[ThresholdResult]:
    """Evaluate a standalone run's metrics."""
    return evaluate(
        thresholds,
        p95_ms=snapshot.p95_ms,
        error_rate_percent=snapshot.error_rate * 100.0,
        request_failure_percent=snapshot.request_failure_rate * 100.0,
    )


@dataclass(frozen=True)
class CsvStatsTotal:
    """
    The ``Aggregated`` row of a Locust ``*_stats.csv``.

    Exposes the same ``fail_ratio`` / ``get_response_time_percentile``
    surface as Locust's live ``environment.stats.total``, so a finished
    run's CSV goes through :func:`evaluate_locust_stats` unchanged.
    """

    num_requests: int
    num_failures: int
    percentiles: dict[float, float]

    @property
    def fail_ratio(self) -> float:
        return self.num_failures / self.num_requests if self.num_requests else 0.0

    def get_response_time_percentile(self, percent: float) -> float | None:
        return self.percentiles.get(percent)


# Locust names its percentile columns "50%", "95%", "99.9%", ...
_PERCENTILE_COLUMN = re.compile(r"^(\d+(?:\.\d+)?)%$")


def _csv_number(row: dict[str, str], column: str) -> float:
    value = (row.get(column) or "").strip()
    if not value:
        raise ValueError(f"Stats CSV has no value in column {column!r}")
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Stats CSV column {column!r} is not numeric: {value!r}") from exc


def read_stats_csv(path: Path | str) -> CsvStatsTotal:
    """
    Read the ``Aggregated`` row of a Locust ``*_stats.csv``.

    Percentile cells Locust leaves as ``N/A`` are skipped.

    Raises:
        ValueError: If the row is missing, reports no requests, or has
            no 95th-percentile value.
    """
    with Path(path).open("r", encoding="utf-8", newline="") as handle:
        row = next(
            (
                candidate
                for candidate in csv.DictReader(handle)
                if "Aggregated" in (candidate.get("Name"), candidate.get("Type"))
            ),
            None,
        )
    if row is None:
        raise ValueError("Stats CSV has no 'Aggregated' row")

    num_requests = int(_csv_number(row, "Request Count"))
    if num_requests <= 0:
        raise ValueError("Stats CSV reports no requests; nothing to check")

    percentiles: dict[float, float] = {}
    for column, value in row.items():
        match = _PERCENTILE_COLUMN.match(column or "")
        if match and (value or "").strip() not in ("", "N/A"):
            percentiles[float(match.group(1)) / 100.0] = _csv_number(row, column)
    if 0.95 not in percentiles:
        raise ValueError("Stats CSV has no 95% response time")

    return CsvStatsTotal(
        num_requests=num_requests,
        num_failures=int(_csv_number(row, "Failure Count")),
        percentiles=percentiles,
    )


def evaluate_locust_stats(
    thresholds: Thresholds, stats_total: Any, metrics: MetricsRegistry | None = None
) -> list[ThresholdResult]:
    """
    Evaluate a Locust run, live or from its CSV.

    Latency and request failures come from Locust's aggregated
    ``environment.stats.total`` entry (or a :class:`CsvStatsTotal`); the
    error rate comes from the scenario's own per-step series in
    *metrics*.  On a distributed master, or when only the CSV is left,
    that series is empty, so Locust's failure ratio stands in for it.
    """
    fail_percent = float(stats_total.fail_ratio) * 100.0
    if metrics is not None and metrics.error_rate.total:
        error_rate_percent = metrics.error_rate.rate * 100.0
    else:
        error_rate_percent = fail_percent
    return evaluate(
        thresholds,
        p95_ms=float(stats_total.get_response_time_percentile(0.95) or 0.0),
        error_rate_percent=error_rate_percent,
        request_failure_percent=fail_percent,
    )


def all_passed(results: list[ThresholdResult]) -> bool:
    return all(result.passed for result in results)


def print_summary(results: list[ThresholdResult]) -> None:
    """Print a human-readable results table to stdout for CI logs."""
    print("Performance Threshold Check")
    print("-" * 60)
    print(f"{'Metric':<22}{'Actual':>12}{'Limit':>14}{'Status':>12}")
    print("-" * 60)
    for result in results:
        status = "PASS" if result.passed else "FAIL"
        print(f"{result.label:<22}{result.actual:>12.2f}{result.limit:>14.2f}{status:>12}")
    print("-" * 60)
    print(f"Overall: {'PASS' if all_passed(results) else 'FAIL'}")
