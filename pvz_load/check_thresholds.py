"""
Gate a finished Locust run on its CSV output.

Run after ``locust -f pvz_load/locustfile.py --csv results/pvz``::

    pvz-load-check --stats results/pvz_stats.csv --thresholds thresholds.yml

The ``Aggregated`` row of the stats CSV is read into the same shape as
Locust's live ``stats.total`` and evaluated exactly as the ``quitting``
listener of the locustfile would have done.  The CSV carries no per-step
series, so the request failure ratio doubles as the error rate:

- **P95 latency (ms)**: the ``95%`` column
- **Error rate (%)**: ``Failure Count / Request Count × 100``
- **Request failures (%)**: the same ratio, checked when
  ``max_request_failure_percent`` is set

Exit codes: ``0`` pass, ``1`` threshold breached, ``2`` script error.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pvz_load.thresholds import (
    EXIT_PASS,
    EXIT_SCRIPT_ERROR,
    EXIT_THRESHOLD_BREACH,
    all_passed,
    evaluate_locust_stats,
    load_thresholds,
    print_summary,
    read_stats_csv,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pvz-load-check",
        description="Check a Locust stats CSV of the PVZ scenario against thresholds.",
    )
    parser.add_argument("--stats", required=True, type=Path, help="Locust *_stats.csv file")
    parser.add_argument(
        "--thresholds",
        type=Path,
        default=Path("thresholds.yml"),
        help="Thresholds YAML file (default: thresholds.yml)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Return ``EXIT_PASS``, ``EXIT_THRESHOLD_BREACH`` or ``EXIT_SCRIPT_ERROR``."""
    args = parse_args(argv)

    try:
        thresholds = load_thresholds(args.thresholds)
        stats_total = read_stats_csv(args.stats)
    except (OSError, ValueError) as exc:
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    results = evaluate_locust_stats(thresholds, stats_total)
    print_summary(results)
    return EXIT_PASS if all_passed(results) else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
