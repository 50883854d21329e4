"""
Command-line entry point.

Usage examples::

    # Reference profile (1000 it/s for 1 minute) against a local service:
    pvz-load run --base-url http://localhost:8080

    # Ten iterations on two workers, as a smoke test:
    pvz-load run --iterations 10 --workers 2

    # Gate a finished Locust run on its CSV output:
    pvz-load check --stats results/pvz_stats.csv
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager

from pvz_load import check_thresholds
from pvz_load.config import LoadTestSettings, get_config
from pvz_load.errors import ConfigError
from pvz_load.executor import Executor
from pvz_load.runner import build_executor, run_load_test
from pvz_load.thresholds import EXIT_SCRIPT_ERROR, load_thresholds, print_summary

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pvz-load", description="PVZ service load test.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the PVZ scenario")
    run.add_argument("--env", help="Config environment (development, testing, production)")
    run.add_argument("--base-url", help="Target service URL")
    run.add_argument("--role", help="Role sent to /dummyLogin")
    run.add_argument("--city", help="City of the created PVZ")
    run.add_argument("--rate", type=int, dest="arrival_rate", help="Iteration starts per time unit")
    run.add_argument("--time-unit", help="Rate window, e.g. 1s")
    run.add_argument("--duration", help="Run duration, e.g. 1m")
    run.add_argument("--preallocated-workers", type=int)
    run.add_argument("--max-workers", type=int)
    run.add_argument(
        "--include-optimized",
        action="store_true",
        default=None,
        dest="include_optimized_listing",
        help="Also call GET /pvz/optimized",
    )
    run.add_argument("--iterations", type=int, help="Run a fixed number of iterations instead")
    run.add_argument("--workers", type=int, help="Workers for --iterations runs")
    run.add_argument("--thresholds", dest="thresholds_path", help="Path to thresholds YAML file")
    run.add_argument("-v", "--verbose", action="store_true", help="Log every request")

    check = subparsers.add_parser("check", help="Check a Locust stats CSV against thresholds")
    check.add_argument("--stats", required=True, help="Path to Locust *_stats.csv file")
    check.add_argument("--thresholds", default="thresholds.yml", help="Path to thresholds YAML file")

    return parser.parse_args(argv)


@contextmanager
def stop_on_interrupt(executor: Executor) -> Iterator[None]:
    """
    Route Ctrl+C to ``executor.stop()`` for the duration of the block.

    The executor stops scheduling new iterations and waits for the ones
    in flight, so an interrupted run still ends with a summary table.
    The previous SIGINT handler is restored on exit.
    """

    def _handle(signum, frame):
        logger.warning("Interrupted; waiting for in-flight iterations to finish")
        executor.stop()

    previous = signal.signal(signal.SIGINT, _handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _run(args: argparse.Namespace) -> int:
    configure_logging(args.verbose)
    try:
        settings = LoadTestSettings.from_config(
            get_config(args.env),
            base_url=args.base_url,
            role=args.role,
            city=args.city,
            arrival_rate=args.arrival_rate,
            time_unit=args.time_unit,
            duration=args.duration,
            preallocated_workers=args.preallocated_workers,
            max_workers=args.max_workers,
            include_optimized_listing=args.include_optimized_listing,
            thresholds_path=args.thresholds_path,
        )
        thresholds = load_thresholds(settings.thresholds_path)
        executor = build_executor(settings, iterations=args.iterations, workers=args.workers)
    except (ConfigError, OSError, ValueError) as exc:
        print(f"Load test setup failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    with stop_on_interrupt(executor):
        report = run_load_test(settings, thresholds, executor=executor)
    print_summary(report.results)
    return report.exit_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "check":
        return check_thresholds.main(["--stats", args.stats, "--thresholds", args.thresholds])
    return _run(args)


if __name__ == "__main__":
    raise SystemExit(main())
