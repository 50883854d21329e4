# ruff: noqa: E402
"""
Locust entrypoint for the PVZ scenario.

Runs the same login → create → list iteration as ``pvz-load run`` but
lets Locust own scheduling, connection handling, and reporting.  Settings
come from the environment exactly as for the standalone runner
(``PVZ_LOAD_ENV``, ``PVZ_BASE_URL``, ...).

Locust schedules users rather than iteration starts, so a fixed arrival
rate is approximated by giving each user a constant throughput of
``rate / max_workers`` iterations per second and spawning
``max_workers`` users::

    locust -f pvz_load/locustfile.py --headless -u 500 -r 100 -t 1m \\
        --csv results/pvz

When Locust quits, the thresholds from :file:`thresholds.yml` are
applied and the process exit code is set to ``0`` (pass), ``1``
(breach) or ``2`` (thresholds file unreadable).
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from locust import HttpUser, constant_throughput, events, task

# Locust puts the locustfile's own directory on ``sys.path``, not the
# project root; insert it so ``pvz_load`` imports resolve from a checkout.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pvz_load.api_client import LocustApiClient
from pvz_load.config import LoadTestSettings, get_config
from pvz_load.metrics import MetricsRegistry
from pvz_load.scenario import PvzScenario
from pvz_load.thresholds import (
    EXIT_PASS,
    EXIT_SCRIPT_ERROR,
    EXIT_THRESHOLD_BREACH,
    all_passed,
    evaluate_locust_stats,
    load_thresholds,
    print_summary,
)

logger = logging.getLogger(__name__)

SETTINGS = LoadTestSettings.from_config(get_config())
METRICS = MetricsRegistry(SETTINGS.error_rate_metric)
SCENARIO = PvzScenario(SETTINGS, METRICS)

__all__ = ["PvzModeratorUser"]


class PvzModeratorUser(HttpUser):
    """One virtual user repeatedly running moderator iterations."""

    host = SETTINGS.base_url
    wait_time = constant_throughput(SETTINGS.iterations_per_second / SETTINGS.max_workers)

    api: LocustApiClient

    def on_start(self) -> None:
        self.api = LocustApiClient(self.client, METRICS)

    @task
    def moderator_iteration(self) -> None:
        """Log in, create a PVZ, list PVZs; failed checks are marked in Locust's stats."""
        SCENARIO.run_iteration(self.api)


@events.test_start.add_listener
def _log_profile(environment, **_kwargs):
    logger.info(
        "Target %.1f iterations/s; spawn %d users for the full rate",
        SETTINGS.iterations_per_second,
        SETTINGS.max_workers,
    )


@events.quitting.add_listener
def _apply_thresholds(environment, **_kwargs):
    """Turn a threshold breach into a non-zero Locust exit code."""
    try:
        thresholds = load_thresholds(SETTINGS.thresholds_path)
    except (OSError, ValueError) as exc:
        logger.error("Could not load thresholds: %s", exc)
        environment.process_exit_code = EXIT_SCRIPT_ERROR
        return

    results = evaluate_locust_stats(thresholds, environment.stats.total, METRICS)
    print_summary(results)
    environment.process_exit_code = EXIT_PASS if all_passed(results) else EXIT_THRESHOLD_BREACH
