"""
Shared pytest fixtures for the PVZ load-test harness.

Provides validated settings, a fresh metrics registry, a thresholds file,
and a live mock PVZ service served from a background thread so the
``requests`` client can make real HTTP calls.

Key SDET Concepts Demonstrated:
- Fixture scoping (session vs. function) for speed and isolation
- Environment variable overrides set before the code under test is
  imported
- Live in-process server with a free port and clean shutdown
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

os.environ["PVZ_LOAD_ENV"] = "testing"

from werkzeug.serving import make_server

from pvz_load.config import LoadTestSettings, TestingConfig
from pvz_load.metrics import MetricsRegistry
from tests.mock_service import Behaviour, Journal, create_app


@pytest.fixture
def settings() -> LoadTestSettings:
    """Settings from ``TestingConfig``; tests tweak them with ``with_overrides``."""
    return LoadTestSettings.from_config(TestingConfig)


@pytest.fixture
def metrics(settings) -> MetricsRegistry:
    return MetricsRegistry(settings.error_rate_metric)


@pytest.fixture
def thresholds_file(tmp_path: Path) -> Path:
    """
    Write a permissive thresholds file.

    The mock service answers in a few milliseconds and never fails on
    its own, so these limits only trip when a test injects failures.
    """
    path = tmp_path / "thresholds.yml"
    path.write_text(
        "max_p95_ms: 5000\n"
        "max_error_rate_percent: 1\n"
        "max_request_failure_percent: 1\n",
        encoding="utf-8",
    )
    return path


# -----------------------------------------------------------------------------
# Mock service fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def mock_app():
    return create_app()


@pytest.fixture(scope="session")
def live_server(mock_app) -> Iterator[str]:
    """
    Serve the mock PVZ app on a free local port for the whole session.

    Yields:
        Base URL of the running server.
    """
    server = make_server("127.0.0.1", 0, mock_app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{server.server_port}"

    server.shutdown()
    thread.join(timeout=5)


@pytest.fixture
def behaviour(mock_app) -> Iterator[Behaviour]:
    """Fresh, healthy behaviour for every test; tests mutate it to inject faults."""
    fresh = Behaviour()
    mock_app.config["BEHAVIOUR"] = fresh
    yield fresh
    mock_app.config["BEHAVIOUR"] = Behaviour()


@pytest.fixture
def journal(mock_app) -> Journal:
    """Empty request journal for every test."""
    fresh = Journal()
    mock_app.config["JOURNAL"] = fresh
    return fresh


@pytest.fixture
def live_settings(settings, live_server) -> LoadTestSettings:
    return settings.with_overrides(base_url=live_server)
