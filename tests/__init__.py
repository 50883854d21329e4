"""
Test suite for the PVZ load-test harness.

This package contains:
- unit/: scenario, executor, metrics, config and threshold tests with no
  network access
- integration/: runs against the in-process mock PVZ service
  (:mod:`tests.mock_service`)
"""
