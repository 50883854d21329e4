"""
PVZ load-test harness.

Drives load against the pickup-point ("PVZ") HTTP service: every iteration
logs in through ``/dummyLogin``, creates a PVZ, and lists PVZs with the
freshly issued bearer token.  Latency and error-rate observations are
aggregated in-process and compared against the limits in
:file:`thresholds.yml` once the run ends.

The same scenario runs in two ways:

- standalone, through ``pvz-load run`` (``requests`` + a thread-pool
  arrival-rate executor), and
- under Locust, through :file:`pvz_load/locustfile.py`.
"""

__version__ = "0.1.0"
