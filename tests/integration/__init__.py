"""
Integration tests against the mock PVZ service.

The mock is a real HTTP server on a free local port, so these tests
exercise the ``requests`` adapter, the executors, and the CLI exactly as
a run against the real service would.
"""
