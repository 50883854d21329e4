"""
HTTP client adapters used by the scenario.

The scenario never talks to an HTTP library directly.  It calls
:meth:`ApiClient.request` with a method, a path, and a *check* callable
that inspects the status code and parsed body and returns a failure
reason (or ``None`` on success).  Two adapters implement that contract:

- :class:`RequestsApiClient`: standalone runs.  Uses one
  ``requests.Session`` per worker thread, times each call, and feeds the
  ``http_req_duration`` / ``http_req_failed`` series.
- :class:`LocustApiClient`: wraps Locust's ``HttpSession`` and maps the
  check result onto Locust's ``catch_response`` protocol so failures show
  up in Locust's own statistics.

Key Concepts Demonstrated:
- One seam between scenario logic and the load engine
- Response-shape validation that never raises on malformed bodies
- Thread-local sessions for connection reuse without sharing state
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

from pvz_load.metrics import MetricsRegistry

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

# Returned by ``safe_json`` when a body is empty or not JSON, so that a
# check can tell "no body" apart from a body that is JSON ``null``.
INVALID_JSON = object()

Check = Callable[[int, Any], "str | None"]


def safe_json(response: Any) -> Any:
    """
    Return the parsed JSON body, or :data:`INVALID_JSON` if parsing fails.

    Error responses from proxies and load balancers are frequently HTML
    or empty.  Parsing failures must become failed checks, never
    exceptions that abort the worker.
    """
    try:
        return response.json()
    except ValueError:
        return INVALID_JSON


def auth_header(token: str) -> dict[str, str]:
    """
    Build the headers for an authenticated JSON request.

    Args:
        token: Bearer token issued by ``/dummyLogin``.

    Returns:
        ``Content-Type`` plus ``Authorization: Bearer <token>``.
    """
    return {**JSON_HEADERS, "Authorization": f"Bearer {token}"}


@dataclass(frozen=True)
class ApiResponse:
    """
    Outcome of one checked request.

    Attributes:
        status_code: HTTP status, or ``None`` if no response arrived.
        body: Parsed JSON body, or :data:`INVALID_JSON`.
        latency_ms: Wall-clock time of the call in milliseconds.
        error: Failure reason, or ``None`` if every check passed.
    """

    status_code: int | None
    body: Any
    latency_ms: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ApiClient:
    """Interface the scenario depends on."""

    def request(
        self,
        method: str,
        path: str,
        *,
        name: str,
        check: Check,
        token: str | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        raise NotImplementedError

    def close(self) -> None:
        """Release any connections held by the client."""

    @staticmethod
    def headers_for(token: str | None) -> dict[str, str]:
        return auth_header(token) if token is not None else dict(JSON_HEADERS)


class RequestsApiClient(ApiClient):
    """
    ``requests``-backed client for standalone runs.

    ``requests.Session`` is not safe to share between threads, so each
    worker thread lazily gets its own session (and connection pool).

    Args:
        base_url: Scheme and host of the target service.
        metrics: Registry that receives latency and request-failure
            observations.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, metrics: MetricsRegistry, *, timeout: float = 60.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.metrics = metrics
        self.timeout = timeout
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def request(
        self,
        method: str,
        path: str,
        *,
        name: str,
        check: Check,
        token: str | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        url = f"{self.base_url}{path}"
        started = time.perf_counter()
        try:
            response = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self.headers_for(token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            latency_ms = (time.perf_counter() - started) * 1000.0
            self.metrics.record_request(latency_ms, failed=True)
            logger.debug("%s failed after %.1f ms: %s", name, latency_ms, exc)
            return ApiResponse(None, INVALID_JSON, latency_ms, f"Request error: {exc}")

        latency_ms = (time.perf_counter() - started) * 1000.0
        self.metrics.record_request(latency_ms, failed=response.status_code >= 400)

        body = safe_json(response)
        error = check(response.status_code, body)
        logger.debug("%s -> %s in %.1f ms", name, response.status_code, latency_ms)
        return ApiResponse(response.status_code, body, latency_ms, error)

    def close(self) -> None:
        """Close every session opened by any worker thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()


class LocustApiClient(ApiClient):
    """
    Adapter over a Locust ``HttpSession``.

    Locust records latency and counts failures itself; the adapter only
    decides success or failure through ``catch_response`` so a failed
    check is reported against the request's ``name`` in Locust's stats.

    Args:
        session: The ``HttpUser.client`` of the running virtual user.
        metrics: Optional registry that also receives each observation,
            so the same thresholds apply in both run modes.
    """

    def __init__(self, session: Any, metrics: MetricsRegistry | None = None) -> None:
        self.session = session
        self.metrics = metrics

    def request(
        self,
        method: str,
        path: str,
        *,
        name: str,
        check: Check,
        token: str | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        started = time.perf_counter()
        with self.session.request(
            method,
            path,
            json=json,
            params=params,
            headers=self.headers_for(token),
            name=name,
            catch_response=True,
        ) as response:
            latency_ms = (time.perf_counter() - started) * 1000.0
            # Locust reports connection errors as status 0.
            status_code = response.status_code or None
            body = safe_json(response) if status_code is not None else INVALID_JSON
            if status_code is None:
                error = f"Request error: {response.error}"
            else:
                error = check(status_code, body)

            if error is None:
                response.success()
            else:
                response.failure(error)

        if self.metrics is not None:
            self.metrics.record_request(
                latency_ms, failed=status_code is None or status_code >= 400
            )
        return ApiResponse(status_code, body, latency_ms, error)
