"""
Moderator PVZ scenario.

One iteration models a moderator session end to end:

1. ``POST /dummyLogin`` with the configured role: expects ``200`` and a
   non-empty ``token``.
2. ``POST /pvz`` with the configured city: expects ``201`` and a
   non-empty ``id``.
3. ``GET /pvz?page=&limit=``: expects ``200`` and a JSON list.
4. Optionally ``GET /pvz/optimized?page=&limit=`` with the same criteria.

Every step feeds the error-rate series (``True`` when the step failed)
before the abort decision is taken, so the series counts failures per
step across all iterations.  The first failing step ends the iteration;
there are no retries.

The token lives in a local variable of :meth:`PvzScenario.run_iteration`
and is gone when the call returns, so no two iterations can ever share
one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pvz_load.api_client import ApiClient, ApiResponse
from pvz_load.config import LoadTestSettings
from pvz_load.errors import AuthenticationError, CreationError, ListingError, StepFailure
from pvz_load.metrics import MetricsRegistry

logger = logging.getLogger(__name__)

STEP_LOGIN = AuthenticationError.step
STEP_CREATE = CreationError.step
STEP_LIST = ListingError.step
STEP_LIST_OPTIMIZED = "list_pvz_optimized"


@dataclass(frozen=True)
class StepOutcome:
    """Result of a single scenario step."""

    step: str
    ok: bool
    latency_ms: float
    status_code: int | None = None
    error: str | None = None


@dataclass
class IterationResult:
    """
    Everything one iteration produced.

    Attributes:
        steps: Outcomes in execution order; steps after a failure are
            absent, not marked as skipped.
        pvz_id: Identifier of the PVZ created by this iteration, if the
            creation step succeeded.
        failure: The step failure that ended the iteration early.
    """

    steps: list[StepOutcome] = field(default_factory=list)
    pvz_id: str | int | None = None
    failure: StepFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def failed_step(self) -> str | None:
        return self.failure.step if self.failure is not None else None


def _field_present(body: Any, key: str) -> bool:
    if not isinstance(body, dict):
        return False
    value = body.get(key)
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, int):
        return value != 0
    return False


def check_login(status_code: int, body: Any) -> str | None:
    if status_code != 200:
        return f"Expected 200, got {status_code}"
    if not _field_present(body, "token") or not isinstance(body["token"], str):
        return "Login response missing token"
    return None


def check_create(status_code: int, body: Any) -> str | None:
    if status_code != 201:
        return f"Expected 201, got {status_code}"
    if not _field_present(body, "id"):
        return "Create response missing id"
    return None


def check_list(status_code: int, body: Any) -> str | None:
    if status_code != 200:
        return f"Expected 200, got {status_code}"
    if not isinstance(body, list):
        return "List response is not an array"
    return None


class PvzScenario:
    """
    Runs login → create → list iterations against one service.

    Instances hold only read-only settings and the shared metrics
    registry, so one instance can serve every worker thread.

    Args:
        settings: Validated load-test settings.
        metrics: Registry receiving one error-rate observation per step.
    """

    def __init__(self, settings: LoadTestSettings, metrics: MetricsRegistry) -> None:
        self.settings = settings
        self.metrics = metrics

    def run_iteration(self, client: ApiClient) -> IterationResult:
        """
        Execute one iteration with *client* and report how it went.

        Step failures are caught here and returned on the result; this
        method never raises :class:`~pvz_load.errors.StepFailure`.
        """
        result = IterationResult()
        try:
            token = self._authenticate(client, result)
            result.pvz_id = self._create_pvz(client, token, result)
            self._list_pvz(client, token, result, path="/pvz", step=STEP_LIST)
            if self.settings.include_optimized_listing:
                self._list_pvz(
                    client, token, result, path="/pvz/optimized", step=STEP_LIST_OPTIMIZED
                )
        except StepFailure as exc:
            result.failure = exc
            logger.warning("Iteration aborted at %s: %s", exc.step, exc.reason)
        return result

    def _authenticate(self, client: ApiClient, result: IterationResult) -> str:
        response = client.request(
            "POST",
            "/dummyLogin",
            name="/dummyLogin [POST]",
            check=check_login,
            json={"role": self.settings.role.value},
        )
        self._record(result, STEP_LOGIN, response)
        if not response.ok:
            raise AuthenticationError(response.error or "login failed")
        return response.body["token"]

    def _create_pvz(self, client: ApiClient, token: str, result: IterationResult) -> str | int:
        response = client.request(
            "POST",
            "/pvz",
            name="/pvz [POST]",
            check=check_create,
            token=token,
            json={"city": self.settings.city.value},
        )
        self._record(result, STEP_CREATE, response)
        if not response.ok:
            raise CreationError(response.error or "create failed")
        return response.body["id"]

    def _list_pvz(
        self, client: ApiClient, token: str, result: IterationResult, *, path: str, step: str
    ) -> None:
        response = client.request(
            "GET",
            path,
            name=f"{path} [GET]",
            check=check_list,
            token=token,
            params=self._list_params(),
        )
        self._record(result, step, response)
        if not response.ok:
            raise ListingError(response.error or "list failed", step=step)

    def _list_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"page": self.settings.page, "limit": self.settings.limit}
        if self.settings.start_date:
            params["startDate"] = self.settings.start_date
        if self.settings.end_date:
            params["endDate"] = self.settings.end_date
        return params

    def _record(self, result: IterationResult, step: str, response: ApiResponse) -> None:
        result.steps.append(
            StepOutcome(
                step=step,
                ok=response.ok,
                latency_ms=response.latency_ms,
                status_code=response.status_code,
                error=response.error,
            )
        )
        self.metrics.error_rate.add(not response.ok)
