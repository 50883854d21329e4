"""Exception types raised by the load-test harness."""

from __future__ import annotations


class PvzLoadError(Exception):
    """Base class for every error the harness raises on purpose."""


class ConfigError(PvzLoadError, ValueError):
    """Raised when settings are missing, malformed, or inconsistent."""


class StepFailure(PvzLoadError):
    """
    A scenario step did not meet its success criteria.

    Step failures are iteration-local: the scenario catches them at the
    iteration boundary, records them, and moves on.  They never escape a
    call to :meth:`pvz_load.scenario.PvzScenario.run_iteration`.

    Attributes:
        step: Name of the failing step (``"login"``, ``"create_pvz"``, ...).
        reason: Human-readable description of the failed check.
    """

    step = "unknown"

    def __init__(self, reason: str) -> None:
        super().__init__(f"{self.step}: {reason}")
        self.reason = reason


class AuthenticationError(StepFailure):
    """Login returned a bad status or no token."""

    step = "login"


class CreationError(StepFailure):
    """PVZ creation returned a bad status or no identifier."""

    step = "create_pvz"


class ListingError(StepFailure):
    """PVZ listing returned a bad status or a body that is not a list."""

    step = "list_pvz"

    def __init__(self, reason: str, *, step: str | None = None) -> None:
        if step is not None:
            self.step = step
        super().__init__(reason)
