"""
Load-test configuration.

Defines environment-specific configuration classes for the harness.  Each
class captures where the target service lives, what the scenario sends,
how hard the executor pushes, and where the pass/fail limits are read
from.  Every value can be overridden by an environment variable, and
``get_config`` selects the right class from ``PVZ_LOAD_ENV`` (or an
explicit key).

Configuration classes are plain attribute holders.  The harness never
reads them directly; :meth:`LoadTestSettings.from_config` converts one
into a validated, immutable settings object first.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

from pvz_load.errors import ConfigError


class Role(str, Enum):
    """Roles accepted by the ``/dummyLogin`` endpoint."""

    CLIENT = "client"
    EMPLOYEE = "employee"
    MODERATOR = "moderator"


class City(str, Enum):
    """Cities in which the service allows a PVZ to be opened."""

    MOSCOW = "Moscow"
    SAINT_PETERSBURG = "Saint Petersburg"
    KAZAN = "Kazan"


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer: {value!r}") from exc


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """
    Base (shared) configuration.

    Values are kept as the raw strings read from the environment;
    conversion and validation happen in :meth:`LoadTestSettings.from_config`.

    Defaults reproduce the reference load profile: 1000 iteration starts
    per second for one minute, 100 pre-allocated and at most 500
    concurrent workers, p95 latency under 100 ms, and an error rate under
    0.01 %.
    """

    # Target service
    BASE_URL: str = os.environ.get("PVZ_BASE_URL", "http://localhost:8080")
    REQUEST_TIMEOUT: str = os.environ.get("PVZ_REQUEST_TIMEOUT", "60s")

    # Scenario payloads
    ROLE: str = os.environ.get("PVZ_ROLE", Role.MODERATOR.value)
    CITY: str = os.environ.get("PVZ_CITY", City.MOSCOW.value)
    PAGE: str = os.environ.get("PVZ_PAGE", "1")
    LIMIT: str = os.environ.get("PVZ_LIMIT", "10")
    START_DATE: str | None = os.environ.get("PVZ_START_DATE") or None
    END_DATE: str | None = os.environ.get("PVZ_END_DATE") or None
    INCLUDE_OPTIMIZED_LISTING: str = os.environ.get("PVZ_INCLUDE_OPTIMIZED", "false")

    # Arrival-rate executor
    ARRIVAL_RATE: str = os.environ.get("PVZ_ARRIVAL_RATE", "1000")
    TIME_UNIT: str = os.environ.get("PVZ_TIME_UNIT", "1s")
    DURATION: str = os.environ.get("PVZ_DURATION", "1m")
    PREALLOCATED_WORKERS: str = os.environ.get("PVZ_PREALLOCATED_WORKERS", "100")
    MAX_WORKERS: str = os.environ.get("PVZ_MAX_WORKERS", "500")

    # Metrics and pass/fail limits
    ERROR_RATE_METRIC: str = os.environ.get("PVZ_ERROR_RATE_METRIC", "errors")
    THRESHOLDS_PATH: str = os.environ.get("PVZ_THRESHOLDS", "thresholds.yml")


class DevelopmentConfig(Config):
    """
    Local runs against a service on the developer's machine.

    Keeps the request mix of the base profile but at a rate a laptop can
    sustain.
    """

    ARRIVAL_RATE: str = os.environ.get("PVZ_ARRIVAL_RATE", "50")
    DURATION: str = os.environ.get("PVZ_DURATION", "30s")
    PREALLOCATED_WORKERS: str = os.environ.get("PVZ_PREALLOCATED_WORKERS", "10")
    MAX_WORKERS: str = os.environ.get("PVZ_MAX_WORKERS", "50")


class TestingConfig(Config):
    """
    Test-suite overrides.

    Points at a non-routable host so a misconfigured test never sends
    traffic anywhere real, and keeps the load profile tiny.
    """

    BASE_URL: str = os.environ.get("TEST_PVZ_BASE_URL", "http://pvz.test")
    REQUEST_TIMEOUT: str = "2s"
    ARRIVAL_RATE: str = "20"
    DURATION: str = "1s"
    PREALLOCATED_WORKERS: str = "2"
    MAX_WORKERS: str = "4"


class ProductionConfig(Config):
    """
    Full reference profile.

    All values come from ``Config`` or from environment variables set by
    the CI job that launches the run.
    """


# Lookup table mapping environment name strings to their config classes.
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": ProductionConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Return the configuration class for the given environment.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When *None*, the ``PVZ_LOAD_ENV``
            environment variable is consulted, falling back to
            ``"production"`` (the reference profile) if unset.

    Returns:
        The ``Config`` subclass matching the requested environment, or
        ``ProductionConfig`` if the key is unrecognised.
    """
    if env is None:
        env = os.environ.get("PVZ_LOAD_ENV", "production")
    return config.get(env, config["default"])


_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_FACTORS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """
    Convert a duration such as ``"1m"``, ``"30s"``, ``"500ms"`` or ``5`` to seconds.

    Raises:
        ConfigError: If the value is not a non-negative duration.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise ConfigError(f"Duration must not be negative: {value}")
        return float(value)

    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ConfigError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _DURATION_FACTORS[unit or "s"]


@dataclass(frozen=True)
class LoadTestSettings:
    """
    Validated, immutable view of a configuration class.

    Durations are stored in seconds; ``role`` and ``city`` are enum
    members so that a typo in an environment variable fails at start-up
    rather than as a wall of 400 responses.
    """

    base_url: str
    request_timeout: float
    role: Role
    city: City
    page: int
    limit: int
    start_date: str | None
    end_date: str | None
    include_optimized_listing: bool
    arrival_rate: int
    time_unit: float
    duration: float
    preallocated_workers: int
    max_workers: int
    error_rate_metric: str
    thresholds_path: str

    @classmethod
    def from_config(cls, config_class: type[Config], **overrides: Any) -> LoadTestSettings:
        """
        Build settings from *config_class*, applying keyword *overrides*.

        Override keys use the dataclass field names (``base_url``,
        ``arrival_rate``, ...).  ``None`` overrides are ignored so CLI
        options that were not given fall through to the config class.

        Raises:
            ConfigError: If any value is invalid.
        """
        raw: dict[str, Any] = {
            field.name: getattr(config_class, field.name.upper()) for field in fields(cls)
        }
        raw.update({key: value for key, value in overrides.items() if value is not None})

        try:
            role = Role(raw["role"])
        except ValueError as exc:
            raise ConfigError(f"Unknown role: {raw['role']!r}") from exc
        try:
            city = City(raw["city"])
        except ValueError as exc:
            raise ConfigError(f"Unknown city: {raw['city']!r}") from exc

        settings = cls(
            base_url=str(raw["base_url"]).rstrip("/"),
            request_timeout=parse_duration(raw["request_timeout"]),
            role=role,
            city=city,
            page=_as_int("page", raw["page"]),
            limit=_as_int("limit", raw["limit"]),
            start_date=raw["start_date"],
            end_date=raw["end_date"],
            include_optimized_listing=_as_bool(raw["include_optimized_listing"]),
            arrival_rate=_as_int("arrival_rate", raw["arrival_rate"]),
            time_unit=parse_duration(raw["time_unit"]),
            duration=parse_duration(raw["duration"]),
            preallocated_workers=_as_int("preallocated_workers", raw["preallocated_workers"]),
            max_workers=_as_int("max_workers", raw["max_workers"]),
            error_rate_metric=str(raw["error_rate_metric"]),
            thresholds_path=str(raw["thresholds_path"]),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            ConfigError: On the first violated constraint.
        """
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(f"base_url must be an http(s) URL: {self.base_url!r}")
        for name in ("page", "limit", "arrival_rate", "preallocated_workers", "max_workers"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be a positive integer")
        if self.time_unit <= 0:
            raise ConfigError("time_unit must be greater than zero")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be greater than zero")
        if self.preallocated_workers > self.max_workers:
            raise ConfigError("preallocated_workers must not exceed max_workers")
        if not self.error_rate_metric:
            raise ConfigError("error_rate_metric must not be empty")

    @property
    def iterations_per_second(self) -> float:
        return self.arrival_rate / self.time_unit

    def with_overrides(self, **changes: Any) -> LoadTestSettings:
        """Return a validated copy with *changes* applied."""
        updated = replace(self, **changes)
        updated.validate()
        return updated
