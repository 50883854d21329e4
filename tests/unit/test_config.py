"""Unit tests for configuration loading and validation."""

from __future__ import annotations

import pytest

from pvz_load.config import (
    City,
    DevelopmentConfig,
    LoadTestSettings,
    ProductionConfig,
    Role,
    get_config,
    parse_duration,
)
from pvz_load.errors import ConfigError

pytestmark = pytest.mark.unit


class TestGetConfig:
    def test_known_environments(self):
        assert get_config("development") is DevelopmentConfig
        assert get_config("production") is ProductionConfig

    def test_unknown_environment_falls_back_to_reference_profile(self):
        assert get_config("staging") is ProductionConfig

    def test_env_var_selects_class(self, monkeypatch):
        monkeypatch.setenv("PVZ_LOAD_ENV", "development")

        assert get_config() is DevelopmentConfig


class TestReferenceProfile:
    def test_production_defaults_match_reference_load(self):
        # Act
        settings = LoadTestSettings.from_config(ProductionConfig)

        # Assert
        assert settings.role is Role.MODERATOR
        assert settings.city is City.MOSCOW
        assert (settings.page, settings.limit) == (1, 10)
        assert settings.iterations_per_second == 1000
        assert settings.duration == 60.0
        assert (settings.preallocated_workers, settings.max_workers) == (100, 500)
        assert settings.include_optimized_listing is False


class TestOverrides:
    def test_none_overrides_are_ignored(self, settings):
        rebuilt = LoadTestSettings.from_config(get_config("testing"), base_url=None, role=None)

        assert rebuilt == settings

    def test_overrides_replace_values(self):
        settings = LoadTestSettings.from_config(
            get_config("testing"),
            base_url="http://localhost:9000/",
            role="employee",
            city="Kazan",
            duration="90s",
        )

        assert settings.base_url == "http://localhost:9000"
        assert settings.role is Role.EMPLOYEE
        assert settings.city is City.KAZAN
        assert settings.duration == 90.0

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"role": "admin"}, "Unknown role"),
            ({"city": "Paris"}, "Unknown city"),
            ({"base_url": "localhost:8080"}, "base_url must be"),
            ({"limit": 0}, "limit must be a positive integer"),
            ({"arrival_rate": -5}, "arrival_rate must be a positive integer"),
            ({"preallocated_workers": 10, "max_workers": 5}, "must not exceed max_workers"),
            ({"duration": "soon"}, "Invalid duration"),
        ],
    )
    def test_invalid_values_raise_config_error(self, overrides, message):
        with pytest.raises(ConfigError, match=message):
            LoadTestSettings.from_config(get_config("testing"), **overrides)

    @pytest.mark.parametrize("attribute", ["PAGE", "LIMIT", "ARRIVAL_RATE", "MAX_WORKERS"])
    def test_non_integer_environment_value_raises_config_error(self, monkeypatch, attribute):
        # Arrange - what a typo such as PVZ_PAGE=abc leaves on the class
        monkeypatch.setattr(get_config("testing"), attribute, "abc")

        # Act / Assert
        with pytest.raises(ConfigError, match=f"{attribute.lower()} must be an integer"):
            LoadTestSettings.from_config(get_config("testing"))

    def test_include_optimized_flag_accepts_env_strings(self, monkeypatch):
        monkeypatch.setattr(get_config("testing"), "INCLUDE_OPTIMIZED_LISTING", "yes")

        assert LoadTestSettings.from_config(get_config("testing")).include_optimized_listing is True

    def test_with_overrides_validates(self, settings):
        with pytest.raises(ConfigError):
            settings.with_overrides(page=0)


class TestParseDuration:
    @pytest.mark.parametrize(
        "raw, seconds",
        [("1m", 60.0), ("30s", 30.0), ("500ms", 0.5), ("2h", 7200.0), ("15", 15.0), (2.5, 2.5)],
    )
    def test_supported_formats(self, raw, seconds):
        assert parse_duration(raw) == seconds

    def test_negative_number_rejected(self):
        with pytest.raises(ConfigError):
            parse_duration(-1)
