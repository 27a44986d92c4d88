"""Tests for environment-driven settings."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from goalfolio.config import Settings
from goalfolio.db.connection import DEFAULT_DB_PATH
from goalfolio.market.amfi import AMFI_NAV_URL


class TestSettingsFromEnv:
    """Tests for reading settings from a mapping."""

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings == Settings()
        assert settings.db_path == DEFAULT_DB_PATH
        assert settings.nav_refresh_api_key is None
        assert settings.amfi_nav_url == AMFI_NAV_URL
        assert settings.port == 8000

    def test_overrides(self):
        settings = Settings.from_env(
            {
                "GOALFOLIO_DB_PATH": "/data/goals.duckdb",
                "NAV_REFRESH_API_KEY": " secret ",
                "GOALFOLIO_MAX_SYMBOLS": "10",
                "GOALFOLIO_DEFAULT_XIRR": "10.5",
                "GOALFOLIO_INFLATION": "0",
                "GOALFOLIO_PORT": "9000",
                "GOALFOLIO_VERBOSE": "yes",
            }
        )
        assert settings.db_path == Path("/data/goals.duckdb")
        assert settings.nav_refresh_api_key == "secret"
        assert settings.max_symbols == 10
        assert settings.default_xirr == 10.5
        assert settings.inflation_rate == 0.0
        assert settings.port == 9000
        assert settings.verbose is True

    def test_home_is_expanded(self):
        settings = Settings.from_env({"GOALFOLIO_DB_PATH": "~/goals.duckdb"})
        assert settings.db_path == Path.home() / "goals.duckdb"

    def test_blank_api_key_is_unset(self):
        assert Settings.from_env({"NAV_REFRESH_API_KEY": "   "}).nav_refresh_api_key is None

    @pytest.mark.parametrize(
        ("name", "raw", "field", "default"),
        [
            ("GOALFOLIO_MAX_SYMBOLS", "many", "max_symbols", 5),
            ("GOALFOLIO_MAX_SYMBOLS", "0", "max_symbols", 5),
            ("GOALFOLIO_PREFETCH_BATCH", "-3", "prefetch_batch_size", 50),
            ("GOALFOLIO_HTTP_TIMEOUT", "slow", "http_timeout", 30.0),
            ("GOALFOLIO_INFLATION", "-1", "inflation_rate", 6.0),
            ("GOALFOLIO_VERBOSE", "maybe", "verbose", False),
        ],
    )
    def test_bad_values_fall_back_to_default(self, caplog, name, raw, field, default):
        with caplog.at_level(logging.WARNING, logger="goalfolio.config"):
            settings = Settings.from_env({name: raw})
        assert getattr(settings, field) == default
        assert f"Ignoring {name}" in caplog.text

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            Settings().port = 1
