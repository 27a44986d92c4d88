"""Tests for logging setup."""

from __future__ import annotations

import logging

from goalfolio.log_config import setup


class TestSetup:
    """Tests for third-party logger levels."""

    def test_quiet_by_default(self):
        setup()
        assert logging.getLogger("yfinance").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_verbose_lets_third_party_through(self):
        setup(verbose=True)
        try:
            assert logging.getLogger("yfinance").level == logging.DEBUG
        finally:
            setup()
