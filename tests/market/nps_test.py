"""Tests for the NPS NAV adapter."""

from __future__ import annotations

import json

import pytest

from goalfolio.market._http import UpstreamError
from goalfolio.market.nps import fetch_nps_nav, parse_nps_payload


class TestParseNpsPayload:
    """Tests for interpreting npsnav.in responses."""

    def test_valid(self):
        result = parse_nps_payload("SM008001", {"NAV": "45.1234", "Last Updated": "15-01-2024"})
        assert result == {"fund_code": "SM008001", "nav": 45.1234, "nav_date": "2024-01-15"}

    def test_not_a_dict(self):
        with pytest.raises(ValueError, match="Unexpected NPS NAV payload"):
            parse_nps_payload("SM008001", ["NAV", 45])

    def test_missing_nav(self):
        with pytest.raises(ValueError, match="no numeric 'NAV'"):
            parse_nps_payload("SM008001", {"Last Updated": "15-01-2024"})

    def test_non_positive_nav(self):
        with pytest.raises(ValueError, match="must be positive"):
            parse_nps_payload("SM008001", {"NAV": 0, "Last Updated": "15-01-2024"})

    def test_bad_date(self):
        with pytest.raises(ValueError, match="bad 'Last Updated'"):
            parse_nps_payload("SM008001", {"NAV": 45.0, "Last Updated": "2024-01-15"})


class TestFetchNpsNav:
    """Tests for fetching one fund's NAV."""

    def test_fetch(self, feed_server):
        feed_server.routes["/api/detailed/SM008001"] = (
            200,
            json.dumps({"NAV": 45.5, "Last Updated": "15-01-2024"}),
        )
        result = fetch_nps_nav(
            " SM008001 ", url_template=f"{feed_server.url}/api/detailed/{{fund_code}}"
        )
        assert result["nav"] == 45.5
        assert result["fund_code"] == "SM008001"

    def test_invalid_json(self, feed_server):
        feed_server.routes["/api/detailed/SM008001"] = (200, "<html>down</html>")
        with pytest.raises(UpstreamError, match="invalid JSON"):
            fetch_nps_nav(
                "SM008001", url_template=f"{feed_server.url}/api/detailed/{{fund_code}}"
            )

    def test_blank_code(self):
        with pytest.raises(ValueError, match="fund_code must be a non-empty string"):
            fetch_nps_nav("  ")
