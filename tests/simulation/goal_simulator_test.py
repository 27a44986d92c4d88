"""Tests for the step-up SIP goal simulator."""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from goalfolio.simulation.goal_simulator import (
    MAX_MONTHS,
    adjust_for_inflation,
    corpus_path,
    months_to_target,
    nominal_value,
    project_goal,
    required_monthly_sip,
    simulate_step_up,
    sip_future_value,
    step_up_scenarios,
)


class TestCorpusPath:
    """Tests for the month-by-month corpus path."""

    def test_zero_return_is_sum_of_sips(self):
        path = corpus_path(1000.0, 0.0, 12)
        assert len(path) == 13
        assert path[0] == 0.0
        assert path[12] == pytest.approx(12000.0)

    def test_compounds_then_adds(self):
        path = corpus_path(1000.0, 12.0, 2)
        assert path[1] == pytest.approx(1000.0)
        assert path[2] == pytest.approx(2010.0)

    def test_step_up_raises_sip_each_year(self):
        path = corpus_path(1000.0, 0.0, 24, step_up_pct=10.0)
        assert path[12] == pytest.approx(12000.0)
        assert path[24] == pytest.approx(25200.0)

    def test_existing_corpus_grows(self):
        path = corpus_path(0.0, 12.0, 12, existing_corpus=10000.0)
        assert path[12] == pytest.approx(10000.0 * 1.01**12)

    def test_monotonic_for_positive_inputs(self):
        path = corpus_path(5000.0, 10.0, 120, step_up_pct=5.0)
        assert np.all(np.diff(path) > 0)

    def test_months_out_of_range(self):
        with pytest.raises(ValueError, match="months must be between"):
            corpus_path(1000.0, 12.0, MAX_MONTHS + 1)

    def test_months_must_be_integer(self):
        with pytest.raises(ValueError, match="months must be an integer"):
            corpus_path(1000.0, 12.0, 1.5)

    def test_negative_sip(self):
        with pytest.raises(ValueError, match="must be a non-negative number"):
            corpus_path(-1.0, 12.0, 12)


class TestSipFutureValue:
    """Tests for the level-SIP closed form."""

    def test_annuity_due(self):
        assert sip_future_value(1000.0, 12.0, 12) == pytest.approx(12809.33, abs=0.01)

    def test_zero_return(self):
        assert sip_future_value(1000.0, 0.0, 24) == 24000.0

    def test_zero_months(self):
        assert sip_future_value(1000.0, 12.0, 0) == 0.0


class TestMonthsToTarget:
    """Tests for months needed to reach a target."""

    def test_zero_return(self):
        assert months_to_target(12000.0, 1000.0, 0.0) == 12

    def test_existing_corpus_already_enough(self):
        assert months_to_target(100.0, 1000.0, 12.0, existing_corpus=200.0) == 0

    def test_unreachable(self):
        assert months_to_target(1e12, 1.0, 0.0) is None

    def test_higher_return_is_faster(self):
        slow = months_to_target(1_000_000.0, 10000.0, 6.0)
        fast = months_to_target(1_000_000.0, 10000.0, 15.0)
        assert fast < slow

    def test_target_must_be_positive(self):
        with pytest.raises(ValueError, match="target_amount must be positive"):
            months_to_target(0.0, 1000.0, 12.0)


class TestSimulateStepUp:
    """Tests for the step-up simulation outcome."""

    def test_fixed_horizon(self):
        result = simulate_step_up(1000.0, 0.0, 10.0, months=24)
        assert result.corpus == pytest.approx(25200.0)
        assert result.total_invested == pytest.approx(25200.0)
        assert result.final_sip == pytest.approx(1100.0)
        assert result.months == 24
        assert not result.target_reached

    def test_stops_when_target_reached(self):
        result = simulate_step_up(1000.0, 0.0, target_amount=5000.0)
        assert result.months == 5
        assert result.months_to_target == 5
        assert result.corpus == pytest.approx(5000.0)
        assert result.target_reached

    def test_target_tracked_within_fixed_horizon(self):
        result = simulate_step_up(1000.0, 0.0, months=12, target_amount=5000.0)
        assert result.months == 12
        assert result.months_to_target == 5

    def test_unreached_target_runs_full_horizon(self):
        result = simulate_step_up(1.0, 0.0, target_amount=1e9)
        assert result.months == MAX_MONTHS
        assert result.months_to_target is None

    def test_zero_months(self):
        result = simulate_step_up(1000.0, 12.0, months=0)
        assert result.corpus == 0.0
        assert result.final_sip == 1000.0

    def test_invalid_target(self):
        with pytest.raises(ValueError, match="target_amount must be positive"):
            simulate_step_up(1000.0, 12.0, target_amount=-5.0)


class TestProjectGoal:
    """Tests for the dated projection."""

    def test_monthly_points_for_short_horizon(self):
        result = project_goal(1000.0, 12.0, months=24, start_date=date(2024, 1, 31))
        projection = result["projection"]
        assert len(projection) == 25
        assert projection[0] == {"date": "2024-01-31", "corpus": 0.0, "months": 0}
        assert projection[1]["date"] == "2024-02-29"
        assert projection[-1]["months"] == 24

    def test_long_horizon_is_sampled(self):
        result = project_goal(1000.0, 12.0, months=120, start_date=date(2024, 1, 1))
        months = [p["months"] for p in result["projection"]]
        assert len(months) == 61
        assert months[1] == 2
        assert months[-1] == 120

    def test_default_horizon(self):
        result = project_goal(1000.0, 12.0, start_date=date(2024, 1, 1))
        assert result["summary"]["total_months"] == 60

    def test_horizon_from_target(self):
        result = project_goal(1000.0, 0.0, target_amount=5000.0, start_date=date(2024, 1, 1))
        summary = result["summary"]
        assert summary["total_months"] == 5
        assert summary["target_reached"] is True
        assert summary["months_to_target"] == 5
        assert summary["final_corpus"] == pytest.approx(5000.0)

    def test_unreachable_target_uses_max_horizon(self):
        result = project_goal(1.0, 0.0, target_amount=1e9, start_date=date(2024, 1, 1))
        assert result["summary"]["total_months"] == MAX_MONTHS
        assert result["summary"]["target_reached"] is False

    def test_summary_fields(self):
        result = project_goal(
            1000.0, 0.0, step_up_pct=10.0, months=24, start_date=date(2024, 1, 1)
        )
        summary = result["summary"]
        assert summary["total_invested"] == 25200
        assert summary["monthly_sip"] == 1000.0
        assert summary["xirr"] == 0.0
        assert summary["step_up"] == 10.0
        assert "final_corpus_real" not in summary

    def test_inflation_adjusted_corpus(self):
        result = project_goal(
            1000.0, 0.0, months=12, start_date=date(2024, 1, 1), inflation_pct=6.0
        )
        assert result["summary"]["final_corpus_real"] == pytest.approx(11320.75, abs=0.01)

    def test_sip_must_be_positive(self):
        with pytest.raises(ValueError, match="monthly_sip must be positive"):
            project_goal(0.0, 12.0)


class TestRequiredMonthlySip:
    """Tests for the required-SIP solve."""

    def test_zero_return(self):
        result = required_monthly_sip(12000.0, 12, 0.0)
        assert result.monthly_sip == 1000.0
        assert result.total_invested == 12000
        assert result.final_corpus == pytest.approx(12000.0)
        assert result.year_columns == [{"year": 1, "sip": 1000}]

    def test_step_up_schedule(self):
        result = required_monthly_sip(25200.0, 24, 0.0, step_up_pct=10.0)
        assert result.monthly_sip == 1000.0
        assert result.year_columns == [{"year": 1, "sip": 1000}, {"year": 2, "sip": 1100}]

    def test_smallest_whole_rupee_sip(self):
        target = 2_500_000.0
        result = required_monthly_sip(target, 120, 12.0, step_up_pct=5.0)
        assert corpus_path(result.monthly_sip, 12.0, 120, step_up_pct=5.0)[-1] >= target
        assert corpus_path(result.monthly_sip - 1, 12.0, 120, step_up_pct=5.0)[-1] < target

    def test_existing_corpus_sufficient(self):
        result = required_monthly_sip(10000.0, 12, 12.0, existing_corpus=20000.0)
        assert result.monthly_sip == 0.0
        assert result.total_invested == 0

    def test_zero_months_rejected(self):
        with pytest.raises(ValueError, match="months must be between"):
            required_monthly_sip(10000.0, 0, 12.0)


class TestStepUpScenarios:
    """Tests for the scenario comparison."""

    def test_higher_step_up_needs_lower_start(self):
        scenarios = step_up_scenarios(5_000_000.0, 180, 12.0)
        assert [s.step_up_percent for s in scenarios] == [0.0, 5.0, 10.0, 15.0, 20.0]
        sips = [s.monthly_sip for s in scenarios]
        assert sips == sorted(sips, reverse=True)


class TestInflation:
    """Tests for real and nominal value conversion."""

    def test_adjust_for_inflation(self):
        assert adjust_for_inflation(106.0, 12, 6.0) == pytest.approx(100.0)

    def test_nominal_value(self):
        assert nominal_value(100.0, 24, 6.0) == pytest.approx(112.36)

    def test_negative_months_rejected(self):
        with pytest.raises(ValueError, match="months must be non-negative"):
            adjust_for_inflation(100.0, -1)
