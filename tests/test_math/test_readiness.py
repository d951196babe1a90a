"""Tests for per-point readiness, plan feasibility and goal aggregation."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from projection_engine.calibration import ReadinessCalibration
from projection_engine.math.readiness import (
    ReadinessScorer,
    aggregate_goal_readiness,
    compute_plan_feasibility,
    days_to_nearest_goal,
    form_weight,
    optimal_target_tsb,
    peak_ctl_reference,
    readiness_signal,
    score_readiness,
    smooth_goal_readiness,
)
from projection_engine.math.rounding import round_half_up_int
from projection_engine.models.enums import ReadinessBand
from projection_engine.models.projection import DailyPoint
from projection_engine.models.timeline import GoalMarker


@pytest.fixture
def cal() -> ReadinessCalibration:
    return ReadinessCalibration()


def _point(on_date: date, readiness: int) -> DailyPoint:
    return DailyPoint(on_date, 300.0, 40.0, 38.0, 2.0, readiness)


class TestFormWeight:
    def test_no_goals_uses_minimum(self, cal: ReadinessCalibration) -> None:
        assert form_weight(None, cal) == 0.2

    def test_near_goal_uses_maximum(self, cal: ReadinessCalibration) -> None:
        assert form_weight(0, cal) == 0.5
        assert form_weight(14, cal) == 0.5

    def test_far_from_goal_uses_minimum(self, cal: ReadinessCalibration) -> None:
        assert form_weight(100, cal) == 0.2
        assert form_weight(250, cal) == 0.2

    def test_interpolates_linearly(self, cal: ReadinessCalibration) -> None:
        assert form_weight(57, cal) == pytest.approx(0.35)


class TestDaysToNearestGoal:
    def test_none_without_goals(self) -> None:
        assert days_to_nearest_goal(date(2026, 3, 1), ()) is None

    def test_absolute_distance(self) -> None:
        goals = (
            GoalMarker("a", "A", date(2026, 3, 1)),
            GoalMarker("b", "B", date(2026, 3, 20)),
        )
        assert days_to_nearest_goal(date(2026, 3, 4), goals) == 3


class TestReadinessSignal:
    @pytest.mark.parametrize(
        "ctl,atl",
        [(0.0, 0.0), (40.0, 40.0), (80.0, 20.0), (20.0, 90.0), (150.0, 150.0), (-5.0, 10.0)],
    )
    def test_bounded(self, cal: ReadinessCalibration, ctl: float, atl: float) -> None:
        assert 0.0 <= readiness_signal(ctl, atl, 20.0, 50.0, 30, cal) <= 1.0

    def test_fresh_beats_fatigued_near_goal(self, cal: ReadinessCalibration) -> None:
        fresh = readiness_signal(45.0, 37.0, 20.0, 50.0, 0, cal)
        fatigued = readiness_signal(45.0, 75.0, 20.0, 50.0, 0, cal)
        assert fresh > fatigued

    def test_fitness_gain_raises_signal(self, cal: ReadinessCalibration) -> None:
        low = readiness_signal(25.0, 25.0, 20.0, 50.0, 120, cal)
        high = readiness_signal(45.0, 45.0, 20.0, 50.0, 120, cal)
        assert high > low


class TestScoreReadiness:
    def test_integer_in_range(self, cal: ReadinessCalibration) -> None:
        for signal in (0.0, 0.42, 1.0):
            score = score_readiness(signal, cal)
            assert isinstance(score, int)
            assert 0 <= score <= 100

    def test_low_band_caps_score(self, cal: ReadinessCalibration) -> None:
        feasibility = compute_plan_feasibility(1000.0, 200.0, 8, 8, 0.2, 12, cal)
        assert feasibility.readiness_band == ReadinessBand.LOW
        assert score_readiness(1.0, cal, feasibility) == 80

    def test_half_score_rounds_up(self, cal: ReadinessCalibration) -> None:
        assert score_readiness(0.125, cal) == 13


class TestReadinessScorer:
    def test_matches_readiness_signal(self, cal: ReadinessCalibration) -> None:
        goal = GoalMarker("g", "Goal", date(2026, 3, 28))
        scorer = ReadinessScorer(start_ctl=20.0, peak_ctl=50.0, goals=(goal,), calibration=cal)
        on_date = date(2026, 3, 20)
        expected = readiness_signal(40.0, 35.0, 20.0, 50.0, 8, cal)
        assert scorer.signal(on_date, 40.0, 35.0) == pytest.approx(expected)
        assert scorer.score(on_date, 40.0, 35.0) == round_half_up_int(expected * 100)

    def test_short_event_wants_fresher_form(self, cal: ReadinessCalibration) -> None:
        goal_date = date(2026, 3, 28)
        sprint = ReadinessScorer(
            20.0, 50.0, (GoalMarker("5k", "5K", goal_date, 1, event_duration_hours=0.3),), cal
        )
        ultra = ReadinessScorer(
            20.0, 50.0, (GoalMarker("ultra", "Ultra", goal_date, 1, event_duration_hours=8.0),), cal
        )
        # TSB 15 suits the sprint, TSB 3 the ultra
        assert sprint.signal(goal_date, 50.0, 35.0) > ultra.signal(goal_date, 50.0, 35.0)
        assert ultra.signal(goal_date, 50.0, 47.0) > sprint.signal(goal_date, 50.0, 47.0)

    def test_nearest_goal_sets_form_target(self, cal: ReadinessCalibration) -> None:
        near = GoalMarker("near", "Near", date(2026, 3, 10), 1, event_duration_hours=0.3)
        far = GoalMarker("far", "Far", date(2026, 5, 10), 1, event_duration_hours=8.0)
        scorer = ReadinessScorer(20.0, 50.0, (near, far), cal)
        on_date = date(2026, 3, 9)
        expected = readiness_signal(50.0, 35.0, 20.0, 50.0, 1, cal, target_tsb=15.0)
        assert scorer.signal(on_date, 50.0, 35.0) == pytest.approx(expected)


class TestOptimalTargetTsb:
    @pytest.mark.parametrize(
        "hours,expected",
        [
            (None, 8.0),
            (0.0, 8.0),
            (-2.0, 8.0),
            (0.25, 15.0),
            (0.5, 12.0),
            (1.2, 12.0),
            (2.0, 8.0),
            (3.5, 5.0),
            (5.0, 3.0),
            (12.0, 3.0),
        ],
    )
    def test_duration_thresholds(
        self, cal: ReadinessCalibration, hours: float | None, expected: float
    ) -> None:
        assert optimal_target_tsb(hours, cal) == expected

    def test_nan_uses_default(self, cal: ReadinessCalibration) -> None:
        assert optimal_target_tsb(float("nan"), cal) == cal.target_tsb


class TestPeakCtlReference:
    def test_block_targets(self) -> None:
        assert peak_ctl_reference([210.0, 280.0], None, 20.0) == 40.0

    def test_event_target_dominates(self) -> None:
        assert peak_ctl_reference([210.0], 60.0, 20.0) == 60.0

    def test_at_least_one(self) -> None:
        assert peak_ctl_reference([], None, 0.0) == 1.0


class TestPlanFeasibility:
    def test_unreachable_demand_is_low_band(self, cal: ReadinessCalibration) -> None:
        result = compute_plan_feasibility(1000.0, 200.0, 8, 8, 0.2, 12, cal)
        assert result.demand_gap.unmet_weekly_load == 800.0
        assert result.demand_gap.unmet_ratio == 0.8
        assert result.readiness_score == 11
        assert result.dominant_limiters == (
            "required_growth_exceeds_caps",
            "load_ramp_cap_pressure",
            "ctl_ramp_cap_pressure",
            "low_evidence_confidence",
        )
        assert "readiness_penalty_demand_gap" in result.rationale_codes

    def test_met_demand_is_high_band(self, cal: ReadinessCalibration) -> None:
        result = compute_plan_feasibility(300.0, 300.0, 0, 0, 0.9, 12, cal)
        assert result.readiness_band == ReadinessBand.HIGH
        assert result.readiness_score == 99
        assert result.dominant_limiters == ()
        assert "readiness_credit_evidence_confidence_high" in result.rationale_codes

    def test_uncertainty_range(self, cal: ReadinessCalibration) -> None:
        result = compute_plan_feasibility(300.0, 300.0, 0, 0, 0.9, 12, cal)
        assert result.uncertainty.load_likely == 300.0
        assert result.uncertainty.load_low == 276.0
        assert result.uncertainty.load_high == 324.0
        assert result.uncertainty.confidence == 0.92

    def test_zero_requirement_is_fully_met(self, cal: ReadinessCalibration) -> None:
        result = compute_plan_feasibility(0.0, 150.0, 0, 0, 0.6, 8, cal)
        assert result.demand_gap.unmet_weekly_load == 0.0
        assert result.demand_gap.unmet_ratio == 0.0


class TestAggregateGoalReadiness:
    def test_empty_goals_raise(self) -> None:
        with pytest.raises(ValueError):
            aggregate_goal_readiness([_point(date(2026, 3, 1), 50)], [])

    def test_no_points_is_zero(self) -> None:
        assert aggregate_goal_readiness([], [GoalMarker("g", "G", date(2026, 3, 1))]) == 0.0

    def test_priority_weighted_mean(self) -> None:
        a_date, c_date = date(2026, 3, 1), date(2026, 3, 8)
        goals = [GoalMarker("a", "A", a_date, 1), GoalMarker("c", "C", c_date, 10)]
        points = [_point(a_date, 80), _point(c_date, 30)]
        assert aggregate_goal_readiness(points, goals) == pytest.approx((80 * 10 + 30 * 1) / 11)

    def test_missing_goal_date_uses_nearest_point(self) -> None:
        start = date(2026, 3, 1)
        points = [_point(start + timedelta(days=i), 40 + i) for i in range(5)]
        goal = GoalMarker("late", "Late", start + timedelta(days=30))
        assert aggregate_goal_readiness(points, [goal]) == 44


class TestGoalPeakShaping:
    START = date(2026, 3, 1)

    def _dates(self, days: int) -> list[date]:
        return [self.START + timedelta(days=i) for i in range(days)]

    def test_without_goals_unchanged(self, cal: ReadinessCalibration) -> None:
        raw = [40, 45, 50, 55]
        assert smooth_goal_readiness(self._dates(4), raw, (), cal) == raw

    def test_goal_date_is_window_maximum(self, cal: ReadinessCalibration) -> None:
        dates = self._dates(60)
        raw = [30 + i for i in range(60)]
        goal = GoalMarker("race", "Race", dates[30], 1)
        shaped = smooth_goal_readiness(dates, raw, (goal,), cal)
        # Priority 1 goals use an 18-day window
        assert shaped[30] == max(shaped[12:49])
        assert len(shaped) == len(raw)
        assert all(isinstance(s, int) and 0 <= s <= 100 for s in shaped)

    def test_flat_scores_peak_on_goal(self, cal: ReadinessCalibration) -> None:
        dates = self._dates(30)
        goal = GoalMarker("race", "Race", dates[15], 1)
        shaped = smooth_goal_readiness(dates, [50] * 30, (goal,), cal)
        assert shaped[15] > 50
        assert shaped[15] == max(shaped)

    def test_goal_beyond_points_anchors_last_point(self, cal: ReadinessCalibration) -> None:
        dates = self._dates(10)
        goal = GoalMarker("late", "Late", self.START + timedelta(days=45), 1)
        shaped = smooth_goal_readiness(dates, [50] * 10, (goal,), cal)
        assert shaped[-1] == max(shaped)

    def test_deterministic(self, cal: ReadinessCalibration) -> None:
        dates = self._dates(30)
        raw = [(i * 37) % 90 for i in range(30)]
        goals = (GoalMarker("a", "A", dates[10], 1), GoalMarker("b", "B", dates[25], 5))
        assert smooth_goal_readiness(dates, raw, goals, cal) == smooth_goal_readiness(dates, raw, goals, cal)

    def test_scorer_keeps_band_ceiling(self, cal: ReadinessCalibration) -> None:
        feasibility = compute_plan_feasibility(1000.0, 200.0, 8, 8, 0.2, 12, cal)
        assert feasibility.readiness_band == ReadinessBand.LOW
        dates = self._dates(30)
        goal = GoalMarker("race", "Race", dates[15], 1)
        scorer = ReadinessScorer(20.0, 40.0, (goal,), cal, feasibility)
        shaped = scorer.shape_peaks(dates, [75] * 30)
        assert all(s <= 80 for s in shaped)
        assert shaped[15] == max(shaped)
