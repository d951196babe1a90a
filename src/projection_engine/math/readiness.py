"""Readiness scoring: per-point readiness and plan-level feasibility.

Per-point readiness blends three signals in [0, 1]:

- fitness: progress of CTL toward a scaled peak (progressive curve) mixed
  with the absolute CTL level,
- fatigue: penalty for ATL exceeding CTL,
- form: closeness of TSB to a race-day target set by the nearest goal's
  event duration (shorter events want more freshness).

The form weight rises as the nearest goal approaches, so the score tracks
freshness near goal dates and fitness development far from them. Displayed
daily scores are then shaped so each goal date peaks within its window.

References:
    Mujika & Padilla (2003). Scientific bases for precompetition tapering
        strategies. Med Sci Sports Exerc 35(7):1182-1187.
    Coggan & Allen (2010). Training and Racing with a Power Meter, 2nd ed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

import numpy as np

from projection_engine.calibration import ReadinessCalibration
from projection_engine.math.rounding import round_half_up_int
from projection_engine.models.enums import DAYS_PER_WEEK, MAX_GOAL_PRIORITY, ReadinessBand
from projection_engine.models.projection import (
    DailyPoint,
    DemandGap,
    PlanFeasibility,
    ProjectionUncertainty,
    ReadinessComponents,
)
from projection_engine.models.timeline import GoalMarker


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def days_to_nearest_goal(on_date: date, goals: Sequence[GoalMarker]) -> int | None:
    """Absolute distance in days to the closest goal, or None without goals."""
    if not goals:
        return None
    return min(abs((goal.target_date - on_date).days) for goal in goals)


def nearest_goal(on_date: date, goals: Sequence[GoalMarker]) -> GoalMarker | None:
    """Closest goal to *on_date*; equal distances go to the earlier goal."""
    if not goals:
        return None
    return min(goals, key=lambda goal: (abs((goal.target_date - on_date).days), goal.target_date))


def optimal_target_tsb(duration_hours: float | None, calibration: ReadinessCalibration) -> float:
    """Race-day TSB target for an event lasting *duration_hours*.

    Short events want more freshness than long ones, which need less taper
    to keep endurance. Unknown or non-positive durations use
    ``calibration.target_tsb``.
    """
    if duration_hours is None or not duration_hours > 0:
        return calibration.target_tsb
    for below_hours, target in calibration.optimal_tsb_by_duration:
        if duration_hours < below_hours:
            return target
    return calibration.optimal_tsb_ultra


def form_weight(days_to_goal: int | None, calibration: ReadinessCalibration) -> float:
    """Weight of the form signal given the distance to the nearest goal.

    Interpolates linearly from ``form_weight_max`` (at or inside
    ``form_weight_near_days``) to ``form_weight_min`` (at or beyond
    ``form_weight_far_days``). Plans without goals use the minimum.
    """
    if days_to_goal is None:
        return calibration.form_weight_min
    distance = abs(days_to_goal)
    if distance <= calibration.form_weight_near_days:
        return calibration.form_weight_max
    if distance >= calibration.form_weight_far_days:
        return calibration.form_weight_min
    span = calibration.form_weight_far_days - calibration.form_weight_near_days
    fraction = (distance - calibration.form_weight_near_days) / span
    return calibration.form_weight_max - fraction * (
        calibration.form_weight_max - calibration.form_weight_min
    )


def readiness_signal(
    ctl: float,
    atl: float,
    start_ctl: float,
    peak_ctl: float,
    days_to_goal: int | None,
    calibration: ReadinessCalibration,
    target_tsb: float | None = None,
) -> float:
    """Unrounded readiness in [0, 1] for one state.

    Args:
        ctl: Fitness at the point.
        atl: Fatigue at the point.
        start_ctl: CTL at the start of the plan.
        peak_ctl: Peak CTL reference fixed before simulation.
        days_to_goal: Distance to the nearest goal, or None without goals.
        calibration: Readiness weights.
        target_tsb: Form target; None uses ``calibration.target_tsb``.

    Returns:
        Blended readiness signal.
    """
    ctl = max(0.0, ctl)
    atl = max(0.0, atl)
    peak = max(1.0, peak_ctl)
    scaled_peak = peak * calibration.peak_ctl_scaling

    span = scaled_peak - start_ctl
    if span > 0:
        progress = _clamp01((ctl - start_ctl) / span)
    else:
        progress = _clamp01(ctl / scaled_peak)
    progressive = 1.0 - (1.0 - progress) ** calibration.progressive_fitness_exponent
    absolute = _clamp01(ctl / scaled_peak)
    fitness = (
        calibration.progressive_fitness_weight * progressive
        + calibration.absolute_fitness_weight * absolute
    )

    overflow = max(0.0, atl - ctl)
    fatigue = _clamp01(1.0 - overflow / max(1.0, calibration.fatigue_overflow_scale * peak))
    if target_tsb is None:
        target_tsb = calibration.target_tsb
    form = _clamp01(1.0 - abs((ctl - atl) - target_tsb) / calibration.form_tolerance)

    w_form = form_weight(days_to_goal, calibration)
    w_fatigue = calibration.fatigue_weight
    w_fitness = max(0.0, 1.0 - w_form - w_fatigue)
    return _clamp01(w_form * form + w_fatigue * fatigue + w_fitness * fitness)


def score_ceiling(calibration: ReadinessCalibration, plan_feasibility: PlanFeasibility | None) -> float:
    """Highest score a point may show: the feasibility band's ceiling, else 100."""
    if plan_feasibility is None:
        return 100.0
    return calibration.band_ceiling[plan_feasibility.readiness_band]


def score_readiness(
    signal: float,
    calibration: ReadinessCalibration,
    plan_feasibility: PlanFeasibility | None = None,
) -> int:
    """Convert a readiness signal to a 0-100 score.

    For no-history plans the plan feasibility score is blended in and its
    band caps the result.
    """
    if plan_feasibility is not None:
        weight = calibration.feasibility_blend_weight
        signal = (1.0 - weight) * signal + weight * plan_feasibility.readiness_score / 100.0
    score = min(signal * 100.0, score_ceiling(calibration, plan_feasibility))
    return max(0, min(100, round_half_up_int(score)))


@dataclass(frozen=True)
class ReadinessScorer:
    """Scores states of one projection against a fixed peak reference."""

    start_ctl: float
    peak_ctl: float
    goals: tuple[GoalMarker, ...]
    calibration: ReadinessCalibration
    plan_feasibility: PlanFeasibility | None = None

    def signal(self, on_date: date, ctl: float, atl: float) -> float:
        """Readiness signal with the form target of the nearest goal's event."""
        goal = nearest_goal(on_date, self.goals)
        return readiness_signal(
            ctl,
            atl,
            self.start_ctl,
            self.peak_ctl,
            days_to_nearest_goal(on_date, self.goals),
            self.calibration,
            target_tsb=None if goal is None else optimal_target_tsb(goal.event_duration_hours, self.calibration),
        )

    def score(self, on_date: date, ctl: float, atl: float) -> int:
        return score_readiness(self.signal(on_date, ctl, atl), self.calibration, self.plan_feasibility)

    def shape_peaks(self, dates: Sequence[date], scores: Sequence[int]) -> list[int]:
        """Goal-anchored peak shaping of daily *scores*, kept under the band ceiling."""
        plan_score = None if self.plan_feasibility is None else self.plan_feasibility.readiness_score
        shaped = smooth_goal_readiness(dates, scores, self.goals, self.calibration, plan_score)
        ceiling = score_ceiling(self.calibration, self.plan_feasibility)
        return [int(min(score, ceiling)) for score in shaped]


def peak_ctl_reference(
    block_loads: Iterable[float],
    target_event_ctl: float | None,
    starting_ctl: float,
) -> float:
    """Peak CTL the readiness fitness signal is measured against.

    Fixed before simulation so candidate trajectories are comparable: the
    largest of the steady-state CTL of any block target, the no-history
    event target and the starting CTL (at least 1).
    """
    candidates = [load / DAYS_PER_WEEK for load in block_loads]
    if target_event_ctl is not None:
        candidates.append(target_event_ctl)
    candidates.append(starting_ctl)
    return max(1.0, *candidates)


def compute_plan_feasibility(
    required_peak_weekly_load: float,
    feasible_peak_weekly_load: float,
    load_ramp_clamp_weeks: int,
    ctl_ramp_clamp_weeks: int,
    confidence: float,
    projection_weeks: int,
    calibration: ReadinessCalibration,
) -> PlanFeasibility:
    """Plan-level feasibility of a no-history projection.

    Compares the demanded peak weekly load with the peak the caps allowed,
    folds in how often the caps bit and how confident the evidence is, and
    derives a band plus an uncertainty range around the likely peak load.
    """
    unmet = max(0.0, round(required_peak_weekly_load - feasible_peak_weekly_load, 1))
    if required_peak_weekly_load <= 0:
        unmet_ratio = 0.0
        fulfillment = 1.0
    else:
        unmet_ratio = round(unmet / required_peak_weekly_load, 3)
        fulfillment = _clamp01(feasible_peak_weekly_load / required_peak_weekly_load)
    pressure = _clamp01(
        (load_ramp_clamp_weeks + ctl_ramp_clamp_weeks) / max(1, projection_weeks)
    )
    confidence = _clamp01(confidence)

    load_state = _clamp01(fulfillment * 0.75 + (1 - unmet_ratio) * 0.25 - pressure * 0.35)
    intensity_balance = _clamp01(1 - pressure * 0.7 - min(0.12, load_ramp_clamp_weeks * 0.04))
    specificity = _clamp01(fulfillment * 0.85 + (1 - pressure) * 0.15)
    execution_confidence = _clamp01(confidence * 0.8 + (1 - pressure) * 0.2)
    score = round_half_up_int(
        (
            load_state * 0.35
            + intensity_balance * 0.25
            + specificity * 0.25
            + execution_confidence * 0.15
        )
        * 100
    )

    if score >= calibration.band_high_threshold:
        band = ReadinessBand.HIGH
    elif score >= calibration.band_medium_threshold:
        band = ReadinessBand.MEDIUM
    else:
        band = ReadinessBand.LOW

    limiters = []
    if unmet > 0:
        limiters.append("required_growth_exceeds_caps")
    if load_ramp_clamp_weeks > 0:
        limiters.append("load_ramp_cap_pressure")
    if ctl_ramp_clamp_weeks > 0:
        limiters.append("ctl_ramp_cap_pressure")
    if confidence < 0.5:
        limiters.append("low_evidence_confidence")

    rationale = []
    if fulfillment < 0.85:
        rationale.append("readiness_penalty_demand_gap")
    if pressure > 0.15:
        rationale.append("readiness_penalty_clamp_pressure")
    if confidence >= 0.75:
        rationale.append("readiness_credit_evidence_confidence_high")

    uncertainty_pct = min(0.28, max(0.08, 0.06 + (1 - confidence) * 0.18 + pressure * 0.05))
    likely = round(max(0.0, feasible_peak_weekly_load), 1)
    delta = round(likely * uncertainty_pct, 1)

    return PlanFeasibility(
        demand_gap=DemandGap(
            required_weekly_load_target=round(required_peak_weekly_load, 1),
            feasible_weekly_load_applied=round(feasible_peak_weekly_load, 1),
            unmet_weekly_load=unmet,
            unmet_ratio=unmet_ratio,
        ),
        readiness_band=band,
        readiness_score=score,
        readiness_components=ReadinessComponents(
            load_state=round(load_state, 3),
            intensity_balance=round(intensity_balance, 3),
            specificity=round(specificity, 3),
            execution_confidence=round(execution_confidence, 3),
        ),
        uncertainty=ProjectionUncertainty(
            load_low=round(max(0.0, likely - delta), 1),
            load_likely=likely,
            load_high=round(likely + delta, 1),
            confidence=round(1 - uncertainty_pct, 3),
        ),
        dominant_limiters=tuple(limiters),
        rationale_codes=tuple(rationale),
    )


def _point_for_goal(points: Sequence[DailyPoint], goal: GoalMarker) -> DailyPoint:
    for point in points:
        if point.date == goal.target_date:
            return point
    return min(points, key=lambda p: abs((p.date - goal.target_date).days))


def aggregate_goal_readiness(
    points: Sequence[DailyPoint], goals: Sequence[GoalMarker]
) -> float:
    """Priority-weighted mean readiness score at goal dates.

    A goal whose date has no point uses the nearest point.

    Raises:
        ValueError: If *goals* is empty.
    """
    if not goals:
        raise ValueError("aggregate_goal_readiness requires at least one goal")
    if not points:
        return 0.0
    total_weight = 0.0
    weighted = 0.0
    for goal in goals:
        weight = goal.priority_weight
        weighted += weight * _point_for_goal(points, goal).readiness_score
        total_weight += weight
    return weighted / total_weight


# ---------------------------------------------------------------------------
# Goal-anchored peak shaping
# ---------------------------------------------------------------------------


def _clamp_scores(values: np.ndarray) -> np.ndarray:
    return np.clip(np.floor(values + 0.5), 0.0, 100.0)


def _clamp_score(value: float) -> float:
    return float(max(0, min(100, round_half_up_int(value))))


@dataclass(frozen=True)
class _PeakAnchor:
    index: int
    window: int
    base_peak: float
    slope: float


def _peak_anchors(
    dates: Sequence[date],
    goals: Sequence[GoalMarker],
    feasibility: float,
    calibration: ReadinessCalibration,
) -> list[_PeakAnchor]:
    index_by_date = {on_date: i for i, on_date in enumerate(dates)}
    anchors = []
    for goal in goals:
        index = index_by_date.get(goal.target_date)
        if index is None:
            index = min(range(len(dates)), key=lambda i: abs((dates[i] - goal.target_date).days))
        weight = goal.priority_weight / MAX_GOAL_PRIORITY
        anchors.append(
            _PeakAnchor(
                index=index,
                window=round_half_up_int(
                    calibration.peak_window_base_days + weight * calibration.peak_window_priority_days
                ),
                base_peak=_clamp_score(
                    calibration.peak_base_score
                    + weight * calibration.peak_priority_score
                    + feasibility * calibration.peak_feasibility_score
                ),
                slope=calibration.peak_slope_base + weight * calibration.peak_slope_priority,
            )
        )
    return sorted(anchors, key=lambda anchor: anchor.index)


def smooth_goal_readiness(
    dates: Sequence[date],
    scores: Sequence[int],
    goals: Sequence[GoalMarker],
    calibration: ReadinessCalibration,
    plan_readiness_score: float | None = None,
) -> list[int]:
    """Reshape daily readiness so each goal date peaks within its window.

    Each pass smooths interior points toward their raw value and their
    neighbours, lifts every goal date to at least its base peak (and above
    anything else in its window), caps the points around it, limits the
    day-to-day step in both directions and blends a little of the raw
    score back in. After the last pass each goal date is raised to the
    maximum of its window.

    Window, base peak and slope grow with goal urgency: a priority 1 goal
    has the widest window and the highest base peak.

    Args:
        dates: Consecutive point dates.
        scores: Raw 0-100 scores, one per date.
        goals: Goal markers; without goals the scores are returned unchanged.
        calibration: Smoothing constants.
        plan_readiness_score: Plan feasibility score feeding the base peak;
            None uses ``default_plan_readiness_score``.

    Returns:
        Shaped integer scores in [0, 100].
    """
    if not scores or not goals:
        return list(scores)

    c = calibration
    plan_score = c.default_plan_readiness_score if plan_readiness_score is None else plan_readiness_score
    anchors = _peak_anchors(dates, goals, _clamp01(plan_score / 100.0), c)

    raw = np.asarray(scores, dtype=float)
    shaped = raw.copy()
    last = len(shaped) - 1
    lam = c.peak_smoothing_lambda
    step = c.peak_max_step

    for _ in range(c.peak_smoothing_iterations):
        if len(shaped) > 2:
            shaped[1:-1] = _clamp_scores(
                (raw[1:-1] + lam * shaped[:-2] + lam * shaped[2:]) / (1.0 + 2.0 * lam)
            )

        for anchor in anchors:
            start = max(0, anchor.index - anchor.window)
            end = min(last, anchor.index + anchor.window)
            local_max = float(shaped[start : end + 1].max())
            shaped[anchor.index] = _clamp_score(
                max(shaped[anchor.index], anchor.base_peak, local_max + 1.0)
            )
            goal_score = shaped[anchor.index]
            for i in range(start, end + 1):
                if i == anchor.index:
                    continue
                distance = abs((dates[i] - dates[anchor.index]).days)
                cap = _clamp_score(goal_score - max(0, anchor.window - distance) * anchor.slope)
                shaped[i] = min(shaped[i], cap)

        for i in range(1, len(shaped)):
            prev = shaped[i - 1]
            shaped[i] = _clamp_score(min(prev + step, max(prev - step, shaped[i])))
        for i in range(len(shaped) - 2, -1, -1):
            following = shaped[i + 1]
            shaped[i] = _clamp_score(min(following + step, max(following - step, shaped[i])))

        shaped = _clamp_scores(shaped * (1.0 - c.peak_raw_blend) + raw * c.peak_raw_blend)

    for anchor in anchors:
        start = max(0, anchor.index - anchor.window)
        end = min(last, anchor.index + anchor.window)
        shaped[anchor.index] = _clamp_score(max(shaped[anchor.index], shaped[start : end + 1].max()))

    return [int(value) for value in shaped]
