"""Weekly load optimizer: bounded lookahead search over candidate loads.

For a week with a goal still ahead, the optimizer evaluates a handful of
loads inside the ramp-feasible interval. Each candidate is forward-simulated
for a few weeks (subsequent weeks are composed and capped normally, without
nested optimization) and scored on goal-date readiness net of volatility,
overload and deviation from the unoptimized baseline, plus a curvature
penalty that shapes the second difference of the window's weekly loads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol, Sequence

import numpy as np

from projection_engine.calibration import OptimizerCalibration
from projection_engine.math.ramp_caps import RampCapResult, feasible_load_bounds, floor_tenth
from projection_engine.math.readiness import ReadinessScorer
from projection_engine.math.rounding import round_half_up
from projection_engine.math.training_load import LoadState, simulate_daily_loads
from projection_engine.models.enums import WeekPattern
from projection_engine.models.projection import OptimizerDecision
from projection_engine.models.safety import OptimizerSettings, SafetyConfig
from projection_engine.models.timeline import GoalMarker, WeekWindow
from projection_engine.planning.load_signal import LoadSignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulatedWeek:
    """One composed, capped and simulated week."""

    signal: LoadSignal
    caps: RampCapResult
    start_state: LoadState
    end_state: LoadState

    @property
    def applied_load(self) -> float:
        return self.caps.applied_load


class WeekSimulator(Protocol):
    """Runs composer, ramp caps and state simulation for one week."""

    def simulate_week(
        self,
        week: WeekWindow,
        state: LoadState,
        previous_load: float,
        previous_demand_floor: float | None,
        requested_load: float | None = None,
    ) -> SimulatedWeek: ...


def curvature_envelope(pattern: WeekPattern, week_offset: int, calibration: OptimizerCalibration) -> float:
    """Curvature emphasis for a week: phase weight decayed by distance into the window."""
    phase_weight = calibration.curvature_phase_weight.get(pattern, 1.0)
    decay = 1.0 - week_offset * calibration.curvature_decay_per_week
    decay = max(calibration.curvature_decay_floor, min(1.0, decay))
    return round_half_up(phase_weight * decay, 3)


def curvature_penalty(
    previous_load: float,
    loads: Sequence[float],
    envelopes: Sequence[float],
    curvature: float,
    scale_reference: float,
    calibration: OptimizerCalibration,
) -> float:
    """Mean squared gap between the load series' bend and the curvature target.

    The series is ``[previous_load, *loads]``. Each interior second difference
    is normalised by ``max(scale_floor, scale_reference * scale_fraction)`` and
    compared with ``curvature * envelope * target_scale``, so a positive
    curvature favours an accelerating build and a negative one a front-loaded
    build.

    Returns:
        The penalty rounded to six decimals; 0 for fewer than two loads.
    """
    if len(loads) < 2:
        return 0.0
    series = [previous_load, *loads]
    scale = max(calibration.curvature_scale_floor, scale_reference * calibration.curvature_scale_fraction)
    total = 0.0
    for t in range(1, len(loads)):
        bend = ((series[t + 1] - series[t]) - (series[t] - series[t - 1])) / scale
        envelope = envelopes[t] if t < len(envelopes) else (envelopes[-1] if envelopes else 0.0)
        target = curvature * envelope * calibration.curvature_target_scale
        total += (bend - target) ** 2
    return round_half_up(total / (len(loads) - 1), 6)


@dataclass(frozen=True)
class CandidateScore:
    """Score breakdown of one candidate load."""

    load: float
    score: float
    goal_readiness: float
    volatility: float
    overload: float
    baseline_deviation: float
    curvature: float = 0.0


@dataclass(frozen=True)
class OptimizationResult:
    chosen_load: float
    decision: OptimizerDecision
    candidates: tuple[CandidateScore, ...]


class WeeklyLoadOptimizer:
    """Chooses each week's load by lookahead simulation.

    Args:
        weeks: Every week of the projection, in order.
        goals: Goal markers sorted by date.
        simulator: Week runner shared with the engine.
        scorer: Readiness scorer with the projection's fixed peak reference.
        settings: Profile weights and search bounds.
        config: Normalised safety config.
        calibration: Search constants and curvature shaping.
    """

    def __init__(
        self,
        weeks: Sequence[WeekWindow],
        goals: Sequence[GoalMarker],
        simulator: WeekSimulator,
        scorer: ReadinessScorer,
        settings: OptimizerSettings,
        config: SafetyConfig,
        calibration: OptimizerCalibration,
    ) -> None:
        self._weeks = tuple(weeks)
        self._goals = tuple(goals)
        self._simulator = simulator
        self._scorer = scorer
        self._settings = settings
        self._config = config
        self._calibration = calibration
        self._max_downside = calibration.max_downside_fraction
        self._tie_tolerance = calibration.score_tie_tolerance

    def is_active(self, week: WeekWindow) -> bool:
        """True while any goal falls on or after the week start."""
        return any(goal.target_date >= week.start_date for goal in self._goals)

    def candidate_loads(self, lower: float, upper: float, baseline_load: float) -> tuple[float, ...]:
        """Evenly spaced loads over [lower, upper] plus the baseline, deduplicated."""
        grid = np.linspace(lower, upper, self._settings.candidate_steps)
        loads = {min(upper, floor_tenth(float(value))) for value in grid}
        loads.add(baseline_load)
        return tuple(sorted(loads))

    def optimize(
        self,
        week: WeekWindow,
        state: LoadState,
        previous_load: float,
        previous_demand_floor: float | None,
        baseline: SimulatedWeek,
    ) -> OptimizationResult:
        """Pick the best load for *week* given the unoptimized *baseline* run."""
        baseline_load = baseline.applied_load
        lower, upper = feasible_load_bounds(
            baseline_load,
            previous_load,
            state.ctl,
            week.days,
            self._config,
            self._max_downside,
            minimum_load=baseline.signal.demand_band_minimum_load,
        )
        candidates = self.candidate_loads(lower, upper, baseline_load)
        scored = tuple(
            self._score(week, state, previous_load, previous_demand_floor, load, baseline_load)
            for load in candidates
        )
        best = self._select(scored, baseline_load)
        logger.debug(
            "Week %d: %d candidates in [%.1f, %.1f], chose %.1f (baseline %.1f)",
            week.index,
            len(scored),
            lower,
            upper,
            best.load,
            baseline_load,
        )
        return OptimizationResult(
            chosen_load=best.load,
            decision=OptimizerDecision(
                active=True,
                baseline_load=baseline_load,
                chosen_load=best.load,
                lower_bound=lower,
                upper_bound=upper,
                candidate_count=len(scored),
                score=round(best.score, 4),
            ),
            candidates=scored,
        )

    # -- Scoring ------------------------------------------------------------

    def _lookahead(
        self,
        week: WeekWindow,
        state: LoadState,
        previous_load: float,
        previous_demand_floor: float | None,
        load: float,
    ) -> tuple[list[SimulatedWeek], list[date], list[float]]:
        """Simulated weeks of the window plus its dates and daily loads."""
        first = self._simulator.simulate_week(
            week, state, previous_load, previous_demand_floor, requested_load=load
        )
        window = [first]
        dates = list(week.dates())
        daily_loads = [first.applied_load / week.days] * week.days

        current = first
        following = self._weeks[week.index + 1 : week.index + 1 + self._settings.lookahead_weeks]
        for next_week in following:
            current = self._simulator.simulate_week(
                next_week,
                current.end_state,
                current.applied_load,
                current.signal.demand_band_minimum_load,
            )
            window.append(current)
            dates.extend(next_week.dates())
            daily_loads.extend([current.applied_load / next_week.days] * next_week.days)
        return window, dates, daily_loads

    def _score(
        self,
        week: WeekWindow,
        state: LoadState,
        previous_load: float,
        previous_demand_floor: float | None,
        load: float,
        baseline_load: float,
    ) -> CandidateScore:
        window, dates, daily_loads = self._lookahead(
            week, state, previous_load, previous_demand_floor, load
        )
        applied = window[0].applied_load
        trajectory = simulate_daily_loads(state, daily_loads)
        index_by_date = {day: i for i, day in enumerate(dates)}
        window_end = dates[-1] if dates else week.end_date
        grace = self._settings.overload_grace_ctl

        goals = [g for g in self._goals if week.start_date <= g.target_date <= window_end]
        if goals:
            total_weight = sum(g.priority_weight for g in goals)
            readiness = 0.0
            overload = 0.0
            for goal in goals:
                row = trajectory.iloc[index_by_date[goal.target_date]]
                weight = goal.priority_weight / total_weight
                readiness += weight * self._scorer.signal(goal.target_date, row["ctl"], row["atl"])
                overload += weight * max(0.0, row["atl"] - row["ctl"] - grace)
        else:
            readiness = 0.0
            overflow = (trajectory["atl"] - trajectory["ctl"] - grace).clip(lower=0.0)
            overload = float(overflow.mean()) if len(overflow) else 0.0

        volatility = abs(applied - previous_load) / previous_load if previous_load > 0 else 0.0
        deviation = abs(applied - baseline_load) / baseline_load if baseline_load > 0 else 0.0

        s = self._settings
        bend = 0.0
        if s.curvature_weight > 0:
            bend = curvature_penalty(
                previous_load,
                [w.applied_load for w in window],
                [curvature_envelope(w.signal.pattern, i, self._calibration) for i, w in enumerate(window)],
                s.curvature_target,
                max(previous_load, baseline_load),
                self._calibration,
            )

        score = (
            s.goal_readiness_weight * readiness
            - s.volatility_penalty * volatility
            - s.overload_penalty * overload
            - s.baseline_deviation_penalty * deviation
            - s.curvature_weight * bend
        )
        return CandidateScore(
            load=applied,
            score=score,
            goal_readiness=readiness,
            volatility=volatility,
            overload=overload,
            baseline_deviation=deviation,
            curvature=bend,
        )

    def _select(self, scored: Sequence[CandidateScore], baseline_load: float) -> CandidateScore:
        """Highest score; near-ties go to the load closest to the baseline, then the lower load."""
        best = scored[0]
        for candidate in scored[1:]:
            if candidate.score > best.score + self._tie_tolerance:
                best = candidate
            elif abs(candidate.score - best.score) <= self._tie_tolerance:
                distance = abs(candidate.load - baseline_load)
                best_distance = abs(best.load - baseline_load)
                if distance < best_distance or (distance == best_distance and candidate.load < best.load):
                    best = candidate
        return best
