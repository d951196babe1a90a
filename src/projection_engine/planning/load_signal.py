"""Weekly load signal composition.

For each week the requested load is built from

    base = 0.60 x previous applied + 0.25 x block midpoint
           + 0.15 x (previous demand floor, else block midpoint)

shaped by the week pattern multiplier, reduced by any post-goal recovery
overlap and finally lifted to the no-history demand floor when one applies.
The result carries every intermediate value so the engine can audit it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from projection_engine.calibration import LoadSignalCalibration, NoHistoryCalibration
from projection_engine.models.enums import DAYS_PER_WEEK, BlockPhase, WeekPattern
from projection_engine.models.no_history import NoHistoryAnchor
from projection_engine.models.timeline import (
    Block,
    GoalMarker,
    RecoveryOverlap,
    RecoverySegment,
    WeekWindow,
    find_block,
    find_recovery_overlap,
)

FALLBACK_BLOCK_NAME = "Build"
FALLBACK_PHASE = BlockPhase.BUILD


@dataclass(frozen=True)
class PatternResult:
    pattern: WeekPattern
    multiplier: float
    reason_codes: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GoalInfluence:
    goal: GoalMarker
    pattern: WeekPattern  # EVENT or TAPER
    multiplier: float
    score: float


def base_week_pattern(
    phase: BlockPhase, week_in_block: int, calibration: LoadSignalCalibration
) -> PatternResult:
    """Block rhythm: taper phase, every Nth week deload, else a ramp wave."""
    if phase == BlockPhase.TAPER:
        return PatternResult(WeekPattern.TAPER, calibration.taper_phase_multiplier, ("pattern_taper_phase",))
    if (week_in_block + 1) % calibration.deload_every_n_weeks == 0:
        return PatternResult(WeekPattern.DELOAD, calibration.deload_multiplier, ("pattern_block_deload",))
    step = week_in_block % len(calibration.ramp_wave)
    return PatternResult(
        WeekPattern.RAMP, calibration.ramp_wave[step], (f"pattern_ramp_wave_step_{step}",)
    )


def _interpolate(bounds: tuple[float, float], progress: float) -> float:
    low, high = bounds
    return round(low + (high - low) * progress, 3)


def goal_influence(
    goal: GoalMarker, week: WeekWindow, calibration: LoadSignalCalibration
) -> GoalInfluence | None:
    """Event influence for a goal inside the week, taper influence for one
    at most ``taper_influence_window_days`` after it, else None."""
    if week.contains(goal.target_date):
        return GoalInfluence(
            goal=goal,
            pattern=WeekPattern.EVENT,
            multiplier=_interpolate(calibration.event_multiplier_range, goal.priority_progress),
            score=float(goal.priority_weight),
        )
    days_until = (goal.target_date - week.end_date).days
    window = calibration.taper_influence_window_days
    if days_until < 0 or days_until > window:
        return None
    proximity = (window + 1 - days_until) / (window + 1)
    return GoalInfluence(
        goal=goal,
        pattern=WeekPattern.TAPER,
        multiplier=_interpolate(calibration.taper_multiplier_range, goal.priority_progress),
        score=goal.priority_weight * proximity,
    )


def _dominant(influences: Sequence[GoalInfluence]) -> GoalInfluence:
    """Highest score; on ties EVENT beats TAPER, then the earlier goal."""
    dominant = influences[0]
    for influence in influences[1:]:
        if influence.score > dominant.score:
            dominant = influence
        elif influence.score < dominant.score:
            continue
        elif influence.pattern == WeekPattern.EVENT and dominant.pattern != WeekPattern.EVENT:
            dominant = influence
        elif (
            influence.pattern == dominant.pattern
            and influence.goal.target_date < dominant.goal.target_date
        ):
            dominant = influence
    return dominant


def week_pattern(
    phase: BlockPhase,
    week_in_block: int,
    week: WeekWindow,
    goals: Sequence[GoalMarker],
    calibration: LoadSignalCalibration,
) -> PatternResult:
    """Pattern and multiplier for a week, blending in goal proximity.

    Several goals blend by score-weighted multiplier; the blend never
    exceeds the block rhythm multiplier. The dominant influence names the
    pattern.
    """
    base = base_week_pattern(phase, week_in_block, calibration)
    influences = [
        influence
        for influence in (goal_influence(goal, week, calibration) for goal in goals)
        if influence is not None
    ]
    total = sum(influence.score for influence in influences)
    if not influences or total <= 0:
        return base

    weighted = sum(i.multiplier * (i.score / total) for i in influences)
    dominant = _dominant(influences)
    codes = base.reason_codes + tuple(
        f"pattern_goal_{i.pattern.name.lower()}_{i.goal.id}" for i in influences
    )
    return PatternResult(
        pattern=dominant.pattern,
        multiplier=round(min(base.multiplier, weighted), 3),
        reason_codes=codes,
    )


def rolling_base_load(
    previous_week_load: float,
    block_midpoint: float,
    demand_floor_signal: float | None,
    calibration: LoadSignalCalibration,
) -> float:
    """Rolling base of the week before pattern shaping."""
    floor_signal = block_midpoint if demand_floor_signal is None else demand_floor_signal
    base = (
        previous_week_load * calibration.previous_week_weight
        + block_midpoint * calibration.block_midpoint_weight
        + floor_signal * calibration.demand_floor_weight
    )
    return round(max(0.0, base), 1)


def recovery_reduction_factor(
    overlap: RecoveryOverlap, days_in_week: int, calibration: LoadSignalCalibration
) -> float:
    """``1 - 0.35 x covered fraction`` of the week."""
    coverage = overlap.overlap_days / max(1, days_in_week)
    return round(1.0 - calibration.max_recovery_reduction * coverage, 3)


def demand_rhythm_multiplier(
    pattern: WeekPattern,
    week_index: int,
    weeks_to_event: int,
    calibration: LoadSignalCalibration,
) -> float:
    """Rhythm applied to the demand floor so it follows the week shape."""
    if pattern == WeekPattern.EVENT:
        return calibration.rhythm_event
    if pattern == WeekPattern.RECOVERY:
        return calibration.rhythm_recovery
    if pattern == WeekPattern.TAPER:
        remaining = max(0, weeks_to_event - week_index - 1)
        last, second, earlier = calibration.rhythm_taper_by_weeks_remaining
        if remaining <= 1:
            return last
        if remaining <= 2:
            return second
        return earlier
    if pattern == WeekPattern.DELOAD:
        return calibration.rhythm_deload
    wave = calibration.rhythm_ramp_wave
    return wave[week_index % len(wave)]


def blend_demand_with_confidence(demand_floor: float, baseline: float, confidence: float) -> float:
    """Move from the conservative *baseline* toward *demand_floor* by confidence."""
    base = max(0.0, baseline)
    return round(base + (demand_floor - base) * max(0.0, min(1.0, confidence)), 1)


# ---------------------------------------------------------------------------
# No-history demand floor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DemandFloorPlan:
    """Per-projection parameters of the no-history demand floor."""

    starting_ctl: float
    target_event_ctl: float
    starting_weekly_load: float
    target_weekly_floor: float
    hold_weeks: int
    weeks_to_event: int
    confidence: float

    @classmethod
    def from_anchor(
        cls, anchor: NoHistoryAnchor | None, calibration: NoHistoryCalibration
    ) -> DemandFloorPlan | None:
        """Build the plan when the anchor's floor applies, else None."""
        if anchor is None or not anchor.projection_floor_applied or anchor.projection_floor_values is None:
            return None
        starting_weekly = anchor.starting_weekly_load_for_projection
        return cls(
            starting_ctl=anchor.starting_ctl_for_projection,
            target_event_ctl=anchor.target_event_ctl,
            starting_weekly_load=starting_weekly,
            target_weekly_floor=max(anchor.projection_floor_values.start_weekly_load, starting_weekly),
            hold_weeks=math.ceil(calibration.reliable_projection_days / DAYS_PER_WEEK),
            weeks_to_event=max(0, anchor.weeks_to_event),
            confidence=anchor.evidence_confidence.score,
        )

    def progressive_floor(self, week_index: int) -> float:
        """Larger of the initial hold ramp and the linear CTL path to the event."""
        if week_index < self.hold_weeks:
            fraction = min(1.0, max(0, week_index) / max(1, self.hold_weeks - 1))
            hold = round(
                self.starting_weekly_load
                + (self.target_weekly_floor - self.starting_weekly_load) * fraction,
                1,
            )
        else:
            hold = self.target_weekly_floor

        path = 0.0
        if self.weeks_to_event > 0:
            fraction = min(1.0, (week_index + 1) / self.weeks_to_event)
            path = round(
                self.starting_ctl * (1 - fraction) + self.target_event_ctl * fraction, 1
            ) * DAYS_PER_WEEK
        return max(hold, path)


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadSignal:
    """Composed request for one week with every intermediate value."""

    week: WeekWindow
    block_name: str
    phase: BlockPhase
    pattern: WeekPattern
    pattern_multiplier: float
    previous_week_load: float
    block_midpoint_load: float
    demand_floor_signal: float | None
    rolling_base_load: float
    shaped_load: float  # after the pattern multiplier, before recovery
    recovery: RecoveryOverlap
    recovery_reduction_factor: float
    raw_requested_load: float
    requested_load: float
    floor_minimum_load: float | None = None
    demand_band_minimum_load: float | None = None
    floor_override_applied: bool = False
    reason_codes: tuple[str, ...] = field(default_factory=tuple)


class LoadSignalComposer:
    """Composes requested weekly loads for one projection.

    Holds the per-projection context (blocks, goals, recovery segments,
    baseline and demand floor plan); ``compose`` is a pure function of that
    context and the rolling inputs.
    """

    def __init__(
        self,
        blocks: Sequence[Block],
        goals: Sequence[GoalMarker],
        recovery_segments: Sequence[RecoverySegment],
        baseline_load: float,
        demand_floor: DemandFloorPlan | None,
        calibration: LoadSignalCalibration,
    ) -> None:
        self._blocks = tuple(blocks)
        self._goals = tuple(goals)
        self._segments = tuple(recovery_segments)
        self._baseline = baseline_load
        self._demand_floor = demand_floor
        self._calibration = calibration

    @property
    def demand_floor(self) -> DemandFloorPlan | None:
        return self._demand_floor

    def compose(
        self,
        week: WeekWindow,
        previous_week_load: float,
        previous_demand_floor: float | None,
    ) -> LoadSignal:
        cal = self._calibration
        block = find_block(self._blocks, week.start_date)
        if block is None:
            block_name, phase, week_in_block = FALLBACK_BLOCK_NAME, FALLBACK_PHASE, 0
            midpoint = self._baseline
        else:
            block_name, phase = block.name, block.phase
            week_in_block = block.week_index(week.start_date)
            midpoint = block.midpoint(self._baseline)

        shape = week_pattern(phase, week_in_block, week, self._goals, cal)
        codes = list(shape.reason_codes)
        if block is None:
            codes.append("block_missing_fallback_build")
        codes.append(
            "rolling_base_demand_floor_signal"
            if previous_demand_floor is not None
            else "rolling_base_demand_floor_absent"
        )

        base = rolling_base_load(previous_week_load, midpoint, previous_demand_floor, cal)
        requested = max(0.0, round(base * shape.multiplier, 1))

        overlap = find_recovery_overlap(self._segments, week)
        reduction = recovery_reduction_factor(overlap, week.days, cal)
        raw_requested = max(0.0, round(requested * reduction, 1))
        pattern = shape.pattern
        if overlap.active:
            # The goal week keeps its event tag; recovery still reduces its load
            if pattern != WeekPattern.EVENT:
                pattern = WeekPattern.RECOVERY
            codes.append(f"recovery_overlap_days_{overlap.overlap_days}")

        floor_minimum, weighted_floor = self._demand_floor_for(week, shape.pattern, overlap)
        override = weighted_floor is not None and raw_requested < weighted_floor
        final_requested = max(raw_requested, weighted_floor) if weighted_floor is not None else raw_requested
        if override:
            codes.append("demand_band_floor_override")

        return LoadSignal(
            week=week,
            block_name=block_name,
            phase=phase,
            pattern=pattern,
            pattern_multiplier=shape.multiplier,
            previous_week_load=previous_week_load,
            block_midpoint_load=midpoint,
            demand_floor_signal=previous_demand_floor,
            rolling_base_load=base,
            shaped_load=requested,
            recovery=overlap,
            recovery_reduction_factor=reduction,
            raw_requested_load=raw_requested,
            requested_load=final_requested,
            floor_minimum_load=floor_minimum,
            demand_band_minimum_load=weighted_floor,
            floor_override_applied=override,
            reason_codes=tuple(codes),
        )

    def _demand_floor_for(
        self, week: WeekWindow, pattern: WeekPattern, overlap: RecoveryOverlap
    ) -> tuple[float | None, float | None]:
        """Rhythm-adjusted and confidence-weighted floors, or (None, None)."""
        plan = self._demand_floor
        if (
            plan is None
            or week.index >= plan.weeks_to_event
            or overlap.active
            or pattern != WeekPattern.RAMP
        ):
            return None, None
        progressive = plan.progressive_floor(week.index)
        rhythm = demand_rhythm_multiplier(pattern, week.index, plan.weeks_to_event, self._calibration)
        adjusted = 0.0 if progressive <= 0 else round(progressive * rhythm, 1)
        weighted = blend_demand_with_confidence(adjusted, plan.starting_weekly_load, plan.confidence)
        return adjusted, weighted
