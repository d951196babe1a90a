"""Projection output: daily points, audited microcycles and the full payload."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from projection_engine.models.enums import BlockPhase, ReadinessBand, WeekPattern
from projection_engine.models.no_history import NoHistoryAnchor
from projection_engine.models.safety import SafetyConfig
from projection_engine.models.timeline import GoalMarker, RecoverySegment


@dataclass(frozen=True)
class DailyPoint:
    """Projected state at the end of one day."""

    date: date
    weekly_load: float  # applied load of the week containing this day
    ctl: float
    atl: float
    tsb: float
    readiness_score: int = 0  # 0 - 100


# ---------------------------------------------------------------------------
# Per-week audit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecoveryAudit:
    active: bool = False
    goal_ids: tuple[str, ...] = field(default_factory=tuple)
    reduction_factor: float = 1.0


@dataclass(frozen=True)
class LoadRampAudit:
    """How the week's load went from rolling base to applied value."""

    previous_week_load: float
    seed_weekly_load: float
    seed_source: str  # "starting_ctl" | "baseline_fallback"
    rolling_base_load: float
    block_midpoint_load: float
    demand_floor_signal: float | None
    pattern_multiplier: float
    raw_requested_load: float  # after pattern and recovery shaping
    requested_load: float  # after the demand floor and any optimizer choice
    applied_load: float
    max_weekly_load_ramp_pct: float
    cap_by_pct: float
    clamped: bool
    floor_override_applied: bool = False
    floor_minimum_load: float | None = None
    demand_band_minimum_load: float | None = None
    demand_gap_unmet_load: float = 0.0
    override_reason: str | None = None


@dataclass(frozen=True)
class CtlRampAudit:
    requested_ctl_ramp: float
    applied_ctl_ramp: float
    max_ctl_ramp_per_week: float
    clamped: bool


@dataclass(frozen=True)
class OptimizerDecision:
    """What the optimizer did for one week (inactive weeks keep defaults)."""

    active: bool = False
    baseline_load: float | None = None
    chosen_load: float | None = None
    lower_bound: float | None = None
    upper_bound: float | None = None
    candidate_count: int = 0
    score: float | None = None


@dataclass(frozen=True)
class WeekAudit:
    """Every clamp, floor and override decision made for one week."""

    recovery: RecoveryAudit
    load_ramp: LoadRampAudit
    ctl_ramp: CtlRampAudit
    optimizer: OptimizerDecision = field(default_factory=OptimizerDecision)
    reason_codes: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WeeklyMicrocycle:
    week_index: int
    start_date: date
    end_date: date
    block_name: str
    phase: BlockPhase
    pattern: WeekPattern
    applied_load: float
    projected_ctl: float
    audit: WeekAudit


# ---------------------------------------------------------------------------
# Plan-level feasibility (no-history plans)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DemandGap:
    required_weekly_load_target: float
    feasible_weekly_load_applied: float
    unmet_weekly_load: float
    unmet_ratio: float


@dataclass(frozen=True)
class ReadinessComponents:
    load_state: float
    intensity_balance: float
    specificity: float
    execution_confidence: float


@dataclass(frozen=True)
class ProjectionUncertainty:
    load_low: float
    load_likely: float
    load_high: float
    confidence: float


@dataclass(frozen=True)
class PlanFeasibility:
    demand_gap: DemandGap
    readiness_band: ReadinessBand
    readiness_score: int
    readiness_components: ReadinessComponents
    uncertainty: ProjectionUncertainty
    dominant_limiters: tuple[str, ...] = field(default_factory=tuple)
    rationale_codes: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Summary and payload
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartingState:
    ctl: float
    atl: float
    tsb: float
    is_prior: bool
    seed_weekly_load: float
    seed_source: str


@dataclass(frozen=True)
class OptimizerSummary:
    """Which projection was returned and why.

    ``selected`` is ``"optimized"``, ``"baseline"`` or ``"disabled"``.
    """

    enabled: bool
    selected: str
    active_weeks: int = 0
    optimized_goal_readiness: float | None = None
    baseline_goal_readiness: float | None = None


@dataclass(frozen=True)
class ConstraintSummary:
    config: SafetyConfig
    load_ramp_clamp_weeks: int
    ctl_ramp_clamp_weeks: int
    recovery_weeks: int
    floor_override_weeks: int
    starting_state: StartingState
    optimizer: OptimizerSummary


@dataclass(frozen=True)
class ProjectionPayload:
    """Complete projection result.

    ``daily_points`` holds one point per timeline day; ``weekly_points`` holds
    the week-end snapshots plus any goal day not aligned to a week end.
    """

    start_date: date
    end_date: date
    daily_points: tuple[DailyPoint, ...]
    weekly_points: tuple[DailyPoint, ...]
    goal_markers: tuple[GoalMarker, ...]
    microcycles: tuple[WeeklyMicrocycle, ...]
    recovery_segments: tuple[RecoverySegment, ...]
    constraint_summary: ConstraintSummary
    no_history: NoHistoryAnchor | None = None
    plan_feasibility: PlanFeasibility | None = None
    goal_readiness: float | None = None  # priority-weighted, 0 - 100

    def point_on(self, on_date: date) -> DailyPoint | None:
        """Return the daily point for *on_date*, or None."""
        for point in self.daily_points:
            if point.date == on_date:
                return point
        return None
