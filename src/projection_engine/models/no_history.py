"""No-history inputs and the anchor the resolver derives from them.

Used when an athlete has no usable training history: qualitative evidence
markers, weekly availability and structured goal targets stand in for the
missing load record.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from projection_engine.models.enums import (
    BuildFeasibility,
    ConfidenceLevel,
    EvidenceMarker,
    FitnessLevel,
    GoalTargetType,
    GoalTier,
    HistoryState,
)

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvidenceMarkers:
    """Qualitative summary of what is known about the athlete."""

    recent_consistency_marker: EvidenceMarker | None = None
    effort_confidence_marker: EvidenceMarker | None = None
    profile_metric_completeness_marker: EvidenceMarker | None = None
    signal_quality: float | None = None  # 0.0 - 1.0
    rationale_codes: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AvailabilityWindow:
    """A training window within one day, in minutes since midnight."""

    start_minute_of_day: int
    end_minute_of_day: int

    @property
    def duration_minutes(self) -> int:
        return max(0, self.end_minute_of_day - self.start_minute_of_day)


@dataclass(frozen=True)
class AvailabilityDay:
    """Training windows available on a weekday (e.g. ``"monday"``)."""

    day: str
    windows: tuple[AvailabilityWindow, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AvailabilityContext:
    """Weekly availability used to cap the no-history load floor."""

    availability_days: tuple[AvailabilityDay, ...] = field(default_factory=tuple)
    hard_rest_days: tuple[str, ...] = field(default_factory=tuple)
    max_single_session_duration_minutes: int | None = None


@dataclass(frozen=True)
class IntensityModel:
    """Partial override of the assumed intensity factors."""

    version: str | None = None
    weak_if: float | None = None
    strong_if: float | None = None
    conservative_if: float | None = None


@dataclass(frozen=True)
class GoalTarget:
    """Structured goal target carrying a fitness demand."""

    target_type: GoalTargetType
    distance_m: float | None = None  # race_performance only
    target_time_s: float | None = None  # race_performance only


@dataclass(frozen=True)
class NoHistoryContext:
    """Everything the anchor resolver needs."""

    history_state: HistoryState
    goal_tier: GoalTier | None  # None: derive from goal_targets
    weeks_to_event: float
    goal_targets: tuple[GoalTarget, ...] = field(default_factory=tuple)
    total_horizon_weeks: float | None = None
    goal_count: int | None = None
    starting_ctl_override: float | None = None
    evidence: EvidenceMarkers | None = None
    availability: AvailabilityContext | None = None
    intensity_model: IntensityModel | None = None


# ---------------------------------------------------------------------------
# Pipeline intermediates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoHistoryEvidence:
    strong_signal_tokens: tuple[str, ...] = field(default_factory=tuple)
    rationale_codes: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FitnessInference:
    fitness_level: FitnessLevel
    reasons: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ProjectionFloor:
    """Unclamped starting floor from the fitness x tier matrix."""

    goal_tier: GoalTier
    fitness_level: FitnessLevel
    start_ctl_floor: float
    start_weekly_load_floor: float
    target_event_ctl: float


@dataclass(frozen=True)
class FloorClampResult:
    """Starting floor after the availability clamp."""

    start_ctl: float
    start_weekly_load: float
    floor_clamped_by_availability: bool
    reasons: tuple[str, ...]
    intensity_model_version: str


@dataclass(frozen=True)
class DemandBand:
    """Minimum / target / stretch band around a demand value."""

    min: float
    target: float
    stretch: float


@dataclass(frozen=True)
class GoalDemandProfile:
    required_event_demand_range: DemandBand
    required_peak_weekly_load: DemandBand
    demand_confidence: ConfidenceLevel
    minimum_confidence_score: float
    rationale_codes: tuple[str, ...]


@dataclass(frozen=True)
class EvidenceConfidence:
    """Confidence score in [0, 1] for the no-history evidence."""

    score: float
    state: HistoryState
    reasons: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FloorValues:
    start_ctl: float
    start_weekly_load: float


@dataclass(frozen=True)
class NoHistoryAnchor:
    """Resolved no-history anchor.

    ``projection_floor_applied`` is False once the evidence state is
    ``RICH``; the remaining diagnostics are still populated so callers can
    show why no floor was used.
    """

    projection_floor_applied: bool
    projection_floor_values: FloorValues | None
    fitness_level: FitnessLevel
    fitness_inference_reasons: tuple[str, ...]
    projection_floor_confidence: ConfidenceLevel
    floor_clamped_by_availability: bool
    projection_floor_tier: GoalTier
    starting_state_is_prior: bool
    target_event_ctl: float
    weeks_to_event: int
    periodization_feasibility: BuildFeasibility
    build_phase_warnings: tuple[str, ...]
    intensity_model_version: str
    starting_ctl_for_projection: float
    starting_weekly_load_for_projection: float
    required_event_demand_range: DemandBand
    required_peak_weekly_load: DemandBand
    evidence_confidence: EvidenceConfidence
    demand_confidence: ConfidenceLevel
