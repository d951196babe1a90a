"""No-history anchor resolution.

When an athlete has no usable training history the projection cannot start
from measured CTL. This module infers a starting floor and an event demand
from qualitative evidence, availability and goal structure. Each pipeline
step is a public function so it can be tested and reused on its own;
``resolve_no_history_anchor`` chains them.
"""

from __future__ import annotations

import math
from typing import Sequence

from projection_engine.calibration import NoHistoryCalibration
from projection_engine.math.rounding import round_half_up_int
from projection_engine.models.enums import (
    DAYS_PER_WEEK,
    BuildFeasibility,
    ConfidenceLevel,
    EvidenceMarker,
    FitnessLevel,
    GoalTargetType,
    GoalTier,
    HistoryState,
)
from projection_engine.models.no_history import (
    AvailabilityContext,
    DemandBand,
    EvidenceConfidence,
    EvidenceMarkers,
    FitnessInference,
    FloorClampResult,
    FloorValues,
    GoalDemandProfile,
    GoalTarget,
    IntensityModel,
    NoHistoryAnchor,
    NoHistoryContext,
    NoHistoryEvidence,
    ProjectionFloor,
)

# Minimum whole weeks to event for a full / limited build, per goal tier
_BUILD_WEEKS: dict[GoalTier, tuple[int, int]] = {
    GoalTier.HIGH: (16, 12),
    GoalTier.MEDIUM: (12, 8),
    GoalTier.LOW: (8, 6),
}

_FEASIBILITY_CONFIDENCE = {
    BuildFeasibility.FULL: ConfidenceLevel.HIGH,
    BuildFeasibility.LIMITED: ConfidenceLevel.MEDIUM,
    BuildFeasibility.INSUFFICIENT: ConfidenceLevel.LOW,
}

# Distance thresholds (metres) for tier inference from race targets
_HIGH_TIER_DISTANCE_M = 30_000
_MEDIUM_TIER_DISTANCE_M = 10_000

_LONG_HORIZON_WEEKS = 52


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def whole_weeks(value: float | None) -> int:
    """Whole, non-negative weeks; non-finite input counts as zero."""
    if value is None or not math.isfinite(value):
        return 0
    return max(0, math.floor(value))


def weekly_load_from_ctl(ctl: float) -> float:
    """Steady-state weekly load that holds CTL at *ctl*."""
    return float(round_half_up_int(ctl * DAYS_PER_WEEK))


# ---------------------------------------------------------------------------
# (a) evidence and (b) fitness inference
# ---------------------------------------------------------------------------


def collect_evidence(
    markers: EvidenceMarkers | None, calibration: NoHistoryCalibration
) -> NoHistoryEvidence:
    """Collect independent strong-signal tokens from the evidence markers."""
    if markers is None:
        return NoHistoryEvidence()

    tokens = []
    if markers.recent_consistency_marker == EvidenceMarker.HIGH:
        tokens.append("strong_consistency_marker")
    if markers.effort_confidence_marker == EvidenceMarker.HIGH:
        tokens.append("strong_effort_marker")
    if markers.profile_metric_completeness_marker == EvidenceMarker.HIGH:
        tokens.append("strong_profile_metrics_marker")
    if (markers.signal_quality or 0.0) >= calibration.strong_signal_quality:
        tokens.append("strong_signal_quality_score")

    return NoHistoryEvidence(
        strong_signal_tokens=tuple(tokens),
        rationale_codes=tuple(markers.rationale_codes),
    )


def infer_fitness_level(
    evidence: NoHistoryEvidence, calibration: NoHistoryCalibration
) -> FitnessInference:
    """Strong only with at least two independent strong signals, else weak."""
    if len(evidence.strong_signal_tokens) >= calibration.strong_signal_count:
        return FitnessInference(
            fitness_level=FitnessLevel.STRONG,
            reasons=(
                *evidence.strong_signal_tokens,
                "fitness_promoted_to_strong_two_independent_signals",
            ),
        )
    return FitnessInference(
        fitness_level=FitnessLevel.WEAK,
        reasons=(
            *evidence.strong_signal_tokens,
            "fitness_defaulted_to_weak_insufficient_strong_signals",
        ),
    )


# ---------------------------------------------------------------------------
# (c) projection floor and (d) availability clamp
# ---------------------------------------------------------------------------


def derive_projection_floor(
    goal_tier: GoalTier,
    fitness_level: FitnessLevel,
    calibration: NoHistoryCalibration,
) -> ProjectionFloor:
    """Look up the starting CTL floor and derive the target event CTL."""
    start_ctl = calibration.start_ctl_floor[fitness_level][goal_tier]
    low, high = calibration.target_event_ctl_bounds
    target = round(max(low, min(high, start_ctl * calibration.target_event_ctl_factor)), 1)
    return ProjectionFloor(
        goal_tier=goal_tier,
        fitness_level=fitness_level,
        start_ctl_floor=start_ctl,
        start_weekly_load_floor=weekly_load_from_ctl(start_ctl),
        target_event_ctl=target,
    )


def count_training_days(availability: AvailabilityContext) -> int:
    """Days that are not hard rest days and offer at least one window."""
    return sum(
        1
        for day in availability.availability_days
        if day.day not in availability.hard_rest_days
        and any(window.duration_minutes > 0 for window in day.windows)
    )


def available_weekly_minutes(availability: AvailabilityContext) -> int:
    """Total window minutes over non-rest days, each capped by the max session."""
    cap = availability.max_single_session_duration_minutes
    total = 0
    for day in availability.availability_days:
        if day.day in availability.hard_rest_days:
            continue
        for window in day.windows:
            duration = window.duration_minutes
            total += duration if cap is None else min(duration, cap)
    return total


def clamp_floor_by_availability(
    floor: ProjectionFloor,
    availability: AvailabilityContext | None,
    intensity_model: IntensityModel | None,
    calibration: NoHistoryCalibration,
) -> FloorClampResult:
    """Lower the floor to what the athlete's weekly availability can deliver.

    Feasible weekly load is ``hours x 100 x IF^2`` (one hour at threshold
    scores 100), using the intensity factor assumed for the inferred fitness
    level.
    """
    model = intensity_model or IntensityModel()
    version = model.version or calibration.intensity_model_version

    if availability is None:
        return FloorClampResult(
            start_ctl=floor.start_ctl_floor,
            start_weekly_load=floor.start_weekly_load_floor,
            floor_clamped_by_availability=False,
            reasons=("availability_missing_skip_floor_clamp",),
            intensity_model_version=version,
        )

    weak_if = model.weak_if if model.weak_if is not None else calibration.weak_intensity_factor
    strong_if = model.strong_if if model.strong_if is not None else calibration.strong_intensity_factor
    conservative_if = (
        model.conservative_if
        if model.conservative_if is not None
        else calibration.conservative_intensity_factor
    )
    intensity = strong_if if floor.fitness_level == FitnessLevel.STRONG else weak_if
    if not math.isfinite(intensity):
        intensity = conservative_if

    minutes = available_weekly_minutes(availability)
    feasible = max(0, round_half_up_int((minutes / 60) * 100 * intensity**2))
    clamped_weekly = min(floor.start_weekly_load_floor, feasible)
    start_ctl = round(clamped_weekly / DAYS_PER_WEEK, 1)
    start_weekly = weekly_load_from_ctl(start_ctl)
    clamped = start_weekly < floor.start_weekly_load_floor

    reasons = [f"availability_training_days_{count_training_days(availability)}"]
    if model.weak_if is None or model.strong_if is None:
        reasons.append("intensity_model_missing_using_conservative_baseline")
    if clamped:
        reasons.append("floor_clamped_by_availability")

    return FloorClampResult(
        start_ctl=start_ctl,
        start_weekly_load=start_weekly,
        floor_clamped_by_availability=clamped,
        reasons=tuple(reasons),
        intensity_model_version=version,
    )


# ---------------------------------------------------------------------------
# (e) goal demand
# ---------------------------------------------------------------------------


def derive_goal_tier_from_targets(targets: Sequence[GoalTarget]) -> GoalTier:
    """Infer a goal tier from structured targets (no targets means medium)."""
    if not targets:
        return GoalTier.MEDIUM
    medium = False
    for target in targets:
        if target.target_type == GoalTargetType.RACE_PERFORMANCE:
            distance = target.distance_m or 0.0
            if distance >= _HIGH_TIER_DISTANCE_M:
                return GoalTier.HIGH
            if distance >= _MEDIUM_TIER_DISTANCE_M:
                medium = True
            continue
        medium = True
    return GoalTier.MEDIUM if medium else GoalTier.LOW


def demand_band(target: float) -> DemandBand:
    return DemandBand(
        min=round(target * 0.85, 1),
        target=round(target, 1),
        stretch=round(target * 1.15, 1),
    )


def confidence_score_floor(
    confidence: ConfidenceLevel, calibration: NoHistoryCalibration
) -> float:
    return calibration.confidence_score_floor[confidence]


def _race_demand(
    target: GoalTarget, tier_bias: float, calibration: NoHistoryCalibration
) -> tuple[float, float, bool]:
    """Demand CTL, aggregation weight and whether a pace target was present."""
    distance_km = max(1.0, min(100.0, (target.distance_m or 0.0) / 1000))
    distance_ctl = calibration.distance_ctl_base + calibration.distance_ctl_scale * math.log(
        1 + distance_km
    )
    pace_boost = 0.0
    paced = False
    if target.target_time_s is not None and math.isfinite(target.target_time_s) and target.target_time_s > 0:
        speed_kph = distance_km * 3600 / target.target_time_s
        pace_boost = max(
            0.0,
            min(
                calibration.pace_boost_cap,
                (speed_kph - calibration.pace_baseline_kph) * calibration.pace_boost_per_kph,
            ),
        )
        paced = True
    weight = 1 + min(0.8, distance_km / 60) + (0.25 if pace_boost > 0 else 0.0)
    return distance_ctl + pace_boost + tier_bias, weight, paced


def derive_goal_demand_profile(
    targets: Sequence[GoalTarget],
    goal_tier: GoalTier,
    weeks_to_event: float,
    calibration: NoHistoryCalibration,
) -> GoalDemandProfile:
    """Continuous event demand derived from structured goal targets.

    Each target maps to a demand CTL; several targets aggregate as
    ``0.7 x max + 0.3 x weighted mean``. A near event raises the demand
    through the horizon pressure term, a distant one lowers it.
    """
    tier_rank = int(goal_tier)
    tier_bias = calibration.tier_bias_ctl * tier_rank
    reasons = ["demand_model_dynamic_continuous_v1", f"goal_tier_{goal_tier.name.lower()}"]

    candidates: list[float] = []
    weights: list[float] = []
    has_pace = False
    for target in targets:
        if target.target_type == GoalTargetType.RACE_PERFORMANCE:
            demand, weight, paced = _race_demand(target, tier_bias, calibration)
            has_pace = has_pace or paced
            reasons.append(
                "race_performance_target_with_pace" if paced else "race_performance_target_without_pace"
            )
        elif target.target_type == GoalTargetType.PACE_THRESHOLD:
            demand, weight = calibration.pace_threshold_ctl + tier_bias, 1.0
            reasons.append("pace_threshold_target_included")
        elif target.target_type == GoalTargetType.POWER_THRESHOLD:
            demand, weight = calibration.power_threshold_ctl + tier_bias, 1.05
            reasons.append("power_threshold_target_included")
        else:
            demand, weight = calibration.hr_threshold_ctl + tier_bias, 0.95
            reasons.append("hr_threshold_target_included")
        candidates.append(demand)
        weights.append(weight)

    if candidates:
        weighted_mean = sum(c * w for c, w in zip(candidates, weights)) / sum(weights)
        intrinsic = max(candidates) * 0.7 + weighted_mean * 0.3
        reasons.append(
            "multi_goal_demand_aggregation_max_weighted"
            if len(candidates) > 1
            else "single_goal_demand_applied"
        )
    else:
        intrinsic = 48.0 + tier_rank * 8.0
        reasons.append("goal_targets_missing_using_dynamic_tier_baseline")

    weeks = whole_weeks(weeks_to_event)
    low_pressure, high_pressure = calibration.horizon_pressure_bounds
    pressure = max(
        low_pressure,
        min(high_pressure, (calibration.horizon_reference_weeks - weeks) / calibration.horizon_reference_weeks),
    )
    reasons.append(f"event_horizon_weeks_{weeks}")
    if pressure > 0.25:
        reasons.append("horizon_pressure_short")
    elif pressure < -0.1:
        reasons.append("horizon_pressure_extended")
    else:
        reasons.append("horizon_pressure_balanced")

    low, high = calibration.demand_ctl_bounds
    target_ctl = round(
        max(low, min(high, intrinsic * (1 + pressure * calibration.horizon_demand_scale))), 1
    )

    if weeks >= 16:
        confidence = ConfidenceLevel.HIGH
    elif weeks >= 10:
        confidence = ConfidenceLevel.MEDIUM
    else:
        confidence = ConfidenceLevel.LOW
    intrinsic_floor = _clamp01((target_ctl - 45) / 55)
    demand_floor = min(0.94, 0.5 + intrinsic_floor * 0.38 + (0.04 if has_pace else 0.0))

    return GoalDemandProfile(
        required_event_demand_range=demand_band(target_ctl),
        required_peak_weekly_load=demand_band(target_ctl * DAYS_PER_WEEK),
        demand_confidence=confidence,
        minimum_confidence_score=max(confidence_score_floor(confidence, calibration), demand_floor),
        rationale_codes=tuple(dict.fromkeys(reasons)),
    )


# ---------------------------------------------------------------------------
# (f) build feasibility and (g) evidence confidence
# ---------------------------------------------------------------------------


def classify_build_feasibility(goal_tier: GoalTier, weeks_to_event: float) -> BuildFeasibility:
    """Whether the weeks to the event allow a full periodized build."""
    weeks = whole_weeks(weeks_to_event)
    full, limited = _BUILD_WEEKS[goal_tier]
    if weeks >= full:
        return BuildFeasibility.FULL
    if weeks >= limited:
        return BuildFeasibility.LIMITED
    return BuildFeasibility.INSUFFICIENT


def feasibility_confidence(feasibility: BuildFeasibility) -> ConfidenceLevel:
    return _FEASIBILITY_CONFIDENCE[feasibility]


def derive_evidence_confidence(
    history_state: HistoryState,
    markers: EvidenceMarkers | None,
    calibration: NoHistoryCalibration,
) -> EvidenceConfidence:
    """Blend history state, signal quality and marker quality into a score.

    Any rationale code mentioning ``stale`` reclassifies the state as STALE.
    """
    markers = markers or EvidenceMarkers()
    stale = any("stale" in code for code in markers.rationale_codes)
    state = HistoryState.STALE if stale else history_state

    reasons = [f"confidence_state_{state.name.lower()}"]
    if stale:
        reasons.append("confidence_discount_stale_history")

    quality = _clamp01(
        calibration.default_signal_quality if markers.signal_quality is None else markers.signal_quality
    )
    confidence = calibration.evidence_base_by_state[state] * 0.7 + quality * 0.3

    if markers.effort_confidence_marker == EvidenceMarker.HIGH:
        confidence += calibration.effort_marker_adjustment
        reasons.append("confidence_boost_effort_marker_high")
    elif markers.effort_confidence_marker == EvidenceMarker.LOW:
        confidence -= calibration.effort_marker_adjustment
        reasons.append("confidence_penalty_effort_marker_low")

    if markers.profile_metric_completeness_marker == EvidenceMarker.HIGH:
        confidence += calibration.profile_marker_adjustment
        reasons.append("confidence_boost_profile_metrics_high")
    elif markers.profile_metric_completeness_marker == EvidenceMarker.LOW:
        confidence -= calibration.profile_marker_adjustment
        reasons.append("confidence_penalty_profile_metrics_low")

    return EvidenceConfidence(
        score=max(calibration.evidence_min_by_state[state], _clamp01(confidence)),
        state=state,
        reasons=tuple(reasons),
    )


# ---------------------------------------------------------------------------
# Full resolution
# ---------------------------------------------------------------------------


def _downgrade_confidence(
    confidence: ConfidenceLevel,
    fitness: FitnessInference,
    context: NoHistoryContext,
    clamp: FloorClampResult,
) -> tuple[ConfidenceLevel, list[str]]:
    reasons = []
    if fitness.fitness_level == FitnessLevel.WEAK and confidence == ConfidenceLevel.HIGH:
        confidence = ConfidenceLevel.MEDIUM
        reasons.append("confidence_downgraded_weak_fitness_inference")
    if (context.goal_count or 1) > 1:
        if confidence == ConfidenceLevel.HIGH:
            confidence = ConfidenceLevel.MEDIUM
        reasons.append("confidence_downgraded_multi_goal_plan")
    horizon = (
        context.total_horizon_weeks
        if context.total_horizon_weeks is not None
        else context.weeks_to_event
    )
    if horizon > _LONG_HORIZON_WEEKS:
        if confidence == ConfidenceLevel.HIGH:
            confidence = ConfidenceLevel.MEDIUM
        reasons.append("confidence_downgraded_long_horizon")
    if clamp.floor_clamped_by_availability and confidence == ConfidenceLevel.HIGH:
        confidence = ConfidenceLevel.MEDIUM
        reasons.append("confidence_downgraded_availability_clamped")
    return confidence, reasons


def resolve_no_history_anchor(
    context: NoHistoryContext, calibration: NoHistoryCalibration
) -> NoHistoryAnchor:
    """Run the full no-history pipeline for *context*.

    The floor applies only while the evidence state is not RICH. The starting
    CTL for the projection is the caller's override when given, otherwise
    the availability-clamped floor.
    A declared goal tier is used as given; without one the tier is derived
    from the structured goal targets.
    """
    tier = context.goal_tier
    if tier is None:
        tier = derive_goal_tier_from_targets(context.goal_targets)

    evidence = collect_evidence(context.evidence, calibration)
    fitness = infer_fitness_level(evidence, calibration)
    floor = derive_projection_floor(tier, fitness.fitness_level, calibration)
    clamp = clamp_floor_by_availability(
        floor, context.availability, context.intensity_model, calibration
    )
    feasibility = classify_build_feasibility(tier, context.weeks_to_event)
    confidence, confidence_reasons = _downgrade_confidence(
        feasibility_confidence(feasibility), fitness, context, clamp
    )

    override = context.starting_ctl_override
    has_override = override is not None and math.isfinite(override) and override >= 0
    starting_ctl = round(override if has_override else clamp.start_ctl, 1)

    demand = derive_goal_demand_profile(
        context.goal_targets, tier, context.weeks_to_event, calibration
    )
    evidence_confidence = derive_evidence_confidence(
        context.history_state, context.evidence, calibration
    )
    effective_score = max(
        evidence_confidence.score,
        confidence_score_floor(demand.demand_confidence, calibration),
        demand.minimum_confidence_score,
    )
    evidence_reasons = evidence_confidence.reasons
    if effective_score > evidence_confidence.score:
        evidence_reasons = (
            *evidence_reasons,
            f"confidence_floor_from_goal_demand_{demand.demand_confidence.name.lower()}",
        )
    floor_applied = evidence_confidence.state != HistoryState.RICH

    warnings: tuple[str, ...] = ()
    if feasibility == BuildFeasibility.LIMITED:
        warnings = ("build_time_limited",)
    elif feasibility == BuildFeasibility.INSUFFICIENT:
        warnings = ("build_time_insufficient",)

    return NoHistoryAnchor(
        projection_floor_applied=floor_applied,
        projection_floor_values=(
            FloorValues(start_ctl=clamp.start_ctl, start_weekly_load=clamp.start_weekly_load)
            if floor_applied
            else None
        ),
        fitness_level=fitness.fitness_level,
        fitness_inference_reasons=(
            *fitness.reasons,
            *evidence.rationale_codes,
            *demand.rationale_codes,
            *clamp.reasons,
            *confidence_reasons,
            "starting_ctl_override_applied" if has_override else "starting_ctl_from_projection_floor",
        ),
        projection_floor_confidence=confidence,
        floor_clamped_by_availability=clamp.floor_clamped_by_availability,
        projection_floor_tier=tier,
        starting_state_is_prior=floor_applied,
        target_event_ctl=demand.required_event_demand_range.target,
        weeks_to_event=whole_weeks(context.weeks_to_event),
        periodization_feasibility=feasibility,
        build_phase_warnings=warnings,
        intensity_model_version=clamp.intensity_model_version,
        starting_ctl_for_projection=starting_ctl,
        starting_weekly_load_for_projection=weekly_load_from_ctl(starting_ctl),
        required_event_demand_range=demand.required_event_demand_range,
        required_peak_weekly_load=demand.required_peak_weekly_load,
        evidence_confidence=EvidenceConfidence(
            score=effective_score,
            state=evidence_confidence.state,
            reasons=evidence_reasons,
        ),
        demand_confidence=demand.demand_confidence,
    )
