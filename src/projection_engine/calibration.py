"""Calibration constants for load composition, readiness and optimization.

All heuristic weights the engine relies on are collected here so they can be
reviewed, tuned and tested in one place. Each group is a frozen dataclass;
``DEFAULT_CALIBRATION`` bundles the production values.

References:
    Banister et al. (1975). A systems model of training for athletic
        performance. Aust J Sports Med 7:57-61.
    Mujika & Padilla (2003). Scientific bases for precompetition tapering
        strategies. Med Sci Sports Exerc 35(7):1182-1187.
    Coggan & Allen (2010). Training and Racing with a Power Meter, 2nd ed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from projection_engine.models.enums import (
    ConfidenceLevel,
    FitnessLevel,
    GoalTier,
    HistoryState,
    OptimizationProfile,
    ReadinessBand,
    WeekPattern,
)


def _frozen(values: dict) -> Mapping:
    """Read-only view of *values*."""
    return MappingProxyType(values)


@dataclass(frozen=True)
class ProfileDefaults:
    """Safety defaults implied by an optimization profile."""

    post_goal_recovery_days: int
    max_weekly_load_ramp_pct: float
    max_ctl_ramp_per_week: float


PROFILE_DEFAULTS: Mapping[OptimizationProfile, ProfileDefaults] = _frozen(
    {
        OptimizationProfile.OUTCOME_FIRST: ProfileDefaults(3, 10.0, 5.0),
        OptimizationProfile.BALANCED: ProfileDefaults(5, 7.0, 3.0),
        OptimizationProfile.SUSTAINABLE: ProfileDefaults(7, 5.0, 2.0),
    }
)


@dataclass(frozen=True)
class LoadSignalCalibration:
    """Weekly load composition: rolling base, rhythm and recovery shaping."""

    previous_week_weight: float = 0.6
    block_midpoint_weight: float = 0.25
    demand_floor_weight: float = 0.15

    taper_phase_multiplier: float = 0.88
    deload_multiplier: float = 0.9
    deload_every_n_weeks: int = 4
    ramp_wave: tuple[float, ...] = (0.92, 1.0, 1.08)

    # Goal influence multipliers interpolate from priority 1 to priority 10
    event_multiplier_range: tuple[float, float] = (0.82, 0.90)
    taper_multiplier_range: tuple[float, float] = (0.90, 0.96)
    taper_influence_window_days: int = 7

    max_recovery_reduction: float = 0.35

    # Demand rhythm applied to the no-history demand floor
    rhythm_event: float = 0.62
    rhythm_recovery: float = 0.72
    rhythm_deload: float = 0.82
    rhythm_taper_by_weeks_remaining: tuple[float, float, float] = (0.70, 0.80, 0.88)
    rhythm_ramp_wave: tuple[float, ...] = (0.90, 1.0, 1.08)


@dataclass(frozen=True)
class NoHistoryCalibration:
    """Anchors used when the athlete has no usable training history."""

    start_ctl_floor: Mapping[FitnessLevel, Mapping[GoalTier, float]] = field(
        default_factory=lambda: _frozen(
            {
                FitnessLevel.WEAK: _frozen({GoalTier.LOW: 20.0, GoalTier.MEDIUM: 28.0, GoalTier.HIGH: 35.0}),
                FitnessLevel.STRONG: _frozen({GoalTier.LOW: 30.0, GoalTier.MEDIUM: 40.0, GoalTier.HIGH: 50.0}),
            }
        )
    )
    target_event_ctl_factor: float = 1.85
    target_event_ctl_bounds: tuple[float, float] = (35.0, 95.0)

    strong_signal_quality: float = 0.8
    strong_signal_count: int = 2

    intensity_model_version: str = "no_history_intensity_v1"
    weak_intensity_factor: float = 0.68
    strong_intensity_factor: float = 0.75
    conservative_intensity_factor: float = 0.65

    # Days of projection before a prior-seeded state is considered reliable
    reliable_projection_days: int = 42

    # Continuous demand model
    distance_ctl_base: float = 28.0
    distance_ctl_scale: float = 13.0
    pace_baseline_kph: float = 9.5
    pace_boost_per_kph: float = 3.2
    pace_boost_cap: float = 24.0
    pace_threshold_ctl: float = 56.0
    power_threshold_ctl: float = 60.0
    hr_threshold_ctl: float = 54.0
    tier_bias_ctl: float = 4.0
    demand_ctl_bounds: tuple[float, float] = (35.0, 110.0)
    horizon_reference_weeks: float = 20.0
    horizon_pressure_bounds: tuple[float, float] = (-0.35, 0.7)
    horizon_demand_scale: float = 0.12

    confidence_score_floor: Mapping[ConfidenceLevel, float] = field(
        default_factory=lambda: _frozen(
            {
                ConfidenceLevel.HIGH: 0.75,
                ConfidenceLevel.MEDIUM: 0.6,
                ConfidenceLevel.LOW: 0.45,
            }
        )
    )
    evidence_base_by_state: Mapping[HistoryState, float] = field(
        default_factory=lambda: _frozen(
            {
                HistoryState.NONE: 0.2,
                HistoryState.SPARSE: 0.45,
                HistoryState.STALE: 0.35,
                HistoryState.RICH: 0.8,
            }
        )
    )
    evidence_min_by_state: Mapping[HistoryState, float] = field(
        default_factory=lambda: _frozen(
            {
                HistoryState.NONE: 0.35,
                HistoryState.SPARSE: 0.3,
                HistoryState.STALE: 0.25,
                HistoryState.RICH: 0.5,
            }
        )
    )
    default_signal_quality: float = 0.4
    effort_marker_adjustment: float = 0.08
    profile_marker_adjustment: float = 0.06


@dataclass(frozen=True)
class ReadinessCalibration:
    """Per-point readiness signal and plan feasibility weighting."""

    target_tsb: float = 8.0
    form_tolerance: float = 20.0
    fatigue_overflow_scale: float = 0.4

    form_weight_min: float = 0.2
    form_weight_max: float = 0.5
    form_weight_near_days: int = 14
    form_weight_far_days: int = 100
    fatigue_weight: float = 0.2

    progressive_fitness_exponent: float = 1.35
    progressive_fitness_weight: float = 0.7
    absolute_fitness_weight: float = 0.3
    peak_ctl_scaling: float = 1.15

    # No-history plan feasibility
    feasibility_blend_weight: float = 0.1
    band_ceiling: Mapping[ReadinessBand, float] = field(
        default_factory=lambda: _frozen(
            {
                ReadinessBand.LOW: 80.0,
                ReadinessBand.MEDIUM: 92.0,
                ReadinessBand.HIGH: 100.0,
            }
        )
    )
    band_medium_threshold: int = 55
    band_high_threshold: int = 75

    # Race-day TSB target by event duration: (duration below hours, target TSB).
    # Shorter events want a fresher taper; missing durations use target_tsb.
    optimal_tsb_by_duration: tuple[tuple[float, float], ...] = (
        (0.5, 15.0),
        (1.5, 12.0),
        (3.0, 8.0),
        (5.0, 5.0),
    )
    optimal_tsb_ultra: float = 3.0

    # Goal-anchored peak smoothing of displayed daily scores
    peak_smoothing_iterations: int = 60
    peak_smoothing_lambda: float = 0.42
    peak_max_step: float = 6.0
    peak_raw_blend: float = 0.1
    peak_window_base_days: float = 8.0
    peak_window_priority_days: float = 10.0
    peak_base_score: float = 78.0
    peak_priority_score: float = 10.0
    peak_feasibility_score: float = 6.0
    peak_slope_base: float = 1.1
    peak_slope_priority: float = 0.7
    default_plan_readiness_score: float = 50.0


@dataclass(frozen=True)
class OptimizerProfileCalibration:
    """Search and scoring weights of the weekly load optimizer."""

    goal_readiness_weight: float
    volatility_penalty: float
    overload_penalty: float
    baseline_deviation_penalty: float
    lookahead_weeks: int
    candidate_steps: int


@dataclass(frozen=True)
class OptimizerCalibration:
    """Optimizer weights per profile plus shared search constants."""

    profiles: Mapping[OptimizationProfile, OptimizerProfileCalibration] = field(
        default_factory=lambda: _frozen(
            {
                OptimizationProfile.OUTCOME_FIRST: OptimizerProfileCalibration(
                    goal_readiness_weight=14.0,
                    volatility_penalty=2.5,
                    overload_penalty=0.08,
                    baseline_deviation_penalty=1.2,
                    lookahead_weeks=4,
                    candidate_steps=7,
                ),
                OptimizationProfile.BALANCED: OptimizerProfileCalibration(
                    goal_readiness_weight=10.0,
                    volatility_penalty=4.0,
                    overload_penalty=0.15,
                    baseline_deviation_penalty=2.0,
                    lookahead_weeks=3,
                    candidate_steps=5,
                ),
                OptimizationProfile.SUSTAINABLE: OptimizerProfileCalibration(
                    goal_readiness_weight=8.0,
                    volatility_penalty=6.0,
                    overload_penalty=0.25,
                    baseline_deviation_penalty=3.0,
                    lookahead_weeks=2,
                    candidate_steps=5,
                ),
            }
        )
    )
    overload_grace_ctl: float = 4.0
    # Lower search bound as a fraction of the capped baseline load
    max_downside_fraction: float = 0.25
    score_tie_tolerance: float = 1e-9

    # Projection controls scale the profile weights: ambition interpolates the
    # readiness weight, risk tolerance interpolates each penalty (from 0 to 1).
    ambition_readiness_scale: tuple[float, float] = (0.75, 1.65)
    risk_overload_scale: tuple[float, float] = (1.8, 0.35)
    risk_volatility_scale: tuple[float, float] = (1.45, 0.5)
    risk_deviation_scale: tuple[float, float] = (1.3, 0.55)

    # Curvature shaping of the lookahead load series
    curvature_weight_max: float = 18.0
    curvature_target_scale: float = 0.18
    curvature_scale_floor: float = 20.0
    curvature_scale_fraction: float = 0.12
    curvature_decay_per_week: float = 0.04
    curvature_decay_floor: float = 0.35
    curvature_phase_weight: Mapping[WeekPattern, float] = field(
        default_factory=lambda: _frozen(
            {
                WeekPattern.RAMP: 1.0,
                WeekPattern.DELOAD: 0.45,
                WeekPattern.TAPER: 0.15,
                WeekPattern.EVENT: 0.1,
                WeekPattern.RECOVERY: 0.08,
            }
        )
    )


@dataclass(frozen=True)
class Calibration:
    """Complete calibration bundle passed through one projection call."""

    load_signal: LoadSignalCalibration = field(default_factory=LoadSignalCalibration)
    no_history: NoHistoryCalibration = field(default_factory=NoHistoryCalibration)
    readiness: ReadinessCalibration = field(default_factory=ReadinessCalibration)
    optimizer: OptimizerCalibration = field(default_factory=OptimizerCalibration)


DEFAULT_CALIBRATION = Calibration()
