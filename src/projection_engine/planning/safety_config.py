"""Resolve an optimization profile and caller overrides into concrete limits."""

from __future__ import annotations

import math

from projection_engine.calibration import PROFILE_DEFAULTS, OptimizerCalibration
from projection_engine.exceptions import ProjectionInputError
from projection_engine.math.rounding import round_half_up, round_half_up_int
from projection_engine.models.enums import (
    MAX_CANDIDATE_STEPS,
    MAX_CTL_RAMP_PER_WEEK,
    MAX_LOOKAHEAD_WEEKS,
    MAX_POST_GOAL_RECOVERY_DAYS,
    MAX_WEEKLY_LOAD_RAMP_PCT,
    MIN_CANDIDATE_STEPS,
    MIN_LOOKAHEAD_WEEKS,
    OptimizationProfile,
    enum_from_name,
)
from projection_engine.models.safety import (
    OptimizerSettings,
    ProjectionControls,
    SafetyConfig,
    SafetyConfigInput,
)

DEFAULT_PROFILE = OptimizationProfile.BALANCED


def resolve_profile(value: OptimizationProfile | str | None) -> OptimizationProfile:
    """Resolve a profile member or name; None means the balanced default.

    Raises:
        ProjectionInputError: If the name is not a known profile.
    """
    if value is None:
        return DEFAULT_PROFILE
    try:
        return enum_from_name(OptimizationProfile, value)
    except ValueError as exc:
        raise ProjectionInputError(str(exc), field="optimization_profile") from exc


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_safety_config(overrides: SafetyConfigInput | None = None) -> SafetyConfig:
    """Apply profile defaults, then explicit overrides, then safety bounds.

    Ramp percentage is bounded to [0, 20], CTL ramp to [0, 8] and recovery
    days are rounded then bounded to [0, 28].
    """
    overrides = overrides or SafetyConfigInput()
    profile = resolve_profile(overrides.optimization_profile)
    defaults = PROFILE_DEFAULTS[profile]

    recovery_days = (
        defaults.post_goal_recovery_days
        if overrides.post_goal_recovery_days is None
        else overrides.post_goal_recovery_days
    )
    ramp_pct = (
        defaults.max_weekly_load_ramp_pct
        if overrides.max_weekly_load_ramp_pct is None
        else overrides.max_weekly_load_ramp_pct
    )
    ctl_ramp = (
        defaults.max_ctl_ramp_per_week
        if overrides.max_ctl_ramp_per_week is None
        else overrides.max_ctl_ramp_per_week
    )

    return SafetyConfig(
        optimization_profile=profile,
        post_goal_recovery_days=int(_clamp(round_half_up_int(recovery_days), 0, MAX_POST_GOAL_RECOVERY_DAYS)),
        max_weekly_load_ramp_pct=float(_clamp(ramp_pct, 0.0, MAX_WEEKLY_LOAD_RAMP_PCT)),
        max_ctl_ramp_per_week=float(_clamp(ctl_ramp, 0.0, MAX_CTL_RAMP_PER_WEEK)),
    )


def _control(value: float | None, default: float, low: float, high: float) -> float:
    if value is None or not math.isfinite(value):
        return default
    return _clamp(value, low, high)


def normalize_projection_controls(controls: ProjectionControls | None = None) -> ProjectionControls:
    """Clamp each control into its range; missing or non-finite values take the default."""
    defaults = ProjectionControls()
    if controls is None:
        return defaults
    return ProjectionControls(
        ambition=_control(controls.ambition, defaults.ambition, 0.0, 1.0),
        risk_tolerance=_control(controls.risk_tolerance, defaults.risk_tolerance, 0.0, 1.0),
        curvature=_control(controls.curvature, defaults.curvature, -1.0, 1.0),
        curvature_strength=_control(controls.curvature_strength, defaults.curvature_strength, 0.0, 1.0),
    )


def _lerp(bounds: tuple[float, float], alpha: float) -> float:
    low, high = bounds
    return low + (high - low) * _clamp(alpha, 0.0, 1.0)


def resolve_optimizer_settings(
    profile: OptimizationProfile,
    calibration: OptimizerCalibration,
    controls: ProjectionControls | None = None,
) -> OptimizerSettings:
    """Optimizer weights and search bounds for *profile* under *controls*.

    Ambition scales the readiness weight and widens the search toward the
    maximum lookahead and candidate count. Risk tolerance relaxes the
    overload, volatility and deviation penalties. Curvature strength sets the
    weight of the curvature penalty. Ramp caps are never touched here.

    Args:
        profile: Resolved optimization profile.
        calibration: Per-profile weights and control scales.
        controls: Projection controls; None uses the defaults.

    Returns:
        Settings with weights rounded to three decimals and search bounds
        clamped to their schema limits.
    """
    weights = calibration.profiles[profile]
    controls = normalize_projection_controls(controls)
    ambition, risk = controls.ambition, controls.risk_tolerance

    base_lookahead = _clamp(round_half_up_int(weights.lookahead_weeks), MIN_LOOKAHEAD_WEEKS, MAX_LOOKAHEAD_WEEKS)
    base_steps = _clamp(round_half_up_int(weights.candidate_steps), MIN_CANDIDATE_STEPS, MAX_CANDIDATE_STEPS)
    lookahead = round_half_up_int(_lerp((base_lookahead, MAX_LOOKAHEAD_WEEKS), ambition))
    steps = round_half_up_int(_lerp((base_steps, MAX_CANDIDATE_STEPS), ambition))

    return OptimizerSettings(
        goal_readiness_weight=round_half_up(
            weights.goal_readiness_weight * _lerp(calibration.ambition_readiness_scale, ambition), 3
        ),
        volatility_penalty=round_half_up(
            weights.volatility_penalty * _lerp(calibration.risk_volatility_scale, risk), 3
        ),
        overload_penalty=round_half_up(weights.overload_penalty * _lerp(calibration.risk_overload_scale, risk), 3),
        baseline_deviation_penalty=round_half_up(
            weights.baseline_deviation_penalty * _lerp(calibration.risk_deviation_scale, risk), 3
        ),
        overload_grace_ctl=calibration.overload_grace_ctl,
        lookahead_weeks=int(_clamp(lookahead, MIN_LOOKAHEAD_WEEKS, MAX_LOOKAHEAD_WEEKS)),
        candidate_steps=int(_clamp(steps, MIN_CANDIDATE_STEPS, MAX_CANDIDATE_STEPS)),
        curvature_target=controls.curvature,
        curvature_weight=round_half_up(
            _lerp((0.0, calibration.curvature_weight_max), controls.curvature_strength), 3
        ),
    )
