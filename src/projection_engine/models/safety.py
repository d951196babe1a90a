"""Safety configuration: caller overrides and the normalised result."""

from __future__ import annotations

from dataclasses import dataclass

from projection_engine.models.enums import OptimizationProfile


@dataclass(frozen=True)
class SafetyConfigInput:
    """Caller-supplied safety overrides; every field is optional.

    ``optimization_profile`` may be an enum member or a name such as
    ``"outcome-first"``. Unset numeric fields take the profile default.
    """

    optimization_profile: OptimizationProfile | str | None = None
    post_goal_recovery_days: float | None = None
    max_weekly_load_ramp_pct: float | None = None
    max_ctl_ramp_per_week: float | None = None


@dataclass(frozen=True)
class SafetyConfig:
    """Concrete limits used by one projection."""

    optimization_profile: OptimizationProfile
    post_goal_recovery_days: int
    max_weekly_load_ramp_pct: float
    max_ctl_ramp_per_week: float


@dataclass(frozen=True)
class OptimizerSettings:
    """Resolved optimizer weights and search bounds for a profile."""

    goal_readiness_weight: float
    volatility_penalty: float
    overload_penalty: float
    baseline_deviation_penalty: float
    overload_grace_ctl: float
    lookahead_weeks: int
    candidate_steps: int
    curvature_target: float = 0.0
    curvature_weight: float = 0.0


@dataclass(frozen=True)
class ProjectionControls:
    """Semantic knobs layered over the optimization profile.

    ``ambition`` and ``risk_tolerance`` run from 0 to 1; ``curvature`` from
    -1 (front-loaded build) to 1 (back-loaded build) with
    ``curvature_strength`` in [0, 1] setting how hard it is enforced.
    Out-of-range values are clamped when settings are resolved.
    """

    ambition: float = 0.5
    risk_tolerance: float = 0.4
    curvature: float = 0.0
    curvature_strength: float = 0.35
