"""Tests for safety config normalisation and optimizer settings."""

from __future__ import annotations

import pytest

from projection_engine.calibration import OptimizerCalibration, OptimizerProfileCalibration
from projection_engine.exceptions import ProjectionInputError
from projection_engine.models.enums import OptimizationProfile
from projection_engine.models.safety import ProjectionControls, SafetyConfigInput
from projection_engine.planning.safety_config import (
    normalize_projection_controls,
    normalize_safety_config,
    resolve_optimizer_settings,
    resolve_profile,
)


class TestResolveProfile:
    def test_default_is_balanced(self) -> None:
        assert resolve_profile(None) == OptimizationProfile.BALANCED

    def test_hyphenated_name(self) -> None:
        assert resolve_profile("outcome-first") == OptimizationProfile.OUTCOME_FIRST

    def test_unknown_raises_input_error(self) -> None:
        with pytest.raises(ProjectionInputError) as exc_info:
            resolve_profile("yolo")
        assert exc_info.value.field == "optimization_profile"


class TestNormalizeSafetyConfig:
    @pytest.mark.parametrize(
        "profile,recovery,ramp,ctl",
        [
            ("outcome_first", 3, 10.0, 5.0),
            ("balanced", 5, 7.0, 3.0),
            ("sustainable", 7, 5.0, 2.0),
        ],
    )
    def test_profile_defaults(self, profile: str, recovery: int, ramp: float, ctl: float) -> None:
        config = normalize_safety_config(SafetyConfigInput(optimization_profile=profile))
        assert config.post_goal_recovery_days == recovery
        assert config.max_weekly_load_ramp_pct == ramp
        assert config.max_ctl_ramp_per_week == ctl

    def test_no_overrides_is_balanced(self) -> None:
        config = normalize_safety_config()
        assert config.optimization_profile == OptimizationProfile.BALANCED
        assert config.max_weekly_load_ramp_pct == 7.0

    def test_overrides_win_over_profile(self) -> None:
        config = normalize_safety_config(
            SafetyConfigInput(optimization_profile="sustainable", max_weekly_load_ramp_pct=12.0)
        )
        assert config.max_weekly_load_ramp_pct == 12.0
        assert config.max_ctl_ramp_per_week == 2.0

    def test_overrides_clamped_to_safety_bounds(self) -> None:
        config = normalize_safety_config(
            SafetyConfigInput(
                post_goal_recovery_days=40.4,
                max_weekly_load_ramp_pct=50.0,
                max_ctl_ramp_per_week=-1.0,
            )
        )
        assert config.post_goal_recovery_days == 28
        assert config.max_weekly_load_ramp_pct == 20.0
        assert config.max_ctl_ramp_per_week == 0.0

    def test_recovery_days_rounded(self) -> None:
        config = normalize_safety_config(SafetyConfigInput(post_goal_recovery_days=2.6))
        assert config.post_goal_recovery_days == 3

    def test_recovery_days_round_half_up(self) -> None:
        config = normalize_safety_config(SafetyConfigInput(post_goal_recovery_days=2.5))
        assert config.post_goal_recovery_days == 3


class TestOptimizerSettings:
    def test_balanced_defaults(self) -> None:
        settings = resolve_optimizer_settings(OptimizationProfile.BALANCED, OptimizerCalibration())
        # Default controls: ambition 0.5 widens 3 -> 6 weeks and 5 -> 10 steps
        assert settings.lookahead_weeks == 6
        assert settings.candidate_steps == 10
        assert settings.goal_readiness_weight == 12.0
        assert settings.overload_grace_ctl == 4.0
        assert settings.curvature_target == 0.0
        assert settings.curvature_weight == 6.3

    def test_zero_ambition_keeps_profile_search(self) -> None:
        settings = resolve_optimizer_settings(
            OptimizationProfile.BALANCED, OptimizerCalibration(), ProjectionControls(ambition=0.0)
        )
        assert settings.lookahead_weeks == 3
        assert settings.candidate_steps == 5
        assert settings.goal_readiness_weight == 7.5

    def test_search_bounds_clamped(self) -> None:
        extreme = OptimizerProfileCalibration(
            goal_readiness_weight=1.0,
            volatility_penalty=1.0,
            overload_penalty=1.0,
            baseline_deviation_penalty=1.0,
            lookahead_weeks=20,
            candidate_steps=1,
        )
        calibration = OptimizerCalibration(profiles={OptimizationProfile.BALANCED: extreme})
        settings = resolve_optimizer_settings(
            OptimizationProfile.BALANCED, calibration, ProjectionControls(ambition=0.0)
        )
        assert settings.lookahead_weeks == 8
        assert settings.candidate_steps == 3

    def test_ambition_is_monotonic(self) -> None:
        low = resolve_optimizer_settings(
            OptimizationProfile.BALANCED, OptimizerCalibration(), ProjectionControls(ambition=0.0)
        )
        high = resolve_optimizer_settings(
            OptimizationProfile.BALANCED, OptimizerCalibration(), ProjectionControls(ambition=1.0)
        )
        assert high.goal_readiness_weight > low.goal_readiness_weight
        assert high.lookahead_weeks == 8
        assert high.candidate_steps == 15

    def test_risk_tolerance_relaxes_penalties(self) -> None:
        cautious = resolve_optimizer_settings(
            OptimizationProfile.BALANCED, OptimizerCalibration(), ProjectionControls(risk_tolerance=0.0)
        )
        bold = resolve_optimizer_settings(
            OptimizationProfile.BALANCED, OptimizerCalibration(), ProjectionControls(risk_tolerance=1.0)
        )
        assert bold.overload_penalty < cautious.overload_penalty
        assert bold.volatility_penalty < cautious.volatility_penalty
        assert bold.baseline_deviation_penalty < cautious.baseline_deviation_penalty
        assert cautious.volatility_penalty == 5.8
        assert bold.volatility_penalty == 2.0

    def test_curvature_strength_sets_weight(self) -> None:
        settings = resolve_optimizer_settings(
            OptimizationProfile.BALANCED,
            OptimizerCalibration(),
            ProjectionControls(curvature=-0.4, curvature_strength=1.0),
        )
        assert settings.curvature_target == -0.4
        assert settings.curvature_weight == 18.0


class TestProjectionControls:
    def test_none_gives_defaults(self) -> None:
        assert normalize_projection_controls(None) == ProjectionControls()

    def test_out_of_range_clamped(self) -> None:
        controls = normalize_projection_controls(
            ProjectionControls(ambition=3.0, risk_tolerance=-1.0, curvature=-5.0, curvature_strength=2.0)
        )
        assert controls == ProjectionControls(
            ambition=1.0, risk_tolerance=0.0, curvature=-1.0, curvature_strength=1.0
        )

    def test_non_finite_takes_default(self) -> None:
        controls = normalize_projection_controls(ProjectionControls(ambition=float("nan")))
        assert controls.ambition == 0.5
