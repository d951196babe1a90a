"""Tests for the calibration bundle."""

from __future__ import annotations

import pytest

from projection_engine.calibration import (
    DEFAULT_CALIBRATION,
    PROFILE_DEFAULTS,
    Calibration,
    ReadinessCalibration,
)
from projection_engine.models.enums import (
    FitnessLevel,
    GoalTier,
    HistoryState,
    OptimizationProfile,
    ReadinessBand,
    WeekPattern,
)


class TestReadOnlyDefaults:
    def test_band_ceiling_cannot_be_assigned(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_CALIBRATION.readiness.band_ceiling[ReadinessBand.LOW] = 100.0  # type: ignore[index]
        assert DEFAULT_CALIBRATION.readiness.band_ceiling[ReadinessBand.LOW] == 80.0

    def test_nested_start_floor_cannot_be_assigned(self) -> None:
        inner = DEFAULT_CALIBRATION.no_history.start_ctl_floor[FitnessLevel.WEAK]
        with pytest.raises(TypeError):
            inner[GoalTier.HIGH] = 1.0  # type: ignore[index]

    def test_profile_tables_cannot_be_assigned(self) -> None:
        with pytest.raises(TypeError):
            PROFILE_DEFAULTS[OptimizationProfile.BALANCED] = None  # type: ignore[index]
        with pytest.raises(TypeError):
            del DEFAULT_CALIBRATION.optimizer.profiles[OptimizationProfile.BALANCED]  # type: ignore[attr-defined]

    @pytest.mark.parametrize(
        "mapping",
        [
            DEFAULT_CALIBRATION.no_history.evidence_base_by_state,
            DEFAULT_CALIBRATION.no_history.evidence_min_by_state,
        ],
    )
    def test_evidence_tables_cannot_be_assigned(self, mapping: dict) -> None:
        with pytest.raises(TypeError):
            mapping[HistoryState.NONE] = 1.0

    def test_curvature_phase_weights_cannot_be_assigned(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_CALIBRATION.optimizer.curvature_phase_weight[WeekPattern.RAMP] = 0.0  # type: ignore[index]


class TestOverrides:
    def test_plain_dict_override_is_accepted(self) -> None:
        readiness = ReadinessCalibration(
            band_ceiling={ReadinessBand.LOW: 70.0, ReadinessBand.MEDIUM: 90.0, ReadinessBand.HIGH: 100.0}
        )
        calibration = Calibration(readiness=readiness)
        assert calibration.readiness.band_ceiling[ReadinessBand.LOW] == 70.0
        assert DEFAULT_CALIBRATION.readiness.band_ceiling[ReadinessBand.LOW] == 80.0
