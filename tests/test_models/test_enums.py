"""Tests for enum name resolution."""

from __future__ import annotations

import pytest

from projection_engine.models.enums import (
    BlockPhase,
    HistoryState,
    OptimizationProfile,
    enum_from_name,
)


class TestEnumFromName:
    def test_member_passes_through(self) -> None:
        assert enum_from_name(BlockPhase, BlockPhase.PEAK) is BlockPhase.PEAK

    @pytest.mark.parametrize("name", ["outcome-first", "OUTCOME_FIRST", "Outcome First"])
    def test_name_variants(self, name: str) -> None:
        assert enum_from_name(OptimizationProfile, name) is OptimizationProfile.OUTCOME_FIRST

    def test_lowercase(self) -> None:
        assert enum_from_name(HistoryState, "none") is HistoryState.NONE

    def test_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="OptimizationProfile"):
            enum_from_name(OptimizationProfile, "reckless")

    def test_non_string_raises(self) -> None:
        with pytest.raises(ValueError):
            enum_from_name(BlockPhase, 3)
