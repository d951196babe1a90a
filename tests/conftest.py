"""Shared test fixtures: a 12-week plan with one goal, configs and no-history contexts."""

from __future__ import annotations

from datetime import date
from typing import Callable

import pytest

from projection_engine.calibration import DEFAULT_CALIBRATION, Calibration
from projection_engine.models.enums import BlockPhase, GoalTier, HistoryState, OptimizationProfile
from projection_engine.models.no_history import (
    AvailabilityContext,
    AvailabilityDay,
    AvailabilityWindow,
    NoHistoryContext,
)
from projection_engine.models.request import ProjectionRequest
from projection_engine.models.safety import SafetyConfig, SafetyConfigInput
from projection_engine.models.timeline import Block, GoalMarker, Timeline, build_goal_markers

PLAN_START = date(2026, 1, 5)  # Monday
PLAN_END = date(2026, 3, 29)  # 84 days, 12 full weeks
GOAL_DATE = date(2026, 3, 28)  # Saturday of week 12


@pytest.fixture
def calibration() -> Calibration:
    return DEFAULT_CALIBRATION


@pytest.fixture
def timeline() -> Timeline:
    return Timeline(start_date=PLAN_START, end_date=PLAN_END)


@pytest.fixture
def blocks() -> tuple[Block, ...]:
    """Base (4 wk) -> Build (6 wk) -> Taper (2 wk) with moderate targets."""
    return (
        Block("Base", BlockPhase.BASE, date(2026, 1, 5), date(2026, 2, 1), 130.0, 160.0),
        Block("Build", BlockPhase.BUILD, date(2026, 2, 2), date(2026, 3, 15), 150.0, 190.0),
        Block("Taper", BlockPhase.TAPER, date(2026, 3, 16), date(2026, 3, 29), 120.0, 150.0),
    )


@pytest.fixture
def goals() -> tuple[GoalMarker, ...]:
    return build_goal_markers([(None, "Spring Marathon", GOAL_DATE, 1)])


@pytest.fixture
def balanced_config() -> SafetyConfig:
    return SafetyConfig(
        optimization_profile=OptimizationProfile.BALANCED,
        post_goal_recovery_days=5,
        max_weekly_load_ramp_pct=7.0,
        max_ctl_ramp_per_week=3.0,
    )


@pytest.fixture
def scenario_request(
    timeline: Timeline, blocks: tuple[Block, ...], goals: tuple[GoalMarker, ...]
) -> ProjectionRequest:
    """12 weeks, one priority-1 goal in week 12, baseline 140, balanced profile."""
    return ProjectionRequest(
        timeline=timeline,
        blocks=blocks,
        goals=goals,
        baseline_weekly_load=140.0,
        safety=SafetyConfigInput(optimization_profile="balanced"),
    )


@pytest.fixture
def make_request(
    timeline: Timeline, blocks: tuple[Block, ...], goals: tuple[GoalMarker, ...]
) -> Callable[..., ProjectionRequest]:
    """Factory for scenario variants; keyword arguments override request fields."""

    def _make(**overrides: object) -> ProjectionRequest:
        fields: dict[str, object] = {
            "timeline": timeline,
            "blocks": blocks,
            "goals": goals,
            "baseline_weekly_load": 140.0,
            "safety": SafetyConfigInput(optimization_profile="balanced"),
        }
        fields.update(overrides)
        return ProjectionRequest(**fields)

    return _make


@pytest.fixture
def no_history_context() -> NoHistoryContext:
    """No history, high-tier goal, 12 weeks out, no evidence or availability."""
    return NoHistoryContext(
        history_state=HistoryState.NONE,
        goal_tier=GoalTier.HIGH,
        weeks_to_event=12,
    )


@pytest.fixture
def limited_availability() -> AvailabilityContext:
    """Three one-hour sessions a week (Sunday is a hard rest day)."""
    hour = (AvailabilityWindow(start_minute_of_day=6 * 60, end_minute_of_day=7 * 60),)
    return AvailabilityContext(
        availability_days=(
            AvailabilityDay("tuesday", hour),
            AvailabilityDay("thursday", hour),
            AvailabilityDay("saturday", hour),
            AvailabilityDay("sunday", hour),
        ),
        hard_rest_days=("sunday",),
    )


@pytest.fixture
def ample_availability() -> AvailabilityContext:
    """Two hours every day of the week."""
    two_hours = (AvailabilityWindow(start_minute_of_day=6 * 60, end_minute_of_day=8 * 60),)
    days = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
    return AvailabilityContext(availability_days=tuple(AvailabilityDay(d, two_hours) for d in days))


@pytest.fixture
def request_document() -> dict:
    """JSON-shaped request equivalent to ``scenario_request``."""
    return {
        "timeline": {"start_date": "2026-01-05", "end_date": "2026-03-29"},
        "blocks": [
            {
                "name": "Base",
                "phase": "base",
                "start_date": "2026-01-05",
                "end_date": "2026-02-01",
                "target_weekly_load_min": 130,
                "target_weekly_load_max": 160,
            },
            {
                "name": "Build",
                "phase": "build",
                "start_date": "2026-02-02",
                "end_date": "2026-03-15",
                "target_weekly_load_min": 150,
                "target_weekly_load_max": 190,
            },
            {
                "name": "Taper",
                "phase": "taper",
                "start_date": "2026-03-16",
                "end_date": "2026-03-29",
                "target_weekly_load_min": 120,
                "target_weekly_load_max": 150,
            },
        ],
        "goals": [{"name": "Spring Marathon", "target_date": "2026-03-28", "priority": 1}],
        "baseline_weekly_load": 140,
        "safety": {"optimization_profile": "balanced"},
    }
