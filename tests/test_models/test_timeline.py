"""Tests for Timeline, Block, GoalMarker and recovery segment models."""

from __future__ import annotations

from datetime import date

import pytest

from projection_engine.exceptions import ProjectionInputError
from projection_engine.models.enums import BlockPhase
from projection_engine.models.timeline import (
    Block,
    GoalMarker,
    RecoverySegment,
    Timeline,
    WeekWindow,
    build_goal_markers,
    derive_recovery_segments,
    find_block,
    find_recovery_overlap,
    normalize_priority,
    uncovered_dates,
    validate_blocks,
)


class TestTimeline:
    def test_start_after_end_raises(self) -> None:
        with pytest.raises(ProjectionInputError):
            Timeline(date(2026, 3, 1), date(2026, 2, 1))

    def test_input_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Timeline(date(2026, 3, 1), date(2026, 2, 1))

    def test_single_day(self) -> None:
        timeline = Timeline(date(2026, 3, 1), date(2026, 3, 1))
        assert timeline.total_days == 1
        assert len(timeline.weeks()) == 1

    def test_partial_final_week(self) -> None:
        weeks = Timeline(date(2026, 3, 1), date(2026, 3, 10)).weeks()
        assert [w.days for w in weeks] == [7, 3]
        assert weeks[1].start_date == date(2026, 3, 8)
        assert weeks[1].end_date == date(2026, 3, 10)

    def test_weeks_cover_every_day(self, timeline: Timeline) -> None:
        weeks = timeline.weeks()
        assert len(weeks) == 12
        assert sum(w.days for w in weeks) == timeline.total_days == 84
        assert [w.index for w in weeks] == list(range(12))


class TestWeekWindow:
    def test_dates(self) -> None:
        week = WeekWindow(0, date(2026, 3, 1), date(2026, 3, 3))
        assert list(week.dates()) == [date(2026, 3, 1), date(2026, 3, 2), date(2026, 3, 3)]

    def test_contains(self) -> None:
        week = WeekWindow(0, date(2026, 3, 1), date(2026, 3, 7))
        assert week.contains(date(2026, 3, 7))
        assert not week.contains(date(2026, 3, 8))


class TestBlock:
    def test_min_above_max_raises(self) -> None:
        with pytest.raises(ProjectionInputError):
            Block("Bad", BlockPhase.BUILD, date(2026, 1, 1), date(2026, 1, 31), 200.0, 100.0)

    def test_start_after_end_raises(self) -> None:
        with pytest.raises(ProjectionInputError):
            Block("Bad", BlockPhase.BUILD, date(2026, 2, 1), date(2026, 1, 1))

    def test_midpoint(self) -> None:
        block = Block("Build", BlockPhase.BUILD, date(2026, 1, 1), date(2026, 1, 31), 150.0, 190.0)
        assert block.midpoint(0.0) == 170.0

    def test_midpoint_falls_back_without_range(self) -> None:
        block = Block("Build", BlockPhase.BUILD, date(2026, 1, 1), date(2026, 1, 31), 150.0)
        assert not block.has_target_range
        assert block.midpoint(140.0) == 140.0

    def test_week_index(self) -> None:
        block = Block("Build", BlockPhase.BUILD, date(2026, 1, 5), date(2026, 2, 28))
        assert block.week_index(date(2026, 1, 5)) == 0
        assert block.week_index(date(2026, 1, 11)) == 0
        assert block.week_index(date(2026, 1, 26)) == 3


class TestBlockValidation:
    def test_ordered_blocks_pass(self, blocks: tuple[Block, ...]) -> None:
        assert validate_blocks(blocks) == blocks

    def test_overlap_raises(self) -> None:
        first = Block("A", BlockPhase.BASE, date(2026, 1, 1), date(2026, 1, 20))
        second = Block("B", BlockPhase.BUILD, date(2026, 1, 20), date(2026, 2, 20))
        with pytest.raises(ProjectionInputError):
            validate_blocks([first, second])

    def test_out_of_order_raises(self) -> None:
        first = Block("A", BlockPhase.BASE, date(2026, 2, 1), date(2026, 2, 20))
        second = Block("B", BlockPhase.BUILD, date(2026, 1, 1), date(2026, 1, 20))
        with pytest.raises(ProjectionInputError):
            validate_blocks([first, second])

    def test_find_block(self, blocks: tuple[Block, ...]) -> None:
        assert find_block(blocks, date(2026, 2, 10)).name == "Build"
        assert find_block(blocks, date(2026, 4, 10)) is None

    def test_uncovered_dates(self) -> None:
        timeline = Timeline(date(2026, 1, 1), date(2026, 1, 10))
        block = Block("A", BlockPhase.BASE, date(2026, 1, 1), date(2026, 1, 7))
        assert uncovered_dates(timeline, [block]) == (
            date(2026, 1, 8),
            date(2026, 1, 9),
            date(2026, 1, 10),
        )


class TestGoals:
    @pytest.mark.parametrize(
        "raw,expected",
        [(None, 1), (0, 1), (1, 1), (2.5, 3), (3.6, 4), (10, 10), (42, 10), (float("nan"), 1)],
    )
    def test_normalize_priority(self, raw: float | None, expected: int) -> None:
        assert normalize_priority(raw) == expected

    def test_priority_weight(self) -> None:
        assert GoalMarker("a", "A", date(2026, 1, 1), 1).priority_weight == 10
        assert GoalMarker("b", "B", date(2026, 1, 1), 10).priority_weight == 1

    def test_priority_progress(self) -> None:
        assert GoalMarker("a", "A", date(2026, 1, 1), 1).priority_progress == 0.0
        assert GoalMarker("b", "B", date(2026, 1, 1), 10).priority_progress == 1.0

    def test_build_goal_markers_assigns_ids_and_sorts(self) -> None:
        markers = build_goal_markers(
            [
                (None, "Late", date(2026, 5, 1), 2),
                ("spring-10k", "Early", date(2026, 3, 1), None),
            ]
        )
        assert [m.id for m in markers] == ["spring-10k", "goal-1"]
        assert markers[0].priority == 1
        assert markers[1].priority == 2

    def test_build_goal_markers_event_duration(self) -> None:
        markers = build_goal_markers(
            [
                ("ultra", "Ultra", date(2026, 6, 1), 1, 9.5),
                ("5k", "5K", date(2026, 4, 1), 3, 0.0),
                ("tri", "Tri", date(2026, 5, 1), 2),
            ]
        )
        assert [m.event_duration_hours for m in markers] == [None, None, 9.5]


class TestRecoverySegments:
    def test_starts_day_after_goal(self) -> None:
        goal = GoalMarker("g", "Goal", date(2026, 3, 1))
        (segment,) = derive_recovery_segments([goal], 5, date(2026, 6, 1))
        assert segment.start_date == date(2026, 3, 2)
        assert segment.end_date == date(2026, 3, 6)
        assert segment.days == 5

    def test_clipped_to_timeline_end(self) -> None:
        goal = GoalMarker("g", "Goal", date(2026, 3, 28))
        (segment,) = derive_recovery_segments([goal], 5, date(2026, 3, 29))
        assert segment.end_date == date(2026, 3, 29)
        assert segment.days == 1

    def test_goal_on_last_day_has_no_segment(self) -> None:
        goal = GoalMarker("g", "Goal", date(2026, 3, 29))
        assert derive_recovery_segments([goal], 5, date(2026, 3, 29)) == ()

    def test_zero_recovery_days(self) -> None:
        goal = GoalMarker("g", "Goal", date(2026, 3, 1))
        assert derive_recovery_segments([goal], 0, date(2026, 6, 1)) == ()

    def test_overlap_with_week(self) -> None:
        segment = RecoverySegment("g", "Goal", date(2026, 3, 5), date(2026, 3, 11))
        week = WeekWindow(0, date(2026, 3, 2), date(2026, 3, 8))
        overlap = find_recovery_overlap([segment], week)
        assert overlap.active
        assert overlap.overlap_days == 4
        assert overlap.goal_ids == ("g",)

    def test_overlap_capped_at_week_length(self) -> None:
        week = WeekWindow(0, date(2026, 3, 2), date(2026, 3, 8))
        segments = [
            RecoverySegment("a", "A", date(2026, 3, 1), date(2026, 3, 10)),
            RecoverySegment("b", "B", date(2026, 3, 3), date(2026, 3, 9)),
        ]
        overlap = find_recovery_overlap(segments, week)
        assert overlap.overlap_days == 7
        assert overlap.goal_ids == ("a", "b")

    def test_no_overlap(self) -> None:
        week = WeekWindow(0, date(2026, 3, 2), date(2026, 3, 8))
        segment = RecoverySegment("g", "Goal", date(2026, 3, 9), date(2026, 3, 12))
        assert not find_recovery_overlap([segment], week).active
