"""Timeline, periodization blocks, goal markers and post-goal recovery windows.

The timeline is partitioned into 7-day microcycles starting on its first day;
the final microcycle may be shorter. Blocks are supplied by the caller and
must be ordered and non-overlapping.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, Sequence

from projection_engine.exceptions import ProjectionInputError
from projection_engine.math.rounding import round_half_up_int
from projection_engine.models.enums import (
    DAYS_PER_WEEK,
    MAX_GOAL_PRIORITY,
    MIN_GOAL_PRIORITY,
    BlockPhase,
)


@dataclass(frozen=True)
class WeekWindow:
    """One microcycle of the timeline."""

    index: int  # 0-indexed from the timeline start
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start_date + timedelta(days=offset)

    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date


@dataclass(frozen=True)
class Timeline:
    """Inclusive date range of the plan."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ProjectionInputError(
                f"Timeline start {self.start_date} is after end {self.end_date}",
                field="timeline",
            )

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def weeks(self) -> tuple[WeekWindow, ...]:
        """Partition the timeline into consecutive 7-day windows."""
        windows = []
        week_start = self.start_date
        index = 0
        while week_start <= self.end_date:
            week_end = min(week_start + timedelta(days=DAYS_PER_WEEK - 1), self.end_date)
            windows.append(WeekWindow(index=index, start_date=week_start, end_date=week_end))
            week_start += timedelta(days=DAYS_PER_WEEK)
            index += 1
        return tuple(windows)

    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date


@dataclass(frozen=True)
class Block:
    """A named periodization phase with an optional weekly load target range."""

    name: str
    phase: BlockPhase
    start_date: date
    end_date: date
    target_weekly_load_min: float | None = None
    target_weekly_load_max: float | None = None

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ProjectionInputError(
                f"Block {self.name!r} starts after it ends", field="blocks"
            )
        if (
            self.target_weekly_load_min is not None
            and self.target_weekly_load_max is not None
            and self.target_weekly_load_min > self.target_weekly_load_max
        ):
            raise ProjectionInputError(
                f"Block {self.name!r} has min target above max target", field="blocks"
            )

    @property
    def has_target_range(self) -> bool:
        return self.target_weekly_load_min is not None and self.target_weekly_load_max is not None

    def midpoint(self, fallback: float) -> float:
        """Midpoint of the target range, or *fallback* when no range is set."""
        if not self.has_target_range:
            return fallback
        return (self.target_weekly_load_min + self.target_weekly_load_max) / 2

    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date

    def week_index(self, on_date: date) -> int:
        """Whole weeks elapsed since the block started (0 for the first week)."""
        return max(0, (on_date - self.start_date).days // DAYS_PER_WEEK)


def validate_blocks(blocks: Iterable[Block]) -> tuple[Block, ...]:
    """Check that blocks are ordered by start date and do not overlap.

    Raises:
        ProjectionInputError: On the first out-of-order or overlapping pair.
    """
    ordered = tuple(blocks)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start_date <= previous.end_date:
            raise ProjectionInputError(
                f"Block {current.name!r} overlaps or precedes block {previous.name!r}",
                field="blocks",
            )
    return ordered


def find_block(blocks: Sequence[Block], on_date: date) -> Block | None:
    """Return the block covering *on_date*, or None."""
    for block in blocks:
        if block.contains(on_date):
            return block
    return None


def uncovered_dates(timeline: Timeline, blocks: Sequence[Block]) -> tuple[date, ...]:
    """Timeline days that no block covers."""
    return tuple(
        day
        for week in timeline.weeks()
        for day in week.dates()
        if find_block(blocks, day) is None
    )


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def normalize_priority(priority: float | None) -> int:
    """Round and clamp a goal priority into [1, 10]; missing means most urgent."""
    if priority is None or (isinstance(priority, float) and math.isnan(priority)):
        return MIN_GOAL_PRIORITY
    return max(MIN_GOAL_PRIORITY, min(MAX_GOAL_PRIORITY, round_half_up_int(priority)))


@dataclass(frozen=True)
class GoalMarker:
    """A dated goal; priority 1 is the most urgent, 10 the least."""

    id: str
    name: str
    target_date: date
    priority: int = MIN_GOAL_PRIORITY
    event_duration_hours: float | None = None  # sets the race-day form target

    @property
    def priority_weight(self) -> int:
        """Influence weight: 10 for priority 1 down to 1 for priority 10."""
        return MAX_GOAL_PRIORITY - normalize_priority(self.priority) + 1

    @property
    def priority_progress(self) -> float:
        """0.0 for priority 1 rising linearly to 1.0 for priority 10."""
        return (normalize_priority(self.priority) - MIN_GOAL_PRIORITY) / (
            MAX_GOAL_PRIORITY - MIN_GOAL_PRIORITY
        )


def build_goal_markers(
    goals: Iterable[tuple],
) -> tuple[GoalMarker, ...]:
    """Create goal markers from ``(id, name, date, priority[, duration_hours])`` tuples.

    Missing ids become ``goal-<n>`` (1-indexed input position), priorities
    are normalised and the result is sorted by target date (stable).
    """
    markers = []
    for position, (goal_id, name, target_date, priority, *rest) in enumerate(goals, start=1):
        duration = rest[0] if rest else None
        markers.append(
            GoalMarker(
                id=goal_id if goal_id else f"goal-{position}",
                name=name,
                target_date=target_date,
                priority=normalize_priority(priority),
                event_duration_hours=duration if duration is not None and duration > 0 else None,
            )
        )
    return tuple(sorted(markers, key=lambda g: g.target_date))


# ---------------------------------------------------------------------------
# Recovery windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecoverySegment:
    """Post-goal recovery window, starting the day after the goal."""

    goal_id: str
    goal_name: str
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def overlap_days(self, start: date, end: date) -> int:
        """Days of this segment falling inside [start, end]."""
        overlap_start = max(self.start_date, start)
        overlap_end = min(self.end_date, end)
        if overlap_start > overlap_end:
            return 0
        return (overlap_end - overlap_start).days + 1


@dataclass(frozen=True)
class RecoveryOverlap:
    """How much of a week is covered by recovery segments."""

    overlap_days: int = 0
    goal_ids: tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.goal_ids)


def derive_recovery_segments(
    goals: Sequence[GoalMarker],
    recovery_days: int,
    timeline_end: date,
) -> tuple[RecoverySegment, ...]:
    """One recovery segment per goal, clipped to the timeline end.

    Segments that would start after the timeline end are dropped. Zero
    recovery days yields no segments.
    """
    if recovery_days <= 0:
        return ()

    segments = []
    for goal in goals:
        start = goal.target_date + timedelta(days=1)
        end = min(start + timedelta(days=recovery_days - 1), timeline_end)
        if start > timeline_end or start > end:
            continue
        segments.append(
            RecoverySegment(goal_id=goal.id, goal_name=goal.name, start_date=start, end_date=end)
        )
    return tuple(segments)


def find_recovery_overlap(
    segments: Sequence[RecoverySegment], week: WeekWindow
) -> RecoveryOverlap:
    """Sum segment overlap with *week*, capped at the week length."""
    overlap_days = 0
    goal_ids: list[str] = []
    for segment in segments:
        days = segment.overlap_days(week.start_date, week.end_date)
        if days == 0:
            continue
        overlap_days += days
        if segment.goal_id not in goal_ids:
            goal_ids.append(segment.goal_id)
    return RecoveryOverlap(overlap_days=min(overlap_days, week.days), goal_ids=tuple(goal_ids))
