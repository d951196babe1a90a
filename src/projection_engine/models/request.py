"""Frozen projection request, the sole input of one engine call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from projection_engine.models.no_history import NoHistoryContext
from projection_engine.models.safety import ProjectionControls, SafetyConfigInput
from projection_engine.models.timeline import Block, GoalMarker, Timeline

if TYPE_CHECKING:
    from projection_engine.calibration import Calibration


@dataclass(frozen=True)
class ProjectionRequest:
    """Immutable snapshot of everything a projection depends on.

    Goals are expected to be normalised already (see
    ``models.timeline.build_goal_markers``); the engine re-sorts them by date.
    ``calibration`` falls back to ``DEFAULT_CALIBRATION`` when unset and
    ``controls`` to the default ``ProjectionControls``.
    """

    timeline: Timeline
    blocks: tuple[Block, ...]
    goals: tuple[GoalMarker, ...] = field(default_factory=tuple)
    baseline_weekly_load: float = 0.0
    starting_ctl: float | None = None
    safety: SafetyConfigInput | None = None
    controls: ProjectionControls | None = None
    no_history: NoHistoryContext | None = None
    optimizer_enabled: bool = True
    calibration: Calibration | None = None
