"""Build a ProjectionRequest from a JSON-shaped dict.

The document mirrors the request dataclasses with snake_case keys; dates
are ISO strings and enums are names (``"outcome-first"``, ``"build"``).
Every structural problem is raised as ProjectionInputError naming the
offending field.
"""

from __future__ import annotations

from datetime import date
from enum import IntEnum
from typing import Any, Callable, TypeVar

from projection_engine.exceptions import ProjectionInputError
from projection_engine.models.enums import (
    BlockPhase,
    EvidenceMarker,
    GoalTargetType,
    GoalTier,
    HistoryState,
    enum_from_name,
)
from projection_engine.models.no_history import (
    AvailabilityContext,
    AvailabilityDay,
    AvailabilityWindow,
    EvidenceMarkers,
    GoalTarget,
    IntensityModel,
    NoHistoryContext,
)
from projection_engine.models.request import ProjectionRequest
from projection_engine.models.safety import ProjectionControls, SafetyConfigInput
from projection_engine.models.timeline import Block, Timeline, build_goal_markers

T = TypeVar("T")
E = TypeVar("E", bound=IntEnum)


def _require(doc: dict, key: str, path: str) -> Any:
    _object(doc, path)
    if doc.get(key) is None:
        raise ProjectionInputError(f"Missing required field {path}.{key}", field=f"{path}.{key}")
    return doc[key]


def _object(doc: Any, path: str) -> dict:
    if not isinstance(doc, dict):
        raise ProjectionInputError(f"{path} must be an object", field=path)
    return doc


def _date(value: Any, path: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ProjectionInputError(f"{path} is not an ISO date: {value!r}", field=path) from exc


def _number(value: Any, path: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProjectionInputError(f"{path} must be a number, got {value!r}", field=path)
    return float(value)


def _enum(enum_cls: type[E], value: Any, path: str) -> E | None:
    if value is None:
        return None
    try:
        return enum_from_name(enum_cls, value)
    except ValueError as exc:
        raise ProjectionInputError(str(exc), field=path) from exc


def _list(doc: dict, key: str, path: str, parse: Callable[[Any, str], T]) -> tuple[T, ...]:
    items = doc.get(key) or []
    if not isinstance(items, list):
        raise ProjectionInputError(f"{path}.{key} must be a list", field=f"{path}.{key}")
    return tuple(parse(item, f"{path}.{key}[{i}]") for i, item in enumerate(items))


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _timeline(doc: Any) -> Timeline:
    start = _date(_require(doc, "start_date", "timeline"), "timeline.start_date")
    end = _date(_require(doc, "end_date", "timeline"), "timeline.end_date")
    return Timeline(start_date=start, end_date=end)


def _block(doc: Any, path: str) -> Block:
    return Block(
        name=str(_require(doc, "name", path)),
        phase=_enum(BlockPhase, _require(doc, "phase", path), f"{path}.phase"),
        start_date=_date(_require(doc, "start_date", path), f"{path}.start_date"),
        end_date=_date(_require(doc, "end_date", path), f"{path}.end_date"),
        target_weekly_load_min=_number(doc.get("target_weekly_load_min"), f"{path}.target_weekly_load_min"),
        target_weekly_load_max=_number(doc.get("target_weekly_load_max"), f"{path}.target_weekly_load_max"),
    )


def _goal(doc: Any, path: str) -> tuple[str | None, str, date, float | None, float | None]:
    target = _date(_require(doc, "target_date", path), f"{path}.target_date")
    return (
        doc.get("id"),
        str(doc.get("name") or ""),
        target,
        _number(doc.get("priority"), f"{path}.priority"),
        _number(doc.get("event_duration_hours"), f"{path}.event_duration_hours"),
    )


def _safety(doc: Any) -> SafetyConfigInput | None:
    if doc is None:
        return None
    doc = _object(doc, "safety")
    return SafetyConfigInput(
        optimization_profile=doc.get("optimization_profile"),
        post_goal_recovery_days=_number(doc.get("post_goal_recovery_days"), "safety.post_goal_recovery_days"),
        max_weekly_load_ramp_pct=_number(doc.get("max_weekly_load_ramp_pct"), "safety.max_weekly_load_ramp_pct"),
        max_ctl_ramp_per_week=_number(doc.get("max_ctl_ramp_per_week"), "safety.max_ctl_ramp_per_week"),
    )


def _goal_target(doc: Any, path: str) -> GoalTarget:
    return GoalTarget(
        target_type=_enum(GoalTargetType, _require(doc, "target_type", path), f"{path}.target_type"),
        distance_m=_number(doc.get("distance_m"), f"{path}.distance_m"),
        target_time_s=_number(doc.get("target_time_s"), f"{path}.target_time_s"),
    )


def _evidence(doc: Any, path: str) -> EvidenceMarkers | None:
    if doc is None:
        return None
    doc = _object(doc, path)
    return EvidenceMarkers(
        recent_consistency_marker=_enum(
            EvidenceMarker, doc.get("recent_consistency_marker"), f"{path}.recent_consistency_marker"
        ),
        effort_confidence_marker=_enum(
            EvidenceMarker, doc.get("effort_confidence_marker"), f"{path}.effort_confidence_marker"
        ),
        profile_metric_completeness_marker=_enum(
            EvidenceMarker,
            doc.get("profile_metric_completeness_marker"),
            f"{path}.profile_metric_completeness_marker",
        ),
        signal_quality=_number(doc.get("signal_quality"), f"{path}.signal_quality"),
        rationale_codes=tuple(doc.get("rationale_codes") or ()),
    )


def _window(doc: Any, path: str) -> AvailabilityWindow:
    return AvailabilityWindow(
        start_minute_of_day=int(_number(_require(doc, "start_minute_of_day", path), path)),
        end_minute_of_day=int(_number(_require(doc, "end_minute_of_day", path), path)),
    )


def _availability_day(doc: Any, path: str) -> AvailabilityDay:
    return AvailabilityDay(
        day=str(_require(doc, "day", path)).lower(),
        windows=_list(doc, "windows", path, _window),
    )


def _availability(doc: Any, path: str) -> AvailabilityContext | None:
    if doc is None:
        return None
    doc = _object(doc, path)
    max_session = _number(doc.get("max_single_session_duration_minutes"), path)
    return AvailabilityContext(
        availability_days=_list(doc, "availability_days", path, _availability_day),
        hard_rest_days=tuple(str(day).lower() for day in doc.get("hard_rest_days") or ()),
        max_single_session_duration_minutes=None if max_session is None else int(max_session),
    )


def _intensity_model(doc: Any, path: str) -> IntensityModel | None:
    if doc is None:
        return None
    doc = _object(doc, path)
    return IntensityModel(
        version=doc.get("version"),
        weak_if=_number(doc.get("weak_if"), f"{path}.weak_if"),
        strong_if=_number(doc.get("strong_if"), f"{path}.strong_if"),
        conservative_if=_number(doc.get("conservative_if"), f"{path}.conservative_if"),
    )


def _controls(doc: Any) -> ProjectionControls | None:
    if doc is None:
        return None
    doc = _object(doc, "controls")
    defaults = ProjectionControls()
    values = {}
    for name in ("ambition", "risk_tolerance", "curvature", "curvature_strength"):
        value = _number(doc.get(name), f"controls.{name}")
        values[name] = getattr(defaults, name) if value is None else value
    return ProjectionControls(**values)


def _no_history(doc: Any) -> NoHistoryContext | None:
    if doc is None:
        return None
    path = "no_history"
    doc = _object(doc, path)
    goal_count = _number(doc.get("goal_count"), f"{path}.goal_count")
    return NoHistoryContext(
        history_state=_enum(HistoryState, _require(doc, "history_state", path), f"{path}.history_state"),
        goal_tier=_enum(GoalTier, doc.get("goal_tier"), f"{path}.goal_tier"),
        weeks_to_event=_number(_require(doc, "weeks_to_event", path), f"{path}.weeks_to_event"),
        goal_targets=_list(doc, "goal_targets", path, _goal_target),
        total_horizon_weeks=_number(doc.get("total_horizon_weeks"), f"{path}.total_horizon_weeks"),
        goal_count=None if goal_count is None else int(goal_count),
        starting_ctl_override=_number(doc.get("starting_ctl_override"), f"{path}.starting_ctl_override"),
        evidence=_evidence(doc.get("evidence"), f"{path}.evidence"),
        availability=_availability(doc.get("availability"), f"{path}.availability"),
        intensity_model=_intensity_model(doc.get("intensity_model"), f"{path}.intensity_model"),
    )


def request_from_dict(doc: dict) -> ProjectionRequest:
    """Parse a request document.

    Args:
        doc: Decoded JSON object.

    Returns:
        A frozen ProjectionRequest with goals normalised and sorted.

    Raises:
        ProjectionInputError: On missing fields, bad dates or numbers and
            unknown enum names.
    """
    if not isinstance(doc, dict):
        raise ProjectionInputError("Request document must be an object")
    optimizer_enabled = doc.get("optimizer_enabled", True)
    if not isinstance(optimizer_enabled, bool):
        raise ProjectionInputError("optimizer_enabled must be a boolean", field="optimizer_enabled")

    return ProjectionRequest(
        timeline=_timeline(_require(doc, "timeline", "request")),
        blocks=_list(doc, "blocks", "request", _block),
        goals=build_goal_markers(_list(doc, "goals", "request", _goal)),
        baseline_weekly_load=_number(doc.get("baseline_weekly_load"), "baseline_weekly_load") or 0.0,
        starting_ctl=_number(doc.get("starting_ctl"), "starting_ctl"),
        safety=_safety(doc.get("safety")),
        controls=_controls(doc.get("controls")),
        no_history=_no_history(doc.get("no_history")),
        optimizer_enabled=optimizer_enabled,
    )
