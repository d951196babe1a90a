"""Projection payload rendering: plain dict, JSON string and pandas frames.

Enums render as lowercase names (``WeekPattern.EVENT`` -> ``"event"``),
dates as ISO strings and tuples as lists, so the dict is JSON-ready.

All functions are pure (no I/O).
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date
from enum import Enum

import pandas as pd

from projection_engine.models.projection import ProjectionPayload

_POINT_COLUMNS = ["date", "weekly_load", "ctl", "atl", "tsb", "readiness_score"]
_MICROCYCLE_COLUMNS = [
    "week_index",
    "start_date",
    "end_date",
    "block_name",
    "phase",
    "pattern",
    "applied_load",
    "projected_ctl",
]


def _to_plain(value: object) -> object:
    if isinstance(value, Enum):
        return value.name.lower()
    if isinstance(value, date):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {_to_plain(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


def to_dict(payload: ProjectionPayload) -> dict:
    """Convert a projection payload to a JSON-compatible dict."""
    return _to_plain(payload)


def to_json_string(payload: ProjectionPayload, indent: int = 2) -> str:
    """Convert a projection payload to a JSON string."""
    return json.dumps(to_dict(payload), indent=indent)


def points_to_frame(payload: ProjectionPayload, weekly: bool = False) -> pd.DataFrame:
    """Daily (or week-end and goal-day) points as a DataFrame indexed by date."""
    points = payload.weekly_points if weekly else payload.daily_points
    frame = pd.DataFrame(
        [[getattr(p, column) for column in _POINT_COLUMNS] for p in points],
        columns=_POINT_COLUMNS,
    )
    frame["date"] = pd.to_datetime(frame["date"])
    return frame.set_index("date")


def microcycles_to_frame(payload: ProjectionPayload) -> pd.DataFrame:
    """One row per microcycle with its pattern and applied load."""
    rows = []
    for cycle in payload.microcycles:
        row = {column: getattr(cycle, column) for column in _MICROCYCLE_COLUMNS}
        row["phase"] = cycle.phase.name.lower()
        row["pattern"] = cycle.pattern.name.lower()
        row["reason_codes"] = ",".join(cycle.audit.reason_codes)
        rows.append(row)
    return pd.DataFrame(rows, columns=[*_MICROCYCLE_COLUMNS, "reason_codes"])
