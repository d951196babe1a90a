"""Enumerations and physical constants for the projection engine.

Tunable calibration values live in ``projection_engine.calibration``; this
module only holds the closed vocabularies and the fixed model constants.
"""

from __future__ import annotations

import math
from enum import IntEnum, auto


class BlockPhase(IntEnum):
    """Periodization phase a block belongs to."""

    BASE = auto()
    BUILD = auto()
    PEAK = auto()
    TAPER = auto()
    RECOVERY = auto()
    MAINTENANCE = auto()
    TRANSITION = auto()


class WeekPattern(IntEnum):
    """Shape tag of a projected microcycle.

    RAMP/DELOAD/TAPER come from the block rhythm, EVENT/TAPER from goal
    proximity and RECOVERY from overlap with a post-goal recovery window.
    """

    RAMP = auto()
    DELOAD = auto()
    TAPER = auto()
    EVENT = auto()
    RECOVERY = auto()


class OptimizationProfile(IntEnum):
    """How aggressively the plan trades safety for goal-day outcome."""

    OUTCOME_FIRST = auto()
    BALANCED = auto()
    SUSTAINABLE = auto()


class HistoryState(IntEnum):
    """How much usable training history the athlete has."""

    NONE = auto()
    SPARSE = auto()
    STALE = auto()
    RICH = auto()


class FitnessLevel(IntEnum):
    """Inferred fitness class for athletes without history."""

    WEAK = auto()
    STRONG = auto()


class GoalTier(IntEnum):
    """Demand tier of the plan's goals (LOW < MEDIUM < HIGH)."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class BuildFeasibility(IntEnum):
    """Whether the weeks to the event allow a full periodized build."""

    FULL = auto()
    LIMITED = auto()
    INSUFFICIENT = auto()


class ConfidenceLevel(IntEnum):
    """Qualitative confidence band."""

    LOW = auto()
    MEDIUM = auto()
    HIGH = auto()


class ReadinessBand(IntEnum):
    """Plan-level readiness band derived from the feasibility score."""

    LOW = auto()
    MEDIUM = auto()
    HIGH = auto()


class GoalTargetType(IntEnum):
    """Structured goal target kinds that carry a fitness demand."""

    RACE_PERFORMANCE = auto()
    PACE_THRESHOLD = auto()
    POWER_THRESHOLD = auto()
    HR_THRESHOLD = auto()


class EvidenceMarker(IntEnum):
    """Qualitative low/moderate/high evidence marker."""

    LOW = auto()
    MODERATE = auto()
    HIGH = auto()


def enum_from_name(enum_cls: type[IntEnum], value: object) -> IntEnum:
    """Resolve an enum member from a member, its name or a hyphenated alias.

    ``"outcome-first"``, ``"OUTCOME_FIRST"`` and ``OptimizationProfile.OUTCOME_FIRST``
    all resolve to the same member.

    Raises:
        ValueError: If *value* does not name a member of *enum_cls*.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return enum_cls[key]
        except KeyError:
            pass
    raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}")


# ---------------------------------------------------------------------------
# Impulse-response (Banister) model constants
# ---------------------------------------------------------------------------
# Coggan / Allen performance management chart time constants
CTL_TIME_CONSTANT_DAYS = 42
ATL_TIME_CONSTANT_DAYS = 7
CTL_ALPHA = 1.0 - math.exp(-1.0 / CTL_TIME_CONSTANT_DAYS)
ATL_ALPHA = 1.0 - math.exp(-1.0 / ATL_TIME_CONSTANT_DAYS)

DAYS_PER_WEEK = 7

# ---------------------------------------------------------------------------
# Safety bounds applied to every normalized config
# ---------------------------------------------------------------------------
MAX_WEEKLY_LOAD_RAMP_PCT = 20.0
MAX_CTL_RAMP_PER_WEEK = 8.0
MAX_POST_GOAL_RECOVERY_DAYS = 28

# Bisection depth for the CTL ramp clamp
CTL_RAMP_BISECTION_ITERATIONS = 20

# Goal priority scale: 1 = most urgent, 10 = least
MIN_GOAL_PRIORITY = 1
MAX_GOAL_PRIORITY = 10

# Optimizer search bounds
MIN_LOOKAHEAD_WEEKS = 1
MAX_LOOKAHEAD_WEEKS = 8
MIN_CANDIDATE_STEPS = 3
MAX_CANDIDATE_STEPS = 15
