"""Data models for the projection engine."""

from projection_engine.models.enums import (
    BlockPhase,
    BuildFeasibility,
    ConfidenceLevel,
    EvidenceMarker,
    FitnessLevel,
    GoalTargetType,
    GoalTier,
    HistoryState,
    OptimizationProfile,
    ReadinessBand,
    WeekPattern,
)
from projection_engine.models.no_history import (
    AvailabilityContext,
    AvailabilityDay,
    AvailabilityWindow,
    EvidenceMarkers,
    GoalTarget,
    IntensityModel,
    NoHistoryAnchor,
    NoHistoryContext,
)
from projection_engine.models.projection import (
    DailyPoint,
    PlanFeasibility,
    ProjectionPayload,
    WeekAudit,
    WeeklyMicrocycle,
)
from projection_engine.models.request import ProjectionRequest
from projection_engine.models.safety import OptimizerSettings, SafetyConfig, SafetyConfigInput
from projection_engine.models.timeline import (
    Block,
    GoalMarker,
    RecoverySegment,
    Timeline,
    WeekWindow,
)

__all__ = [
    "AvailabilityContext",
    "AvailabilityDay",
    "AvailabilityWindow",
    "Block",
    "BlockPhase",
    "BuildFeasibility",
    "ConfidenceLevel",
    "DailyPoint",
    "EvidenceMarker",
    "EvidenceMarkers",
    "FitnessLevel",
    "GoalMarker",
    "GoalTarget",
    "GoalTargetType",
    "GoalTier",
    "HistoryState",
    "IntensityModel",
    "NoHistoryAnchor",
    "NoHistoryContext",
    "OptimizationProfile",
    "OptimizerSettings",
    "PlanFeasibility",
    "ProjectionPayload",
    "ProjectionRequest",
    "ReadinessBand",
    "RecoverySegment",
    "SafetyConfig",
    "SafetyConfigInput",
    "Timeline",
    "WeekAudit",
    "WeekPattern",
    "WeeklyMicrocycle",
    "WeekWindow",
]
