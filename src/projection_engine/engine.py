"""ProjectionEngine: the orchestrator that turns a plan request into a projection."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from projection_engine.calibration import DEFAULT_CALIBRATION, Calibration
from projection_engine.math.ramp_caps import enforce_ramp_caps
from projection_engine.math.readiness import (
    ReadinessScorer,
    aggregate_goal_readiness,
    compute_plan_feasibility,
    peak_ctl_reference,
)
from projection_engine.math.training_load import LoadState, advance_state, daily_trajectory
from projection_engine.models.enums import DAYS_PER_WEEK
from projection_engine.models.no_history import NoHistoryAnchor
from projection_engine.models.projection import (
    ConstraintSummary,
    CtlRampAudit,
    DailyPoint,
    LoadRampAudit,
    OptimizerDecision,
    OptimizerSummary,
    PlanFeasibility,
    ProjectionPayload,
    RecoveryAudit,
    StartingState,
    WeekAudit,
    WeeklyMicrocycle,
)
from projection_engine.models.request import ProjectionRequest
from projection_engine.models.safety import SafetyConfig
from projection_engine.models.timeline import (
    GoalMarker,
    RecoverySegment,
    WeekWindow,
    derive_recovery_segments,
    find_block,
    uncovered_dates,
    validate_blocks,
)
from projection_engine.planning.load_signal import DemandFloorPlan, LoadSignalComposer
from projection_engine.planning.no_history import resolve_no_history_anchor
from projection_engine.planning.optimizer import SimulatedWeek, WeeklyLoadOptimizer
from projection_engine.planning.safety_config import (
    normalize_safety_config,
    resolve_optimizer_settings,
)

logger = logging.getLogger(__name__)

SEED_FROM_STARTING_CTL = "starting_ctl"
SEED_FROM_BASELINE = "baseline_fallback"


@dataclass(frozen=True)
class Seed:
    """Starting state and the load standing in for the week before the plan."""

    state: LoadState
    weekly_load: float
    source: str
    effective_baseline: float
    is_prior: bool


def resolve_seed(request: ProjectionRequest, anchor: NoHistoryAnchor | None) -> Seed:
    """Seed the starting CTL/ATL and the previous-week load.

    Starting CTL comes from the explicit request value, then the no-history
    anchor (when its floor applies), then ``baseline / 7``; ATL starts equal
    to CTL. The previous-week load is the baseline, raised to the anchor's
    starting weekly load and to ``7 x`` the seeded CTL. A zero baseline falls
    back to the midpoint of the block covering the first day.
    """
    floor_applies = anchor is not None and anchor.projection_floor_applied

    baseline = max(0.0, round(request.baseline_weekly_load, 1))
    if floor_applies:
        baseline = max(baseline, anchor.starting_weekly_load_for_projection)
    if baseline <= 0:
        first_block = find_block(request.blocks, request.timeline.start_date)
        if first_block is None and request.blocks:
            first_block = request.blocks[0]
        if first_block is not None:
            baseline = max(0.0, round(first_block.midpoint(0.0), 1))

    ctl_input = request.starting_ctl
    if ctl_input is None and floor_applies:
        ctl_input = anchor.starting_ctl_for_projection

    starting_ctl = max(0.0, round(ctl_input if ctl_input is not None else baseline / DAYS_PER_WEEK, 1))
    if ctl_input is not None and ctl_input > 0:
        weekly, source = max(baseline, round(DAYS_PER_WEEK * ctl_input, 1)), SEED_FROM_STARTING_CTL
    else:
        weekly, source = baseline, SEED_FROM_BASELINE

    return Seed(
        state=LoadState(ctl=starting_ctl, atl=starting_ctl),
        weekly_load=weekly,
        source=source,
        effective_baseline=baseline,
        is_prior=floor_applies and request.starting_ctl is None,
    )


@dataclass(frozen=True)
class _WeekRecord:
    microcycle: WeeklyMicrocycle
    states: tuple[LoadState, ...]


@dataclass(frozen=True)
class _Simulation:
    records: tuple[_WeekRecord, ...]
    load_ramp_clamp_weeks: int
    ctl_ramp_clamp_weeks: int
    recovery_weeks: int
    floor_override_weeks: int
    optimizer_active_weeks: int
    max_floor_minimum: float | None


class _ProjectionRun:
    """Per-request context shared by the main loop and optimizer lookahead."""

    def __init__(self, request: ProjectionRequest, calibration: Calibration) -> None:
        self.request = request
        self.calibration = calibration
        self.config: SafetyConfig = normalize_safety_config(request.safety)
        self.blocks = validate_blocks(request.blocks)
        self.goals: tuple[GoalMarker, ...] = tuple(
            sorted(request.goals, key=lambda g: g.target_date)
        )
        self.weeks: tuple[WeekWindow, ...] = request.timeline.weeks()
        self.segments: tuple[RecoverySegment, ...] = derive_recovery_segments(
            self.goals, self.config.post_goal_recovery_days, request.timeline.end_date
        )

        missing = uncovered_dates(request.timeline, self.blocks)
        if missing:
            logger.warning(
                "%d timeline day(s) not covered by any block (first %s); using fallback build phase",
                len(missing),
                missing[0],
            )

        self.anchor: NoHistoryAnchor | None = (
            resolve_no_history_anchor(request.no_history, calibration.no_history)
            if request.no_history is not None
            else None
        )
        self.seed = resolve_seed(request, self.anchor)
        self.composer = LoadSignalComposer(
            self.blocks,
            self.goals,
            self.segments,
            self.seed.effective_baseline,
            DemandFloorPlan.from_anchor(self.anchor, calibration.no_history),
            calibration.load_signal,
        )

        floor_applies = self.anchor is not None and self.anchor.projection_floor_applied
        self.peak_ctl = peak_ctl_reference(
            (b.target_weekly_load_max for b in self.blocks if b.target_weekly_load_max is not None),
            self.anchor.target_event_ctl if floor_applies else None,
            self.seed.state.ctl,
        )

    def scorer(self, plan_feasibility: PlanFeasibility | None = None) -> ReadinessScorer:
        return ReadinessScorer(
            start_ctl=self.seed.state.ctl,
            peak_ctl=self.peak_ctl,
            goals=self.goals,
            calibration=self.calibration.readiness,
            plan_feasibility=plan_feasibility,
        )

    def simulate_week(
        self,
        week: WeekWindow,
        state: LoadState,
        previous_load: float,
        previous_demand_floor: float | None,
        requested_load: float | None = None,
    ) -> SimulatedWeek:
        signal = self.composer.compose(week, previous_load, previous_demand_floor)
        if requested_load is None:
            requested = signal.requested_load
        else:
            # An explicit load still honours the demand floor.
            floor = signal.demand_band_minimum_load
            requested = requested_load if floor is None else max(requested_load, floor)
        caps = enforce_ramp_caps(requested, previous_load, state.ctl, week.days, self.config)
        return SimulatedWeek(
            signal=signal,
            caps=caps,
            start_state=state,
            end_state=advance_state(state, caps.applied_load, week.days),
        )

    def simulate(self, use_optimizer: bool) -> _Simulation:
        optimizer = None
        if use_optimizer and self.goals:
            opt_cal = self.calibration.optimizer
            optimizer = WeeklyLoadOptimizer(
                self.weeks,
                self.goals,
                self,
                self.scorer(),
                resolve_optimizer_settings(self.config.optimization_profile, opt_cal, self.request.controls),
                self.config,
                opt_cal,
            )

        state = self.seed.state
        previous_load = self.seed.weekly_load
        previous_floor: float | None = None
        records: list[_WeekRecord] = []
        pct_clamps = ctl_clamps = recovery_weeks = floor_overrides = active_weeks = 0
        max_floor: float | None = None

        for week in self.weeks:
            simulated = self.simulate_week(week, state, previous_load, previous_floor)
            decision = OptimizerDecision()
            if optimizer is not None and optimizer.is_active(week):
                result = optimizer.optimize(week, state, previous_load, previous_floor, simulated)
                decision = result.decision
                active_weeks += 1
                simulated = self.simulate_week(
                    week, state, previous_load, previous_floor, requested_load=result.chosen_load
                )

            signal, caps = simulated.signal, simulated.caps
            applied = caps.applied_load

            codes = list(signal.reason_codes)
            if caps.pct_clamped:
                pct_clamps += 1
                codes.append("load_ramp_clamped")
            if caps.ctl_clamped:
                ctl_clamps += 1
                codes.append("ctl_ramp_clamped")
            if decision.active:
                codes.append("optimizer_selected_load")
            if signal.recovery.active:
                recovery_weeks += 1
            if signal.floor_override_applied:
                floor_overrides += 1
            if signal.floor_minimum_load is not None:
                max_floor = (
                    signal.floor_minimum_load
                    if max_floor is None
                    else max(max_floor, signal.floor_minimum_load)
                )
            if caps.clamped:
                logger.debug(
                    "Week %d clamped: requested %.1f -> applied %.1f (pct=%s, ctl=%s)",
                    week.index,
                    caps.requested_load,
                    applied,
                    caps.pct_clamped,
                    caps.ctl_clamped,
                )

            band_minimum = signal.demand_band_minimum_load
            audit = WeekAudit(
                recovery=RecoveryAudit(
                    active=signal.recovery.active,
                    goal_ids=signal.recovery.goal_ids,
                    reduction_factor=signal.recovery_reduction_factor,
                ),
                load_ramp=LoadRampAudit(
                    previous_week_load=previous_load,
                    seed_weekly_load=self.seed.weekly_load,
                    seed_source=self.seed.source,
                    rolling_base_load=signal.rolling_base_load,
                    block_midpoint_load=signal.block_midpoint_load,
                    demand_floor_signal=signal.demand_floor_signal,
                    pattern_multiplier=signal.pattern_multiplier,
                    raw_requested_load=signal.raw_requested_load,
                    requested_load=caps.requested_load,
                    applied_load=applied,
                    max_weekly_load_ramp_pct=self.config.max_weekly_load_ramp_pct,
                    cap_by_pct=caps.cap_by_pct,
                    clamped=caps.pct_clamped,
                    floor_override_applied=signal.floor_override_applied,
                    floor_minimum_load=signal.floor_minimum_load,
                    demand_band_minimum_load=band_minimum,
                    demand_gap_unmet_load=(
                        max(0.0, round(band_minimum - applied, 1)) if band_minimum is not None else 0.0
                    ),
                    override_reason="demand_band_floor" if signal.floor_override_applied else None,
                ),
                ctl_ramp=CtlRampAudit(
                    requested_ctl_ramp=round(caps.requested_ctl_ramp, 3),
                    applied_ctl_ramp=round(caps.applied_ctl_ramp, 3),
                    max_ctl_ramp_per_week=self.config.max_ctl_ramp_per_week,
                    clamped=caps.ctl_clamped,
                ),
                optimizer=decision,
                reason_codes=tuple(codes),
            )
            records.append(
                _WeekRecord(
                    microcycle=WeeklyMicrocycle(
                        week_index=week.index,
                        start_date=week.start_date,
                        end_date=week.end_date,
                        block_name=signal.block_name,
                        phase=signal.phase,
                        pattern=signal.pattern,
                        applied_load=applied,
                        projected_ctl=round(simulated.end_state.ctl, 1),
                        audit=audit,
                    ),
                    states=daily_trajectory(state, applied, week.days),
                )
            )

            state = simulated.end_state
            previous_load = applied
            previous_floor = band_minimum

        return _Simulation(
            records=tuple(records),
            load_ramp_clamp_weeks=pct_clamps,
            ctl_ramp_clamp_weeks=ctl_clamps,
            recovery_weeks=recovery_weeks,
            floor_override_weeks=floor_overrides,
            optimizer_active_weeks=active_weeks,
            max_floor_minimum=max_floor,
        )

    def plan_feasibility(self, simulation: _Simulation) -> PlanFeasibility | None:
        if self.anchor is None:
            return None
        if simulation.max_floor_minimum is not None:
            required = simulation.max_floor_minimum
        else:
            required = self.anchor.required_peak_weekly_load.target
        feasible = max((r.microcycle.applied_load for r in simulation.records), default=0.0)
        return compute_plan_feasibility(
            required_peak_weekly_load=required,
            feasible_peak_weekly_load=feasible,
            load_ramp_clamp_weeks=simulation.load_ramp_clamp_weeks,
            ctl_ramp_clamp_weeks=simulation.ctl_ramp_clamp_weeks,
            confidence=self.anchor.evidence_confidence.score,
            projection_weeks=len(simulation.records),
            calibration=self.calibration.readiness,
        )

    def assemble(self, simulation: _Simulation, optimizer: OptimizerSummary) -> ProjectionPayload:
        feasibility = self.plan_feasibility(simulation)
        scorer = self.scorer(feasibility)

        daily: list[DailyPoint] = []
        week_end_indices: list[int] = []
        for record in simulation.records:
            week = record.microcycle
            for offset, day_state in enumerate(record.states):
                on_date = week.start_date + timedelta(days=offset)
                point = DailyPoint(
                    date=on_date,
                    weekly_load=week.applied_load,
                    ctl=round(day_state.ctl, 1),
                    atl=round(day_state.atl, 1),
                    tsb=round(day_state.tsb, 1),
                    readiness_score=scorer.score(on_date, day_state.ctl, day_state.atl),
                )
                daily.append(point)
            if daily:
                week_end_indices.append(len(daily) - 1)

        # Goal readiness is measured on the unshaped scores.
        goal_readiness = aggregate_goal_readiness(daily, self.goals) if self.goals else None
        if self.goals:
            shaped = scorer.shape_peaks([p.date for p in daily], [p.readiness_score for p in daily])
            daily = [dataclasses.replace(p, readiness_score=s) for p, s in zip(daily, shaped)]

        weekly = _weekly_points([daily[i] for i in week_end_indices], daily, self.goals)

        return ProjectionPayload(
            start_date=self.request.timeline.start_date,
            end_date=self.request.timeline.end_date,
            daily_points=tuple(daily),
            weekly_points=weekly,
            goal_markers=self.goals,
            microcycles=tuple(r.microcycle for r in simulation.records),
            recovery_segments=self.segments,
            constraint_summary=ConstraintSummary(
                config=self.config,
                load_ramp_clamp_weeks=simulation.load_ramp_clamp_weeks,
                ctl_ramp_clamp_weeks=simulation.ctl_ramp_clamp_weeks,
                recovery_weeks=simulation.recovery_weeks,
                floor_override_weeks=simulation.floor_override_weeks,
                starting_state=StartingState(
                    ctl=self.seed.state.ctl,
                    atl=self.seed.state.atl,
                    tsb=round(self.seed.state.tsb, 1),
                    is_prior=self.seed.is_prior,
                    seed_weekly_load=self.seed.weekly_load,
                    seed_source=self.seed.source,
                ),
                optimizer=optimizer,
            ),
            no_history=self.anchor,
            plan_feasibility=feasibility,
            goal_readiness=None if goal_readiness is None else round(goal_readiness, 2),
        )


def _weekly_points(
    week_ends: Sequence[DailyPoint],
    daily: Sequence[DailyPoint],
    goals: Sequence[GoalMarker],
) -> tuple[DailyPoint, ...]:
    """Week-end snapshots plus goal-day snapshots not already on a week end."""
    by_date: dict[date, DailyPoint] = {p.date: p for p in week_ends}
    daily_by_date = {p.date: p for p in daily}
    for goal in goals:
        point = daily_by_date.get(goal.target_date)
        if point is not None and goal.target_date not in by_date:
            by_date[goal.target_date] = point
    return tuple(by_date[d] for d in sorted(by_date))


def select_projection(
    optimized: ProjectionPayload,
    baseline: ProjectionPayload,
    active_weeks: int = 0,
) -> ProjectionPayload:
    """Keep the optimized projection only if it strictly beats the baseline.

    Goal readiness is compared at payload precision; ties go to the baseline.
    The returned payload carries an optimizer summary with both scores.
    """
    opt_score = optimized.goal_readiness if optimized.goal_readiness is not None else float("-inf")
    base_score = baseline.goal_readiness if baseline.goal_readiness is not None else float("-inf")
    use_optimized = opt_score > base_score
    chosen = optimized if use_optimized else baseline
    summary = OptimizerSummary(
        enabled=True,
        selected="optimized" if use_optimized else "baseline",
        active_weeks=active_weeks,
        optimized_goal_readiness=optimized.goal_readiness,
        baseline_goal_readiness=baseline.goal_readiness,
    )
    return dataclasses.replace(
        chosen,
        constraint_summary=dataclasses.replace(chosen.constraint_summary, optimizer=summary),
    )


class ProjectionEngine:
    """Builds deterministic load/fitness projections for a training plan.

    Usage:
        engine = ProjectionEngine()
        payload = engine.project(request)
    """

    def __init__(self, calibration: Calibration | None = None) -> None:
        self.calibration = calibration or DEFAULT_CALIBRATION

    def project(self, request: ProjectionRequest) -> ProjectionPayload:
        """Project the plan described by *request*.

        When the optimizer is enabled and the plan has goals, the optimized
        projection is built alongside a capped-only baseline and returned
        only if its priority-weighted goal readiness is strictly higher.

        Args:
            request: Frozen projection request.

        Returns:
            The projection payload.

        Raises:
            ProjectionInputError: If blocks are unordered or overlap, or the
                safety profile name is unknown.
        """
        run = _ProjectionRun(request, request.calibration or self.calibration)

        if not request.optimizer_enabled:
            payload = run.assemble(run.simulate(False), OptimizerSummary(enabled=False, selected="disabled"))
        elif not run.goals:
            payload = run.assemble(run.simulate(False), OptimizerSummary(enabled=True, selected="baseline"))
        else:
            optimized_sim = run.simulate(True)
            optimized = run.assemble(optimized_sim, OptimizerSummary(enabled=True, selected="optimized"))
            baseline = run.assemble(run.simulate(False), OptimizerSummary(enabled=True, selected="baseline"))
            payload = select_projection(optimized, baseline, optimized_sim.optimizer_active_weeks)

        summary = payload.constraint_summary
        logger.info(
            "Projected %d week(s) %s..%s: %d load-ramp clamp(s), %d CTL-ramp clamp(s), "
            "%d recovery week(s), optimizer=%s, goal readiness=%s",
            len(payload.microcycles),
            payload.start_date,
            payload.end_date,
            summary.load_ramp_clamp_weeks,
            summary.ctl_ramp_clamp_weeks,
            summary.recovery_weeks,
            summary.optimizer.selected,
            payload.goal_readiness,
        )
        return payload


def build_projection(request: ProjectionRequest) -> ProjectionPayload:
    """Project *request* with the default engine."""
    return ProjectionEngine().project(request)
