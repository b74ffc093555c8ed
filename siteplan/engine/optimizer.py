"""
Schedule optimizer.

Pipeline:
1. Validate objective and constraints
2. CPM-annotate the baseline
3. Generate the alternatives
4. Evaluate each (metrics, weighted score, feasibility), optionally on a thread pool
5. Select: best score among alternatives with feasibility above the threshold,
   otherwise the most feasible one
6. Diff baseline against the choice into actions, derive the risk register

Always returns a result; an infeasible project yields its most feasible
alternative with the shortfall reflected in ``feasibility_score``.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from siteplan.config.settings import get_settings
from siteplan.engine.alternatives import Alternative, generate_alternatives
from siteplan.engine.compression import calculate_action_priority
from siteplan.engine.critical_path import annotate_floats
from siteplan.engine.resource_profile import ResourcePool, build_resource_profile
from siteplan.engine.risk_rules import RiskRuleTable
from siteplan.engine.risks import analyze_optimization_risks
from siteplan.engine.scoring import calculate_feasibility_score, evaluate_schedule, schedule_metrics
from siteplan.exceptions import ValidationError
from siteplan.graph.activity_graph import Schedule, as_schedule
from siteplan.models.constraints import Constraints, Objective
from siteplan.models.entities import Activity, RiskLevel
from siteplan.models.results import (
    ActionImpact,
    ActionImplementation,
    ActionType,
    OptimizationAction,
    OptimizationPerformance,
    OptimizationResult,
    ScheduleMetrics,
)

logger = logging.getLogger(__name__)


@dataclass
class EvaluatedAlternative:
    alternative: Alternative
    metrics: ScheduleMetrics
    score: float
    feasibility: float


def evaluate_alternative(
    alternative: Alternative,
    weights: Dict[str, float],
    constraints: Constraints,
    pool: ResourcePool,
) -> EvaluatedAlternative:
    metrics = schedule_metrics(alternative.schedule, pool)
    return EvaluatedAlternative(
        alternative=alternative,
        metrics=metrics,
        score=evaluate_schedule(metrics, weights, constraints),
        feasibility=calculate_feasibility_score(alternative.schedule, constraints, pool),
    )


def evaluate_alternatives(
    alternatives: List[Alternative],
    weights: Dict[str, float],
    constraints: Constraints,
    pool: ResourcePool,
    parallel: bool = False,
) -> List[EvaluatedAlternative]:
    """Evaluate every alternative; results come back in input order either way."""
    if parallel and len(alternatives) > 1:
        max_workers = min(get_settings().max_workers, len(alternatives))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(lambda alt: evaluate_alternative(alt, weights, constraints, pool), alternatives))
    return [evaluate_alternative(alt, weights, constraints, pool) for alt in alternatives]


def select_alternative(evaluated: List[EvaluatedAlternative], threshold: float) -> EvaluatedAlternative:
    """
    Highest score among alternatives with feasibility above ``threshold``;
    the most feasible alternative when none qualifies. Ties keep the earlier one.
    """
    feasible = [e for e in evaluated if e.feasibility > threshold]
    if feasible:
        best = feasible[0]
        for candidate in feasible[1:]:
            if candidate.score > best.score:
                best = candidate
        return best

    logger.info(f"No alternative above feasibility {threshold}; falling back to the most feasible")
    best = evaluated[0]
    for candidate in evaluated[1:]:
        if candidate.feasibility > best.feasibility:
            best = candidate
    return best


def _duration_action(original: Activity, optimized: Activity, tag: Optional[ActionType]) -> OptimizationAction:
    change = optimized.duration_days - original.duration_days
    cost_change = optimized.planned_total_cost - original.planned_total_cost
    return OptimizationAction(
        type=ActionType.CRASHING if tag is ActionType.CRASHING else ActionType.DURATION_ADJUSTMENT,
        description=f"Adjust {original.name} duration from {original.duration_days} to {optimized.duration_days} days",
        affected_activities=(original.id,),
        impact=ActionImpact(
            duration_change=change,
            cost_change=cost_change,
            quality_impact="Monitor quality closely" if change < 0 else "Quality maintained",
            risk_level=RiskLevel.MEDIUM if abs(change) > 2 else RiskLevel.LOW,
        ),
        implementation=ActionImplementation(
            effort=RiskLevel.HIGH if abs(change) > 5 else RiskLevel.MEDIUM,
            prerequisites=("Resource reallocation", "Stakeholder approval"),
            timeline=1,
            cost=abs(cost_change),
        ),
        priority=calculate_action_priority(abs(change), abs(cost_change), RiskLevel.MEDIUM),
    )


def _start_action(original: Activity, optimized: Activity, tag: Optional[ActionType]) -> OptimizationAction:
    shift = (optimized.planned_start - original.planned_start).days
    if tag in (ActionType.FAST_TRACKING, ActionType.RESOURCE_REALLOCATION):
        action_type = tag
    else:
        action_type = ActionType.SEQUENCE_CHANGE
    direction = "earlier" if shift < 0 else "later"
    return OptimizationAction(
        type=action_type,
        description=f"Reschedule {original.name} {abs(shift)} days {direction}",
        affected_activities=(original.id,),
        impact=ActionImpact(
            duration_change=shift,
            cost_change=0.0,
            quality_impact="Schedule coordination required",
            risk_level=RiskLevel.MEDIUM if abs(shift) > 5 else RiskLevel.LOW,
        ),
        implementation=ActionImplementation(
            effort=RiskLevel.LOW,
            prerequisites=("Resource coordination", "Dependency verification"),
            timeline=1,
            cost=0.0,
        ),
        priority=calculate_action_priority(abs(shift), 0, RiskLevel.LOW),
    )


def generate_optimization_actions(baseline: Schedule, chosen: Alternative) -> List[OptimizationAction]:
    """Diff the baseline against the chosen alternative; one action per changed duration or start."""
    actions = []
    for original in baseline:
        optimized = chosen.schedule[original.id]
        tag = chosen.actions.get(original.id)
        if optimized.duration_days != original.duration_days:
            actions.append(_duration_action(original, optimized, tag))
        if optimized.planned_start != original.planned_start:
            actions.append(_start_action(original, optimized, tag))
    return sorted(actions, key=lambda a: a.priority, reverse=True)


def optimize_schedule(
    activities: Union[Schedule, Sequence[Activity]],
    objective: Optional[Objective],
    constraints: Constraints,
    clock: Callable[[], float] = time.perf_counter,
    parallel: Optional[bool] = None,
    rules: Optional[RiskRuleTable] = None,
) -> OptimizationResult:
    """
    Pick the best of the generated alternative schedules.

    Args:
        activities: Activities or Schedule to optimize
        objective: Objective weights (equal weights when None)
        constraints: Ceilings, resources, calendar, quality requirements, milestones
        clock: Seconds counter used for ``convergence_time``; inject a fixed
            clock for reproducible output
        parallel: Evaluate alternatives on a thread pool (``settings.parallel_alternatives`` when None)
        rules: Fast-tracking risk rule table

    Returns:
        OptimizationResult

    Raises:
        ValidationError: empty input, invalid weights or constraints
        CircularDependencyError: predecessor cycle
    """
    started = clock()
    settings = get_settings()
    objective = objective or Objective()
    weights = objective.normalized()
    constraints.validate()

    schedule = as_schedule(activities)
    if len(schedule) == 0:
        raise ValidationError("At least one activity is required for optimization")

    pool = ResourcePool.from_constraints(constraints)
    baseline = annotate_floats(schedule)
    alternatives = generate_alternatives(baseline, constraints, pool, rules)

    if parallel is None:
        parallel = settings.parallel_alternatives
    evaluated = evaluate_alternatives(alternatives, weights, constraints, pool, parallel=parallel)
    best = select_alternative(evaluated, settings.feasibility_threshold)
    original = evaluated[0]
    logger.info(
        f"Selected alternative {best.alternative.name} "
        f"(score {best.score:.1f}, feasibility {best.feasibility:.1f})"
    )

    actions = generate_optimization_actions(baseline, best.alternative)
    profile = build_resource_profile(best.alternative.schedule, pool)
    risks = analyze_optimization_risks(best.alternative.schedule, actions, profile)

    performance = OptimizationPerformance(
        iterations_run=len(alternatives),
        convergence_time=(clock() - started) * 1000,
        improvement_achieved=best.score - original.score,
    )

    return OptimizationResult(
        original_duration=original.metrics.duration,
        optimized_duration=best.metrics.duration,
        duration_saving=original.metrics.duration - best.metrics.duration,
        original_cost=original.metrics.cost,
        optimized_cost=best.metrics.cost,
        cost_saving=original.metrics.cost - best.metrics.cost,
        quality_score=best.metrics.quality,
        resource_utilization=best.metrics.resource_utilization,
        feasibility_score=best.feasibility,
        optimization_actions=actions,
        risks=risks,
        performance=performance,
        selected_strategy=best.alternative.name,
        optimized_schedule=best.alternative.schedule.activities(),
    )
