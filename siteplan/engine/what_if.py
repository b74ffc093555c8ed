"""
What-if simulation.

A scenario applies per-activity deltas to the baseline, then runs a
simplified forward pass: a successor only moves later, to the latest bound
its predecessor edges impose (``predecessor finish + lag`` for FS). It is
never pulled earlier, no backward pass runs and floats are not recomputed,
so floats in the scenario schedule are those of the input.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from siteplan.engine.critical_path import early_start_bound
from siteplan.engine.resource_profile import ResourcePool, build_resource_profile, identify_peaks
from siteplan.engine.scoring import schedule_metrics
from siteplan.exceptions import ValidationError
from siteplan.graph.activity_graph import Schedule, as_schedule
from siteplan.models.entities import Activity, RiskLevel
from siteplan.models.results import ScenarioImpact, ScenarioResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioChange:
    activity_id: str
    duration_change: int = 0
    cost_change: float = 0.0
    resource_change: Optional[str] = None  # new primary trade
    date_change: Optional[date] = None  # new planned start


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str = ""
    changes: Tuple[ScenarioChange, ...] = ()

    def __post_init__(self):
        if not isinstance(self.changes, tuple):
            object.__setattr__(self, "changes", tuple(self.changes))


def apply_scenario_changes(schedule: Schedule, changes: Sequence[ScenarioChange]) -> Schedule:
    """
    Apply deltas in order. Duration never drops below 1 day, cost never below 0.

    Raises:
        ValidationError: a change names an activity that is not in the schedule
    """
    current = schedule
    for change in changes:
        if change.activity_id not in schedule.graph:
            raise ValidationError(f"Scenario references unknown activity {change.activity_id}")
        activity = current[change.activity_id]
        updates = {}
        if change.duration_change:
            updates["duration_days"] = max(1, activity.duration_days + change.duration_change)
        if change.cost_change:
            updates["planned_total_cost"] = max(0.0, activity.planned_total_cost + change.cost_change)
        if change.resource_change:
            updates["primary_trade"] = change.resource_change
        if change.date_change is not None:
            updates["planned_start"] = change.date_change
        if updates:
            current = current.update(change.activity_id, **updates)
    return current


def recalculate_forward(schedule: Schedule) -> Schedule:
    """Push each activity past the bounds of its predecessor edges, in topological order."""
    logger.debug("What-if uses the simplified forward pass (no backward pass, floats not recomputed)")
    current = schedule
    for activity_id in schedule.graph.topological_order():
        edges = schedule.graph.predecessors(activity_id)
        if not edges:
            continue
        duration = current[activity_id].duration_days
        latest = max(
            early_start_bound(
                e,
                (current[e.activity_id].planned_start, current[e.activity_id].planned_end),
                duration,
            )
            for e in edges
        )
        if latest > current[activity_id].planned_start:
            current = current.update(activity_id, planned_start=latest)
    return current


def scenario_recommendations(impact: ScenarioImpact) -> List[str]:
    recommendations = []
    if impact.duration_impact > 5:
        recommendations.append("Consider fast-tracking activities to mitigate schedule impact")
        recommendations.append("Review critical path and optimize resource allocation")
    elif impact.duration_impact < -5:
        recommendations.append("Utilize time savings for quality improvements or risk mitigation")

    if impact.cost_impact > 10000:
        recommendations.append("Review budget allocation and seek cost optimization opportunities")
        recommendations.append("Analyze cost drivers and implement cost control measures")
    elif impact.cost_impact < -10000:
        recommendations.append("Consider investing savings in project enhancements or contingency")

    if abs(impact.resource_impact) > 15:
        recommendations.append("Resource allocation requires significant adjustment")
        recommendations.append("Consider phased implementation to manage resource changes")

    if not recommendations:
        recommendations.append("Scenario has manageable impact on project parameters")
    return recommendations


def scenario_feasibility(schedule: Schedule, pool: ResourcePool) -> float:
    peaks = identify_peaks(build_resource_profile(schedule, pool))
    return max(0.0, 100.0 - min(30, len(peaks) * 5))


def _band(value: float, medium: float, high: float) -> int:
    value = abs(value)
    if value > high:
        return 2
    if value > medium:
        return 1
    return 0


def scenario_risk_level(impact: ScenarioImpact) -> RiskLevel:
    score = (
        _band(impact.duration_impact, 5, 10)
        + _band(impact.cost_impact, 10000, 20000)
        + _band(impact.resource_impact, 15, 25)
    )
    if score >= 4:
        return RiskLevel.HIGH
    if score >= 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def analyze_what_if_scenarios(
    activities: Union[Schedule, Sequence[Activity]],
    scenarios: Sequence[Scenario],
    available_resources: Union[ResourcePool, Mapping[str, int], None] = None,
) -> List[ScenarioResult]:
    """
    Simulate each scenario independently against the same baseline.

    Args:
        activities: Baseline activities or Schedule
        scenarios: Scenarios to simulate
        available_resources: Capacity used for the utilization metric and
            feasibility (default capacity per type when None)

    Returns:
        One ScenarioResult per scenario, in input order

    Raises:
        ValidationError: a change references an unknown activity
        CircularDependencyError: predecessor cycle
    """
    schedule = as_schedule(activities)
    pool = ResourcePool.coerce(available_resources)
    original = schedule_metrics(schedule, pool)

    results = []
    for scenario in scenarios:
        simulated = recalculate_forward(apply_scenario_changes(schedule, scenario.changes))
        metrics = schedule_metrics(simulated, pool)
        impact = ScenarioImpact(
            duration_impact=metrics.duration - original.duration,
            cost_impact=metrics.cost - original.cost,
            quality_impact=metrics.quality - original.quality,
            resource_impact=metrics.resource_utilization - original.resource_utilization,
        )
        results.append(
            ScenarioResult(
                scenario=scenario.name,
                description=scenario.description,
                impact=impact,
                metrics=metrics,
                recommendations=scenario_recommendations(impact),
                feasibility=scenario_feasibility(simulated, pool),
                risk_level=scenario_risk_level(impact),
            )
        )
        logger.info(f"What-if {scenario.name}: duration {impact.duration_impact:+d} days, cost {impact.cost_impact:+.2f}")
    return results
