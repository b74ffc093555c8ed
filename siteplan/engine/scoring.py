"""
Schedule metrics, weighted objective score and feasibility score.

All scores are on a 0-100 scale. Duration and cost are normalized against
the constraint ceilings; quality and resource balance are already 0-100.
"""

from typing import Dict, List

from siteplan.engine.resource_profile import ResourcePool, build_resource_profile, identify_peaks, utilization_series
from siteplan.graph.activity_graph import Schedule
from siteplan.models.constraints import Constraints
from siteplan.models.results import ResourceProfile, ScheduleMetrics

# Minimum viable duration as a share of the planned (baseline) duration
MIN_VIABLE_DURATION_RATIO = 0.7
TARGET_UTILIZATION = 80.0


def quality_score(schedule: Schedule) -> float:
    """
    Mean per-activity quality: ``duration / (0.7 * planned) * 80``, capped at
    100. An activity at its planned duration scores 100; only one compressed
    below 0.875 of its planned duration scores less, down to 80 at 0.7.
    """
    scores = []
    for activity in schedule:
        min_viable = schedule.baseline(activity.id).duration_days * MIN_VIABLE_DURATION_RATIO
        scores.append(min(100.0, activity.duration_days / min_viable * 80))
    if not scores:
        return 80.0
    return sum(scores) / len(scores)


def resource_utilization_score(profile: ResourceProfile) -> float:
    """Mean of closeness to 80% average utilization and low day-to-day variance."""
    values = utilization_series(profile)
    if not values:
        return 50.0
    average = sum(values) / len(values)
    variance = sum((v - average) ** 2 for v in values) / len(values)
    utilization = max(0.0, 100 - abs(average - TARGET_UTILIZATION))
    balance = max(0.0, 100 - variance)
    return (utilization + balance) / 2


def schedule_metrics(schedule: Schedule, pool: ResourcePool) -> ScheduleMetrics:
    return ScheduleMetrics(
        duration=schedule.duration_days(),
        cost=schedule.total_cost(),
        quality=quality_score(schedule),
        resource_utilization=resource_utilization_score(build_resource_profile(schedule, pool)),
    )


def _normalize_against(value: float, ceiling: float) -> float:
    return max(0.0, 100 - value / ceiling * 100)


def evaluate_schedule(metrics: ScheduleMetrics, weights: Dict[str, float], constraints: Constraints) -> float:
    """
    Weighted objective score.

    Args:
        metrics: Metrics of the candidate schedule
        weights: Normalized objective weights (``Objective.normalized()``)
        constraints: Supplies the duration and budget ceilings

    Returns:
        Score clamped to [0, 100]
    """
    score = (
        _normalize_against(metrics.duration, constraints.max_project_duration) * weights["minimize_time"]
        + _normalize_against(metrics.cost, constraints.max_budget) * weights["minimize_cost"]
        + metrics.quality * weights["maximize_quality"]
        + metrics.resource_utilization * weights["balance_resources"]
    )
    return max(0.0, min(100.0, score))


def milestone_miss_days(schedule: Schedule, constraints: Constraints) -> List[int]:
    """Days each fixed milestone is missed beyond its flexibility (0 when met)."""
    misses = []
    for milestone in constraints.fixed_milestones:
        if milestone.activity_id not in schedule.graph:
            continue
        finish = schedule[milestone.activity_id].planned_end
        difference = abs((finish - milestone.date).days)
        misses.append(max(0, difference - milestone.flexibility_days))
    return misses


def calculate_feasibility_score(schedule: Schedule, constraints: Constraints, pool: ResourcePool) -> float:
    """
    Start at 100 and subtract capped penalties for duration overrun, budget
    overrun, overallocation peaks and missed milestones.

    Returns:
        Feasibility clamped to [0, 100]
    """
    score = 100.0

    duration = schedule.duration_days()
    if duration > constraints.max_project_duration:
        overrun = (duration - constraints.max_project_duration) / constraints.max_project_duration * 100
        score -= min(30.0, overrun)

    cost = schedule.total_cost()
    if cost > constraints.max_budget:
        overrun = (cost - constraints.max_budget) / constraints.max_budget * 100
        score -= min(30.0, overrun)

    peaks = identify_peaks(build_resource_profile(schedule, pool))
    score -= min(25, len(peaks) * 5)

    score -= min(10, sum(milestone_miss_days(schedule, constraints)))

    return max(0.0, min(100.0, score))
