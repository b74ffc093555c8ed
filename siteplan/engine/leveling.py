"""
Resource leveling and smoothing.

Two passes over a CPM-annotated schedule:

- Smoothing: move activities forward inside their total float to shave
  demand peaks. Never extends the project or changes cost.
- Resource-limited scheduling: place activities one by one, each only after
  its predecessors (critical first, then by start date), on the first start
  day whose whole duration fits under the per-day capacity of every resource
  type they draw on.

Complexity:
- Smoothing: O(p * n) where p = peaks, n = activities
- Resource-limited: O(n * s * d * t) where s = shift days tried, d = duration, t = types per activity
"""

import heapq
import logging
import math
from collections import defaultdict
from datetime import date
from typing import Dict, List, Mapping, Sequence, Tuple, Union

from siteplan.config.settings import get_settings
from siteplan.engine.critical_path import annotate_floats, early_start_bound
from siteplan.engine.resource_profile import (
    ResourcePool,
    build_resource_profile,
    derive_assignments,
    identify_peaks,
    utilization_series,
)
from siteplan.exceptions import ValidationError
from siteplan.graph.activity_graph import Schedule, as_schedule
from siteplan.models.entities import Activity, RiskLevel
from siteplan.models.results import LevelingImprovements, ResourceLevelingResult, ResourcePeak, ResourceProfile
from siteplan.utils.calendar import add_days, iter_days

logger = logging.getLogger(__name__)

MAX_SMOOTHING_SHIFT_DAYS = 2


def apply_resource_smoothing(schedule: Schedule, pool: ResourcePool) -> Schedule:
    """
    Shift activities forward within total float to reduce demand peaks.

    For every peak, the activities of that resource type covering the peak day
    with positive float are moved, highest float first, as many as the
    overallocation. Each move is ``min(total_float, 2)`` days and consumes float.
    Peaks of types without capacity data are left to the caller.

    Args:
        schedule: Schedule with floats annotated
        pool: Capacity source

    Returns:
        New schedule; the input is untouched
    """
    # shifting cannot help a type with no capacity on record
    peaks = [p for p in identify_peaks(build_resource_profile(schedule, pool)) if pool.knows(p.resource_type)]
    current = schedule
    for peak in peaks:
        affected = [
            a for a in current
            if peak.resource_type in a.resource_types()
            and a.planned_start <= peak.date < a.planned_end
            and a.total_float > 0
        ]
        affected.sort(key=lambda a: a.total_float, reverse=True)
        for activity in affected[:math.ceil(peak.overallocation)]:
            move = min(activity.total_float, MAX_SMOOTHING_SHIFT_DAYS)
            remaining = activity.total_float - move
            current = current.update(
                activity.id,
                planned_start=add_days(activity.planned_start, move),
                total_float=remaining,
                free_float=min(max(0, activity.free_float - move), remaining),
            )
            logger.debug(f"Smoothing: moved {activity.id} by {move} days for {peak.resource_type} peak on {peak.date}")
    return current


def _fits(
    activity: Activity,
    start: date,
    ledger: Dict[Tuple[str, date], int],
    pool: ResourcePool,
) -> bool:
    for day in iter_days(start, add_days(start, activity.duration_days)):
        if not pool.is_working_day(day):
            continue
        for resource_type in activity.resource_types():
            if ledger[(resource_type, day)] >= pool.capacity(resource_type, day):
                return False
    return True


def _reserve(activity: Activity, start: date, ledger: Dict[Tuple[str, date], int]) -> None:
    for day in iter_days(start, add_days(start, activity.duration_days)):
        for resource_type in activity.resource_types():
            ledger[(resource_type, day)] += 1


def apply_resource_limited_scheduling(schedule: Schedule, pool: ResourcePool) -> Tuple[Schedule, List[str]]:
    """
    Greedy day-by-day placement against a per-day, per-type reservation ledger.

    An activity becomes eligible once all of its predecessors are placed;
    among eligible activities, critical ones go first, then by planned start,
    then input order. Each start is the later of its planned start and the
    bounds its predecessor edges impose on the placed dates (as in the CPM
    forward pass); from there it advances one day at a time until every day
    of its duration has spare capacity.

    Activities drawing on a type with no capacity data, or that cannot be
    placed within ``max_leveling_shift_days``, are reported as unresolved and
    keep the dependency-bounded start without a capacity check.

    Returns:
        (leveled schedule, unresolved activity ids)

    Raises:
        CircularDependencyError: predecessor cycle
    """
    graph = schedule.graph
    graph.topological_order()

    max_shift = get_settings().max_leveling_shift_days
    ledger: Dict[Tuple[str, date], int] = defaultdict(int)
    placed: Dict[str, Tuple[date, date]] = {}
    unresolved: List[str] = []
    current = schedule

    positions = {aid: position for position, aid in enumerate(graph.ids)}
    waiting = {a.id: len(graph.predecessors(a.id)) for a in schedule}
    eligible: List[Tuple[bool, date, int, str]] = []
    for activity in schedule:
        if waiting[activity.id] == 0:
            heapq.heappush(eligible, _placement_key(activity, positions[activity.id]))

    while eligible:
        activity_id = heapq.heappop(eligible)[-1]
        activity = schedule[activity_id]
        earliest = activity.planned_start
        for edge in graph.predecessors(activity_id):
            bound = early_start_bound(edge, placed[edge.activity_id], activity.duration_days)
            if bound > earliest:
                earliest = bound

        start = earliest
        missing = [t for t in activity.resource_types() if not pool.knows(t)]
        if missing:
            logger.warning(f"Cannot level {activity_id}: no capacity data for {missing}")
            unresolved.append(activity_id)
        else:
            shift = 0
            while not _fits(activity, start, ledger, pool):
                start = add_days(start, 1)
                shift += 1
                if shift > max_shift:
                    logger.warning(f"Cannot level {activity_id} within {max_shift} days; keeping dependency dates")
                    unresolved.append(activity_id)
                    start = earliest
                    break

        _reserve(activity, start, ledger)
        placed[activity_id] = (start, add_days(start, activity.duration_days))
        if start != activity.planned_start:
            current = current.update(activity_id, planned_start=start)

        for successor_id, _ in graph.successors(activity_id):
            waiting[successor_id] -= 1
            if waiting[successor_id] == 0:
                successor = schedule[successor_id]
                heapq.heappush(eligible, _placement_key(successor, positions[successor_id]))
    return current, unresolved


def _placement_key(activity: Activity, position: int) -> Tuple[bool, date, int, str]:
    return (not activity.is_critical_path, activity.planned_start, position, activity.id)


def _total_overallocation(peaks: List[ResourcePeak]) -> int:
    return sum(p.overallocation for p in peaks)


def peak_reduction(initial: List[ResourcePeak], final: List[ResourcePeak]) -> float:
    initial_total = _total_overallocation(initial)
    if initial_total == 0:
        return 0.0
    return (initial_total - _total_overallocation(final)) / initial_total * 100


def _coefficient_of_variation(profile: ResourceProfile) -> float:
    values = utilization_series(profile)
    if not values:
        return 1.0
    mean = sum(values) / len(values)
    if mean == 0:
        return 1.0
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance) / mean


def utilization_improvement(initial: ResourceProfile, final: ResourceProfile) -> float:
    initial_cv = _coefficient_of_variation(initial)
    if initial_cv == 0:
        return 0.0
    return (initial_cv - _coefficient_of_variation(final)) / initial_cv * 100


def leveling_recommendations(
    peaks: List[ResourcePeak],
    improvements: LevelingImprovements,
    missing_types: Sequence[str] = (),
) -> List[str]:
    recommendations = []
    if not peaks:
        recommendations.append("Resource allocation is well balanced")
    else:
        high = list(dict.fromkeys(p.resource_type for p in peaks if p.severity is RiskLevel.HIGH))
        if high:
            recommendations.append(f"Consider hiring additional resources for: {', '.join(high)}")
            recommendations.append("Evaluate subcontracting opportunities for peak demand periods")
        if any(p.severity is RiskLevel.MEDIUM for p in peaks):
            recommendations.append("Review activity sequences to reduce resource conflicts")
            recommendations.append("Consider overtime work during peak periods")
        if all(p.severity is RiskLevel.LOW for p in peaks):
            recommendations.append("Minor overallocation remains; stagger start dates within available float")

    if missing_types:
        recommendations.append(
            f"No capacity on record for {', '.join(missing_types)}; supply workforce or equipment data to level these trades"
        )
    if improvements.duration_impact > 5:
        recommendations.append(f"Resource leveling added {improvements.duration_impact} days to project duration")
    if improvements.peak_reduction > 20:
        recommendations.append(f"Resource peak reduction: {round(improvements.peak_reduction)}%")
    if improvements.utilization_improvement > 15:
        recommendations.append(f"Resource utilization smoothing improved by {round(improvements.utilization_improvement)}%")
    return recommendations


def level_schedule(schedule: Schedule, pool: ResourcePool) -> Tuple[Schedule, ResourceLevelingResult]:
    """Smooth then resource-limit a schedule; returns the leveled schedule and the full report."""
    baseline = annotate_floats(schedule)
    initial_profile = build_resource_profile(baseline, pool)
    initial_peaks = identify_peaks(initial_profile)

    smoothed = apply_resource_smoothing(baseline, pool)
    leveled, unresolved = apply_resource_limited_scheduling(smoothed, pool)

    final_profile = build_resource_profile(leveled, pool)
    final_peaks = identify_peaks(final_profile)

    improvements = LevelingImprovements(
        peak_reduction=peak_reduction(initial_peaks, final_peaks),
        utilization_improvement=utilization_improvement(initial_profile, final_profile),
        duration_impact=leveled.duration_days() - baseline.duration_days(),
        cost_impact=leveled.total_cost() - baseline.total_cost(),
    )
    logger.info(
        f"Leveling: {len(initial_peaks)} -> {len(final_peaks)} peaks, "
        f"duration impact {improvements.duration_impact} days"
    )

    result = ResourceLevelingResult(
        leveled_schedule=leveled.activities(),
        resource_profile=final_profile,
        improvements=improvements,
        recommendations=leveling_recommendations(final_peaks, improvements, final_profile.missing_types),
        unresolved_activities=unresolved,
        assignments=derive_assignments(leveled, pool, final_profile),
    )
    return leveled, result


def level_resources(
    activities: Union[Schedule, Sequence[Activity]],
    available_resources: Union[ResourcePool, Mapping[str, int], None] = None,
) -> ResourceLevelingResult:
    """
    Level resource demand of a set of activities.

    Args:
        activities: Activities (or a Schedule) to level
        available_resources: ResourcePool, a ``{resource_type: units}`` mapping,
            or None for the default capacity per type

    Returns:
        ResourceLevelingResult with the leveled activities, the final profile,
        improvement figures and recommendations

    Raises:
        ValidationError: no activities, or malformed activities
        CircularDependencyError: predecessor cycle
    """
    schedule = as_schedule(activities)
    if len(schedule) == 0:
        raise ValidationError("At least one activity is required for resource leveling")
    _, result = level_schedule(schedule, ResourcePool.coerce(available_resources))
    return result
