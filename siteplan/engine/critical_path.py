"""
Critical Path Method (CPM) analyzer.

Computes early/late start and finish dates for every activity of a precedence
network, total and free float, a criticality index and near-critical groups.

Time Complexity: O(n + e) where:
    n = number of activities
    e = number of predecessor edges

Key Techniques:
- Depth-first topological sort (cycle detection is fatal)
- Forward pass with exhaustive FS/SS/FF/SF matching
- Backward pass in reverse topological order seeded with the project finish
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple, Union

from siteplan.graph.activity_graph import Schedule, as_schedule
from siteplan.models.entities import Activity, DependencyType, Predecessor, RiskLevel
from siteplan.models.results import ActivityTimes, CriticalPathAnalysis, NearCriticalPath
from siteplan.utils.calendar import add_days, days_between

logger = logging.getLogger(__name__)

NEAR_CRITICAL_FLOAT_DAYS = 5


def early_start_bound(edge: Predecessor, pred_times: Tuple[date, date], duration: int) -> date:
    """Earliest start of a successor imposed by one predecessor edge."""
    pred_start, pred_finish = pred_times
    if edge.dependency_type is DependencyType.FINISH_TO_START:
        return add_days(pred_finish, edge.lag_days)
    if edge.dependency_type is DependencyType.START_TO_START:
        return add_days(pred_start, edge.lag_days)
    if edge.dependency_type is DependencyType.FINISH_TO_FINISH:
        return add_days(pred_finish, edge.lag_days - duration)
    if edge.dependency_type is DependencyType.START_TO_FINISH:
        return add_days(pred_start, edge.lag_days - duration)
    raise ValueError(f"Unhandled dependency type {edge.dependency_type}")


def _late_finish_bound(edge: Predecessor, succ_times: Tuple[date, date], duration: int) -> date:
    """Latest finish of a predecessor imposed by one edge to an already-scheduled successor."""
    succ_start, succ_finish = succ_times
    if edge.dependency_type is DependencyType.FINISH_TO_START:
        return add_days(succ_start, -edge.lag_days)
    if edge.dependency_type is DependencyType.START_TO_START:
        return add_days(succ_start, duration - edge.lag_days)
    if edge.dependency_type is DependencyType.FINISH_TO_FINISH:
        return add_days(succ_finish, -edge.lag_days)
    if edge.dependency_type is DependencyType.START_TO_FINISH:
        return add_days(succ_finish, duration - edge.lag_days)
    raise ValueError(f"Unhandled dependency type {edge.dependency_type}")


def forward_pass(schedule: Schedule, order: List[str]) -> Dict[str, Tuple[date, date]]:
    """
    Early start/finish per activity.

    Activities without predecessors start on their planned start date.

    Args:
        schedule: Schedule to analyze
        order: Topological order of the schedule's activity ids

    Returns:
        Map of activity_id to (early_start, early_finish)
    """
    early: Dict[str, Tuple[date, date]] = {}
    for activity_id in order:
        activity = schedule[activity_id]
        edges = schedule.graph.predecessors(activity_id)
        if edges:
            early_start = max(
                early_start_bound(edge, early[edge.activity_id], activity.duration_days)
                for edge in edges
            )
        else:
            early_start = activity.planned_start
        early[activity_id] = (early_start, add_days(early_start, activity.duration_days))
    return early


def backward_pass(
    schedule: Schedule,
    order: List[str],
    early: Dict[str, Tuple[date, date]],
) -> Dict[str, Tuple[date, date]]:
    """
    Late start/finish per activity, seeded with the project finish (latest early finish).

    Returns:
        Map of activity_id to (late_start, late_finish)
    """
    project_finish = max(finish for _, finish in early.values())
    late: Dict[str, Tuple[date, date]] = {}
    for activity_id in reversed(order):
        activity = schedule[activity_id]
        late_finish = project_finish
        for successor_id, edge in schedule.graph.successors(activity_id):
            bound = _late_finish_bound(edge, late[successor_id], activity.duration_days)
            if bound < late_finish:
                late_finish = bound
        late[activity_id] = (add_days(late_finish, -activity.duration_days), late_finish)
    return late


def _free_float(schedule: Schedule, activity_id: str, early: Dict[str, Tuple[date, date]]) -> int:
    successors = schedule.graph.successors(activity_id)
    if not successors:
        return 0
    earliest_successor_start = min(early[sid][0] for sid, _ in successors)
    return max(0, days_between(early[activity_id][1], earliest_successor_start))


def _criticality_index(total_float: Dict[str, int]) -> Dict[str, float]:
    max_float = max(total_float.values()) if total_float else 0
    if max_float == 0:
        # Every activity sits on a zero-float path
        return {aid: 1.0 for aid in total_float}
    return {aid: 1.0 - tf / max_float for aid, tf in total_float.items()}


def _near_critical_paths(total_float: Dict[str, int]) -> List[NearCriticalPath]:
    groups: Dict[int, List[str]] = defaultdict(list)
    for activity_id, tf in total_float.items():
        groups[int(round(tf))].append(activity_id)

    paths = []
    for tf, activity_ids in groups.items():
        if 0 < tf <= NEAR_CRITICAL_FLOAT_DAYS and len(activity_ids) > 1:
            if tf <= 1:
                risk = RiskLevel.HIGH
            elif tf <= 3:
                risk = RiskLevel.MEDIUM
            else:
                risk = RiskLevel.LOW
            paths.append(NearCriticalPath(activities=activity_ids, total_float=tf, risk_level=risk))
    return sorted(paths, key=lambda p: p.total_float)


def calculate_critical_path(activities: Union[Schedule, Sequence[Activity]]) -> CriticalPathAnalysis:
    """
    Run CPM over a set of activities.

    Args:
        activities: Activities with predecessor edges, or a Schedule

    Returns:
        CriticalPathAnalysis with floats, criticality index, near-critical
        groups and per-activity early/late dates

    Raises:
        CircularDependencyError: predecessor cycle
        ValidationError: malformed activities

    Complexity: O(n + e)
    """
    schedule = as_schedule(activities)
    if len(schedule) == 0:
        return CriticalPathAnalysis(
            critical_activities=[],
            total_float={},
            free_float={},
            criticality_index={},
            near_critical_paths=[],
        )

    order = schedule.graph.topological_order()
    early = forward_pass(schedule, order)
    late = backward_pass(schedule, order, early)

    total_float: Dict[str, int] = {}
    free_float: Dict[str, int] = {}
    times: Dict[str, ActivityTimes] = {}
    for activity in schedule:
        es, ef = early[activity.id]
        ls, lf = late[activity.id]
        total_float[activity.id] = max(0, days_between(es, ls))
        free_float[activity.id] = min(total_float[activity.id], _free_float(schedule, activity.id, early))
        times[activity.id] = ActivityTimes(early_start=es, early_finish=ef, late_start=ls, late_finish=lf)

    critical = [aid for aid, tf in total_float.items() if tf == 0]
    project_finish = max(ef for _, ef in early.values())
    logger.debug(f"CPM: {len(critical)}/{len(schedule)} critical activities, finish {project_finish}")

    return CriticalPathAnalysis(
        critical_activities=critical,
        total_float=total_float,
        free_float=free_float,
        criticality_index=_criticality_index(total_float),
        near_critical_paths=_near_critical_paths(total_float),
        activity_times=times,
        project_finish=project_finish,
    )


def annotate_floats(schedule: Schedule, analysis: Optional[CriticalPathAnalysis] = None) -> Schedule:
    """Return a schedule whose activities carry the computed floats and critical flags."""
    if analysis is None:
        analysis = calculate_critical_path(schedule)
    updated = []
    for activity in schedule:
        tf = analysis.total_float.get(activity.id, 0)
        ff = analysis.free_float.get(activity.id, 0)
        critical = tf == 0
        if (activity.total_float, activity.free_float, activity.is_critical_path) != (tf, ff, critical):
            updated.append(replace(activity, total_float=tf, free_float=ff, is_critical_path=critical))
    return schedule.update_many(updated)
