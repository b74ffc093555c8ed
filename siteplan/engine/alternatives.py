"""
Alternative schedule generation.

Six deterministic strategies, each applied to the same CPM-annotated
baseline and each returning an independent ``Schedule``:

1. baseline            unchanged
2. fast_tracking       overlap FS pairs that are not high risk by half the predecessor
3. resource_optimized  smoothing + resource-limited scheduling
4. quality_focused     minimum durations and inspection time
5. crash               critical activities -20% duration, +30% cost
6. balanced            two low-risk overlaps by a quarter, plus a light peak redistribution

Every alternative records which action produced each changed activity so
the optimizer can report the change under the right action type.

An overlap moves only the successor of the pair, not that successor's own
successors, so fast-tracking shortens the project only when the moved
activity is the last to finish; ``fast_tracking`` often shows no saving.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from siteplan.engine.compression import find_overlap_candidates
from siteplan.engine.critical_path import calculate_critical_path
from siteplan.engine.leveling import level_schedule
from siteplan.engine.resource_profile import ResourcePool, build_resource_profile, identify_peaks
from siteplan.engine.risk_rules import RiskRuleTable, default_rule_table
from siteplan.graph.activity_graph import Schedule
from siteplan.models.constraints import Constraints
from siteplan.models.entities import RiskLevel
from siteplan.models.results import ActionType
from siteplan.utils.calendar import add_days

logger = logging.getLogger(__name__)

BALANCED_OVERLAP_PAIRS = 2
BALANCED_MAX_OVERALLOCATION = 2


@dataclass
class Alternative:
    name: str
    schedule: Schedule
    actions: Dict[str, ActionType] = field(default_factory=dict)

    def tag(self, activity_id: str, action: ActionType) -> None:
        self.actions.setdefault(activity_id, action)


def _overlap(alternative: Alternative, predecessor_id: str, successor_id: str, overlap_days: int) -> None:
    """Start the successor ``overlap_days`` after the predecessor's start, if that is earlier."""
    predecessor = alternative.schedule[predecessor_id]
    successor = alternative.schedule[successor_id]
    new_start = add_days(predecessor.planned_start, overlap_days)
    if new_start < successor.planned_start:
        alternative.schedule = alternative.schedule.update(successor_id, planned_start=new_start)
        alternative.tag(successor_id, ActionType.FAST_TRACKING)


def baseline_alternative(schedule: Schedule, constraints: Constraints, pool: ResourcePool, rules: RiskRuleTable) -> Alternative:
    return Alternative("baseline", schedule)


def fast_tracking_alternative(schedule: Schedule, constraints: Constraints, pool: ResourcePool, rules: RiskRuleTable) -> Alternative:
    alternative = Alternative("fast_tracking", schedule)
    for candidate in find_overlap_candidates(schedule):
        if rules.assess(candidate.predecessor, candidate.successor).risk_level is RiskLevel.HIGH:
            continue
        overlap_days = candidate.predecessor.duration_days // 2
        _overlap(alternative, candidate.predecessor.id, candidate.successor.id, overlap_days)
    return alternative


def resource_optimized_alternative(schedule: Schedule, constraints: Constraints, pool: ResourcePool, rules: RiskRuleTable) -> Alternative:
    leveled, _ = level_schedule(schedule, pool)
    alternative = Alternative("resource_optimized", leveled)
    for activity_id in leveled.changed_ids:
        if leveled[activity_id].planned_start != schedule[activity_id].planned_start:
            alternative.tag(activity_id, ActionType.RESOURCE_REALLOCATION)
    return alternative


def quality_focused_alternative(schedule: Schedule, constraints: Constraints, pool: ResourcePool, rules: RiskRuleTable) -> Alternative:
    alternative = Alternative("quality_focused", schedule)
    for activity in schedule:
        requirement = constraints.quality_requirement_for(activity.id)
        if requirement is None:
            continue
        duration = max(activity.duration_days, requirement.min_duration) + requirement.inspection_time
        if duration != activity.duration_days:
            alternative.schedule = alternative.schedule.update(activity.id, duration_days=duration)
            alternative.tag(activity.id, ActionType.DURATION_ADJUSTMENT)
    return alternative


def crash_alternative(schedule: Schedule, constraints: Constraints, pool: ResourcePool, rules: RiskRuleTable) -> Alternative:
    alternative = Alternative("crash", schedule)
    for activity_id in calculate_critical_path(schedule).critical_activities:
        activity = schedule[activity_id]
        alternative.schedule = alternative.schedule.update(
            activity_id,
            duration_days=max(1, activity.duration_days * 80 // 100),
            planned_total_cost=activity.planned_total_cost * 1.3,
        )
        alternative.tag(activity_id, ActionType.CRASHING)
    return alternative


def _redistribute_around_peaks(alternative: Alternative, pool: ResourcePool) -> None:
    """Move activities covering minor peaks one day later, within their float."""
    peaks = [
        p for p in identify_peaks(build_resource_profile(alternative.schedule, pool))
        if p.overallocation <= BALANCED_MAX_OVERALLOCATION and pool.knows(p.resource_type)
    ]
    for peak in peaks:
        affected = [
            a for a in alternative.schedule
            if peak.resource_type in a.resource_types()
            and a.planned_start <= peak.date < a.planned_end
            and a.total_float > 0
        ]
        affected.sort(key=lambda a: a.total_float, reverse=True)
        for activity in affected[:math.ceil(peak.overallocation)]:
            alternative.schedule = alternative.schedule.update(
                activity.id,
                planned_start=add_days(activity.planned_start, 1),
                total_float=activity.total_float - 1,
                free_float=max(0, min(activity.free_float - 1, activity.total_float - 1)),
            )
            alternative.tag(activity.id, ActionType.RESOURCE_REALLOCATION)


def balanced_alternative(schedule: Schedule, constraints: Constraints, pool: ResourcePool, rules: RiskRuleTable) -> Alternative:
    alternative = Alternative("balanced", schedule)
    low_risk = [
        c for c in find_overlap_candidates(schedule)
        if rules.assess(c.predecessor, c.successor).risk_level is RiskLevel.LOW
    ]
    for candidate in low_risk[:BALANCED_OVERLAP_PAIRS]:
        overlap_days = candidate.predecessor.duration_days // 4
        _overlap(alternative, candidate.predecessor.id, candidate.successor.id, overlap_days)
    _redistribute_around_peaks(alternative, pool)
    return alternative


Strategy = Callable[[Schedule, Constraints, ResourcePool, RiskRuleTable], Alternative]

STRATEGIES: List[Strategy] = [
    baseline_alternative,
    fast_tracking_alternative,
    resource_optimized_alternative,
    quality_focused_alternative,
    crash_alternative,
    balanced_alternative,
]


def generate_alternatives(
    baseline: Schedule,
    constraints: Constraints,
    pool: ResourcePool,
    rules: Optional[RiskRuleTable] = None,
) -> List[Alternative]:
    """
    Build every alternative from the same annotated baseline, in strategy order.

    The baseline is never modified: each strategy starts from it and only
    stores the activities it changed.
    """
    rules = rules or default_rule_table()
    alternatives = [strategy(baseline, constraints, pool, rules) for strategy in STRATEGIES]
    for alternative in alternatives:
        logger.debug(f"Alternative {alternative.name}: {len(alternative.actions)} activities changed")
    return alternatives
