"""
Schedule compression analyzers: fast-tracking and crashing.

Fast-tracking overlaps finish-to-start pairs; crashing buys duration on
critical activities with extra resources or overtime. Both produce ranked
``OptimizationAction`` lists, they never modify the schedule.

Percentages are applied in integer arithmetic (``days * pct // 100``) so that
floored day counts do not depend on binary float rounding.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from siteplan.engine.critical_path import calculate_critical_path
from siteplan.engine.risk_rules import RiskRuleTable, default_rule_table
from siteplan.exceptions import ValidationError
from siteplan.graph.activity_graph import Schedule, as_schedule
from siteplan.models.entities import Activity, DependencyType, RiskLevel
from siteplan.models.results import ActionImpact, ActionImplementation, ActionType, OptimizationAction

ACTION_RISK_PENALTY = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 10, RiskLevel.HIGH: 20}
CRASH_RISK_PENALTY = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 15, RiskLevel.HIGH: 30}

FAST_TRACK_PREREQUISITES = (
    "Enhanced coordination protocols",
    "Quality control procedures",
    "Risk mitigation plan",
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_priority(raw: float) -> int:
    return max(1, min(10, round_half_up(raw / 10)))


def calculate_action_priority(duration_impact: float, cost_impact: float, risk_level: RiskLevel) -> int:
    """
    Priority 1-10 for a schedule action.

    Up to 40 points for days saved (5 per day), up to 30 points for being
    cheap (minus one per 1000 spent), minus a risk penalty.
    """
    priority = min(40, duration_impact * 5)
    priority += max(0, 30 - cost_impact / 1000)
    priority -= ACTION_RISK_PENALTY[risk_level]
    return clamp_priority(priority)


@dataclass(frozen=True)
class OverlapCandidate:
    predecessor: Activity
    successor: Activity


def find_overlap_candidates(schedule: Schedule) -> List[OverlapCandidate]:
    """Every finish-to-start predecessor/successor pair, in activity then edge order."""
    candidates = []
    for activity in schedule:
        for edge in schedule.graph.predecessors(activity.id):
            if edge.dependency_type is DependencyType.FINISH_TO_START:
                candidates.append(OverlapCandidate(schedule[edge.activity_id], activity))
    return candidates


def fast_tracking_saving(candidate: OverlapCandidate) -> int:
    # at most 60% of the predecessor and 80% of the successor can overlap
    return min(candidate.predecessor.duration_days * 60, candidate.successor.duration_days * 80) // 100


def fast_tracking_cost(candidate: OverlapCandidate) -> float:
    return (candidate.predecessor.planned_total_cost + candidate.successor.planned_total_cost) * 0.05


def analyze_fast_tracking_opportunities(
    activities: Union[Schedule, Sequence[Activity]],
    rules: Optional[RiskRuleTable] = None,
) -> List[OptimizationAction]:
    """
    Enumerate overlapping opportunities for finish-to-start pairs.

    Args:
        activities: Activities or Schedule
        rules: Risk rule table, default keyword table when omitted

    Returns:
        One fast_tracking action per pair, highest priority first
    """
    schedule = as_schedule(activities)
    rules = rules or default_rule_table()
    actions = []
    for candidate in find_overlap_candidates(schedule):
        assessment = rules.assess(candidate.predecessor, candidate.successor)
        saving = fast_tracking_saving(candidate)
        cost = fast_tracking_cost(candidate)
        actions.append(
            OptimizationAction(
                type=ActionType.FAST_TRACKING,
                description=f"Execute {candidate.successor.name} in parallel with {candidate.predecessor.name}",
                affected_activities=(candidate.predecessor.id, candidate.successor.id),
                impact=ActionImpact(
                    duration_change=-saving,
                    cost_change=cost,
                    quality_impact=assessment.quality_impact,
                    risk_level=assessment.risk_level,
                ),
                implementation=ActionImplementation(
                    effort=assessment.complexity,
                    prerequisites=FAST_TRACK_PREREQUISITES,
                    timeline=2,
                    cost=cost,
                ),
                priority=calculate_action_priority(saving, cost, assessment.risk_level),
            )
        )
    return sorted(actions, key=lambda a: a.priority, reverse=True)


@dataclass(frozen=True)
class CrashProfile:
    label: str
    duration_pct: int
    cost_pct: int
    quality_impact: str
    risk_level: RiskLevel
    effort: RiskLevel
    prerequisites: Tuple[str, ...]


CRASH_PROFILES = (
    CrashProfile(
        "Add 25% more resources", 15, 25,
        "Quality maintained with proper management",
        RiskLevel.LOW, RiskLevel.MEDIUM,
        ("Additional workforce availability", "Equipment capacity"),
    ),
    CrashProfile(
        "Add 50% more resources", 25, 45,
        "Increased coordination required",
        RiskLevel.MEDIUM, RiskLevel.HIGH,
        ("Significant additional resources", "Enhanced management", "Quality control measures"),
    ),
    CrashProfile(
        "Schedule overtime work", 10, 15,
        "Monitor for fatigue-related quality issues",
        RiskLevel.MEDIUM, RiskLevel.LOW,
        ("Worker agreement", "Overtime regulations compliance"),
    ),
)


@dataclass(frozen=True)
class CrashOption:
    profile: CrashProfile
    duration_reduction: int
    additional_cost: float


def crashing_options(activity: Activity) -> List[CrashOption]:
    return [
        CrashOption(
            profile=profile,
            duration_reduction=activity.duration_days * profile.duration_pct // 100,
            additional_cost=activity.planned_total_cost * profile.cost_pct / 100,
        )
        for profile in CRASH_PROFILES
    ]


def calculate_crashing_priority(option: CrashOption, target_reduction: float) -> int:
    """Priority 1-10 weighing target coverage, days saved per 1000 spent, and risk."""
    target_match = min(100, option.duration_reduction / target_reduction * 100)
    priority = target_match * 0.4
    efficiency = option.duration_reduction / max(1, option.additional_cost / 1000)
    priority += min(30, efficiency * 10)
    priority -= CRASH_RISK_PENALTY[option.profile.risk_level]
    return clamp_priority(priority)


def analyze_schedule_crashing(
    activities: Union[Schedule, Sequence[Activity]],
    target_reduction_days: float,
) -> List[OptimizationAction]:
    """
    Enumerate crashing options for every critical activity.

    Args:
        activities: Activities or Schedule
        target_reduction_days: Days the caller wants to save; must be positive

    Returns:
        Three crashing actions per critical activity, highest priority first

    Raises:
        ValidationError: non-positive target
    """
    if target_reduction_days <= 0:
        raise ValidationError("target_reduction_days must be positive")
    schedule = as_schedule(activities)
    analysis = calculate_critical_path(schedule)

    actions = []
    for activity_id in analysis.critical_activities:
        activity = schedule[activity_id]
        for option in crashing_options(activity):
            actions.append(
                OptimizationAction(
                    type=ActionType.CRASHING,
                    description=f"{option.profile.label} to crash {activity.name}",
                    affected_activities=(activity.id,),
                    impact=ActionImpact(
                        duration_change=-option.duration_reduction,
                        cost_change=option.additional_cost,
                        quality_impact=option.profile.quality_impact,
                        risk_level=option.profile.risk_level,
                    ),
                    implementation=ActionImplementation(
                        effort=option.profile.effort,
                        prerequisites=option.profile.prerequisites,
                        timeline=1,
                        cost=option.additional_cost,
                    ),
                    priority=calculate_crashing_priority(option, target_reduction_days),
                )
            )
    return sorted(actions, key=lambda a: a.priority, reverse=True)
