import logging
from typing import List, Sequence

from siteplan.engine.compression import round_half_up
from siteplan.engine.resource_profile import identify_peaks
from siteplan.graph.activity_graph import Schedule
from siteplan.models.entities import RiskLevel
from siteplan.models.results import (
    ActionType,
    OptimizationAction,
    OptimizationRisk,
    ResourceProfile,
    RiskCategory,
)

logger = logging.getLogger(__name__)

EXTERNAL_KEYWORDS = ("permit", "approval")


def _compression_risk(actions: Sequence[OptimizationAction]) -> List[OptimizationRisk]:
    compressing = [a for a in actions if a.impact.duration_change < 0]
    if not compressing:
        return []
    return [OptimizationRisk(
        id="schedule_compression",
        description="Aggressive schedule compression may impact quality and increase costs",
        probability=min(90, len(compressing) * 20),
        impact=RiskLevel.HIGH if len(compressing) > 3 else RiskLevel.MEDIUM,
        category=RiskCategory.SCHEDULE,
        mitigation="Implement enhanced quality control measures and regular progress monitoring",
        contingency_plan="Prepare additional resources and quality inspection protocols",
    )]


def _overallocation_risk(profile: ResourceProfile) -> List[OptimizationRisk]:
    peaks = identify_peaks(profile)
    if not peaks:
        return []
    return [OptimizationRisk(
        id="resource_overallocation",
        description="Resource overallocation may cause delays and increased costs",
        probability=min(80, len(peaks) * 15),
        impact=RiskLevel.HIGH if len(peaks) > 5 else RiskLevel.MEDIUM,
        category=RiskCategory.RESOURCE,
        mitigation="Secure additional resources or reschedule conflicting activities",
        contingency_plan="Identify subcontracting opportunities and backup resources",
    )]


def _resource_data_risk(profile: ResourceProfile) -> List[OptimizationRisk]:
    if not profile.missing_types:
        return []
    return [OptimizationRisk(
        id="resource_data_gap",
        description=f"No capacity data for {', '.join(profile.missing_types)}; resource plan cannot be verified",
        probability=70,
        impact=RiskLevel.HIGH,
        category=RiskCategory.RESOURCE,
        mitigation="Collect workforce and equipment availability for the missing trades",
        contingency_plan="Pre-book subcontractors for the affected trades",
    )]


def _fast_tracking_risk(actions: Sequence[OptimizationAction]) -> List[OptimizationRisk]:
    if not any(a.type is ActionType.FAST_TRACKING for a in actions):
        return []
    return [OptimizationRisk(
        id="fast_tracking_coordination",
        description="Parallel execution increases coordination complexity and rework risk",
        probability=60,
        impact=RiskLevel.MEDIUM,
        category=RiskCategory.QUALITY,
        mitigation="Enhance communication protocols and implement daily coordination meetings",
        contingency_plan="Prepare for potential rework and maintain buffer time",
    )]


def _cost_escalation_risk(schedule: Schedule, actions: Sequence[OptimizationAction]) -> List[OptimizationRisk]:
    added = sum(a.impact.cost_change for a in actions if a.impact.cost_change > 0)
    if added <= 0:
        return []
    baseline_cost = sum(schedule.baseline(a.id).planned_total_cost for a in schedule)
    if baseline_cost > 0:
        increase = added / baseline_cost * 100
        probability = min(75, round_half_up(increase * 5))
    else:
        increase = 100.0
        probability = 75
    return [OptimizationRisk(
        id="cost_escalation",
        description=f"Optimization actions add {round(increase, 1)}% to the planned cost",
        probability=probability,
        impact=RiskLevel.HIGH if increase > 10 else RiskLevel.MEDIUM,
        category=RiskCategory.COST,
        mitigation="Approve the additional spend up front and track it against contingency",
        contingency_plan="Revert the most expensive actions if the budget is exceeded",
    )]


def _external_risk(schedule: Schedule) -> List[OptimizationRisk]:
    exposed = [
        a for a in schedule
        if a.weather_sensitive or any(k in a.name.lower() for k in EXTERNAL_KEYWORDS)
    ]
    if not exposed:
        return []
    return [OptimizationRisk(
        id="external_dependencies",
        description="External factors (weather, permits, approvals) may impact optimized schedule",
        probability=45,
        impact=RiskLevel.MEDIUM,
        category=RiskCategory.EXTERNAL,
        mitigation="Build flexibility into external-dependent activities and maintain alternative plans",
        contingency_plan="Prepare alternative activity sequences and resource allocation",
    )]


def analyze_optimization_risks(
    schedule: Schedule,
    actions: Sequence[OptimizationAction],
    profile: ResourceProfile,
) -> List[OptimizationRisk]:
    """
    Risk register for a chosen schedule and the actions that produced it.

    Args:
        schedule: Chosen schedule
        actions: Actions derived from the baseline/chosen diff
        profile: Resource profile of the chosen schedule

    Returns:
        Risks sorted by probability, highest first
    """
    risks = (
        _compression_risk(actions)
        + _overallocation_risk(profile)
        + _resource_data_risk(profile)
        + _fast_tracking_risk(actions)
        + _cost_escalation_risk(schedule, actions)
        + _external_risk(schedule)
    )
    logger.debug(f"Risk register: {[r.id for r in risks]}")
    return sorted(risks, key=lambda r: r.probability, reverse=True)
