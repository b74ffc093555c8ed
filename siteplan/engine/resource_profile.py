"""
Daily resource demand/availability projection.

A ``ResourcePool`` answers "how many units of resource type T can work on day
D". The profile walks every day of the project and compares that capacity
with the number of activities drawing on each type.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from siteplan.config.settings import get_settings
from siteplan.graph.activity_graph import Schedule
from siteplan.models.constraints import Constraints, WorkingCalendar
from siteplan.models.entities import Equipment, ResourceAssignment, RiskLevel, Workforce
from siteplan.models.results import DailyResourceProfile, ResourcePeak, ResourceProfile, ResourceUsage
from siteplan.utils.calendar import iter_days

logger = logging.getLogger(__name__)


class ResourcePool:
    """
    Capacity per resource type and day.

    Three flavours:
    - record based: counts workforce/equipment whose availability window covers the day
    - limit based: a fixed number of units per type
    - default: every type has ``default_capacity`` units (used when the caller supplies no resource data)
    """

    def __init__(
        self,
        workforce: Sequence[Workforce] = (),
        equipment: Sequence[Equipment] = (),
        limits: Optional[Mapping[str, int]] = None,
        default_capacity: Optional[int] = None,
        calendar: Optional[WorkingCalendar] = None,
    ):
        self.workforce = tuple(workforce)
        self.equipment = tuple(equipment)
        self.limits = dict(limits or {})
        self.default_capacity = default_capacity
        self.calendar = calendar

    @classmethod
    def from_resources(
        cls,
        workforce: Sequence[Workforce] = (),
        equipment: Sequence[Equipment] = (),
        calendar: Optional[WorkingCalendar] = None,
    ) -> "ResourcePool":
        return cls(workforce=workforce, equipment=equipment, calendar=calendar)

    @classmethod
    def from_limits(cls, limits: Mapping[str, int], calendar: Optional[WorkingCalendar] = None) -> "ResourcePool":
        return cls(limits=limits, calendar=calendar)

    @classmethod
    def from_constraints(cls, constraints: Constraints) -> "ResourcePool":
        """Pool from the constraint's resource records; the default capacity when it carries none."""
        if not constraints.available_workforce and not constraints.available_equipment:
            return cls(
                default_capacity=get_settings().default_trade_capacity,
                calendar=constraints.working_calendar,
            )
        return cls.from_resources(
            constraints.available_workforce,
            constraints.available_equipment,
            calendar=constraints.working_calendar,
        )

    @classmethod
    def default(cls) -> "ResourcePool":
        return cls(default_capacity=get_settings().default_trade_capacity)

    @classmethod
    def coerce(cls, resources: Union["ResourcePool", Mapping[str, int], None]) -> "ResourcePool":
        if resources is None:
            return cls.default()
        if isinstance(resources, ResourcePool):
            return resources
        return cls.from_limits(resources)

    def knows(self, resource_type: str) -> bool:
        if self.default_capacity is not None:
            return True
        if resource_type in self.limits:
            return True
        return any(r.resource_type == resource_type for r in self.workforce + self.equipment)

    def records(self, resource_type: str) -> List[Union[Workforce, Equipment]]:
        return [r for r in self.workforce + self.equipment if r.resource_type == resource_type]

    def is_working_day(self, day: date) -> bool:
        return self.calendar is None or self.calendar.is_working_day(day)

    def capacity(self, resource_type: str, day: date) -> int:
        if not self.is_working_day(day):
            return 0
        if self.default_capacity is not None:
            return self.default_capacity
        if resource_type in self.limits:
            return int(self.limits[resource_type])
        available = sum(1 for w in self.workforce if w.trade == resource_type and w.is_available(day))
        available += sum(e.units for e in self.equipment if e.type == resource_type and e.is_available(day))
        return available


def _usage(required: int, available: int) -> ResourceUsage:
    if available > 0:
        ratio = required / available * 100
        utilization = min(100.0, ratio)
    else:
        # No capacity on record: all demand is overallocation
        ratio = None
        utilization = 100.0 if required > 0 else 0.0
    return ResourceUsage(
        required=required,
        available=available,
        utilization=utilization,
        overallocation=max(0, required - available),
        demand_ratio=ratio,
    )


def build_resource_profile(schedule: Union[Schedule, Iterable], pool: ResourcePool) -> ResourceProfile:
    """
    Project per-day demand against capacity.

    An activity occupies the days ``[planned_start, planned_end)`` and demands
    one unit of its trade plus one unit of each equipment type it lists.

    Args:
        schedule: Schedule (or iterable of activities) to project
        pool: Capacity source

    Returns:
        ResourceProfile with one entry per day from earliest start to latest finish

    Complexity: O(d * n) where d = project days, n = activities
    """
    activities = list(schedule)
    if not activities:
        return ResourceProfile(days=[])

    project_start = min(a.planned_start for a in activities)
    project_end = max(a.planned_end for a in activities)

    missing = []
    days: List[DailyResourceProfile] = []
    for day in iter_days(project_start, project_end):
        demand: Dict[str, int] = defaultdict(int)
        if pool.is_working_day(day):
            for activity in activities:
                if activity.planned_start <= day < activity.planned_end:
                    for resource_type in activity.resource_types():
                        demand[resource_type] += 1

        resources = {}
        for resource_type, required in demand.items():
            if not pool.knows(resource_type) and resource_type not in missing:
                missing.append(resource_type)
            resources[resource_type] = _usage(required, pool.capacity(resource_type, day))
        days.append(DailyResourceProfile(date=day, resources=resources))

    if missing:
        logger.warning(f"No capacity data for resource types {missing}; treated as zero availability")
    return ResourceProfile(days=days, missing_types=missing)


def identify_peaks(profile: ResourceProfile) -> List[ResourcePeak]:
    """Every (day, resource type) with overallocation, in profile order."""
    peaks = []
    for day in profile.days:
        for resource_type, usage in day.resources.items():
            if usage.overallocation > 0:
                if usage.overallocation > 3:
                    severity = RiskLevel.HIGH
                elif usage.overallocation > 1:
                    severity = RiskLevel.MEDIUM
                else:
                    severity = RiskLevel.LOW
                peaks.append(ResourcePeak(resource_type, day.date, usage.overallocation, severity))
    return peaks


def utilization_series(profile: ResourceProfile) -> List[float]:
    """Mean utilization across resource types, per day."""
    return [day.mean_utilization() for day in profile.days]


def derive_assignments(schedule: Schedule, pool: ResourcePool, profile: ResourceProfile) -> List[ResourceAssignment]:
    """
    Spread activities over the pool's concrete resources, round robin per type.

    Allocation percentage is the activity's worst daily demand ratio for the
    type, so values above 100 flag overallocated assignments.
    """
    by_day = {d.date: d for d in profile.days}
    cursor: Dict[str, int] = defaultdict(int)
    assignments = []
    for activity in schedule:
        for resource_type in activity.resource_types():
            records = pool.records(resource_type)
            if not records:
                continue
            record = records[cursor[resource_type] % len(records)]
            cursor[resource_type] += 1

            ratios = []
            for day in iter_days(activity.planned_start, activity.planned_end):
                entry = by_day.get(day)
                usage = entry.resources.get(resource_type) if entry else None
                if usage is not None:
                    ratios.append(usage.demand_ratio if usage.demand_ratio is not None else 100.0 * usage.required)
            allocation = max(ratios) if ratios else 0.0

            if isinstance(record, Workforce):
                cost = record.hourly_rate * record.daily_hours * activity.duration_days / max(record.productivity_factor, 0.01)
            else:
                cost = record.daily_rental_cost * activity.duration_days
            assignments.append(
                ResourceAssignment(
                    activity_id=activity.id,
                    resource_id=record.id,
                    allocation_percentage=round(allocation, 2),
                    planned_cost=round(cost, 2),
                )
            )
    return assignments
