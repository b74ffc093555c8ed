from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from siteplan.exceptions import ValidationError
from siteplan.utils.calendar import add_days


class DependencyType(str, Enum):
    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"


class ActivityPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Predecessor:
    activity_id: str
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = 0

    def __post_init__(self):
        if not isinstance(self.dependency_type, DependencyType):
            try:
                object.__setattr__(self, "dependency_type", DependencyType(self.dependency_type))
            except ValueError:
                raise ValidationError(
                    f"Unknown dependency type {self.dependency_type!r} on edge from {self.activity_id}"
                ) from None


@dataclass(frozen=True)
class Activity:
    id: str
    name: str
    primary_trade: str
    planned_start: date
    duration_days: int
    planned_total_cost: float = 0.0
    priority: ActivityPriority = ActivityPriority.NORMAL
    predecessors: Tuple[Predecessor, ...] = ()
    equipment_types: Tuple[str, ...] = ()
    kind: Optional[str] = None  # structured activity kind, preferred over the name by risk rules
    weather_sensitive: bool = False
    # Computed by the critical path analyzer
    total_float: int = 0
    free_float: int = 0
    is_critical_path: bool = False

    def __post_init__(self):
        if not isinstance(self.priority, ActivityPriority):
            try:
                object.__setattr__(self, "priority", ActivityPriority(self.priority))
            except ValueError:
                raise ValidationError(f"Unknown priority {self.priority!r} on activity {self.id}") from None
        if not isinstance(self.predecessors, tuple):
            object.__setattr__(self, "predecessors", tuple(self.predecessors))
        if not isinstance(self.equipment_types, tuple):
            object.__setattr__(self, "equipment_types", tuple(self.equipment_types))

    @property
    def planned_end(self) -> date:
        return add_days(self.planned_start, self.duration_days)

    def resource_types(self) -> Tuple[str, ...]:
        """Resource types this activity draws on: its trade, then any equipment."""
        return (self.primary_trade,) + tuple(t for t in self.equipment_types if t != self.primary_trade)


@dataclass(frozen=True)
class Workforce:
    id: str
    trade: str
    hourly_rate: float = 0.0
    daily_hours: float = 8.0
    productivity_factor: float = 1.0
    available_from: Optional[date] = None
    available_until: Optional[date] = None  # inclusive

    @property
    def resource_type(self) -> str:
        return self.trade

    def is_available(self, day: date) -> bool:
        if self.available_from and day < self.available_from:
            return False
        if self.available_until and day > self.available_until:
            return False
        return True


@dataclass(frozen=True)
class Equipment:
    id: str
    type: str
    daily_rental_cost: float = 0.0
    units: int = 1
    productivity_factor: float = 1.0
    available_from: Optional[date] = None
    available_until: Optional[date] = None  # inclusive

    @property
    def resource_type(self) -> str:
        return self.type

    def is_available(self, day: date) -> bool:
        if self.available_from and day < self.available_from:
            return False
        if self.available_until and day > self.available_until:
            return False
        return True


@dataclass(frozen=True)
class ResourceAssignment:
    activity_id: str
    resource_id: str
    allocation_percentage: float
    planned_cost: float = 0.0

    @property
    def is_overallocated(self) -> bool:
        return self.allocation_percentage > 100
