from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from siteplan.exceptions import ValidationError
from siteplan.models.entities import Equipment, Workforce


@dataclass(frozen=True)
class WorkingCalendar:
    working_days: FrozenSet[int] = frozenset({0, 1, 2, 3, 4, 5, 6})  # date.weekday(), Monday=0
    holidays: FrozenSet[date] = frozenset()

    def is_working_day(self, day: date) -> bool:
        return day.weekday() in self.working_days and day not in self.holidays


@dataclass(frozen=True)
class QualityRequirement:
    activity_id: str
    min_duration: int
    inspection_time: int = 0


@dataclass(frozen=True)
class FixedMilestone:
    activity_id: str
    date: date
    flexibility_days: int = 0


@dataclass(frozen=True)
class Constraints:
    max_project_duration: float
    max_budget: float
    available_workforce: Tuple[Workforce, ...] = ()
    available_equipment: Tuple[Equipment, ...] = ()
    working_calendar: Optional[WorkingCalendar] = None
    quality_requirements: Tuple[QualityRequirement, ...] = ()
    fixed_milestones: Tuple[FixedMilestone, ...] = ()

    def __post_init__(self):
        for name in ("available_workforce", "available_equipment", "quality_requirements", "fixed_milestones"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    def validate(self) -> None:
        if self.max_project_duration <= 0:
            raise ValidationError("max_project_duration must be positive")
        if self.max_budget <= 0:
            raise ValidationError("max_budget must be positive")

    def with_resources(self, workforce: Sequence[Workforce], equipment: Sequence[Equipment]) -> "Constraints":
        return replace(self, available_workforce=tuple(workforce), available_equipment=tuple(equipment))

    def quality_requirement_for(self, activity_id: str) -> Optional[QualityRequirement]:
        for requirement in self.quality_requirements:
            if requirement.activity_id == activity_id:
                return requirement
        return None


@dataclass(frozen=True)
class Objective:
    minimize_time: float = 25.0
    minimize_cost: float = 25.0
    maximize_quality: float = 25.0
    balance_resources: float = 25.0

    def normalized(self) -> Dict[str, float]:
        """
        Weights divided by their sum.

        Raises:
            ValidationError: a weight is outside 0-100, or all weights are zero.
        """
        weights = {
            "minimize_time": self.minimize_time,
            "minimize_cost": self.minimize_cost,
            "maximize_quality": self.maximize_quality,
            "balance_resources": self.balance_resources,
        }
        for name, value in weights.items():
            if value < 0 or value > 100:
                raise ValidationError(f"objective weight {name} must be within 0-100, got {value}")
        total = sum(weights.values())
        if total == 0:
            raise ValidationError("objective weights sum to zero; at least one weight must be positive")
        return {name: value / total for name, value in weights.items()}
