from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from siteplan.models.constraints import Constraints, FixedMilestone, Objective, QualityRequirement, WorkingCalendar
from siteplan.models.entities import (
    Activity,
    ActivityPriority,
    DependencyType,
    Equipment,
    Predecessor,
    RiskLevel,
    Workforce,
)
from siteplan.models.results import (
    ActionType,
    OptimizationResult,
    ResourceLevelingResult,
    RiskCategory,
)
from siteplan.engine.what_if import Scenario, ScenarioChange
from siteplan.utils.calendar import add_days


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------------------------------------------------------------- inputs

class PredecessorDTO(CamelModel):
    activity_id: str
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = 0

    def to_domain(self) -> Predecessor:
        return Predecessor(self.activity_id, self.dependency_type, self.lag_days)


class ActivityDTO(CamelModel):
    id: str
    name: str
    primary_trade: str
    planned_start_date: date
    planned_end_date: Optional[date] = None
    planned_duration_days: int = Field(..., gt=0)
    planned_total_cost: float = Field(0.0, ge=0)
    priority: ActivityPriority = ActivityPriority.NORMAL
    predecessors: List[PredecessorDTO] = []
    equipment_types: List[str] = []
    kind: Optional[str] = None
    weather_sensitive: bool = False
    total_float: int = 0
    free_float: int = 0
    is_critical_path: bool = False

    @model_validator(mode="after")
    def validate_dates(self):
        """End date, when given, must be after the start and agree with the duration."""
        if self.planned_end_date is not None:
            if self.planned_start_date >= self.planned_end_date:
                raise ValueError("plannedStartDate must be before plannedEndDate")
            if self.planned_end_date != add_days(self.planned_start_date, self.planned_duration_days):
                raise ValueError("plannedEndDate must equal plannedStartDate + plannedDurationDays")
        return self

    def to_domain(self) -> Activity:
        return Activity(
            id=self.id,
            name=self.name,
            primary_trade=self.primary_trade,
            planned_start=self.planned_start_date,
            duration_days=self.planned_duration_days,
            planned_total_cost=self.planned_total_cost,
            priority=self.priority,
            predecessors=[p.to_domain() for p in self.predecessors],
            equipment_types=self.equipment_types,
            kind=self.kind,
            weather_sensitive=self.weather_sensitive,
        )

    @classmethod
    def from_domain(cls, a: Activity) -> "ActivityDTO":
        return cls(
            id=a.id,
            name=a.name,
            primary_trade=a.primary_trade,
            planned_start_date=a.planned_start,
            planned_end_date=a.planned_end,
            planned_duration_days=a.duration_days,
            planned_total_cost=a.planned_total_cost,
            priority=a.priority,
            predecessors=[PredecessorDTO.model_validate(p) for p in a.predecessors],
            equipment_types=list(a.equipment_types),
            kind=a.kind,
            weather_sensitive=a.weather_sensitive,
            total_float=a.total_float,
            free_float=a.free_float,
            is_critical_path=a.is_critical_path,
        )


class WorkforceDTO(CamelModel):
    id: str
    trade: str
    hourly_rate: float = Field(0.0, ge=0)
    daily_hours: float = Field(8.0, gt=0, le=24)
    productivity_factor: float = Field(1.0, gt=0)
    available_from: Optional[date] = None
    available_until: Optional[date] = None

    def to_domain(self) -> Workforce:
        return Workforce(**self.model_dump())


class EquipmentDTO(CamelModel):
    id: str
    type: str
    daily_rental_cost: float = Field(0.0, ge=0)
    units: int = Field(1, ge=1)
    productivity_factor: float = Field(1.0, gt=0)
    available_from: Optional[date] = None
    available_until: Optional[date] = None

    def to_domain(self) -> Equipment:
        return Equipment(**self.model_dump())


class WorkingCalendarDTO(CamelModel):
    working_days: List[int] = [0, 1, 2, 3, 4, 5, 6]
    holidays: List[date] = []

    @field_validator("working_days")
    def validate_working_days(cls, v: List[int]):
        """Weekday numbers, Monday=0 .. Sunday=6."""
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("workingDays must be weekday numbers 0-6 (Monday=0)")
        return v

    def to_domain(self) -> WorkingCalendar:
        return WorkingCalendar(frozenset(self.working_days), frozenset(self.holidays))


class QualityRequirementDTO(CamelModel):
    activity_id: str
    min_duration: int = Field(..., ge=1)
    inspection_time: int = Field(0, ge=0)

    def to_domain(self) -> QualityRequirement:
        return QualityRequirement(self.activity_id, self.min_duration, self.inspection_time)


class FixedMilestoneDTO(CamelModel):
    activity_id: str
    milestone_date: date = Field(..., alias="date")
    flexibility_days: int = Field(0, ge=0)

    def to_domain(self) -> FixedMilestone:
        return FixedMilestone(self.activity_id, self.milestone_date, self.flexibility_days)


class ConstraintsDTO(CamelModel):
    max_project_duration: float
    max_budget: float
    available_workforce: List[WorkforceDTO] = []
    available_equipment: List[EquipmentDTO] = []
    working_calendar: Optional[WorkingCalendarDTO] = None
    quality_requirements: List[QualityRequirementDTO] = []
    fixed_milestones: List[FixedMilestoneDTO] = []

    def to_domain(self) -> Constraints:
        return Constraints(
            max_project_duration=self.max_project_duration,
            max_budget=self.max_budget,
            available_workforce=[w.to_domain() for w in self.available_workforce],
            available_equipment=[e.to_domain() for e in self.available_equipment],
            working_calendar=self.working_calendar.to_domain() if self.working_calendar else None,
            quality_requirements=[q.to_domain() for q in self.quality_requirements],
            fixed_milestones=[m.to_domain() for m in self.fixed_milestones],
        )


class ObjectiveDTO(CamelModel):
    minimize_time: float = 25.0
    minimize_cost: float = 25.0
    maximize_quality: float = 25.0
    balance_resources: float = 25.0

    def to_domain(self) -> Objective:
        return Objective(**self.model_dump())


class ScenarioChangeDTO(CamelModel):
    activity_id: str
    duration_change: int = 0
    cost_change: float = 0.0
    resource_change: Optional[str] = None
    date_change: Optional[date] = None

    def to_domain(self) -> ScenarioChange:
        return ScenarioChange(**self.model_dump())


class ScenarioDTO(CamelModel):
    name: str
    description: str = ""
    changes: List[ScenarioChangeDTO] = []

    def to_domain(self) -> Scenario:
        return Scenario(self.name, self.description, tuple(c.to_domain() for c in self.changes))


class ActivitiesRequest(CamelModel):
    activities: List[ActivityDTO]


class OptimizeRequest(CamelModel):
    activities: List[ActivityDTO]
    objective: ObjectiveDTO = ObjectiveDTO()
    constraints: ConstraintsDTO


class ProjectOptimizeRequest(CamelModel):
    objective: ObjectiveDTO = ObjectiveDTO()
    constraints: ConstraintsDTO


class LevelRequest(CamelModel):
    activities: List[ActivityDTO]
    available_resources: Optional[Dict[str, int]] = None


class CrashingRequest(CamelModel):
    activities: List[ActivityDTO]
    target_reduction_days: float


class WhatIfRequest(CamelModel):
    activities: List[ActivityDTO]
    scenarios: List[ScenarioDTO]
    available_resources: Optional[Dict[str, int]] = None


# ---------------------------------------------------------------- outputs

class ActivityTimesDTO(CamelModel):
    early_start: date
    early_finish: date
    late_start: date
    late_finish: date


class NearCriticalPathDTO(CamelModel):
    activities: List[str]
    total_float: int
    risk_level: RiskLevel


class CriticalPathResponse(CamelModel):
    critical_activities: List[str]
    total_float: Dict[str, int]
    free_float: Dict[str, int]
    criticality_index: Dict[str, float]
    near_critical_paths: List[NearCriticalPathDTO]
    activity_times: Dict[str, ActivityTimesDTO] = {}
    project_finish: Optional[date] = None


class ResourceUsageDTO(CamelModel):
    required: int
    available: int
    utilization: float
    overallocation: int
    demand_ratio: Optional[float] = None


class DailyResourceProfileDTO(CamelModel):
    day: date = Field(..., alias="date")
    resources: Dict[str, ResourceUsageDTO]


class LevelingImprovementsDTO(CamelModel):
    peak_reduction: float
    utilization_improvement: float
    duration_impact: int
    cost_impact: float


class ResourceAssignmentDTO(CamelModel):
    activity_id: str
    resource_id: str
    allocation_percentage: float
    planned_cost: float


class LevelingResponse(CamelModel):
    leveled_schedule: List[ActivityDTO]
    resource_profile: List[DailyResourceProfileDTO]
    improvements: LevelingImprovementsDTO
    recommendations: List[str]
    unresolved_activities: List[str] = []
    missing_resource_types: List[str] = []
    assignments: List[ResourceAssignmentDTO] = []

    @classmethod
    def from_domain(cls, result: ResourceLevelingResult) -> "LevelingResponse":
        return cls(
            leveled_schedule=[ActivityDTO.from_domain(a) for a in result.leveled_schedule],
            resource_profile=[DailyResourceProfileDTO.model_validate(d) for d in result.resource_profile.days],
            improvements=LevelingImprovementsDTO.model_validate(result.improvements),
            recommendations=result.recommendations,
            unresolved_activities=result.unresolved_activities,
            missing_resource_types=result.resource_profile.missing_types,
            assignments=[ResourceAssignmentDTO.model_validate(a) for a in result.assignments],
        )


class ActionImpactDTO(CamelModel):
    duration_change: int
    cost_change: float
    quality_impact: str
    risk_level: RiskLevel


class ActionImplementationDTO(CamelModel):
    effort: RiskLevel
    prerequisites: List[str]
    timeline: int
    cost: float


class OptimizationActionDTO(CamelModel):
    type: ActionType
    description: str
    affected_activities: List[str]
    impact: ActionImpactDTO
    implementation: ActionImplementationDTO
    priority: int


class OptimizationRiskDTO(CamelModel):
    id: str
    description: str
    probability: float
    impact: RiskLevel
    category: RiskCategory
    mitigation: str
    contingency_plan: str


class PerformanceDTO(CamelModel):
    iterations_run: int
    convergence_time: float
    improvement_achieved: float


class OptimizationResponse(CamelModel):
    original_duration: int
    optimized_duration: int
    duration_saving: int
    original_cost: float
    optimized_cost: float
    cost_saving: float
    quality_score: float
    resource_utilization: float
    feasibility_score: float
    optimization_actions: List[OptimizationActionDTO]
    risks: List[OptimizationRiskDTO]
    performance: PerformanceDTO
    selected_strategy: str
    optimized_schedule: List[ActivityDTO] = []
    cached: bool = False

    @classmethod
    def from_domain(cls, result: OptimizationResult) -> "OptimizationResponse":
        return cls(
            original_duration=result.original_duration,
            optimized_duration=result.optimized_duration,
            duration_saving=result.duration_saving,
            original_cost=result.original_cost,
            optimized_cost=result.optimized_cost,
            cost_saving=result.cost_saving,
            quality_score=result.quality_score,
            resource_utilization=result.resource_utilization,
            feasibility_score=result.feasibility_score,
            optimization_actions=[OptimizationActionDTO.model_validate(a) for a in result.optimization_actions],
            risks=[OptimizationRiskDTO.model_validate(r) for r in result.risks],
            performance=PerformanceDTO.model_validate(result.performance),
            selected_strategy=result.selected_strategy,
            optimized_schedule=[ActivityDTO.from_domain(a) for a in result.optimized_schedule],
        )


class ScenarioImpactDTO(CamelModel):
    duration_impact: int
    cost_impact: float
    quality_impact: float
    resource_impact: float


class ScheduleMetricsDTO(CamelModel):
    duration: int
    cost: float
    quality: float
    resource_utilization: float


class ScenarioResultDTO(CamelModel):
    scenario: str
    description: str
    impact: ScenarioImpactDTO
    metrics: ScheduleMetricsDTO
    recommendations: List[str]
    feasibility: float
    risk_level: RiskLevel
