from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from siteplan.models.entities import Activity, ResourceAssignment, RiskLevel


class ActionType(str, Enum):
    RESOURCE_REALLOCATION = "resource_reallocation"
    DURATION_ADJUSTMENT = "duration_adjustment"
    SEQUENCE_CHANGE = "sequence_change"
    FAST_TRACKING = "fast_tracking"
    CRASHING = "crashing"


class RiskCategory(str, Enum):
    SCHEDULE = "schedule"
    COST = "cost"
    QUALITY = "quality"
    RESOURCE = "resource"
    EXTERNAL = "external"


@dataclass(frozen=True)
class ActivityTimes:
    early_start: date
    early_finish: date
    late_start: date
    late_finish: date


@dataclass(frozen=True)
class NearCriticalPath:
    activities: List[str]
    total_float: int
    risk_level: RiskLevel


@dataclass
class CriticalPathAnalysis:
    critical_activities: List[str]
    total_float: Dict[str, int]
    free_float: Dict[str, int]
    criticality_index: Dict[str, float]
    near_critical_paths: List[NearCriticalPath]
    activity_times: Dict[str, ActivityTimes] = field(default_factory=dict)
    project_finish: Optional[date] = None


@dataclass(frozen=True)
class ResourceUsage:
    required: int
    available: int
    utilization: float
    overallocation: int
    demand_ratio: Optional[float] = None  # uncapped required/available*100, None without capacity


@dataclass
class DailyResourceProfile:
    date: date
    resources: Dict[str, ResourceUsage]

    def mean_utilization(self) -> float:
        if not self.resources:
            return 0.0
        return sum(r.utilization for r in self.resources.values()) / len(self.resources)


@dataclass
class ResourceProfile:
    days: List[DailyResourceProfile]
    missing_types: List[str] = field(default_factory=list)

    def for_day(self, day: date) -> Optional[DailyResourceProfile]:
        for entry in self.days:
            if entry.date == day:
                return entry
        return None


@dataclass(frozen=True)
class ResourcePeak:
    resource_type: str
    date: date
    overallocation: int
    severity: RiskLevel


@dataclass(frozen=True)
class LevelingImprovements:
    peak_reduction: float
    utilization_improvement: float
    duration_impact: int
    cost_impact: float


@dataclass
class ResourceLevelingResult:
    leveled_schedule: List[Activity]
    resource_profile: ResourceProfile
    improvements: LevelingImprovements
    recommendations: List[str]
    unresolved_activities: List[str] = field(default_factory=list)
    assignments: List[ResourceAssignment] = field(default_factory=list)


@dataclass(frozen=True)
class ActionImpact:
    duration_change: int
    cost_change: float
    quality_impact: str
    risk_level: RiskLevel


@dataclass(frozen=True)
class ActionImplementation:
    effort: RiskLevel
    prerequisites: Tuple[str, ...]
    timeline: int
    cost: float


@dataclass(frozen=True)
class OptimizationAction:
    type: ActionType
    description: str
    affected_activities: Tuple[str, ...]
    impact: ActionImpact
    implementation: ActionImplementation
    priority: int


@dataclass(frozen=True)
class OptimizationRisk:
    id: str
    description: str
    probability: float
    impact: RiskLevel
    category: RiskCategory
    mitigation: str
    contingency_plan: str


@dataclass(frozen=True)
class ScheduleMetrics:
    duration: int
    cost: float
    quality: float
    resource_utilization: float


@dataclass(frozen=True)
class OptimizationPerformance:
    iterations_run: int
    convergence_time: float  # milliseconds
    improvement_achieved: float


@dataclass
class OptimizationResult:
    original_duration: int
    optimized_duration: int
    duration_saving: int
    original_cost: float
    optimized_cost: float
    cost_saving: float
    quality_score: float
    resource_utilization: float
    feasibility_score: float
    optimization_actions: List[OptimizationAction]
    risks: List[OptimizationRisk]
    performance: OptimizationPerformance
    selected_strategy: str = "baseline"
    optimized_schedule: List[Activity] = field(default_factory=list)


@dataclass(frozen=True)
class ScenarioImpact:
    duration_impact: int
    cost_impact: float
    quality_impact: float
    resource_impact: float


@dataclass
class ScenarioResult:
    scenario: str
    description: str
    impact: ScenarioImpact
    metrics: ScheduleMetrics
    recommendations: List[str]
    feasibility: float
    risk_level: RiskLevel
