"""
Example: Extending SitePlan with custom fast-tracking risk rules

This example shows how to add site-specific overlap rules and use them
when looking for fast-tracking opportunities and optimizing a schedule.
"""

from datetime import date
from typing import Optional

from siteplan.engine.compression import analyze_fast_tracking_opportunities
from siteplan.engine.optimizer import optimize_schedule
from siteplan.engine.risk_rules import (
    HIGH_OVERLAP_RISK,
    KeywordPairRule,
    RiskAssessment,
    RiskRule,
    default_rule_table,
)
from siteplan.models.constraints import Constraints, Objective
from siteplan.models.entities import Activity, Predecessor, RiskLevel


# 1. Define a custom rule
class WeatherExposureRule(RiskRule):
    """
    Overlapping two weather-sensitive activities doubles the exposure.
    Example: roofing and external cladding both stop in heavy rain.
    """

    def evaluate(self, predecessor: Activity, successor: Activity) -> Optional[RiskAssessment]:
        if predecessor.weather_sensitive and successor.weather_sensitive:
            return RiskAssessment(RiskLevel.HIGH, "Both activities stop in bad weather", RiskLevel.MEDIUM)
        return None


# 2. Start from the built-in table and register site rules
rules = default_rule_table()
rules.register(WeatherExposureRule())
rules.register(KeywordPairRule("waterproofing", "backfill", HIGH_OVERLAP_RISK))


# 3. Use the table in analysis and optimization
activities = [
    Activity(id="R1", name="Roofing", primary_trade="roofer", planned_start=date(2024, 3, 4),
             duration_days=6, planned_total_cost=18000.0, weather_sensitive=True),
    Activity(id="R2", name="External cladding", primary_trade="cladder", planned_start=date(2024, 3, 10),
             duration_days=8, planned_total_cost=24000.0, weather_sensitive=True,
             predecessors=[Predecessor("R1")]),
    Activity(id="R3", name="Interior painting", primary_trade="painter", planned_start=date(2024, 3, 18),
             duration_days=5, planned_total_cost=6000.0, predecessors=[Predecessor("R2")]),
]

if __name__ == "__main__":
    for action in analyze_fast_tracking_opportunities(activities, rules=rules):
        print(f"{action.affected_activities}: {action.impact.risk_level.value} risk, "
              f"{-action.impact.duration_change} days saved")

    result = optimize_schedule(
        activities,
        Objective(minimize_time=60, minimize_cost=20, maximize_quality=20, balance_resources=0),
        Constraints(max_project_duration=30, max_budget=60000),
        rules=rules,
    )
    print(f"Selected {result.selected_strategy}: {result.original_duration} -> {result.optimized_duration} days")
