import pytest
from conftest import day
from siteplan.engine.resource_profile import ResourcePool, build_resource_profile
from siteplan.engine.risks import analyze_optimization_risks
from siteplan.engine.what_if import (
    Scenario,
    ScenarioChange,
    analyze_what_if_scenarios,
    apply_scenario_changes,
    recalculate_forward,
)
from siteplan.exceptions import ValidationError
from siteplan.graph.activity_graph import as_schedule
from siteplan.models.entities import Activity, RiskLevel
from siteplan.models.results import (
    ActionImpact,
    ActionImplementation,
    ActionType,
    OptimizationAction,
    ResourceProfile,
    RiskCategory,
)


def action(activity_id, duration_change=-1, cost_change=0.0, action_type=ActionType.CRASHING):
    return OptimizationAction(
        type=action_type,
        description=f"Change {activity_id}",
        affected_activities=(activity_id,),
        impact=ActionImpact(duration_change, cost_change, "Quality maintained", RiskLevel.LOW),
        implementation=ActionImplementation(RiskLevel.LOW, (), 1, abs(cost_change)),
        priority=5,
    )


class TestWhatIf:
    """Scenario simulation against the construction project."""

    def test_delay_propagates(self, construction_project):
        scenario = Scenario("late excavation", changes=[ScenarioChange("A1", duration_change=3)])
        [result] = analyze_what_if_scenarios(construction_project, [scenario])
        assert result.scenario == "late excavation"
        assert result.impact.duration_impact == 3
        assert result.impact.cost_impact == 0.0
        assert result.metrics.duration == 29

    def test_successors_move_later(self, construction_project):
        schedule = as_schedule(construction_project)
        simulated = recalculate_forward(apply_scenario_changes(schedule, [ScenarioChange("A1", duration_change=3)]))
        assert simulated["A2"].planned_start == day(7)
        assert simulated["A3"].planned_start == day(13)
        assert simulated["A4"].planned_start == day(16)  # start-to-start, lag 3
        assert simulated["A5"].planned_start == day(23)
        assert simulated["A6"].planned_start == day(13)

    def test_successors_never_pulled_earlier(self, construction_project):
        schedule = as_schedule(construction_project)
        simulated = recalculate_forward(apply_scenario_changes(schedule, [ScenarioChange("A1", duration_change=-2)]))
        assert simulated["A1"].duration_days == 2
        assert simulated["A2"].planned_start == day(4)

    def test_date_change(self, construction_project):
        scenario = Scenario("permit delay", changes=[ScenarioChange("P1", date_change=day(8))])
        [result] = analyze_what_if_scenarios(construction_project, [scenario])
        assert result.metrics.duration == 29
        assert result.impact.duration_impact == 3

    def test_cost_increase(self, construction_project):
        scenario = Scenario("steel price", changes=[ScenarioChange("A3", cost_change=25000)])
        [result] = analyze_what_if_scenarios(construction_project, [scenario])
        assert result.impact.cost_impact == 25000.0
        assert result.impact.duration_impact == 0
        assert result.risk_level == RiskLevel.MEDIUM
        assert "Review budget allocation and seek cost optimization opportunities" in result.recommendations

    def test_no_op_scenario(self, construction_project):
        [result] = analyze_what_if_scenarios(construction_project, [Scenario("as planned")])
        assert result.impact.duration_impact == 0
        assert result.impact.cost_impact == 0.0
        assert result.impact.resource_impact == 0.0
        assert result.recommendations == ["Scenario has manageable impact on project parameters"]
        assert result.risk_level == RiskLevel.LOW
        assert result.feasibility == 100.0

    def test_scenarios_are_independent(self, construction_project):
        scenarios = [
            Scenario("first", changes=[ScenarioChange("A1", duration_change=3)]),
            Scenario("second"),
        ]
        first, second = analyze_what_if_scenarios(construction_project, scenarios)
        assert first.impact.duration_impact == 3
        assert second.impact.duration_impact == 0

    def test_unknown_activity_rejected(self, construction_project):
        scenario = Scenario("typo", changes=[ScenarioChange("ZZ", duration_change=1)])
        with pytest.raises(ValidationError):
            analyze_what_if_scenarios(construction_project, [scenario])

    def test_floors(self, construction_project):
        schedule = as_schedule(construction_project)
        changed = apply_scenario_changes(
            schedule,
            [ScenarioChange("A1", duration_change=-100), ScenarioChange("A2", cost_change=-1e9)],
        )
        assert changed["A1"].duration_days == 1
        assert changed["A2"].planned_total_cost == 0.0

    def test_resource_change(self, construction_project):
        changed = apply_scenario_changes(
            as_schedule(construction_project), [ScenarioChange("A6", resource_change="carpentry")]
        )
        assert changed["A6"].primary_trade == "carpentry"

    def test_feasibility_counts_peaks(self, mason_overlap):
        [result] = analyze_what_if_scenarios(mason_overlap, [Scenario("as planned")], {"mason": 2})
        assert result.feasibility == 90.0


class TestOptimizationRisks:
    """Risk register derived from actions and the chosen schedule."""

    def test_compression_risk_scales(self, chain_two):
        schedule = as_schedule(chain_two)
        actions = [action(f"X{i}") for i in range(4)]
        risks = analyze_optimization_risks(schedule, actions, ResourceProfile(days=[]))
        compression = next(r for r in risks if r.id == "schedule_compression")
        assert compression.probability == 80
        assert compression.impact == RiskLevel.HIGH
        assert compression.category == RiskCategory.SCHEDULE

    def test_few_compressions_are_medium(self, chain_two):
        risks = analyze_optimization_risks(as_schedule(chain_two), [action("A")], ResourceProfile(days=[]))
        assert risks[0].id == "schedule_compression"
        assert risks[0].probability == 20
        assert risks[0].impact == RiskLevel.MEDIUM

    def test_overallocation_risk(self, mason_overlap):
        schedule = as_schedule(mason_overlap)
        profile = build_resource_profile(schedule, ResourcePool.from_limits({"mason": 2}))
        [risk] = analyze_optimization_risks(schedule, [], profile)
        assert risk.id == "resource_overallocation"
        assert risk.probability == 30
        assert risk.impact == RiskLevel.MEDIUM

    def test_missing_resource_data(self, chain_two):
        schedule = as_schedule(chain_two)
        profile = build_resource_profile(schedule, ResourcePool.from_limits({"mason": 1}))
        ids = [r.id for r in analyze_optimization_risks(schedule, [], profile)]
        assert ids == ["resource_overallocation", "resource_data_gap"]

    def test_fast_tracking_coordination(self, chain_two):
        actions = [action("B", action_type=ActionType.FAST_TRACKING)]
        risks = analyze_optimization_risks(as_schedule(chain_two), actions, ResourceProfile(days=[]))
        coordination = next(r for r in risks if r.id == "fast_tracking_coordination")
        assert coordination.category == RiskCategory.QUALITY
        assert coordination.probability == 60

    def test_cost_escalation(self, chain_two):
        actions = [action("A", duration_change=0, cost_change=100.0)]
        [risk] = analyze_optimization_risks(as_schedule(chain_two), actions, ResourceProfile(days=[]))
        assert risk.id == "cost_escalation"
        assert risk.probability == 25
        assert risk.impact == RiskLevel.MEDIUM

    def test_weather_sensitive_is_external(self):
        activities = [
            Activity(id="R", name="Roofing", primary_trade="roofer", planned_start=day(0),
                     duration_days=4, weather_sensitive=True),
        ]
        [risk] = analyze_optimization_risks(as_schedule(activities), [], ResourceProfile(days=[]))
        assert risk.id == "external_dependencies"
        assert risk.category == RiskCategory.EXTERNAL

    def test_no_risks(self, chain_two):
        assert analyze_optimization_risks(as_schedule(chain_two), [], ResourceProfile(days=[])) == []
