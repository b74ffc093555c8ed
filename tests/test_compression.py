from dataclasses import replace

import pytest
from conftest import day, fs
from siteplan.engine.compression import (
    analyze_fast_tracking_opportunities,
    analyze_schedule_crashing,
    calculate_action_priority,
    crashing_options,
)
from siteplan.engine.risk_rules import (
    HIGH_OVERLAP_RISK,
    KeywordPairRule,
    RiskRuleTable,
    default_rule_table,
)
from siteplan.exceptions import ValidationError
from siteplan.models.entities import Activity, ActivityPriority, Predecessor, RiskLevel
from siteplan.models.results import ActionType


def pair(pred_name, succ_name, **succ_fields):
    pred = Activity(id="P", name=pred_name, primary_trade="general", planned_start=day(0), duration_days=5,
                    planned_total_cost=1000.0)
    succ = Activity(id="S", name=succ_name, primary_trade="general", planned_start=day(5), duration_days=5,
                    planned_total_cost=1000.0, predecessors=[fs("P")], **succ_fields)
    return [pred, succ]


class TestCrashing:
    """Crashing options for critical activities."""

    def test_add_25_percent_resources(self):
        """Duration 10, cost 1000: one day saved for 250."""
        activity = Activity(id="X", name="Roofing", primary_trade="roofer", planned_start=day(0),
                            duration_days=10, planned_total_cost=1000.0)
        actions = analyze_schedule_crashing([activity], target_reduction_days=5)
        assert len(actions) == 3
        quarter = next(a for a in actions if a.description.startswith("Add 25% more resources"))
        assert quarter.type == ActionType.CRASHING
        assert quarter.impact.duration_change == -1
        assert quarter.impact.cost_change == 250.0
        assert quarter.impact.risk_level == RiskLevel.LOW
        assert quarter.implementation.effort == RiskLevel.MEDIUM

    def test_option_figures(self):
        activity = Activity(id="X", name="Roofing", primary_trade="roofer", planned_start=day(0),
                            duration_days=10, planned_total_cost=1000.0)
        options = crashing_options(activity)
        assert [o.duration_reduction for o in options] == [1, 2, 1]
        assert [o.additional_cost for o in options] == [250.0, 450.0, 150.0]

    def test_sorted_by_priority(self):
        activity = Activity(id="X", name="Roofing", primary_trade="roofer", planned_start=day(0),
                            duration_days=10, planned_total_cost=1000.0)
        actions = analyze_schedule_crashing([activity], target_reduction_days=5)
        assert [a.priority for a in actions] == [2, 2, 1]
        assert actions[0].description.startswith("Add 25% more resources")

    def test_only_critical_activities(self, construction_project):
        actions = analyze_schedule_crashing(construction_project, target_reduction_days=3)
        affected = {a.affected_activities[0] for a in actions}
        assert affected == {"A1", "A2", "A3", "A5"}
        assert len(actions) == 12

    def test_non_positive_target_rejected(self, chain_two):
        with pytest.raises(ValidationError):
            analyze_schedule_crashing(chain_two, target_reduction_days=0)


class TestActionPriority:
    """Priority formula, rounded half up and clamped to 1..10."""

    def test_half_rounds_up(self):
        # 15 + 30 = 45 -> 4.5 -> 5
        assert calculate_action_priority(3, 0, RiskLevel.LOW) == 5

    def test_clamped_low(self):
        assert calculate_action_priority(0, 50000, RiskLevel.HIGH) == 1

    def test_duration_weight_capped(self):
        assert calculate_action_priority(10, 0, RiskLevel.LOW) == 7
        assert calculate_action_priority(100, 0, RiskLevel.LOW) == 7

    def test_risk_penalty(self):
        assert calculate_action_priority(10, 0, RiskLevel.MEDIUM) == 6
        assert calculate_action_priority(10, 0, RiskLevel.HIGH) == 5


class TestFastTracking:
    """Overlap opportunities for finish-to-start pairs."""

    def test_one_action_per_fs_pair(self, construction_project):
        actions = analyze_fast_tracking_opportunities(construction_project)
        pairs = {a.affected_activities for a in actions}
        # A4 -> A3 is start-to-start and is not offered
        assert pairs == {("A1", "A2"), ("A2", "A3"), ("P1", "A3"), ("A3", "A5"), ("A4", "A5"), ("A2", "A6")}
        assert all(a.type == ActionType.FAST_TRACKING for a in actions)
        assert [a.priority for a in actions] == sorted((a.priority for a in actions), reverse=True)

    def test_saving_and_cost(self, construction_project):
        actions = analyze_fast_tracking_opportunities(construction_project)
        action = next(a for a in actions if a.affected_activities == ("A2", "A3"))
        # min(0.6 * 6, 0.8 * 10) = 3.6 -> 3 days; 5% of 45000
        assert action.impact.duration_change == -3
        assert action.impact.cost_change == pytest.approx(2250.0)
        assert action.implementation.timeline == 2
        assert len(action.implementation.prerequisites) == 3

    def test_keyword_risk(self, construction_project):
        actions = {a.affected_activities: a for a in analyze_fast_tracking_opportunities(construction_project)}
        assert actions[("A2", "A3")].impact.risk_level == RiskLevel.HIGH
        assert actions[("A1", "A2")].impact.risk_level == RiskLevel.MEDIUM
        assert actions[("A3", "A5")].impact.risk_level == RiskLevel.MEDIUM
        assert actions[("A4", "A5")].impact.risk_level == RiskLevel.LOW

    def test_start_to_start_pairs_ignored(self):
        activities = pair("Concrete pour", "Formwork strip")
        activities[1] = Activity(id="S", name="Formwork strip", primary_trade="general", planned_start=day(0),
                                 duration_days=5, predecessors=[Predecessor("P", "SS", 0)])
        assert analyze_fast_tracking_opportunities(activities) == []


class TestRiskRules:
    """Rule table lookups and priority escalation."""

    def test_high_risk_keywords(self):
        table = default_rule_table()
        pred, succ = pair("Concrete pour level 2", "Formwork level 3")
        assert table.assess(pred, succ).risk_level == RiskLevel.HIGH

    def test_no_match_is_low(self):
        pred, succ = pair("Paint walls", "Hang signage")
        assert default_rule_table().assess(pred, succ).risk_level == RiskLevel.LOW

    def test_critical_priority_escalates_low(self):
        pred, succ = pair("Paint walls", "Hang signage", priority=ActivityPriority.CRITICAL)
        assert default_rule_table().assess(pred, succ).risk_level == RiskLevel.MEDIUM

    def test_critical_priority_escalates_medium(self):
        pred, succ = pair("Excavation", "Foundation", priority="critical")
        assert default_rule_table().assess(pred, succ).risk_level == RiskLevel.HIGH

    def test_kind_tag_preferred_over_name(self):
        pred, succ = pair("Pour slab", "Install shuttering")
        tagged = [
            replace(pred, kind="concrete"),
            replace(succ, kind="formwork"),
        ]
        assert default_rule_table().assess(*tagged).risk_level == RiskLevel.HIGH
        assert default_rule_table().assess(pred, succ).risk_level == RiskLevel.LOW

    def test_custom_rule(self):
        table = RiskRuleTable()
        table.register(KeywordPairRule("paint", "signage", HIGH_OVERLAP_RISK))
        pred, succ = pair("Paint walls", "Hang signage")
        assert table.assess(pred, succ) == HIGH_OVERLAP_RISK

    def test_custom_table_drives_fast_tracking(self):
        table = RiskRuleTable([KeywordPairRule("paint", "signage", HIGH_OVERLAP_RISK)])
        actions = analyze_fast_tracking_opportunities(pair("Paint walls", "Hang signage"), rules=table)
        assert actions[0].impact.risk_level == RiskLevel.HIGH
