from datetime import timedelta

import pytest
from conftest import day, fs
from siteplan.engine.critical_path import annotate_floats, calculate_critical_path
from siteplan.exceptions import CircularDependencyError, ValidationError
from siteplan.graph.activity_graph import as_schedule
from siteplan.models.entities import Activity, DependencyType, Predecessor, RiskLevel


def make(activity_id, start, duration, predecessors=()):
    return Activity(
        id=activity_id,
        name=f"Activity {activity_id}",
        primary_trade="general",
        planned_start=day(start),
        duration_days=duration,
        predecessors=list(predecessors),
    )


class TestCriticalPath:
    """CPM floats and critical activities."""

    def test_simple_chain_is_fully_critical(self, chain_two):
        """A -> B with no other work: both critical, zero float."""
        analysis = calculate_critical_path(chain_two)
        assert analysis.critical_activities == ["A", "B"]
        assert analysis.total_float == {"A": 0, "B": 0}
        assert analysis.project_finish == day(8)

    def test_parallel_activity_gets_float(self, chain_with_parallel):
        """C finishes on day 2 in an 8 day project: 6 days of float."""
        analysis = calculate_critical_path(chain_with_parallel)
        assert analysis.total_float["C"] == 6
        assert "C" not in analysis.critical_activities
        assert analysis.critical_activities == ["A", "B"]

    def test_criticality_index(self, chain_with_parallel):
        """Index is 1 - float / max float."""
        analysis = calculate_critical_path(chain_with_parallel)
        assert analysis.criticality_index["A"] == 1.0
        assert analysis.criticality_index["C"] == 0.0

    def test_criticality_index_when_no_float(self, chain_two):
        """All activities critical: index 1 everywhere."""
        analysis = calculate_critical_path(chain_two)
        assert analysis.criticality_index == {"A": 1.0, "B": 1.0}

    def test_construction_project(self, construction_project):
        analysis = calculate_critical_path(construction_project)
        assert analysis.critical_activities == ["A1", "A2", "A3", "A5"]
        assert analysis.total_float["P1"] == 5
        assert analysis.total_float["A4"] == 2
        assert analysis.total_float["A6"] == 13
        assert analysis.free_float["A4"] == 2
        assert analysis.free_float["A6"] == 0
        assert analysis.project_finish == day(26)

    def test_empty_input(self):
        analysis = calculate_critical_path([])
        assert analysis.critical_activities == []
        assert analysis.total_float == {}
        assert analysis.near_critical_paths == []


class TestPasses:
    """Forward/backward pass properties."""

    def test_forward_pass_properties(self, construction_project):
        """Early finish = early start + duration; FS successors start after predecessor finish + lag."""
        analysis = calculate_critical_path(construction_project)
        times = analysis.activity_times
        for activity in construction_project:
            t = times[activity.id]
            assert (t.early_finish - t.early_start).days == activity.duration_days
            assert (t.late_finish - t.late_start).days == activity.duration_days
            for edge in activity.predecessors:
                if edge.dependency_type is DependencyType.FINISH_TO_START:
                    lagged = times[edge.activity_id].early_finish + timedelta(days=edge.lag_days)
                    assert t.early_start >= lagged

    def test_float_definitions(self, construction_project):
        """Float never negative; critical iff zero float; free float <= total float."""
        analysis = calculate_critical_path(construction_project)
        for activity_id, tf in analysis.total_float.items():
            assert tf >= 0
            assert (activity_id in analysis.critical_activities) == (tf == 0)
            assert analysis.free_float[activity_id] <= tf

    def test_start_to_start_with_lag(self, construction_project):
        analysis = calculate_critical_path(construction_project)
        assert analysis.activity_times["A4"].early_start == day(13)

    def test_finish_to_start_lag(self):
        activities = [make("P", 0, 4), make("S", 0, 2, [fs("P", 3)])]
        analysis = calculate_critical_path(activities)
        assert analysis.activity_times["S"].early_start == day(7)

    def test_finish_to_finish(self):
        """S must finish with P: starts at P finish - S duration."""
        activities = [make("P", 0, 10), make("S", 0, 4, [Predecessor("P", "FF", 0)])]
        analysis = calculate_critical_path(activities)
        assert analysis.activity_times["S"].early_start == day(6)
        assert analysis.activity_times["S"].early_finish == day(10)

    def test_start_to_finish(self):
        """S finishes lag days after P starts."""
        activities = [make("P", 0, 10), make("S", 0, 3, [Predecessor("P", "SF", 5)])]
        analysis = calculate_critical_path(activities)
        assert analysis.activity_times["S"].early_finish == day(5)
        assert analysis.activity_times["S"].early_start == day(2)

    def test_unconstrained_activity_keeps_planned_start(self):
        activities = [make("X", 3, 2)]
        analysis = calculate_critical_path(activities)
        assert analysis.activity_times["X"].early_start == day(3)


class TestNearCriticalPaths:
    """Grouping of activities by small positive float."""

    def test_groups_and_severity(self):
        activities = [
            make("LONG", 0, 10),
            make("B", 0, 3),
            make("C", 0, 3, [fs("B")]),
            make("D", 0, 9),
            make("E", 0, 9),
        ]
        analysis = calculate_critical_path(activities)
        paths = analysis.near_critical_paths
        assert [p.total_float for p in paths] == [1, 4]
        assert paths[0].activities == ["D", "E"]
        assert paths[0].risk_level == RiskLevel.HIGH
        assert paths[1].activities == ["B", "C"]
        assert paths[1].risk_level == RiskLevel.LOW

    def test_single_activity_is_not_a_group(self, chain_with_parallel):
        analysis = calculate_critical_path(chain_with_parallel)
        assert analysis.near_critical_paths == []


class TestGraphValidation:
    """Errors raised before any computation."""

    def test_cycle_is_fatal(self):
        activities = [make("X", 0, 2, [fs("Z")]), make("Y", 0, 2, [fs("X")]), make("Z", 0, 2, [fs("Y")])]
        with pytest.raises(CircularDependencyError) as exc_info:
            calculate_critical_path(activities)
        assert exc_info.value.activity_id in {"X", "Y", "Z"}
        assert exc_info.value.activity_id in str(exc_info.value)

    def test_self_dependency_rejected(self):
        with pytest.raises(ValidationError):
            calculate_critical_path([make("X", 0, 2, [fs("X")])])

    def test_duplicate_id_rejected(self):
        with pytest.raises(ValidationError):
            calculate_critical_path([make("X", 0, 2), make("X", 1, 2)])

    def test_non_positive_duration_rejected(self):
        with pytest.raises(ValidationError):
            calculate_critical_path([make("X", 0, 0)])

    def test_unknown_dependency_type_rejected(self):
        with pytest.raises(ValidationError):
            Predecessor("X", "XX")

    def test_unknown_predecessor_is_ignored(self):
        analysis = calculate_critical_path([make("X", 0, 2, [fs("MISSING")])])
        assert analysis.critical_activities == ["X"]


def long_chain(length):
    """A0 -> A1 -> ... one-day activities, listed successor first."""
    chain = [make("A0", 0, 1)]
    chain += [make(f"A{i}", i, 1, [fs(f"A{i - 1}")]) for i in range(1, length)]
    return list(reversed(chain))


class TestLongNetworks:
    """Chains far deeper than the interpreter's recursion limit."""

    def test_reversed_chain(self):
        activities = long_chain(2500)
        analysis = calculate_critical_path(activities)
        assert len(analysis.critical_activities) == 2500
        assert analysis.project_finish == day(2500)

    def test_order_follows_predecessors(self):
        order = as_schedule(long_chain(2500)).graph.topological_order()
        assert order[0] == "A0"
        assert order[-1] == "A2499"

    def test_cycle_in_long_chain(self):
        activities = long_chain(2500)
        # close the loop: A0 now waits for the last activity
        activities[-1] = make("A0", 0, 1, [fs("A2499")])
        with pytest.raises(CircularDependencyError) as exc_info:
            calculate_critical_path(activities)
        assert exc_info.value.activity_id.startswith("A")


class TestAnnotateFloats:
    """Computed floats written back onto activities."""

    def test_flags_and_floats(self, construction_project):
        annotated = annotate_floats(as_schedule(construction_project))
        assert annotated["A3"].is_critical_path
        assert not annotated["P1"].is_critical_path
        assert annotated["P1"].total_float == 5
        assert annotated["A4"].free_float == 2

    def test_input_is_untouched(self, construction_project):
        schedule = as_schedule(construction_project)
        annotate_floats(schedule)
        assert schedule["P1"].total_float == 0
        assert construction_project[0].total_float == 0
