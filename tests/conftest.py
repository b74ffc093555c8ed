from datetime import date, timedelta

import pytest
from siteplan.models.constraints import Constraints, Objective
from siteplan.models.entities import Activity, Predecessor


BASE_DATE = date(2024, 1, 1)  # a Monday


def day(offset: int) -> date:
    """Project day ``offset`` as a calendar date."""
    return BASE_DATE + timedelta(days=offset)


def fs(activity_id: str, lag: int = 0) -> Predecessor:
    return Predecessor(activity_id, "FS", lag)


@pytest.fixture
def chain_two():
    """A (5 days) -> B (3 days), finish-to-start."""
    return [
        Activity(id="A", name="Excavation", primary_trade="earthworks", planned_start=day(0),
                 duration_days=5, planned_total_cost=1000.0),
        Activity(id="B", name="Backfill", primary_trade="earthworks", planned_start=day(5),
                 duration_days=3, planned_total_cost=1000.0, predecessors=[fs("A")]),
    ]


@pytest.fixture
def chain_with_parallel(chain_two):
    """Chain A -> B plus an independent 2-day activity C."""
    return chain_two + [
        Activity(id="C", name="Site fencing", primary_trade="general", planned_start=day(0), duration_days=2),
    ]


@pytest.fixture
def mason_overlap():
    """Three mason activities that all overlap on day 5."""
    return [
        Activity(id="M1", name="Masonry wall north", primary_trade="mason", planned_start=day(0), duration_days=8),
        Activity(id="M2", name="Masonry wall south", primary_trade="mason", planned_start=day(2), duration_days=6),
        Activity(id="M3", name="Masonry chimney", primary_trade="mason", planned_start=day(5), duration_days=2),
    ]


@pytest.fixture
def construction_project():
    """
    Small building project. Planned dates equal the CPM early dates.

    Critical path: A1 -> A2 -> A3 -> A5 (26 days).
    P1 has 5 days of float, A4 has 2, A6 has 13.
    """
    return [
        Activity(id="P1", name="Building permit approval", primary_trade="admin", planned_start=day(0),
                 duration_days=5, planned_total_cost=2000.0),
        Activity(id="A1", name="Excavation", primary_trade="earthworks", planned_start=day(0),
                 duration_days=4, planned_total_cost=8000.0, equipment_types=["excavator"]),
        Activity(id="A2", name="Foundation concrete pour", primary_trade="concrete", planned_start=day(4),
                 duration_days=6, planned_total_cost=15000.0, predecessors=[fs("A1")]),
        Activity(id="A3", name="Structure framing", primary_trade="carpentry", planned_start=day(10),
                 duration_days=10, planned_total_cost=30000.0, predecessors=[fs("A2"), fs("P1")]),
        Activity(id="A4", name="Electrical rough-in", primary_trade="electrical", planned_start=day(13),
                 duration_days=5, planned_total_cost=9000.0, predecessors=[Predecessor("A3", "SS", 3)]),
        Activity(id="A5", name="Interior finish", primary_trade="painting", planned_start=day(20),
                 duration_days=6, planned_total_cost=7000.0, predecessors=[fs("A3"), fs("A4")]),
        Activity(id="A6", name="Landscaping", primary_trade="earthworks", planned_start=day(10),
                 duration_days=3, planned_total_cost=4000.0, predecessors=[fs("A2")]),
    ]


@pytest.fixture
def loose_constraints():
    """Ceilings far above the construction project's 26 days and 75k cost."""
    return Constraints(max_project_duration=100, max_budget=1_000_000)


@pytest.fixture
def time_objective():
    return Objective(minimize_time=100, minimize_cost=0, maximize_quality=0, balance_resources=0)
