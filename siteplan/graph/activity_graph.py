"""
Activity network model.

``ActivityGraph`` is an indexed arena holding the input activities exactly as
supplied, plus the successor index derived from their predecessor edges.
``Schedule`` is a view over that arena with per-activity overrides: every
alternative schedule is a ``Schedule`` that only stores the activities it
changed, so no alternative can alias or mutate the input or another
alternative.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from siteplan.exceptions import CircularDependencyError, ValidationError
from siteplan.models.entities import Activity, Predecessor

logger = logging.getLogger(__name__)


class ActivityGraph:
    def __init__(self, activities: Sequence[Activity]):
        self._activities: Tuple[Activity, ...] = tuple(activities)
        self._index: Dict[str, int] = {}
        for position, activity in enumerate(self._activities):
            if activity.id in self._index:
                raise ValidationError(f"Duplicate activity id {activity.id}")
            self._index[activity.id] = position

        self._validate()

        # predecessor id -> [(successor id, edge)]
        self._successors: Dict[str, List[Tuple[str, Predecessor]]] = defaultdict(list)
        for activity in self._activities:
            for edge in self.predecessors(activity.id):
                self._successors[edge.activity_id].append((activity.id, edge))

    def _validate(self) -> None:
        for activity in self._activities:
            if activity.duration_days <= 0:
                raise ValidationError(f"Activity {activity.id} must have a positive duration")
            if activity.planned_total_cost < 0:
                raise ValidationError(f"Activity {activity.id} has a negative planned cost")
            for edge in activity.predecessors:
                if edge.activity_id == activity.id:
                    raise ValidationError(f"Activity {activity.id} cannot depend on itself")
                if edge.activity_id not in self._index:
                    logger.warning(
                        f"Activity {activity.id} references unknown predecessor {edge.activity_id}; edge ignored"
                    )

    def __len__(self) -> int:
        return len(self._activities)

    def __iter__(self) -> Iterator[Activity]:
        return iter(self._activities)

    def __contains__(self, activity_id: str) -> bool:
        return activity_id in self._index

    def __getitem__(self, activity_id: str) -> Activity:
        return self._activities[self._index[activity_id]]

    @property
    def ids(self) -> List[str]:
        return [a.id for a in self._activities]

    def predecessors(self, activity_id: str) -> List[Predecessor]:
        """Predecessor edges of an activity, restricted to activities in the graph."""
        return [e for e in self[activity_id].predecessors if e.activity_id in self._index]

    def successors(self, activity_id: str) -> List[Tuple[str, Predecessor]]:
        return list(self._successors.get(activity_id, ()))

    def topological_order(self) -> List[str]:
        """
        Order activity ids so every predecessor precedes its successors.

        Depth-first over predecessor edges, visiting activities in input order
        so the result is deterministic. Uses an explicit stack, so chain length
        is not bounded by the interpreter's recursion limit.

        Raises:
            CircularDependencyError: the predecessor graph has a cycle.
        """
        order: List[str] = []
        visited = set()
        visiting = set()

        for activity in self._activities:
            if activity.id in visited:
                continue
            visiting.add(activity.id)
            stack = [(activity.id, iter(self.predecessors(activity.id)))]
            while stack:
                current, edges = stack[-1]
                for edge in edges:
                    if edge.activity_id in visiting:
                        raise CircularDependencyError(edge.activity_id)
                    if edge.activity_id not in visited:
                        visiting.add(edge.activity_id)
                        stack.append((edge.activity_id, iter(self.predecessors(edge.activity_id))))
                        break
                else:
                    stack.pop()
                    visiting.discard(current)
                    visited.add(current)
                    order.append(current)
        return order


class Schedule:
    """Immutable view of an ``ActivityGraph`` with per-activity overrides."""

    def __init__(self, graph: ActivityGraph, overrides: Optional[Mapping[str, Activity]] = None):
        self._graph = graph
        self._overrides: Dict[str, Activity] = dict(overrides or {})

    @property
    def graph(self) -> ActivityGraph:
        return self._graph

    @property
    def changed_ids(self) -> List[str]:
        return [aid for aid in self._graph.ids if aid in self._overrides]

    def __len__(self) -> int:
        return len(self._graph)

    def __iter__(self) -> Iterator[Activity]:
        for activity in self._graph:
            yield self._overrides.get(activity.id, activity)

    def __getitem__(self, activity_id: str) -> Activity:
        if activity_id in self._overrides:
            return self._overrides[activity_id]
        return self._graph[activity_id]

    def baseline(self, activity_id: str) -> Activity:
        return self._graph[activity_id]

    def activities(self) -> List[Activity]:
        return list(self)

    def update(self, activity_id: str, **changes) -> "Schedule":
        updated = replace(self[activity_id], **changes)
        overrides = dict(self._overrides)
        overrides[activity_id] = updated
        return Schedule(self._graph, overrides)

    def update_many(self, activities: Iterable[Activity]) -> "Schedule":
        overrides = dict(self._overrides)
        for activity in activities:
            overrides[activity.id] = activity
        return Schedule(self._graph, overrides)

    def start(self) -> Optional[date]:
        starts = [a.planned_start for a in self]
        return min(starts) if starts else None

    def finish(self) -> Optional[date]:
        ends = [a.planned_end for a in self]
        return max(ends) if ends else None

    def duration_days(self) -> int:
        if len(self) == 0:
            return 0
        return (self.finish() - self.start()).days

    def total_cost(self) -> float:
        return sum(a.planned_total_cost for a in self)


def as_schedule(activities: Union[Schedule, Sequence[Activity]]) -> Schedule:
    """Wrap caller input in a ``Schedule``; validation happens while building the arena."""
    if isinstance(activities, Schedule):
        return activities
    return Schedule(ActivityGraph(list(activities)))
