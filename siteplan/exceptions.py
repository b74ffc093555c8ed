class ScheduleError(Exception):
    """Base class for errors raised by the scheduling engine."""

    pass


class ValidationError(ScheduleError):
    """Raised when activities, objectives or constraints are rejected before any computation starts."""

    pass


class CircularDependencyError(ScheduleError):
    """Raised when the predecessor graph contains a cycle. Fatal for the request."""

    def __init__(self, activity_id: str):
        self.activity_id = activity_id
        super().__init__(f"Circular dependency detected involving activity {activity_id}")
