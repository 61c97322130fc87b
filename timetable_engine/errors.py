# timetable_engine/errors.py
from typing import Iterable, Optional


class SchedulingError(Exception):
    """Base class for failures of a single generation call."""


class InvalidDomainError(SchedulingError):
    """A session has no candidate placement before any search starts."""

    def __init__(self, message: str, session_ids: Iterable[str] = ()):
        super().__init__(message)
        self.session_ids = list(session_ids)


class InfeasibleScheduleError(SchedulingError):
    """The exact solver ran out of budget or of search space."""

    def __init__(self, message: str, expansions: int = 0, exhausted_budget: bool = False):
        super().__init__(message)
        self.expansions = expansions
        self.exhausted_budget = exhausted_budget


class ConstraintDefinitionError(SchedulingError):
    """A constraint record is unknown or malformed; raised at load time."""

    def __init__(self, message: str, constraint_id: Optional[str] = None):
        super().__init__(message)
        self.constraint_id = constraint_id


class ConfigError(ValueError):
    """Raised when the configuration file or its values are invalid."""
