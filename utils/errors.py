"""Scheduler error types.

Callers branch on these: an invalid cadence is fatal for the rule, a missing
rule is treated as already handled, and a persistence failure is transient.
"""

from typing import Any


class SchedulerError(Exception):
    """Base class for recurring-ledger errors."""


class InvalidRuleError(SchedulerError, ValueError):
    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(SchedulerError):
    def __init__(self, resource_type: str, resource_id: Any):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")


class PersistenceError(SchedulerError):
    """The backing store failed; the operation may be retried."""


class SessionClosedError(SchedulerError):
    """An action was attempted while no due-rule session is presenting."""
