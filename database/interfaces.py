"""Storage boundaries the scheduler depends on.

RuleStore persists recurrence rules; LedgerSink appends materialized
transactions. The sqlite DAOs in this package implement both; tests swap in
doubles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from models.recurring_rule import RecurrenceRule
from models.transaction import LedgerEntry


class RuleStore(ABC):
    @abstractmethod
    def create(self, **fields: Any) -> RecurrenceRule:
        """Insert a new rule and return it with its assigned id."""

    @abstractmethod
    def get_by_id(self, rule_id: int) -> RecurrenceRule | None:
        """Fetch a rule, or None if it does not exist."""

    @abstractmethod
    def list_all(self) -> list[RecurrenceRule]:
        """All rules regardless of status."""

    @abstractmethod
    def list_due(self, now: datetime) -> list[RecurrenceRule]:
        """Active rules with next_run_at <= now, earliest first, ties by id."""

    @abstractmethod
    def update(self, rule_id: int, **fields: Any) -> RecurrenceRule:
        """Merge fields into a rule. Raises NotFoundError for an unknown id."""

    @abstractmethod
    def delete(self, rule_id: int) -> None:
        """Remove a rule. Raises NotFoundError for an unknown id."""


class LedgerSink(ABC):
    @abstractmethod
    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Persist a ledger entry. Raises PersistenceError on failure."""
