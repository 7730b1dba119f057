"""Shared fixtures: in-memory database, DAOs, a fixed clock and failing doubles."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from database.db_manager import DatabaseManager
from database.expense_dao import ExpenseDAO
from database.interfaces import LedgerSink, RuleStore
from database.recurring_dao import RecurringRuleDAO
from models.transaction import LedgerEntry
from utils.errors import PersistenceError

NOW = datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FailingLedger(LedgerSink):
    def __init__(self):
        self.calls = 0

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        self.calls += 1
        raise PersistenceError("ledger unavailable")


class FlakyRuleStore(RuleStore):
    """Delegates to a real store; updates fail while `fail_updates` is set."""

    def __init__(self, inner: RuleStore, fail_updates: bool = True):
        self._inner = inner
        self.fail_updates = fail_updates

    def create(self, **fields: Any):
        return self._inner.create(**fields)

    def get_by_id(self, rule_id: int):
        return self._inner.get_by_id(rule_id)

    def list_all(self):
        return self._inner.list_all()

    def list_due(self, now: datetime):
        return self._inner.list_due(now)

    def update(self, rule_id: int, **fields: Any):
        if self.fail_updates:
            raise PersistenceError("backend timeout")
        return self._inner.update(rule_id, **fields)

    def delete(self, rule_id: int) -> None:
        self._inner.delete(rule_id)


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def rule_dao(db) -> RecurringRuleDAO:
    return RecurringRuleDAO(db)


@pytest.fixture
def expense_dao(db) -> ExpenseDAO:
    return ExpenseDAO(db)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def make_rule(rule_dao):
    """Insert a rule with sensible defaults; keyword arguments override columns."""

    def _make(**overrides):
        fields = {
            "amount": 42.5,
            "category": "Utilities",
            "currency": "CNY",
            "note": "electricity",
            "frequency_type": "monthly",
            "interval_value": 1,
            "monthly_day_of_month": 1,
            "next_run_at": datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc),
            "status": "active",
        }
        fields.update(overrides)
        return rule_dao.create(**fields)

    return _make
