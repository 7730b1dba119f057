"""Tests for rule management and discovery in RecurringService."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, FixedClock
from models.cadence import DailyCadence, FixedDay, LastDay, MonthlyCadence, WeeklyCadence
from services.due_session import DueRuleSession
from services.recurring_service import RecurringService
from utils.errors import InvalidRuleError, NotFoundError


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def service(rule_dao, clock) -> RecurringService:
    return RecurringService(rule_dao, clock=clock)


def test_create_is_due_immediately(service):
    rule = service.create(amount=99.0, cadence=WeeklyCadence(2, 3), category="Food",
                          note="groceries")
    assert rule.next_run_at == NOW
    assert rule.status == "active"
    assert rule.currency == "CNY"
    assert rule.timezone == "Asia/Shanghai"
    assert [r.id for r in service.discover_due()] == [rule.id]


def test_create_stores_only_the_relevant_anchor(service):
    rule = service.create(amount=5.0, cadence=MonthlyCadence(1, LastDay()))
    assert rule.is_last_day_of_month is True
    assert rule.monthly_day_of_month is None
    assert rule.weekly_day_of_week is None
    assert rule.cadence() == MonthlyCadence(1, LastDay())


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"amount": 0}, "amount"),
        ({"amount": -1}, "amount"),
        ({"amount": 1, "start_date": "someday"}, "start_date"),
        ({"amount": 1, "start_date": "2025-05-01", "end_date": "2025-04-01"}, "end_date"),
        ({"amount": 1, "status": "archived"}, "status"),
    ],
)
def test_create_validation(service, kwargs, field):
    with pytest.raises(InvalidRuleError) as excinfo:
        service.create(cadence=DailyCadence(1), **kwargs)
    assert excinfo.value.field == field


def test_update_replaces_cadence_and_rearms(service, rule_dao, clock):
    rule = service.create(amount=10.0, cadence=WeeklyCadence(1, 1))
    rule_dao.update(rule.id, next_run_at=NOW + timedelta(days=20))
    clock.now = NOW + timedelta(hours=2)

    updated = service.update(rule.id, amount=12.0, cadence=MonthlyCadence(1, FixedDay(5)))

    assert updated.amount == 12.0
    assert updated.frequency_type == "monthly"
    assert updated.weekly_day_of_week is None
    assert updated.monthly_day_of_month == 5
    assert updated.next_run_at == clock.now


def test_update_unknown_rule(service):
    with pytest.raises(NotFoundError):
        service.update(404, amount=1.0, cadence=DailyCadence(1))


def test_pause_excludes_from_discovery_without_moving_schedule(service):
    rule = service.create(amount=10.0, cadence=DailyCadence(1))
    paused = service.pause(rule.id)

    assert paused.next_run_at == rule.next_run_at
    assert service.discover_due() == []

    service.resume(rule.id)
    assert [r.id for r in service.discover_due()] == [rule.id]


def test_discover_due_uses_explicit_instant(service):
    rule = service.create(amount=10.0, cadence=DailyCadence(1))
    assert service.discover_due(NOW - timedelta(seconds=1)) == []
    assert [r.id for r in service.discover_due(NOW)] == [rule.id]


def test_require_missing_rule(service):
    with pytest.raises(NotFoundError):
        service.require(77)


def test_delete(service):
    rule = service.create(amount=10.0, cadence=DailyCadence(1))
    service.delete(rule.id)
    assert service.get_by_id(rule.id) is None
    assert service.get_all() == []


def test_preview_next_run_from_start_date(service):
    cadence = MonthlyCadence(1, FixedDay(31))
    assert service.preview_next_run(cadence, "2024-01-31") == _utc(2024, 2, 29)


def test_preview_next_run_defaults_to_now(service):
    assert service.preview_next_run(DailyCadence(2)) == NOW + timedelta(days=2)


def test_upcoming_starts_with_pending_run(service, make_rule):
    rule = make_rule(next_run_at=_utc(2025, 1, 31, 8, 0), monthly_day_of_month=31)
    assert service.upcoming(rule, 3) == [
        _utc(2025, 1, 31, 8, 0), _utc(2025, 2, 28, 8, 0), _utc(2025, 3, 31, 8, 0),
    ]


def test_upcoming_respects_end_date(service, make_rule):
    rule = make_rule(next_run_at=_utc(2025, 1, 1), end_date="2025-02-15")
    assert service.upcoming(rule, 10) == [_utc(2025, 1, 1), _utc(2025, 2, 1)]

    expired = make_rule(next_run_at=_utc(2025, 3, 1), end_date="2025-02-15")
    assert service.upcoming(expired, 10) == []


def test_execution_history_after_session(service, rule_dao, expense_dao):
    first = service.create(amount=10.0, cadence=DailyCadence(1))
    second = service.create(amount=20.0, cadence=DailyCadence(1))
    assert service.execution_history() == []

    session = DueRuleSession(rule_dao, expense_dao, clock=FixedClock(NOW + timedelta(minutes=1)))
    session.offer(service.discover_due())
    session.execute()
    session.skip()

    history = service.execution_history()
    assert [r.id for r in history] == [first.id]
    assert history[0].last_run_at == NOW + timedelta(minutes=1)
    assert second.id not in [r.id for r in history]
