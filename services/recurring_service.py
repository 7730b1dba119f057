import logging
from datetime import datetime, time, timezone
from typing import Callable

from database.recurring_dao import RecurringRuleDAO
from models.cadence import Cadence
from models.recurring_rule import RecurrenceRule
from services.recurrence import compute_next_run_at, project_occurrences
from utils.constants import DEFAULT_CURRENCY, DEFAULT_TIMEZONE, RULE_STATUSES
from utils.date_helpers import parse_date, utc_now
from utils.errors import InvalidRuleError, NotFoundError

logger = logging.getLogger(__name__)


class RecurringService:
    def __init__(
        self,
        recurring_dao: RecurringRuleDAO,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._dao = recurring_dao
        self._clock = clock

    def get_all(self) -> list[RecurrenceRule]:
        return self._dao.list_all()

    def get_by_id(self, rule_id: int) -> RecurrenceRule | None:
        return self._dao.get_by_id(rule_id)

    def require(self, rule_id: int) -> RecurrenceRule:
        rule = self._dao.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError("recurring_rule", rule_id)
        return rule

    def create(
        self,
        amount: float,
        cadence: Cadence,
        category: str | None = None,
        currency: str | None = None,
        note: str | None = None,
        device_name: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        timezone_name: str | None = None,
        status: str = "active",
    ) -> RecurrenceRule:
        """Store a new rule. It is due immediately so the user is asked right away."""
        self._validate(amount, start_date, end_date, status)
        return self._dao.create(
            amount=amount,
            category=category,
            currency=currency or DEFAULT_CURRENCY,
            note=note,
            device_name=device_name,
            start_date=start_date,
            end_date=end_date,
            timezone=timezone_name or DEFAULT_TIMEZONE,
            status=status,
            next_run_at=self._clock(),
            **cadence.to_fields(),
        )

    def update(
        self,
        rule_id: int,
        amount: float,
        cadence: Cadence,
        category: str | None = None,
        currency: str | None = None,
        note: str | None = None,
        device_name: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        timezone_name: str | None = None,
        status: str = "active",
    ) -> RecurrenceRule:
        """Replace a rule's template and cadence; like create, it becomes due now."""
        self._validate(amount, start_date, end_date, status)
        return self._dao.update(
            rule_id,
            amount=amount,
            category=category,
            currency=currency or DEFAULT_CURRENCY,
            note=note,
            device_name=device_name,
            start_date=start_date,
            end_date=end_date,
            timezone=timezone_name or DEFAULT_TIMEZONE,
            status=status,
            next_run_at=self._clock(),
            **cadence.to_fields(),
        )

    def pause(self, rule_id: int) -> RecurrenceRule:
        return self._dao.set_status(rule_id, "paused")

    def resume(self, rule_id: int) -> RecurrenceRule:
        return self._dao.set_status(rule_id, "active")

    def delete(self, rule_id: int):
        self._dao.delete(rule_id)

    def discover_due(self, now: datetime | None = None) -> list[RecurrenceRule]:
        """Active rules due at `now` (default: the service clock), earliest first."""
        due = self._dao.list_due(now or self._clock())
        logger.debug("Discovered %d due rule(s)", len(due))
        return due

    def execution_history(self) -> list[RecurrenceRule]:
        return self._dao.list_executed()

    def preview_next_run(self, cadence: Cadence, start_date: str | None = None) -> datetime:
        """Next run counted from the start date (midnight UTC), or from now."""
        start = parse_date(start_date) if start_date else None
        reference = (
            datetime.combine(start, time.min, tzinfo=timezone.utc) if start else self._clock()
        )
        return compute_next_run_at(cadence, reference)

    def upcoming(self, rule: RecurrenceRule, count: int = 5) -> list[datetime]:
        """The rule's pending run followed by its projected successors.

        Projection stops at the rule's end date; the end date is advisory and
        does not affect due discovery.
        """
        until = parse_date(rule.end_date) if rule.end_date else None
        if until and rule.next_run_at.date() > until:
            return []
        if count <= 0:
            return []
        return [rule.next_run_at] + project_occurrences(
            rule.cadence(), rule.next_run_at, count - 1, until=until
        )

    def _validate(self, amount, start_date, end_date, status):
        if amount is None or amount <= 0:
            raise InvalidRuleError("Amount must be positive.", field="amount")
        if status not in RULE_STATUSES:
            raise InvalidRuleError("Status must be active or paused.", field="status")
        start = parse_date(start_date) if start_date else None
        end = parse_date(end_date) if end_date else None
        if start_date and start is None:
            raise InvalidRuleError("Invalid start date.", field="start_date")
        if end_date and end is None:
            raise InvalidRuleError("Invalid end date.", field="end_date")
        if start and end and end < start:
            raise InvalidRuleError("End date is before start date.", field="end_date")
