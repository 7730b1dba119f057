"""Next-occurrence calculation for recurrence rules.

Everything here is pure: the only notion of "now" is the reference instant
passed in. Time of day and tzinfo of the reference are carried through
unchanged; no wall-clock timezone arithmetic is done.
"""
from datetime import date, datetime, timedelta

from models.cadence import (
    Cadence, DailyCadence, LastDay, MonthlyCadence, WeeklyCadence, YearlyCadence,
)
from models.recurring_rule import RecurrenceRule
from utils.date_helpers import add_months, add_years, iso_weekday, last_day_after_months
from utils.errors import InvalidRuleError


def weekly_offset_days(reference_weekday: int, target_weekday: int, interval: int) -> int:
    """Days from the reference to the next qualifying weekday.

    Always within (7 * (interval - 1), 7 * interval], so the same weekday as
    the reference rolls a full interval forward rather than returning today.
    """
    delta = target_weekday - reference_weekday
    if delta <= 0:
        return delta + 7 * interval
    if interval > 1:
        return 7 * (interval - 1) + delta
    return delta


def compute_next_run_at(cadence: Cadence, reference: datetime) -> datetime:
    """Return the next occurrence strictly after `reference`."""
    if isinstance(cadence, DailyCadence):
        return reference + timedelta(days=cadence.interval)

    if isinstance(cadence, WeeklyCadence):
        offset = weekly_offset_days(iso_weekday(reference), cadence.weekday, cadence.interval)
        return reference + timedelta(days=offset)

    if isinstance(cadence, MonthlyCadence):
        if isinstance(cadence.anchor, LastDay):
            return last_day_after_months(reference, cadence.interval)
        return add_months(reference, cadence.interval, day=cadence.anchor.day)

    if isinstance(cadence, YearlyCadence):
        return add_years(reference, cadence.interval)

    raise InvalidRuleError(f"Unsupported cadence: {cadence!r}", field="frequency_type")


def next_run_for_rule(rule: RecurrenceRule, reference: datetime) -> datetime:
    """Build the rule's cadence and compute from `reference`.

    Raises InvalidRuleError if the rule's cadence fields are inconsistent.
    """
    return compute_next_run_at(rule.cadence(), reference)


def project_occurrences(
    cadence: Cadence,
    reference: datetime,
    count: int,
    until: date | None = None,
) -> list[datetime]:
    """Up to `count` successive occurrences after `reference`.

    Stops early at the first occurrence whose date falls after `until`.
    """
    result: list[datetime] = []
    current = reference
    while len(result) < count:
        current = compute_next_run_at(cadence, current)
        if until and current.date() > until:
            break
        result.append(current)
    return result
