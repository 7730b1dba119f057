"""Cadence variants: the frequency, interval and anchor of a recurrence rule.

Each variant validates itself on construction, so a weekly cadence without a
weekday or a monthly cadence without an anchor cannot be built.
"""
from dataclasses import dataclass
from typing import Union

from utils.constants import FREQUENCY_TYPES
from utils.errors import InvalidRuleError

_WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _check_interval(interval) -> None:
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        raise InvalidRuleError(
            f"interval_value must be a positive integer, got {interval!r}",
            field="interval_value",
        )


def _every(interval: int, unit: str) -> str:
    return f"every {unit}" if interval == 1 else f"every {interval} {unit}s"


@dataclass(frozen=True)
class DailyCadence:
    interval: int = 1

    def __post_init__(self):
        _check_interval(self.interval)

    @property
    def frequency_type(self) -> str:
        return "daily"

    def to_fields(self) -> dict:
        return _base_fields("daily", self.interval)

    def describe(self) -> str:
        return _every(self.interval, "day")


@dataclass(frozen=True)
class WeeklyCadence:
    interval: int
    weekday: int    # 1=Mon..7=Sun

    def __post_init__(self):
        _check_interval(self.interval)
        if isinstance(self.weekday, bool) or not isinstance(self.weekday, int) \
                or not 1 <= self.weekday <= 7:
            raise InvalidRuleError(
                f"weekly_day_of_week must be 1-7, got {self.weekday!r}",
                field="weekly_day_of_week",
            )

    @property
    def frequency_type(self) -> str:
        return "weekly"

    def to_fields(self) -> dict:
        fields = _base_fields("weekly", self.interval)
        fields["weekly_day_of_week"] = self.weekday
        return fields

    def describe(self) -> str:
        return f"{_every(self.interval, 'week')} on {_WEEKDAY_NAMES[self.weekday - 1]}"


@dataclass(frozen=True)
class FixedDay:
    day: int

    def __post_init__(self):
        if isinstance(self.day, bool) or not isinstance(self.day, int) or not 1 <= self.day <= 31:
            raise InvalidRuleError(
                f"monthly_day_of_month must be 1-31, got {self.day!r}",
                field="monthly_day_of_month",
            )


@dataclass(frozen=True)
class LastDay:
    pass


MonthlyAnchor = Union[FixedDay, LastDay]


@dataclass(frozen=True)
class MonthlyCadence:
    interval: int
    anchor: MonthlyAnchor

    def __post_init__(self):
        _check_interval(self.interval)
        if not isinstance(self.anchor, (FixedDay, LastDay)):
            raise InvalidRuleError(
                "monthly rules need a day of month or the last-day flag",
                field="monthly_day_of_month",
            )

    @property
    def frequency_type(self) -> str:
        return "monthly"

    def to_fields(self) -> dict:
        fields = _base_fields("monthly", self.interval)
        if isinstance(self.anchor, LastDay):
            fields["is_last_day_of_month"] = True
        else:
            fields["monthly_day_of_month"] = self.anchor.day
        return fields

    def describe(self) -> str:
        if isinstance(self.anchor, LastDay):
            return f"{_every(self.interval, 'month')} on the last day"
        return f"{_every(self.interval, 'month')} on day {self.anchor.day}"


@dataclass(frozen=True)
class YearlyCadence:
    interval: int = 1

    def __post_init__(self):
        _check_interval(self.interval)

    @property
    def frequency_type(self) -> str:
        return "yearly"

    def to_fields(self) -> dict:
        return _base_fields("yearly", self.interval)

    def describe(self) -> str:
        return _every(self.interval, "year")


Cadence = Union[DailyCadence, WeeklyCadence, MonthlyCadence, YearlyCadence]


def _base_fields(frequency_type: str, interval: int) -> dict:
    return {
        "frequency_type": frequency_type,
        "interval_value": interval,
        "weekly_day_of_week": None,
        "monthly_day_of_month": None,
        "is_last_day_of_month": False,
    }


def cadence_from_fields(
    frequency_type: str,
    interval_value: int | None = 1,
    weekly_day_of_week: int | None = None,
    monthly_day_of_month: int | None = None,
    is_last_day_of_month: bool = False,
) -> Cadence:
    """Build a cadence from the persisted tag-plus-optional-fields shape.

    Anchors that do not belong to the frequency are ignored. A missing
    interval is read as 1, as the storage layer defaults it.
    """
    interval = 1 if interval_value is None else interval_value
    if frequency_type == "daily":
        return DailyCadence(interval)
    if frequency_type == "weekly":
        if weekly_day_of_week is None:
            raise InvalidRuleError(
                "weekly rules need weekly_day_of_week", field="weekly_day_of_week"
            )
        return WeeklyCadence(interval, weekly_day_of_week)
    if frequency_type == "monthly":
        if is_last_day_of_month:
            return MonthlyCadence(interval, LastDay())
        if monthly_day_of_month is None:
            raise InvalidRuleError(
                "monthly rules need monthly_day_of_month or is_last_day_of_month",
                field="monthly_day_of_month",
            )
        return MonthlyCadence(interval, FixedDay(monthly_day_of_month))
    if frequency_type == "yearly":
        return YearlyCadence(interval)
    raise InvalidRuleError(
        f"frequency_type must be one of {', '.join(FREQUENCY_TYPES)}, got {frequency_type!r}",
        field="frequency_type",
    )
