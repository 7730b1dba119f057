import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional

from database.db_manager import DatabaseManager
from database.interfaces import RuleStore
from models.recurring_rule import RecurrenceRule
from utils.constants import DEFAULT_CURRENCY, DEFAULT_TIMEZONE, RULE_UPDATABLE_FIELDS
from utils.date_helpers import format_timestamp, parse_timestamp, utc_now
from utils.errors import InvalidRuleError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = ("next_run_at", "last_run_at")


def _to_column(key: str, value: Any) -> Any:
    if key in _TIMESTAMP_FIELDS and value is not None:
        # list_due compares the stored text, so it must be canonical UTC
        if isinstance(value, str):
            parsed = parse_timestamp(value)
            if parsed is None:
                raise InvalidRuleError(
                    f"{key} is not an ISO-8601 timestamp: {value!r}", field=key
                )
            value = parsed
        if not isinstance(value, datetime):
            raise InvalidRuleError(f"{key} must be a datetime, got {value!r}", field=key)
        return format_timestamp(value)
    if key == "is_last_day_of_month":
        return 1 if value else 0
    return value


class RecurringRuleDAO(RuleStore):
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> RecurrenceRule:
        return RecurrenceRule(
            id=row["id"],
            amount=row["amount"],
            category=row["category"],
            currency=row["currency"] or DEFAULT_CURRENCY,
            note=row["note"],
            frequency_type=row["frequency_type"],
            interval_value=row["interval_value"] or 1,
            next_run_at=parse_timestamp(row["next_run_at"]),
            status=row["status"] or "active",
            weekly_day_of_week=row["weekly_day_of_week"],
            monthly_day_of_month=row["monthly_day_of_month"],
            is_last_day_of_month=bool(row["is_last_day_of_month"]),
            start_date=row["start_date"],
            end_date=row["end_date"],
            timezone=row["timezone"] or DEFAULT_TIMEZONE,
            last_run_at=parse_timestamp(row["last_run_at"]),
            device_name=row["device_name"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _fetch(self, sql: str, params: tuple = ()) -> list[RecurrenceRule]:
        try:
            rows = self._db.get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Query on recurring_rules failed: {exc}") from exc
        return [self._row_to_model(r) for r in rows]

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        conn = self._db.get_connection()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(f"Write to recurring_rules failed: {exc}") from exc
        return cursor

    def list_all(self) -> list[RecurrenceRule]:
        return self._fetch("SELECT * FROM recurring_rules ORDER BY created_at DESC, id DESC")

    def list_due(self, now: datetime) -> list[RecurrenceRule]:
        return self._fetch(
            """SELECT * FROM recurring_rules
               WHERE status = 'active' AND next_run_at <= ?
               ORDER BY next_run_at ASC, id ASC""",
            (format_timestamp(now),),
        )

    def list_executed(self) -> list[RecurrenceRule]:
        """Rules that have run at least once, most recent execution first."""
        return self._fetch(
            """SELECT * FROM recurring_rules
               WHERE last_run_at IS NOT NULL
               ORDER BY last_run_at DESC, id DESC"""
        )

    def get_by_id(self, rule_id: int) -> Optional[RecurrenceRule]:
        rows = self._fetch("SELECT * FROM recurring_rules WHERE id = ?", (rule_id,))
        return rows[0] if rows else None

    def create(self, **fields: Any) -> RecurrenceRule:
        unknown = set(fields) - set(RULE_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown recurring rule fields: {', '.join(sorted(unknown))}")
        columns = list(fields)
        values = tuple(_to_column(k, fields[k]) for k in columns)
        placeholders = ", ".join("?" * len(columns))
        cursor = self._write(
            f"INSERT INTO recurring_rules ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        logger.info("Created recurring rule %s", cursor.lastrowid)
        return self.get_by_id(cursor.lastrowid)

    def update(self, rule_id: int, **fields: Any) -> RecurrenceRule:
        unknown = set(fields) - set(RULE_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown recurring rule fields: {', '.join(sorted(unknown))}")
        if not fields:
            rule = self.get_by_id(rule_id)
            if rule is None:
                raise NotFoundError("recurring_rule", rule_id)
            return rule

        assignments = ", ".join(f"{k} = ?" for k in fields)
        values = tuple(_to_column(k, v) for k, v in fields.items())
        cursor = self._write(
            f"UPDATE recurring_rules SET {assignments}, updated_at = ? WHERE id = ?",
            values + (format_timestamp(utc_now()), rule_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("recurring_rule", rule_id)
        return self.get_by_id(rule_id)

    def set_status(self, rule_id: int, status: str) -> RecurrenceRule:
        return self.update(rule_id, status=status)

    def delete(self, rule_id: int) -> None:
        cursor = self._write("DELETE FROM recurring_rules WHERE id = ?", (rule_id,))
        if cursor.rowcount == 0:
            raise NotFoundError("recurring_rule", rule_id)
        logger.info("Deleted recurring rule %s", rule_id)
