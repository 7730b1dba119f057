import sqlite3

from database.db_manager import DatabaseManager
from database.interfaces import LedgerSink
from models.transaction import LedgerEntry
from utils.constants import DEFAULT_CURRENCY
from utils.date_helpers import format_timestamp, parse_timestamp
from utils.errors import PersistenceError


class ExpenseDAO(LedgerSink):
    """The expenses ledger; recurring rules materialize into it."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> LedgerEntry:
        return LedgerEntry(
            id=row["id"],
            amount=row["amount"],
            category=row["category"],
            currency=row["currency"] or DEFAULT_CURRENCY,
            note=row["note"],
            spending_time=parse_timestamp(row["spending_time"]),
            recurring_rule_id=row["recurring_rule_id"],
            device_name=row["device_name"],
            created_at=row["created_at"],
        )

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        conn = self._db.get_connection()
        try:
            cursor = conn.execute(
                """INSERT INTO expenses
                   (spending_time, amount, category, currency, note,
                    recurring_rule_id, device_name)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    format_timestamp(entry.spending_time), entry.amount, entry.category,
                    entry.currency or DEFAULT_CURRENCY, entry.note,
                    entry.recurring_rule_id, entry.device_name,
                ),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM expenses WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(f"Could not append ledger entry: {exc}") from exc
        return self._row_to_model(row)

    def get_all(self) -> list[LedgerEntry]:
        return self._query("SELECT * FROM expenses ORDER BY spending_time ASC, id ASC")

    def get_by_rule(self, rule_id: int) -> list[LedgerEntry]:
        return self._query(
            "SELECT * FROM expenses WHERE recurring_rule_id = ? ORDER BY spending_time ASC, id ASC",
            (rule_id,),
        )

    def _query(self, sql: str, params: tuple = ()) -> list[LedgerEntry]:
        try:
            rows = self._db.get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Query on expenses failed: {exc}") from exc
        return [self._row_to_model(r) for r in rows]
