import logging
import os
import sqlite3

from utils.constants import DB_FILE
from utils.errors import PersistenceError

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_FILE
        self._conn: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.db_path != ":memory:":
                folder = os.path.dirname(os.path.abspath(self.db_path))
                os.makedirs(folder, exist_ok=True)
            try:
                conn = sqlite3.connect(self.db_path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                if self.db_path != ":memory:":
                    conn.execute("PRAGMA journal_mode = WAL")
            except sqlite3.Error as exc:
                raise PersistenceError(f"Cannot open database {self.db_path}: {exc}") from exc
            self._conn = conn
        return self._conn

    def initialize(self):
        """Create schema and apply column migrations."""
        conn = self.get_connection()
        try:
            self._create_schema(conn)
            self._migrate_schema(conn)
            conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Schema initialization failed: {exc}") from exc
        logger.debug("Database initialized at %s", self.db_path)

    def _migrate_schema(self, conn: sqlite3.Connection):
        """Idempotent ALTER TABLE for columns added after initial release."""
        cols = {row[1] for row in conn.execute("PRAGMA table_info(recurring_rules)").fetchall()}
        if "device_name" not in cols:
            conn.execute("ALTER TABLE recurring_rules ADD COLUMN device_name TEXT")
        cols = {row[1] for row in conn.execute("PRAGMA table_info(expenses)").fetchall()}
        if "device_name" not in cols:
            conn.execute("ALTER TABLE expenses ADD COLUMN device_name TEXT")

    def _create_schema(self, conn: sqlite3.Connection):
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS recurring_rules (
                id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                amount               REAL    NOT NULL CHECK(amount > 0),
                category             TEXT,
                currency             TEXT    NOT NULL DEFAULT 'CNY',
                note                 TEXT,
                frequency_type       TEXT    NOT NULL
                                     CHECK(frequency_type IN ('daily','weekly','monthly','yearly')),
                interval_value       INTEGER NOT NULL DEFAULT 1 CHECK(interval_value >= 1),
                weekly_day_of_week   INTEGER CHECK(weekly_day_of_week BETWEEN 1 AND 7),
                monthly_day_of_month INTEGER CHECK(monthly_day_of_month BETWEEN 1 AND 31),
                is_last_day_of_month INTEGER NOT NULL DEFAULT 0,
                start_date           TEXT,
                end_date             TEXT,
                timezone             TEXT    NOT NULL DEFAULT 'Asia/Shanghai',
                next_run_at          TEXT    NOT NULL,
                last_run_at          TEXT,
                status               TEXT    NOT NULL DEFAULT 'active'
                                     CHECK(status IN ('active','paused')),
                created_at           TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')),
                updated_at           TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
            );

            CREATE TABLE IF NOT EXISTS expenses (
                id                INTEGER PRIMARY KEY AUTOINCREMENT,
                spending_time     TEXT NOT NULL,
                amount            REAL NOT NULL,
                category          TEXT,
                currency          TEXT NOT NULL DEFAULT 'CNY',
                note              TEXT,
                recurring_rule_id INTEGER,
                created_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
            );

            CREATE INDEX IF NOT EXISTS idx_recurring_rules_due
                ON recurring_rules(status, next_run_at);
            CREATE INDEX IF NOT EXISTS idx_expenses_rule
                ON expenses(recurring_rule_id);
            CREATE INDEX IF NOT EXISTS idx_expenses_spending_time
                ON expenses(spending_time);
        """)

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
