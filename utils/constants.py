APP_NAME = "Recurring Ledger"
DB_FILE = "recurring_ledger.db"

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_CURRENCY = "CNY"
DEFAULT_TIMEZONE = "Asia/Shanghai"

FREQUENCY_TYPES = ["daily", "weekly", "monthly", "yearly"]
RULE_STATUSES = ["active", "paused"]

CURRENCY_SYMBOLS = {
    "CNY": "¥",
    "HKD": "HK$",
    "USD": "$",
}

# Columns a caller may change through RuleStore.update
RULE_UPDATABLE_FIELDS = (
    "amount",
    "category",
    "currency",
    "note",
    "device_name",
    "frequency_type",
    "interval_value",
    "weekly_day_of_week",
    "monthly_day_of_month",
    "is_last_day_of_month",
    "start_date",
    "end_date",
    "timezone",
    "next_run_at",
    "last_run_at",
    "status",
)

LOG_FORMATS = ["text", "json"]
DEFAULT_LOG_LEVEL = "INFO"
