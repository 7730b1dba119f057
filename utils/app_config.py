"""Pre-DB bootstrap configuration. Zero imports from the rest of the app
besides constants.

Stores settings that must be known before opening the DB (db_path, logging).
Config lives in ~/.recurring-ledger/config.json unless RECURRING_LEDGER_CONFIG
points elsewhere.
"""
import json
import os
from pathlib import Path

from utils.constants import (
    DB_FILE, DEFAULT_CURRENCY, DEFAULT_LOG_LEVEL, DEFAULT_TIMEZONE, LOG_FORMATS,
)

CONFIG_ENV_VAR = "RECURRING_LEDGER_CONFIG"
CONFIG_DIR = Path.home() / ".recurring-ledger"
CONFIG_FILE = CONFIG_DIR / "config.json"


def config_file() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_FILE


def load_config() -> dict:
    """Returns {} on missing or corrupt file; never raises."""
    try:
        with open(config_file(), "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict) -> None:
    """Creates the config directory if needed; atomic write via .tmp + os.replace()."""
    path = config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def get_db_path() -> str:
    """Return config["db_path"], defaulting to DB_FILE in the config directory."""
    path = load_config().get("db_path")
    if path:
        return str(path)
    return str(config_file().parent / DB_FILE)


def get_log_settings() -> tuple[str, str]:
    """Return (level, format); unknown formats fall back to 'text'."""
    config = load_config()
    level = str(config.get("log_level") or DEFAULT_LOG_LEVEL).upper()
    fmt = str(config.get("log_format") or "text").lower()
    if fmt not in LOG_FORMATS:
        fmt = "text"
    return level, fmt


def get_default_currency() -> str:
    return str(load_config().get("default_currency") or DEFAULT_CURRENCY)


def get_default_timezone() -> str:
    return str(load_config().get("default_timezone") or DEFAULT_TIMEZONE)
