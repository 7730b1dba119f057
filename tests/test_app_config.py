import json

import pytest

from utils import app_config


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "cfg" / "config.json"
    monkeypatch.setenv(app_config.CONFIG_ENV_VAR, str(path))
    return path


def test_missing_file_is_empty(config_path):
    assert app_config.load_config() == {}


def test_corrupt_file_is_empty(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text("{not json", encoding="utf-8")
    assert app_config.load_config() == {}

    config_path.write_text("[1, 2]", encoding="utf-8")
    assert app_config.load_config() == {}


def test_save_creates_directory_and_round_trips(config_path):
    app_config.save_config({"db_path": "/data/ledger.db", "log_format": "json"})

    assert json.loads(config_path.read_text(encoding="utf-8"))["db_path"] == "/data/ledger.db"
    assert app_config.load_config() == {"db_path": "/data/ledger.db", "log_format": "json"}
    assert not config_path.with_suffix(".tmp").exists()


def test_db_path_defaults_next_to_config(config_path):
    assert app_config.get_db_path() == str(config_path.parent / "recurring_ledger.db")

    app_config.save_config({"db_path": "elsewhere.db"})
    assert app_config.get_db_path() == "elsewhere.db"


def test_log_settings(config_path):
    assert app_config.get_log_settings() == ("INFO", "text")

    app_config.save_config({"log_level": "debug", "log_format": "xml"})
    assert app_config.get_log_settings() == ("DEBUG", "text")


def test_defaults_for_currency_and_timezone(config_path):
    assert app_config.get_default_currency() == "CNY"
    assert app_config.get_default_timezone() == "Asia/Shanghai"

    app_config.save_config({"default_currency": "HKD", "default_timezone": "Asia/Hong_Kong"})
    assert app_config.get_default_currency() == "HKD"
    assert app_config.get_default_timezone() == "Asia/Hong_Kong"
