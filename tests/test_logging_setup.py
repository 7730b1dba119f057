import json
import logging

import pytest

from utils.logging_setup import configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_lines(capsys, restore_root_logger):
    configure_logging(level="debug", fmt="json")
    logging.getLogger("services.due_session").info("Executed rule %s", 7)

    line = capsys.readouterr().err.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "Executed rule 7"
    assert event["level"] == "info"
    assert event["logger"] == "services.due_session"
    assert "timestamp" in event


def test_text_respects_level(capsys, restore_root_logger):
    configure_logging(level="WARNING", fmt="text")
    logging.getLogger("x").info("hidden")
    logging.getLogger("x").warning("shown")

    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "shown" in err
