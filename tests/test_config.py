from pathlib import Path

import pytest

from budget_planner.config import AppConfig


def test_defaults():
    config = AppConfig.from_env({})
    assert config.backend_command == ["budget-backend"]
    assert config.preferences_file == Path("budget_preferences.json")
    assert config.log_level == "INFO"
    assert config.ledger_page_size == 100


def test_environment_values():
    config = AppConfig.from_env(
        {
            "BUDGET_PLANNER_BACKEND": "budget-backend --db '/tmp/my budget.db'",
            "BUDGET_PLANNER_PREFERENCES": "/tmp/prefs.json",
            "BUDGET_PLANNER_LOG_LEVEL": "debug",
            "BUDGET_PLANNER_LEDGER_PAGE_SIZE": "25",
        }
    )
    assert config.backend_command == ["budget-backend", "--db", "/tmp/my budget.db"]
    assert config.preferences_file == Path("/tmp/prefs.json")
    assert config.log_level == "DEBUG"
    assert config.ledger_page_size == 25


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_bad_page_size(value):
    with pytest.raises(ValueError):
        AppConfig.from_env({"BUDGET_PLANNER_LEDGER_PAGE_SIZE": value})


def test_command_line_overrides_environment():
    config = AppConfig.from_env({"BUDGET_PLANNER_LOG_LEVEL": "ERROR"}).override(
        backend="./backend --fast", log_level="warning"
    )
    assert config.backend_command == ["./backend", "--fast"]
    assert config.log_level == "WARNING"
    assert config.preferences_file == Path("budget_preferences.json")
