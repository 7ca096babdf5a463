import json

from budget_planner.storage import PreferenceStore


def test_missing_file_starts_empty(tmp_path):
    store = PreferenceStore(tmp_path / "prefs.json")
    assert store.get("app-timezone") is None
    assert store.get("app-timezone", "UTC") == "UTC"


def test_values_are_written_immediately(tmp_path):
    path = tmp_path / "nested" / "prefs.json"
    store = PreferenceStore(path)
    store.set("budget-grid-visible-columns", ["net"])
    assert json.loads(path.read_text(encoding="utf-8")) == {"budget-grid-visible-columns": ["net"]}
    assert PreferenceStore(path).get("budget-grid-visible-columns") == ["net"]


def test_corrupt_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    store = PreferenceStore(path)
    assert store.get("app-timezone") is None
    assert "Ignoring unreadable preferences file" in caplog.text


def test_non_object_file_is_ignored(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert PreferenceStore(path).get("app-timezone") is None
