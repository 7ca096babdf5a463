from datetime import datetime, timezone

import pytest

from budget_planner.storage import PreferenceStore
from budget_planner.timezones import (
    INVALID_TIMESTAMP,
    TIMEZONE_PREFERENCE_KEY,
    TimezoneSettings,
    detect_system_timezone,
    format_in_timezone,
    format_short_date,
    is_valid_timezone,
    utc_timestamp,
)


def test_iso_timestamp_in_utc():
    formatted = format_in_timezone("2025-01-15T10:00:00", "UTC")
    assert formatted.date == "Jan 15, 2025"
    assert formatted.time == "10:00:00"


@pytest.mark.parametrize(
    "value, zone, expected_date, expected_time",
    [
        ("2025-01-15 10:00:00", "America/New_York", "Jan 15, 2025", "05:00:00"),
        ("2025-01-15T10:00:00Z", "Asia/Tokyo", "Jan 15, 2025", "19:00:00"),
        ("2025-01-15 23:30:00", "Asia/Tokyo", "Jan 16, 2025", "08:30:00"),
        ("2025-07-01 12:00:00", "Europe/London", "Jul 1, 2025", "13:00:00"),
    ],
)
def test_backend_timestamps_are_read_as_utc(value, zone, expected_date, expected_time):
    formatted = format_in_timezone(value, zone)
    assert (formatted.date, formatted.time) == (expected_date, expected_time)


@pytest.mark.parametrize("value", ["not-a-date", "", None, "2025-13-45 99:00:00"])
def test_unparseable_values_render_as_invalid(value):
    assert format_in_timezone(value, "UTC") == INVALID_TIMESTAMP
    assert format_in_timezone(value, "UTC").date == "Invalid Date"


def test_unknown_zone_renders_as_invalid():
    assert format_in_timezone("2025-01-15 10:00:00", "Mars/Olympus") == INVALID_TIMESTAMP


def test_short_date():
    assert format_short_date("2025-01-15 10:00:00", "UTC") == "Jan 15"
    assert format_short_date(None, "UTC") == "Never"
    assert format_short_date("yesterday", "UTC") == "Invalid"


def test_zone_validation():
    assert is_valid_timezone("Europe/Berlin")
    assert not is_valid_timezone("Nowhere/Special")
    assert not is_valid_timezone("")


def test_utc_timestamp_uses_backend_format():
    moment = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert utc_timestamp(moment) == "2025-01-02 03:04:05"


def test_detect_system_timezone_prefers_tz_variable(monkeypatch):
    monkeypatch.setenv("TZ", "Europe/Rome")
    assert detect_system_timezone() == "Europe/Rome"


def test_settings_use_saved_zone(tmp_path):
    preferences = PreferenceStore(tmp_path / "prefs.json")
    preferences.set(TIMEZONE_PREFERENCE_KEY, "Europe/Paris")
    settings = TimezoneSettings(preferences, default="UTC")
    assert settings.timezone == "Europe/Paris"
    assert settings.format("2025-01-15 10:00:00").time == "11:00:00"


def test_settings_ignore_invalid_saved_zone(tmp_path):
    preferences = PreferenceStore(tmp_path / "prefs.json")
    preferences.set(TIMEZONE_PREFERENCE_KEY, "Atlantis/Capital")
    assert TimezoneSettings(preferences, default="Asia/Tokyo").timezone == "Asia/Tokyo"


def test_set_timezone_persists_and_rejects_unknown(tmp_path):
    path = tmp_path / "prefs.json"
    settings = TimezoneSettings(PreferenceStore(path), default="UTC")
    settings.set_timezone("Australia/Sydney")
    assert TimezoneSettings(PreferenceStore(path)).timezone == "Australia/Sydney"
    with pytest.raises(ValueError):
        settings.set_timezone("Not/AZone")
    assert settings.timezone == "Australia/Sydney"
