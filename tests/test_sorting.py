import pytest

from budget_planner.sorting import (
    DEFAULT_SORT,
    SORT_CRITERIA,
    SORT_LABELS,
    SortCriteria,
    clear_sort,
    effective_sort,
    sort_indicator,
    toggle_sort,
)


def test_new_criteria_starts_descending_except_name():
    assert toggle_sort(None, "income") == SortCriteria("income", ascending=False)
    assert toggle_sort(None, "name") == SortCriteria("name", ascending=True)
    assert toggle_sort(SortCriteria("income"), "last_edited") == SortCriteria("last_edited")


def test_same_criteria_flips_direction():
    current = SortCriteria("created_date", ascending=False)
    flipped = toggle_sort(current, "created_date")
    assert flipped.ascending
    assert not toggle_sort(flipped, "created_date").ascending


def test_cleared_sort_falls_back_to_budget_date():
    assert clear_sort() is None
    assert effective_sort(None) == DEFAULT_SORT == SortCriteria("budget_date", ascending=False)
    assert effective_sort(SortCriteria("name", True)).criteria == "name"


def test_indicators():
    current = SortCriteria("income", ascending=True)
    assert sort_indicator(current, "income") == "▲"
    assert sort_indicator(SortCriteria("income"), "income") == "▼"
    assert sort_indicator(current, "name") == "↕"
    assert sort_indicator(None, "income") == "↕"


def test_unknown_criteria_rejected():
    with pytest.raises(ValueError):
        SortCriteria("colour")


def test_every_criteria_has_a_label():
    assert set(SORT_LABELS) == set(SORT_CRITERIA)
