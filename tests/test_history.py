import pytest

from budget_planner.backend import BackendError, BudgetBackend
from budget_planner.history import COLLAPSED_ENTRY_COUNT, ChangeHistory, change_display_name, change_values
from budget_planner.models import BudgetChangeHistoryEntry

from conftest import FakeInvoker


def change(change_id=1, change_type="status_change", description="Budget marked as finished", **extra):
    return BudgetChangeHistoryEntry(
        change_id=change_id,
        budget_id=1,
        change_type=change_type,
        change_description=description,
        changed_at="2025-03-01 10:00:00",
        **extra,
    )


@pytest.mark.parametrize(
    "entry, expected",
    [
        (change(), "Finished Budget"),
        (change(description="Budget unfinished for editing"), "Reopened Budget"),
        (change(change_type="title_change", description="Title changed"), "Edited Title"),
        (change(change_type="field_change", description="", field_name="total_income"), "Edited total_income"),
        (change(change_type="creation", description="Budget created"), "Budget Created"),
        (change(change_type="mystery", description=""), "Unknown Action"),
    ],
)
def test_display_names(entry, expected):
    assert change_display_name(entry) == expected


def test_status_values_are_synthesised():
    assert change_values(change()) == ("In Progress", "Finished")
    assert change_values(change(description="Budget reopened for editing")) == ("Finished", "In Progress")
    assert change_values(change(change_type="title_change", old_value="Old", new_value="New")) == ("Old", "New")
    assert change_values(change(change_type="creation", description="")) == ("-", "-")


def history_rows(count):
    return [
        {
            "change_id": index,
            "budget_id": 1,
            "change_type": "title_change",
            "change_description": "Title changed",
            "changed_at": "2025-03-01 10:00:00",
        }
        for index in range(count)
    ]


@pytest.mark.asyncio
async def test_collapsed_view_and_toggle():
    history = ChangeHistory(BudgetBackend(FakeInvoker({"get_budget_change_history": history_rows(5)})), 1)
    assert await history.load()
    assert len(history.visible_entries) == COLLAPSED_ENTRY_COUNT
    assert history.can_expand
    history.toggle_expanded()
    assert len(history.visible_entries) == 5


@pytest.mark.asyncio
async def test_load_failure_is_local():
    backend = BudgetBackend(FakeInvoker({"get_budget_change_history": BackendError("timeout")}))
    history = ChangeHistory(backend, 1)
    assert not await history.load()
    assert history.error == "Failed to load change history"
    assert not history.loading
