from decimal import Decimal

import pytest

from budget_planner.models import (
    BudgetChangeHistoryEntry,
    BudgetTemplateDetail,
    CategoryStats,
    LedgerEntry,
    MonthlyBudget,
    NewEntry,
)

from conftest import budget_row, category_row, entry_row


def test_budget_from_snake_and_camel_case():
    snake = MonthlyBudget.from_dict(budget_row(name="Spring"))
    camel = MonthlyBudget.from_dict(
        {
            "budgetId": 1,
            "month": 3,
            "year": 2025,
            "totalIncome": 3000,
            "createdAt": "2025-03-01 09:00:00",
            "lastEdited": "2025-03-01 09:00:00",
            "name": "Spring",
        }
    )
    assert snake == camel
    assert snake.total_income == Decimal("3000")
    assert not snake.is_finished


def test_budget_finished_flag_and_blank_name():
    budget = MonthlyBudget.from_dict(budget_row(finished_at="2025-04-01 00:00:00", name=""))
    assert budget.is_finished
    assert budget.name is None


def test_category_stats_are_decimal():
    category = CategoryStats.from_dict(category_row())
    assert category.name == "Groceries"
    assert category.remaining == Decimal("380.0")
    assert category.entries_count == 2


def test_ledger_entry_accepts_legacy_field_names():
    entry = LedgerEntry.from_dict(
        {
            "expense_id": 5,
            "category_id": 10,
            "description": "Coffee",
            "place": "Corner cafe",
            "amount": 3.5,
            "expense_date": "2025-03-02",
        }
    )
    assert entry.entry_id == 5
    assert entry.what == "Coffee"
    assert entry.where == "Corner cafe"
    assert entry.date == "2025-03-02"
    assert entry.entry_type == "expense"


def test_ledger_entry_requires_amount():
    row = entry_row()
    del row["amount"]
    with pytest.raises(ValueError):
        LedgerEntry.from_dict(row)


def test_new_entry_payload_is_camel_case():
    entry = NewEntry(category_id=10, entry_type="income", what="Refund", amount="12.30", date="2025-03-04")
    assert entry.amount == Decimal("12.30")
    assert entry.to_payload() == {
        "categoryId": 10,
        "entryType": "income",
        "what": "Refund",
        "where": None,
        "amount": 12.3,
        "date": "2025-03-04",
    }


def test_template_detail_total():
    detail = BudgetTemplateDetail.from_dict(
        {
            "template_id": 1,
            "name": "Default",
            "categories": [
                {"template_category_id": 1, "global_category_id": 1, "category_name": "Rent", "allocated_amount": 900},
                {"template_category_id": 2, "global_category_id": 2, "category_name": "Food", "allocated_amount": 350.25},
            ],
        }
    )
    assert detail.total_amount == Decimal("1250.25")


def test_history_entry_optional_fields():
    entry = BudgetChangeHistoryEntry.from_dict(
        {
            "change_id": 1,
            "budget_id": 2,
            "change_type": "creation",
            "change_description": "Budget created",
            "changed_at": "2025-03-01 09:00:00",
        }
    )
    assert entry.field_name is None
    assert entry.old_value is None
