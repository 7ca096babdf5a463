from decimal import Decimal

from budget_planner.models import CategoryStats, LedgerEntry, MonthlyBudget
from budget_planner.timezones import TimezoneSettings
from budget_planner.viewmodels import (
    budget_totals,
    budgets_for_table,
    categories_for_table,
    ledger_for_table,
)

UTC = TimezoneSettings(default="UTC")


def make_category(category_id, allocated, net, remaining):
    return CategoryStats(
        category_id=category_id,
        budget_id=1,
        name=f"Category {category_id}",
        allocated=Decimal(allocated),
        net=Decimal(net),
        remaining=Decimal(remaining),
    )


def test_budget_totals_include_unallocated_income():
    categories = [make_category(1, "500", "-120", "380"), make_category(2, "300", "0", "300")]
    totals = budget_totals(categories, Decimal("1000"))
    assert totals.allocated == Decimal("800")
    assert totals.net == Decimal("-120")
    assert totals.remaining == Decimal("680")
    assert totals.unallocated == Decimal("200")


def test_budget_rows():
    budget = MonthlyBudget(
        budget_id=4,
        month=2,
        year=2025,
        total_income=Decimal("2500"),
        created_at="2025-02-01 08:00:00",
        last_edited="2025-02-01 08:00:00",
        finished_at="2025-03-01 10:00:00",
    )
    [row] = budgets_for_table([budget], UTC)
    assert row == {
        "budget_id": "4",
        "title": "February 2025",
        "period": "February 2025",
        "income": "$2,500.00",
        "created": "Feb 1, 2025",
        "finished": "Mar 1, 2025",
        "status": "Finished",
    }


def test_category_rows_only_carry_visible_columns():
    [row] = categories_for_table([make_category(1, "500", "-120", "380")], ["net"], UTC)
    assert row == {"category_id": "1", "name": "Category 1", "net": "-$120.00"}


def test_pending_ledger_rows_are_marked():
    entries = [
        LedgerEntry(entry_id=-1, category_id=1, entry_type="income", what="Refund", amount=Decimal("5"), date="2025-03-02"),
        LedgerEntry(
            entry_id=8,
            category_id=1,
            entry_type="expense",
            what="Bus",
            amount=Decimal("2.5"),
            date="2025-03-01",
            created_at="2025-03-01 07:15:00",
            where="Downtown",
        ),
    ]
    pending, saved = ledger_for_table(entries, UTC)
    assert pending["pending"] == "…"
    assert pending["type"] == "+ income"
    assert saved["pending"] == ""
    assert saved["created"] == "Mar 1, 2025 07:15:00"
    assert saved["where"] == "Downtown"
