from decimal import Decimal

import pytest

from budget_planner.formatting import budget_display_name, budget_period, entry_type_glyph, format_money, month_name
from budget_planner.models import MonthlyBudget


@pytest.mark.parametrize(
    "amount, expected",
    [
        (Decimal("1234.5"), "$1,234.50"),
        (Decimal("-12"), "-$12.00"),
        (0, "$0.00"),
        (Decimal("0.005"), "$0.01"),
    ],
)
def test_format_money(amount, expected):
    assert format_money(amount) == expected


def test_periods_and_names():
    assert budget_period(3, 2025) == "March 2025"
    with pytest.raises(ValueError):
        month_name(0)
    budget = MonthlyBudget(
        budget_id=1, month=12, year=2024, total_income=Decimal("1"), created_at="", last_edited=""
    )
    assert budget_display_name(budget) == "December 2024"
    budget.name = "Holidays"
    assert budget_display_name(budget) == "Holidays"


def test_entry_glyphs():
    assert entry_type_glyph("income") == "+"
    assert entry_type_glyph("expense") == "-"
    assert entry_type_glyph("other") == "?"
