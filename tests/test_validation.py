from decimal import Decimal

import pytest

from budget_planner.models import MonthlyBudget
from budget_planner.validation import (
    MAX_NAME_LENGTH,
    ValidationError,
    parse_amount,
    validate_allocation,
    validate_category,
    validate_entry,
    validate_new_budget,
    validate_title,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12.50", Decimal("12.50")),
        (" 1,234.5 ", Decimal("1234.5")),
        (7, Decimal("7")),
        ("abc", None),
        ("", None),
        (None, None),
        ("NaN", None),
        ("Infinity", None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_valid_entry_returns_amount():
    amount = validate_entry(entry_type="expense", what="Lunch", amount="8.40", entry_date="2025-03-01")
    assert amount == Decimal("8.40")


def test_entry_errors_are_reported_per_field():
    with pytest.raises(ValidationError) as excinfo:
        validate_entry(entry_type="gift", what="", amount="-3", entry_date="")
    assert excinfo.value.errors == {
        "entry_type": "Entry type must be one of: income, expense, adjustment",
        "what": "Description is required",
        "amount": "Amount must be greater than 0",
        "date": "Date is required",
    }


def test_entry_date_format():
    with pytest.raises(ValidationError) as excinfo:
        validate_entry(entry_type="income", what="Pay", amount="1", entry_date="03/01/2025")
    assert excinfo.value.errors == {"date": "Date must use the YYYY-MM-DD format"}


def test_message_joins_field_errors():
    error = ValidationError({"a": "First", "b": "Second"})
    assert str(error) == "First; Second"
    assert isinstance(error, ValueError)


def test_new_budget_checks_ranges():
    with pytest.raises(ValidationError) as excinfo:
        validate_new_budget(month=13, year=1800, total_income="abc", name="x" * (MAX_NAME_LENGTH + 1))
    assert set(excinfo.value.errors) == {"month", "year", "total_income", "name"}


def test_new_budget_duplicate_month():
    existing = [
        MonthlyBudget(
            budget_id=1,
            month=3,
            year=2025,
            total_income=Decimal("1000"),
            created_at="",
            last_edited="",
        )
    ]
    with pytest.raises(ValidationError) as excinfo:
        validate_new_budget(month=3, year=2025, total_income="500", name=None, existing=existing)
    assert excinfo.value.errors["month"] == (
        "A budget for March 2025 already exists. "
        "Please choose a different month/year or edit the existing budget."
    )
    assert validate_new_budget(month=4, year=2025, total_income="500", name=None, existing=existing) == Decimal("500")


def test_title_and_allocation():
    assert validate_title("  March  ") == "March"
    with pytest.raises(ValidationError):
        validate_title("")
    assert validate_allocation("0") == Decimal("0")
    with pytest.raises(ValidationError):
        validate_allocation("-0.01")


def test_category_requires_name():
    with pytest.raises(ValidationError) as excinfo:
        validate_category(" ", "10")
    assert excinfo.value.errors == {"name": "Category name is required"}


def test_zero_amounts_pass_where_allowed():
    assert validate_category("Rent", "0") == Decimal("0")
    with pytest.raises(ValidationError) as excinfo:
        validate_category("Rent", "abc")
    assert excinfo.value.errors == {"allocated": "Allocated amount must be zero or more"}
