"""Client-side form validation performed before any backend call."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

from .formatting import budget_period
from .models import ENTRY_TYPES, TEMPLATE_CATEGORY_TYPES, MonthlyBudget, TemplateDraft

MAX_NAME_LENGTH = 100
MIN_YEAR = 1900
MAX_YEAR = 2100


class ValidationError(ValueError):
    """Carries one message per offending form field."""

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()))


def parse_amount(value: str | int | float | Decimal | None) -> Optional[Decimal]:
    """Parse user input into a Decimal, ``None`` when it is not a number."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _raise_if(errors: Dict[str, str]) -> None:
    if errors:
        raise ValidationError(errors)


def validate_entry(
    *,
    entry_type: str,
    what: str,
    amount: str | Decimal | float | None,
    entry_date: str,
) -> Decimal:
    """Validate ledger-entry input and return the parsed amount."""
    errors: Dict[str, str] = {}
    if entry_type not in ENTRY_TYPES:
        errors["entry_type"] = f"Entry type must be one of: {', '.join(ENTRY_TYPES)}"
    if not (what or "").strip():
        errors["what"] = "Description is required"
    parsed = parse_amount(amount)
    if parsed is None or parsed <= 0:
        errors["amount"] = "Amount must be greater than 0"
    if not (entry_date or "").strip():
        errors["date"] = "Date is required"
    else:
        try:
            date.fromisoformat(entry_date.strip())
        except ValueError:
            errors["date"] = "Date must use the YYYY-MM-DD format"
    if errors or parsed is None:
        raise ValidationError(errors)
    return parsed


def validate_new_budget(
    *,
    month: int,
    year: int,
    total_income: str | Decimal | float | None,
    name: Optional[str],
    existing: Iterable[MonthlyBudget] = (),
) -> Decimal:
    """Validate the create-budget form; at most one budget per month and year."""
    errors: Dict[str, str] = {}
    if not 1 <= month <= 12:
        errors["month"] = "Month must be between 1 and 12"
    if not MIN_YEAR <= year <= MAX_YEAR:
        errors["year"] = f"Year must be between {MIN_YEAR} and {MAX_YEAR}"
    income = parse_amount(total_income)
    if income is None or income <= 0:
        errors["total_income"] = "Please enter a valid income amount"
    if name and len(name.strip()) > MAX_NAME_LENGTH:
        errors["name"] = f"Name must be at most {MAX_NAME_LENGTH} characters"
    if "month" not in errors and "year" not in errors:
        if any(b.month == month and b.year == year for b in existing):
            errors["month"] = (
                f"A budget for {budget_period(month, year)} already exists. "
                "Please choose a different month/year or edit the existing budget."
            )
    if errors or income is None:
        raise ValidationError(errors)
    return income


def validate_title(title: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError({"title": "Title cannot be empty"})
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError({"title": f"Title must be at most {MAX_NAME_LENGTH} characters"})
    return cleaned


def validate_allocation(amount: str | Decimal | float | None) -> Decimal:
    parsed = parse_amount(amount)
    if parsed is None or parsed < 0:
        raise ValidationError({"allocated": "Allocated amount must be zero or more"})
    return parsed


def validate_category(name: str, allocated: str | Decimal | float | None) -> Decimal:
    errors: Dict[str, str] = {}
    if not (name or "").strip():
        errors["name"] = "Category name is required"
    parsed = parse_amount(allocated)
    if parsed is None or parsed < 0:
        errors["allocated"] = "Allocated amount must be zero or more"
    if errors or parsed is None:
        raise ValidationError(errors)
    return parsed


def validate_global_category(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError({"name": "Category name is required"})
    return cleaned


def validate_template(draft: TemplateDraft) -> None:
    errors: Dict[str, str] = {}
    if not (draft.name or "").strip():
        errors["name"] = "Template name is required"
    for index, item in enumerate(draft.categories):
        if item.allocated_amount < 0:
            errors[f"categories[{index}].allocated_amount"] = "Allocated amount must be zero or more"
        if item.category_type not in TEMPLATE_CATEGORY_TYPES:
            errors[f"categories[{index}].category_type"] = "Category type must be expense or savings"
    _raise_if(errors)
