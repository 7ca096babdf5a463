"""Display formatting shared by the views."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

ENTRY_TYPE_GLYPHS = {"income": "+", "expense": "-", "adjustment": "±"}


def format_money(amount: Decimal | int | float) -> str:
    """US dollar formatting: ``$1,234.50`` and ``-$12.00``."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def month_name(month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return MONTH_NAMES[month - 1]


def budget_period(month: int, year: int) -> str:
    return f"{month_name(month)} {year}"


def budget_display_name(budget) -> str:
    """The custom budget name, or ``"March 2025"`` when none was given."""
    return budget.name or budget_period(budget.month, budget.year)


def entry_type_glyph(entry_type: str) -> str:
    return ENTRY_TYPE_GLYPHS.get(entry_type, "?")
