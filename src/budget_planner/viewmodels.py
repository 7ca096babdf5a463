"""Shape store records into rows for the display tables."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from .columns import visible_columns
from .formatting import budget_display_name, budget_period, entry_type_glyph, format_money
from .history import change_display_name, change_values
from .models import BudgetChangeHistoryEntry, CategoryStats, LedgerEntry, MonthlyBudget
from .timezones import TimezoneSettings


@dataclass(frozen=True, slots=True)
class BudgetTotals:
    allocated: Decimal
    net: Decimal
    remaining: Decimal
    unallocated: Decimal


def budget_totals(categories: Iterable[CategoryStats], income: Optional[Decimal] = None) -> BudgetTotals:
    """Sum category aggregates; ``unallocated`` is income not yet assigned."""
    allocated = Decimal("0")
    net = Decimal("0")
    remaining = Decimal("0")
    for category in categories:
        allocated += category.allocated
        net += category.net
        remaining += category.remaining
    unallocated = (income - allocated) if income is not None else Decimal("0")
    return BudgetTotals(allocated=allocated, net=net, remaining=remaining, unallocated=unallocated)


def budgets_for_table(budgets: Iterable[MonthlyBudget], tz: TimezoneSettings) -> List[dict[str, str]]:
    rows = []
    for budget in budgets:
        rows.append(
            {
                "budget_id": str(budget.budget_id),
                "title": budget_display_name(budget),
                "period": budget_period(budget.month, budget.year),
                "income": format_money(budget.total_income),
                "created": tz.format(budget.created_at).date,
                "finished": tz.format(budget.finished_at).date if budget.finished_at else "",
                "status": "Finished" if budget.is_finished else "In Progress",
            }
        )
    return rows


def categories_for_table(
    categories: Iterable[CategoryStats],
    visible_column_ids: Iterable[str],
    tz: TimezoneSettings,
) -> List[dict[str, str]]:
    """Category rows limited to the visible grid columns."""
    columns = visible_columns(visible_column_ids)
    rows = []
    for category in categories:
        row = {"category_id": str(category.category_id), "name": category.name}
        for column in columns:
            row[column.id] = column.render(category, tz)
        rows.append(row)
    return rows


def ledger_for_table(entries: Iterable[LedgerEntry], tz: TimezoneSettings) -> List[dict[str, str]]:
    rows = []
    for entry in entries:
        created = tz.format(entry.created_at) if entry.created_at else None
        rows.append(
            {
                "entry_id": str(entry.entry_id),
                "type": f"{entry_type_glyph(entry.entry_type)} {entry.entry_type}",
                "what": entry.what,
                "where": entry.where or "",
                "amount": format_money(entry.amount),
                "date": entry.date,
                "created": f"{created.date} {created.time}" if created else "",
                "pending": "…" if entry.entry_id < 0 else "",
            }
        )
    return rows


def history_for_table(
    entries: Iterable[BudgetChangeHistoryEntry], tz: TimezoneSettings
) -> List[dict[str, str]]:
    rows = []
    for entry in entries:
        when = tz.format(entry.changed_at)
        old_value, new_value = change_values(entry)
        rows.append(
            {
                "change_id": str(entry.change_id),
                "action": change_display_name(entry),
                "old": old_value,
                "new": new_value,
                "description": entry.change_description,
                "when": f"{when.date} {when.time}",
            }
        )
    return rows
