"""Sort state for the monthly budget list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

SORT_CRITERIA = (
    "income",
    "created_date",
    "finished_date",
    "budget_date",
    "name",
    "last_edited",
)

SORT_LABELS = {
    "budget_date": "Budget Date",
    "created_date": "Created Date",
    "finished_date": "Finished Date",
    "last_edited": "Last Edited",
    "name": "Alphabetically",
    "income": "Income Amount",
}


@dataclass(frozen=True, slots=True)
class SortCriteria:
    criteria: str
    ascending: bool = False

    def __post_init__(self) -> None:
        if self.criteria not in SORT_CRITERIA:
            raise ValueError(f"Unknown sort criteria '{self.criteria}'")


DEFAULT_SORT = SortCriteria("budget_date", ascending=False)


def toggle_sort(current: Optional[SortCriteria], criteria: str) -> SortCriteria:
    """Return the sort produced by clicking the control for ``criteria``.

    Clicking the active criteria flips its direction. A new criteria starts
    descending, except ``name`` which reads naturally A-Z.
    """
    if current is not None and current.criteria == criteria:
        return SortCriteria(criteria, ascending=not current.ascending)
    return SortCriteria(criteria, ascending=criteria == "name")


def clear_sort() -> None:
    """The unset sentinel: default ordering, no highlighted control."""
    return None


def effective_sort(current: Optional[SortCriteria]) -> SortCriteria:
    return current if current is not None else DEFAULT_SORT


def sort_indicator(current: Optional[SortCriteria], criteria: str) -> str:
    if current is None or current.criteria != criteria:
        return "↕"
    return "▲" if current.ascending else "▼"
