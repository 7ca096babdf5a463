"""Column definitions for the category grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Tuple

from .formatting import format_money
from .models import CategoryStats
from .timezones import TimezoneSettings

VISIBLE_COLUMNS_PREFERENCE_KEY = "budget-grid-visible-columns"


@dataclass(frozen=True, slots=True)
class GridColumn:
    id: str
    label: str
    render: Callable[[CategoryStats, TimezoneSettings], str]
    sort_key: Callable[[CategoryStats], object]
    align: str = "left"


ALL_COLUMNS: Tuple[GridColumn, ...] = (
    GridColumn(
        id="allocated",
        label="Allocated",
        align="right",
        render=lambda c, _tz: format_money(c.allocated),
        sort_key=lambda c: c.allocated,
    ),
    GridColumn(
        id="net",
        label="Net (±)",
        align="right",
        render=lambda c, _tz: format_money(c.net),
        sort_key=lambda c: c.net,
    ),
    GridColumn(
        id="remaining",
        label="Remaining",
        align="right",
        render=lambda c, _tz: format_money(c.remaining),
        sort_key=lambda c: c.remaining,
    ),
    GridColumn(
        id="lastActivity",
        label="Last Activity",
        render=lambda c, tz: tz.format_short_date(c.last_activity_at),
        sort_key=lambda c: c.last_activity_at or "",
    ),
    GridColumn(
        id="entries",
        label="# Entries",
        align="right",
        render=lambda c, _tz: str(c.entries_count),
        sort_key=lambda c: c.entries_count,
    ),
)

COLUMNS_BY_ID: Dict[str, GridColumn] = {column.id: column for column in ALL_COLUMNS}

COLUMN_PRESETS: Dict[str, List[str]] = {
    "Basic": ["allocated", "remaining", "lastActivity"],
    "Detailed": ["allocated", "net", "remaining", "entries", "lastActivity"],
    "Savings Focus": ["allocated", "remaining"],
    "Full View": ["allocated", "net", "remaining", "lastActivity", "entries"],
}

DEFAULT_VISIBLE_COLUMNS: Tuple[str, ...] = tuple(COLUMN_PRESETS["Basic"])


def sanitize_column_ids(column_ids: Iterable[object] | None) -> List[str]:
    """Keep known column ids in their given order, dropping unknowns and repeats.

    An empty result falls back to the default column set.
    """
    cleaned: List[str] = []
    if column_ids is not None and not isinstance(column_ids, (str, bytes)):
        for column_id in column_ids:
            if column_id in COLUMNS_BY_ID and column_id not in cleaned:
                cleaned.append(column_id)  # type: ignore[arg-type]
    return cleaned or list(DEFAULT_VISIBLE_COLUMNS)


def toggle_column(visible: List[str], column_id: str) -> List[str]:
    """Show or hide one column; the last visible column cannot be hidden."""
    if column_id not in COLUMNS_BY_ID:
        raise KeyError(f"Unknown column id '{column_id}'")
    if column_id in visible:
        if len(visible) > 1:
            return [existing for existing in visible if existing != column_id]
        return list(visible)
    return [*visible, column_id]


def visible_columns(column_ids: Iterable[str]) -> List[GridColumn]:
    """Resolve ids to columns, in the fixed grid order."""
    wanted = set(column_ids)
    return [column for column in ALL_COLUMNS if column.id in wanted]
