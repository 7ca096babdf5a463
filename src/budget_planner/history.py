"""Budget change history panel state."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .backend import BackendError, BudgetBackend
from .models import BudgetChangeHistoryEntry

logger = logging.getLogger(__name__)

COLLAPSED_ENTRY_COUNT = 3


def change_display_name(entry: BudgetChangeHistoryEntry) -> str:
    description = entry.change_description
    if entry.change_type == "status_change":
        if "finished" in description and "unfinished" not in description:
            return "Finished Budget"
        if "reopened" in description or "editing" in description or "unfinished" in description:
            return "Reopened Budget"
        return "Status Changed"
    if entry.change_type == "title_change":
        return "Edited Title"
    if entry.change_type == "field_change":
        return f"Edited {entry.field_name}" if entry.field_name else "Edited Budget"
    if entry.change_type == "creation":
        return "Budget Created"
    if entry.change_type == "entry_add":
        return "Added Entry"
    if entry.change_type == "template_apply":
        return "Applied Template"
    return "Unknown Action"


def change_values(entry: BudgetChangeHistoryEntry) -> Tuple[str, str]:
    """Old and new value to show for an entry, synthesised for status changes."""
    if entry.old_value and entry.new_value:
        return entry.old_value, entry.new_value
    if entry.change_type == "status_change":
        description = entry.change_description
        if "unfinished" in description or "editing" in description or "reopened" in description:
            return "Finished", "In Progress"
        if "finished" in description:
            return "In Progress", "Finished"
    return "-", "-"


class ChangeHistory:
    def __init__(self, backend: BudgetBackend, budget_id: int) -> None:
        self.backend = backend
        self.budget_id = budget_id
        self.entries: List[BudgetChangeHistoryEntry] = []
        self.error: Optional[str] = None
        self.loading = False
        self.expanded = False

    async def load(self) -> bool:
        self.loading = True
        self.error = None
        try:
            self.entries = await self.backend.get_budget_change_history(self.budget_id)
        except BackendError as exc:
            logger.error("Failed to load change history for budget %d: %s", self.budget_id, exc)
            self.error = "Failed to load change history"
            return False
        finally:
            self.loading = False
        return True

    def toggle_expanded(self) -> None:
        self.expanded = not self.expanded

    @property
    def can_expand(self) -> bool:
        return len(self.entries) > COLLAPSED_ENTRY_COUNT

    @property
    def visible_entries(self) -> List[BudgetChangeHistoryEntry]:
        if self.expanded:
            return list(self.entries)
        return self.entries[:COLLAPSED_ENTRY_COUNT]
