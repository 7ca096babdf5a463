"""In-memory mirror of backend state with optimistic ledger updates."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Union

from .backend import BackendError, BudgetBackend
from .columns import VISIBLE_COLUMNS_PREFERENCE_KEY, sanitize_column_ids
from .models import (
    CategoryStats,
    LedgerEntry,
    MonthlyBudget,
    NewCategory,
    NewEntry,
    UpdateEntry,
)
from .sorting import SortCriteria, clear_sort, effective_sort, toggle_sort
from .storage import PreferenceStore
from .timezones import utc_timestamp
from .validation import (
    validate_allocation,
    validate_category,
    validate_entry,
    validate_new_budget,
    validate_title,
)

logger = logging.getLogger(__name__)

LEDGER_SORTS = (
    "date_desc",
    "date_asc",
    "amount_desc",
    "amount_asc",
    "created_desc",
    "created_asc",
)
DEFAULT_LEDGER_LIMIT = 100

# Adjustments are booked unsigned; their effect on net is decided by the backend.
ENTRY_SIGNS = {"income": 1, "expense": -1, "adjustment": 0}


@dataclass
class StoreState:
    budgets: List[MonthlyBudget] = field(default_factory=list)
    current_budget_id: Optional[int] = None
    current_sort: Optional[SortCriteria] = None
    categories: List[CategoryStats] = field(default_factory=list)
    ledger_by_category_id: Dict[int, List[LedgerEntry]] = field(default_factory=dict)
    visible_column_ids: List[str] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None

    def find_category(self, category_id: int) -> Optional[CategoryStats]:
        for category in self.categories:
            if category.category_id == category_id:
                return category
        return None

    def find_budget(self, budget_id: int) -> Optional[MonthlyBudget]:
        for budget in self.budgets:
            if budget.budget_id == budget_id:
                return budget
        return None

    @property
    def current_budget(self) -> Optional[MonthlyBudget]:
        if self.current_budget_id is None:
            return None
        return self.find_budget(self.current_budget_id)


# ---------------------------------------------------------------------- #
# Optimistic ledger transitions
# ---------------------------------------------------------------------- #
@dataclass(frozen=True, slots=True)
class StatDelta:
    """Change applied to a category's aggregates by one ledger entry."""

    net: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    entries_count: int = 0

    @classmethod
    def for_entry(cls, entry_type: str, amount: Decimal) -> "StatDelta":
        signed = amount * ENTRY_SIGNS.get(entry_type, 0)
        return cls(net=signed, remaining=signed, entries_count=1)

    def inverse(self) -> "StatDelta":
        return StatDelta(net=-self.net, remaining=-self.remaining, entries_count=-self.entries_count)

    def apply_to(self, category: CategoryStats) -> None:
        category.net += self.net
        category.remaining += self.remaining
        category.entries_count += self.entries_count


@dataclass(frozen=True, slots=True)
class Pending:
    entry: LedgerEntry
    delta: StatDelta
    original: Optional[CategoryStats]


@dataclass(frozen=True, slots=True)
class Committed:
    pending: Pending
    value: LedgerEntry


@dataclass(frozen=True, slots=True)
class RolledBack:
    pending: Pending
    error: str

    @property
    def original(self) -> Optional[CategoryStats]:
        return self.pending.original


EntryTransition = Union[Pending, Committed, RolledBack]


def reduce_entry(state: StoreState, transition: EntryTransition) -> None:
    """Apply one step of the ``absent -> pending -> committed | rolled back`` cycle."""
    if isinstance(transition, Pending):
        entry = transition.entry
        state.ledger_by_category_id.setdefault(entry.category_id, []).insert(0, entry)
        category = state.find_category(entry.category_id)
        if category is not None:
            transition.delta.apply_to(category)
        return

    pending = transition.pending
    entries = state.ledger_by_category_id.setdefault(pending.entry.category_id, [])
    index = next(
        (i for i, existing in enumerate(entries) if existing.entry_id == pending.entry.entry_id),
        None,
    )

    if isinstance(transition, Committed):
        if index is not None:
            entries[index] = transition.value
        elif all(existing.entry_id != transition.value.entry_id for existing in entries):
            entries.insert(0, transition.value)
        return

    if index is not None:
        del entries[index]
    category = state.find_category(pending.entry.category_id)
    if category is not None:
        pending.delta.inverse().apply_to(category)


Listener = Callable[[StoreState], None]


class BudgetStore:
    """Last-known-good mirror of the backend that the views read from.

    Every mutation awaits the backend and then reconciles local state;
    ledger additions are applied before the backend answers and undone
    exactly if it fails. Failures land in ``state.error`` (last one wins).
    """

    def __init__(self, backend: BudgetBackend, *, preferences: PreferenceStore | None = None) -> None:
        self.backend = backend
        self.preferences = preferences
        self.state = StoreState()
        self._listeners: List[Listener] = []
        self._temp_ids = itertools.count(-1, -1)
        saved_columns = preferences.get(VISIBLE_COLUMNS_PREFERENCE_KEY) if preferences else None
        self.state.visible_column_ids = sanitize_column_ids(saved_columns)

    # ------------------------------------------------------------------ #
    # Listener registration
    # ------------------------------------------------------------------ #
    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    def _fail(self, action: str, exc: BackendError) -> None:
        logger.error("%s failed: %s", action, exc)
        self.state.error = str(exc)
        self.state.loading = False
        self._notify()

    def dismiss_error(self) -> None:
        self.state.error = None
        self._notify()

    # ------------------------------------------------------------------ #
    # Budgets
    # ------------------------------------------------------------------ #
    async def init_database(self) -> bool:
        try:
            await self.backend.init_database()
        except BackendError as exc:
            self._fail("Database initialisation", exc)
            return False
        return True

    async def load_budgets(self, sort: Optional[SortCriteria] = None) -> bool:
        """Reload the budget list; ``None`` means the default, unhighlighted order."""
        self.state.current_sort = sort
        self.state.loading = True
        self.state.error = None
        self._notify()
        try:
            budgets = await self.backend.list_monthly_budgets_sorted(effective_sort(sort))
        except BackendError as exc:
            self._fail("Loading budgets", exc)
            return False
        self.state.budgets = budgets
        self.state.loading = False
        self._notify()
        return True

    async def sort_budgets_by(self, criteria: str) -> bool:
        return await self.load_budgets(toggle_sort(self.state.current_sort, criteria))

    async def clear_budget_sort(self) -> bool:
        return await self.load_budgets(clear_sort())

    def select_budget(self, budget_id: Optional[int]) -> None:
        if budget_id != self.state.current_budget_id:
            self.state.categories = []
            self.state.ledger_by_category_id = {}
        self.state.current_budget_id = budget_id
        self._notify()

    async def create_budget(
        self,
        month: int,
        year: int,
        total_income: str | Decimal | float,
        name: Optional[str] = None,
    ) -> Optional[int]:
        """Create a budget for ``month``/``year`` and select it.

        A second budget for the same month is refused here, without a backend
        call, by raising ``ValidationError``.
        """
        name = (name or "").strip() or None
        income = validate_new_budget(
            month=month,
            year=year,
            total_income=total_income,
            name=name,
            existing=self.state.budgets,
        )
        try:
            budget_id = await self.backend.create_monthly_budget(month, year, income, name)
        except BackendError as exc:
            self._fail("Creating budget", exc)
            return None
        logger.info("Created budget %d for %02d/%d", budget_id, month, year)
        await self.load_budgets(self.state.current_sort)
        self.select_budget(budget_id)
        return budget_id

    async def delete_budget(self, budget_id: int) -> bool:
        try:
            await self.backend.delete_monthly_budget(budget_id)
        except BackendError as exc:
            self._fail("Deleting budget", exc)
            return False
        self.state.budgets = [b for b in self.state.budgets if b.budget_id != budget_id]
        if self.state.current_budget_id == budget_id:
            self.state.current_budget_id = None
            self.state.categories = []
            self.state.ledger_by_category_id = {}
        self._notify()
        return True

    async def finish_budget(self, budget_id: int) -> bool:
        try:
            await self.backend.finish_monthly_budget(budget_id)
        except BackendError as exc:
            self._fail("Finishing budget", exc)
            return False
        budget = self.state.find_budget(budget_id)
        if budget is not None:
            now = utc_timestamp()
            budget.finished_at = now
            budget.last_edited = now
            if budget.first_finished_at is None:
                budget.first_finished_at = now
        self._notify()
        return True

    async def unfinish_budget(self, budget_id: int) -> bool:
        try:
            await self.backend.unfinish_monthly_budget(budget_id)
        except BackendError as exc:
            self._fail("Reopening budget", exc)
            return False
        budget = self.state.find_budget(budget_id)
        if budget is not None:
            budget.finished_at = None
            budget.last_edited = utc_timestamp()
        self._notify()
        return True

    async def rename_budget(self, budget_id: int, title: str) -> bool:
        title = validate_title(title)
        try:
            await self.backend.update_budget_title(budget_id, title)
        except BackendError as exc:
            self._fail("Renaming budget", exc)
            return False
        budget = self.state.find_budget(budget_id)
        if budget is not None:
            budget.name = title
            budget.last_edited = utc_timestamp()
        self._notify()
        return True

    # ------------------------------------------------------------------ #
    # Categories
    # ------------------------------------------------------------------ #
    async def fetch_categories_with_stats(self, budget_id: int) -> bool:
        """Replace the category list; keep the stale one if the fetch fails."""
        self.state.loading = True
        self.state.error = None
        self._notify()
        try:
            categories = await self.backend.get_budget_categories_with_stats(budget_id)
        except BackendError as exc:
            self._fail("Loading categories", exc)
            return False
        self.state.categories = categories
        self.state.loading = False
        self._notify()
        return True

    async def set_allocated(self, category_id: int, amount: str | Decimal | float) -> bool:
        value = validate_allocation(amount)
        try:
            await self.backend.set_category_allocated_amount(category_id, value)
        except BackendError as exc:
            self._fail("Updating allocation", exc)
            return False
        category = self.state.find_category(category_id)
        if category is not None:
            category.remaining += value - category.allocated
            category.allocated = value
        self._notify()
        return True

    async def add_category(self, new_category: NewCategory) -> Optional[CategoryStats]:
        allocated = validate_category(new_category.category_name, new_category.allocated_amount)
        name = new_category.category_name.strip()
        try:
            category_id = await self.backend.add_budget_category(
                replace(new_category, category_name=name, allocated_amount=allocated)
            )
        except BackendError as exc:
            self._fail("Adding category", exc)
            return None
        category = CategoryStats(
            category_id=category_id,
            budget_id=new_category.budget_id,
            name=name,
            allocated=allocated,
            net=Decimal("0"),
            remaining=allocated,
            last_activity_at=None,
            entries_count=0,
        )
        self.state.categories.append(category)
        self._notify()
        return category

    async def apply_template(self, budget_id: int, template_id: int) -> bool:
        """Replace the budget's categories with a template's, then refresh."""
        try:
            await self.backend.apply_template_to_budget(budget_id, template_id)
        except BackendError as exc:
            self._fail("Applying template", exc)
            return False
        stale = {c.category_id for c in self.state.categories if c.budget_id == budget_id}
        for category_id in stale:
            self.state.ledger_by_category_id.pop(category_id, None)
        return await self.fetch_categories_with_stats(budget_id)

    # ------------------------------------------------------------------ #
    # Ledger
    # ------------------------------------------------------------------ #
    async def fetch_ledger(
        self,
        category_id: int,
        *,
        limit: int = DEFAULT_LEDGER_LIMIT,
        offset: int = 0,
        sort: str = "date_desc",
    ) -> bool:
        if sort not in LEDGER_SORTS:
            raise ValueError(f"Unknown ledger sort '{sort}'")
        try:
            entries = await self.backend.get_category_ledger(category_id, limit, offset, sort)
        except BackendError as exc:
            self._fail("Loading ledger", exc)
            return False
        self.state.ledger_by_category_id[category_id] = entries
        self._notify()
        return True

    def _begin_entry(self, new_entry: NewEntry) -> Pending:
        category = self.state.find_category(new_entry.category_id)
        placeholder = LedgerEntry(
            entry_id=next(self._temp_ids),
            category_id=new_entry.category_id,
            entry_type=new_entry.entry_type,
            what=new_entry.what,
            where=new_entry.where,
            amount=new_entry.amount,
            date=new_entry.date,
            created_at=utc_timestamp(),
        )
        pending = Pending(
            entry=placeholder,
            delta=StatDelta.for_entry(new_entry.entry_type, new_entry.amount),
            original=replace(category) if category is not None else None,
        )
        reduce_entry(self.state, pending)
        self._notify()
        return pending

    async def add_entry(self, new_entry: NewEntry) -> Union[Committed, RolledBack]:
        """Add a ledger entry optimistically.

        The entry and its effect on the category appear before the backend
        answers; on failure both are reverted and the error is recorded.
        """
        amount = validate_entry(
            entry_type=new_entry.entry_type,
            what=new_entry.what,
            amount=new_entry.amount,
            entry_date=new_entry.date,
        )
        new_entry = replace(
            new_entry,
            what=new_entry.what.strip(),
            where=(new_entry.where or "").strip() or None,
            amount=amount,
            date=new_entry.date.strip(),
        )
        pending = self._begin_entry(new_entry)
        outcome: Union[Committed, RolledBack]
        try:
            confirmed = await self.backend.add_category_entry(new_entry)
        except BackendError as exc:
            outcome = RolledBack(pending=pending, error=str(exc))
            reduce_entry(self.state, outcome)
            self._fail("Adding ledger entry", exc)
            return outcome
        outcome = Committed(pending=pending, value=confirmed)
        reduce_entry(self.state, outcome)
        self._notify()
        return outcome

    def _locate_entry(self, entry_id: int) -> Optional[tuple[int, int]]:
        for category_id, entries in self.state.ledger_by_category_id.items():
            for index, entry in enumerate(entries):
                if entry.entry_id == entry_id:
                    return category_id, index
        return None

    async def update_entry(self, update: UpdateEntry) -> bool:
        """Update an entry in place; category aggregates need a re-fetch."""
        amount = validate_entry(
            entry_type=update.entry_type,
            what=update.what,
            amount=update.amount,
            entry_date=update.date,
        )
        update = replace(
            update,
            what=update.what.strip(),
            where=(update.where or "").strip() or None,
            amount=amount,
            date=update.date.strip(),
        )
        try:
            await self.backend.update_category_entry(update)
        except BackendError as exc:
            self._fail("Updating ledger entry", exc)
            return False
        location = self._locate_entry(update.entry_id)
        if location is not None:
            category_id, index = location
            entry = self.state.ledger_by_category_id[category_id][index]
            entry.entry_type = update.entry_type
            entry.what = update.what
            entry.where = update.where
            entry.amount = update.amount
            entry.date = update.date
        self._notify()
        return True

    async def delete_entry(self, entry_id: int) -> bool:
        try:
            await self.backend.soft_delete_category_entry(entry_id)
        except BackendError as exc:
            self._fail("Deleting ledger entry", exc)
            return False
        location = self._locate_entry(entry_id)
        if location is not None:
            category_id, index = location
            del self.state.ledger_by_category_id[category_id][index]
            category = self.state.find_category(category_id)
            if category is not None:
                category.entries_count -= 1
        self._notify()
        return True

    # ------------------------------------------------------------------ #
    # Column visibility
    # ------------------------------------------------------------------ #
    def set_visible_columns(self, column_ids: Iterable[str]) -> List[str]:
        cleaned = sanitize_column_ids(list(column_ids))
        self.state.visible_column_ids = cleaned
        if self.preferences is not None:
            self.preferences.set(VISIBLE_COLUMNS_PREFERENCE_KEY, list(cleaned))
        self._notify()
        return cleaned

    def entries_for(self, category_id: int) -> List[LedgerEntry]:
        return self.state.ledger_by_category_id.get(category_id, [])
