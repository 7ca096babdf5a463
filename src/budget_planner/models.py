"""Domain records mirrored from the budgeting backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, getcontext
from typing import Any, Dict, List, Mapping, Optional

getcontext().prec = 28  # Higher precision for money calculations.

ENTRY_TYPES = ("income", "expense", "adjustment")
TEMPLATE_CATEGORY_TYPES = ("expense", "savings")


def _to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    """Convert wire or user-provided numeric values into a Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _pick(payload: Mapping[str, Any], *names: str, default: Any = ...) -> Any:
    """Return the first present key among ``names`` (snake or camel case)."""
    for name in names:
        for key in (name, _camel(name)):
            if key in payload and payload[key] is not None:
                return payload[key]
    if default is ...:
        raise ValueError(f"Missing field '{names[0]}' in backend record")
    return default


def _money(value: Decimal) -> float:
    return float(value)


@dataclass(slots=True)
class MonthlyBudget:
    """A budget for one calendar month."""

    budget_id: int
    month: int
    year: int
    total_income: Decimal
    created_at: str
    last_edited: str
    finished_at: Optional[str] = None
    first_finished_at: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MonthlyBudget":
        created_at = _pick(payload, "created_at", default="")
        return cls(
            budget_id=int(_pick(payload, "budget_id")),
            month=int(_pick(payload, "month")),
            year=int(_pick(payload, "year")),
            total_income=_to_decimal(_pick(payload, "total_income", default=0)),
            created_at=created_at,
            last_edited=_pick(payload, "last_edited", default=created_at),
            finished_at=_pick(payload, "finished_at", default=None),
            first_finished_at=_pick(payload, "first_finished_at", default=None),
            name=_pick(payload, "name", default=None) or None,
        )


@dataclass(slots=True)
class CategoryStats:
    """A budget category together with its derived ledger aggregates."""

    category_id: int
    budget_id: int
    name: str
    allocated: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    last_activity_at: Optional[str] = None
    entries_count: int = 0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CategoryStats":
        return cls(
            category_id=int(_pick(payload, "category_id")),
            budget_id=int(_pick(payload, "budget_id")),
            name=_pick(payload, "category_name", "name"),
            allocated=_to_decimal(_pick(payload, "allocated_amount", "allocated", default=0)),
            net=_to_decimal(_pick(payload, "net_amount", "net", default=0)),
            remaining=_to_decimal(_pick(payload, "remaining_amount", "remaining", default=0)),
            last_activity_at=_pick(payload, "last_activity_at", default=None),
            entries_count=int(_pick(payload, "entries_count", default=0)),
        )


@dataclass(slots=True)
class LedgerEntry:
    """A single income, expense or adjustment booked against a category."""

    entry_id: int
    category_id: int
    entry_type: str
    what: str
    amount: Decimal
    date: str
    created_at: str = ""
    where: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LedgerEntry":
        """Rehydrate an entry, accepting the legacy column names of the ledger."""
        return cls(
            entry_id=int(_pick(payload, "entry_id", "expense_id")),
            category_id=int(_pick(payload, "category_id")),
            entry_type=_pick(payload, "entry_type", default="expense"),
            what=_pick(payload, "what", "description", default=""),
            where=_pick(payload, "where", "place", default=None) or None,
            amount=_to_decimal(_pick(payload, "amount")),
            date=_pick(payload, "date", "expense_date", default=""),
            created_at=_pick(payload, "created_at", default=""),
        )


@dataclass(slots=True)
class NewEntry:
    category_id: int
    entry_type: str
    what: str
    amount: Decimal
    date: str
    where: Optional[str] = None

    def __post_init__(self) -> None:
        self.amount = _to_decimal(self.amount)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "entryType": self.entry_type,
            "what": self.what,
            "where": self.where,
            "amount": _money(self.amount),
            "date": self.date,
        }


@dataclass(slots=True)
class UpdateEntry:
    entry_id: int
    entry_type: str
    what: str
    amount: Decimal
    date: str
    where: Optional[str] = None

    def __post_init__(self) -> None:
        self.amount = _to_decimal(self.amount)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "entryType": self.entry_type,
            "what": self.what,
            "where": self.where,
            "amount": _money(self.amount),
            "date": self.date,
        }


@dataclass(slots=True)
class NewCategory:
    budget_id: int
    category_name: str
    allocated_amount: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        self.allocated_amount = _to_decimal(self.allocated_amount)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "budgetId": self.budget_id,
            "categoryName": self.category_name,
            "allocatedAmount": _money(self.allocated_amount),
        }


@dataclass(slots=True)
class GlobalCategory:
    """A reusable category name shared by templates."""

    global_category_id: int
    name: str
    created_at: str = ""
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GlobalCategory":
        return cls(
            global_category_id=int(_pick(payload, "global_category_id")),
            name=_pick(payload, "name"),
            description=_pick(payload, "description", default=None) or None,
            created_at=_pick(payload, "created_at", default=""),
        )


@dataclass(slots=True)
class TemplateCategory:
    template_category_id: int
    global_category_id: int
    category_name: str
    allocated_amount: Decimal
    category_type: str = "expense"
    sort_order: int = 0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TemplateCategory":
        return cls(
            template_category_id=int(_pick(payload, "template_category_id")),
            global_category_id=int(_pick(payload, "global_category_id")),
            category_name=_pick(payload, "category_name", "name"),
            allocated_amount=_to_decimal(_pick(payload, "allocated_amount", default=0)),
            category_type=_pick(payload, "category_type", default="expense"),
            sort_order=int(_pick(payload, "sort_order", default=0)),
        )


@dataclass(slots=True)
class BudgetTemplate:
    """Summary row of a template as listed by the backend."""

    template_id: int
    name: str
    created_at: str = ""
    description: Optional[str] = None
    category_count: int = 0
    total_amount: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BudgetTemplate":
        return cls(
            template_id=int(_pick(payload, "template_id")),
            name=_pick(payload, "name"),
            description=_pick(payload, "description", default=None) or None,
            created_at=_pick(payload, "created_at", default=""),
            category_count=int(_pick(payload, "category_count", default=0)),
            total_amount=_to_decimal(_pick(payload, "total_amount", default=0)),
        )


@dataclass(slots=True)
class BudgetTemplateDetail:
    template_id: int
    name: str
    created_at: str = ""
    description: Optional[str] = None
    categories: List[TemplateCategory] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((item.allocated_amount for item in self.categories), Decimal("0"))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BudgetTemplateDetail":
        return cls(
            template_id=int(_pick(payload, "template_id")),
            name=_pick(payload, "name"),
            description=_pick(payload, "description", default=None) or None,
            created_at=_pick(payload, "created_at", default=""),
            categories=[
                TemplateCategory.from_dict(item)
                for item in _pick(payload, "categories", default=[])
            ],
        )


@dataclass(slots=True)
class TemplateCategoryDraft:
    global_category_id: int
    allocated_amount: Decimal
    category_type: str = "expense"
    sort_order: int = 0

    def __post_init__(self) -> None:
        self.allocated_amount = _to_decimal(self.allocated_amount)

    def to_payload(self) -> Dict[str, Any]:
        # Template argument structs are deserialised without renaming.
        return {
            "global_category_id": self.global_category_id,
            "allocated_amount": _money(self.allocated_amount),
            "category_type": self.category_type,
            "sort_order": self.sort_order,
        }


@dataclass(slots=True)
class TemplateDraft:
    """Create/update request for a budget template."""

    name: str
    description: Optional[str] = None
    categories: List[TemplateCategoryDraft] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "categories": [item.to_payload() for item in self.categories],
        }


@dataclass(slots=True)
class BudgetChangeHistoryEntry:
    """Append-only audit record of a change made to a budget."""

    change_id: int
    budget_id: int
    change_type: str
    change_description: str
    changed_at: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BudgetChangeHistoryEntry":
        return cls(
            change_id=int(_pick(payload, "change_id")),
            budget_id=int(_pick(payload, "budget_id")),
            change_type=_pick(payload, "change_type"),
            change_description=_pick(payload, "change_description", default=""),
            changed_at=_pick(payload, "changed_at", default=""),
            field_name=_pick(payload, "field_name", default=None),
            old_value=_pick(payload, "old_value", default=None),
            new_value=_pick(payload, "new_value", default=None),
        )
