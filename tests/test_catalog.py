from decimal import Decimal

import pytest

from budget_planner.backend import SCHEMA_NOT_READY, BackendError, BudgetBackend
from budget_planner.catalog import TemplateCatalog
from budget_planner.models import TemplateCategoryDraft, TemplateDraft
from budget_planner.validation import ValidationError

from conftest import FakeInvoker

TEMPLATES = [
    {"template_id": 1, "name": "Default", "category_count": 3, "total_amount": 1200.0},
]
GLOBALS = [
    {"global_category_id": 9, "name": "Food", "description": "Groceries and eating out"},
]


def make_catalog(**responses):
    invoker = FakeInvoker(
        {"get_budget_templates": TEMPLATES, "get_global_categories": GLOBALS, **responses}
    )
    return TemplateCatalog(BudgetBackend(invoker)), invoker


@pytest.mark.asyncio
async def test_load_fills_templates_and_categories():
    catalog, _ = make_catalog()
    assert await catalog.load()
    assert catalog.templates[0].total_amount == Decimal("1200.0")
    assert catalog.global_categories[0].name == "Food"
    assert catalog.error is None
    assert not catalog.needs_migration


@pytest.mark.asyncio
async def test_missing_tables_ask_for_migration_instead_of_error():
    catalog, _ = make_catalog(get_budget_templates=BackendError("no such table: budget_templates"))
    assert not await catalog.load()
    assert catalog.needs_migration
    assert catalog.error is None


@pytest.mark.asyncio
async def test_structured_schema_error_asks_for_migration():
    catalog, _ = make_catalog(
        get_global_categories=BackendError("templates unavailable", kind=SCHEMA_NOT_READY)
    )
    await catalog.load()
    assert catalog.needs_migration


@pytest.mark.asyncio
async def test_other_failures_stay_local_errors():
    catalog, _ = make_catalog(get_budget_templates=BackendError("database is locked"))
    await catalog.load()
    assert catalog.error == "database is locked"
    assert not catalog.needs_migration


@pytest.mark.asyncio
async def test_run_migration_then_reload():
    catalog, invoker = make_catalog(run_migration="Migration completed")
    catalog.needs_migration = True
    assert await catalog.run_migration()
    assert not catalog.needs_migration
    assert invoker.commands()[0] == "run_migration"
    assert catalog.templates


@pytest.mark.asyncio
async def test_global_category_lifecycle():
    catalog, invoker = make_catalog(
        create_global_category=lambda args: {"global_category_id": 10, **args["args"]},
        update_global_category=lambda args: {
            "global_category_id": args["categoryId"],
            **args["args"],
        },
    )
    await catalog.load()
    created = await catalog.create_global_category("  Travel ", "")
    assert created.name == "Travel"
    assert invoker.args_for("create_global_category") == [
        {"args": {"name": "Travel", "description": None}}
    ]
    await catalog.update_global_category(10, "Trips", "Flights")
    assert [c.name for c in catalog.global_categories] == ["Food", "Trips"]
    assert await catalog.delete_global_category(9)
    assert [c.global_category_id for c in catalog.global_categories] == [10]
    with pytest.raises(ValidationError):
        await catalog.create_global_category("   ")


@pytest.mark.asyncio
async def test_template_validation_happens_before_backend():
    catalog, invoker = make_catalog()
    draft = TemplateDraft(
        name="",
        categories=[TemplateCategoryDraft(global_category_id=9, allocated_amount="-5", category_type="fun")],
    )
    with pytest.raises(ValidationError) as excinfo:
        await catalog.create_template(draft)
    assert set(excinfo.value.errors) == {
        "name",
        "categories[0].allocated_amount",
        "categories[0].category_type",
    }
    assert invoker.calls == []


@pytest.mark.asyncio
async def test_create_template_reloads_list():
    catalog, invoker = make_catalog(
        create_budget_template={"template_id": 2, "name": "Savings", "categories": []}
    )
    created = await catalog.create_template(TemplateDraft(name="Savings"))
    assert created.template_id == 2
    assert invoker.commands()[0] == "create_budget_template"
    assert "get_budget_templates" in invoker.commands()


@pytest.mark.asyncio
async def test_both_loads_failing_reports_one_error():
    catalog, invoker = make_catalog(
        get_budget_templates=BackendError("database is locked"),
        get_global_categories=BackendError("disk I/O error"),
    )
    assert not await catalog.load()
    assert catalog.error == "database is locked"
    assert catalog.loading is False
    assert sorted(invoker.commands()) == ["get_budget_templates", "get_global_categories"]
