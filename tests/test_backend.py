import asyncio
import sys
import textwrap
from decimal import Decimal

import pytest

from budget_planner.backend import (
    SCHEMA_NOT_READY,
    BackendError,
    BudgetBackend,
    StdioInvoker,
    is_schema_not_ready,
)
from budget_planner.models import NewCategory, TemplateCategoryDraft, TemplateDraft
from budget_planner.sorting import SortCriteria

from conftest import FakeInvoker, budget_row


def test_structured_kind_wins_over_message():
    assert is_schema_not_ready(BackendError("anything", kind=SCHEMA_NOT_READY))
    assert not is_schema_not_ready(BackendError("no such table: budget_templates", kind="io"))


@pytest.mark.parametrize(
    "message",
    [
        "no such table: global_categories",
        "Failed to query budget_templates",
        "template_categories is missing",
    ],
)
def test_free_text_schema_markers(message):
    assert is_schema_not_ready(BackendError(message))
    assert is_schema_not_ready(RuntimeError(message))


def test_other_errors_are_not_schema_errors():
    assert not is_schema_not_ready(BackendError("database is locked"))


@pytest.mark.asyncio
async def test_sorted_listing_sends_criteria_struct():
    invoker = FakeInvoker({"list_monthly_budgets_sorted": [budget_row(), budget_row(2, month=4)]})
    backend = BudgetBackend(invoker)
    budgets = await backend.list_monthly_budgets_sorted(SortCriteria("income", ascending=True))
    assert [b.budget_id for b in budgets] == [1, 2]
    assert invoker.calls == [
        ("list_monthly_budgets_sorted", {"args": {"criteria": "income", "ascending": True}})
    ]


@pytest.mark.asyncio
async def test_template_payloads_keep_snake_case_fields():
    invoker = FakeInvoker(
        {
            "update_budget_template": {
                "template_id": 3,
                "name": "Lean month",
                "categories": [
                    {
                        "template_category_id": 1,
                        "global_category_id": 9,
                        "category_name": "Food",
                        "allocated_amount": 250.5,
                    }
                ],
            }
        }
    )
    backend = BudgetBackend(invoker)
    draft = TemplateDraft(
        name="Lean month",
        categories=[TemplateCategoryDraft(global_category_id=9, allocated_amount=Decimal("250.50"))],
    )
    detail = await backend.update_budget_template(3, draft)
    assert detail.total_amount == Decimal("250.5")
    assert invoker.calls == [
        (
            "update_budget_template",
            {
                "templateId": 3,
                "args": {
                    "name": "Lean month",
                    "description": None,
                    "categories": [
                        {
                            "global_category_id": 9,
                            "allocated_amount": 250.5,
                            "category_type": "expense",
                            "sort_order": 0,
                        }
                    ],
                },
            },
        )
    ]


@pytest.mark.asyncio
async def test_failures_are_tagged_with_the_command():
    invoker = FakeInvoker({"delete_monthly_budget": BackendError("budget not found")})
    backend = BudgetBackend(invoker)
    with pytest.raises(BackendError) as excinfo:
        await backend.delete_monthly_budget(99)
    assert excinfo.value.command == "delete_monthly_budget"
    assert str(excinfo.value) == "budget not found"


ECHO_BACKEND = textwrap.dedent(
    """
    import json
    import sys

    for line in sys.stdin:
        request = json.loads(line)
        if request["command"] == "explode":
            reply = {"id": request["id"], "ok": False, "error": "boom", "kind": "internal"}
        else:
            reply = {"id": request["id"], "ok": True, "result": request["args"]}
        sys.stdout.write(json.dumps(reply) + "\\n")
        sys.stdout.flush()
    """
)


@pytest.mark.asyncio
async def test_stdio_invoker_round_trip():
    invoker = StdioInvoker([sys.executable, "-c", ECHO_BACKEND])
    try:
        result = await invoker("get_budget_change_history", {"budgetId": 4})
        assert result == {"budgetId": 4}
        with pytest.raises(BackendError) as excinfo:
            await invoker("explode", {})
        assert excinfo.value.kind == "internal"
        assert excinfo.value.command == "explode"
    finally:
        await invoker.close()


@pytest.mark.asyncio
async def test_stdio_invoker_reports_missing_executable(tmp_path):
    invoker = StdioInvoker([str(tmp_path / "does-not-exist")])
    with pytest.raises(BackendError):
        await invoker("init_database", {})


def test_stdio_invoker_requires_a_command():
    with pytest.raises(ValueError):
        StdioInvoker([])


@pytest.mark.asyncio
async def test_malformed_records_become_backend_errors():
    invoker = FakeInvoker(
        {
            "get_budget_categories_with_stats": [{"category_id": 1}],
            "add_budget_category": "not-an-id",
        }
    )
    backend = BudgetBackend(invoker)
    with pytest.raises(BackendError) as excinfo:
        await backend.get_budget_categories_with_stats(1)
    assert excinfo.value.command == "get_budget_categories_with_stats"
    with pytest.raises(BackendError):
        await backend.add_budget_category(NewCategory(budget_id=1, category_name="Rent"))


NOISY_BACKEND = textwrap.dedent(
    """
    import json
    import sys

    for line in sys.stdin:
        request = json.loads(line)
        sys.stdout.write("[1]\\n")
        sys.stdout.write('"hello"\\n')
        if request["command"] == "quit":
            sys.stdout.flush()
            break
        reply = {"id": request["id"], "ok": True, "result": "pong"}
        sys.stdout.write(json.dumps(reply) + "\\n")
        sys.stdout.flush()
    """
)


@pytest.mark.asyncio
async def test_stdio_invoker_skips_non_object_lines():
    invoker = StdioInvoker([sys.executable, "-c", NOISY_BACKEND])
    try:
        assert await asyncio.wait_for(invoker("ping", {}), timeout=10) == "pong"
        assert await asyncio.wait_for(invoker("ping", {}), timeout=10) == "pong"
    finally:
        await invoker.close()


@pytest.mark.asyncio
async def test_stdio_invoker_fails_outstanding_calls_when_backend_exits():
    invoker = StdioInvoker([sys.executable, "-c", NOISY_BACKEND])
    try:
        with pytest.raises(BackendError) as excinfo:
            await asyncio.wait_for(invoker("quit", {}), timeout=10)
        assert "exited" in str(excinfo.value)
    finally:
        await invoker.close()
