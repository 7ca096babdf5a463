"""Asynchronous RPC boundary between the UI and the budgeting backend."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from .models import (
    BudgetChangeHistoryEntry,
    BudgetTemplate,
    BudgetTemplateDetail,
    CategoryStats,
    GlobalCategory,
    LedgerEntry,
    MonthlyBudget,
    NewCategory,
    NewEntry,
    TemplateDraft,
    UpdateEntry,
)
from .sorting import SortCriteria

logger = logging.getLogger(__name__)

Invoker = Callable[[str, Mapping[str, Any]], Awaitable[Any]]

SCHEMA_NOT_READY = "schema_not_ready"
# Legacy backends only report missing tables in free text.
_MISSING_SCHEMA_MARKERS = (
    "no such table",
    "global_categories",
    "budget_templates",
    "template_categories",
)


class BackendError(Exception):
    """Raised when a backend command fails or the backend cannot be reached."""

    def __init__(self, message: str, *, command: str | None = None, kind: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.command = command
        self.kind = kind

    def __str__(self) -> str:
        return self.message


def is_schema_not_ready(error: BaseException) -> bool:
    """Return True when ``error`` means the template tables have not been created yet."""
    if isinstance(error, BackendError) and error.kind is not None:
        return error.kind == SCHEMA_NOT_READY
    message = str(error)
    return any(marker in message for marker in _MISSING_SCHEMA_MARKERS)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class StdioInvoker:
    """Invoke backend commands on a child process over newline-delimited JSON.

    Each request is written as ``{"id", "command", "args"}`` on the child's
    stdin; the child answers on stdout with ``{"id", "ok", "result"}`` or
    ``{"id", "ok": false, "error", "kind"}``. Responses may arrive in any
    order, so concurrent calls are matched by id.
    """

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("A backend command is required")
        self.command = list(command)
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task | None = None
        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._start_lock:
            if self._process is not None and self._process.returncode is None:
                if self._reader_task is not None and not self._reader_task.done():
                    return
                logger.warning("Backend output reader stopped; restarting the backend")
                self._process.kill()
                await self._process.wait()
            logger.info("Starting backend process: %s", " ".join(self.command))
            try:
                self._process = await asyncio.create_subprocess_exec(
                    *self.command,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise BackendError(f"Unable to start backend: {exc}") from exc
            self._reader_task = asyncio.create_task(self._read_responses())

    async def __call__(self, command: str, args: Mapping[str, Any] | None = None) -> Any:
        await self.start()
        assert self._process is not None and self._process.stdin is not None
        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        line = json.dumps(
            {"id": request_id, "command": command, "args": dict(args or {})},
            default=_json_default,
        )
        logger.debug("-> %s #%d", command, request_id)
        try:
            self._process.stdin.write(line.encode("utf-8") + b"\n")
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            self._pending.pop(request_id, None)
            raise BackendError(f"Backend connection lost: {exc}", command=command) from exc
        response = await future
        if not response.get("ok", False):
            raise BackendError(
                str(response.get("error") or "Unknown backend error"),
                command=command,
                kind=response.get("kind"),
            )
        return response.get("result")

    async def _read_responses(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        reason = "Backend process exited"
        try:
            while True:
                try:
                    raw = await stdout.readline()
                except ValueError as exc:
                    reason = f"Backend output unreadable: {exc}"
                    break
                if not raw:
                    break
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Ignoring malformed backend output: %r", raw[:200])
                    continue
                if not isinstance(message, dict) or not isinstance(message.get("id"), int):
                    logger.warning("Ignoring backend output without a request id: %r", raw[:200])
                    continue
                future = self._pending.pop(message["id"], None)
                if future is None:
                    logger.warning("Response for unknown request id %r", message["id"])
                    continue
                if not future.done():
                    future.set_result(message)
        finally:
            self._fail_pending(reason)

    def _fail_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(BackendError(reason))
        if pending:
            logger.error("%s with %d call(s) outstanding", reason, len(pending))

    async def close(self) -> None:
        process = self._process
        if process is None:
            return
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        if process.returncode is None:
            try:
                await asyncio.wait_for(process.wait(), timeout=2)
            except asyncio.TimeoutError:
                process.terminate()
                await process.wait()
        if self._reader_task is not None and not self._reader_task.done():
            await self._reader_task
        self._process = None
        self._reader_task = None


class BudgetBackend:
    """Typed facade over the backend command set.

    Every response is normalised into a model record here so the rest of the
    client never sees raw wire dictionaries.
    """

    def __init__(self, invoker: Invoker) -> None:
        self._invoke = invoker

    async def call(self, command: str, **params: Any) -> Any:
        try:
            return await self._invoke(command, params)
        except BackendError as exc:
            if exc.command is None:
                exc.command = command
            logger.warning("Backend command %s failed: %s", command, exc)
            raise

    @staticmethod
    def _decode(command: str, build: Callable[[Any], Any], payload: Any) -> Any:
        """Normalise a response; a malformed one is reported as a ``BackendError``."""
        try:
            return build(payload)
        except (ValueError, KeyError, TypeError, ArithmeticError) as exc:
            logger.warning("Malformed response to %s: %s", command, exc)
            raise BackendError(f"Malformed response to {command}: {exc}", command=command) from exc

    def _record(self, command: str, record_type: Any, row: Any) -> Any:
        return self._decode(command, record_type.from_dict, row)

    def _records(self, command: str, record_type: Any, rows: Any) -> List[Any]:
        return self._decode(
            command, lambda items: [record_type.from_dict(row) for row in items or []], rows
        )

    # ------------------------------------------------------------------ #
    # Budgets
    # ------------------------------------------------------------------ #
    async def init_database(self) -> None:
        await self.call("init_database")

    async def list_monthly_budgets(self) -> List[MonthlyBudget]:
        rows = await self.call("list_monthly_budgets")
        return self._records("list_monthly_budgets", MonthlyBudget, rows)

    async def list_monthly_budgets_sorted(self, sort: SortCriteria) -> List[MonthlyBudget]:
        rows = await self.call(
            "list_monthly_budgets_sorted",
            args={"criteria": sort.criteria, "ascending": sort.ascending},
        )
        return self._records("list_monthly_budgets_sorted", MonthlyBudget, rows)

    async def create_monthly_budget(
        self, month: int, year: int, total_income: Decimal, name: Optional[str] = None
    ) -> int:
        budget_id = await self.call(
            "create_monthly_budget",
            args={
                "month": month,
                "year": year,
                "totalIncome": float(total_income),
                "name": name,
            },
        )
        return self._decode("create_monthly_budget", int, budget_id)

    async def delete_monthly_budget(self, budget_id: int) -> None:
        await self.call("delete_monthly_budget", budgetId=budget_id)

    async def finish_monthly_budget(self, budget_id: int) -> None:
        await self.call("finish_monthly_budget", budgetId=budget_id)

    async def unfinish_monthly_budget(self, budget_id: int) -> None:
        await self.call("unfinish_monthly_budget", budgetId=budget_id)

    async def update_budget_title(self, budget_id: int, title: str) -> None:
        await self.call("update_budget_title", budgetId=budget_id, title=title)

    async def get_budget_change_history(self, budget_id: int) -> List[BudgetChangeHistoryEntry]:
        rows = await self.call("get_budget_change_history", budgetId=budget_id)
        return self._records("get_budget_change_history", BudgetChangeHistoryEntry, rows)

    # ------------------------------------------------------------------ #
    # Categories and ledger
    # ------------------------------------------------------------------ #
    async def get_budget_categories_with_stats(self, budget_id: int) -> List[CategoryStats]:
        rows = await self.call("get_budget_categories_with_stats", budgetId=budget_id)
        return self._records("get_budget_categories_with_stats", CategoryStats, rows)

    async def get_category_ledger(
        self, category_id: int, limit: int, offset: int, sort: str
    ) -> List[LedgerEntry]:
        rows = await self.call(
            "get_category_ledger",
            categoryId=category_id,
            limit=limit,
            offset=offset,
            sort=sort,
        )
        return self._records("get_category_ledger", LedgerEntry, rows)

    async def add_category_entry(self, entry: NewEntry) -> LedgerEntry:
        row = await self.call("add_category_entry", payload=entry.to_payload())
        return self._record("add_category_entry", LedgerEntry, row)

    async def update_category_entry(self, entry: UpdateEntry) -> None:
        await self.call("update_category_entry", payload=entry.to_payload())

    async def soft_delete_category_entry(self, entry_id: int) -> None:
        await self.call("soft_delete_category_entry", entryId=entry_id)

    async def set_category_allocated_amount(self, category_id: int, amount: Decimal) -> None:
        await self.call(
            "set_category_allocated_amount", categoryId=category_id, amount=float(amount)
        )

    async def add_budget_category(self, category: NewCategory) -> int:
        category_id = await self.call("add_budget_category", payload=category.to_payload())
        return self._decode("add_budget_category", int, category_id)

    # ------------------------------------------------------------------ #
    # Global categories
    # ------------------------------------------------------------------ #
    async def get_global_categories(self) -> List[GlobalCategory]:
        rows = await self.call("get_global_categories")
        return self._records("get_global_categories", GlobalCategory, rows)

    async def create_global_category(self, name: str, description: Optional[str] = None) -> GlobalCategory:
        row = await self.call(
            "create_global_category", args={"name": name, "description": description}
        )
        return self._record("create_global_category", GlobalCategory, row)

    async def update_global_category(
        self, category_id: int, name: str, description: Optional[str] = None
    ) -> GlobalCategory:
        row = await self.call(
            "update_global_category",
            categoryId=category_id,
            args={"name": name, "description": description},
        )
        return self._record("update_global_category", GlobalCategory, row)

    async def delete_global_category(self, category_id: int) -> None:
        await self.call("delete_global_category", categoryId=category_id)

    # ------------------------------------------------------------------ #
    # Templates
    # ------------------------------------------------------------------ #
    async def get_budget_templates(self) -> List[BudgetTemplate]:
        rows = await self.call("get_budget_templates")
        return self._records("get_budget_templates", BudgetTemplate, rows)

    async def get_budget_template_with_categories(self, template_id: int) -> BudgetTemplateDetail:
        row = await self.call("get_budget_template_with_categories", templateId=template_id)
        return self._record("get_budget_template_with_categories", BudgetTemplateDetail, row)

    async def create_budget_template(self, draft: TemplateDraft) -> BudgetTemplateDetail:
        row = await self.call("create_budget_template", args=draft.to_payload())
        return self._record("create_budget_template", BudgetTemplateDetail, row)

    async def update_budget_template(self, template_id: int, draft: TemplateDraft) -> BudgetTemplateDetail:
        row = await self.call(
            "update_budget_template", templateId=template_id, args=draft.to_payload()
        )
        return self._record("update_budget_template", BudgetTemplateDetail, row)

    async def delete_budget_template(self, template_id: int) -> None:
        await self.call("delete_budget_template", templateId=template_id)

    async def apply_template_to_budget(self, budget_id: int, template_id: int) -> None:
        await self.call("apply_template_to_budget", budgetId=budget_id, templateId=template_id)

    async def run_migration(self) -> str:
        result = await self.call("run_migration")
        return str(result or "")
