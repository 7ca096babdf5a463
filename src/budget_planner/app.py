"""Tkinter application wiring for the budget planner."""

from __future__ import annotations

import asyncio
import logging
import tkinter as tk
from datetime import date
from decimal import Decimal
from itertools import cycle
from tkinter import messagebox, ttk
from typing import Any, Awaitable, Callable, Optional

from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure

from .backend import BudgetBackend, StdioInvoker
from .catalog import TemplateCatalog
from .columns import ALL_COLUMNS, COLUMN_PRESETS, toggle_column, visible_columns
from .config import AppConfig
from .formatting import MONTH_NAMES, budget_display_name, budget_period, format_money
from .history import ChangeHistory
from .models import NewCategory, NewEntry, TemplateCategoryDraft, TemplateDraft, UpdateEntry
from .sorting import SORT_LABELS, sort_indicator
from .storage import PreferenceStore
from .store import BudgetStore, StoreState
from .timezones import COMMON_TIMEZONES, TimezoneSettings
from .validation import ValidationError, parse_amount
from .viewmodels import (
    budget_totals,
    budgets_for_table,
    categories_for_table,
    history_for_table,
    ledger_for_table,
)
from .widgets import CurrencyEntry, LabeledEntry, Table

logger = logging.getLogger(__name__)


class AsyncPump:
    """Drive an asyncio event loop from the Tk main loop.

    Both loops run on the main thread, so every store mutation happens on
    the UI thread and needs no locking.
    """

    def __init__(self, root: tk.Misc, *, interval_ms: int = 15) -> None:
        self.root = root
        self.interval_ms = interval_ms
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._after_id: str | None = None
        self._tick()

    def _tick(self) -> None:
        self.loop.call_soon(self.loop.stop)
        self.loop.run_forever()
        self._after_id = self.root.after(self.interval_ms, self._tick)

    def submit(
        self,
        coro: Awaitable[Any],
        *,
        on_done: Callable[[Any], None] | None = None,
        on_invalid: Callable[[ValidationError], None] | None = None,
    ) -> asyncio.Task:
        task = self.loop.create_task(coro)

        def finished(done: asyncio.Task) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is None:
                if on_done:
                    on_done(done.result())
                return
            if isinstance(exc, ValidationError) and on_invalid:
                on_invalid(exc)
                return
            logger.error("Background task failed", exc_info=exc)
            messagebox.showerror("Error", str(exc), parent=self.root)

        task.add_done_callback(finished)
        return task

    def close(self, cleanup: Awaitable[Any] | None = None) -> None:
        if self._after_id is not None:
            self.root.after_cancel(self._after_id)
            self._after_id = None
        pending = asyncio.all_tasks(self.loop)
        for task in pending:
            task.cancel()
        if pending:
            self.loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        if cleanup is not None:
            self.loop.run_until_complete(cleanup)
        self.loop.close()


def _build_migration_prompt(parent: tk.Widget, on_run: Callable[[], None]) -> ttk.Frame:
    frame = ttk.Labelframe(parent, text="Database Setup Required", style="Card.TLabelframe")
    ttk.Label(
        frame,
        text=(
            "The template system needs to be set up in your database. This is a one-time "
            "setup that will create the necessary tables and default categories."
        ),
        wraplength=420,
        justify="left",
    ).grid(row=0, column=0, sticky="w")
    ttk.Button(frame, text="Setup Database", style="Primary.TButton", command=on_run).grid(
        row=1, column=0, sticky="w", pady=(8, 0)
    )
    return frame


class BudgetApp(tk.Tk):
    """Main application window."""

    def __init__(
        self,
        store: BudgetStore,
        timezone: TimezoneSettings,
        *,
        config: AppConfig | None = None,
        on_close: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        super().__init__()
        self.title("Budget Planner")
        self.geometry("1180x720")
        self.resizable(True, True)
        self.store = store
        self.timezone = timezone
        self.config_values = config or AppConfig()
        self.pump = AsyncPump(self)
        self._on_close = on_close
        self._history: ChangeHistory | None = None
        self._ledger_dialogs: dict[int, "LedgerDialog"] = {}
        self._chart_window: tk.Toplevel | None = None
        self._chart_canvas: FigureCanvasTkAgg | None = None
        self._chart_figure: Figure | None = None
        self._chart_type_var: tk.StringVar | None = None
        self._color_palette = cycle(
            ["#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd", "#8c564b", "#17becf"]
        )
        self.status_var = tk.StringVar(value="Ready")
        self.error_var = tk.StringVar()

        self._configure_styles()
        self._build_menu()
        self._build_layout()
        self.protocol("WM_DELETE_WINDOW", self._shutdown)

        self.store.add_listener(self._on_store_changed)
        self.pump.submit(self._startup())

    async def _startup(self) -> None:
        await self.store.init_database()
        await self.store.load_budgets(None)

    def _shutdown(self) -> None:
        cleanup = self._on_close() if self._on_close else None
        self.pump.close(cleanup)
        self.destroy()

    # ------------------------------------------------------------------ #
    # Layout helpers
    # ------------------------------------------------------------------ #
    def _configure_styles(self) -> None:
        style = ttk.Style(self)
        style.theme_use("clam")
        style.configure("Card.TLabelframe", padding=12)
        style.configure("Card.TLabelframe.Label", font=("Segoe UI", 12, "bold"))
        style.configure("Primary.TButton", font=("Segoe UI", 10, "bold"))
        style.configure("Active.TButton", foreground="#1d4ed8")
        style.configure("Error.TFrame", background="#fee2e2")
        style.configure("Error.TLabel", background="#fee2e2", foreground="#b91c1c")

    def _build_layout(self) -> None:
        self.error_banner = ttk.Frame(self, style="Error.TFrame", padding=(12, 6))
        ttk.Label(self.error_banner, textvariable=self.error_var, style="Error.TLabel").pack(
            side="left", fill="x", expand=True
        )
        ttk.Button(self.error_banner, text="Dismiss", command=self.store.dismiss_error).pack(
            side="right"
        )

        status_bar = ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(12, 4))
        status_bar.pack(fill="x", side="bottom")

        container = ttk.Frame(self, padding=12)
        container.pack(fill="both", expand=True, padx=12, pady=8)
        container.columnconfigure(0, weight=2)
        container.columnconfigure(1, weight=3)
        container.rowconfigure(0, weight=1)
        self._container = container

        self._build_budget_list(container)
        self._build_budget_detail(container)

    def _build_budget_list(self, parent: ttk.Frame) -> None:
        frame = ttk.Labelframe(parent, text="Monthly Budgets", style="Card.TLabelframe")
        frame.grid(row=0, column=0, sticky="nsew", padx=(0, 6))
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(2, weight=1)

        sort_bar = ttk.Frame(frame)
        sort_bar.grid(row=0, column=0, sticky="ew", pady=(0, 6))
        ttk.Label(sort_bar, text="Sort by:").grid(row=0, column=0, sticky="w")
        ttk.Button(sort_bar, text="Clear Sort ✕", command=self._handle_clear_sort).grid(
            row=0, column=1, padx=(6, 0)
        )
        self.sort_buttons: dict[str, ttk.Button] = {}
        for index, (criteria, label) in enumerate(SORT_LABELS.items()):
            button = ttk.Button(
                sort_bar,
                text=label,
                command=lambda value=criteria: self._handle_sort(value),
            )
            button.grid(row=1 + index // 3, column=index % 3, sticky="ew", padx=2, pady=2)
            self.sort_buttons[criteria] = button

        actions = ttk.Frame(frame)
        actions.grid(row=1, column=0, sticky="ew", pady=(0, 6))
        ttk.Button(
            actions, text="Create Budget", style="Primary.TButton", command=self._open_create_budget
        ).pack(side="left")
        ttk.Button(actions, text="Delete Budget", command=self._handle_delete_budget).pack(
            side="left", padx=(6, 0)
        )

        self.budget_table = Table(
            frame,
            columns=("title", "period", "income", "status", "created", "finished"),
            headings={
                "title": "Budget",
                "period": "For",
                "income": "Total Income",
                "status": "Status",
                "created": "Created",
                "finished": "Finished",
            },
        )
        self.budget_table.grid(row=2, column=0, sticky="nsew")
        self.budget_table.tree.bind("<<TreeviewSelect>>", self._handle_budget_selection)

    def _build_budget_detail(self, parent: ttk.Frame) -> None:
        frame = ttk.Labelframe(parent, text="Budget", style="Card.TLabelframe")
        frame.grid(row=0, column=1, sticky="nsew", padx=(6, 0))
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(3, weight=1)
        self.detail_frame = frame

        header = ttk.Frame(frame)
        header.grid(row=0, column=0, sticky="ew")
        header.columnconfigure(0, weight=1)
        self.budget_title_var = tk.StringVar(value="Select a budget")
        self.budget_summary_var = tk.StringVar(value="")
        ttk.Label(header, textvariable=self.budget_title_var, font=("Segoe UI", 14, "bold")).grid(
            row=0, column=0, sticky="w"
        )
        ttk.Label(header, textvariable=self.budget_summary_var, font=("Consolas", 10)).grid(
            row=1, column=0, sticky="w"
        )

        buttons = ttk.Frame(frame)
        buttons.grid(row=1, column=0, sticky="ew", pady=(6, 6))
        ttk.Button(buttons, text="Rename...", command=self._handle_rename_budget).pack(side="left")
        self.finish_button = ttk.Button(
            buttons, text="Finish Budget", command=self._handle_toggle_finished
        )
        self.finish_button.pack(side="left", padx=(6, 0))
        ttk.Button(buttons, text="Apply Template...", command=self._open_apply_template).pack(
            side="left", padx=(6, 0)
        )
        ttk.Button(buttons, text="Visualize", command=self._open_chart_window).pack(
            side="left", padx=(6, 0)
        )
        self.columns_button = ttk.Menubutton(buttons, text="Columns")
        self.columns_menu = tk.Menu(self.columns_button, tearoff=0)
        self.columns_button["menu"] = self.columns_menu
        self.columns_button.pack(side="right")

        form = ttk.Frame(frame)
        form.grid(row=2, column=0, sticky="ew", pady=(0, 6))
        form.columnconfigure(0, weight=1)
        form.columnconfigure(1, weight=1)
        self.category_name_input = LabeledEntry(form, label="Category")
        self.category_name_input.grid(row=0, column=0, sticky="ew")
        self.category_allocated_input = CurrencyEntry(form, label="Allocated")
        self.category_allocated_input.grid(row=0, column=1, sticky="ew")
        ttk.Button(
            form, text="Add Category", style="Primary.TButton", command=self._handle_add_category
        ).grid(row=0, column=2, padx=(12, 0), sticky="n")

        self.category_table = Table(frame, columns=("name",), headings={"name": "Category"})
        self.category_table.grid(row=3, column=0, sticky="nsew")
        self.category_table.bind_double_click(self._handle_category_double_click)

        category_actions = ttk.Frame(frame)
        category_actions.grid(row=4, column=0, sticky="ew", pady=(6, 0))
        ttk.Button(
            category_actions, text="Edit Allocation...", command=self._handle_edit_allocation
        ).pack(side="left")
        ttk.Button(category_actions, text="Open Ledger...", command=self._handle_open_ledger).pack(
            side="left", padx=(6, 0)
        )
        self.loading_var = tk.StringVar(value="")
        ttk.Label(category_actions, textvariable=self.loading_var).pack(side="right")

        history_frame = ttk.Labelframe(frame, text="Change History", style="Card.TLabelframe")
        history_frame.grid(row=5, column=0, sticky="nsew", pady=(6, 0))
        history_frame.columnconfigure(0, weight=1)
        self.history_table = Table(
            history_frame,
            columns=("action", "old", "new", "when"),
            headings={"action": "Action", "old": "Old", "new": "New", "when": "When"},
            height=4,
        )
        self.history_table.grid(row=0, column=0, sticky="nsew")
        self.history_toggle = ttk.Button(
            history_frame, text="Show All", command=self._toggle_history
        )
        self.history_toggle.grid(row=1, column=0, sticky="e", pady=(4, 0))
        self.history_message_var = tk.StringVar(value="")
        ttk.Label(history_frame, textvariable=self.history_message_var, foreground="#b91c1c").grid(
            row=1, column=0, sticky="w"
        )

        self._rebuild_columns_menu()
        self._apply_category_columns()

    def _build_menu(self) -> None:
        menu_bar = tk.Menu(self)
        file_menu = tk.Menu(menu_bar, tearoff=0)
        file_menu.add_command(label="Refresh", command=self._handle_refresh)
        file_menu.add_separator()
        file_menu.add_command(label="Exit", command=self._shutdown)
        menu_bar.add_cascade(label="File", menu=file_menu)

        manage_menu = tk.Menu(menu_bar, tearoff=0)
        manage_menu.add_command(label="Templates...", command=self._open_templates)
        manage_menu.add_command(label="Global Categories...", command=self._open_global_categories)
        menu_bar.add_cascade(label="Manage", menu=manage_menu)

        settings_menu = tk.Menu(menu_bar, tearoff=0)
        settings_menu.add_command(label="Timezone...", command=self._open_timezone_settings)
        menu_bar.add_cascade(label="Settings", menu=settings_menu)

        help_menu = tk.Menu(menu_bar, tearoff=0)
        help_menu.add_command(label="About", command=self._show_about_dialog)
        menu_bar.add_cascade(label="Help", menu=help_menu)

        self.config(menu=menu_bar)

    # ------------------------------------------------------------------ #
    # Category grid columns
    # ------------------------------------------------------------------ #
    def _rebuild_columns_menu(self) -> None:
        menu = self.columns_menu
        menu.delete(0, "end")
        self._column_vars = []
        visible = self.store.state.visible_column_ids
        for column in ALL_COLUMNS:
            var = tk.BooleanVar(value=column.id in visible)
            self._column_vars.append(var)
            menu.add_checkbutton(
                label=column.label,
                variable=var,
                command=lambda column_id=column.id: self._handle_toggle_column(column_id),
            )
        menu.add_separator()
        for preset, column_ids in COLUMN_PRESETS.items():
            menu.add_command(
                label=f"Preset: {preset}",
                command=lambda ids=column_ids: self.store.set_visible_columns(ids),
            )

    def _handle_toggle_column(self, column_id: str) -> None:
        self.store.set_visible_columns(
            toggle_column(self.store.state.visible_column_ids, column_id)
        )

    def _apply_category_columns(self) -> None:
        columns = visible_columns(self.store.state.visible_column_ids)
        self.category_table.set_columns(
            ("name", *(column.id for column in columns)),
            {"name": "Category", **{column.id: column.label for column in columns}},
            {column.id: {"anchor": "e" if column.align == "right" else "w"} for column in columns},
        )

    # ------------------------------------------------------------------ #
    # Store synchronisation
    # ------------------------------------------------------------------ #
    def _on_store_changed(self, state: StoreState) -> None:
        self._refresh_error_banner(state)
        self._refresh_sort_buttons(state)
        self.budget_table.populate(budgets_for_table(state.budgets, self.timezone), key_field="budget_id")
        current = state.current_budget
        if current is not None and self.budget_table.tree.exists(str(current.budget_id)):
            if self.budget_table.selected_id() != str(current.budget_id):
                self.budget_table.tree.selection_set(str(current.budget_id))
        self._refresh_budget_header(state)
        if tuple(self.category_table._columns[1:]) != tuple(
            column.id for column in visible_columns(state.visible_column_ids)
        ):
            self._apply_category_columns()
            self._rebuild_columns_menu()
        self.category_table.populate(
            categories_for_table(state.categories, state.visible_column_ids, self.timezone),
            key_field="category_id",
        )
        self.loading_var.set("Loading..." if state.loading else "")
        for dialog in list(self._ledger_dialogs.values()):
            dialog.refresh()
        self._refresh_chart()

    def _refresh_error_banner(self, state: StoreState) -> None:
        if state.error:
            self.error_var.set(state.error)
            if not self.error_banner.winfo_ismapped():
                self.error_banner.pack(fill="x", side="top", before=self._container)
        else:
            self.error_var.set("")
            self.error_banner.pack_forget()

    def _refresh_sort_buttons(self, state: StoreState) -> None:
        for criteria, button in self.sort_buttons.items():
            active = state.current_sort is not None and state.current_sort.criteria == criteria
            button.configure(
                text=f"{SORT_LABELS[criteria]} {sort_indicator(state.current_sort, criteria)}",
                style="Active.TButton" if active else "TButton",
                state="disabled" if state.loading else "normal",
            )

    def _refresh_budget_header(self, state: StoreState) -> None:
        budget = state.current_budget
        if budget is None:
            self.budget_title_var.set("Select a budget")
            self.budget_summary_var.set("")
            self.finish_button.configure(text="Finish Budget", state="disabled")
            return
        totals = budget_totals(state.categories, budget.total_income)
        self.budget_title_var.set(
            f"{budget_display_name(budget)}  ({budget_period(budget.month, budget.year)})"
        )
        self.budget_summary_var.set(
            f"Income {format_money(budget.total_income)}   "
            f"Allocated {format_money(totals.allocated)}   "
            f"Net {format_money(totals.net)}   "
            f"Remaining {format_money(totals.remaining)}   "
            f"Unallocated {format_money(totals.unallocated)}"
        )
        self.finish_button.configure(
            text="Reopen Budget" if budget.is_finished else "Finish Budget", state="normal"
        )

    def _refresh_history(self) -> None:
        history = self._history
        if history is None:
            self.history_table.populate([], key_field="change_id")
            self.history_message_var.set("")
            self.history_toggle.configure(state="disabled")
            return
        self.history_message_var.set(history.error or ("Loading..." if history.loading else ""))
        self.history_table.populate(
            history_for_table(history.visible_entries, self.timezone), key_field="change_id"
        )
        self.history_toggle.configure(
            text="Show Less" if history.expanded else f"Show All ({len(history.entries)})",
            state="normal" if history.can_expand else "disabled",
        )

    def _reload_history(self) -> None:
        history = self._history
        if history is None:
            return
        self.pump.submit(history.load(), on_done=lambda _ok: self._refresh_history())

    def _toggle_history(self) -> None:
        if self._history is not None:
            self._history.toggle_expanded()
            self._refresh_history()

    # ------------------------------------------------------------------ #
    # Event handlers: budgets
    # ------------------------------------------------------------------ #
    def _handle_refresh(self) -> None:
        self.pump.submit(self.store.load_budgets(self.store.state.current_sort))
        budget_id = self.store.state.current_budget_id
        if budget_id is not None:
            self.pump.submit(self.store.fetch_categories_with_stats(budget_id))
            self._reload_history()

    def _handle_sort(self, criteria: str) -> None:
        self.pump.submit(self.store.sort_budgets_by(criteria))

    def _handle_clear_sort(self) -> None:
        self.pump.submit(self.store.clear_budget_sort())

    def _handle_budget_selection(self, _event) -> None:
        selected = self.budget_table.selected_id()
        if selected is None:
            return
        budget_id = int(selected)
        if budget_id == self.store.state.current_budget_id:
            return
        self._select_budget(budget_id)

    def _select_budget(self, budget_id: int) -> None:
        for dialog in list(self._ledger_dialogs.values()):
            dialog.destroy()
        self.store.select_budget(budget_id)
        self._history = ChangeHistory(self.store.backend, budget_id)
        self._refresh_history()
        self._reload_history()
        self.pump.submit(self.store.fetch_categories_with_stats(budget_id))

    def _open_create_budget(self) -> None:
        CreateBudgetDialog(self)

    def _handle_delete_budget(self) -> None:
        selected = self.budget_table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Budget", "Select a budget to delete.", parent=self)
            return
        budget = self.store.state.find_budget(int(selected))
        label = budget_display_name(budget) if budget else "this budget"
        if not messagebox.askyesno(
            "Delete Budget", f"Delete {label} and all of its categories?", parent=self
        ):
            return

        def done(ok: bool) -> None:
            if ok:
                self._history = None
                self._refresh_history()
                self._set_status(f"Deleted {label}.")

        self.pump.submit(self.store.delete_budget(int(selected)), on_done=done)

    def _require_budget(self):
        budget = self.store.state.current_budget
        if budget is None:
            messagebox.showinfo("Select Budget", "Select a budget first.", parent=self)
        return budget

    def _handle_toggle_finished(self) -> None:
        budget = self._require_budget()
        if budget is None:
            return
        if budget.is_finished:
            operation = self.store.unfinish_budget(budget.budget_id)
            message = "Budget reopened for editing."
        else:
            operation = self.store.finish_budget(budget.budget_id)
            message = "Budget marked as finished."

        def done(ok: bool) -> None:
            if ok:
                self._set_status(message)
                self._reload_history()

        self.pump.submit(operation, on_done=done)

    def _handle_rename_budget(self) -> None:
        budget = self._require_budget()
        if budget is None:
            return
        dialog = PromptDialog(
            self,
            title="Rename Budget",
            label="Title",
            initial=budget_display_name(budget),
        )
        value = dialog.result
        if value is None:
            return

        def done(ok: bool) -> None:
            if ok:
                self._set_status("Budget title updated.")
                self._reload_history()

        self.pump.submit(
            self.store.rename_budget(budget.budget_id, value),
            on_done=done,
            on_invalid=lambda exc: messagebox.showerror("Invalid Title", str(exc), parent=self),
        )

    def _open_apply_template(self) -> None:
        budget = self._require_budget()
        if budget is None:
            return
        ApplyTemplateDialog(self, budget.budget_id)

    # ------------------------------------------------------------------ #
    # Event handlers: categories
    # ------------------------------------------------------------------ #
    def _handle_add_category(self) -> None:
        budget = self._require_budget()
        if budget is None:
            return
        name = self.category_name_input.get()
        raw_amount = self.category_allocated_input.get().strip() or "0"
        amount = parse_amount(raw_amount)
        self.category_name_input.set_error(None)
        self.category_allocated_input.set_error(None)
        if amount is None:
            self.category_allocated_input.set_error("Enter a number")
            return

        def invalid(exc: ValidationError) -> None:
            self.category_name_input.set_error(exc.errors.get("name"))
            self.category_allocated_input.set_error(exc.errors.get("allocated"))

        def done(category) -> None:
            if category is not None:
                self.category_name_input.set("")
                self.category_allocated_input.set("")
                self._set_status(f"Added category '{category.name}'.")

        self.pump.submit(
            self.store.add_category(
                NewCategory(budget_id=budget.budget_id, category_name=name, allocated_amount=amount)
            ),
            on_done=done,
            on_invalid=invalid,
        )

    def _selected_category_id(self) -> Optional[int]:
        selected = self.category_table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Category", "Select a category first.", parent=self)
            return None
        return int(selected)

    def _handle_edit_allocation(self) -> None:
        category_id = self._selected_category_id()
        if category_id is None:
            return
        category = self.store.state.find_category(category_id)
        if category is None:
            return
        dialog = PromptDialog(
            self,
            title="Edit Allocation",
            label=f"Allocated for {category.name}",
            initial=f"{category.allocated:.2f}",
        )
        if dialog.result is None:
            return
        amount = parse_amount(dialog.result)
        if amount is None:
            messagebox.showerror("Invalid Amount", "Allocated amount must be numeric.", parent=self)
            return
        budget_id = category.budget_id

        def done(ok: bool) -> None:
            if ok:
                self._set_status(f"Allocation for '{category.name}' updated.")
                self.pump.submit(self.store.fetch_categories_with_stats(budget_id))

        self.pump.submit(
            self.store.set_allocated(category_id, amount),
            on_done=done,
            on_invalid=lambda exc: messagebox.showerror("Invalid Amount", str(exc), parent=self),
        )

    def _handle_category_double_click(self, event) -> None:
        tree = self.category_table.tree
        row_id = tree.identify_row(event.y)
        if not row_id:
            return
        column_index = int(tree.identify_column(event.x).lstrip("#") or 0) - 1
        columns = self.category_table._columns
        column_id = columns[column_index] if 0 <= column_index < len(columns) else ""
        tree.selection_set(row_id)
        if column_id == "allocated":
            self._handle_edit_allocation()
        else:
            self._open_ledger(int(row_id))

    def _handle_open_ledger(self) -> None:
        category_id = self._selected_category_id()
        if category_id is not None:
            self._open_ledger(category_id)

    def _open_ledger(self, category_id: int) -> None:
        dialog = self._ledger_dialogs.get(category_id)
        if dialog is not None and dialog.winfo_exists():
            dialog.lift()
            return
        self._ledger_dialogs[category_id] = LedgerDialog(self, category_id)

    def _forget_ledger(self, category_id: int) -> None:
        self._ledger_dialogs.pop(category_id, None)

    def _after_entries_changed(self) -> None:
        budget_id = self.store.state.current_budget_id
        if budget_id is not None:
            self.pump.submit(self.store.fetch_categories_with_stats(budget_id))
            self._reload_history()

    # ------------------------------------------------------------------ #
    # Other dialogs
    # ------------------------------------------------------------------ #
    def _open_templates(self) -> None:
        TemplatesDialog(self)

    def _open_global_categories(self) -> None:
        GlobalCategoriesDialog(self)

    def _open_timezone_settings(self) -> None:
        values = [value for value, _label in COMMON_TIMEZONES]
        if self.timezone.timezone not in values:
            values.insert(0, self.timezone.timezone)
        dialog = PromptDialog(
            self,
            title="Timezone",
            label="Display timezone",
            initial=self.timezone.timezone,
            choices=values,
        )
        if dialog.result is None:
            return
        try:
            self.timezone.set_timezone(dialog.result)
        except ValueError as exc:
            messagebox.showerror("Invalid Timezone", str(exc), parent=self)
            return
        self._set_status(f"Timezone set to {dialog.result}.")
        self._on_store_changed(self.store.state)
        self._refresh_history()

    def _show_about_dialog(self) -> None:
        messagebox.showinfo(
            "About Budget Planner",
            "Budget Planner\nMonthly budgets, categories, ledgers and templates.\n",
            parent=self,
        )

    def _set_status(self, message: str) -> None:
        self.status_var.set(message)

    # ------------------------------------------------------------------ #
    # Chart rendering
    # ------------------------------------------------------------------ #
    def _open_chart_window(self) -> None:
        if self._chart_window and self._chart_window.winfo_exists():
            self._chart_window.lift()
            self._refresh_chart()
            return

        self._chart_window = tk.Toplevel(self)
        self._chart_window.title("Category Allocations")
        self._chart_window.geometry("900x620")
        self._chart_window.protocol("WM_DELETE_WINDOW", self._close_chart_window)

        container = ttk.Frame(self._chart_window, padding=12)
        container.pack(fill="both", expand=True)

        controls = ttk.Frame(container)
        controls.pack(fill="x", pady=(0, 12))
        ttk.Label(controls, text="Chart Type:").pack(side="left")
        self._chart_type_var = tk.StringVar(value="Allocated vs Remaining")
        chart_selector = ttk.Combobox(
            controls,
            state="readonly",
            textvariable=self._chart_type_var,
            values=["Allocated vs Remaining", "Allocation Share"],
            width=24,
        )
        chart_selector.pack(side="left", padx=(6, 0))
        chart_selector.bind("<<ComboboxSelected>>", lambda _event: self._render_chart())

        self._chart_figure = Figure(figsize=(6, 4), dpi=100)
        self._chart_canvas = FigureCanvasTkAgg(self._chart_figure, master=container)
        self._chart_canvas.get_tk_widget().pack(fill="both", expand=True)
        self._render_chart()

    def _close_chart_window(self) -> None:
        if self._chart_window and self._chart_window.winfo_exists():
            self._chart_window.destroy()
        self._chart_window = None
        self._chart_canvas = None
        self._chart_figure = None
        self._chart_type_var = None

    def _refresh_chart(self) -> None:
        if not self._chart_window or not self._chart_window.winfo_exists():
            return
        self._render_chart()

    def _render_chart(self) -> None:
        if not self._chart_canvas or not self._chart_figure:
            return
        categories = sorted(self.store.state.categories, key=lambda c: c.name.lower())
        chart_type = self._chart_type_var.get() if self._chart_type_var else ""
        self._chart_figure.clear()
        ax = self._chart_figure.add_subplot(111)
        if not categories:
            ax.text(0.5, 0.5, "No categories to display", ha="center", va="center", transform=ax.transAxes)
            ax.set_axis_off()
        elif chart_type == "Allocation Share":
            self._plot_allocation_share(ax, categories)
        else:
            self._plot_allocated_vs_remaining(ax, categories)
        self._chart_canvas.draw_idle()

    def _plot_allocated_vs_remaining(self, ax, categories) -> None:
        names = [category.name for category in categories]
        positions = list(range(len(names)))
        width = 0.4
        allocated = [float(category.allocated) for category in categories]
        remaining = [float(category.remaining) for category in categories]
        bars = ax.bar([p - width / 2 for p in positions], allocated, width, label="Allocated", color="#1f77b4")
        ax.bar(
            [p + width / 2 for p in positions],
            remaining,
            width,
            label="Remaining",
            color=["#2ca02c" if value >= 0 else "#d62728" for value in remaining],
        )
        ax.set_xticks(positions)
        ax.set_xticklabels(names, rotation=35, ha="right")
        ax.axhline(0, color="#333333", linewidth=0.6)
        ax.set_ylabel("Amount")
        ax.set_title("Allocated vs Remaining by Category")
        ax.grid(axis="y", linestyle="--", alpha=0.3)
        ax.legend(loc="upper right")
        for bar in bars:
            height = bar.get_height()
            ax.annotate(
                f"{height:.2f}",
                xy=(bar.get_x() + bar.get_width() / 2, height),
                xytext=(0, 4),
                textcoords="offset points",
                ha="center",
                va="bottom",
                fontsize=8,
            )

    def _plot_allocation_share(self, ax, categories) -> None:
        meaningful = [category for category in categories if category.allocated > 0]
        if not meaningful:
            ax.text(0.5, 0.5, "Nothing allocated yet", ha="center", va="center", transform=ax.transAxes)
            ax.set_axis_off()
            return
        colors = [next(self._color_palette) for _ in meaningful]
        wedges, _texts, autotexts = ax.pie(
            [float(category.allocated) for category in meaningful],
            colors=colors,
            startangle=90,
            autopct="%1.1f%%",
            pctdistance=0.8,
        )
        ax.set_title("Share of Allocations")
        ax.axis("equal")
        ax.legend(
            wedges,
            [category.name for category in meaningful],
            loc="center left",
            bbox_to_anchor=(1, 0.5),
        )
        for text in autotexts:
            text.set_color("#ffffff")
            text.set_fontsize(9)


class PromptDialog(tk.Toplevel):
    """Modal single-value prompt; ``result`` is None when cancelled."""

    def __init__(
        self,
        master: tk.Misc,
        *,
        title: str,
        label: str,
        initial: str = "",
        choices: list[str] | None = None,
    ) -> None:
        super().__init__(master)
        self.title(title)
        self.transient(master)
        self.resizable(False, False)
        self.result: Optional[str] = None

        container = ttk.Frame(self, padding=12)
        container.grid(row=0, column=0, sticky="nsew")
        container.columnconfigure(0, weight=1)
        ttk.Label(container, text=label).grid(row=0, column=0, sticky="w")
        self._var = tk.StringVar(value=initial)
        if choices:
            field = ttk.Combobox(container, textvariable=self._var, values=choices, width=32)
        else:
            field = ttk.Entry(container, textvariable=self._var, width=34)
        field.grid(row=1, column=0, sticky="ew", pady=(4, 0))
        field.focus_set()

        buttons = ttk.Frame(container)
        buttons.grid(row=2, column=0, sticky="e", pady=(12, 0))
        ttk.Button(buttons, text="Cancel", command=self.destroy).grid(row=0, column=0, padx=(0, 6))
        ttk.Button(buttons, text="Save", style="Primary.TButton", command=self._save).grid(
            row=0, column=1
        )
        self.bind("<Return>", lambda _event: self._save())
        self.bind("<Escape>", lambda _event: self.destroy())
        self.grab_set()
        self.wait_window()

    def _save(self) -> None:
        self.result = self._var.get().strip()
        self.destroy()


class CreateBudgetDialog(tk.Toplevel):
    def __init__(self, app: BudgetApp) -> None:
        super().__init__(app)
        self.app = app
        self.title("Create New Budget")
        self.transient(app)
        self.resizable(False, False)
        today = date.today()

        container = ttk.Frame(self, padding=12)
        container.grid(row=0, column=0, sticky="nsew")
        container.columnconfigure(1, weight=1)

        ttk.Label(container, text="Month").grid(row=0, column=0, sticky="w")
        self.month_var = tk.StringVar(value=MONTH_NAMES[today.month - 1])
        ttk.Combobox(
            container, state="readonly", textvariable=self.month_var, values=list(MONTH_NAMES)
        ).grid(row=0, column=1, sticky="ew")
        self.year_input = LabeledEntry(container, label="Year", width=8)
        self.year_input.grid(row=1, column=0, columnspan=2, sticky="ew", pady=(6, 0))
        self.year_input.set(str(today.year))
        self.name_input = LabeledEntry(container, label="Budget Name (Optional)")
        self.name_input.grid(row=2, column=0, columnspan=2, sticky="ew", pady=(6, 0))
        self.income_input = CurrencyEntry(container, label="Total Monthly Income")
        self.income_input.grid(row=3, column=0, columnspan=2, sticky="ew", pady=(6, 0))
        self.month_error_var = tk.StringVar()
        ttk.Label(
            container, textvariable=self.month_error_var, foreground="#b91c1c", wraplength=360
        ).grid(row=4, column=0, columnspan=2, sticky="w", pady=(6, 0))

        buttons = ttk.Frame(container)
        buttons.grid(row=5, column=0, columnspan=2, sticky="e", pady=(12, 0))
        ttk.Button(buttons, text="Cancel", command=self.destroy).grid(row=0, column=0, padx=(0, 6))
        self.submit_button = ttk.Button(
            buttons, text="Create Budget", style="Primary.TButton", command=self._submit
        )
        self.submit_button.grid(row=0, column=1)
        self.bind("<Escape>", lambda _event: self.destroy())
        self.grab_set()

    def _submit(self) -> None:
        for widget in (self.year_input, self.name_input, self.income_input):
            widget.set_error(None)
        self.month_error_var.set("")
        try:
            year = int(self.year_input.get().strip())
        except ValueError:
            self.year_input.set_error("Enter a year, e.g. 2025")
            return
        month = MONTH_NAMES.index(self.month_var.get()) + 1
        income = parse_amount(self.income_input.get()) or Decimal("0")
        self.submit_button.configure(text="Creating...", state="disabled")

        def invalid(exc: ValidationError) -> None:
            self.submit_button.configure(text="Create Budget", state="normal")
            self.month_error_var.set(exc.errors.get("month", ""))
            self.year_input.set_error(exc.errors.get("year"))
            self.name_input.set_error(exc.errors.get("name"))
            self.income_input.set_error(exc.errors.get("total_income"))

        def done(budget_id: Optional[int]) -> None:
            if budget_id is None:
                self.submit_button.configure(text="Create Budget", state="normal")
                self.month_error_var.set(self.app.store.state.error or "")
                return
            self.app._set_status(f"Created budget for {budget_period(month, year)}.")
            self.destroy()
            self.app._select_budget(budget_id)

        self.app.pump.submit(
            self.app.store.create_budget(month, year, income, self.name_input.get()),
            on_done=done,
            on_invalid=invalid,
        )


class LedgerDialog(tk.Toplevel):
    """Ledger of one category with the add/edit entry form."""

    def __init__(self, app: BudgetApp, category_id: int) -> None:
        super().__init__(app)
        self.app = app
        self.category_id = category_id
        self.editing_entry_id: Optional[int] = None
        self.geometry("900x520")
        self.protocol("WM_DELETE_WINDOW", self.destroy)
        self.bind("<Escape>", lambda _event: self.destroy())

        container = ttk.Frame(self, padding=12)
        container.pack(fill="both", expand=True)
        container.columnconfigure(1, weight=1)
        container.rowconfigure(1, weight=1)

        self.header_var = tk.StringVar()
        ttk.Label(container, textvariable=self.header_var, font=("Segoe UI", 12, "bold")).grid(
            row=0, column=0, columnspan=2, sticky="w", pady=(0, 8)
        )

        form = ttk.Labelframe(container, text="Add Entry", style="Card.TLabelframe")
        form.grid(row=1, column=0, sticky="nsew", padx=(0, 8))
        self.form = form
        ttk.Label(form, text="Type").grid(row=0, column=0, sticky="w")
        self.type_var = tk.StringVar(value="expense")
        ttk.Combobox(
            form,
            state="readonly",
            textvariable=self.type_var,
            values=["expense", "income", "adjustment"],
            width=14,
        ).grid(row=1, column=0, sticky="ew")
        self.what_input = LabeledEntry(form, label="What")
        self.what_input.grid(row=2, column=0, sticky="ew", pady=(6, 0))
        self.where_input = LabeledEntry(form, label="Where")
        self.where_input.grid(row=3, column=0, sticky="ew", pady=(6, 0))
        self.amount_input = CurrencyEntry(form, label="Amount")
        self.amount_input.grid(row=4, column=0, sticky="ew", pady=(6, 0))
        self.date_input = LabeledEntry(form, label="Date (YYYY-MM-DD)", width=12)
        self.date_input.grid(row=5, column=0, sticky="ew", pady=(6, 0))
        self.date_input.set(date.today().isoformat())
        form_buttons = ttk.Frame(form)
        form_buttons.grid(row=6, column=0, sticky="ew", pady=(12, 0))
        self.submit_button = ttk.Button(
            form_buttons, text="Add Entry", style="Primary.TButton", command=self._submit
        )
        self.submit_button.pack(side="left")
        self.cancel_edit_button = ttk.Button(form_buttons, text="Cancel Edit", command=self._reset_form)

        entries = ttk.Frame(container)
        entries.grid(row=1, column=1, sticky="nsew")
        entries.columnconfigure(0, weight=1)
        entries.rowconfigure(0, weight=1)
        self.table = Table(
            entries,
            columns=("type", "what", "where", "amount", "date", "created", "pending"),
            headings={
                "type": "Type",
                "what": "What",
                "where": "Where",
                "amount": "Amount",
                "date": "Date",
                "created": "Recorded",
                "pending": "",
            },
            column_options={"pending": {"width": 24, "stretch": False}},
        )
        self.table.grid(row=0, column=0, sticky="nsew")
        self.table.bind_double_click(lambda _event: self._start_edit())
        entry_actions = ttk.Frame(entries)
        entry_actions.grid(row=1, column=0, sticky="ew", pady=(6, 0))
        ttk.Button(entry_actions, text="Edit Selected", command=self._start_edit).pack(side="left")
        ttk.Button(entry_actions, text="Delete Selected", command=self._delete_selected).pack(
            side="left", padx=(6, 0)
        )

        self.refresh()
        self.app.pump.submit(
            self.app.store.fetch_ledger(
                category_id, limit=self.app.config_values.ledger_page_size
            )
        )

    def destroy(self) -> None:
        self.app._forget_ledger(self.category_id)
        super().destroy()

    def refresh(self) -> None:
        category = self.app.store.state.find_category(self.category_id)
        if category is None:
            self.title(f"Category {self.category_id} Ledger")
            self.header_var.set(f"Category {self.category_id} Ledger")
        else:
            self.title(f"{category.name} Ledger")
            self.header_var.set(
                f"{category.name} Ledger   Net: {format_money(category.net)}   "
                f"Remaining: {format_money(category.remaining)}"
            )
        self.table.populate(
            ledger_for_table(self.app.store.entries_for(self.category_id), self.app.timezone),
            key_field="entry_id",
        )

    def _clear_errors(self) -> None:
        for widget in (self.what_input, self.amount_input, self.date_input):
            widget.set_error(None)

    def _show_errors(self, exc: ValidationError) -> None:
        self.what_input.set_error(exc.errors.get("what"))
        self.amount_input.set_error(exc.errors.get("amount"))
        self.date_input.set_error(exc.errors.get("date"))

    def _reset_form(self) -> None:
        self.editing_entry_id = None
        self.form.configure(text="Add Entry")
        self.submit_button.configure(text="Add Entry")
        self.cancel_edit_button.pack_forget()
        self.type_var.set("expense")
        self.what_input.set("")
        self.where_input.set("")
        self.amount_input.set("")
        self.date_input.set(date.today().isoformat())
        self._clear_errors()

    def _submit(self) -> None:
        self._clear_errors()
        amount = parse_amount(self.amount_input.get()) or Decimal("0")
        store = self.app.store
        if self.editing_entry_id is None:
            operation = store.add_entry(
                NewEntry(
                    category_id=self.category_id,
                    entry_type=self.type_var.get(),
                    what=self.what_input.get(),
                    where=self.where_input.get(),
                    amount=amount,
                    date=self.date_input.get(),
                )
            )
        else:
            operation = store.update_entry(
                UpdateEntry(
                    entry_id=self.editing_entry_id,
                    entry_type=self.type_var.get(),
                    what=self.what_input.get(),
                    where=self.where_input.get(),
                    amount=amount,
                    date=self.date_input.get(),
                )
            )
        self.submit_button.configure(state="disabled")

        def done(_outcome) -> None:
            if self.winfo_exists():
                self.submit_button.configure(state="normal")
                self._reset_form()
            self.app._after_entries_changed()

        def invalid(exc: ValidationError) -> None:
            self.submit_button.configure(state="normal")
            self._show_errors(exc)

        self.app.pump.submit(operation, on_done=done, on_invalid=invalid)

    def _selected_entry(self):
        selected = self.table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Entry", "Select an entry first.", parent=self)
            return None
        entry_id = int(selected)
        if entry_id < 0:
            messagebox.showinfo("Pending Entry", "This entry is still being saved.", parent=self)
            return None
        for entry in self.app.store.entries_for(self.category_id):
            if entry.entry_id == entry_id:
                return entry
        return None

    def _start_edit(self) -> None:
        entry = self._selected_entry()
        if entry is None:
            return
        self.editing_entry_id = entry.entry_id
        self.form.configure(text="Edit Entry")
        self.submit_button.configure(text="Save Changes")
        self.cancel_edit_button.pack(side="left", padx=(6, 0))
        self.type_var.set(entry.entry_type)
        self.what_input.set(entry.what)
        self.where_input.set(entry.where or "")
        self.amount_input.set(f"{entry.amount:.2f}")
        self.date_input.set(entry.date)
        self._clear_errors()

    def _delete_selected(self) -> None:
        entry = self._selected_entry()
        if entry is None:
            return
        if not messagebox.askyesno(
            "Delete Entry", "Are you sure you want to delete this entry?", parent=self
        ):
            return
        self.app.pump.submit(
            self.app.store.delete_entry(entry.entry_id),
            on_done=lambda _ok: self.app._after_entries_changed(),
        )


class _CatalogDialog(tk.Toplevel):
    """Shared plumbing for dialogs backed by a TemplateCatalog."""

    def __init__(self, app: BudgetApp, title: str) -> None:
        super().__init__(app)
        self.app = app
        self.title(title)
        self.transient(app)
        self.geometry("760x480")
        self.catalog = TemplateCatalog(app.store.backend)
        self.catalog.add_listener(lambda _catalog: self._refresh_if_open())
        self.error_var = tk.StringVar()

        self.container = ttk.Frame(self, padding=12)
        self.container.pack(fill="both", expand=True)
        self.container.columnconfigure(0, weight=1)
        self.container.rowconfigure(2, weight=1)
        ttk.Label(self.container, textvariable=self.error_var, foreground="#b91c1c").grid(
            row=0, column=0, sticky="w"
        )
        self.migration_prompt = _build_migration_prompt(self.container, self._run_migration)
        self.migration_prompt.grid(row=1, column=0, sticky="ew", pady=(0, 8))
        self.migration_prompt.grid_remove()
        self.bind("<Escape>", lambda _event: self.destroy())

    def _load(self) -> None:
        self.app.pump.submit(self.catalog.load())

    def _run_migration(self) -> None:
        self.app.pump.submit(self.catalog.run_migration())

    def _refresh_if_open(self) -> None:
        if self.winfo_exists():
            self.refresh()

    def refresh(self) -> None:
        self.error_var.set(self.catalog.error or ("Loading..." if self.catalog.loading else ""))
        if self.catalog.needs_migration:
            self.migration_prompt.grid()
        else:
            self.migration_prompt.grid_remove()

    def _show_invalid(self, exc: ValidationError) -> None:
        self.error_var.set(str(exc))


class GlobalCategoriesDialog(_CatalogDialog):
    def __init__(self, app: BudgetApp) -> None:
        super().__init__(app, "Global Categories")
        body = ttk.Frame(self.container)
        body.grid(row=2, column=0, sticky="nsew")
        body.columnconfigure(0, weight=1)
        body.rowconfigure(0, weight=1)
        self.table = Table(
            body,
            columns=("name", "description", "created"),
            headings={"name": "Name", "description": "Description", "created": "Created"},
        )
        self.table.grid(row=0, column=0, sticky="nsew")
        self.table.tree.bind("<<TreeviewSelect>>", self._fill_form)

        form = ttk.Frame(body)
        form.grid(row=1, column=0, sticky="ew", pady=(8, 0))
        form.columnconfigure(0, weight=1)
        form.columnconfigure(1, weight=2)
        self.name_input = LabeledEntry(form, label="Name")
        self.name_input.grid(row=0, column=0, sticky="ew")
        self.description_input = LabeledEntry(form, label="Description")
        self.description_input.grid(row=0, column=1, sticky="ew", padx=(6, 0))
        buttons = ttk.Frame(form)
        buttons.grid(row=1, column=0, columnspan=2, sticky="e", pady=(6, 0))
        ttk.Button(buttons, text="Add", style="Primary.TButton", command=self._add).pack(side="left")
        ttk.Button(buttons, text="Update Selected", command=self._update).pack(side="left", padx=(6, 0))
        ttk.Button(buttons, text="Delete Selected", command=self._delete).pack(side="left", padx=(6, 0))
        self._load()

    def refresh(self) -> None:
        super().refresh()
        rows = [
            {
                "global_category_id": str(category.global_category_id),
                "name": category.name,
                "description": category.description or "",
                "created": self.app.timezone.format(category.created_at).date
                if category.created_at
                else "",
            }
            for category in self.catalog.global_categories
        ]
        self.table.populate(rows, key_field="global_category_id")

    def _fill_form(self, _event) -> None:
        selected = self.table.selected_id()
        for category in self.catalog.global_categories:
            if str(category.global_category_id) == selected:
                self.name_input.set(category.name)
                self.description_input.set(category.description or "")

    def _add(self) -> None:
        self.app.pump.submit(
            self.catalog.create_global_category(self.name_input.get(), self.description_input.get()),
            on_done=lambda created: created and self.name_input.set(""),
            on_invalid=self._show_invalid,
        )

    def _update(self) -> None:
        selected = self.table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Category", "Select a category to update.", parent=self)
            return
        self.app.pump.submit(
            self.catalog.update_global_category(
                int(selected), self.name_input.get(), self.description_input.get()
            ),
            on_invalid=self._show_invalid,
        )

    def _delete(self) -> None:
        selected = self.table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Category", "Select a category to delete.", parent=self)
            return
        if messagebox.askyesno("Delete Category", "Delete the selected category?", parent=self):
            self.app.pump.submit(self.catalog.delete_global_category(int(selected)))


class TemplatesDialog(_CatalogDialog):
    def __init__(self, app: BudgetApp) -> None:
        super().__init__(app, "Budget Templates")
        body = ttk.Frame(self.container)
        body.grid(row=2, column=0, sticky="nsew")
        body.columnconfigure(0, weight=1)
        body.rowconfigure(0, weight=1)
        self.table = Table(
            body,
            columns=("name", "description", "categories", "total"),
            headings={
                "name": "Name",
                "description": "Description",
                "categories": "Categories",
                "total": "Total",
            },
            column_options={"categories": {"anchor": "e"}, "total": {"anchor": "e"}},
        )
        self.table.grid(row=0, column=0, sticky="nsew")
        self.table.bind_double_click(lambda _event: self._edit())
        buttons = ttk.Frame(body)
        buttons.grid(row=1, column=0, sticky="e", pady=(8, 0))
        ttk.Button(buttons, text="New Template...", style="Primary.TButton", command=self._new).pack(
            side="left"
        )
        ttk.Button(buttons, text="Edit...", command=self._edit).pack(side="left", padx=(6, 0))
        ttk.Button(buttons, text="Delete", command=self._delete).pack(side="left", padx=(6, 0))
        self._load()

    def refresh(self) -> None:
        super().refresh()
        rows = [
            {
                "template_id": str(template.template_id),
                "name": template.name,
                "description": template.description or "",
                "categories": str(template.category_count),
                "total": format_money(template.total_amount),
            }
            for template in self.catalog.templates
        ]
        self.table.populate(rows, key_field="template_id")

    def _new(self) -> None:
        TemplateEditorDialog(self, None)

    def _edit(self) -> None:
        selected = self.table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Template", "Select a template first.", parent=self)
            return
        self.app.pump.submit(
            self.catalog.get_template(int(selected)),
            on_done=lambda detail: detail and TemplateEditorDialog(self, detail),
        )

    def _delete(self) -> None:
        selected = self.table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Template", "Select a template first.", parent=self)
            return
        if messagebox.askyesno("Delete Template", "Delete the selected template?", parent=self):
            self.app.pump.submit(self.catalog.delete_template(int(selected)))


class TemplateEditorDialog(tk.Toplevel):
    """Create or edit a template's name, description and category lines."""

    def __init__(self, owner: TemplatesDialog, detail) -> None:
        super().__init__(owner)
        self.owner = owner
        self.app = owner.app
        self.template_id = detail.template_id if detail else None
        self.title("Edit Template" if detail else "New Template")
        self.transient(owner)
        self.geometry("640x460")
        self.lines: list[TemplateCategoryDraft] = [
            TemplateCategoryDraft(
                global_category_id=item.global_category_id,
                allocated_amount=item.allocated_amount,
                category_type=item.category_type,
                sort_order=item.sort_order,
            )
            for item in (detail.categories if detail else [])
        ]
        self.names = {
            category.global_category_id: category.name
            for category in owner.catalog.global_categories
        }

        container = ttk.Frame(self, padding=12)
        container.pack(fill="both", expand=True)
        container.columnconfigure(0, weight=1)
        container.rowconfigure(2, weight=1)
        self.name_input = LabeledEntry(container, label="Name")
        self.name_input.grid(row=0, column=0, sticky="ew")
        self.description_input = LabeledEntry(container, label="Description")
        self.description_input.grid(row=1, column=0, sticky="ew", pady=(6, 0))
        if detail:
            self.name_input.set(detail.name)
            self.description_input.set(detail.description or "")

        self.table = Table(
            container,
            columns=("category", "amount", "type"),
            headings={"category": "Category", "amount": "Allocated", "type": "Type"},
        )
        self.table.grid(row=2, column=0, sticky="nsew", pady=(6, 0))

        line_form = ttk.Frame(container)
        line_form.grid(row=3, column=0, sticky="ew", pady=(6, 0))
        self.category_var = tk.StringVar()
        ttk.Combobox(
            line_form,
            state="readonly",
            textvariable=self.category_var,
            values=sorted(self.names.values()),
            width=20,
        ).pack(side="left")
        self.amount_input = CurrencyEntry(line_form, label="Amount")
        self.amount_input.pack(side="left", padx=(6, 0))
        self.type_var = tk.StringVar(value="expense")
        ttk.Combobox(
            line_form,
            state="readonly",
            textvariable=self.type_var,
            values=["expense", "savings"],
            width=10,
        ).pack(side="left", padx=(6, 0))
        ttk.Button(line_form, text="Add Line", command=self._add_line).pack(side="left", padx=(6, 0))
        ttk.Button(line_form, text="Remove Line", command=self._remove_line).pack(
            side="left", padx=(6, 0)
        )

        self.error_var = tk.StringVar()
        ttk.Label(container, textvariable=self.error_var, foreground="#b91c1c").grid(
            row=4, column=0, sticky="w", pady=(6, 0)
        )
        buttons = ttk.Frame(container)
        buttons.grid(row=5, column=0, sticky="e", pady=(6, 0))
        ttk.Button(buttons, text="Cancel", command=self.destroy).pack(side="left")
        ttk.Button(buttons, text="Save", style="Primary.TButton", command=self._save).pack(
            side="left", padx=(6, 0)
        )
        self._refresh_lines()

    def _refresh_lines(self) -> None:
        rows = [
            {
                "index": str(index),
                "category": self.names.get(line.global_category_id, f"#{line.global_category_id}"),
                "amount": format_money(line.allocated_amount),
                "type": line.category_type,
            }
            for index, line in enumerate(self.lines)
        ]
        self.table.populate(rows, key_field="index")

    def _add_line(self) -> None:
        name = self.category_var.get()
        category_id = next((cid for cid, label in self.names.items() if label == name), None)
        amount = parse_amount(self.amount_input.get())
        if category_id is None or amount is None:
            self.error_var.set("Pick a category and enter an amount.")
            return
        self.error_var.set("")
        self.lines.append(
            TemplateCategoryDraft(
                global_category_id=category_id,
                allocated_amount=amount,
                category_type=self.type_var.get(),
                sort_order=len(self.lines),
            )
        )
        self.amount_input.set("")
        self._refresh_lines()

    def _remove_line(self) -> None:
        selected = self.table.selected_id()
        if selected is None:
            return
        del self.lines[int(selected)]
        for order, line in enumerate(self.lines):
            line.sort_order = order
        self._refresh_lines()

    def _save(self) -> None:
        draft = TemplateDraft(
            name=self.name_input.get().strip(),
            description=self.description_input.get().strip() or None,
            categories=list(self.lines),
        )
        catalog = self.owner.catalog
        if self.template_id is None:
            operation = catalog.create_template(draft)
        else:
            operation = catalog.update_template(self.template_id, draft)

        def done(result) -> None:
            if result is not None:
                self.destroy()
            else:
                self.error_var.set(catalog.error or "Saving the template failed.")

        self.app.pump.submit(
            operation,
            on_done=done,
            on_invalid=lambda exc: self.error_var.set(str(exc)),
        )


class ApplyTemplateDialog(_CatalogDialog):
    def __init__(self, app: BudgetApp, budget_id: int) -> None:
        super().__init__(app, "Select a Template")
        self.budget_id = budget_id
        body = ttk.Frame(self.container)
        body.grid(row=2, column=0, sticky="nsew")
        body.columnconfigure(0, weight=1)
        body.rowconfigure(1, weight=1)
        ttk.Label(
            body,
            text=(
                "Choose a template to set up your budget categories and amounts automatically. "
                "Existing categories of this budget are replaced."
            ),
            wraplength=600,
        ).grid(row=0, column=0, sticky="w", pady=(0, 6))
        self.table = Table(
            body,
            columns=("name", "categories", "total"),
            headings={"name": "Template", "categories": "Categories", "total": "Total"},
            column_options={"categories": {"anchor": "e"}, "total": {"anchor": "e"}},
        )
        self.table.grid(row=1, column=0, sticky="nsew")
        buttons = ttk.Frame(body)
        buttons.grid(row=2, column=0, sticky="e", pady=(8, 0))
        ttk.Button(buttons, text="Cancel", command=self.destroy).pack(side="left")
        self.apply_button = ttk.Button(
            buttons, text="Apply Template", style="Primary.TButton", command=self._apply
        )
        self.apply_button.pack(side="left", padx=(6, 0))
        self._load()

    def refresh(self) -> None:
        super().refresh()
        rows = [
            {
                "template_id": str(template.template_id),
                "name": template.name,
                "categories": str(template.category_count),
                "total": format_money(template.total_amount),
            }
            for template in self.catalog.templates
        ]
        self.table.populate(rows, key_field="template_id")

    def _apply(self) -> None:
        selected = self.table.selected_id()
        if selected is None:
            messagebox.showinfo("Select Template", "Select a template first.", parent=self)
            return
        self.apply_button.configure(state="disabled", text="Applying...")

        def done(ok: bool) -> None:
            if ok:
                self.app._set_status("Template applied.")
                self.app._reload_history()
                self.destroy()
            else:
                self.apply_button.configure(state="normal", text="Apply Template")
                self.error_var.set(self.app.store.state.error or "")

        self.app.pump.submit(self.app.store.apply_template(self.budget_id, int(selected)), on_done=done)


def run_app(config: AppConfig | None = None) -> None:
    """Convenience helper to wire the backend, the store and the Tkinter loop."""
    config = config or AppConfig.from_env()
    preferences = PreferenceStore(config.preferences_file)
    timezone = TimezoneSettings(preferences)
    invoker = StdioInvoker(config.backend_command)
    store = BudgetStore(BudgetBackend(invoker), preferences=preferences)
    app = BudgetApp(store, timezone, config=config, on_close=invoker.close)
    app.mainloop()
