import asyncio

import pytest

from budget_planner.backend import BackendError, BudgetBackend
from budget_planner.storage import PreferenceStore
from budget_planner.store import BudgetStore


class FakeInvoker:
    """Scripted stand-in for the backend process.

    ``responses`` maps a command name to a value, a callable taking the args,
    or an exception instance to raise. ``gates`` holds an ``asyncio.Event``
    per command that the call waits on before answering.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.gates = {}
        self.calls = []

    def commands(self):
        return [command for command, _ in self.calls]

    def args_for(self, command):
        return [args for name, args in self.calls if name == command]

    async def __call__(self, command, args=None):
        args = dict(args or {})
        self.calls.append((command, args))
        gate = self.gates.get(command)
        if gate is not None:
            await gate.wait()
        if command not in self.responses:
            return None
        response = self.responses[command]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(args)
        return response


def budget_row(budget_id=1, month=3, year=2025, **extra):
    row = {
        "budget_id": budget_id,
        "month": month,
        "year": year,
        "total_income": 3000.0,
        "created_at": "2025-03-01 09:00:00",
        "last_edited": "2025-03-01 09:00:00",
        "finished_at": None,
        "first_finished_at": None,
        "name": None,
    }
    row.update(extra)
    return row


def category_row(category_id=10, budget_id=1, **extra):
    row = {
        "category_id": category_id,
        "budget_id": budget_id,
        "category_name": "Groceries",
        "allocated_amount": 500.0,
        "net_amount": -120.0,
        "remaining_amount": 380.0,
        "last_activity_at": "2025-03-05 18:30:00",
        "entries_count": 2,
    }
    row.update(extra)
    return row


def entry_row(entry_id=100, category_id=10, **extra):
    row = {
        "entry_id": entry_id,
        "category_id": category_id,
        "entry_type": "expense",
        "what": "Weekly shop",
        "where": "Market",
        "amount": 50.0,
        "date": "2025-03-10",
        "created_at": "2025-03-10 12:00:00",
    }
    row.update(extra)
    return row


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def backend(invoker):
    return BudgetBackend(invoker)


@pytest.fixture
def preferences(tmp_path):
    return PreferenceStore(tmp_path / "prefs.json")


@pytest.fixture
def store(backend, preferences):
    return BudgetStore(backend, preferences=preferences)


@pytest.fixture
def backend_error():
    def make(message="database is locked", kind=None):
        return BackendError(message, kind=kind)

    return make


@pytest.fixture
def gate():
    return asyncio.Event()
