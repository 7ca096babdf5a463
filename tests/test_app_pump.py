import asyncio

import pytest

pytest.importorskip("tkinter")
pytest.importorskip("matplotlib")

from budget_planner.app import AsyncPump


class FakeRoot:
    def __init__(self):
        self.scheduled = []
        self.cancelled = []

    def after(self, delay, callback):
        self.scheduled.append(callback)
        return f"after#{len(self.scheduled)}"

    def after_cancel(self, after_id):
        self.cancelled.append(after_id)


def test_close_cancels_outstanding_tasks():
    root = FakeRoot()
    pump = AsyncPump(root)
    try:
        never = asyncio.Event()
        task = pump.submit(never.wait())
        root.scheduled[-1]()

        pump.close()

        assert task.cancelled()
        assert pump.loop.is_closed()
        assert root.cancelled == ["after#2"]
    finally:
        asyncio.set_event_loop(None)


def test_results_reach_the_done_callback():
    root = FakeRoot()
    pump = AsyncPump(root)
    results = []

    async def answer():
        return 42

    try:
        pump.submit(answer(), on_done=results.append)
        root.scheduled[-1]()
        root.scheduled[-1]()
        assert results == [42]
        pump.close()
    finally:
        asyncio.set_event_loop(None)
