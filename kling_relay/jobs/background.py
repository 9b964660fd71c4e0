"""Detached background execution of job lifecycles.

Each trigger gets its own asyncio task owned by the dispatcher, not by the
request that started it. Runs for different records proceed in parallel;
a second trigger for a record that is still running is refused.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict

from kling_relay.jobs.dispatcher import JobDispatcher

logger = logging.getLogger(__name__)


class BackgroundDispatcher(JobDispatcher):
    """Spawns one asyncio task per record with its own error boundary."""

    def __init__(self, run_fn: Callable[[str], Awaitable[object]]):
        """
        run_fn: async callable(record_id)
            Usually JobLifecycle.run. Exceptions it raises are logged here.
        """
        self._run_fn = run_fn
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    async def submit(self, record_id: str) -> bool:
        if not self._running:
            raise RuntimeError("Dispatcher is not running")
        if self.is_active(record_id):
            logger.warning("Lifecycle already running for record %s", record_id)
            return False

        task = asyncio.create_task(self._run_fn(record_id), name=f"lifecycle-{record_id}")
        self._tasks[record_id] = task
        task.add_done_callback(lambda t: self._on_done(record_id, t))
        return True

    def is_active(self, record_id: str) -> bool:
        task = self._tasks.get(record_id)
        return task is not None and not task.done()

    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _on_done(self, record_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(record_id) is task:
            del self._tasks[record_id]
        if task.cancelled():
            logger.warning("Lifecycle for record %s abandoned", record_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Lifecycle for record %s crashed: %s: %s",
                record_id,
                type(exc).__name__,
                exc,
                exc_info=exc,
            )
