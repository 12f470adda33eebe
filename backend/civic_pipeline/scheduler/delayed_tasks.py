"""Delayed Tasks - Keyed one-shot tasks run after a delay

Used to debounce new-issue processing: scheduling a key whose task is still
waiting out its delay replaces that task, so a burst of events for one issue
runs the work once. A task that has already started its work is never
cancelled by rescheduling; the new task runs after it as a separate attempt.
"""
import asyncio
from typing import Awaitable, Callable, Dict, Optional, Set

from ..utils.idgen import generate_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

TaskFactory = Callable[[], Awaitable[None]]


class DelayedTaskScheduler:
    """Run coroutines after a delay on the current event loop"""

    def __init__(self):
        # Tasks still sleeping, by key
        self._waiting: Dict[str, asyncio.Task] = {}
        # Every task not yet finished, sleeping or running
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def schedule(self, delay: float, factory: TaskFactory, key: Optional[str] = None) -> str:
        """
        Run `factory()` after `delay` seconds.

        Returns the task key. A task with the same key that is still waiting
        is cancelled and replaced; one that is already running is left alone.
        """
        key = key or generate_id("TASK")
        previous = self._waiting.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug(f"Rescheduled delayed task {key}")

        task = asyncio.create_task(self._run(key, delay, factory), name=f"delayed:{key}")
        self._waiting[key] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return key

    async def _run(self, key: str, delay: float, factory: TaskFactory) -> None:
        try:
            await asyncio.sleep(delay)
            if self._waiting.get(key) is asyncio.current_task():
                del self._waiting[key]
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Delayed task {key} failed: {e}",
                exc_info=True,
                extra={"error_type": type(e).__name__}
            )
        finally:
            if self._waiting.get(key) is asyncio.current_task():
                del self._waiting[key]

    async def cancel_all(self) -> None:
        """Cancel every task, waiting or running, and wait for them to unwind"""
        tasks = list(self._tasks)
        self._waiting.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info(f"Cancelled {len(tasks)} pending delayed task(s)")

    async def wait_idle(self) -> None:
        """Wait until no task is pending, including ones scheduled meanwhile"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
