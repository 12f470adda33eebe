"""Collection Watcher - Queue-backed consumer for a store change stream

One reader task drains the store subscription into an asyncio queue and a
fixed number of worker tasks process events from it. With a single worker,
events for the collection are handled strictly in delivery order.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..domain.models import ChangeEvent
from ..repositories.document_store import DocumentStore
from ..utils.idgen import generate_correlation_id
from ..utils.logger import get_logger, set_correlation_id

logger = get_logger(__name__)

EventHandler = Callable[[ChangeEvent], Awaitable[None]]


class CollectionWatcher:
    """
    Subscribe to one collection and feed its change events to a handler.

    - Subscription failures are logged and the stream is reopened after
      `retry_seconds`; the watcher never gives up on its own.
    - Handler failures are logged per event and never stop the worker.
    - `on_reconnect` runs before every reopened subscription, so consumers
      can catch up on changes made while the stream was down.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        handler: EventHandler,
        max_concurrency: int = 1,
        retry_seconds: float = 5.0,
        filter: Optional[Dict[str, Any]] = None,
        on_reconnect: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        self.store = store
        self.collection = collection
        self.handler = handler
        self.max_concurrency = max(1, max_concurrency)
        self.retry_seconds = retry_seconds
        self.filter = filter
        self.on_reconnect = on_reconnect
        self._queue: asyncio.Queue = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []
        self.events_processed = 0
        self.events_failed = 0

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Spawn the reader and worker tasks on the running loop"""
        if self._tasks:
            logger.warning(f"Watcher for {self.collection} already running")
            return

        self._tasks.append(asyncio.create_task(self._read_loop(), name=f"watch:{self.collection}"))
        for index in range(self.max_concurrency):
            self._tasks.append(
                asyncio.create_task(self._work_loop(), name=f"worker:{self.collection}:{index}")
            )
        logger.info(
            f"Watcher started with {self.max_concurrency} worker(s)",
            extra={"collection": self.collection}
        )

    async def stop(self) -> None:
        """Cancel the subscription and all workers; queued events are dropped"""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(
            f"Watcher stopped ({self.events_processed} processed, {self.events_failed} failed)",
            extra={"collection": self.collection}
        )

    async def drain(self) -> None:
        """Wait until every event received so far has been handled"""
        await self._queue.join()

    async def _read_loop(self) -> None:
        reconnecting = False
        while True:
            try:
                if reconnecting and self.on_reconnect is not None:
                    await self.on_reconnect()
                reconnecting = True
                async for event in self.store.subscribe(self.collection, self.filter):
                    await self._queue.put(event)
                logger.warning(
                    "Change stream ended, reopening",
                    extra={"collection": self.collection}
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Subscription error: {e}",
                    extra={"collection": self.collection, "error_type": type(e).__name__}
                )
            await asyncio.sleep(self.retry_seconds)

    async def _work_loop(self) -> None:
        while True:
            event = await self._queue.get()
            set_correlation_id(generate_correlation_id())
            try:
                await self.handler(event)
                self.events_processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.events_failed += 1
                logger.error(
                    f"Failed to handle {event.kind} event: {e}",
                    exc_info=True,
                    extra={"collection": self.collection, "issue_id": event.doc_id}
                )
            finally:
                self._queue.task_done()
