"""Rule Store - Live in-memory mirrors of the configuration tables"""
from typing import Generic, List, Type, TypeVar

from pydantic import BaseModel

from .watcher import CollectionWatcher
from ..config.settings import settings
from ..domain.enums import AutomationTrigger
from ..domain.models import AppUser, AssignmentRule, AutomationRule, ChangeEvent
from ..repositories.collections import ASSIGNMENT_RULES, AUTOMATION_RULES, USERS
from ..repositories.document_store import DocumentStore
from ..utils.logger import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CollectionMirror(Generic[ModelT]):
    """
    Snapshot of a whole collection, replaced on every change event.

    Reads are served from memory. When a reload fails the previous snapshot
    stays in place, so callers always see the last known-good table.
    """

    def __init__(self, store: DocumentStore, collection: str, model: Type[ModelT]):
        self.store = store
        self.collection = collection
        self.model = model
        self._snapshot: List[ModelT] = []
        self._watcher = CollectionWatcher(
            store,
            collection,
            self._on_change,
            retry_seconds=settings.watch_retry_seconds,
            on_reconnect=self._resync,
        )

    @property
    def snapshot(self) -> List[ModelT]:
        return self._snapshot

    async def start(self) -> None:
        await self.refresh()
        self._watcher.start()

    async def stop(self) -> None:
        await self._watcher.stop()

    async def drain(self) -> None:
        await self._watcher.drain()

    async def refresh(self) -> bool:
        """Reload the collection; returns False (keeping the old snapshot) on failure"""
        try:
            docs = await self.store.query(self.collection)
        except Exception as e:
            logger.error(
                f"Failed to reload {self.collection}, serving last snapshot: {e}",
                extra={"collection": self.collection, "error_type": type(e).__name__}
            )
            return False

        items: List[ModelT] = []
        for doc in docs:
            try:
                items.append(self.model.model_validate(doc))
            except ValueError as e:
                logger.warning(
                    f"Skipping invalid {self.collection} document {doc.get('id')}: {e}",
                    extra={"collection": self.collection}
                )

        self._snapshot = items
        logger.debug(
            f"Loaded {len(items)} documents from {self.collection}",
            extra={"collection": self.collection}
        )
        return True

    async def _on_change(self, event: ChangeEvent) -> None:
        await self.refresh()

    async def _resync(self) -> None:
        # Edits made while the stream was down produced no events
        logger.info(f"Resyncing {self.collection} after reconnect", extra={"collection": self.collection})
        await self.refresh()


class RuleStore:
    """
    Always-current assignment and automation rule tables.

    Assignment rules keep the order the store returns them in, which is the
    order first-match-wins evaluation relies on.
    """

    def __init__(self, store: DocumentStore):
        self.assignment_rules = CollectionMirror(store, ASSIGNMENT_RULES, AssignmentRule)
        self.automation_rules = CollectionMirror(store, AUTOMATION_RULES, AutomationRule)

    async def start(self) -> None:
        await self.assignment_rules.start()
        await self.automation_rules.start()
        logger.info(
            f"Rule store started: {len(self.active_assignment_rules())} assignment rules, "
            f"{len([r for r in self.automation_rules.snapshot if r.enabled])} automation rules active"
        )

    async def stop(self) -> None:
        await self.assignment_rules.stop()
        await self.automation_rules.stop()

    async def drain(self) -> None:
        await self.assignment_rules.drain()
        await self.automation_rules.drain()

    def active_assignment_rules(self) -> List[AssignmentRule]:
        return [rule for rule in self.assignment_rules.snapshot if rule.enabled]

    def active_automation_rules(self, trigger: AutomationTrigger) -> List[AutomationRule]:
        return [
            rule for rule in self.automation_rules.snapshot
            if rule.enabled and rule.trigger == trigger
        ]


class UserDirectory(CollectionMirror[AppUser]):
    """Mirror of the users table used to resolve notification audiences"""

    def __init__(self, store: DocumentStore):
        super().__init__(store, USERS, AppUser)

    def users(self) -> List[AppUser]:
        return self.snapshot
