"""Document Store - Watch and mutate contract over the hosted document database

The pipeline only ever talks to the database through `DocumentStore`. The
production implementation sits on MongoDB change streams via Motor; tests use
an in-memory implementation of the same contract.
"""
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from ..domain.enums import ChangeKind
from ..domain.errors import DocumentStoreError, NotFoundError
from ..domain.models import ChangeEvent
from ..utils.idgen import generate_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DocumentStore(ABC):
    """
    Contract the pipeline consumes.

    Documents are plain dicts whose store identity is exposed as ``id``.
    Filters use MongoDB query syntax; the pipeline restricts itself to
    equality and ``$in``.
    """

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[ChangeEvent]:
        """Stream added/modified events for a collection until cancelled"""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """One-shot read of all matching documents, in store order"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a single document by id"""

    @abstractmethod
    async def patch(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Set top-level fields on an existing document.

        With `expected`, the write only happens if the document still matches
        that filter, checked atomically with the write; returns whether it
        was written.
        """

    @abstractmethod
    async def create(self, collection: str, fields: Dict[str, Any]) -> str:
        """Insert a document and return its id"""

    @abstractmethod
    async def increment(
        self,
        collection: str,
        doc_id: str,
        counters: Dict[str, int],
        fields: Optional[Dict[str, Any]] = None
    ) -> None:
        """Atomically add to numeric fields, optionally setting others"""


class MongoDocumentStore(DocumentStore):
    """DocumentStore backed by MongoDB change streams (requires a replica set)"""

    WATCHED_OPERATIONS = ("insert", "update", "replace")

    def __init__(self, database: AsyncIOMotorDatabase):
        self._db = database

    # =========================================================================
    # Watch
    # =========================================================================

    async def subscribe(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[ChangeEvent]:
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"operationType": {"$in": list(self.WATCHED_OPERATIONS)}}}
        ]
        if filter:
            pipeline.append({
                "$match": {f"fullDocument.{key}": value for key, value in filter.items()}
            })

        logger.info(f"Opening change stream on {collection}", extra={"collection": collection})
        try:
            async with self._db[collection].watch(pipeline, full_document="updateLookup") as stream:
                async for change in stream:
                    event = self._to_change_event(change)
                    if event is not None:
                        yield event
        except PyMongoError as e:
            raise DocumentStoreError(
                f"Change stream on {collection} failed: {e}",
                details={"collection": collection}
            ) from e

    @staticmethod
    def _to_change_event(change: Dict[str, Any]) -> Optional[ChangeEvent]:
        document = change.get("fullDocument")
        if document is None:
            # Updated then deleted before the lookup ran
            return None

        operation = change.get("operationType")
        if operation == "insert":
            return ChangeEvent(kind=ChangeKind.ADDED, document=_from_mongo(document))

        updated_fields = None
        description = change.get("updateDescription")
        if operation == "update" and description:
            touched = list(description.get("updatedFields", {}).keys())
            touched.extend(description.get("removedFields", []))
            updated_fields = frozenset(path.split(".", 1)[0] for path in touched)

        return ChangeEvent(
            kind=ChangeKind.MODIFIED,
            document=_from_mongo(document),
            updated_fields=updated_fields
        )

    # =========================================================================
    # Read
    # =========================================================================

    async def query(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        try:
            cursor = self._db[collection].find(filter or {})
            return [_from_mongo(doc) async for doc in cursor]
        except PyMongoError as e:
            raise DocumentStoreError(
                f"Query on {collection} failed: {e}",
                details={"collection": collection}
            ) from e

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self._db[collection].find_one(_id_filter(doc_id))
        except PyMongoError as e:
            raise DocumentStoreError(
                f"Read of {collection}/{doc_id} failed: {e}",
                details={"collection": collection}
            ) from e
        return _from_mongo(doc) if doc else None

    # =========================================================================
    # Mutate
    # =========================================================================

    async def patch(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> bool:
        filter_query = _id_filter(doc_id)
        if expected:
            filter_query.update(expected)
        try:
            result = await self._db[collection].update_one(filter_query, {"$set": fields})
        except PyMongoError as e:
            raise DocumentStoreError(
                f"Patch of {collection}/{doc_id} failed: {e}",
                details={"collection": collection}
            ) from e
        if result.matched_count == 0:
            if expected:
                return False
            raise NotFoundError(f"{collection}/{doc_id} not found")
        return True

    async def create(self, collection: str, fields: Dict[str, Any]) -> str:
        doc = dict(fields)
        doc_id = doc.pop("id", None) or generate_id()
        doc["_id"] = doc_id
        try:
            await self._db[collection].insert_one(doc)
        except PyMongoError as e:
            raise DocumentStoreError(
                f"Insert into {collection} failed: {e}",
                details={"collection": collection}
            ) from e
        return doc_id

    async def increment(
        self,
        collection: str,
        doc_id: str,
        counters: Dict[str, int],
        fields: Optional[Dict[str, Any]] = None
    ) -> None:
        update: Dict[str, Any] = {"$inc": counters}
        if fields:
            update["$set"] = fields
        try:
            result = await self._db[collection].update_one(_id_filter(doc_id), update)
        except PyMongoError as e:
            raise DocumentStoreError(
                f"Increment of {collection}/{doc_id} failed: {e}",
                details={"collection": collection}
            ) from e
        if result.matched_count == 0:
            raise NotFoundError(f"{collection}/{doc_id} not found")


def _from_mongo(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Expose Mongo's _id as a string id"""
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _id_filter(doc_id: str) -> Dict[str, Any]:
    # Documents created by the mobile clients may carry ObjectId keys
    if ObjectId.is_valid(doc_id):
        return {"_id": {"$in": [doc_id, ObjectId(doc_id)]}}
    return {"_id": doc_id}
