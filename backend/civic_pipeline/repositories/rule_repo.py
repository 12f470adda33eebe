"""Rule Repository - Data access for departments and routing/automation rules"""
from typing import List

from .collections import ASSIGNMENT_RULES, AUTOMATION_RULES, DEPARTMENTS
from .document_store import DocumentStore
from ..domain.models import AssignmentRule, Department
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class RuleRepository:
    """
    Writes against the configuration tables.

    Reads of the live rule tables go through RuleStore; this repository only
    covers seeding and the automation trigger counter.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    async def list_department_names(self) -> List[str]:
        docs = await self._store.query(DEPARTMENTS)
        return [doc.get("name", "") for doc in docs]

    async def create_department(self, department: Department) -> str:
        doc = department.model_dump(exclude={"id"})
        doc["created_at"] = utc_now()
        return await self._store.create(DEPARTMENTS, doc)

    async def list_rule_categories(self) -> List[str]:
        docs = await self._store.query(ASSIGNMENT_RULES)
        return [doc.get("category", "") for doc in docs]

    async def create_assignment_rule(self, rule: AssignmentRule) -> str:
        doc = rule.model_dump(exclude={"id"})
        doc["created_at"] = utc_now()
        return await self._store.create(ASSIGNMENT_RULES, doc)

    async def record_trigger(self, rule_id: str) -> None:
        """Atomically bump times_triggered and stamp last_triggered"""
        await self._store.increment(
            AUTOMATION_RULES,
            rule_id,
            {"times_triggered": 1},
            {"last_triggered": utc_now()}
        )
        logger.debug(f"Recorded trigger for automation rule {rule_id}", extra={"rule_id": rule_id})
