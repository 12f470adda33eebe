"""Issue Repository - Data access for civic issues and their activity thread"""
from typing import Any, Dict, List, Optional

from .collections import ISSUES, ISSUE_COMMENTS
from .document_store import DocumentStore
from ..domain.enums import CommentType, UNRESOLVED_STATUSES
from ..domain.errors import IssueNotFoundError
from ..domain.models import Issue, IssueComment
from ..utils.idgen import generate_comment_id
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)

SYSTEM_AUTHOR = "System"

UNASSIGNED_FILTER = {"assigned_department": {"$in": ["", None]}}


class IssueRepository:
    """Repository for issue reads, field patches and audit comments"""

    def __init__(self, store: DocumentStore):
        self._store = store

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_issue(self, issue_id: str) -> Optional[Issue]:
        """Get issue by ID"""
        doc = await self._store.get(ISSUES, issue_id)
        if doc:
            return Issue.model_validate(doc)
        return None

    async def get_issue_or_raise(self, issue_id: str) -> Issue:
        """Get issue by ID or raise error"""
        issue = await self.get_issue(issue_id)
        if not issue:
            raise IssueNotFoundError(f"Issue {issue_id} not found", details={"issue_id": issue_id})
        return issue

    async def list_unassigned(self) -> List[Issue]:
        """Issues whose assigned_department is empty, null or missing"""
        docs = await self._store.query(ISSUES, UNASSIGNED_FILTER)
        return self._validate_all(docs)

    async def list_unresolved(self) -> List[Issue]:
        """Issues that are still Open or In Progress"""
        docs = await self._store.query(
            ISSUES,
            {"status": {"$in": [status.value for status in UNRESOLVED_STATUSES]}}
        )
        return self._validate_all(docs)

    def _validate_all(self, docs: List[Dict[str, Any]]) -> List[Issue]:
        issues = []
        for doc in docs:
            try:
                issues.append(Issue.model_validate(doc))
            except ValueError as e:
                logger.warning(
                    f"Skipping malformed issue document: {e}",
                    extra={"issue_id": doc.get("id")}
                )
        return issues

    # =========================================================================
    # Writes
    # =========================================================================

    async def update_issue(
        self,
        issue_id: str,
        updates: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Patch issue fields and bump last_updated; False if `expected` no longer matched"""
        updates = dict(updates)
        updates["last_updated"] = utc_now()
        written = await self._store.patch(ISSUES, issue_id, updates, expected=expected)
        if written:
            logger.info(
                f"Updated issue: {issue_id}",
                extra={"issue_id": issue_id}
            )
        return written

    async def assign_department(self, issue_id: str, department: str) -> bool:
        """Set the department only while the issue is still unassigned"""
        return await self.update_issue(
            issue_id,
            {"assigned_department": department},
            expected=UNASSIGNED_FILTER
        )

    async def add_system_comment(
        self,
        issue_id: str,
        text: str,
        author_email: str,
        comment_type: CommentType = CommentType.ASSIGNMENT
    ) -> str:
        """Append a comment authored by the System actor"""
        comment = IssueComment(
            issue_id=issue_id,
            text=text,
            author=SYSTEM_AUTHOR,
            author_email=author_email,
            type=comment_type,
            created_at=utc_now()
        )
        doc = comment.model_dump()
        doc["id"] = generate_comment_id()
        return await self._store.create(ISSUE_COMMENTS, doc)
