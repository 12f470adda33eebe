"""Assignment Resolver - Route issues to departments by category"""
from typing import Optional

from .rule_store import RuleStore
from ..domain.enums import CommentType
from ..domain.models import Issue
from ..repositories.issue_repo import IssueRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)

AUTO_ASSIGN_AUTHOR_EMAIL = "auto-assign@system"


class AssignmentResolver:
    """
    Apply the assignment rule table to issues.

    `resolve` is a pure lookup over the rule snapshot. `apply` performs the
    write and is safe to repeat: an issue that already carries a department
    is left alone, whichever department it is.
    """

    def __init__(self, rule_store: RuleStore, issue_repo: IssueRepository):
        self.rule_store = rule_store
        self.issue_repo = issue_repo

    def resolve(self, issue: Issue) -> Optional[str]:
        """Department of the first enabled rule matching the issue's category"""
        if not (issue.category or "").strip():
            return None

        for rule in self.rule_store.active_assignment_rules():
            if rule.matches(issue.category):
                return rule.department
        return None

    async def apply(self, issue: Issue) -> Optional[str]:
        """
        Assign the issue if a rule matches and it is still unassigned.

        Returns the department written, or None when nothing was written
        (no rule, already assigned, lost the race to another writer, or the
        write failed). The audit comment is only added by the writer whose
        conditional patch went through.
        """
        department = self.resolve(issue)
        if department is None:
            logger.debug(
                f"No assignment rule for category '{issue.category}'",
                extra={"issue_id": issue.id}
            )
            return None

        log_extra = {"issue_id": issue.id, "department": department}

        try:
            # The event snapshot may be stale; decide on the stored state
            current = await self.issue_repo.get_issue(issue.id)
            if current is None:
                logger.warning("Issue disappeared before assignment", extra={"issue_id": issue.id})
                return None
            if not current.is_unassigned:
                if current.assigned_department != department:
                    logger.info(
                        f"Issue already assigned to '{current.assigned_department}', leaving it",
                        extra=log_extra
                    )
                return None

            written = await self.issue_repo.assign_department(issue.id, department)
        except Exception as e:
            logger.error(
                f"Failed to auto-assign issue: {e}",
                extra={**log_extra, "error_type": type(e).__name__}
            )
            return None

        if not written:
            logger.info("Issue was assigned concurrently, skipping", extra=log_extra)
            return None

        logger.info(
            f"Auto-assigned issue '{current.title}' to {department}",
            extra=log_extra
        )

        try:
            await self.issue_repo.add_system_comment(
                issue.id,
                f'Auto-assigned to "{department}" based on category "{current.category}"',
                author_email=AUTO_ASSIGN_AUTHOR_EMAIL,
                comment_type=CommentType.ASSIGNMENT,
            )
        except Exception as e:
            logger.error(
                f"Issue assigned but its audit comment could not be written: {e}",
                extra={**log_extra, "error_type": type(e).__name__}
            )
        return department

    async def run_bulk_auto_assign(self) -> int:
        """Route every unassigned issue; returns how many were assigned"""
        if not self.rule_store.active_assignment_rules():
            logger.warning("No active auto-assignment rules found")
            return 0

        issues = await self.issue_repo.list_unassigned()
        assigned = 0
        for issue in issues:
            if await self.apply(issue):
                assigned += 1

        logger.info(f"Bulk auto-assign complete: {assigned}/{len(issues)} issues routed")
        return assigned
