"""Duplicate Detector - Rank recent open issues as possible duplicates"""
from datetime import timedelta
from typing import List, Optional

from . import scoring
from ..config.settings import settings
from ..domain.enums import CommentType
from ..domain.errors import ValidationError
from ..domain.models import DuplicateMatch, Issue
from ..repositories.issue_repo import IssueRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)

DUPLICATE_AUTHOR_EMAIL = "duplicate-detection@system"


class DuplicateDetector:
    """
    Find and flag probable duplicates of geolocated issues.

    Candidates are unresolved issues reported no earlier than `window_days`
    before the subject, measured from the subject's own report time.
    """

    def __init__(
        self,
        issue_repo: IssueRepository,
        window_days: Optional[int] = None,
        min_score: Optional[float] = None,
        radius_meters: Optional[float] = None,
    ):
        self.issue_repo = issue_repo
        self.window_days = settings.duplicate_window_days if window_days is None else window_days
        self.min_score = settings.duplicate_min_score if min_score is None else min_score
        self.radius_meters = settings.duplicate_radius_meters if radius_meters is None else radius_meters

    async def find_duplicates(self, issue: Issue) -> List[DuplicateMatch]:
        """Matches scoring at least `min_score`, best first"""
        if not issue.has_location:
            return []

        cutoff = issue.reported_at - timedelta(days=self.window_days) if issue.reported_at else None
        candidates = await self.issue_repo.list_unresolved()

        matches: List[DuplicateMatch] = []
        for other in candidates:
            if other.id == issue.id or not other.has_location:
                continue
            if cutoff is not None and (other.reported_at is None or other.reported_at < cutoff):
                continue

            match_score = scoring.score(issue, other, self.radius_meters)
            if match_score < self.min_score:
                continue

            matches.append(DuplicateMatch(
                issue_id=other.id,
                title=other.title,
                score=match_score,
                distance_meters=round(scoring.issue_distance(issue, other)),
                category=other.category,
            ))

        # sorted() is stable, ties keep candidate order
        matches = sorted(matches, key=lambda m: m.score, reverse=True)
        logger.debug(
            f"Found {len(matches)} duplicate candidates among {len(candidates)} open issues",
            extra={"issue_id": issue.id}
        )
        return matches

    async def flag_as_duplicate(self, issue: Issue, match: DuplicateMatch) -> bool:
        """
        Mark the issue as a possible duplicate of `match.issue_id`.

        Returns False without writing when the issue is already flagged as a
        duplicate of that same issue.
        """
        if match.issue_id == issue.id:
            raise ValidationError(
                "An issue cannot be a duplicate of itself",
                details={"issue_id": issue.id}
            )

        current = await self.issue_repo.get_issue_or_raise(issue.id)
        if current.duplicate_of_id == match.issue_id:
            logger.debug(
                f"Issue already flagged as duplicate of {match.issue_id}",
                extra={"issue_id": issue.id}
            )
            return False

        await self.issue_repo.update_issue(issue.id, {
            "duplicate_of_id": match.issue_id,
            "duplicate_score": match.score,
        })
        await self.issue_repo.add_system_comment(
            issue.id,
            f"Possible duplicate detected ({round(match.score * 100)}% match). "
            f"Original issue ID: {match.issue_id}",
            author_email=DUPLICATE_AUTHOR_EMAIL,
            comment_type=CommentType.ASSIGNMENT,
        )

        logger.info(
            f"Flagged issue as potential duplicate of {match.issue_id} (score: {match.score})",
            extra={"issue_id": issue.id}
        )
        return True

    async def clear_duplicate_flag(self, issue_id: str) -> None:
        """Admin decided the issue is not a duplicate"""
        await self.issue_repo.get_issue_or_raise(issue_id)
        await self.issue_repo.update_issue(issue_id, {
            "duplicate_of_id": None,
            "duplicate_score": None,
        })
        logger.info("Cleared duplicate flag", extra={"issue_id": issue_id})

    async def check_new_issue(self, issue: Issue) -> Optional[DuplicateMatch]:
        """Flag a freshly created issue against its single best match, if any"""
        matches = await self.find_duplicates(issue)
        if not matches:
            return None

        top_match = matches[0]
        await self.flag_as_duplicate(issue, top_match)
        return top_match
