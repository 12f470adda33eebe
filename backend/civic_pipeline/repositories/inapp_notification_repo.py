"""In-App Notification Repository - Data access for the notification bell"""
from typing import List

from .collections import USER_NOTIFICATIONS
from .document_store import DocumentStore
from ..domain.models import AppUser, InAppNotification, PushMessage
from ..utils.idgen import generate_notification_id
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class InAppNotificationRepository:
    """Repository for in-app notification operations"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def create_notification(self, user_id: str, message: PushMessage) -> str:
        """Create a new unread in-app notification for one user"""
        notification = InAppNotification(
            user_id=user_id,
            title=message.title,
            body=message.body,
            type=message.type,
            read=False,
            related_issue_id=message.related_issue_id,
            created_at=utc_now()
        )

        doc = notification.model_dump()
        doc["id"] = generate_notification_id()
        return await self._store.create(USER_NOTIFICATIONS, doc)

    async def create_for_users(self, users: List[AppUser], message: PushMessage) -> int:
        """
        Create one notification per user.

        Each write is independent: a failure for one user is logged and the
        rest still get their notification. Returns the number created.
        """
        created = 0
        for user in users:
            try:
                await self.create_notification(user.id, message)
                created += 1
            except Exception as e:
                logger.warning(
                    f"Failed to create in-app notification for user {user.id}: {e}",
                    extra={"error_type": type(e).__name__, "issue_id": message.related_issue_id}
                )

        logger.info(
            f"Created {created}/{len(users)} in-app notifications",
            extra={"issue_id": message.related_issue_id}
        )
        return created
