"""Notification Log Repository - Append-only audit trail of fan-out attempts"""
from .collections import NOTIFICATION_LOGS
from .document_store import DocumentStore
from ..domain.models import NotificationLog
from ..utils.idgen import generate_notification_log_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationLogRepository:
    """Repository for notification log entries (never updated after creation)"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def create_log(self, log: NotificationLog) -> str:
        """Append one notification log entry"""
        doc = log.model_dump()
        doc["id"] = generate_notification_log_id()

        log_id = await self._store.create(NOTIFICATION_LOGS, doc)
        logger.info(
            f"Logged notification: {log.title}",
            extra={
                "status": log.status,
                "success_count": log.success_count,
                "failure_count": log.failure_count,
                "issue_id": log.related_issue_id
            }
        )
        return log_id
