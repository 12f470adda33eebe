"""Repository modules - Data access layer"""
from .document_store import DocumentStore, MongoDocumentStore
from .issue_repo import IssueRepository
from .rule_repo import RuleRepository
from .notification_repo import NotificationLogRepository
from .inapp_notification_repo import InAppNotificationRepository

__all__ = [
    "DocumentStore",
    "MongoDocumentStore",
    "IssueRepository",
    "RuleRepository",
    "NotificationLogRepository",
    "InAppNotificationRepository",
]
