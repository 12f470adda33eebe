"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class IssueStatus(str, Enum):
    """Lifecycle status of a civic issue"""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class IssuePriority(str, Enum):
    """Issue priority as set by citizens or admins"""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class IssueCategory(str, Enum):
    """Categories offered by the citizen app"""
    GARBAGE = "Garbage"
    WATER_LEAK = "Water Leak"
    ROADS = "Roads"
    STREETLIGHT = "Streetlight"
    POLLUTION = "Pollution"
    OTHER = "Other"


class UserRole(str, Enum):
    """Platform user roles"""
    ADMIN = "admin"
    MODERATOR = "moderator"
    CITIZEN = "citizen"
    DEPARTMENT_HEAD = "department_head"


class AutomationTrigger(str, Enum):
    """Issue lifecycle events an automation rule can react to"""
    ISSUE_CREATED = "issue_created"
    STATUS_CHANGED = "status_changed"
    ISSUE_ASSIGNED = "issue_assigned"
    PRIORITY_CHANGED = "priority_changed"
    COMMENT_ADDED = "comment_added"


class CommentType(str, Enum):
    """Kinds of entries in an issue's activity thread"""
    COMMENT = "comment"
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"


class NotificationDeliveryStatus(str, Enum):
    """Aggregate outcome of one fan-out attempt"""
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"


class NotificationType(str, Enum):
    """Origin of a notification"""
    MANUAL = "manual"
    AUTOMATED = "automated"
    BULK = "bulk"
    ISSUE_UPDATE = "issue_update"


class NotificationTarget(str, Enum):
    """Audience shape of a notification"""
    ALL = "all"
    DEPARTMENT = "department"
    INDIVIDUAL = "individual"
    ROLE = "role"


class ChangeKind(str, Enum):
    """Kinds of document change events delivered by the store"""
    ADDED = "added"
    MODIFIED = "modified"


UNRESOLVED_STATUSES = (IssueStatus.OPEN, IssueStatus.IN_PROGRESS)
