"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import (
    IssueStatus, IssuePriority, UserRole, AutomationTrigger, CommentType,
    NotificationDeliveryStatus, NotificationType, NotificationTarget, ChangeKind
)
from ..utils.time import coerce_datetime


def _optional_timestamp(value: Any) -> Optional[datetime]:
    return coerce_datetime(value)


# ============================================================================
# Civic Issues
# ============================================================================

class GeoPoint(BaseModel):
    """Latitude/longitude pair attached to an issue"""
    model_config = ConfigDict(extra="ignore")

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None


class Issue(BaseModel):
    """
    Citizen-reported civic issue.

    Owned by the document store; the pipeline only reads it and patches
    assignment and duplicate fields. Unknown fields written by other clients
    (images, AI analysis, response time) are ignored.
    """
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str = Field(..., description="Store document ID")
    title: str = Field(default="")
    description: str = Field(default="")
    category: str = Field(default="", description="One of the known categories, matched case-insensitively")
    status: IssueStatus = Field(default=IssueStatus.OPEN)
    priority: IssuePriority = Field(default=IssuePriority.MEDIUM)
    reported_by: str = Field(default="")
    reported_by_id: str = Field(default="")
    reported_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    assigned_department: str = Field(default="", description="Empty string means unassigned")
    location: Optional[GeoPoint] = None
    address: Optional[str] = None
    duplicate_of_id: Optional[str] = None
    duplicate_score: Optional[float] = Field(default=None, ge=0, le=1)

    normalize_timestamps = field_validator("reported_at", "last_updated", mode="before")(_optional_timestamp)

    @field_validator("assigned_department", mode="before")
    @classmethod
    def _empty_department(cls, value: Any) -> str:
        return value or ""

    @property
    def is_unassigned(self) -> bool:
        return not self.assigned_department.strip()

    @property
    def has_location(self) -> bool:
        return self.location is not None


class IssueComment(BaseModel):
    """Entry in an issue's activity thread"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    issue_id: str
    text: str
    author: str
    author_email: str
    type: CommentType = CommentType.COMMENT
    created_at: datetime


class DuplicateMatch(BaseModel):
    """Ranked duplicate candidate for an issue (not persisted)"""
    issue_id: str
    title: str = ""
    score: float = Field(..., ge=0, le=1)
    distance_meters: int = Field(..., ge=0)
    category: str = ""


# ============================================================================
# Departments & Rules
# ============================================================================

class Department(BaseModel):
    """Municipal department that issues can be routed to"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    description: str = ""
    head: str = ""
    email: str = ""
    phone: str = ""
    active: bool = True
    categories: List[str] = Field(default_factory=list, description="Informational only")
    created_at: Optional[datetime] = None


class AssignmentRule(BaseModel):
    """Category -> department routing rule; first enabled match wins"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    category: str
    department: str
    priority: str = Field(default="Medium", description="Suggested priority, informational")
    enabled: bool = True
    created_at: Optional[datetime] = None

    def matches(self, category: str) -> bool:
        return self.enabled and self.category.strip().lower() == (category or "").strip().lower()


class AutomationRule(BaseModel):
    """Admin-defined reaction to an issue lifecycle event"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    trigger: AutomationTrigger
    condition: str = ""
    template_id: str = ""
    enabled: bool = True
    description: str = ""
    times_triggered: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    last_triggered: Optional[datetime] = None

    normalize_timestamps = field_validator("created_at", "last_triggered", mode="before")(_optional_timestamp)


# ============================================================================
# Users & Notifications
# ============================================================================

class AppUser(BaseModel):
    """Platform user as seen by the notification fan-out"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    email: str = ""
    display_name: str = ""
    role: UserRole = UserRole.CITIZEN
    push_token: Optional[str] = None
    notifications_enabled: bool = True

    @field_validator("notifications_enabled", mode="before")
    @classmethod
    def _default_enabled(cls, value: Any) -> bool:
        return value is not False

    @property
    def has_push_destination(self) -> bool:
        return bool(self.push_token)


class PushMessage(BaseModel):
    """One logical notification to fan out to many recipients"""
    model_config = ConfigDict(use_enum_values=True)

    title: str
    body: str
    type: NotificationType = NotificationType.AUTOMATED
    target: NotificationTarget = NotificationTarget.INDIVIDUAL
    priority: str = "normal"
    related_issue_id: Optional[str] = None
    data: Dict[str, str] = Field(default_factory=dict)


class FanoutResult(BaseModel):
    """Aggregate push delivery counts for one fan-out attempt"""
    success_count: int = 0
    failure_count: int = 0
    recipient_count: int = 0

    @property
    def status(self) -> NotificationDeliveryStatus:
        if self.success_count > 0 and self.failure_count == 0:
            return NotificationDeliveryStatus.SENT
        if self.success_count > 0:
            return NotificationDeliveryStatus.PARTIAL
        return NotificationDeliveryStatus.FAILED


class NotificationLog(BaseModel):
    """Append-only audit record of one fan-out attempt"""
    model_config = ConfigDict(use_enum_values=True)

    title: str
    body: str
    type: NotificationType = NotificationType.AUTOMATED
    target: NotificationTarget = NotificationTarget.INDIVIDUAL
    priority: str = "normal"
    sent_by: str = "system"
    recipient_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    status: NotificationDeliveryStatus
    related_issue_id: Optional[str] = None
    sent_at: datetime


class InAppNotification(BaseModel):
    """
    In-app notification for a user's notification bell.
    Written for every intended recipient, independent of push delivery.
    """
    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    title: str
    body: str
    type: NotificationType = NotificationType.AUTOMATED
    read: bool = False
    related_issue_id: Optional[str] = None
    created_at: datetime


# ============================================================================
# Store Change Events
# ============================================================================

class ChangeEvent(BaseModel):
    """Document change delivered by a store subscription"""
    model_config = ConfigDict(use_enum_values=True)

    kind: ChangeKind
    document: Dict[str, Any]
    updated_fields: Optional[FrozenSet[str]] = Field(
        default=None,
        description="Top-level fields touched by a modification, when the store reports them"
    )

    @property
    def doc_id(self) -> Optional[str]:
        return self.document.get("id")

    @property
    def is_added(self) -> bool:
        return self.kind == ChangeKind.ADDED
