"""Automation Dispatcher - Turn issue lifecycle events into notifications"""
from typing import Callable, Dict, List, Optional, Tuple

from .rule_store import RuleStore, UserDirectory
from ..domain.enums import AutomationTrigger, ChangeKind, NotificationTarget, NotificationType, UserRole
from ..domain.models import AppUser, AutomationRule, ChangeEvent, Issue, PushMessage
from ..repositories.document_store import DocumentStore
from ..repositories.rule_repo import RuleRepository
from ..services.notification_service import NotificationFanout
from ..utils.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Templates
# ============================================================================

def _issue_created_message(issue: Issue) -> Tuple[str, str]:
    return "New Issue Reported", f'"{issue.title}" - {issue.category} ({issue.priority})'


def _status_changed_message(issue: Issue) -> Tuple[str, str]:
    return "Issue Status Updated", f'"{issue.title}" is now "{issue.status}"'


def _issue_assigned_message(issue: Issue) -> Tuple[str, str]:
    return "Issue Assigned to Your Department", f'"{issue.title}" assigned to {issue.assigned_department}'


def _priority_changed_message(issue: Issue) -> Tuple[str, str]:
    return "Issue Priority Changed", f'"{issue.title}" priority set to {issue.priority}'


TEMPLATES: Dict[str, Callable[[Issue], Tuple[str, str]]] = {
    AutomationTrigger.ISSUE_CREATED.value: _issue_created_message,
    AutomationTrigger.STATUS_CHANGED.value: _status_changed_message,
    AutomationTrigger.ISSUE_ASSIGNED.value: _issue_assigned_message,
    AutomationTrigger.PRIORITY_CHANGED.value: _priority_changed_message,
}

AUDIENCE_TARGETS: Dict[str, NotificationTarget] = {
    AutomationTrigger.ISSUE_CREATED.value: NotificationTarget.ROLE,
    AutomationTrigger.STATUS_CHANGED.value: NotificationTarget.INDIVIDUAL,
    AutomationTrigger.ISSUE_ASSIGNED.value: NotificationTarget.DEPARTMENT,
    AutomationTrigger.PRIORITY_CHANGED.value: NotificationTarget.ROLE,
}


class AutomationDispatcher:
    """
    Evaluate automation rules for an issue event and fan out their messages.

    Each rule is an independent attempt: a failed fan-out is logged and the
    remaining rules are still evaluated. A rule's counter only moves when its
    fan-out returned a result.
    """

    def __init__(
        self,
        store: DocumentStore,
        rule_store: RuleStore,
        user_directory: UserDirectory,
        fanout: NotificationFanout,
    ):
        self.rule_store = rule_store
        self.user_directory = user_directory
        self.fanout = fanout
        self.rule_repo = RuleRepository(store)

    # =========================================================================
    # Audience
    # =========================================================================

    def audience_for(self, trigger: str, issue: Issue) -> List[AppUser]:
        """Users with a push token who should hear about this trigger"""
        users = [user for user in self.user_directory.users() if user.has_push_destination]

        if trigger in (AutomationTrigger.ISSUE_CREATED.value, AutomationTrigger.PRIORITY_CHANGED.value):
            return [user for user in users if user.role == UserRole.ADMIN.value]
        if trigger == AutomationTrigger.STATUS_CHANGED.value:
            if not issue.reported_by_id:
                return []
            return [user for user in users if user.id == issue.reported_by_id]
        if trigger == AutomationTrigger.ISSUE_ASSIGNED.value:
            return [user for user in users if user.role == UserRole.DEPARTMENT_HEAD.value]
        return []

    def build_message(self, trigger: str, issue: Issue) -> Optional[PushMessage]:
        template = TEMPLATES.get(trigger)
        if template is None:
            return None

        title, body = template(issue)
        return PushMessage(
            title=title,
            body=body,
            type=NotificationType.AUTOMATED,
            target=AUDIENCE_TARGETS[trigger],
            related_issue_id=issue.id,
            data={"issue_id": issue.id, "trigger": trigger},
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, trigger: AutomationTrigger, issue: Issue) -> int:
        """Fire every enabled rule for the trigger; returns how many fired"""
        trigger_value = AutomationTrigger(trigger).value
        rules = self.rule_store.active_automation_rules(AutomationTrigger(trigger))
        if not rules:
            return 0

        fired = 0
        for rule in rules:
            if await self._fire(rule, trigger_value, issue):
                fired += 1
        return fired

    async def _fire(self, rule: AutomationRule, trigger: str, issue: Issue) -> bool:
        log_extra = {"rule_id": rule.id, "trigger": trigger, "issue_id": issue.id}

        message = self.build_message(trigger, issue)
        if message is None:
            logger.debug("No message template for trigger, skipping rule", extra=log_extra)
            return False

        recipients = self.audience_for(trigger, issue)
        if not recipients:
            logger.debug("No recipients for automation rule", extra=log_extra)
            return False

        try:
            result = await self.fanout.send(message, recipients)
        except Exception as e:
            logger.error(
                f"Automation rule fan-out failed: {e}",
                extra={**log_extra, "error_type": type(e).__name__}
            )
            return False

        try:
            await self.rule_repo.record_trigger(rule.id)
        except Exception as e:
            logger.error(
                f"Failed to record automation rule trigger: {e}",
                extra={**log_extra, "error_type": type(e).__name__}
            )

        logger.info(
            f"Automation rule fired for {len(recipients)} recipient(s)",
            extra={
                **log_extra,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
            }
        )
        return True

    # =========================================================================
    # Events
    # =========================================================================

    @staticmethod
    def triggers_for_event(event: ChangeEvent) -> List[AutomationTrigger]:
        """Lifecycle triggers implied by one issue change event"""
        if event.kind == ChangeKind.ADDED.value:
            return [AutomationTrigger.ISSUE_CREATED]

        department = (event.document.get("assigned_department") or "").strip()
        changed = event.updated_fields

        # Every modification is evaluated against status_changed
        triggers = [AutomationTrigger.STATUS_CHANGED]

        if changed is None:
            # Replace events carry no field information
            if department:
                triggers.append(AutomationTrigger.ISSUE_ASSIGNED)
            return triggers

        if "assigned_department" in changed and department:
            triggers.append(AutomationTrigger.ISSUE_ASSIGNED)
        if "priority" in changed:
            triggers.append(AutomationTrigger.PRIORITY_CHANGED)
        return triggers

    async def handle_event(self, event: ChangeEvent) -> int:
        """Dispatch every trigger the event implies; returns rules fired"""
        triggers = self.triggers_for_event(event)
        if not triggers:
            return 0

        issue = Issue.model_validate(event.document)
        fired = 0
        for trigger in triggers:
            fired += await self.dispatch(trigger, issue)
        return fired
