import pytest

from civic_pipeline.domain.enums import AutomationTrigger, ChangeKind
from civic_pipeline.domain.models import ChangeEvent, Issue
from civic_pipeline.engine.automation_dispatcher import AutomationDispatcher
from civic_pipeline.repositories.collections import AUTOMATION_RULES, NOTIFICATION_LOGS, USERS
from civic_pipeline.services.notification_service import NotificationFanout

from tests.fakes import FakePushGateway, issue_doc, user_doc


@pytest.fixture
def users(store):
    store.seed(USERS, user_doc("admin-1", role="admin", token="ExponentPushToken[admin1]"))
    store.seed(USERS, user_doc("admin-2", role="admin", token=None))
    store.seed(USERS, user_doc("head-1", role="department_head", token="ExponentPushToken[head1]"))
    store.seed(USERS, user_doc("citizen-1", role="citizen", token="ExponentPushToken[citizen1]"))
    store.seed(USERS, user_doc("citizen-2", role="citizen", token="ExponentPushToken[citizen2]"))


def seed_rule(store, rule_id: str, trigger: str, enabled: bool = True) -> None:
    store.seed(AUTOMATION_RULES, {
        "id": rule_id,
        "trigger": trigger,
        "condition": "",
        "template_id": "",
        "enabled": enabled,
        "description": f"{trigger} rule",
        "times_triggered": 0,
    })


async def make_dispatcher(store, rule_store, user_directory, gateway) -> AutomationDispatcher:
    await rule_store.automation_rules.refresh()
    await user_directory.refresh()
    return AutomationDispatcher(store, rule_store, user_directory, NotificationFanout(store, gateway))


def make_issue(**overrides) -> Issue:
    return Issue.model_validate({"id": "issue-1", **issue_doc(**overrides)})


def modified(updated_fields, **overrides) -> ChangeEvent:
    return ChangeEvent(
        kind=ChangeKind.MODIFIED,
        document={"id": "issue-1", **issue_doc(**overrides)},
        updated_fields=frozenset(updated_fields) if updated_fields is not None else None,
    )


# =============================================================================
# Trigger derivation
# =============================================================================

def test_added_event_means_issue_created():
    event = ChangeEvent(kind=ChangeKind.ADDED, document={"id": "issue-1", **issue_doc()})
    assert AutomationDispatcher.triggers_for_event(event) == [AutomationTrigger.ISSUE_CREATED]


def test_triggers_follow_updated_fields():
    assert AutomationDispatcher.triggers_for_event(
        modified({"status", "last_updated"}, status="Resolved")
    ) == [AutomationTrigger.STATUS_CHANGED]

    assert AutomationDispatcher.triggers_for_event(
        modified({"assigned_department", "last_updated"}, assigned_department="Public Works")
    ) == [AutomationTrigger.STATUS_CHANGED, AutomationTrigger.ISSUE_ASSIGNED]

    assert AutomationDispatcher.triggers_for_event(
        modified({"assigned_department"}, assigned_department="")
    ) == [AutomationTrigger.STATUS_CHANGED]

    assert AutomationDispatcher.triggers_for_event(
        modified({"status", "priority"})
    ) == [AutomationTrigger.STATUS_CHANGED, AutomationTrigger.PRIORITY_CHANGED]

    assert AutomationDispatcher.triggers_for_event(
        modified({"duplicate_of_id", "duplicate_score", "last_updated"})
    ) == [AutomationTrigger.STATUS_CHANGED]

    assert AutomationDispatcher.triggers_for_event(
        modified({"description", "last_updated"})
    ) == [AutomationTrigger.STATUS_CHANGED]


def test_triggers_without_field_information():
    assert AutomationDispatcher.triggers_for_event(
        modified(None, assigned_department="Electrical")
    ) == [AutomationTrigger.STATUS_CHANGED, AutomationTrigger.ISSUE_ASSIGNED]

    assert AutomationDispatcher.triggers_for_event(
        modified(None, assigned_department="")
    ) == [AutomationTrigger.STATUS_CHANGED]


# =============================================================================
# Dispatch
# =============================================================================

@pytest.mark.asyncio
async def test_issue_created_notifies_admins_and_counts_trigger(store, users, rule_store, user_directory, gateway):
    seed_rule(store, "rule-created", "issue_created")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    fired = await dispatcher.dispatch(AutomationTrigger.ISSUE_CREATED, make_issue(priority="High"))

    assert fired == 1
    assert [m["to"] for m in gateway.sent_messages] == ["ExponentPushToken[admin1]"]
    assert gateway.sent_messages[0]["title"] == "New Issue Reported"
    assert gateway.sent_messages[0]["body"] == '"Pothole on main road" - Roads (High)'

    rule = store.doc(AUTOMATION_RULES, "rule-created")
    assert rule["times_triggered"] == 1
    assert rule["last_triggered"] is not None


@pytest.mark.asyncio
async def test_status_changed_notifies_only_the_reporter(store, users, rule_store, user_directory, gateway):
    seed_rule(store, "rule-status", "status_changed")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    await dispatcher.dispatch(AutomationTrigger.STATUS_CHANGED, make_issue(status="In Progress"))

    assert [m["to"] for m in gateway.sent_messages] == ["ExponentPushToken[citizen1]"]
    assert gateway.sent_messages[0]["body"] == '"Pothole on main road" is now "In Progress"'


@pytest.mark.asyncio
async def test_issue_assigned_notifies_department_heads(store, users, rule_store, user_directory, gateway):
    seed_rule(store, "rule-assigned", "issue_assigned")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    await dispatcher.dispatch(AutomationTrigger.ISSUE_ASSIGNED, make_issue(assigned_department="Public Works"))

    assert [m["to"] for m in gateway.sent_messages] == ["ExponentPushToken[head1]"]
    assert gateway.sent_messages[0]["title"] == "Issue Assigned to Your Department"
    assert gateway.sent_messages[0]["body"] == '"Pothole on main road" assigned to Public Works'


@pytest.mark.asyncio
async def test_priority_changed_message(store, users, rule_store, user_directory, gateway):
    seed_rule(store, "rule-priority", "priority_changed")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    await dispatcher.dispatch(AutomationTrigger.PRIORITY_CHANGED, make_issue(priority="Critical"))

    assert gateway.sent_messages[0]["title"] == "Issue Priority Changed"
    assert gateway.sent_messages[0]["body"] == '"Pothole on main road" priority set to Critical'


@pytest.mark.asyncio
async def test_failed_fanout_does_not_count_and_other_rules_still_run(store, users, rule_store, user_directory):
    seed_rule(store, "rule-a", "issue_created")
    seed_rule(store, "rule-b", "issue_created")
    gateway = FakePushGateway(fail_times=1)
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    fired = await dispatcher.dispatch(AutomationTrigger.ISSUE_CREATED, make_issue())

    assert fired == 1
    assert store.doc(AUTOMATION_RULES, "rule-a")["times_triggered"] == 0
    assert store.doc(AUTOMATION_RULES, "rule-b")["times_triggered"] == 1
    assert [log["status"] for log in store.docs(NOTIFICATION_LOGS)] == ["failed", "sent"]


@pytest.mark.asyncio
async def test_disabled_and_template_less_rules_are_skipped(store, users, rule_store, user_directory, gateway):
    seed_rule(store, "rule-off", "issue_created", enabled=False)
    seed_rule(store, "rule-comment", "comment_added")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    assert await dispatcher.dispatch(AutomationTrigger.ISSUE_CREATED, make_issue()) == 0
    assert await dispatcher.dispatch(AutomationTrigger.COMMENT_ADDED, make_issue()) == 0
    assert gateway.batches == []
    assert store.doc(AUTOMATION_RULES, "rule-comment")["times_triggered"] == 0


@pytest.mark.asyncio
async def test_empty_audience_skips_rule(store, rule_store, user_directory, gateway):
    store.seed(USERS, user_doc("citizen-9", role="citizen"))
    seed_rule(store, "rule-created", "issue_created")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    assert await dispatcher.dispatch(AutomationTrigger.ISSUE_CREATED, make_issue()) == 0
    assert gateway.batches == []
    assert store.docs(NOTIFICATION_LOGS) == []
    assert store.doc(AUTOMATION_RULES, "rule-created")["times_triggered"] == 0


@pytest.mark.asyncio
async def test_handle_event_dispatches_every_implied_trigger(store, users, rule_store, user_directory, gateway):
    seed_rule(store, "rule-status", "status_changed")
    seed_rule(store, "rule-priority", "priority_changed")
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)

    fired = await dispatcher.handle_event(modified({"status", "priority"}, status="Resolved", priority="Low"))

    assert fired == 2
    assert len(gateway.batches) == 2


@pytest.mark.asyncio
async def test_repeated_assignment_event_counts_only_successful_fanouts(store, users, rule_store, user_directory):
    seed_rule(store, "rule-assigned", "issue_assigned")
    gateway = FakePushGateway(fail_times=1)
    dispatcher = await make_dispatcher(store, rule_store, user_directory, gateway)
    event = modified({"assigned_department", "last_updated"}, assigned_department="Public Works")

    assert await dispatcher.handle_event(event) == 0
    assert store.doc(AUTOMATION_RULES, "rule-assigned")["times_triggered"] == 0

    assert await dispatcher.handle_event(event) == 1
    assert store.doc(AUTOMATION_RULES, "rule-assigned")["times_triggered"] == 1

    # Both attempts reached the gateway and both were logged
    assert len(gateway.batches) == 2
    assert [log["status"] for log in store.docs(NOTIFICATION_LOGS)] == ["failed", "sent"]
