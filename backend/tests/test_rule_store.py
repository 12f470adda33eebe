import asyncio

import pytest

from civic_pipeline.domain.errors import DocumentStoreError
from civic_pipeline.engine.rule_store import RuleStore
from civic_pipeline.engine.watcher import CollectionWatcher
from civic_pipeline.repositories.collections import ASSIGNMENT_RULES, AUTOMATION_RULES, ISSUES

from tests.fakes import settle


@pytest.mark.asyncio
async def test_refresh_skips_invalid_documents(store):
    store.seed(ASSIGNMENT_RULES, {"id": "good", "category": "Roads", "department": "Public Works"})
    store.seed(ASSIGNMENT_RULES, {"id": "bad", "category": "Roads"})
    rules = RuleStore(store)

    assert await rules.assignment_rules.refresh() is True
    assert [rule.id for rule in rules.assignment_rules.snapshot] == ["good"]


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_snapshot(store):
    store.seed(ASSIGNMENT_RULES, {"id": "r1", "category": "Roads", "department": "Public Works"})
    rules = RuleStore(store)
    await rules.assignment_rules.refresh()

    store.failures["query"] = DocumentStoreError("store unavailable")
    assert await rules.assignment_rules.refresh() is False
    assert [rule.department for rule in rules.active_assignment_rules()] == ["Public Works"]


@pytest.mark.asyncio
async def test_active_automation_rules_filters_by_trigger_and_enabled(store):
    store.seed(AUTOMATION_RULES, {"id": "a", "trigger": "issue_created", "enabled": True})
    store.seed(AUTOMATION_RULES, {"id": "b", "trigger": "issue_created", "enabled": False})
    store.seed(AUTOMATION_RULES, {"id": "c", "trigger": "status_changed", "enabled": True})
    rules = RuleStore(store)
    await rules.automation_rules.refresh()

    assert [r.id for r in rules.active_automation_rules("issue_created")] == ["a"]
    assert [r.id for r in rules.active_automation_rules("status_changed")] == ["c"]


@pytest.mark.asyncio
async def test_mirror_follows_live_changes(store):
    store.seed(ASSIGNMENT_RULES, {"id": "r1", "category": "Roads", "department": "Public Works"})
    rules = RuleStore(store)
    await rules.start()
    try:
        await store.wait_for_subscribers(ASSIGNMENT_RULES)
        assert len(rules.active_assignment_rules()) == 1

        await store.create(ASSIGNMENT_RULES, {"id": "r2", "category": "Pollution", "department": "Environment"})
        await store.patch(ASSIGNMENT_RULES, "r1", {"enabled": False})
        await settle(store, rules)

        assert [r.id for r in rules.active_assignment_rules()] == ["r2"]
    finally:
        await rules.stop()

    assert store.subscriber_count(ASSIGNMENT_RULES) == 0


@pytest.mark.asyncio
async def test_watcher_survives_handler_errors(store):
    seen = []

    async def handler(event):
        seen.append(event.doc_id)
        if event.doc_id == "boom":
            raise RuntimeError("handler bug")

    watcher = CollectionWatcher(store, ISSUES, handler, retry_seconds=0.01)
    watcher.start()
    try:
        await store.wait_for_subscribers(ISSUES)
        await store.create(ISSUES, {"id": "boom"})
        await store.create(ISSUES, {"id": "fine"})
        await settle(store, watcher)
    finally:
        await watcher.stop()

    assert seen == ["boom", "fine"]
    assert watcher.events_failed == 1
    assert watcher.events_processed == 1


@pytest.mark.asyncio
async def test_watcher_resubscribes_after_stream_failure(store):
    seen = []
    reconnects = []

    async def handler(event):
        seen.append(event.doc_id)

    async def on_reconnect():
        reconnects.append(1)

    store.failures["subscribe"] = DocumentStoreError("change stream closed")
    watcher = CollectionWatcher(store, ISSUES, handler, retry_seconds=0.01, on_reconnect=on_reconnect)
    watcher.start()
    try:
        await asyncio.sleep(0.03)
        del store.failures["subscribe"]
        await store.wait_for_subscribers(ISSUES)
        await store.create(ISSUES, {"id": "after-retry"})
        await settle(store, watcher)
    finally:
        await watcher.stop()

    assert seen == ["after-retry"]
    assert len(reconnects) >= 1


@pytest.mark.asyncio
async def test_mirror_catches_up_on_edits_made_while_stream_was_down(store):
    store.seed(ASSIGNMENT_RULES, {"id": "r1", "category": "Roads", "department": "Public Works"})
    store.failures[f"subscribe:{ASSIGNMENT_RULES}"] = DocumentStoreError("change stream closed")
    rules = RuleStore(store)
    await rules.assignment_rules.start()
    try:
        await asyncio.sleep(0.03)
        # Written during the outage, so no change event reaches the mirror
        store.seed(ASSIGNMENT_RULES, {"id": "r2", "category": "Pollution", "department": "Environment"})
        del store.failures[f"subscribe:{ASSIGNMENT_RULES}"]
        await store.wait_for_subscribers(ASSIGNMENT_RULES)

        assert [r.id for r in rules.active_assignment_rules()] == ["r1", "r2"]
    finally:
        await rules.assignment_rules.stop()
