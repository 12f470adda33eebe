"""
Pytest Configuration and Fixtures

Shared fixtures for the pipeline tests. Everything runs against the
in-memory document store and fake push gateway from tests.fakes.
"""

import pytest
import pytest_asyncio

from civic_pipeline.config.settings import settings
from civic_pipeline.engine.rule_store import RuleStore, UserDirectory
from civic_pipeline.repositories.collections import ASSIGNMENT_RULES
from civic_pipeline.repositories.issue_repo import IssueRepository

from tests.fakes import FakePushGateway, InMemoryDocumentStore


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No debounce delay, no periodic sweep, quick stream retries"""
    monkeypatch.setattr(settings, "new_issue_debounce_ms", 0)
    monkeypatch.setattr(settings, "bulk_sweep_interval_seconds", 0)
    monkeypatch.setattr(settings, "watch_retry_seconds", 0.01)
    monkeypatch.setattr(settings, "issue_event_concurrency", 1)
    return settings


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def gateway():
    return FakePushGateway()


@pytest.fixture
def issue_repo(store):
    return IssueRepository(store)


@pytest.fixture
def default_rules(store):
    """Roads and Water Leak routing rules, in that order"""
    store.seed(ASSIGNMENT_RULES, {"id": "rule-roads", "category": "Roads", "department": "Public Works", "priority": "Medium", "enabled": True})
    store.seed(ASSIGNMENT_RULES, {"id": "rule-water", "category": "Water Leak", "department": "Water & Sanitation", "priority": "High", "enabled": True})


@pytest_asyncio.fixture
async def rule_store(store):
    """Rule store loaded once from whatever the test seeded"""
    rules = RuleStore(store)
    await rules.assignment_rules.refresh()
    await rules.automation_rules.refresh()
    return rules


@pytest_asyncio.fixture
async def user_directory(store):
    users = UserDirectory(store)
    await users.refresh()
    return users
