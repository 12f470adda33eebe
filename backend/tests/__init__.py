"""
Test Suite

This module contains all tests for the civic issue pipeline backend.

Structure:
    tests/
    ├── __init__.py                    # This file
    ├── conftest.py                    # Pytest fixtures
    ├── fakes.py                       # In-memory document store and push gateway
    ├── test_scoring.py                # Duplicate scoring
    ├── test_assignment_resolver.py    # Category routing
    ├── test_duplicate_detector.py     # Duplicate search and flagging
    ├── test_notification_fanout.py    # Push fan-out accounting
    ├── test_push_gateway.py           # HTTP gateway client
    ├── test_automation_dispatcher.py  # Automation rules
    ├── test_rule_store.py             # Rule mirrors and watchers
    ├── test_delayed_tasks.py          # Debounce and sweep schedulers
    ├── test_pipeline.py               # End-to-end pipeline
    └── test_api.py                    # HTTP endpoints

To run tests:
    pytest
    pytest backend/tests/test_pipeline.py
"""
