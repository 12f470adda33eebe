"""Pipeline Engine - Rules, scoring and event reactions"""
from .rule_store import RuleStore, UserDirectory
from .assignment_resolver import AssignmentResolver
from .duplicate_detector import DuplicateDetector
from .automation_dispatcher import AutomationDispatcher
from .watcher import CollectionWatcher

__all__ = [
    "RuleStore",
    "UserDirectory",
    "AssignmentResolver",
    "DuplicateDetector",
    "AutomationDispatcher",
    "CollectionWatcher",
]
