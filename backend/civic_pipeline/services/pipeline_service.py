"""Pipeline Service - Wires the issue event pipeline together

    civic_issues change stream
        added    -> debounce -> auto-assign -> duplicate check -> issue_created
        modified -> status_changed / issue_assigned / priority_changed

Writes made by the pipeline come back as change events; every step skips
work that is already done, so that loop settles after one round.
"""
from typing import Any, Dict, List

from .notification_service import NotificationFanout
from .push_gateway import PushGatewayClient
from ..config.settings import settings
from ..domain.enums import AutomationTrigger
from ..domain.models import ChangeEvent, DuplicateMatch
from ..engine.assignment_resolver import AssignmentResolver
from ..engine.automation_dispatcher import AutomationDispatcher
from ..engine.duplicate_detector import DuplicateDetector
from ..engine.rule_store import RuleStore, UserDirectory
from ..engine.watcher import CollectionWatcher
from ..repositories.collections import ISSUES
from ..repositories.document_store import DocumentStore
from ..repositories.issue_repo import IssueRepository
from ..scheduler.delayed_tasks import DelayedTaskScheduler
from ..scheduler.sweep_scheduler import SweepScheduler
from ..utils.logger import get_logger

logger = get_logger(__name__)


class IssuePipeline:
    """
    Owns every long-lived piece of the pipeline and starts/stops them as a
    unit. Also the entry point for the admin operations exposed over HTTP.
    """

    def __init__(self, store: DocumentStore, gateway: PushGatewayClient):
        self.store = store
        self.issue_repo = IssueRepository(store)

        self.rule_store = RuleStore(store)
        self.user_directory = UserDirectory(store)

        self.resolver = AssignmentResolver(self.rule_store, self.issue_repo)
        self.detector = DuplicateDetector(self.issue_repo)
        self.fanout = NotificationFanout(store, gateway)
        self.dispatcher = AutomationDispatcher(store, self.rule_store, self.user_directory, self.fanout)

        self.delayed_tasks = DelayedTaskScheduler()
        self.sweep_scheduler = SweepScheduler(self.run_bulk_auto_assign)
        self.issue_watcher = CollectionWatcher(
            store,
            ISSUES,
            self.handle_issue_event,
            max_concurrency=settings.issue_event_concurrency,
            retry_seconds=settings.watch_retry_seconds,
        )
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        if self._is_running:
            logger.warning("Issue pipeline already running")
            return

        await self.rule_store.start()
        await self.user_directory.start()
        self.issue_watcher.start()
        self.sweep_scheduler.start()
        self._is_running = True
        logger.info("Issue pipeline started")

    async def stop(self) -> None:
        if not self._is_running:
            return

        self.sweep_scheduler.stop()
        await self.issue_watcher.stop()
        await self.delayed_tasks.cancel_all()
        await self.user_directory.stop()
        await self.rule_store.stop()
        self._is_running = False
        logger.info("Issue pipeline stopped")

    async def drain(self) -> None:
        """Wait until received events and the work they scheduled are done"""
        await self.rule_store.drain()
        await self.user_directory.drain()
        await self.issue_watcher.drain()
        await self.delayed_tasks.wait_idle()

    # =========================================================================
    # Issue events
    # =========================================================================

    async def handle_issue_event(self, event: ChangeEvent) -> None:
        issue_id = event.doc_id
        if not issue_id:
            return

        if event.is_added:
            self.delayed_tasks.schedule(
                settings.new_issue_debounce_seconds,
                lambda: self.process_new_issue(issue_id),
                key=issue_id,
            )
            return

        await self.dispatcher.handle_event(event)

    async def process_new_issue(self, issue_id: str) -> None:
        """
        Route, de-duplicate and announce a freshly created issue.

        Each step runs on its own; one failing does not stop the next.
        """
        issue = await self.issue_repo.get_issue(issue_id)
        if issue is None:
            logger.warning("New issue disappeared before processing", extra={"issue_id": issue_id})
            return

        if issue.is_unassigned:
            await self.resolver.apply(issue)

        if issue.has_location:
            try:
                await self.detector.check_new_issue(issue)
            except Exception as e:
                logger.error(
                    f"Duplicate check failed: {e}",
                    extra={"issue_id": issue_id, "error_type": type(e).__name__}
                )

        try:
            latest = await self.issue_repo.get_issue(issue_id) or issue
            await self.dispatcher.dispatch(AutomationTrigger.ISSUE_CREATED, latest)
        except Exception as e:
            logger.error(
                f"issue_created automation failed: {e}",
                extra={"issue_id": issue_id, "error_type": type(e).__name__}
            )

    # =========================================================================
    # Admin operations
    # =========================================================================

    async def run_bulk_auto_assign(self) -> int:
        if not self._is_running:
            # No live mirror; read the rule table directly
            await self.rule_store.assignment_rules.refresh()
        return await self.resolver.run_bulk_auto_assign()

    async def find_duplicates(self, issue_id: str) -> List[DuplicateMatch]:
        issue = await self.issue_repo.get_issue_or_raise(issue_id)
        return await self.detector.find_duplicates(issue)

    async def clear_duplicate_flag(self, issue_id: str) -> None:
        await self.detector.clear_duplicate_flag(issue_id)

    def health(self) -> Dict[str, Any]:
        return {
            "running": self._is_running,
            "issue_events_processed": self.issue_watcher.events_processed,
            "issue_events_failed": self.issue_watcher.events_failed,
            "pending_new_issues": self.delayed_tasks.pending_count,
            "assignment_rules": len(self.rule_store.active_assignment_rules()),
            "automation_rules": len([r for r in self.rule_store.automation_rules.snapshot if r.enabled]),
            "users": len(self.user_directory.users()),
            "sweep_scheduler_running": self.sweep_scheduler.is_running,
        }
