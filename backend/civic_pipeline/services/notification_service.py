"""Notification Service - Push fan-out with audit log and in-app copies

Every fan-out attempt leaves the same trail regardless of how delivery went:
one notification log entry and one in-app notification per intended
recipient. Push delivery itself is a single batched gateway call.
"""
from typing import Any, Dict, List

from .push_gateway import PushGatewayClient
from ..config.settings import settings
from ..domain.models import AppUser, FanoutResult, NotificationLog, PushMessage
from ..repositories.document_store import DocumentStore
from ..repositories.inapp_notification_repo import InAppNotificationRepository
from ..repositories.notification_repo import NotificationLogRepository
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class NotificationFanout:
    """Service for sending one message to many users"""

    def __init__(self, store: DocumentStore, gateway: PushGatewayClient):
        self.gateway = gateway
        self.log_repo = NotificationLogRepository(store)
        self.inapp_repo = InAppNotificationRepository(store)
        self.token_prefixes = tuple(settings.push_token_prefixes_list)

    def is_valid_token(self, token: str) -> bool:
        return bool(token) and token.startswith(self.token_prefixes)

    def destinations(self, recipients: List[AppUser]) -> List[str]:
        """Push tokens of recipients who can and want to receive pushes"""
        tokens = []
        for user in recipients:
            if not user.notifications_enabled or not user.push_token:
                continue
            if self.is_valid_token(user.push_token):
                tokens.append(user.push_token)
            else:
                logger.debug(f"Ignoring unrecognized push token for user {user.id}")
        return tokens

    @staticmethod
    def _build_payload(message: PushMessage, token: str) -> Dict[str, Any]:
        return {
            "to": token,
            "sound": "default",
            "title": message.title,
            "body": message.body,
            "data": message.data,
            "priority": "high",
            "channelId": "default",
        }

    async def send(self, message: PushMessage, recipients: List[AppUser]) -> FanoutResult:
        """
        Push the message to every valid destination among the recipients.

        Acks that are not ``ok`` (or not acks at all), and destinations with no
        ack, count as failures. If the gateway call itself fails, the attempt
        is still logged as failed and mirrored in-app before the error is
        raised.
        """
        tokens = self.destinations(recipients)
        result = FanoutResult(recipient_count=len(recipients))
        gateway_error = None

        if tokens:
            try:
                acks = await self.gateway.send_batch(
                    [self._build_payload(message, token) for token in tokens]
                )
                success = sum(
                    1 for ack in acks[:len(tokens)]
                    if isinstance(ack, dict) and ack.get("status") == "ok"
                )
                result.success_count = success
                result.failure_count = len(tokens) - success
            except Exception as e:
                gateway_error = e
                result.success_count = 0
                result.failure_count = len(tokens)
        else:
            logger.info(
                "No valid push tokens among recipients, skipping gateway",
                extra={"issue_id": message.related_issue_id}
            )

        await self._write_log(message, result)
        await self.inapp_repo.create_for_users(recipients, message)

        if gateway_error is not None:
            logger.error(
                f"Push fan-out failed: {gateway_error}",
                extra={
                    "issue_id": message.related_issue_id,
                    "failure_count": result.failure_count,
                    "error_type": type(gateway_error).__name__,
                }
            )
            raise gateway_error

        logger.info(
            f"Push fan-out complete: {message.title}",
            extra={
                "issue_id": message.related_issue_id,
                "status": result.status.value,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
            }
        )
        return result

    async def _write_log(self, message: PushMessage, result: FanoutResult) -> None:
        log = NotificationLog(
            title=message.title,
            body=message.body,
            type=message.type,
            target=message.target,
            priority=message.priority,
            recipient_count=result.recipient_count,
            success_count=result.success_count,
            failure_count=result.failure_count,
            status=result.status,
            related_issue_id=message.related_issue_id,
            sent_at=utc_now(),
        )
        try:
            await self.log_repo.create_log(log)
        except Exception as e:
            logger.warning(
                f"Failed to write notification log: {e}",
                extra={"issue_id": message.related_issue_id, "error_type": type(e).__name__}
            )
