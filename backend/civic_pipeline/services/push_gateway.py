"""Push Gateway Client - Batched delivery through the Expo push API"""
from typing import Any, Dict, List, Optional

import httpx

from ..config.settings import settings
from ..domain.errors import PushGatewayError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PushGatewayClient:
    """
    Post one batch of push messages and return the per-message acks.

    Acks come back in request order, e.g. ``{"status": "ok"}`` or
    ``{"status": "error", "message": ...}``. Anything short of a 2xx response
    with a readable body raises PushGatewayError.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.push_gateway_url
        self.timeout = settings.push_gateway_timeout_seconds if timeout is None else timeout
        self.access_token = settings.push_gateway_access_token if access_token is None else access_token
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send_batch(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not messages:
            return []

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, headers=self._headers(), json=messages)
        except httpx.HTTPError as e:
            raise PushGatewayError(
                f"Push gateway request failed: {e}",
                details={"url": self.url, "batch_size": len(messages)}
            ) from e

        if not response.is_success:
            raise PushGatewayError(
                f"Push gateway error: {response.status_code}",
                details={"response": response.text, "batch_size": len(messages)}
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise PushGatewayError(
                "Push gateway returned an unreadable body",
                details={"response": response.text}
            ) from e

        acks = payload.get("data") if isinstance(payload, dict) else None
        # A single-message batch may be acknowledged with a bare object
        if isinstance(acks, dict):
            acks = [acks]
        if not isinstance(acks, list):
            raise PushGatewayError(
                "Push gateway response has no ack list",
                details={"response": response.text, "batch_size": len(messages)}
            )

        logger.debug(f"Push gateway acknowledged {len(acks)}/{len(messages)} messages")
        return acks
