"""
Lifecycle webhooks.

After a lifecycle change has been committed, the service layer calls
``notifier.publish("investment.active", payload)``.  Delivery runs in a
background task: the HTTP request that caused the change never waits for it,
and a failed delivery is logged but never undoes the change.

Events: ``investment.pending``, ``investment.active``, ``investment.rejected``,
``investment.withdrawal_notice``, ``investment.withdrawn``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

import httpx

from investment_engine.core.config import settings
from investment_engine.core.resilience import retry_with_backoff

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Posts ``{"event", "occurred_at", "data"}`` JSON to ``url``."""

    def __init__(
        self,
        url: Optional[str],
        timeout: float = 5.0,
        max_retries: int = 2,
        client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self._client_factory = client_factory
        self._tasks: Set["asyncio.Task[bool]"] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def publish(self, event: str, data: Dict[str, Any]) -> Optional["asyncio.Task[bool]"]:
        """Schedule delivery of ``event``; returns the task, or ``None`` when disabled."""
        if not self.enabled:
            logger.debug("No webhook configured; dropping %s", event)
            return None
        body = {
            "event": event,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        task = asyncio.create_task(self._deliver(event, body))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, event: str, body: Dict[str, Any]) -> bool:
        @retry_with_backoff(
            max_retries=self.max_retries,
            base_delay=0.5,
            retryable_exceptions=(httpx.TransportError,),
        )
        async def _post() -> None:
            async with self._client_factory(timeout=self.timeout) as client:
                response = await client.post(self.url, json=body)
                response.raise_for_status()

        try:
            await _post()
        except httpx.HTTPError as exc:
            logger.error(
                "Webhook %s failed: %s: %s",
                event,
                type(exc).__name__,
                exc,
                extra={"investment_id": body["data"].get("id")},
            )
            return False
        logger.info("Webhook %s delivered", event, extra={"investment_id": body["data"].get("id")})
        return True

    async def drain(self) -> None:
        """Wait for in-flight deliveries (called at shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


notifier = NotificationDispatcher(
    url=settings.WEBHOOK_URL,
    timeout=settings.WEBHOOK_TIMEOUT,
    max_retries=settings.WEBHOOK_MAX_RETRIES,
)
