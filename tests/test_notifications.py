"""
Unit tests for webhook delivery.

Deliveries go through ``httpx.MockTransport`` so no network is touched.
"""

from functools import partial
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from investment_engine.services.notification_service import NotificationDispatcher

URL = "http://hooks.test/lifecycle"


def _dispatcher(handler, max_retries=0) -> NotificationDispatcher:
    factory = partial(httpx.AsyncClient, transport=httpx.MockTransport(handler))
    return NotificationDispatcher(URL, timeout=1.0, max_retries=max_retries, client_factory=factory)


class TestPublish:
    def test_disabled_without_url(self):
        dispatcher = NotificationDispatcher(None)
        assert not dispatcher.enabled
        assert dispatcher.publish("investment.active", {"id": 1}) is None

    @pytest.mark.asyncio
    async def test_delivers_event_body(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(204)

        dispatcher = _dispatcher(handler)
        task = dispatcher.publish("investment.active", {"id": 12, "status": "active"})

        assert await task is True
        [request] = received
        body = httpx.Response(200, content=request.content).json()
        assert str(request.url) == URL
        assert body["event"] == "investment.active"
        assert body["data"] == {"id": 12, "status": "active"}
        assert "occurred_at" in body

    @pytest.mark.asyncio
    async def test_http_error_is_logged_not_raised(self, caplog):
        dispatcher = _dispatcher(lambda request: httpx.Response(500))

        delivered = await dispatcher.publish("investment.withdrawn", {"id": 12})

        assert delivered is False
        assert "Webhook investment.withdrawn failed" in caplog.text

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200)

        dispatcher = _dispatcher(handler, max_retries=2)
        with patch("investment_engine.core.resilience.asyncio.sleep", new_callable=AsyncMock):
            assert await dispatcher.publish("investment.pending", {"id": 12}) is True
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_drain_waits_for_deliveries(self):
        dispatcher = _dispatcher(lambda request: httpx.Response(200))
        task = dispatcher.publish("investment.rejected", {"id": 12})

        await dispatcher.drain()

        assert task.done()
