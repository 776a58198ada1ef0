"""Tests for the retrying HTTP helper."""

from __future__ import annotations

import functools
from unittest.mock import AsyncMock

import httpx
import pytest

from reportflow.common.resilience import retry_async
from reportflow.utils import http as http_module
from reportflow.utils.http import HttpClient, HttpError


@pytest.fixture
def no_sleep(monkeypatch) -> AsyncMock:
    sleep = AsyncMock()
    monkeypatch.setattr(http_module, "retry_async", functools.partial(retry_async, sleep=sleep))
    return sleep


def _transport(*responses):
    """Transport replaying ``responses``; exceptions are raised."""
    seen: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    transport = httpx.MockTransport(handler)
    transport.seen = seen  # type: ignore[attr-defined]
    return transport


class TestFetchWithRetry:
    @pytest.mark.asyncio
    async def test_success(self, no_sleep):
        transport = _transport(httpx.Response(200, json={"ok": True}))

        response = await HttpClient.fetch_with_retry(
            "https://api.example.com/data", headers={"X-Key": "k"}, transport=transport
        )

        assert response.json() == {"ok": True}
        request = transport.seen[0]
        assert request.headers["User-Agent"] == "Report-Framework/1.0"
        assert request.headers["X-Key"] == "k"
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_errors_retried_with_backoff(self, no_sleep):
        transport = _transport(
            httpx.Response(503),
            httpx.ConnectError("refused"),
            httpx.Response(200, text="done"),
        )

        response = await HttpClient.fetch_with_retry("https://x.test/", transport=transport)

        assert response.text == "done"
        assert [call.args[0] for call in no_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_client_errors_returned(self, no_sleep):
        transport = _transport(httpx.Response(404))

        response = await HttpClient.fetch_with_retry("https://x.test/", transport=transport)

        assert response.status_code == 404
        assert len(transport.seen) == 1

    @pytest.mark.asyncio
    async def test_exhausted(self, no_sleep):
        transport = _transport(httpx.Response(500), httpx.Response(502))

        with pytest.raises(HttpError, match="Failed after 2 attempts: HTTP 502") as exc_info:
            await HttpClient.fetch_with_retry("https://x.test/", retries=2, transport=transport)

        assert exc_info.value.attempts == 2

    @pytest.mark.asyncio
    async def test_body_only_sent_for_non_get(self, no_sleep):
        transport = _transport(httpx.Response(200), httpx.Response(201))

        await HttpClient.fetch_with_retry("https://x.test/", body=b"ignored", transport=transport)
        await HttpClient.fetch_with_retry(
            "https://x.test/", method="post", body=b'{"a":1}', transport=transport
        )

        assert transport.seen[0].content == b""
        assert transport.seen[1].method == "POST"
        assert transport.seen[1].content == b'{"a":1}'
