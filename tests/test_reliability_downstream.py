from __future__ import annotations

import httpx
import pytest

from entitlements.core.errors import UnavailableError
from entitlements.core.resilience import CircuitState, get_breaker, reset_breakers, retry_with_backoff
from entitlements.core.settings import settings
from entitlements.services.ai_gateway import ChatService


@pytest.mark.asyncio
async def test_retry_with_backoff_recovers_from_transport_error():
    attempts = {"n": 0}

    async def flaky():
        attempts["n"] += 1
        if attempts["n"] < 2:
            raise httpx.ConnectError("boom")
        return "ok"

    assert await retry_with_backoff(flaky, max_retries=2, base_delay_seconds=0.0) == "ok"
    assert attempts["n"] == 2


@pytest.mark.asyncio
async def test_chat_service_failures_open_breaker(monkeypatch):
    reset_breakers()
    service = ChatService()

    async def failing_post(self, url, json=None):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(httpx.AsyncClient, "post", failing_post)
    monkeypatch.setattr(settings, "downstream_max_retries", 0)

    breaker = get_breaker("ai:chat")
    for _ in range(breaker.failure_threshold):
        with pytest.raises(UnavailableError):
            await service.ask({"query": "hi"})
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(UnavailableError) as exc:
        await service.ask({"query": "hi"})
    assert exc.value.details == {"reason": "circuit_open"}
    reset_breakers()


@pytest.mark.asyncio
async def test_chat_service_reads_common_answer_keys(monkeypatch):
    reset_breakers()
    service = ChatService()

    async def fake_post(self, payload):
        return [{"output": "Try factoring first."}]

    monkeypatch.setattr(ChatService, "_post", fake_post)
    assert await service.ask({"query": "hi"}) == "Try factoring first."
