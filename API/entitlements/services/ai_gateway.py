"""
HTTP clients for the downstream AI services (tutor chat, MCQ generation).

Both are opaque webhooks. Calls go through a per-service circuit breaker and
retry transport errors with backoff; any failure is surfaced as UnavailableError
so the caller can hand the consumed quota unit back.
"""
from __future__ import annotations

import httpx

from entitlements.core.errors import UnavailableError
from entitlements.core.logging import DOMAIN_GATEWAY, get_domain_logger
from entitlements.core.resilience import get_breaker, retry_with_backoff
from entitlements.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_GATEWAY)


class DownstreamService:
    service_name: str = "downstream"

    def _url(self) -> str:
        raise NotImplementedError

    async def _post(self, payload: dict) -> dict | list:
        breaker = get_breaker(f"ai:{self.service_name}")
        if not breaker.can_execute():
            raise UnavailableError(f"{self.service_name} service temporarily disabled", details={"reason": "circuit_open"})

        async def _call() -> dict | list:
            async with httpx.AsyncClient(timeout=settings.downstream_timeout_seconds) as client:
                response = await client.post(self._url(), json=payload)
                response.raise_for_status()
                if not response.content.strip():
                    raise UnavailableError(f"Empty response from {self.service_name} service")
                return response.json()

        try:
            data = await retry_with_backoff(_call, max_retries=settings.downstream_max_retries)
        except UnavailableError:
            breaker.record_failure()
            raise
        except (httpx.HTTPError, ValueError) as exc:
            breaker.record_failure()
            logger.warning("%s call failed: %s", self.service_name, exc)
            raise UnavailableError(f"{self.service_name} service unavailable") from exc
        breaker.record_success()
        return data


class ChatService(DownstreamService):
    service_name = "chat"

    def _url(self) -> str:
        return settings.chat_service_url

    async def ask(self, payload: dict) -> str:
        data = await self._post(payload)
        if isinstance(data, list) and data:
            data = data[0]
        if isinstance(data, dict):
            for key in ("response", "output", "text", "message"):
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    return value
        if isinstance(data, str) and data.strip():
            return data
        raise UnavailableError("Chat service returned no answer")


class McqService(DownstreamService):
    service_name = "mcq"

    def _url(self) -> str:
        return settings.mcq_service_url

    async def generate(self, payload: dict) -> list[dict]:
        data = await self._post(payload)
        if isinstance(data, dict):
            data = data.get("questions", data.get("output", []))
        if not isinstance(data, list) or not data:
            raise UnavailableError("MCQ service returned no questions")
        return [q for q in data if isinstance(q, dict)]


chat_service = ChatService()
mcq_service = McqService()
