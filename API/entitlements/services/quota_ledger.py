"""
Quota ledger: per (student, chapter, resource kind) usage counters.

Counters are never reset by a job. Each row remembers the window it was counted
in; a row from an older window reads as zero and is overwritten by the next
successful consume. `try_consume` is linearizable per key: the SQL backend only
uses conditional single-row statements, the memory backend serializes each key
behind its own asyncio lock.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from entitlements.core.app_metrics import record_quota_event
from entitlements.core.clock import utcnow, window_key
from entitlements.core.logging import DOMAIN_QUOTA, get_domain_logger
from entitlements.models.entities import UsageCounter
from entitlements.storage.database import storage_guard

logger = get_domain_logger(__name__, DOMAIN_QUOTA)


class ResourceKind(str, Enum):
    CHAT = "chat"  # resets daily
    MCQ = "mcq"  # resets monthly


@dataclass(frozen=True)
class SubscriptionLimits:
    daily_chat_limit: int
    monthly_mcq_limit: int

    def limit_for(self, kind: ResourceKind) -> int:
        if ResourceKind(kind) == ResourceKind.CHAT:
            return max(0, self.daily_chat_limit)
        return max(0, self.monthly_mcq_limit)


@dataclass(frozen=True)
class QuotaSnapshot:
    used: int
    limit: int
    remaining: int


@dataclass(frozen=True)
class Consumed:
    used: int
    limit: int
    remaining: int
    ok: bool = True


@dataclass(frozen=True)
class LimitExceeded:
    limit: int
    ok: bool = False


def _limit(kind: ResourceKind, limits: SubscriptionLimits | None) -> int:
    # No subscription means metered features are disabled, not unlimited.
    return limits.limit_for(kind) if limits else 0


def _snapshot(used: int, limit: int) -> QuotaSnapshot:
    return QuotaSnapshot(used=used, limit=limit, remaining=max(0, limit - used))


class QuotaLedger(ABC):
    @abstractmethod
    async def _current_count(self, student_id: str, chapter_id: str, kind: ResourceKind, window: date) -> int:
        raise NotImplementedError

    @abstractmethod
    async def _consume(
        self, student_id: str, chapter_id: str, kind: ResourceKind, window: date, limit: int
    ) -> int | None:
        """Atomically count one unit; return the new count, or None when the limit is reached."""
        raise NotImplementedError

    @abstractmethod
    async def _release(self, student_id: str, chapter_id: str, kind: ResourceKind, window: date) -> bool:
        raise NotImplementedError

    async def peek(
        self,
        student_id: str,
        chapter_id: str,
        kind: ResourceKind,
        limits: SubscriptionLimits | None,
        now: datetime | None = None,
    ) -> QuotaSnapshot:
        kind = ResourceKind(kind)
        window = window_key(kind.value, now or utcnow())
        used = await self._current_count(student_id, chapter_id, kind, window)
        return _snapshot(used, _limit(kind, limits))

    async def try_consume(
        self,
        student_id: str,
        chapter_id: str,
        kind: ResourceKind,
        limits: SubscriptionLimits | None,
        now: datetime | None = None,
    ) -> Consumed | LimitExceeded:
        kind = ResourceKind(kind)
        limit = _limit(kind, limits)
        window = window_key(kind.value, now or utcnow())
        count = await self._consume(student_id, chapter_id, kind, window, limit) if limit > 0 else None
        if count is None:
            record_quota_event(kind.value, "limit_exceeded")
            logger.info(
                "Limit reached student=%s chapter=%s kind=%s limit=%s", student_id, chapter_id, kind.value, limit
            )
            return LimitExceeded(limit=limit)
        record_quota_event(kind.value, "consumed")
        return Consumed(used=count, limit=limit, remaining=max(0, limit - count))

    async def release(
        self,
        student_id: str,
        chapter_id: str,
        kind: ResourceKind,
        now: datetime | None = None,
    ) -> bool:
        """Give back one unit counted in the current window (downstream call failed after consuming)."""
        kind = ResourceKind(kind)
        released = await self._release(student_id, chapter_id, kind, window_key(kind.value, now or utcnow()))
        if released:
            record_quota_event(kind.value, "released")
            logger.info("Released unit student=%s chapter=%s kind=%s", student_id, chapter_id, kind.value)
        return released


class SqlQuotaLedger(QuotaLedger):
    """Durable ledger; correct across multiple service instances sharing one database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _key(student_id: str, chapter_id: str, kind: ResourceKind):
        return and_(
            UsageCounter.student_id == student_id,
            UsageCounter.chapter_id == chapter_id,
            UsageCounter.resource_kind == kind.value,
        )

    async def _current_count(self, student_id: str, chapter_id: str, kind: ResourceKind, window: date) -> int:
        async with storage_guard("quota_peek"), self._session_factory() as session:
            row = (
                await session.execute(
                    select(UsageCounter.window_start, UsageCounter.count).where(
                        self._key(student_id, chapter_id, kind)
                    )
                )
            ).first()
        if row is None or row.window_start != window:
            return 0
        return int(row.count)

    async def _bump(
        self, session: AsyncSession, student_id: str, chapter_id: str, kind: ResourceKind, window: date, limit: int
    ) -> int | None:
        key = self._key(student_id, chapter_id, kind)
        fresh = (
            update(UsageCounter)
            .where(key, UsageCounter.window_start == window, UsageCounter.count < limit)
            .values(count=UsageCounter.count + 1)
            .returning(UsageCounter.count)
            .execution_options(synchronize_session=False)
        )
        row = (await session.execute(fresh)).first()
        if row is None:
            # Lazy reset: a row from an earlier window restarts at one.
            stale = (
                update(UsageCounter)
                .where(key, UsageCounter.window_start != window)
                .values(window_start=window, count=1)
                .returning(UsageCounter.count)
                .execution_options(synchronize_session=False)
            )
            row = (await session.execute(stale)).first()
        await session.commit()
        return int(row[0]) if row is not None else None

    async def _consume(
        self, student_id: str, chapter_id: str, kind: ResourceKind, window: date, limit: int
    ) -> int | None:
        async with storage_guard("quota_consume"), self._session_factory() as session:
            count = await self._bump(session, student_id, chapter_id, kind, window, limit)
            if count is not None:
                return count
            existing = (
                await session.execute(select(UsageCounter.id).where(self._key(student_id, chapter_id, kind)))
            ).first()
            if existing is not None:
                # Row is in the current window and already at the limit.
                return None
            try:
                await session.execute(
                    insert(UsageCounter).values(
                        student_id=student_id,
                        chapter_id=chapter_id,
                        resource_kind=kind.value,
                        window_start=window,
                        count=1,
                    )
                )
                await session.commit()
                return 1
            except IntegrityError:
                # Another request created the row first; retry against it once.
                await session.rollback()
            return await self._bump(session, student_id, chapter_id, kind, window, limit)

    async def _release(self, student_id: str, chapter_id: str, kind: ResourceKind, window: date) -> bool:
        async with storage_guard("quota_release"), self._session_factory() as session:
            result = await session.execute(
                update(UsageCounter)
                .where(
                    self._key(student_id, chapter_id, kind),
                    UsageCounter.window_start == window,
                    UsageCounter.count > 0,
                )
                .values(count=UsageCounter.count - 1)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return bool(result.rowcount)


class InMemoryQuotaLedger(QuotaLedger):
    """Process-local ledger. Only correct for a single-instance deployment."""

    def __init__(self):
        self._rows: dict[tuple[str, str, str], tuple[date, int]] = {}
        self._locks: defaultdict[tuple[str, str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _current_count(self, student_id: str, chapter_id: str, kind: ResourceKind, window: date) -> int:
        row = self._rows.get((student_id, chapter_id, kind.value))
        if row is None or row[0] != window:
            return 0
        return row[1]

    async def _consume(
        self, student_id: str, chapter_id: str, kind: ResourceKind, window: date, limit: int
    ) -> int | None:
        key = (student_id, chapter_id, kind.value)
        async with self._locks[key]:
            used = await self._current_count(student_id, chapter_id, kind, window)
            if used >= limit:
                return None
            self._rows[key] = (window, used + 1)
            return used + 1

    async def _release(self, student_id: str, chapter_id: str, kind: ResourceKind, window: date) -> bool:
        key = (student_id, chapter_id, kind.value)
        async with self._locks[key]:
            used = await self._current_count(student_id, chapter_id, kind, window)
            if used <= 0:
                return False
            self._rows[key] = (window, used - 1)
            return True


def build_ledger(backend: str, session_factory: async_sessionmaker[AsyncSession]) -> QuotaLedger:
    if backend == "memory":
        return InMemoryQuotaLedger()
    return SqlQuotaLedger(session_factory)
