"""
Subscription resolver.

Subscriptions are written by the payment collaborator; here they are only read
(plus `record_subscription`, which stores the effect of a verified payment).
A row is active while now is in [valid_from, valid_until). Path-bound rows win
over global rows (learning_path_id is null); within a group the latest start
wins. Limits are never summed across rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import as_utc, utcnow
from entitlements.core.errors import InvalidRequestError
from entitlements.core.logging import DOMAIN_SUBSCRIPTIONS, get_domain_logger
from entitlements.core.settings import settings
from entitlements.models.entities import Subscription
from entitlements.services import catalog
from entitlements.services.plans import plan_for_amount
from entitlements.services.quota_ledger import SubscriptionLimits
from entitlements.storage.database import storage_guard

logger = get_domain_logger(__name__, DOMAIN_SUBSCRIPTIONS)


@dataclass(frozen=True)
class SubscriptionPeriod:
    subscription_id: str
    learning_path_id: str | None
    plan_type: str
    plan_amount: int
    daily_chat_limit: int
    monthly_mcq_limit: int
    valid_from: datetime
    valid_until: datetime

    @classmethod
    def from_row(cls, row: Subscription) -> "SubscriptionPeriod":
        return cls(
            subscription_id=row.id,
            learning_path_id=row.learning_path_id,
            plan_type=row.plan_type,
            plan_amount=row.plan_amount,
            daily_chat_limit=row.daily_chat_limit,
            monthly_mcq_limit=row.monthly_mcq_limit,
            valid_from=as_utc(row.valid_from),
            valid_until=as_utc(row.valid_until),
        )

    @property
    def limits(self) -> SubscriptionLimits:
        return SubscriptionLimits(
            daily_chat_limit=self.daily_chat_limit,
            monthly_mcq_limit=self.monthly_mcq_limit,
        )

    def is_active(self, now: datetime) -> bool:
        return self.valid_from <= as_utc(now) < self.valid_until


def select_active(
    periods: Iterable[SubscriptionPeriod], learning_path_id: str | None, now: datetime
) -> SubscriptionPeriod | None:
    active = [p for p in periods if p.is_active(now)]
    bound = [p for p in active if learning_path_id and p.learning_path_id == learning_path_id]
    pool = bound or [p for p in active if p.learning_path_id is None]
    if not pool:
        return None
    return max(pool, key=lambda p: p.valid_from)


def has_expired(periods: Iterable[SubscriptionPeriod], now: datetime) -> bool:
    now = as_utc(now)
    return any(p.valid_until <= now for p in periods)


async def subscription_history(
    db: AsyncSession, student_id: str, learning_path_id: str | None
) -> list[SubscriptionPeriod]:
    """Every subscription that can cover this student on this path: bound to it, or global."""
    path_filter = Subscription.learning_path_id.is_(None)
    if learning_path_id:
        path_filter = or_(path_filter, Subscription.learning_path_id == learning_path_id)
    async with storage_guard("subscription_history"):
        rows = (
            await db.execute(
                select(Subscription)
                .where(Subscription.student_id == student_id, path_filter)
                .order_by(Subscription.valid_from)
            )
        ).scalars().all()
    return [SubscriptionPeriod.from_row(row) for row in rows]


async def resolve(
    db: AsyncSession,
    student_id: str,
    learning_path_id: str | None,
    now: datetime | None = None,
) -> SubscriptionPeriod | None:
    """Active subscription for the pair, or None (metered features disabled)."""
    await catalog.get_student(db, student_id)
    if learning_path_id:
        await catalog.get_learning_path(db, learning_path_id)
    now = now or utcnow()
    periods = await subscription_history(db, student_id, learning_path_id)
    active = select_active(periods, learning_path_id, now)
    overlapping = [p for p in periods if p.is_active(now) and p.learning_path_id == learning_path_id]
    if len(overlapping) > 1:
        logger.warning(
            "Overlapping active subscriptions student=%s path=%s count=%s; using %s",
            student_id,
            learning_path_id,
            len(overlapping),
            active.subscription_id if active else None,
        )
    return active


async def record_subscription(
    db: AsyncSession,
    *,
    student_id: str,
    learning_path_id: str | None,
    plan_amount: int,
    valid_from: datetime | None = None,
    duration_days: int | None = None,
) -> SubscriptionPeriod:
    await catalog.get_student(db, student_id)
    if learning_path_id:
        await catalog.get_learning_path(db, learning_path_id)
    days = duration_days if duration_days is not None else settings.default_subscription_days
    if days <= 0:
        raise InvalidRequestError("Subscription duration must be at least one day")
    plan = plan_for_amount(plan_amount)
    start = as_utc(valid_from) or utcnow()
    row = Subscription(
        student_id=student_id,
        learning_path_id=learning_path_id,
        plan_type=plan.plan_type,
        plan_amount=plan.plan_amount,
        daily_chat_limit=plan.daily_chat_limit,
        monthly_mcq_limit=plan.monthly_mcq_limit,
        valid_from=start,
        valid_until=start + timedelta(days=days),
    )
    async with storage_guard("record_subscription"):
        db.add(row)
        await db.commit()
    logger.info(
        "Recorded %s subscription student=%s path=%s until=%s",
        plan.plan_type,
        student_id,
        learning_path_id,
        row.valid_until.isoformat(),
    )
    return SubscriptionPeriod.from_row(row)
