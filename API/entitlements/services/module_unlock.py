"""
Module unlock policy.

Modules open strictly in order. Module 0 is always open. Module i > 0 opens at
the first moment when all of these hold: module i-1 is open, some chapter of
module i-1 is completed, and a subscription covering the path is active.
Evaluating that rule over the subscription history (not just the current
subscription) means a module opened under a subscription that has since expired
stays open, while nothing new opens until the student subscribes again.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import as_utc, utcnow
from entitlements.core.errors import InvalidRequestError, NotFoundError
from entitlements.core.logging import DOMAIN_ACCESS, get_domain_logger
from entitlements.services import catalog
from entitlements.services.progress import completion_times
from entitlements.services.subscriptions import (
    SubscriptionPeriod,
    has_expired,
    select_active,
    subscription_history,
)

logger = get_domain_logger(__name__, DOMAIN_ACCESS)

_BEGINNING = datetime.min.replace(tzinfo=timezone.utc)


class LockReason(str, Enum):
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_REQUIRED = "subscription_required"
    PREVIOUS_MODULE_INCOMPLETE = "previous_module_incomplete"


@dataclass(frozen=True)
class ModuleAccessState:
    module_index: int
    has_access: bool
    reason: LockReason | None = None
    unlocked_at: datetime | None = None

    @property
    def is_locked(self) -> bool:
        return not self.has_access


@dataclass(frozen=True)
class PathAccess:
    modules: list[ModuleAccessState]
    has_active_subscription: bool

    @property
    def unlocked_modules_count(self) -> int:
        return sum(1 for m in self.modules if m.has_access)

    def module(self, module_index: int) -> ModuleAccessState:
        if not 0 <= module_index < len(self.modules):
            raise NotFoundError(f"Module index out of range: {module_index}")
        return self.modules[module_index]


def _first_covered_instant(
    earliest: datetime, periods: Sequence[SubscriptionPeriod], now: datetime
) -> datetime | None:
    """Earliest t >= earliest, t <= now, at which some subscription is active."""
    candidates = []
    for period in periods:
        t = max(earliest, period.valid_from)
        if t < period.valid_until and t <= now:
            candidates.append(t)
    return min(candidates) if candidates else None


def evaluate_modules(
    module_chapters: Sequence[Sequence[str]],
    completions: dict[str, datetime],
    periods: Sequence[SubscriptionPeriod],
    now: datetime,
    learning_path_id: str | None = None,
) -> PathAccess:
    now = as_utc(now)
    active = select_active(periods, learning_path_id, now)
    if active is not None:
        locked_reason = LockReason.PREVIOUS_MODULE_INCOMPLETE
    elif has_expired(periods, now):
        locked_reason = LockReason.SUBSCRIPTION_EXPIRED
    else:
        locked_reason = LockReason.SUBSCRIPTION_REQUIRED

    states: list[ModuleAccessState] = []
    opened_at: datetime | None = None
    for index in range(len(module_chapters)):
        if index == 0:
            opened_at = _BEGINNING
        elif opened_at is not None:
            prev_done = [completions[c] for c in module_chapters[index - 1] if c in completions]
            opened_at = (
                _first_covered_instant(max(opened_at, min(prev_done)), periods, now) if prev_done else None
            )
        if opened_at is None:
            states.append(ModuleAccessState(module_index=index, has_access=False, reason=locked_reason))
        else:
            states.append(
                ModuleAccessState(
                    module_index=index,
                    has_access=True,
                    unlocked_at=opened_at if index else None,
                )
            )
    return PathAccess(modules=states, has_active_subscription=active is not None)


async def path_access(
    db: AsyncSession,
    student_id: str,
    learning_path_id: str,
    now: datetime | None = None,
) -> PathAccess:
    await catalog.get_student(db, student_id)
    modules = await catalog.module_chapters(db, learning_path_id)
    now = as_utc(now) or utcnow()
    chapter_ids = [c for chapters in modules for c in chapters]
    completions = await completion_times(db, student_id, chapter_ids)
    periods = await subscription_history(db, student_id, learning_path_id)
    return evaluate_modules(modules, completions, periods, now, learning_path_id)


async def check_module_access(
    db: AsyncSession,
    student_id: str,
    learning_path_id: str,
    *,
    module_index: int | None = None,
    chapter_id: str | None = None,
    now: datetime | None = None,
) -> tuple[ModuleAccessState, PathAccess]:
    """Access decision for one module, addressed by index or by one of its chapters."""
    if module_index is None:
        if not chapter_id:
            raise InvalidRequestError("moduleIndex or chapterId is required")
        module_index = (await catalog.get_chapter(db, chapter_id, learning_path_id)).module_index
    access = await path_access(db, student_id, learning_path_id, now)
    state = access.module(module_index)
    logger.info(
        "Module access student=%s path=%s module=%s access=%s reason=%s unlocked=%s",
        student_id,
        learning_path_id,
        module_index,
        state.has_access,
        state.reason.value if state.reason else None,
        access.unlocked_modules_count,
    )
    return state, access
