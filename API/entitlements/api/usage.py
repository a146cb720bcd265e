from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import utcnow
from entitlements.core.identity import resolve_student_id
from entitlements.schemas.usage import ChapterStatusResponse, ResourceUsage, UsageStatus
from entitlements.services import catalog, subscriptions
from entitlements.services.quota_ledger import ResourceKind
from entitlements.storage.database import get_db
from entitlements.storage.ledger import quota_ledger

router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.get("/chapter-status", response_model=ChapterStatusResponse)
async def chapter_status(
    request: Request,
    chapter_id: str = Query(alias="chapterId", min_length=1),
    learning_path_id: str | None = Query(default=None, alias="learningPathId"),
    student_id: str | None = Query(default=None, alias="studentId"),
    db: AsyncSession = Depends(get_db),
):
    """Quota snapshot for the chapter. Display only: enforcement happens when a unit is consumed."""
    student_id = resolve_student_id(request, student_id)
    chapter = await catalog.get_chapter(db, chapter_id, learning_path_id)
    path_id = learning_path_id or chapter.learning_path_id
    now = utcnow()
    active = await subscriptions.resolve(db, student_id, path_id, now)
    limits = active.limits if active else None
    chat = await quota_ledger.peek(student_id, chapter_id, ResourceKind.CHAT, limits, now)
    mcq = await quota_ledger.peek(student_id, chapter_id, ResourceKind.MCQ, limits, now)
    return ChapterStatusResponse(
        chapter_id=chapter_id,
        usage=UsageStatus(
            has_subscription=active is not None,
            plan_type=active.plan_type if active else None,
            chat_usage=ResourceUsage(used=chat.used, limit=chat.limit, remaining=chat.remaining),
            mcq_usage=ResourceUsage(used=mcq.used, limit=mcq.limit, remaining=mcq.remaining),
        ),
    )
