from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import utcnow
from entitlements.core.identity import resolve_student_id
from entitlements.core.logging import DOMAIN_GATEWAY, get_domain_logger
from entitlements.schemas.ai import ChatRequest, ChatResponse
from entitlements.services import catalog, subscriptions
from entitlements.services.ai_gateway import chat_service
from entitlements.services.quota_ledger import LimitExceeded, ResourceKind
from entitlements.storage.database import get_db
from entitlements.storage.ledger import quota_ledger

logger = get_domain_logger(__name__, DOMAIN_GATEWAY)

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Forward one tutor question to the chat service.

    The daily chat unit is counted before the call and handed back if the
    service fails.
    """
    student_id = resolve_student_id(request, payload.student_unique_id)
    chapter = await catalog.get_chapter(db, payload.chapter_id, payload.learning_path_id)
    now = utcnow()
    active = await subscriptions.resolve(db, student_id, chapter.learning_path_id, now)
    outcome = await quota_ledger.try_consume(
        student_id,
        payload.chapter_id,
        ResourceKind.CHAT,
        active.limits if active else None,
        now,
    )
    if isinstance(outcome, LimitExceeded):
        message = (
            f"Daily chat limit of {outcome.limit} reached for this chapter"
            if active
            else "An active subscription is required to chat about this chapter"
        )
        return ChatResponse(
            success=False,
            limit_reached=True,
            message=message,
            limit=outcome.limit,
            remaining=0,
            chapter_id=payload.chapter_id,
        )

    body = {
        "query": payload.text,
        "studentData": payload.student_data,
        "studentUniqueId": student_id,
        "sessionId": payload.session_id,
        "chapterId": payload.chapter_id,
        "learningPathId": chapter.learning_path_id,
        "context": payload.context,
    }
    try:
        answer = await chat_service.ask(body)
    except Exception:
        await quota_ledger.release(student_id, payload.chapter_id, ResourceKind.CHAT, now)
        logger.warning("Chat unit returned after failed answer student=%s chapter=%s", student_id, payload.chapter_id)
        raise

    return ChatResponse(
        success=True,
        response=answer,
        remaining=outcome.remaining,
        limit=outcome.limit,
        chapter_id=payload.chapter_id,
    )
