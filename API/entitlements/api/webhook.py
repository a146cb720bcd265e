from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import utcnow
from entitlements.core.errors import UnavailableError
from entitlements.core.identity import resolve_student_id
from entitlements.core.logging import DOMAIN_GATEWAY, get_domain_logger
from entitlements.schemas.ai import McqQuestion, McqRequest, McqResponse
from entitlements.services import catalog, subscriptions
from entitlements.services.ai_gateway import mcq_service
from entitlements.services.quiz_evaluator import store_quiz
from entitlements.services.quota_ledger import LimitExceeded, ResourceKind
from entitlements.storage.database import get_db
from entitlements.storage.ledger import quota_ledger

logger = get_domain_logger(__name__, DOMAIN_GATEWAY)

router = APIRouter(prefix="/api/webhook", tags=["webhook"])


def _parse_questions(raw: list[dict]) -> list[McqQuestion]:
    questions: list[McqQuestion] = []
    for item in raw:
        try:
            questions.append(McqQuestion.model_validate(item))
        except ValidationError:
            logger.warning("Dropping malformed MCQ item: %s", item)
    if not questions:
        raise UnavailableError("MCQ service returned no usable questions")
    return questions


@router.post("/generate-mcq", response_model=McqResponse)
async def generate_mcq(payload: McqRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Generate a quiz for the chapter, counted against the monthly MCQ allowance."""
    student_id = resolve_student_id(request, payload.student_id)
    chapter = await catalog.get_chapter(db, payload.chapter_id, payload.learning_path_id)
    now = utcnow()
    active = await subscriptions.resolve(db, student_id, chapter.learning_path_id, now)
    outcome = await quota_ledger.try_consume(
        student_id,
        payload.chapter_id,
        ResourceKind.MCQ,
        active.limits if active else None,
        now,
    )
    if isinstance(outcome, LimitExceeded):
        return McqResponse(
            success=False,
            error="limit_reached" if active else "subscription_required",
            limit_reached=True,
            message=(
                f"Monthly MCQ limit of {outcome.limit} reached for this chapter"
                if active
                else "An active subscription is required to generate MCQs"
            ),
            limit=outcome.limit,
            remaining=0,
        )

    body = {
        "studentId": student_id,
        "chapterId": payload.chapter_id,
        "learningPathId": chapter.learning_path_id,
        "chapterTitle": payload.chapter_title or chapter.title,
    }
    # The unit is only kept once the quiz is generated and stored.
    try:
        questions = _parse_questions(await mcq_service.generate(body))
        quiz_id = await store_quiz(
            db,
            student_id,
            payload.chapter_id,
            [q.model_dump(by_alias=True) for q in questions],
        )
    except Exception:
        await quota_ledger.release(student_id, payload.chapter_id, ResourceKind.MCQ, now)
        logger.warning(
            "MCQ unit returned after failed generation student=%s chapter=%s", student_id, payload.chapter_id
        )
        raise

    return McqResponse(
        success=True,
        quiz_id=quiz_id,
        questions=questions,
        remaining=outcome.remaining,
        limit=outcome.limit,
    )
