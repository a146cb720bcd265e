"""
Module progression endpoints: unlock decisions, quiz/video progress updates, progress listing.

Locked modules are an expected state and come back as 200 with a structured
`moduleAccess` payload; only unknown ids (404) and storage failures (503) are errors.
"""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import as_utc
from entitlements.core.identity import resolve_student_id
from entitlements.models.entities import ChapterProgress
from entitlements.schemas.modules import (
    ChapterProgressItem,
    CheckAccessResponse,
    ModuleAccess,
    ModuleAccessItem,
    ProgressListResponse,
    ProgressSummary,
    QuizResult,
    QuizScoreRequest,
    QuizScoreResponse,
)
from entitlements.services import catalog, progress
from entitlements.services.module_unlock import check_module_access
from entitlements.services.quiz_evaluator import answer_key_for, evaluate_and_record
from entitlements.storage.database import get_db

router = APIRouter(prefix="/api/modules", tags=["modules"])


def _progress_item(row: ChapterProgress, learning_path_id: str | None, module_index: int | None) -> ChapterProgressItem:
    return ChapterProgressItem(
        chapter_id=row.chapter_id,
        learning_path_id=learning_path_id,
        module_id=module_index,
        quiz_score=row.quiz_score,
        quiz_attempts=row.quiz_attempts,
        video_watch_time=row.video_watch_time,
        video_duration=row.video_duration,
        progress_percentage=progress.progress_percentage(row),
        state=progress.chapter_state(row).value,
        is_completed=row.completed_at is not None,
        completed_at=as_utc(row.completed_at),
        updated_at=as_utc(row.updated_at),
    )


@router.get("/check-access", response_model=CheckAccessResponse)
async def check_access(
    request: Request,
    learning_path_id: str = Query(alias="learningPathId", min_length=1),
    module_index: int | None = Query(default=None, alias="moduleIndex", ge=0),
    chapter_id: str | None = Query(default=None, alias="chapterId"),
    student_id: str | None = Query(default=None, alias="studentId"),
    db: AsyncSession = Depends(get_db),
):
    student_id = resolve_student_id(request, student_id)
    state, access = await check_module_access(
        db,
        student_id,
        learning_path_id,
        module_index=module_index,
        chapter_id=chapter_id,
    )
    return CheckAccessResponse(
        learning_path_id=learning_path_id,
        has_subscription=access.has_active_subscription,
        module_access=ModuleAccess(
            module_index=state.module_index,
            has_access=state.has_access,
            is_locked=state.is_locked,
            unlocked_modules_count=access.unlocked_modules_count,
            reason=state.reason.value if state.reason else None,
        ),
        modules=[
            ModuleAccessItem(
                module_index=m.module_index,
                has_access=m.has_access,
                is_locked=m.is_locked,
                reason=m.reason.value if m.reason else None,
                unlocked_at=m.unlocked_at,
            )
            for m in access.modules
        ],
    )


@router.post("/quiz-score", response_model=QuizScoreResponse)
async def quiz_score(payload: QuizScoreRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Record a quiz attempt and/or a video watch report for one chapter."""
    student_id = resolve_student_id(request, payload.student_id)
    chapter = await catalog.get_chapter(db, payload.chapter_id)
    quiz: QuizResult | None = None
    row: ChapterProgress | None = None

    if payload.video_watch_time is not None:
        row = await progress.record_video_watch(
            db,
            student_id,
            payload.chapter_id,
            cumulative_watch_time=payload.video_watch_time,
            video_duration=payload.video_duration,
        )

    keyed_attempts = [a for a in payload.quiz_attempts if a.correct_answer is not None]
    if payload.quiz_id is not None:
        answer_key = await answer_key_for(db, payload.quiz_id, student_id, payload.chapter_id)
        result, row = await evaluate_and_record(db, student_id, payload.chapter_id, answer_key, payload.answers or [])
        quiz = QuizResult(**asdict(result))
    elif keyed_attempts:
        result, row = await evaluate_and_record(
            db,
            student_id,
            payload.chapter_id,
            [a.correct_answer for a in keyed_attempts],
            [a.selected_answer for a in keyed_attempts],
        )
        quiz = QuizResult(**asdict(result))
    elif payload.total_questions or payload.score is not None:
        row = await progress.record_quiz(
            db,
            student_id,
            payload.chapter_id,
            score=payload.score,
            total_questions=payload.total_questions,
            correct_answers=payload.correct_answers,
        )
        if payload.total_questions:
            quiz = QuizResult(
                correct_answers=payload.correct_answers or 0,
                total_questions=payload.total_questions,
                percentage=row.quiz_score,
            )

    return QuizScoreResponse(
        quiz=quiz,
        progress=_progress_item(row, chapter.learning_path_id, chapter.module_index),
    )


@router.get("/progress", response_model=ProgressListResponse)
async def list_progress(
    request: Request,
    student_id: str | None = Query(default=None, alias="studentId"),
    db: AsyncSession = Depends(get_db),
):
    student_id = resolve_student_id(request, student_id)
    entries, summary = await progress.list_progress(db, student_id)
    return ProgressListResponse(
        student_id=student_id,
        progress=[_progress_item(e.progress, e.learning_path_id, e.module_index) for e in entries],
        summary=ProgressSummary(**asdict(summary)),
    )
