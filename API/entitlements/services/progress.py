"""
Progress aggregator: quiz scores and video watch time per (student, chapter).

A chapter moves NOT_STARTED -> IN_PROGRESS on its first recorded interaction and
IN_PROGRESS -> COMPLETED the first time a quiz scores at or above the mastery
threshold. COMPLETED is terminal: completed_at is written once with a
`completed_at IS NULL` guard and never cleared, whatever later attempts score.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, case, insert, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.clock import as_utc, utcnow
from entitlements.core.errors import InvalidRequestError
from entitlements.core.logging import DOMAIN_PROGRESS, get_domain_logger
from entitlements.core.settings import settings
from entitlements.models.entities import ChapterProgress, PathChapter
from entitlements.services import catalog
from entitlements.storage.database import storage_guard

logger = get_domain_logger(__name__, DOMAIN_PROGRESS)


class ChapterState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def is_mastery(quiz_score: int | None) -> bool:
    return quiz_score is not None and quiz_score >= settings.mastery_threshold


def advance(state: ChapterState, quiz_score: int | None = None) -> ChapterState:
    """Apply one recorded interaction to the chapter state machine."""
    if state == ChapterState.COMPLETED:
        return state
    if is_mastery(quiz_score):
        return ChapterState.COMPLETED
    return ChapterState.IN_PROGRESS


def chapter_state(progress: ChapterProgress | None) -> ChapterState:
    if progress is None:
        return ChapterState.NOT_STARTED
    if progress.completed_at is not None:
        return ChapterState.COMPLETED
    return ChapterState.IN_PROGRESS


def percentage(correct_answers: int, total_questions: int) -> int:
    """round(correct / total * 100) with halves rounded up, in exact integer arithmetic."""
    return (correct_answers * 200 + total_questions) // (2 * total_questions)


def progress_percentage(progress: ChapterProgress | None) -> int:
    """Value shown to the student. Watching alone stays below the mastery threshold."""
    if progress is None:
        return 0
    if progress.quiz_score is not None:
        return int(progress.quiz_score)
    duration = progress.video_duration or 0
    if duration <= 0:
        return 0
    watched = int(progress.video_watch_time / duration * 100 + 0.5)
    return max(0, min(settings.video_progress_ceiling, watched))


async def get_progress(db: AsyncSession, student_id: str, chapter_id: str) -> ChapterProgress | None:
    async with storage_guard("get_progress"):
        return (
            await db.execute(
                select(ChapterProgress).where(
                    ChapterProgress.student_id == student_id,
                    ChapterProgress.chapter_id == chapter_id,
                )
            )
        ).scalar_one_or_none()


async def _ensure_row(db: AsyncSession, student_id: str, chapter_id: str) -> None:
    """Insert-if-absent; a concurrent insert of the same row is not an error."""
    if await get_progress(db, student_id, chapter_id) is not None:
        return
    try:
        await db.execute(insert(ChapterProgress).values(student_id=student_id, chapter_id=chapter_id))
        await db.commit()
    except IntegrityError:
        await db.rollback()


async def _reload(db: AsyncSession, student_id: str, chapter_id: str) -> ChapterProgress:
    async with storage_guard("reload_progress"):
        row = (
            await db.execute(
                select(ChapterProgress)
                .where(ChapterProgress.student_id == student_id, ChapterProgress.chapter_id == chapter_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
    return row


async def record_quiz(
    db: AsyncSession,
    student_id: str,
    chapter_id: str,
    *,
    score: float | None = None,
    total_questions: int | None = None,
    correct_answers: int | None = None,
    now: datetime | None = None,
) -> ChapterProgress:
    """Overwrite the chapter's quiz score with this attempt's percentage."""
    if total_questions:
        if total_questions < 0 or correct_answers is None or not 0 <= correct_answers <= total_questions:
            raise InvalidRequestError("correctAnswers must be between 0 and totalQuestions")
        quiz_score = percentage(correct_answers, total_questions)
    elif score is not None:
        quiz_score = max(0, min(100, int(score + 0.5)))
    else:
        raise InvalidRequestError("A quiz attempt needs totalQuestions/correctAnswers or a score")

    await catalog.get_student(db, student_id)
    await catalog.get_chapter(db, chapter_id)
    now = as_utc(now) or utcnow()

    async with storage_guard("record_quiz"):
        await _ensure_row(db, student_id, chapter_id)
        key = (ChapterProgress.student_id == student_id, ChapterProgress.chapter_id == chapter_id)
        completes = advance(ChapterState.IN_PROGRESS, quiz_score) == ChapterState.COMPLETED
        values = {
            "quiz_score": quiz_score,
            "quiz_attempts": ChapterProgress.quiz_attempts + 1,
            "updated_at": now,
        }
        if completes:
            values["completed_at"] = case(
                (ChapterProgress.completed_at.is_(None), literal(now, DateTime(timezone=True))),
                else_=ChapterProgress.completed_at,
            )
        await db.execute(
            update(ChapterProgress).where(*key).values(**values).execution_options(synchronize_session=False)
        )
        await db.commit()
    progress = await _reload(db, student_id, chapter_id)
    logger.info(
        "Quiz recorded student=%s chapter=%s score=%s state=%s",
        student_id,
        chapter_id,
        quiz_score,
        chapter_state(progress).value,
    )
    return progress


async def record_video_watch(
    db: AsyncSession,
    student_id: str,
    chapter_id: str,
    *,
    cumulative_watch_time: float,
    video_duration: float | None = None,
    now: datetime | None = None,
) -> ChapterProgress:
    """Raise stored watch time to the reported cumulative value; late or duplicate reports are no-ops."""
    if cumulative_watch_time < 0 or (video_duration is not None and video_duration < 0):
        raise InvalidRequestError("Watch time and duration must be non-negative")
    await catalog.get_student(db, student_id)
    await catalog.get_chapter(db, chapter_id)
    now = as_utc(now) or utcnow()

    async with storage_guard("record_video_watch"):
        await _ensure_row(db, student_id, chapter_id)
        values = {
            "video_watch_time": case(
                (ChapterProgress.video_watch_time < cumulative_watch_time, cumulative_watch_time),
                else_=ChapterProgress.video_watch_time,
            ),
            "updated_at": now,
        }
        if video_duration is not None:
            values["video_duration"] = video_duration
        await db.execute(
            update(ChapterProgress)
            .where(ChapterProgress.student_id == student_id, ChapterProgress.chapter_id == chapter_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    return await _reload(db, student_id, chapter_id)


async def completion_times(db: AsyncSession, student_id: str, chapter_ids: list[str]) -> dict[str, datetime]:
    """completed_at per completed chapter among chapter_ids."""
    if not chapter_ids:
        return {}
    async with storage_guard("completion_times"):
        rows = (
            await db.execute(
                select(ChapterProgress.chapter_id, ChapterProgress.completed_at).where(
                    ChapterProgress.student_id == student_id,
                    ChapterProgress.chapter_id.in_(chapter_ids),
                    ChapterProgress.completed_at.is_not(None),
                )
            )
        ).all()
    return {row.chapter_id: as_utc(row.completed_at) for row in rows}


@dataclass(frozen=True)
class ProgressEntry:
    progress: ChapterProgress
    learning_path_id: str | None
    module_index: int | None

    @property
    def state(self) -> ChapterState:
        return chapter_state(self.progress)

    @property
    def percentage(self) -> int:
        return progress_percentage(self.progress)


@dataclass(frozen=True)
class ProgressSummary:
    chapters_started: int
    completed_chapters: int
    average_quiz_score: float | None
    total_video_watch_time: float


async def list_progress(db: AsyncSession, student_id: str) -> tuple[list[ProgressEntry], ProgressSummary]:
    await catalog.get_student(db, student_id)
    async with storage_guard("list_progress"):
        rows = (
            await db.execute(
                select(ChapterProgress, PathChapter.learning_path_id, PathChapter.module_index)
                .outerjoin(PathChapter, PathChapter.chapter_id == ChapterProgress.chapter_id)
                .where(ChapterProgress.student_id == student_id)
                .order_by(PathChapter.learning_path_id, PathChapter.module_index, ChapterProgress.chapter_id)
            )
        ).all()
    entries = [ProgressEntry(progress=row[0], learning_path_id=row[1], module_index=row[2]) for row in rows]
    scores = [e.progress.quiz_score for e in entries if e.progress.quiz_score is not None]
    summary = ProgressSummary(
        chapters_started=len(entries),
        completed_chapters=sum(1 for e in entries if e.progress.completed_at is not None),
        average_quiz_score=round(sum(scores) / len(scores), 2) if scores else None,
        total_video_watch_time=float(sum(e.progress.video_watch_time or 0 for e in entries)),
    )
    return entries, summary
