"""Scores multiple-choice submissions against an answer key and records the result."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.errors import InvalidRequestError, NotFoundError
from entitlements.models.entities import ChapterProgress, GeneratedQuiz
from entitlements.services.progress import percentage, record_quiz
from entitlements.storage.database import storage_guard


@dataclass(frozen=True)
class QuizScore:
    correct_answers: int
    total_questions: int
    percentage: int


def score_answers(answer_key: Sequence[str], submitted_answers: Sequence[str | None]) -> QuizScore:
    """Exact string match per question. The option text is the answer key: no case folding, no trimming."""
    total = len(answer_key)
    if total == 0:
        raise InvalidRequestError("Cannot score a quiz without questions")
    correct = 0
    for index, expected in enumerate(answer_key):
        given = submitted_answers[index] if index < len(submitted_answers) else None
        if given is not None and given == expected:
            correct += 1
    return QuizScore(correct_answers=correct, total_questions=total, percentage=percentage(correct, total))


async def answer_key_for(db: AsyncSession, quiz_id: str, student_id: str, chapter_id: str) -> list[str]:
    async with storage_guard("answer_key"):
        quiz = await db.get(GeneratedQuiz, quiz_id)
    if quiz is None or quiz.student_id != student_id or quiz.chapter_id != chapter_id:
        raise NotFoundError(f"Quiz not found: {quiz_id}")
    return [str(q.get("answer", "")) for q in quiz.questions or []]


async def store_quiz(db: AsyncSession, student_id: str, chapter_id: str, questions: list[dict]) -> str:
    quiz = GeneratedQuiz(student_id=student_id, chapter_id=chapter_id, questions=questions)
    async with storage_guard("store_quiz"):
        db.add(quiz)
        await db.commit()
    return quiz.id


async def evaluate_and_record(
    db: AsyncSession,
    student_id: str,
    chapter_id: str,
    answer_key: Sequence[str],
    submitted_answers: Sequence[str | None],
    now: datetime | None = None,
) -> tuple[QuizScore, ChapterProgress]:
    result = score_answers(answer_key, submitted_answers)
    progress = await record_quiz(
        db,
        student_id,
        chapter_id,
        total_questions=result.total_questions,
        correct_answers=result.correct_answers,
        now=now,
    )
    return result, progress
