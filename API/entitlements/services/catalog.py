"""
Read side of the collaborator-owned records (students, learning paths, chapters).

Every lookup that misses raises NotFoundError so API handlers can surface a 404.
Registration helpers exist for the onboarding and content-authoring collaborators.
"""
from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.errors import ConflictError, InvalidRequestError, NotFoundError
from entitlements.core.logging import DOMAIN_ACCESS, get_domain_logger
from entitlements.models.entities import ChapterProgress, LearningPath, PathChapter, Student
from entitlements.storage.database import storage_guard

logger = get_domain_logger(__name__, DOMAIN_ACCESS)


async def get_student(db: AsyncSession, student_id: str) -> Student:
    async with storage_guard("get_student"):
        student = await db.get(Student, student_id)
    if student is None:
        raise NotFoundError(f"Student not found: {student_id}")
    return student


async def register_student(db: AsyncSession, student_id: str, name: str | None = None) -> Student:
    async with storage_guard("register_student"):
        student = await db.get(Student, student_id)
        if student is None:
            student = Student(student_id=student_id, name=name)
            db.add(student)
        elif name:
            student.name = name
        await db.commit()
    return student


async def get_learning_path(db: AsyncSession, learning_path_id: str) -> LearningPath:
    async with storage_guard("get_learning_path"):
        path = await db.get(LearningPath, learning_path_id)
    if path is None:
        raise NotFoundError(f"Learning path not found: {learning_path_id}")
    return path


async def get_chapter(db: AsyncSession, chapter_id: str, learning_path_id: str | None = None) -> PathChapter:
    async with storage_guard("get_chapter"):
        chapter = await db.get(PathChapter, chapter_id)
    if chapter is None or (learning_path_id and chapter.learning_path_id != learning_path_id):
        raise NotFoundError(f"Chapter not found: {chapter_id}")
    return chapter


async def module_chapters(db: AsyncSession, learning_path_id: str) -> list[list[str]]:
    """Chapter ids of every module of the path, modules and chapters in authored order."""
    path = await get_learning_path(db, learning_path_id)
    modules: list[list[str]] = [[] for _ in path.structure or []]
    async with storage_guard("module_chapters"):
        rows = (
            await db.execute(
                select(PathChapter)
                .where(PathChapter.learning_path_id == learning_path_id)
                .order_by(PathChapter.module_index, PathChapter.submodule_index, PathChapter.position)
            )
        ).scalars().all()
    for row in rows:
        if row.module_index < len(modules):
            modules[row.module_index].append(row.chapter_id)
    return modules


def _flatten(modules: list[dict]) -> list[PathChapter]:
    chapters: list[PathChapter] = []
    seen: set[str] = set()
    for m_idx, module in enumerate(modules):
        for s_idx, submodule in enumerate(module.get("submodules") or []):
            for pos, chapter in enumerate(submodule.get("chapters") or []):
                chapter_id = str(chapter.get("chapter_id") or "").strip()
                if not chapter_id:
                    raise InvalidRequestError(f"Module {m_idx} has a chapter without an id")
                if chapter_id in seen:
                    raise InvalidRequestError(f"Duplicate chapter id in path: {chapter_id}")
                seen.add(chapter_id)
                chapters.append(
                    PathChapter(
                        chapter_id=chapter_id,
                        module_index=m_idx,
                        submodule_index=s_idx,
                        position=pos,
                        title=str(chapter.get("title") or ""),
                    )
                )
    return chapters


async def register_learning_path(
    db: AsyncSession, learning_path_id: str, title: str, modules: list[dict]
) -> LearningPath:
    """Create or replace a path. A path is frozen once any student has progress in it."""
    chapters = _flatten(modules)
    chapter_ids = [c.chapter_id for c in chapters]
    async with storage_guard("register_learning_path"):
        existing = await db.get(LearningPath, learning_path_id)
        if existing is not None:
            old_ids = (
                await db.execute(select(PathChapter.chapter_id).where(PathChapter.learning_path_id == learning_path_id))
            ).scalars().all()
            if old_ids:
                referenced = (
                    await db.execute(
                        select(ChapterProgress.id).where(ChapterProgress.chapter_id.in_(old_ids)).limit(1)
                    )
                ).first()
                if referenced is not None:
                    raise ConflictError(f"Learning path {learning_path_id} already has progress and cannot change")
        if chapter_ids:
            taken = (
                await db.execute(
                    select(PathChapter.chapter_id, PathChapter.learning_path_id).where(
                        PathChapter.chapter_id.in_(chapter_ids),
                        PathChapter.learning_path_id != learning_path_id,
                    )
                )
            ).all()
            if taken:
                raise ConflictError(
                    "Chapter ids already belong to another learning path",
                    details={"chapter_ids": sorted(row.chapter_id for row in taken)},
                )

        await db.execute(delete(PathChapter).where(PathChapter.learning_path_id == learning_path_id))
        if existing is None:
            existing = LearningPath(learning_path_id=learning_path_id)
            db.add(existing)
        existing.title = title
        existing.structure = modules
        for chapter in chapters:
            chapter.learning_path_id = learning_path_id
            db.add(chapter)
        await db.commit()
    logger.info(
        "Registered learning path=%s modules=%s chapters=%s", learning_path_id, len(modules), len(chapters)
    )
    return existing
