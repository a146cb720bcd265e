import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, Float, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from entitlements.models.base import Base

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


def _uuid_hex() -> str:
    return uuid.uuid4().hex


class Student(Base):
    __tablename__ = "students"

    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LearningPath(Base):
    __tablename__ = "learning_paths"

    learning_path_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # modules -> submodules -> chapters, as registered by the authoring collaborator
    structure: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PathChapter(Base):
    __tablename__ = "path_chapters"
    __table_args__ = (
        Index("idx_path_chapters_path_module", "learning_path_id", "module_index"),
    )

    chapter_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    learning_path_id: Mapped[str] = mapped_column(String(128), nullable=False)
    module_index: Mapped[int] = mapped_column(Integer, nullable=False)
    submodule_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("idx_subscriptions_student_path", "student_id", "learning_path_id"),
        Index("idx_subscriptions_valid_until", "valid_until"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid_hex)
    student_id: Mapped[str] = mapped_column(String(128), nullable=False)
    learning_path_id: Mapped[str | None] = mapped_column(String(128), nullable=True)  # null = global
    plan_type: Mapped[str] = mapped_column(String(32), nullable=False)
    plan_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    daily_chat_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_mcq_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class UsageCounter(Base):
    __tablename__ = "usage_counters"
    __table_args__ = (
        UniqueConstraint("student_id", "chapter_id", "resource_kind", name="uq_usage_counters_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(String(128), nullable=False)
    chapter_id: Mapped[str] = mapped_column(String(128), nullable=False)
    resource_kind: Mapped[str] = mapped_column(String(16), nullable=False)  # chat | mcq
    window_start: Mapped[date] = mapped_column(Date, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ChapterProgress(Base):
    __tablename__ = "chapter_progress"
    __table_args__ = (
        UniqueConstraint("student_id", "chapter_id", name="uq_chapter_progress_student_chapter"),
        Index("idx_chapter_progress_student_id", "student_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(String(128), nullable=False)
    chapter_id: Mapped[str] = mapped_column(String(128), nullable=False)
    quiz_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quiz_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    video_watch_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    video_duration: Mapped[float | None] = mapped_column(Float, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class GeneratedQuiz(Base):
    __tablename__ = "generated_quizzes"
    __table_args__ = (
        Index("idx_generated_quizzes_student_chapter", "student_id", "chapter_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid_hex)
    student_id: Mapped[str] = mapped_column(String(128), nullable=False)
    chapter_id: Mapped[str] = mapped_column(String(128), nullable=False)
    questions: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
