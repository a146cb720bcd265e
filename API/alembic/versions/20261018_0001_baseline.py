"""baseline schema: students, learning paths, subscriptions, usage counters, progress, quizzes

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 10:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("student_id"),
    )

    op.create_table(
        "learning_paths",
        sa.Column("learning_path_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("structure", JSON_DOCUMENT, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("learning_path_id"),
    )

    op.create_table(
        "path_chapters",
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("learning_path_id", sa.String(length=128), nullable=False),
        sa.Column("module_index", sa.Integer(), nullable=False),
        sa.Column("submodule_index", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("chapter_id"),
    )
    op.create_index("idx_path_chapters_path_module", "path_chapters", ["learning_path_id", "module_index"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("learning_path_id", sa.String(length=128), nullable=True),
        sa.Column("plan_type", sa.String(length=32), nullable=False),
        sa.Column("plan_amount", sa.Integer(), nullable=False),
        sa.Column("daily_chat_limit", sa.Integer(), nullable=False),
        sa.Column("monthly_mcq_limit", sa.Integer(), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_subscriptions_student_path", "subscriptions", ["student_id", "learning_path_id"])
    op.create_index("idx_subscriptions_valid_until", "subscriptions", ["valid_until"])

    op.create_table(
        "usage_counters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("resource_kind", sa.String(length=16), nullable=False),
        sa.Column("window_start", sa.Date(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "chapter_id", "resource_kind", name="uq_usage_counters_key"),
    )

    op.create_table(
        "chapter_progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("quiz_score", sa.Integer(), nullable=True),
        sa.Column("quiz_attempts", sa.Integer(), nullable=False),
        sa.Column("video_watch_time", sa.Float(), nullable=False),
        sa.Column("video_duration", sa.Float(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "chapter_id", name="uq_chapter_progress_student_chapter"),
    )
    op.create_index("idx_chapter_progress_student_id", "chapter_progress", ["student_id"])

    op.create_table(
        "generated_quizzes",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("questions", JSON_DOCUMENT, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_generated_quizzes_student_chapter", "generated_quizzes", ["student_id", "chapter_id"]
    )


def downgrade() -> None:
    op.drop_index("idx_generated_quizzes_student_chapter", table_name="generated_quizzes")
    op.drop_table("generated_quizzes")
    op.drop_index("idx_chapter_progress_student_id", table_name="chapter_progress")
    op.drop_table("chapter_progress")
    op.drop_table("usage_counters")
    op.drop_index("idx_subscriptions_valid_until", table_name="subscriptions")
    op.drop_index("idx_subscriptions_student_path", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("idx_path_chapters_path_module", table_name="path_chapters")
    op.drop_table("path_chapters")
    op.drop_table("learning_paths")
    op.drop_table("students")
