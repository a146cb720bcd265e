from datetime import datetime

from pydantic import Field, model_validator

from entitlements.schemas.common import CamelModel


class ModuleAccess(CamelModel):
    module_index: int
    has_access: bool
    is_locked: bool
    unlocked_modules_count: int
    reason: str | None = None


class ModuleAccessItem(CamelModel):
    module_index: int
    has_access: bool
    is_locked: bool
    reason: str | None = None
    unlocked_at: datetime | None = None


class CheckAccessResponse(CamelModel):
    success: bool = True
    learning_path_id: str
    has_subscription: bool
    module_access: ModuleAccess
    modules: list[ModuleAccessItem]


class QuizAttempt(CamelModel):
    question: str | None = None
    selected_answer: str | None = None
    correct_answer: str | None = None


class QuizScoreRequest(CamelModel):
    chapter_id: str
    student_id: str | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    total_questions: int | None = Field(default=None, ge=0)
    correct_answers: int | None = Field(default=None, ge=0)
    quiz_id: str | None = None
    answers: list[str | None] | None = None
    quiz_attempts: list[QuizAttempt] = Field(default_factory=list)
    video_watch_time: float | None = Field(default=None, ge=0)
    video_duration: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _has_update(self):
        has_quiz = (
            self.score is not None
            or self.total_questions
            or self.quiz_id is not None
            or any(a.correct_answer is not None for a in self.quiz_attempts)
        )
        if not has_quiz and self.video_watch_time is None:
            raise ValueError("Nothing to record: send a quiz result or videoWatchTime")
        return self


class ChapterProgressItem(CamelModel):
    chapter_id: str
    learning_path_id: str | None = None
    module_id: int | None = None
    quiz_score: int | None = None
    quiz_attempts: int
    video_watch_time: float
    video_duration: float | None = None
    progress_percentage: int
    state: str
    is_completed: bool
    completed_at: datetime | None = None
    updated_at: datetime | None = None


class QuizResult(CamelModel):
    correct_answers: int
    total_questions: int
    percentage: int


class QuizScoreResponse(CamelModel):
    success: bool = True
    quiz: QuizResult | None = None
    progress: ChapterProgressItem


class ProgressSummary(CamelModel):
    chapters_started: int
    completed_chapters: int
    average_quiz_score: float | None = None
    total_video_watch_time: float


class ProgressListResponse(CamelModel):
    success: bool = True
    student_id: str
    progress: list[ChapterProgressItem]
    summary: ProgressSummary
