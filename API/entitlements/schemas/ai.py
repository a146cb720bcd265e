from pydantic import ConfigDict, Field, model_validator

from entitlements.schemas.common import CamelModel


class ChatRequest(CamelModel):
    query: str | None = None
    message: str | None = None
    student_unique_id: str | None = None
    session_id: str | None = None
    chapter_id: str
    learning_path_id: str | None = None
    student_data: dict = Field(default_factory=dict)
    context: dict | str | None = None

    @model_validator(mode="after")
    def _has_text(self):
        if not (self.query or self.message or "").strip():
            raise ValueError("Message or query is required")
        return self

    @property
    def text(self) -> str:
        return (self.query or self.message or "").strip()


class ChatResponse(CamelModel):
    success: bool
    response: str | None = None
    remaining: int | None = None
    limit: int | None = None
    limit_reached: bool = False
    message: str | None = None
    chapter_id: str | None = None


class McqRequest(CamelModel):
    chapter_id: str
    learning_path_id: str | None = None
    student_id: str | None = None
    chapter_title: str | None = None


class McqQuestion(CamelModel):
    model_config = ConfigDict(alias_generator=None, populate_by_name=True, extra="ignore")

    q: int | str | None = Field(default=None, alias="Q")
    level: str | None = None
    question: str
    options: list[str]
    answer: str


class McqResponse(CamelModel):
    success: bool
    quiz_id: str | None = None
    questions: list[McqQuestion] = Field(default_factory=list)
    remaining: int | None = None
    limit: int | None = None
    limit_reached: bool = False
    error: str | None = None
    message: str | None = None
