from pydantic import Field

from entitlements.schemas.common import CamelModel


class ChapterSpec(CamelModel):
    chapter_id: str = Field(min_length=1)
    title: str = ""


class SubmoduleSpec(CamelModel):
    title: str = ""
    chapters: list[ChapterSpec] = Field(default_factory=list)


class ModuleSpec(CamelModel):
    title: str = ""
    submodules: list[SubmoduleSpec] = Field(default_factory=list)


class LearningPathRequest(CamelModel):
    title: str = ""
    modules: list[ModuleSpec] = Field(min_length=1)


class LearningPathResponse(CamelModel):
    success: bool = True
    learning_path_id: str
    title: str
    modules: list[ModuleSpec]
    chapter_count: int


class StudentRequest(CamelModel):
    student_id: str = Field(min_length=1)
    name: str | None = None


class StudentResponse(CamelModel):
    success: bool = True
    student_id: str
    name: str | None = None
