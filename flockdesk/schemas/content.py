"""
Content schemas for Flockdesk.

Defines Pydantic models for the course content hierarchy including:
- Ordered entities (anything that holds a position among its siblings)
- Courses, modules, lessons and quizzes as served by the content service
- Reorder intents sent back to the content service
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _reference_id(value: Any) -> Any:
    """Reduce a populated reference (``{"_id": ...}``) to its id."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


# -----------------------------------------------------------------------------
# Ordered entities
# -----------------------------------------------------------------------------


class OrderedEntity(BaseModel):
    """Anything with a stable id and a position among its siblings."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    order: int = Field(..., ge=0)


class MediaRef(BaseModel):
    """Reference to an uploaded media asset (upload/transcoding lives elsewhere)."""
    model_config = ConfigDict(populate_by_name=True)

    url: str
    public_id: Optional[str] = Field(None, alias="publicId")
    media_type: Optional[str] = Field(None, alias="type")


# -----------------------------------------------------------------------------
# Hierarchy
# -----------------------------------------------------------------------------


class Course(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    title: str
    description: str = ""
    category: Optional[str] = None
    instructor: Optional[str] = None


class Module(OrderedEntity):
    """A course module. Owns lessons and at most one quiz."""
    course_id: str = Field(..., alias="course")
    title: str
    quiz_id: Optional[str] = Field(None, alias="quiz")

    @field_validator("course_id", "quiz_id", mode="before")
    @classmethod
    def unwrap_reference(cls, v):
        return _reference_id(v)


class Lesson(OrderedEntity):
    """
    A lesson inside a module.

    `is_locked` is view state derived by the progression rules; it is never
    read back as a source of truth. `is_globally_locked` is the hint the
    content service computes for the requesting user.
    """
    module_id: str = Field(..., alias="module")
    title: str
    content: str = ""
    media: Optional[MediaRef] = Field(None, alias="video")
    duration: Optional[float] = Field(None, ge=0)
    is_locked: bool = Field(False, alias="isLocked")
    is_globally_locked: Optional[bool] = Field(None, alias="isGloballyLocked")

    @field_validator("module_id", mode="before")
    @classmethod
    def unwrap_module(cls, v):
        return _reference_id(v)


class QuizQuestion(OrderedEntity):
    question: str
    question_type: str = Field("mcq", alias="type")
    options: list[str] = []
    correct_answer_index: Optional[int] = Field(None, alias="correctAnswerIndex", ge=0)


class Quiz(BaseModel):
    """The quiz gating completion of one module."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    module_id: str = Field(..., alias="module")
    passing_score: float = Field(..., alias="passingScore", ge=0, le=100)
    questions: list[QuizQuestion] = []

    @field_validator("module_id", mode="before")
    @classmethod
    def unwrap_module(cls, v):
        return _reference_id(v)

    @model_validator(mode="before")
    @classmethod
    def number_questions(cls, data):
        # The service omits `order` on questions it returns in display order
        if isinstance(data, dict) and isinstance(data.get("questions"), list):
            questions = []
            for position, q in enumerate(data["questions"]):
                if isinstance(q, dict) and q.get("order") is None:
                    q = {**q, "order": position}
                questions.append(q)
            data = {**data, "questions": questions}
        return data


# -----------------------------------------------------------------------------
# Reordering
# -----------------------------------------------------------------------------


class ReorderScope(str, Enum):
    MODULES = "modules"
    LESSONS = "lessons"


class ReorderEntry(BaseModel):
    id: str
    order: int = Field(..., ge=0)


class ReorderIntent(BaseModel):
    """
    The full target ordering for one sibling set.

    Always the complete set, never a delta: `entries` lists every sibling
    with its new position.
    """
    model_config = ConfigDict(frozen=True)

    scope: ReorderScope
    parent_id: str
    entries: tuple[ReorderEntry, ...]

    @property
    def key(self) -> tuple[str, str]:
        """Sibling-set key: (scope, parent id)."""
        return (self.scope.value, self.parent_id)

    def sequence(self) -> list[str]:
        """Entry ids in target order."""
        return [e.id for e in sorted(self.entries, key=lambda e: e.order)]

    def payload_entries(self) -> list[dict]:
        """Entries as sent to the content service, positions normalised to 0..n-1."""
        return [{"id": entry_id, "order": i} for i, entry_id in enumerate(self.sequence())]

    @classmethod
    def from_sequence(cls, scope: ReorderScope, parent_id: str, ids: list[str]) -> "ReorderIntent":
        return cls(
            scope=scope,
            parent_id=parent_id,
            entries=tuple(ReorderEntry(id=entry_id, order=i) for i, entry_id in enumerate(ids)),
        )
