"""
Progress schemas for Flockdesk.

Defines Pydantic models for learner progression including:
- Node states (locked / unlocked / completed)
- Completion records read from the content service
- Quiz submission results
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


class CompletionRecord(BaseModel):
    """One completion (or quiz attempt) for a single lesson or quiz."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(..., alias="userId")
    lesson_id: Optional[str] = Field(None, alias="lessonId")
    quiz_id: Optional[str] = Field(None, alias="quizId")
    passed: bool
    score: Optional[float] = Field(None, ge=0)
    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="completedAt"
    )

    @model_validator(mode="after")
    def one_target(self):
        if (self.lesson_id is None) == (self.quiz_id is None):
            raise ValueError("CompletionRecord needs exactly one of lessonId or quizId")
        return self

    @property
    def node_id(self) -> str:
        return self.lesson_id if self.lesson_id is not None else self.quiz_id


class QuizResult(BaseModel):
    """Outcome of one quiz submission as graded by the content service."""
    model_config = ConfigDict(populate_by_name=True)

    passed: bool
    score: float = Field(..., ge=0)
    passing_score: Optional[float] = Field(None, alias="passingScore")
