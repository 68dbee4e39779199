"""
Shared fixtures: content factories and an in-memory content service.
"""

import asyncio
from typing import Optional

import pytest

from flockdesk.errors import LessonLockedError, RemoteServiceError
from flockdesk.schemas import CompletionRecord, Lesson, Module, Quiz, QuizResult


def make_lessons(module_id: str, ids: list[str]) -> list[Lesson]:
    return [
        Lesson(id=lesson_id, module_id=module_id, title=f"Lesson {lesson_id}", order=i)
        for i, lesson_id in enumerate(ids)
    ]


def make_module(module_id: str, order: int, course_id: str = "c1", quiz_id: Optional[str] = None) -> Module:
    return Module(id=module_id, course_id=course_id, title=f"Module {module_id}", order=order, quiz_id=quiz_id)


class FakeContentService:
    """
    Stands in for ContentServiceClient with server state held in dicts.

    `fail` maps a method name to an exception raised on the next call.
    Lesson lock hints: ids in `locked` arrive flagged locked, ids in
    `opened` arrive flagged unlocked, any other lesson carries no hint.
    """

    def __init__(self):
        self.modules: dict[str, list[Module]] = {}
        self.lessons: dict[str, list[Lesson]] = {}
        self.quizzes: dict[str, Quiz] = {}
        self.completions: dict[str, list[CompletionRecord]] = {}
        self.quiz_scores: dict[str, float] = {}
        self.locked: set[str] = set()
        self.opened: set[str] = set()
        self.fail: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self.hold: Optional[asyncio.Event] = None

    def _hint(self, lesson_id) -> Optional[bool]:
        if lesson_id in self.locked:
            return True
        if lesson_id in self.opened:
            return False
        return None

    def _maybe_fail(self, name: str):
        exc = self.fail.pop(name, None)
        if exc is not None:
            raise exc

    async def list_modules(self, course_id):
        self.calls.append(("list_modules", course_id))
        self._maybe_fail("list_modules")
        return [m.model_copy() for m in self.modules.get(course_id, [])]

    async def list_lessons(self, module_id):
        self.calls.append(("list_lessons", module_id))
        self._maybe_fail("list_lessons")
        return [
            lesson.model_copy(update={"is_globally_locked": self._hint(lesson.id)})
            for lesson in self.lessons.get(module_id, [])
        ]

    async def get_module_quiz(self, module_id):
        self.calls.append(("get_module_quiz", module_id))
        self._maybe_fail("get_module_quiz")
        return self.quizzes.get(module_id)

    async def list_completions(self, user_id):
        self.calls.append(("list_completions", user_id))
        return list(self.completions.get(user_id, []))

    async def reorder_lessons(self, module_id, entries):
        self.calls.append(("reorder_lessons", module_id, entries))
        if self.hold is not None:
            await self.hold.wait()
        self._maybe_fail("reorder_lessons")
        by_id = {lesson.id: lesson for lesson in self.lessons[module_id]}
        self.lessons[module_id] = [by_id[e["id"]].model_copy(update={"order": e["order"]}) for e in entries]
        return "Lessons reordered"

    async def reorder_modules(self, course_id, entries):
        self.calls.append(("reorder_modules", course_id, entries))
        self._maybe_fail("reorder_modules")
        by_id = {m.id: m for m in self.modules[course_id]}
        self.modules[course_id] = [by_id[e["id"]].model_copy(update={"order": e["order"]}) for e in entries]
        return "Modules reordered"

    async def complete_lesson(self, lesson_id):
        self.calls.append(("complete_lesson", lesson_id))
        if lesson_id in self.locked:
            raise LessonLockedError(lesson_id)
        return {"lessonId": lesson_id}

    async def submit_quiz(self, quiz_id, answers):
        self.calls.append(("submit_quiz", quiz_id, answers))
        quiz = next(q for q in self.quizzes.values() if q.id == quiz_id)
        score = self.quiz_scores[quiz_id]
        return QuizResult(passed=score >= quiz.passing_score, score=score, passing_score=quiz.passing_score)


@pytest.fixture
def service() -> FakeContentService:
    """Course c1: m1 (L1, L2, L3 + quiz q1 @70), m2 (L4, L5)."""
    fake = FakeContentService()
    fake.modules["c1"] = [make_module("m1", 0, quiz_id="q1"), make_module("m2", 1)]
    fake.lessons["m1"] = make_lessons("m1", ["L1", "L2", "L3"])
    fake.lessons["m2"] = make_lessons("m2", ["L4", "L5"])
    fake.quizzes["m1"] = Quiz(id="q1", module_id="m1", passing_score=70)
    return fake


def remote_error(status: int = 500, message: str = "Server error") -> RemoteServiceError:
    return RemoteServiceError(message, status_code=status)
