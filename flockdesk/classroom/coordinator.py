"""
HierarchyCoordinator - Load, order and gate one course's content.

Combines ContentServiceClient (remote content), OrderingStore (one per
sibling set), ReorderController (optimistic reorders) and the progression
rules to provide the lock/unlock view of a course.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError

from flockdesk.errors import (
    HierarchyLoadError,
    LessonLockedError,
    OrderingError,
    RemoteServiceError,
    UnknownEntityError,
)
from flockdesk.schemas import Lesson, Module, NodeState, OrderedEntity, Quiz, QuizResult, ReorderIntent, ReorderScope
from flockdesk.service import ContentServiceClient

from .ledger import CompletionLedger
from .mutation import ReorderController, ReorderOutcome
from .ordering import OrderingStore
from .progression import ModuleOutline, ProgressionView, annotate_lessons, evaluate_progression


logger = logging.getLogger(__name__)


@dataclass
class ContentHierarchy:
    """Loaded course content: one ordering store per sibling set."""
    course_id: str
    modules: OrderingStore[Module]
    lessons: dict[str, OrderingStore[Lesson]] = field(default_factory=dict)
    quizzes: dict[str, Optional[Quiz]] = field(default_factory=dict)

    def outlines(self) -> list[ModuleOutline]:
        """Current order of modules, lessons and quizzes."""
        result = []
        for module in self.modules:
            quiz = self.quizzes.get(module.id)
            result.append(ModuleOutline(
                module_id=module.id,
                lesson_ids=tuple(self.lessons[module.id].ids()),
                quiz_id=quiz.id if quiz else None,
            ))
        return result

    def module_of(self, lesson_id: str) -> str:
        for module_id, store in self.lessons.items():
            if lesson_id in store:
                return module_id
        raise UnknownEntityError([lesson_id])

    def find_quiz(self, quiz_id: str) -> Quiz:
        for quiz in self.quizzes.values():
            if quiz is not None and quiz.id == quiz_id:
                return quiz
        raise UnknownEntityError([quiz_id])


@dataclass
class AnnotatedModule:
    """A module with lessons carrying their derived lock flags."""
    module: Module
    lessons: list[Lesson]
    quiz: Optional[Quiz]
    quiz_state: Optional[NodeState]
    completed: bool


@dataclass
class CourseProgression:
    user_id: str
    view: ProgressionView
    modules: list[AnnotatedModule]


class HierarchyCoordinator:
    """
    Orchestrate one course for the console.

    All hierarchy state lives on this object; nothing is module-global.
    """

    def __init__(self, service: ContentServiceClient):
        """
        Initialize coordinator.

        Args:
            service: Client for the remote content service
        """
        self.service = service
        self.hierarchy: Optional[ContentHierarchy] = None
        self.controller = ReorderController(persist=self._persist, refetch=self._refetch)
        self._ledgers: dict[str, CompletionLedger] = {}

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_hierarchy(self, course_id: str) -> ContentHierarchy:
        """
        Fetch modules, then lessons per module, then quiz per module.

        Raises:
            HierarchyLoadError: a fetch failed (wraps the first failure)
            MalformedOrderError: the service sent duplicate positions
        """
        logger.info(f"Loading hierarchy for course {course_id}")
        try:
            modules = OrderingStore(await self.service.list_modules(course_id))
            hierarchy = ContentHierarchy(course_id=course_id, modules=modules)
            for module in modules:
                hierarchy.lessons[module.id] = OrderingStore(await self.service.list_lessons(module.id))
            for module in modules:
                hierarchy.quizzes[module.id] = await self.service.get_module_quiz(module.id)
        except (RemoteServiceError, ValidationError) as exc:
            logger.error(f"Hierarchy load for course {course_id} failed: {exc}")
            raise HierarchyLoadError(course_id, exc) from exc

        self.hierarchy = hierarchy
        self.controller.attach(ReorderScope.MODULES, course_id, hierarchy.modules)
        for module_id, store in hierarchy.lessons.items():
            self.controller.attach(ReorderScope.LESSONS, module_id, store)

        lesson_count = sum(len(store) for store in hierarchy.lessons.values())
        logger.info(f"Loaded course {course_id}: {len(modules)} modules, {lesson_count} lessons")
        return hierarchy

    def _require(self) -> ContentHierarchy:
        if self.hierarchy is None:
            raise RuntimeError("No hierarchy loaded; call load_hierarchy first")
        return self.hierarchy

    # -------------------------------------------------------------------------
    # Reordering
    # -------------------------------------------------------------------------

    async def reorder_modules(self, course_id: str, new_order: list[str]) -> ReorderOutcome:
        hierarchy = self._require()
        if hierarchy.course_id != course_id:
            raise UnknownEntityError([course_id])
        intent = ReorderIntent.from_sequence(ReorderScope.MODULES, course_id, new_order)
        return await self.controller.apply_reorder(intent)

    async def reorder_lessons(self, module_id: str, new_order: list[str]) -> ReorderOutcome:
        hierarchy = self._require()
        if module_id not in hierarchy.lessons:
            raise UnknownEntityError([module_id])
        intent = ReorderIntent.from_sequence(ReorderScope.LESSONS, module_id, new_order)
        return await self.controller.apply_reorder(intent)

    async def _persist(self, intent: ReorderIntent):
        if intent.scope is ReorderScope.MODULES:
            return await self.service.reorder_modules(intent.parent_id, intent.payload_entries())
        return await self.service.reorder_lessons(intent.parent_id, intent.payload_entries())

    async def _refetch(self, intent: ReorderIntent) -> list[OrderedEntity]:
        if intent.scope is ReorderScope.MODULES:
            return await self.service.list_modules(intent.parent_id)
        return await self.service.list_lessons(intent.parent_id)

    # -------------------------------------------------------------------------
    # Progression
    # -------------------------------------------------------------------------

    def ledger_for(self, user_id: str) -> CompletionLedger:
        if user_id not in self._ledgers:
            self._ledgers[user_id] = CompletionLedger(user_id)
        return self._ledgers[user_id]

    async def sync_completions(self, user_id: str) -> CompletionLedger:
        """Merge the service's completion records for a learner into the ledger."""
        ledger = self.ledger_for(user_id)
        for record in await self.service.list_completions(user_id):
            ledger.record(record)
        return ledger

    def annotate_progression(self, user_id: str) -> CourseProgression:
        """Lock/unlock view of the loaded course for one learner. No I/O."""
        hierarchy = self._require()
        view = evaluate_progression(hierarchy.outlines(), self.ledger_for(user_id).completed_ids())

        modules = []
        for module in hierarchy.modules:
            quiz = hierarchy.quizzes.get(module.id)
            modules.append(AnnotatedModule(
                module=module,
                lessons=annotate_lessons(view, hierarchy.lessons[module.id]),
                quiz=quiz,
                quiz_state=view.state_of(quiz.id) if quiz else None,
                completed=view.module_completed[module.id],
            ))
        return CourseProgression(user_id=user_id, view=view, modules=modules)

    async def complete_lesson(self, user_id: str, lesson_id: str) -> CourseProgression:
        """
        Record a lesson completion after a fresh server-side lock check.

        Raises:
            LessonLockedError: the lesson is locked for this learner
        """
        module_id = self._require().module_of(lesson_id)

        fresh = {lesson.id: lesson for lesson in await self.service.list_lessons(module_id)}
        current = fresh.get(lesson_id)
        if current is None:
            raise UnknownEntityError([lesson_id])
        if current.is_globally_locked:
            logger.info(f"Lesson {lesson_id} is locked for {user_id}; completion not sent")
            raise LessonLockedError(lesson_id)

        try:
            await self.service.complete_lesson(lesson_id)
        except LessonLockedError:
            logger.info(f"Service refused completion of {lesson_id} for {user_id}")
            raise
        self.ledger_for(user_id).record_lesson(lesson_id)
        await self._refresh_lessons(module_id)
        return self.annotate_progression(user_id)

    async def _refresh_lessons(self, module_id: str):
        """Reload a module's lessons so lock hints reflect the latest completion."""
        try:
            lessons = await self.service.list_lessons(module_id)
        except (RemoteServiceError, ValidationError) as exc:
            logger.warning(f"Could not refresh lessons of {module_id} after completion: {exc}")
            return
        if self.controller.in_flight(ReorderScope.LESSONS, module_id):
            logger.debug(f"Reorder in flight for {module_id}; lock hints refresh on reconciliation")
            return
        try:
            self._require().lessons[module_id].load(lessons)
        except OrderingError:
            logger.exception(f"Refreshed lessons of {module_id} failed validation")

    async def submit_quiz(self, user_id: str, quiz_id: str, answers: list[int]) -> QuizResult:
        """
        Submit answers and record the attempt.

        A failing score leaves the quiz unlocked for another attempt.
        """
        quiz = self._require().find_quiz(quiz_id)
        result = await self.service.submit_quiz(quiz_id, answers)
        record = self.ledger_for(user_id).record_quiz_attempt(quiz, result.score)
        if result.passed != (result.score >= quiz.passing_score):
            logger.warning(
                f"Quiz {quiz_id}: service says passed={result.passed} for score {result.score}, "
                f"passing score is {quiz.passing_score}"
            )
        logger.info(f"Quiz {quiz_id} attempt by {user_id}: score {result.score}, completed={record.passed}")
        return result

    async def aclose(self):
        await self.controller.aclose()
