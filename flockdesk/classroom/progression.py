"""
Progression - Sequential unlock rules for lessons and quizzes.

Provides:
- A pure decision function from (ordering, completed ids) to node states
- Lesson annotation with the derived `is_locked` view flag

Nothing here caches positions: every call recomputes from the order it is
given, so a reorder can never leave a stale lock behind.
"""

from dataclasses import dataclass, field
from typing import Collection, Iterable, Optional, Sequence

from flockdesk.errors import UnknownEntityError
from flockdesk.schemas import Lesson, Module, NodeState


@dataclass(frozen=True)
class ModuleOutline:
    """The ordering facts progression needs about one module."""
    module_id: str
    lesson_ids: tuple[str, ...]
    quiz_id: Optional[str] = None

    @classmethod
    def from_content(cls, module: Module, lessons: Iterable[Lesson], quiz_id: Optional[str] = None) -> "ModuleOutline":
        """Build from a module and its lessons (lessons sorted by order here)."""
        ordered = sorted(lessons, key=lambda lesson: lesson.order)
        return cls(
            module_id=module.id,
            lesson_ids=tuple(lesson.id for lesson in ordered),
            quiz_id=quiz_id if quiz_id is not None else module.quiz_id,
        )


@dataclass(frozen=True)
class ProgressionView:
    """Node states for one learner over one course, in traversal order."""
    states: dict[str, NodeState]
    sequence: tuple[str, ...]
    module_completed: dict[str, bool] = field(default_factory=dict)

    def state_of(self, node_id: str) -> NodeState:
        try:
            return self.states[node_id]
        except KeyError:
            raise UnknownEntityError([node_id]) from None

    def is_accessible(self, node_id: str) -> bool:
        return self.state_of(node_id) is not NodeState.LOCKED

    def next_accessible(self, after: Optional[str] = None) -> Optional[str]:
        """First unlocked (not yet completed) node, optionally after a given node."""
        start = 0
        if after is not None:
            if after not in self.states:
                raise UnknownEntityError([after])
            start = self.sequence.index(after) + 1
        for node_id in self.sequence[start:]:
            if self.states[node_id] is NodeState.UNLOCKED:
                return node_id
        return None

    def counts(self) -> dict[str, int]:
        result = {state.value: 0 for state in NodeState}
        for state in self.states.values():
            result[state.value] += 1
        return result


def evaluate_progression(modules: Sequence[ModuleOutline], completed_ids: Collection[str]) -> ProgressionView:
    """
    Decide locked / unlocked / completed for every lesson and quiz.

    Rules:
    - A node with a passing completion record is completed, wherever it sits.
    - The first lesson of the first module is unlocked.
    - Lesson i is unlocked iff lesson i-1 of the same module is completed.
    - The first lesson of module m (m > 0) is unlocked iff module m-1 is done:
      its quiz is completed, or (no quiz) its last lesson is completed.
      A module with no lessons and no quiz is done.
    - A quiz is unlocked iff every lesson of its module is completed.

    Args:
        modules: Modules in course order, each listing lesson ids in order
        completed_ids: Lesson and quiz ids holding a passing record

    Returns:
        ProgressionView covering every lesson and quiz in `modules`
    """
    completed = set(completed_ids)
    states: dict[str, NodeState] = {}
    sequence: list[str] = []
    module_completed: dict[str, bool] = {}

    gate_open = True
    for module in modules:
        previous_done = gate_open
        for lesson_id in module.lesson_ids:
            if lesson_id in completed:
                state = NodeState.COMPLETED
            elif previous_done:
                state = NodeState.UNLOCKED
            else:
                state = NodeState.LOCKED
            states[lesson_id] = state
            sequence.append(lesson_id)
            previous_done = state is NodeState.COMPLETED

        all_lessons_done = all(states[lid] is NodeState.COMPLETED for lid in module.lesson_ids)

        if module.quiz_id is not None:
            if module.quiz_id in completed:
                quiz_state = NodeState.COMPLETED
            elif all_lessons_done:
                quiz_state = NodeState.UNLOCKED
            else:
                quiz_state = NodeState.LOCKED
            states[module.quiz_id] = quiz_state
            sequence.append(module.quiz_id)
            done = quiz_state is NodeState.COMPLETED
        elif module.lesson_ids:
            done = states[module.lesson_ids[-1]] is NodeState.COMPLETED
        else:
            done = True

        module_completed[module.module_id] = done
        gate_open = done

    return ProgressionView(states=states, sequence=tuple(sequence), module_completed=module_completed)


def effective_lock(state: NodeState, server_hint: Optional[bool]) -> bool:
    """
    Lock flag shown for a lesson.

    The server's per-user hint wins over the local preview, except that a
    completed lesson is never shown locked.
    """
    if state is NodeState.COMPLETED:
        return False
    if server_hint is not None:
        return server_hint
    return state is NodeState.LOCKED


def annotate_lessons(view: ProgressionView, lessons: Iterable[Lesson]) -> list[Lesson]:
    """Copies of `lessons` with `is_locked` derived from `view`."""
    return [
        lesson.model_copy(update={"is_locked": effective_lock(view.state_of(lesson.id), lesson.is_globally_locked)})
        for lesson in lessons
    ]
