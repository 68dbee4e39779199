"""
Outline renderer - Plain-text course outline with status indicators.

Provides:
- Status indicator per node state
- Course outline lines for the operator scripts
"""

from typing import Optional

from flockdesk.classroom import ContentHierarchy, CourseProgression
from flockdesk.schemas import NodeState


STATUS_INDICATORS = {
    NodeState.COMPLETED: "✓",
    NodeState.UNLOCKED: "○",
    NodeState.LOCKED: "◌",
}


def get_status_indicator(state: Optional[NodeState], is_locked: Optional[bool] = None) -> str:
    """
    Get status indicator for outline display.

    Returns:
        ✓ for completed
        ○ for unlocked
        ◌ for locked (including lessons the server reports locked)
        · when no learner is selected
    """
    if state is None:
        return "·"
    if is_locked and state is not NodeState.COMPLETED:
        return STATUS_INDICATORS[NodeState.LOCKED]
    return STATUS_INDICATORS[state]


def render_outline(hierarchy: ContentHierarchy, progression: Optional[CourseProgression] = None) -> list[str]:
    """Outline lines: modules numbered from 1, lessons indented beneath."""
    lines = []
    annotated = {m.module.id: m for m in progression.modules} if progression else {}

    for position, module in enumerate(hierarchy.modules, start=1):
        entry = annotated.get(module.id)
        marker = " ✓" if entry and entry.completed else ""
        lines.append(f"{position}. {module.title} [{module.id}]{marker}")

        lessons = entry.lessons if entry else hierarchy.lessons[module.id].entities()
        for lesson in lessons:
            state = progression.view.state_of(lesson.id) if progression else None
            indicator = get_status_indicator(state, lesson.is_locked if progression else None)
            duration = f" ({lesson.duration:g} min)" if lesson.duration else ""
            lines.append(f"   {indicator} {lesson.order}. {lesson.title}{duration}")

        quiz = hierarchy.quizzes.get(module.id)
        if quiz is not None:
            state = entry.quiz_state if entry else None
            lines.append(
                f"   {get_status_indicator(state)} Quiz: {len(quiz.questions)} questions, "
                f"pass at {quiz.passing_score:g}"
            )
    return lines
