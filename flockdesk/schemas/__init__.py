"""
Flockdesk Schemas - Pydantic models for the course content core.

This module exports all schema classes for:
- Content: courses, modules, lessons, quizzes, reorder intents
- Progress: node states, completion records, quiz results
"""

# Content schemas
from .content import (
    OrderedEntity,
    MediaRef,
    Course,
    Module,
    Lesson,
    QuizQuestion,
    Quiz,
    ReorderScope,
    ReorderEntry,
    ReorderIntent,
)

# Progress schemas
from .progress import (
    NodeState,
    CompletionRecord,
    QuizResult,
)

__all__ = [
    # Content
    'OrderedEntity',
    'MediaRef',
    'Course',
    'Module',
    'Lesson',
    'QuizQuestion',
    'Quiz',
    'ReorderScope',
    'ReorderEntry',
    'ReorderIntent',
    # Progress
    'NodeState',
    'CompletionRecord',
    'QuizResult',
]
