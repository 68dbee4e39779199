"""
Flockdesk Classroom - Ordering and progression core for course content.

This module provides:
- OrderingStore: ordered sibling sets with snapshot/restore
- ReorderController: optimistic reorders with rollback and reconciliation
- Progression: locked / unlocked / completed decisions
- CompletionLedger: a learner's completion records for the session
- HierarchyCoordinator: loads one course and ties the above together
"""

from .ordering import (
    OrderingStore,
    OrderingSnapshot,
)

from .mutation import (
    ReorderController,
    ReorderOutcome,
    SiblingState,
    MutationEvent,
    CancellationToken,
    transition,
)

from .progression import (
    ModuleOutline,
    ProgressionView,
    evaluate_progression,
    effective_lock,
    annotate_lessons,
)

from .ledger import CompletionLedger

from .coordinator import (
    HierarchyCoordinator,
    ContentHierarchy,
    AnnotatedModule,
    CourseProgression,
)

__all__ = [
    # Ordering
    "OrderingStore",
    "OrderingSnapshot",
    # Mutation
    "ReorderController",
    "ReorderOutcome",
    "SiblingState",
    "MutationEvent",
    "CancellationToken",
    "transition",
    # Progression
    "ModuleOutline",
    "ProgressionView",
    "evaluate_progression",
    "effective_lock",
    "annotate_lessons",
    "CompletionLedger",
    # Coordinator
    "HierarchyCoordinator",
    "ContentHierarchy",
    "AnnotatedModule",
    "CourseProgression",
]
