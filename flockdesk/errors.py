"""
Error taxonomy for Flockdesk.

- Ordering errors: local data-integrity violations, fatal to the operation
- ReorderFailed: persistence rejected; state already rolled back
- Gate rejections: the content service refused an out-of-order completion
- HierarchyLoadError: a sub-fetch failed while loading a course
- RemoteServiceError: transport or non-2xx response from the content service
"""

from typing import Optional


class FlockdeskError(Exception):
    """Base class for all Flockdesk errors."""


# -----------------------------------------------------------------------------
# Ordering
# -----------------------------------------------------------------------------


class OrderingError(FlockdeskError):
    pass


class MalformedOrderError(OrderingError):
    """Order data is not a valid sequence (duplicates, or not a permutation)."""


class UnknownEntityError(OrderingError):
    """An id is not a member of the sibling set."""

    def __init__(self, entity_ids: list[str]):
        self.entity_ids = list(entity_ids)
        super().__init__(f"Unknown entity id(s): {', '.join(self.entity_ids)}")


# -----------------------------------------------------------------------------
# Remote service
# -----------------------------------------------------------------------------


class RemoteServiceError(FlockdeskError):
    """The content service could not be reached or answered non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ReorderFailed(FlockdeskError):
    """A reorder was rejected; the sibling set has been restored."""

    def __init__(self, intent, cause: Optional[BaseException] = None):
        self.intent = intent
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Reorder of {intent.scope.value} in {intent.parent_id} failed{detail}")


class HierarchyLoadError(FlockdeskError):
    """Loading a course hierarchy failed; wraps the first failing sub-fetch."""

    def __init__(self, course_id: str, cause: BaseException):
        self.course_id = course_id
        self.cause = cause
        super().__init__(f"Could not load hierarchy for course {course_id}: {cause}")


# -----------------------------------------------------------------------------
# Progression gate
# -----------------------------------------------------------------------------


class GateRejectedError(FlockdeskError):
    """A completion was refused because its prerequisites are not completed."""

    def __init__(self, node_id: str, message: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message or "Complete the previous lesson first")


class LessonLockedError(GateRejectedError):
    pass


class QuizLockedError(GateRejectedError):
    def __init__(self, node_id: str, message: Optional[str] = None):
        super().__init__(node_id, message or "Complete every lesson in this module first")
