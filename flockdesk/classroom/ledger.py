"""
CompletionLedger - Completion records for one learner, held for the session.

Stores what the content service reports (and what this session submits):
- Lesson completions
- Quiz attempts with scores

A node that has a passing record stays completed: later failing attempts
are kept in the attempt history but never replace the pass.
"""

import logging
from typing import Iterable, Optional

from flockdesk.schemas import CompletionRecord, Quiz


logger = logging.getLogger(__name__)


class CompletionLedger:
    """
    In-memory completion records keyed by lesson or quiz id.

    Nothing here is persisted; the content service owns durable progress.
    """

    def __init__(self, user_id: str, records: Optional[Iterable[CompletionRecord]] = None):
        """
        Initialize ledger.

        Args:
            user_id: Learner the records belong to
            records: Records already known (e.g. fetched from the service)
        """
        self.user_id = user_id
        self._best: dict[str, CompletionRecord] = {}
        self._attempts: dict[str, list[CompletionRecord]] = {}
        for record in records or []:
            self.record(record)

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record(self, record: CompletionRecord) -> CompletionRecord:
        """
        Merge a record and return the one now governing its node.

        Records for another learner are rejected with ValueError.
        """
        if record.user_id != self.user_id:
            raise ValueError(f"Record for user {record.user_id} added to ledger of {self.user_id}")

        node_id = record.node_id
        self._attempts.setdefault(node_id, []).append(record)

        current = self._best.get(node_id)
        if current is None or _outranks(record, current):
            self._best[node_id] = record
        elif current.passed and not record.passed:
            logger.debug(f"Kept passing record for {node_id}; failing attempt logged only")
        return self._best[node_id]

    def record_quiz_attempt(self, quiz: Quiz, score: float) -> CompletionRecord:
        """Record a graded quiz attempt; passes iff score >= passing score."""
        return self.record(CompletionRecord(
            user_id=self.user_id,
            quiz_id=quiz.id,
            passed=score >= quiz.passing_score,
            score=score,
        ))

    def record_lesson(self, lesson_id: str) -> CompletionRecord:
        return self.record(CompletionRecord(user_id=self.user_id, lesson_id=lesson_id, passed=True))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_completed(self, node_id: str) -> bool:
        record = self._best.get(node_id)
        return record is not None and record.passed

    def completed_ids(self) -> set[str]:
        return {node_id for node_id, r in self._best.items() if r.passed}

    def attempts(self, node_id: str) -> list[CompletionRecord]:
        """Every record seen for a node, oldest first."""
        return list(self._attempts.get(node_id, []))

    def best(self, node_id: str) -> Optional[CompletionRecord]:
        return self._best.get(node_id)


def _outranks(new: CompletionRecord, current: CompletionRecord) -> bool:
    """Passing beats failing; among equals a higher score wins."""
    if new.passed != current.passed:
        return new.passed
    return (new.score or 0) > (current.score or 0)
