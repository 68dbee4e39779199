"""
OrderingStore - In-memory ordering of one sibling set.

Holds the modules of a course, or the lessons of a module, sorted by
`order`. Mutation happens only through `reindex` and `restore`; readers
get the current sequence.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, Optional, TypeVar

from flockdesk.errors import MalformedOrderError, UnknownEntityError
from flockdesk.schemas import OrderedEntity


E = TypeVar("E", bound=OrderedEntity)


@dataclass(frozen=True)
class OrderingSnapshot(Generic[E]):
    """Independent copy of a store's sequence, used for rollback."""
    entities: tuple[E, ...]

    def ids(self) -> list[str]:
        return [e.id for e in self.entities]


def _duplicates(values: Iterable) -> list:
    return sorted(v for v, n in Counter(values).items() if n > 1)


class OrderingStore(Generic[E]):
    """Ordered sequence of entities keyed by id."""

    def __init__(self, entities: Optional[Iterable[E]] = None):
        self._entities: list[E] = []
        if entities is not None:
            self.load(entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[E]:
        return iter(list(self._entities))

    def __contains__(self, entity_id: str) -> bool:
        return any(e.id == entity_id for e in self._entities)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def entities(self) -> list[E]:
        """Current sequence, ascending by order."""
        return list(self._entities)

    def ids(self) -> list[str]:
        return [e.id for e in self._entities]

    def orders(self) -> list[int]:
        return [e.order for e in self._entities]

    def get(self, entity_id: str) -> Optional[E]:
        for e in self._entities:
            if e.id == entity_id:
                return e
        return None

    def position(self, entity_id: str) -> int:
        """Zero-based position of an entity in the current sequence."""
        for i, e in enumerate(self._entities):
            if e.id == entity_id:
                return i
        raise UnknownEntityError([entity_id])

    def is_contiguous(self) -> bool:
        """True when orders are exactly 0..n-1."""
        return self.orders() == list(range(len(self._entities)))

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def load(self, entities: Iterable[E]):
        """
        Replace the held sequence.

        Raises:
            MalformedOrderError: duplicate ids or duplicate order values.
                Upstream data is reported, never repaired.
        """
        items = [e.model_copy(deep=True) for e in entities]

        dup_ids = _duplicates(e.id for e in items)
        if dup_ids:
            raise MalformedOrderError(f"Duplicate ids in sibling set: {dup_ids}")

        dup_orders = _duplicates(e.order for e in items)
        if dup_orders:
            raise MalformedOrderError(f"Duplicate order values in sibling set: {dup_orders}")

        self._entities = sorted(items, key=lambda e: e.order)

    def reindex(self, new_sequence: list[str]):
        """
        Assign `order = position` following `new_sequence`.

        `new_sequence` must be a permutation of the current ids. The store
        is left untouched when validation fails.

        Raises:
            UnknownEntityError: an id is not in the store
            MalformedOrderError: an id is repeated or a member is missing
        """
        by_id = {e.id: e for e in self._entities}

        unknown = [i for i in new_sequence if i not in by_id]
        if unknown:
            raise UnknownEntityError(unknown)

        repeated = _duplicates(new_sequence)
        if repeated:
            raise MalformedOrderError(f"Ids repeated in new sequence: {repeated}")

        missing = [i for i in by_id if i not in set(new_sequence)]
        if missing:
            raise MalformedOrderError(f"New sequence omits members: {missing}")

        self._entities = [
            by_id[entity_id].model_copy(update={"order": position})
            for position, entity_id in enumerate(new_sequence)
        ]

    def snapshot(self) -> OrderingSnapshot[E]:
        return OrderingSnapshot(entities=tuple(e.model_copy(deep=True) for e in self._entities))

    def restore(self, snapshot: OrderingSnapshot[E]):
        """Return to exactly the snapshotted sequence."""
        self._entities = [e.model_copy(deep=True) for e in snapshot.entities]
