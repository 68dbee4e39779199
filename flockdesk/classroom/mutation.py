"""
ReorderController - Optimistic reorders with exact rollback.

Each sibling set (all modules of a course, or all lessons of a module)
moves through a small protocol:

    STABLE --apply--> SPECULATIVE --confirm--> STABLE
                                  --reject---> STABLE (restored from snapshot)

The speculative order is written to the OrderingStore before the
persistence request is issued. A newer intent for the same sibling set
cancels the older one's token, so the older response can no longer touch
the store. After every settled request a reconciliation fetch reloads the
sibling set from the content service.
"""

import asyncio
import itertools
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from flockdesk.errors import OrderingError, ReorderFailed, UnknownEntityError
from flockdesk.schemas import OrderedEntity, ReorderIntent, ReorderScope

from .ordering import OrderingStore


logger = logging.getLogger(__name__)

SiblingKey = tuple[str, str]
PersistFn = Callable[[ReorderIntent], Awaitable[Any]]
RefetchFn = Callable[[ReorderIntent], Awaitable[list[OrderedEntity]]]


class SiblingState(str, Enum):
    STABLE = "stable"
    SPECULATIVE = "speculative"


class MutationEvent(str, Enum):
    APPLY = "apply"
    CONFIRM = "confirm"
    REJECT = "reject"


class ReorderOutcome(str, Enum):
    CONFIRMED = "confirmed"
    SUPERSEDED = "superseded"


_TRANSITIONS = {
    (SiblingState.STABLE, MutationEvent.APPLY): SiblingState.SPECULATIVE,
    (SiblingState.SPECULATIVE, MutationEvent.APPLY): SiblingState.SPECULATIVE,
    (SiblingState.SPECULATIVE, MutationEvent.CONFIRM): SiblingState.STABLE,
    (SiblingState.SPECULATIVE, MutationEvent.REJECT): SiblingState.STABLE,
}


def transition(state: SiblingState, event: MutationEvent) -> SiblingState:
    """Next sibling-set state. Raises ValueError for an impossible event."""
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"Cannot {event.value} a {state.value} sibling set") from None


class CancellationToken:
    """Marks one in-flight reorder; cancelled when a newer intent supersedes it."""

    def __init__(self, key: SiblingKey, generation: int):
        self.key = key
        self.generation = generation
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "live"
        return f"CancellationToken({self.key!r}, gen={self.generation}, {state})"


class ReorderController:
    """
    Apply reorder intents optimistically against registered OrderingStores.

    Args:
        persist: coroutine function sending the intent to the content service;
            any exception means the service did not accept it
        refetch: coroutine function returning the authoritative sibling set
            for the intent's scope and parent
    """

    def __init__(self, persist: PersistFn, refetch: RefetchFn):
        self._persist = persist
        self._refetch = refetch
        self._stores: dict[SiblingKey, OrderingStore] = {}
        self._states: dict[SiblingKey, SiblingState] = {}
        self._tokens: dict[SiblingKey, CancellationToken] = {}
        self._reconciliations: dict[SiblingKey, asyncio.Task] = {}
        self._generations = itertools.count(1)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def attach(self, scope: ReorderScope, parent_id: str, store: OrderingStore):
        """Register the store for a sibling set, superseding anything in flight."""
        key = (scope.value, parent_id)
        self._supersede(key)
        self._stores[key] = store
        self._states[key] = SiblingState.STABLE

    def store_for(self, scope: ReorderScope, parent_id: str) -> OrderingStore:
        key = (scope.value, parent_id)
        if key not in self._stores:
            raise UnknownEntityError([parent_id])
        return self._stores[key]

    def state_of(self, scope: ReorderScope, parent_id: str) -> SiblingState:
        return self._states.get((scope.value, parent_id), SiblingState.STABLE)

    def in_flight(self, scope: ReorderScope, parent_id: str) -> bool:
        return (scope.value, parent_id) in self._tokens

    # -------------------------------------------------------------------------
    # Reorder protocol
    # -------------------------------------------------------------------------

    async def apply_reorder(self, intent: ReorderIntent) -> ReorderOutcome:
        """
        Apply `intent` speculatively, persist it, and settle.

        The store shows the new order as soon as this coroutine starts
        running; nothing before the persistence request suspends.

        Returns:
            CONFIRMED when the service accepted the order, SUPERSEDED when a
            newer intent for the same sibling set took over while waiting

        Raises:
            ReorderFailed: the service rejected the order; the store has
                already been restored to its pre-intent sequence
            UnknownEntityError / MalformedOrderError: the intent does not
                match the sibling set; nothing was changed
        """
        key = intent.key
        store = self.store_for(intent.scope, intent.parent_id)

        snapshot = store.snapshot()
        store.reindex(intent.sequence())

        self._supersede(key)
        token = CancellationToken(key, next(self._generations))
        self._tokens[key] = token
        self._states[key] = transition(self.state_of(intent.scope, intent.parent_id), MutationEvent.APPLY)
        logger.debug(f"Speculative {intent.scope.value} order for {intent.parent_id}: {intent.sequence()}")

        try:
            await self._persist(intent)
        except asyncio.CancelledError:
            if not token.cancelled:
                store.restore(snapshot)
                self._settle(key, token, MutationEvent.REJECT)
                logger.warning(f"Reorder of {intent.scope.value} in {intent.parent_id} cancelled, rolled back")
            raise
        except Exception as exc:
            if token.cancelled:
                logger.info(f"Discarded late failure for superseded reorder {token!r}: {exc}")
                self._reconcile_if_idle(intent, store)
                return ReorderOutcome.SUPERSEDED
            store.restore(snapshot)
            self._settle(key, token, MutationEvent.REJECT)
            logger.warning(f"Reorder of {intent.scope.value} in {intent.parent_id} rejected, rolled back: {exc}")
            self._schedule_reconciliation(intent, store)
            raise ReorderFailed(intent, exc) from exc

        if token.cancelled:
            logger.info(f"Discarded late confirmation for superseded reorder {token!r}")
            self._reconcile_if_idle(intent, store)
            return ReorderOutcome.SUPERSEDED

        self._settle(key, token, MutationEvent.CONFIRM)
        logger.info(f"Reorder of {intent.scope.value} in {intent.parent_id} confirmed")
        self._schedule_reconciliation(intent, store)
        return ReorderOutcome.CONFIRMED

    def _supersede(self, key: SiblingKey):
        previous = self._tokens.pop(key, None)
        if previous is not None:
            previous.cancel()
            logger.debug(f"Superseded in-flight reorder {previous!r}")
        task = self._reconciliations.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    def _settle(self, key: SiblingKey, token: CancellationToken, event: MutationEvent):
        self._states[key] = transition(self._states[key], event)
        if self._tokens.get(key) is token:
            del self._tokens[key]

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def _schedule_reconciliation(self, intent: ReorderIntent, store: OrderingStore):
        previous = self._reconciliations.pop(intent.key, None)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.create_task(self._reconcile(intent, store))
        self._reconciliations[intent.key] = task

    def _reconcile_if_idle(self, intent: ReorderIntent, store: OrderingStore):
        # The service may still have applied a superseded request; re-read once idle
        if intent.key not in self._tokens and self._stores.get(intent.key) is store:
            logger.debug(f"Re-reading {intent.scope.value} of {intent.parent_id} after a superseded response")
            self._schedule_reconciliation(intent, store)

    async def _reconcile(self, intent: ReorderIntent, store: OrderingStore):
        try:
            entities = await self._refetch(intent)
        except Exception as exc:
            logger.warning(f"Reconciliation fetch for {intent.scope.value} in {intent.parent_id} failed: {exc}")
            return

        if intent.key in self._tokens or self._stores.get(intent.key) is not store:
            logger.debug(f"Skipping stale reconciliation for {intent.key}")
            return
        try:
            store.load(entities)
        except OrderingError:
            logger.exception(f"Authoritative {intent.scope.value} for {intent.parent_id} failed validation")

    async def wait_reconciled(self, scope: Optional[ReorderScope] = None, parent_id: Optional[str] = None):
        """Wait for pending reconciliation fetches (all, or one sibling set)."""
        if scope is not None and parent_id is not None:
            tasks = [t for k, t in self._reconciliations.items() if k == (scope.value, parent_id)]
        else:
            tasks = list(self._reconciliations.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def aclose(self):
        """Cancel outstanding reconciliation fetches."""
        for task in self._reconciliations.values():
            if not task.done():
                task.cancel()
        await self.wait_reconciled()
        self._reconciliations.clear()
