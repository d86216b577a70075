"""Evaluation queue — ordered, observable per-rubric attempts of one run.

Every status, progress or result change goes through
:meth:`EvaluationQueue.update_queue_item`, which swaps in a new immutable
:class:`QueueItem` and notifies listeners synchronously.

Allowed status transitions::

    queued ──► evaluating ──► completed
                   │
                   └────────► failed
    queued | evaluating ────► partial   (cancel / abort reconciliation)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from pydantic import Field

from errors.exceptions import QueueStateError
from models.base import FrozenCamelModel
from models.evaluation import QueueItem, QueueStatus
from models.rubric import Rubric

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.QUEUED: frozenset({QueueStatus.EVALUATING, QueueStatus.PARTIAL}),
    QueueStatus.EVALUATING: frozenset({
        QueueStatus.COMPLETED,
        QueueStatus.FAILED,
        QueueStatus.PARTIAL,
    }),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.FAILED: frozenset(),
    QueueStatus.PARTIAL: frozenset(),
}


class QueueSnapshot(FrozenCamelModel):
    """Point-in-time view pushed to listeners."""

    items: list[QueueItem] = Field(default_factory=list)
    progress: float = 0

    def count(self, status: QueueStatus) -> int:
        return sum(1 for item in self.items if item.status == status)


QueueListener = Callable[[QueueSnapshot], None]


class EvaluationQueue:
    """Holds the queue items and overall progress of a single run."""

    def __init__(self) -> None:
        self._items: list[QueueItem] = []
        self._progress: float = 0.0
        self._listeners: list[QueueListener] = []

    # -- observation ---------------------------------------------------------

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(items=list(self._items), progress=self._progress)

    @property
    def items(self) -> list[QueueItem]:
        return list(self._items)

    @property
    def progress(self) -> float:
        return self._progress

    def get(self, item_id: str) -> QueueItem | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    # -- mutation ------------------------------------------------------------

    def create_queue_items(self, rubrics: list[Rubric]) -> list[QueueItem]:
        """Seed the queue with one ``queued`` item per rubric.

        Each item holds a deep copy of its rubric, so later edits to the
        rubric do not leak into an in-flight run.  Ids combine the rubric
        id, the creation time and the position, which keeps them unique
        even when one rubric is queued twice.
        """
        stamp = time.time_ns() // 1_000_000
        self._items = [
            QueueItem(
                id=f"{rubric.id}-{stamp}-{index}",
                rubric=rubric.model_copy(deep=True),
            )
            for index, rubric in enumerate(rubrics)
        ]
        self._progress = 0.0
        logger.info("Queue seeded with %d item(s)", len(self._items))
        self._notify()
        return list(self._items)

    def update_queue_item(self, item_id: str, **changes: Any) -> QueueItem | None:
        """Replace the item with id *item_id* by a copy carrying *changes*.

        Raises:
            QueueStateError: ``status`` in *changes* is not reachable from
                the item's current status.

        Returns:
            The new item, or None if no item has that id.
        """
        updated: QueueItem | None = None
        new_items = []
        for item in self._items:
            if item.id != item_id:
                new_items.append(item)
                continue
            if "status" in changes:
                changes["status"] = QueueStatus(changes["status"])
            self._check_transition(item, changes.get("status", item.status))
            updated = item.model_copy(update=changes)
            new_items.append(updated)

        if updated is None:
            logger.warning("Queue item not found: %s", item_id)
            return None

        self._items = new_items
        self._notify()
        return updated

    def set_progress(self, progress: float) -> float:
        """Raise overall progress to *progress*; it never decreases within a run."""
        progress = min(max(progress, 0.0), 100.0)
        if progress > self._progress:
            self._progress = progress
            self._notify()
        return self._progress

    def mark_partial(self) -> int:
        """Reclassify every ``queued`` or ``evaluating`` item as ``partial``."""
        pending = [
            item.id
            for item in self._items
            if item.status in (QueueStatus.QUEUED, QueueStatus.EVALUATING)
        ]
        for item_id in pending:
            self.update_queue_item(item_id, status=QueueStatus.PARTIAL)
        if pending:
            logger.info("Marked %d item(s) partial", len(pending))
        return len(pending)

    # -- internals -----------------------------------------------------------

    @staticmethod
    def _check_transition(item: QueueItem, target: QueueStatus) -> None:
        # Terminal items are frozen, even for progress-only changes.
        if target == item.status and not item.status.is_terminal:
            return
        if target not in _TRANSITIONS[item.status]:
            raise QueueStateError(item.id, item.status.value, target.value)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
