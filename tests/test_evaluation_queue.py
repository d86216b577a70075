"""Tests for the evaluation queue."""

from __future__ import annotations

import pytest

from errors.exceptions import QueueStateError
from models.evaluation import QueueStatus
from services.evaluation_queue import EvaluationQueue


class TestCreateQueueItems:
    def test_one_queued_item_per_rubric(self, make_rubric):
        queue = EvaluationQueue()
        items = queue.create_queue_items([make_rubric("a"), make_rubric("b")])
        assert [i.rubric.id for i in items] == ["a", "b"]
        assert all(i.status == QueueStatus.QUEUED for i in items)
        assert all(i.result is None and i.error is None for i in items)

    def test_ids_unique_when_rubric_repeated(self, rubric):
        queue = EvaluationQueue()
        items = queue.create_queue_items([rubric, rubric, rubric])
        assert len({i.id for i in items}) == 3
        assert all(i.id.startswith(f"{rubric.id}-") for i in items)

    def test_rubric_is_snapshotted(self, rubric):
        queue = EvaluationQueue()
        items = queue.create_queue_items([rubric])
        rubric.criteria[0].weight = 1
        rubric.name = "edited"
        assert items[0].rubric.name == "Rubric r1"
        assert items[0].rubric.criteria[0].weight == 100

    def test_reseeding_resets_progress(self, rubric):
        queue = EvaluationQueue()
        queue.create_queue_items([rubric])
        queue.set_progress(100)
        queue.create_queue_items([rubric])
        assert queue.progress == 0


class TestUpdateQueueItem:
    def test_updates_only_matching_item(self, make_rubric):
        queue = EvaluationQueue()
        first, second = queue.create_queue_items([make_rubric("a"), make_rubric("b")])
        queue.update_queue_item(first.id, status="evaluating", progress=0)

        assert queue.get(first.id).status == QueueStatus.EVALUATING
        assert queue.get(second.id) == second

    def test_items_are_replaced_not_mutated(self, rubric):
        queue = EvaluationQueue()
        (item,) = queue.create_queue_items([rubric])
        updated = queue.update_queue_item(item.id, status=QueueStatus.EVALUATING)
        assert item.status == QueueStatus.QUEUED
        assert updated.status == QueueStatus.EVALUATING

    def test_unknown_id_returns_none(self, rubric):
        queue = EvaluationQueue()
        queue.create_queue_items([rubric])
        assert queue.update_queue_item("nope", status="evaluating") is None

    def test_full_success_path(self, rubric):
        queue = EvaluationQueue()
        (item,) = queue.create_queue_items([rubric])
        queue.update_queue_item(item.id, status="evaluating")
        done = queue.update_queue_item(item.id, status="completed", progress=100)
        assert done.status == QueueStatus.COMPLETED

    @pytest.mark.parametrize("terminal", ["completed", "failed"])
    def test_terminal_items_cannot_change(self, rubric, terminal):
        queue = EvaluationQueue()
        (item,) = queue.create_queue_items([rubric])
        queue.update_queue_item(item.id, status="evaluating")
        queue.update_queue_item(item.id, status=terminal)

        with pytest.raises(QueueStateError):
            queue.update_queue_item(item.id, status="evaluating")
        with pytest.raises(QueueStateError):
            queue.update_queue_item(item.id, status="partial")
        with pytest.raises(QueueStateError):
            queue.update_queue_item(item.id, progress=50)

    def test_queued_cannot_jump_to_completed(self, rubric):
        queue = EvaluationQueue()
        (item,) = queue.create_queue_items([rubric])
        with pytest.raises(QueueStateError, match="queued"):
            queue.update_queue_item(item.id, status="completed")


class TestProgressAndPartial:
    def test_progress_never_decreases(self, rubric):
        queue = EvaluationQueue()
        queue.create_queue_items([rubric])
        queue.set_progress(50)
        queue.set_progress(25)
        assert queue.progress == 50
        queue.set_progress(150)
        assert queue.progress == 100

    def test_mark_partial_only_touches_pending(self, make_rubric):
        queue = EvaluationQueue()
        a, b, c, d = queue.create_queue_items([make_rubric(x) for x in "abcd"])
        queue.update_queue_item(a.id, status="evaluating")
        queue.update_queue_item(a.id, status="completed")
        queue.update_queue_item(b.id, status="evaluating")
        queue.update_queue_item(b.id, status="failed", error="boom")
        queue.update_queue_item(c.id, status="evaluating")

        assert queue.mark_partial() == 2
        statuses = [i.status for i in queue.items]
        assert statuses == [
            QueueStatus.COMPLETED,
            QueueStatus.FAILED,
            QueueStatus.PARTIAL,
            QueueStatus.PARTIAL,
        ]


class TestListeners:
    def test_listener_sees_every_change(self, rubric):
        queue = EvaluationQueue()
        seen = []
        queue.subscribe(lambda snap: seen.append((snap.items[0].status if snap.items else None, snap.progress)))

        (item,) = queue.create_queue_items([rubric])
        queue.update_queue_item(item.id, status="evaluating")
        queue.update_queue_item(item.id, status="completed")
        queue.set_progress(100)

        assert seen == [
            (QueueStatus.QUEUED, 0),
            (QueueStatus.EVALUATING, 0),
            (QueueStatus.COMPLETED, 0),
            (QueueStatus.COMPLETED, 100),
        ]

    def test_unsubscribe(self, rubric):
        queue = EvaluationQueue()
        seen = []
        unsubscribe = queue.subscribe(seen.append)
        unsubscribe()
        queue.create_queue_items([rubric])
        assert seen == []
