"""Sequential evaluation runner.

Drives an :class:`EvaluationQueue` one rubric at a time: a rubric's
request, parse and scoring all finish before the next rubric starts.  The
only suspension point is the HTTP round trip, and the cancellation token is
checked between items, never during one.
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Union

from config.llm_config import ConnectionConfig
from errors.exceptions import EvaluationError
from models.evaluation import EvaluationResult, QueueItem, QueueStatus
from models.rubric import Rubric
from services.evaluation_queue import EvaluationQueue
from services.scoring_client import ScoringClient

logger = logging.getLogger(__name__)

# Asked after a rubric fails; True = continue with the next rubric.
FailureDecision = Callable[[QueueItem, EvaluationError], Union[bool, Awaitable[bool]]]


class CancellationToken:
    """Shared stop flag set by the caller and read by the runner."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class EvaluationRunner:
    """Scores queued rubrics one after another.

    Args:
        client: Started :class:`ScoringClient`.
        queue: Queue whose items the runner transitions.
        token: Cancellation flag shared with the caller.
        on_failure: Decides continue/abort after a failed rubric.  When
            omitted, *continue_on_failure* is used as the fixed answer.
    """

    def __init__(
        self,
        client: ScoringClient,
        queue: EvaluationQueue,
        token: CancellationToken | None = None,
        on_failure: FailureDecision | None = None,
        continue_on_failure: bool = True,
    ) -> None:
        self._client = client
        self._queue = queue
        self._token = token or CancellationToken()
        self._on_failure = on_failure
        self._continue_on_failure = continue_on_failure
        self.aborted = False

    @property
    def token(self) -> CancellationToken:
        return self._token

    async def run(
        self,
        rubrics: list[Rubric],
        queue_items: list[QueueItem],
        content: str,
        connection: ConnectionConfig,
    ) -> list[EvaluationResult]:
        """Evaluate *content* against each rubric in order.

        ``rubrics[i]`` is scored for ``queue_items[i]``.  Scoring errors are
        recorded on the item as ``failed`` and never propagate.  Items that
        were not reached because of cancellation or abort stay ``queued``.

        Returns:
            Completed results only, in submission order.
        """
        results: list[EvaluationResult] = []
        total = len(queue_items)
        self.aborted = False

        for rubric, item in zip(rubrics, queue_items):
            if self._token.cancelled:
                logger.info("Run cancelled before rubric %s", rubric.id)
                break

            self._queue.update_queue_item(item.id, status=QueueStatus.EVALUATING, progress=0)
            logger.info("Evaluating rubric %s (%s)", rubric.id, rubric.name)

            try:
                result = await self._client.evaluate_single_rubric(rubric, content, connection)
            except EvaluationError as exc:
                logger.warning("Rubric %s failed: %s", rubric.id, exc.description)
                failed = self._queue.update_queue_item(
                    item.id,
                    status=QueueStatus.FAILED,
                    error=exc.description or exc.title,
                )
                if not await self._should_continue(failed or item, exc):
                    logger.info("Run aborted after rubric %s failed", rubric.id)
                    self.aborted = True
                    break
                continue

            results.append(result)
            self._queue.update_queue_item(
                item.id,
                status=QueueStatus.COMPLETED,
                progress=100,
                result=result,
            )
            self._queue.set_progress(len(results) / total * 100)

        return results

    async def _should_continue(self, item: QueueItem, exc: EvaluationError) -> bool:
        if self._on_failure is None:
            return self._continue_on_failure
        decision = self._on_failure(item, exc)
        if inspect.isawaitable(decision):
            decision = await decision
        return bool(decision)
