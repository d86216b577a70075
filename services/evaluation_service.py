"""Evaluation sessions — the caller-facing entry point for one run.

A session validates the request, seeds a fresh queue, lets the runner work
through it, reconciles unreached items to ``partial`` after a cancel or
abort, and hands completed results to the evaluation store.
"""

from __future__ import annotations

import logging
import uuid

from pydantic import Field

from config.llm_config import ConnectionConfig
from config.settings import get_settings
from errors.exceptions import ConfigurationError
from models.base import FrozenCamelModel
from models.evaluation import EvaluationResult, QueueItem
from models.rubric import Rubric
from services.evaluation_queue import EvaluationQueue, QueueListener
from services.evaluation_runner import CancellationToken, EvaluationRunner, FailureDecision
from services.evaluation_store import EvaluationStore
from services.scoring_client import ScoringClient

logger = logging.getLogger(__name__)


def validate_evaluation_request(
    rubrics: list[Rubric],
    content: str,
    connection: ConnectionConfig,
    weights: dict[str, float] | None = None,
) -> None:
    """Reject a run before anything is queued.

    Raises:
        ConfigurationError: No rubric selected, empty content, incomplete
            connection settings, or a weight outside 0-1.
    """
    if not rubrics:
        raise ConfigurationError(
            "Select at least one evaluation standard.",
            title="No standard selected",
        )
    if not content.strip():
        raise ConfigurationError(
            "Enter the article content to evaluate.",
            title="No content",
        )
    if not connection.is_complete():
        missing = ", ".join(connection.missing_fields())
        raise ConfigurationError(
            f"Complete the scoring connection settings first (missing: {missing}).",
            title="Connection not configured",
        )
    out_of_range = sorted(
        rubric_id for rubric_id, weight in (weights or {}).items()
        if not 0 <= weight <= 1
    )
    if out_of_range:
        raise ConfigurationError(
            f"Weights are shares between 0 and 1 (invalid: {', '.join(out_of_range)}).",
            title="Invalid weights",
        )


class EvaluationOutcome(FrozenCamelModel):
    """Final state of a run as returned to the caller."""

    run_id: str
    queue_items: list[QueueItem] = Field(default_factory=list)
    progress: float = 0
    results: list[EvaluationResult] = Field(default_factory=list)
    interrupted: bool = False
    stored_ids: list[str] = Field(default_factory=list)


class EvaluationSession:
    """One run of several rubrics over a single piece of content.

    ``cancel()`` may be called at any time from the caller's side; the
    rubric being scored finishes and the rest become ``partial``.
    """

    def __init__(
        self,
        rubrics: list[Rubric],
        content: str,
        connection: ConnectionConfig,
        *,
        client: ScoringClient,
        store: EvaluationStore | None = None,
        weights: dict[str, float] | None = None,
        on_failure: FailureDecision | None = None,
        listener: QueueListener | None = None,
    ) -> None:
        validate_evaluation_request(rubrics, content, connection, weights)
        self.run_id = f"run-{uuid.uuid4().hex[:10]}"
        self.rubrics = list(rubrics)
        self.content = content
        self.connection = connection
        self.weights = weights
        self.queue = EvaluationQueue()
        if listener is not None:
            self.queue.subscribe(listener)
        self.token = CancellationToken()
        self._store = store
        self._runner = EvaluationRunner(
            client,
            self.queue,
            token=self.token,
            on_failure=on_failure,
            continue_on_failure=get_settings().continue_on_failure,
        )
        self.results: list[EvaluationResult] = []
        self.outcome: EvaluationOutcome | None = None

    @property
    def running(self) -> bool:
        return self.outcome is None

    def cancel(self) -> None:
        logger.info("Cancel requested for %s", self.run_id)
        self.token.cancel()

    def snapshot(self) -> EvaluationOutcome:
        """Current state; the final outcome once the run has finished."""
        if self.outcome is not None:
            return self.outcome
        return EvaluationOutcome(
            run_id=self.run_id,
            queue_items=self.queue.items,
            progress=self.queue.progress,
            results=list(self.results),
        )

    async def run(self) -> EvaluationOutcome:
        items = self.queue.create_queue_items(self.rubrics)
        # Score the snapshots held by the queue, not the caller's objects.
        rubrics = [item.rubric for item in items]
        try:
            self.results = await self._runner.run(rubrics, items, self.content, self.connection)
        finally:
            interrupted = self.token.cancelled or self._runner.aborted
            if interrupted:
                self.queue.mark_partial()

        stored_ids: list[str] = []
        if self._store is not None and self.results:
            try:
                stored_ids = self._store.add_evaluations(self.results, self.weights)
            except ValueError:
                logger.exception("%s: results could not be stored", self.run_id)

        self.outcome = EvaluationOutcome(
            run_id=self.run_id,
            queue_items=self.queue.items,
            progress=self.queue.progress,
            results=self.results,
            interrupted=interrupted,
            stored_ids=stored_ids,
        )
        logger.info(
            "%s finished: %d/%d completed%s",
            self.run_id, len(self.results), len(items),
            " (interrupted)" if interrupted else "",
        )
        return self.outcome


async def run_evaluation(
    rubrics: list[Rubric],
    content: str,
    connection: ConnectionConfig,
    *,
    client: ScoringClient,
    store: EvaluationStore | None = None,
    weights: dict[str, float] | None = None,
    on_failure: FailureDecision | None = None,
) -> EvaluationOutcome:
    """Validate, run and persist in one call."""
    session = EvaluationSession(
        rubrics,
        content,
        connection,
        client=client,
        store=store,
        weights=weights,
        on_failure=on_failure,
    )
    return await session.run()
