"""Evaluation models — queue items, scoring results and persisted records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import Field, computed_field, field_validator

from models.base import CamelModel, FrozenCamelModel
from models.rubric import Rubric


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QueueStatus(str, Enum):
    """Lifecycle of one rubric's evaluation attempt within a run."""

    QUEUED = "queued"
    EVALUATING = "evaluating"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.COMPLETED, QueueStatus.FAILED, QueueStatus.PARTIAL)


class ScoredCriterion(FrozenCamelModel):
    """Score the model assigned to one criterion."""

    id: str
    name: str = ""
    score: float = 0
    max_score: float = 0
    comment: str = ""


class EvaluationResult(FrozenCamelModel):
    """One rubric applied to one piece of content.  Immutable once built."""

    id: str
    article_title: str
    article_content: str
    total_score: int = Field(ge=0, le=100)
    evaluation_date: datetime = Field(default_factory=utc_now)
    criteria: list[ScoredCriterion] = Field(default_factory=list)
    summary: str = ""
    suggestions: list[str] = Field(default_factory=list)
    rubric: Rubric


class QueueItem(FrozenCamelModel):
    """A rubric snapshot and the state of its evaluation attempt.

    Items are replaced, never edited in place; see
    :meth:`services.evaluation_queue.EvaluationQueue.update_queue_item`.
    """

    id: str
    rubric: Rubric
    status: QueueStatus = QueueStatus.QUEUED
    progress: float | None = None
    result: EvaluationResult | None = None
    error: str | None = None


class ArticleEvaluation(FrozenCamelModel):
    """Persisted, flattened evaluation record.

    ``weight_in_parent`` is this rubric's share (0-1) of a multi-rubric
    verdict.  When absent, readers apply an equal split.
    """

    id: str
    article_title: str = ""
    article_content: str = ""
    standard_id: str = ""
    standard_name: str = ""
    total_score: float = 0
    evaluation_date: datetime = Field(default_factory=utc_now)
    criteria: list[ScoredCriterion] = Field(default_factory=list)
    summary: str = ""
    suggestions: list[str] = Field(default_factory=list)
    weight_in_parent: float | None = Field(default=None, ge=0, le=1)

    @field_validator("evaluation_date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Older records were written without an offset.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_result(
        cls,
        result: EvaluationResult,
        weight_in_parent: float | None = None,
    ) -> ArticleEvaluation:
        return cls(
            id=result.id,
            article_title=result.article_title,
            article_content=result.article_content,
            standard_id=result.rubric.id,
            standard_name=result.rubric.name,
            total_score=result.total_score,
            evaluation_date=result.evaluation_date,
            criteria=list(result.criteria),
            summary=result.summary,
            suggestions=list(result.suggestions),
            weight_in_parent=weight_in_parent,
        )


def compute_weighted_score(evaluations: list[ArticleEvaluation]) -> float:
    """Cross-rubric verdict: ``Σ total_score × weight_in_parent``.

    Records without a weight take an equal split ``1 / len(evaluations)``.
    """
    if not evaluations:
        return 0.0
    equal_share = 1 / len(evaluations)
    total = 0.0
    for evaluation in evaluations:
        share = evaluation.weight_in_parent
        if share is None:
            share = equal_share
        total += evaluation.total_score * share
    return total


class ArticleEvaluationGroup(CamelModel):
    """All persisted evaluations sharing identical trimmed content.

    Derived on every read; never stored.
    """

    id: str
    article_title: str
    article_content: str
    evaluations: list[ArticleEvaluation] = Field(default_factory=list)
    evaluation_count: int = 0
    average_score: int = 0
    latest_date: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def weighted_score(self) -> float:
        return round(compute_weighted_score(self.evaluations), 2)
