"""Shared pytest fixtures for evaluation tests.

Provides:
- ``make_rubric``: factory for rubrics with equal-weight criteria
- ``rubric``: single-criterion rubric (weight 100, range 0-5)
- ``connection``: complete ConnectionConfig
- ``memory_store``: fresh InMemoryEvaluationStore per test
- ``make_result``: factory for EvaluationResult objects
- ``fake_client_factory``: ScoringClient stand-in driven by a per-rubric script
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from config.llm_config import ConnectionConfig
from errors.exceptions import EvaluationError
from models.evaluation import EvaluationResult, ScoredCriterion
from models.rubric import Rubric, RubricCriterion
from services.evaluation_store import InMemoryEvaluationStore

BASE_DATE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _make_rubric(rubric_id: str = "r1", weights: list[float] | None = None, score_range=(0, 5)) -> Rubric:
    weights = weights if weights is not None else [100]
    return Rubric(
        id=rubric_id,
        name=f"Rubric {rubric_id}",
        total_weight=sum(weights),
        criteria=[
            RubricCriterion(
                id=f"c{i + 1}",
                name=f"Criterion {i + 1}",
                weight=w,
                score_range=score_range,
                description={"1": "poor", "5": "excellent"},
            )
            for i, w in enumerate(weights)
        ],
    )


def _make_result(
    rubric: Rubric | None = None,
    *,
    title: str = "Article",
    content: str = "Some content",
    score: int = 80,
    offset_minutes: int = 0,
) -> EvaluationResult:
    rubric = rubric or _make_rubric()
    return EvaluationResult(
        id=uuid.uuid4().hex,
        article_title=title,
        article_content=content,
        total_score=score,
        evaluation_date=BASE_DATE + timedelta(minutes=offset_minutes),
        criteria=[ScoredCriterion(id="c1", name="Criterion 1", score=4, max_score=5)],
        summary="ok",
        rubric=rubric,
    )


@pytest.fixture
def make_rubric():
    return _make_rubric


@pytest.fixture
def rubric() -> Rubric:
    return _make_rubric()


@pytest.fixture
def make_result():
    return _make_result


@pytest.fixture
def connection() -> ConnectionConfig:
    return ConnectionConfig(base_url="https://llm.test/v1", api_key="sk-test", model="test-model")


@pytest.fixture
def memory_store() -> InMemoryEvaluationStore:
    """Fresh store — isolated per test."""
    return InMemoryEvaluationStore()


class FakeScoringClient:
    """Returns scripted outcomes per rubric id, in call order.

    ``script[rubric_id]`` is an int score, an exception instance to raise,
    or a callable run before returning (used to cancel mid-run).
    """

    def __init__(self, script: dict[str, object]) -> None:
        self.script = script
        self.calls: list[str] = []

    async def evaluate_single_rubric(self, rubric, content, connection):
        self.calls.append(rubric.id)
        outcome = self.script[rubric.id]
        if isinstance(outcome, EvaluationError):
            raise outcome
        if callable(outcome):
            outcome = outcome()
        return _make_result(rubric, content=content, title=f"Title {rubric.id}", score=outcome)


@pytest.fixture
def fake_client_factory():
    return FakeScoringClient


@pytest.fixture
def settings_stub():
    s = MagicMock()
    s.continue_on_failure = True
    s.scoring_timeout = None
    return s
