"""Rubric models — evaluation standards and their weighted criteria.

A rubric (evaluation standard) is a named set of criteria.  Each criterion
carries a weight (share of ``total_weight``), a score range and optional
per-level anchor texts keyed by the stringified score.  Rubrics are loaded
from the rubric directory or produced by the standard generator.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator, model_validator

from models.base import CamelModel

DEFAULT_SCORE_RANGE = (1, 5)


class RubricCriterion(CamelModel):
    """单个评分维度 — one weighted, scored dimension."""

    id: str
    name: str
    weight: float = Field(default=0.0, ge=0, le=100)
    score_range: tuple[int, int] = DEFAULT_SCORE_RANGE
    # {"1": "Many factual errors", ..., "5": "Fully accurate"}
    description: dict[str, str] = Field(default_factory=dict)
    summary: str = ""

    @model_validator(mode="before")
    @classmethod
    def _split_plain_description(cls, data: Any) -> Any:
        # Hand-written documents often use a single sentence as description.
        if isinstance(data, dict) and isinstance(data.get("description"), str):
            data = dict(data)
            data.setdefault("summary", data["description"])
            data["description"] = {}
        return data

    @field_validator("description", mode="before")
    @classmethod
    def _stringify_levels(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    @property
    def max_score(self) -> int:
        return self.score_range[1]


class Rubric(CamelModel):
    """完整评分标准 — a complete evaluation standard."""

    id: str
    name: str
    description: str = ""
    criteria: list[RubricCriterion] = Field(default_factory=list)
    total_weight: float = 100
    version: str = "1.0"
    created_at: str = ""

    def criterion(self, criterion_id: str) -> RubricCriterion | None:
        for item in self.criteria:
            if item.id == criterion_id:
                return item
        return None

    @property
    def declared_weight_sum(self) -> float:
        return sum(c.weight for c in self.criteria)
