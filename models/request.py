"""API request / response models."""

from __future__ import annotations

from pydantic import Field

from config.llm_config import ConnectionConfig
from models.base import CamelModel
from models.evaluation import ArticleEvaluationGroup, EvaluationResult, QueueItem
from models.rubric import Rubric


class ConnectionPayload(CamelModel):
    """Optional per-request connection; empty fields fall back to .env defaults."""

    base_url: str = ""
    api_key: str = ""
    model: str = ""
    temperature: float | None = None

    def to_config(self) -> ConnectionConfig:
        return ConnectionConfig(**self.model_dump(exclude_none=True))


class EvaluationRunRequest(CamelModel):
    """POST /api/evaluations/runs — request body."""

    rubric_ids: list[str] = Field(default_factory=list)
    content: str = ""
    connection: ConnectionPayload | None = None
    # {rubricId: share of the combined verdict}
    weights: dict[str, float] | None = None


class EvaluationRunResponse(CamelModel):
    """Run snapshot returned by the run endpoints."""

    run_id: str
    running: bool
    progress: float = 0
    interrupted: bool = False
    queue_items: list[QueueItem] = Field(default_factory=list)
    results: list[EvaluationResult] = Field(default_factory=list)
    stored_ids: list[str] = Field(default_factory=list)


class ArticleGroupsResponse(CamelModel):
    """GET /api/evaluations/groups — response body."""

    groups: list[ArticleEvaluationGroup] = Field(default_factory=list)
    count: int = 0


class RubricListResponse(CamelModel):
    """GET /api/rubrics — response body."""

    rubrics: list[Rubric] = Field(default_factory=list)
    count: int = 0


class StandardGenerateRequest(CamelModel):
    """POST /api/rubrics/generate — request body."""

    name: str
    description: str = ""
    connection: ConnectionPayload | None = None
    save: bool = True


class ConnectionProbeResponse(CamelModel):
    """POST /api/connection/probe — response body."""

    ok: bool
    base_url: str = ""
