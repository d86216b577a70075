"""Evaluation API — runs, article groups and record deletion."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from config.settings import get_settings
from errors.exceptions import ConfigurationError
from models.request import (
    ArticleGroupsResponse,
    EvaluationRunRequest,
    EvaluationRunResponse,
)
from models.evaluation import ArticleEvaluationGroup
from services.evaluation_service import EvaluationSession
from services.evaluation_store import get_evaluation_store
from services.rubric_service import get_rubric_repository
from services.run_manager import RunAlreadyActiveError, get_run_manager
from services.scoring_client import get_scoring_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/evaluations", tags=["evaluations"])


def _run_response(session: EvaluationSession) -> EvaluationRunResponse:
    snapshot = session.snapshot()
    return EvaluationRunResponse(
        run_id=snapshot.run_id,
        running=get_run_manager().is_running(session.run_id),
        progress=snapshot.progress,
        interrupted=snapshot.interrupted,
        queue_items=snapshot.queue_items,
        results=snapshot.results,
        stored_ids=snapshot.stored_ids,
    )


@router.post("/runs", response_model=EvaluationRunResponse, status_code=202)
async def start_run(req: EvaluationRunRequest):
    """Start evaluating ``content`` against the selected rubrics.

    The run proceeds in the background; poll ``GET /runs/{runId}``.
    """
    rubrics, missing = get_rubric_repository().resolve_rubrics(req.rubric_ids)
    if missing:
        raise HTTPException(status_code=404, detail=f"Unknown rubric(s): {missing}")

    connection = get_settings().get_default_connection()
    if req.connection is not None:
        connection = connection.merge(req.connection.to_config())

    try:
        session = EvaluationSession(
            rubrics,
            req.content,
            connection,
            client=get_scoring_client(),
            store=get_evaluation_store(),
            weights=req.weights,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e

    try:
        get_run_manager().start(session)
    except RunAlreadyActiveError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    return _run_response(session)


@router.get("/runs/{run_id}", response_model=EvaluationRunResponse)
async def get_run(run_id: str):
    session = get_run_manager().get(run_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return _run_response(session)


@router.post("/runs/{run_id}/cancel", response_model=EvaluationRunResponse)
async def cancel_run(run_id: str):
    """Stop after the rubric currently being scored."""
    manager = get_run_manager()
    if not manager.cancel(run_id):
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return _run_response(manager.get(run_id))


@router.get("/groups", response_model=ArticleGroupsResponse)
async def list_groups():
    groups = get_evaluation_store().get_article_groups()
    return ArticleGroupsResponse(groups=groups, count=len(groups))


@router.get("/groups/{group_id}", response_model=ArticleEvaluationGroup)
async def get_group(group_id: str):
    group = get_evaluation_store().get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    return group


@router.delete("/groups/{group_id}")
async def delete_group(group_id: str):
    removed = get_evaluation_store().delete_group(group_id)
    if removed == 0:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    return {"deleted": removed}


@router.delete("/{evaluation_id}")
async def delete_evaluation(evaluation_id: str):
    if not get_evaluation_store().delete_evaluation(evaluation_id):
        raise HTTPException(status_code=404, detail=f"Evaluation {evaluation_id} not found")
    return {"deleted": 1}
