"""Rubric API — listing, standard generation and connection probe."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from config.llm_config import ConnectionConfig
from config.settings import get_settings
from errors.exceptions import ConfigurationError, ScoringError
from models.request import (
    ConnectionPayload,
    ConnectionProbeResponse,
    RubricListResponse,
    StandardGenerateRequest,
)
from models.rubric import Rubric
from services.rubric_service import get_rubric_repository
from services.scoring_client import get_scoring_client
from services.standard_generator import generate_standard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rubrics"])


def _connection(payload: ConnectionPayload | None) -> ConnectionConfig:
    connection = get_settings().get_default_connection()
    if payload is not None:
        connection = connection.merge(payload.to_config())
    return connection


@router.get("/rubrics", response_model=RubricListResponse)
async def list_rubrics():
    rubrics = get_rubric_repository().list_rubrics()
    return RubricListResponse(rubrics=rubrics, count=len(rubrics))


@router.get("/rubrics/{rubric_id}", response_model=Rubric)
async def get_rubric(rubric_id: str):
    rubrics = get_rubric_repository().get_rubrics([rubric_id])
    if not rubrics:
        raise HTTPException(status_code=404, detail=f"Rubric {rubric_id} not found")
    return rubrics[0]


@router.post("/rubrics/generate", response_model=Rubric)
async def generate_rubric(req: StandardGenerateRequest):
    """Ask the completion endpoint to author a standard from a name + description."""
    try:
        rubric = await generate_standard(
            get_scoring_client(),
            req.name,
            req.description,
            _connection(req.connection),
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e
    except ScoringError as e:
        logger.exception("Standard generation failed")
        raise HTTPException(status_code=502, detail=e.to_dict()) from e

    if req.save:
        get_rubric_repository().save_rubric(rubric)
    return rubric


@router.post("/connection/probe", response_model=ConnectionProbeResponse)
async def probe_connection(payload: ConnectionPayload | None = None):
    """Check that the configured endpoint answers ``GET /models``."""
    connection = _connection(payload)
    if not connection.base_url or not connection.api_key:
        raise HTTPException(status_code=400, detail="Base URL and API key are required")
    ok = await get_scoring_client().probe(connection)
    return ConnectionProbeResponse(ok=ok, base_url=connection.base_url)
