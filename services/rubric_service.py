"""Rubric loading, conversion and retrieval service.

Provides access to evaluation standards stored as JSON files in the rubric
directory (``settings.rubric_dir``).  Files may hold either a flat rubric
(``criteria`` list) or an ``evaluation_system`` document whose categories
nest the criteria; both are normalised into :class:`Rubric`.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from config.settings import get_settings
from models.rubric import Rubric, RubricCriterion

logger = logging.getLogger(__name__)


def rubric_from_document(data: dict[str, Any], rubric_id: str = "") -> Rubric:
    """Build a :class:`Rubric` from a flat rubric or an evaluation-system document.

    Args:
        data: Parsed JSON.  Accepted shapes are a flat rubric, an
            ``{"evaluation_system": {...}}`` wrapper, or a standard record
            ``{"id", "name", "description", "evaluation_system"}``.
        rubric_id: Identifier to use when the document carries none.

    Raises:
        ValueError: The document has no usable criteria.
    """
    system = data.get("evaluation_system")
    if not isinstance(system, dict):
        system = data

    criteria: list[dict[str, Any]] = []
    if isinstance(system.get("criteria"), list):
        criteria.extend(system["criteria"])

    categories = system.get("categories") or []
    if isinstance(categories, dict):
        # {"content_quality": {...}} style keyed by category id
        categories = [
            {"id": key, **value} for key, value in categories.items() if isinstance(value, dict)
        ]
    for category in categories:
        nested = category.get("criteria") or []
        if isinstance(nested, dict):
            nested = [
                {"id": key, **value} for key, value in nested.items() if isinstance(value, dict)
            ]
        criteria.extend(nested)

    if not criteria:
        raise ValueError("Document contains no criteria")

    rid = data.get("id") or system.get("id") or rubric_id or f"std-{uuid.uuid4().hex[:10]}"
    rubric = Rubric(
        id=str(rid),
        name=data.get("name") or system.get("name") or str(rid),
        description=data.get("description") or system.get("description") or "",
        criteria=[RubricCriterion.model_validate(c) for c in criteria],
        total_weight=system.get("total_weight", system.get("totalWeight", 100)),
        version=str(system.get("version", "1.0")),
        created_at=data.get("createdAt") or data.get("created_at") or "",
    )
    if abs(rubric.declared_weight_sum - rubric.total_weight) > 1e-6:
        logger.warning(
            "Rubric %s: criterion weights sum to %s, declared total_weight is %s",
            rubric.id, rubric.declared_weight_sum, rubric.total_weight,
        )
    return rubric


class RubricRepository:
    """Ordered collection of rubrics backed by a directory of JSON files.

    Order is file-name order so callers get a stable listing.
    """

    def __init__(self, rubric_dir: str | Path | None = None) -> None:
        self._dir = Path(rubric_dir or get_settings().rubric_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path_for(self, rubric_id: str) -> Path:
        # Try exact match first, then the dashed variant
        file_path = self._dir / f"{rubric_id.lower()}.json"
        if not file_path.exists():
            file_path = self._dir / f"{rubric_id.lower().replace('_', '-')}.json"
        return file_path

    def load_rubric(self, rubric_id: str) -> Rubric | None:
        """Load a rubric by ID (file name without ``.json``).

        Returns:
            Rubric object if found and valid, None otherwise.
        """
        file_path = self._path_for(rubric_id)
        if not file_path.exists():
            logger.warning("Rubric not found: %s", rubric_id)
            return None
        return self._read(file_path)

    def list_rubrics(self) -> list[Rubric]:
        """Return every valid rubric in the directory, in file-name order."""
        if not self._dir.exists():
            logger.warning("Rubric directory does not exist: %s", self._dir)
            return []

        rubrics = []
        for file_path in sorted(self._dir.glob("*.json")):
            rubric = self._read(file_path)
            if rubric is not None:
                rubrics.append(rubric)
        return rubrics

    def resolve_rubrics(self, rubric_ids: list[str]) -> tuple[list[Rubric], list[str]]:
        """Resolve *rubric_ids* in the order given.

        An id matches a rubric's own id or, failing that, its file name.

        Returns:
            The rubrics found and the requested ids that matched nothing.
        """
        by_id = {r.id: r for r in self.list_rubrics()}
        found, missing = [], []
        for rubric_id in rubric_ids:
            rubric = by_id.get(rubric_id) or self.load_rubric(rubric_id)
            if rubric is None:
                missing.append(rubric_id)
            else:
                found.append(rubric)
        return found, missing

    def get_rubrics(self, rubric_ids: list[str]) -> list[Rubric]:
        """Resolve *rubric_ids* in the order given, skipping unknown ids."""
        return self.resolve_rubrics(rubric_ids)[0]

    def save_rubric(self, rubric: Rubric) -> Path:
        """Write *rubric* as a flat JSON file and return its path."""
        self._dir.mkdir(parents=True, exist_ok=True)
        if not rubric.created_at:
            rubric = rubric.model_copy(
                update={"created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
            )
        file_path = self._dir / f"{_slug(rubric.id)}.json"
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(rubric.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
        logger.info("Saved rubric %s → %s", rubric.id, file_path)
        return file_path

    def _read(self, file_path: Path) -> Rubric | None:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return rubric_from_document(data, rubric_id=file_path.stem)
        except (json.JSONDecodeError, ValidationError, ValueError, OSError) as e:
            logger.error("Failed to load rubric %s: %s", file_path.name, e)
            return None


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9_-]+", "-", value.lower()).strip("-") or uuid.uuid4().hex[:10]


def get_rubric_context(rubric: Rubric) -> dict[str, Any]:
    """Convert a Rubric to a context dict suitable for LLM prompts.

    Args:
        rubric: The Rubric object.

    Returns:
        Dictionary with formatted rubric information for prompts.
    """
    criteria_text = []
    for criterion in rubric.criteria:
        low, high = criterion.score_range
        header = (
            f"### {criterion.name} (id: {criterion.id}, weight {criterion.weight:g}, "
            f"score {low}-{high})"
        )
        lines = [header]
        if criterion.summary:
            lines.append(criterion.summary)
        for level in sorted(criterion.description, key=_level_order):
            lines.append(f"  - {level}: {criterion.description[level]}")
        criteria_text.append("\n".join(lines))

    return {
        "rubricId": rubric.id,
        "name": rubric.name,
        "description": rubric.description,
        "totalWeight": f"{rubric.total_weight:g}",
        "criteriaText": "\n\n".join(criteria_text),
    }


def _level_order(level: str) -> tuple[int, str]:
    try:
        return (int(level), level)
    except ValueError:
        return (10**6, level)


_repository: RubricRepository | None = None


def get_rubric_repository() -> RubricRepository:
    """Return the module-level repository singleton (create if needed)."""
    global _repository
    if _repository is None:
        _repository = RubricRepository()
    return _repository
