"""Article evaluation store — persisted results and content groups.

Provides an abstract interface over the persisted record list with an
in-memory implementation and a JSON-file implementation.  The persisted
layout is a single JSON array of ``ArticleEvaluation`` records with no
schema version, so reads are tolerant: unknown fields are ignored and
records that no longer validate are skipped with a warning.

All mutation is read-modify-write over the full list under one process-local
lock; a single active writer is assumed.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from config.settings import get_settings
from models.evaluation import ArticleEvaluation, ArticleEvaluationGroup, EvaluationResult

logger = logging.getLogger(__name__)


def group_key(content: str) -> str:
    """Grouping key: exact content after trimming surrounding whitespace."""
    return content.strip()


def group_id_for(content: str) -> str:
    digest = hashlib.sha1(group_key(content).encode("utf-8")).hexdigest()
    return f"grp-{digest[:12]}"


def dedupe_evaluations(records: list[ArticleEvaluation]) -> list[ArticleEvaluation]:
    """Keep the first record for each ``(article_title, standard_id)`` pair.

    Later duplicates are discarded, not merged.  New records are prepended
    before calling this, so the newest evaluation of a pair survives.
    """
    seen: set[tuple[str, str]] = set()
    kept = []
    for record in records:
        key = (record.article_title, record.standard_id)
        if key in seen:
            logger.debug("Dropping duplicate evaluation %s for %s", record.id, key)
            continue
        seen.add(key)
        kept.append(record)
    return kept


def build_groups(records: list[ArticleEvaluation]) -> list[ArticleEvaluationGroup]:
    """Partition *records* by trimmed content, newest group first."""
    buckets: dict[str, list[ArticleEvaluation]] = {}
    for record in records:
        buckets.setdefault(group_key(record.article_content), []).append(record)

    groups = []
    for key, members in buckets.items():
        members = sorted(members, key=lambda r: r.evaluation_date, reverse=True)
        average = sum(r.total_score for r in members) / len(members)
        groups.append(ArticleEvaluationGroup(
            id=group_id_for(key),
            article_title=members[0].article_title,
            article_content=key,
            evaluations=members,
            evaluation_count=len(members),
            average_score=int(round(average)),
            latest_date=members[0].evaluation_date,
        ))
    groups.sort(key=lambda g: g.latest_date, reverse=True)
    return groups


# ── Abstract Interface ───────────────────────────────────────


class EvaluationStore(ABC):
    """Persisted evaluation records plus the derived content groups."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: list[ArticleEvaluation] | None = None

    @abstractmethod
    def _load(self) -> list[dict[str, Any]]:
        """Read the raw record list from the backing medium."""
        ...

    @abstractmethod
    def _save(self, raw: list[dict[str, Any]]) -> None:
        """Write the full raw record list to the backing medium."""
        ...

    # -- reads ---------------------------------------------------------------

    def list_evaluations(self) -> list[ArticleEvaluation]:
        with self._lock:
            return list(self._current())

    def get_evaluation(self, evaluation_id: str) -> ArticleEvaluation | None:
        with self._lock:
            for record in self._current():
                if record.id == evaluation_id:
                    return record
            return None

    def get_article_groups(self) -> list[ArticleEvaluationGroup]:
        """Group every record by trimmed content; recomputed on each call."""
        with self._lock:
            return build_groups(self._current())

    def get_group(self, group_id: str) -> ArticleEvaluationGroup | None:
        for group in self.get_article_groups():
            if group.id == group_id:
                return group
        return None

    # -- writes --------------------------------------------------------------

    def add_evaluations(
        self,
        results: list[EvaluationResult],
        weights: dict[str, float] | None = None,
    ) -> list[str]:
        """Persist *results* ahead of the existing records.

        Args:
            results: Completed results of one run.
            weights: Optional ``{rubric_id: weight_in_parent}`` shares.

        Returns:
            Ids of the new records that survived deduplication.
        """
        weights = weights or {}
        new_records = [
            ArticleEvaluation.from_result(result, weights.get(result.rubric.id))
            for result in results
        ]
        with self._lock:
            combined = dedupe_evaluations(new_records + self._current())
            self._replace(combined)
            kept = {record.id for record in combined}
        ids = [record.id for record in new_records if record.id in kept]
        logger.info("Stored %d of %d new evaluation(s)", len(ids), len(new_records))
        return ids

    def delete_evaluation(self, evaluation_id: str) -> bool:
        """Remove one record; the rest of its group is untouched."""
        with self._lock:
            current = self._current()
            remaining = [r for r in current if r.id != evaluation_id]
            if len(remaining) == len(current):
                return False
            self._replace(remaining)
        logger.info("Deleted evaluation %s", evaluation_id)
        return True

    def delete_group(self, group_id: str) -> int:
        """Remove every record belonging to the group; returns the count."""
        with self._lock:
            group = next((g for g in build_groups(self._current()) if g.id == group_id), None)
            if group is None:
                return 0
            member_ids = {record.id for record in group.evaluations}
            remaining = [r for r in self._current() if r.id not in member_ids]
            self._replace(remaining)
        logger.info("Deleted group %s (%d evaluation(s))", group_id, len(member_ids))
        return len(member_ids)

    # -- internals -----------------------------------------------------------

    def _current(self) -> list[ArticleEvaluation]:
        if self._records is None:
            self._records = self._parse(self._load())
        return self._records

    def _replace(self, records: list[ArticleEvaluation]) -> None:
        # In-memory state is kept even when the write fails.
        self._records = records
        try:
            self._save([record.model_dump(mode="json") for record in records])
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to persist %d evaluation(s)", len(records))

    @staticmethod
    def _parse(raw: list[Any]) -> list[ArticleEvaluation]:
        records = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict) or "id" not in item:
                logger.warning("Skipping stored evaluation #%d: not a record", index)
                continue
            try:
                records.append(ArticleEvaluation.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping stored evaluation %s: %s", item.get("id"), e)
        return records


# ── In-Memory Implementation ────────────────────────────────


class InMemoryEvaluationStore(EvaluationStore):
    """Process-local store; contents vanish with the process."""

    def __init__(self, initial: list[dict[str, Any]] | None = None) -> None:
        super().__init__()
        self._raw: list[dict[str, Any]] = list(initial or [])

    def _load(self) -> list[dict[str, Any]]:
        return list(self._raw)

    def _save(self, raw: list[dict[str, Any]]) -> None:
        self._raw = raw


# ── JSON File Implementation ─────────────────────────────────


class JsonFileEvaluationStore(EvaluationStore):
    """Keeps the record array in one JSON file, rewritten on every change."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load evaluations from %s: %s", self._path, e)
            return []
        if not isinstance(data, list):
            logger.error("Evaluation file %s does not hold a JSON array", self._path)
            return []
        return data

    def _save(self, raw: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(raw, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self._path)


# ── Factory ──────────────────────────────────────────────────

_store: EvaluationStore | None = None


def get_evaluation_store() -> EvaluationStore:
    """Return the module-level store singleton (create if needed).

    Uses ``settings.evaluation_store_type`` to choose the backend.
    """
    global _store
    if _store is None:
        settings = get_settings()
        if settings.evaluation_store_type == "memory":
            _store = InMemoryEvaluationStore()
            logger.info("Using in-memory evaluation store")
        else:
            _store = JsonFileEvaluationStore(settings.evaluation_store_path)
            logger.info("Using JSON evaluation store at %s", settings.evaluation_store_path)
    return _store
