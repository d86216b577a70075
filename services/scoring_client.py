"""HTTP client for the OpenAI-compatible chat-completion endpoint.

Wraps ``httpx.AsyncClient`` with:
- per-call connection settings (base URL, Bearer key, model)
- request timing logs
- mapping of transport / status failures onto the scoring error taxonomy
- best-effort extraction of a JSON object from free-form model text
- rubric-local weighted scoring of the parsed result
- connection-pool lifecycle tied to FastAPI lifespan

No retry layer: one rubric is one request, and failures are reported to the
runner which asks the caller whether to go on.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from config.llm_config import ConnectionConfig
from config.prompts.evaluation import build_evaluation_prompt
from config.settings import get_settings
from errors.exceptions import EmptyResponseError, MalformedResultError, NetworkError
from models.evaluation import EvaluationResult, ScoredCriterion, utc_now
from models.rubric import Rubric

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_client: ScoringClient | None = None

TITLE_FALLBACK_CHARS = 40


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _balanced_block(text: str, start: int) -> str | None:
    """Return the ``{...}`` block opening at *start*, or None if it never closes.

    Braces inside JSON string literals are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:pos + 1]
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Locate and parse the first top-level JSON object embedded in *text*.

    Models often wrap the object in prose or code fences.  Candidates are
    scanned left to right with a bracket-balance scanner; the first balanced
    block that parses as an object wins.

    Raises:
        MalformedResultError: No balanced block exists, or none parses.
    """
    start = text.find("{")
    if start < 0:
        raise MalformedResultError("No JSON object found in the model response", raw_text=text)

    last_error: Exception | None = None
    found_block = False
    while start >= 0:
        block = _balanced_block(text, start)
        if block is not None:
            found_block = True
            try:
                parsed = json.loads(block)
            except json.JSONDecodeError as exc:
                last_error = exc
            else:
                if isinstance(parsed, dict):
                    return parsed
        start = text.find("{", start + 1)

    if not found_block:
        raise MalformedResultError("JSON object in the model response is not closed", raw_text=text)
    raise MalformedResultError(
        f"Model response contains no parseable JSON object: {last_error}",
        raw_text=text,
    )


# ---------------------------------------------------------------------------
# Response shape + scoring
# ---------------------------------------------------------------------------

class _RawCriterion(BaseModel):
    id: str
    name: str = ""
    score: float = 0
    max_score: float = 0
    comment: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class _RawEvaluation(BaseModel):
    """What the scoring prompt asks the model to return."""

    article_title: str = ""
    total_score: float | None = None
    evaluation_date: str = ""
    criteria: list[_RawCriterion] = Field(default_factory=list)
    summary: str = ""
    suggestions: list[str] = Field(default_factory=list)


def compute_rubric_score(rubric: Rubric, criteria: list[ScoredCriterion]) -> int:
    """Weighted total (0-100) of *criteria* scored against *rubric*.

    Each matched criterion contributes ``score / max_score * weight``.
    Weights are not renormalised: if the weights seen differ from
    ``rubric.total_weight`` a warning is logged and the sum is used as is.
    """
    total = 0.0
    weight_seen = 0.0
    for scored in criteria:
        criterion = rubric.criterion(scored.id)
        if criterion is None:
            logger.warning("Rubric %s has no criterion %r; ignoring its score", rubric.id, scored.id)
            continue
        max_score = scored.max_score if scored.max_score > 0 else criterion.max_score
        if max_score <= 0:
            logger.warning("Criterion %s/%s has no usable max score", rubric.id, criterion.id)
            continue
        score = min(max(scored.score, 0), max_score)
        percentage = score / max_score * 100
        total += percentage * criterion.weight / 100
        weight_seen += criterion.weight

    if abs(weight_seen - rubric.total_weight) > 1e-6:
        logger.warning(
            "Rubric %s: scored weight %s differs from declared total_weight %s",
            rubric.id, weight_seen, rubric.total_weight,
        )
    return min(max(int(round(total)), 0), 100)


def build_result(rubric: Rubric, content: str, raw: dict[str, Any]) -> EvaluationResult:
    """Turn the model's parsed JSON into an :class:`EvaluationResult`.

    Raises:
        MalformedResultError: The object does not match the expected shape.
    """
    try:
        parsed = _RawEvaluation.model_validate(raw)
    except ValidationError as exc:
        raise MalformedResultError(
            f"Scoring result has an unexpected shape: {exc.error_count()} invalid field(s)",
            raw_text=json.dumps(raw, ensure_ascii=False),
        ) from exc

    criteria = [
        ScoredCriterion(
            id=c.id,
            name=c.name or getattr(rubric.criterion(c.id), "name", ""),
            score=c.score,
            max_score=c.max_score,
            comment=c.comment,
        )
        for c in parsed.criteria
    ]
    first_line = (content.strip().splitlines() or [""])[0]
    title = parsed.article_title.strip() or first_line[:TITLE_FALLBACK_CHARS]
    return EvaluationResult(
        id=uuid.uuid4().hex,
        article_title=title,
        article_content=content,
        total_score=compute_rubric_score(rubric, criteria),
        evaluation_date=utc_now(),
        criteria=criteria,
        summary=parsed.summary,
        suggestions=parsed.suggestions,
        rubric=rubric,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ScoringClient:
    """Async client for chat-completion scoring calls."""

    def __init__(self, timeout: float | None = None) -> None:
        settings = get_settings()
        self._timeout = timeout if timeout is not None else settings.scoring_timeout
        self._http: httpx.AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the underlying ``httpx.AsyncClient`` connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        logger.info("ScoringClient started (timeout=%s)", self._timeout)

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("ScoringClient closed")

    # -- public API ----------------------------------------------------------

    async def evaluate_single_rubric(
        self,
        rubric: Rubric,
        content: str,
        connection: ConnectionConfig,
    ) -> EvaluationResult:
        """Score *content* against *rubric* with one completion call.

        Raises :class:`NetworkError`, :class:`EmptyResponseError` or
        :class:`MalformedResultError`.
        """
        prompt = build_evaluation_prompt(rubric, content, utc_now())
        text = await self.complete([{"role": "user", "content": prompt}], connection)
        raw = extract_json_object(text)
        result = build_result(rubric, content, raw)
        logger.info(
            "Rubric %s scored %d (%d criteria)",
            rubric.id, result.total_score, len(result.criteria),
        )
        return result

    async def complete(
        self,
        messages: list[dict[str, str]],
        connection: ConnectionConfig,
    ) -> str:
        """Send *messages* and return ``choices[0].message.content``."""
        url = connection.endpoint("chat/completions")
        body = {
            "model": connection.model,
            "messages": messages,
            "temperature": connection.temperature,
        }
        response = await self._send("POST", url, connection, json_body=body)

        try:
            data = response.json()
        except ValueError as exc:
            raise EmptyResponseError("Scoring service returned a non-JSON body") from exc

        content = None
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            pass
        if not isinstance(content, str) or not content.strip():
            raise EmptyResponseError("Scoring service returned no text content")
        return content

    async def probe(self, connection: ConnectionConfig) -> bool:
        """Check connectivity with ``GET {base_url}/models``."""
        try:
            await self._send("GET", connection.endpoint("models"), connection)
        except NetworkError as exc:
            logger.warning("Connection probe failed: %s", exc)
            return False
        return True

    # -- internals -----------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        connection: ConnectionConfig,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        client = self._ensure_started()
        headers = {"Authorization": f"Bearer {connection.api_key}"}
        t0 = time.monotonic()
        try:
            if method == "GET":
                response = await client.get(url, headers=headers)
            else:
                response = await client.post(url, headers=headers, json=json_body)
        except httpx.TransportError as exc:
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.warning("%s %s → network error (%.0fms): %s", method, url, elapsed_ms, exc)
            raise NetworkError(f"Could not reach the scoring service: {exc}", url=url) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info("%s %s → %d (%.0fms)", method, url, response.status_code, elapsed_ms)

        if not 200 <= response.status_code < 300:
            detail = response.text[:300] if response.text else f"HTTP {response.status_code}"
            raise NetworkError(
                f"Scoring request failed with status {response.status_code}: {detail}",
                status_code=response.status_code,
                url=url,
            )
        return response

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("ScoringClient not started — call await client.start() first")
        return self._http


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

def get_scoring_client() -> ScoringClient:
    """Return the module-level ScoringClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = ScoringClient()
    return _client
