"""Tests for services/scoring_client.py — extraction, scoring and HTTP calls."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from errors.exceptions import EmptyResponseError, MalformedResultError, NetworkError
from models.evaluation import ScoredCriterion
from services.scoring_client import (
    ScoringClient,
    build_result,
    compute_rubric_score,
    extract_json_object,
)


def _completion(content):
    r = MagicMock()
    r.status_code = 200
    r.text = "{...}"
    r.json.return_value = {"choices": [{"message": {"content": content}}]}
    return r


def _error_response(status=500):
    r = MagicMock()
    r.status_code = status
    r.text = "Server Error"
    return r


def _scored(*pairs):
    return [
        ScoredCriterion(id=cid, score=score, max_score=max_score)
        for cid, score, max_score in pairs
    ]


# ---------------------------------------------------------------------------
# extract_json_object
# ---------------------------------------------------------------------------

def test_extract_plain_object():
    assert extract_json_object('{"a": 1}') == {"a": 1}


def test_extract_object_wrapped_in_prose_and_fences():
    text = 'Here is the result:\n```json\n{"a": {"b": [1, 2]}}\n```\nHope it helps.'
    assert extract_json_object(text) == {"a": {"b": [1, 2]}}


def test_extract_ignores_braces_inside_strings():
    text = 'Result: {"comment": "uses } and { freely", "score": 3} trailing }'
    assert extract_json_object(text) == {"comment": "uses } and { freely", "score": 3}


def test_extract_skips_unparseable_leading_block():
    text = 'Placeholder {not json} then {"ok": true}'
    assert extract_json_object(text) == {"ok": True}


def test_extract_no_brace_raises():
    with pytest.raises(MalformedResultError, match="No JSON object"):
        extract_json_object("I cannot score this article.")


def test_extract_unclosed_raises():
    with pytest.raises(MalformedResultError, match="not closed"):
        extract_json_object('{"a": 1')


def test_extract_invalid_json_raises():
    with pytest.raises(MalformedResultError):
        extract_json_object("{a: 1}")


# ---------------------------------------------------------------------------
# compute_rubric_score
# ---------------------------------------------------------------------------

def test_all_max_scores_give_100(make_rubric):
    rubric = make_rubric(weights=[40, 30, 30], score_range=(1, 5))
    criteria = _scored(("c1", 5, 5), ("c2", 5, 5), ("c3", 5, 5))
    assert compute_rubric_score(rubric, criteria) == 100


def test_all_zero_scores_give_0(make_rubric):
    rubric = make_rubric(weights=[40, 30, 30])
    criteria = _scored(("c1", 0, 5), ("c2", 0, 5), ("c3", 0, 5))
    assert compute_rubric_score(rubric, criteria) == 0


def test_single_criterion_four_of_five(rubric):
    assert compute_rubric_score(rubric, _scored(("c1", 4, 5))) == 80


def test_weighted_mix_rounds_to_int(make_rubric):
    rubric = make_rubric(weights=[70, 30])
    # 3/5*70 + 2/3*30 = 42 + 20 = 62
    assert compute_rubric_score(rubric, _scored(("c1", 3, 5), ("c2", 2, 3))) == 62


def test_weight_mismatch_is_not_renormalised(make_rubric, caplog):
    rubric = make_rubric(weights=[50, 50])
    with caplog.at_level("WARNING"):
        score = compute_rubric_score(rubric, _scored(("c1", 5, 5)))
    assert score == 50
    assert "differs from declared total_weight" in caplog.text


def test_unknown_criterion_is_ignored(rubric):
    assert compute_rubric_score(rubric, _scored(("c1", 5, 5), ("ghost", 5, 5))) == 100


def test_zero_max_score_falls_back_to_rubric_range(rubric):
    assert compute_rubric_score(rubric, _scored(("c1", 5, 0))) == 100


@pytest.mark.parametrize("score,max_score", [(9, 5), (-3, 5), (2.5, 5), (5, 5)])
def test_score_always_integer_in_bounds(make_rubric, score, max_score):
    rubric = make_rubric(weights=[60, 60])  # declared weights exceed 100
    result = compute_rubric_score(rubric, _scored(("c1", score, max_score), ("c2", score, max_score)))
    assert isinstance(result, int)
    assert 0 <= result <= 100


# ---------------------------------------------------------------------------
# build_result
# ---------------------------------------------------------------------------

def test_build_result_end_to_end(rubric):
    raw = {
        "article_title": "Quarterly outlook",
        "total_score": 55,
        "criteria": [{"id": "c1", "name": "Criterion 1", "score": 4, "max_score": 5, "comment": "solid"}],
        "summary": "Good",
        "suggestions": ["Add sources"],
    }
    result = build_result(rubric, "Body text", raw)

    assert result.total_score == 80  # computed, not the model's 55
    assert result.article_title == "Quarterly outlook"
    assert result.article_content == "Body text"
    assert result.rubric.id == rubric.id
    assert result.suggestions == ["Add sources"]
    assert result.id


def test_build_result_title_falls_back_to_first_line(rubric):
    raw = {"criteria": [{"id": "c1", "score": 1, "max_score": 5}]}
    result = build_result(rubric, "  First line here\nsecond line", raw)
    assert result.article_title == "First line here"


def test_build_result_wrong_shape_raises(rubric):
    with pytest.raises(MalformedResultError, match="unexpected shape"):
        build_result(rubric, "x", {"criteria": "not a list"})


# ---------------------------------------------------------------------------
# HTTP behaviour
# ---------------------------------------------------------------------------

@pytest.fixture
async def client():
    c = ScoringClient()
    await c.start()
    yield c
    await c.close()


@pytest.mark.asyncio
async def test_ensure_started_raises_without_start():
    with pytest.raises(RuntimeError, match="not started"):
        ScoringClient()._ensure_started()


@pytest.mark.asyncio
async def test_evaluate_single_rubric_success(client, rubric, connection):
    payload = {
        "article_title": "T",
        "criteria": [{"id": "c1", "name": "Criterion 1", "score": 4, "max_score": 5, "comment": ""}],
        "summary": "fine",
    }
    client._http.post = AsyncMock(return_value=_completion("Sure!\n" + json.dumps(payload)))

    result = await client.evaluate_single_rubric(rubric, "content", connection)

    assert result.total_score == 80
    args, kwargs = client._http.post.call_args
    assert args[0] == "https://llm.test/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    body = kwargs["json"]
    assert body["model"] == "test-model"
    assert body["temperature"] == 0.7
    assert body["messages"][0]["role"] == "user"
    assert "c1" in body["messages"][0]["content"]
    assert "content" in body["messages"][0]["content"]


@pytest.mark.asyncio
async def test_non_2xx_raises_network_error(client, rubric, connection):
    client._http.post = AsyncMock(return_value=_error_response(503))
    with pytest.raises(NetworkError) as exc_info:
        await client.evaluate_single_rubric(rubric, "content", connection)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_transport_error_raises_network_error(client, rubric, connection):
    client._http.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(NetworkError, match="Could not reach"):
        await client.evaluate_single_rubric(rubric, "content", connection)


@pytest.mark.asyncio
async def test_empty_content_raises(client, rubric, connection):
    client._http.post = AsyncMock(return_value=_completion(""))
    with pytest.raises(EmptyResponseError):
        await client.evaluate_single_rubric(rubric, "content", connection)


@pytest.mark.asyncio
async def test_missing_choices_raises_empty(client, rubric, connection):
    r = _completion("x")
    r.json.return_value = {"choices": []}
    client._http.post = AsyncMock(return_value=r)
    with pytest.raises(EmptyResponseError):
        await client.evaluate_single_rubric(rubric, "content", connection)


@pytest.mark.asyncio
async def test_prose_only_raises_malformed(client, rubric, connection):
    client._http.post = AsyncMock(return_value=_completion("The article is great."))
    with pytest.raises(MalformedResultError):
        await client.evaluate_single_rubric(rubric, "content", connection)


@pytest.mark.asyncio
async def test_probe_ok(client, connection):
    r = MagicMock()
    r.status_code = 200
    r.text = '{"data": []}'
    client._http.get = AsyncMock(return_value=r)
    assert await client.probe(connection) is True
    assert client._http.get.call_args.args[0] == "https://llm.test/v1/models"


@pytest.mark.asyncio
async def test_probe_failure(client, connection):
    client._http.get = AsyncMock(return_value=_error_response(401))
    assert await client.probe(connection) is False
