"""
Tests for the LLM client and its database-backed response cache.
"""

import json
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import select

from academy.database.models import AiResponseCache
from academy.services import llm_service
from academy.services.llm_service import LLMError
from academy.utils.datetime_utils import utcnow

MESSAGES = [{"role": "user", "content": "Describe a 4-3-3 press"}]


def test_cache_key_is_stable():
    key = llm_service.make_cache_key("gpt-4o-mini", MESSAGES)
    assert key == llm_service.make_cache_key("gpt-4o-mini", [dict(m) for m in MESSAGES])
    assert len(key) == 64
    assert key != llm_service.make_cache_key("gpt-4o-mini", MESSAGES, {"type": "object"})
    assert key != llm_service.make_cache_key("gpt-4o", MESSAGES)


def _mock_llm(monkeypatch, handler, api_key="sk-test"):
    if api_key:
        monkeypatch.setenv("LLM_API_KEY", api_key)
    else:
        monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("LLM_API_URL", "https://llm.test")
    monkeypatch.setenv("LLM_MODEL", "test-model")
    monkeypatch.setattr(
        llm_service,
        "_get_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.mark.asyncio
async def test_invoke_requires_api_key(monkeypatch):
    _mock_llm(monkeypatch, lambda request: _completion("unused"), api_key=None)
    with pytest.raises(LLMError, match="not configured"):
        await llm_service.invoke(MESSAGES)


@pytest.mark.asyncio
async def test_invoke_caches_responses(db_session, monkeypatch):
    requests = []

    def handler(request):
        requests.append(request)
        return _completion("High line, compact shape")

    _mock_llm(monkeypatch, handler)

    first = await llm_service.invoke(MESSAGES, session=db_session, function_name="opponent_analysis")
    second = await llm_service.invoke(MESSAGES, session=db_session, function_name="opponent_analysis")
    assert first == second == "High line, compact shape"
    assert len(requests) == 1
    assert str(requests[0].url) == "https://llm.test/v1/chat/completions"
    assert requests[0].headers["Authorization"] == "Bearer sk-test"
    assert json.loads(requests[0].content)["model"] == "test-model"

    stats = await llm_service.get_cache_stats(db_session)
    assert stats["total_entries"] == 1
    assert stats["active_entries"] == 1
    assert stats["by_function"] == {"opponent_analysis": {"entries": 1, "hits": 1}}

    await llm_service.invoke(MESSAGES, session=db_session, use_cache=False)
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_invoke_parses_structured_output(monkeypatch):
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return _completion('{"formation": "4-4-2"}')

    _mock_llm(monkeypatch, handler)
    schema = {"type": "object", "properties": {"formation": {"type": "string"}}}
    result = await llm_service.invoke(MESSAGES, response_schema=schema, schema_name="shape")
    assert result == {"formation": "4-4-2"}
    response_format = captured["body"]["response_format"]
    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "shape"
    assert response_format["json_schema"]["strict"] is True


@pytest.mark.asyncio
async def test_invoke_errors(monkeypatch):
    _mock_llm(monkeypatch, lambda request: _completion("not json"))
    with pytest.raises(LLMError, match="not valid JSON"):
        await llm_service.invoke(MESSAGES, response_schema={"type": "object"})

    _mock_llm(monkeypatch, lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(LLMError, match="status 500"):
        await llm_service.invoke(MESSAGES)

    _mock_llm(monkeypatch, lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(LLMError, match="Malformed"):
        await llm_service.invoke(MESSAGES)

    _mock_llm(monkeypatch, lambda request: _completion(""))
    with pytest.raises(LLMError, match="No response"):
        await llm_service.invoke(MESSAGES)


@pytest.mark.asyncio
async def test_expired_entries(db_session):
    await llm_service.set_cached_response(db_session, "fresh", "player_report", "ok")
    await llm_service.set_cached_response(db_session, "stale", "player_report", "old")
    entry = (
        await db_session.execute(select(AiResponseCache).where(AiResponseCache.cache_key == "stale"))
    ).scalar_one()
    entry.expires_at = (utcnow() - timedelta(minutes=1)).isoformat()
    await db_session.flush()

    assert await llm_service.get_cached_response(db_session, "stale") is None
    assert await llm_service.get_cached_response(db_session, "fresh") == "ok"
    assert await llm_service.get_cached_response(db_session, "missing") is None

    assert await llm_service.clear_expired_cache(db_session) == 1
    assert (await llm_service.get_cache_stats(db_session))["total_entries"] == 1


@pytest.mark.asyncio
async def test_invalid_json_is_not_cached(db_session, monkeypatch):
    replies = ["not json", '{"formation": "3-5-2"}']
    requests = []

    def handler(request):
        requests.append(request)
        return _completion(replies[len(requests) - 1])

    _mock_llm(monkeypatch, handler)
    schema = {"type": "object", "properties": {"formation": {"type": "string"}}}

    with pytest.raises(LLMError, match="not valid JSON"):
        await llm_service.invoke(MESSAGES, response_schema=schema, session=db_session)
    assert (await llm_service.get_cache_stats(db_session))["total_entries"] == 0

    result = await llm_service.invoke(MESSAGES, response_schema=schema, session=db_session)
    assert result == {"formation": "3-5-2"}
    assert len(requests) == 2

    cached = await llm_service.invoke(MESSAGES, response_schema=schema, session=db_session)
    assert cached == {"formation": "3-5-2"}
    assert len(requests) == 2
