"""
LLM client for an OpenAI-compatible chat completions endpoint, with a
database-backed response cache.

Cached responses are keyed by the SHA-256 of the request (model, messages and
response schema) and expire after a per-function TTL.
"""

import hashlib
import json
import os
from datetime import timedelta
from typing import Optional, Dict, List, Any, Union

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from academy.database.models import AiResponseCache
from academy.utils.datetime_utils import utcnow, parse_iso
import logging

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 24
CACHE_TTL_HOURS = {
    "opponent_analysis": 48,
    "video_analysis": 12,
    "player_report": 6,
}


class LLMError(Exception):
    """LLM request failed or returned an unusable response."""


def _get_config() -> Dict[str, Optional[str]]:
    return {
        "api_url": os.getenv("LLM_API_URL", "https://api.openai.com").rstrip("/"),
        "api_key": os.getenv("LLM_API_KEY"),
        "model": os.getenv("LLM_MODEL", "gpt-4o-mini"),
    }


def _get_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=120.0)


def make_cache_key(model: str, messages: List[Dict], response_schema: Optional[Dict] = None) -> str:
    raw = json.dumps(
        {"model": model, "messages": messages, "schema": response_schema},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _ttl_for(function_name: str) -> timedelta:
    return timedelta(hours=CACHE_TTL_HOURS.get(function_name, DEFAULT_TTL_HOURS))


async def get_cached_response(session: AsyncSession, cache_key: str) -> Optional[str]:
    """Return an unexpired cached response and count the hit."""
    result = await session.execute(select(AiResponseCache).where(AiResponseCache.cache_key == cache_key))
    entry = result.scalar_one_or_none()
    if entry is None:
        return None
    now = utcnow()
    expires_at = parse_iso(entry.expires_at)
    if expires_at is None or expires_at <= now:
        return None
    entry.hit_count = (entry.hit_count or 0) + 1
    entry.last_accessed_at = now.isoformat()
    await session.flush()
    logger.debug(f"LLM cache hit for {entry.function_name} (hits: {entry.hit_count})")
    return entry.response


async def set_cached_response(
    session: AsyncSession,
    cache_key: str,
    function_name: str,
    response: str,
    user_id: Optional[int] = None,
):
    now = utcnow()
    await session.execute(delete(AiResponseCache).where(AiResponseCache.cache_key == cache_key))
    session.add(AiResponseCache(
        cache_key=cache_key,
        function_name=function_name,
        response=response,
        user_id=user_id,
        hit_count=0,
        expires_at=(now + _ttl_for(function_name)).isoformat(),
        last_accessed_at=now.isoformat(),
    ))
    await session.flush()


async def clear_expired_cache(session: AsyncSession) -> int:
    """Delete expired cache rows. Returns the number removed."""
    now = utcnow()
    result = await session.execute(select(AiResponseCache))
    removed = 0
    for entry in result.scalars().all():
        expires_at = parse_iso(entry.expires_at)
        if expires_at is None or expires_at <= now:
            await session.delete(entry)
            removed += 1
    await session.flush()
    return removed


async def get_cache_stats(session: AsyncSession) -> Dict:
    result = await session.execute(select(AiResponseCache))
    entries = result.scalars().all()
    now = utcnow()
    by_function: Dict[str, Dict[str, int]] = {}
    for entry in entries:
        stats = by_function.setdefault(entry.function_name, {"entries": 0, "hits": 0})
        stats["entries"] += 1
        stats["hits"] += entry.hit_count or 0
    active = sum(1 for e in entries if (parse_iso(e.expires_at) or now) > now)
    return {"total_entries": len(entries), "active_entries": active, "by_function": by_function}


async def _post_completion(payload: Dict) -> Dict:
    cfg = _get_config()
    if not cfg["api_key"]:
        raise LLMError("LLM is not configured (LLM_API_KEY missing)")
    try:
        async with _get_client() as client:
            resp = await client.post(
                f"{cfg['api_url']}/v1/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {cfg['api_key']}"},
            )
            resp.raise_for_status()
            return resp.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"LLM API error {e.response.status_code}: {e.response.text[:500]}")
        raise LLMError(f"LLM request failed with status {e.response.status_code}")
    except httpx.RequestError as e:
        logger.error(f"LLM request failed: {e}")
        raise LLMError(f"Could not reach LLM endpoint: {e}")


def _extract_content(data: Dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise LLMError("Malformed LLM response")
    if not content:
        raise LLMError("No response from AI")
    return content


def _parse_content(content: str, response_schema: Optional[Dict], function_name: str) -> Union[str, Dict]:
    if response_schema is None:
        return content
    try:
        return json.loads(content)
    except ValueError:
        logger.error(f"LLM returned invalid JSON for {function_name}: {content[:200]}")
        raise LLMError("AI response was not valid JSON")


async def invoke(
    messages: List[Dict[str, Any]],
    response_schema: Optional[Dict] = None,
    schema_name: str = "response",
    session: Optional[AsyncSession] = None,
    function_name: str = "default",
    user_id: Optional[int] = None,
    use_cache: bool = True,
) -> Union[str, Dict]:
    """
    Run a chat completion.

    Args:
        messages: Chat messages ``[{role, content}]``
        response_schema: JSON schema; when given the response is parsed into a dict
        session: Database session for the response cache (no caching without one)
        function_name: Cache namespace, also selects the TTL

    Raises:
        LLMError: If the endpoint is unconfigured, unreachable, or the response
            cannot be parsed
    """
    cfg = _get_config()
    cache_key = make_cache_key(cfg["model"], messages, response_schema)
    if session is not None and use_cache:
        cached = await get_cached_response(session, cache_key)
        if cached is not None:
            return _parse_content(cached, response_schema, function_name)

    payload: Dict[str, Any] = {"model": cfg["model"], "messages": messages}
    if response_schema is not None:
        payload["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": schema_name, "strict": True, "schema": response_schema},
        }
    content = _extract_content(await _post_completion(payload))
    result = _parse_content(content, response_schema, function_name)
    # only responses that parsed are cached
    if session is not None and use_cache:
        await set_cached_response(session, cache_key, function_name, content, user_id)
    return result
