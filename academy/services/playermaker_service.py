"""
PlayerMaker integration: wearable session data import.

The vendor API allows one data request every 15 minutes. Rate-limit
responses (412/429) are retried with exponential backoff before giving up.
"""

import asyncio
import os
import time
from datetime import datetime, timedelta
from typing import Optional, Dict, List, Tuple

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from academy.database.models import (
    PlayermakerSettings,
    PlayermakerSession,
    PlayermakerPlayerMetric,
    PlayermakerSyncHistory,
    PlayermakerCoachAnnotation,
    Player,
)
from academy.utils.datetime_utils import utcnow, parse_iso, epoch_ms, from_epoch_ms
import logging

logger = logging.getLogger(__name__)

MIN_SYNC_INTERVAL_SECONDS = 15 * 60
MAX_RETRIES = 3
INITIAL_RETRY_DELAY_SECONDS = 60
TOKEN_REFRESH_MARGIN = timedelta(minutes=30)
VALID_SESSION_TYPES = ("training", "match", "all")
ANNOTATION_TYPES = ("note", "praise", "concern", "goal")

LOGIN_ERROR_MESSAGES = {
    "pmErrorClientLoginBadCredentials": (
        "Invalid PlayerMaker credentials. Please check your Client Key and Client Secret."
    ),
    "pmErrorStaffNotRelatedToTeam": (
        "Invalid Team ID. Please check that you are using the correct Team ID for your account."
    ),
}

# field -> accepted header names (lower case, spaces removed)
SESSION_ALIASES = {
    "session_id": ("sessionid", "session_id"),
    "session_type": ("sessiontype", "session_type"),
    "session_date": ("date", "sessiondate", "session_date"),
    "duration": ("duration", "sessionduration"),
    "notes": ("notes", "tag"),
}

METRIC_ALIASES = {
    "external_player_id": ("playerid", "player_id"),
    "player_name": ("playername", "player_name", "name"),
    "age_group": ("agegroup", "age_group"),
    "total_touches": ("totaltouches", "total_touches", "touches"),
    "left_foot_touches": ("leftfoottouches", "left_foot_touches", "lefttouches"),
    "right_foot_touches": ("rightfoottouches", "right_foot_touches", "righttouches"),
    "distance_covered": ("distancecovered", "distance_covered", "distance"),
    "top_speed": ("topspeed", "top_speed", "maxspeed"),
    "average_speed": ("averagespeed", "average_speed", "avgspeed"),
    "sprint_count": ("sprintcount", "sprint_count", "sprints"),
    "acceleration_count": ("accelerationcount", "acceleration_count", "accelerations"),
    "deceleration_count": ("decelerationcount", "deceleration_count", "decelerations"),
    "high_intensity_distance": ("highintensitydistance", "high_intensity_distance", "hirdistance"),
}

INT_METRICS = (
    "total_touches",
    "left_foot_touches",
    "right_foot_touches",
    "sprint_count",
    "acceleration_count",
    "deceleration_count",
)
FLOAT_METRICS = ("distance_covered", "top_speed", "average_speed", "high_intensity_distance")


class PlayerMakerError(Exception):
    """PlayerMaker API call failed."""


class PlayerMakerRateLimitError(PlayerMakerError):
    """PlayerMaker rejected the request because of its rate limit."""


def _api_url() -> str:
    return os.getenv("PLAYERMAKER_API_URL", "https://b2b.playermaker.co.uk/api/b2b/v1").rstrip("/")


def _get_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=30.0)


async def _sleep(seconds: float):
    await asyncio.sleep(seconds)


def format_wait_time(seconds: float) -> str:
    minutes = int(-(-seconds // 60))
    if minutes <= 1:
        return "less than a minute"
    return f"{minutes} minutes"


# ============================================================================
# API client
# ============================================================================


async def authenticate(client_key: str, client_secret: str, client_team_id: str) -> Dict:
    """
    Log in to PlayerMaker.

    Returns:
        Dict with ``token``, ``expires_at`` (aware datetime), ``club_name`` and ``teams``

    Raises:
        PlayerMakerError: On rejected credentials or a transport failure
    """
    team_id = int(client_team_id) if str(client_team_id).isdigit() else client_team_id
    payload = {"clientSecret": client_secret, "clientKey": client_key, "clientTeamId": team_id}
    try:
        async with _get_client() as client:
            resp = await client.post(f"{_api_url()}/account/login", json=payload)
    except httpx.RequestError as e:
        logger.error(f"PlayerMaker login request failed: {e}")
        raise PlayerMakerError(f"Could not reach PlayerMaker: {e}")

    if resp.status_code >= 400:
        message = f"PlayerMaker authentication failed: {resp.status_code}"
        try:
            body = resp.json()
            message = LOGIN_ERROR_MESSAGES.get(body.get("errorMessageId")) or body.get("errorMessage") or message
        except ValueError:
            message = f"{message} - {resp.text}"
        logger.warning(f"PlayerMaker login rejected: {message}")
        raise PlayerMakerError(message)

    try:
        data = resp.json()
    except ValueError:
        raise PlayerMakerError("PlayerMaker login response is not valid JSON")
    if not isinstance(data, dict) or not data.get("token") or not isinstance(data.get("expiresOn"), (int, float)):
        logger.warning("PlayerMaker login response missing token or expiry")
        raise PlayerMakerError("PlayerMaker login response missing token")
    logger.info(f"PlayerMaker authenticated for club {data.get('clubName')}")
    return {
        "token": data["token"],
        "expires_at": from_epoch_ms(data["expiresOn"]),
        "club_name": data.get("clubName"),
        "teams": data.get("teams") or [],
    }


def is_token_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when there is no expiry or it falls within the next 30 minutes."""
    if expires_at is None:
        return True
    now = now or utcnow()
    return expires_at <= now + TOKEN_REFRESH_MARGIN


async def fetch_session_data(
    token: str,
    team_id: str,
    days_back: int = 30,
    session_type: str = "all",
    now: Optional[datetime] = None,
) -> Dict:
    """
    Fetch the session-data table for a time window ending now.

    Rate-limit responses are retried after 60s, 120s, ... up to MAX_RETRIES
    attempts.

    Raises:
        PlayerMakerRateLimitError: If every attempt was rate limited
        PlayerMakerError: On any other failure
    """
    if session_type not in VALID_SESSION_TYPES:
        raise ValueError(f"Invalid session type: {session_type}")
    now = now or utcnow()
    payload = {
        "sessionType": session_type,
        "epochStartDateGMT": epoch_ms(now - timedelta(days=days_back)),
        "epochEndDateGMT": epoch_ms(now),
    }
    # The vendor expects this exact scheme spelling
    headers = {"Authorization": f"berear {token}"}
    url = f"{_api_url()}/team/{team_id}/session-data"

    for attempt in range(MAX_RETRIES):
        try:
            async with _get_client() as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"PlayerMaker session request failed: {e}")
            raise PlayerMakerError(f"Could not reach PlayerMaker: {e}")

        if resp.status_code in (412, 429):
            wait = INITIAL_RETRY_DELAY_SECONDS * 2 ** attempt
            logger.warning(
                f"PlayerMaker rate limited ({resp.status_code}), attempt {attempt + 1}/{MAX_RETRIES}"
            )
            if attempt < MAX_RETRIES - 1:
                await _sleep(wait)
                continue
            raise PlayerMakerRateLimitError(
                "Rate limit exceeded. The PlayerMaker API limits requests to once every 15 minutes. "
                "Please wait 15 minutes before trying again."
            )

        if resp.status_code >= 400:
            raise PlayerMakerError(f"Failed to fetch sessions: {resp.status_code} - {resp.text}")
        return resp.json()

    raise PlayerMakerError(f"Fetching sessions failed after {MAX_RETRIES} attempts")


def _header_index(headers: List[str]) -> Dict[str, int]:
    return {str(h).lower().replace(" ", ""): i for i, h in enumerate(headers)}


def _pick(row: List, index: Dict[str, int], aliases: Tuple[str, ...]):
    for alias in aliases:
        i = index.get(alias)
        if i is not None and i < len(row) and row[i] not in (None, ""):
            return row[i]
    return None


def _number(value, cast):
    try:
        return cast(value) if value is not None else cast(0)
    except (TypeError, ValueError):
        return cast(0)


def _session_date(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return from_epoch_ms(value).isoformat()
    return str(value)


def parse_session_rows(headers: List[str], values: List[List]) -> Tuple[List[Dict], List[Dict]]:
    """
    Split the session-data table into sessions and per-player metrics.

    Sessions are de-duplicated by id in first-seen order. Rows without a
    session id are skipped.
    """
    index = _header_index(headers or [])
    sessions: Dict[str, Dict] = {}
    metrics = []
    for row in values or []:
        session_id = _pick(row, index, SESSION_ALIASES["session_id"])
        if session_id is None:
            continue
        session_id = str(session_id)
        if session_id not in sessions:
            session_type = str(_pick(row, index, SESSION_ALIASES["session_type"]) or "training").lower()
            sessions[session_id] = {
                "session_id": session_id,
                "session_type": session_type if session_type in ("training", "match") else "training",
                "session_date": _session_date(_pick(row, index, SESSION_ALIASES["session_date"])),
                "duration": _number(_pick(row, index, SESSION_ALIASES["duration"]), int),
                "notes": str(_pick(row, index, SESSION_ALIASES["notes"]) or "") or None,
            }

        metric = {"session_id": session_id}
        for field, aliases in METRIC_ALIASES.items():
            value = _pick(row, index, aliases)
            if field in INT_METRICS:
                metric[field] = _number(value, int)
            elif field in FLOAT_METRICS:
                metric[field] = _number(value, float)
            else:
                metric[field] = str(value) if value is not None else None
        metric["player_name"] = metric["player_name"] or "Unknown"
        metrics.append(metric)
    return list(sessions.values()), metrics


# ============================================================================
# Settings
# ============================================================================


def _settings_to_dict(settings: PlayermakerSettings) -> Dict:
    return {
        "id": settings.id,
        "client_key": settings.client_key,
        "client_team_id": settings.client_team_id,
        "team_code": settings.team_code,
        "has_secret": bool(settings.client_secret),
        "has_token": bool(settings.token),
        "token_expires_at": settings.token_expires_at,
        "club_name": settings.club_name,
        "last_sync_at": settings.last_sync_at,
        "auto_sync_enabled": settings.auto_sync_enabled,
        "sync_frequency": settings.sync_frequency,
    }


async def _get_settings_model(session: AsyncSession) -> Optional[PlayermakerSettings]:
    result = await session.execute(select(PlayermakerSettings).order_by(PlayermakerSettings.id).limit(1))
    return result.scalar_one_or_none()


async def get_settings(session: AsyncSession) -> Optional[Dict]:
    settings = await _get_settings_model(session)
    return _settings_to_dict(settings) if settings else None


async def save_settings(
    session: AsyncSession,
    client_key: str,
    client_secret: Optional[str],
    client_team_id: str,
    team_code: Optional[str] = None,
    auto_sync_enabled: Optional[bool] = None,
    sync_frequency: Optional[str] = None,
) -> Dict:
    """
    Create or update the credentials row. Changing credentials clears the
    cached token. An empty secret keeps the stored one.
    """
    if not client_key or not client_team_id:
        raise ValueError("client_key and client_team_id are required")
    settings = await _get_settings_model(session)
    if settings is None:
        if not client_secret:
            raise ValueError("client_secret is required")
        settings = PlayermakerSettings(
            client_key=client_key, client_secret=client_secret, client_team_id=str(client_team_id)
        )
        session.add(settings)
    else:
        if (
            settings.client_key != client_key
            or settings.client_team_id != str(client_team_id)
            or (client_secret and client_secret != settings.client_secret)
        ):
            settings.token = None
            settings.token_expires_at = None
        settings.client_key = client_key
        settings.client_team_id = str(client_team_id)
        if client_secret:
            settings.client_secret = client_secret
    if team_code is not None:
        settings.team_code = team_code
    if auto_sync_enabled is not None:
        settings.auto_sync_enabled = auto_sync_enabled
    if sync_frequency is not None:
        settings.sync_frequency = sync_frequency
    await session.flush()
    await session.refresh(settings)
    return _settings_to_dict(settings)


async def get_valid_token(session: AsyncSession, settings: PlayermakerSettings) -> str:
    """Cached token, or a fresh one stored back on the settings row."""
    if settings.token and not is_token_expired(parse_iso(settings.token_expires_at)):
        return settings.token
    auth = await authenticate(settings.client_key, settings.client_secret, settings.client_team_id)
    settings.token = auth["token"]
    settings.token_expires_at = auth["expires_at"].isoformat()
    settings.club_name = auth["club_name"]
    await session.flush()
    return auth["token"]


async def test_connection(session: AsyncSession) -> Dict:
    settings = await _get_settings_model(session)
    if settings is None:
        raise ValueError("PlayerMaker is not configured")
    auth = await authenticate(settings.client_key, settings.client_secret, settings.client_team_id)
    settings.token = auth["token"]
    settings.token_expires_at = auth["expires_at"].isoformat()
    settings.club_name = auth["club_name"]
    await session.flush()
    return {"connected": True, "club_name": auth["club_name"], "teams": auth["teams"]}


# ============================================================================
# Sync
# ============================================================================


async def get_wait_time_before_sync(session: AsyncSession, now: Optional[datetime] = None) -> float:
    """Seconds until another sync is allowed (0 when allowed now)."""
    result = await session.execute(
        select(PlayermakerSyncHistory.synced_at)
        .where(PlayermakerSyncHistory.success.is_(True))
        .order_by(PlayermakerSyncHistory.id.desc())
        .limit(1)
    )
    last = parse_iso(result.scalar_one_or_none())
    if last is None:
        return 0
    elapsed = ((now or utcnow()) - last).total_seconds()
    return max(0.0, MIN_SYNC_INTERVAL_SECONDS - elapsed)


async def _player_lookup(session: AsyncSession) -> Dict[str, int]:
    result = await session.execute(select(Player.id, Player.first_name, Player.last_name))
    return {f"{first} {last}".strip().lower(): pid for pid, first, last in result.all()}


async def _upsert_session(session: AsyncSession, data: Dict):
    result = await session.execute(
        select(PlayermakerSession).where(PlayermakerSession.session_id == data["session_id"])
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        session.add(PlayermakerSession(**data))
        await session.flush()
    else:
        for key, value in data.items():
            setattr(existing, key, value)


async def _upsert_metric(session: AsyncSession, data: Dict):
    result = await session.execute(
        select(PlayermakerPlayerMetric).where(
            PlayermakerPlayerMetric.session_id == data["session_id"],
            PlayermakerPlayerMetric.player_name == data["player_name"],
        )
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        session.add(PlayermakerPlayerMetric(**data))
        await session.flush()
    else:
        for key, value in data.items():
            setattr(existing, key, value)


async def _record_history(
    session: AsyncSession,
    sync_type: str,
    success: bool,
    started: float,
    triggered_by: Optional[int],
    sessions_count: int = 0,
    metrics_count: int = 0,
    error_message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PlayermakerSyncHistory:
    history = PlayermakerSyncHistory(
        sync_type=sync_type,
        sessions_count=sessions_count,
        metrics_count=metrics_count,
        success=success,
        error_message=error_message,
        duration_ms=int((time.monotonic() - started) * 1000),
        triggered_by=triggered_by,
        synced_at=(now or utcnow()).isoformat(),
    )
    session.add(history)
    await session.flush()
    return history


async def sync(
    session: AsyncSession,
    days_back: int = 30,
    session_type: str = "all",
    triggered_by: Optional[int] = None,
    sync_type: str = "manual",
    now: Optional[datetime] = None,
) -> Dict:
    """
    Import sessions and metrics for the configured team.

    Metrics are linked to academy players whose full name matches
    (case-insensitive). A failed sync is recorded in the history and committed
    before the error propagates.

    Raises:
        ValueError: If PlayerMaker is not configured
        PlayerMakerRateLimitError: If the last successful sync was under 15 minutes ago
        PlayerMakerError: If the vendor call fails
    """
    settings = await _get_settings_model(session)
    if settings is None:
        raise ValueError("PlayerMaker is not configured")

    wait = await get_wait_time_before_sync(session, now)
    if wait > 0:
        raise PlayerMakerRateLimitError(
            f"PlayerMaker allows one sync every 15 minutes. Please wait {format_wait_time(wait)}."
        )

    started = time.monotonic()
    try:
        token = await get_valid_token(session, settings)
        data = await fetch_session_data(token, settings.client_team_id, days_back, session_type, now)
    except PlayerMakerError as e:
        await _record_history(session, sync_type, False, started, triggered_by, error_message=str(e), now=now)
        await session.commit()
        raise

    sessions, rows = parse_session_rows(data.get("headers") or [], data.get("values") or [])
    # one row per (session, player); a later row for the same pair replaces the earlier one
    metrics = list({(m["session_id"], m["player_name"]): m for m in rows}.values())
    players = await _player_lookup(session)
    for item in sessions:
        await _upsert_session(session, item)
    linked = 0
    for metric in metrics:
        player_id = players.get(metric["player_name"].strip().lower())
        if player_id:
            linked += 1
        await _upsert_metric(session, {**metric, "player_id": player_id})

    settings.last_sync_at = (now or utcnow()).isoformat()
    history = await _record_history(
        session, sync_type, True, started, triggered_by, len(sessions), len(metrics), now=now
    )
    logger.info(f"PlayerMaker sync imported {len(sessions)} sessions, {len(metrics)} metrics ({linked} linked)")
    return {
        "success": True,
        "sessions_count": len(sessions),
        "metrics_count": len(metrics),
        "linked_players": linked,
        "duration_ms": history.duration_ms,
        "is_last_bulk": data.get("isLastBulk", True),
    }


async def list_sync_history(session: AsyncSession, limit: int = 20) -> List[Dict]:
    result = await session.execute(
        select(PlayermakerSyncHistory).order_by(PlayermakerSyncHistory.id.desc()).limit(limit)
    )
    return [
        {
            "id": h.id,
            "sync_type": h.sync_type,
            "sessions_count": h.sessions_count,
            "metrics_count": h.metrics_count,
            "success": h.success,
            "error_message": h.error_message,
            "duration_ms": h.duration_ms,
            "triggered_by": h.triggered_by,
            "synced_at": h.synced_at,
        }
        for h in result.scalars().all()
    ]


# ============================================================================
# Stored data
# ============================================================================


def _session_to_dict(item: PlayermakerSession) -> Dict:
    return {
        "id": item.id,
        "session_id": item.session_id,
        "session_type": item.session_type,
        "session_date": item.session_date,
        "duration": item.duration,
        "notes": item.notes,
    }


def _metric_to_dict(metric: PlayermakerPlayerMetric) -> Dict:
    data = {
        "id": metric.id,
        "session_id": metric.session_id,
        "external_player_id": metric.external_player_id,
        "player_name": metric.player_name,
        "player_id": metric.player_id,
        "age_group": metric.age_group,
    }
    for key in INT_METRICS + FLOAT_METRICS:
        data[key] = getattr(metric, key)
    return data


async def list_sessions(session: AsyncSession, limit: int = 50) -> List[Dict]:
    result = await session.execute(
        select(PlayermakerSession).order_by(PlayermakerSession.session_date.desc()).limit(limit)
    )
    return [_session_to_dict(s) for s in result.scalars().all()]


async def get_session_metrics(session: AsyncSession, session_id: str) -> List[Dict]:
    result = await session.execute(
        select(PlayermakerPlayerMetric)
        .where(PlayermakerPlayerMetric.session_id == session_id)
        .order_by(PlayermakerPlayerMetric.player_name)
    )
    return [_metric_to_dict(m) for m in result.scalars().all()]


async def get_player_metrics(session: AsyncSession, player_id: int) -> Dict:
    """A player's imported metrics with simple averages."""
    result = await session.execute(
        select(PlayermakerPlayerMetric)
        .where(PlayermakerPlayerMetric.player_id == player_id)
        .order_by(PlayermakerPlayerMetric.id.desc())
    )
    metrics = [_metric_to_dict(m) for m in result.scalars().all()]
    count = len(metrics)
    averages = {
        f"avg_{key}": round(sum(m[key] or 0 for m in metrics) / count, 1) if count else 0
        for key in ("total_touches", "distance_covered", "top_speed", "sprint_count")
    }
    return {"player_id": player_id, "sessions": count, **averages, "metrics": metrics}


def _annotation_to_dict(annotation: PlayermakerCoachAnnotation) -> Dict:
    return {
        "id": annotation.id,
        "metric_id": annotation.metric_id,
        "coach_user_id": annotation.coach_user_id,
        "annotation_type": annotation.annotation_type,
        "content": annotation.content,
        "created_at": annotation.created_at.isoformat() if annotation.created_at else None,
    }


async def add_annotation(
    session: AsyncSession, metric_id: int, coach_user_id: int, content: str, annotation_type: str = "note"
) -> Dict:
    if not content or not content.strip():
        raise ValueError("content is required")
    if annotation_type not in ANNOTATION_TYPES:
        raise ValueError(f"Invalid annotation type: {annotation_type}")
    exists = await session.execute(
        select(func.count()).select_from(PlayermakerPlayerMetric).where(PlayermakerPlayerMetric.id == metric_id)
    )
    if not exists.scalar_one():
        raise ValueError(f"Metric {metric_id} not found")
    annotation = PlayermakerCoachAnnotation(
        metric_id=metric_id,
        coach_user_id=coach_user_id,
        annotation_type=annotation_type,
        content=content.strip(),
    )
    session.add(annotation)
    await session.flush()
    await session.refresh(annotation)
    return _annotation_to_dict(annotation)


async def list_annotations(session: AsyncSession, metric_id: int) -> List[Dict]:
    result = await session.execute(
        select(PlayermakerCoachAnnotation)
        .where(PlayermakerCoachAnnotation.metric_id == metric_id)
        .order_by(PlayermakerCoachAnnotation.id)
    )
    return [_annotation_to_dict(a) for a in result.scalars().all()]


async def delete_annotation(session: AsyncSession, annotation_id: int, user: Dict) -> bool:
    result = await session.execute(
        select(PlayermakerCoachAnnotation).where(PlayermakerCoachAnnotation.id == annotation_id)
    )
    annotation = result.scalar_one_or_none()
    if not annotation:
        raise ValueError(f"Annotation {annotation_id} not found")
    if annotation.coach_user_id != user.get("id") and user.get("role") != "admin":
        raise PermissionError("Only the author or an admin can delete this annotation")
    await session.delete(annotation)
    await session.flush()
    return True
