"""
Tests for the PlayerMaker integration: table parsing, tokens, rate limits
and the sync pipeline against a mocked vendor API.
"""

import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
import pytz

from academy.services import playermaker_service
from academy.services.playermaker_service import PlayerMakerError, PlayerMakerRateLimitError
from academy.utils.datetime_utils import epoch_ms, utcnow

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=pytz.UTC)

HEADERS = [
    "Session ID",
    "Session Type",
    "Date",
    "Duration",
    "Player Name",
    "Total Touches",
    "Distance Covered",
    "Top Speed",
]
VALUES = [
    ["s1", "Match", epoch_ms(NOW - timedelta(days=2)), 90, "Sami Haddad", 120, 8200.5, 28.4],
    ["s1", "Match", epoch_ms(NOW - timedelta(days=2)), 90, "Unknown Kid", "x", "", None],
    ["s2", "Gym", "2026-09-28", "", "Sami Haddad", 80, 5100, 24.0],
    ["", "Training", "2026-09-27", 60, "Nobody", 1, 1, 1],
]


def test_format_wait_time():
    assert playermaker_service.format_wait_time(30) == "less than a minute"
    assert playermaker_service.format_wait_time(61) == "2 minutes"
    assert playermaker_service.format_wait_time(600) == "10 minutes"


def test_token_expiry_margin():
    assert playermaker_service.is_token_expired(None, NOW) is True
    assert playermaker_service.is_token_expired(NOW + timedelta(minutes=20), NOW) is True
    assert playermaker_service.is_token_expired(NOW + timedelta(hours=2), NOW) is False


class TestParseSessionRows:
    def test_sessions_are_deduplicated(self):
        sessions, metrics = playermaker_service.parse_session_rows(HEADERS, VALUES)
        assert [s["session_id"] for s in sessions] == ["s1", "s2"]
        assert len(metrics) == 3

    def test_session_fields(self):
        sessions, _ = playermaker_service.parse_session_rows(HEADERS, VALUES)
        match, gym = sessions
        assert match["session_type"] == "match"
        assert match["duration"] == 90
        assert match["session_date"].startswith("2026-09-29")
        assert gym["session_type"] == "training"
        assert gym["duration"] == 0
        assert gym["session_date"] == "2026-09-28"

    def test_bad_numbers_become_zero(self):
        _, metrics = playermaker_service.parse_session_rows(HEADERS, VALUES)
        unknown = metrics[1]
        assert unknown["player_name"] == "Unknown Kid"
        assert unknown["total_touches"] == 0
        assert unknown["distance_covered"] == 0.0
        assert unknown["sprint_count"] == 0

    def test_empty_table(self):
        assert playermaker_service.parse_session_rows([], None) == ([], [])


# ============================================================================
# Vendor API
# ============================================================================


def _mock_api(monkeypatch, handler):
    monkeypatch.setenv("PLAYERMAKER_API_URL", "https://pm.test/api")
    monkeypatch.setattr(
        playermaker_service,
        "_get_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _vendor(calls, session_status=200, values=None):
    def handler(request):
        calls.append(request)
        if request.url.path.endswith("/account/login"):
            return httpx.Response(
                200,
                json={
                    "token": "pm-token",
                    "expiresOn": epoch_ms(utcnow() + timedelta(days=1)),
                    "clubName": "Future Stars",
                    "teams": [{"id": 77}],
                },
            )
        if session_status != 200:
            return httpx.Response(session_status, text="slow down")
        return httpx.Response(200, json={"headers": HEADERS, "values": VALUES if values is None else values, "isLastBulk": True})

    return handler


@pytest.mark.asyncio
async def test_authenticate_maps_vendor_errors(monkeypatch):
    _mock_api(
        monkeypatch,
        lambda request: httpx.Response(401, json={"errorMessageId": "pmErrorClientLoginBadCredentials"}),
    )
    with pytest.raises(PlayerMakerError, match="Invalid PlayerMaker credentials"):
        await playermaker_service.authenticate("key", "secret", "77")


@pytest.mark.asyncio
async def test_authenticate_sends_numeric_team_id(monkeypatch):
    calls = []
    _mock_api(monkeypatch, _vendor(calls))
    auth = await playermaker_service.authenticate("key", "secret", "77")
    assert auth["token"] == "pm-token"
    assert auth["club_name"] == "Future Stars"
    assert json.loads(calls[0].content)["clientTeamId"] == 77


@pytest.mark.asyncio
async def test_fetch_retries_rate_limits(monkeypatch):
    calls = []
    _mock_api(monkeypatch, _vendor(calls, session_status=429))
    sleep = AsyncMock()
    monkeypatch.setattr(playermaker_service, "_sleep", sleep)

    with pytest.raises(PlayerMakerRateLimitError, match="15 minutes"):
        await playermaker_service.fetch_session_data("pm-token", "77", now=NOW)

    assert len(calls) == playermaker_service.MAX_RETRIES
    assert [c.args[0] for c in sleep.await_args_list] == [60, 120]
    assert calls[0].headers["Authorization"] == "berear pm-token"


@pytest.mark.asyncio
async def test_fetch_rejects_bad_session_type():
    with pytest.raises(ValueError, match="Invalid session type"):
        await playermaker_service.fetch_session_data("pm-token", "77", session_type="gym")


# ============================================================================
# Settings and sync
# ============================================================================


@pytest.mark.asyncio
async def test_save_settings(db_session):
    with pytest.raises(ValueError, match="client_secret is required"):
        await playermaker_service.save_settings(db_session, "key", "", "77")

    saved = await playermaker_service.save_settings(db_session, "key", "secret", 77, team_code="FSA")
    assert saved["client_team_id"] == "77"
    assert saved["has_secret"] is True
    assert saved["has_token"] is False

    kept = await playermaker_service.save_settings(db_session, "key", None, "77", auto_sync_enabled=True)
    assert kept["has_secret"] is True
    assert kept["auto_sync_enabled"] is True
    assert kept["id"] == saved["id"]


@pytest.mark.asyncio
async def test_sync_requires_settings(db_session):
    with pytest.raises(ValueError, match="not configured"):
        await playermaker_service.sync(db_session, now=NOW)


@pytest.mark.asyncio
async def test_sync_imports_and_links_players(db_session, player, coach_user, monkeypatch):
    calls = []
    _mock_api(monkeypatch, _vendor(calls))
    await playermaker_service.save_settings(db_session, "key", "secret", "77")

    result = await playermaker_service.sync(db_session, triggered_by=coach_user["id"], now=NOW)
    assert result["success"] is True
    assert result["sessions_count"] == 2
    assert result["metrics_count"] == 3
    assert result["linked_players"] == 2

    settings = await playermaker_service.get_settings(db_session)
    assert settings["has_token"] is True
    assert settings["club_name"] == "Future Stars"

    stats = await playermaker_service.get_player_metrics(db_session, player["id"])
    assert stats["sessions"] == 2
    assert stats["avg_total_touches"] == 100.0

    history = await playermaker_service.list_sync_history(db_session)
    assert history[0]["success"] is True
    assert history[0]["triggered_by"] == coach_user["id"]

    # a second sync inside the window is refused without calling the vendor
    with pytest.raises(PlayerMakerRateLimitError, match="10 minutes"):
        await playermaker_service.sync(db_session, now=NOW + timedelta(minutes=5))
    assert len(calls) == 2

    # after the window the cached token is reused and rows are updated in place
    again = await playermaker_service.sync(db_session, now=NOW + timedelta(minutes=16))
    assert again["sessions_count"] == 2
    assert len(calls) == 3
    assert len(await playermaker_service.list_sessions(db_session)) == 2
    assert len(await playermaker_service.get_session_metrics(db_session, "s1")) == 2


@pytest.mark.asyncio
async def test_wait_time_uses_last_successful_sync(db_session, monkeypatch):
    _mock_api(monkeypatch, _vendor([], session_status=500))
    await playermaker_service.save_settings(db_session, "key", "secret", "77")

    with pytest.raises(PlayerMakerError, match="Failed to fetch sessions: 500"):
        await playermaker_service.sync(db_session, now=NOW)

    history = await playermaker_service.list_sync_history(db_session)
    assert history[0]["success"] is False
    assert await playermaker_service.get_wait_time_before_sync(db_session, NOW) == 0


@pytest.mark.asyncio
async def test_annotations(db_session, coach_user, parent_user, monkeypatch):
    _mock_api(monkeypatch, _vendor([]))
    await playermaker_service.save_settings(db_session, "key", "secret", "77")
    await playermaker_service.sync(db_session, now=NOW)
    metric = (await playermaker_service.get_session_metrics(db_session, "s1"))[0]

    with pytest.raises(ValueError, match="Invalid annotation type"):
        await playermaker_service.add_annotation(db_session, metric["id"], coach_user["id"], "x", "rant")
    with pytest.raises(ValueError, match="Metric 999 not found"):
        await playermaker_service.add_annotation(db_session, 999, coach_user["id"], "Good pressing")

    note = await playermaker_service.add_annotation(
        db_session, metric["id"], coach_user["id"], " Good pressing ", "praise"
    )
    assert note["content"] == "Good pressing"
    assert len(await playermaker_service.list_annotations(db_session, metric["id"])) == 1

    with pytest.raises(PermissionError):
        await playermaker_service.delete_annotation(db_session, note["id"], parent_user)
    assert await playermaker_service.delete_annotation(db_session, note["id"], coach_user) is True


@pytest.mark.asyncio
async def test_authenticate_rejects_incomplete_login_body(monkeypatch):
    _mock_api(monkeypatch, lambda request: httpx.Response(200, json={"clubName": "Future Stars"}))
    with pytest.raises(PlayerMakerError, match="missing token"):
        await playermaker_service.authenticate("key", "secret", "77")

    _mock_api(monkeypatch, lambda request: httpx.Response(200, json={"token": "pm-token", "expiresOn": None}))
    with pytest.raises(PlayerMakerError, match="missing token"):
        await playermaker_service.authenticate("key", "secret", "77")


@pytest.mark.asyncio
async def test_sync_records_incomplete_login_as_failure(db_session, monkeypatch):
    _mock_api(monkeypatch, lambda request: httpx.Response(200, json={"clubName": "Future Stars"}))
    await playermaker_service.save_settings(db_session, "key", "secret", "77")

    with pytest.raises(PlayerMakerError, match="missing token"):
        await playermaker_service.sync(db_session, now=NOW)

    history = await playermaker_service.list_sync_history(db_session)
    assert history[0]["success"] is False
    assert "missing token" in history[0]["error_message"]


@pytest.mark.asyncio
async def test_sync_repeated_player_rows_keep_last(manual_flush_session, monkeypatch):
    day = epoch_ms(NOW - timedelta(days=1))
    values = [
        ["s1", "Training", day, 60, "", 5, 1000, 20.0],
        ["s1", "Training", day, 60, "", 7, 1200, 21.0],
        ["s1", "Training", day, 60, "Sami Haddad", 40, 3000, 25.0],
        ["s1", "Training", day, 60, "Sami Haddad", 45, 3100, 26.0],
    ]
    _mock_api(monkeypatch, _vendor([], values=values))
    await playermaker_service.save_settings(manual_flush_session, "key", "secret", "77")

    result = await playermaker_service.sync(manual_flush_session, now=NOW)
    assert result["sessions_count"] == 1
    assert result["metrics_count"] == 2

    stored = await playermaker_service.get_session_metrics(manual_flush_session, "s1")
    touches = {m["player_name"]: m["total_touches"] for m in stored}
    assert touches == {"Unknown": 7, "Sami Haddad": 45}


@pytest.mark.asyncio
async def test_resync_updates_rows_without_autoflush(manual_flush_session, monkeypatch):
    _mock_api(monkeypatch, _vendor([]))
    await playermaker_service.save_settings(manual_flush_session, "key", "secret", "77")

    await playermaker_service.sync(manual_flush_session, now=NOW)
    await playermaker_service.sync(manual_flush_session, now=NOW + timedelta(minutes=16))
    assert len(await playermaker_service.list_sessions(manual_flush_session)) == 2
    assert len(await playermaker_service.get_session_metrics(manual_flush_session, "s1")) == 2
