"""
Tests for the parent portal: links, dashboard, reports and weekly summaries.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from academy.services import (
    parent_service,
    performance_service,
    skill_service,
    user_service,
    whatsapp_service,
)
from academy.utils.datetime_utils import today_utc


@pytest.mark.asyncio
async def test_link_parent_validation(db_session, parent_user, coach_user, player):
    with pytest.raises(ValueError, match="Invalid relationship"):
        await parent_service.link_parent(db_session, parent_user["id"], player["id"], relationship="uncle")
    with pytest.raises(ValueError, match="Only parent accounts"):
        await parent_service.link_parent(db_session, coach_user["id"], player["id"])
    with pytest.raises(ValueError, match="Player 999 not found"):
        await parent_service.link_parent(db_session, parent_user["id"], 999)

    link = await parent_service.link_parent(
        db_session, parent_user["id"], player["id"], relationship="mother", is_primary=True
    )
    assert link["relationship"] == "mother"
    assert link["is_primary"] is True

    with pytest.raises(ValueError, match="already linked"):
        await parent_service.link_parent(db_session, parent_user["id"], player["id"])


@pytest.mark.asyncio
async def test_unlink_parent(db_session, parent_user, player):
    await parent_service.link_parent(db_session, parent_user["id"], player["id"])
    assert await parent_service.unlink_parent(db_session, parent_user["id"], player["id"]) is True
    assert await parent_service.list_children(db_session, parent_user["id"]) == []
    with pytest.raises(ValueError, match="not linked"):
        await parent_service.unlink_parent(db_session, parent_user["id"], player["id"])


@pytest.mark.asyncio
async def test_dashboard_lists_each_child(db_session, parent_user, player):
    await parent_service.link_parent(db_session, parent_user["id"], player["id"])
    await skill_service.create_skill_score(db_session, player["id"], shooting=70)

    dashboard = await parent_service.get_parent_dashboard(db_session, parent_user["id"])
    assert dashboard["parent_user_id"] == parent_user["id"]
    assert len(dashboard["children"]) == 1
    overview = dashboard["children"][0]
    assert overview["player"]["id"] == player["id"]
    assert overview["latest_skill_score"]["shooting"] == 70
    assert len(overview["radar"]["axes"]) == 6
    assert overview["points"]["total_points"] == 0
    assert overview["recent_matches"] == []


@pytest.mark.asyncio
async def test_progress_report_only_for_own_children(db_session, parent_user, player):
    with pytest.raises(PermissionError):
        await parent_service.get_child_progress_report(db_session, parent_user["id"], player["id"])

    await parent_service.link_parent(db_session, parent_user["id"], player["id"])
    report = await parent_service.get_child_progress_report(db_session, parent_user["id"], player["id"], days=14)
    assert report["player"]["id"] == player["id"]
    assert report["skill_history"] == []
    assert report["latest_skill_score"] is None
    assert report["performance"]["sessions"] == 0


@pytest.mark.asyncio
async def test_weekly_progress_delivery(db_session, parent_user, player, monkeypatch):
    send = AsyncMock(return_value={"sent": True, "skipped": False})
    monkeypatch.setattr(whatsapp_service, "send_message", send)
    await user_service.update_profile(
        db_session, parent_user["id"], whatsapp_phone="0501234567", whatsapp_notifications=True
    )
    await parent_service.link_parent(db_session, parent_user["id"], player["id"])
    await performance_service.create_metric(
        db_session,
        player["id"],
        today_utc() - timedelta(days=1),
        "training",
        overall_score=72,
        distance_covered=6400,
    )

    sent = await parent_service.send_weekly_progress(db_session, parent_user["id"])
    assert sent == {"reports": 1, "emails": 1, "whatsapp": 1}

    text = send.call_args[0][1]
    assert "Sami Haddad's weekly progress" in text
    assert "6.4 km covered" in text

    with pytest.raises(PermissionError):
        await parent_service.send_weekly_progress(db_session, parent_user["id"], player_id=player["id"] + 1)


def test_progress_highlights():
    highlights = parent_service._progress_highlights(
        {"sessions": 2, "totals": {"distance_covered": 12500}, "best_top_speed": 27.5, "trend": "improving"}
    )
    assert highlights == ["2 sessions this week", "12.5 km covered", "Top speed 27.5 km/h", "Trend: improving"]
