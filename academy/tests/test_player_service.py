"""
Tests for player_service: profiles, filters, age groups and parent visibility.
"""

from datetime import date

import pytest

from academy.database.models import ParentPlayerRelation
from academy.services import player_service, performance_service, skill_service


class TestComputeAgeGroup:
    def test_birthday_already_passed(self):
        assert player_service.compute_age_group(date(2012, 3, 1), date(2026, 6, 1)) == "U15"

    def test_birthday_not_yet_reached(self):
        assert player_service.compute_age_group(date(2012, 9, 1), date(2026, 6, 1)) == "U14"

    def test_on_birthday(self):
        assert player_service.compute_age_group(date(2015, 6, 1), date(2026, 6, 1)) == "U12"


@pytest.mark.asyncio
async def test_create_player_derives_age_group(db_session, team):
    created = await player_service.create_player(
        db_session,
        first_name="Yusuf",
        last_name="Nasser",
        date_of_birth=date(2013, 1, 10),
        position="forward",
        team_id=team["id"],
        jersey_number=9,
    )

    assert created["id"] > 0
    assert created["full_name"] == "Yusuf Nasser"
    assert created["age_group"] == player_service.compute_age_group(date(2013, 1, 10))
    assert created["preferred_foot"] == "right"
    assert created["status"] == "active"


@pytest.mark.asyncio
async def test_create_player_validation(db_session):
    base = {"first_name": "A", "last_name": "B", "date_of_birth": date(2012, 1, 1), "position": "defender"}

    with pytest.raises(ValueError, match="first_name is required"):
        await player_service.create_player(db_session, **{**base, "first_name": ""})
    with pytest.raises(ValueError, match="Invalid position"):
        await player_service.create_player(db_session, **{**base, "position": "sweeper"})
    with pytest.raises(ValueError, match="jersey_number"):
        await player_service.create_player(db_session, **{**base, "jersey_number": 100})
    with pytest.raises(ValueError, match="Team 999 not found"):
        await player_service.create_player(db_session, **{**base, "team_id": 999})


@pytest.mark.asyncio
async def test_list_players_filters_and_search(db_session, team, player):
    await player_service.create_player(
        db_session,
        first_name="Khalid",
        last_name="Otaibi",
        date_of_birth=date(2012, 2, 2),
        position="goalkeeper",
    )

    everyone = await player_service.list_players(db_session)
    assert everyone["total"] == 2

    on_team = await player_service.list_players(db_session, team_id=team["id"])
    assert [p["id"] for p in on_team["items"]] == [player["id"]]

    keepers = await player_service.list_players(db_session, position="goalkeeper")
    assert keepers["total"] == 1
    assert keepers["items"][0]["last_name"] == "Otaibi"

    search = await player_service.list_players(db_session, q="hadd")
    assert search["total"] == 1
    assert search["items"][0]["id"] == player["id"]

    paged = await player_service.list_players(db_session, limit=1, offset=1)
    assert paged["total"] == 2
    assert len(paged["items"]) == 1


@pytest.mark.asyncio
async def test_update_player_recomputes_age_group(db_session, player):
    updated = await player_service.update_player(
        db_session, player["id"], date_of_birth=date(2010, 1, 1), height=165
    )
    assert updated["height"] == 165
    assert updated["age_group"] == player_service.compute_age_group(date(2010, 1, 1))

    with pytest.raises(ValueError, match="not found"):
        await player_service.update_player(db_session, 12345, height=150)


@pytest.mark.asyncio
async def test_delete_player_cascades(db_session, player):
    await performance_service.create_metric(
        db_session, player["id"], date(2026, 1, 5), "training", overall_score=70
    )
    await skill_service.create_skill_score(db_session, player["id"], assessment_date=date(2026, 1, 5))

    assert await player_service.delete_player(db_session, player["id"]) is True
    assert await player_service.get_player(db_session, player["id"]) is None
    assert await performance_service.list_player_metrics(db_session, player["id"]) == []
    assert await skill_service.get_latest_skill_score(db_session, player["id"]) is None


@pytest.mark.asyncio
async def test_can_view_player_by_role(db_session, player, parent_user, coach_user):
    assert await player_service.can_view_player(db_session, coach_user, player["id"]) is True
    assert await player_service.can_view_player(db_session, parent_user, player["id"]) is False

    db_session.add(ParentPlayerRelation(parent_user_id=parent_user["id"], player_id=player["id"]))
    await db_session.flush()
    assert await player_service.can_view_player(db_session, parent_user, player["id"]) is True


@pytest.mark.asyncio
async def test_player_sees_only_own_profile(db_session, team, player):
    from academy.services import user_service

    account = await user_service.create_user(
        db_session, email="kid@academy.test", password_hash="x", role="player", account_status="approved"
    )
    own = await player_service.create_player(
        db_session,
        first_name="Own",
        last_name="Profile",
        date_of_birth=date(2012, 1, 1),
        position="defender",
        user_id=account["id"],
    )

    assert await player_service.can_view_player(db_session, account, own["id"]) is True
    assert await player_service.can_view_player(db_session, account, player["id"]) is False
