"""
Tests for teams, coach assignments, rosters and duplicate merging.
"""

from datetime import date

import pytest

from academy.services import match_service, player_service, team_service


@pytest.mark.asyncio
async def test_create_team_validation(db_session):
    with pytest.raises(ValueError, match="name is required"):
        await team_service.create_team(db_session, "  ", "U12")
    with pytest.raises(ValueError, match="age_group is required"):
        await team_service.create_team(db_session, "Falcons", "")
    with pytest.raises(ValueError, match="Invalid team type"):
        await team_service.create_team(db_session, "Falcons", "U12", team_type="reserve")

    team = await team_service.create_team(db_session, " Falcons ", "U12", team_type="main")
    assert team["name"] == "Falcons"
    assert team["team_type"] == "main"


@pytest.mark.asyncio
async def test_list_and_update(db_session, team):
    await team_service.create_team(db_session, "First Team", "U18", team_type="main")

    academy_teams = await team_service.list_teams(db_session, team_type="academy")
    assert [t["id"] for t in academy_teams] == [team["id"]]
    assert len(await team_service.list_teams(db_session, age_group="U18")) == 1

    updated = await team_service.update_team(db_session, team["id"], description="Development squad")
    assert updated["description"] == "Development squad"
    with pytest.raises(ValueError, match="Invalid team type"):
        await team_service.update_team(db_session, team["id"], team_type="reserve")
    with pytest.raises(ValueError, match="Team 999 not found"):
        await team_service.update_team(db_session, 999, name="x")


@pytest.mark.asyncio
async def test_delete_team_keeps_players(db_session, team, player):
    assert await team_service.delete_team(db_session, team["id"]) is True
    assert await team_service.get_team(db_session, team["id"]) is None

    orphan = await player_service.get_player(db_session, player["id"])
    assert orphan["team_id"] is None


@pytest.mark.asyncio
async def test_assign_and_remove_coach(db_session, team, coach_user):
    with pytest.raises(ValueError, match="Invalid coach role"):
        await team_service.assign_coach(db_session, team["id"], coach_user["id"], role="kit_man")
    with pytest.raises(ValueError, match="User 999 not found"):
        await team_service.assign_coach(db_session, team["id"], 999)

    assignment = await team_service.assign_coach(db_session, team["id"], coach_user["id"])
    assert assignment["role"] == "assistant_coach"
    assert assignment["coach_name"] == "Test Coach"

    promoted = await team_service.assign_coach(
        db_session, team["id"], coach_user["id"], role="head_coach", is_primary=True
    )
    assert promoted["id"] == assignment["id"]
    assert (await team_service.get_team(db_session, team["id"]))["head_coach_id"] == coach_user["id"]

    coach_teams = await team_service.list_coach_teams(db_session, coach_user["id"])
    assert coach_teams[0]["coach_role"] == "head_coach"

    assert await team_service.remove_coach(db_session, team["id"], coach_user["id"]) is True
    assert (await team_service.get_team(db_session, team["id"]))["head_coach_id"] is None
    with pytest.raises(ValueError, match="assignment not found"):
        await team_service.remove_coach(db_session, team["id"], coach_user["id"])


@pytest.mark.asyncio
async def test_roster_orders_by_jersey(db_session, team, player, coach_user):
    await player_service.update_player(db_session, player["id"], jersey_number=10)
    keeper = await player_service.create_player(
        db_session,
        first_name="Omar",
        last_name="Nasser",
        date_of_birth=date(2012, 1, 3),
        position="goalkeeper",
        team_id=team["id"],
        jersey_number=1,
    )
    await player_service.create_player(
        db_session,
        first_name="Adel",
        last_name="Zaki",
        date_of_birth=date(2012, 8, 21),
        position="defender",
        team_id=team["id"],
    )
    await team_service.assign_coach(db_session, team["id"], coach_user["id"])

    roster = await team_service.get_team_roster(db_session, team["id"])
    assert roster["player_count"] == 3
    assert [p["first_name"] for p in roster["players"]] == ["Omar", "Sami", "Adel"]
    assert roster["players"][0]["id"] == keeper["id"]
    assert len(roster["coaches"]) == 1

    with pytest.raises(ValueError, match="not found"):
        await team_service.get_team_roster(db_session, 999)


@pytest.mark.asyncio
async def test_merge_duplicate_teams(db_session, team, player, coach_user):
    duplicate = await team_service.create_team(db_session, "academy u14", "U14")
    await team_service.create_team(db_session, "Academy U14", "U15")

    moved = await player_service.create_player(
        db_session,
        first_name="Rami",
        last_name="Fares",
        date_of_birth=date(2012, 2, 2),
        position="forward",
        team_id=duplicate["id"],
    )
    await match_service.create_match(
        db_session, team_id=duplicate["id"], match_date=date(2026, 9, 5), match_type="friendly"
    )
    await team_service.assign_coach(db_session, team["id"], coach_user["id"])
    await team_service.assign_coach(db_session, duplicate["id"], coach_user["id"])

    groups = await team_service.find_duplicate_teams(db_session)
    assert groups == [{"name": "academy u14", "age_group": "U14", "team_ids": [team["id"], duplicate["id"]]}]

    result = await team_service.merge_duplicate_teams(db_session)
    assert result == {"groups": 1, "teams_removed": 1}

    assert await team_service.get_team(db_session, duplicate["id"]) is None
    assert (await player_service.get_player(db_session, moved["id"]))["team_id"] == team["id"]
    assert len(await match_service.list_matches(db_session, team_id=team["id"])) == 1
    assert len(await team_service.list_team_coaches(db_session, team["id"])) == 1
    assert await team_service.find_duplicate_teams(db_session) == []
