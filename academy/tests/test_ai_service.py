"""
Tests for AI-assisted analysis. The LLM call is always mocked; these tests
cover the prompt inputs, the numeric post-processing and persistence.
"""

from unittest.mock import AsyncMock

import pytest

from academy.services import ai_service, llm_service
from academy.services.llm_service import LLMError


class TestExpectedGoals:
    def test_on_the_goal_line(self):
        assert ai_service.calculate_xg(100, 50, "miss", "foot") == 1.0

    def test_distance_decay(self):
        assert ai_service.calculate_xg(90, 50, "miss", "foot") == 0.9

    def test_body_part_factor(self):
        assert ai_service.calculate_xg(90, 50, "miss", "head") == 0.63
        assert ai_service.calculate_xg(90, 50, "saved", "other") == 0.45

    def test_goal_floor(self):
        assert ai_service.calculate_xg(0, 50, "miss", "foot") == 0.0
        assert ai_service.calculate_xg(0, 50, "goal", "foot") == 0.3


class TestExpectedAssists:
    def test_incomplete_pass(self):
        assert ai_service.calculate_xa(100, 50, False) == 0.0

    def test_capped(self):
        assert ai_service.calculate_xa(100, 50, True) == 0.8

    def test_distance(self):
        assert ai_service.calculate_xa(60, 50, True) == 0.5
        assert ai_service.calculate_xa(0, 0, True) == 0.0


RAW_EVENTS = {
    "shots": [
        {"timestamp": 310, "x": 90, "y": 50, "outcome": "goal", "bodyPart": "foot", "assistType": "cross", "confidence": 0.9},
        {"timestamp": 1200, "x": 80, "y": 50, "outcome": "miss", "bodyPart": "head", "assistType": "corner", "confidence": 0.7},
    ],
    "passes": [
        {"timestamp": 300, "startX": 40, "startY": 50, "endX": 60, "endY": 50, "completed": True, "confidence": 0.8},
        {"timestamp": 600, "startX": 20, "startY": 30, "endX": 50, "endY": 10, "completed": False, "confidence": 0.6},
    ],
    "defensiveActions": [
        {"timestamp": 900, "x": 20, "y": 40, "actionType": "tackle", "success": True, "confidence": 0.8},
    ],
}


def test_process_detected_events():
    result = ai_service.process_detected_events(RAW_EVENTS)
    assert [s["xg"] for s in result["shots"]] == [0.9, 0.56]
    assert [p["xa"] for p in result["passes"]] == [0.5, 0.0]
    assert result["shots"][0]["body_part"] == "foot"
    assert result["defensive_actions"][0]["action_type"] == "tackle"
    assert result["summary"] == {
        "total_shots": 2,
        "total_goals": 1,
        "total_passes": 2,
        "pass_accuracy": 50.0,
        "total_defensive_actions": 1,
        "total_xg": 1.46,
        "total_xa": 0.5,
    }


def test_empty_video_result():
    result = ai_service.empty_video_result()
    assert result["shots"] == []
    assert result["summary"]["pass_accuracy"] == 0
    assert result["summary"]["total_xg"] == 0


def test_opponent_prompt_defaults():
    prompt = ai_service.build_opponent_prompt("Al Shabab U14")
    assert "**Opponent:** Al Shabab U14" in prompt
    assert "**Known Formation:** Unknown" in prompt
    assert "**Previous Results:** No data" in prompt


# ============================================================================
# Persisted analyses
# ============================================================================


OPPONENT_RAW = {
    "playingStyle": "Direct",
    "strengths": ["Aerial duels"],
    "weaknesses": ["Slow full backs"],
    "keyPlayers": ["#9"],
    "recommendedFormation": "4-3-3",
    "tacticalApproach": "Press high",
    "keyFocusAreas": ["Second balls"],
    "playerInstructions": {"GK": "Claim crosses", "Defense": "Hold line"},
    "setPieceStrategy": "Zonal marking",
    "predictedOutcome": "2-1 win",
    "confidence": 140,
}


@pytest.mark.asyncio
async def test_analyze_opponent(db_session, team, coach_user, monkeypatch):
    invoke = AsyncMock(return_value=OPPONENT_RAW)
    monkeypatch.setattr(llm_service, "invoke", invoke)

    with pytest.raises(ValueError, match="opponent_name is required"):
        await ai_service.analyze_opponent(db_session, " ")

    analysis = await ai_service.analyze_opponent(
        db_session, " Al Shabab U14 ", known_formation="4-4-2", team_id=team["id"], created_by=coach_user["id"]
    )
    assert analysis["opponent_name"] == "Al Shabab U14"
    assert analysis["confidence"] == 100
    assert analysis["player_instructions"] == {
        "GK": "Claim crosses",
        "Defense": "Hold line",
        "Midfield": "",
        "Attack": "",
    }
    kwargs = invoke.await_args.kwargs
    assert kwargs["function_name"] == "opponent_analysis"
    assert kwargs["response_schema"] is ai_service.OPPONENT_ANALYSIS_SCHEMA
    assert "**Known Formation:** 4-4-2" in invoke.await_args.args[0][1]["content"]

    stored = await ai_service.list_opponent_analyses(db_session, team_id=team["id"])
    assert len(stored) == 1
    assert stored[0]["recommended_formation"] == "4-3-3"


@pytest.mark.asyncio
async def test_detect_video_events(db_session, monkeypatch):
    monkeypatch.setattr(llm_service, "invoke", AsyncMock(return_value=RAW_EVENTS))
    result = await ai_service.detect_video_events(db_session, "https://cdn.test/match.mp4", team_name="FSA U14")
    assert result["summary"]["total_goals"] == 1

    stored = await ai_service.get_video_analysis(db_session, result["id"])
    assert stored["team_name"] == "FSA U14"
    assert len(stored["shots"]) == 2
    assert await ai_service.get_video_analysis(db_session, 999) is None


@pytest.mark.asyncio
async def test_detect_video_events_falls_back_to_empty(db_session, monkeypatch):
    monkeypatch.setattr(llm_service, "invoke", AsyncMock(side_effect=LLMError("down")))
    result = await ai_service.detect_video_events(db_session, "https://cdn.test/match.mp4")
    assert result["shots"] == []
    assert result["summary"]["total_shots"] == 0

    with pytest.raises(ValueError, match="video_url is required"):
        await ai_service.detect_video_events(db_session, "")


@pytest.mark.asyncio
async def test_generate_player_report(db_session, player, monkeypatch):
    invoke = AsyncMock(return_value="Composed on the ball.")
    monkeypatch.setattr(llm_service, "invoke", invoke)

    report = await ai_service.generate_player_report(db_session, player["id"])
    assert report["report"] == "Composed on the ball."
    assert report["based_on"] == {"assessment_date": None, "sessions": 0}
    prompt = invoke.await_args.args[0][1]["content"]
    assert "Player: Sami Haddad" in prompt
    assert "No skill assessment yet" in prompt

    with pytest.raises(ValueError, match="Player 999 not found"):
        await ai_service.generate_player_report(db_session, 999)


def test_process_rejects_non_object():
    with pytest.raises(ValueError, match="JSON object"):
        ai_service.process_detected_events([{"x": 90}])


def test_process_coerces_numeric_strings():
    result = ai_service.process_detected_events(
        {"shots": [{"x": "90", "y": "50", "outcome": "miss", "bodyPart": "foot"}]}
    )
    assert result["shots"][0]["xg"] == 0.9


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        [{"x": 90, "y": 50}],
        {"shots": [{"x": "near the box", "y": 50, "outcome": "goal"}]},
        {"passes": ["long ball"]},
    ],
)
async def test_detect_video_events_malformed_output(db_session, monkeypatch, raw):
    monkeypatch.setattr(llm_service, "invoke", AsyncMock(return_value=raw))
    result = await ai_service.detect_video_events(db_session, "https://cdn.test/match.mp4")
    assert result["shots"] == []
    assert result["summary"]["total_shots"] == 0
    assert (await ai_service.get_video_analysis(db_session, result["id"]))["shots"] == []
