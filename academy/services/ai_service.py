"""
AI-assisted analysis: opponent scouting, video event detection and player
reports. Prompts go through llm_service; numeric post-processing (xG, xA,
summaries) happens here so results do not depend on the model's arithmetic.
"""

import json
import math
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import OpponentAnalysis, VideoAnalysis, Player
from academy.services import llm_service, performance_service, skill_service
from academy.services.llm_service import LLMError
import logging

logger = logging.getLogger(__name__)

GOAL_X = 100
GOAL_Y = 50

OPPONENT_ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "playingStyle": {"type": "string"},
        "strengths": {"type": "array", "items": {"type": "string"}},
        "weaknesses": {"type": "array", "items": {"type": "string"}},
        "keyPlayers": {"type": "array", "items": {"type": "string"}},
        "recommendedFormation": {"type": "string"},
        "tacticalApproach": {"type": "string"},
        "keyFocusAreas": {"type": "array", "items": {"type": "string"}},
        "playerInstructions": {
            "type": "object",
            "properties": {
                "GK": {"type": "string"},
                "Defense": {"type": "string"},
                "Midfield": {"type": "string"},
                "Attack": {"type": "string"},
            },
            "required": ["GK", "Defense", "Midfield", "Attack"],
            "additionalProperties": False,
        },
        "setPieceStrategy": {"type": "string"},
        "predictedOutcome": {"type": "string"},
        "confidence": {"type": "integer"},
    },
    "required": [
        "playingStyle",
        "strengths",
        "weaknesses",
        "keyPlayers",
        "recommendedFormation",
        "tacticalApproach",
        "keyFocusAreas",
        "playerInstructions",
        "setPieceStrategy",
        "predictedOutcome",
        "confidence",
    ],
    "additionalProperties": False,
}

VIDEO_EVENTS_SCHEMA = {
    "type": "object",
    "properties": {
        "shots": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "timestamp": {"type": "number"},
                    "x": {"type": "number"},
                    "y": {"type": "number"},
                    "outcome": {"type": "string", "enum": ["goal", "miss", "saved"]},
                    "bodyPart": {"type": "string", "enum": ["foot", "head", "other"]},
                    "assistType": {
                        "type": "string",
                        "enum": ["open_play", "corner", "free_kick", "through_ball", "cross"],
                    },
                    "confidence": {"type": "number"},
                },
                "required": ["timestamp", "x", "y", "outcome", "bodyPart", "assistType", "confidence"],
                "additionalProperties": False,
            },
        },
        "passes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "timestamp": {"type": "number"},
                    "startX": {"type": "number"},
                    "startY": {"type": "number"},
                    "endX": {"type": "number"},
                    "endY": {"type": "number"},
                    "completed": {"type": "boolean"},
                    "confidence": {"type": "number"},
                },
                "required": ["timestamp", "startX", "startY", "endX", "endY", "completed", "confidence"],
                "additionalProperties": False,
            },
        },
        "defensiveActions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "timestamp": {"type": "number"},
                    "x": {"type": "number"},
                    "y": {"type": "number"},
                    "actionType": {"type": "string", "enum": ["tackle", "interception", "block", "clearance"]},
                    "success": {"type": "boolean"},
                    "confidence": {"type": "number"},
                },
                "required": ["timestamp", "x", "y", "actionType", "success", "confidence"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["shots", "passes", "defensiveActions"],
    "additionalProperties": False,
}


# ============================================================================
# Opponent analysis
# ============================================================================


def build_opponent_prompt(
    opponent_name: str,
    known_formation: Optional[str] = None,
    previous_results: Optional[List[str]] = None,
    known_players: Optional[List[str]] = None,
    additional_notes: Optional[str] = None,
) -> str:
    return (
        "You are an expert football tactical analyst. Analyze the following opponent team "
        "and provide detailed tactical insights.\n\n"
        f"**Opponent:** {opponent_name}\n"
        f"**Known Formation:** {known_formation or 'Unknown'}\n"
        f"**Previous Results:** {', '.join(previous_results or []) or 'No data'}\n"
        f"**Known Players:** {', '.join(known_players or []) or 'No data'}\n"
        f"**Additional Notes:** {additional_notes or 'None'}\n\n"
        "Provide playing style, strengths, weaknesses, key players, the best formation to "
        "counter them, a tactical approach, key focus areas, instructions for GK, Defense, "
        "Midfield and Attack, set piece strategy, a predicted outcome and your confidence "
        "(0-100).\n\n"
        "Provide actionable, specific tactical advice that a youth football coach can implement."
    )


def _normalize_opponent_analysis(raw: Dict) -> Dict:
    instructions = raw.get("playerInstructions") or {}
    try:
        confidence = int(round(float(raw.get("confidence", 0))))
    except (TypeError, ValueError):
        confidence = 0
    return {
        "playing_style": raw.get("playingStyle", ""),
        "strengths": list(raw.get("strengths") or []),
        "weaknesses": list(raw.get("weaknesses") or []),
        "key_players": list(raw.get("keyPlayers") or []),
        "recommended_formation": raw.get("recommendedFormation", ""),
        "tactical_approach": raw.get("tacticalApproach", ""),
        "key_focus_areas": list(raw.get("keyFocusAreas") or []),
        "player_instructions": {
            key: instructions.get(key, "") for key in ("GK", "Defense", "Midfield", "Attack")
        },
        "set_piece_strategy": raw.get("setPieceStrategy", ""),
        "predicted_outcome": raw.get("predictedOutcome", ""),
        "confidence": max(0, min(100, confidence)),
    }


async def analyze_opponent(
    session: AsyncSession,
    opponent_name: str,
    known_formation: Optional[str] = None,
    previous_results: Optional[List[str]] = None,
    known_players: Optional[List[str]] = None,
    additional_notes: Optional[str] = None,
    team_id: Optional[int] = None,
    created_by: Optional[int] = None,
) -> Dict:
    """
    Structured scouting analysis of an opponent, stored for later review.

    Raises:
        ValueError: If the opponent name is missing
        LLMError: If the model call fails
    """
    if not opponent_name or not opponent_name.strip():
        raise ValueError("opponent_name is required")
    prompt = build_opponent_prompt(
        opponent_name.strip(), known_formation, previous_results, known_players, additional_notes
    )
    raw = await llm_service.invoke(
        [
            {
                "role": "system",
                "content": "You are an expert football tactical analyst specializing in youth football. "
                "Provide detailed, actionable tactical analysis.",
            },
            {"role": "user", "content": prompt},
        ],
        response_schema=OPPONENT_ANALYSIS_SCHEMA,
        schema_name="opponent_analysis",
        session=session,
        function_name="opponent_analysis",
        user_id=created_by,
    )
    analysis = _normalize_opponent_analysis(raw)
    record = OpponentAnalysis(
        opponent_name=opponent_name.strip(), team_id=team_id, analysis=analysis, created_by=created_by
    )
    session.add(record)
    await session.flush()
    return {"id": record.id, "opponent_name": record.opponent_name, **analysis}


async def list_opponent_analyses(session: AsyncSession, team_id: Optional[int] = None) -> List[Dict]:
    query = select(OpponentAnalysis)
    if team_id is not None:
        query = query.where(OpponentAnalysis.team_id == team_id)
    result = await session.execute(query.order_by(OpponentAnalysis.id.desc()))
    return [
        {
            "id": a.id,
            "opponent_name": a.opponent_name,
            "team_id": a.team_id,
            "created_at": a.created_at.isoformat() if a.created_at else None,
            **(a.analysis or {}),
        }
        for a in result.scalars().all()
    ]


# ============================================================================
# Video event detection
# ============================================================================


def calculate_xg(x: float, y: float, outcome: str, body_part: str) -> float:
    """Expected goals from shot location; d is the distance to goal (100, 50)."""
    distance = math.hypot(GOAL_X - x, GOAL_Y - y)
    xg = max(0.0, 1 - distance / 100)
    if body_part == "head":
        xg *= 0.7
    elif body_part == "other":
        xg *= 0.5
    if outcome == "goal":
        xg = max(xg, 0.3)
    return round(min(1.0, max(0.0, xg)), 3)


def calculate_xa(end_x: float, end_y: float, completed: bool) -> float:
    """Expected assists from where a pass ends; capped at 0.8."""
    if not completed:
        return 0.0
    distance = math.hypot(GOAL_X - end_x, GOAL_Y - end_y)
    return round(min(0.8, max(0.0, 1 - distance / 80)), 3)


def empty_video_result() -> Dict:
    return {
        "shots": [],
        "passes": [],
        "defensive_actions": [],
        "summary": summarize_events([], [], []),
    }


def summarize_events(shots: List[Dict], passes: List[Dict], defensive_actions: List[Dict]) -> Dict:
    completed = sum(1 for p in passes if p.get("completed"))
    return {
        "total_shots": len(shots),
        "total_goals": sum(1 for s in shots if s.get("outcome") == "goal"),
        "total_passes": len(passes),
        "pass_accuracy": round(completed / len(passes) * 100, 1) if passes else 0,
        "total_defensive_actions": len(defensive_actions),
        "total_xg": round(sum(s.get("xg", 0) for s in shots), 2),
        "total_xa": round(sum(p.get("xa", 0) for p in passes), 2),
    }


def process_detected_events(raw: Dict) -> Dict:
    """Attach xG/xA to raw model output and build the summary."""
    if not isinstance(raw, dict):
        raise ValueError("Detected events must be a JSON object")
    shots = []
    for shot in raw.get("shots") or []:
        x, y = float(shot.get("x") or 0), float(shot.get("y") or 0)
        shots.append({
            "timestamp": shot.get("timestamp", 0),
            "x": x,
            "y": y,
            "outcome": shot.get("outcome"),
            "body_part": shot.get("bodyPart"),
            "assist_type": shot.get("assistType"),
            "confidence": shot.get("confidence", 0),
            "xg": calculate_xg(x, y, shot.get("outcome"), shot.get("bodyPart")),
        })
    passes = []
    for item in raw.get("passes") or []:
        end_x, end_y = float(item.get("endX") or 0), float(item.get("endY") or 0)
        passes.append({
            "timestamp": item.get("timestamp", 0),
            "start_x": item.get("startX", 0),
            "start_y": item.get("startY", 0),
            "end_x": end_x,
            "end_y": end_y,
            "completed": bool(item.get("completed")),
            "confidence": item.get("confidence", 0),
            "xa": calculate_xa(end_x, end_y, bool(item.get("completed"))),
        })
    defensive = [
        {
            "timestamp": d.get("timestamp", 0),
            "x": d.get("x", 0),
            "y": d.get("y", 0),
            "action_type": d.get("actionType"),
            "success": bool(d.get("success")),
            "confidence": d.get("confidence", 0),
        }
        for d in raw.get("defensiveActions") or []
    ]
    return {
        "shots": shots,
        "passes": passes,
        "defensive_actions": defensive,
        "summary": summarize_events(shots, passes, defensive),
    }


async def detect_video_events(
    session: AsyncSession,
    video_url: str,
    team_name: str = "Home Team",
    match_id: Optional[int] = None,
    created_by: Optional[int] = None,
) -> Dict:
    """
    Detect shots, passes and defensive actions in a match video.

    A failed model call yields an empty result rather than an error. The
    result is stored in video_analyses either way.
    """
    if not video_url:
        raise ValueError("video_url is required")
    messages = [
        {
            "role": "system",
            "content": (
                "You are an expert football match analyst. Analyze the video and detect all match "
                "events including shots, passes, and defensive actions.\n\n"
                "For each event, provide:\n"
                "- Timestamp (in seconds)\n"
                "- Location on pitch (x, y coordinates as percentages, where 0,0 is top-left, "
                "100,100 is bottom-right)\n"
                "- Event details (outcome, body part, completion status, etc.)\n"
                "- Confidence score (0-1)\n\n"
                f"Focus on {team_name}'s actions."
            ),
        },
        {
            "role": "user",
            "content": [
                {
                    "type": "text",
                    "text": "Analyze this football match video and detect all shots, passes, and "
                    "defensive actions. Return the data in JSON format.",
                },
                {"type": "file_url", "file_url": {"url": video_url, "mime_type": "video/mp4"}},
            ],
        },
    ]
    try:
        raw = await llm_service.invoke(
            messages,
            response_schema=VIDEO_EVENTS_SCHEMA,
            schema_name="match_events",
            session=session,
            function_name="video_analysis",
            user_id=created_by,
        )
        result = process_detected_events(raw)
    except LLMError as e:
        logger.error(f"Video event detection failed for {video_url}: {e}")
        result = empty_video_result()
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Unusable video events for {video_url}: {e}")
        result = empty_video_result()

    record = VideoAnalysis(
        match_id=match_id,
        video_url=video_url,
        team_name=team_name,
        events={k: result[k] for k in ("shots", "passes", "defensive_actions")},
        summary=result["summary"],
        created_by=created_by,
    )
    session.add(record)
    await session.flush()
    return {"id": record.id, "video_url": video_url, "team_name": team_name, **result}


async def get_video_analysis(session: AsyncSession, analysis_id: int) -> Optional[Dict]:
    result = await session.execute(select(VideoAnalysis).where(VideoAnalysis.id == analysis_id))
    record = result.scalar_one_or_none()
    if not record:
        return None
    return {
        "id": record.id,
        "match_id": record.match_id,
        "video_url": record.video_url,
        "team_name": record.team_name,
        **(record.events or {}),
        "summary": record.summary,
    }


# ============================================================================
# Player report
# ============================================================================


def build_player_report_prompt(player: Dict, skills: Optional[Dict], summary: Dict) -> str:
    skill_lines = "No skill assessment yet"
    if skills:
        skill_lines = json.dumps(
            {k: skills[k] for k in skill_service.OVERALL_FIELDS if k in skills}, indent=2
        )
    stats = {
        key: summary.get(key)
        for key in ("sessions", "avg_technical_score", "avg_physical_score", "avg_tactical_score",
                    "avg_overall_score", "avg_pass_accuracy", "best_top_speed", "trend")
    }
    return (
        "You are an expert football coach analyzing player performance.\n\n"
        f"Player: {player['full_name']}\n"
        f"Position: {player['position']}\n"
        f"Age group: {player.get('age_group') or 'Unknown'}\n\n"
        f"Skill assessment overalls:\n{skill_lines}\n\n"
        f"Last 30 days of sessions:\n{json.dumps(stats, indent=2)}\n\n"
        "Write a concise coach report with: overall assessment, key strengths, areas for "
        "improvement, development recommendations, and immediate next steps. Be specific, "
        "data-driven and constructive."
    )


async def generate_player_report(
    session: AsyncSession, player_id: int, user_id: Optional[int] = None
) -> Dict:
    """
    Textual coach report from the latest skill assessment and the 30-day
    performance summary.

    Raises:
        ValueError: If the player does not exist
        LLMError: If the model call fails
    """
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if not player:
        raise ValueError(f"Player {player_id} not found")
    player_dict = {
        "full_name": f"{player.first_name} {player.last_name}",
        "position": player.position,
        "age_group": player.age_group,
    }
    skills = await skill_service.get_latest_skill_score(session, player_id)
    summary = await performance_service.get_player_summary(session, player_id, 30)
    report = await llm_service.invoke(
        [
            {"role": "system", "content": "You are an expert football coach and performance analyst."},
            {"role": "user", "content": build_player_report_prompt(player_dict, skills, summary)},
        ],
        session=session,
        function_name="player_report",
        user_id=user_id,
    )
    return {
        "player_id": player_id,
        "name": player_dict["full_name"],
        "report": report,
        "based_on": {
            "assessment_date": skills["assessment_date"] if skills else None,
            "sessions": summary["sessions"],
        },
    }
