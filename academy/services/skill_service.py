"""
Skill assessment service: coach-entered skill scores, derived overalls,
radar chart data and position recommendations.

Every stored value is clamped to 0-100.
"""

from datetime import date
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import PlayerSkillScore, Player
from academy.utils.constants import SCORE_MIN, SCORE_MAX
from academy.utils.number_utils import round_int
from academy.utils.datetime_utils import today_utc
import logging

logger = logging.getLogger(__name__)

TECHNICAL_FIELDS = ("ball_control", "first_touch", "dribbling", "passing", "shooting", "crossing", "heading")
FOOT_FIELDS = ("left_foot_score", "right_foot_score", "two_footed_score", "weak_foot_usage")
PHYSICAL_FIELDS = ("speed", "acceleration", "agility", "stamina", "strength", "jumping")
MENTAL_FIELDS = ("positioning", "vision", "composure", "decision_making", "work_rate")
DEFENSIVE_FIELDS = ("marking", "tackling", "interceptions")
OVERALL_FIELDS = (
    "technical_overall",
    "physical_overall",
    "mental_overall",
    "defensive_overall",
    "overall_rating",
    "potential_rating",
)
INPUT_FIELDS = TECHNICAL_FIELDS + FOOT_FIELDS + PHYSICAL_FIELDS + MENTAL_FIELDS + DEFENSIVE_FIELDS

DEFAULT_SKILL_VALUE = 50
DEFAULT_WEAK_FOOT_USAGE = 0
DEFAULT_POTENTIAL = 60

RADAR_AXES = ("technical", "physical", "mental", "defensive", "shooting", "passing")

# Weighted attribute requirements per position
POSITION_REQUIREMENTS: Dict[str, Dict[str, float]] = {
    "GK": {
        "reflexes": 0.25, "handling": 0.20, "positioning": 0.15, "composure": 0.15,
        "distribution": 0.10, "heading": 0.05, "power": 0.05, "decision_making": 0.05,
    },
    "CB": {
        "tackling": 0.20, "heading": 0.20, "positioning": 0.15, "power": 0.15,
        "composure": 0.10, "passing": 0.10, "speed": 0.05, "leadership": 0.05,
    },
    "LB": {
        "speed": 0.20, "stamina": 0.15, "tackling": 0.15, "positioning": 0.15,
        "passing": 0.10, "dribbling": 0.10, "agility": 0.10, "work_rate": 0.05,
    },
    "RB": {
        "speed": 0.20, "stamina": 0.15, "tackling": 0.15, "positioning": 0.15,
        "passing": 0.10, "dribbling": 0.10, "agility": 0.10, "work_rate": 0.05,
    },
    "CDM": {
        "tackling": 0.20, "positioning": 0.15, "passing": 0.15, "stamina": 0.10,
        "work_rate": 0.10, "composure": 0.10, "decision_making": 0.10, "power": 0.10,
    },
    "CM": {
        "passing": 0.20, "vision": 0.15, "stamina": 0.15, "positioning": 0.10,
        "dribbling": 0.10, "work_rate": 0.10, "decision_making": 0.10, "first_touch": 0.10,
    },
    "CAM": {
        "vision": 0.20, "passing": 0.20, "dribbling": 0.15, "shooting": 0.15,
        "first_touch": 0.10, "decision_making": 0.10, "agility": 0.05, "composure": 0.05,
    },
    "LW": {
        "speed": 0.20, "dribbling": 0.20, "agility": 0.15, "shooting": 0.15,
        "first_touch": 0.10, "passing": 0.10, "work_rate": 0.05, "stamina": 0.05,
    },
    "RW": {
        "speed": 0.20, "dribbling": 0.20, "agility": 0.15, "shooting": 0.15,
        "first_touch": 0.10, "passing": 0.10, "work_rate": 0.05, "stamina": 0.05,
    },
    "ST": {
        "shooting": 0.25, "positioning": 0.20, "first_touch": 0.15, "heading": 0.10,
        "power": 0.10, "composure": 0.10, "speed": 0.05, "agility": 0.05,
    },
}

TRANSITION_PATHS: Dict[str, List[str]] = {
    "CM": ["CAM", "CDM"],
    "CAM": ["CM", "LW", "RW"],
    "CDM": ["CM", "CB"],
    "LB": ["LW", "CB"],
    "RB": ["RW", "CB"],
    "CB": ["CDM", "LB", "RB"],
    "LW": ["CAM", "ST"],
    "RW": ["CAM", "ST"],
    "ST": ["CAM", "LW", "RW"],
}

KEY_WEIGHT = 0.15
STRENGTH_THRESHOLD = 75
IMPROVEMENT_THRESHOLD = 60


def clamp_score(value) -> int:
    return round_int(max(SCORE_MIN, min(SCORE_MAX, value)))


def _mean(values) -> int:
    values = list(values)
    return round_int(sum(values) / len(values)) if values else 0


def compute_two_footed_score(left: int, right: int) -> int:
    """``100 - |left - right|``, never above the stronger foot."""
    return min(100 - abs(left - right), max(left, right))


def normalize_skill_values(fields: Dict) -> Dict:
    """
    Fill defaults, clamp every value to 0-100 and derive the overalls.

    Missing skills default to 50, weak foot usage to 0 and potential to 60.
    The two-footed score is derived from the foot scores when not given.
    """
    values = {}
    for key in INPUT_FIELDS:
        raw = fields.get(key)
        if raw is None:
            if key == "two_footed_score":
                continue
            raw = DEFAULT_WEAK_FOOT_USAGE if key == "weak_foot_usage" else DEFAULT_SKILL_VALUE
        values[key] = clamp_score(raw)

    if "two_footed_score" not in values:
        values["two_footed_score"] = compute_two_footed_score(
            values["left_foot_score"], values["right_foot_score"]
        )

    values["technical_overall"] = _mean(values[k] for k in TECHNICAL_FIELDS)
    values["physical_overall"] = _mean(values[k] for k in PHYSICAL_FIELDS)
    values["mental_overall"] = _mean(values[k] for k in MENTAL_FIELDS)
    values["defensive_overall"] = _mean(values[k] for k in DEFENSIVE_FIELDS)
    values["overall_rating"] = _mean(
        values[k] for k in ("technical_overall", "physical_overall", "mental_overall", "defensive_overall")
    )
    potential = fields.get("potential_rating")
    values["potential_rating"] = clamp_score(DEFAULT_POTENTIAL if potential is None else potential)
    return values


def _score_to_dict(score: PlayerSkillScore) -> Dict:
    data = {
        "id": score.id,
        "player_id": score.player_id,
        "assessment_date": score.assessment_date.isoformat() if score.assessment_date else None,
        "assessed_by": score.assessed_by,
        "notes": score.notes,
    }
    for key in INPUT_FIELDS + OVERALL_FIELDS:
        data[key] = getattr(score, key)
    return data


async def create_skill_score(
    session: AsyncSession,
    player_id: int,
    assessment_date: Optional[date] = None,
    assessed_by: Optional[int] = None,
    notes: Optional[str] = None,
    **fields,
) -> Dict:
    """
    Record a skill assessment for a player.

    Raises:
        ValueError: If the player does not exist
    """
    result = await session.execute(select(Player.id).where(Player.id == player_id))
    if result.scalar_one_or_none() is None:
        raise ValueError(f"Player {player_id} not found")

    score = PlayerSkillScore(
        player_id=player_id,
        assessment_date=assessment_date or today_utc(),
        assessed_by=assessed_by,
        notes=notes,
        **normalize_skill_values(fields),
    )
    session.add(score)
    await session.flush()
    await session.refresh(score)
    return _score_to_dict(score)


async def _get_score_model(session: AsyncSession, score_id: int) -> PlayerSkillScore:
    result = await session.execute(select(PlayerSkillScore).where(PlayerSkillScore.id == score_id))
    score = result.scalar_one_or_none()
    if not score:
        raise ValueError(f"Skill score {score_id} not found")
    return score


async def get_skill_score(session: AsyncSession, score_id: int) -> Optional[Dict]:
    result = await session.execute(select(PlayerSkillScore).where(PlayerSkillScore.id == score_id))
    score = result.scalar_one_or_none()
    return _score_to_dict(score) if score else None


async def update_skill_score(session: AsyncSession, score_id: int, **fields) -> Dict:
    """
    Update an assessment. Provided values replace the stored ones and all
    derived values are recomputed with the same clamping as on create.
    """
    score = await _get_score_model(session, score_id)
    merged = {key: getattr(score, key) for key in INPUT_FIELDS}
    merged["potential_rating"] = score.potential_rating
    left_or_right_changed = any(fields.get(k) is not None for k in ("left_foot_score", "right_foot_score"))
    if left_or_right_changed and fields.get("two_footed_score") is None:
        merged.pop("two_footed_score")
    merged.update({k: v for k, v in fields.items() if v is not None})

    for key, value in normalize_skill_values(merged).items():
        setattr(score, key, value)
    for key in ("assessment_date", "notes"):
        if fields.get(key) is not None:
            setattr(score, key, fields[key])
    await session.flush()
    await session.refresh(score)
    return _score_to_dict(score)


async def delete_skill_score(session: AsyncSession, score_id: int) -> bool:
    score = await _get_score_model(session, score_id)
    await session.delete(score)
    await session.flush()
    return True


async def get_latest_skill_score(session: AsyncSession, player_id: int) -> Optional[Dict]:
    result = await session.execute(
        select(PlayerSkillScore)
        .where(PlayerSkillScore.player_id == player_id)
        .order_by(PlayerSkillScore.assessment_date.desc(), PlayerSkillScore.id.desc())
        .limit(1)
    )
    score = result.scalar_one_or_none()
    return _score_to_dict(score) if score else None


async def get_skill_history(session: AsyncSession, player_id: int) -> List[Dict]:
    """All assessments for a player, oldest first."""
    result = await session.execute(
        select(PlayerSkillScore)
        .where(PlayerSkillScore.player_id == player_id)
        .order_by(PlayerSkillScore.assessment_date, PlayerSkillScore.id)
    )
    return [_score_to_dict(s) for s in result.scalars().all()]


def radar_from_score(score: Dict) -> List[Dict]:
    values = {
        "technical": score["technical_overall"],
        "physical": score["physical_overall"],
        "mental": score["mental_overall"],
        "defensive": score["defensive_overall"],
        "shooting": score["shooting"],
        "passing": score["passing"],
    }
    return [{"axis": axis, "value": values[axis]} for axis in RADAR_AXES]


async def get_radar_data(session: AsyncSession, player_id: int) -> Dict:
    """
    Six-axis radar values from the latest assessment (empty axes when the
    player has not been assessed).
    """
    latest = await get_latest_skill_score(session, player_id)
    if not latest:
        return {"player_id": player_id, "assessment_date": None, "axes": []}
    return {
        "player_id": player_id,
        "assessment_date": latest["assessment_date"],
        "axes": radar_from_score(latest),
    }


# ============================================================================
# Position recommendation
# ============================================================================


def skills_from_score(score: Dict) -> Dict[str, int]:
    """
    Map a stored assessment to the attribute names used by the position model.

    Power comes from strength and leadership from composure and work rate.
    Goalkeeper-only attributes are not assessed and count as 0.
    """
    skills = {key: score.get(key) or 0 for key in INPUT_FIELDS}
    skills["power"] = score.get("strength") or 0
    skills["leadership"] = _mean([score.get("composure") or 0, score.get("work_rate") or 0])
    for key in ("reflexes", "handling", "distribution"):
        skills[key] = score.get(key) or 0
    return skills


def _position_score(skills: Dict, requirements: Dict[str, float]) -> float:
    total_weight = sum(requirements.values())
    total = sum((skills.get(attr) or 0) * weight for attr, weight in requirements.items())
    return total / total_weight if total_weight else 0


def position_strengths(skills: Dict, position: str) -> List[str]:
    return [
        attr for attr, weight in POSITION_REQUIREMENTS[position].items()
        if weight >= KEY_WEIGHT and (skills.get(attr) or 0) >= STRENGTH_THRESHOLD
    ]


def position_improvements(skills: Dict, position: str) -> List[str]:
    return [
        attr for attr, weight in POSITION_REQUIREMENTS[position].items()
        if weight >= KEY_WEIGHT and (skills.get(attr) or 0) < IMPROVEMENT_THRESHOLD
    ]


def recommend_positions(skills: Dict, top_n: Optional[int] = None) -> List[Dict]:
    """
    Score every position by its weighted requirements, best first.

    Confidence is high for a score of at least 75 with at most one key
    improvement, medium for at least 60 with at most two, otherwise low.
    """
    recommendations = []
    for position, requirements in POSITION_REQUIREMENTS.items():
        score = _position_score(skills, requirements)
        improvements = position_improvements(skills, position)
        if score >= 75 and len(improvements) <= 1:
            confidence = "high"
        elif score >= 60 and len(improvements) <= 2:
            confidence = "medium"
        else:
            confidence = "low"
        recommendations.append({
            "position": position,
            "suitability_score": round_int(score),
            "confidence": confidence,
            "strengths": position_strengths(skills, position),
            "improvements": improvements,
        })
    recommendations.sort(key=lambda r: r["suitability_score"], reverse=True)
    return recommendations[:top_n] if top_n else recommendations


def position_transitions(current_position: str, skills: Dict) -> List[Dict]:
    """
    Neighbouring positions reachable with one to three key improvements.
    """
    transitions = []
    for target in TRANSITION_PATHS.get(current_position, []):
        improvements = position_improvements(skills, target)
        if 0 < len(improvements) <= 3:
            transitions.append({"target_position": target, "required_improvements": improvements})
    return transitions


async def get_position_recommendations(session: AsyncSession, player_id: int, top_n: int = 3) -> Dict:
    """
    Raises:
        ValueError: If the player has no skill assessment
    """
    latest = await get_latest_skill_score(session, player_id)
    if not latest:
        raise ValueError(f"No skill assessment found for player {player_id}")
    skills = skills_from_score(latest)
    recommendations = recommend_positions(skills, top_n)
    current = recommendations[0]["position"] if recommendations else None
    return {
        "player_id": player_id,
        "recommendations": recommendations,
        "transitions": position_transitions(current, skills) if current else [],
    }
