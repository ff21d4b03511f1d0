"""
Match service layer: fixtures, results and team records.
"""

from datetime import date
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import Match, Team, Player, ParentPlayerRelation, MatchType, MatchResult
import logging

logger = logging.getLogger(__name__)

VALID_MATCH_TYPES = {t.value for t in MatchType}

MATCH_FIELDS = (
    "team_id",
    "match_date",
    "match_type",
    "opponent",
    "venue",
    "is_home",
    "team_score",
    "opponent_score",
    "half_time_score",
    "notes",
    "video_url",
)


def derive_result(team_score: int, opponent_score: int) -> str:
    """win, draw or loss from the team's point of view."""
    if team_score > opponent_score:
        return MatchResult.WIN.value
    if team_score < opponent_score:
        return MatchResult.LOSS.value
    return MatchResult.DRAW.value


def _match_to_dict(match: Match) -> Dict:
    return {
        "id": match.id,
        "team_id": match.team_id,
        "match_date": match.match_date.isoformat() if match.match_date else None,
        "match_type": match.match_type,
        "opponent": match.opponent,
        "venue": match.venue,
        "is_home": match.is_home,
        "team_score": match.team_score,
        "opponent_score": match.opponent_score,
        "score": f"{match.team_score}-{match.opponent_score}",
        "result": match.result,
        "half_time_score": match.half_time_score,
        "notes": match.notes,
        "video_url": match.video_url,
        "created_by": match.created_by,
    }


def _validate(fields: Dict):
    if fields.get("match_type") is not None and fields["match_type"] not in VALID_MATCH_TYPES:
        raise ValueError(f"Invalid match type: {fields['match_type']}")
    for key in ("team_score", "opponent_score"):
        if fields.get(key) is not None and fields[key] < 0:
            raise ValueError(f"{key} cannot be negative")


async def _get_match_model(session: AsyncSession, match_id: int) -> Match:
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if not match:
        raise ValueError(f"Match {match_id} not found")
    return match


async def create_match(session: AsyncSession, created_by: Optional[int] = None, **fields) -> Dict:
    """
    Record a match. The result is derived from the scores.

    Raises:
        ValueError: If match_date or match_type is missing, a value is invalid,
            or the team does not exist
    """
    if not fields.get("match_date"):
        raise ValueError("match_date is required")
    if not fields.get("match_type"):
        raise ValueError("match_type is required")
    _validate(fields)
    if fields.get("team_id") is not None:
        team = await session.execute(select(Team.id).where(Team.id == fields["team_id"]))
        if team.scalar_one_or_none() is None:
            raise ValueError(f"Team {fields['team_id']} not found")

    values = {k: fields[k] for k in MATCH_FIELDS if fields.get(k) is not None}
    values.setdefault("team_score", 0)
    values.setdefault("opponent_score", 0)
    match = Match(**values, created_by=created_by)
    match.result = derive_result(match.team_score, match.opponent_score)
    session.add(match)
    await session.flush()
    await session.refresh(match)
    return _match_to_dict(match)


async def get_match(session: AsyncSession, match_id: int) -> Optional[Dict]:
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    return _match_to_dict(match) if match else None


async def list_matches(
    session: AsyncSession,
    team_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
) -> List[Dict]:
    """Matches newest first, optionally filtered by team and date range (inclusive)."""
    query = select(Match)
    if team_id is not None:
        query = query.where(Match.team_id == team_id)
    if date_from:
        query = query.where(Match.match_date >= date_from)
    if date_to:
        query = query.where(Match.match_date <= date_to)
    query = query.order_by(Match.match_date.desc(), Match.id.desc())
    if limit:
        query = query.limit(limit)
    result = await session.execute(query)
    return [_match_to_dict(m) for m in result.scalars().all()]


async def update_match(session: AsyncSession, match_id: int, **fields) -> Dict:
    match = await _get_match_model(session, match_id)
    updates = {k: v for k, v in fields.items() if k in MATCH_FIELDS and v is not None}
    _validate(updates)
    for key, value in updates.items():
        setattr(match, key, value)
    match.result = derive_result(match.team_score, match.opponent_score)
    await session.flush()
    await session.refresh(match)
    return _match_to_dict(match)


async def delete_match(session: AsyncSession, match_id: int) -> bool:
    match = await _get_match_model(session, match_id)
    await session.delete(match)
    await session.flush()
    return True


async def get_team_record(session: AsyncSession, team_id: int) -> Dict:
    """
    Win/draw/loss record and goal totals across all of a team's matches.
    """
    result = await session.execute(select(Match).where(Match.team_id == team_id))
    matches = result.scalars().all()
    record = {
        "team_id": team_id,
        "played": len(matches),
        "wins": 0,
        "draws": 0,
        "losses": 0,
        "goals_for": 0,
        "goals_against": 0,
    }
    for match in matches:
        outcome = derive_result(match.team_score, match.opponent_score)
        record[{"win": "wins", "draw": "draws", "loss": "losses"}[outcome]] += 1
        record["goals_for"] += match.team_score
        record["goals_against"] += match.opponent_score
    record["goal_difference"] = record["goals_for"] - record["goals_against"]
    return record


async def send_match_report(
    session: AsyncSession, match_id: int, summary: str, report_url: Optional[str] = None
) -> Dict:
    """
    Send the post-match report to the parents of every player in the match's team.

    Each parent is reached through their enabled channels; WhatsApp gets the
    formatted report card.

    Raises:
        ValueError: If the match does not exist or has no team
    """
    from academy.services import notification_service, whatsapp_service

    match = await _get_match_model(session, match_id)
    if match.team_id is None:
        raise ValueError("Match has no team to report to")

    result = await session.execute(
        select(ParentPlayerRelation.parent_user_id)
        .join(Player, Player.id == ParentPlayerRelation.player_id)
        .where(Player.team_id == match.team_id)
        .distinct()
    )
    parent_ids = list(result.scalars().all())

    opponent = match.opponent or "opponent"
    score = f"{match.team_score}-{match.opponent_score}"
    whatsapp_text = whatsapp_service.post_match_report_message(opponent, score, summary, report_url)
    delivered = 0
    for parent_id in parent_ids:
        outcome = await notification_service.notify_user(
            session,
            parent_id,
            f"Match Report: vs {opponent}",
            f"Final score {score}. {summary}",
            category="performance",
            data={"match_id": match.id},
            link_url=report_url,
            whatsapp_text=whatsapp_text,
        )
        delivered += int(any(outcome["delivered"].values()))
    logger.info(f"Match {match_id} report sent to {delivered}/{len(parent_ids)} parents")
    return {"match_id": match.id, "recipients": len(parent_ids), "delivered": delivered}
