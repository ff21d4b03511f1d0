"""
Player service layer: academy player profiles and parent visibility.
"""

from datetime import date
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from academy.database.models import (
    Player,
    Team,
    ParentPlayerRelation,
    PlayerPosition,
    PreferredFoot,
    PlayerStatus,
    UserRole,
    STAFF_ROLES,
)
from academy.utils.datetime_utils import today_utc
import logging

logger = logging.getLogger(__name__)

VALID_POSITIONS = {p.value for p in PlayerPosition}
VALID_FEET = {f.value for f in PreferredFoot}
VALID_STATUSES = {s.value for s in PlayerStatus}

PLAYER_FIELDS = (
    "user_id",
    "first_name",
    "last_name",
    "date_of_birth",
    "position",
    "preferred_foot",
    "height",
    "weight",
    "jersey_number",
    "age_group",
    "team_id",
    "status",
    "join_date",
    "photo_url",
)


def compute_age_group(date_of_birth: date, reference_date: Optional[date] = None) -> str:
    """
    Age group label ``U{age+1}`` where age is whole years at ``reference_date``.

    A player who is 11 on the reference date plays in U12.
    """
    reference_date = reference_date or today_utc()
    age = reference_date.year - date_of_birth.year
    if (reference_date.month, reference_date.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return f"U{age + 1}"


def _player_to_dict(player: Player) -> Dict:
    return {
        "id": player.id,
        "user_id": player.user_id,
        "first_name": player.first_name,
        "last_name": player.last_name,
        "full_name": f"{player.first_name} {player.last_name}",
        "date_of_birth": player.date_of_birth.isoformat() if player.date_of_birth else None,
        "position": player.position,
        "preferred_foot": player.preferred_foot,
        "height": player.height,
        "weight": player.weight,
        "jersey_number": player.jersey_number,
        "age_group": player.age_group,
        "team_id": player.team_id,
        "status": player.status,
        "join_date": player.join_date.isoformat() if player.join_date else None,
        "photo_url": player.photo_url,
        "created_at": player.created_at.isoformat() if player.created_at else None,
    }


def _validate_player_fields(fields: Dict):
    if fields.get("position") is not None and fields["position"] not in VALID_POSITIONS:
        raise ValueError(f"Invalid position: {fields['position']}")
    if fields.get("preferred_foot") is not None and fields["preferred_foot"] not in VALID_FEET:
        raise ValueError(f"Invalid preferred foot: {fields['preferred_foot']}")
    if fields.get("status") is not None and fields["status"] not in VALID_STATUSES:
        raise ValueError(f"Invalid status: {fields['status']}")
    jersey = fields.get("jersey_number")
    if jersey is not None and not (1 <= jersey <= 99):
        raise ValueError("jersey_number must be between 1 and 99")
    for measure in ("height", "weight"):
        if fields.get(measure) is not None and fields[measure] <= 0:
            raise ValueError(f"{measure} must be positive")


async def _ensure_team_exists(session: AsyncSession, team_id: Optional[int]):
    if team_id is None:
        return
    result = await session.execute(select(Team.id).where(Team.id == team_id))
    if result.scalar_one_or_none() is None:
        raise ValueError(f"Team {team_id} not found")


async def _get_player_model(session: AsyncSession, player_id: int) -> Player:
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if not player:
        raise ValueError(f"Player {player_id} not found")
    return player


async def create_player(session: AsyncSession, **fields) -> Dict:
    """
    Create a player profile.

    ``age_group`` is derived from the date of birth when not given.

    Raises:
        ValueError: On missing names/date of birth/position, invalid enum values,
            an out-of-range jersey number, or an unknown team
    """
    for required in ("first_name", "last_name", "date_of_birth", "position"):
        if not fields.get(required):
            raise ValueError(f"{required} is required")
    _validate_player_fields(fields)
    await _ensure_team_exists(session, fields.get("team_id"))

    values = {k: fields[k] for k in PLAYER_FIELDS if fields.get(k) is not None}
    values.setdefault("age_group", compute_age_group(fields["date_of_birth"]))
    values.setdefault("preferred_foot", PreferredFoot.RIGHT.value)
    values.setdefault("status", PlayerStatus.ACTIVE.value)
    values.setdefault("join_date", today_utc())

    player = Player(**values)
    session.add(player)
    await session.flush()
    await session.refresh(player)
    logger.info(f"Created player {player.id} ({player.first_name} {player.last_name})")
    return _player_to_dict(player)


async def get_player(session: AsyncSession, player_id: int) -> Optional[Dict]:
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    return _player_to_dict(player) if player else None


async def get_player_by_user_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    result = await session.execute(select(Player).where(Player.user_id == user_id).limit(1))
    player = result.scalar_one_or_none()
    return _player_to_dict(player) if player else None


async def list_players(
    session: AsyncSession,
    team_id: Optional[int] = None,
    position: Optional[str] = None,
    status: Optional[str] = None,
    age_group: Optional[str] = None,
    q: Optional[str] = None,
    player_ids: Optional[List[int]] = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict:
    """
    List players with optional filters.

    Args:
        q: Case-insensitive substring match on first or last name
        player_ids: Restrict to these ids (used for parent visibility)

    Returns:
        Dict with ``items`` (page of players ordered by last/first name) and ``total``
    """
    query = select(Player)
    if team_id is not None:
        query = query.where(Player.team_id == team_id)
    if position:
        query = query.where(Player.position == position)
    if status:
        query = query.where(Player.status == status)
    if age_group:
        query = query.where(Player.age_group == age_group)
    if q:
        pattern = f"%{q.strip().lower()}%"
        query = query.where(
            or_(func.lower(Player.first_name).like(pattern), func.lower(Player.last_name).like(pattern))
        )
    if player_ids is not None:
        query = query.where(Player.id.in_(player_ids))

    total = (await session.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await session.execute(
        query.order_by(Player.last_name, Player.first_name, Player.id).limit(limit).offset(offset)
    )
    return {"items": [_player_to_dict(p) for p in result.scalars().all()], "total": total}


async def update_player(session: AsyncSession, player_id: int, **fields) -> Dict:
    """
    Update player fields. Keys with None values are left unchanged.

    Raises:
        ValueError: If the player does not exist or a value is invalid
    """
    player = await _get_player_model(session, player_id)
    updates = {k: v for k, v in fields.items() if k in PLAYER_FIELDS and v is not None}
    _validate_player_fields(updates)
    if "team_id" in updates:
        await _ensure_team_exists(session, updates["team_id"])
    for key, value in updates.items():
        setattr(player, key, value)
    if "date_of_birth" in updates and "age_group" not in updates:
        player.age_group = compute_age_group(updates["date_of_birth"])
    await session.flush()
    await session.refresh(player)
    return _player_to_dict(player)


async def delete_player(session: AsyncSession, player_id: int) -> bool:
    """
    Delete a player together with metrics, skill scores and parent links.

    Raises:
        ValueError: If the player does not exist
    """
    player = await _get_player_model(session, player_id)
    await session.delete(player)
    await session.flush()
    logger.info(f"Deleted player {player_id}")
    return True


async def get_parent_player_ids(session: AsyncSession, parent_user_id: int) -> List[int]:
    result = await session.execute(
        select(ParentPlayerRelation.player_id).where(
            ParentPlayerRelation.parent_user_id == parent_user_id
        )
    )
    return list(result.scalars().all())


async def can_view_player(session: AsyncSession, user: Dict, player_id: int) -> bool:
    """
    Staff see every player; parents only their linked children; players only
    their own profile.
    """
    if user.get("role") in STAFF_ROLES:
        return True
    if user.get("role") == UserRole.PARENT.value:
        return player_id in await get_parent_player_ids(session, user["id"])
    own = await get_player_by_user_id(session, user["id"])
    return bool(own and own["id"] == player_id)
