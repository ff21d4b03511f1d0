"""
Team service layer: teams, coach assignments, rosters and duplicate cleanup.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from academy.database.models import Team, TeamCoach, Player, Match, User, TeamType, CoachRole
from academy.services.player_service import _player_to_dict
import logging

logger = logging.getLogger(__name__)

VALID_TEAM_TYPES = {t.value for t in TeamType}
VALID_COACH_ROLES = {r.value for r in CoachRole}


def _team_to_dict(team: Team) -> Dict:
    return {
        "id": team.id,
        "name": team.name,
        "age_group": team.age_group,
        "team_type": team.team_type,
        "head_coach_id": team.head_coach_id,
        "description": team.description,
        "created_at": team.created_at.isoformat() if team.created_at else None,
    }


async def _get_team_model(session: AsyncSession, team_id: int) -> Team:
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        raise ValueError(f"Team {team_id} not found")
    return team


async def create_team(
    session: AsyncSession,
    name: str,
    age_group: str,
    team_type: str = TeamType.ACADEMY.value,
    head_coach_id: Optional[int] = None,
    description: Optional[str] = None,
) -> Dict:
    """
    Create a team.

    Raises:
        ValueError: If name or age group is missing or the team type is unknown
    """
    if not name or not name.strip():
        raise ValueError("name is required")
    if not age_group:
        raise ValueError("age_group is required")
    if team_type not in VALID_TEAM_TYPES:
        raise ValueError(f"Invalid team type: {team_type}")

    team = Team(
        name=name.strip(),
        age_group=age_group,
        team_type=team_type,
        head_coach_id=head_coach_id,
        description=description,
    )
    session.add(team)
    await session.flush()
    await session.refresh(team)
    return _team_to_dict(team)


async def get_team(session: AsyncSession, team_id: int) -> Optional[Dict]:
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    return _team_to_dict(team) if team else None


async def list_teams(
    session: AsyncSession, team_type: Optional[str] = None, age_group: Optional[str] = None
) -> List[Dict]:
    query = select(Team)
    if team_type:
        query = query.where(Team.team_type == team_type)
    if age_group:
        query = query.where(Team.age_group == age_group)
    result = await session.execute(query.order_by(Team.age_group, Team.name, Team.id))
    return [_team_to_dict(t) for t in result.scalars().all()]


async def update_team(session: AsyncSession, team_id: int, **fields) -> Dict:
    team = await _get_team_model(session, team_id)
    if fields.get("team_type") is not None and fields["team_type"] not in VALID_TEAM_TYPES:
        raise ValueError(f"Invalid team type: {fields['team_type']}")
    for key in ("name", "age_group", "team_type", "head_coach_id", "description"):
        if fields.get(key) is not None:
            setattr(team, key, fields[key])
    await session.flush()
    await session.refresh(team)
    return _team_to_dict(team)


async def delete_team(session: AsyncSession, team_id: int) -> bool:
    """Delete a team. Its players stay in the academy without a team."""
    team = await _get_team_model(session, team_id)
    await session.execute(update(Player).where(Player.team_id == team_id).values(team_id=None))
    await session.delete(team)
    await session.flush()
    return True


async def assign_coach(
    session: AsyncSession,
    team_id: int,
    coach_user_id: int,
    role: str = CoachRole.ASSISTANT_COACH.value,
    is_primary: bool = False,
    assigned_by: Optional[int] = None,
) -> Dict:
    """
    Assign a coach to a team, or update the role of an existing assignment.

    A head coach assignment also sets the team's head_coach_id.

    Raises:
        ValueError: If the team or user does not exist or the role is unknown
    """
    if role not in VALID_COACH_ROLES:
        raise ValueError(f"Invalid coach role: {role}")
    team = await _get_team_model(session, team_id)
    user = (await session.execute(select(User).where(User.id == coach_user_id))).scalar_one_or_none()
    if not user:
        raise ValueError(f"User {coach_user_id} not found")

    result = await session.execute(
        select(TeamCoach).where(TeamCoach.team_id == team_id, TeamCoach.coach_user_id == coach_user_id)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        assignment = TeamCoach(
            team_id=team_id,
            coach_user_id=coach_user_id,
            role=role,
            is_primary=is_primary,
            assigned_by=assigned_by,
        )
        session.add(assignment)
    else:
        assignment.role = role
        assignment.is_primary = is_primary
        assignment.assigned_by = assigned_by

    if role == CoachRole.HEAD_COACH.value:
        team.head_coach_id = coach_user_id
    await session.flush()
    await session.refresh(assignment)
    logger.info(f"Assigned user {coach_user_id} to team {team_id} as {role}")
    return _assignment_to_dict(assignment, user)


def _assignment_to_dict(assignment: TeamCoach, user: Optional[User] = None) -> Dict:
    return {
        "id": assignment.id,
        "team_id": assignment.team_id,
        "coach_user_id": assignment.coach_user_id,
        "coach_name": user.name if user else None,
        "coach_email": user.email if user else None,
        "role": assignment.role,
        "is_primary": assignment.is_primary,
        "assigned_at": assignment.assigned_at.isoformat() if assignment.assigned_at else None,
    }


async def remove_coach(session: AsyncSession, team_id: int, coach_user_id: int) -> bool:
    result = await session.execute(
        select(TeamCoach).where(TeamCoach.team_id == team_id, TeamCoach.coach_user_id == coach_user_id)
    )
    assignment = result.scalar_one_or_none()
    if not assignment:
        raise ValueError("Coach assignment not found")
    await session.delete(assignment)
    team = await _get_team_model(session, team_id)
    if team.head_coach_id == coach_user_id:
        team.head_coach_id = None
    await session.flush()
    return True


async def list_team_coaches(session: AsyncSession, team_id: int) -> List[Dict]:
    result = await session.execute(
        select(TeamCoach, User)
        .join(User, User.id == TeamCoach.coach_user_id)
        .where(TeamCoach.team_id == team_id)
        .order_by(TeamCoach.is_primary.desc(), TeamCoach.id)
    )
    return [_assignment_to_dict(assignment, user) for assignment, user in result.all()]


async def list_coach_teams(session: AsyncSession, coach_user_id: int) -> List[Dict]:
    result = await session.execute(
        select(Team, TeamCoach.role)
        .join(TeamCoach, TeamCoach.team_id == Team.id)
        .where(TeamCoach.coach_user_id == coach_user_id)
        .order_by(Team.age_group, Team.name)
    )
    return [{**_team_to_dict(team), "coach_role": role} for team, role in result.all()]


async def get_team_roster(session: AsyncSession, team_id: int) -> Dict:
    """
    Team with its players (grouped-ready, ordered by jersey number) and coaches.

    Raises:
        ValueError: If the team does not exist
    """
    team = await _get_team_model(session, team_id)
    result = await session.execute(
        select(Player)
        .where(Player.team_id == team_id)
        .order_by(Player.jersey_number.is_(None), Player.jersey_number, Player.last_name)
    )
    players = [_player_to_dict(p) for p in result.scalars().all()]
    return {
        "team": _team_to_dict(team),
        "players": players,
        "coaches": await list_team_coaches(session, team_id),
        "player_count": len(players),
    }


async def find_duplicate_teams(session: AsyncSession) -> List[Dict]:
    """
    Groups of teams sharing the same name (case-insensitive) and age group.

    Returns:
        List of ``{name, age_group, team_ids}`` with team_ids oldest first
    """
    result = await session.execute(
        select(func.lower(Team.name), Team.age_group)
        .group_by(func.lower(Team.name), Team.age_group)
        .having(func.count(Team.id) > 1)
    )
    groups = []
    for lowered_name, age_group in result.all():
        ids_result = await session.execute(
            select(Team.id)
            .where(func.lower(Team.name) == lowered_name, Team.age_group == age_group)
            .order_by(Team.created_at, Team.id)
        )
        groups.append({"name": lowered_name, "age_group": age_group, "team_ids": list(ids_result.scalars().all())})
    return groups


async def merge_duplicate_teams(session: AsyncSession) -> Dict:
    """
    Merge each duplicate group into its oldest team.

    Players, matches and coach assignments move to the kept team; the other
    teams are deleted.

    Returns:
        Dict with ``groups`` merged and ``teams_removed``
    """
    groups = await find_duplicate_teams(session)
    removed = 0
    for group in groups:
        keep_id, *duplicate_ids = group["team_ids"]
        await session.execute(
            update(Player).where(Player.team_id.in_(duplicate_ids)).values(team_id=keep_id)
        )
        await session.execute(
            update(Match).where(Match.team_id.in_(duplicate_ids)).values(team_id=keep_id)
        )
        kept_coaches = set(
            (await session.execute(
                select(TeamCoach.coach_user_id).where(TeamCoach.team_id == keep_id)
            )).scalars().all()
        )
        dup_assignments = (await session.execute(
            select(TeamCoach).where(TeamCoach.team_id.in_(duplicate_ids))
        )).scalars().all()
        for assignment in dup_assignments:
            if assignment.coach_user_id in kept_coaches:
                await session.delete(assignment)
            else:
                assignment.team_id = keep_id
                kept_coaches.add(assignment.coach_user_id)
        await session.flush()

        for dup_id in duplicate_ids:
            team = await _get_team_model(session, dup_id)
            await session.delete(team)
            removed += 1
        await session.flush()
        logger.info(f"Merged teams {duplicate_ids} into {keep_id}")

    return {"groups": len(groups), "teams_removed": removed}
