"""
Parent portal: parent-child links, the per-child dashboard and weekly
progress reports.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import ParentPlayerRelation, Player, User, ParentRelationship, UserRole
from academy.services import (
    player_service,
    skill_service,
    performance_service,
    match_service,
    notification_service,
    points_service,
    email_service,
    whatsapp_service,
)
import logging

logger = logging.getLogger(__name__)

VALID_RELATIONSHIPS = {r.value for r in ParentRelationship}
RECENT_MATCHES = 5


def _relation_to_dict(relation: ParentPlayerRelation) -> Dict:
    return {
        "id": relation.id,
        "parent_user_id": relation.parent_user_id,
        "player_id": relation.player_id,
        "relationship": relation.relationship_type,
        "is_primary": bool(relation.is_primary),
    }


async def link_parent(
    session: AsyncSession,
    parent_user_id: int,
    player_id: int,
    relationship: str = ParentRelationship.GUARDIAN.value,
    is_primary: bool = False,
) -> Dict:
    """
    Link a parent account to a player.

    Raises:
        ValueError: If the user is not a parent, the player does not exist,
            the relationship is unknown or the link already exists
    """
    if relationship not in VALID_RELATIONSHIPS:
        raise ValueError(f"Invalid relationship: {relationship}")
    user_result = await session.execute(select(User).where(User.id == parent_user_id))
    parent = user_result.scalar_one_or_none()
    if not parent:
        raise ValueError(f"User {parent_user_id} not found")
    if parent.role != UserRole.PARENT.value:
        raise ValueError("Only parent accounts can be linked to players")
    player_result = await session.execute(select(Player.id).where(Player.id == player_id))
    if player_result.scalar_one_or_none() is None:
        raise ValueError(f"Player {player_id} not found")

    existing = await session.execute(
        select(ParentPlayerRelation).where(
            ParentPlayerRelation.parent_user_id == parent_user_id,
            ParentPlayerRelation.player_id == player_id,
        )
    )
    if existing.scalar_one_or_none():
        raise ValueError("Parent is already linked to this player")

    relation = ParentPlayerRelation(
        parent_user_id=parent_user_id,
        player_id=player_id,
        relationship_type=relationship,
        is_primary=is_primary,
    )
    session.add(relation)
    await session.flush()
    await session.refresh(relation)
    logger.info(f"Linked parent {parent_user_id} to player {player_id}")
    return _relation_to_dict(relation)


async def unlink_parent(session: AsyncSession, parent_user_id: int, player_id: int) -> bool:
    result = await session.execute(
        select(ParentPlayerRelation).where(
            ParentPlayerRelation.parent_user_id == parent_user_id,
            ParentPlayerRelation.player_id == player_id,
        )
    )
    relation = result.scalar_one_or_none()
    if not relation:
        raise ValueError("Parent is not linked to this player")
    await session.delete(relation)
    await session.flush()
    return True


async def list_children(session: AsyncSession, parent_user_id: int) -> List[Dict]:
    result = await session.execute(
        select(Player, ParentPlayerRelation)
        .join(ParentPlayerRelation, ParentPlayerRelation.player_id == Player.id)
        .where(ParentPlayerRelation.parent_user_id == parent_user_id)
        .order_by(ParentPlayerRelation.is_primary.desc(), Player.first_name)
    )
    children = []
    for player, relation in result.all():
        data = player_service._player_to_dict(player)
        data["relationship"] = relation.relationship_type
        data["is_primary"] = bool(relation.is_primary)
        children.append(data)
    return children


async def _child_overview(session: AsyncSession, child: Dict) -> Dict:
    player_id = child["id"]
    matches = []
    if child.get("team_id"):
        matches = await match_service.list_matches(session, team_id=child["team_id"], limit=RECENT_MATCHES)
    return {
        "player": child,
        "latest_skill_score": await skill_service.get_latest_skill_score(session, player_id),
        "radar": await skill_service.get_radar_data(session, player_id),
        "performance": await performance_service.get_player_summary(session, player_id, days=30),
        "recent_matches": matches,
        "points": await points_service.get_balance(session, player_id),
    }


async def get_parent_dashboard(session: AsyncSession, parent_user_id: int) -> Dict:
    """
    Everything a parent sees on landing: one overview per linked child plus
    the parent's unread notification count.
    """
    children = await list_children(session, parent_user_id)
    return {
        "parent_user_id": parent_user_id,
        "children": [await _child_overview(session, child) for child in children],
        "unread_notifications": await notification_service.get_unread_count(session, parent_user_id),
    }


async def get_child_progress_report(
    session: AsyncSession, parent_user_id: int, player_id: int, days: int = 30
) -> Dict:
    """
    Progress report for one child.

    Raises:
        PermissionError: If the parent is not linked to the player
    """
    if player_id not in await player_service.get_parent_player_ids(session, parent_user_id):
        raise PermissionError("You can only view reports for your own children")
    player = await player_service.get_player(session, player_id)
    if not player:
        raise ValueError(f"Player {player_id} not found")
    history = await skill_service.get_skill_history(session, player_id)
    return {
        "player": player,
        "performance": await performance_service.get_player_summary(session, player_id, days=days),
        "skill_history": history,
        "latest_skill_score": history[-1] if history else None,
        "radar": await skill_service.get_radar_data(session, player_id),
        "points": await points_service.get_balance(session, player_id),
    }


def _progress_highlights(summary: Dict) -> List[str]:
    highlights = [f"{summary.get('sessions', 0)} sessions this week"]
    totals = summary.get("totals") or {}
    if totals.get("distance_covered"):
        highlights.append(f"{round(totals['distance_covered'] / 1000, 1)} km covered")
    if summary.get("best_top_speed"):
        highlights.append(f"Top speed {summary['best_top_speed']} km/h")
    highlights.append(f"Trend: {summary.get('trend', 'stable')}")
    return highlights


async def send_weekly_progress(
    session: AsyncSession, parent_user_id: int, player_id: Optional[int] = None
) -> Dict:
    """
    Send the 7-day progress summary for each linked child (or just
    ``player_id``) by email and, when the parent opted in, WhatsApp.

    Returns:
        Dict with the number of ``reports`` built and delivery counts
    """
    result = await session.execute(select(User).where(User.id == parent_user_id))
    parent = result.scalar_one_or_none()
    if not parent:
        raise ValueError(f"User {parent_user_id} not found")

    children = await list_children(session, parent_user_id)
    if player_id is not None:
        children = [c for c in children if c["id"] == player_id]
        if not children:
            raise PermissionError("You can only view reports for your own children")

    sent = {"reports": 0, "emails": 0, "whatsapp": 0}
    for child in children:
        summary = await performance_service.get_player_summary(session, child["id"], days=7)
        average = int(round(summary.get("avg_overall_score") or 0))
        sent["reports"] += 1
        if parent.email:
            ok = await email_service.send_weekly_progress_email(
                parent.email,
                parent.name,
                child["full_name"],
                {"sessions": summary["sessions"], "average_score": average, "trend": summary["trend"]},
                session,
            )
            sent["emails"] += int(bool(ok))
        phone = parent.whatsapp_phone or parent.phone
        if phone and parent.whatsapp_notifications:
            text = whatsapp_service.parent_progress_message(
                parent.name or "Parent", child["full_name"], _progress_highlights(summary), average
            )
            delivery = await whatsapp_service.send_message(phone, text)
            sent["whatsapp"] += int(bool(delivery.get("sent")))
    return sent
