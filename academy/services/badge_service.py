"""
Achievement badges earned from coaching course activity.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from academy.database.models import (
    Badge,
    UserBadge,
    QuizAttempt,
    CourseEnrollment,
    BadgeCriteriaType,
)
from academy.services import notification_service
from academy.utils.constants import QUIZ_PASS_MARK
import logging

logger = logging.getLogger(__name__)

DEFAULT_BADGES = [
    {
        "name": "First Steps",
        "description": "Complete your first course",
        "icon": "Award",
        "category": "completion",
        "criteria": {"type": BadgeCriteriaType.COURSE_COMPLETION.value, "count": 1},
        "display_order": 1,
    },
    {
        "name": "Bronze Coach",
        "description": "Complete 3 courses",
        "icon": "Medal",
        "category": "completion",
        "criteria": {"type": BadgeCriteriaType.COURSE_COMPLETION.value, "count": 3},
        "display_order": 2,
    },
    {
        "name": "Silver Coach",
        "description": "Complete 5 courses",
        "icon": "Trophy",
        "category": "completion",
        "criteria": {"type": BadgeCriteriaType.COURSE_COMPLETION.value, "count": 5},
        "display_order": 3,
    },
    {
        "name": "Perfect Score",
        "description": "Score 100% on a quiz",
        "icon": "Star",
        "category": "excellence",
        "criteria": {"type": BadgeCriteriaType.PERFECT_SCORE.value},
        "display_order": 4,
    },
    {
        "name": "Excellence",
        "description": "Score 90% or higher on 3 quizzes",
        "icon": "Sparkles",
        "category": "excellence",
        "criteria": {"type": BadgeCriteriaType.EXCELLENCE.value, "count": 3},
        "display_order": 5,
    },
    {
        "name": "Master Coach",
        "description": "Complete 5 courses to become a master coach",
        "icon": "Crown",
        "category": "mastery",
        "criteria": {"type": BadgeCriteriaType.MASTER.value, "count": 5},
        "display_order": 6,
    },
    {
        "name": "Quiz Rookie",
        "description": "Take your first quiz",
        "icon": "BookOpen",
        "category": "completion",
        "criteria": {"type": BadgeCriteriaType.FIRST_QUIZ.value},
        "display_order": 7,
    },
    {
        "name": "Quiz Streak",
        "description": "Pass 5 quizzes",
        "icon": "Flame",
        "category": "excellence",
        "criteria": {"type": BadgeCriteriaType.QUIZ_STREAK.value, "count": 5},
        "display_order": 8,
    },
]


def _badge_to_dict(badge: Badge) -> Dict:
    return {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "icon": badge.icon,
        "category": badge.category,
        "criteria": badge.criteria or {},
        "is_active": bool(badge.is_active),
        "display_order": badge.display_order,
    }


def _user_badge_to_dict(user_badge: UserBadge, badge: Badge) -> Dict:
    data = _badge_to_dict(badge)
    data.update({
        "user_badge_id": user_badge.id,
        "badge_id": user_badge.badge_id,
        "earned_from": user_badge.earned_from,
        "earned_at": user_badge.earned_at.isoformat() if user_badge.earned_at else None,
    })
    return data


async def initialize_default_badges(session: AsyncSession) -> int:
    """Insert the default course badges that do not exist yet. Returns the number added."""
    result = await session.execute(select(Badge.name))
    existing = set(result.scalars().all())
    added = 0
    for badge_data in DEFAULT_BADGES:
        if badge_data["name"] in existing:
            continue
        session.add(Badge(is_active=True, **badge_data))
        added += 1
    if added:
        await session.flush()
        logger.info(f"Initialized {added} default badges")
    return added


async def list_badges(session: AsyncSession, active_only: bool = True) -> List[Dict]:
    query = select(Badge)
    if active_only:
        query = query.where(Badge.is_active.is_(True))
    result = await session.execute(query.order_by(Badge.display_order, Badge.id))
    return [_badge_to_dict(b) for b in result.scalars().all()]


async def list_user_badges(session: AsyncSession, user_id: int) -> List[Dict]:
    result = await session.execute(
        select(UserBadge, Badge)
        .join(Badge, Badge.id == UserBadge.badge_id)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    return [_user_badge_to_dict(user_badge, badge) for user_badge, badge in result.all()]


async def has_badge(session: AsyncSession, user_id: int, badge_id: int) -> bool:
    result = await session.execute(
        select(UserBadge.id).where(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
    )
    return result.scalar_one_or_none() is not None


async def award_badge(
    session: AsyncSession,
    user_id: int,
    badge_id: int,
    earned_from: str,
    notify: bool = True,
) -> Optional[Dict]:
    """
    Award a badge once. Returns the badge dict when newly awarded, None if
    the user already holds it.
    """
    if await has_badge(session, user_id, badge_id):
        return None
    result = await session.execute(select(Badge).where(Badge.id == badge_id))
    badge = result.scalar_one_or_none()
    if not badge:
        raise ValueError(f"Badge {badge_id} not found")

    session.add(UserBadge(user_id=user_id, badge_id=badge_id, earned_from=earned_from))
    await session.flush()
    logger.info(f"Awarded badge '{badge.name}' to user {user_id} ({earned_from})")

    if notify:
        await notification_service.create_notification(
            session,
            user_id,
            "success",
            "New Badge Earned!",
            f"Congratulations! You've earned the \"{badge.name}\" badge. {badge.description or ''}".strip(),
            category="achievement",
            data={"badge_id": badge.id, "badge_name": badge.name},
            link_url="/achievements",
            related_entity_type="badge",
            related_entity_id=badge.id,
        )
    return _badge_to_dict(badge)


async def _user_course_stats(session: AsyncSession, user_id: int) -> Dict:
    completed = await session.execute(
        select(func.count(CourseEnrollment.id)).where(
            CourseEnrollment.user_id == user_id, CourseEnrollment.completed_at.is_not(None)
        )
    )
    scores = await session.execute(select(QuizAttempt.score).where(QuizAttempt.user_id == user_id))
    return {"completed_courses": completed.scalar() or 0, "scores": list(scores.scalars().all())}


def meets_criteria(criteria: Dict, stats: Dict, quiz_score: Optional[int] = None) -> bool:
    """
    Evaluate a badge criteria dict against the user's course stats
    (``completed_courses`` and every quiz ``scores`` value).
    """
    criteria_type = (criteria or {}).get("type")
    scores = stats.get("scores", [])
    completed = stats.get("completed_courses", 0)

    if criteria_type == BadgeCriteriaType.COURSE_COMPLETION.value:
        return completed >= criteria.get("count", 1)
    if criteria_type == BadgeCriteriaType.MASTER.value:
        return completed >= criteria.get("count", 5)
    if criteria_type == BadgeCriteriaType.PERFECT_SCORE.value:
        return quiz_score == 100 or any(score == 100 for score in scores)
    if criteria_type == BadgeCriteriaType.EXCELLENCE.value:
        return sum(1 for score in scores if score >= 90) >= criteria.get("count", 3)
    if criteria_type == BadgeCriteriaType.FIRST_QUIZ.value:
        return len(scores) >= 1
    if criteria_type == BadgeCriteriaType.QUIZ_STREAK.value:
        return sum(1 for score in scores if score >= QUIZ_PASS_MARK) >= criteria.get("count", 5)
    return False


async def check_and_award_badges(
    session: AsyncSession, user_id: int, quiz_score: Optional[int] = None
) -> List[Dict]:
    """
    Award every active course badge whose criteria the user now meets.

    Returns:
        List of newly awarded badges
    """
    result = await session.execute(select(Badge).where(Badge.is_active.is_(True)))
    badges = result.scalars().all()
    if not badges:
        return []

    held = await session.execute(select(UserBadge.badge_id).where(UserBadge.user_id == user_id))
    held_ids = set(held.scalars().all())
    stats = await _user_course_stats(session, user_id)

    awarded = []
    for badge in badges:
        if badge.id in held_ids:
            continue
        if meets_criteria(badge.criteria or {}, stats, quiz_score):
            new_badge = await award_badge(session, user_id, badge.id, "quiz_completion")
            if new_badge:
                awarded.append(new_badge)
    return awarded
