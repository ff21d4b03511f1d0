"""
Time-boxed coaching challenges: progress tracking and reward claims.
"""

from datetime import date, timedelta
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from academy.database.models import (
    Challenge,
    UserChallenge,
    QuizAttempt,
    CourseEnrollment,
    Badge,
    Player,
    ChallengeCriteriaType,
)
from academy.services import notification_service, badge_service, points_service
from academy.utils.number_utils import round_int
from academy.utils.datetime_utils import utcnow, today_utc
import logging

logger = logging.getLogger(__name__)

VALID_CRITERIA = {c.value for c in ChallengeCriteriaType}
VALID_REWARD_TYPES = {"badge", "points"}

WEEKLY_CHALLENGES = [
    {
        "title": "Quiz Master",
        "description": "Complete quizzes on 5 different days",
        "criteria": {"type": ChallengeCriteriaType.QUIZ_STREAK.value, "count": 5, "days": 7},
        "reward": {"type": "points", "value": 100},
    },
    {
        "title": "Perfect Performance",
        "description": "Achieve a perfect score of 100% on any quiz",
        "criteria": {"type": ChallengeCriteriaType.PERFECT_SCORE.value},
        "reward": {"type": "badge", "value": "Perfect Score"},
    },
    {
        "title": "Course Champion",
        "description": "Complete 3 different coaching courses",
        "criteria": {"type": ChallengeCriteriaType.MULTIPLE_COURSES.value, "count": 3},
        "reward": {"type": "badge", "value": "Bronze Coach"},
    },
    {
        "title": "Excellence Streak",
        "description": "Maintain an average score of 85% or higher across 5 quizzes",
        "criteria": {"type": ChallengeCriteriaType.HIGH_AVERAGE.value, "count": 5, "threshold": 85},
        "reward": {"type": "badge", "value": "Excellence"},
    },
]


def week_bounds(today: date):
    """Sunday-to-Saturday week containing ``today``."""
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def _challenge_to_dict(challenge: Challenge, user_challenge: Optional[UserChallenge] = None) -> Dict:
    data = {
        "id": challenge.id,
        "title": challenge.title,
        "description": challenge.description,
        "criteria": challenge.criteria,
        "reward": challenge.reward,
        "start_date": challenge.start_date.isoformat() if challenge.start_date else None,
        "end_date": challenge.end_date.isoformat() if challenge.end_date else None,
        "is_active": bool(challenge.is_active),
        "target": target_for(challenge.criteria or {}),
    }
    if user_challenge is not None:
        data.update({
            "progress": user_challenge.progress,
            "completed": bool(user_challenge.completed),
            "completed_at": user_challenge.completed_at.isoformat() if user_challenge.completed_at else None,
            "reward_claimed": bool(user_challenge.reward_claimed),
        })
    else:
        data.update({"progress": 0, "completed": False, "completed_at": None, "reward_claimed": False})
    return data


def target_for(criteria: Dict) -> int:
    criteria_type = criteria.get("type")
    if criteria_type == ChallengeCriteriaType.PERFECT_SCORE.value:
        return 1
    if criteria_type == ChallengeCriteriaType.HIGH_AVERAGE.value:
        return criteria.get("threshold", 85)
    if criteria_type == ChallengeCriteriaType.QUIZ_STREAK.value:
        return criteria.get("count", 7)
    return criteria.get("count", 3)


def _validate_challenge(criteria: Dict, reward: Dict, start_date: date, end_date: date):
    if criteria.get("type") not in VALID_CRITERIA:
        raise ValueError(f"Invalid challenge criteria type: {criteria.get('type')}")
    if reward.get("type") not in VALID_REWARD_TYPES:
        raise ValueError(f"Invalid reward type: {reward.get('type')}")
    if reward["type"] == "points" and (not isinstance(reward.get("value"), int) or reward["value"] <= 0):
        raise ValueError("Points rewards need a positive integer value")
    if end_date < start_date:
        raise ValueError("end_date must not be before start_date")


async def create_challenge(
    session: AsyncSession,
    title: str,
    criteria: Dict,
    reward: Dict,
    start_date: date,
    end_date: date,
    description: Optional[str] = None,
    is_active: bool = True,
) -> Dict:
    _validate_challenge(criteria, reward, start_date, end_date)
    challenge = Challenge(
        title=title,
        description=description,
        criteria=criteria,
        reward=reward,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
    )
    session.add(challenge)
    await session.flush()
    await session.refresh(challenge)
    return _challenge_to_dict(challenge)


async def initialize_weekly_challenges(session: AsyncSession, today: Optional[date] = None) -> int:
    """Create the default challenges for the current week unless the week already has some."""
    start, end = week_bounds(today or today_utc())
    result = await session.execute(
        select(func.count(Challenge.id)).where(Challenge.start_date >= start, Challenge.start_date <= end)
    )
    if result.scalar():
        return 0
    for template in WEEKLY_CHALLENGES:
        session.add(Challenge(start_date=start, end_date=end, is_active=True, **template))
    await session.flush()
    logger.info(f"Created {len(WEEKLY_CHALLENGES)} weekly challenges for {start.isoformat()}")
    return len(WEEKLY_CHALLENGES)


async def _active_challenges(session: AsyncSession, today: date) -> List[Challenge]:
    result = await session.execute(
        select(Challenge)
        .where(
            Challenge.is_active.is_(True),
            Challenge.start_date <= today,
            Challenge.end_date >= today,
        )
        .order_by(Challenge.id)
    )
    return list(result.scalars().all())


async def list_user_challenges(
    session: AsyncSession, user_id: int, today: Optional[date] = None
) -> List[Dict]:
    """Active challenges with the user's progress."""
    challenges = await _active_challenges(session, today or today_utc())
    if not challenges:
        return []
    result = await session.execute(
        select(UserChallenge).where(
            UserChallenge.user_id == user_id,
            UserChallenge.challenge_id.in_([c.id for c in challenges]),
        )
    )
    by_challenge = {uc.challenge_id: uc for uc in result.scalars().all()}
    return [_challenge_to_dict(c, by_challenge.get(c.id)) for c in challenges]


async def _evaluate(session: AsyncSession, user_id: int, criteria: Dict, quiz_score: Optional[int]):
    """Return ``(progress, completed)`` for one challenge criteria."""
    criteria_type = criteria.get("type")

    if criteria_type == ChallengeCriteriaType.QUIZ_STREAK.value:
        result = await session.execute(
            select(QuizAttempt.attempted_at)
            .where(QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.attempted_at.desc())
            .limit(criteria.get("days", 7))
        )
        days = {attempted.date() for attempted in result.scalars().all() if attempted}
        return len(days), len(days) >= criteria.get("count", 7)

    if criteria_type == ChallengeCriteriaType.PERFECT_SCORE.value:
        if quiz_score == 100:
            return 1, True
        return 0, False

    if criteria_type == ChallengeCriteriaType.MULTIPLE_COURSES.value:
        result = await session.execute(
            select(func.count(CourseEnrollment.id)).where(
                CourseEnrollment.user_id == user_id, CourseEnrollment.completed_at.is_not(None)
            )
        )
        completed = result.scalar() or 0
        return completed, completed >= criteria.get("count", 3)

    if criteria_type == ChallengeCriteriaType.HIGH_AVERAGE.value:
        result = await session.execute(select(QuizAttempt.score).where(QuizAttempt.user_id == user_id))
        scores = list(result.scalars().all())
        if len(scores) < criteria.get("count", 5):
            return None, False
        average = sum(scores) / len(scores)
        return round_int(average), average >= criteria.get("threshold", 85)

    return None, False


async def check_and_update_progress(
    session: AsyncSession,
    user_id: int,
    quiz_score: Optional[int] = None,
    today: Optional[date] = None,
) -> List[Dict]:
    """
    Re-evaluate every active challenge for the user after quiz activity.

    Returns:
        Challenges completed by this update
    """
    completed_now = []
    for challenge in await _active_challenges(session, today or today_utc()):
        result = await session.execute(
            select(UserChallenge).where(
                UserChallenge.user_id == user_id, UserChallenge.challenge_id == challenge.id
            )
        )
        user_challenge = result.scalar_one_or_none()
        if user_challenge is None:
            user_challenge = UserChallenge(
                user_id=user_id, challenge_id=challenge.id, progress=0, completed=False, reward_claimed=False
            )
            session.add(user_challenge)
            await session.flush()
        if user_challenge.completed:
            continue

        progress, completed = await _evaluate(session, user_id, challenge.criteria or {}, quiz_score)
        if progress is not None:
            user_challenge.progress = progress
        if completed:
            user_challenge.completed = True
            user_challenge.completed_at = utcnow()
            completed_now.append({"id": challenge.id, "title": challenge.title, "completed": True})
            await notification_service.create_notification(
                session,
                user_id,
                "success",
                "Challenge Completed!",
                f"You completed the \"{challenge.title}\" challenge. Claim your reward!",
                category="achievement",
                data={"challenge_id": challenge.id},
                link_url="/challenges",
                related_entity_type="challenge",
                related_entity_id=challenge.id,
            )
    await session.flush()
    return completed_now


async def claim_reward(session: AsyncSession, user_id: int, challenge_id: int) -> Dict:
    """
    Claim a completed challenge's reward, once.

    Badge rewards award the badge named by the reward value. Points rewards
    credit the player profile linked to the user.

    Raises:
        ValueError: If the challenge is unknown, not completed, already
            claimed, or a points reward has no linked player
    """
    result = await session.execute(
        select(UserChallenge, Challenge)
        .join(Challenge, Challenge.id == UserChallenge.challenge_id)
        .where(UserChallenge.user_id == user_id, UserChallenge.challenge_id == challenge_id)
    )
    row = result.first()
    if not row:
        raise ValueError(f"Challenge {challenge_id} not started")
    user_challenge, challenge = row
    if not user_challenge.completed:
        raise ValueError("Challenge is not completed yet")
    if user_challenge.reward_claimed:
        raise ValueError("Reward already claimed")

    reward = challenge.reward or {}
    outcome: Dict = {"reward": reward}
    if reward.get("type") == "points":
        player_result = await session.execute(select(Player.id).where(Player.user_id == user_id))
        player_id = player_result.scalars().first()
        if player_id is None:
            raise ValueError("No player profile is linked to this account")
        credited = await points_service.award_points(
            session, player_id, int(reward["value"]), "challenge", f"Challenge: {challenge.title}", user_id
        )
        outcome["balance"] = credited["balance"]
    elif reward.get("type") == "badge":
        badge_result = await session.execute(select(Badge).where(Badge.name == reward.get("value")))
        badge = badge_result.scalar_one_or_none()
        if badge:
            outcome["badge"] = await badge_service.award_badge(session, user_id, badge.id, "challenge")
        else:
            logger.warning(f"Challenge {challenge.id} rewards unknown badge '{reward.get('value')}'")

    user_challenge.reward_claimed = True
    user_challenge.claimed_at = utcnow()
    await session.flush()
    logger.info(f"User {user_id} claimed reward for challenge {challenge.id}")
    outcome["success"] = True
    return outcome
