"""
Daily login streaks and milestone rewards.

A streak counts consecutive calendar days (UTC) with at least one login.
"""

from datetime import date
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import UserStreak, StreakReward, Badge, User
from academy.services import badge_service, notification_service, email_service, whatsapp_service
from academy.utils.constants import STREAK_MILESTONES
from academy.utils.datetime_utils import today_utc
import logging

logger = logging.getLogger(__name__)

DEFAULT_STREAK_REWARDS = [
    (3, "3 Day Streak"),
    (7, "Week Warrior"),
    (14, "Two Week Champion"),
    (30, "Monthly Master"),
    (60, "60 Day Legend"),
    (90, "Quarter Year Hero"),
    (180, "Half Year Elite"),
    (365, "Year Long Champion"),
]


def _streak_to_dict(streak: Optional[UserStreak], user_id: int) -> Dict:
    if streak is None:
        return {
            "user_id": user_id,
            "current_streak": 0,
            "longest_streak": 0,
            "last_login_date": None,
            "total_logins": 0,
            "next_milestone": STREAK_MILESTONES[0],
        }
    return {
        "user_id": streak.user_id,
        "current_streak": streak.current_streak,
        "longest_streak": streak.longest_streak,
        "last_login_date": streak.last_login_date.isoformat() if streak.last_login_date else None,
        "total_logins": streak.total_logins,
        "next_milestone": next_milestone(streak.current_streak),
    }


def next_milestone(current_streak: int) -> Optional[int]:
    for days in STREAK_MILESTONES:
        if days > current_streak:
            return days
    return None


def advance_streak(current: int, last_login: Optional[date], today: date) -> int:
    """
    New streak length for a login on ``today``.

    Same day keeps the streak, the next day extends it, and any gap (or a
    clock that went backwards) restarts at 1.
    """
    if last_login is None:
        return 1
    gap = (today - last_login).days
    if gap == 0:
        return current
    if gap == 1:
        return current + 1
    return 1


async def initialize_streak_rewards(session: AsyncSession) -> int:
    """
    Seed the milestone rewards and the badge each one grants. Returns the
    number of rewards added.
    """
    result = await session.execute(select(StreakReward.streak_days))
    existing = set(result.scalars().all())
    added = 0
    for order, (days, badge_name) in enumerate(DEFAULT_STREAK_REWARDS, start=1):
        if days in existing:
            continue
        badge_result = await session.execute(select(Badge).where(Badge.name == badge_name))
        badge = badge_result.scalar_one_or_none()
        if badge is None:
            badge = Badge(
                name=badge_name,
                description=f"Log in {days} days in a row",
                icon="Flame",
                category="streak",
                criteria={"type": "streak", "days": days},
                is_active=True,
                display_order=100 + order,
            )
            session.add(badge)
            await session.flush()
        session.add(StreakReward(
            streak_days=days,
            reward_type="badge",
            reward_value=badge_name,
            reward_description=f"{badge_name} Badge",
            badge_id=badge.id,
        ))
        added += 1
    if added:
        await session.flush()
        logger.info(f"Initialized {added} streak rewards")
    return added


async def get_streak(session: AsyncSession, user_id: int) -> Dict:
    result = await session.execute(select(UserStreak).where(UserStreak.user_id == user_id))
    return _streak_to_dict(result.scalar_one_or_none(), user_id)


async def _reward_milestone(session: AsyncSession, user: User, streak_days: int) -> Optional[Dict]:
    result = await session.execute(select(StreakReward).where(StreakReward.streak_days == streak_days))
    reward = result.scalar_one_or_none()
    if not reward:
        return None

    reward_text = reward.reward_description or f"{streak_days}-Day Streak Badge"
    earned = {"days": streak_days, "badge_id": reward.badge_id, "reward": reward_text}

    if reward.badge_id:
        badge = await badge_service.award_badge(
            session, user.id, reward.badge_id, "login_streak", notify=False
        )
        if badge:
            await notification_service.create_notification(
                session,
                user.id,
                "success",
                "Streak Milestone Badge Earned!",
                f"You've earned the \"{badge['name']}\" badge for {streak_days} day streak!",
                category="achievement",
                related_entity_type="badge",
                related_entity_id=badge["id"],
            )

    await notification_service.create_notification(
        session,
        user.id,
        "success",
        f"{streak_days} Day Streak!",
        f"Congratulations! You've maintained a {streak_days} day login streak!",
        category="achievement",
        data={"streak_days": streak_days},
    )

    name = user.name or "Champion"
    if user.email:
        await email_service.send_streak_milestone_email(user.email, name, streak_days, reward_text, session)
    phone = user.whatsapp_phone
    if phone and user.whatsapp_notifications:
        await whatsapp_service.send_streak_milestone(phone, name, streak_days, reward_text)
    return earned


async def check_and_update_streak(
    session: AsyncSession, user_id: int, today: Optional[date] = None
) -> Dict:
    """
    Record a login and update the user's streak.

    Returns:
        Dict with ``current_streak``, ``longest_streak``, ``total_logins``,
        ``milestone_reached`` and ``reward_earned`` (None unless a milestone
        reward was granted)
    """
    today = today or today_utc()
    user_result = await session.execute(select(User).where(User.id == user_id))
    user = user_result.scalar_one_or_none()
    if not user:
        raise ValueError(f"User {user_id} not found")

    result = await session.execute(select(UserStreak).where(UserStreak.user_id == user_id))
    streak = result.scalar_one_or_none()

    if streak is None:
        streak = UserStreak(
            user_id=user_id, current_streak=1, longest_streak=1, last_login_date=today, total_logins=1
        )
        session.add(streak)
        await session.flush()
        return {
            "current_streak": 1,
            "longest_streak": 1,
            "total_logins": 1,
            "milestone_reached": False,
            "reward_earned": None,
        }

    if streak.last_login_date == today:
        return {
            "current_streak": streak.current_streak,
            "longest_streak": streak.longest_streak,
            "total_logins": streak.total_logins,
            "milestone_reached": False,
            "reward_earned": None,
        }

    new_streak = advance_streak(streak.current_streak, streak.last_login_date, today)
    streak.current_streak = new_streak
    streak.longest_streak = max(new_streak, streak.longest_streak)
    streak.last_login_date = today
    streak.total_logins = (streak.total_logins or 0) + 1
    await session.flush()
    await session.refresh(streak)

    milestone_reached = new_streak in STREAK_MILESTONES
    reward_earned = None
    if milestone_reached:
        logger.info(f"User {user_id} reached a {new_streak} day streak")
        reward_earned = await _reward_milestone(session, user, new_streak)

    return {
        "current_streak": streak.current_streak,
        "longest_streak": streak.longest_streak,
        "total_logins": streak.total_logins,
        "milestone_reached": milestone_reached,
        "reward_earned": reward_earned,
    }


async def streak_leaderboard(session: AsyncSession, limit: int = 10) -> List[Dict]:
    result = await session.execute(
        select(UserStreak, User.name)
        .join(User, User.id == UserStreak.user_id)
        .order_by(UserStreak.current_streak.desc(), UserStreak.longest_streak.desc())
        .limit(limit)
    )
    board = []
    for rank, (streak, name) in enumerate(result.all(), start=1):
        entry = _streak_to_dict(streak, streak.user_id)
        entry.update({"rank": rank, "name": name})
        board.append(entry)
    return board
