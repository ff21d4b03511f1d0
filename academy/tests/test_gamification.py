"""
Tests for streaks, badges, challenges, player points and the rewards shop.
"""

from datetime import date, timedelta

import pytest

from academy.database.models import BadgeCriteriaType
from academy.services import (
    badge_service,
    challenge_service,
    player_service,
    points_service,
    streak_service,
)
from academy.utils.datetime_utils import today_utc


# ============================================================================
# Streaks
# ============================================================================


class TestAdvanceStreak:
    def test_first_login(self):
        assert streak_service.advance_streak(0, None, date(2026, 3, 1)) == 1

    def test_same_day_keeps_streak(self):
        assert streak_service.advance_streak(4, date(2026, 3, 1), date(2026, 3, 1)) == 4

    def test_next_day_extends(self):
        assert streak_service.advance_streak(4, date(2026, 3, 1), date(2026, 3, 2)) == 5

    def test_gap_resets(self):
        assert streak_service.advance_streak(4, date(2026, 3, 1), date(2026, 3, 3)) == 1

    def test_clock_backwards_resets(self):
        assert streak_service.advance_streak(4, date(2026, 3, 5), date(2026, 3, 1)) == 1


def test_next_milestone():
    assert streak_service.next_milestone(0) == 3
    assert streak_service.next_milestone(3) == 7
    assert streak_service.next_milestone(365) is None


@pytest.mark.asyncio
async def test_streak_reaches_milestone_badge(db_session, coach_user):
    await streak_service.initialize_streak_rewards(db_session)
    start = date(2026, 3, 1)

    first = await streak_service.check_and_update_streak(db_session, coach_user["id"], start)
    assert first["current_streak"] == 1

    same_day = await streak_service.check_and_update_streak(db_session, coach_user["id"], start)
    assert same_day["total_logins"] == 1

    await streak_service.check_and_update_streak(db_session, coach_user["id"], start + timedelta(days=1))
    third = await streak_service.check_and_update_streak(db_session, coach_user["id"], start + timedelta(days=2))
    assert third["current_streak"] == 3
    assert third["milestone_reached"] is True
    assert third["reward_earned"]["days"] == 3

    badges = await badge_service.list_user_badges(db_session, coach_user["id"])
    assert [b["name"] for b in badges] == ["3 Day Streak"]
    assert badges[0]["earned_from"] == "login_streak"

    reset = await streak_service.check_and_update_streak(db_session, coach_user["id"], start + timedelta(days=10))
    assert reset["current_streak"] == 1
    assert reset["longest_streak"] == 3

    board = await streak_service.streak_leaderboard(db_session)
    assert board[0]["user_id"] == coach_user["id"]
    assert board[0]["rank"] == 1


@pytest.mark.asyncio
async def test_streak_rewards_seed_once(db_session):
    added = await streak_service.initialize_streak_rewards(db_session)
    assert added == len(streak_service.DEFAULT_STREAK_REWARDS)
    assert await streak_service.initialize_streak_rewards(db_session) == 0


# ============================================================================
# Badges
# ============================================================================


class TestMeetsCriteria:
    def test_course_completion(self):
        criteria = {"type": BadgeCriteriaType.COURSE_COMPLETION.value, "count": 3}
        assert badge_service.meets_criteria(criteria, {"completed_courses": 3, "scores": []})
        assert not badge_service.meets_criteria(criteria, {"completed_courses": 2, "scores": []})

    def test_perfect_score_from_current_quiz(self):
        criteria = {"type": BadgeCriteriaType.PERFECT_SCORE.value}
        assert badge_service.meets_criteria(criteria, {"scores": [80]}, quiz_score=100)
        assert not badge_service.meets_criteria(criteria, {"scores": [80]}, quiz_score=90)

    def test_excellence_counts_high_scores(self):
        criteria = {"type": BadgeCriteriaType.EXCELLENCE.value, "count": 3}
        assert badge_service.meets_criteria(criteria, {"scores": [90, 95, 100, 40]})
        assert not badge_service.meets_criteria(criteria, {"scores": [90, 89, 100]})

    def test_quiz_streak_counts_passes(self):
        criteria = {"type": BadgeCriteriaType.QUIZ_STREAK.value, "count": 2}
        assert badge_service.meets_criteria(criteria, {"scores": [70, 71]})
        assert not badge_service.meets_criteria(criteria, {"scores": [70, 69]})

    def test_unknown_type(self):
        assert not badge_service.meets_criteria({"type": "streak", "days": 3}, {"scores": [100]})


@pytest.mark.asyncio
async def test_award_badge_once(db_session, coach_user):
    await badge_service.initialize_default_badges(db_session)
    badges = await badge_service.list_badges(db_session)
    badge_id = badges[0]["id"]

    awarded = await badge_service.award_badge(db_session, coach_user["id"], badge_id, "manual")
    assert awarded["id"] == badge_id
    assert await badge_service.award_badge(db_session, coach_user["id"], badge_id, "manual") is None

    with pytest.raises(ValueError, match="not found"):
        await badge_service.award_badge(db_session, coach_user["id"], 9999, "manual")


# ============================================================================
# Challenges
# ============================================================================


class TestChallengeHelpers:
    def test_week_bounds_sunday_to_saturday(self):
        # 2026-03-04 is a Wednesday
        assert challenge_service.week_bounds(date(2026, 3, 4)) == (date(2026, 3, 1), date(2026, 3, 7))

    def test_week_bounds_on_sunday(self):
        assert challenge_service.week_bounds(date(2026, 3, 1)) == (date(2026, 3, 1), date(2026, 3, 7))

    def test_target_for(self):
        assert challenge_service.target_for({"type": "perfect_score"}) == 1
        assert challenge_service.target_for({"type": "high_average", "threshold": 85}) == 85
        assert challenge_service.target_for({"type": "quiz_streak", "count": 5}) == 5
        assert challenge_service.target_for({"type": "multiple_courses", "count": 3}) == 3


@pytest.mark.asyncio
async def test_create_challenge_validation(db_session):
    start = date(2026, 3, 1)
    with pytest.raises(ValueError, match="Invalid challenge criteria"):
        await challenge_service.create_challenge(db_session, "X", {"type": "nope"}, {"type": "points", "value": 10}, start, start)
    with pytest.raises(ValueError, match="positive integer"):
        await challenge_service.create_challenge(
            db_session, "X", {"type": "perfect_score"}, {"type": "points", "value": 0}, start, start
        )
    with pytest.raises(ValueError, match="end_date"):
        await challenge_service.create_challenge(
            db_session, "X", {"type": "perfect_score"}, {"type": "badge", "value": "Perfect Score"},
            start, start - timedelta(days=1),
        )


@pytest.mark.asyncio
async def test_weekly_challenges_created_once(db_session):
    today = date(2026, 3, 4)
    assert await challenge_service.initialize_weekly_challenges(db_session, today) == len(
        challenge_service.WEEKLY_CHALLENGES
    )
    assert await challenge_service.initialize_weekly_challenges(db_session, today) == 0


@pytest.mark.asyncio
async def test_perfect_score_challenge_pays_points(db_session, coach_user):
    today = today_utc()
    linked = await player_service.create_player(
        db_session,
        first_name="Coach",
        last_name="Kid",
        date_of_birth=date(2012, 1, 1),
        position="forward",
        user_id=coach_user["id"],
    )
    challenge = await challenge_service.create_challenge(
        db_session,
        "Perfect Week",
        {"type": "perfect_score"},
        {"type": "points", "value": 100},
        today - timedelta(days=1),
        today + timedelta(days=1),
    )

    with pytest.raises(ValueError, match="not started"):
        await challenge_service.claim_reward(db_session, coach_user["id"], challenge["id"])

    assert await challenge_service.check_and_update_progress(db_session, coach_user["id"], 80) == []
    with pytest.raises(ValueError, match="not completed"):
        await challenge_service.claim_reward(db_session, coach_user["id"], challenge["id"])

    completed = await challenge_service.check_and_update_progress(db_session, coach_user["id"], 100)
    assert [c["id"] for c in completed] == [challenge["id"]]

    outcome = await challenge_service.claim_reward(db_session, coach_user["id"], challenge["id"])
    assert outcome["success"] is True
    assert outcome["balance"]["total_points"] == 100
    assert outcome["balance"]["player_id"] == linked["id"]

    with pytest.raises(ValueError, match="already claimed"):
        await challenge_service.claim_reward(db_session, coach_user["id"], challenge["id"])

    listed = await challenge_service.list_user_challenges(db_session, coach_user["id"])
    assert listed[0]["completed"] is True
    assert listed[0]["reward_claimed"] is True


# ============================================================================
# Points and rewards
# ============================================================================


def test_level_for():
    assert points_service.level_for(0) == 1
    assert points_service.level_for(499) == 1
    assert points_service.level_for(500) == 2
    assert points_service.level_for(1250) == 3


@pytest.mark.asyncio
async def test_award_points_levels_up(db_session, player):
    assert (await points_service.get_balance(db_session, player["id"]))["total_points"] == 0

    first = await points_service.award_points(db_session, player["id"], 300, "training", "Good session")
    assert first["leveled_up"] is False

    second = await points_service.award_points(db_session, player["id"], 250, "match")
    assert second["leveled_up"] is True
    assert second["balance"]["level"] == 2
    assert second["balance"]["points_to_next_level"] == 450

    with pytest.raises(ValueError, match="must be positive"):
        await points_service.award_points(db_session, player["id"], 0, "training")
    with pytest.raises(ValueError, match="not found"):
        await points_service.award_points(db_session, 4040, 10, "training")

    transactions = await points_service.list_transactions(db_session, player["id"])
    assert sorted(t["amount"] for t in transactions) == [250, 300]


@pytest.mark.asyncio
async def test_redeem_reward_stock_and_balance(db_session, player):
    reward = await points_service.create_reward(db_session, "Academy scarf", 200, stock=1)
    unlimited = await points_service.create_reward(db_session, "Signed photo", 50)
    assert unlimited["stock"] == -1

    with pytest.raises(ValueError, match="Insufficient points"):
        await points_service.redeem_reward(db_session, player["id"], reward["id"])

    await points_service.award_points(db_session, player["id"], 500, "bonus")
    redeemed = await points_service.redeem_reward(db_session, player["id"], reward["id"])
    assert redeemed["balance"]["total_points"] == 300
    assert redeemed["balance"]["total_spent"] == 200
    # Spending does not lower the level
    assert redeemed["balance"]["level"] == 2
    assert redeemed["reward"]["stock"] == 0
    assert redeemed["transaction"]["amount"] == -200

    with pytest.raises(ValueError, match="out of stock"):
        await points_service.redeem_reward(db_session, player["id"], reward["id"])

    again = await points_service.redeem_reward(db_session, player["id"], unlimited["id"])
    assert again["reward"]["stock"] == -1


@pytest.mark.asyncio
async def test_reward_validation_and_inactive(db_session, player):
    with pytest.raises(ValueError, match="points_cost must be positive"):
        await points_service.create_reward(db_session, "Free", 0)
    with pytest.raises(ValueError, match="stock"):
        await points_service.create_reward(db_session, "Broken", 10, stock=-5)

    reward = await points_service.create_reward(db_session, "Hidden", 10)
    await points_service.update_reward(db_session, reward["id"], is_active=False)
    assert reward["id"] not in [r["id"] for r in await points_service.list_rewards(db_session)]
    with pytest.raises(ValueError, match="not available"):
        await points_service.redeem_reward(db_session, player["id"], reward["id"])


@pytest.mark.asyncio
async def test_points_leaderboard(db_session, team, player):
    other = await player_service.create_player(
        db_session,
        first_name="Omar",
        last_name="Saleh",
        date_of_birth=date(2012, 8, 8),
        position="defender",
        team_id=team["id"],
    )
    await points_service.award_points(db_session, player["id"], 100, "training")
    await points_service.award_points(db_session, other["id"], 400, "training")

    board = await points_service.points_leaderboard(db_session)
    assert [row["player_id"] for row in board] == [other["id"], player["id"]]
    assert board[0]["name"] == "Omar Saleh"
