"""Gamification route handlers: streaks, badges, challenges, points and rewards."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import (
    badge_service,
    challenge_service,
    points_service,
    streak_service,
)
from academy.api.auth_dependencies import (
    require_approved_user,
    require_staff,
    require_admin,
    require_player_access,
    is_staff,
)
from academy.models.schemas import (
    ChallengeCreate,
    AwardBadgeRequest,
    AwardPointsRequest,
    RedeemRewardRequest,
    RewardCreate,
    RewardUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


@router.get("/api/streaks/me")
async def get_my_streak(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await streak_service.get_streak(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading streak: {str(e)}")


@router.get("/api/streaks/leaderboard")
async def streak_leaderboard(
    limit: int = 10,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await streak_service.streak_leaderboard(session, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading streak leaderboard: {str(e)}")


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


@router.get("/api/badges")
async def list_badges(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await badge_service.list_badges(session, active_only=not is_staff(current_user))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading badges: {str(e)}")


@router.get("/api/badges/mine")
async def list_my_badges(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await badge_service.list_user_badges(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading badges: {str(e)}")


@router.post("/api/badges/award")
async def award_badge(
    payload: AwardBadgeRequest,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Manually award a badge (admin). Awarding a held badge is a no-op."""
    try:
        awarded = await badge_service.award_badge(session, payload.user_id, payload.badge_id, "manual")
        return {"awarded": awarded is not None, "badge": awarded}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error awarding badge: {str(e)}")


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@router.get("/api/challenges")
async def list_challenges(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """This week's active challenges with the caller's progress."""
    try:
        return await challenge_service.list_user_challenges(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading challenges: {str(e)}")


@router.post("/api/challenges")
async def create_challenge(
    payload: ChallengeCreate,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await challenge_service.create_challenge(
            session,
            payload.title,
            payload.criteria,
            payload.reward,
            payload.start_date,
            payload.end_date,
            description=payload.description,
            is_active=payload.is_active if payload.is_active is not None else True,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating challenge: {str(e)}")


@router.post("/api/challenges/{challenge_id}/claim")
async def claim_challenge_reward(
    challenge_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await challenge_service.claim_reward(session, current_user["id"], challenge_id)
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error claiming reward: {str(e)}")


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------


@router.get("/api/points/leaderboard")
async def points_leaderboard(
    limit: int = 10,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await points_service.points_leaderboard(session, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading points leaderboard: {str(e)}")


@router.post("/api/points/award")
async def award_points(
    payload: AwardPointsRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await points_service.award_points(
            session,
            payload.player_id,
            payload.amount,
            payload.transaction_type,
            description=payload.description,
            created_by=current_user["id"],
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error awarding points: {str(e)}")


@router.get("/api/players/{player_id}/points")
async def get_points_balance(
    player_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await points_service.get_balance(session, player_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading points: {str(e)}")


@router.get("/api/players/{player_id}/points/transactions")
async def list_point_transactions(
    player_id: int,
    limit: int = 50,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await points_service.list_transactions(session, player_id, limit=limit)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading transactions: {str(e)}")


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


@router.get("/api/rewards")
async def list_rewards(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await points_service.list_rewards(session, active_only=not is_staff(current_user))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading rewards: {str(e)}")


@router.post("/api/rewards")
async def create_reward(
    payload: RewardCreate,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        fields = payload.model_dump(exclude={"name", "points_cost"}, exclude_none=True)
        return await points_service.create_reward(session, payload.name, payload.points_cost, **fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating reward: {str(e)}")


@router.put("/api/rewards/{reward_id}")
async def update_reward(
    reward_id: int,
    payload: RewardUpdate,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await points_service.update_reward(session, reward_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating reward: {str(e)}")


@router.delete("/api/rewards/{reward_id}")
async def delete_reward(
    reward_id: int,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await points_service.delete_reward(session, reward_id)
        return {"status": "success", "message": "Reward deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting reward: {str(e)}")


@router.post("/api/rewards/{reward_id}/redeem")
async def redeem_reward(
    reward_id: int,
    payload: RedeemRewardRequest,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Spend a player's points on a reward. Players redeem for themselves;
    parents for their children; staff for anyone.
    """
    try:
        await require_player_access(session, payload.player_id, current_user)
        return await points_service.redeem_reward(
            session, payload.player_id, reward_id, created_by=current_user["id"]
        )
    except HTTPException:
        raise
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error redeeming reward: {str(e)}")
