"""User profile route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import user_service, player_service, streak_service, badge_service
from academy.api.auth_dependencies import get_current_user, require_approved_user
from academy.models.schemas import UserResponse, UserUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/api/users/me", response_model=UserResponse)
async def update_current_user(
    payload: UserUpdate,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Update the current user's profile. Email and role cannot be changed here.
    """
    try:
        fields = payload.model_dump(exclude_unset=True)
        if not fields:
            raise HTTPException(status_code=400, detail="No fields provided to update")
        updated_user = await user_service.update_profile(session, current_user["id"], **fields)
        return UserResponse(**updated_user)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating user profile: {str(e)}")


@router.get("/api/users/me/player")
async def get_current_user_player(
    current_user: dict = Depends(require_approved_user), session: AsyncSession = Depends(get_db_session)
):
    """
    Get the player profile linked to the current user, or null if none.
    """
    try:
        return await player_service.get_player_by_user_id(session, current_user["id"])
    except Exception as e:
        logger.error(f"Error getting user player: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting user player: {str(e)}")


@router.get("/api/users/me/achievements")
async def get_current_user_achievements(
    current_user: dict = Depends(require_approved_user), session: AsyncSession = Depends(get_db_session)
):
    """Streak and earned badges for the current user."""
    try:
        return {
            "streak": await streak_service.get_streak(session, current_user["id"]),
            "badges": await badge_service.list_user_badges(session, current_user["id"]),
        }
    except Exception as e:
        logger.error(f"Error getting achievements: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting achievements: {str(e)}")
