"""Skill assessment, radar and position recommendation route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import skill_service
from academy.api.auth_dependencies import require_approved_user, require_staff, require_player_access
from academy.models.schemas import SkillScoreCreate, SkillScoreUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/skills")
async def create_skill_score(
    payload: SkillScoreCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Record a skill assessment (staff). Values are clamped to 0-100 and the
    category overalls are derived from them.
    """
    try:
        fields = payload.model_dump(exclude={"player_id", "assessment_date", "notes"}, exclude_none=True)
        return await skill_service.create_skill_score(
            session,
            payload.player_id,
            assessment_date=payload.assessment_date,
            assessed_by=current_user["id"],
            notes=payload.notes,
            **fields,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error recording skill assessment: {e}")
        raise HTTPException(status_code=500, detail=f"Error recording skill assessment: {str(e)}")


@router.get("/api/skills/{score_id}")
async def get_skill_score(
    score_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        score = await skill_service.get_skill_score(session, score_id)
        if not score:
            raise HTTPException(status_code=404, detail="Skill score not found")
        await require_player_access(session, score["player_id"], current_user)
        return score
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading skill score: {str(e)}")


@router.put("/api/skills/{score_id}")
async def update_skill_score(
    score_id: int,
    payload: SkillScoreUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await skill_service.update_skill_score(
            session, score_id, **payload.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating skill score: {str(e)}")


@router.delete("/api/skills/{score_id}")
async def delete_skill_score(
    score_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await skill_service.delete_skill_score(session, score_id)
        return {"status": "success", "message": "Skill score deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting skill score: {str(e)}")


@router.get("/api/players/{player_id}/skills")
async def get_skill_history(
    player_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """All assessments for a player, oldest first."""
    try:
        await require_player_access(session, player_id, current_user)
        return await skill_service.get_skill_history(session, player_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading skill history: {str(e)}")


@router.get("/api/players/{player_id}/skills/latest")
async def get_latest_skill_score(
    player_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        score = await skill_service.get_latest_skill_score(session, player_id)
        if not score:
            raise HTTPException(status_code=404, detail="No skill assessment found")
        return score
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading skill score: {str(e)}")


@router.get("/api/players/{player_id}/skills/radar")
async def get_radar_data(
    player_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await skill_service.get_radar_data(session, player_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading radar data: {str(e)}")


@router.get("/api/players/{player_id}/positions")
async def get_position_recommendations(
    player_id: int,
    top_n: int = 3,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Best-fit positions from the latest assessment, with transition advice."""
    try:
        await require_player_access(session, player_id, current_user)
        return await skill_service.get_position_recommendations(session, player_id, top_n=top_n)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error recommending positions: {str(e)}")
