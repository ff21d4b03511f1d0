"""AI analysis route handlers: opponent scouting, video events and player reports."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from academy.api.routes import limiter
from academy.database.db import get_db_session
from academy.services import ai_service
from academy.services.llm_service import LLMError
from academy.api.auth_dependencies import require_staff
from academy.models.schemas import OpponentAnalysisRequest, VideoAnalysisRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/ai/opponent-analysis")
@limiter.limit("10/minute")
async def analyze_opponent(
    request: Request,
    payload: OpponentAnalysisRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Structured tactical analysis of an upcoming opponent (staff)."""
    try:
        return await ai_service.analyze_opponent(
            session,
            payload.opponent_name,
            known_formation=payload.known_formation,
            previous_results=payload.previous_results,
            known_players=payload.known_players,
            additional_notes=payload.additional_notes,
            team_id=payload.team_id,
            created_by=current_user["id"],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing opponent: {e}")
        raise HTTPException(status_code=500, detail=f"Error analyzing opponent: {str(e)}")


@router.get("/api/ai/opponent-analysis")
async def list_opponent_analyses(
    team_id: Optional[int] = None,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await ai_service.list_opponent_analyses(session, team_id=team_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading analyses: {str(e)}")


@router.post("/api/ai/video-analysis")
@limiter.limit("5/minute")
async def detect_video_events(
    request: Request,
    payload: VideoAnalysisRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Detect shots, passes and defensive actions in a match video (staff)."""
    try:
        return await ai_service.detect_video_events(
            session,
            payload.video_url,
            team_name=payload.team_name or "Home Team",
            match_id=payload.match_id,
            created_by=current_user["id"],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing video: {e}")
        raise HTTPException(status_code=500, detail=f"Error analyzing video: {str(e)}")


@router.get("/api/ai/video-analysis/{analysis_id}")
async def get_video_analysis(
    analysis_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        analysis = await ai_service.get_video_analysis(session, analysis_id)
        if not analysis:
            raise HTTPException(status_code=404, detail="Video analysis not found")
        return analysis
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading video analysis: {str(e)}")


@router.post("/api/ai/players/{player_id}/report")
@limiter.limit("10/minute")
async def generate_player_report(
    request: Request,
    player_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Written coach report from the latest assessment and recent sessions (staff)."""
    try:
        return await ai_service.generate_player_report(session, player_id, user_id=current_user["id"])
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error generating player report: {str(e)}")
