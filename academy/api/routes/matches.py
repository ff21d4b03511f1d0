"""Match route handlers."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import match_service
from academy.api.auth_dependencies import require_approved_user, require_staff
from academy.models.schemas import MatchCreate, MatchUpdate, MatchReportRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches")
async def list_matches(
    team_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Matches newest first, filtered by team and an inclusive date range."""
    try:
        return await match_service.list_matches(
            session, team_id=team_id, date_from=date_from, date_to=date_to, limit=limit
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading matches: {str(e)}")


@router.post("/api/matches")
async def create_match(
    payload: MatchCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Record a match (staff). The result is derived from the scores."""
    try:
        return await match_service.create_match(
            session, created_by=current_user["id"], **payload.model_dump(exclude_none=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating match: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating match: {str(e)}")


@router.get("/api/matches/{match_id}")
async def get_match(
    match_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        match = await match_service.get_match(session, match_id)
        if not match:
            raise HTTPException(status_code=404, detail="Match not found")
        return match
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading match: {str(e)}")


@router.put("/api/matches/{match_id}")
async def update_match(
    match_id: int,
    payload: MatchUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await match_service.update_match(session, match_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating match: {str(e)}")


@router.delete("/api/matches/{match_id}")
async def delete_match(
    match_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await match_service.delete_match(session, match_id)
        return {"status": "success", "message": "Match deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting match: {str(e)}")


@router.post("/api/matches/{match_id}/report")
async def send_match_report(
    match_id: int,
    payload: MatchReportRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Send the post-match report to the team's parents (staff)."""
    try:
        return await match_service.send_match_report(
            session, match_id, payload.summary, payload.report_url
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending report for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error sending match report: {str(e)}")
