"""Team and coach assignment route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import team_service, match_service
from academy.api.auth_dependencies import require_approved_user, require_staff, require_admin
from academy.models.schemas import TeamCreate, TeamUpdate, AssignCoachRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams")
async def list_teams(
    team_type: Optional[str] = None,
    age_group: Optional[str] = None,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await team_service.list_teams(session, team_type=team_type, age_group=age_group)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading teams: {str(e)}")


@router.post("/api/teams")
async def create_team(
    payload: TeamCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team (staff)."""
    try:
        return await team_service.create_team(
            session,
            name=payload.name,
            age_group=payload.age_group,
            team_type=payload.team_type or "academy",
            head_coach_id=payload.head_coach_id,
            description=payload.description,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating team: {str(e)}")


@router.get("/api/teams/mine")
async def list_my_teams(
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Teams the current coach is assigned to."""
    try:
        return await team_service.list_coach_teams(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading teams: {str(e)}")


@router.get("/api/teams/{team_id}")
async def get_team(
    team_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Team with roster and coaches."""
    try:
        return await team_service.get_team_roster(session, team_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading team: {str(e)}")


@router.put("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    payload: TeamUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await team_service.update_team(session, team_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating team: {str(e)}")


@router.delete("/api/teams/{team_id}")
async def delete_team(
    team_id: int,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a team (admin). Its players are kept without a team."""
    try:
        await team_service.delete_team(session, team_id)
        return {"status": "success", "message": "Team deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting team: {str(e)}")


@router.get("/api/teams/{team_id}/record")
async def get_team_record(
    team_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await match_service.get_team_record(session, team_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading team record: {str(e)}")


@router.get("/api/teams/{team_id}/coaches")
async def list_team_coaches(
    team_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await team_service.list_team_coaches(session, team_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading coaches: {str(e)}")


@router.post("/api/teams/{team_id}/coaches")
async def assign_coach(
    team_id: int,
    payload: AssignCoachRequest,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Assign a coach to a team, or change their role on it (admin)."""
    try:
        return await team_service.assign_coach(
            session,
            team_id,
            payload.coach_user_id,
            role=payload.role or "assistant_coach",
            is_primary=bool(payload.is_primary),
            assigned_by=current_user["id"],
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error assigning coach to team {team_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error assigning coach: {str(e)}")


@router.delete("/api/teams/{team_id}/coaches/{coach_user_id}")
async def remove_coach(
    team_id: int,
    coach_user_id: int,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await team_service.remove_coach(session, team_id, coach_user_id)
        return {"status": "success", "message": "Coach removed"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error removing coach: {str(e)}")
