"""Parent portal route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import parent_service
from academy.api.auth_dependencies import require_parent, require_admin
from academy.models.schemas import LinkParentRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/parents/links")
async def link_parent(
    payload: LinkParentRequest,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Link a parent account to a player (admin)."""
    try:
        return await parent_service.link_parent(
            session,
            payload.parent_user_id,
            payload.player_id,
            relationship=payload.relationship or "guardian",
            is_primary=bool(payload.is_primary),
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error linking parent: {str(e)}")


@router.delete("/api/parents/{parent_user_id}/children/{player_id}")
async def unlink_parent(
    parent_user_id: int,
    player_id: int,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await parent_service.unlink_parent(session, parent_user_id, player_id)
        return {"status": "success", "message": "Parent unlinked"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error unlinking parent: {str(e)}")


@router.get("/api/parents/children")
async def list_children(
    current_user: dict = Depends(require_parent),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await parent_service.list_children(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading children: {str(e)}")


@router.get("/api/parents/dashboard")
async def get_dashboard(
    current_user: dict = Depends(require_parent),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await parent_service.get_parent_dashboard(session, current_user["id"])
    except Exception as e:
        logger.error(f"Error loading parent dashboard for user {current_user['id']}: {e}")
        raise HTTPException(status_code=500, detail=f"Error loading dashboard: {str(e)}")


@router.get("/api/parents/children/{player_id}/report")
async def get_child_report(
    player_id: int,
    days: int = 30,
    current_user: dict = Depends(require_parent),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await parent_service.get_child_progress_report(session, current_user["id"], player_id, days=days)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading progress report: {str(e)}")


@router.post("/api/parents/weekly-progress")
async def send_weekly_progress(
    player_id: Optional[int] = None,
    current_user: dict = Depends(require_parent),
    session: AsyncSession = Depends(get_db_session),
):
    """Send the weekly progress summary to the calling parent now."""
    try:
        return await parent_service.send_weekly_progress(session, current_user["id"], player_id=player_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error sending weekly progress: {str(e)}")
