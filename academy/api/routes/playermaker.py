"""PlayerMaker integration route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import playermaker_service
from academy.services.playermaker_service import PlayerMakerError, PlayerMakerRateLimitError
from academy.api.auth_dependencies import require_approved_user, require_staff, require_admin, require_player_access
from academy.models.schemas import PlayermakerSettingsRequest, PlayermakerSyncRequest, AnnotationCreate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/playermaker/settings")
async def get_settings(
    current_user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    """Stored PlayerMaker configuration (the client secret is never returned)."""
    try:
        return await playermaker_service.get_settings(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading PlayerMaker settings: {str(e)}")


@router.put("/api/playermaker/settings")
async def save_settings(
    payload: PlayermakerSettingsRequest,
    current_user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await playermaker_service.save_settings(
            session,
            client_key=payload.client_key,
            client_secret=payload.client_secret,
            client_team_id=payload.client_team_id,
            team_code=payload.team_code,
            auto_sync_enabled=payload.auto_sync_enabled,
            sync_frequency=payload.sync_frequency,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving PlayerMaker settings: {str(e)}")


@router.post("/api/playermaker/test-connection")
async def test_connection(
    current_user: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    try:
        return await playermaker_service.test_connection(session)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PlayerMakerError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error testing PlayerMaker connection: {str(e)}")


@router.post("/api/playermaker/sync")
async def sync(
    payload: PlayermakerSyncRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Import recent sessions from PlayerMaker (staff). The vendor allows one
    sync every 15 minutes; earlier attempts get 429 with the remaining wait.
    """
    try:
        return await playermaker_service.sync(
            session,
            days_back=payload.days_back,
            session_type=payload.session_type or "all",
            triggered_by=current_user["id"],
            sync_type=payload.sync_type or "manual",
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PlayerMakerRateLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))
    except PlayerMakerError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Error during PlayerMaker sync: {e}")
        raise HTTPException(status_code=500, detail=f"Error during PlayerMaker sync: {str(e)}")


@router.get("/api/playermaker/sync/status")
async def sync_status(
    current_user: dict = Depends(require_staff), session: AsyncSession = Depends(get_db_session)
):
    try:
        wait = await playermaker_service.get_wait_time_before_sync(session)
        return {
            "can_sync": wait <= 0,
            "wait_seconds": int(wait),
            "history": await playermaker_service.list_sync_history(session, limit=5),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading sync status: {str(e)}")


@router.get("/api/playermaker/sync/history")
async def sync_history(
    limit: int = 20,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await playermaker_service.list_sync_history(session, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading sync history: {str(e)}")


@router.get("/api/playermaker/sessions")
async def list_sessions(
    limit: int = 50,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await playermaker_service.list_sessions(session, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading sessions: {str(e)}")


@router.get("/api/playermaker/sessions/{session_id}/metrics")
async def get_session_metrics(
    session_id: str,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await playermaker_service.get_session_metrics(session, session_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading session metrics: {str(e)}")


@router.get("/api/players/{player_id}/playermaker")
async def get_player_metrics(
    player_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """A player's imported PlayerMaker metrics with averages."""
    try:
        await require_player_access(session, player_id, current_user)
        return await playermaker_service.get_player_metrics(session, player_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading player metrics: {str(e)}")


@router.get("/api/playermaker/metrics/{metric_id}/annotations")
async def list_annotations(
    metric_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await playermaker_service.list_annotations(session, metric_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading annotations: {str(e)}")


@router.post("/api/playermaker/metrics/{metric_id}/annotations")
async def add_annotation(
    metric_id: int,
    payload: AnnotationCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await playermaker_service.add_annotation(
            session, metric_id, current_user["id"], payload.content, payload.annotation_type or "note"
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding annotation: {str(e)}")


@router.delete("/api/playermaker/annotations/{annotation_id}")
async def delete_annotation(
    annotation_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await playermaker_service.delete_annotation(session, annotation_id, current_user)
        return {"status": "success", "message": "Annotation deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting annotation: {str(e)}")
