"""Player profile route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from academy.api.routes import limiter
from academy.database.db import get_db_session
from academy.database.models import UserRole
from academy.services import player_service, points_service, photo_service, s3_service
from academy.api.auth_dependencies import (
    require_approved_user,
    require_staff,
    require_player_access,
    is_staff,
)
from academy.models.schemas import PlayerCreate, PlayerUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players")
async def list_players(
    q: Optional[str] = None,
    team_id: Optional[int] = None,
    position: Optional[str] = None,
    status: Optional[str] = None,
    age_group: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List players with optional search and filters. Always returns { items, total }.

    Staff see the whole academy, parents see their linked children and
    players see only themselves.
    """
    try:
        player_ids = None
        if not is_staff(current_user):
            if current_user["role"] == UserRole.PARENT.value:
                player_ids = await player_service.get_parent_player_ids(session, current_user["id"])
            else:
                own = await player_service.get_player_by_user_id(session, current_user["id"])
                player_ids = [own["id"]] if own else []
        return await player_service.list_players(
            session,
            team_id=team_id,
            position=position,
            status=status,
            age_group=age_group,
            q=q,
            player_ids=player_ids,
            limit=min(max(limit, 1), 200),
            offset=max(offset, 0),
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading players: {str(e)}")


@router.post("/api/players")
async def create_player(
    payload: PlayerCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a player profile (staff)."""
    try:
        return await player_service.create_player(session, **payload.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating player: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating player: {str(e)}")


@router.get("/api/players/{player_id}")
async def get_player(
    player_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        player = await player_service.get_player(session, player_id)
        if not player:
            raise HTTPException(status_code=404, detail="Player not found")
        player["points"] = await points_service.get_balance(session, player_id)
        return player
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading player: {str(e)}")


@router.put("/api/players/{player_id}")
async def update_player(
    player_id: int,
    payload: PlayerUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a player profile (staff). Omitted fields are left unchanged."""
    try:
        return await player_service.update_player(session, player_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating player: {str(e)}")


@router.delete("/api/players/{player_id}")
async def delete_player(
    player_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await player_service.delete_player(session, player_id)
        return {"status": "success", "message": "Player deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting player: {str(e)}")


@router.post("/api/players/{player_id}/photo")
@limiter.limit("20/minute")
async def upload_player_photo(
    request: Request,
    player_id: int,
    file: UploadFile = File(...),
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Upload a profile photo (staff). The image is cropped to a 512px square
    JPEG and the previous photo is removed from storage.
    """
    try:
        player = await player_service.get_player(session, player_id)
        if not player:
            raise HTTPException(status_code=404, detail="Player not found")
        if not s3_service.is_configured():
            raise HTTPException(status_code=503, detail="Photo storage is not configured")

        file_bytes = await file.read()
        is_valid, error = photo_service.validate_photo(file_bytes, file.content_type)
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)

        processed = photo_service.process_player_photo(file_bytes)
        url = await s3_service.upload_media("players", player_id, processed, "photo.jpg", "image/jpeg")
        if player.get("photo_url"):
            await s3_service.delete_by_url(player["photo_url"])
        return await player_service.update_player(session, player_id, photo_url=url)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error uploading player photo: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error uploading photo: {str(e)}")
