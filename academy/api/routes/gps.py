"""GPS tracker and heatmap route handlers."""

import asyncio
import functools
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import gps_service, heatmap_service
from academy.api.auth_dependencies import require_approved_user, require_staff, require_player_access
from academy.models.schemas import (
    GpsRecordCreate,
    HeatmapCreate,
    HeatmapRenderRequest,
    GpsProjectionRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _render_png(points, **options) -> bytes:
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(
        None, functools.partial(heatmap_service.render_heatmap, points, **options)
    )


# ---------------------------------------------------------------------------
# GPS records
# ---------------------------------------------------------------------------


@router.post("/api/gps")
async def create_gps_record(
    payload: GpsRecordCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Store a tracker session (staff). Distance and speeds are computed from
    raw points when they are not supplied.
    """
    try:
        raw_points = [p.model_dump() for p in payload.raw_points] if payload.raw_points else None
        fields = payload.model_dump(exclude={"player_id", "session_date", "raw_points"}, exclude_none=True)
        return await gps_service.create_gps_record(
            session, payload.player_id, payload.session_date, raw_points=raw_points, **fields
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error storing GPS record: {e}")
        raise HTTPException(status_code=500, detail=f"Error storing GPS record: {str(e)}")


@router.post("/api/gps/project")
async def project_gps_points(
    payload: GpsProjectionRequest,
    current_user: dict = Depends(require_staff),
):
    """Project GPS samples onto pitch percentages, ready for a heatmap."""
    try:
        points = [p.model_dump() for p in payload.points]
        return {
            "points": heatmap_service.gps_to_pitch_points(points, payload.bounds.model_dump()),
            "stats": heatmap_service.movement_stats(points),
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error projecting GPS points: {str(e)}")


@router.get("/api/gps/{record_id}")
async def get_gps_record(
    record_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        record = await gps_service.get_gps_record(session, record_id)
        if not record:
            raise HTTPException(status_code=404, detail="GPS record not found")
        await require_player_access(session, record["player_id"], current_user)
        return record
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading GPS record: {str(e)}")


@router.delete("/api/gps/{record_id}")
async def delete_gps_record(
    record_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await gps_service.delete_gps_record(session, record_id)
        return {"status": "success", "message": "GPS record deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting GPS record: {str(e)}")


@router.get("/api/players/{player_id}/gps")
async def list_player_gps(
    player_id: int,
    limit: int = 50,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await gps_service.list_player_gps(session, player_id, limit=limit)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading GPS records: {str(e)}")


# ---------------------------------------------------------------------------
# Heatmaps
# ---------------------------------------------------------------------------


@router.post("/api/heatmaps/render")
async def render_heatmap(
    payload: HeatmapRenderRequest,
    current_user: dict = Depends(require_approved_user),
):
    """Render ad-hoc points to a PNG without storing them."""
    try:
        png = await _render_png(
            [p.model_dump() for p in payload.points],
            width=payload.width,
            height=payload.height,
            radius=payload.radius,
            opacity=payload.opacity,
            gradient=payload.gradient,
            with_pitch=payload.with_pitch,
        )
        return Response(content=png, media_type="image/png")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error rendering heatmap: {str(e)}")


@router.post("/api/heatmaps")
async def save_heatmap(
    payload: HeatmapCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await gps_service.save_heatmap(
            session,
            payload.player_id,
            payload.session_date,
            [p.model_dump() for p in payload.points],
            match_id=payload.match_id,
            image_url=payload.image_url,
        )
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving heatmap: {str(e)}")


async def _load_heatmap(session: AsyncSession, heatmap_id: int, user: dict) -> dict:
    heatmap = await gps_service.get_heatmap(session, heatmap_id)
    if not heatmap:
        raise HTTPException(status_code=404, detail="Heatmap not found")
    await require_player_access(session, heatmap["player_id"], user)
    return heatmap


@router.get("/api/heatmaps/{heatmap_id}")
async def get_heatmap(
    heatmap_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await _load_heatmap(session, heatmap_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading heatmap: {str(e)}")


@router.get("/api/heatmaps/{heatmap_id}/image")
async def get_heatmap_image(
    heatmap_id: int,
    width: int = 600,
    height: int = 400,
    radius: int = 40,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Stored heatmap rendered over a pitch as PNG."""
    try:
        heatmap = await _load_heatmap(session, heatmap_id, current_user)
        png = await _render_png(heatmap["points"], width=width, height=height, radius=radius)
        return Response(content=png, media_type="image/png")
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error rendering heatmap: {str(e)}")


@router.get("/api/heatmaps/{heatmap_id}/grid")
async def get_heatmap_grid(
    heatmap_id: int,
    cols: int = 20,
    rows: int = 12,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Normalised intensity grid for client-side rendering."""
    try:
        heatmap = await _load_heatmap(session, heatmap_id, current_user)
        return heatmap_service.build_intensity_grid(heatmap["points"], cols=cols, rows=rows)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error building heatmap grid: {str(e)}")


@router.delete("/api/heatmaps/{heatmap_id}")
async def delete_heatmap(
    heatmap_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await gps_service.delete_heatmap(session, heatmap_id)
        return {"status": "success", "message": "Heatmap deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting heatmap: {str(e)}")


@router.get("/api/players/{player_id}/heatmaps")
async def list_player_heatmaps(
    player_id: int,
    match_id: int = None,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await gps_service.list_player_heatmaps(session, player_id, match_id=match_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading heatmaps: {str(e)}")
