"""Performance metric, benchmark and talent route handlers."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import performance_service, benchmark_service
from academy.api.auth_dependencies import require_approved_user, require_staff, require_player_access
from academy.models.schemas import (
    PerformanceMetricCreate,
    PerformanceMetricUpdate,
    ComparePlayersRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _not_found_or_bad_request(e: ValueError) -> HTTPException:
    status_code = 404 if "not found" in str(e) else 400
    return HTTPException(status_code=status_code, detail=str(e))


@router.post("/api/performance")
async def create_metric(
    payload: PerformanceMetricCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Record a session's metrics for a player (staff)."""
    try:
        fields = payload.model_dump(exclude={"player_id", "session_date", "session_type"})
        return await performance_service.create_metric(
            session,
            payload.player_id,
            payload.session_date,
            payload.session_type,
            recorded_by=current_user["id"],
            **fields,
        )
    except ValueError as e:
        raise _not_found_or_bad_request(e)
    except Exception as e:
        logger.error(f"Error recording metrics: {e}")
        raise HTTPException(status_code=500, detail=f"Error recording metrics: {str(e)}")


@router.get("/api/performance/{metric_id}")
async def get_metric(
    metric_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        metric = await performance_service.get_metric(session, metric_id)
        if not metric:
            raise HTTPException(status_code=404, detail="Metric not found")
        await require_player_access(session, metric["player_id"], current_user)
        return metric
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading metric: {str(e)}")


@router.put("/api/performance/{metric_id}")
async def update_metric(
    metric_id: int,
    payload: PerformanceMetricUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await performance_service.update_metric(
            session, metric_id, **payload.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise _not_found_or_bad_request(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating metric: {str(e)}")


@router.delete("/api/performance/{metric_id}")
async def delete_metric(
    metric_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await performance_service.delete_metric(session, metric_id)
        return {"status": "success", "message": "Metric deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting metric: {str(e)}")


@router.post("/api/performance/compare")
async def compare_players(
    payload: ComparePlayersRequest,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Side-by-side averages for 2-5 players (staff)."""
    try:
        return await performance_service.compare_players(session, payload.player_ids, payload.days)
    except ValueError as e:
        raise _not_found_or_bad_request(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error comparing players: {str(e)}")


@router.get("/api/players/{player_id}/performance")
async def list_player_metrics(
    player_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await performance_service.list_player_metrics(session, player_id, date_from, date_to)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading metrics: {str(e)}")


@router.get("/api/players/{player_id}/performance/summary")
async def get_player_summary(
    player_id: int,
    days: int = 30,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await performance_service.get_player_summary(session, player_id, days=days)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading summary: {str(e)}")


@router.get("/api/players/{player_id}/performance/trend")
async def get_monthly_trend(
    player_id: int,
    months: int = 6,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await require_player_access(session, player_id, current_user)
        return await performance_service.get_monthly_trend(session, player_id, months=months)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading trend: {str(e)}")


@router.get("/api/players/{player_id}/benchmarks")
async def benchmark_player(
    player_id: int,
    days: int = 90,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Player averages compared with the benchmarks for their position and age group."""
    try:
        await require_player_access(session, player_id, current_user)
        return await benchmark_service.benchmark_player(session, player_id, days=days)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error benchmarking player: {str(e)}")


@router.get("/api/players/{player_id}/talent")
async def get_talent_report(
    player_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    """Talent score, projected level and market value estimate (staff)."""
    try:
        return await benchmark_service.get_talent_report(session, player_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error building talent report: {str(e)}")


@router.get("/api/benchmarks")
async def get_benchmarks(
    position: Optional[str] = None,
    age_group: Optional[str] = None,
    current_user: dict = Depends(require_approved_user),
):
    try:
        return benchmark_service.get_benchmarks(position, age_group)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading benchmarks: {str(e)}")


@router.get("/api/teams/{team_id}/performance")
async def get_team_averages(
    team_id: int,
    days: Optional[int] = None,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await performance_service.get_team_averages(session, team_id, days=days)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading team averages: {str(e)}")
