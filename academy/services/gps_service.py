"""
GPS tracker records and stored player heatmaps.
"""

from datetime import date
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import GpsTrackerData, PlayerHeatmap, Player
from academy.services import heatmap_service
import logging

logger = logging.getLogger(__name__)

GPS_FIELDS = (
    "device_type",
    "total_distance",
    "max_speed",
    "avg_speed",
    "sprint_count",
    "high_intensity_distance",
    "player_load",
)


def _gps_to_dict(record: GpsTrackerData, include_points: bool = False) -> Dict:
    data = {
        "id": record.id,
        "player_id": record.player_id,
        "session_date": record.session_date.isoformat() if record.session_date else None,
        "device_type": record.device_type,
        "total_distance": record.total_distance,
        "max_speed": record.max_speed,
        "avg_speed": record.avg_speed,
        "sprint_count": record.sprint_count,
        "high_intensity_distance": record.high_intensity_distance,
        "player_load": record.player_load,
        "point_count": len(record.raw_points or []),
    }
    if include_points:
        data["raw_points"] = record.raw_points or []
    return data


def _heatmap_to_dict(heatmap: PlayerHeatmap) -> Dict:
    return {
        "id": heatmap.id,
        "player_id": heatmap.player_id,
        "match_id": heatmap.match_id,
        "session_date": heatmap.session_date.isoformat() if heatmap.session_date else None,
        "points": heatmap.points or [],
        "image_url": heatmap.image_url,
    }


async def _ensure_player(session: AsyncSession, player_id: int):
    result = await session.execute(select(Player.id).where(Player.id == player_id))
    if result.scalar_one_or_none() is None:
        raise ValueError(f"Player {player_id} not found")


async def create_gps_record(
    session: AsyncSession,
    player_id: int,
    session_date: date,
    raw_points: Optional[List[Dict]] = None,
    **fields,
) -> Dict:
    """
    Store a tracker session. When raw points are given and distance/speed are
    not, they are computed from the points.
    """
    await _ensure_player(session, player_id)
    values = {k: fields[k] for k in GPS_FIELDS if fields.get(k) is not None}
    for key in ("total_distance", "max_speed", "avg_speed", "sprint_count", "high_intensity_distance"):
        if values.get(key) is not None and values[key] < 0:
            raise ValueError(f"{key} cannot be negative")

    if raw_points and len(raw_points) > 1:
        stats = heatmap_service.movement_stats(raw_points)
        values.setdefault("total_distance", round(stats["total_distance_km"] * 1000, 1))
        values.setdefault("max_speed", stats["max_speed_kmh"])
        values.setdefault("avg_speed", stats["avg_speed_kmh"])

    record = GpsTrackerData(
        player_id=player_id, session_date=session_date, raw_points=raw_points, **values
    )
    session.add(record)
    await session.flush()
    await session.refresh(record)
    return _gps_to_dict(record)


async def get_gps_record(session: AsyncSession, record_id: int) -> Optional[Dict]:
    result = await session.execute(select(GpsTrackerData).where(GpsTrackerData.id == record_id))
    record = result.scalar_one_or_none()
    return _gps_to_dict(record, include_points=True) if record else None


async def list_player_gps(session: AsyncSession, player_id: int, limit: int = 50) -> List[Dict]:
    result = await session.execute(
        select(GpsTrackerData)
        .where(GpsTrackerData.player_id == player_id)
        .order_by(GpsTrackerData.session_date.desc(), GpsTrackerData.id.desc())
        .limit(limit)
    )
    return [_gps_to_dict(r) for r in result.scalars().all()]


async def delete_gps_record(session: AsyncSession, record_id: int) -> bool:
    result = await session.execute(select(GpsTrackerData).where(GpsTrackerData.id == record_id))
    record = result.scalar_one_or_none()
    if not record:
        raise ValueError(f"GPS record {record_id} not found")
    await session.delete(record)
    await session.flush()
    return True


def _validate_heatmap_points(points: List[Dict]) -> List[Dict]:
    cleaned = []
    for point in points:
        if "x" not in point or "y" not in point:
            raise ValueError("Heatmap points need x and y")
        cleaned.append({
            "x": max(0.0, min(100.0, float(point["x"]))),
            "y": max(0.0, min(100.0, float(point["y"]))),
            "intensity": max(0.0, min(1.0, float(point.get("intensity", 1)))),
        })
    return cleaned


async def save_heatmap(
    session: AsyncSession,
    player_id: int,
    session_date: date,
    points: List[Dict],
    match_id: Optional[int] = None,
    image_url: Optional[str] = None,
) -> Dict:
    await _ensure_player(session, player_id)
    if not points:
        raise ValueError("points are required")
    heatmap = PlayerHeatmap(
        player_id=player_id,
        match_id=match_id,
        session_date=session_date,
        points=_validate_heatmap_points(points),
        image_url=image_url,
    )
    session.add(heatmap)
    await session.flush()
    await session.refresh(heatmap)
    return _heatmap_to_dict(heatmap)


async def get_heatmap(session: AsyncSession, heatmap_id: int) -> Optional[Dict]:
    result = await session.execute(select(PlayerHeatmap).where(PlayerHeatmap.id == heatmap_id))
    heatmap = result.scalar_one_or_none()
    return _heatmap_to_dict(heatmap) if heatmap else None


async def list_player_heatmaps(
    session: AsyncSession, player_id: int, match_id: Optional[int] = None
) -> List[Dict]:
    query = select(PlayerHeatmap).where(PlayerHeatmap.player_id == player_id)
    if match_id is not None:
        query = query.where(PlayerHeatmap.match_id == match_id)
    result = await session.execute(
        query.order_by(PlayerHeatmap.session_date.desc(), PlayerHeatmap.id.desc())
    )
    return [_heatmap_to_dict(h) for h in result.scalars().all()]


async def delete_heatmap(session: AsyncSession, heatmap_id: int) -> bool:
    result = await session.execute(select(PlayerHeatmap).where(PlayerHeatmap.id == heatmap_id))
    heatmap = result.scalar_one_or_none()
    if not heatmap:
        raise ValueError(f"Heatmap {heatmap_id} not found")
    await session.delete(heatmap)
    await session.flush()
    return True
