"""
Performance metric service: per-session records, player summaries, team
averages, monthly trends and player comparisons.
"""

from collections import OrderedDict
from datetime import date, timedelta
from typing import Optional, Dict, List, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import PerformanceMetric, Player, SessionType
from academy.utils.constants import SCORE_MIN, SCORE_MAX
from academy.utils.number_utils import round_int
from academy.utils.datetime_utils import today_utc, months_ago
import logging

logger = logging.getLogger(__name__)

VALID_SESSION_TYPES = {t.value for t in SessionType}

# Values that are percentages or 0-100 scores
PERCENT_FIELDS = (
    "pass_accuracy",
    "technical_score",
    "physical_score",
    "tactical_score",
    "overall_score",
)

# Counters and distances that can never be negative
COUNT_FIELDS = (
    "touches",
    "passes",
    "shots",
    "shots_on_target",
    "dribbles",
    "successful_dribbles",
    "distance_covered",
    "sprints",
    "accelerations",
    "decelerations",
    "possession_won",
    "possession_lost",
    "interceptions",
    "tackles",
)

SCORE_FIELDS = ("technical_score", "physical_score", "tactical_score", "overall_score")
TOTAL_FIELDS = ("touches", "passes", "shots", "shots_on_target", "distance_covered", "sprints", "tackles")
AVERAGE_FIELDS = SCORE_FIELDS + (
    "pass_accuracy",
    "touches",
    "passes",
    "shots",
    "dribbles",
    "distance_covered",
    "sprints",
    "tackles",
    "interceptions",
)

TREND_THRESHOLD = 5


def clamp(value, low=SCORE_MIN, high=SCORE_MAX):
    return max(low, min(high, value))


def normalize_metric_values(fields: Dict) -> Dict:
    """
    Clamp percentages and scores to 0-100 and counts to >= 0.

    When ``overall_score`` is missing it becomes the rounded mean of the
    technical, physical and tactical scores.
    """
    values = dict(fields)
    for key in PERCENT_FIELDS:
        if values.get(key) is not None:
            values[key] = round_int(clamp(values[key]))
    for key in COUNT_FIELDS:
        if values.get(key) is not None:
            values[key] = int(max(0, values[key]))
    if values.get("top_speed") is not None:
        values["top_speed"] = round(max(0.0, float(values["top_speed"])), 1)
    if values.get("overall_score") is None:
        parts = [values.get(k) or 0 for k in ("technical_score", "physical_score", "tactical_score")]
        values["overall_score"] = round_int(sum(parts) / 3)
    return values


def _metric_to_dict(metric: PerformanceMetric) -> Dict:
    data = {
        "id": metric.id,
        "player_id": metric.player_id,
        "session_date": metric.session_date.isoformat() if metric.session_date else None,
        "session_type": metric.session_type,
        "top_speed": metric.top_speed,
        "notes": metric.notes,
        "recorded_by": metric.recorded_by,
    }
    for key in COUNT_FIELDS + PERCENT_FIELDS:
        data[key] = getattr(metric, key)
    return data


async def _ensure_player(session: AsyncSession, player_id: int):
    result = await session.execute(select(Player.id).where(Player.id == player_id))
    if result.scalar_one_or_none() is None:
        raise ValueError(f"Player {player_id} not found")


async def create_metric(
    session: AsyncSession,
    player_id: int,
    session_date: date,
    session_type: str,
    recorded_by: Optional[int] = None,
    **fields,
) -> Dict:
    """
    Record a session's metrics for a player.

    Raises:
        ValueError: If the player does not exist or the session type is unknown
    """
    if session_type not in VALID_SESSION_TYPES:
        raise ValueError(f"Invalid session type: {session_type}")
    if not session_date:
        raise ValueError("session_date is required")
    await _ensure_player(session, player_id)

    allowed = set(COUNT_FIELDS + PERCENT_FIELDS + ("top_speed", "notes"))
    values = normalize_metric_values({k: v for k, v in fields.items() if k in allowed})
    metric = PerformanceMetric(
        player_id=player_id,
        session_date=session_date,
        session_type=session_type,
        recorded_by=recorded_by,
        **{k: v for k, v in values.items() if v is not None},
    )
    session.add(metric)
    await session.flush()
    await session.refresh(metric)
    return _metric_to_dict(metric)


async def _get_metric_model(session: AsyncSession, metric_id: int) -> PerformanceMetric:
    result = await session.execute(select(PerformanceMetric).where(PerformanceMetric.id == metric_id))
    metric = result.scalar_one_or_none()
    if not metric:
        raise ValueError(f"Performance metric {metric_id} not found")
    return metric


async def get_metric(session: AsyncSession, metric_id: int) -> Optional[Dict]:
    result = await session.execute(select(PerformanceMetric).where(PerformanceMetric.id == metric_id))
    metric = result.scalar_one_or_none()
    return _metric_to_dict(metric) if metric else None


async def update_metric(session: AsyncSession, metric_id: int, **fields) -> Dict:
    """
    Update a metric. Clamping applies to the updated values; the overall
    score is recomputed from the category scores unless it is supplied.
    """
    metric = await _get_metric_model(session, metric_id)
    if fields.get("session_type") is not None and fields["session_type"] not in VALID_SESSION_TYPES:
        raise ValueError(f"Invalid session type: {fields['session_type']}")

    merged = {k: getattr(metric, k) for k in COUNT_FIELDS + PERCENT_FIELDS + ("top_speed",)}
    merged.update({k: v for k, v in fields.items() if v is not None})
    if fields.get("overall_score") is None and any(
        fields.get(k) is not None for k in ("technical_score", "physical_score", "tactical_score")
    ):
        merged["overall_score"] = None
    values = normalize_metric_values(merged)

    for key in COUNT_FIELDS + PERCENT_FIELDS + ("top_speed",):
        setattr(metric, key, values[key])
    for key in ("session_date", "session_type", "notes"):
        if fields.get(key) is not None:
            setattr(metric, key, fields[key])
    await session.flush()
    await session.refresh(metric)
    return _metric_to_dict(metric)


async def delete_metric(session: AsyncSession, metric_id: int) -> bool:
    metric = await _get_metric_model(session, metric_id)
    await session.delete(metric)
    await session.flush()
    return True


async def _player_metrics(
    session: AsyncSession,
    player_ids: Iterable[int],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[PerformanceMetric]:
    query = select(PerformanceMetric).where(PerformanceMetric.player_id.in_(list(player_ids)))
    if date_from:
        query = query.where(PerformanceMetric.session_date >= date_from)
    if date_to:
        query = query.where(PerformanceMetric.session_date <= date_to)
    result = await session.execute(
        query.order_by(PerformanceMetric.session_date, PerformanceMetric.id)
    )
    return list(result.scalars().all())


async def list_player_metrics(
    session: AsyncSession,
    player_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[Dict]:
    """A player's metrics, newest session first."""
    metrics = await _player_metrics(session, [player_id], date_from, date_to)
    return [_metric_to_dict(m) for m in reversed(metrics)]


def _mean(values: List[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0


def _averages(metrics: List[PerformanceMetric], fields=AVERAGE_FIELDS) -> Dict:
    return {f"avg_{key}": _mean([getattr(m, key) or 0 for m in metrics]) for key in fields}


def compute_trend(overall_scores: List[float]) -> str:
    """
    Compare the mean of the newer half of scores (chronological input) with
    the older half. A difference of at least TREND_THRESHOLD points marks
    improving or declining.
    """
    if len(overall_scores) < 2:
        return "stable"
    middle = len(overall_scores) // 2
    older = overall_scores[:middle]
    newer = overall_scores[middle:]
    diff = sum(newer) / len(newer) - sum(older) / len(older)
    if diff >= TREND_THRESHOLD:
        return "improving"
    if diff <= -TREND_THRESHOLD:
        return "declining"
    return "stable"


def summarize_metrics(metrics: List[PerformanceMetric]) -> Dict:
    """Averages, totals, best top speed and trend for chronologically ordered metrics."""
    summary = {
        "sessions": len(metrics),
        **_averages(metrics),
        "totals": {key: sum(getattr(m, key) or 0 for m in metrics) for key in TOTAL_FIELDS},
        "best_top_speed": max((m.top_speed or 0 for m in metrics), default=0),
        "trend": compute_trend([m.overall_score for m in metrics]),
        "last_session_date": metrics[-1].session_date.isoformat() if metrics else None,
    }
    return summary


async def get_player_summary(
    session: AsyncSession, player_id: int, days: int = 30, reference_date: Optional[date] = None
) -> Dict:
    """
    Summary of a player's sessions within the last ``days`` days.

    Raises:
        ValueError: If the player does not exist
    """
    await _ensure_player(session, player_id)
    reference_date = reference_date or today_utc()
    metrics = await _player_metrics(
        session, [player_id], reference_date - timedelta(days=days), reference_date
    )
    return {"player_id": player_id, "days": days, **summarize_metrics(metrics)}


async def get_team_averages(
    session: AsyncSession, team_id: int, days: Optional[int] = None
) -> Dict:
    """
    Score averages across a team plus per-player averages, best first.
    """
    result = await session.execute(select(Player).where(Player.team_id == team_id))
    players = {p.id: p for p in result.scalars().all()}
    date_from = today_utc() - timedelta(days=days) if days else None
    metrics = await _player_metrics(session, players.keys(), date_from) if players else []

    by_player: Dict[int, List[PerformanceMetric]] = {}
    for metric in metrics:
        by_player.setdefault(metric.player_id, []).append(metric)

    player_rows = [
        {
            "player_id": pid,
            "name": f"{players[pid].first_name} {players[pid].last_name}",
            "sessions": len(rows),
            **_averages(rows, SCORE_FIELDS),
        }
        for pid, rows in by_player.items()
    ]
    player_rows.sort(key=lambda row: row["avg_overall_score"], reverse=True)
    return {
        "team_id": team_id,
        "player_count": len(players),
        "sessions": len(metrics),
        **_averages(metrics, SCORE_FIELDS + ("pass_accuracy", "distance_covered")),
        "players": player_rows,
    }


async def get_monthly_trend(
    session: AsyncSession, player_id: int, months: int = 6, reference_date: Optional[date] = None
) -> List[Dict]:
    """
    Monthly average scores for the last ``months`` calendar months, oldest
    first. Months without sessions are omitted.
    """
    reference_date = reference_date or today_utc()
    start = months_ago(reference_date, max(0, months - 1))
    metrics = await _player_metrics(session, [player_id], start, reference_date)

    grouped: "OrderedDict[str, List[PerformanceMetric]]" = OrderedDict()
    for metric in metrics:
        grouped.setdefault(metric.session_date.strftime("%Y-%m"), []).append(metric)
    return [
        {"month": month, "sessions": len(rows), **_averages(rows, SCORE_FIELDS)}
        for month, rows in grouped.items()
    ]


async def compare_players(
    session: AsyncSession, player_ids: List[int], days: Optional[int] = None
) -> List[Dict]:
    """
    Side-by-side averages for 2-5 players.

    Raises:
        ValueError: If fewer than 2 or more than 5 distinct players are given,
            or a player does not exist
    """
    unique_ids = list(dict.fromkeys(player_ids))
    if not 2 <= len(unique_ids) <= 5:
        raise ValueError("Select between 2 and 5 players to compare")

    result = await session.execute(select(Player).where(Player.id.in_(unique_ids)))
    players = {p.id: p for p in result.scalars().all()}
    missing = [pid for pid in unique_ids if pid not in players]
    if missing:
        raise ValueError(f"Player {missing[0]} not found")

    date_from = today_utc() - timedelta(days=days) if days else None
    comparison = []
    for pid in unique_ids:
        metrics = await _player_metrics(session, [pid], date_from)
        player = players[pid]
        comparison.append({
            "player_id": pid,
            "name": f"{player.first_name} {player.last_name}",
            "position": player.position,
            **summarize_metrics(metrics),
        })
    return comparison
