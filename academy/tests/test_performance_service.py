"""
Tests for performance_service: normalisation, summaries, trends and comparisons.
"""

from datetime import date, timedelta

import pytest

from academy.services import performance_service, player_service


# ============================================================================
# Pure helpers
# ============================================================================


class TestNormalizeMetricValues:
    def test_clamps_percentages_and_counts(self):
        values = performance_service.normalize_metric_values(
            {"pass_accuracy": 130, "technical_score": -5, "sprints": -3, "top_speed": 28.46}
        )
        assert values["pass_accuracy"] == 100
        assert values["technical_score"] == 0
        assert values["sprints"] == 0
        assert values["top_speed"] == 28.5

    def test_overall_defaults_to_mean_of_parts(self):
        values = performance_service.normalize_metric_values(
            {"technical_score": 80, "physical_score": 70, "tactical_score": 61}
        )
        assert values["overall_score"] == 70

    def test_explicit_overall_is_kept(self):
        values = performance_service.normalize_metric_values(
            {"technical_score": 80, "physical_score": 70, "tactical_score": 60, "overall_score": 90}
        )
        assert values["overall_score"] == 90


class TestComputeTrend:
    def test_single_session_is_stable(self):
        assert performance_service.compute_trend([70]) == "stable"

    def test_improving(self):
        assert performance_service.compute_trend([60, 62, 70, 72]) == "improving"

    def test_declining(self):
        assert performance_service.compute_trend([80, 78, 70, 69]) == "declining"

    def test_small_change_is_stable(self):
        assert performance_service.compute_trend([70, 71, 73, 72]) == "stable"


# ============================================================================
# Database-backed
# ============================================================================


@pytest.mark.asyncio
async def test_create_metric_validation(db_session, player):
    with pytest.raises(ValueError):
        await performance_service.create_metric(db_session, player["id"], date(2026, 1, 1), "friendly")
    with pytest.raises(ValueError, match="not found"):
        await performance_service.create_metric(db_session, 999, date(2026, 1, 1), "training")


@pytest.mark.asyncio
async def test_player_summary_window_and_trend(db_session, player):
    today = date(2026, 3, 31)
    scores = [60, 62, 75, 78]
    for offset, score in enumerate(scores):
        await performance_service.create_metric(
            db_session,
            player["id"],
            today - timedelta(days=(len(scores) - offset) * 5),
            "training",
            overall_score=score,
            distance_covered=5000,
            top_speed=25 + offset,
        )
    # Outside a 30-day window
    await performance_service.create_metric(
        db_session, player["id"], today - timedelta(days=90), "match", overall_score=10
    )

    summary = await performance_service.get_player_summary(
        db_session, player["id"], days=30, reference_date=today
    )
    assert summary["sessions"] == 4
    assert summary["avg_overall_score"] == 68.8
    assert summary["totals"]["distance_covered"] == 20000
    assert summary["best_top_speed"] == 28
    assert summary["trend"] == "improving"


@pytest.mark.asyncio
async def test_player_summary_unknown_player(db_session):
    with pytest.raises(ValueError, match="not found"):
        await performance_service.get_player_summary(db_session, 4242)


@pytest.mark.asyncio
async def test_update_metric_renormalizes(db_session, player):
    metric = await performance_service.create_metric(
        db_session, player["id"], date(2026, 2, 1), "training", pass_accuracy=80
    )
    updated = await performance_service.update_metric(db_session, metric["id"], pass_accuracy=150)
    assert updated["pass_accuracy"] == 100


@pytest.mark.asyncio
async def test_monthly_trend_groups_by_month(db_session, player):
    reference = date(2026, 3, 15)
    for session_date, score in [
        (date(2026, 1, 10), 60),
        (date(2026, 1, 20), 70),
        (date(2026, 3, 5), 80),
    ]:
        await performance_service.create_metric(
            db_session, player["id"], session_date, "training", overall_score=score
        )

    trend = await performance_service.get_monthly_trend(
        db_session, player["id"], months=6, reference_date=reference
    )
    assert [row["month"] for row in trend] == ["2026-01", "2026-03"]
    assert trend[0]["sessions"] == 2
    assert trend[0]["avg_overall_score"] == 65


@pytest.mark.asyncio
async def test_team_averages_rank_players(db_session, team, player):
    other = await player_service.create_player(
        db_session,
        first_name="Ali",
        last_name="Zahrani",
        date_of_birth=date(2012, 4, 4),
        position="defender",
        team_id=team["id"],
    )
    await performance_service.create_metric(db_session, player["id"], date(2026, 1, 1), "training", overall_score=60)
    await performance_service.create_metric(db_session, other["id"], date(2026, 1, 1), "training", overall_score=90)

    averages = await performance_service.get_team_averages(db_session, team["id"])
    assert averages["player_count"] == 2
    assert averages["sessions"] == 2
    assert averages["avg_overall_score"] == 75
    assert [row["player_id"] for row in averages["players"]] == [other["id"], player["id"]]


@pytest.mark.asyncio
async def test_compare_players_bounds(db_session, team, player):
    with pytest.raises(ValueError, match="between 2 and 5"):
        await performance_service.compare_players(db_session, [player["id"], player["id"]])
    with pytest.raises(ValueError, match="not found"):
        await performance_service.compare_players(db_session, [player["id"], 777])

    other = await player_service.create_player(
        db_session,
        first_name="Ali",
        last_name="Zahrani",
        date_of_birth=date(2012, 4, 4),
        position="defender",
        team_id=team["id"],
    )
    comparison = await performance_service.compare_players(db_session, [player["id"], other["id"]])
    assert [row["player_id"] for row in comparison] == [player["id"], other["id"]]
    assert comparison[1]["sessions"] == 0
