"""
Tests for heatmap rendering, GPS movement maths and stored GPS/heatmap records.
"""

import io
from datetime import date

import pytest
from PIL import Image

from academy.services import gps_service, heatmap_service


class TestGradient:
    def test_hex_to_rgb(self):
        assert heatmap_service.hex_to_rgb("#ff8800") == (255, 136, 0)

    def test_bad_hex_is_black(self):
        assert heatmap_service.hex_to_rgb("#zzz") == (0, 0, 0)
        assert heatmap_service.hex_to_rgb("#gggggg") == (0, 0, 0)

    def test_lookup_endpoints(self):
        lookup = heatmap_service.build_gradient_lookup()
        assert len(lookup) == 256
        assert lookup[0] == (0, 0, 255)
        assert lookup[255] == (255, 0, 0)


class TestIntensityMap:
    def test_empty_points(self):
        intensity = heatmap_service.build_intensity_map([], width=60, height=40)
        assert intensity.getextrema() == (0, 0)

    def test_point_peaks_at_its_centre(self):
        intensity = heatmap_service.build_intensity_map(
            [{"x": 50, "y": 50, "intensity": 1}], width=200, height=100, radius=20
        )
        assert intensity.getpixel((100, 50)) > 240
        assert intensity.getpixel((0, 0)) == 0

    def test_overlap_never_exceeds_max(self):
        points = [{"x": 50, "y": 50, "intensity": 0.6}] * 5
        intensity = heatmap_service.build_intensity_map(points, width=200, height=100, radius=20)
        single = heatmap_service.build_intensity_map(points[:1], width=200, height=100, radius=20)
        assert single.getpixel((100, 50)) < intensity.getpixel((100, 50)) <= 255

    def test_zero_intensity_is_skipped(self):
        intensity = heatmap_service.build_intensity_map(
            [{"x": 50, "y": 50, "intensity": 0}], width=60, height=40
        )
        assert intensity.getextrema() == (0, 0)


def test_render_heatmap_png():
    data = heatmap_service.render_heatmap([{"x": 30, "y": 40, "intensity": 0.8}], width=120, height=80, radius=10)
    assert data.startswith(b"\x89PNG")
    image = Image.open(io.BytesIO(data))
    assert image.size == (120, 80)
    assert image.mode == "RGBA"


def test_render_heatmap_rejects_bad_size():
    with pytest.raises(ValueError):
        heatmap_service.render_heatmap([], width=0)
    with pytest.raises(ValueError):
        heatmap_service.render_heatmap([], radius=0)


def test_intensity_grid_normalises_to_peak():
    grid = heatmap_service.build_intensity_grid(
        [{"x": 0, "y": 0}, {"x": 10, "y": 10}, {"x": 99, "y": 99}], cols=2, rows=2
    )
    assert grid["max"] == 2.0
    assert grid["cells"] == [[1.0, 0.0], [0.0, 0.5]]


class TestGpsMaths:
    def test_haversine_one_degree_latitude(self):
        assert heatmap_service.haversine_distance(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)

    def test_movement_stats(self):
        stats = heatmap_service.movement_stats(
            [{"lat": 0.0, "lon": 0.0, "ts": 0}, {"lat": 0.001, "lon": 0.0, "ts": 20}]
        )
        assert stats["points"] == 2
        assert stats["total_distance_km"] == 0.11
        assert stats["max_speed_kmh"] == 20.0
        assert stats["avg_speed_kmh"] == 20.0
        assert stats["duration_seconds"] == 20

    def test_single_sample_has_no_movement(self):
        stats = heatmap_service.movement_stats([{"lat": 24.7, "lon": 46.6, "ts": 0}])
        assert stats["total_distance_km"] == 0
        assert stats["avg_speed_kmh"] == 0

    def test_gps_to_pitch_points_drops_outside(self):
        bounds = {"min_lat": 0.0, "max_lat": 1.0, "min_lon": 0.0, "max_lon": 1.0}
        projected = heatmap_service.gps_to_pitch_points(
            [{"lat": 0.75, "lon": 0.25}, {"lat": 2.0, "lon": 0.5}], bounds
        )
        assert projected == [{"x": 25.0, "y": 25.0, "intensity": 0.5}]

    def test_gps_to_pitch_points_invalid_bounds(self):
        with pytest.raises(ValueError, match="Invalid pitch bounds"):
            heatmap_service.gps_to_pitch_points([], {"min_lat": 1, "max_lat": 1, "min_lon": 0, "max_lon": 1})


# ============================================================================
# Database-backed
# ============================================================================


@pytest.mark.asyncio
async def test_gps_record_derives_stats_from_points(db_session, player):
    record = await gps_service.create_gps_record(
        db_session,
        player["id"],
        date(2026, 2, 1),
        raw_points=[{"lat": 0.0, "lon": 0.0, "ts": 0}, {"lat": 0.001, "lon": 0.0, "ts": 20}],
        device_type="catapult",
    )
    assert record["total_distance"] == 110.0
    assert record["max_speed"] == 20.0
    assert record["point_count"] == 2

    stored = await gps_service.get_gps_record(db_session, record["id"])
    assert len(stored["raw_points"]) == 2


@pytest.mark.asyncio
async def test_gps_record_rejects_negative_values(db_session, player):
    with pytest.raises(ValueError, match="cannot be negative"):
        await gps_service.create_gps_record(db_session, player["id"], date(2026, 2, 1), total_distance=-1)


@pytest.mark.asyncio
async def test_save_heatmap_clamps_points(db_session, player):
    heatmap = await gps_service.save_heatmap(
        db_session, player["id"], date(2026, 2, 1), [{"x": 120, "y": -4, "intensity": 3}]
    )
    assert heatmap["points"] == [{"x": 100.0, "y": 0.0, "intensity": 1.0}]

    listed = await gps_service.list_player_heatmaps(db_session, player["id"])
    assert [h["id"] for h in listed] == [heatmap["id"]]

    with pytest.raises(ValueError, match="points are required"):
        await gps_service.save_heatmap(db_session, player["id"], date(2026, 2, 1), [])
