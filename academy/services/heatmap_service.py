"""
Heatmap rendering and GPS movement maths.

Heatmap points are ``{x, y, intensity}`` with x/y as pitch percentages and
intensity in 0-1. Rendering builds an alpha intensity map from a radial brush
per point, then colours it through a 256-entry gradient lookup.
"""

import io
import math
from typing import Dict, List, Optional, Sequence, Tuple
from PIL import Image, ImageChops, ImageDraw
from academy.utils.constants import EARTH_RADIUS_M
import logging

logger = logging.getLogger(__name__)

DEFAULT_GRADIENT = {
    0.0: "#0000ff",
    0.2: "#00ffff",
    0.4: "#00ff00",
    0.6: "#ffff00",
    0.8: "#ff8800",
    1.0: "#ff0000",
}
DEFAULT_RADIUS = 40
DEFAULT_OPACITY = 0.6
DEFAULT_WIDTH = 600
DEFAULT_HEIGHT = 400
PITCH_GREEN = (34, 102, 51, 255)
PITCH_LINE = (255, 255, 255, 160)


def hex_to_rgb(value: str) -> Tuple[int, int, int]:
    value = value.lstrip("#")
    if len(value) != 6:
        return 0, 0, 0
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        return 0, 0, 0


def build_gradient_lookup(gradient: Optional[Dict[float, str]] = None) -> List[Tuple[int, int, int]]:
    """256 RGB colours linearly interpolated between the gradient stops."""
    gradient = gradient or DEFAULT_GRADIENT
    stops = sorted(gradient)
    lookup = []
    for i in range(256):
        position = i / 255
        lower, upper = stops[0], stops[-1]
        for j in range(len(stops) - 1):
            if stops[j] <= position <= stops[j + 1]:
                lower, upper = stops[j], stops[j + 1]
                break
        span = upper - lower
        factor = 0 if span == 0 else (position - lower) / span
        lo = hex_to_rgb(gradient[lower])
        hi = hex_to_rgb(gradient[upper])
        lookup.append(tuple(int(round(lo[c] + (hi[c] - lo[c]) * factor)) for c in range(3)))
    return lookup


def _radial_brush(radius: int) -> Image.Image:
    """Greyscale brush fading linearly from 255 at the centre to 0 at ``radius``."""
    size = radius * 2
    data = []
    for py in range(size):
        for px in range(size):
            d = math.hypot(px + 0.5 - radius, py + 0.5 - radius)
            data.append(int(round(max(0.0, 1 - d / radius) * 255)))
    brush = Image.new("L", (size, size))
    brush.putdata(data)
    return brush


def build_intensity_map(
    points: Sequence[Dict],
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    radius: int = DEFAULT_RADIUS,
    max_intensity: float = 1.0,
) -> Image.Image:
    """
    Alpha map of all points. Overlapping brushes combine like stacked
    translucent layers (screen blend), so values never exceed 255.
    """
    intensity = Image.new("L", (width, height), 0)
    if not points:
        return intensity
    brush = _radial_brush(radius)
    for point in points:
        strength = max(0.0, min(float(point.get("intensity", 1) or 0), max_intensity)) / max_intensity
        if strength <= 0:
            continue
        cx = int(round(float(point["x"]) / 100 * width))
        cy = int(round(float(point["y"]) / 100 * height))
        box = (cx - radius, cy - radius, cx + radius, cy + radius)
        scaled = brush.point(lambda v, s=strength: int(v * s))
        region = intensity.crop(box)
        intensity.paste(ImageChops.screen(region, scaled), box)
    return intensity


def _draw_pitch(width: int, height: int) -> Image.Image:
    pitch = Image.new("RGBA", (width, height), PITCH_GREEN)
    draw = ImageDraw.Draw(pitch)
    margin = 4
    draw.rectangle((margin, margin, width - margin, height - margin), outline=PITCH_LINE, width=2)
    draw.line((width // 2, margin, width // 2, height - margin), fill=PITCH_LINE, width=2)
    r = min(width, height) // 8
    draw.ellipse((width // 2 - r, height // 2 - r, width // 2 + r, height // 2 + r), outline=PITCH_LINE, width=2)
    box_w, box_h = width // 7, height // 2
    draw.rectangle((margin, (height - box_h) // 2, margin + box_w, (height + box_h) // 2), outline=PITCH_LINE, width=2)
    draw.rectangle(
        (width - margin - box_w, (height - box_h) // 2, width - margin, (height + box_h) // 2),
        outline=PITCH_LINE,
        width=2,
    )
    return pitch


def render_heatmap(
    points: Sequence[Dict],
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    radius: int = DEFAULT_RADIUS,
    opacity: float = DEFAULT_OPACITY,
    gradient: Optional[Dict[float, str]] = None,
    with_pitch: bool = True,
) -> bytes:
    """
    Render points to PNG bytes.

    Args:
        radius: Brush radius in pixels
        opacity: Multiplier applied to every pixel's alpha (0-1)
        with_pitch: Composite the heatmap over a drawn pitch
    """
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive")
    if radius <= 0:
        raise ValueError("radius must be positive")
    opacity = max(0.0, min(1.0, opacity))

    intensity = build_intensity_map(points, width, height, radius)
    lookup = build_gradient_lookup(gradient)
    red = intensity.point([c[0] for c in lookup])
    green = intensity.point([c[1] for c in lookup])
    blue = intensity.point([c[2] for c in lookup])
    alpha = intensity.point(lambda v: int(v * opacity))
    heat = Image.merge("RGBA", (red, green, blue, alpha))

    image = Image.alpha_composite(_draw_pitch(width, height), heat) if with_pitch else heat
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def build_intensity_grid(points: Sequence[Dict], cols: int = 20, rows: int = 12) -> Dict:
    """
    Bucket points into a ``rows`` x ``cols`` grid normalised to a max of 1.

    Returns:
        Dict with ``cols``, ``rows``, ``cells`` (row-major lists) and ``max``
        (the raw maximum before normalisation)
    """
    if cols <= 0 or rows <= 0:
        raise ValueError("cols and rows must be positive")
    grid = [[0.0] * cols for _ in range(rows)]
    for point in points:
        col = min(cols - 1, max(0, int(float(point["x"]) / 100 * cols)))
        row = min(rows - 1, max(0, int(float(point["y"]) / 100 * rows)))
        grid[row][col] += float(point.get("intensity", 1) or 0)
    peak = max((value for row in grid for value in row), default=0)
    cells = [[round(value / peak, 3) if peak else 0 for value in row] for row in grid]
    return {"cols": cols, "rows": rows, "cells": cells, "max": round(peak, 3)}


# ============================================================================
# GPS
# ============================================================================


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def movement_stats(points: Sequence[Dict]) -> Dict:
    """
    Distance and speed from ordered GPS samples ``{lat, lon, ts}`` with ``ts``
    in seconds.

    Returns:
        Dict with ``total_distance_km``, ``avg_speed_kmh`` (total distance over
        total time) and ``max_speed_kmh`` (fastest segment)
    """
    total_m = 0.0
    max_speed = 0.0
    for prev, cur in zip(points, points[1:]):
        segment = haversine_distance(prev["lat"], prev["lon"], cur["lat"], cur["lon"])
        total_m += segment
        dt = (cur.get("ts") or 0) - (prev.get("ts") or 0)
        if dt > 0:
            max_speed = max(max_speed, segment / dt * 3.6)

    duration = 0
    if len(points) > 1:
        duration = (points[-1].get("ts") or 0) - (points[0].get("ts") or 0)
    avg_speed = total_m / duration * 3.6 if duration > 0 else 0.0
    return {
        "points": len(points),
        "total_distance_km": round(total_m / 1000, 2),
        "avg_speed_kmh": round(avg_speed, 1),
        "max_speed_kmh": round(max_speed, 1),
        "duration_seconds": duration,
    }


def gps_to_pitch_points(
    points: Sequence[Dict], bounds: Dict[str, float], intensity: float = 0.5
) -> List[Dict]:
    """
    Project GPS samples onto pitch percentages using the pitch's bounding box
    ``{min_lat, max_lat, min_lon, max_lon}``. Samples outside the box are dropped.
    """
    lat_span = bounds["max_lat"] - bounds["min_lat"]
    lon_span = bounds["max_lon"] - bounds["min_lon"]
    if lat_span <= 0 or lon_span <= 0:
        raise ValueError("Invalid pitch bounds")
    projected = []
    for point in points:
        x = (point["lon"] - bounds["min_lon"]) / lon_span * 100
        y = (bounds["max_lat"] - point["lat"]) / lat_span * 100
        if 0 <= x <= 100 and 0 <= y <= 100:
            projected.append({"x": round(x, 1), "y": round(y, 1), "intensity": intensity})
    return projected
