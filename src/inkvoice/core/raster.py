"""
Float RGB compositing primitives.

Surfaces are (H, W, 3) float32 arrays in [0, 1]. Every primitive works on
the clipped bounding box of its shape only, evaluates an antialiased
coverage mask there and composites in place with one of two blend modes:

- ``source-over``: classic alpha blend toward the source color.
- ``multiply``: blend toward ``dst * src``; can only darken the surface.

Gradient stops are ``(offset, (r, g, b), alpha)`` with unit-range colors,
interpolated per channel and clamped outside [0, 1] like a canvas
gradient.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from inkvoice.core.mathutil import is_finite

SOURCE_OVER = "source-over"
MULTIPLY = "multiply"

Color = Tuple[float, float, float]
Stop = Tuple[float, Color, float]


def new_surface(width: int, height: int, color: Color = (0.0, 0.0, 0.0)) -> np.ndarray:
    surface = np.empty((height, width, 3), dtype=np.float32)
    surface[:] = color
    return surface


def to_uint8(surface: np.ndarray) -> np.ndarray:
    """Quantize a float surface to (H, W, 3) uint8."""
    return (np.clip(surface, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


def _patch(surface: np.ndarray, xmin: float, ymin: float, xmax: float, ymax: float):
    """Clip a bounding box to the surface and return pixel-center grids."""
    if not is_finite(xmin, ymin, xmax, ymax):
        return None
    h, w = surface.shape[:2]
    ix0 = max(0, int(math.floor(xmin)))
    iy0 = max(0, int(math.floor(ymin)))
    ix1 = min(w, int(math.ceil(xmax)) + 1)
    iy1 = min(h, int(math.ceil(ymax)) + 1)
    if ix0 >= ix1 or iy0 >= iy1:
        return None
    xs = np.arange(ix0, ix1, dtype=np.float32)[None, :] + 0.5
    ys = np.arange(iy0, iy1, dtype=np.float32)[:, None] + 0.5
    return (slice(iy0, iy1), slice(ix0, ix1)), xs, ys


def _composite(
    surface: np.ndarray,
    window,
    color,
    alpha: np.ndarray,
    blend: str,
):
    region = surface[window]
    a = np.clip(alpha, 0.0, 1.0)[..., None]
    src = np.asarray(color, dtype=np.float32)
    if blend == MULTIPLY:
        src = region * src
    region += (src - region) * a


def _eval_stops(stops: Sequence[Stop], t: np.ndarray):
    offsets = np.array([s[0] for s in stops], dtype=np.float32)
    colors = np.array([s[1] for s in stops], dtype=np.float32)
    alphas = np.clip(np.array([s[2] for s in stops], dtype=np.float32), 0.0, 1.0)
    t = np.clip(t, 0.0, 1.0)
    alpha = np.interp(t, offsets, alphas)
    color = np.stack([np.interp(t, offsets, colors[:, c]) for c in range(3)], axis=-1)
    return color, alpha


def _ellipse_local(xs, ys, cx, cy, rotation):
    dx = xs - cx
    dy = ys - cy
    cos_r = math.cos(rotation)
    sin_r = math.sin(rotation)
    u = dx * cos_r + dy * sin_r
    v = -dx * sin_r + dy * cos_r
    return u, v


def _ellipse_coverage(xs, ys, cx, cy, rx, ry, rotation) -> np.ndarray:
    u, v = _ellipse_local(xs, ys, cx, cy, rotation)
    q = np.sqrt((u / rx) ** 2 + (v / ry) ** 2)
    return np.clip((1.0 - q) * min(rx, ry) + 0.5, 0.0, 1.0)


def stroke_line(
    surface: np.ndarray,
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    width: float,
    color: Color,
    alpha: float,
    blend: str = SOURCE_OVER,
):
    """Antialiased round-capped line segment."""
    if width <= 0 or alpha <= 0:
        return
    half = width / 2.0
    found = _patch(
        surface,
        min(x0, x1) - half - 1, min(y0, y1) - half - 1,
        max(x0, x1) + half + 1, max(y0, y1) + half + 1,
    )
    if found is None:
        return
    window, xs, ys = found

    sx = x1 - x0
    sy = y1 - y0
    seg_len2 = sx * sx + sy * sy
    if seg_len2 > 0:
        t = np.clip(((xs - x0) * sx + (ys - y0) * sy) / seg_len2, 0.0, 1.0)
    else:
        t = np.zeros_like(xs)
    dist = np.hypot(xs - (x0 + t * sx), ys - (y0 + t * sy))
    # Hairlines below one pixel deposit proportionally less ink.
    coverage = np.clip(half + 0.5 - dist, 0.0, 1.0) * min(width, 1.0)
    _composite(surface, window, color, coverage * alpha, blend)


def fill_circle(
    surface: np.ndarray,
    cx: float,
    cy: float,
    radius: float,
    color: Color,
    alpha: float,
    blend: str = SOURCE_OVER,
):
    if radius <= 0 or alpha <= 0:
        return
    found = _patch(surface, cx - radius - 1, cy - radius - 1, cx + radius + 1, cy + radius + 1)
    if found is None:
        return
    window, xs, ys = found
    dist = np.hypot(xs - cx, ys - cy)
    coverage = np.clip(radius + 0.5 - dist, 0.0, 1.0) * min(radius * 2.0, 1.0)
    _composite(surface, window, color, coverage * alpha, blend)


def stroke_ellipse(
    surface: np.ndarray,
    cx: float,
    cy: float,
    rx: float,
    ry: float,
    rotation: float,
    width: float,
    color: Color,
    alpha: float,
    blend: str = SOURCE_OVER,
):
    """Outline of a rotated ellipse."""
    if rx <= 0 or ry <= 0 or width <= 0 or alpha <= 0:
        return
    reach = max(rx, ry) + width + 1
    found = _patch(surface, cx - reach, cy - reach, cx + reach, cy + reach)
    if found is None:
        return
    window, xs, ys = found
    u, v = _ellipse_local(xs, ys, cx, cy, rotation)
    q = np.sqrt((u / rx) ** 2 + (v / ry) ** 2)
    # Radial distance to the outline along the ray through the pixel.
    ray = np.hypot(u, v)
    rho = np.where(q > 1e-6, ray / np.maximum(q, 1e-6), min(rx, ry))
    dist = np.abs(q - 1.0) * rho
    coverage = np.clip(width / 2.0 + 0.5 - dist, 0.0, 1.0) * min(width, 1.0)
    _composite(surface, window, color, coverage * alpha, blend)


def fill_ellipse_radial(
    surface: np.ndarray,
    cx: float,
    cy: float,
    rx: float,
    ry: float,
    rotation: float,
    inner_radius: float,
    outer_radius: float,
    stops: Sequence[Stop],
    blend: str = SOURCE_OVER,
    center: Optional[Tuple[float, float]] = None,
):
    """
    Fill a rotated ellipse with a concentric radial gradient.

    Args:
        surface: Target (H, W, 3) float32 surface.
        cx, cy: Ellipse center.
        rx, ry: Ellipse radii.
        rotation: Ellipse rotation in radians.
        inner_radius: Gradient start radius (first stop applies inside it).
        outer_radius: Gradient end radius (last stop applies beyond it).
        stops: Gradient color stops.
        blend: Blend mode.
        center: Gradient center, defaults to the ellipse center.
    """
    if rx <= 0 or ry <= 0 or outer_radius <= inner_radius:
        return
    reach = max(rx, ry) + 1
    found = _patch(surface, cx - reach, cy - reach, cx + reach, cy + reach)
    if found is None:
        return
    window, xs, ys = found
    gx, gy = center if center is not None else (cx, cy)
    t = (np.hypot(xs - gx, ys - gy) - inner_radius) / (outer_radius - inner_radius)
    color, alpha = _eval_stops(stops, t)
    coverage = _ellipse_coverage(xs, ys, cx, cy, rx, ry, rotation)
    _composite(surface, window, color, alpha * coverage, blend)


def fill_ellipse_linear(
    surface: np.ndarray,
    cx: float,
    cy: float,
    rx: float,
    ry: float,
    rotation: float,
    start: Tuple[float, float],
    end: Tuple[float, float],
    stops: Sequence[Stop],
    blend: str = SOURCE_OVER,
):
    """Fill a rotated ellipse with a linear gradient from ``start`` to ``end``."""
    if rx <= 0 or ry <= 0:
        return
    gx = end[0] - start[0]
    gy = end[1] - start[1]
    span2 = gx * gx + gy * gy
    if span2 <= 0:
        return
    reach = max(rx, ry) + 1
    found = _patch(surface, cx - reach, cy - reach, cx + reach, cy + reach)
    if found is None:
        return
    window, xs, ys = found
    t = ((xs - start[0]) * gx + (ys - start[1]) * gy) / span2
    color, alpha = _eval_stops(stops, t)
    coverage = _ellipse_coverage(xs, ys, cx, cy, rx, ry, rotation)
    _composite(surface, window, color, alpha * coverage, blend)
