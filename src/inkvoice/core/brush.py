"""
Brush engine.

Turns one segment plus the current drive into a textured ink mark:
a jittered core line, an optional dry bristle rake, and a stack of
probabilistic secondary layers (water halos, stains, dry edges,
granulation, splatter, capillary wet traces).

The engine holds no state. All randomness comes from the random source
chosen per call, so a seeded call is exactly reproducible.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

import numpy as np

from inkvoice.core import raster
from inkvoice.core.color import (
    PAPER_RGB,
    PIGMENT_PALE,
    InkColor,
    ink_depth,
    mix_color,
    normalize_ink,
    to_unit,
)
from inkvoice.core.features import SILENT, DriveSignal
from inkvoice.core.mathutil import RandomSource, clamp, is_finite, resolve_source

logger = logging.getLogger(__name__)

MAX_SUBSTEPS = 120
TIP_PATTERNS = ("classic", "claws", "halo", "halo-complex", "wash")


@dataclass(frozen=True)
class BrushPreset:
    """Named, ink-agnostic brush parameter bundle."""
    name: str = "default"
    base_size: float = 12.0     # px at unit drive
    flow: float = 1.0           # opacity gain
    jitter: float = 0.25        # positional noise gain
    grain: float = 0.35         # dry-texture probability
    wetness: float = 0.6        # bloom/halo gain
    bristles: int = 0           # rake strands, 0 disables the rake
    spread: float = 0.9         # lateral bristle scatter
    tip_pattern: str = "classic"

    def clamped(self) -> "BrushPreset":
        """Copy with every gain held to its usable range."""
        return replace(
            self,
            base_size=max(0.0, _finite(self.base_size, 12.0)),
            flow=clamp(_finite(self.flow, 1.0), 0.05, 2.0),
            wetness=clamp(_finite(self.wetness, 0.6), 0.05, 2.5),
            grain=clamp(_finite(self.grain, 0.35), 0.0, 1.0),
            jitter=max(0.0, _finite(self.jitter, 0.25)),
            bristles=max(0, int(_finite(self.bristles, 0))),
            spread=_finite(self.spread, 0.9),
            tip_pattern=self.tip_pattern if self.tip_pattern in TIP_PATTERNS else "classic",
        )


PRESETS: Dict[str, BrushPreset] = {
    p.name: p
    for p in (
        BrushPreset("rituel", base_size=6, flow=0.55, jitter=0.05, grain=0.65,
                    wetness=1.7, bristles=11, spread=0.3, tip_pattern="classic"),
        BrushPreset("senbon", base_size=7, flow=0.75, jitter=0.55, grain=0.5,
                    wetness=0.6, bristles=18, spread=1.25, tip_pattern="claws"),
        BrushPreset("kumo", base_size=16, flow=0.28, jitter=0.18, grain=0.2,
                    wetness=1.4, bristles=8, spread=1.8, tip_pattern="halo"),
        BrushPreset("uroko", base_size=9, flow=0.55, jitter=0.3, grain=0.75,
                    wetness=0.6, bristles=10, spread=1.7, tip_pattern="classic"),
        BrushPreset("hana", base_size=14, flow=0.65, jitter=0.22, grain=0.15,
                    wetness=0.9, bristles=6, spread=2.1, tip_pattern="halo"),
        BrushPreset("hibana", base_size=5, flow=1.05, jitter=0.8, grain=0.1,
                    wetness=0.3, bristles=6, spread=2.6, tip_pattern="claws"),
        BrushPreset("mizu", base_size=20, flow=0.6, jitter=0.25, grain=0.05,
                    wetness=2.0, bristles=5, spread=2.4, tip_pattern="wash"),
        BrushPreset("enso", base_size=18, flow=0.4, jitter=0.15, grain=0.15,
                    wetness=1.2, bristles=8, spread=2.2, tip_pattern="halo-complex"),
    )
}


def get_preset(name: str) -> BrushPreset:
    try:
        return PRESETS[name]
    except KeyError:
        raise KeyError(f"Unknown brush {name!r}; choose from {sorted(PRESETS)}") from None


@dataclass(frozen=True)
class LayerChances:
    """
    Per-sample probabilities for the secondary texture layers.

    Art-direction defaults, not invariants. Each chance is modulated by
    wateriness, dryness or grain at draw time.
    """
    halo: float = 0.18
    halo_bias: float = 0.4
    stain: float = 0.14
    stain_bias: float = 0.3
    dry_edge: float = 0.1
    granulation: float = 0.18
    granulation_bias: float = 0.3
    splatter: float = 0.06
    splatter_threshold: float = 0.25
    wet_trace: float = 0.12
    bristle_cull: float = 0.25


DEFAULT_CHANCES = LayerChances()


def _finite(value, default: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_point(p) -> Optional[Tuple[float, float]]:
    if p is None:
        return None
    x = getattr(p, "x", None)
    y = getattr(p, "y", None)
    if x is None or y is None:
        try:
            x, y = p[0], p[1]
        except (TypeError, IndexError, KeyError):
            return None
    try:
        x, y = float(x), float(y)
    except (TypeError, ValueError):
        return None
    if not is_finite(x, y):
        return None
    return x, y


# --- water and pigment layers -------------------------------------------

def add_water_halo(surface, cx, cy, size, rgb: InkColor, intensity, rand: RandomSource):
    """Soft multi-ring bloom of diluted ink."""
    layers = min(6, 3 + _round(intensity * 3))
    halo = to_unit(mix_color(rgb, PAPER_RGB, 0.55 + intensity * 0.2))
    for i in range(layers):
        radius = size * (0.9 + i * 0.35 + rand() * 0.25)
        dx = (rand() - 0.5) * size * 0.2
        dy = (rand() - 0.5) * size * 0.2
        stops = [
            (0.0, halo, 0.0),
            (0.5, halo, 0.03 * intensity),
            (0.85, halo, 0.06 * intensity),
            (1.0, halo, 0.0),
        ]
        raster.fill_ellipse_radial(
            surface, cx + dx, cy + dy, radius * 1.1, radius * 0.85, rand() * math.pi,
            radius * 0.15, radius, stops, raster.MULTIPLY,
        )


def add_stain(surface, cx, cy, size, rgb: InkColor, intensity, rand: RandomSource):
    radius = max(6.0, size)
    wash = to_unit(mix_color(rgb, PAPER_RGB, 0.35 + intensity * 0.2))
    stops = [
        (0.0, wash, 0.18 * intensity),
        (0.6, wash, 0.05 * intensity),
        (1.0, to_unit(rgb), 0.0),
    ]
    raster.fill_ellipse_radial(
        surface, cx, cy, radius * 1.2, radius * 0.85, rand() * math.pi,
        radius * 0.1, radius, stops, raster.MULTIPLY,
    )


def add_dry_edge(surface, cx, cy, size, rgb: InkColor, intensity, rand: RandomSource):
    """Rim darkening where the brush runs out of water."""
    color = to_unit(rgb)
    stops = [
        (0.0, color, 0.0),
        (0.55, color, 0.03 * intensity),
        (0.9, color, 0.1 * intensity),
        (1.0, color, 0.0),
    ]
    raster.fill_ellipse_radial(
        surface, cx, cy, size * 1.05, size * 0.8, rand() * math.pi,
        size * 0.25, size, stops, raster.MULTIPLY,
    )


def add_granulation(surface, cx, cy, size, rgb: InkColor, intensity, rand: RandomSource):
    specks = min(16, _round(4 + intensity * 10))
    pale = to_unit(mix_color(rgb, PIGMENT_PALE, 0.5))
    for _ in range(specks):
        dx = (rand() - 0.5) * size * 1.6
        dy = (rand() - 0.5) * size * 1.4
        r = 0.4 + rand() * 0.9 * intensity
        raster.fill_circle(surface, cx + dx, cy + dy, r, pale, 0.08 * intensity, raster.MULTIPLY)


def add_splatter(surface, cx, cy, intensity, rgb: InkColor, rand: RandomSource):
    drops = int(math.ceil(8 * intensity))
    splash = to_unit(mix_color(rgb, PAPER_RGB, 0.3 + intensity * 0.2))
    for _ in range(drops):
        a = rand() * math.pi * 2
        r = 10 + rand() * 30 * intensity
        s = 0.8 + rand() * 2.6 * intensity
        raster.fill_circle(
            surface, cx + math.cos(a) * r, cy + math.sin(a) * r, s,
            splash, 0.32 * intensity, raster.MULTIPLY,
        )


def add_wet_trace(surface, cx, cy, size, rgb: InkColor, intensity, dir_x, dir_y, rand: RandomSource):
    """Directional bleed dragged behind a moving wet brush."""
    trace = to_unit(mix_color(rgb, PAPER_RGB, 0.4 + intensity * 0.2))
    color = to_unit(rgb)
    length = size * (0.8 + intensity * 0.6)
    width = size * 0.5
    off = (rand() - 0.5) * size * 0.3
    tx = cx + dir_x * off
    ty = cy + dir_y * off
    stops = [
        (0.0, trace, 0.0),
        (0.35, trace, 0.05 * intensity),
        (0.7, color, 0.12 * intensity),
        (1.0, color, 0.0),
    ]
    raster.fill_ellipse_linear(
        surface, tx, ty, width, length * 0.6, math.atan2(dir_y, dir_x),
        (tx, ty), (tx + dir_x * length, ty + dir_y * length), stops, raster.MULTIPLY,
    )


# --- tip patterns --------------------------------------------------------

def add_claw_marks(surface, cx, cy, size, rgb: InkColor, alpha, dir_x, dir_y, nx, ny, rand, energy):
    count = 3 + _round(rand() * 3)
    length = size * (0.8 + energy * 1.4)
    color = to_unit(rgb)
    for _ in range(count):
        spread = (rand() - 0.5) * size * 0.9
        angle = (rand() - 0.5) * 0.6
        sx = cx + nx * spread
        sy = cy + ny * spread
        rx = dir_x * math.cos(angle) - dir_y * math.sin(angle)
        ry = dir_x * math.sin(angle) + dir_y * math.cos(angle)
        claw_len = length * (0.6 + rand() * 0.6)
        width = 0.35 + rand() * 0.6
        raster.stroke_line(
            surface, sx, sy, sx + rx * claw_len, sy + ry * claw_len,
            width, color, alpha * 1.2, raster.MULTIPLY,
        )


def add_aura_rings(surface, cx, cy, size, rgb: InkColor, intensity, rand, layers=2):
    tint = to_unit(mix_color(rgb, PAPER_RGB, 0.25))
    for i in range(layers):
        radius = size * (1.1 + i * 0.45 + rand() * 0.3)
        width = 0.4 + rand() * 0.7
        rx = radius * (0.9 + rand() * 0.2)
        ry = radius * (0.7 + rand() * 0.2)
        raster.stroke_ellipse(
            surface, cx, cy, rx, ry, rand() * math.pi, width,
            tint, 0.08 * intensity, raster.MULTIPLY,
        )


# --- stroke --------------------------------------------------------------

def render_stroke(
    surface: np.ndarray,
    a,
    b,
    ink=None,
    preset: Optional[BrushPreset] = None,
    drive: Optional[DriveSignal] = None,
    dt_ms: float = 16.0,
    seed=None,
    rand: Optional[RandomSource] = None,
    chances: LayerChances = DEFAULT_CHANCES,
) -> int:
    """
    Composite one brush segment from ``a`` to ``b`` onto ``surface``.

    Args:
        surface: (H, W, 3) float32 buffer, modified in place.
        a, b: Segment endpoints as (x, y) pairs or objects with x/y.
        ink: Ink color (InkColor, hex string or RGB sequence).
        preset: Brush preset; clamped before use.
        drive: Current drive snapshot.
        dt_ms: Time the segment took, used for bristle drag length.
        seed: Seed for a deterministic stroke; None uses the ambient source.
        rand: Explicit random source, overrides ``seed``.
        chances: Secondary layer probability table.

    Returns:
        Number of samples composited; 0 when the segment was rejected.
    """
    p0 = _as_point(a)
    p1 = _as_point(b)
    if p0 is None or p1 is None:
        logger.debug("Skipping stroke with invalid endpoints %r -> %r", a, b)
        return 0
    ax, ay = p0
    bx, by = p1
    dist = math.hypot(bx - ax, by - ay)
    if dist == 0:
        return 0

    rand = resolve_source(seed, rand)
    safe_ink = normalize_ink(ink)
    brush = (preset or BrushPreset()).clamped()
    drive = drive or SILENT

    low = clamp(_finite(drive.low, 0.0), 0.0, 1.0)
    mid = clamp(_finite(drive.mid, 0.0), 0.0, 1.0)
    high = clamp(_finite(drive.high, 0.0), 0.0, 1.0)
    energy = clamp(_finite(drive.energy, 0.0), 0.0, 1.0)

    steps = min(MAX_SUBSTEPS, max(1, int(math.floor(dist))))
    dir_x = (bx - ax) / dist
    dir_y = (by - ay) / dist
    nx, ny = -dir_y, dir_x
    speed = dist / max(_finite(dt_ms, 16.0), 1.0)

    wateriness = clamp(brush.wetness + low * 0.8 + energy * 0.6, 0.0, 2.0)
    dryness = clamp(1.1 - wateriness + high * 0.5, 0.1, 1.3)
    size = brush.base_size * (0.6 + energy * 1.2) * (0.6 + mid * 0.6)
    jitter = brush.jitter * (1 + high * 4 + energy * 3) * size

    ink_deep = ink_depth(safe_ink, brush.flow)
    deep = to_unit(ink_deep)
    wash_only = brush.tip_pattern == "wash"
    alpha = (0.05 + mid * 0.25 + energy * 0.2) * brush.flow
    line_width = size * (0.25 + energy * 0.9)
    seg = max(2.0, size * 0.6)

    for i in range(steps + 1):
        t = i / steps
        cx = ax + (bx - ax) * t + (rand() - 0.5) * jitter
        cy = ay + (by - ay) * t + (rand() - 0.5) * jitter

        if wash_only:
            halo_size = size * (1.4 + wateriness * 0.6)
            halo_intensity = clamp(0.7 + wateriness * 0.4 + low * 0.2, 0.0, 1.6)
            add_water_halo(surface, cx, cy, halo_size, safe_ink, halo_intensity, rand)
            add_water_halo(surface, cx, cy, halo_size * 0.7, safe_ink, halo_intensity * 0.85, rand)
            add_stain(surface, cx, cy, halo_size * 0.9, safe_ink, 0.5 + halo_intensity * 0.4, rand)
            add_dry_edge(surface, cx, cy, halo_size * 0.85, ink_deep,
                         clamp(dryness + 0.35, 0.1, 1.4), rand)
            add_granulation(surface, cx, cy, halo_size * 0.8, safe_ink,
                            clamp(brush.grain * 1.2 + 0.2, 0.0, 1.6), rand)
            continue

        raster.stroke_line(
            surface,
            cx - dir_x * seg * 0.3, cy - dir_y * seg * 0.3,
            cx + dir_x * seg, cy + dir_y * seg,
            line_width, deep, alpha,
        )

        if brush.tip_pattern == "claws":
            add_claw_marks(surface, cx, cy, size, ink_deep, alpha, dir_x, dir_y, nx, ny, rand, energy)

        if brush.bristles > 0:
            count = _round(brush.bristles * (0.7 + high * 0.6))
            for _ in range(count):
                if rand() < brush.grain * chances.bristle_cull * dryness:
                    continue
                off = (rand() - 0.5) * brush.spread * size
                mx = cx + nx * off
                my = cy + ny * off
                length = (2 + rand() * 6 + speed * 0.8) * (0.6 + energy * 0.8)
                width = (0.2 + rand() * 0.6) * (0.6 + energy * 0.6)
                raster.stroke_line(
                    surface, mx, my, mx + dir_x * length, my + dir_y * length,
                    width, deep, alpha * (0.5 + rand() * 0.6),
                )

        if rand() < chances.halo * (chances.halo_bias + wateriness):
            add_water_halo(surface, cx, cy, size * 1.3, safe_ink, 0.4 + wateriness * 0.4, rand)
        if rand() < chances.stain * (chances.stain_bias + wateriness):
            add_stain(surface, cx, cy, size * 1.4, safe_ink, 0.35 + wateriness * 0.35, rand)
        if rand() < chances.dry_edge * dryness:
            add_dry_edge(surface, cx, cy, size * 1.1, ink_deep, dryness, rand)
        if rand() < chances.granulation * (chances.granulation_bias + brush.grain):
            add_granulation(surface, cx, cy, size * 1.1, safe_ink, (brush.grain + high) * 0.9, rand)

        if brush.tip_pattern == "halo":
            add_aura_rings(surface, cx, cy, size * (1 + wateriness * 0.2), safe_ink,
                           0.9 + wateriness * 0.4, rand, 2)
            add_water_halo(surface, cx, cy, size * 1.5, safe_ink, 0.55 + wateriness * 0.35, rand)
        elif brush.tip_pattern == "halo-complex":
            add_aura_rings(surface, cx, cy, size * (1.1 + wateriness * 0.3), safe_ink,
                           1.1 + wateriness * 0.5, rand, 4)
            add_water_halo(surface, cx, cy, size * 1.7, safe_ink, 0.6 + wateriness * 0.4, rand)
            add_stain(surface, cx, cy, size * 1.6, safe_ink, 0.6 + wateriness * 0.4, rand)
            add_granulation(surface, cx, cy, size * 1.2, safe_ink,
                            clamp(brush.grain * 1.4 + 0.3, 0.0, 1.8), rand)

        splash = max(high, energy)
        if splash > chances.splatter_threshold and rand() < chances.splatter:
            add_splatter(surface, cx, cy, splash, safe_ink, rand)
        if rand() < chances.wet_trace * wateriness:
            add_wet_trace(surface, cx, cy, size * 1.2, safe_ink, wateriness, dir_x, dir_y, rand)

    return steps + 1
