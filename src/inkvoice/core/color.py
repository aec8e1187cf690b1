"""
Ink colors and the paper background.

Inks are plain RGB triplets. Every derived tone (deepened ink, washes
lightened toward paper) is computed on demand from the base triplet.
"""

import math
from dataclasses import dataclass
from typing import Dict, Tuple

from inkvoice.core.mathutil import clamp


@dataclass(frozen=True)
class InkColor:
    """Immutable 8-bit RGB triplet."""
    r: int
    g: int
    b: int

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)


PAPER_RGB = InkColor(244, 241, 234)
BLACK = InkColor(0, 0, 0)
# Pale pigment tint used by granulation specks.
PIGMENT_PALE = InkColor(245, 240, 230)


def hex_to_rgb(value: str) -> InkColor:
    """
    Parse ``#rrggbb`` (leading ``#`` optional).

    Raises:
        ValueError: If the string is not a 6-digit hex color.
    """
    clean = value.strip().lstrip("#")
    if len(clean) != 6:
        raise ValueError(f"Expected #rrggbb color, got {value!r}")
    int_val = int(clean, 16)
    return InkColor((int_val >> 16) & 255, (int_val >> 8) & 255, int_val & 255)


def _valid_channel(v) -> bool:
    try:
        return math.isfinite(v) and 0 <= v <= 255
    except TypeError:
        return False


def normalize_ink(ink) -> InkColor:
    """
    Coerce user-supplied ink into an InkColor.

    Accepts InkColor, hex strings and 3+ element sequences. Anything
    invalid falls back to black so a bad selection never stops painting.
    """
    if isinstance(ink, InkColor):
        channels = ink.as_tuple()
    elif isinstance(ink, str):
        try:
            return hex_to_rgb(ink)
        except ValueError:
            return BLACK
    else:
        try:
            channels = tuple(ink)[:3]
        except TypeError:
            return BLACK
        if len(channels) < 3:
            return BLACK

    if not all(_valid_channel(c) for c in channels):
        return BLACK
    return InkColor(*(int(round(c)) for c in channels))


def mix_color(rgb: InkColor, target: InkColor, amount: float) -> InkColor:
    return InkColor(
        int(round(rgb.r + (target.r - rgb.r) * amount)),
        int(round(rgb.g + (target.g - rgb.g) * amount)),
        int(round(rgb.b + (target.b - rgb.b) * amount)),
    )


def rgba(rgb: InkColor, alpha: float) -> str:
    """CSS-style color string, for logs and external collaborators."""
    return f"rgba({rgb.r}, {rgb.g}, {rgb.b}, {clamp(alpha, 0.0, 1.0)})"


def to_unit(rgb: InkColor) -> Tuple[float, float, float]:
    return (rgb.r / 255.0, rgb.g / 255.0, rgb.b / 255.0)


def relative_luminance(rgb: InkColor) -> float:
    """Rec. 709 luma of the gamma-encoded triplet, in [0, 1]."""
    return (0.2126 * rgb.r + 0.7152 * rgb.g + 0.0722 * rgb.b) / 255.0


def ink_depth(ink: InkColor, flow: float) -> InkColor:
    """
    Deepened ink used for the stroke core and bristles.

    Dark inks and high flow saturate further toward the pure pigment and
    then pick up a touch of black; pale inks stay closer to the paper.
    """
    lum = relative_luminance(ink)
    depth = clamp(0.25 + flow * 0.35 + (1.0 - lum) * 0.25, 0.2, 0.9)
    base = mix_color(PAPER_RGB, ink, depth)
    shade = clamp(0.1 + flow * 0.15 - lum * 0.1, 0.0, 0.35)
    return mix_color(base, BLACK, shade)


INK_PALETTE: Dict[str, InkColor] = {
    "sumi": hex_to_rgb("#14110f"),
    "ai": hex_to_rgb("#2c3b52"),
    "shu": hex_to_rgb("#b73a26"),
    "yuzu": hex_to_rgb("#f4c542"),
    "midori": hex_to_rgb("#3c7a4d"),
    "koke": hex_to_rgb("#6a7d3c"),
    "momo": hex_to_rgb("#d8a3b6"),
    "kohaku": hex_to_rgb("#c47d33"),
}


def get_ink(name: str) -> InkColor:
    """Look up a palette ink by name, or parse a hex string."""
    if name in INK_PALETTE:
        return INK_PALETTE[name]
    if name.startswith("#"):
        return hex_to_rgb(name)
    raise KeyError(f"Unknown ink {name!r}; choose from {sorted(INK_PALETTE)}")
