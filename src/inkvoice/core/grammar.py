"""
Audio grammar: how the drive bends the active brush before each stroke.

Each effect is a named, toggleable mapping from drive scalars onto preset
fields (or onto the drive itself). Effects compose in a fixed order.
"""

from dataclasses import replace
from typing import Mapping, Optional, Tuple

from inkvoice.core.brush import BrushPreset
from inkvoice.core.features import DriveSignal
from inkvoice.core.mathutil import clamp

EFFECTS = {
    "pulse": "Energy drives size",
    "bass_wash": "Bass drives water",
    "mid_grain": "Mids drive grain",
    "high_filaments": "Highs drive jitter and bristles",
    "splatter": "Peaks drive splatter",
}


def default_effects() -> dict:
    return {name: True for name in EFFECTS}


def apply_audio_grammar(
    preset: BrushPreset,
    drive: DriveSignal,
    effects: Optional[Mapping[str, bool]] = None,
) -> Tuple[BrushPreset, DriveSignal]:
    """
    Return the preset and drive actually used for a stroke.

    Args:
        preset: Clamped brush preset.
        drive: Stroke drive (``high`` already folded with the peak).
        effects: Effect toggles; missing names count as enabled.

    Returns:
        (adjusted_preset, adjusted_drive)
    """
    effects = effects or {}

    def enabled(name: str) -> bool:
        return effects.get(name, True)

    peak = drive.peak

    if enabled("pulse"):
        pulse = clamp(0.7 + drive.energy * 1.4 + peak * 0.5, 0.5, 2.2)
        preset = replace(
            preset,
            base_size=preset.base_size * pulse,
            flow=clamp(preset.flow + drive.energy * 0.35, 0.05, 2.0),
        )

    if enabled("bass_wash"):
        preset = replace(
            preset,
            wetness=clamp(preset.wetness + drive.low * 1.1, 0.05, 2.5),
            spread=preset.spread + drive.low * 1.6,
        )

    if enabled("mid_grain"):
        preset = replace(
            preset,
            grain=clamp(preset.grain + drive.mid * 0.9, 0.0, 1.0),
            flow=clamp(preset.flow - drive.mid * 0.12, 0.05, 2.0),
        )

    if enabled("high_filaments"):
        preset = replace(
            preset,
            jitter=clamp(preset.jitter + drive.high * 0.8, 0.0, 2.5),
            bristles=int(round(preset.bristles + drive.high * 22)),
        )

    if enabled("splatter"):
        drive = replace(
            drive,
            high=clamp(drive.high + peak * 0.7, 0.0, 1.6),
            energy=clamp(drive.energy + peak * 0.5, 0.0, 1.0),
        )

    return preset, drive
