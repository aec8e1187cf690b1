"""Rendering and motion core: drive extraction, paper, brush and trajectory."""

from inkvoice.core.brush import PRESETS, BrushPreset, render_stroke
from inkvoice.core.features import AudioFeatureExtractor, DriveSignal
from inkvoice.core.paper import PaperSurface
from inkvoice.core.touch import SteeringAdapter, TouchState
from inkvoice.core.trajectory import TrajectoryEngine, VoiceState

__all__ = [
    "PRESETS",
    "AudioFeatureExtractor",
    "BrushPreset",
    "DriveSignal",
    "PaperSurface",
    "SteeringAdapter",
    "TouchState",
    "TrajectoryEngine",
    "VoiceState",
    "render_stroke",
]
