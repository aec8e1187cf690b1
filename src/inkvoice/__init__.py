"""Audio-driven ink brush painting engine."""

from inkvoice.config import SessionConfig, load_config
from inkvoice.core.brush import BrushPreset, render_stroke
from inkvoice.core.color import InkColor
from inkvoice.core.features import AudioFeatureExtractor, DriveSignal
from inkvoice.core.paper import PaperSurface
from inkvoice.core.touch import SteeringAdapter, TouchState
from inkvoice.core.trajectory import TrajectoryEngine, VoiceState
from inkvoice.session import InkSession, RenderLoop

__version__ = "0.1.0"
__all__ = [
    "AudioFeatureExtractor",
    "BrushPreset",
    "DriveSignal",
    "InkColor",
    "InkSession",
    "PaperSurface",
    "RenderLoop",
    "SessionConfig",
    "SteeringAdapter",
    "TouchState",
    "TrajectoryEngine",
    "VoiceState",
    "load_config",
    "render_stroke",
]
