"""
Session configuration.

Dataclass defaults cover a live session; a JSON file can override any
subset of fields.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from inkvoice.core.grammar import default_effects


@dataclass
class SessionConfig:
    """Configuration for an InkSession."""
    width: int = 1280
    height: int = 720
    oversample: float = 1.0         # surface pixels per viewport pixel, <= 2

    analysis_fps: float = 30.0
    render_fps: float = 60.0
    max_delta_ms: float = 48.0      # longest single render step

    brush: str = "rituel"
    ink: str = "sumi"
    ink_wash: float = 0.2           # pull of the selected ink toward paper

    silence_threshold: float = 0.01
    base_margin: float = 40.0
    grain_specks: int = 60000
    allow_layering: bool = True
    preview_pass: bool = True

    effects: Dict[str, bool] = field(default_factory=default_effects)

    # Seeds baked strokes, grain and episode resets; None for fresh entropy.
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "effects" in values:
            effects = default_effects()
            effects.update(values["effects"])
            values["effects"] = effects
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(path: Union[str, Path]) -> SessionConfig:
    """
    Load a SessionConfig from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a JSON object.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return SessionConfig.from_dict(data)
