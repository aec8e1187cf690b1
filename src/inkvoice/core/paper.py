"""
Persistent paper surface.

Holds two framebuffers at the oversampled surface resolution:

- ``baked``: the archival record. Only seeded, reproducible strokes land
  here and it is the source for every resize.
- ``live``: what gets displayed. Rebuilt from ``baked`` by ``composite()``
  and then overlaid with the transient preview pass.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from inkvoice.core import raster
from inkvoice.core.color import PAPER_RGB, to_unit

logger = logging.getLogger(__name__)

MAX_OVERSAMPLE = 2.0


def surface_size(viewport_width: float, viewport_height: float, oversample: float = 1.0) -> Tuple[int, int]:
    """Pixel size for a viewport at an oversampling factor (capped at 2)."""
    if not (math.isfinite(oversample) and oversample > 0):
        oversample = 1.0
    oversample = min(oversample, MAX_OVERSAMPLE)
    width = math.floor(viewport_width * oversample) if math.isfinite(viewport_width) else 1
    height = math.floor(viewport_height * oversample) if math.isfinite(viewport_height) else 1
    return max(1, width), max(1, height)


class PaperSurface:
    """
    Owns the live and baked buffers.

    Args:
        width: Initial width in pixels (clamped to >= 1).
        height: Initial height in pixels (clamped to >= 1).
        grain_specks: Number of 1x1 grain specks dressed onto fresh paper.
        seed: Seed for the grain generator; None for fresh entropy.
    """

    def __init__(
        self,
        width: int = 1,
        height: int = 1,
        grain_specks: int = 60000,
        seed: Optional[int] = None,
    ):
        self.grain_specks = grain_specks
        self.np_rng = np.random.default_rng(seed)
        self.width = 0
        self.height = 0
        self.baked = np.zeros((0, 0, 3), dtype=np.float32)
        self.live = np.zeros((0, 0, 3), dtype=np.float32)
        self.resize(width, height)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def _fresh_paper(self, width: int, height: int) -> np.ndarray:
        surface = raster.new_surface(width, height, to_unit(PAPER_RGB))
        self.dress_grain(surface)
        return surface

    def dress_grain(self, surface: np.ndarray):
        """
        Scatter faint white 1x1 specks over ``surface`` in place.

        Overlapping specks compound exactly like repeated source-over
        fills of white.
        """
        h, w = surface.shape[:2]
        n = self.grain_specks
        if n <= 0 or h == 0 or w == 0:
            return
        xs = self.np_rng.integers(0, w, size=n)
        ys = self.np_rng.integers(0, h, size=n)
        alpha = self.np_rng.random(n) * 0.035

        remaining = np.ones((h, w), dtype=np.float32)
        np.multiply.at(remaining, (ys, xs), (1.0 - alpha).astype(np.float32))
        surface[:] = 1.0 - (1.0 - surface) * remaining[..., None]

    @staticmethod
    def _scale_blit(snapshot: np.ndarray, width: int, height: int) -> np.ndarray:
        """Bilinear rescale of a float surface to (height, width)."""
        channels = []
        for c in range(3):
            img = Image.fromarray(np.ascontiguousarray(snapshot[:, :, c], dtype=np.float32))
            img = img.resize((width, height), Image.BILINEAR)
            channels.append(np.asarray(img, dtype=np.float32))
        return np.stack(channels, axis=-1)

    def resize(self, width: int, height: int) -> bool:
        """
        Reallocate at a new resolution, keeping the painted content.

        Returns:
            False if the dimensions already match (nothing happens).
        """
        width = max(1, int(width))
        height = max(1, int(height))
        if width == self.width and height == self.height:
            return False

        if self.baked.size:
            # The blit covers every pixel, grain included.
            fresh = self._scale_blit(self.baked, width, height)
        else:
            fresh = self._fresh_paper(width, height)

        logger.debug("Paper resized %dx%d -> %dx%d", self.width, self.height, width, height)
        self.width = width
        self.height = height
        self.baked = fresh
        self.live = fresh.copy()
        return True

    def fit_viewport(self, viewport_width: float, viewport_height: float, oversample: float = 1.0) -> bool:
        """Resize to the host viewport times an oversampling factor (<= 2)."""
        return self.resize(*surface_size(viewport_width, viewport_height, oversample))

    def clear(self):
        self.baked = self._fresh_paper(self.width, self.height)
        self.composite()

    def composite(self):
        """Rebuild the live buffer from the baked record."""
        np.copyto(self.live, self.baked)

    def baked_pixels(self) -> np.ndarray:
        """Read-only (H, W, 3) uint8 copy of the archival buffer."""
        pixels = raster.to_uint8(self.baked)
        pixels.flags.writeable = False
        return pixels

    def live_pixels(self) -> np.ndarray:
        pixels = raster.to_uint8(self.live)
        pixels.flags.writeable = False
        return pixels
