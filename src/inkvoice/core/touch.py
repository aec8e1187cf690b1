"""
Touch steering adapter.

The adapter is the only writer of TouchState. Pointer callbacks mutate it
through press/move/release, the render tick decays it through
``advance``, and every consumer reads frozen snapshots.
"""

import math
import threading
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from inkvoice.core.mathutil import clamp, is_finite

TAP_BOOST_STEP = 0.35
TAP_BOOST_MAX = 1.5
SWIPE_MIN_DISTANCE = 0.5
SWIPE_GAIN = 0.02

# Per-millisecond decay rates.
STRENGTH_DECAY = 0.0014
SWIPE_DECAY = 0.002
TAP_DECAY = 0.0012


@dataclass(frozen=True)
class TouchState:
    x: float = 0.0
    y: float = 0.0
    strength: float = 0.0
    active: bool = False
    swipe_angle: float = 0.0
    swipe_power: float = 0.0
    tap_boost: float = 0.0


IDLE = TouchState()


class SteeringAdapter:
    """
    Normalizes pointer input into a decaying steering state.

    Args:
        bounds: (width, height) of the surface; positions are clamped to it.
    """

    def __init__(self, bounds: Optional[Tuple[float, float]] = None):
        self._lock = threading.Lock()
        self._state = IDLE
        self._anchor = (0.0, 0.0)
        self.bounds = bounds

    def set_bounds(self, width: float, height: float):
        with self._lock:
            self.bounds = (width, height)
            x, y = self._clamp_point(self._state.x, self._state.y)
            self._state = replace(self._state, x=x, y=y)

    def _clamp_point(self, x: float, y: float) -> Tuple[float, float]:
        if not is_finite(x, y):
            return self._state.x, self._state.y
        if self.bounds is None:
            return x, y
        width, height = self.bounds
        return clamp(x, 0.0, width), clamp(y, 0.0, height)

    def snapshot(self) -> TouchState:
        with self._lock:
            return self._state

    def reset(self):
        with self._lock:
            self._state = IDLE
            self._anchor = (0.0, 0.0)

    def press(self, x: float, y: float) -> TouchState:
        with self._lock:
            x, y = self._clamp_point(x, y)
            self._anchor = (x, y)
            self._state = replace(
                self._state,
                x=x,
                y=y,
                strength=1.0,
                active=True,
                swipe_power=0.0,
                tap_boost=clamp(self._state.tap_boost + TAP_BOOST_STEP, 0.0, TAP_BOOST_MAX),
            )
            return self._state

    def move(self, x: float, y: float) -> TouchState:
        """Track a held pointer; ignored when nothing is pressed."""
        with self._lock:
            if not self._state.active:
                return self._state
            x, y = self._clamp_point(x, y)
            state = replace(self._state, x=x, y=y, strength=1.0)

            dx = x - self._anchor[0]
            dy = y - self._anchor[1]
            dist = math.hypot(dx, dy)
            if dist > SWIPE_MIN_DISTANCE:
                state = replace(
                    state,
                    swipe_angle=math.atan2(dy, dx),
                    swipe_power=clamp(state.swipe_power + dist * SWIPE_GAIN, 0.0, 1.0),
                )
                self._anchor = (x, y)
            self._state = state
            return state

    def release(self) -> TouchState:
        with self._lock:
            self._state = replace(self._state, active=False)
            return self._state

    def advance(self, delta_ms: float) -> TouchState:
        """
        Decay the impulses for one render tick and return the new snapshot.

        Strength only fades while the pointer is up; swipe power and tap
        boost fade every tick.
        """
        delta_ms = max(0.0, delta_ms)
        with self._lock:
            s = self._state
            strength = s.strength
            if not s.active:
                strength = max(0.0, strength - delta_ms * STRENGTH_DECAY)
            self._state = replace(
                s,
                strength=strength,
                swipe_power=max(0.0, s.swipe_power - delta_ms * SWIPE_DECAY),
                tap_boost=max(0.0, s.tap_boost - delta_ms * TAP_DECAY),
            )
            return self._state
