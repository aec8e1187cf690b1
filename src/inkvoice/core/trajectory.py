"""
Trajectory agent.

One continuously moving point whose path gets inked. Audio sets how hard
and how fast a two-term oscillator twists the heading and how fast the
agent travels; touch steering pulls the heading toward the pointer and
along swipes; the surface edges reflect it.
"""

import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

from inkvoice.core.features import DriveSignal
from inkvoice.core.mathutil import clamp, wrap_angle
from inkvoice.core.touch import TouchState

DrawCallback = Callable[[float, float, float, float, float], None]


@dataclass
class VoiceState:
    """Kinematic state of the agent."""
    x: float = 0.0
    y: float = 0.0
    angle: float = 0.0
    velocity: float = 0.0
    resonance_phase: float = 0.0


@dataclass
class TrajectoryConfig:
    base_margin: float = 40.0
    scale: float = 1.0
    turn_gain: float = 0.03
    velocity_relax: float = 0.18
    min_speed: float = 0.6
    max_speed: float = 6.5
    touch_falloff: float = 0.7


def resonance_force(drive: DriveSignal, tap_boost: float = 0.0) -> float:
    loudness = clamp(drive.energy + drive.peak * 0.6, 0.0, 1.2)
    return clamp(
        0.35 + drive.low * 1.8 + drive.mid * 0.6 + loudness * 0.9 + tap_boost * 1.4,
        0.0,
        3.0,
    )


def phase_rate(drive: DriveSignal, tap_boost: float = 0.0) -> float:
    """Phase advance per millisecond; louder audio oscillates faster."""
    loudness = clamp(drive.energy + drive.peak * 0.6, 0.0, 1.2)
    return (
        0.0025
        + drive.low * 0.012
        + drive.high * 0.006
        + loudness * 0.01
        + tap_boost * 0.015
    )


def oscillator(phase: float) -> float:
    """Two incommensurate sines so the path never settles into a loop."""
    return math.sin(phase) * 0.65 + math.sin(0.65 * phase + 1.4) * 0.35


class TrajectoryEngine:
    """
    Owns one VoiceState and advances it once per render tick.

    Args:
        config: Motion constants.
        seed: Seed for episode resets (start position and heading).
    """

    def __init__(self, config: Optional[TrajectoryConfig] = None, seed: Optional[int] = None):
        self.cfg = config or TrajectoryConfig()
        self.rng = random.Random(seed)
        self.state = VoiceState()

    def margin(self, width: float, height: float) -> float:
        margin = self.cfg.base_margin * self.cfg.scale
        return max(0.0, min(margin, width / 2.0, height / 2.0))

    def reset(self, width: float, height: float):
        """Start a new episode: random central position and heading, at rest."""
        self.state = VoiceState(
            x=width * (0.35 + self.rng.random() * 0.3),
            y=height * (0.35 + self.rng.random() * 0.3),
            angle=self.rng.random() * math.pi * 2,
            velocity=0.0,
            resonance_phase=0.0,
        )

    def _steer(self, touch: TouchState, width: float):
        s = self.state
        dx = touch.x - s.x
        dy = touch.y - s.y
        diff = wrap_angle(math.atan2(dy, dx) - s.angle)
        distance = math.hypot(dx, dy)
        falloff = max(width * self.cfg.touch_falloff, 1e-6)
        pull = clamp(touch.strength * (1 - clamp(distance / falloff, 0.0, 1.0)), 0.0, 1.0)
        s.angle += diff * (0.06 + pull * 0.2)

        if touch.swipe_power > 0:
            swipe_diff = wrap_angle(touch.swipe_angle - s.angle)
            s.angle += swipe_diff * (0.05 + touch.swipe_power * 0.18) * touch.strength

    def _reflect(self, width: float, height: float):
        s = self.state
        margin = self.margin(width, height)
        if s.x < margin:
            s.x = margin
            s.angle = math.pi - s.angle
        elif s.x > width - margin:
            s.x = width - margin
            s.angle = math.pi - s.angle

        if s.y < margin:
            s.y = margin
            s.angle = -s.angle
        elif s.y > height - margin:
            s.y = height - margin
            s.angle = -s.angle

    def step(
        self,
        delta: float,
        drive: DriveSignal,
        touch: TouchState,
        width: float,
        height: float,
        draw: Optional[DrawCallback] = None,
    ) -> VoiceState:
        """
        Advance the agent by ``delta`` milliseconds.

        ``draw(x0, y0, x1, y1, delta)`` is called exactly once with the
        segment travelled this tick, before edge reflection.
        """
        s = self.state
        cfg = self.cfg
        tap = touch.tap_boost

        force = resonance_force(drive, tap)
        s.resonance_phase += delta * phase_rate(drive, tap)
        wave = oscillator(s.resonance_phase)
        s.angle += wave * force * cfg.turn_gain * (delta / 16.0)

        normalized_wave = (wave + 1.0) / 2.0
        target = clamp(0.9 + force * (0.75 + 0.55 * normalized_wave), cfg.min_speed, cfg.max_speed)
        s.velocity += (target - s.velocity) * cfg.velocity_relax

        if touch.strength > 0:
            self._steer(touch, width)

        step = s.velocity * (delta / 16.0)
        nx = s.x + math.cos(s.angle) * step
        ny = s.y + math.sin(s.angle) * step

        if draw is not None:
            draw(s.x, s.y, nx, ny, delta)

        s.x = nx
        s.y = ny
        self._reflect(width, height)
        return s
