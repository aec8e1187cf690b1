"""Tests for the trajectory agent."""

import math
import random

import pytest

from inkvoice.core.features import SILENT, DriveSignal
from inkvoice.core.touch import IDLE, TouchState
from inkvoice.core.trajectory import (
    TrajectoryConfig,
    TrajectoryEngine,
    oscillator,
    phase_rate,
    resonance_force,
)

WIDTH, HEIGHT = 400, 300


def _run(engine, drive, ticks, delta=1000.0 / 30.0, touch=IDLE):
    speeds = []
    for _ in range(ticks):
        state = engine.step(delta, drive, touch, WIDTH, HEIGHT)
        speeds.append(state.velocity)
    return speeds


class TestDynamics:
    def test_force_grows_with_bass(self):
        assert resonance_force(DriveSignal(low=1.0)) > resonance_force(SILENT)
        assert resonance_force(DriveSignal(low=1.0, energy=1.0, peak=1.0), tap_boost=1.5) == 3.0

    def test_phase_rate_floor(self):
        assert phase_rate(SILENT) == pytest.approx(0.0025)

    def test_oscillator_bounded(self):
        values = [oscillator(p * 0.1) for p in range(1000)]
        assert max(values) <= 1.0
        assert min(values) >= -1.0

    def test_loud_audio_moves_faster(self, loud_drive):
        """Over half a second of 30Hz ticks, loud audio travels faster than silence."""
        quiet = TrajectoryEngine(seed=1)
        loud = TrajectoryEngine(seed=1)
        quiet.reset(WIDTH, HEIGHT)
        loud.reset(WIDTH, HEIGHT)

        quiet_speeds = _run(quiet, SILENT, 15)
        loud_speeds = _run(loud, loud_drive, 15)

        assert sum(loud_speeds) / 15 > sum(quiet_speeds) / 15

    def test_velocity_stays_in_range(self, loud_drive):
        engine = TrajectoryEngine(seed=2)
        engine.reset(WIDTH, HEIGHT)
        cfg = engine.cfg
        for speed in _run(engine, loud_drive, 200):
            assert 0.0 <= speed <= cfg.max_speed


class TestEpisodes:
    def test_reset_starts_in_central_box(self):
        engine = TrajectoryEngine(seed=5)
        for _ in range(20):
            engine.reset(WIDTH, HEIGHT)
            s = engine.state
            assert 0.35 * WIDTH <= s.x <= 0.65 * WIDTH
            assert 0.35 * HEIGHT <= s.y <= 0.65 * HEIGHT
            assert s.velocity == 0.0
            assert s.resonance_phase == 0.0

    def test_seeded_resets_repeat(self):
        a = TrajectoryEngine(seed=9)
        b = TrajectoryEngine(seed=9)
        a.reset(WIDTH, HEIGHT)
        b.reset(WIDTH, HEIGHT)
        assert a.state == b.state


class TestReflection:
    """The agent never leaves the margin-inset box."""

    def test_stays_inside_margin(self):
        engine = TrajectoryEngine(TrajectoryConfig(base_margin=20), seed=3)
        engine.reset(WIDTH, HEIGHT)
        rng = random.Random(0)

        for _ in range(2000):
            drive = DriveSignal(
                energy=rng.random(), low=rng.random(), mid=rng.random(),
                high=rng.random(), peak=rng.random(),
            )
            s = engine.step(rng.uniform(0, 48), drive, IDLE, WIDTH, HEIGHT)
            assert 20 <= s.x <= WIDTH - 20
            assert 20 <= s.y <= HEIGHT - 20

    def test_reflection_flips_heading(self):
        engine = TrajectoryEngine(TrajectoryConfig(base_margin=10))
        engine.state.x, engine.state.y = 11.0, 150.0
        engine.state.angle = math.pi
        engine.state.velocity = 5.0

        s = engine.step(16.0, SILENT, IDLE, WIDTH, HEIGHT)
        assert s.x == 10.0
        assert math.cos(s.angle) > 0

    def test_margin_clamped_on_tiny_surfaces(self):
        engine = TrajectoryEngine(TrajectoryConfig(base_margin=40, scale=2.0))
        assert engine.margin(WIDTH, HEIGHT) == 80
        assert engine.margin(50, 30) == 15

    def test_draw_called_once_with_segment(self):
        engine = TrajectoryEngine(seed=4)
        engine.reset(WIDTH, HEIGHT)
        start = (engine.state.x, engine.state.y)
        calls = []

        engine.step(16.0, DriveSignal(energy=0.5), IDLE, WIDTH, HEIGHT,
                    draw=lambda *args: calls.append(args))

        assert len(calls) == 1
        x0, y0, x1, y1, dt = calls[0]
        assert (x0, y0) == start
        assert (x1, y1) == (engine.state.x, engine.state.y)
        assert dt == 16.0


class TestSteering:
    def test_touch_pulls_heading(self):
        steered = TrajectoryEngine(seed=6)
        free = TrajectoryEngine(seed=6)
        for engine in (steered, free):
            engine.reset(WIDTH, HEIGHT)
            engine.state.x, engine.state.y, engine.state.angle = 200.0, 150.0, 0.0

        touch = TouchState(x=200.0, y=280.0, strength=1.0, active=True)
        steered.step(16.0, SILENT, touch, WIDTH, HEIGHT)
        free.step(16.0, SILENT, IDLE, WIDTH, HEIGHT)

        # Pointer is straight below, at +pi/2.
        assert steered.state.angle > free.state.angle

    def test_swipe_pulls_heading(self):
        swiped = TrajectoryEngine(seed=6)
        free = TrajectoryEngine(seed=6)
        for engine in (swiped, free):
            engine.reset(WIDTH, HEIGHT)
            engine.state.x, engine.state.y, engine.state.angle = 200.0, 150.0, 0.0

        # Pointer on the current heading so only the swipe turns the agent.
        touch = TouchState(
            x=300.0, y=150.0, strength=1.0, active=True,
            swipe_angle=-math.pi / 2, swipe_power=1.0,
        )
        swiped.step(16.0, SILENT, touch, WIDTH, HEIGHT)
        free.step(16.0, SILENT, IDLE, WIDTH, HEIGHT)

        assert swiped.state.angle < free.state.angle
