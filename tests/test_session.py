"""Tests for the painting session and render loop."""

import time

import numpy as np
import pytest

from inkvoice.config import SessionConfig
from inkvoice.core.color import PAPER_RGB, to_unit
from inkvoice.core.features import SILENT, DriveSignal
from inkvoice.session import InkSession, RenderLoop

PAPER = np.array(to_unit(PAPER_RGB), dtype=np.float32)


def _paint(session: InkSession, drive: DriveSignal, ticks: int = 20):
    session.begin_episode()
    for _ in range(ticks):
        session.render_tick(16.0, drive=drive)


class TestSessionSetup:
    def test_components_share_surface_size(self, session):
        assert session.paper.size == (64, 48)
        assert session.steering.bounds == (64, 48)

    def test_oversample_scales_surface(self, small_config):
        small_config.oversample = 1.5
        session = InkSession(small_config)
        assert session.paper.size == (96, 72)

    def test_unknown_brush_or_ink_raises(self, small_config):
        small_config.brush = "nope"
        with pytest.raises(KeyError):
            InkSession(small_config)

    def test_configuration_surface(self, session):
        session.set_ink("#ff0000")
        assert session.ink.as_tuple() == (255, 0, 0)
        session.set_preset("mizu")
        assert session.preset.name == "mizu"
        session.set_effect("pulse", False)
        assert session.effects["pulse"] is False
        with pytest.raises(KeyError):
            session.set_effect("reverb", True)


class TestRenderTick:
    def test_idle_until_episode_starts(self, session, loud_drive):
        assert session.render_tick(16.0, drive=loud_drive) is None

    def test_loud_audio_paints(self, session, loud_drive):
        blank = session.baked_pixels().copy()
        _paint(session, loud_drive)

        assert not np.array_equal(session.baked_pixels(), blank)

    def test_silence_deposits_nothing(self, session):
        blank = session.baked_pixels().copy()
        _paint(session, SILENT)

        assert np.array_equal(session.baked_pixels(), blank)

    def test_agent_moves_during_silence(self, session):
        session.begin_episode()
        start = (session.trajectory.state.x, session.trajectory.state.y)
        state = session.render_tick(16.0, drive=SILENT)
        assert (state.x, state.y) != start

    def test_touch_impulses_fade_after_the_tick(self, session):
        """A fresh tap reaches the agent at full strength, then decays."""
        seen = []
        step = session.trajectory.step

        def spy(delta, drive, touch, width, height, draw=None):
            seen.append(touch)
            return step(delta, drive, touch, width, height, draw=draw)

        session.trajectory.step = spy
        session.begin_episode()
        session.pointer_down(20, 20)
        session.render_tick(16.0, drive=SILENT)

        assert seen[0].tap_boost == pytest.approx(0.35)
        assert session.steering.snapshot().tap_boost == pytest.approx(0.35 - 16.0 * 0.0012)

    def test_end_episode_stops_painting(self, session, loud_drive):
        session.begin_episode()
        session.end_episode()
        assert session.render_tick(16.0, drive=loud_drive) is None

    def test_seeded_sessions_bake_identically(self, small_config, loud_drive):
        a = InkSession(small_config)
        b = InkSession(small_config)
        _paint(a, loud_drive)
        _paint(b, loud_drive)

        assert np.array_equal(a.baked_pixels(), b.baked_pixels())

    def test_uses_analyser_snapshot(self, session, loud_frame):
        session.push_audio(*loud_frame, now_ms=0.0)
        assert session.drive.energy > 0
        blank = session.baked_pixels().copy()

        session.begin_episode()
        session.render_tick(16.0)
        assert not np.array_equal(session.baked_pixels(), blank)


class TestDeposit:
    def test_silence_gate(self, session):
        assert not session.deposit((10, 10), (40, 30), drive=SILENT)

    def test_forced_deposit_paints(self, session):
        blank = session.baked_pixels().copy()
        assert session.deposit((10, 10), (40, 30), drive=SILENT, force=True)
        assert not np.array_equal(session.baked_pixels(), blank)

    def test_preview_pass_lands_on_live_only(self, small_config, loud_drive):
        small_config.preview_pass = False
        plain = InkSession(small_config)
        plain.deposit((10, 10), (40, 30), drive=loud_drive)
        assert np.array_equal(plain.live_pixels(), plain.baked_pixels())

        small_config.preview_pass = True
        previewed = InkSession(small_config)
        previewed.deposit((10, 10), (40, 30), drive=loud_drive)
        assert np.array_equal(previewed.baked_pixels(), plain.baked_pixels())
        assert not np.array_equal(previewed.live_pixels(), previewed.baked_pixels())

    def test_degenerate_segment(self, session, loud_drive):
        assert not session.deposit((10, 10), (10, 10), drive=loud_drive)


class TestLayering:
    def test_layering_keeps_previous_episode(self, session, loud_drive):
        _paint(session, loud_drive)
        painted = session.baked_pixels().copy()

        session.begin_episode()
        assert np.array_equal(session.baked_pixels(), painted)

    def test_no_layering_clears_on_new_episode(self, small_config, loud_drive):
        small_config.allow_layering = False
        session = InkSession(small_config)
        _paint(session, loud_drive)
        assert np.any(session.paper.baked < PAPER - 0.05)

        session.begin_episode()
        assert np.all(session.paper.baked >= PAPER - 1e-6)

    def test_clear(self, session, loud_drive):
        _paint(session, loud_drive)
        session.clear()
        assert np.all(session.paper.baked >= PAPER - 1e-6)


class TestPointer:
    def test_pointer_drag_paints_and_steers(self, small_config):
        now = [0.0]
        session = InkSession(small_config, clock=lambda: now[0])
        session.begin_episode()
        blank = session.baked_pixels().copy()

        session.pointer_down(10, 10)
        now[0] = 0.016
        assert session.pointer_move(40, 30)
        assert session.steering.snapshot().active
        session.pointer_up()

        assert not session.steering.snapshot().active
        assert not np.array_equal(session.baked_pixels(), blank)

    def test_pointer_move_without_press(self, session):
        session.begin_episode()
        assert not session.pointer_move(20, 20)


class TestSurfaceLifecycle:
    def test_resize_updates_bounds(self, session):
        assert session.resize(80, 60)
        assert session.paper.size == (80, 60)
        assert session.steering.bounds == (80, 60)
        assert not session.resize(80, 60)

    def test_fit_viewport(self, session):
        session.cfg.oversample = 2.0
        session.fit_viewport(50, 40)
        assert session.paper.size == (100, 80)

    def test_pixels_read_only(self, session):
        pixels = session.baked_pixels()
        with pytest.raises(ValueError):
            pixels[0, 0] = 0

    def test_teardown(self, session, loud_frame):
        session.begin_episode()
        session.push_audio(*loud_frame, now_ms=0.0)
        session.pointer_down(5, 5)
        session.teardown()

        assert not session.drawing
        assert session.drive == SILENT
        assert not session.steering.snapshot().active


class TestRenderLoop:
    def test_start_and_stop(self, session):
        session.begin_episode()
        loop = RenderLoop(session, fps=200)
        loop.start()
        assert loop.running

        deadline = time.monotonic() + 2.0
        while loop.ticks == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        loop.stop(timeout=2.0)

        assert loop.ticks > 0
        assert not loop.running

    def test_stop_is_idempotent(self, session):
        loop = RenderLoop(session)
        loop.stop()
        loop.start()
        loop.stop(timeout=2.0)
        loop.stop(timeout=2.0)
        assert not loop.running

    def test_defaults_to_config_fps(self, small_config):
        session = InkSession(small_config)
        assert RenderLoop(session).fps == small_config.render_fps

    def test_loop_survives_tick_errors(self, session):
        calls = []

        def broken(delta_ms, drive=None):
            calls.append(delta_ms)
            raise RuntimeError("boom")

        session.render_tick = broken
        loop = RenderLoop(session, fps=200)
        loop.start()
        deadline = time.monotonic() + 2.0
        while len(calls) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        loop.stop(timeout=2.0)

        assert len(calls) >= 2


class TestSessionConfig:
    def test_defaults(self):
        cfg = SessionConfig()
        assert cfg.brush == "rituel"
        assert cfg.ink == "sumi"
        assert all(cfg.effects.values())
