"""
Painting session.

``InkSession`` is the single owner of every piece of mutable state a live
painting needs (analyser, steering, agent, paper, active ink and brush).
Audio and pointer collaborators push into it; the render tick reads
snapshots and paints. ``RenderLoop`` runs render ticks on a background
thread.

Surface mutation (strokes, resize, clear) is serialized by one re-entrant
lock, so analysis, pointer and render threads can share a session.
"""

import logging
import random
import threading
import time
from dataclasses import replace
from typing import Callable, Optional, Union

import numpy as np

from inkvoice.config import SessionConfig
from inkvoice.core.brush import BrushPreset, get_preset, render_stroke
from inkvoice.core.color import PAPER_RGB, InkColor, get_ink, mix_color, normalize_ink
from inkvoice.core.features import AudioFeatureExtractor, DriveSignal, ExtractorConfig
from inkvoice.core.grammar import EFFECTS, apply_audio_grammar
from inkvoice.core.mathutil import clamp
from inkvoice.core.paper import PaperSurface, surface_size
from inkvoice.core.touch import SteeringAdapter
from inkvoice.core.trajectory import TrajectoryConfig, TrajectoryEngine, VoiceState

logger = logging.getLogger(__name__)


class InkSession:
    """
    Owns one painting session.

    Lifecycle: construct, ``begin_episode()``, feed ``push_audio`` and
    ``render_tick``, ``end_episode()``; ``teardown()`` drops all transient
    state. Ink, brush and effects can be swapped at any time without
    touching the agent or steering state.

    Args:
        config: Session configuration.
        clock: Monotonic clock in seconds, shared with the analyser.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cfg = config or SessionConfig()
        cfg = self.cfg
        self._clock = clock
        self._lock = threading.RLock()

        self.ink: InkColor = get_ink(cfg.ink)
        self.preset: BrushPreset = get_preset(cfg.brush)
        self.effects = dict(cfg.effects)

        seed_rng = random.Random(cfg.seed)
        self._stroke_seed = seed_rng.getrandbits(32)
        self._stroke_index = 0

        self.extractor = AudioFeatureExtractor(
            ExtractorConfig(target_fps=cfg.analysis_fps), clock=clock
        )
        width, height = surface_size(cfg.width, cfg.height, cfg.oversample)
        self.paper = PaperSurface(width, height, grain_specks=cfg.grain_specks, seed=cfg.seed)
        self.steering = SteeringAdapter(bounds=self.paper.size)
        self.trajectory = TrajectoryEngine(
            TrajectoryConfig(base_margin=cfg.base_margin, scale=cfg.oversample),
            seed=cfg.seed,
        )
        self.drawing = False

        self._pointer_last = None
        self._pointer_time_ms = 0.0

        self.trajectory.reset(*self.paper.size)

    # --- configuration surface -------------------------------------------

    def set_ink(self, ink: Union[str, InkColor]):
        self.ink = get_ink(ink) if isinstance(ink, str) else normalize_ink(ink)

    def set_preset(self, preset: Union[str, BrushPreset]):
        self.preset = get_preset(preset) if isinstance(preset, str) else preset

    def set_effect(self, name: str, enabled: bool):
        if name not in EFFECTS:
            raise KeyError(f"Unknown effect {name!r}; choose from {sorted(EFFECTS)}")
        self.effects[name] = bool(enabled)

    # --- episode lifecycle -----------------------------------------------

    def begin_episode(self):
        """Reset the agent and steering and start drawing."""
        with self._lock:
            if not self.cfg.allow_layering:
                self.paper.clear()
            self.trajectory.reset(*self.paper.size)
            self.steering.reset()
            self.drawing = True
        logger.info("Episode started on %dx%d paper", *self.paper.size)

    def end_episode(self):
        self.drawing = False

    def teardown(self):
        """Stop drawing and drop analyser and steering state."""
        self.drawing = False
        self.extractor.reset()
        self.steering.reset()
        self._pointer_last = None

    # --- producers -------------------------------------------------------

    def push_audio(self, frequency_magnitudes, time_domain_samples, now_ms: Optional[float] = None) -> bool:
        """Analysis tick; see ``AudioFeatureExtractor.update``."""
        return self.extractor.update(frequency_magnitudes, time_domain_samples, now_ms)

    @property
    def drive(self) -> DriveSignal:
        return self.extractor.snapshot()

    def render_tick(self, delta_ms: float, drive: Optional[DriveSignal] = None) -> Optional[VoiceState]:
        """
        Advance the agent one tick and paint the travelled segment.

        Args:
            delta_ms: Elapsed time since the previous tick.
            drive: Drive override; defaults to the analyser snapshot.

        Returns:
            The agent state, or None when no episode is running.
        """
        if not self.drawing:
            return None
        delta = clamp(delta_ms, 0.0, self.cfg.max_delta_ms)
        drive = drive if drive is not None else self.extractor.snapshot()
        touch = self.steering.snapshot()

        def draw(x0, y0, x1, y1, dt):
            self.deposit((x0, y0), (x1, y1), dt, drive=drive)

        with self._lock:
            width, height = self.paper.size
            state = self.trajectory.step(delta, drive, touch, width, height, draw=draw)
        # Impulses act at full strength on this tick and fade afterwards.
        self.steering.advance(delta)
        return state

    # --- painting --------------------------------------------------------

    def _next_seed(self) -> int:
        seed = self._stroke_seed + self._stroke_index
        self._stroke_index += 1
        return seed

    def deposit(
        self,
        a,
        b,
        dt_ms: float = 16.0,
        drive: Optional[DriveSignal] = None,
        force: bool = False,
    ) -> bool:
        """
        Paint one segment: seeded pass into baked, composite, preview on live.

        Skipped while the drive total is under the silence threshold
        unless ``force`` is set.

        Returns:
            True if ink was deposited.
        """
        drive = drive if drive is not None else self.extractor.snapshot()
        if not force and drive.total < self.cfg.silence_threshold:
            return False

        ink = mix_color(self.ink, PAPER_RGB, self.cfg.ink_wash)
        stroke_drive = replace(drive, high=max(drive.high, drive.peak))
        preset, stroke_drive = apply_audio_grammar(self.preset.clamped(), stroke_drive, self.effects)

        with self._lock:
            seed = self._next_seed()
            painted = render_stroke(self.paper.baked, a, b, ink, preset, stroke_drive, dt_ms, seed=seed)
            if not painted:
                return False
            self.paper.composite()
            if self.cfg.preview_pass:
                render_stroke(self.paper.live, a, b, ink, preset, stroke_drive, dt_ms)
        return True

    def pointer_down(self, x: float, y: float):
        self.steering.press(x, y)
        self._pointer_last = (x, y)
        self._pointer_time_ms = self._clock() * 1000.0

    def pointer_move(self, x: float, y: float) -> bool:
        """
        Steer toward the pointer and paint along its path while held.

        Pointer strokes are deliberate, so they bypass the silence gate.
        """
        touch = self.steering.move(x, y)
        if self._pointer_last is None or not self.drawing:
            return False
        now_ms = self._clock() * 1000.0
        dt = min(self.cfg.max_delta_ms, now_ms - self._pointer_time_ms)
        self._pointer_time_ms = now_ms
        start = self._pointer_last
        self._pointer_last = (touch.x, touch.y)
        return self.deposit(start, self._pointer_last, dt, force=True)

    def pointer_up(self):
        self.steering.release()
        self._pointer_last = None

    # --- surface lifecycle -----------------------------------------------

    def resize(self, width: int, height: int) -> bool:
        with self._lock:
            changed = self.paper.resize(width, height)
            self.steering.set_bounds(*self.paper.size)
        return changed

    def fit_viewport(self, viewport_width: float, viewport_height: float) -> bool:
        with self._lock:
            changed = self.paper.fit_viewport(viewport_width, viewport_height, self.cfg.oversample)
            self.steering.set_bounds(*self.paper.size)
        return changed

    def clear(self):
        with self._lock:
            self.paper.clear()

    def baked_pixels(self) -> np.ndarray:
        """Read-only uint8 copy of the archival buffer, for exporters."""
        with self._lock:
            return self.paper.baked_pixels()

    def live_pixels(self) -> np.ndarray:
        with self._lock:
            return self.paper.live_pixels()


class RenderLoop:
    """
    Drives ``InkSession.render_tick`` from a background thread.

    ``stop()`` is idempotent and may be called from teardown paths; it
    waits for the in-flight tick to finish.
    """

    def __init__(
        self,
        session: InkSession,
        fps: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.fps = fps or session.cfg.render_fps
        self._clock = clock
        self._stop = threading.Event()
        self._guard = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self):
        with self._guard:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="inkvoice-render", daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        with self._guard:
            thread = self._thread
            self._thread = None
        self._stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self):
        interval = 1.0 / self.fps
        last = self._clock()
        while not self._stop.wait(interval):
            now = self._clock()
            try:
                self.session.render_tick((now - last) * 1000.0)
            except Exception:
                logger.exception("Render tick failed; continuing with the next frame")
            last = now
            self.ticks += 1
