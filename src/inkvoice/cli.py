"""
CLI entry point for offline ink painting.

Replays an audio file through a painting session at real-time cadence
and writes the baked paper to a PNG.

Usage:
    inkvoice-render <audio_file> [options]
    python -m inkvoice <audio_file> [options]
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Iterator, Tuple

import librosa
import numpy as np
from PIL import Image
from scipy.signal import get_window

from inkvoice.config import SessionConfig, load_config
from inkvoice.core.brush import PRESETS
from inkvoice.core.color import INK_PALETTE
from inkvoice.session import InkSession

# Analyser decibel window, mapped onto [0, 1].
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def analyser_frame(window: np.ndarray, taper: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert one block of samples into analyser buffers.

    Args:
        window: (fft_size,) mono samples in [-1, 1].
        taper: (fft_size,) analysis window.

    Returns:
        (frequency_magnitudes, time_domain_samples), magnitudes in [0, 1]
        over fft_size / 2 bins.
    """
    fft_size = window.size
    mags = np.abs(np.fft.rfft(window * taper))[: fft_size // 2] / fft_size
    db = 20.0 * np.log10(np.maximum(mags, 1e-12))
    normalized = np.clip((db - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS), 0.0, 1.0)
    return normalized, np.clip(window, -1.0, 1.0)


def iter_analyser_frames(
    y: np.ndarray,
    sr: int,
    fps: float,
    fft_size: int = 2048,
) -> Iterator[Tuple[float, np.ndarray, np.ndarray]]:
    """Yield (time_ms, magnitudes, samples) once per render frame."""
    taper = get_window("blackman", fft_size)
    padded = np.concatenate([np.zeros(fft_size, dtype=np.float32), y.astype(np.float32)])
    n_frames = int(len(y) / sr * fps)
    for i in range(n_frames):
        t = i / fps
        end = int(t * sr) + fft_size
        window = padded[end - fft_size:end]
        mags, samples = analyser_frame(window, taper)
        yield t * 1000.0, mags, samples


def _progress_bar(current: int, total: int, width: int = 30):
    """Painting progress: one redrawn line on a terminal, sparse lines when piped."""
    frac = current / max(total, 1)
    if sys.stdout.isatty():
        done = int(width * frac)
        sys.stdout.write(f"\r  painting [{'=' * done}{' ' * (width - done)}] {frac:6.1%}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    elif current >= total or current % max(1, total // 10) == 0:
        print(f"  painted {current}/{total} ticks ({frac:.0%})", flush=True)


def paint_audio(
    session: InkSession,
    y: np.ndarray,
    sr: int,
    fps: float,
    progress_callback: callable = None,
) -> int:
    """
    Paint a whole clip into ``session``.

    Returns:
        Number of render frames played.
    """
    n_frames = int(len(y) / sr * fps)
    delta_ms = 1000.0 / fps
    session.begin_episode()
    played = 0
    for t_ms, mags, samples in iter_analyser_frames(y, sr, fps):
        session.push_audio(mags, samples, now_ms=t_ms)
        session.render_tick(delta_ms)
        played += 1
        if progress_callback:
            progress_callback(played, n_frames)
    session.end_episode()
    return played


def main():
    parser = argparse.ArgumentParser(
        prog="inkvoice-render",
        description="Paint an audio file as audio-reactive ink strokes",
    )
    parser.add_argument("audio", type=Path, help="Input audio file (wav, mp3, flac)")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output PNG path (default: <audio>_ink.png)",
    )
    parser.add_argument("--width", type=int, default=None, help="Paper width")
    parser.add_argument("--height", type=int, default=None, help="Paper height")
    parser.add_argument("-f", "--fps", type=float, default=None, help="Render ticks per second")
    parser.add_argument("--brush", type=str, default=None, choices=sorted(PRESETS), help="Brush preset")
    parser.add_argument(
        "--ink", type=str, default=None,
        help=f"Ink name ({', '.join(sorted(INK_PALETTE))}) or #rrggbb",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible paintings")
    parser.add_argument("--max-duration", type=float, default=None, help="Limit to N seconds of audio")
    parser.add_argument(
        "--config", type=Path, default=None,
        help="JSON session config (command-line options override it)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(args.config) if args.config else SessionConfig()
    except (OSError, ValueError) as e:
        print(f"Error: Could not read config {args.config}: {e}", file=sys.stderr)
        sys.exit(1)

    overrides = {
        "width": args.width,
        "height": args.height,
        "render_fps": args.fps,
        "brush": args.brush,
        "ink": args.ink,
        "seed": args.seed,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_ink.png")

    try:
        session = InkSession(config)
    except (KeyError, ValueError) as e:
        print(f"Error: {e.args[0]}", file=sys.stderr)
        sys.exit(1)

    print(f"Loading audio: {args.audio}")
    y, sr = librosa.load(args.audio, sr=None, mono=True, duration=args.max_duration)
    print(f"  Duration: {len(y) / sr:.1f}s at {sr} Hz")

    width, height = session.paper.size
    print(f"\nPainting at {width}x{height} @ {config.render_fps:g} ticks/s")
    print(f"  Brush: {config.brush}, Ink: {config.ink}")

    t0 = time.time()
    frames = paint_audio(session, y, sr, config.render_fps, progress_callback=_progress_bar)
    elapsed = time.time() - t0

    output.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.asarray(session.baked_pixels())).save(output)

    print(f"\nDone! {frames} frames in {elapsed:.1f}s")
    print(f"  Output: {output}")


if __name__ == "__main__":
    main()
