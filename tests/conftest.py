"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from inkvoice.config import SessionConfig
from inkvoice.core.color import PAPER_RGB, to_unit
from inkvoice.core.features import DriveSignal
from inkvoice.core.raster import new_surface
from inkvoice.session import InkSession

# Default sample rate for test audio
TEST_SR = 22050

# Analyser buffer length (frequencyBinCount for a 2048-point FFT)
N_BINS = 1024


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def pure_sine(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a loud 220Hz sine wave.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 1.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = 0.8 * np.sin(2 * np.pi * 220.0 * t)
    return y.astype(np.float32), sample_rate


@pytest.fixture
def loud_frame() -> tuple[np.ndarray, np.ndarray]:
    """
    Analyser buffers for a loud broadband frame.

    Returns:
        Tuple of (frequency_magnitudes, time_domain_samples).
    """
    mags = np.full(N_BINS, 0.6, dtype=np.float32)
    t = np.arange(2048) / 2048.0
    samples = (0.8 * np.sin(2 * np.pi * 8 * t)).astype(np.float32)
    return mags, samples


@pytest.fixture
def silent_frame() -> tuple[np.ndarray, np.ndarray]:
    """Analyser buffers for digital silence."""
    return np.zeros(N_BINS, dtype=np.float32), np.zeros(2048, dtype=np.float32)


@pytest.fixture
def loud_drive() -> DriveSignal:
    """Drive snapshot of a loud, bass-heavy passage on a transient."""
    return DriveSignal(energy=0.8, low=0.9, mid=0.1, high=0.05, peak=1.0)


@pytest.fixture
def paper_sheet() -> np.ndarray:
    """Blank 64x64 paper-colored float surface."""
    return new_surface(64, 64, to_unit(PAPER_RGB))


@pytest.fixture
def small_config() -> SessionConfig:
    """Small, seeded session config that paints quickly."""
    return SessionConfig(width=64, height=48, grain_specks=200, base_margin=8, seed=3)


@pytest.fixture
def session(small_config: SessionConfig) -> InkSession:
    return InkSession(small_config)
