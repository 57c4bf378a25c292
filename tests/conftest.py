"""
Common signal fixtures for the voiceprint tests.
"""

import numpy as np
import pytest

from voiceprint.dsp import SampleBuffer

SR = 44100
FRAME = 2048


def sine(freq, seconds=None, n_samples=None, amplitude=0.5, sr=SR):
    if n_samples is None:
        n_samples = int(sr * seconds)
    t = np.arange(n_samples) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


def speech_like(seconds=2.0, f0=150.0, sr=SR, seed=0):
    """Harmonic tone with a 4 Hz syllable-rate envelope and a little noise."""
    t = np.arange(int(sr * seconds)) / sr
    amps = [0.4, 0.25, 0.15, 0.1, 0.06]
    tone = sum(a * np.sin(2 * np.pi * f0 * (k + 1) * t) for k, a in enumerate(amps))
    envelope = 0.65 + 0.35 * np.sin(2 * np.pi * 4.0 * t)
    noise = np.random.default_rng(seed).normal(0.0, 0.003, t.size)
    return tone * envelope + noise


@pytest.fixture
def tone_440():
    # Whole number of frames so every frame is full.
    return SampleBuffer(sine(440.0, n_samples=22 * FRAME), SR)


@pytest.fixture
def tone_880():
    return SampleBuffer(sine(880.0, n_samples=22 * FRAME), SR)


@pytest.fixture
def voice():
    return SampleBuffer(speech_like(), SR)


@pytest.fixture
def silence():
    return SampleBuffer(np.zeros(SR), SR)
