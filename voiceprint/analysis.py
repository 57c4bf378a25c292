"""Loudness helpers for the analysis endpoint.

pyloudnorm is kept out of the feature core so ``voiceprint.dsp`` only
needs numpy/scipy/librosa.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
import pyloudnorm as pyln

logger = logging.getLogger("voiceprint.analysis")


@dataclass
class LoudnessStats:
    integrated_lufs: float
    peak_dbfs: float


@lru_cache(maxsize=64)
def _meter_for_sr(sr: int) -> pyln.Meter:
    return pyln.Meter(sr)


def measure_loudness(x: np.ndarray, sr: float) -> LoudnessStats:
    mono = np.asarray(x, dtype=np.float64)
    meter = _meter_for_sr(int(round(sr)))
    try:
        integrated = float(meter.integrated_loudness(mono))
    except Exception as exc:
        # Too short for gating blocks; fall back to an RMS approximation.
        logger.debug("[ANALYSIS] LUFS measurement failed (%s), using RMS", exc)
        rms = float(np.sqrt(np.mean(np.square(mono)) + 1e-12))
        integrated = 20.0 * np.log10(max(rms, 1e-6))

    if not np.isfinite(integrated):
        integrated = -100.0

    peak = float(np.max(np.abs(mono))) if mono.size else 0.0
    peak_dbfs = 20.0 * np.log10(peak + 1e-9)
    return LoudnessStats(integrated_lufs=integrated, peak_dbfs=float(peak_dbfs))
