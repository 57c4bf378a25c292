"""Frequency-domain descriptors computed from one analysis frame.

All descriptors use the *linear* magnitude spectrum. Magnitudes are
scaled by ``2 / sum(window)`` so a full-scale sinusoid peaks close to
1.0, which lets the harmonic detector use a dBFS threshold directly.
Every function returns 0 rather than NaN when the spectrum carries no
energy.
"""
from __future__ import annotations

from typing import List, NamedTuple

import numpy as np
from scipy import signal

from .frames import hann_window

BARK_BANDS = 24
_LOG_FLOOR = 1e-12


class Harmonic(NamedTuple):
    frequency: float
    magnitude: float


def magnitude_spectrum(frame: np.ndarray, window: bool = True) -> np.ndarray:
    """Return ``len(frame) // 2`` linear magnitude bins (Nyquist dropped)."""

    n = frame.shape[0]
    if n < 2:
        return np.zeros(0, dtype=np.float64)
    w = hann_window(n) if window else np.ones(n, dtype=np.float64)
    spectrum = np.abs(np.fft.rfft(frame * w))[: n // 2]
    norm = float(np.sum(w))
    if norm <= 0.0:
        return np.zeros(n // 2, dtype=np.float64)
    return spectrum * (2.0 / norm)


def bin_size(n_bins: int, sample_rate: float) -> float:
    return sample_rate / (2.0 * n_bins)


def bin_frequencies(n_bins: int, sample_rate: float) -> np.ndarray:
    return np.arange(n_bins, dtype=np.float64) * bin_size(n_bins, sample_rate)


def spectral_centroid(spectrum: np.ndarray, sample_rate: float) -> float:
    total = float(np.sum(spectrum))
    if spectrum.size == 0 or total <= 0.0 or not np.isfinite(total):
        return 0.0
    freqs = bin_frequencies(spectrum.size, sample_rate)
    return float(np.sum(freqs * spectrum) / total)


def spectral_rolloff(spectrum: np.ndarray, sample_rate: float, percent: float = 0.85) -> float:
    """Frequency below which ``percent`` of the spectral magnitude lies."""

    total = float(np.sum(spectrum))
    if spectrum.size == 0 or total <= 0.0 or not np.isfinite(total):
        return 0.0
    cumulative = np.cumsum(spectrum)
    idx = int(np.searchsorted(cumulative, percent * total, side="left"))
    idx = min(idx, spectrum.size - 1)
    return float(idx * bin_size(spectrum.size, sample_rate))


def spectral_flatness(spectrum: np.ndarray) -> float:
    """Geometric over arithmetic mean; 1 for white noise, near 0 for tones."""

    if spectrum.size == 0:
        return 0.0
    arithmetic = float(np.mean(spectrum))
    if arithmetic <= 0.0 or not np.isfinite(arithmetic):
        return 0.0
    geometric = float(np.exp(np.mean(np.log(np.maximum(spectrum, _LOG_FLOOR)))))
    return float(np.clip(geometric / arithmetic, 0.0, 1.0))


def spectral_spread(spectrum: np.ndarray, sample_rate: float) -> float:
    """Magnitude-weighted standard deviation of frequency around the centroid (Hz)."""

    total = float(np.sum(spectrum))
    if spectrum.size == 0 or total <= 0.0 or not np.isfinite(total):
        return 0.0
    freqs = bin_frequencies(spectrum.size, sample_rate)
    centroid = float(np.sum(freqs * spectrum) / total)
    variance = float(np.sum(spectrum * (freqs - centroid) ** 2) / total)
    return float(np.sqrt(max(variance, 0.0)))


def _parabolic_offset(left: float, centre: float, right: float) -> float:
    denom = left - 2.0 * centre + right
    if denom == 0.0 or not np.isfinite(denom):
        return 0.0
    return float(np.clip(0.5 * (left - right) / denom, -0.5, 0.5))


def estimate_f0_spectral(
    spectrum: np.ndarray,
    sample_rate: float,
    min_hz: float = 20.0,
    max_hz: float = 2000.0,
) -> float:
    """Strongest bin between ``min_hz`` and ``max_hz``, refined on a log-parabola."""

    n = spectrum.size
    if n < 3:
        return 0.0
    step = bin_size(n, sample_rate)
    lo = max(1, int(np.floor(min_hz / step)))
    hi = min(n - 1, int(np.floor(max_hz / step)) + 1)
    if hi <= lo:
        return 0.0
    segment = spectrum[lo:hi]
    k = int(np.argmax(segment))
    if segment[k] <= 0.0:
        return 0.0
    idx = lo + k
    offset = 0.0
    if spectrum[idx - 1] > 0.0 and spectrum[idx + 1] > 0.0:
        offset = _parabolic_offset(
            float(np.log(spectrum[idx - 1])),
            float(np.log(spectrum[idx])),
            float(np.log(spectrum[idx + 1])),
        )
    return float((idx + offset) * step)


def autocorrelation(frame: np.ndarray, max_lag: int = 1000) -> np.ndarray:
    """Correlation of the frame with itself for lags ``0 .. max_lag - 1``.

    Every lag sums the same number of products so values are comparable
    across lags.
    """

    n = frame.shape[0]
    max_lag = min(int(max_lag), n - 1)
    if max_lag < 1:
        return np.zeros(0, dtype=np.float64)
    reference = frame[: n - max_lag + 1]
    return signal.correlate(frame, reference, mode="valid")[:max_lag]


def estimate_f0_autocorrelation(
    frame: np.ndarray,
    sample_rate: float,
    max_lag: int = 1000,
    min_hz: float = 20.0,
    max_hz: float = 2000.0,
    voicing_threshold: float = 0.3,
) -> float:
    """Fundamental from the first autocorrelation peak.

    The first lag whose correlation exceeds both neighbours, lies above
    the lag of ``max_hz`` and reaches ``voicing_threshold`` times the
    zero-lag energy is taken as the period. Returns 0 when no such peak
    exists (silence, noise, or a period longer than ``max_lag``).
    """

    corr = autocorrelation(frame, max_lag)
    if corr.size < 3 or corr[0] <= 0.0:
        return 0.0
    min_lag = max(1, int(sample_rate / max_hz))
    inner = corr[1:-1]
    peaks = np.flatnonzero((inner > corr[:-2]) & (inner > corr[2:])) + 1
    peaks = peaks[(peaks >= min_lag) & (corr[peaks] >= voicing_threshold * corr[0])]
    if peaks.size == 0:
        return 0.0
    lag = int(peaks[0])
    refined = lag + _parabolic_offset(float(corr[lag - 1]), float(corr[lag]), float(corr[lag + 1]))
    if refined <= 0.0:
        return 0.0
    f0 = float(sample_rate / refined)
    if f0 < min_hz or f0 > max_hz:
        return 0.0
    return f0


def detect_harmonics(
    spectrum: np.ndarray,
    f0: float,
    sample_rate: float,
    max_harmonics: int = 8,
    threshold: float = 10.0 ** (-50.0 / 20.0),
) -> List[Harmonic]:
    """Harmonics ``1..max_harmonics`` of ``f0`` whose bin exceeds ``threshold``."""

    if f0 <= 0.0 or spectrum.size == 0:
        return []
    step = bin_size(spectrum.size, sample_rate)
    found: List[Harmonic] = []
    for i in range(1, max_harmonics + 1):
        target = f0 * i
        idx = int(round(target / step))
        if idx >= spectrum.size:
            break
        magnitude = float(spectrum[idx])
        if magnitude > threshold:
            found.append(Harmonic(frequency=target, magnitude=magnitude))
    return found


def _bark(freqs: np.ndarray) -> np.ndarray:
    return 13.0 * np.arctan(0.00076 * freqs) + 3.5 * np.arctan((freqs / 7500.0) ** 2)


def specific_loudness(spectrum: np.ndarray, sample_rate: float) -> np.ndarray:
    """Loudness per Bark band (band magnitude raised to 0.23)."""

    if spectrum.size == 0:
        return np.zeros(BARK_BANDS, dtype=np.float64)
    bands = np.clip(_bark(bin_frequencies(spectrum.size, sample_rate)).astype(int), 0, BARK_BANDS - 1)
    band_sums = np.bincount(bands, weights=spectrum, minlength=BARK_BANDS)[:BARK_BANDS]
    return np.power(np.maximum(band_sums, 0.0), 0.23)


def bark_loudness(spectrum: np.ndarray, sample_rate: float) -> float:
    return float(np.sum(specific_loudness(spectrum, sample_rate)))


def perceptual_spread(spectrum: np.ndarray, sample_rate: float) -> float:
    specific = specific_loudness(spectrum, sample_rate)
    total = float(np.sum(specific))
    if total <= 0.0:
        return 0.0
    return float(((total - float(np.max(specific))) / total) ** 2)


def perceptual_sharpness(spectrum: np.ndarray, sample_rate: float) -> float:
    """Zwicker-style sharpness: Bark-weighted loudness centroid, high bands boosted."""

    specific = specific_loudness(spectrum, sample_rate)
    total = float(np.sum(specific))
    if total <= 0.0:
        return 0.0
    z = np.arange(1, BARK_BANDS + 1, dtype=np.float64)
    g = np.where(z < 15, 1.0, 0.066 * np.exp(0.171 * z))
    return float(0.11 * np.sum(z * g * specific) / total)
