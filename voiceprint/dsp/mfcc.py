"""Mel-frequency cepstral coefficients and mel-band envelope helpers.

The filterbank comes from librosa and is cached per (rate, size, bands).
Coefficient 0 only tracks overall level, so it is skipped: the returned
``n_mfcc`` coefficients are DCT terms 1..n_mfcc, which keeps the vector
unchanged when a recording is uniformly louder or quieter.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Iterable, List, Sequence

import librosa
import numpy as np
from scipy.fft import dct

_AMIN = 1e-10
_TOP_DB = 80.0


@lru_cache(maxsize=32)
def _mel_basis(sample_rate: float, n_fft: int, n_mels: int) -> np.ndarray:
    basis = librosa.filters.mel(sr=sample_rate, n_fft=n_fft, n_mels=n_mels)
    basis = np.asarray(basis, dtype=np.float64)
    basis.setflags(write=False)
    return basis


def mel_filterbank(sample_rate: float, n_bins: int, n_mels: int = 26) -> np.ndarray:
    """Filterbank of shape ``(n_mels, n_bins)`` matching a Nyquist-less spectrum."""
    return _mel_basis(float(sample_rate), int(2 * n_bins), int(n_mels))[:, :n_bins]


def mel_band_frequencies(sample_rate: float, n_mels: int = 26) -> np.ndarray:
    """Centre frequency (Hz) of each mel band."""
    edges = librosa.mel_frequencies(n_mels=n_mels + 2, fmin=0.0, fmax=float(sample_rate) / 2.0)
    return np.asarray(edges[1:-1], dtype=np.float64)


def mel_energies(spectrum: np.ndarray, sample_rate: float, n_mels: int = 26) -> np.ndarray:
    if spectrum.size == 0:
        return np.zeros(n_mels, dtype=np.float64)
    return mel_filterbank(sample_rate, spectrum.size, n_mels) @ np.square(spectrum)


def mfcc(spectrum: np.ndarray, sample_rate: float, n_mfcc: int = 13, n_mels: int = 26) -> np.ndarray:
    if n_mels <= n_mfcc:
        raise ValueError("n_mels must exceed n_mfcc")
    energies = mel_energies(spectrum, sample_rate, n_mels)
    log_mel = librosa.power_to_db(energies, ref=1.0, amin=_AMIN, top_db=_TOP_DB)
    return dct(log_mel, type=2, norm="ortho")[1 : n_mfcc + 1]


def mel_envelope(spectrum: np.ndarray, sample_rate: float, n_mels: int = 26) -> np.ndarray:
    """Mel-band energy profile normalised to sum to 1 (zeros for silence)."""

    energies = mel_energies(spectrum, sample_rate, n_mels)
    total = float(np.sum(energies))
    if total <= 0.0 or not np.isfinite(total):
        return np.zeros(n_mels, dtype=np.float64)
    return energies / total


def envelope_formants(envelope: np.ndarray, sample_rate: float, count: int = 3) -> List[float]:
    """Frequencies of the ``count`` strongest local maxima of a mel envelope.

    Results are sorted by frequency and padded with zeros when fewer
    peaks exist.
    """

    formants: List[float] = []
    if envelope.size >= 3 and np.any(envelope > 0.0):
        centres = mel_band_frequencies(sample_rate, envelope.size)
        inner = envelope[1:-1]
        peaks = np.flatnonzero((inner > envelope[:-2]) & (inner >= envelope[2:])) + 1
        strongest = peaks[np.argsort(envelope[peaks])[::-1][:count]]
        formants = sorted(float(centres[i]) for i in strongest)
    return formants + [0.0] * (count - len(formants))


def average_mfcc(vectors: Iterable[Sequence[float]], n_mfcc: int = 13) -> np.ndarray:
    """Coefficient-wise mean over vectors of the declared length.

    Vectors with the wrong length or any non-finite value are excluded,
    not zero-filled. No valid vector gives a zero vector.
    """

    valid = []
    for vector in vectors:
        arr = np.asarray(vector, dtype=np.float64)
        if arr.shape == (n_mfcc,) and np.all(np.isfinite(arr)):
            valid.append(arr)
    if not valid:
        return np.zeros(n_mfcc, dtype=np.float64)
    return np.mean(np.stack(valid), axis=0)
