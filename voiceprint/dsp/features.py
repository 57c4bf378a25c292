"""Whole-buffer feature extraction.

Runs the frame, time-domain, spectral and cepstral modules over every
frame of a buffer and reduces the per-frame values into one immutable
``FeatureSet``. Frames that fail or produce non-finite values are
skipped; a buffer that is silent or yields no usable frame produces the
all-zero feature set.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

from voiceprint.config import DEFAULT_CONFIG, AnalysisConfig

from .buffers import SampleBuffer, validate_buffer
from .errors import ExtractionFailure
from .frames import iter_frames
from .mfcc import average_mfcc, envelope_formants, mel_envelope, mfcc
from .spectral import (
    bark_loudness,
    detect_harmonics,
    estimate_f0_autocorrelation,
    magnitude_spectrum,
    perceptual_sharpness,
    perceptual_spread,
    spectral_centroid,
    spectral_flatness,
    spectral_rolloff,
    spectral_spread,
)
from .statistics import Statistics, compute_statistics
from .time_domain import VoicedDurationTracker, energy, rms, zero_crossing_rate

logger = logging.getLogger("voiceprint.dsp.features")

STATISTIC_FEATURES = ("rms", "spectral_centroid", "zcr")


@dataclass(frozen=True)
class FrameFeatures:
    rms: float
    energy: float
    zcr: float
    spectral_centroid: float
    spectral_rolloff: float
    spectral_flatness: float
    spectral_spread: float
    loudness: float
    perceptual_spread: float
    perceptual_sharpness: float
    fundamental_freq: float
    harmonics_count: int
    mfcc: Tuple[float, ...]
    envelope: Tuple[float, ...]


@dataclass(frozen=True)
class FeatureSet:
    mfcc: Tuple[float, ...]
    spectral_centroid: float = 0.0
    spectral_rolloff: float = 0.0
    spectral_flatness: float = 0.0
    spectral_spread: float = 0.0
    rms: float = 0.0
    energy: float = 0.0
    zcr: float = 0.0
    loudness: float = 0.0
    perceptual_spread: float = 0.0
    perceptual_sharpness: float = 0.0
    fundamental_freq: float = 0.0
    pitch_range: float = 0.0
    harmonics_count: float = 0.0
    envelope: Tuple[float, ...] = ()
    formants: Tuple[float, ...] = (0.0, 0.0, 0.0)
    duration: float = 0.0
    effective_duration: float = 0.0
    frame_count: int = 0
    statistics: Dict[str, Statistics] = field(
        default_factory=lambda: {name: Statistics() for name in STATISTIC_FEATURES}
    )

    @classmethod
    def zeros(cls, config: AnalysisConfig = DEFAULT_CONFIG, duration: float = 0.0) -> "FeatureSet":
        return cls(
            mfcc=(0.0,) * config.n_mfcc,
            envelope=(0.0,) * config.n_mels,
            duration=float(duration),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_frame_features(frame: np.ndarray, sample_rate: float, config: AnalysisConfig = DEFAULT_CONFIG) -> FrameFeatures:
    """Compute every per-frame descriptor, raising ``ExtractionFailure`` on bad output."""

    try:
        spectrum = magnitude_spectrum(frame, window=True)
        f0 = estimate_f0_autocorrelation(
            frame,
            sample_rate,
            max_lag=config.autocorr_max_lag,
            min_hz=config.f0_min_hz,
            max_hz=config.f0_max_hz,
            voicing_threshold=config.voicing_threshold,
        )
        harmonics = detect_harmonics(
            spectrum,
            f0,
            sample_rate,
            max_harmonics=config.max_harmonics,
            threshold=config.harmonic_threshold,
        )
        features = FrameFeatures(
            rms=rms(frame),
            energy=energy(frame),
            zcr=zero_crossing_rate(frame, sample_rate, config.zcr_epsilon),
            spectral_centroid=spectral_centroid(spectrum, sample_rate),
            spectral_rolloff=spectral_rolloff(spectrum, sample_rate, config.rolloff_percent),
            spectral_flatness=spectral_flatness(spectrum),
            spectral_spread=spectral_spread(spectrum, sample_rate),
            loudness=bark_loudness(spectrum, sample_rate),
            perceptual_spread=perceptual_spread(spectrum, sample_rate),
            perceptual_sharpness=perceptual_sharpness(spectrum, sample_rate),
            fundamental_freq=f0,
            harmonics_count=len(harmonics),
            mfcc=tuple(float(c) for c in mfcc(spectrum, sample_rate, config.n_mfcc, config.n_mels)),
            envelope=tuple(float(v) for v in mel_envelope(spectrum, sample_rate, config.n_mels)),
        )
    except Exception as exc:
        raise ExtractionFailure(f"frame feature extraction failed: {exc}") from exc

    scalars = [v for v in asdict(features).values() if not isinstance(v, tuple)]
    if not (np.all(np.isfinite(scalars)) and np.all(np.isfinite(features.mfcc)) and np.all(np.isfinite(features.envelope))):
        raise ExtractionFailure("frame produced non-finite features")
    return features


def _mean(values: List[float]) -> float:
    return float(np.mean(values)) if values else 0.0


def extract_features(buffer: SampleBuffer, config: AnalysisConfig = DEFAULT_CONFIG) -> FeatureSet:
    """Reduce every frame of ``buffer`` into a ``FeatureSet``.

    Empty and silent buffers give the all-zero set. Raises
    ``InvalidInputError`` for anything else that fails validation.
    """

    if (
        isinstance(buffer, SampleBuffer)
        and buffer.samples.size == 0
        and np.isfinite(buffer.sample_rate)
        and buffer.sample_rate > 0
    ):
        return FeatureSet.zeros(config, duration=buffer.duration)
    validate_buffer(buffer)
    if buffer.is_silent:
        return FeatureSet.zeros(config, duration=buffer.duration)

    sr = float(buffer.sample_rate)
    frames: List[FrameFeatures] = []
    skipped = 0
    for index, frame in enumerate(iter_frames(buffer.samples, config.frame_size, config.effective_hop)):
        try:
            frames.append(extract_frame_features(frame, sr, config))
        except ExtractionFailure as exc:
            skipped += 1
            logger.debug("[FEATURES] Skipping frame %d: %s", index, exc)

    if not frames:
        logger.warning(
            "[FEATURES] No usable frames (samples=%d, frame_size=%d, skipped=%d); returning zero features",
            len(buffer),
            config.frame_size,
            skipped,
        )
        return FeatureSet.zeros(config, duration=buffer.duration)

    envelope = np.mean(np.asarray([f.envelope for f in frames], dtype=np.float64), axis=0)
    env_total = float(np.sum(envelope))
    if env_total > 0.0:
        envelope = envelope / env_total

    voiced_f0 = [f.fundamental_freq for f in frames if f.fundamental_freq > 0.0]
    pitch_range = float(max(voiced_f0) - min(voiced_f0)) if voiced_f0 else 0.0

    tracker = VoicedDurationTracker(sr, config.silence_threshold, config.short_silence_bridge_ms)
    effective_duration = tracker.update(buffer.samples)

    statistics = {name: compute_statistics(getattr(f, name) for f in frames) for name in STATISTIC_FEATURES}

    feature_set = FeatureSet(
        mfcc=tuple(float(c) for c in average_mfcc((f.mfcc for f in frames), config.n_mfcc)),
        spectral_centroid=_mean([f.spectral_centroid for f in frames]),
        spectral_rolloff=_mean([f.spectral_rolloff for f in frames]),
        spectral_flatness=_mean([f.spectral_flatness for f in frames]),
        spectral_spread=_mean([f.spectral_spread for f in frames]),
        rms=_mean([f.rms for f in frames]),
        energy=_mean([f.energy for f in frames]),
        zcr=_mean([f.zcr for f in frames]),
        loudness=_mean([f.loudness for f in frames]),
        perceptual_spread=_mean([f.perceptual_spread for f in frames]),
        perceptual_sharpness=_mean([f.perceptual_sharpness for f in frames]),
        fundamental_freq=_mean(voiced_f0),
        pitch_range=pitch_range,
        harmonics_count=_mean([float(f.harmonics_count) for f in frames]),
        envelope=tuple(float(v) for v in envelope),
        formants=tuple(envelope_formants(envelope, sr)),
        duration=float(buffer.duration),
        effective_duration=float(effective_duration),
        frame_count=len(frames),
        statistics=statistics,
    )

    logger.debug(
        "[FEATURES] Extracted %d frames (skipped=%d): rms=%.4f centroid=%.1f Hz f0=%.1f Hz zcr=%.1f Hz",
        len(frames),
        skipped,
        feature_set.rms,
        feature_set.spectral_centroid,
        feature_set.fundamental_freq,
        feature_set.zcr,
    )
    return feature_set
