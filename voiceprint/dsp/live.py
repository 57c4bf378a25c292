"""Streaming feature monitor for on-the-fly display.

One ``LiveFeatureMonitor`` owns the smoothed state of one audio source.
The capture layer calls ``tick`` from its render/poll loop with the
latest time-domain window (and optionally its magnitude spectrum);
the display layer reads ``snapshot`` whenever it likes.

State machine::

    IDLE --signal--> VOICED --quiet window--> SILENCE_PENDING
      ^                 ^                          |
      |                 +--------signal------------+
      +---------quiet longer than the reset timeout+
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from voiceprint.config import DEFAULT_CONFIG, AnalysisConfig

from .errors import ExtractionFailure
from .mfcc import mfcc
from .spectral import (
    bark_loudness,
    detect_harmonics,
    estimate_f0_spectral,
    magnitude_spectrum,
    perceptual_sharpness,
    spectral_centroid,
    spectral_spread,
)
from .time_domain import VoicedDurationTracker, energy, energy_db, zero_crossing_rate

logger = logging.getLogger("voiceprint.dsp.live")


class MonitorState(str, Enum):
    IDLE = "idle"
    VOICED = "voiced"
    SILENCE_PENDING = "silence_pending"


@dataclass(frozen=True)
class LiveFeatures:
    effective_duration: float = 0.0
    zcr: float = 0.0
    energy: float = 0.0
    fundamental_freq: float = 0.0
    harmonics_count: float = 0.0
    spectral_centroid: float = 0.0
    spectral_spread: float = 0.0
    perceptual_sharpness: float = 0.0
    loudness: float = 0.0
    mfcc: Tuple[float, ...] = ()

    def energy_db(self, floor_db: float = -100.0) -> float:
        return energy_db(self.energy, floor_db)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LiveAnalysisState:
    features: LiveFeatures
    status: MonitorState = MonitorState.IDLE
    is_first_frame: bool = True
    last_non_silent_time: Optional[float] = None
    frame_count: int = 0


# Running totals are reported as-is; everything else is smoothed.
_UNSMOOTHED = {"effective_duration"}


def _blend(previous: LiveFeatures, instant: LiveFeatures, alpha: float) -> LiveFeatures:
    merged: Dict[str, Any] = {}
    for f in fields(LiveFeatures):
        new = getattr(instant, f.name)
        old = getattr(previous, f.name)
        if f.name in _UNSMOOTHED:
            merged[f.name] = new
        elif isinstance(new, tuple):
            if len(old) != len(new):
                merged[f.name] = new
            else:
                merged[f.name] = tuple(alpha * n + (1.0 - alpha) * o for n, o in zip(new, old))
        else:
            merged[f.name] = alpha * new + (1.0 - alpha) * old
    return LiveFeatures(**merged)


class LiveFeatureMonitor:
    def __init__(
        self,
        sample_rate: float,
        config: AnalysisConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.monotonic,
    ):
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.sample_rate = float(sample_rate)
        self.config = config
        self._clock = clock
        self._tracker = VoicedDurationTracker(
            self.sample_rate, config.silence_threshold, config.short_silence_bridge_ms
        )
        self._last_update: Optional[float] = None
        self.reset()

    @property
    def status(self) -> MonitorState:
        return self.state.status

    def reset(self) -> None:
        """Drop all history and return to IDLE."""
        self.state = LiveAnalysisState(features=LiveFeatures(mfcc=(0.0,) * self.config.n_mfcc))
        self._tracker.reset()

    def snapshot(self) -> LiveFeatures:
        return self.state.features

    @property
    def energy_db(self) -> float:
        """Smoothed energy in dB, floored at ``config.energy_floor_db``."""
        return self.state.features.energy_db(self.config.energy_floor_db)

    def tick(
        self,
        time_data: np.ndarray,
        spectrum: Optional[np.ndarray] = None,
        now: Optional[float] = None,
    ) -> Optional[LiveFeatures]:
        """Fold one analysis window into the smoothed state.

        ``now`` is in seconds (defaults to the monitor clock). Returns the
        new snapshot, or ``None`` when the tick was rate limited or the
        state was reset by prolonged silence.
        """

        now = self._clock() if now is None else float(now)
        interval = self.config.tick_interval_ms / 1000.0
        if self._last_update is not None and now - self._last_update < interval:
            return None
        self._last_update = now

        samples = np.asarray(time_data, dtype=np.float64).reshape(-1)
        if self._silence_expired(samples, now):
            if self.state.status is not MonitorState.IDLE:
                logger.debug("[LIVE] Silence exceeded %.0f ms, resetting", self.config.silence_reset_ms)
            self.reset()
            return None

        try:
            instant = self._instant_features(samples, spectrum)
        except ExtractionFailure as exc:
            logger.debug("[LIVE] Skipping tick: %s", exc)
            return None

        state = self.state
        state.frame_count += 1
        if state.is_first_frame:
            state.features = instant
            state.is_first_frame = False
        else:
            state.features = _blend(state.features, instant, self.config.ema_alpha)
        return state.features

    def _silence_expired(self, samples: np.ndarray, now: float) -> bool:
        state = self.state
        silent = samples.size == 0 or bool(np.all(np.abs(samples) < self.config.silence_threshold))
        if not silent:
            state.last_non_silent_time = now
            state.status = MonitorState.VOICED
            return False

        timeout = self.config.silence_reset_ms / 1000.0
        if state.last_non_silent_time is None or now - state.last_non_silent_time > timeout:
            return True
        state.status = MonitorState.SILENCE_PENDING
        return False

    def _instant_features(self, samples: np.ndarray, spectrum: Optional[np.ndarray]) -> LiveFeatures:
        cfg = self.config
        sr = self.sample_rate
        try:
            if spectrum is None:
                mag = magnitude_spectrum(samples, window=True)
            else:
                mag = np.asarray(spectrum, dtype=np.float64).reshape(-1)
            f0 = estimate_f0_spectral(mag, sr, cfg.f0_min_hz, cfg.f0_max_hz)
            harmonics = detect_harmonics(mag, f0, sr, cfg.max_harmonics, cfg.harmonic_threshold)
            instant = LiveFeatures(
                effective_duration=self._tracker.update(samples),
                zcr=zero_crossing_rate(samples, sr, cfg.zcr_epsilon),
                energy=energy(samples),
                fundamental_freq=f0,
                harmonics_count=float(len(harmonics)),
                spectral_centroid=spectral_centroid(mag, sr),
                spectral_spread=spectral_spread(mag, sr),
                perceptual_sharpness=perceptual_sharpness(mag, sr),
                loudness=bark_loudness(mag, sr),
                mfcc=tuple(float(c) for c in mfcc(mag, sr, cfg.n_mfcc, cfg.n_mels)),
            )
        except Exception as exc:
            raise ExtractionFailure(f"live feature extraction failed: {exc}") from exc

        values = [v for v in asdict(instant).values() if not isinstance(v, tuple)]
        if not (np.all(np.isfinite(values)) and np.all(np.isfinite(instant.mfcc))):
            raise ExtractionFailure("live window produced non-finite features")
        return instant

