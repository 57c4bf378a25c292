"""Tunable constants for feature extraction, comparison and live monitoring.

Every threshold the engine uses lives here so callers can see and
override it. ``load_config`` reads ``VOICEPRINT_*`` environment variables
for deployments that cannot pass a config object around.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional


def _check_weights(name: str, weights: Dict[str, float]) -> None:
    total = float(sum(weights.values()))
    if abs(total - 1.0) > 1e-6:
        raise ValueError(f"{name} weights must sum to 1.0, got {total:.4f}")
    if any(w < 0.0 for w in weights.values()):
        raise ValueError(f"{name} weights must be non-negative")


@dataclass(frozen=True)
class TimbreWeights:
    harmonics: float = 0.35
    envelope: float = 0.35
    brightness: float = 0.15
    formant: float = 0.15

    def __post_init__(self) -> None:
        _check_weights("timbre", self.__dict__)


@dataclass(frozen=True)
class AcousticWeights:
    mfcc: float = 0.4
    spectral: float = 0.3
    pitch: float = 0.3

    def __post_init__(self) -> None:
        _check_weights("acoustic", self.__dict__)


@dataclass(frozen=True)
class RhythmWeights:
    speed: float = 0.4
    pause: float = 0.4
    duration: float = 0.2

    def __post_init__(self) -> None:
        _check_weights("rhythm", self.__dict__)


@dataclass(frozen=True)
class OverallWeights:
    timbre: float = 0.4
    acoustic: float = 0.3
    rhythm: float = 0.3

    def __post_init__(self) -> None:
        _check_weights("overall", self.__dict__)


@dataclass(frozen=True)
class AnalysisConfig:
    # Framing
    frame_size: int = 2048
    hop_size: Optional[int] = None  # None -> non-overlapping frames
    max_comparison_samples: int = 88_200  # ~2 s at 44.1 kHz

    # Cepstral
    n_mfcc: int = 13
    n_mels: int = 26

    # Time domain
    silence_threshold: float = 0.01
    short_silence_bridge_ms: float = 200.0
    zcr_epsilon: float = 1e-6
    energy_floor_db: float = -100.0

    # Frequency domain
    rolloff_percent: float = 0.85
    f0_min_hz: float = 20.0
    f0_max_hz: float = 2000.0
    autocorr_max_lag: int = 1000
    voicing_threshold: float = 0.3
    max_harmonics: int = 8
    harmonic_threshold_db: float = -50.0

    # Live monitor
    ema_alpha: float = 0.1
    tick_interval_ms: float = 100.0
    silence_reset_ms: float = 1000.0

    # Scoring
    timbre_weights: TimbreWeights = field(default_factory=TimbreWeights)
    acoustic_weights: AcousticWeights = field(default_factory=AcousticWeights)
    rhythm_weights: RhythmWeights = field(default_factory=RhythmWeights)
    overall_weights: OverallWeights = field(default_factory=OverallWeights)

    def __post_init__(self) -> None:
        if self.frame_size < 2:
            raise ValueError("frame_size must be at least 2")
        if self.hop_size is not None and not 0 < self.hop_size <= self.frame_size:
            raise ValueError("hop_size must be in (0, frame_size]")
        if self.max_comparison_samples < 1:
            raise ValueError("max_comparison_samples must be positive")
        if self.n_mfcc < 1 or self.n_mels <= self.n_mfcc:
            raise ValueError("n_mels must exceed n_mfcc and n_mfcc must be positive")
        if not 0.0 < self.ema_alpha <= 1.0:
            raise ValueError("ema_alpha must be in (0, 1]")
        if not 0.0 < self.rolloff_percent < 1.0:
            raise ValueError("rolloff_percent must be in (0, 1)")
        if not 0.0 < self.f0_min_hz < self.f0_max_hz:
            raise ValueError("f0 range must satisfy 0 < min < max")

    @property
    def effective_hop(self) -> int:
        return self.hop_size or self.frame_size

    @property
    def harmonic_threshold(self) -> float:
        """Linear magnitude equivalent of ``harmonic_threshold_db``."""
        return float(10.0 ** (self.harmonic_threshold_db / 20.0))


DEFAULT_CONFIG = AnalysisConfig()

_ENV_PREFIX = "VOICEPRINT_"
_WEIGHT_FIELDS = {"timbre_weights", "acoustic_weights", "rhythm_weights", "overall_weights"}


def _coerce(raw: str, current: Any) -> Any:
    if isinstance(current, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    # Optional[int] fields default to None
    if raw.strip().lower() in {"", "none"}:
        return None
    return int(raw)


def load_config(env: Optional[Dict[str, str]] = None, base: AnalysisConfig = DEFAULT_CONFIG) -> AnalysisConfig:
    """Return ``base`` with fields overridden from ``VOICEPRINT_*`` variables.

    Field names map to upper-case variable names, e.g. ``frame_size`` is
    read from ``VOICEPRINT_FRAME_SIZE``. Category weights are not
    overridable this way; construct ``AnalysisConfig`` directly for that.
    """

    source = os.environ if env is None else env
    overrides: Dict[str, Any] = {}
    for f in fields(base):
        if f.name in _WEIGHT_FIELDS:
            continue
        raw = source.get(_ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        try:
            overrides[f.name] = _coerce(raw, getattr(base, f.name))
        except ValueError as exc:
            raise ValueError(f"Invalid value for {_ENV_PREFIX}{f.name.upper()}: {raw!r}") from exc

    if not overrides:
        return base
    return replace(base, **overrides)
