"""Weighted multi-feature similarity between two recordings.

Per-feature matches are folded into three category scores (timbre,
acoustic, rhythm) and one overall score using the weights in
``AnalysisConfig``. Every score is clamped to [0, 1] and anything
non-finite becomes 0.

Two entry points exist for buffers: ``run_comparison`` raises on bad
input or unexpected failures, ``compare_buffers`` never raises and
returns the all-zero report instead, which is what UI callers want.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from voiceprint.config import DEFAULT_CONFIG, AnalysisConfig

from .buffers import SampleBuffer, downsample, validate_buffer
from .errors import ComparisonFailure, InvalidInputError, VoiceprintError
from .features import FeatureSet, extract_features

logger = logging.getLogger("voiceprint.dsp.similarity")


@dataclass(frozen=True)
class SimilarityDetails:
    harmonics_match: float = 0.0
    spectral_match: float = 0.0
    envelope_match: float = 0.0
    brightness_match: float = 0.0
    formant_match: float = 0.0
    mfcc_similarity: float = 0.0
    pitch_match: float = 0.0
    pitch_range_match: float = 0.0
    energy_match: float = 0.0
    loudness_match: float = 0.0
    perceptual_match: float = 0.0
    speed_match: float = 0.0
    pause_match: float = 0.0
    duration_ratio: float = 0.0


@dataclass(frozen=True)
class SimilarityReport:
    overall: float = 0.0
    timbre: float = 0.0
    acoustic: float = 0.0
    rhythm: float = 0.0
    details: SimilarityDetails = field(default_factory=SimilarityDetails)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_flat_dict(self) -> Dict[str, float]:
        flat = {"overall": self.overall, "timbre": self.timbre, "acoustic": self.acoustic, "rhythm": self.rhythm}
        flat.update(asdict(self.details))
        return flat

    def as_percentages(self) -> Dict[str, int]:
        """Display form: every score times 100, rounded."""
        return {key: int(round(value * 100.0)) for key, value in self.to_flat_dict().items()}


@dataclass(frozen=True)
class SimilarityVerdict:
    level: str
    score: float
    strengths: Tuple[str, ...] = ()
    weaknesses: Tuple[str, ...] = ()


def clamp_score(value: Any) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def _finite(value: Any) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def scalar_similarity(a: Optional[float], b: Optional[float]) -> float:
    """``1 - |a - b| / max(|a|, |b|)``.

    Unknown is treated as no match: both zero, a missing or non-finite
    operand, or a zero denominator all give 0.
    """

    if a is None or b is None or not _finite(a) or not _finite(b):
        return 0.0
    a = float(a)
    b = float(b)
    denom = max(abs(a), abs(b))
    if denom == 0.0:
        return 0.0
    return clamp_score(1.0 - abs(a - b) / denom)


def mfcc_similarity(a: Sequence[float], b: Sequence[float], n_coefficients: Optional[int] = 13) -> float:
    """``1 / (1 + rmse)`` between two MFCC vectors.

    Vectors of different length, or of a length other than
    ``n_coefficients`` when that is given, score 0.
    """

    try:
        va = np.asarray(a, dtype=np.float64).reshape(-1)
        vb = np.asarray(b, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError):
        return 0.0
    if va.size == 0 or va.size != vb.size:
        return 0.0
    if n_coefficients is not None and va.size != n_coefficients:
        return 0.0
    if not (np.all(np.isfinite(va)) and np.all(np.isfinite(vb))):
        return 0.0
    mse = float(np.mean((va - vb) ** 2))
    return clamp_score(1.0 / (1.0 + math.sqrt(mse)))


def duration_ratio(duration_a: float, duration_b: float) -> float:
    if not _finite(duration_a) or not _finite(duration_b):
        return 0.0
    longest = max(float(duration_a), float(duration_b))
    if longest <= 0.0:
        return 0.0
    return clamp_score(min(float(duration_a), float(duration_b)) / longest)


def envelope_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """One minus the total-variation distance between two band profiles."""

    pa = np.asarray(a, dtype=np.float64)
    pb = np.asarray(b, dtype=np.float64)
    if pa.size == 0 or pa.shape != pb.shape:
        return 0.0
    sa = float(np.sum(pa))
    sb = float(np.sum(pb))
    if sa <= 0.0 or sb <= 0.0 or not (math.isfinite(sa) and math.isfinite(sb)):
        return 0.0
    return clamp_score(1.0 - 0.5 * float(np.sum(np.abs(pa / sa - pb / sb))))


def group_similarity(pairs: Iterable[Tuple[float, float]]) -> float:
    """Mean scalar similarity over pairs where at least one side is known.

    A pair where both values are zero or non-finite carries no evidence
    and is left out; if nothing is left the group scores 0.
    """

    scores: List[float] = []
    for a, b in pairs:
        known_a = _finite(a) and float(a) != 0.0
        known_b = _finite(b) and float(b) != 0.0
        if not (known_a or known_b):
            continue
        scores.append(scalar_similarity(a, b))
    if not scores:
        return 0.0
    return clamp_score(sum(scores) / len(scores))


def _weighted(weights: Any, components: Dict[str, float]) -> float:
    total = 0.0
    for f in fields(weights):
        total += getattr(weights, f.name) * clamp_score(components[f.name])
    return clamp_score(total)


def default_report() -> SimilarityReport:
    """Canonical all-zero report used whenever a comparison cannot run."""
    return SimilarityReport()


def perfect_report() -> SimilarityReport:
    ones = {f.name: 1.0 for f in fields(SimilarityDetails)}
    return SimilarityReport(overall=1.0, timbre=1.0, acoustic=1.0, rhythm=1.0, details=SimilarityDetails(**ones))


def compare_features(a: FeatureSet, b: FeatureSet, config: AnalysisConfig = DEFAULT_CONFIG) -> SimilarityReport:
    # Identical descriptors are a perfect match even when every value is 0.
    if a == b:
        return perfect_report()

    details = SimilarityDetails(
        harmonics_match=scalar_similarity(a.harmonics_count, b.harmonics_count),
        spectral_match=group_similarity(
            [
                (a.spectral_centroid, b.spectral_centroid),
                (a.spectral_rolloff, b.spectral_rolloff),
                (a.spectral_flatness, b.spectral_flatness),
                (a.spectral_spread, b.spectral_spread),
            ]
        ),
        envelope_match=envelope_similarity(a.envelope, b.envelope),
        brightness_match=scalar_similarity(a.spectral_centroid, b.spectral_centroid),
        formant_match=group_similarity(zip(a.formants, b.formants)),
        mfcc_similarity=mfcc_similarity(a.mfcc, b.mfcc, config.n_mfcc),
        pitch_match=scalar_similarity(a.fundamental_freq, b.fundamental_freq),
        pitch_range_match=scalar_similarity(a.pitch_range, b.pitch_range),
        energy_match=scalar_similarity(a.rms, b.rms),
        loudness_match=scalar_similarity(a.loudness, b.loudness),
        perceptual_match=group_similarity(
            [
                (a.perceptual_spread, b.perceptual_spread),
                (a.perceptual_sharpness, b.perceptual_sharpness),
                (a.loudness, b.loudness),
            ]
        ),
        speed_match=scalar_similarity(a.statistics["zcr"].mean, b.statistics["zcr"].mean),
        pause_match=scalar_similarity(a.statistics["rms"].change_rate, b.statistics["rms"].change_rate),
        duration_ratio=duration_ratio(a.duration, b.duration),
    )

    timbre = _weighted(
        config.timbre_weights,
        {
            "harmonics": details.harmonics_match,
            "envelope": details.envelope_match,
            "brightness": details.brightness_match,
            "formant": details.formant_match,
        },
    )
    acoustic = _weighted(
        config.acoustic_weights,
        {"mfcc": details.mfcc_similarity, "spectral": details.spectral_match, "pitch": details.pitch_match},
    )
    rhythm = _weighted(
        config.rhythm_weights,
        {"speed": details.speed_match, "pause": details.pause_match, "duration": details.duration_ratio},
    )
    overall = _weighted(config.overall_weights, {"timbre": timbre, "acoustic": acoustic, "rhythm": rhythm})

    return SimilarityReport(overall=overall, timbre=timbre, acoustic=acoustic, rhythm=rhythm, details=details)


def run_comparison(
    buffer_a: SampleBuffer,
    buffer_b: SampleBuffer,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> SimilarityReport:
    """Downsample, extract and score two buffers.

    Raises ``InvalidInputError`` for unusable buffers and wraps any other
    failure in ``ComparisonFailure``.
    """

    validate_buffer(buffer_a)
    validate_buffer(buffer_b)
    try:
        features_a = extract_features(downsample(buffer_a, config.max_comparison_samples), config)
        features_b = extract_features(downsample(buffer_b, config.max_comparison_samples), config)
        return compare_features(features_a, features_b, config)
    except VoiceprintError:
        raise
    except Exception as exc:
        raise ComparisonFailure(f"comparison pipeline failed: {exc}") from exc


def compare_buffers(
    buffer_a: Optional[SampleBuffer],
    buffer_b: Optional[SampleBuffer],
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> SimilarityReport:
    """Fail-soft comparison: any error yields ``default_report()``."""

    try:
        report = run_comparison(buffer_a, buffer_b, config)
    except InvalidInputError as exc:
        logger.warning("[COMPARE] Invalid input, returning zero report: %s", exc)
        return default_report()
    except Exception as exc:
        logger.exception("[COMPARE] Comparison failed, returning zero report: %s", exc)
        return default_report()

    logger.info(
        "[COMPARE] overall=%.3f timbre=%.3f acoustic=%.3f rhythm=%.3f",
        report.overall,
        report.timbre,
        report.acoustic,
        report.rhythm,
    )
    return report


async def compare_buffers_async(
    buffer_a: Optional[SampleBuffer],
    buffer_b: Optional[SampleBuffer],
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> SimilarityReport:
    """Run ``compare_buffers`` on a worker thread so event loops stay responsive."""
    return await asyncio.to_thread(compare_buffers, buffer_a, buffer_b, config)


def similarity_level(score: float) -> str:
    score = clamp_score(score)
    if score >= 0.9:
        return "very_high"
    if score >= 0.8:
        return "high"
    if score >= 0.6:
        return "moderate"
    if score >= 0.4:
        return "low"
    return "different"


def describe_similarity(report: SimilarityReport) -> SimilarityVerdict:
    """Summarise a report as a level plus its strongest and weakest components."""

    components = {
        "harmonics": report.details.harmonics_match,
        "spectral": report.details.spectral_match,
        "envelope": report.details.envelope_match,
        "acoustic": report.acoustic,
        "rhythm": report.rhythm,
    }
    strengths = tuple(name for name, score in components.items() if score >= 0.8)
    weaknesses = tuple(name for name, score in components.items() if score < 0.6)
    return SimilarityVerdict(
        level=similarity_level(report.overall),
        score=clamp_score(report.overall),
        strengths=strengths,
        weaknesses=weaknesses,
    )
