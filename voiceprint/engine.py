import logging
from typing import Any, Dict

import soundfile as sf

from voiceprint.analysis import measure_loudness
from voiceprint.config import DEFAULT_CONFIG, AnalysisConfig
from voiceprint.dsp import SampleBuffer, extract_features, validate_buffer
from voiceprint.dsp.similarity import SimilarityReport, describe_similarity

logger = logging.getLogger("voiceprint.engine")


def read_buffer(file) -> SampleBuffer:
    """Decode an uploaded file (anything with a ``.file`` handle) to a mono buffer.

    Raises whatever soundfile raises for undecodable data and
    ``InvalidInputError`` for decoded audio the engine cannot use.
    """

    # always_2d gives soundfile's [N, C] layout even for mono files.
    audio, sr = sf.read(file.file, dtype="float64", always_2d=True)
    return validate_buffer(SampleBuffer.from_array(audio, float(sr), channel_axis=1))


def analyze_buffer(buffer: SampleBuffer, config: AnalysisConfig = DEFAULT_CONFIG) -> Dict[str, Any]:
    """Return loudness, duration and the full feature set of one recording."""

    features = extract_features(buffer, config)
    loudness = measure_loudness(buffer.samples, buffer.sample_rate)
    logger.info(
        "[ANALYSIS] sr=%.0f duration=%.2fs lufs=%.1f frames=%d",
        buffer.sample_rate,
        buffer.duration,
        loudness.integrated_lufs,
        features.frame_count,
    )
    return {
        "sample_rate": float(buffer.sample_rate),
        "duration": float(buffer.duration),
        "lufs": float(loudness.integrated_lufs),
        "peak_dbfs": float(loudness.peak_dbfs),
        "features": features.to_dict(),
    }


def summarize_report(report: SimilarityReport) -> Dict[str, Any]:
    """Shape a report for the ``/compare`` response."""

    verdict = describe_similarity(report)
    return {
        "report": report.to_dict(),
        "percentages": report.as_percentages(),
        "verdict": {
            "level": verdict.level,
            "score": verdict.score,
            "strengths": list(verdict.strengths),
            "weaknesses": list(verdict.weaknesses),
        },
    }
