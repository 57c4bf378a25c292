"""Voiceprint feature extraction and comparison.

This package contains the building blocks of the engine: buffer
validation and downsampling, framing and windowing, time-domain,
spectral and cepstral descriptors, whole-buffer feature sets, weighted
similarity scoring and the streaming live monitor.
"""
from .buffers import SampleBuffer, downsample, validate_buffer
from .errors import ComparisonFailure, ExtractionFailure, InvalidInputError, VoiceprintError
from .features import FeatureSet, extract_features
from .live import LiveFeatureMonitor, LiveFeatures, MonitorState
from .similarity import (
    SimilarityReport,
    SimilarityVerdict,
    compare_buffers,
    compare_buffers_async,
    compare_features,
    default_report,
    describe_similarity,
    run_comparison,
)

__all__ = [
    "SampleBuffer",
    "downsample",
    "validate_buffer",
    "VoiceprintError",
    "InvalidInputError",
    "ExtractionFailure",
    "ComparisonFailure",
    "FeatureSet",
    "extract_features",
    "LiveFeatureMonitor",
    "LiveFeatures",
    "MonitorState",
    "SimilarityReport",
    "SimilarityVerdict",
    "compare_buffers",
    "compare_buffers_async",
    "compare_features",
    "default_report",
    "describe_similarity",
    "run_comparison",
]
