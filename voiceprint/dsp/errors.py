"""Error taxonomy for the feature and comparison engine."""
from __future__ import annotations


class VoiceprintError(Exception):
    """Base class for engine errors."""


class InvalidInputError(VoiceprintError, ValueError):
    """Buffer missing, empty, non-finite, zero channels or bad sample rate."""


class ExtractionFailure(VoiceprintError):
    """A single frame could not be turned into finite features."""


class ComparisonFailure(VoiceprintError):
    """Unexpected error while comparing two buffers."""
