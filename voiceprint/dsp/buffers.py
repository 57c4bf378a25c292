"""Sample buffers handed to the engine by the capture/decode layer.

The engine never decodes or records audio itself; it only borrows mono
float arrays tagged with a sample rate. ``downsample`` implements the
sample budget applied before a comparison.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .errors import InvalidInputError


def _ensure_mono(audio: np.ndarray, channel_axis: Optional[int] = None) -> np.ndarray:
    """Down-mix [N], [N, C] or [C, N] audio to a 1-D float64 array.

    Without ``channel_axis`` the shorter axis is taken as channels.
    """

    if audio.ndim == 1:
        return audio.astype(np.float64, copy=False)
    if audio.ndim == 2:
        if audio.shape[0] == 0 or audio.shape[1] == 0:
            raise InvalidInputError("Audio has zero channels or zero samples")
        if channel_axis is None:
            channel_axis = 0 if audio.shape[0] < audio.shape[1] else 1
        if channel_axis not in (0, 1):
            raise InvalidInputError(f"channel_axis must be 0 or 1, got {channel_axis}")
        return audio.mean(axis=channel_axis).astype(np.float64, copy=False)
    raise InvalidInputError(f"Expected mono [N] or multichannel [N, C] audio, got ndim={audio.ndim}")


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    samples: np.ndarray
    sample_rate: float
    duration: float = field(default=-1.0)

    def __post_init__(self) -> None:
        samples = np.asarray(self.samples, dtype=np.float64)
        if samples.ndim != 1:
            raise InvalidInputError("SampleBuffer expects 1-D samples; use SampleBuffer.from_array")
        samples = samples.copy()
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        if self.duration < 0.0:
            duration = samples.size / float(self.sample_rate) if self.sample_rate > 0 else 0.0
            object.__setattr__(self, "duration", float(duration))

    @classmethod
    def from_array(
        cls,
        audio: np.ndarray,
        sample_rate: float,
        duration: Optional[float] = None,
        channel_axis: Optional[int] = None,
    ) -> "SampleBuffer":
        mono = _ensure_mono(np.asarray(audio), channel_axis)
        if duration is None:
            return cls(mono, float(sample_rate))
        return cls(mono, float(sample_rate), float(duration))

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def is_silent(self) -> bool:
        return self.samples.size == 0 or not np.any(self.samples)


def validate_buffer(buffer: Optional[SampleBuffer]) -> SampleBuffer:
    """Raise ``InvalidInputError`` unless ``buffer`` can be analysed."""

    if buffer is None:
        raise InvalidInputError("Audio buffer is missing")
    if not isinstance(buffer, SampleBuffer):
        raise InvalidInputError(f"Expected SampleBuffer, got {type(buffer).__name__}")
    if not np.isfinite(buffer.sample_rate) or buffer.sample_rate <= 0:
        raise InvalidInputError(f"Sample rate must be positive, got {buffer.sample_rate}")
    if buffer.samples.size == 0:
        raise InvalidInputError("Audio buffer is empty")
    if not np.all(np.isfinite(buffer.samples)):
        raise InvalidInputError("Audio buffer contains NaN or infinite samples")
    return buffer


def is_valid_buffer(buffer: Optional[SampleBuffer]) -> bool:
    try:
        validate_buffer(buffer)
    except InvalidInputError:
        return False
    return True


def decimation_stride(length: int, max_samples: int) -> int:
    return max(1, length // max_samples)


def downsample(buffer: SampleBuffer, max_samples: int = 88_200) -> SampleBuffer:
    """Keep one sample per integer stride so at most ~2x ``max_samples`` remain.

    The effective sample rate drops by the stride while the duration stays
    that of the original recording. A buffer already within budget is
    returned unchanged, which makes the operation idempotent.
    """

    stride = decimation_stride(len(buffer), max_samples)
    if stride == 1:
        return buffer
    kept = len(buffer) // stride
    decimated = buffer.samples[: kept * stride : stride]
    return SampleBuffer(decimated, buffer.sample_rate / stride, buffer.duration)
