"""Frame slicing and windowing.

Tail policy: a trailing partial frame shorter than half a frame is
dropped, anything longer is zero-padded to a full frame. The same rule
applies to buffers shorter than one frame, so a buffer of fewer than
``frame_size / 2`` samples yields no frames at all.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Iterator, Optional

import numpy as np
from scipy.signal import windows


@lru_cache(maxsize=16)
def _hann(n: int) -> np.ndarray:
    w = windows.hann(n, sym=True).astype(np.float64)
    w.setflags(write=False)
    return w


def hann_window(n: int) -> np.ndarray:
    """Symmetric Hann window ``0.5 * (1 - cos(2*pi*i / (n - 1)))``."""
    if n <= 0:
        return np.zeros(0, dtype=np.float64)
    return _hann(int(n))


def apply_window(frame: np.ndarray) -> np.ndarray:
    return frame * hann_window(frame.shape[0])


def _resolve_hop(frame_size: int, hop_size: Optional[int]) -> int:
    hop = frame_size if hop_size is None else int(hop_size)
    if frame_size <= 0:
        raise ValueError("frame_size must be positive")
    if not 0 < hop <= frame_size:
        raise ValueError(f"hop_size must be in (0, {frame_size}], got {hop}")
    return hop


def count_frames(length: int, frame_size: int = 2048, hop_size: Optional[int] = None) -> int:
    hop = _resolve_hop(frame_size, hop_size)
    count = 0
    start = 0
    while start < length:
        remaining = length - start
        if remaining < frame_size:
            if remaining * 2 >= frame_size:
                count += 1
            break
        count += 1
        start += hop
    return count


def iter_frames(
    samples: np.ndarray,
    frame_size: int = 2048,
    hop_size: Optional[int] = None,
    window: bool = False,
) -> Iterator[np.ndarray]:
    """Yield ``frame_size`` slices of ``samples`` advancing by ``hop_size``.

    Frames are fresh arrays, so callers may modify them. With
    ``window=True`` each frame is multiplied by a Hann window after any
    zero padding.
    """

    hop = _resolve_hop(frame_size, hop_size)
    length = int(samples.shape[0])
    start = 0
    while start < length:
        chunk = samples[start : start + frame_size]
        if chunk.shape[0] < frame_size:
            if chunk.shape[0] * 2 < frame_size:
                return
            frame = np.zeros(frame_size, dtype=np.float64)
            frame[: chunk.shape[0]] = chunk
        else:
            frame = np.array(chunk, dtype=np.float64)
        if window:
            frame = apply_window(frame)
        yield frame
        if chunk.shape[0] < frame_size:
            return
        start += hop
