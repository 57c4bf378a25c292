from __future__ import annotations

import numpy as np


def rms(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))


def energy(frame: np.ndarray) -> float:
    """Mean power (squared RMS), kept linear so it averages cleanly."""
    value = rms(frame)
    return value * value


def energy_db(value: float, floor_db: float = -100.0) -> float:
    if not np.isfinite(value) or value <= 0.0:
        return floor_db
    return max(floor_db, float(10.0 * np.log10(value)))


def zero_crossing_rate(frame: np.ndarray, sample_rate: float, epsilon: float = 1e-6) -> float:
    """Zero crossings expressed in Hz.

    Sign changes whose step is below ``epsilon`` are treated as
    quantisation jitter. A pure tone yields roughly its own frequency.
    """

    n = frame.shape[0]
    if n < 2:
        return 0.0
    prev = frame[:-1]
    curr = frame[1:]
    crossings = np.count_nonzero((prev * curr < 0.0) & (np.abs(curr - prev) > epsilon))
    return float(crossings * sample_rate / (2.0 * n))


class VoicedDurationTracker:
    """Running effective voiced duration with short-pause bridging.

    A sample above ``threshold`` is voiced. Sub-threshold samples that
    follow a voiced run still count while the silent run has lasted at
    most ``bridge_samples``; past that the voice segment ends. State
    carries across ``update`` calls so consecutive analysis windows
    accumulate into one total.
    """

    def __init__(self, sample_rate: float, threshold: float = 0.01, bridge_ms: float = 200.0):
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.sample_rate = float(sample_rate)
        self.threshold = float(threshold)
        self.bridge_samples = int(bridge_ms / 1000.0 * self.sample_rate)
        self.reset()

    def reset(self) -> None:
        self.total_samples = 0
        self.silence_counter = 0
        self.in_voice_segment = False

    @property
    def seconds(self) -> float:
        return self.total_samples / self.sample_rate

    def update(self, samples: np.ndarray) -> float:
        if samples.size == 0:
            return self.seconds

        voiced = np.abs(samples) > self.threshold
        # Walk runs of equal voiced/unvoiced state instead of single samples.
        boundaries = np.flatnonzero(np.diff(voiced.astype(np.int8))) + 1
        starts = np.concatenate(([0], boundaries))
        ends = np.concatenate((boundaries, [voiced.size]))

        counted = 0
        for start, end in zip(starts, ends):
            run = int(end - start)
            if voiced[start]:
                self.in_voice_segment = True
                self.silence_counter = 0
                counted += run
                continue
            if self.in_voice_segment:
                counted += max(0, min(run, self.bridge_samples - self.silence_counter))
            self.silence_counter += run
            if self.silence_counter > self.bridge_samples:
                self.in_voice_segment = False

        self.total_samples += counted
        return self.seconds
