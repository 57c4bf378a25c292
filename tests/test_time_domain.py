import numpy as np
import pytest

from conftest import SR, sine
from voiceprint.dsp.time_domain import (
    VoicedDurationTracker,
    energy,
    energy_db,
    rms,
    zero_crossing_rate,
)


def test_rms_and_energy_of_sine():
    tone = sine(440.0, seconds=1.0, amplitude=1.0)
    assert rms(tone) == pytest.approx(1 / np.sqrt(2), rel=1e-3)
    assert energy(tone) == pytest.approx(0.5, rel=1e-3)
    assert rms(np.zeros(0)) == 0.0


def test_energy_db_floor():
    assert energy_db(0.0) == -100.0
    assert energy_db(float("nan")) == -100.0
    assert energy_db(1e-20) == -100.0
    assert energy_db(0.1) == pytest.approx(-10.0)


def test_zcr_tracks_tone_frequency():
    frame = sine(440.0, n_samples=2048)
    assert zero_crossing_rate(frame, SR) == pytest.approx(440.0, abs=15.0)


def test_zcr_ignores_jitter_below_epsilon():
    jitter = np.tile([1e-8, -1e-8], 1024)
    assert zero_crossing_rate(jitter, SR, epsilon=1e-6) == 0.0
    assert zero_crossing_rate(np.zeros(1), SR) == 0.0


def _burst(voiced_s, gap_s, sr=1000):
    on = np.full(int(voiced_s * sr), 0.5)
    off = np.zeros(int(gap_s * sr))
    return np.concatenate([on, off, on])


def test_short_pause_is_bridged():
    tracker = VoicedDurationTracker(1000, threshold=0.01, bridge_ms=200.0)
    assert tracker.update(_burst(0.5, 0.1)) == pytest.approx(1.1)


def test_long_pause_counts_only_the_bridge():
    tracker = VoicedDurationTracker(1000, threshold=0.01, bridge_ms=200.0)
    assert tracker.update(_burst(0.5, 0.5)) == pytest.approx(1.2)


def test_leading_silence_is_not_counted():
    tracker = VoicedDurationTracker(1000)
    samples = np.concatenate([np.zeros(300), np.full(100, 0.5)])
    assert tracker.update(samples) == pytest.approx(0.1)


def test_tracker_accumulates_across_windows():
    tracker = VoicedDurationTracker(1000, bridge_ms=200.0)
    tracker.update(np.full(100, 0.5))
    tracker.update(np.zeros(50))
    assert tracker.update(np.full(100, 0.5)) == pytest.approx(0.25)
    tracker.reset()
    assert tracker.seconds == 0.0
