import logging

import numpy as np
import pytest

from conftest import SR, sine
from voiceprint.config import DEFAULT_CONFIG, AnalysisConfig
from voiceprint.dsp import FeatureSet, InvalidInputError, SampleBuffer, extract_features
from voiceprint.dsp import features as features_module
from voiceprint.dsp.features import STATISTIC_FEATURES, extract_frame_features
from voiceprint.dsp.frames import iter_frames
from voiceprint.dsp.statistics import compute_statistics


def test_silence_gives_zero_features(silence):
    features = extract_features(silence)
    assert features == FeatureSet.zeros(DEFAULT_CONFIG, duration=1.0)
    assert features.frame_count == 0
    assert features.mfcc == (0.0,) * 13
    assert set(features.statistics) == set(STATISTIC_FEATURES)


def test_too_short_buffer_gives_zero_features(caplog):
    buf = SampleBuffer(sine(440.0, n_samples=500), SR)
    with caplog.at_level(logging.WARNING, logger="voiceprint.dsp.features"):
        features = extract_features(buf)
    assert features.frame_count == 0
    assert features.duration == pytest.approx(500 / SR)
    assert "No usable frames" in caplog.text


def test_invalid_buffer_raises():
    with pytest.raises(InvalidInputError):
        extract_features(SampleBuffer(np.array([0.1, np.inf]), SR))


def test_tone_features(tone_440):
    features = extract_features(tone_440)
    assert features.frame_count == 22
    assert features.fundamental_freq == pytest.approx(440.0, abs=5.0)
    assert features.pitch_range < 5.0
    assert features.spectral_centroid == pytest.approx(440.0, abs=30.0)
    assert features.harmonics_count == pytest.approx(1.0)
    assert len(features.mfcc) == 13
    assert sum(features.envelope) == pytest.approx(1.0)
    assert features.rms == pytest.approx(0.5 / np.sqrt(2), rel=0.02)
    assert features.duration == pytest.approx(22 * 2048 / SR)
    assert 0.0 < features.effective_duration <= features.duration


def test_voice_features(voice):
    features = extract_features(voice)
    assert features.fundamental_freq == pytest.approx(150.0, abs=5.0)
    assert features.harmonics_count >= 4
    assert features.statistics["rms"].std_dev > 0.0
    assert 0.0 <= features.statistics["rms"].change_rate <= 1.0
    assert features.formants[0] > 0.0


def test_frame_features_are_finite():
    frame = sine(300.0, n_samples=2048)
    ff = extract_frame_features(frame, SR)
    assert np.isfinite(ff.spectral_rolloff)
    assert 0.0 <= ff.spectral_flatness <= 1.0
    assert len(ff.envelope) == 26


def test_to_dict_round_trips_statistics(tone_440):
    data = extract_features(tone_440).to_dict()
    assert set(data["statistics"]["rms"]) == {"mean", "std_dev", "change_rate"}


def test_empty_buffer_gives_zero_features():
    features = extract_features(SampleBuffer(np.zeros(0), SR))
    assert features == FeatureSet.zeros(DEFAULT_CONFIG, duration=0.0)
    assert features.frame_count == 0


def test_empty_buffer_with_bad_rate_still_raises():
    with pytest.raises(InvalidInputError):
        extract_features(SampleBuffer(np.zeros(0), 0))


def _fail_on_call(monkeypatch, failing_call, replacement):
    real_mfcc = features_module.mfcc
    calls = {"n": 0}

    def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == failing_call:
            return replacement(*args, **kwargs)
        return real_mfcc(*args, **kwargs)

    monkeypatch.setattr(features_module, "mfcc", flaky)


def _raise(*args, **kwargs):
    raise RuntimeError("mel filterbank exploded")


def _nan_vector(*args, **kwargs):
    return np.full(13, np.nan)


@pytest.mark.parametrize("replacement", [_raise, _nan_vector])
def test_failed_frame_is_left_out(tone_440, monkeypatch, caplog, replacement):
    frames = list(iter_frames(tone_440.samples, 2048))
    survivors = [extract_frame_features(f, SR) for i, f in enumerate(frames) if i != 2]

    _fail_on_call(monkeypatch, 3, replacement)
    with caplog.at_level(logging.DEBUG, logger="voiceprint.dsp.features"):
        features = extract_features(tone_440)

    assert features.frame_count == len(frames) - 1
    assert features.rms == pytest.approx(np.mean([f.rms for f in survivors]))
    assert features.spectral_centroid == pytest.approx(np.mean([f.spectral_centroid for f in survivors]))
    expected = compute_statistics(f.zcr for f in survivors)
    assert features.statistics["zcr"].mean == pytest.approx(expected.mean)
    assert features.statistics["zcr"].std_dev == pytest.approx(expected.std_dev)
    assert "Skipping frame 2" in caplog.text


def test_hop_size_controls_frame_overlap(tone_440):
    overlapped = extract_features(tone_440, AnalysisConfig(hop_size=1024))
    assert overlapped.frame_count == 43
    assert overlapped.fundamental_freq == pytest.approx(440.0, abs=5.0)
