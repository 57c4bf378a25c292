import numpy as np
import pytest

from voiceprint.dsp.buffers import SampleBuffer, downsample, is_valid_buffer, validate_buffer
from voiceprint.dsp.errors import InvalidInputError
from voiceprint.dsp.frames import apply_window, count_frames, hann_window, iter_frames


@pytest.mark.parametrize(
    "length,expected",
    [
        (4096, 2),
        (5000, 2),  # 904-sample tail is dropped
        (5200, 3),  # 1104-sample tail is padded
        (1000, 0),
        (1500, 1),
    ],
)
def test_frame_tail_policy(length, expected):
    frames = list(iter_frames(np.ones(length), 2048))
    assert len(frames) == expected
    assert count_frames(length, 2048) == expected
    assert all(f.shape == (2048,) for f in frames)


def test_padded_tail_is_zero_filled():
    frames = list(iter_frames(np.ones(5200), 2048))
    last = frames[-1]
    assert np.all(last[:1104] == 1.0)
    assert np.all(last[1104:] == 0.0)


def test_overlapping_hop():
    frames = list(iter_frames(np.arange(4096, dtype=float), 2048, hop_size=1024))
    assert len(frames) == 4
    assert count_frames(4096, 2048, 1024) == 4
    assert frames[1][0] == 1024.0


def test_frames_are_copies():
    samples = np.ones(4096)
    for frame in iter_frames(samples, 2048):
        frame[:] = 0.0
    assert np.all(samples == 1.0)


def test_hann_window():
    w = hann_window(2048)
    assert w[0] == pytest.approx(0.0)
    assert w[-1] == pytest.approx(0.0)
    assert w.max() == pytest.approx(1.0, abs=1e-5)
    windowed = next(iter_frames(np.ones(2048), 2048, window=True))
    assert np.allclose(windowed, w)


def test_apply_window_matches_framed_output():
    frame = np.linspace(-1.0, 1.0, 512)
    windowed = apply_window(frame)
    assert np.allclose(windowed, frame * hann_window(512))
    assert np.allclose(next(iter_frames(frame, 512, window=True)), windowed)
    assert np.all(frame == np.linspace(-1.0, 1.0, 512))


def test_invalid_hop():
    with pytest.raises(ValueError):
        list(iter_frames(np.ones(10), 4, hop_size=5))


def test_stereo_is_downmixed():
    left = np.full(1000, 0.5)
    right = np.full(1000, -0.1)
    buf = SampleBuffer.from_array(np.stack([left, right], axis=1), 8000)
    assert buf.samples.shape == (1000,)
    assert np.allclose(buf.samples, 0.2)
    assert buf.duration == pytest.approx(0.125)


def test_explicit_channel_axis_for_single_frame():
    one_frame = np.array([[0.2, 0.4]])
    buf = SampleBuffer.from_array(one_frame, 8000, channel_axis=1)
    assert buf.samples.shape == (1,)
    assert buf.samples[0] == pytest.approx(0.3)
    assert len(SampleBuffer.from_array(one_frame, 8000)) == 2


def test_bad_channel_axis_rejected():
    with pytest.raises(InvalidInputError):
        SampleBuffer.from_array(np.ones((4, 2)), 8000, channel_axis=2)


def test_buffer_is_read_only():
    data = np.zeros(10)
    buf = SampleBuffer(data, 10)
    data[0] = 1.0
    assert buf.samples[0] == 0.0
    with pytest.raises(ValueError):
        buf.samples[0] = 1.0


@pytest.mark.parametrize(
    "buffer",
    [
        None,
        SampleBuffer(np.zeros(0), 44100),
        SampleBuffer(np.ones(10), 0),
        SampleBuffer(np.array([0.0, np.nan]), 44100),
    ],
)
def test_validate_buffer_rejects(buffer):
    with pytest.raises(InvalidInputError):
        validate_buffer(buffer)
    assert not is_valid_buffer(buffer)


def test_invalid_input_is_value_error():
    with pytest.raises(ValueError):
        validate_buffer(None)


def test_downsample_within_budget_is_unchanged():
    buf = SampleBuffer(np.ones(88200), 44100)
    assert downsample(buf, 88200) is buf


def test_downsample_stride():
    buf = SampleBuffer(np.arange(300000, dtype=float), 44100)
    small = downsample(buf, 88200)
    assert len(small) == 100000
    assert small.sample_rate == pytest.approx(14700)
    assert small.duration == pytest.approx(buf.duration)
    assert small.samples[1] == 3.0


def test_downsample_is_idempotent():
    for length in (88201, 176399, 300000, 1000003):
        once = downsample(SampleBuffer(np.ones(length), 44100), 88200)
        twice = downsample(once, 88200)
        assert len(twice) == len(once)
        assert twice.sample_rate == once.sample_rate
        assert len(once) < 2 * 88200
