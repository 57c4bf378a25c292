import io
import types

import numpy as np
import pytest
import soundfile as sf
from fastapi.testclient import TestClient

from conftest import SR, sine, speech_like
from voiceprint.engine import read_buffer
from voiceprint.main import app


@pytest.fixture
def client():
    return TestClient(app)


def _wav(samples, sr=SR):
    buf = io.BytesIO()
    sf.write(buf, samples, sr, format="WAV", subtype="FLOAT")
    buf.seek(0)
    return buf.getvalue()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze(client):
    payload = _wav(sine(440.0, seconds=1.0))
    response = client.post("/analyze", files={"file": ("tone.wav", payload, "audio/wav")})
    assert response.status_code == 200
    body = response.json()
    assert body["sample_rate"] == SR
    assert body["duration"] == pytest.approx(1.0)
    assert len(body["features"]["mfcc"]) == 13
    assert body["features"]["fundamental_freq"] == pytest.approx(440.0, abs=5.0)
    assert body["lufs"] < 0.0


def test_analyze_stereo(client):
    mono = sine(220.0, seconds=1.0)
    response = client.post("/analyze", files={"file": ("stereo.wav", _wav(np.stack([mono, mono], axis=1)), "audio/wav")})
    assert response.status_code == 200
    assert response.json()["features"]["fundamental_freq"] == pytest.approx(220.0, abs=5.0)


def test_analyze_rejects_garbage(client):
    response = client.post("/analyze", files={"file": ("junk.wav", b"not audio at all", "audio/wav")})
    assert response.status_code == 400


def test_compare_identical(client):
    payload = _wav(speech_like())
    response = client.post(
        "/compare",
        files={"file_a": ("a.wav", payload, "audio/wav"), "file_b": ("b.wav", payload, "audio/wav")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["report"]["overall"] == pytest.approx(1.0)
    assert body["percentages"]["overall"] == 100
    assert body["verdict"]["level"] == "very_high"


def test_compare_silence_and_voice(client):
    response = client.post(
        "/compare",
        files={
            "file_a": ("a.wav", _wav(speech_like()), "audio/wav"),
            "file_b": ("b.wav", _wav(np.zeros(SR)), "audio/wav"),
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["report"]["overall"] < 0.3
    assert body["verdict"]["level"] == "different"


def test_compare_rejects_garbage(client):
    response = client.post(
        "/compare",
        files={
            "file_a": ("a.wav", _wav(speech_like()), "audio/wav"),
            "file_b": ("b.wav", b"\x00\x01\x02", "audio/wav"),
        },
    )
    assert response.status_code == 400
    assert "file_b" in response.json()["detail"]


def test_read_buffer_keeps_channels_on_last_axis():
    # One stereo frame: a shorter-axis guess would treat the two channels as samples.
    upload = types.SimpleNamespace(file=io.BytesIO(_wav(np.array([[0.25, 0.75]]))))
    buffer = read_buffer(upload)
    assert len(buffer) == 1
    assert buffer.samples[0] == pytest.approx(0.5)
    assert buffer.sample_rate == SR


def test_read_buffer_mono_file():
    upload = types.SimpleNamespace(file=io.BytesIO(_wav(sine(440.0, n_samples=3))))
    assert len(read_buffer(upload)) == 3
