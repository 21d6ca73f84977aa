"""Pytest configuration and shared fixtures."""

import asyncio
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from echoshrink.audio.source import AudioSource, pcm_media_type
from echoshrink.config import AudioConfig, RecognitionConfig, SpeechConfig


# ==================== Substitute Capabilities ====================

class FakeCaptureStream:
    """Capture stream that records whether it was stopped."""

    def __init__(self, media_type: str):
        self.media_type = media_type
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakeCapture:
    """Capture capability driven by the test through emit()."""

    def __init__(self, media_type: str = pcm_media_type(16000, 1)):
        self.media_type = media_type
        self.error = None
        self.open_calls = 0
        self.constraints = None
        self.stream = None
        self._on_fragment = None

    async def open(self, constraints, on_fragment):
        self.open_calls += 1
        if self.error is not None:
            raise self.error
        self.constraints = constraints
        self._on_fragment = on_fragment
        self.stream = FakeCaptureStream(self.media_type)
        return self.stream

    def emit(self, fragment: bytes) -> None:
        self._on_fragment(fragment)


class FakePlayback:
    """Playback capability that 'plays' instantly in fixed-size blocks."""

    def __init__(self, blocksize: int = 1600):
        self.blocksize = blocksize
        self.error = None
        self.calls = []

    async def play(self, samples, sample_rate, listener=None):
        self.calls.append((len(samples), sample_rate))
        if self.error is not None:
            raise self.error
        for start in range(0, len(samples), self.blocksize):
            if listener is not None:
                listener(samples[start:start + self.blocksize])
            await asyncio.sleep(0)


class FakeSession:
    """Recognition session that emits a canned result after stop()."""

    def __init__(self, recognizer, settings, on_result, on_error, on_end):
        self.recognizer = recognizer
        self.settings = settings
        self.on_result = on_result
        self.on_error = on_error
        self.on_end = on_end
        self.fed_samples = 0
        self.started = False
        self.stopped = False
        self.aborted = False

    def start(self):
        self.started = True

    def feed(self, samples):
        self.fed_samples += len(samples)

    def stop(self):
        if self.stopped:
            return
        self.stopped = True
        loop = asyncio.get_running_loop()
        if self.recognizer.error is not None:
            loop.call_soon(self.on_error, self.recognizer.error)
        elif not self.recognizer.never_end:
            for text in self.recognizer.results:
                loop.call_soon(self.on_result, text)
        if not self.recognizer.never_end:
            loop.call_soon(self.on_end)

    def abort(self):
        self.aborted = True
        asyncio.get_running_loop().call_soon(self.on_end)


class FakeRecognizer:
    """Recognition capability with configurable availability and output."""

    def __init__(self, results=None):
        self.available = True
        self.results = list(results or [])
        self.error = None
        self.never_end = False
        self.sessions = []

    def is_available(self):
        return self.available

    def create_session(self, settings, on_result, on_error, on_end):
        session = FakeSession(self, settings, on_result, on_error, on_end)
        self.sessions.append(session)
        return session


class FakeSynthesizer:
    """Synthesis capability that records what it was asked to say."""

    def __init__(self):
        self.available = True
        self.error = None
        self.spoken = []

    def is_available(self):
        return self.available

    def say(self, text, rate, pitch, volume):
        if self.error is not None:
            raise self.error
        self.spoken.append((text, rate, pitch, volume))


# ==================== Path Fixtures ====================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir):
    """Create a temporary config file."""
    config_path = temp_dir / "settings.yaml"
    config_path.write_text("""
audio:
  device: "default"
  sample_rate: 16000
  channels: 1
  chunk_duration_ms: 50

recognition:
  locale: "en-GB"
  whisper_model: "tiny"
  finalize_timeout_s: 5.0

speech:
  rate: 0.9
  delay_ms: 0

web:
  port: 9090

logging:
  level: "DEBUG"
  file: null
""")
    return config_path


# ==================== Config Fixtures ====================

@pytest.fixture
def audio_config():
    return AudioConfig(sample_rate=16000, channels=1, chunk_duration_ms=100)


@pytest.fixture
def recognition_config():
    return RecognitionConfig(whisper_model="tiny", finalize_timeout_s=0.5)


@pytest.fixture
def speech_config():
    return SpeechConfig(delay_ms=0)


# ==================== Audio Fixtures ====================

@pytest.fixture
def sample_pcm_bytes():
    """One second of a quiet 440Hz tone as big-endian 16-bit PCM."""
    t = np.arange(16000) / 16000
    samples = (np.sin(2 * np.pi * 440 * t) * 3000).astype(">i2")
    return samples.tobytes()


@pytest.fixture
def pcm_source(sample_pcm_bytes):
    return AudioSource(data=sample_pcm_bytes, media_type=pcm_media_type(16000, 1))


# ==================== Capability Fixtures ====================

@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def fake_playback():
    return FakePlayback()


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer(
        results=["Mahendra Singh Dhoni was the captain and won 2 icc trophy."]
    )


@pytest.fixture
def fake_synthesizer():
    return FakeSynthesizer()


# ==================== Mock Fixtures ====================

@pytest.fixture
def mock_whisper_model():
    """Create a mock Whisper model."""
    mock_model = MagicMock()
    first, second = MagicMock(), MagicMock()
    first.text = " Hello there."
    second.text = " General Kenobi. "
    mock_model.transcribe.return_value = ([first, second], MagicMock())
    return mock_model
