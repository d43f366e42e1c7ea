"""
Pytest configuration for speechfixer tests.

Provides audio fixtures, a fake service backend and sample transcripts.
"""

from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest
import soundfile as sf

from speechfixer import backends, config
from speechfixer.transcript import Token, TokenKind, Transcript


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )
    config.addinivalue_line(
        "markers", "ffmpeg: test needs the ffmpeg binary"
    )


def write_tone(path: Path, duration: float, sample_rate: int = 44100, frequency: float = 440.0):
    """Write a sine tone WAV file."""
    num_samples = int(sample_rate * duration)
    t = np.linspace(0, duration, num_samples, endpoint=False, dtype=np.float32)
    audio = (0.5 * np.sin(2 * np.pi * frequency * t)).astype(np.float32)
    sf.write(str(path), audio, sample_rate)
    return path


class FakeBackend:
    """In-memory stand-in for the voice AI service."""

    def __init__(self, transcript: Optional[Transcript] = None, audio: bytes = b"ID3fake-mp3"):
        self.transcript = transcript
        self.audio = audio
        self.transcribed: List[Path] = []
        self.synthesized: List[dict] = []
        self.cloned: List[dict] = []
        self.deleted: List[str] = []
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def transcribe(self, audio_path):
        self._maybe_fail()
        self.transcribed.append(Path(audio_path))
        return self.transcript

    async def synthesize(self, text, voice_id, previous_text=None, next_text=None):
        self._maybe_fail()
        self.synthesized.append({
            "text": text,
            "voice_id": voice_id,
            "previous_text": previous_text,
            "next_text": next_text,
        })
        return self.audio

    async def clone_voice(self, sample_paths, name, description=None):
        self._maybe_fail()
        self.cloned.append({"sample_paths": list(sample_paths), "name": name})
        return f"voice-{len(self.cloned)}"

    async def delete_voice(self, voice_id):
        self.deleted.append(voice_id)


@pytest.fixture
def hello_world() -> Transcript:
    """Two words and the spacing between them."""
    return Transcript.from_tokens(
        [
            Token("Hello", 0.0, 0.5),
            Token(" ", 0.5, 0.6, kind=TokenKind.SPACING),
            Token("world", 0.6, 1.0),
        ],
        language_code="en",
        audio_duration=1.2,
    )


@pytest.fixture
def sentence() -> Transcript:
    """A longer transcript with punctuation."""
    words = ["The", "quick", "brown", "fox", "jumps"]
    tokens = []
    t = 0.0
    for i, word in enumerate(words):
        tokens.append(Token(word, t, t + 0.4))
        t += 0.4
        if i < len(words) - 1:
            tokens.append(Token(" ", t, t + 0.1, kind=TokenKind.SPACING))
            t += 0.1
    tokens.append(Token(".", t, t, kind=TokenKind.PUNCTUATION))
    return Transcript.from_tokens(tokens, language_code="en", audio_duration=t + 0.5)


@pytest.fixture
def fake_backend(hello_world) -> FakeBackend:
    """Fake backend installed as the default service backend."""
    backend = FakeBackend(transcript=hello_world)
    backends.reset_backends()
    backends._backends["elevenlabs"] = backend
    yield backend
    backends.reset_backends()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the data directory at a temporary location."""
    path = tmp_path / "data"
    path.mkdir()
    monkeypatch.setattr(config, "_data_dir", path)
    return path


@pytest.fixture
def tone_wav(tmp_path) -> Path:
    """Two seconds of a 440 Hz tone."""
    return write_tone(tmp_path / "tone.wav", 2.0)


@pytest.fixture
def make_tone(tmp_path):
    """Factory writing tones of a given duration into the test directory."""
    def _make(name: str, duration: float, frequency: float = 440.0) -> Path:
        return write_tone(tmp_path / name, duration, frequency=frequency)
    return _make
