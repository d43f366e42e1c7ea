"""
Backend abstraction layer for the voice AI service.

Transcription, synthesis and voice cloning are separate protocols so a
deployment (or a test) can mix implementations.
"""

from pathlib import Path
from typing import List, Optional, Protocol
from typing_extensions import runtime_checkable

from ..transcript import Transcript


@runtime_checkable
class TranscriptionBackend(Protocol):
    """Protocol for speech-to-text implementations."""

    async def transcribe(self, audio_path: str | Path) -> Transcript:
        """
        Transcribe an audio file into word-level tokens.

        Returns:
            Transcript with word, punctuation and spacing tokens
        """
        ...


@runtime_checkable
class SynthesisBackend(Protocol):
    """Protocol for text-to-speech implementations."""

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        previous_text: Optional[str] = None,
        next_text: Optional[str] = None,
    ) -> bytes:
        """
        Synthesize speech in a cloned voice.

        Returns:
            MP3 audio bytes
        """
        ...


@runtime_checkable
class VoiceCloneBackend(Protocol):
    """Protocol for voice cloning implementations."""

    async def clone_voice(
        self,
        sample_paths: List[str | Path],
        name: str,
        description: Optional[str] = None,
    ) -> str:
        """
        Create a voice from one or more samples.

        Returns:
            Voice ID
        """
        ...

    async def delete_voice(self, voice_id: str) -> None:
        """Delete a previously cloned voice."""
        ...


# Backend instances per engine
_backends: dict = {}


def get_backend(engine: str = "elevenlabs"):
    """
    Get or create the service backend for an engine.

    The returned object implements TranscriptionBackend, SynthesisBackend and
    VoiceCloneBackend.

    Args:
        engine: Service engine to use

    Returns:
        Backend instance
    """
    engine = engine.lower()

    valid_engines = ["elevenlabs"]
    if engine not in valid_engines:
        raise ValueError(f"Invalid engine '{engine}'. Must be one of: {valid_engines}")

    if engine not in _backends:
        from .elevenlabs_backend import ElevenLabsBackend
        _backends[engine] = ElevenLabsBackend()

    return _backends[engine]


def reset_backends():
    """Reset backend instances (useful for testing)."""
    _backends.clear()
