"""
Transcription of uploaded recordings.
"""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .backends import TranscriptionBackend, get_backend
from .exceptions import ProbeFailed
from .transcript import Transcript
from .utils.audio import probe_duration
from .utils.logging import get_logger

logger = get_logger(__name__)


async def transcribe_audio(
    audio_path: str | Path,
    backend: Optional[TranscriptionBackend] = None,
) -> Transcript:
    """
    Transcribe an audio file into a word-level transcript.

    The recording's decoded duration is attached to the transcript when it
    can be determined.

    Args:
        audio_path: Path to audio file
        backend: Transcription backend (default service backend if omitted)

    Returns:
        Transcript
    """
    backend = backend or get_backend()

    transcript = await backend.transcribe(audio_path)

    if transcript.audio_duration is None:
        try:
            duration = await asyncio.to_thread(probe_duration, audio_path)
        except ProbeFailed as e:
            logger.warning(f"Transcribed {Path(audio_path).name} but could not read its duration: {e}")
        else:
            transcript = replace(transcript, audio_duration=duration)

    logger.info(
        f"Transcribed {Path(audio_path).name}: {len(transcript.tokens)} tokens"
    )
    return transcript
