"""
Speech synthesis with cloned voices.
"""

from pathlib import Path
from typing import List, Optional

from . import config
from .backends import SynthesisBackend, get_backend
from .exceptions import ServiceError
from .transcript import Selection, Transcript, context_around
from .utils.logging import get_logger
from .voices import clone_voice, delete_voice

logger = get_logger(__name__)


async def synthesize_replacement(
    text: str,
    voice_id: str,
    transcript: Optional[Transcript] = None,
    selection: Optional[Selection] = None,
    backend: Optional[SynthesisBackend] = None,
) -> bytes:
    """
    Synthesize the audio for a replacement.

    When the transcript and selection are given, up to ``CONTEXT_TOKENS``
    tokens on either side are passed along so the new words blend in.

    Args:
        text: Replacement text
        voice_id: Cloned voice ID
        transcript: Transcript being edited
        selection: Range being replaced
        backend: Synthesis backend (default service backend if omitted)

    Returns:
        MP3 audio bytes
    """
    previous_text = next_text = None
    if transcript is not None and selection is not None:
        previous_text, next_text = context_around(
            transcript, selection, limit=config.CONTEXT_TOKENS
        )

    backend = backend or get_backend()
    return await backend.synthesize(
        text,
        voice_id,
        previous_text=previous_text,
        next_text=next_text,
    )


async def generate_speech(
    sample_paths: List[str | Path],
    text: str,
    backend=None,
) -> bytes:
    """
    Speak arbitrary text in the voice of the given samples.

    A temporary voice is cloned for the request and deleted afterwards.

    Args:
        sample_paths: Audio samples of the speaker
        text: Script to speak
        backend: Service backend (default if omitted)

    Returns:
        MP3 audio bytes
    """
    backend = backend or get_backend()
    voice_id = await clone_voice(sample_paths, backend=backend)
    try:
        return await backend.synthesize(text, voice_id)
    finally:
        try:
            await delete_voice(voice_id, backend=backend)
        except ServiceError as e:
            logger.warning(f"Could not delete temporary voice {voice_id}: {e}")
