"""
Voice clone management.
"""

import asyncio
import time
from pathlib import Path
from typing import List, Optional

from .backends import VoiceCloneBackend, get_backend
from .utils.audio import validate_reference_audio
from .utils.logging import get_logger

logger = get_logger(__name__)


def default_voice_name() -> str:
    """Name for an automatically created voice."""
    return f"Voice-{int(time.time() * 1000)}"


async def clone_voice(
    sample_paths: List[str | Path],
    name: Optional[str] = None,
    backend: Optional[VoiceCloneBackend] = None,
    validate: bool = True,
) -> str:
    """
    Clone a voice from one or more samples of the speaker.

    More samples give a closer match; the first one is usually the recording
    being edited.

    Args:
        sample_paths: Paths to audio samples
        name: Voice name (generated if omitted)
        backend: Voice clone backend (default service backend if omitted)
        validate: Reject silent or too short samples before uploading

    Returns:
        Voice ID

    Raises:
        ValueError: If no samples are given or a sample is invalid
    """
    if not sample_paths:
        raise ValueError("No audio samples provided")

    if validate:
        for path in sample_paths:
            is_valid, error_msg = await asyncio.to_thread(validate_reference_audio, path)
            if not is_valid:
                raise ValueError(f"Invalid voice sample {Path(path).name}: {error_msg}")

    backend = backend or get_backend()
    voice_id = await backend.clone_voice(list(sample_paths), name or default_voice_name())
    logger.info(f"Cloned voice {voice_id} from {len(sample_paths)} sample(s)")
    return voice_id


async def delete_voice(
    voice_id: str,
    backend: Optional[VoiceCloneBackend] = None,
) -> None:
    """
    Delete a cloned voice.

    Args:
        voice_id: Voice ID
        backend: Voice clone backend (default service backend if omitted)
    """
    backend = backend or get_backend()
    await backend.delete_voice(voice_id)
