"""
Input validation utilities.
"""

from typing import Tuple, Optional
from pathlib import Path

from .. import config

AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".ogg", ".flac", ".aac", ".webm", ".opus"}


def validate_text(text: str, max_length: int = 5000) -> Tuple[bool, Optional[str]]:
    """
    Validate text input.

    Args:
        text: Text to validate
        max_length: Maximum length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not text or not text.strip():
        return False, "Text cannot be empty"

    if len(text) > max_length:
        return False, f"Text too long (maximum {max_length} characters)"

    return True, None


def validate_audio_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
) -> Tuple[bool, Optional[str]]:
    """
    Validate an uploaded audio file.

    Accepts any ``audio/*`` content type, or a known audio extension when the
    client sent a generic type.

    Args:
        filename: Client-side file name
        content_type: Declared MIME type
        size: Size in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if size == 0:
        return False, "Audio file is empty"

    max_bytes = config.get_max_upload_bytes()
    if size > max_bytes:
        return False, f"File too large (maximum {max_bytes // (1024 * 1024)} MB)"

    is_audio_type = bool(content_type) and content_type.startswith("audio/")
    suffix = Path(filename or "").suffix.lower()
    if not is_audio_type and suffix not in AUDIO_EXTENSIONS:
        return False, "Invalid file type. Please upload an audio file"

    return True, None
