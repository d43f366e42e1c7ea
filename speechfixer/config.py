"""
Configuration module for speechfixer backend.

Values come from environment variables and are read at call time, so a
running process (or a test) can change them without re-importing.
"""

import os
from pathlib import Path
from typing import Optional

# Canonical splice format: every segment is re-encoded to this before joining.
AUDIO_CODEC = "libmp3lame"
AUDIO_SAMPLE_RATE = 44100
AUDIO_BITRATE = "128k"
AUDIO_CHANNELS = 2
AUDIO_MIME_TYPE = "audio/mpeg"

# Tokens of surrounding transcript sent to synthesis for prosody continuity
CONTEXT_TOKENS = 10

# Extra voice samples accepted next to the main one (audio_1 .. audio_5)
MAX_EXTRA_SAMPLES = 5

# ElevenLabs defaults
DEFAULT_BASE_URL = "https://api.elevenlabs.io"
DEFAULT_STT_MODEL = "scribe_v1"
DEFAULT_TTS_MODEL = "eleven_english_v2"
TTS_OUTPUT_FORMAT = "mp3_44100_128"
VOICE_SETTINGS = {
    "stability": 0.7,
    "similarity_boost": 0.9,
    "style": 0.2,
    "use_speaker_boost": True,
}
VOICE_DESCRIPTION = "Auto-cloned voice for speech replacement"

# Default data directory (used in development)
_data_dir = Path("data")


def set_data_dir(path: str | Path):
    """
    Set the data directory path.

    Args:
        path: Path to the data directory
    """
    global _data_dir
    _data_dir = Path(path)
    _data_dir.mkdir(parents=True, exist_ok=True)


def get_data_dir() -> Path:
    """
    Get the data directory path.

    Returns:
        Path to the data directory
    """
    return _data_dir


def get_edits_dir() -> Path:
    """Get directory for audio produced by edit sessions."""
    path = _data_dir / "edits"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_api_key() -> Optional[str]:
    """Get the ElevenLabs API key, or None when not configured."""
    return os.environ.get("ELEVENLABS_API_KEY") or None


def get_base_url() -> str:
    """Get the ElevenLabs API base URL (no trailing slash)."""
    return os.environ.get("ELEVENLABS_BASE_URL", DEFAULT_BASE_URL).rstrip("/")


def get_stt_model() -> str:
    return os.environ.get("SPEECHFIXER_STT_MODEL", DEFAULT_STT_MODEL)


def get_tts_model() -> str:
    return os.environ.get("SPEECHFIXER_TTS_MODEL", DEFAULT_TTS_MODEL)


def get_request_timeout() -> float:
    """Per-request timeout for service calls, in seconds."""
    return float(os.environ.get("SPEECHFIXER_REQUEST_TIMEOUT", "120"))


def get_ffmpeg_binary() -> str:
    return os.environ.get("SPEECHFIXER_FFMPEG", "ffmpeg")


def get_max_upload_bytes() -> int:
    """Maximum accepted upload size in bytes."""
    return int(os.environ.get("SPEECHFIXER_MAX_UPLOAD_MB", "50")) * 1024 * 1024


def measure_replacement_duration() -> bool:
    """
    Whether edits probe the synthesized clip instead of estimating its length.

    Off by default: transcript timing uses the text-length ratio estimate.
    """
    return os.environ.get("SPEECHFIXER_MEASURE_REPLACEMENT", "").lower() in ("1", "true", "yes")
