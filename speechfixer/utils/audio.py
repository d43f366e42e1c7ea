"""
Audio processing utilities.

Thin wrappers around ffmpeg (re-encode, extract, concatenate) and librosa
(decode-level duration). All functions are blocking; async callers run them
through ``asyncio.to_thread``.
"""

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Type

import librosa
import numpy as np

from .. import config
from ..exceptions import ConcatFailed, ExtractFailed, ProbeFailed, SpliceFailed
from .logging import get_logger

logger = get_logger(__name__)

# How much of ffmpeg's stderr is kept in error messages
_STDERR_TAIL = 800


def check_ffmpeg() -> bool:
    """Check if ffmpeg is available on the system."""
    return shutil.which(config.get_ffmpeg_binary()) is not None


def load_audio(
    path: str | Path,
    sample_rate: Optional[int] = None,
    mono: bool = True,
) -> Tuple[np.ndarray, int]:
    """
    Decode an audio file.

    Args:
        path: Path to audio file
        sample_rate: Target sample rate, or None to keep the native rate
        mono: Convert to mono

    Returns:
        Tuple of (audio_array, sample_rate)
    """
    audio, sr = librosa.load(str(path), sr=sample_rate, mono=mono)
    return audio, sr


def probe_duration(path: str | Path) -> float:
    """
    Get the duration of an audio file in seconds.

    The file is fully decoded: container headers of MP3 files can be off by
    tens of milliseconds, which shows up as a glitch at the splice point and
    accumulates across repeated edits.

    Args:
        path: Path to audio file

    Returns:
        Duration in seconds

    Raises:
        ProbeFailed: If the file cannot be decoded
    """
    try:
        audio, sr = load_audio(path)
    except Exception as e:
        raise ProbeFailed(f"Could not determine duration of {Path(path).name}: {e}") from e
    return float(librosa.get_duration(y=audio, sr=sr))


def _canonical_output_args() -> List[str]:
    """ffmpeg output options for the canonical splice format."""
    return [
        "-vn",
        "-acodec", config.AUDIO_CODEC,
        "-ar", str(config.AUDIO_SAMPLE_RATE),
        "-b:a", config.AUDIO_BITRATE,
        "-ac", str(config.AUDIO_CHANNELS),
        # No Xing/Info frame: it would be played back as a silent frame
        # in the middle of a stream-copied concatenation.
        "-write_xing", "0",
    ]


def _run_ffmpeg(
    args: List[str],
    error_cls: Type[SpliceFailed],
    action: str,
) -> None:
    """
    Run ffmpeg and raise ``error_cls`` with its stderr if it fails.

    Args:
        args: Arguments after the binary name
        error_cls: Exception type to raise on failure
        action: Human readable description for the error message
    """
    cmd = [config.get_ffmpeg_binary(), "-hide_banner", "-loglevel", "error", "-y", *args]
    logger.debug("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise error_cls(f"{action} failed: could not run ffmpeg ({e})") from e

    if result.returncode != 0:
        stderr = result.stderr.strip()[-_STDERR_TAIL:]
        logger.error(f"{action} failed (exit {result.returncode}): {stderr}")
        raise error_cls(f"{action} failed: {stderr or f'ffmpeg exited with {result.returncode}'}")


def extract_segment(
    input_path: str | Path,
    start: float,
    duration: float,
    output_path: str | Path,
) -> None:
    """
    Extract a sub-range of a file, re-encoded to the canonical format.

    Args:
        input_path: Source audio file
        start: Offset in seconds
        duration: Length of the range in seconds
        output_path: Destination MP3 path

    Raises:
        ExtractFailed: If ffmpeg fails
    """
    _run_ffmpeg(
        [
            "-ss", f"{start:.6f}",
            "-t", f"{duration:.6f}",
            "-i", str(input_path),
            *_canonical_output_args(),
            str(output_path),
        ],
        ExtractFailed,
        f"Extracting {start:.3f}s+{duration:.3f}s",
    )


def normalize_audio(input_path: str | Path, output_path: str | Path) -> None:
    """
    Re-encode a whole file to the canonical format.

    Args:
        input_path: Source audio file in any format ffmpeg reads
        output_path: Destination MP3 path

    Raises:
        ExtractFailed: If ffmpeg fails
    """
    _run_ffmpeg(
        ["-i", str(input_path), *_canonical_output_args(), str(output_path)],
        ExtractFailed,
        "Normalizing replacement audio",
    )


def _concat_list_entry(path: Path) -> str:
    # concat demuxer quoting: close the quote, escape, reopen
    escaped = str(path.resolve()).replace("'", "'\\''")
    return f"file '{escaped}'"


def concat_audio(input_paths: List[str | Path], output_path: str | Path) -> None:
    """
    Join canonical-format files with the concat demuxer, without re-encoding.

    Args:
        input_paths: Ordered files, all already in the canonical format
        output_path: Destination MP3 path

    Raises:
        ConcatFailed: If the list is empty or ffmpeg fails
    """
    if not input_paths:
        raise ConcatFailed("Nothing to concatenate")

    output_path = Path(output_path)
    list_path = output_path.with_name(output_path.stem + "_list.txt")
    list_path.write_text(
        "\n".join(_concat_list_entry(Path(p)) for p in input_paths) + "\n",
        encoding="utf-8",
    )

    _run_ffmpeg(
        [
            "-f", "concat",
            "-safe", "0",
            "-i", str(list_path),
            "-c", "copy",
            str(output_path),
        ],
        ConcatFailed,
        f"Concatenating {len(input_paths)} segment(s)",
    )


def validate_reference_audio(
    audio_path: str | Path,
    min_duration: float = 1.0,
    max_duration: Optional[float] = None,
    min_rms: float = 0.001,
) -> Tuple[bool, Optional[str]]:
    """
    Validate a voice sample before sending it off for cloning.

    Args:
        audio_path: Path to audio file
        min_duration: Minimum duration in seconds
        max_duration: Maximum duration in seconds, or None for no limit
        min_rms: Minimum RMS level

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        audio, sr = load_audio(audio_path)
    except Exception as e:
        return False, f"Error reading audio: {str(e)}"

    duration = len(audio) / sr

    if duration < min_duration:
        return False, f"Audio too short (minimum {min_duration} seconds)"
    if max_duration is not None and duration > max_duration:
        return False, f"Audio too long (maximum {max_duration} seconds)"

    rms = np.sqrt(np.mean(audio**2))
    if rms < min_rms:
        return False, "Audio is too quiet or silent"

    return True, None
