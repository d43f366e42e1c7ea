"""
Edit sessions.

A session is the state of one recording being edited: the cloned voice,
the current audio file and its transcript. Sessions are immutable; every
edit returns a new session and keeps the one before it for a single undo.
Edits on a session must be serialized by the caller.

New recordings are written to the edits directory. A file there is removed
once no session can reach it: after the edit that drops it from undo, after
the undo that abandons it, or when the session is closed.
"""

import asyncio
import tempfile
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from . import config
from .backends import get_backend
from .exceptions import ServiceError
from .splicer import SpliceRequest, splice_audio
from .transcribe import transcribe_audio
from .transcript import Transcript, make_selection, reconcile
from .tts import synthesize_replacement
from .utils.audio import probe_duration
from .utils.logging import get_logger
from .utils.validation import validate_text
from .voices import clone_voice, delete_voice

logger = get_logger(__name__)


@dataclass(frozen=True)
class EditSession:
    """Current state of a recording under edit."""

    voice_id: str
    audio_path: Path
    transcript: Transcript
    previous: Optional["EditSession"] = None

    @property
    def can_undo(self) -> bool:
        return self.previous is not None


def edited_filename(original_name: str) -> str:
    """Download name for an edited recording; output is always MP3."""
    return f"edited-{Path(original_name).stem}.mp3"


async def open_session(
    audio_path: str | Path,
    backend=None,
    voice_name: Optional[str] = None,
    extra_samples: Optional[List[str | Path]] = None,
) -> EditSession:
    """
    Start editing a recording.

    Transcription and voice cloning run concurrently. If either fails, a
    voice that was already created is deleted again.

    Args:
        audio_path: Recording to edit
        backend: Service backend (default if omitted)
        voice_name: Name for the cloned voice
        extra_samples: Additional samples of the same speaker

    Returns:
        New session
    """
    backend = backend or get_backend()
    audio_path = Path(audio_path)
    samples = [audio_path, *(extra_samples or [])]

    transcript, voice_id = await asyncio.gather(
        transcribe_audio(audio_path, backend=backend),
        clone_voice(samples, name=voice_name, backend=backend),
        return_exceptions=True,
    )

    if isinstance(transcript, BaseException) or isinstance(voice_id, BaseException):
        if isinstance(voice_id, str):
            await _delete_quietly(voice_id, backend)
        raise transcript if isinstance(transcript, BaseException) else voice_id

    logger.info(f"Opened session for {audio_path.name} with voice {voice_id}")
    return EditSession(voice_id=voice_id, audio_path=audio_path, transcript=transcript)


async def replace_selection(
    session: EditSession,
    start_index: int,
    end_index: int,
    new_text: str,
    backend=None,
    output_path: Optional[Path] = None,
    work_dir: Optional[Path] = None,
) -> EditSession:
    """
    Replace a token range with synthesized speech.

    Synthesizes the new text, splices it over the selection's time window
    and reconciles the transcript. On any failure the given session is
    still valid and nothing was written to ``output_path``.

    Args:
        session: Session to edit
        start_index: First token to replace (inclusive)
        end_index: Last token to replace (inclusive)
        new_text: Replacement text
        backend: Service backend (default if omitted)
        output_path: Where to write the new recording (a new file in the
            edits directory if omitted)
        work_dir: Parent directory for scratch files

    Returns:
        Session after the edit

    Raises:
        ValueError: If the text is empty or the selection is invalid
        ServiceError: If synthesis fails
        SpliceFailed: If splicing fails
    """
    is_valid, error_msg = validate_text(new_text)
    if not is_valid:
        raise ValueError(error_msg)

    # Resolve the range before calling out to anything
    selection = make_selection(session.transcript, start_index, end_index)

    audio = await synthesize_replacement(
        new_text,
        session.voice_id,
        transcript=session.transcript,
        selection=selection,
        backend=backend,
    )

    if output_path is None:
        output_path = config.get_edits_dir() / f"{uuid.uuid4()}.mp3"

    with tempfile.TemporaryDirectory(
        prefix="replace-",
        dir=str(work_dir) if work_dir is not None else None,
        ignore_cleanup_errors=True,
    ) as tmp:
        replacement_path = Path(tmp) / "replacement.mp3"
        replacement_path.write_bytes(audio)

        replacement_duration = None
        if config.measure_replacement_duration():
            replacement_duration = await asyncio.to_thread(probe_duration, replacement_path)

        await splice_audio(
            SpliceRequest(
                original_audio_path=session.audio_path,
                replacement_audio_path=replacement_path,
                start_time=selection.start_time,
                end_time=selection.end_time,
                output_path=Path(output_path),
            ),
            work_dir=work_dir,
        )

    transcript = reconcile(
        session.transcript,
        selection.start_index,
        selection.end_index,
        new_text,
        replacement_duration=replacement_duration,
    )

    # The session two steps back can no longer be reached by undo
    if session.previous is not None:
        _discard_output(
            session.previous.audio_path,
            keep=(session.audio_path, Path(output_path)),
        )

    logger.info(
        f"Replaced {selection.selected_text!r} with {new_text!r} "
        f"at {selection.start_time:.2f}-{selection.end_time:.2f}s"
    )
    return EditSession(
        voice_id=session.voice_id,
        audio_path=Path(output_path),
        transcript=transcript,
        previous=replace(session, previous=None),
    )


def undo(session: EditSession) -> EditSession:
    """
    Return the session as it was before the last edit.

    Only one step back is kept. The undone recording is removed if it
    lives in the edits directory.

    Raises:
        ValueError: If there is nothing to undo
    """
    if session.previous is None:
        raise ValueError("Nothing to undo")
    _discard_output(session.audio_path, keep=(session.previous.audio_path,))
    return session.previous


async def close_session(session: EditSession, backend=None) -> None:
    """Delete the session's cloned voice and the edit files it still holds."""
    try:
        await delete_voice(session.voice_id, backend=backend or get_backend())
    finally:
        _discard_output(session.audio_path)
        if session.previous is not None:
            _discard_output(session.previous.audio_path)
    logger.info(f"Closed session for {session.audio_path.name}")


async def _delete_quietly(voice_id: str, backend) -> None:
    try:
        await delete_voice(voice_id, backend=backend)
    except ServiceError as e:
        logger.warning(f"Could not delete voice {voice_id}: {e}")


def _discard_output(path: Path, keep=()) -> None:
    """
    Remove an edit output that no session can reach any more.

    Only files in the edits directory are removed; recordings the caller
    passed in and explicit output paths are left alone.
    """
    path = Path(path).resolve()
    if path in {Path(p).resolve() for p in keep}:
        return
    if not path.is_relative_to(config.get_edits_dir().resolve()):
        return
    try:
        path.unlink(missing_ok=True)
        logger.debug(f"Removed edit output {path.name}")
    except OSError as e:
        logger.warning(f"Could not remove edit output {path}: {e}")
