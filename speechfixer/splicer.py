"""
Audio splicing: replace a time window of a recording with another clip.

The output is ``original[0:start] + replacement + original[end:]``. Every
piece is re-encoded to the same MP3 parameters first, then the pieces are
joined by the concat demuxer without a second encode. The joined file is
measured afterwards and one segment is re-cut to cancel the encoder
overhead the copies carry along.
"""

import asyncio
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, List, Optional, Tuple

from .exceptions import InvalidRange
from .utils import audio
from .utils.logging import get_logger

logger = get_logger(__name__)

# A trailing remainder shorter than this is treated as absent. It comes
# from float error between the probed duration and the cut window.
MIN_SEGMENT_DURATION = 0.001

# Half an MP3 frame at the canonical rate. Drift below this cannot be
# trimmed by re-cutting a segment.
ENCODER_TOLERANCE = 576 / 44100


@dataclass(frozen=True)
class SpliceRequest:
    """Inputs of a single splice."""

    original_audio_path: Path
    replacement_audio_path: Path
    start_time: float
    end_time: float
    output_path: Optional[Path] = None


def validate_window(start_time: float, end_time: float) -> None:
    """
    Reject a cut window before any media work starts.

    Raises:
        InvalidRange: If the window is negative or reversed
    """
    if start_time < 0:
        raise InvalidRange(f"Start time must not be negative (got {start_time})")
    if start_time > end_time:
        raise InvalidRange(
            f"Start time {start_time} is after end time {end_time}"
        )


async def splice_audio(
    request: SpliceRequest,
    work_dir: Optional[Path] = None,
) -> bytes:
    """
    Splice a replacement clip into a recording.

    Args:
        request: What to splice where
        work_dir: Parent directory for the scratch directory (system temp
            directory if omitted)

    Returns:
        The spliced MP3. Also written to ``request.output_path`` when set.

    Raises:
        InvalidRange: If the window is invalid
        ProbeFailed, ExtractFailed, ConcatFailed: If a media step fails
    """
    validate_window(request.start_time, request.end_time)

    with tempfile.TemporaryDirectory(
        prefix="splice-",
        dir=str(work_dir) if work_dir is not None else None,
        ignore_cleanup_errors=True,
    ) as tmp:
        tmp_dir = Path(tmp)
        before_path = tmp_dir / "before.mp3"
        after_path = tmp_dir / "after.mp3"
        replacement_path = tmp_dir / "replacement_normalized.mp3"
        output_path = tmp_dir / "output.mp3"

        # Upstream edits change the duration, so never reuse a cached value
        duration = await asyncio.to_thread(audio.probe_duration, request.original_audio_path)

        has_before = request.start_time > 0
        after_duration = duration - request.end_time
        has_after = after_duration > MIN_SEGMENT_DURATION
        logger.debug(
            f"Splicing [{request.start_time:.3f}, {request.end_time:.3f}) of "
            f"{duration:.3f}s (before={has_before}, after={has_after})"
        )

        tasks: List[Awaitable[object]] = [
            asyncio.to_thread(audio.probe_duration, request.replacement_audio_path),
        ]
        if has_before:
            tasks.append(asyncio.to_thread(
                audio.extract_segment,
                request.original_audio_path,
                0.0,
                request.start_time,
                before_path,
            ))
        if has_after:
            tasks.append(asyncio.to_thread(
                audio.extract_segment,
                request.original_audio_path,
                request.end_time,
                after_duration,
                after_path,
            ))
        tasks.append(asyncio.to_thread(
            audio.normalize_audio,
            request.replacement_audio_path,
            replacement_path,
        ))

        # Wait for every task before raising, so nothing is still writing
        # into the scratch directory when it is removed.
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        replacement_duration = results[0]

        segments = []
        if has_before:
            segments.append(before_path)
        segments.append(replacement_path)
        if has_after:
            segments.append(after_path)

        await asyncio.to_thread(audio.concat_audio, segments, output_path)

        # Each stream-copied segment keeps its own encoder delay and frame
        # padding, so the joined file runs long by a few frames per segment.
        target = replacement_duration
        if has_before:
            target += request.start_time
        if has_after:
            target += after_duration
        excess = await asyncio.to_thread(audio.probe_duration, output_path) - target

        if excess > ENCODER_TOLERANCE:
            trim = _plan_trim(request, excess, has_before, has_after, after_duration)
            if trim is None:
                logger.debug(f"Output runs {excess:.3f}s long; no segment to shorten")
            else:
                start, length, name = trim
                logger.debug(f"Output runs {excess:.3f}s long; re-cutting {name}")
                await asyncio.to_thread(
                    audio.extract_segment,
                    request.original_audio_path,
                    start,
                    length,
                    tmp_dir / name,
                )
                await asyncio.to_thread(audio.concat_audio, segments, output_path)

        data = output_path.read_bytes()

    if request.output_path is not None:
        Path(request.output_path).write_bytes(data)

    logger.info(f"Spliced {len(segments)} segment(s) into {len(data)} bytes")
    return data


async def splice(
    original: str | Path,
    replacement: str | Path,
    start_time: float,
    end_time: float,
    work_dir: Optional[Path] = None,
) -> bytes:
    """
    Splice ``replacement`` over ``[start_time, end_time)`` of ``original``.

    Convenience wrapper around ``splice_audio`` that only returns bytes.
    """
    return await splice_audio(
        SpliceRequest(
            original_audio_path=Path(original),
            replacement_audio_path=Path(replacement),
            start_time=start_time,
            end_time=end_time,
        ),
        work_dir=work_dir,
    )


def _plan_trim(
    request: SpliceRequest,
    excess: float,
    has_before: bool,
    has_after: bool,
    after_duration: float,
) -> Optional[Tuple[float, float, str]]:
    """
    Pick the segment to re-cut so the output loses ``excess`` seconds.

    The tail of the recording is shortened when there is one, otherwise the
    head. Audio next to the replaced window is never cut.

    Returns:
        ``(start, duration, segment name)`` for the new cut, or None if no
        segment is long enough
    """
    if has_after and after_duration - excess > MIN_SEGMENT_DURATION:
        return request.end_time, after_duration - excess, "after.mp3"
    if has_before and request.start_time - excess > MIN_SEGMENT_DURATION:
        return excess, request.start_time - excess, "before.mp3"
    return None
