"""
Word-level transcript model and the reconciler that keeps its timing
consistent after an edit.

A transcript is an immutable, ordered sequence of tokens. Spacing and
punctuation are tokens too, so joining every token's text reproduces the
transcript text exactly. Editing never mutates a transcript; ``reconcile``
returns a new one.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

from .exceptions import DegenerateSelection, InvalidRange


class TokenKind(str, Enum):
    """Semantic type of a transcript token."""

    WORD = "word"
    PUNCTUATION = "punctuation"
    SPACING = "spacing"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Token:
    """A word, punctuation mark or inter-word spacing with timing in seconds."""

    text: str
    start: float
    end: float
    kind: TokenKind = TokenKind.WORD
    speaker_id: Optional[str] = None

    @property
    def is_word(self) -> bool:
        return self.kind == TokenKind.WORD

    @property
    def duration(self) -> float:
        return self.end - self.start

    def shifted(self, offset: float) -> "Token":
        """Return a copy moved by ``offset`` seconds."""
        return replace(self, start=self.start + offset, end=self.end + offset)


@dataclass(frozen=True)
class Transcript:
    """Ordered tokens plus the full transcript text."""

    tokens: Tuple[Token, ...]
    text: str
    language_code: Optional[str] = None
    audio_duration: Optional[float] = None

    @classmethod
    def from_tokens(
        cls,
        tokens: Iterable[Token],
        language_code: Optional[str] = None,
        audio_duration: Optional[float] = None,
    ) -> "Transcript":
        """Build a transcript whose text is the concatenation of its tokens."""
        tokens = tuple(tokens)
        return cls(
            tokens=tokens,
            text="".join(t.text for t in tokens),
            language_code=language_code,
            audio_duration=audio_duration,
        )

    def __len__(self) -> int:
        return len(self.tokens)


@dataclass(frozen=True)
class Selection:
    """
    A contiguous token range picked for replacement.

    ``start_time``/``end_time`` come from the first and last *word* tokens in
    the range: punctuation and spacing can sit outside the actual speech.
    ``selected_text`` covers every token in the range.
    """

    start_index: int
    end_index: int
    start_time: float
    end_time: float
    selected_text: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


def make_selection(transcript: Transcript, start_index: int, end_index: int) -> Selection:
    """
    Resolve a token index range into a selection.

    Indices may be given in either order (a selection dragged backwards).

    Args:
        transcript: Transcript to select from
        start_index: One end of the range (inclusive)
        end_index: Other end of the range (inclusive)

    Returns:
        The selection

    Raises:
        InvalidRange: If an index is out of bounds or the range holds no word
    """
    start, end = min(start_index, end_index), max(start_index, end_index)
    if start < 0 or end >= len(transcript.tokens):
        raise InvalidRange(
            f"Token range [{start}, {end}] out of bounds for {len(transcript.tokens)} tokens"
        )

    selected = transcript.tokens[start:end + 1]
    words = [t for t in selected if t.is_word]
    if not words:
        raise InvalidRange(f"Token range [{start}, {end}] contains no words")

    return Selection(
        start_index=start,
        end_index=end,
        start_time=words[0].start,
        end_time=words[-1].end,
        selected_text="".join(t.text for t in selected),
    )


def context_around(
    transcript: Transcript,
    selection: Selection,
    limit: int = 10,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Text immediately before and after a selection.

    Sent along with synthesis requests so the replacement's intonation
    matches its surroundings.

    Args:
        transcript: Transcript the selection belongs to
        selection: The selection
        limit: Maximum number of tokens on each side

    Returns:
        Tuple of (previous_text, next_text); a side with no text is None
    """
    before = transcript.tokens[max(0, selection.start_index - limit):selection.start_index]
    after = transcript.tokens[selection.end_index + 1:selection.end_index + 1 + limit]
    previous_text = "".join(t.text for t in before)
    next_text = "".join(t.text for t in after)
    return previous_text or None, next_text or None


def estimate_duration(selection: Selection, new_text: str) -> float:
    """
    Estimate how long ``new_text`` takes to say.

    Scales the selection's duration by the ratio of character counts. This is
    a rough approximation of the synthesized clip, not a measurement.

    Raises:
        DegenerateSelection: If the selection has no text
    """
    if not selection.selected_text:
        raise DegenerateSelection(
            f"Selection [{selection.start_index}, {selection.end_index}] has no text"
        )
    return selection.duration * (len(new_text) / len(selection.selected_text))


def reconcile(
    transcript: Transcript,
    start_index: int,
    end_index: int,
    new_text: str,
    replacement_duration: Optional[float] = None,
) -> Transcript:
    """
    Produce the transcript that results from replacing a token range.

    The whole range collapses into one word token starting where the first
    selected word started. Every later token moves by the difference between
    the new and the original duration.

    Args:
        transcript: Transcript before the edit (left untouched)
        start_index: First replaced token (inclusive)
        end_index: Last replaced token (inclusive)
        new_text: Replacement text
        replacement_duration: Measured duration of the replacement audio.
            When omitted the duration is estimated from text length.

    Returns:
        New transcript

    Raises:
        InvalidRange: If the range is invalid
        DegenerateSelection: If the range has no text to estimate from
    """
    selection = make_selection(transcript, start_index, end_index)

    if replacement_duration is None:
        new_duration = estimate_duration(selection, new_text)
    else:
        new_duration = replacement_duration
    offset = new_duration - selection.duration

    new_token = Token(
        text=new_text,
        start=selection.start_time,
        end=selection.start_time + new_duration,
        kind=TokenKind.WORD,
    )

    before = transcript.tokens[:selection.start_index]
    after = tuple(t.shifted(offset) for t in transcript.tokens[selection.end_index + 1:])

    return Transcript.from_tokens(
        before + (new_token,) + after,
        language_code=transcript.language_code,
        audio_duration=(
            transcript.audio_duration + offset
            if transcript.audio_duration is not None
            else None
        ),
    )
