"""
Unit tests for the transcript model and reconciler.

Covers selection resolution, surrounding context, the duration estimate and
the timing/text invariants that must hold after every edit.
"""

import pytest

from speechfixer.exceptions import DegenerateSelection, InvalidRange
from speechfixer.transcript import (
    Token,
    TokenKind,
    Transcript,
    context_around,
    estimate_duration,
    make_selection,
    reconcile,
)


def _hello_world_with_tail() -> Transcript:
    return Transcript.from_tokens(
        [
            Token("Hello", 0.0, 0.5),
            Token(" ", 0.5, 0.5, kind=TokenKind.SPACING),
            Token("world", 0.5, 1.0),
            Token(",", 1.0, 1.0, kind=TokenKind.PUNCTUATION),
            Token(" ", 1.0, 1.1, kind=TokenKind.SPACING),
            Token("again", 1.1, 1.6),
        ],
        audio_duration=2.0,
    )


class TestMakeSelection:
    """Test resolving token index ranges."""

    def test_times_come_from_words(self, sentence):
        """Test that leading spacing does not move the start time."""
        selection = make_selection(sentence, 1, 4)
        assert selection.start_index == 1
        assert selection.end_index == 4
        assert selection.start_time == pytest.approx(0.5)
        assert selection.end_time == pytest.approx(1.4)
        assert selection.selected_text == " quick brown"

    def test_reversed_indices_are_normalized(self, sentence):
        """Test that a range dragged backwards selects the same tokens."""
        assert make_selection(sentence, 4, 2) == make_selection(sentence, 2, 4)

    def test_out_of_bounds_raises(self, sentence):
        with pytest.raises(InvalidRange):
            make_selection(sentence, 0, len(sentence))
        with pytest.raises(InvalidRange):
            make_selection(sentence, -1, 2)

    def test_range_without_words_raises(self, sentence):
        """Test that selecting only spacing is rejected."""
        with pytest.raises(InvalidRange):
            make_selection(sentence, 1, 1)

    def test_invalid_range_is_value_error(self, sentence):
        with pytest.raises(ValueError):
            make_selection(sentence, 5, 500)


class TestContextAround:
    """Test prosody context extraction."""

    def test_both_sides(self, sentence):
        selection = make_selection(sentence, 4, 4)
        previous_text, next_text = context_around(sentence, selection)
        assert previous_text == "The quick "
        assert next_text == " fox jumps."

    def test_limit(self, sentence):
        selection = make_selection(sentence, 4, 4)
        previous_text, next_text = context_around(sentence, selection, limit=2)
        assert previous_text == "quick "
        assert next_text == " fox"

    def test_edges_are_none(self, hello_world):
        """Test that a side without tokens yields None rather than an empty string."""
        selection = make_selection(hello_world, 0, 2)
        assert context_around(hello_world, selection) == (None, None)


class TestEstimateDuration:
    """Test the character-ratio duration estimate."""

    def test_ratio(self):
        selection = make_selection(_hello_world_with_tail(), 2, 2)
        assert estimate_duration(selection, "everyone") == pytest.approx(0.8)

    def test_zero_duration_span_estimates_zero(self):
        transcript = Transcript.from_tokens([Token("uh", 1.0, 1.0)])
        selection = make_selection(transcript, 0, 0)
        assert estimate_duration(selection, "hmm") == 0.0

    def test_empty_selected_text_raises(self):
        transcript = Transcript.from_tokens([Token("", 0.0, 0.5)])
        selection = make_selection(transcript, 0, 0)
        with pytest.raises(DegenerateSelection):
            estimate_duration(selection, "word")


class TestReconcile:
    """Test transcript reconciliation after a replacement."""

    def test_same_length_replacement(self):
        """Test replacing "world" with "there" keeps every timing."""
        transcript = Transcript.from_tokens([
            Token("Hello", 0.0, 0.5),
            Token(" ", 0.5, 0.5, kind=TokenKind.SPACING),
            Token("world", 0.5, 1.0),
        ])

        result = reconcile(transcript, 2, 2, "there")

        assert result.text == "Hello there"
        assert len(result) == 3
        assert result.tokens[2] == Token("there", 0.5, pytest.approx(1.0), kind=TokenKind.WORD)

    def test_longer_replacement_shifts_later_tokens(self):
        """Test replacing "world" with "everyone" adds 0.3 s."""
        transcript = _hello_world_with_tail()

        result = reconcile(transcript, 2, 2, "everyone")

        new_token = result.tokens[2]
        assert new_token.text == "everyone"
        assert new_token.start == pytest.approx(0.5)
        assert new_token.end == pytest.approx(1.3)
        for old, new in zip(transcript.tokens[3:], result.tokens[3:]):
            assert new.text == old.text
            assert new.start == pytest.approx(old.start + 0.3)
            assert new.end == pytest.approx(old.end + 0.3)
        assert result.audio_duration == pytest.approx(2.3)

    def test_shorter_replacement_shifts_backwards(self):
        transcript = _hello_world_with_tail()

        result = reconcile(transcript, 0, 2, "Hi")

        # "Hello world" is 11 characters over 1.0 s
        assert result.tokens[0].end == pytest.approx(2 / 11)
        assert result.tokens[-1].start == pytest.approx(1.1 - (1.0 - 2 / 11))

    def test_tokens_before_range_untouched(self, sentence):
        result = reconcile(sentence, 4, 6, "slow red")
        assert result.tokens[:4] == sentence.tokens[:4]

    @pytest.mark.parametrize("start,end", [(0, 0), (0, 2), (2, 6), (4, 8), (8, 9), (0, 9)])
    def test_invariants(self, sentence, start, end):
        """Test token count, constant shift and text for many ranges."""
        result = reconcile(sentence, start, end, "replacement")

        assert len(result) == len(sentence) - (end - start + 1) + 1
        assert result.text == "".join(t.text for t in result.tokens)

        old_after = sentence.tokens[end + 1:]
        new_after = result.tokens[start + 1:]
        assert len(old_after) == len(new_after)
        offsets = [new.start - old.start for old, new in zip(old_after, new_after)]
        for offset in offsets:
            assert offset == pytest.approx(offsets[0])

    def test_measured_duration_overrides_estimate(self):
        transcript = _hello_world_with_tail()

        result = reconcile(transcript, 2, 2, "everyone", replacement_duration=0.45)

        assert result.tokens[2].end == pytest.approx(0.95)
        assert result.tokens[-1].start == pytest.approx(1.05)

    def test_input_not_mutated(self):
        transcript = _hello_world_with_tail()
        snapshot = transcript.tokens

        reconcile(transcript, 2, 2, "everyone")

        assert transcript.tokens == snapshot
        assert transcript.text == "Hello world, again"

    def test_invalid_range_raises(self, hello_world):
        with pytest.raises(InvalidRange):
            reconcile(hello_world, 1, 1, "x")

    def test_new_token_is_word(self, sentence):
        result = reconcile(sentence, 8, 9, "jumped!")
        assert result.tokens[8].kind == TokenKind.WORD
        assert result.text.endswith("fox jumped!")
