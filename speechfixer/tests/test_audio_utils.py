"""
Tests for the ffmpeg and librosa wrappers in utils/audio.py.
"""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import pytest
import soundfile as sf

from speechfixer.exceptions import ConcatFailed, ExtractFailed, ProbeFailed
from speechfixer.utils import audio

from .conftest import write_tone


def _completed(returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


class TestProbeDuration:
    """Test decode-level duration probing."""

    def test_wav_duration(self, make_tone):
        path = make_tone("two_seconds.wav", 2.0)
        assert audio.probe_duration(path) == pytest.approx(2.0, abs=0.01)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ProbeFailed):
            audio.probe_duration(tmp_path / "missing.mp3")


class TestFFmpegCommands:
    """Test the ffmpeg command lines without running ffmpeg."""

    def test_extract_segment_args(self, tmp_path):
        with patch.object(audio.subprocess, "run", return_value=_completed()) as run:
            audio.extract_segment(tmp_path / "in.mp3", 1.5, 2.25, tmp_path / "out.mp3")

        cmd = run.call_args[0][0]
        assert cmd[0] == "ffmpeg"
        # Seek before the input for a fast, exact cut
        assert cmd.index("-ss") < cmd.index("-i")
        assert cmd[cmd.index("-ss") + 1] == "1.500000"
        assert cmd[cmd.index("-t") + 1] == "2.250000"
        assert cmd[cmd.index("-acodec") + 1] == "libmp3lame"
        assert cmd[cmd.index("-ar") + 1] == "44100"
        assert cmd[cmd.index("-b:a") + 1] == "128k"
        assert cmd[cmd.index("-ac") + 1] == "2"
        assert cmd[-1] == str(tmp_path / "out.mp3")

    def test_normalize_uses_canonical_format(self, tmp_path):
        with patch.object(audio.subprocess, "run", return_value=_completed()) as run:
            audio.normalize_audio(tmp_path / "in.wav", tmp_path / "out.mp3")

        cmd = run.call_args[0][0]
        assert "-t" not in cmd
        assert cmd[cmd.index("-acodec") + 1] == "libmp3lame"

    def test_ffmpeg_binary_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SPEECHFIXER_FFMPEG", "/opt/ffmpeg/bin/ffmpeg")
        with patch.object(audio.subprocess, "run", return_value=_completed()) as run:
            audio.normalize_audio(tmp_path / "in.wav", tmp_path / "out.mp3")

        assert run.call_args[0][0][0] == "/opt/ffmpeg/bin/ffmpeg"

    def test_failure_carries_stderr(self, tmp_path):
        failed = _completed(returncode=1, stderr="Invalid data found when processing input")
        with patch.object(audio.subprocess, "run", return_value=failed):
            with pytest.raises(ExtractFailed, match="Invalid data found"):
                audio.extract_segment(tmp_path / "in.mp3", 0.0, 1.0, tmp_path / "out.mp3")

    def test_missing_binary(self, tmp_path):
        with patch.object(audio.subprocess, "run", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(ExtractFailed, match="could not run ffmpeg"):
                audio.normalize_audio(tmp_path / "in.wav", tmp_path / "out.mp3")


class TestConcatAudio:
    """Test concat demuxer invocation."""

    def test_writes_list_file_in_order(self, tmp_path):
        parts = [tmp_path / "before.mp3", tmp_path / "replacement.mp3", tmp_path / "after.mp3"]
        output = tmp_path / "output.mp3"

        with patch.object(audio.subprocess, "run", return_value=_completed()) as run:
            audio.concat_audio(parts, output)

        list_file = tmp_path / "output_list.txt"
        lines = list_file.read_text(encoding="utf-8").splitlines()
        assert lines == [f"file '{p.resolve()}'" for p in parts]

        cmd = run.call_args[0][0]
        assert cmd[cmd.index("-f") + 1] == "concat"
        assert cmd[cmd.index("-c") + 1] == "copy"
        assert "-acodec" not in cmd

    def test_quotes_are_escaped(self, tmp_path):
        odd = tmp_path / "it's.mp3"
        with patch.object(audio.subprocess, "run", return_value=_completed()):
            audio.concat_audio([odd], tmp_path / "output.mp3")

        content = (tmp_path / "output_list.txt").read_text(encoding="utf-8")
        assert "it'\\''s.mp3" in content

    def test_empty_list_raises(self, tmp_path):
        with pytest.raises(ConcatFailed):
            audio.concat_audio([], tmp_path / "output.mp3")

    def test_failure_raises_concat_failed(self, tmp_path):
        with patch.object(audio.subprocess, "run", return_value=_completed(returncode=1)):
            with pytest.raises(ConcatFailed, match="exited with 1"):
                audio.concat_audio([tmp_path / "a.mp3"], tmp_path / "output.mp3")


class TestCheckFFmpeg:
    def test_missing_binary(self, monkeypatch):
        monkeypatch.setenv("SPEECHFIXER_FFMPEG", "definitely-not-ffmpeg-binary")
        assert audio.check_ffmpeg() is False

    def test_present_binary(self, monkeypatch):
        with patch.object(audio.shutil, "which", Mock(return_value="/usr/bin/ffmpeg")):
            assert audio.check_ffmpeg() is True


class TestValidateReferenceAudio:
    """Test voice sample validation."""

    def test_valid_sample(self, make_tone):
        is_valid, error = audio.validate_reference_audio(make_tone("voice.wav", 2.0))
        assert is_valid
        assert error is None

    def test_too_short(self, make_tone):
        is_valid, error = audio.validate_reference_audio(make_tone("short.wav", 0.5))
        assert not is_valid
        assert "too short" in error

    def test_no_upper_limit_by_default(self, tmp_path):
        path = write_tone(tmp_path / "long.wav", 601.0, sample_rate=8000)
        assert audio.validate_reference_audio(path) == (True, None)

    def test_explicit_upper_limit(self, make_tone):
        is_valid, error = audio.validate_reference_audio(
            make_tone("voice.wav", 2.0), max_duration=1.5
        )
        assert not is_valid
        assert "too long" in error

    def test_silent(self, tmp_path):
        path = tmp_path / "silent.wav"
        sf.write(str(path), np.zeros(44100 * 2, dtype=np.float32), 44100)

        is_valid, error = audio.validate_reference_audio(path)

        assert not is_valid
        assert "quiet" in error

    def test_unreadable(self, tmp_path):
        path = Path(tmp_path / "garbage.wav")
        path.write_bytes(b"nope")

        is_valid, error = audio.validate_reference_audio(path)

        assert not is_valid
        assert error.startswith("Error reading audio")
