import itertools
import logging
import re
from pathlib import Path
from types import SimpleNamespace

import pytest

from podcast_agent import stitcher
from podcast_agent.config import AudioConfig
from podcast_agent.errors import AudioStitchError, ToolUnavailableError
from podcast_agent.stitcher import AudioStitcher, build_ffmpeg_command, concat_line, write_concat_list


class FakeFFmpeg:
    """Stands in for subprocess.run: records the concat list and writes an output file."""

    def __init__(self, returncode=0, stderr="", write_output=True, on_run=None):
        self.returncode = returncode
        self.stderr = stderr
        self.write_output = write_output
        self.on_run = on_run
        self.commands = []
        self.concat_lists = []

    def __call__(self, command, **kwargs):
        self.commands.append(command)
        list_path = Path(command[command.index("-i") + 1])
        self.concat_lists.append(list_path.read_text(encoding="utf-8"))
        if self.write_output:
            Path(command[-1]).write_bytes(b"ID3" + b"\x00" * 2048)
        if self.on_run:
            self.on_run(list_path)
        return SimpleNamespace(returncode=self.returncode, stdout="", stderr=self.stderr)


@pytest.fixture
def fake_tools(monkeypatch):
    monkeypatch.setattr(stitcher, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(stitcher, "mediainfo", lambda path: {"duration": "150.5"})

    def _install(**kwargs):
        fake = FakeFFmpeg(**kwargs)
        monkeypatch.setattr(stitcher.subprocess, "run", fake)
        return fake

    return _install


@pytest.fixture
def audio_stitcher(store):
    return AudioStitcher(AudioConfig(), store)


def listed_indices(concat_text):
    return [int(name) for name in re.findall(r"(\d{3})\.mp3'", concat_text)]


def test_segments_are_concatenated_in_line_order(audio_stitcher, fake_tools, make_segments, store):
    ffmpeg = fake_tools()

    result = audio_stitcher.stitch("run1", make_segments([3, 1, 2]))

    assert listed_indices(ffmpeg.concat_lists[0]) == [1, 2, 3]
    assert result.file_path == store.audio_path("run1")
    assert result.duration_seconds == 150.5
    assert result.file_size_bytes == result.file_path.stat().st_size


def test_output_does_not_depend_on_input_permutation(audio_stitcher, fake_tools, make_segments):
    ffmpeg = fake_tools()

    for order in itertools.permutations([1, 2, 3, 4]):
        audio_stitcher.stitch("run1", make_segments(list(order)))

    assert len(set(ffmpeg.concat_lists)) == 1
    assert listed_indices(ffmpeg.concat_lists[0]) == [1, 2, 3, 4]


def test_concat_list_is_removed_after_success(audio_stitcher, fake_tools, make_segments, store):
    fake_tools()

    audio_stitcher.stitch("run1", make_segments([1, 2]))

    assert not (store.temp_dir / "run1_concat.txt").exists()


def test_empty_input_rejected(audio_stitcher, fake_tools):
    ffmpeg = fake_tools()

    with pytest.raises(AudioStitchError, match="No audio segments to stitch"):
        audio_stitcher.stitch("run1", [])

    assert ffmpeg.commands == []


def test_missing_ffmpeg_raises_tool_unavailable(audio_stitcher, monkeypatch, make_segments, store):
    monkeypatch.setattr(stitcher, "which", lambda name: None)

    assert not audio_stitcher.is_available()
    with pytest.raises(ToolUnavailableError):
        audio_stitcher.stitch("run1", make_segments([1]))

    assert not store.temp_dir.exists()
    assert not store.audio_dir.exists()


def test_error_marker_in_stderr_fails_and_removes_output(audio_stitcher, fake_tools, make_segments, store):
    fake_tools(returncode=0, stderr="[mp3 @ 0x1] Error while decoding stream")

    with pytest.raises(AudioStitchError, match="FFmpeg encountered an error"):
        audio_stitcher.stitch("run1", make_segments([1, 2]))

    assert not store.audio_path("run1").exists()
    assert not (store.temp_dir / "run1_concat.txt").exists()


def test_nonzero_exit_fails(audio_stitcher, fake_tools, make_segments):
    fake_tools(returncode=1, stderr="", write_output=False)

    with pytest.raises(AudioStitchError) as excinfo:
        audio_stitcher.stitch("run1", make_segments([1]))

    assert excinfo.value.details["returncode"] == 1
    assert excinfo.value.details["stage"] == "audio_stitch"


def test_cleanup_failure_is_only_logged(audio_stitcher, fake_tools, make_segments, caplog):
    def replace_list_with_directory(list_path):
        list_path.unlink()
        list_path.mkdir()
        (list_path / "keep").write_text("x")

    fake_tools(on_run=replace_list_with_directory)

    with caplog.at_level(logging.WARNING, logger="podcast_agent.stitcher"):
        result = audio_stitcher.stitch("run1", make_segments([1, 2]))

    assert result.file_path.exists()
    assert "Failed to clean up temp files" in caplog.text


def test_missing_segment_file_fails(audio_stitcher, fake_tools, make_segments):
    ffmpeg = fake_tools()
    segments = make_segments([1, 2])
    Path(segments[1].file_path).unlink()

    with pytest.raises(AudioStitchError, match="missing segment for line 2"):
        audio_stitcher.stitch("run1", segments)

    assert ffmpeg.commands == []


def test_unreadable_duration_fails(audio_stitcher, fake_tools, make_segments, monkeypatch, store):
    fake_tools()
    monkeypatch.setattr(stitcher, "mediainfo", lambda path: {})

    with pytest.raises(AudioStitchError, match="could not read duration"):
        audio_stitcher.stitch("run1", make_segments([1]))

    assert not store.audio_path("run1").exists()


def test_ffmpeg_command_normalizes_and_encodes(tmp_path):
    command = build_ffmpeg_command("ffmpeg", tmp_path / "list.txt", tmp_path / "out.mp3", AudioConfig())

    assert command[:1] == ["ffmpeg"]
    assert command[command.index("-f") + 1] == "concat"
    assert command[command.index("-safe") + 1] == "0"
    assert command[command.index("-af") + 1] == "loudnorm=I=-16:TP=-1.5:LRA=11"
    assert command[command.index("-codec:a") + 1] == "libmp3lame"
    assert command[command.index("-b:a") + 1] == "128k"
    assert command[command.index("-ar") + 1] == "44100"
    assert command[command.index("-ac") + 1] == "1"
    assert command[-2:] == ["-y", str(tmp_path / "out.mp3")]


def test_concat_line_escapes_quotes():
    assert concat_line(Path("/tmp/it's.mp3")) == "file '/tmp/it'\\''s.mp3'\n"


def test_write_concat_list_returns_ordered_segments(make_segments, tmp_path):
    ordered = write_concat_list(make_segments([2, 1]), tmp_path / "temp" / "list.txt")

    assert [segment.line_index for segment in ordered] == [1, 2]
    assert (tmp_path / "temp" / "list.txt").read_text(encoding="utf-8").count("file '") == 2
