"""Shared fixtures for podcast_agent tests."""

from pathlib import Path

import pytest

from podcast_agent.storage import ArtifactStore
from podcast_agent.types import AudioSegment, ScriptLine, SourceDocument

DEFAULT_SECTIONS = [
    "opening",
    "opening",
    "core_explanation",
    "core_explanation",
    "core_explanation",
    "elaboration",
    "elaboration",
    "interactive_exchange",
    "interactive_exchange",
    "interactive_exchange",
    "closing",
    "closing",
]


def build_lines(sections=None, speakers=None, words_per_line=30):
    sections = list(sections or DEFAULT_SECTIONS)
    if speakers is None:
        speakers = ["Nishi" if i % 2 == 0 else "Shyam" for i in range(len(sections))]
    text = " ".join(["word"] * words_per_line)
    return [
        ScriptLine(index=i, speaker=speaker, text=text, section=section)
        for i, (speaker, section) in enumerate(zip(speakers, sections), start=1)
    ]


@pytest.fixture
def make_lines():
    """Factory for ScriptLine batches; defaults to a valid 12-line script."""
    return build_lines


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "output")


@pytest.fixture
def document():
    return SourceDocument(
        title="Alan Turing",
        url="https://en.wikipedia.org/wiki/Alan_Turing",
        text="Alan Turing was an English mathematician and computer scientist. " * 20,
        word_count=180,
        fetched_at="2024-01-01T00:00:00+00:00",
        summary="Alan Turing was an English mathematician.",
    )


@pytest.fixture
def make_segments(tmp_path):
    """Factory that writes fake mp3 files and returns AudioSegments in the given index order."""

    def _make(indices):
        directory = tmp_path / "segments"
        directory.mkdir(exist_ok=True)
        segments = []
        for index in indices:
            path = directory / f"{index:03d}.mp3"
            path.write_bytes(b"ID3" + bytes([index]) * 100)
            segments.append(
                AudioSegment(
                    line_index=index,
                    speaker="Nishi" if index % 2 else "Shyam",
                    voice="voice",
                    file_path=Path(path),
                    duration_ms=1000,
                    created_at="2024-01-01T00:00:00+00:00",
                )
            )
        return segments

    return _make
