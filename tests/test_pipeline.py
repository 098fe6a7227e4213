import json

import pytest

from podcast_agent.config import PipelineConfig
from podcast_agent.errors import (
    AudioStitchError,
    ContentNotFoundError,
    InvalidInputError,
    ScriptValidationError,
    SpeechSynthesisError,
)
from podcast_agent.pipeline import PodcastAgent
from podcast_agent.script_validator import validate_script
from podcast_agent.types import AudioSegment, StitchedAudio, utc_now


class FakeSource:
    def __init__(self, document, error=None):
        self.document = document
        self.error = error
        self.calls = []

    def fetch(self, value, input_kind=None):
        self.calls.append((value, input_kind))
        if self.error:
            raise self.error
        return self.document


class FakeGenerator:
    def __init__(self, lines, error=None):
        self.lines = lines
        self.error = error

    def generate(self, document):
        if self.error:
            raise self.error
        return validate_script(self.lines, title=document.title, url=document.url)


class FakeSynthesizer:
    def __init__(self, store, error=None):
        self.store = store
        self.error = error
        self.calls = []

    def synthesize_with_retry(self, run_id, lines):
        self.calls.append(run_id)
        if self.error:
            raise self.error
        segments = []
        for line in lines:
            path = self.store.segment_path(run_id, line.index)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"\x00" * 160)
            segments.append(AudioSegment(line.index, line.speaker, "voice", path, 10, utc_now()))
        return segments

    def voice_mapping(self):
        return {"Nishi": "voice-n", "Shyam": "voice-s"}


class FakeStitcher:
    def __init__(self, store, available=True, error=None):
        self.store = store
        self.available = available
        self.error = error
        self.calls = []

    def is_available(self):
        return self.available

    def stitch(self, run_id, segments):
        self.calls.append([segment.line_index for segment in segments])
        if self.error:
            raise self.error
        path = self.store.audio_path(run_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"ID3" + b"\x00" * 4096)
        return StitchedAudio(file_path=path, duration_seconds=150.4, file_size_bytes=path.stat().st_size)


@pytest.fixture
def build_agent(store, document, make_lines):
    def _build(source_error=None, script_error=None, synthesis_error=None, stitch_error=None, keep_segments=True):
        config = PipelineConfig(output_root=store.root, keep_segments=keep_segments)
        return PodcastAgent(
            config,
            source=FakeSource(document, error=source_error),
            script_generator=FakeGenerator(make_lines(), error=script_error),
            synthesizer=FakeSynthesizer(store, error=synthesis_error),
            stitcher=FakeStitcher(store, error=stitch_error),
            store=store,
        )

    return _build


def test_successful_run_reports_every_stage_in_order(build_agent):
    agent = build_agent()
    events = []

    agent.generate("Alan Turing", on_progress=events.append)

    assert [(event.stage, event.status) for event in events] == [
        ("content_fetch", "in_progress"),
        ("content_fetch", "completed"),
        ("script_generation", "in_progress"),
        ("script_generation", "completed"),
        ("speech_synthesis", "in_progress"),
        ("speech_synthesis", "completed"),
        ("audio_stitch", "in_progress"),
        ("audio_stitch", "completed"),
    ]
    assert events[-1].message == "Podcast complete"


def test_successful_run_persists_artifacts(build_agent, store):
    agent = build_agent()

    result = agent.generate("https://en.wikipedia.org/wiki/Alan_Turing")

    assert agent.source.calls == [("https://en.wikipedia.org/wiki/Alan_Turing", "url")]
    assert result.duration_seconds == 150
    assert result.audio_path == store.audio_path(result.id)
    assert result.voice_mapping == {"Nishi": "voice-n", "Shyam": "voice-s"}
    assert result.speakers == ["Nishi", "Shyam"]
    assert agent.stitcher.calls == [list(range(1, 13))]

    metadata = json.loads(store.metadata_path(result.id).read_text(encoding="utf-8"))
    assert metadata["status"] == "completed"
    assert metadata["audio"]["duration_seconds"] == 150
    assert [stage["status"] for stage in metadata["pipeline"]["stages"]] == ["completed"] * 4

    script = agent.load_script(result.id)
    assert len(script.lines) == 12
    assert script.title == "Alan Turing"


def test_load_result_round_trips_through_metadata(build_agent):
    agent = build_agent()
    result = agent.generate("Alan Turing")

    loaded = agent.load_result(result.id)

    assert loaded.id == result.id
    assert loaded.duration_seconds == result.duration_seconds
    assert loaded.audio_path == result.audio_path
    assert loaded.voice_mapping == result.voice_mapping
    assert agent.load_result("missing") is None


def test_discarding_segments_after_stitch(build_agent, store):
    agent = build_agent(keep_segments=False)

    result = agent.generate("Alan Turing")

    assert not store.segments_dir(result.id).exists()
    assert result.audio_path.exists()


def test_synthesis_failure_stops_the_run(build_agent, store):
    error = SpeechSynthesisError("TTS generation failed after 3 attempts: boom", line_index=4, attempts=3)
    agent = build_agent(synthesis_error=error)
    events = []

    with pytest.raises(SpeechSynthesisError) as excinfo:
        agent.generate("Alan Turing", on_progress=events.append)

    assert excinfo.value is error
    assert agent.stitcher.calls == []
    assert (events[-1].stage, events[-1].status) == ("speech_synthesis", "failed")
    assert events[-1].error == str(error)
    assert len(events) == 6

    [metadata_file] = list(store.metadata_dir.iterdir())
    metadata = json.loads(metadata_file.read_text(encoding="utf-8"))
    assert metadata["status"] == "failed"
    assert metadata["audio"] is None
    assert [stage["status"] for stage in metadata["pipeline"]["stages"]] == [
        "completed",
        "completed",
        "failed",
        "pending",
    ]
    assert agent.load_result(metadata["id"]) is None


def test_fetch_failure_writes_no_metadata(build_agent, store):
    agent = build_agent(source_error=ContentNotFoundError("Nowhere"))
    events = []

    with pytest.raises(ContentNotFoundError):
        agent.generate("Nowhere", on_progress=events.append)

    assert [(event.stage, event.status) for event in events] == [
        ("content_fetch", "in_progress"),
        ("content_fetch", "failed"),
    ]
    assert not store.metadata_dir.exists()


@pytest.mark.parametrize("value", ["", "   ", "12345", "https://example.com/page"])
def test_invalid_input_rejected_before_any_stage(build_agent, value):
    agent = build_agent()
    events = []

    with pytest.raises(InvalidInputError):
        agent.generate(value, on_progress=events.append)

    assert events == []
    assert agent.source.calls == []


def test_failing_listener_does_not_abort_the_run(build_agent, caplog):
    agent = build_agent()

    def broken(event):
        raise RuntimeError("listener bug")

    result = agent.generate("Alan Turing", on_progress=broken)

    assert result.audio_path.exists()
    assert "Progress listener failed" in caplog.text


def test_bus_subscribers_receive_events(build_agent):
    agent = build_agent()
    seen = []
    agent.progress.subscribe(seen.append)

    agent.generate("Alan Turing")
    agent.progress.unsubscribe(seen.append)
    agent.generate("Alan Turing")

    assert len(seen) == 8


def test_health_reports_tool_and_output_dir(build_agent):
    agent = build_agent()
    assert agent.health() == {"ffmpeg": "ok", "output_dir": "ok"}

    agent.stitcher.available = False
    assert agent.health()["ffmpeg"] == "error"


def test_script_failure_leaves_no_artifacts(build_agent, store):
    error = ScriptValidationError("min_length", "Script too short: must have at least 10 lines (got 8)")
    agent = build_agent(script_error=error)
    events = []

    with pytest.raises(ScriptValidationError) as excinfo:
        agent.generate("Alan Turing", on_progress=events.append)

    assert excinfo.value is error
    assert (events[-1].stage, events[-1].status) == ("script_generation", "failed")
    assert agent.synthesizer.calls == []
    assert agent.stitcher.calls == []
    assert not store.scripts_dir.exists()
    assert not store.metadata_dir.exists()
    assert not store.audio_dir.exists()


def test_stitch_failure_produces_no_playable_audio(build_agent, store):
    error = AudioStitchError("Audio stitching failed: FFmpeg encountered an error during processing")
    agent = build_agent(stitch_error=error)
    events = []

    with pytest.raises(AudioStitchError) as excinfo:
        agent.generate("Alan Turing", on_progress=events.append)

    assert excinfo.value is error
    assert (events[-1].stage, events[-1].status) == ("audio_stitch", "failed")
    assert len(events) == 8
    assert store.list_runs() == []

    [metadata_file] = list(store.metadata_dir.iterdir())
    metadata = json.loads(metadata_file.read_text(encoding="utf-8"))
    assert metadata["status"] == "failed"
    assert metadata["artifacts"]["audio_path"] is None
    assert metadata["pipeline"]["stages"][-1]["status"] == "failed"
    assert agent.load_result(metadata["id"]) is None


def test_agent_builds_and_reports_health_without_api_keys(monkeypatch, tmp_path):
    for name in ("XAI_API_KEY", "OPENAI_API_KEY", "ELEVENLABS_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    agent = PodcastAgent(PipelineConfig(output_root=tmp_path / "output"))
    checks = agent.health()

    assert set(checks) == {"ffmpeg", "output_dir"}
    assert checks["output_dir"] == "ok"
