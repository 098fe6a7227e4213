from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

# Script sections in the order they must appear.
SECTION_OPENING = "opening"
SECTION_CORE_EXPLANATION = "core_explanation"
SECTION_ELABORATION = "elaboration"
SECTION_INTERACTIVE_EXCHANGE = "interactive_exchange"
SECTION_CLOSING = "closing"

SECTIONS_ORDER = (
    SECTION_OPENING,
    SECTION_CORE_EXPLANATION,
    SECTION_ELABORATION,
    SECTION_INTERACTIVE_EXCHANGE,
    SECTION_CLOSING,
)

STAGE_CONTENT_FETCH = "content_fetch"
STAGE_SCRIPT_GENERATION = "script_generation"
STAGE_SPEECH_SYNTHESIS = "speech_synthesis"
STAGE_AUDIO_STITCH = "audio_stitch"

STAGES_ORDER = (
    STAGE_CONTENT_FETCH,
    STAGE_SCRIPT_GENERATION,
    STAGE_SPEECH_SYNTHESIS,
    STAGE_AUDIO_STITCH,
)

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

INPUT_KIND_URL = "url"
INPUT_KIND_TITLE = "title"

MAX_LINE_LENGTH = 1000


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SourceDocument:
    """Cleaned article text fetched from the content source."""

    title: str
    url: str
    text: str
    word_count: int
    fetched_at: str
    summary: str = ""
    language: str = "en"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScriptLine:
    """One line of dialogue."""

    index: int
    speaker: str
    text: str
    section: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScriptLine":
        return cls(
            index=int(data["index"]),
            speaker=str(data["speaker"]),
            text=str(data["text"]),
            section=str(data["section"]),
        )


@dataclass(frozen=True)
class GenerationParams:
    """Language model settings echoed into the script for reproducibility."""

    model: str
    temperature: float
    max_tokens: int
    top_p: float
    prompt_version: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Script:
    """A validated two-speaker conversation.

    Instances are only built by ``validate_script``; every structural rule
    holds once one exists.
    """

    id: str
    title: str
    url: str
    lines: List[ScriptLine]
    sections: Dict[str, List[int]]
    total_words: int
    estimated_duration: int
    generated_at: str
    generation_params: Optional[GenerationParams] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "lines": [line.to_dict() for line in self.lines],
            "sections": {name: list(indices) for name, indices in self.sections.items()},
            "total_words": self.total_words,
            "estimated_duration": self.estimated_duration,
            "generated_at": self.generated_at,
            "generation_params": self.generation_params.to_dict() if self.generation_params else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Script":
        params = data.get("generation_params")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            url=data.get("url", ""),
            lines=[ScriptLine.from_dict(item) for item in data.get("lines", [])],
            sections={name: list(indices) for name, indices in data.get("sections", {}).items()},
            total_words=int(data.get("total_words", 0)),
            estimated_duration=int(data.get("estimated_duration", 0)),
            generated_at=data.get("generated_at", ""),
            generation_params=GenerationParams(**params) if params else None,
        )


@dataclass(frozen=True)
class AudioSegment:
    """Synthesized audio for a single script line."""

    line_index: int
    speaker: str
    voice: str
    file_path: Path
    duration_ms: int
    created_at: str
    format: str = "mp3"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["file_path"] = str(self.file_path)
        return payload


@dataclass(frozen=True)
class StitchedAudio:
    """The final normalized audio file."""

    file_path: Path
    duration_seconds: float
    file_size_bytes: int


@dataclass
class PipelineStage:
    name: str
    status: str = STATUS_PENDING
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "status": self.status}
        if self.started_at:
            payload["started_at"] = self.started_at
        if self.completed_at:
            payload["completed_at"] = self.completed_at
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class AudioSpec:
    format: str = "mp3"
    bitrate: str = "128k"
    sample_rate: int = 44100
    channels: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PodcastResult:
    """Everything a caller needs to serve a finished podcast."""

    id: str
    script_id: str
    title: str
    url: str
    audio_path: Path
    script_path: Path
    metadata_path: Path
    duration_seconds: int
    file_size_bytes: int
    voice_mapping: Dict[str, str]
    speakers: List[str]
    created_at: str
    pipeline_version: str
    audio_spec: AudioSpec = field(default_factory=AudioSpec)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "script_id": self.script_id,
            "title": self.title,
            "url": self.url,
            "audio_path": str(self.audio_path),
            "script_path": str(self.script_path),
            "metadata_path": str(self.metadata_path),
            "duration_seconds": self.duration_seconds,
            "file_size_bytes": self.file_size_bytes,
            "voice_mapping": dict(self.voice_mapping),
            "speakers": list(self.speakers),
            "created_at": self.created_at,
            "pipeline_version": self.pipeline_version,
            "audio_spec": self.audio_spec.to_dict(),
        }
