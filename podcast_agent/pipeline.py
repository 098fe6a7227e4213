from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .config import PipelineConfig
from .events import ProgressBus, ProgressListener, StageEvent
from .script_generator import BaseScriptGenerator, build_script_generator
from .source import BaseSource, build_source
from .speakers import VALID_SPEAKERS
from .stitcher import AudioStitcher
from .storage import ArtifactStore
from .tts import SpeechSynthesizer, build_tts
from .types import (
    STAGES_ORDER,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    AudioSegment,
    AudioSpec,
    PipelineStage,
    PodcastResult,
    Script,
    SourceDocument,
    StitchedAudio,
    utc_now,
)
from .validation import validate_input

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _RunState:
    stages: List[PipelineStage]
    started_at: str
    document: Optional[SourceDocument] = None
    script: Optional[Script] = None
    script_path: Optional[Path] = None
    segments: List[AudioSegment] = field(default_factory=list)

    @property
    def run_id(self) -> Optional[str]:
        return self.script.id if self.script else None


class PodcastAgent:
    """Drive fetch, script generation, speech synthesis, and stitching for one article at a time.

    Stages run strictly in order. The first failing stage is marked failed,
    reported to listeners, and its exception is re-raised unchanged.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        source: Optional[BaseSource] = None,
        script_generator: Optional[BaseScriptGenerator] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        stitcher: Optional[AudioStitcher] = None,
        store: Optional[ArtifactStore] = None,
    ):
        self.config = config or PipelineConfig()
        self.store = store or ArtifactStore(self.config.output_root)
        self.source = source or build_source(self.config.source)
        self.script_generator = script_generator or build_script_generator(self.config.script)
        self.synthesizer = synthesizer or SpeechSynthesizer(
            self.config.tts, build_tts(self.config.tts), self.store
        )
        self.stitcher = stitcher or AudioStitcher(self.config.audio, self.store)
        self.progress = ProgressBus()

    def generate(
        self,
        value: str,
        input_kind: Optional[str] = None,
        on_progress: Optional[ProgressListener] = None,
    ) -> PodcastResult:
        kind = validate_input(value, input_kind)
        run = _RunState(stages=[PipelineStage(name) for name in STAGES_ORDER], started_at=utc_now())
        logger.info("Starting podcast run for '%s' (%s)", value.strip(), kind)

        logger.info("Step 1/4: Fetching source article...")
        run.document = self._run_stage(run, 0, on_progress, lambda: self.source.fetch(value.strip(), kind))

        logger.info("Step 2/4: Generating podcast script...")
        self._run_stage(run, 1, on_progress, lambda: self._generate_script(run))
        logger.info(
            "Script generated: %s lines, ~%ss", len(run.script.lines), run.script.estimated_duration
        )

        logger.info("Step 3/4: Synthesizing audio segments...")
        run.segments = self._run_stage(
            run,
            2,
            on_progress,
            lambda: self.synthesizer.synthesize_with_retry(run.run_id, run.script.lines),
        )

        logger.info("Step 4/4: Stitching audio segments...")
        stitched = self._run_stage(run, 3, on_progress, lambda: self.stitcher.stitch(run.run_id, run.segments))

        result = self._build_result(run, stitched)
        self.store.save_metadata(result.id, self._build_metadata(run, result, stitched))
        if not self.config.keep_segments:
            self.store.cleanup_segments(result.id)
        logger.info("Podcast generation complete: %s (%ss)", result.audio_path, result.duration_seconds)
        return result

    def load_result(self, run_id: str) -> Optional[PodcastResult]:
        return self.store.load_result(run_id)

    def load_script(self, run_id: str) -> Optional[Script]:
        return self.store.load_script(run_id)

    def health(self) -> Dict[str, str]:
        return {
            "ffmpeg": "ok" if self.stitcher.is_available() else "error",
            "output_dir": "ok" if self.store.check_writable() else "error",
        }

    def _generate_script(self, run: _RunState) -> Script:
        run.script = self.script_generator.generate(run.document)
        run.script_path = self.store.save_script(run.script)
        logger.info("Script saved: %s", run.script_path)
        return run.script

    def _run_stage(
        self,
        run: _RunState,
        position: int,
        on_progress: Optional[ProgressListener],
        delegate: Callable[[], T],
    ) -> T:
        stage = run.stages[position]
        stage.status = STATUS_IN_PROGRESS
        stage.started_at = utc_now()
        self._notify(stage, on_progress)
        try:
            result = delegate()
        except Exception as exc:
            stage.status = STATUS_FAILED
            stage.completed_at = utc_now()
            stage.error = str(exc) or exc.__class__.__name__
            self._notify(stage, on_progress)
            logger.error("Podcast generation failed during %s: %s", stage.name, stage.error)
            self._record_failure(run)
            raise
        stage.status = STATUS_COMPLETED
        stage.completed_at = utc_now()
        self._notify(stage, on_progress)
        return result

    def _notify(self, stage: PipelineStage, on_progress: Optional[ProgressListener]) -> None:
        self.progress.publish(StageEvent.from_stage(stage), extra=on_progress)

    def _record_failure(self, run: _RunState) -> None:
        # A failure record needs a run id, which only exists once a script does.
        if run.run_id is None:
            return
        try:
            self.store.save_metadata(run.run_id, self._build_metadata(run, None, None))
        except OSError as exc:
            logger.warning("Could not write failure metadata for %s: %s", run.run_id, exc)

    def _build_result(self, run: _RunState, stitched: StitchedAudio) -> PodcastResult:
        audio = self.config.audio
        return PodcastResult(
            id=run.run_id,
            script_id=run.script.id,
            title=run.document.title,
            url=run.document.url,
            audio_path=stitched.file_path,
            script_path=run.script_path,
            metadata_path=self.store.metadata_path(run.run_id),
            duration_seconds=round(stitched.duration_seconds),
            file_size_bytes=stitched.file_size_bytes,
            voice_mapping=self.synthesizer.voice_mapping(),
            speakers=list(VALID_SPEAKERS),
            created_at=utc_now(),
            pipeline_version=self.config.pipeline_version,
            audio_spec=AudioSpec(
                format=audio.format,
                bitrate=audio.bitrate,
                sample_rate=audio.sample_rate,
                channels=audio.channels,
            ),
        )

    def _build_metadata(
        self,
        run: _RunState,
        result: Optional[PodcastResult],
        stitched: Optional[StitchedAudio],
    ) -> Dict[str, Any]:
        document = run.document
        script = run.script
        params = script.generation_params
        payload: Dict[str, Any] = {
            "id": script.id,
            "status": STATUS_COMPLETED if result else STATUS_FAILED,
            "source": {
                "title": document.title,
                "url": document.url,
                "fetched_at": document.fetched_at,
                "word_count": document.word_count,
            },
            "script": {
                "id": script.id,
                "generated_at": script.generated_at,
                "line_count": len(script.lines),
                "total_words": script.total_words,
                "estimated_duration": script.estimated_duration,
                "generation_params": params.to_dict() if params else None,
            },
            "audio": None,
            "pipeline": {
                "version": self.config.pipeline_version,
                "started_at": run.started_at,
                "completed_at": utc_now(),
                "stages": [stage.to_dict() for stage in run.stages],
            },
            "artifacts": {
                "script_path": str(run.script_path) if run.script_path else None,
                "segments_dir": str(self.store.segments_dir(script.id)),
                "audio_path": str(result.audio_path) if result else None,
                "metadata_path": str(self.store.metadata_path(script.id)),
            },
        }
        if result is not None:
            payload["audio"] = {
                "id": result.id,
                "created_at": result.created_at,
                "duration_seconds": result.duration_seconds,
                "measured_duration_seconds": stitched.duration_seconds,
                "file_size_bytes": result.file_size_bytes,
                "segment_count": len(run.segments),
                "voice_mapping": dict(result.voice_mapping),
                "spec": result.audio_spec.to_dict(),
            }
        return payload
