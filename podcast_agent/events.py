from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from .types import (
    STAGE_AUDIO_STITCH,
    STAGE_CONTENT_FETCH,
    STAGE_SCRIPT_GENERATION,
    STAGE_SPEECH_SYNTHESIS,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    PipelineStage,
)

logger = logging.getLogger(__name__)

STAGE_MESSAGES: Dict[str, Dict[str, str]] = {
    STAGE_CONTENT_FETCH: {
        STATUS_IN_PROGRESS: "Fetching Wikipedia article...",
        STATUS_COMPLETED: "Article fetched successfully",
        STATUS_FAILED: "Failed to fetch article",
    },
    STAGE_SCRIPT_GENERATION: {
        STATUS_IN_PROGRESS: "Writing script...",
        STATUS_COMPLETED: "Script generated",
        STATUS_FAILED: "Failed to generate script",
    },
    STAGE_SPEECH_SYNTHESIS: {
        STATUS_IN_PROGRESS: "Generating voices...",
        STATUS_COMPLETED: "Audio synthesized",
        STATUS_FAILED: "Failed to synthesize audio",
    },
    STAGE_AUDIO_STITCH: {
        STATUS_IN_PROGRESS: "Finalizing podcast...",
        STATUS_COMPLETED: "Podcast complete",
        STATUS_FAILED: "Failed to finalize podcast",
    },
}


def stage_message(stage: str, status: str) -> str:
    return STAGE_MESSAGES.get(stage, {}).get(status, f"{status}: {stage}")


@dataclass(frozen=True)
class StageEvent:
    """A single stage transition, as seen by progress listeners."""

    stage: str
    status: str
    message: str
    error: Optional[str] = None

    @classmethod
    def from_stage(cls, stage: PipelineStage) -> "StageEvent":
        return cls(
            stage=stage.name,
            status=stage.status,
            message=stage_message(stage.name, stage.status),
            error=stage.error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ProgressListener = Callable[[StageEvent], None]


class ProgressBus:
    """Fan stage transitions out to any number of listeners.

    A listener that raises is logged and skipped; it cannot abort a run.
    """

    def __init__(self) -> None:
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: StageEvent, extra: Optional[ProgressListener] = None) -> None:
        listeners = list(self._listeners)
        if extra is not None:
            listeners.append(extra)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Progress listener failed for %s/%s", event.stage, event.status)
