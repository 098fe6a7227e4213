"""On-disk layout for generated artifacts, keyed by run id.

    <root>/scripts/<id>.json
    <root>/audio/<id>.mp3
    <root>/audio/segments/<id>/NNN.mp3
    <root>/metadata/<id>.json
    <root>/temp/
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from .types import AudioSpec, PodcastResult, Script

logger = logging.getLogger(__name__)


class ArtifactStore:
    def __init__(self, output_root: Path):
        self.root = Path(output_root).resolve()

    @property
    def scripts_dir(self) -> Path:
        return self.root / "scripts"

    @property
    def audio_dir(self) -> Path:
        return self.root / "audio"

    @property
    def metadata_dir(self) -> Path:
        return self.root / "metadata"

    @property
    def temp_dir(self) -> Path:
        return self.root / "temp"

    def ensure_dirs(self) -> None:
        for directory in (self.scripts_dir, self.audio_dir / "segments", self.metadata_dir, self.temp_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def script_path(self, run_id: str) -> Path:
        return self.scripts_dir / f"{run_id}.json"

    def audio_path(self, run_id: str, audio_format: str = "mp3") -> Path:
        return self.audio_dir / f"{run_id}.{audio_format}"

    def segments_dir(self, run_id: str) -> Path:
        return self.audio_dir / "segments" / run_id

    def segment_path(self, run_id: str, index: int, audio_format: str = "mp3") -> Path:
        return self.segments_dir(run_id) / f"{index:03d}.{audio_format}"

    def metadata_path(self, run_id: str) -> Path:
        return self.metadata_dir / f"{run_id}.json"

    def save_script(self, script: Script) -> Path:
        return self._write_json(self.script_path(script.id), script.to_dict())

    def load_script(self, run_id: str) -> Optional[Script]:
        data = self._read_json(self.script_path(run_id))
        return Script.from_dict(data) if data is not None else None

    def save_metadata(self, run_id: str, metadata: Dict[str, Any]) -> Path:
        return self._write_json(self.metadata_path(run_id), metadata)

    def load_metadata(self, run_id: str) -> Optional[Dict[str, Any]]:
        return self._read_json(self.metadata_path(run_id))

    def load_result(self, run_id: str) -> Optional[PodcastResult]:
        """Rebuild a finished podcast from its metadata record.

        Returns None for unknown ids and for runs that never produced audio.
        """
        metadata = self.load_metadata(run_id)
        if not metadata or not metadata.get("audio"):
            return None
        audio = metadata["audio"]
        artifacts = metadata["artifacts"]
        audio_path = Path(artifacts["audio_path"])
        return PodcastResult(
            id=metadata["id"],
            script_id=metadata["script"]["id"],
            title=metadata["source"]["title"],
            url=metadata["source"]["url"],
            audio_path=audio_path,
            script_path=Path(artifacts["script_path"]),
            metadata_path=self.metadata_path(run_id),
            duration_seconds=audio["duration_seconds"],
            file_size_bytes=audio_path.stat().st_size if audio_path.exists() else audio.get("file_size_bytes", 0),
            voice_mapping=dict(audio["voice_mapping"]),
            speakers=list(audio["voice_mapping"]),
            created_at=audio["created_at"],
            pipeline_version=metadata["pipeline"]["version"],
            audio_spec=AudioSpec(**audio["spec"]) if audio.get("spec") else AudioSpec(),
        )

    def list_runs(self) -> List[str]:
        if not self.audio_dir.exists():
            return []
        return sorted(path.stem for path in self.audio_dir.glob("*.mp3"))

    def cleanup_segments(self, run_id: str) -> None:
        directory = self.segments_dir(run_id)
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Failed to remove segment directory %s: %s", directory, exc)

    def check_writable(self) -> bool:
        try:
            self.ensure_dirs()
            probe = self.temp_dir / ".write_check"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
        except OSError as exc:
            logger.error("Output directory %s is not writable: %s", self.root, exc)
            return False
        return True

    def _write_json(self, path: Path, payload: Dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def _read_json(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))
