from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from pydub.utils import mediainfo, which

from .config import AudioConfig
from .errors import AudioStitchError, ToolUnavailableError
from .storage import ArtifactStore
from .types import AudioSegment, StitchedAudio

logger = logging.getLogger(__name__)


def order_segments(segments: Iterable[AudioSegment]) -> List[AudioSegment]:
    return sorted(segments, key=lambda segment: segment.line_index)


def concat_line(path: Path) -> str:
    """One ffconcat entry, with single quotes escaped for the demuxer."""
    escaped = str(path).replace("\\", "\\\\").replace("'", "'\\''")
    return f"file '{escaped}'\n"


def write_concat_list(segments: Iterable[AudioSegment], list_path: Path) -> List[AudioSegment]:
    """Write the ffmpeg concat list in line order and return the ordered segments."""
    ordered = order_segments(segments)
    for segment in ordered:
        if not Path(segment.file_path).is_file():
            raise AudioStitchError(
                f"Audio stitching failed: missing segment for line {segment.line_index}: {segment.file_path}",
                {"line_index": segment.line_index},
            )
    list_path.parent.mkdir(parents=True, exist_ok=True)
    list_path.write_text("".join(concat_line(Path(s.file_path).resolve()) for s in ordered), encoding="utf-8")
    return ordered


def build_ffmpeg_command(ffmpeg: str, list_path: Path, output_path: Path, config: AudioConfig) -> List[str]:
    loudnorm = f"loudnorm=I={config.loudness_target:g}:TP={config.true_peak:g}:LRA={config.loudness_range:g}"
    return [
        ffmpeg,
        "-hide_banner",
        "-loglevel",
        "error",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(list_path),
        "-af",
        loudnorm,
        "-codec:a",
        config.codec,
        "-b:a",
        config.bitrate,
        "-ar",
        str(config.sample_rate),
        "-ac",
        str(config.channels),
        "-y",
        str(output_path),
    ]


class AudioStitcher:
    """Concatenate segments in line order, normalize loudness, and encode one mp3."""

    def __init__(self, config: AudioConfig, store: ArtifactStore):
        self.config = config
        self.store = store

    def is_available(self) -> bool:
        return self._resolve_tool() is not None

    def stitch(self, run_id: str, segments: Iterable[AudioSegment]) -> StitchedAudio:
        segments = list(segments)
        if not segments:
            raise AudioStitchError("No audio segments to stitch")

        ffmpeg = self._resolve_tool()
        if ffmpeg is None:
            raise ToolUnavailableError(self.config.ffmpeg_bin)

        logger.info("Stitching %s audio segments...", len(segments))
        output_path = self.store.audio_path(run_id, self.config.format)
        list_path = self.store.temp_dir / f"{run_id}_concat.txt"
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            write_concat_list(segments, list_path)
            self._run(build_ffmpeg_command(ffmpeg, list_path, output_path, self.config))
            duration = self._probe_duration(output_path)
            size = output_path.stat().st_size
        except AudioStitchError:
            self._discard_output(output_path)
            raise
        except OSError as exc:
            self._discard_output(output_path)
            raise AudioStitchError(f"Audio stitching failed: {exc}") from exc
        finally:
            self._cleanup(list_path)

        logger.info("Audio stitched successfully: %s (%.2fs, %.2fMB)", output_path, duration, size / 1024 / 1024)
        return StitchedAudio(file_path=output_path, duration_seconds=duration, file_size_bytes=size)

    def _resolve_tool(self) -> Optional[str]:
        return which(self.config.ffmpeg_bin)

    def _run(self, command: List[str]) -> None:
        logger.debug("Running ffmpeg: %s", " ".join(command))
        proc = subprocess.run(command, capture_output=True, text=True, check=False)
        stderr = proc.stderr or ""
        if proc.returncode != 0 or "error" in stderr.lower():
            logger.error("ffmpeg failed (exit %s): %s", proc.returncode, stderr[-1000:])
            raise AudioStitchError(
                "Audio stitching failed: FFmpeg encountered an error during processing",
                {"returncode": proc.returncode, "stderr": stderr[-1000:]},
            )

    def _probe_duration(self, path: Path) -> float:
        info = mediainfo(str(path))
        try:
            return float(info["duration"])
        except (KeyError, TypeError, ValueError):
            raise AudioStitchError(f"Audio stitching failed: could not read duration of {path}") from None

    def _discard_output(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Failed to remove partial output %s: %s", path, exc)

    def _cleanup(self, list_path: Path) -> None:
        try:
            list_path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Failed to clean up temp files: %s", exc)
