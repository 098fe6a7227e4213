from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import requests
from openai import OpenAI

from .config import TTSConfig
from .errors import SpeechSynthesisError
from .speakers import VALID_SPEAKERS, get_speaker
from .storage import ArtifactStore
from .types import AudioSegment, ScriptLine, utc_now

logger = logging.getLogger(__name__)


class BaseTTS:
    def voice_for(self, speaker: str) -> str:
        raise NotImplementedError

    def synthesize(self, text: str, voice: str) -> bytes:
        raise NotImplementedError

    def voice_mapping(self) -> Dict[str, str]:
        return {speaker: self.voice_for(speaker) for speaker in VALID_SPEAKERS}


class ElevenLabsTTS(BaseTTS):
    """Use ElevenLabs' text-to-speech REST API with the fixed speaker voices."""

    def __init__(self, config: TTSConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.base_url = (config.api_base or "https://api.elevenlabs.io/v1").rstrip("/")
        self.api_key = os.getenv(config.api_key_env or "ELEVENLABS_API_KEY", "")
        if not self.api_key:
            logger.warning("ElevenLabs API key not set; synthesis requests will be rejected.")

    def voice_for(self, speaker: str) -> str:
        return get_speaker(speaker).voice_id

    def synthesize(self, text: str, voice: str) -> bytes:
        response = self.session.post(
            f"{self.base_url}/text-to-speech/{voice}",
            headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
            json={
                "text": text,
                "model_id": self.config.model,
                "voice_settings": {
                    "stability": self.config.stability,
                    "similarity_boost": self.config.similarity_boost,
                    "style": self.config.style,
                    "use_speaker_boost": self.config.use_speaker_boost,
                },
            },
            timeout=self.config.timeout,
        )
        if response.status_code >= 400:
            raise RuntimeError(f"ElevenLabs API error (HTTP {response.status_code}): {response.text}")
        return response.content


class OpenAITTS(BaseTTS):
    """Use OpenAI's TTS models, one built-in voice per speaker."""

    def __init__(self, config: TTSConfig, client: Optional[OpenAI] = None):
        self.config = config
        if client is not None and config.api_base:
            logger.warning("Ignoring provided OpenAI client because custom api_base was supplied.")
            client = None
        self._client = client
        if config.api_key_env and not os.getenv(config.api_key_env):
            logger.warning("%s not set; synthesis requests will be rejected.", config.api_key_env)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            kwargs = {}
            if self.config.api_base:
                kwargs["base_url"] = self.config.api_base
            if self.config.api_key_env:
                api_key = os.getenv(self.config.api_key_env)
                if api_key:
                    kwargs["api_key"] = api_key
            self._client = OpenAI(**kwargs)
        return self._client

    def voice_for(self, speaker: str) -> str:
        get_speaker(speaker)
        return self.config.openai_voices[speaker]

    def synthesize(self, text: str, voice: str) -> bytes:
        response = self.client.audio.speech.create(
            model=self.config.model,
            voice=voice,
            input=text,
            response_format=self.config.format,
        )
        return response.content


class SpeechSynthesizer:
    """Render every script line to its own audio file.

    A batch either yields one segment per line or raises; files from a
    failed batch are removed.
    """

    def __init__(
        self,
        config: TTSConfig,
        backend: BaseTTS,
        store: ArtifactStore,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.backend = backend
        self.store = store
        self._sleep = sleep

    def voice_mapping(self) -> Dict[str, str]:
        return self.backend.voice_mapping()

    def synthesize(self, run_id: str, lines: Sequence[ScriptLine]) -> List[AudioSegment]:
        self.store.segments_dir(run_id).mkdir(parents=True, exist_ok=True)
        written: List[Path] = []
        try:
            if self.config.max_workers > 1:
                segments = self._synthesize_pooled(run_id, lines, written)
            else:
                segments = [self._synthesize_line(run_id, line, written) for line in lines]
        except SpeechSynthesisError:
            self._discard(written)
            raise
        logger.info("Successfully generated %s audio segments", len(segments))
        return segments

    def synthesize_with_retry(
        self,
        run_id: str,
        lines: Sequence[ScriptLine],
        max_retries: Optional[int] = None,
    ) -> List[AudioSegment]:
        """Retry the whole batch with exponential backoff (1s, 2s, 4s, ...)."""
        max_retries = self.config.max_retries if max_retries is None else max_retries
        last_error: Optional[Exception] = None
        for attempt in range(max_retries + 1):
            try:
                return self.synthesize(run_id, lines)
            except Exception as exc:  # any failure restarts the full batch
                last_error = exc
                if attempt < max_retries:
                    delay = (2 ** attempt) * self.config.retry_base_delay
                    logger.warning(
                        "TTS generation failed (attempt %s), retrying in %.0fms: %s",
                        attempt + 1,
                        delay * 1000,
                        exc,
                    )
                    self._sleep(delay)

        attempts = max_retries + 1
        raise SpeechSynthesisError(
            f"TTS generation failed after {attempts} attempts: {last_error}",
            line_index=getattr(last_error, "line_index", None),
            attempts=attempts,
        ) from last_error

    def _synthesize_pooled(
        self, run_id: str, lines: Sequence[ScriptLine], written: List[Path]
    ) -> List[AudioSegment]:
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            futures = [(line.index, pool.submit(self._synthesize_line, run_id, line, written)) for line in lines]
            results: Dict[int, AudioSegment] = {}
            failures: Dict[int, SpeechSynthesisError] = {}
            for index, future in futures:
                try:
                    results[index] = future.result()
                except SpeechSynthesisError as exc:
                    failures[index] = exc
        if failures:
            raise failures[min(failures)]
        return [results[line.index] for line in lines]

    def _synthesize_line(self, run_id: str, line: ScriptLine, written: List[Path]) -> AudioSegment:
        logger.debug("Synthesizing line %s (%s): %s", line.index, line.speaker, line.text[:50])
        try:
            voice = self.backend.voice_for(line.speaker)
            audio = self.backend.synthesize(line.text, voice)
            path = self.store.segment_path(run_id, line.index, self.config.format)
            written.append(path)
            path.write_bytes(audio)
        except Exception as exc:  # broad to include network and filesystem errors
            raise SpeechSynthesisError(
                f"Failed to synthesize line {line.index}: {exc}", line_index=line.index
            ) from exc
        return AudioSegment(
            line_index=line.index,
            speaker=line.speaker,
            voice=voice,
            file_path=path,
            duration_ms=self.estimate_duration_ms(len(audio)),
            created_at=utc_now(),
            format=self.config.format,
        )

    def estimate_duration_ms(self, size_bytes: int) -> int:
        return round(size_bytes / self.config.assumed_bytes_per_second * 1000)

    def _discard(self, paths: List[Path]) -> None:
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove partial segment %s: %s", path, exc)


def build_tts(config: TTSConfig, client: Optional[OpenAI] = None) -> BaseTTS:
    provider = (config.provider or "elevenlabs").lower()
    if provider == "elevenlabs":
        return ElevenLabsTTS(config=config)
    if provider == "openai":
        return OpenAITTS(config=config, client=client)
    raise ValueError(f"Unsupported TTS provider: {config.provider}")
