from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


@dataclass
class SourceConfig:
    """Configuration for the Wikipedia content source."""

    api_base: str = "https://en.wikipedia.org/api/rest_v1"
    user_agent: str = "WikipediaPodcastGenerator/1.0"
    timeout: float = 30.0
    min_content_length: int = 500
    max_content_length: int = 50000


@dataclass
class ScriptConfig:
    """Configuration for script generation through an OpenAI-compatible chat API."""

    model: str = "grok-3"
    temperature: float = 0.0
    max_tokens: int = 4096
    top_p: float = 1.0
    max_attempts: int = 3
    retry_delay: float = 3.0
    api_base: Optional[str] = "https://api.x.ai/v1"
    api_key_env: Optional[str] = "XAI_API_KEY"


@dataclass
class TTSConfig:
    """Configuration for text-to-speech synthesis."""

    provider: str = "elevenlabs"
    model: str = "eleven_multilingual_v2"
    format: str = "mp3"
    api_base: Optional[str] = "https://api.elevenlabs.io/v1"
    api_key_env: Optional[str] = "ELEVENLABS_API_KEY"
    timeout: float = 60.0
    stability: float = 0.75
    similarity_boost: float = 0.75
    style: float = 0.0
    use_speaker_boost: bool = True
    # Used only by the OpenAI provider, keyed by speaker name.
    openai_voices: Dict[str, str] = field(default_factory=lambda: {"Nishi": "nova", "Shyam": "onyx"})
    max_retries: int = 2
    retry_base_delay: float = 1.0
    max_workers: int = 1
    assumed_bytes_per_second: int = 16000  # 128 kbps


@dataclass
class AudioConfig:
    """Configuration for the ffmpeg stitching step."""

    ffmpeg_bin: str = "ffmpeg"
    loudness_target: float = -16.0
    true_peak: float = -1.5
    loudness_range: float = 11.0
    codec: str = "libmp3lame"
    bitrate: str = "128k"
    sample_rate: int = 44100
    channels: int = 1
    format: str = "mp3"


@dataclass
class PipelineConfig:
    """Top level configuration for the podcast agent."""

    source: SourceConfig = field(default_factory=SourceConfig)
    script: ScriptConfig = field(default_factory=ScriptConfig)
    tts: TTSConfig = field(default_factory=TTSConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    output_root: Path = Path("output")
    pipeline_version: str = "1.0.0"
    keep_segments: bool = True

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        config = cls(output_root=Path(os.getenv("OUTPUT_DIR", "output")))
        provider = os.getenv("PODCAST_TTS_PROVIDER")
        if provider:
            config.tts.provider = provider
            if provider.lower() == "openai":
                config.tts.model = "gpt-4o-mini-tts"
                config.tts.api_base = None
                config.tts.api_key_env = "OPENAI_API_KEY"
        model = os.getenv("PODCAST_SCRIPT_MODEL")
        if model:
            config.script.model = model
        workers = os.getenv("PODCAST_TTS_WORKERS")
        if workers:
            config.tts.max_workers = max(1, int(workers))
        return config

    def missing_api_keys(self) -> List[str]:
        missing = []
        for env_name in (self.script.api_key_env, self.tts.api_key_env):
            if env_name and not os.getenv(env_name) and env_name not in missing:
                missing.append(env_name)
        return missing
