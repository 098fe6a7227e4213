"""Turn Wikipedia articles into short two-host podcast episodes."""

from .config import PipelineConfig
from .errors import PodcastError
from .events import StageEvent
from .pipeline import PodcastAgent
from .script_validator import validate_script

__all__ = ["PodcastAgent", "PipelineConfig", "PodcastError", "StageEvent", "validate_script"]
