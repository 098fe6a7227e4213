"""Error taxonomy for podcast generation.

Each error carries a stable ``code`` so an outer layer (HTTP handler, CLI)
can tell failure categories apart without parsing messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

INVALID_INPUT = "INVALID_INPUT"
ARTICLE_NOT_FOUND = "ARTICLE_NOT_FOUND"
ARTICLE_TOO_SHORT = "ARTICLE_TOO_SHORT"
UNSUPPORTED_LANGUAGE = "UNSUPPORTED_LANGUAGE"
GENERATION_FAILED = "GENERATION_FAILED"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
INTERNAL_ERROR = "INTERNAL_ERROR"


class PodcastError(Exception):
    code = INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class InvalidInputError(PodcastError):
    code = INVALID_INPUT


class ContentNotFoundError(PodcastError):
    code = ARTICLE_NOT_FOUND

    def __init__(self, identifier: str):
        super().__init__(
            f"Could not find a Wikipedia article matching '{identifier}'",
            {"identifier": identifier},
        )


class ContentTooShortError(PodcastError):
    code = ARTICLE_TOO_SHORT

    def __init__(self, length: int, minimum: int):
        super().__init__(
            f"Article too short: {length} characters (minimum: {minimum})",
            {"length": length, "minimum_required": minimum},
        )


class UnsupportedLanguageError(PodcastError):
    code = UNSUPPORTED_LANGUAGE

    def __init__(self, language: str):
        super().__init__(
            f"Language '{language}' is not supported. Only English Wikipedia articles are supported.",
            {"language": language, "supported": ["en"]},
        )


class GenerationError(PodcastError):
    code = GENERATION_FAILED
    stage = ""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        merged = {"stage": self.stage}
        merged.update(details or {})
        super().__init__(message, merged)


class ScriptGenerationError(GenerationError):
    stage = "script_generation"


class ScriptValidationError(ScriptGenerationError):
    """The generated dialogue broke a structural rule."""

    def __init__(self, rule: str, message: str, line_index: Optional[int] = None):
        details: Dict[str, Any] = {"rule": rule}
        if line_index is not None:
            details["line_index"] = line_index
        super().__init__(message, details)
        self.rule = rule
        self.line_index = line_index


class SpeechSynthesisError(GenerationError):
    stage = "speech_synthesis"

    def __init__(
        self,
        message: str,
        line_index: Optional[int] = None,
        attempts: Optional[int] = None,
    ):
        details: Dict[str, Any] = {}
        if line_index is not None:
            details["line_index"] = line_index
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(message, details)
        self.line_index = line_index
        self.attempts = attempts


class AudioStitchError(GenerationError):
    stage = "audio_stitch"


class ToolUnavailableError(AudioStitchError):
    def __init__(self, tool: str):
        super().__init__(
            f"{tool} is not available. Please install {tool} to process audio.",
            {"tool": tool},
        )
        self.tool = tool


class ServiceUnavailableError(PodcastError):
    code = SERVICE_UNAVAILABLE

    def __init__(self, service: str, reason: Optional[str] = None):
        message = f"{service} is temporarily unavailable. Please try again later."
        details: Dict[str, Any] = {"service": service}
        if reason:
            details["reason"] = reason
        super().__init__(message, details)
        self.service = service


class InternalError(PodcastError):
    code = INTERNAL_ERROR

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)


def to_error_response(exc: BaseException) -> Dict[str, Any]:
    """Map any exception onto the ``{"error", "message"}`` response shape."""
    if isinstance(exc, PodcastError):
        return exc.to_response()
    return InternalError(str(exc) or exc.__class__.__name__).to_response()
