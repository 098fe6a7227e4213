from __future__ import annotations

import json
import logging
import os
import re
import time
from typing import Any, Callable, List, Optional

from openai import APIConnectionError, APIError, OpenAI, OpenAIError

from .config import ScriptConfig
from .errors import ScriptGenerationError, ServiceUnavailableError
from .prompts import PROMPT_VERSION, SYSTEM_PROMPT, build_user_prompt
from .script_validator import validate_script
from .types import MAX_LINE_LENGTH, GenerationParams, Script, ScriptLine, SourceDocument

logger = logging.getLogger(__name__)

SERVICE_NAME = "Script generation service"
_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def parse_script_response(content: str) -> List[ScriptLine]:
    """Turn the model's JSON answer into numbered ScriptLines."""
    match = _CODE_FENCE.search(content)
    payload = match.group(1) if match else content
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ScriptGenerationError(f"Failed to parse model response as JSON: {exc}") from exc

    raw_lines = data.get("lines") if isinstance(data, dict) else None
    if not isinstance(raw_lines, list):
        raise ScriptGenerationError("Malformed model response: expected an object with a 'lines' list")

    lines: List[ScriptLine] = []
    for position, raw in enumerate(raw_lines, start=1):
        lines.append(_parse_line(position, raw))
    return lines


def _parse_line(position: int, raw: Any) -> ScriptLine:
    if not isinstance(raw, dict):
        raise ScriptGenerationError(f"Malformed model response: line {position} is not an object")
    missing = [key for key in ("speaker", "text", "section") if not isinstance(raw.get(key), str)]
    if missing:
        raise ScriptGenerationError(
            f"Malformed model response: line {position} is missing {', '.join(missing)}",
            {"line_index": position},
        )
    text = raw["text"].strip()
    if not text:
        raise ScriptGenerationError(f"Malformed model response: line {position} has no text", {"line_index": position})
    if len(text) > MAX_LINE_LENGTH:
        raise ScriptGenerationError(
            f"Line {position} exceeds {MAX_LINE_LENGTH} characters",
            {"line_index": position, "length": len(text)},
        )
    if raw.get("index") not in (None, position):
        logger.debug("Renumbering line %s reported by the model as %s", position, raw.get("index"))
    return ScriptLine(
        index=position,
        speaker=raw["speaker"].strip(),
        text=text,
        section=raw["section"].strip().lower(),
    )


class BaseScriptGenerator:
    def generate(self, document: SourceDocument) -> Script:
        raise NotImplementedError


class OpenAIScriptGenerator(BaseScriptGenerator):
    """Write scripts with an OpenAI-compatible chat completions API (xAI Grok by default)."""

    def __init__(
        self,
        config: ScriptConfig,
        client: Optional[OpenAI] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._client = client
        self._sleep = sleep

    @property
    def client(self) -> OpenAI:
        # Built on first use so a missing key only fails the calls that need it.
        if self._client is None:
            kwargs = {}
            if self.config.api_base:
                kwargs["base_url"] = self.config.api_base
            if self.config.api_key_env:
                api_key = os.getenv(self.config.api_key_env)
                if not api_key:
                    logger.warning("%s not set; script generation requests will be rejected.", self.config.api_key_env)
                if api_key:
                    kwargs["api_key"] = api_key
            try:
                self._client = OpenAI(**kwargs)
            except OpenAIError as exc:
                raise ServiceUnavailableError(SERVICE_NAME, str(exc)) from exc
        return self._client

    @property
    def generation_params(self) -> GenerationParams:
        return GenerationParams(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            top_p=self.config.top_p,
            prompt_version=PROMPT_VERSION,
        )

    def generate(self, document: SourceDocument) -> Script:
        content = self._complete(document)
        lines = parse_script_response(content)
        logger.info("Model returned %s lines for '%s'", len(lines), document.title)
        return validate_script(
            lines,
            title=document.title,
            url=document.url,
            generation_params=self.generation_params,
        )

    def _complete(self, document: SourceDocument) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(document.title, document.text)},
        ]
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.config.model,
                    messages=messages,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    top_p=self.config.top_p,
                )
            except APIConnectionError as exc:
                logger.warning("Script generation attempt %s failed: %s", attempt, exc)
                if attempt >= self.config.max_attempts:
                    raise ServiceUnavailableError(SERVICE_NAME, str(exc)) from exc
                self._sleep(self.config.retry_delay)
                continue
            except APIError as exc:
                raise ScriptGenerationError(f"Language model error: {exc}") from exc

            if not response.choices or not response.choices[0].message.content:
                raise ScriptGenerationError("No response from language model")
            return response.choices[0].message.content
        raise RuntimeError("Unreachable script generation retry loop")


def build_script_generator(config: ScriptConfig, client: Optional[OpenAI] = None) -> BaseScriptGenerator:
    return OpenAIScriptGenerator(config=config, client=client)
