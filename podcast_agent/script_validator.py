"""Structural validation for generated podcast scripts.

Rules are checked in a fixed order and the first violation is raised:

1. at least ``MIN_LINES`` lines
2. every section tag present
3. only the two known speakers
4. section tags never move backwards
5. at most ``MAX_CONSECUTIVE_LINES`` lines in a row by one speaker

A passing batch of lines becomes a :class:`Script`.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .errors import ScriptValidationError
from .speakers import VALID_SPEAKERS
from .types import SECTIONS_ORDER, GenerationParams, Script, ScriptLine

logger = logging.getLogger(__name__)

MIN_LINES = 10
MAX_CONSECUTIVE_LINES = 5
WORDS_PER_MINUTE = 150
TARGET_DURATION_MIN = 120
TARGET_DURATION_MAX = 180

RULE_MIN_LENGTH = "min_length"
RULE_MISSING_SECTION = "missing_section"
RULE_INVALID_SPEAKER = "invalid_speaker"
RULE_SECTION_ORDER = "section_order"
RULE_SPEAKER_RUN = "speaker_run"


def validate_script(
    lines: Sequence[ScriptLine],
    *,
    title: str = "",
    url: str = "",
    generation_params: Optional[GenerationParams] = None,
    script_id: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> Script:
    """Check ``lines`` against the structural rules and build a Script."""
    lines = list(lines)
    _check_length(lines)
    _check_sections_present(lines)
    _check_speakers(lines)
    _check_section_order(lines)
    _check_speaker_runs(lines)

    total_words = count_words(lines)
    estimated_duration = estimate_duration(total_words)
    if not TARGET_DURATION_MIN <= estimated_duration <= TARGET_DURATION_MAX:
        logger.warning(
            "Script duration %ss outside target range (%s-%ss). Word count: %s",
            estimated_duration,
            TARGET_DURATION_MIN,
            TARGET_DURATION_MAX,
            total_words,
        )

    generated_at = generated_at or datetime.now(timezone.utc)
    return Script(
        id=script_id or generate_script_id(title, generated_at),
        title=title,
        url=url,
        lines=lines,
        sections=build_section_index(lines),
        total_words=total_words,
        estimated_duration=estimated_duration,
        generated_at=generated_at.isoformat(),
        generation_params=generation_params,
    )


def _check_length(lines: List[ScriptLine]) -> None:
    if len(lines) < MIN_LINES:
        raise ScriptValidationError(
            RULE_MIN_LENGTH,
            f"Script too short: must have at least {MIN_LINES} lines (got {len(lines)})",
        )


def _check_sections_present(lines: List[ScriptLine]) -> None:
    present = {line.section for line in lines}
    for section in SECTIONS_ORDER:
        if section not in present:
            raise ScriptValidationError(RULE_MISSING_SECTION, f"Missing required section: {section}")


def _check_speakers(lines: List[ScriptLine]) -> None:
    for line in lines:
        if line.speaker not in VALID_SPEAKERS:
            raise ScriptValidationError(
                RULE_INVALID_SPEAKER,
                f"Invalid speaker: {line.speaker}. Only {' and '.join(VALID_SPEAKERS)} are allowed.",
                line.index,
            )


def _check_section_order(lines: List[ScriptLine]) -> None:
    previous = -1
    for line in lines:
        # A tag outside the enumeration has no position to compare.
        if line.section not in SECTIONS_ORDER:
            raise ScriptValidationError(
                RULE_SECTION_ORDER,
                f"Sections out of order at line {line.index}: unknown section '{line.section}'",
                line.index,
            )
        position = SECTIONS_ORDER.index(line.section)
        if position < previous:
            raise ScriptValidationError(
                RULE_SECTION_ORDER,
                f"Sections out of order at line {line.index}",
                line.index,
            )
        previous = position


def _check_speaker_runs(lines: List[ScriptLine]) -> None:
    run_start = 0
    for position in range(1, len(lines)):
        if lines[position].speaker != lines[run_start].speaker:
            run_start = position
            continue
        if position - run_start + 1 > MAX_CONSECUTIVE_LINES:
            start_line = lines[run_start]
            raise ScriptValidationError(
                RULE_SPEAKER_RUN,
                f"Too many consecutive lines by {start_line.speaker}: run starting at line "
                f"{start_line.index} exceeds {MAX_CONSECUTIVE_LINES} lines at line {lines[position].index}",
                start_line.index,
            )


def count_words(lines: Sequence[ScriptLine]) -> int:
    return sum(len(line.text.split()) for line in lines)


def estimate_duration(total_words: int) -> int:
    """Seconds of speech at a fixed 150 words per minute."""
    return round(total_words / WORDS_PER_MINUTE * 60)


def build_section_index(lines: Sequence[ScriptLine]) -> Dict[str, List[int]]:
    sections: Dict[str, List[int]] = {name: [] for name in SECTIONS_ORDER}
    for line in lines:
        sections.setdefault(line.section, []).append(line.index)
    return sections


def sanitize_filename(value: str) -> str:
    value = re.sub(r"\s+", "_", value.strip().lower())
    return re.sub(r"[^a-z0-9_-]", "", value)[:50]


def generate_script_id(title: str, timestamp: Optional[datetime] = None) -> str:
    """Build ``<sanitized title>_<YYYYMMDD>_<HHMMSS>``."""
    timestamp = timestamp or datetime.now(timezone.utc)
    return f"{sanitize_filename(title) or 'podcast'}_{timestamp.strftime('%Y%m%d_%H%M%S')}"
