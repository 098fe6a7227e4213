"""The two fixed podcast hosts and their ElevenLabs voices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Speaker:
    name: str
    voice_id: str
    display_name: str


SPEAKERS: Dict[str, Speaker] = {
    "Nishi": Speaker(name="Nishi", voice_id="7wlfJf72PCt9FjPj0Beg", display_name="Nishi"),
    "Shyam": Speaker(name="Shyam", voice_id="QZlSvAAnrDxLbn7n3NqM", display_name="Shyam"),
}

VALID_SPEAKERS = tuple(SPEAKERS)


def get_speaker(name: str) -> Speaker:
    try:
        return SPEAKERS[name]
    except KeyError:
        raise ValueError(f"Unknown speaker: {name}") from None
