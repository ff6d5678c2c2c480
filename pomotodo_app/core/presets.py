from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PhaseType = Literal["work", "short_break", "long_break"]

PHASE_WORK = "work"
PHASE_SHORT_BREAK = "short_break"
PHASE_LONG_BREAK = "long_break"
PHASE_TYPES: frozenset[str] = frozenset({PHASE_WORK, PHASE_SHORT_BREAK, PHASE_LONG_BREAK})

WORKS_PER_CYCLE = 4
LONG_BREAK_MINUTES = 20
DEFAULT_PRESET_KEY = "25_5"


@dataclass(frozen=True)
class Preset:
    key: str
    work_minutes: int
    short_break_minutes: int


PRESETS: dict[str, Preset] = {
    "25_5": Preset(key="25_5", work_minutes=25, short_break_minutes=5),
    "30_5": Preset(key="30_5", work_minutes=30, short_break_minutes=5),
    "45_10": Preset(key="45_10", work_minutes=45, short_break_minutes=10),
    "60_10": Preset(key="60_10", work_minutes=60, short_break_minutes=10),
}


def is_known_preset(key: object) -> bool:
    return isinstance(key, str) and key in PRESETS


def get_preset(key: str | None) -> Preset:
    if key is not None and key in PRESETS:
        return PRESETS[key]
    return PRESETS[DEFAULT_PRESET_KEY]


def planned_seconds_for(phase_type: str, preset_key: str | None) -> int:
    preset = get_preset(preset_key)
    if phase_type == PHASE_WORK:
        return preset.work_minutes * 60
    if phase_type == PHASE_SHORT_BREAK:
        return preset.short_break_minutes * 60
    return LONG_BREAK_MINUTES * 60
