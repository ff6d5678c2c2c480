"""Active phase variants and their storage contract.

Exactly one of ``ReadyPhase``, ``RunningPhase`` or ``PausedPhase`` is the
current phase at any time, or ``None`` when the timer is idle. Values are
frozen; transitions in ``pomotodo_app.core.rules`` return new ones.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Union

from pomotodo_app.core.presets import (
    PHASE_LONG_BREAK,
    PHASE_TYPES,
    WORKS_PER_CYCLE,
    is_known_preset,
)

STATUS_READY = "ready"
STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_IDLE = "idle"

# 3000-01-01T00:00:00Z; keeps every derived timestamp within datetime range.
MAX_EPOCH_MS = 32_503_680_000_000
MAX_PLANNED_SECONDS = 24 * 3600


class InvalidActiveState(ValueError):
    """Raised when a stored active phase does not satisfy the storage contract."""


@dataclass(frozen=True)
class ReadyPhase:
    preset_key: str
    cycle_number: int
    work_index: int | None
    phase_type: str
    planned_seconds: int

    status = STATUS_READY

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status
        return payload


@dataclass(frozen=True)
class RunningPhase:
    preset_key: str
    cycle_number: int
    work_index: int | None
    phase_type: str
    planned_seconds: int
    started_at_ms: int
    ends_at_ms: int
    phase_id: str
    paused_total_ms: int = 0

    status = STATUS_RUNNING

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status
        return payload


@dataclass(frozen=True)
class PausedPhase:
    preset_key: str
    cycle_number: int
    work_index: int | None
    phase_type: str
    planned_seconds: int
    started_at_ms: int
    ends_at_ms: int
    phase_id: str
    paused_total_ms: int
    paused_remaining_ms: int
    paused_at_ms: int | None = None

    status = STATUS_PAUSED

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status
        return payload


ActiveState = Union[ReadyPhase, RunningPhase, PausedPhase]


def status_of(state: ActiveState | None) -> str:
    if state is None:
        return STATUS_IDLE
    return state.status


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_number(
    payload: dict,
    key: str,
    minimum: float | None = None,
    maximum: float | None = None,
) -> int:
    value = payload.get(key)
    if not _is_number(value):
        raise InvalidActiveState(f"{key} must be a finite number")
    if minimum is not None and value < minimum:
        raise InvalidActiveState(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidActiveState(f"{key} must be <= {maximum}")
    return int(value)


def active_state_from_dict(payload: Any) -> ActiveState:
    if not isinstance(payload, dict):
        raise InvalidActiveState("active state must be an object")

    status = payload.get("status")
    if status not in {STATUS_READY, STATUS_RUNNING, STATUS_PAUSED}:
        raise InvalidActiveState(f"unknown status {status!r}")
    preset_key = payload.get("preset_key")
    if not is_known_preset(preset_key):
        raise InvalidActiveState(f"unknown preset {preset_key!r}")
    phase_type = payload.get("phase_type")
    if phase_type not in PHASE_TYPES:
        raise InvalidActiveState(f"unknown phase type {phase_type!r}")

    cycle_number = _require_number(payload, "cycle_number", minimum=1)
    planned_seconds = _require_number(payload, "planned_seconds", minimum=0, maximum=MAX_PLANNED_SECONDS)

    work_index: int | None
    if phase_type == PHASE_LONG_BREAK:
        work_index = None
    else:
        raw_index = payload.get("work_index")
        if not _is_number(raw_index) or not 1 <= raw_index <= WORKS_PER_CYCLE:
            raise InvalidActiveState(f"work_index must be within 1..{WORKS_PER_CYCLE}")
        work_index = int(raw_index)

    if status == STATUS_READY:
        return ReadyPhase(
            preset_key=preset_key,
            cycle_number=cycle_number,
            work_index=work_index,
            phase_type=phase_type,
            planned_seconds=planned_seconds,
        )

    started_at_ms = _require_number(payload, "started_at_ms", minimum=0, maximum=MAX_EPOCH_MS)
    ends_at_ms = _require_number(payload, "ends_at_ms", minimum=started_at_ms, maximum=MAX_EPOCH_MS)
    paused_total_ms = _require_number(payload, "paused_total_ms", minimum=0, maximum=MAX_EPOCH_MS)
    phase_id = payload.get("phase_id")
    if not isinstance(phase_id, str) or len(phase_id) < 5:
        raise InvalidActiveState("phase_id must be a string of at least 5 characters")

    if status == STATUS_RUNNING:
        return RunningPhase(
            preset_key=preset_key,
            cycle_number=cycle_number,
            work_index=work_index,
            phase_type=phase_type,
            planned_seconds=planned_seconds,
            started_at_ms=started_at_ms,
            ends_at_ms=ends_at_ms,
            phase_id=phase_id,
            paused_total_ms=paused_total_ms,
        )

    paused_remaining_ms = _require_number(
        payload, "paused_remaining_ms", minimum=0, maximum=MAX_PLANNED_SECONDS * 1000
    )
    # Without a pause instant, resume counts no extra paused time.
    paused_at_ms: int | None = None
    if _is_number(payload.get("paused_at_ms")):
        paused_at_ms = _require_number(payload, "paused_at_ms", minimum=started_at_ms, maximum=MAX_EPOCH_MS)
    return PausedPhase(
        preset_key=preset_key,
        cycle_number=cycle_number,
        work_index=work_index,
        phase_type=phase_type,
        planned_seconds=planned_seconds,
        started_at_ms=started_at_ms,
        ends_at_ms=ends_at_ms,
        phase_id=phase_id,
        paused_total_ms=paused_total_ms,
        paused_at_ms=paused_at_ms,
        paused_remaining_ms=paused_remaining_ms,
    )
