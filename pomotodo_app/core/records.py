from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

DEFAULT_WORK_DESCRIPTION = "working...."


def new_phase_id() -> str:
    return uuid4().hex


def iso_from_ms(epoch_ms: int | float) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc).isoformat(timespec="milliseconds")


def parse_iso(ts: str) -> datetime | None:
    if not isinstance(ts, str) or not ts:
        return None
    try:
        parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SessionRecord:
    id: str
    preset_key: str
    cycle_number: int
    work_index: int | None
    type: str
    description: str
    planned_seconds: int
    actual_seconds: int
    paused_seconds: int
    started_at: str
    ended_at: str
    created_at: str

    @property
    def is_work(self) -> bool:
        return self.type == "work"

    def with_description(self, text: str) -> "SessionRecord":
        return replace(self, description=text)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Any) -> "SessionRecord":
        if not isinstance(payload, dict):
            raise ValueError("session record must be an object")
        record_id = str(payload.get("id", "") or "").strip()
        record_type = str(payload.get("type", "") or "")
        if not record_id or not record_type:
            raise ValueError("session record requires id and type")
        work_index = payload.get("work_index")
        return cls(
            id=record_id,
            preset_key=str(payload.get("preset_key", "")),
            cycle_number=_whole(payload.get("cycle_number", 1)),
            work_index=None if work_index is None else _whole(work_index),
            type=record_type,
            description=str(payload.get("description", "") or ""),
            planned_seconds=_whole(payload.get("planned_seconds", 0)),
            actual_seconds=max(0, _whole(payload.get("actual_seconds", 0))),
            paused_seconds=max(0, _whole(payload.get("paused_seconds", 0))),
            started_at=str(payload.get("started_at", "")),
            ended_at=str(payload.get("ended_at", "")),
            created_at=str(payload.get("created_at", "")),
        )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _whole(value: Any) -> int:
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError("number out of range") from exc
    if not math.isfinite(number):
        raise ValueError("number must be finite")
    return round_half_up(number)
