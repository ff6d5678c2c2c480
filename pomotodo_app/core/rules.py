"""Pure phase transitions.

Every function takes the current phase (or ``None`` for idle) and returns the
new phase. Operations that the current status does not permit return
``None`` instead of raising; callers treat that as a no-op.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable

from pomotodo_app.core.presets import (
    LONG_BREAK_MINUTES,
    PHASE_LONG_BREAK,
    PHASE_SHORT_BREAK,
    PHASE_WORK,
    WORKS_PER_CYCLE,
    get_preset,
    is_known_preset,
    planned_seconds_for,
)
from pomotodo_app.core.records import (
    DEFAULT_WORK_DESCRIPTION,
    SessionRecord,
    iso_from_ms,
    new_phase_id,
    round_half_up,
)
from pomotodo_app.core.state import ActiveState, PausedPhase, ReadyPhase, RunningPhase


@dataclass(frozen=True)
class NextPhaseInfo:
    phase_type: str
    cycle_number: int
    work_index: int | None
    planned_seconds: int


def next_phase_info(state: ActiveState) -> NextPhaseInfo:
    preset = get_preset(state.preset_key)
    if state.phase_type == PHASE_WORK:
        work_index = state.work_index or 1
        if work_index < WORKS_PER_CYCLE:
            return NextPhaseInfo(
                phase_type=PHASE_SHORT_BREAK,
                cycle_number=state.cycle_number,
                work_index=work_index,
                planned_seconds=preset.short_break_minutes * 60,
            )
        return NextPhaseInfo(
            phase_type=PHASE_LONG_BREAK,
            cycle_number=state.cycle_number,
            work_index=None,
            planned_seconds=LONG_BREAK_MINUTES * 60,
        )

    if state.phase_type == PHASE_SHORT_BREAK:
        return NextPhaseInfo(
            phase_type=PHASE_WORK,
            cycle_number=state.cycle_number,
            work_index=min(WORKS_PER_CYCLE, (state.work_index or 1) + 1),
            planned_seconds=preset.work_minutes * 60,
        )

    if state.phase_type == PHASE_LONG_BREAK:
        return NextPhaseInfo(
            phase_type=PHASE_WORK,
            cycle_number=state.cycle_number + 1,
            work_index=1,
            planned_seconds=preset.work_minutes * 60,
        )

    raise ValueError(f"unknown phase type {state.phase_type!r}")


def start_phase(
    *,
    preset_key: str,
    phase_type: str,
    cycle_number: int,
    work_index: int | None,
    planned_seconds: int,
    start_at_ms: int,
    id_factory: Callable[[], str] = new_phase_id,
) -> RunningPhase:
    return RunningPhase(
        preset_key=preset_key,
        cycle_number=cycle_number,
        work_index=work_index,
        phase_type=phase_type,
        planned_seconds=int(planned_seconds),
        started_at_ms=int(start_at_ms),
        ends_at_ms=int(start_at_ms) + int(planned_seconds) * 1000,
        phase_id=id_factory(),
        paused_total_ms=0,
    )


def ready_phase(*, preset_key: str, info: NextPhaseInfo) -> ReadyPhase:
    return ReadyPhase(
        preset_key=preset_key,
        cycle_number=info.cycle_number,
        work_index=info.work_index,
        phase_type=info.phase_type,
        planned_seconds=info.planned_seconds,
    )


def start(
    state: ActiveState | None,
    preset_key: str,
    now_ms: int,
    id_factory: Callable[[], str] = new_phase_id,
) -> RunningPhase | None:
    if state is not None:
        return None
    key = preset_key if is_known_preset(preset_key) else get_preset(preset_key).key
    return start_phase(
        preset_key=key,
        phase_type=PHASE_WORK,
        cycle_number=1,
        work_index=1,
        planned_seconds=planned_seconds_for(PHASE_WORK, key),
        start_at_ms=now_ms,
        id_factory=id_factory,
    )


def start_ready(
    state: ActiveState | None,
    now_ms: int,
    id_factory: Callable[[], str] = new_phase_id,
) -> RunningPhase | None:
    if not isinstance(state, ReadyPhase):
        return None
    return start_phase(
        preset_key=state.preset_key,
        phase_type=state.phase_type,
        cycle_number=state.cycle_number,
        work_index=state.work_index,
        planned_seconds=state.planned_seconds,
        start_at_ms=now_ms,
        id_factory=id_factory,
    )


def pause(state: ActiveState | None, now_ms: int) -> PausedPhase | None:
    if not isinstance(state, RunningPhase):
        return None
    return PausedPhase(
        preset_key=state.preset_key,
        cycle_number=state.cycle_number,
        work_index=state.work_index,
        phase_type=state.phase_type,
        planned_seconds=state.planned_seconds,
        started_at_ms=state.started_at_ms,
        ends_at_ms=state.ends_at_ms,
        phase_id=state.phase_id,
        paused_total_ms=state.paused_total_ms,
        paused_remaining_ms=max(0, state.ends_at_ms - int(now_ms)),
        paused_at_ms=int(now_ms),
    )


def resume(state: ActiveState | None, now_ms: int) -> RunningPhase | None:
    if not isinstance(state, PausedPhase):
        return None
    paused_at = state.paused_at_ms if state.paused_at_ms is not None else int(now_ms)
    extra_paused_ms = max(0, int(now_ms) - paused_at)
    return RunningPhase(
        preset_key=state.preset_key,
        cycle_number=state.cycle_number,
        work_index=state.work_index,
        phase_type=state.phase_type,
        planned_seconds=state.planned_seconds,
        started_at_ms=state.started_at_ms,
        ends_at_ms=int(now_ms) + state.paused_remaining_ms,
        phase_id=state.phase_id,
        paused_total_ms=state.paused_total_ms + extra_paused_ms,
    )


def retarget_ready(state: ActiveState | None, preset_key: str) -> ReadyPhase | None:
    if not isinstance(state, ReadyPhase) or not is_known_preset(preset_key):
        return None
    return replace(
        state,
        preset_key=preset_key,
        planned_seconds=planned_seconds_for(state.phase_type, preset_key),
    )


def remaining_seconds(state: ActiveState | None, now_ms: int) -> int | None:
    if state is None:
        return None
    if isinstance(state, ReadyPhase):
        return state.planned_seconds
    if isinstance(state, PausedPhase):
        return math.ceil(state.paused_remaining_ms / 1000)
    return math.ceil((state.ends_at_ms - int(now_ms)) / 1000)


def is_overdue(state: ActiveState | None, now_ms: int) -> bool:
    return isinstance(state, RunningPhase) and int(now_ms) >= state.ends_at_ms


def actual_seconds(started_at_ms: int, ended_at_ms: int, paused_total_ms: int) -> int:
    duration_ms = max(0, int(ended_at_ms) - int(started_at_ms) - int(paused_total_ms))
    return max(0, round_half_up(duration_ms / 1000))


def finalize_phase(
    state: RunningPhase | PausedPhase,
    ended_at_ms: int,
    created_at_ms: int,
) -> SessionRecord:
    paused_total_ms = max(0, state.paused_total_ms)
    return SessionRecord(
        id=state.phase_id,
        preset_key=state.preset_key,
        cycle_number=state.cycle_number,
        work_index=None if state.phase_type == PHASE_LONG_BREAK else state.work_index,
        type=state.phase_type,
        description=DEFAULT_WORK_DESCRIPTION if state.phase_type == PHASE_WORK else "",
        planned_seconds=state.planned_seconds,
        actual_seconds=actual_seconds(state.started_at_ms, ended_at_ms, paused_total_ms),
        paused_seconds=max(0, round_half_up(paused_total_ms / 1000)),
        started_at=iso_from_ms(state.started_at_ms),
        ended_at=iso_from_ms(ended_at_ms),
        created_at=iso_from_ms(created_at_ms),
    )


def complete_phase(
    state: RunningPhase,
    created_at_ms: int,
    id_factory: Callable[[], str] = new_phase_id,
) -> tuple[SessionRecord, ActiveState]:
    """Close ``state`` at its scheduled end and build the phase that follows.

    Work is followed by a rest phase that runs immediately, backdated to the
    work's end. Rest is followed by a ready work phase awaiting a manual start.
    """
    ended_at_ms = state.ends_at_ms
    record = finalize_phase(state, ended_at_ms=ended_at_ms, created_at_ms=created_at_ms)
    info = next_phase_info(state)
    if state.phase_type == PHASE_WORK:
        following: ActiveState = start_phase(
            preset_key=state.preset_key,
            phase_type=info.phase_type,
            cycle_number=info.cycle_number,
            work_index=info.work_index,
            planned_seconds=info.planned_seconds,
            start_at_ms=ended_at_ms,
            id_factory=id_factory,
        )
    else:
        following = ready_phase(preset_key=state.preset_key, info=info)
    return record, following
