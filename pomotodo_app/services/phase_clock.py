from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from pomotodo_app.core import rules
from pomotodo_app.core.presets import PHASE_SHORT_BREAK, PHASE_WORK, get_preset
from pomotodo_app.core.records import new_phase_id
from pomotodo_app.core.state import (
    STATUS_PAUSED,
    STATUS_RUNNING,
    ActiveState,
    ReadyPhase,
    RunningPhase,
    status_of,
)
from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.services.session_log import SessionLog

LOGGER = logging.getLogger(__name__)

PhaseEvent = tuple[str, dict]


def wall_now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PhaseView:
    status: str
    preset_key: str
    phase_type: str
    cycle_number: int
    work_index: int | None
    remaining_s: int | None
    next_phase_type: str
    next_planned_seconds: int


class PhaseClock:
    def __init__(
        self,
        session_log: SessionLog,
        storage: ActiveStateStorage | None = None,
        state: ActiveState | None = None,
        now_ms: Callable[[], int] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.session_log = session_log
        self.storage = storage
        self._state = state
        self._now_ms = now_ms or wall_now_ms
        self._id_factory = id_factory or new_phase_id

    @property
    def state(self) -> ActiveState | None:
        return self._state

    @property
    def status(self) -> str:
        return status_of(self._state)

    @property
    def is_active(self) -> bool:
        return self.status in {STATUS_RUNNING, STATUS_PAUSED}

    def now_ms(self) -> int:
        return int(self._now_ms())

    def remaining_seconds(self, now_ms: int | None = None) -> int | None:
        return rules.remaining_seconds(self._state, self._resolve_now(now_ms))

    def is_overdue(self, now_ms: int | None = None) -> bool:
        return rules.is_overdue(self._state, self._resolve_now(now_ms))

    def view(self, preset_key: str, now_ms: int | None = None) -> PhaseView:
        """Describe the current phase, or the first work phase of ``preset_key`` when idle."""
        state = self._state
        if state is None:
            preset = get_preset(preset_key)
            return PhaseView(
                status=self.status,
                preset_key=preset.key,
                phase_type=PHASE_WORK,
                cycle_number=1,
                work_index=1,
                remaining_s=preset.work_minutes * 60,
                next_phase_type=PHASE_SHORT_BREAK,
                next_planned_seconds=preset.short_break_minutes * 60,
            )
        upcoming = rules.next_phase_info(state)
        return PhaseView(
            status=self.status,
            preset_key=state.preset_key,
            phase_type=state.phase_type,
            cycle_number=state.cycle_number,
            work_index=state.work_index,
            remaining_s=self.remaining_seconds(now_ms),
            next_phase_type=upcoming.phase_type,
            next_planned_seconds=upcoming.planned_seconds,
        )

    def start(self, preset_key: str, now_ms: int | None = None) -> list[PhaseEvent]:
        started = rules.start(self._state, preset_key, self._resolve_now(now_ms), id_factory=self._id_factory)
        if started is None:
            return []
        return self._install(started, [("phase_start", self._start_payload(started))])

    def start_ready(self, now_ms: int | None = None) -> list[PhaseEvent]:
        started = rules.start_ready(self._state, self._resolve_now(now_ms), id_factory=self._id_factory)
        if started is None:
            return []
        return self._install(started, [("phase_start", self._start_payload(started))])

    def pause(self, now_ms: int | None = None) -> list[PhaseEvent]:
        paused = rules.pause(self._state, self._resolve_now(now_ms))
        if paused is None:
            return []
        LOGGER.info("phase paused phase_id=%s remaining_ms=%s", paused.phase_id, paused.paused_remaining_ms)
        return self._install(
            paused,
            [("phase_pause", {"phase_id": paused.phase_id, "remaining_ms": paused.paused_remaining_ms})],
        )

    def resume(self, now_ms: int | None = None) -> list[PhaseEvent]:
        resumed = rules.resume(self._state, self._resolve_now(now_ms))
        if resumed is None:
            return []
        LOGGER.info("phase resumed phase_id=%s paused_total_ms=%s", resumed.phase_id, resumed.paused_total_ms)
        return self._install(
            resumed,
            [("phase_resume", {"phase_id": resumed.phase_id, "ends_at_ms": resumed.ends_at_ms})],
        )

    def toggle_pause(self, now_ms: int | None = None) -> list[PhaseEvent]:
        if self.status == STATUS_RUNNING:
            return self.pause(now_ms)
        if self.status == STATUS_PAUSED:
            return self.resume(now_ms)
        return []

    def retarget_ready(self, preset_key: str) -> list[PhaseEvent]:
        retargeted = rules.retarget_ready(self._state, preset_key)
        if retargeted is None:
            return []
        return self._install(
            retargeted,
            [("phase_ready", {"phase_type": retargeted.phase_type, "planned_seconds": retargeted.planned_seconds})],
        )

    def reset(self) -> list[PhaseEvent]:
        previous = self.status
        LOGGER.info("phase reset from status=%s", previous)
        return self._install(None, [("phase_reset", {"from_status": previous})])

    def check_completion(self, now_ms: int | None = None) -> list[PhaseEvent]:
        if not self.is_overdue(now_ms):
            return []
        return self.complete_current(catch_up=False)

    def complete_current(self, catch_up: bool = False) -> list[PhaseEvent]:
        state = self._state
        if not isinstance(state, RunningPhase):
            return []

        record, following = rules.complete_phase(state, created_at_ms=self.now_ms(), id_factory=self._id_factory)
        events: list[PhaseEvent] = [
            (
                "phase_complete",
                {
                    "record_id": record.id,
                    "type": record.type,
                    "actual_seconds": record.actual_seconds,
                    "catch_up": catch_up,
                },
            )
        ]
        if not self.session_log.append(record):
            events.append(("storage_warning", {"target": "sessions", "message": "Failed to save session history."}))

        if record.is_work and not catch_up:
            events.append(("alarm", {"record_id": record.id}))
            events.append(("description_prompt", {"record_id": record.id}))

        if isinstance(following, ReadyPhase):
            follow_event = ("phase_ready", {"phase_type": following.phase_type, "planned_seconds": following.planned_seconds})
        else:
            follow_event = ("phase_start", self._start_payload(following))
        LOGGER.info(
            "phase complete type=%s phase_id=%s next=%s status=%s catch_up=%s",
            record.type,
            record.id,
            following.phase_type,
            following.status,
            catch_up,
        )
        return events + self._install(following, [follow_event])

    def _install(self, state: ActiveState | None, events: list[PhaseEvent]) -> list[PhaseEvent]:
        self._state = state
        if self.storage is None:
            return events
        try:
            self.storage.save(state)
        except OSError as exc:
            LOGGER.warning("active state write failed status=%s error=%s", status_of(state), exc)
            events.append(("storage_warning", {"target": "active", "message": "Failed to persist active timer state."}))
        return events

    def _resolve_now(self, now_ms: int | None) -> int:
        return self.now_ms() if now_ms is None else int(now_ms)

    def _start_payload(self, state: ActiveState) -> dict:
        payload = {
            "phase_type": state.phase_type,
            "cycle_number": state.cycle_number,
            "work_index": state.work_index,
            "planned_seconds": state.planned_seconds,
        }
        if isinstance(state, RunningPhase):
            payload["phase_id"] = state.phase_id
            payload["ends_at_ms"] = state.ends_at_ms
        return payload
