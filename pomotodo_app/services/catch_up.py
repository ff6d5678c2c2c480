"""Restore persisted timer state and replay phases that ended while offline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.persistence.prefs_json import PrefsStorage
from pomotodo_app.persistence.session_log_json import SessionLogStorage
from pomotodo_app.services.phase_clock import PhaseClock, PhaseEvent
from pomotodo_app.services.session_log import SessionLog

LOGGER = logging.getLogger(__name__)

DEFAULT_CATCH_UP_LIMIT = 1000
INTEGRITY_NOTE = "Some stored data looked invalid. You may want to Clear History."


@dataclass
class ReplayResult:
    completed: int = 0
    diverged: bool = False
    events: list[PhaseEvent] = field(default_factory=list)


@dataclass
class RestoreResult:
    clock: PhaseClock
    session_log: SessionLog
    prefs: dict
    replay: ReplayResult
    integrity_issues: list[str] = field(default_factory=list)

    @property
    def integrity_note(self) -> str:
        return INTEGRITY_NOTE if self.integrity_issues else ""


class CatchUpReplayer:
    def __init__(self, limit: int = DEFAULT_CATCH_UP_LIMIT) -> None:
        self.limit = max(1, int(limit))

    def replay(self, clock: PhaseClock, now_ms: int) -> ReplayResult:
        result = ReplayResult()
        while clock.is_overdue(now_ms):
            if result.completed >= self.limit:
                # Timestamps that keep producing instant completions are corrupt.
                LOGGER.warning("catch-up exceeded limit=%s, resetting to idle", self.limit)
                result.events.extend(clock.reset())
                result.diverged = True
                break
            result.events.extend(clock.complete_current(catch_up=True))
            result.completed += 1

        if result.completed:
            LOGGER.info("catch-up replayed phases=%s status=%s", result.completed, clock.status)
        return result

    def restore(
        self,
        prefs_storage: PrefsStorage,
        log_storage: SessionLogStorage,
        active_storage: ActiveStateStorage,
        now_ms: Callable[[], int] | None = None,
    ) -> RestoreResult:
        issues: list[str] = []
        prefs = prefs_storage.load()

        records = log_storage.load()
        stats = log_storage.last_read_stats()
        if stats.get("malformed"):
            issues.append("session_log_malformed")
        if stats.get("bad_records_skipped"):
            issues.append("session_log_bad_records")
        session_log = SessionLog(storage=log_storage, records=records)

        state = active_storage.load()
        if active_storage.last_load_rejected():
            issues.append("active_state_invalid")
            try:
                active_storage.save(None)
            except OSError as exc:
                LOGGER.warning("discarding invalid active state failed error=%s", exc)

        clock = PhaseClock(session_log=session_log, storage=active_storage, state=state, now_ms=now_ms)
        replay = self.replay(clock, clock.now_ms())
        if replay.diverged:
            issues.append("replay_diverged")

        if issues:
            LOGGER.warning("restore integrity issues=%s", ",".join(issues))
        return RestoreResult(
            clock=clock,
            session_log=session_log,
            prefs=prefs,
            replay=replay,
            integrity_issues=issues,
        )
