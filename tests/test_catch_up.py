from __future__ import annotations

import json

from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.persistence.keys import ACTIVE_KEY, PREFS_KEY, SESSIONS_KEY
from pomotodo_app.persistence.kv_store import MemoryKeyValueStore
from pomotodo_app.persistence.prefs_json import PrefsStorage
from pomotodo_app.persistence.session_log_json import SessionLogStorage
from pomotodo_app.services.catch_up import INTEGRITY_NOTE, CatchUpReplayer
from pomotodo_app.services.phase_clock import PhaseClock
from pomotodo_app.services.session_log import SessionLog

T0 = 1_700_000_000_000


def _restore(store: MemoryKeyValueStore, now: int, limit: int = 1000):
    return CatchUpReplayer(limit=limit).restore(
        prefs_storage=PrefsStorage(store),
        log_storage=SessionLogStorage(store),
        active_storage=ActiveStateStorage(store),
        now_ms=lambda: now,
    )


def _persist_started_work(store: MemoryKeyValueStore, preset_key: str = "25_5") -> None:
    clock = PhaseClock(
        session_log=SessionLog(storage=SessionLogStorage(store)),
        storage=ActiveStateStorage(store),
        now_ms=lambda: T0,
    )
    clock.start(preset_key)


def test_restore_without_stored_data_is_idle() -> None:
    restored = _restore(MemoryKeyValueStore(), now=T0)
    assert restored.clock.status == "idle"
    assert restored.prefs == {"selected_preset_key": "25_5"}
    assert restored.integrity_issues == []
    assert restored.integrity_note == ""
    assert restored.replay.completed == 0


def test_restore_mid_phase_keeps_running() -> None:
    store = MemoryKeyValueStore()
    _persist_started_work(store)
    restored = _restore(store, now=T0 + 600_000)
    assert restored.clock.status == "running"
    assert restored.clock.remaining_seconds() == 900
    assert len(restored.session_log) == 0


def test_overdue_work_and_rest_replay_to_ready() -> None:
    store = MemoryKeyValueStore()
    _persist_started_work(store)

    # Offline for a whole day: work and its rest both finished, next work waits.
    restored = _restore(store, now=T0 + 24 * 3600 * 1000)
    records = restored.session_log.records()
    assert [r.type for r in records] == ["work", "short_break"]
    assert [r.actual_seconds for r in records] == [1500, 300]
    assert records[1].started_at == records[0].ended_at
    assert restored.replay.completed == 2
    assert restored.replay.diverged is False
    assert restored.clock.status == "ready"
    assert restored.clock.state.work_index == 2

    names = [name for name, _ in restored.replay.events]
    assert "alarm" not in names
    assert "description_prompt" not in names
    assert all(payload["catch_up"] for name, payload in restored.replay.events if name == "phase_complete")

    assert json.loads(store.data[ACTIVE_KEY])["status"] == "ready"
    assert len(json.loads(store.data[SESSIONS_KEY])) == 2


def test_partially_elapsed_rest_resumes_running() -> None:
    store = MemoryKeyValueStore()
    _persist_started_work(store)
    restored = _restore(store, now=T0 + (1500 + 120) * 1000)
    assert restored.replay.completed == 1
    assert restored.clock.status == "running"
    assert restored.clock.state.phase_type == "short_break"
    assert restored.clock.remaining_seconds() == 180


def test_replay_ceiling_resets_to_idle(monkeypatch) -> None:
    store = MemoryKeyValueStore()
    _persist_started_work(store)
    # Real completions settle within two steps; a stuck clock is the only way to hit the ceiling.
    monkeypatch.setattr(PhaseClock, "complete_current", lambda self, catch_up=False: [])

    restored = _restore(store, now=T0 + 3_600_000, limit=5)
    assert restored.replay.completed == 5
    assert restored.replay.diverged is True
    assert restored.clock.status == "idle"
    assert "replay_diverged" in restored.integrity_issues
    assert restored.integrity_note == INTEGRITY_NOTE
    assert ACTIVE_KEY not in store.data


def test_invalid_active_state_is_discarded_and_flagged() -> None:
    store = MemoryKeyValueStore({ACTIVE_KEY: json.dumps({"status": "running", "preset_key": "25_5"})})
    restored = _restore(store, now=T0)
    assert restored.clock.status == "idle"
    assert restored.integrity_issues == ["active_state_invalid"]
    assert ACTIVE_KEY not in store.data


def test_corrupt_session_log_is_flagged() -> None:
    good = {
        "id": "rec-1",
        "preset_key": "25_5",
        "cycle_number": 1,
        "work_index": 1,
        "type": "work",
        "description": "Draft",
        "planned_seconds": 1500,
        "actual_seconds": 1500,
        "paused_seconds": 0,
        "started_at": "2026-01-01T09:00:00.000+00:00",
        "ended_at": "2026-01-01T09:25:00.000+00:00",
        "created_at": "2026-01-01T09:25:00.000+00:00",
    }
    store = MemoryKeyValueStore({SESSIONS_KEY: json.dumps([good, {"id": ""}, "junk"])})
    restored = _restore(store, now=T0)
    assert len(restored.session_log) == 1
    assert restored.integrity_issues == ["session_log_bad_records"]

    store.data[SESSIONS_KEY] = "[{broken"
    restored = _restore(store, now=T0)
    assert len(restored.session_log) == 0
    assert restored.integrity_issues == ["session_log_malformed"]


def test_unknown_stored_preset_falls_back() -> None:
    store = MemoryKeyValueStore({PREFS_KEY: json.dumps({"selected_preset_key": "90_15"})})
    restored = _restore(store, now=T0)
    assert restored.prefs["selected_preset_key"] == "25_5"
    assert restored.integrity_issues == []


def test_non_finite_record_numbers_are_skipped_not_fatal() -> None:
    store = MemoryKeyValueStore(
        {
            SESSIONS_KEY: (
                '[{"id": "rec-1", "type": "work", "planned_seconds": 1e999},'
                ' {"id": "rec-2", "type": "work", "actual_seconds": Infinity},'
                ' {"id": "rec-3", "type": "work", "cycle_number": 1' + "0" * 400 + "},"
                ' {"id": "rec-4", "type": "work", "actual_seconds": 1500}]'
            )
        }
    )
    restored = _restore(store, now=T0)
    assert [r.id for r in restored.session_log.records()] == ["rec-4"]
    assert restored.integrity_issues == ["session_log_bad_records"]


def test_out_of_range_timestamps_are_discarded_not_fatal() -> None:
    payload = {
        "status": "running",
        "preset_key": "25_5",
        "cycle_number": 1,
        "work_index": 1,
        "phase_type": "work",
        "planned_seconds": 1500,
        "started_at_ms": -10**17,
        "ends_at_ms": -10**17 + 1_500_000,
        "phase_id": "abcdef123456",
        "paused_total_ms": 0,
    }
    store = MemoryKeyValueStore({ACTIVE_KEY: json.dumps(payload)})
    restored = _restore(store, now=T0)
    assert restored.clock.status == "idle"
    assert restored.integrity_issues == ["active_state_invalid"]
    assert len(restored.session_log) == 0


def test_end_before_start_is_discarded() -> None:
    payload = {
        "status": "running",
        "preset_key": "25_5",
        "cycle_number": 1,
        "work_index": 1,
        "phase_type": "work",
        "planned_seconds": 1500,
        "started_at_ms": T0,
        "ends_at_ms": T0 - 5_000_000,
        "phase_id": "abcdef123456",
        "paused_total_ms": 0,
    }
    store = MemoryKeyValueStore({ACTIVE_KEY: json.dumps(payload)})
    restored = _restore(store, now=T0 + 3_600_000)
    assert restored.clock.status == "idle"
    assert restored.replay.completed == 0
    assert restored.integrity_issues == ["active_state_invalid"]
