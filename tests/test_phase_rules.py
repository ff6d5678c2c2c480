from __future__ import annotations

import itertools

from pomotodo_app.core import rules
from pomotodo_app.core.state import PausedPhase, ReadyPhase, RunningPhase


def _ids():
    counter = itertools.count(1)
    return lambda: f"phase-{next(counter)}"


def test_start_only_from_idle_and_schedules_work_end() -> None:
    started = rules.start(None, "25_5", now_ms=1_000, id_factory=_ids())
    assert isinstance(started, RunningPhase)
    assert started.phase_type == "work"
    assert started.cycle_number == 1
    assert started.work_index == 1
    assert started.planned_seconds == 1500
    assert started.ends_at_ms == 1_000 + 1500 * 1000
    assert started.phase_id == "phase-1"

    assert rules.start(started, "25_5", now_ms=2_000) is None


def test_start_with_unknown_preset_uses_default() -> None:
    started = rules.start(None, "90_30", now_ms=0, id_factory=_ids())
    assert started is not None
    assert started.preset_key == "25_5"
    assert started.planned_seconds == 1500


def test_cycle_advances_through_long_break() -> None:
    ids = _ids()
    state = rules.start(None, "30_5", now_ms=0, id_factory=ids)
    seen = []
    for _ in range(8):
        record, state = rules.complete_phase(state, created_at_ms=0, id_factory=ids)
        seen.append((record.type, record.cycle_number, record.work_index, record.planned_seconds))
        if isinstance(state, ReadyPhase):
            state = rules.start_ready(state, now_ms=state.planned_seconds, id_factory=ids)

    assert seen == [
        ("work", 1, 1, 1800),
        ("short_break", 1, 1, 300),
        ("work", 1, 2, 1800),
        ("short_break", 1, 2, 300),
        ("work", 1, 3, 1800),
        ("short_break", 1, 3, 300),
        ("work", 1, 4, 1800),
        ("long_break", 1, None, 1200),
    ]
    assert state.phase_type == "work"
    assert state.cycle_number == 2
    assert state.work_index == 1


def test_work_completion_starts_rest_at_work_end() -> None:
    ids = _ids()
    work = rules.start(None, "25_5", now_ms=10_000, id_factory=ids)
    record, rest = rules.complete_phase(work, created_at_ms=9_999_999, id_factory=ids)

    assert record.type == "work"
    assert record.description == "working...."
    assert record.actual_seconds == 1500
    assert isinstance(rest, RunningPhase)
    assert rest.phase_type == "short_break"
    assert rest.started_at_ms == work.ends_at_ms
    assert rest.ends_at_ms == work.ends_at_ms + 300 * 1000


def test_rest_completion_waits_for_manual_start() -> None:
    ids = _ids()
    work = rules.start(None, "25_5", now_ms=0, id_factory=ids)
    _, rest = rules.complete_phase(work, created_at_ms=0, id_factory=ids)
    record, following = rules.complete_phase(rest, created_at_ms=0, id_factory=ids)

    assert record.type == "short_break"
    assert record.description == ""
    assert isinstance(following, ReadyPhase)
    assert following.phase_type == "work"
    assert following.work_index == 2
    assert following.planned_seconds == 1500


def test_pause_resume_accounts_paused_time() -> None:
    running = rules.start(None, "25_5", now_ms=0, id_factory=_ids())
    paused = rules.pause(running, now_ms=60_000)
    assert isinstance(paused, PausedPhase)
    assert paused.paused_remaining_ms == 1_440_000
    assert paused.paused_at_ms == 60_000
    assert rules.remaining_seconds(paused, now_ms=999_999) == 1440

    resumed = rules.resume(paused, now_ms=90_000)
    assert isinstance(resumed, RunningPhase)
    assert resumed.ends_at_ms == 1_530_000
    assert resumed.paused_total_ms == 30_000

    record, _ = rules.complete_phase(resumed, created_at_ms=1_530_000)
    assert record.actual_seconds == 1500
    assert record.paused_seconds == 30


def test_zero_length_pause_changes_nothing() -> None:
    running = rules.start(None, "25_5", now_ms=0, id_factory=_ids())
    resumed = rules.resume(rules.pause(running, now_ms=5_000), now_ms=5_000)
    assert resumed.ends_at_ms == running.ends_at_ms
    assert resumed.paused_total_ms == 0


def test_pause_after_end_freezes_zero_remaining() -> None:
    running = rules.start(None, "25_5", now_ms=0, id_factory=_ids())
    paused = rules.pause(running, now_ms=running.ends_at_ms + 5_000)
    assert paused.paused_remaining_ms == 0


def test_resume_without_pause_instant_adds_no_paused_time() -> None:
    paused = PausedPhase(
        preset_key="25_5",
        cycle_number=1,
        work_index=1,
        phase_type="work",
        planned_seconds=1500,
        started_at_ms=0,
        ends_at_ms=1_500_000,
        phase_id="phase-1",
        paused_total_ms=2_000,
        paused_remaining_ms=100_000,
    )
    resumed = rules.resume(paused, now_ms=500_000)
    assert resumed.paused_total_ms == 2_000
    assert resumed.ends_at_ms == 600_000


def test_operations_in_wrong_status_are_no_ops() -> None:
    ready = ReadyPhase(preset_key="25_5", cycle_number=1, work_index=2, phase_type="work", planned_seconds=1500)
    running = rules.start(None, "25_5", now_ms=0, id_factory=_ids())

    assert rules.pause(ready, now_ms=0) is None
    assert rules.pause(None, now_ms=0) is None
    assert rules.resume(running, now_ms=0) is None
    assert rules.start_ready(running, now_ms=0) is None
    assert rules.start_ready(None, now_ms=0) is None
    assert rules.retarget_ready(running, "45_10") is None


def test_retarget_ready_updates_planned_duration() -> None:
    ready = ReadyPhase(preset_key="25_5", cycle_number=2, work_index=3, phase_type="short_break", planned_seconds=300)
    retargeted = rules.retarget_ready(ready, "45_10")
    assert retargeted.preset_key == "45_10"
    assert retargeted.planned_seconds == 600
    assert retargeted.cycle_number == 2
    assert retargeted.work_index == 3
    assert rules.retarget_ready(ready, "nope") is None


def test_actual_seconds_rounds_half_up_and_never_negative() -> None:
    assert rules.actual_seconds(0, 1_500, 0) == 2
    assert rules.actual_seconds(0, 2_500, 0) == 3
    assert rules.actual_seconds(0, 2_499, 0) == 2
    assert rules.actual_seconds(10_000, 0, 0) == 0
    assert rules.actual_seconds(0, 5_000, 60_000) == 0
    assert rules.actual_seconds(0, 65_000, 5_000) == 60


def test_remaining_seconds_rounds_up() -> None:
    running = rules.start(None, "25_5", now_ms=0, id_factory=_ids())
    assert rules.remaining_seconds(running, now_ms=1_000) == 1499
    assert rules.remaining_seconds(running, now_ms=500) == 1500
    assert rules.remaining_seconds(None, now_ms=0) is None
    assert rules.is_overdue(running, now_ms=running.ends_at_ms - 1) is False
    assert rules.is_overdue(running, now_ms=running.ends_at_ms) is True


def test_long_break_record_has_no_work_index() -> None:
    running = RunningPhase(
        preset_key="60_10",
        cycle_number=3,
        work_index=4,
        phase_type="long_break",
        planned_seconds=1200,
        started_at_ms=0,
        ends_at_ms=1_200_000,
        phase_id="phase-lb",
    )
    record, following = rules.complete_phase(running, created_at_ms=1_200_000)
    assert record.work_index is None
    assert following.cycle_number == 4
    assert following.work_index == 1
    assert following.planned_seconds == 3600
