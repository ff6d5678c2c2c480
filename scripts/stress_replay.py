from __future__ import annotations

import argparse
import json
import random
import shutil
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pomotodo_app.core.presets import PRESETS
from pomotodo_app.core.records import SessionRecord
from pomotodo_app.core.rules import next_phase_info
from pomotodo_app.core.state import STATUS_IDLE, STATUS_PAUSED, STATUS_READY, STATUS_RUNNING, ReadyPhase
from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.persistence.kv_store import JsonKeyValueStore
from pomotodo_app.persistence.prefs_json import PrefsStorage
from pomotodo_app.persistence.session_log_json import SessionLogStorage
from pomotodo_app.services.catch_up import CatchUpReplayer
from pomotodo_app.services.phase_clock import PhaseClock


class SimClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.ms = start_ms

    def now_ms(self) -> int:
        return self.ms

    def advance(self, seconds: float) -> None:
        self.ms += int(seconds * 1000)


@dataclass
class Metrics:
    started_total: int = 0
    completed_total: int = 0
    caught_up_total: int = 0
    pause_total: int = 0
    resume_total: int = 0
    time_jumps: int = 0
    restarts: int = 0
    replay_divergences: int = 0
    drift_violations: int = 0
    sequence_violations: int = 0
    auto_start_violations: int = 0
    duplicate_ids: int = 0
    restore_mismatches: int = 0
    samples: list[str] = field(default_factory=list)


def _progress_line(step: int, total_steps: int, metrics: Metrics, status: str) -> str:
    width = 30
    ratio = 0.0 if total_steps <= 0 else min(1.0, step / total_steps)
    fill = int(width * ratio)
    bar = "#" * fill + "-" * (width - fill)
    return (
        f"\r[{bar}] {ratio*100:6.2f}% step={step:5d}/{total_steps:<5d} "
        f"status={status:<7s} comp={metrics.completed_total:<4d} replay={metrics.caught_up_total:<4d}"
    )


def _check_records(records: list[SessionRecord], metrics: Metrics) -> None:
    seen: set[str] = set()
    previous: SessionRecord | None = None
    for record in records:
        if record.id in seen:
            metrics.duplicate_ids += 1
        seen.add(record.id)

        # Completion is anchored to the re-based end time, so pauses never shorten a phase.
        if abs(record.actual_seconds - record.planned_seconds) > 1:
            metrics.drift_violations += 1
            metrics.samples.append(f"drift id={record.id} actual={record.actual_seconds} planned={record.planned_seconds}")

        if previous is not None:
            expected = next_phase_info(_as_ready(previous))
            if (record.type, record.cycle_number, record.work_index) != (
                expected.phase_type,
                expected.cycle_number,
                expected.work_index,
            ):
                metrics.sequence_violations += 1
                metrics.samples.append(f"sequence {previous.type}->{record.type} cycle={record.cycle_number}")
        previous = record


def _as_ready(record: SessionRecord) -> ReadyPhase:
    return ReadyPhase(
        preset_key=record.preset_key,
        cycle_number=record.cycle_number,
        work_index=record.work_index,
        phase_type=record.type,
        planned_seconds=record.planned_seconds,
    )


def _restore(workdir: Path, clock: SimClock, limit: int):
    store = JsonKeyValueStore(workdir / "data", fsync_writes=False)
    replayer = CatchUpReplayer(limit=limit)
    return replayer.restore(
        prefs_storage=PrefsStorage(store),
        log_storage=SessionLogStorage(store),
        active_storage=ActiveStateStorage(store),
        now_ms=clock.now_ms,
    )


def run_stress_replay(args: argparse.Namespace) -> int:
    random.seed(args.seed)

    workdir = Path(args.workdir).resolve()
    if args.clean and workdir.exists():
        shutil.rmtree(workdir)
    workdir.mkdir(parents=True, exist_ok=True)
    (workdir / "logs").mkdir(parents=True, exist_ok=True)

    preset_key = args.preset if args.preset in PRESETS else "25_5"
    runtime_s = int(args.hours * 3600)
    step_s = max(1, int(args.step_seconds))
    total_steps = max(1, runtime_s // step_s)

    sim = SimClock()
    metrics = Metrics()
    restored = _restore(workdir, sim, args.catch_up_limit)
    phase_clock: PhaseClock = restored.clock
    t0 = time.monotonic()

    for step in range(1, total_steps + 1):
        # One completion per tick, ticking until nothing is overdue.
        while phase_clock.is_overdue():
            for name, payload in phase_clock.check_completion():
                if name != "phase_complete":
                    continue
                metrics.completed_total += 1
                if payload.get("type") != "work" and phase_clock.status != STATUS_READY:
                    metrics.auto_start_violations += 1
                    metrics.samples.append(f"rest completion left status={phase_clock.status}")

        status = phase_clock.status
        r = random.random()
        if status == STATUS_IDLE:
            if phase_clock.start(preset_key):
                metrics.started_total += 1
        elif status == STATUS_READY:
            if r < args.start_rate and phase_clock.start_ready():
                metrics.started_total += 1
        elif status == STATUS_RUNNING:
            if r < args.pause_rate and phase_clock.pause():
                metrics.pause_total += 1
            elif r < args.pause_rate + args.time_jump_rate:
                # Host sleep: no ticks until the jump is over.
                sim.advance(random.uniform(1, args.time_jump_seconds))
                metrics.time_jumps += 1
        elif status == STATUS_PAUSED:
            if r < args.resume_rate and phase_clock.resume():
                metrics.resume_total += 1

        if random.random() < args.restart_rate:
            metrics.restarts += 1
            before = phase_clock.status
            overdue = phase_clock.is_overdue(sim.now_ms())
            restored = _restore(workdir, sim, args.catch_up_limit)
            metrics.caught_up_total += restored.replay.completed
            if restored.replay.diverged:
                metrics.replay_divergences += 1
            if not overdue and restored.clock.status != before:
                metrics.restore_mismatches += 1
                metrics.samples.append(f"restore {before}->{restored.clock.status}")
            phase_clock = restored.clock

        sim.advance(step_s)
        if args.sleep_per_step > 0:
            print(_progress_line(step, total_steps, metrics, phase_clock.status), end="", flush=True)
            time.sleep(args.sleep_per_step)

    if args.sleep_per_step > 0:
        print()

    _check_records(phase_clock.session_log.records(), metrics)

    fail_reasons: list[str] = []
    if metrics.drift_violations:
        fail_reasons.append("actual seconds drifted from planned seconds")
    if metrics.sequence_violations:
        fail_reasons.append("phase sequence broke the cycle-advance rule")
    if metrics.auto_start_violations:
        fail_reasons.append("work auto-started after a rest phase")
    if metrics.duplicate_ids:
        fail_reasons.append("duplicate record ids")
    if metrics.replay_divergences:
        fail_reasons.append("catch-up replay hit its ceiling")
    if metrics.restore_mismatches:
        fail_reasons.append("restore changed a phase that was not overdue")

    status = "PASS" if not fail_reasons else "FAIL"
    summary = {
        "status": status,
        "seed": args.seed,
        "preset": preset_key,
        "runtime_simulated_seconds": runtime_s,
        "runtime_wall_seconds": round(time.monotonic() - t0, 3),
        "metrics": {
            "started_total": metrics.started_total,
            "completed_total": metrics.completed_total,
            "caught_up_total": metrics.caught_up_total,
            "records_total": len(phase_clock.session_log),
            "pause_total": metrics.pause_total,
            "resume_total": metrics.resume_total,
            "time_jumps": metrics.time_jumps,
            "restarts": metrics.restarts,
        },
        "fail_reasons": fail_reasons,
        "samples": metrics.samples[:8],
        "workdir": str(workdir),
    }

    stamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    out_path = workdir / "logs" / f"stress_replay_{stamp}.json"
    out_path.write_text(json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8")

    print(json.dumps(summary, ensure_ascii=False, indent=2))
    print(f"log_saved={out_path}")
    return 0 if status == "PASS" else 2


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pomotodo phase clock and catch-up replay stress harness")
    parser.add_argument("--hours", type=float, default=8.0, help="simulated hours")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--workdir", default=".stress_replay")
    parser.add_argument("--clean", action="store_true")
    parser.add_argument("--preset", default="25_5")

    parser.add_argument("--step-seconds", type=int, default=5)
    parser.add_argument("--sleep-per-step", type=float, default=0.0)

    parser.add_argument("--start-rate", type=float, default=0.05)
    parser.add_argument("--pause-rate", type=float, default=0.002)
    parser.add_argument("--resume-rate", type=float, default=0.05)
    parser.add_argument("--restart-rate", type=float, default=0.002)
    parser.add_argument("--time-jump-rate", type=float, default=0.001)
    parser.add_argument("--time-jump-seconds", type=int, default=3600)
    parser.add_argument("--catch-up-limit", type=int, default=1000)
    return parser.parse_args()


if __name__ == "__main__":
    raise SystemExit(run_stress_replay(parse_args()))
