from __future__ import annotations

import argparse
import json
from datetime import datetime
from pathlib import Path

from pomotodo_app.config import PomotodoConfig
from pomotodo_app.core import rules
from pomotodo_app.core.state import status_of
from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.persistence.kv_store import JsonKeyValueStore
from pomotodo_app.persistence.prefs_json import PrefsStorage
from pomotodo_app.persistence.session_log_json import SessionLogStorage
from pomotodo_app.services.csv_export import export_csv, export_filename
from pomotodo_app.services.phase_clock import wall_now_ms
from pomotodo_app.services.session_log import SessionLog


def _store() -> JsonKeyValueStore:
    return JsonKeyValueStore(PomotodoConfig.from_env().data_dir)


def _load_log(store: JsonKeyValueStore) -> tuple[SessionLog, dict[str, int]]:
    storage = SessionLogStorage(store)
    records = storage.load()
    return SessionLog(storage=storage, records=records), storage.last_read_stats()


def _cmd_status(_args: argparse.Namespace) -> int:
    store = _store()
    active_storage = ActiveStateStorage(store)
    state = active_storage.load()
    now_ms = wall_now_ms()
    payload = {
        "status": status_of(state),
        "rejected": active_storage.last_load_rejected(),
        "selected_preset_key": PrefsStorage(store).load()["selected_preset_key"],
        "remaining_s": rules.remaining_seconds(state, now_ms),
        "overdue": rules.is_overdue(state, now_ms),
        "active": state.to_dict() if state is not None else None,
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    session_log, stats = _load_log(_store())
    for record in session_log.recent(args.n):
        index = "-" if record.work_index is None else str(record.work_index)
        print(
            f"{record.started_at} | {record.type:11s} | cycle={record.cycle_number} work={index} "
            f"| actual={record.actual_seconds}s paused={record.paused_seconds}s | {record.description}"
        )
    if stats.get("bad_records_skipped"):
        print(f"bad_records_skipped={stats['bad_records_skipped']}")
    return 0


def _cmd_totals(args: argparse.Namespace) -> int:
    session_log, _stats = _load_log(_store())
    totals = session_log.totals(datetime.now()).to_dict()
    if args.today:
        totals = {key: value for key, value in totals.items() if key.startswith("today_")}
    print(json.dumps(totals, ensure_ascii=False, indent=2))
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    session_log, _stats = _load_log(_store())
    text = export_csv(session_log.records())
    out = getattr(args, "out", None)
    if not out:
        print(text, end="")
        return 0
    target = Path(out)
    if target.is_dir():
        target = target / export_filename(datetime.now().date())
    target.write_text(text, encoding="utf-8")
    print(f"exported records={len(session_log)} path={target}")
    return 0


def _cmd_config(_args: argparse.Namespace) -> int:
    cfg = PomotodoConfig.from_env()
    payload = {
        "data_dir": str(cfg.data_dir),
        "tick_ms": cfg.tick_ms,
        "catch_up_limit": cfg.catch_up_limit,
        "recent_limit": cfg.recent_limit,
        "alarm_enabled": cfg.alarm_enabled,
        "log_level": cfg.log_level,
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_clear(args: argparse.Namespace) -> int:
    if not args.yes:
        print("refusing to clear history without --yes")
        return 2
    store = _store()
    session_log, _stats = _load_log(store)
    cleared = len(session_log)
    session_log.clear()
    ActiveStateStorage(store).save(None)
    print(f"cleared records={cleared}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m pomotodo_app.debug")
    subparsers = parser.add_subparsers(dest="cmd", required=True)

    p_status = subparsers.add_parser("status", help="Show the stored active phase")
    p_status.set_defaults(func=_cmd_status)

    p_history = subparsers.add_parser("history", help="Show recent completed phases")
    p_history.add_argument("--n", type=int, default=20)
    p_history.set_defaults(func=_cmd_history)

    p_totals = subparsers.add_parser("totals", help="Show work/rest totals")
    p_totals.add_argument("--today", action="store_true")
    p_totals.set_defaults(func=_cmd_totals)

    p_export = subparsers.add_parser("export", help="Export history as CSV")
    p_export.add_argument("--out", default="", help="file or directory; stdout when omitted")
    p_export.set_defaults(func=_cmd_export)

    p_config = subparsers.add_parser("config", help="Show effective config")
    p_config.set_defaults(func=_cmd_config)

    p_clear = subparsers.add_parser("clear", help="Delete history and the active phase")
    p_clear.add_argument("--yes", action="store_true")
    p_clear.set_defaults(func=_cmd_clear)

    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
