import json

from pomotodo_app import debug
from pomotodo_app.core.records import SessionRecord
from pomotodo_app.core.state import ReadyPhase
from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.persistence.kv_store import JsonKeyValueStore
from pomotodo_app.persistence.session_log_json import SessionLogStorage


def _seed_history(data_dir) -> None:
    SessionLogStorage(JsonKeyValueStore(data_dir)).save(
        [
            SessionRecord(
                id=f"rec-{index}",
                preset_key="25_5",
                cycle_number=1,
                work_index=1,
                type="work",
                description=f"task {index}",
                planned_seconds=1500,
                actual_seconds=1500,
                paused_seconds=0,
                started_at="2026-03-10T09:00:00.000+00:00",
                ended_at="2026-03-10T09:25:00.000+00:00",
                created_at="2026-03-10T09:25:00.000+00:00",
            )
            for index in range(3)
        ]
    )


def test_debug_config_reads_env(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("POMOTODO_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("POMOTODO_TICK_MS", "10")
    monkeypatch.setenv("POMOTODO_ALARM", "off")
    rc = debug.main(["config"])
    payload = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert payload["data_dir"] == str(tmp_path)
    assert payload["tick_ms"] == 50
    assert payload["alarm_enabled"] is False


def test_debug_status_outputs_expected_keys(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("POMOTODO_DATA_DIR", str(tmp_path))
    ActiveStateStorage(JsonKeyValueStore(tmp_path)).save(
        ReadyPhase(preset_key="30_5", cycle_number=2, work_index=3, phase_type="work", planned_seconds=1800)
    )
    rc = debug.main(["status"])
    payload = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert payload["status"] == "ready"
    assert payload["rejected"] is False
    assert payload["remaining_s"] == 1800
    assert payload["overdue"] is False
    assert payload["active"]["cycle_number"] == 2


def test_debug_status_idle_when_empty(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("POMOTODO_DATA_DIR", str(tmp_path))
    rc = debug.main(["status"])
    payload = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert payload["status"] == "idle"
    assert payload["active"] is None
    assert payload["selected_preset_key"] == "25_5"


def test_debug_history_and_export(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("POMOTODO_DATA_DIR", str(tmp_path))
    _seed_history(tmp_path)

    assert debug.main(["history", "--n", "2"]) == 0
    out = capsys.readouterr().out.strip().splitlines()
    assert len(out) == 2
    assert out[0].endswith("task 2")

    out_dir = tmp_path / "exports"
    out_dir.mkdir()
    assert debug.main(["export", "--out", str(out_dir)]) == 0
    exported = list(out_dir.glob("pomotodo-sessions-*.csv"))
    assert len(exported) == 1
    assert len(exported[0].read_text(encoding="utf-8").splitlines()) == 4


def test_debug_clear_needs_yes(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("POMOTODO_DATA_DIR", str(tmp_path))
    _seed_history(tmp_path)

    assert debug.main(["clear"]) == 2
    assert debug.main(["clear", "--yes"]) == 0
    out = capsys.readouterr().out
    assert "cleared records=3" in out
    assert SessionLogStorage(JsonKeyValueStore(tmp_path)).load() == []
