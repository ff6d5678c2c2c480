from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pomotodo_app.config import PomotodoConfig
from pomotodo_app.core.state import STATUS_IDLE, STATUS_READY
from pomotodo_app.persistence.active_state_json import ActiveStateStorage
from pomotodo_app.persistence.kv_store import JsonKeyValueStore, KeyValueStore
from pomotodo_app.persistence.prefs_json import PrefsStorage
from pomotodo_app.persistence.session_log_json import SessionLogStorage
from pomotodo_app.services.catch_up import CatchUpReplayer
from pomotodo_app.services.csv_export import export_csv
from pomotodo_app.services.phase_clock import PhaseEvent
from pomotodo_app.ui.renderer import Renderer, format_mmss

LOGGER = logging.getLogger(__name__)

CLEAR_HISTORY_PROMPT = "Clear all saved session history? This cannot be undone."


class PomotodoController:
    def __init__(self, config: PomotodoConfig, store: KeyValueStore | None = None, now_ms=None, shell=None) -> None:
        self.config = config
        self.store = store if store is not None else JsonKeyValueStore(config.data_dir)
        self.prefs_storage = PrefsStorage(self.store)
        self.log_storage = SessionLogStorage(self.store)
        self.active_storage = ActiveStateStorage(self.store)
        self.replayer = CatchUpReplayer(limit=config.catch_up_limit)
        self.renderer = Renderer()

        restored = self.replayer.restore(
            prefs_storage=self.prefs_storage,
            log_storage=self.log_storage,
            active_storage=self.active_storage,
            now_ms=now_ms,
        )
        self.clock = restored.clock
        self.session_log = restored.session_log
        self.prefs = restored.prefs
        self.pending_description_id: str | None = None
        self._note = restored.integrity_note
        self._note_is_error = bool(restored.integrity_issues)

        self.shell = shell if shell is not None else self._create_shell()

    def _create_shell(self):
        from pomotodo_app.ui.shell_qt import PomotodoShell

        return PomotodoShell(
            on_select_preset=self.on_select_preset,
            on_start=self.on_start,
            on_pause_resume=self.on_pause_resume,
            on_reset=self.on_reset,
            on_export=self.on_export,
            on_clear_history=self.on_clear_history,
            on_description=self.on_description,
            on_quit=self.on_quit,
        )

    @property
    def selected_preset_key(self) -> str:
        return str(self.prefs.get("selected_preset_key"))

    def _set_note(self, text: str, is_error: bool = False) -> None:
        self._note = text
        self._note_is_error = is_error

    def _save_prefs(self) -> None:
        try:
            self.prefs_storage.save(self.prefs)
        except OSError as exc:
            LOGGER.warning("prefs write failed error=%s", exc)
            self._set_note("Failed to save preferences.", is_error=True)

    def _close_description_prompt(self) -> None:
        self.pending_description_id = None
        self.shell.close_description_prompt()

    def _handle_events(self, events: list[PhaseEvent]) -> None:
        note = self.renderer.note_for_events(events)
        if note is not None:
            warned = any(name == "storage_warning" for name, _ in events)
            self._set_note(note, is_error=warned)

        for name, payload in events:
            if name == "alarm" and self.config.alarm_enabled:
                self.shell.beep_alarm()
            elif name == "description_prompt":
                self.pending_description_id = str(payload["record_id"])
                self.shell.prompt_description()
            elif name == "phase_complete" and payload.get("type") != "work":
                self._close_description_prompt()

    def refresh(self, full: bool = True) -> None:
        view = self.clock.view(self.selected_preset_key)
        kwargs: dict = {}
        if full:
            today, overall = self.renderer.totals_text(self.session_log.totals(datetime.now()))
            kwargs["today_totals"] = today
            kwargs["all_totals"] = overall
            kwargs["recent_rows"] = [
                self.renderer.recent_row(record) for record in self.session_log.recent(self.config.recent_limit)
            ]
            kwargs["note"] = self._note
            kwargs["note_is_error"] = self._note_is_error
        self.shell.update_view(
            status_line=self.renderer.status_line(view),
            time_text=format_mmss(view.remaining_s),
            title=self.renderer.window_title(view),
            phase_text=self.renderer.phase_label(view.phase_type),
            cycle_text=str(view.cycle_number),
            work_text=self.renderer.work_progress(view),
            next_text=self.renderer.next_text(view),
            status=view.status,
            preset_key=view.preset_key if view.status != STATUS_IDLE else self.selected_preset_key,
            **kwargs,
        )

    def on_select_preset(self, preset_key: str) -> None:
        if self.clock.is_active:
            self.refresh()
            return
        self.prefs["selected_preset_key"] = preset_key
        self._save_prefs()
        self._handle_events(self.clock.retarget_ready(preset_key))
        self.refresh()

    def on_start(self) -> None:
        self._close_description_prompt()
        if self.clock.status == STATUS_READY:
            events = self.clock.start_ready()
            self._set_note("Started.")
        elif self.clock.status == STATUS_IDLE:
            self._save_prefs()
            events = self.clock.start(self.selected_preset_key)
            self._set_note("Started: Work")
        else:
            return
        self._handle_events(events)
        self.refresh()

    def on_pause_resume(self) -> None:
        events = self.clock.toggle_pause()
        if not events:
            return
        self._set_note("Paused." if events[0][0] == "phase_pause" else "Resumed.")
        self._handle_events(events)
        self.refresh()

    def on_reset(self) -> None:
        self._close_description_prompt()
        events = self.clock.reset()
        self._set_note("Reset.")
        self._handle_events(events)
        self.refresh()

    def on_export(self, path: Path) -> None:
        target = Path(path)
        try:
            target.write_text(export_csv(self.session_log.records()), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("export failed path=%s error=%s", target, exc)
            self._set_note(f"Export failed: {exc}", is_error=True)
        else:
            self._set_note(f"Exported: {target.name}")
        self.refresh()

    def on_clear_history(self) -> None:
        if not self.shell.confirm(CLEAR_HISTORY_PROMPT):
            return
        saved = self.session_log.clear()
        self._close_description_prompt()
        events = self.clock.reset()
        self._set_note("History cleared.")
        self._handle_events(events)
        if not saved:
            self._set_note("Failed to save session history.", is_error=True)
        self.refresh()

    def on_description(self, text: str | None) -> None:
        record_id = self.pending_description_id
        self._close_description_prompt()
        if record_id is None:
            return
        if not self.session_log.resolve_description(record_id, text):
            self._set_note("Saved, but failed to persist description.", is_error=True)
        self.refresh()

    def on_tick(self) -> None:
        events = self.clock.check_completion()
        if events:
            self._handle_events(events)
            self.refresh()
            return
        self.refresh(full=False)

    def on_quit(self) -> None:
        self.shell.cancel_schedules()

    def run(self) -> None:
        self.refresh()
        self.shell.schedule_every(self.config.tick_ms, self.on_tick)
        self.shell.run()


def create_default_controller() -> PomotodoController:
    config = PomotodoConfig.from_env()
    if config.data_dir.exists() and not config.data_dir.is_dir():
        raise SystemExit(f"[pomotodo] data dir is not a directory: {config.data_dir}")
    return PomotodoController(config=config)


def main() -> int:
    config = PomotodoConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    controller = create_default_controller()
    controller.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
