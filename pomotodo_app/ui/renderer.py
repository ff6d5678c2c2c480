from __future__ import annotations

from pomotodo_app.core.presets import WORKS_PER_CYCLE
from pomotodo_app.core.records import DEFAULT_WORK_DESCRIPTION, SessionRecord, parse_iso
from pomotodo_app.services.phase_clock import PhaseView
from pomotodo_app.services.session_log import SessionTotals

PHASE_LABELS = {
    "work": "Work",
    "short_break": "Short Rest",
    "long_break": "Long Rest",
}

STATUS_LABELS = {
    "running": "Running",
    "paused": "Paused",
    "ready": "Ready",
}


def format_mmss(total_seconds: int | float | None) -> str:
    seconds = max(0, int(total_seconds or 0))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_hhmm(total_seconds: int | float) -> str:
    seconds = max(0, int(total_seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours <= 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"


def format_local_datetime(ts: str) -> str:
    parsed = parse_iso(ts)
    if parsed is None:
        return ts
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


class Renderer:
    def phase_label(self, phase_type: str) -> str:
        return PHASE_LABELS.get(phase_type, phase_type)

    def status_line(self, view: PhaseView) -> str:
        if view.status == "idle":
            return "Mode: Idle"
        run_label = STATUS_LABELS.get(view.status, view.status)
        return f"Mode: {self.phase_label(view.phase_type)} · {run_label}"

    def work_progress(self, view: PhaseView) -> str:
        if view.work_index is None:
            return "—"
        return f"{view.work_index} / {WORKS_PER_CYCLE}"

    def next_text(self, view: PhaseView) -> str:
        return f"{self.phase_label(view.next_phase_type)} ({format_mmss(view.next_planned_seconds)})"

    def window_title(self, view: PhaseView) -> str:
        if view.status == "idle":
            return "Pomotodo"
        return f"{format_mmss(view.remaining_s)} · {self.phase_label(view.phase_type)}"

    def totals_text(self, totals: SessionTotals) -> tuple[str, str]:
        today = f"work {format_hhmm(totals.today_work_seconds)}, rest {format_hhmm(totals.today_rest_seconds)}"
        overall = f"work {format_hhmm(totals.all_work_seconds)}, rest {format_hhmm(totals.all_rest_seconds)}"
        return today, overall

    def recent_row(self, record: SessionRecord) -> list[str]:
        description = record.description if record.is_work else ""
        if record.is_work and not description:
            description = DEFAULT_WORK_DESCRIPTION
        if len(description) > 44:
            description = f"{description[:41]}…"
        return [
            format_local_datetime(record.started_at),
            format_local_datetime(record.ended_at),
            self.phase_label(record.type),
            description,
            f"{round(record.planned_seconds / 60)}m",
            format_mmss(record.actual_seconds),
            format_mmss(record.paused_seconds),
        ]

    def note_for_events(self, events: list[tuple[str, dict]]) -> str | None:
        note: str | None = None
        for name, payload in events:
            if name == "phase_complete" and not payload.get("catch_up"):
                if payload.get("type") == "work":
                    note = "Work finished. Rest started."
                else:
                    note = "Break finished. Ready for the next session. Click Start."
            elif name == "storage_warning":
                return str(payload.get("message", "Storage write failed."))
        return note
