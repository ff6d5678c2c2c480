from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import date
from pathlib import Path

from PySide6 import QtCore, QtGui, QtWidgets

from pomotodo_app.core.presets import PRESETS
from pomotodo_app.services.csv_export import export_filename


class PomotodoShell:
    def __init__(
        self,
        on_select_preset: Callable[[str], None],
        on_start: Callable[[], None],
        on_pause_resume: Callable[[], None],
        on_reset: Callable[[], None],
        on_export: Callable[[Path], None],
        on_clear_history: Callable[[], None],
        on_description: Callable[[str | None], None],
        on_quit: Callable[[], None] | None = None,
    ) -> None:
        self._app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)
        self._win = _PomotodoWindow(
            on_select_preset,
            on_start,
            on_pause_resume,
            on_reset,
            on_export,
            on_clear_history,
            on_description,
            on_quit,
        )

    def schedule_every(self, milliseconds: int, callback: Callable[[], None]) -> QtCore.QTimer:
        timer = QtCore.QTimer(self._win)
        timer.setInterval(max(1, int(milliseconds)))
        timer.timeout.connect(callback)
        timer.start()
        self._win._timers.append(timer)
        return timer

    def cancel_schedules(self) -> None:
        for timer in self._win._timers:
            timer.stop()
        self._win._timers.clear()

    def update_view(
        self,
        status_line: str,
        time_text: str,
        title: str,
        phase_text: str,
        cycle_text: str,
        work_text: str,
        next_text: str,
        status: str,
        preset_key: str,
        today_totals: str | None = None,
        all_totals: str | None = None,
        recent_rows: list[list[str]] | None = None,
        note: str | None = None,
        note_is_error: bool = False,
    ) -> None:
        self._win.set_phase(status_line, time_text, title, phase_text, cycle_text, work_text, next_text)
        self._win.set_controls(status, preset_key)
        if today_totals is not None and all_totals is not None:
            self._win.set_totals(today_totals, all_totals)
        if recent_rows is not None:
            self._win.set_recent(recent_rows)
        if note is not None:
            self._win.show_note(note, is_error=note_is_error)

    def prompt_description(self) -> None:
        self._win.open_description_prompt()

    def close_description_prompt(self) -> None:
        self._win.close_description_prompt()

    def confirm(self, message: str) -> bool:
        answer = QtWidgets.QMessageBox.question(
            self._win,
            "Pomotodo",
            message,
            QtWidgets.QMessageBox.Yes | QtWidgets.QMessageBox.No,
            QtWidgets.QMessageBox.No,
        )
        return answer == QtWidgets.QMessageBox.Yes

    def beep_alarm(self, count: int = 3, gap_ms: int = 200) -> None:
        for index in range(max(1, count)):
            QtCore.QTimer.singleShot(index * gap_ms, QtWidgets.QApplication.beep)

    def run(self) -> None:
        self._win.show()
        self._win.raise_()
        self._win.activateWindow()
        self._app.exec()


class _PomotodoWindow(QtWidgets.QWidget):
    def __init__(
        self,
        on_select_preset: Callable[[str], None],
        on_start: Callable[[], None],
        on_pause_resume: Callable[[], None],
        on_reset: Callable[[], None],
        on_export: Callable[[Path], None],
        on_clear_history: Callable[[], None],
        on_description: Callable[[str | None], None],
        on_quit: Callable[[], None] | None,
    ) -> None:
        super().__init__()
        self._on_select_preset = on_select_preset
        self._on_start = on_start
        self._on_pause_resume = on_pause_resume
        self._on_reset = on_reset
        self._on_export = on_export
        self._on_clear_history = on_clear_history
        self._on_description = on_description
        self._on_quit = on_quit
        self._timers: list[QtCore.QTimer] = []
        self._syncing_preset = False

        self.setWindowTitle("Pomotodo")
        self.setMinimumWidth(560)
        root = QtWidgets.QVBoxLayout(self)

        self._status_line = QtWidgets.QLabel("Mode: Idle", self)
        root.addWidget(self._status_line)

        preset_row = QtWidgets.QHBoxLayout()
        preset_row.addWidget(QtWidgets.QLabel("Preset", self))
        self._preset = QtWidgets.QComboBox(self)
        for key, preset in PRESETS.items():
            self._preset.addItem(f"{preset.work_minutes} / {preset.short_break_minutes}", key)
        self._preset.currentIndexChanged.connect(self._emit_preset)
        preset_row.addWidget(self._preset)
        preset_row.addStretch(1)
        root.addLayout(preset_row)

        self._time = QtWidgets.QLabel("25:00", self)
        font = self._time.font()
        font.setPointSize(40)
        font.setBold(True)
        self._time.setFont(font)
        self._time.setAlignment(QtCore.Qt.AlignCenter)
        root.addWidget(self._time)

        grid = QtWidgets.QFormLayout()
        self._phase = QtWidgets.QLabel(self)
        self._cycle = QtWidgets.QLabel(self)
        self._work = QtWidgets.QLabel(self)
        self._next = QtWidgets.QLabel(self)
        grid.addRow("Phase", self._phase)
        grid.addRow("Cycle", self._cycle)
        grid.addRow("Work", self._work)
        grid.addRow("Next", self._next)
        root.addLayout(grid)

        buttons = QtWidgets.QHBoxLayout()
        self._start_btn = QtWidgets.QPushButton("Start", self)
        self._start_btn.clicked.connect(self._on_start)
        self._pause_btn = QtWidgets.QPushButton("Pause", self)
        self._pause_btn.clicked.connect(self._on_pause_resume)
        self._reset_btn = QtWidgets.QPushButton("Reset", self)
        self._reset_btn.clicked.connect(self._on_reset)
        self._export_btn = QtWidgets.QPushButton("Export CSV", self)
        self._export_btn.clicked.connect(self._emit_export)
        self._clear_btn = QtWidgets.QPushButton("Clear History", self)
        self._clear_btn.clicked.connect(self._on_clear_history)
        for btn in (self._start_btn, self._pause_btn, self._reset_btn, self._export_btn, self._clear_btn):
            buttons.addWidget(btn)
        root.addLayout(buttons)

        self._desc_panel = QtWidgets.QWidget(self)
        desc_row = QtWidgets.QHBoxLayout(self._desc_panel)
        desc_row.setContentsMargins(0, 0, 0, 0)
        self._desc_input = QtWidgets.QLineEdit(self._desc_panel)
        self._desc_input.setPlaceholderText("What did you work on?")
        self._desc_input.returnPressed.connect(self._emit_description_save)
        desc_save = QtWidgets.QPushButton("Save", self._desc_panel)
        desc_save.clicked.connect(self._emit_description_save)
        desc_skip = QtWidgets.QPushButton("Skip", self._desc_panel)
        desc_skip.clicked.connect(self._emit_description_skip)
        desc_row.addWidget(self._desc_input, 1)
        desc_row.addWidget(desc_save)
        desc_row.addWidget(desc_skip)
        self._desc_panel.hide()
        root.addWidget(self._desc_panel)

        self._note = QtWidgets.QLabel("", self)
        self._note.setWordWrap(True)
        root.addWidget(self._note)

        totals = QtWidgets.QFormLayout()
        self._today_totals = QtWidgets.QLabel(self)
        self._all_totals = QtWidgets.QLabel(self)
        totals.addRow("Today", self._today_totals)
        totals.addRow("All time", self._all_totals)
        root.addLayout(totals)

        self._recent = QtWidgets.QTableWidget(0, 7, self)
        self._recent.setHorizontalHeaderLabels(["Start", "End", "Type", "Description", "Planned", "Actual", "Paused"])
        self._recent.setEditTriggers(QtWidgets.QAbstractItemView.NoEditTriggers)
        self._recent.verticalHeader().setVisible(False)
        self._recent.horizontalHeader().setStretchLastSection(True)
        root.addWidget(self._recent, 1)

    def set_phase(
        self,
        status_line: str,
        time_text: str,
        title: str,
        phase_text: str,
        cycle_text: str,
        work_text: str,
        next_text: str,
    ) -> None:
        self._status_line.setText(status_line)
        self._time.setText(time_text)
        self.setWindowTitle(title)
        self._phase.setText(phase_text)
        self._cycle.setText(cycle_text)
        self._work.setText(work_text)
        self._next.setText(next_text)

    def set_controls(self, status: str, preset_key: str) -> None:
        active = status in {"running", "paused"}
        self._preset.setEnabled(not active)
        self._start_btn.setEnabled(not active)
        self._pause_btn.setEnabled(active)
        self._pause_btn.setText("Resume" if status == "paused" else "Pause")
        self._reset_btn.setEnabled(status != "idle")

        index = self._preset.findData(preset_key)
        if index >= 0 and index != self._preset.currentIndex():
            self._syncing_preset = True
            self._preset.setCurrentIndex(index)
            self._syncing_preset = False

    def set_totals(self, today: str, overall: str) -> None:
        self._today_totals.setText(today)
        self._all_totals.setText(overall)

    def set_recent(self, rows: list[list[str]]) -> None:
        self._recent.setRowCount(len(rows))
        for row_idx, row in enumerate(rows):
            for col_idx, text in enumerate(row):
                self._recent.setItem(row_idx, col_idx, QtWidgets.QTableWidgetItem(text))

    def show_note(self, text: str, is_error: bool = False) -> None:
        self._note.setText(text)
        self._note.setStyleSheet("color: #b3261e;" if is_error else "")

    def open_description_prompt(self) -> None:
        self._desc_input.clear()
        self._desc_panel.show()
        self._desc_input.setFocus()

    def close_description_prompt(self) -> None:
        self._desc_panel.hide()

    def _emit_preset(self, _index: int) -> None:
        if self._syncing_preset:
            return
        key = self._preset.currentData()
        if key:
            self._on_select_preset(str(key))

    def _emit_export(self) -> None:
        suggested = export_filename(date.today())
        path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Export history", suggested, "CSV files (*.csv)")
        if path:
            self._on_export(Path(path))

    def _emit_description_save(self) -> None:
        self._on_description(self._desc_input.text())

    def _emit_description_skip(self) -> None:
        self._on_description(None)

    def closeEvent(self, e: QtGui.QCloseEvent) -> None:
        if self._on_quit is not None:
            self._on_quit()
        super().closeEvent(e)

    def keyPressEvent(self, e: QtGui.QKeyEvent) -> None:
        if e.key() == QtCore.Qt.Key_Escape and self._desc_panel.isVisible():
            self._emit_description_skip()
            e.accept()
            return
        super().keyPressEvent(e)
