from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import date

from pomotodo_app.core.records import SessionRecord

CSV_COLUMNS = [
    "id",
    "preset_key",
    "cycle_number",
    "work_index",
    "type",
    "description",
    "planned_seconds",
    "actual_seconds",
    "paused_seconds",
    "started_at_iso",
    "ended_at_iso",
]


def _row(record: SessionRecord) -> list[object]:
    return [
        record.id,
        record.preset_key,
        record.cycle_number,
        "" if record.work_index is None else record.work_index,
        record.type,
        record.description or "",
        record.planned_seconds,
        record.actual_seconds,
        record.paused_seconds,
        record.started_at,
        record.ended_at,
    ]


def export_csv(records: Iterable[SessionRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in records:
        writer.writerow(_row(record))
    return buffer.getvalue()


def export_filename(today: date) -> str:
    return f"pomotodo-sessions-{today.isoformat()}.csv"
