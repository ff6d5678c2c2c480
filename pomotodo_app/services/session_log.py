from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from pomotodo_app.core.records import DEFAULT_WORK_DESCRIPTION, SessionRecord, parse_iso
from pomotodo_app.persistence.session_log_json import SessionLogStorage

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTotals:
    today_work_seconds: int = 0
    today_rest_seconds: int = 0
    all_work_seconds: int = 0
    all_rest_seconds: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "today_work_seconds": self.today_work_seconds,
            "today_rest_seconds": self.today_rest_seconds,
            "all_work_seconds": self.all_work_seconds,
            "all_rest_seconds": self.all_rest_seconds,
        }


def _local_date(moment: datetime):
    return moment.astimezone().date()


class SessionLog:
    """Completed phases in completion order, written through on every change.

    Mutators return ``False`` when the write failed; the in-memory list is
    kept either way and the next successful write re-syncs storage.
    """

    def __init__(self, storage: SessionLogStorage | None = None, records: list[SessionRecord] | None = None) -> None:
        self.storage = storage
        self._records: list[SessionRecord] = list(records or [])

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(list(self._records))

    def records(self) -> list[SessionRecord]:
        return list(self._records)

    def get(self, record_id: str) -> SessionRecord | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def append(self, record: SessionRecord) -> bool:
        self._records.append(record)
        return self._persist()

    def edit_description(self, record_id: str, text: str) -> bool:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                self._records[index] = record.with_description(text)
                return self._persist()
        return True

    def resolve_description(self, record_id: str, text: str | None) -> bool:
        """Apply a description prompt answer; blank or skipped answers use the placeholder."""
        trimmed = (text or "").strip()
        return self.edit_description(record_id, trimmed or DEFAULT_WORK_DESCRIPTION)

    def clear(self) -> bool:
        self._records = []
        return self._persist()

    def recent(self, n: int) -> list[SessionRecord]:
        if n <= 0:
            return []
        return list(reversed(self._records[-n:]))

    def totals(self, as_of: datetime) -> SessionTotals:
        today = _local_date(as_of)
        today_work = today_rest = all_work = all_rest = 0
        for record in self._records:
            seconds = max(0, int(record.actual_seconds))
            if record.is_work:
                all_work += seconds
            else:
                all_rest += seconds

            started = parse_iso(record.started_at)
            if started is None or _local_date(started) != today:
                continue
            if record.is_work:
                today_work += seconds
            else:
                today_rest += seconds

        return SessionTotals(
            today_work_seconds=today_work,
            today_rest_seconds=today_rest,
            all_work_seconds=all_work,
            all_rest_seconds=all_rest,
        )

    def _persist(self) -> bool:
        if self.storage is None:
            return True
        try:
            self.storage.save(self._records)
        except OSError as exc:
            LOGGER.warning("session log write failed records=%s error=%s", len(self._records), exc)
            return False
        return True
