from __future__ import annotations

import json
import logging

from pomotodo_app.core.records import SessionRecord
from pomotodo_app.persistence.keys import SESSIONS_KEY
from pomotodo_app.persistence.kv_store import KeyValueStore

LOGGER = logging.getLogger(__name__)


class SessionLogStorage:
    def __init__(self, store: KeyValueStore, key: str = SESSIONS_KEY) -> None:
        self.store = store
        self.key = key
        self._last_read_bad_records = 0
        self._last_read_malformed = False

    def load(self) -> list[SessionRecord]:
        self._last_read_bad_records = 0
        self._last_read_malformed = False
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._last_read_malformed = True
            LOGGER.warning("session log unreadable error=%s", exc.msg)
            return []
        if not isinstance(payload, list):
            self._last_read_malformed = True
            LOGGER.warning("session log is not a list type=%s", type(payload).__name__)
            return []

        records: list[SessionRecord] = []
        for index, item in enumerate(payload):
            try:
                records.append(SessionRecord.from_dict(item))
            except (TypeError, ValueError) as exc:
                self._last_read_bad_records += 1
                LOGGER.warning("session log bad record index=%s error=%s", index, exc)
        return records

    def last_read_stats(self) -> dict[str, int]:
        return {
            "bad_records_skipped": self._last_read_bad_records,
            "malformed": int(self._last_read_malformed),
        }

    def save(self, records: list[SessionRecord]) -> None:
        payload = [record.to_dict() for record in records]
        self.store.set(self.key, json.dumps(payload, ensure_ascii=True))
