from __future__ import annotations

import json
import logging

from pomotodo_app.core.state import ActiveState, InvalidActiveState, active_state_from_dict
from pomotodo_app.persistence.keys import ACTIVE_KEY
from pomotodo_app.persistence.kv_store import KeyValueStore

LOGGER = logging.getLogger(__name__)


class ActiveStateStorage:
    def __init__(self, store: KeyValueStore, key: str = ACTIVE_KEY) -> None:
        self.store = store
        self.key = key
        self._last_load_rejected = False

    def load(self) -> ActiveState | None:
        self._last_load_rejected = False
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._last_load_rejected = True
            LOGGER.warning("active state unreadable error=%s", exc.msg)
            return None
        if payload is None:
            return None
        try:
            return active_state_from_dict(payload)
        except InvalidActiveState as exc:
            self._last_load_rejected = True
            LOGGER.warning("active state rejected reason=%s", exc)
            return None

    def last_load_rejected(self) -> bool:
        return self._last_load_rejected

    def save(self, state: ActiveState | None) -> None:
        if state is None:
            self.store.remove(self.key)
            return
        self.store.set(self.key, json.dumps(state.to_dict(), ensure_ascii=True))
