from __future__ import annotations

import json

from pomotodo_app.core.presets import DEFAULT_PRESET_KEY, is_known_preset
from pomotodo_app.persistence.keys import PREFS_KEY
from pomotodo_app.persistence.kv_store import KeyValueStore


def default_prefs() -> dict:
    return {"selected_preset_key": DEFAULT_PRESET_KEY}


class PrefsStorage:
    def __init__(self, store: KeyValueStore, key: str = PREFS_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> dict:
        raw = self.store.get(self.key)
        if raw is None:
            return default_prefs()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return default_prefs()
        if not isinstance(payload, dict):
            return default_prefs()

        prefs = default_prefs()
        selected = payload.get("selected_preset_key")
        if is_known_preset(selected):
            prefs["selected_preset_key"] = selected
        return prefs

    def save(self, prefs: dict) -> None:
        selected = prefs.get("selected_preset_key")
        payload = {"selected_preset_key": selected if is_known_preset(selected) else DEFAULT_PRESET_KEY}
        self.store.set(self.key, json.dumps(payload, ensure_ascii=True))
