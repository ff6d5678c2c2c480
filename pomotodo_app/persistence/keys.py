from __future__ import annotations

PREFS_KEY = "pomotodo:prefs:v1"
ACTIVE_KEY = "pomotodo:active:v1"
SESSIONS_KEY = "pomotodo:sessions:v1"
