from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _default_data_dir() -> Path:
    override = os.getenv("POMOTODO_DATA_DIR", "").strip()
    if override:
        return Path(override)

    system = platform.system().lower()
    if system == "windows":
        appdata = os.getenv("APPDATA", "").strip()
        if appdata:
            return Path(appdata) / "pomotodo"
    home = Path.home()
    return home / ".pomotodo"


@dataclass(frozen=True)
class PomotodoConfig:
    data_dir: Path
    tick_ms: int
    catch_up_limit: int
    recent_limit: int
    alarm_enabled: bool
    log_level: str

    @classmethod
    def from_env(cls) -> "PomotodoConfig":
        log_level = os.getenv("POMOTODO_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        return cls(
            data_dir=_default_data_dir(),
            # Re-check cadence only; phase math never counts ticks.
            tick_ms=max(50, _env_int("POMOTODO_TICK_MS", 250)),
            catch_up_limit=max(1, _env_int("POMOTODO_CATCH_UP_LIMIT", 1000)),
            recent_limit=max(1, _env_int("POMOTODO_RECENT_LIMIT", 20)),
            alarm_enabled=_env_flag("POMOTODO_ALARM", True),
            log_level=log_level,
        )
