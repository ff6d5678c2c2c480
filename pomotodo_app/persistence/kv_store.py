from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Protocol

LOGGER = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonKeyValueStore:
    """One text file per key under ``root``, replaced atomically on write."""

    def __init__(self, root: str | Path, fsync_writes: bool = True) -> None:
        self.root = Path(root)
        self.fsync_writes = fsync_writes

    def path_for(self, key: str) -> Path:
        name = _UNSAFE_KEY_CHARS.sub("_", key).strip("_") or "value"
        return self.root / f"{name}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("store read failed key=%s error=%s", key, exc)
            return None

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=str(path.parent)) as handle:
            handle.write(value)
            handle.flush()
            if self.fsync_writes:
                os.fsync(handle.fileno())
            tmp_path = Path(handle.name)
        try:
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.fail_writes = False

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("storage quota exceeded")
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)
