from __future__ import annotations
import json
import re
from pathlib import Path
from typing import Any, Dict, Optional
from .utils import save_json, session_dir
from .logger import get_logger

log = get_logger("Storage")

_UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore:
    """
    Persistence port: get / set / remove of JSON-serializable values.
    get() returns None for missing keys and for values that fail to deserialize.
    """

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    # values are kept serialized so both stores behave the same on odd input
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("corrupt value for %r, treated as absent", key)
            return None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def set_raw(self, key: str, raw: str) -> None:
        self._data[key] = raw

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """One <key>.json file per key under a directory (the user data dir by default)."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else session_dir()

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_RE.sub('_', key)}.json"

    def get(self, key: str) -> Optional[Any]:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            with open(p, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            log.warning("could not read %s (%s), treated as absent", p.name, e)
            return None

    def set(self, key: str, value: Any) -> None:
        save_json(self._path(key), value)

    def remove(self, key: str) -> None:
        p = self._path(key)
        try:
            p.unlink()
        except FileNotFoundError:
            pass
