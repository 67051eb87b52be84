"""Client-local durable key/value storage (string keys, JSON values)."""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import orjson

logger = logging.getLogger(__name__)


class MemoryStore:
    """Non-durable store with the same interface as ``LocalStore``."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, bytes] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return orjson.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = orjson.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: object) -> bool:
        return key in self._data


class LocalStore(MemoryStore):
    """JSON-file backed store; every ``set``/``delete`` is written through to disk."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            payload = orjson.loads(self.path.read_bytes())
        except orjson.JSONDecodeError:
            logger.warning("Ignoring unreadable store file %s", self.path)
            return
        if not isinstance(payload, dict):
            logger.warning("Ignoring store file %s: top level is not an object", self.path)
            return
        for key, value in payload.items():
            self._data[str(key)] = orjson.dumps(value)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: orjson.loads(raw) for key, raw in self._data.items()}
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            super().delete(key)
            self._flush()
