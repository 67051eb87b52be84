"""Load ``NAMAVRUKSHA_*`` defaults from a local ``.env`` file."""

from __future__ import annotations

import os
from pathlib import Path

_LOADED_PATHS: set[str] = set()


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def load_dotenv_once(path: str | Path = ".env") -> int:
    """Populate ``os.environ`` from ``path`` once per path; returns keys added.

    Accepts ``KEY=value`` and ``export KEY=value`` lines with optional quotes;
    blank lines and ``#`` comments are skipped. Variables already present in
    the environment win.
    """

    env_path = Path(path)
    marker = str(env_path.resolve())
    if marker in _LOADED_PATHS:
        return 0
    _LOADED_PATHS.add(marker)
    if not env_path.exists():
        return 0

    added = 0
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, value = line.split("=", 1)
        key = key.strip()
        if key and key not in os.environ:
            os.environ[key] = _unquote(value.strip())
            added += 1
    return added
