"""Key-value stores for the learner's last active content item.

One key per (learner, course) pair. Writes are synchronous: once
``set`` returns, the new position is what the next ``get`` sees.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

import structlog

from course_sequencer.config import settings

logger = structlog.get_logger()


def position_key(learner_id: str, course_id: str) -> str:
    return f"course_progress:{learner_id}:{course_id}"


class PositionStore(Protocol):
    """Minimal key-value interface used by ``PositionResolver``.

    Swappable for a server-backed progress tracker without touching
    resolution logic.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryPositionStore:
    """Process-local store; contents are lost on exit."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFilePositionStore:
    """Positions kept in a single JSON object file.

    The whole file is rewritten on every change. A missing file is an
    empty store; an unreadable or corrupt file is logged and treated as
    empty rather than blocking the course view. A failed write is logged
    and the position is kept in memory only. Defaults to
    ``settings.position_store_path``.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = settings.position_store_path if path is None else path
        self._data = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "position_store_unreadable", path=str(self._path), error=str(exc)
            )
            return {}
        if not isinstance(raw, dict):
            logger.warning("position_store_not_an_object", path=str(self._path))
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _write(self) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(self._data, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
            tmp.replace(self._path)
        except OSError as exc:
            logger.warning(
                "position_store_unwritable", path=str(self._path), error=str(exc)
            )
