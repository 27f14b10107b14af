from __future__ import annotations
import io
from contextlib import contextmanager
from datetime import date
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator, List, Optional, Set, TextIO

from settings import get_settings


def reading_log_key(owner_id: str, day: date) -> str:
    """Object key of an owner's sensor log (``sensor,timestamp,value``) for one day."""
    return f"{owner_id}/readings/{day.isoformat()}.csv"


def feed_log_key(owner_id: str, day: date) -> str:
    """Object key of an owner's feed log (``timestamp,amount_kg``) for one day."""
    return f"{owner_id}/feed/{day.isoformat()}.csv"


class LogArchive:
    """Bucket of raw CSV logs, optionally mirrored to a directory on disk."""

    def __init__(self, name: str, root_path: Optional[Path] = None) -> None:
        self.name = name
        self._objects: Dict[str, bytes] = {}
        self._known_keys: Set[str] = set()
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)
            self._load_existing_keys()

    def put_object(self, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[key] = data
            self._known_keys.add(key)
            if self.root_path:
                path = self.root_path / key
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)

    def has_object(self, key: str) -> bool:
        with self._lock:
            if key in self._objects:
                return True
        return bool(self.root_path and (self.root_path / key).is_file())

    def get_object(self, key: str) -> bytes:
        with self._lock:
            data = self._objects.get(key)
            if data is not None:
                return data

        if self.root_path:
            path = self.root_path / key
            if path.exists():
                data = path.read_bytes()
                with self._lock:
                    self._objects[key] = data
                    self._known_keys.add(key)
                return data

        raise KeyError(f"Object with key {key!r} not found in archive {self.name!r}.")

    @contextmanager
    def open_text_object(
        self, key: str, encoding: str = "utf-8-sig", newline: Optional[str] = ""
    ) -> Iterator[TextIO]:
        """Yield a streaming text handle for the stored log."""

        if self.root_path:
            path = self.root_path / key
            if path.exists():
                with path.open("r", encoding=encoding, newline=newline) as handle:
                    yield handle
                return

        data = self.get_object(key)
        buffer = io.StringIO(data.decode(encoding), newline=newline)
        try:
            yield buffer
        finally:
            buffer.close()

    def list_objects(self, prefix: str = "") -> List[str]:
        with self._lock:
            keys = set(self._known_keys)
            keys.update(self._objects.keys())

        if self.root_path:
            for path in self.root_path.rglob("*"):
                if path.is_file():
                    keys.add(path.relative_to(self.root_path).as_posix())

        return sorted(key for key in keys if key.startswith(prefix))

    def _load_existing_keys(self) -> None:
        assert self.root_path is not None
        for path in self.root_path.rglob("*"):
            if path.is_file():
                key = path.relative_to(self.root_path).as_posix()
                self._known_keys.add(key)


@lru_cache
def build_default_archive(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> LogArchive:
    settings = get_settings()
    archive_root = settings.archive_root if root_path is None else root_path
    path = Path(archive_root) if archive_root else None
    return LogArchive(name=name or "sensor-logs", root_path=path)
