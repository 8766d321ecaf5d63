"""Durable storage for the raw item payload (JSON file with mtime as age)."""
import logging
import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import NamedTuple, Optional, Protocol

import orjson

logger = logging.getLogger(__name__)


class StoredSnapshot(NamedTuple):
    """Raw payload read back from durable storage."""
    payload: dict
    age_seconds: float


class SnapshotStore(Protocol):
    def read(self) -> Optional[StoredSnapshot]: ...

    def write(self, payload: dict) -> None: ...


class FileSnapshotStore:
    """Persists the raw item payload to a single JSON file.

    read() returns None for a missing or unreadable file; write() raises
    OSError so callers can decide how much a failed write matters.
    """

    def __init__(self, file_path: Path, clock: Callable[[], float] = time.time):
        self.file_path = Path(file_path)
        self._clock = clock

    def read(self) -> Optional[StoredSnapshot]:
        try:
            mtime = self.file_path.stat().st_mtime
            raw = orjson.loads(self.file_path.read_bytes())
        except FileNotFoundError:
            return None
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable item cache %s: %s", self.file_path, e)
            return None
        if not isinstance(raw, dict):
            logger.warning("Ignoring item cache %s: top level is not an object", self.file_path)
            return None
        return StoredSnapshot(payload=raw, age_seconds=max(0.0, self._clock() - mtime))

    def write(self, payload: dict) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        tmp_path.write_bytes(orjson.dumps(payload))
        os.replace(tmp_path, self.file_path)
