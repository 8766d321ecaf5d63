"""Request fingerprinting and the LRU response cache."""
import hashlib
import threading
from collections import OrderedDict
from collections.abc import Mapping
from enum import Enum
from typing import Any, Hashable, Optional

import orjson
from pydantic import BaseModel

from wynnplanner.constants import DEFAULT_RESPONSE_CACHE_SIZE


def canonicalize(obj: Any, _ancestors: Optional[set[int]] = None) -> Any:
    """JSON-ready copy of obj with stable ordering.

    Pydantic models are dumped, sets become sorted lists, and a container
    that contains itself is replaced by None where the cycle closes.
    """
    ancestors = _ancestors if _ancestors is not None else set()

    if isinstance(obj, BaseModel):
        obj = obj.model_dump(mode="json")
    if isinstance(obj, Enum):
        return obj.value
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (Mapping, list, tuple, set, frozenset)):
        marker = id(obj)
        if marker in ancestors:
            return None
        ancestors.add(marker)
        try:
            if isinstance(obj, Mapping):
                return {str(k): canonicalize(v, ancestors) for k, v in obj.items()}
            if isinstance(obj, (set, frozenset)):
                members = [canonicalize(v, ancestors) for v in obj]
                return sorted(members, key=lambda m: orjson.dumps(m, option=orjson.OPT_SORT_KEYS))
            return [canonicalize(v, ancestors) for v in obj]
        finally:
            ancestors.discard(marker)

    return str(obj)


def fingerprint(obj: Any) -> str:
    """Stable SHA-256 key: logically equal requests hash equally regardless of key order."""
    payload = orjson.dumps(canonicalize(obj), option=orjson.OPT_SORT_KEYS)
    return hashlib.sha256(payload).hexdigest()


class ResponseCache:
    """Thread-safe LRU of computed responses.

    get() and set() both mark an entry as most recently used; once the cache
    holds more than `capacity` entries the least recently used are evicted.
    """

    def __init__(self, capacity: int = DEFAULT_RESPONSE_CACHE_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            if key not in self._entries:
                return default
            self._entries.move_to_end(key)
            return self._entries[key]

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[Hashable]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries.keys())

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
