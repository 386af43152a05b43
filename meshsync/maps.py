"""Thread-safe string maps used as caches by the controllers."""

from __future__ import annotations

import threading


class Map:
    """A string-to-string map guarded by a lock.

    Missing keys read as the empty string.
    """

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._cache[key] = value

    def get(self, key: str) -> str:
        return self._cache.get(key, "")

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def as_dict(self) -> dict[str, str]:
        """Return the underlying dictionary."""
        return self._cache

    def __len__(self) -> int:
        return len(self._cache)


class MapOfMaps:
    """A map from a parent key to a :class:`Map`, guarded by a lock."""

    def __init__(self) -> None:
        self._cache: dict[str, Map] = {}
        self._lock = threading.Lock()

    def put(self, pkey: str, key: str, value: str) -> None:
        """Create the inner map for ``pkey`` holding ``key`` if it is absent.

        An inner map that already exists is left unchanged.
        """
        with self._lock:
            inner = self._cache.get(pkey)
            if inner is None:
                inner = Map()
                inner.put(key, value)
            self._cache[pkey] = inner

    def get(self, key: str) -> Map | None:
        return self._cache.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def as_dict(self) -> dict[str, Map]:
        """Return the underlying dictionary."""
        return self._cache