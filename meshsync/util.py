"""Small dictionary helpers."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping


def map_copy(dst: MutableMapping, src: Mapping) -> None:
    """Copy every entry of ``src`` into ``dst``."""
    dst.update(src)


def subset(m1: Mapping[str, str] | None, m2: Mapping[str, str] | None) -> bool:
    """Return whether ``m1`` is a subset of ``m2``.

    An empty or missing ``m1`` is never a subset. Keys of ``m1`` absent from
    ``m2`` do not count against it; keys present must hold equal values.
    """
    if not m1 or m2 is None or len(m2) < len(m1):
        return False
    return all(m2[k] == v for k, v in m1.items() if k in m2)