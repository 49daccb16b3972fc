"""Per-key locking used to serialise mutations of one account."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class KeyedLock:
    """Thread-safe mutex registry keyed by string.

    Entries are reference counted and dropped once no caller holds or waits
    on them.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Lock, list[int]]] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = (Lock(), [0])
                self._entries[key] = entry
            entry[1][0] += 1
        lock, waiters = entry
        try:
            with lock:
                yield
        finally:
            with self._guard:
                waiters[0] -= 1
                if waiters[0] == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
