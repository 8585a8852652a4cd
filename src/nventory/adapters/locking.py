"""In-process identity locks."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from nventory.domain.errors import IdentityLockTimeout

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterator, Sequence

log = logging.getLogger(__name__)


@dataclass(slots=True)
class _Entry:
    lock: threading.Lock
    holders: int = 0


class ThreadIdentityLocks:
    """Keyed locks shared by all threads of this process.

    Keys are acquired in sorted order so two callers with overlapping key
    sets cannot deadlock. Entries are dropped once nobody holds or waits for
    them, so the registry does not grow with the number of devices seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(
        self,
        keys: Sequence[Hashable],
        *,
        timeout: float | None = None,
    ) -> Iterator[None]:
        ordered = sorted(set(keys), key=repr)
        deadline = None if timeout is None else time.monotonic() + timeout
        acquired: list[Hashable] = []
        try:
            for key in ordered:
                self._acquire(key, deadline=deadline, timeout=timeout)
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    def _acquire(self, key: Hashable, *, deadline: float | None, timeout: float | None) -> None:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry(lock=threading.Lock())
            entry.holders += 1

        remaining = -1.0 if deadline is None else max(0.0, deadline - time.monotonic())
        if entry.lock.acquire(timeout=remaining):
            return

        self._forget(key, entry)
        log.warning("Identity lock timeout on %s after %ss", key, timeout)
        raise IdentityLockTimeout([key], timeout or 0.0)

    def _release(self, key: Hashable) -> None:
        with self._guard:
            entry = self._entries[key]
        entry.lock.release()
        self._forget(key, entry)

    def _forget(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


if TYPE_CHECKING:
    from nventory.domain.ports.locking import IdentityLocks

    _locks_check: IdentityLocks = ThreadIdentityLocks()
