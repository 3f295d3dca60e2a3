from __future__ import annotations

import logging
import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from datetime import date

from agenda.errors import ConcurrencyConflict
from agenda.settings import get_settings

logger = logging.getLogger("agenda.locks")

_REGISTRY_LOCK = threading.Lock()
# key -> [lock, holders and waiters]; entries go away when the count drops to zero.
_LOCKS: dict[tuple[Hashable, ...], list] = {}


def _checkout(key: tuple[Hashable, ...]) -> threading.Lock:
    with _REGISTRY_LOCK:
        entry = _LOCKS.get(key)
        if entry is None:
            entry = [threading.Lock(), 0]
            _LOCKS[key] = entry
        entry[1] += 1
        return entry[0]


def _checkin(key: tuple[Hashable, ...]) -> None:
    with _REGISTRY_LOCK:
        entry = _LOCKS[key]
        entry[1] -= 1
        if entry[1] == 0:
            del _LOCKS[key]


def active_lock_count() -> int:
    with _REGISTRY_LOCK:
        return len(_LOCKS)


@contextmanager
def keyed_lock(*key: Hashable, timeout: float | None = None) -> Iterator[None]:
    """Hold the process-wide lock for ``key`` across a check-then-write sequence.

    Raises ConcurrencyConflict when the lock is not acquired within the timeout.
    """
    wait_seconds = get_settings().lock_timeout_seconds if timeout is None else timeout
    lock_key = tuple(key)
    lock = _checkout(lock_key)
    try:
        if not lock.acquire(timeout=max(0.0, wait_seconds)):
            logger.warning("keyed_lock_timeout", extra={"lock_key": repr(key), "timeout_seconds": wait_seconds})
            raise ConcurrencyConflict()
        try:
            yield
        finally:
            lock.release()
    finally:
        _checkin(lock_key)


def booking_lock(merchant_id: int, service_id: int, day: date, *, timeout: float | None = None):
    return keyed_lock("booking", merchant_id, service_id, day, timeout=timeout)


def employee_lock(merchant_id: int, employee_id: int, *, timeout: float | None = None):
    return keyed_lock("employee", merchant_id, employee_id, timeout=timeout)
