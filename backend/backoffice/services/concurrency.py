# Overview: Locking and retry primitives shared by every ledger aggregate.

from __future__ import annotations

import threading
import time
import weakref
from contextlib import contextmanager
from typing import Hashable, Iterable

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for read-modify-write operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing() makes sure a row already in the identity map is
    refreshed instead of served stale.
    """
    return query.with_for_update().populate_existing()


class AggregateLocks:
    """
    Process-local mutexes keyed by aggregate (e.g. ("menu_item", 7)).

    Keys are always taken in one global order so two operations that touch
    overlapping sets of aggregates cannot deadlock each other.

    A key's lock lives only while some thread holds or waits on it, so the
    map stays as small as the number of aggregates in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[Hashable]):
        ordered = sorted(set(keys), key=repr)
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
