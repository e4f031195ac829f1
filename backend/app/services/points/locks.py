"""Per-key mutual exclusion for ledger credits.

A credit for ``(user_id, external_event_id)`` must never run concurrently
with another credit for the same pair, while credits for different pairs
proceed in parallel. Two providers implement that contract:

- ``AdvisoryKeyedLock`` — PostgreSQL transaction-scoped advisory locks, safe
  across processes and hosts.
- ``LocalKeyedLock`` — an in-process map of mutexes, for single-instance
  deployments and SQLite.
"""

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services.points.exceptions import LockAcquisitionError

logger = logging.getLogger(__name__)


def lock_key(user_id, external_event_id: str) -> str:
    return f"{user_id}:{external_event_id}"


def advisory_lock_id(key: str) -> int:
    """Map a lock key onto a positive 60-bit integer for pg_advisory_* calls."""
    return int(hashlib.md5(key.encode("utf-8")).hexdigest()[:15], 16)


class KeyedLock(ABC):
    """Abstract per-key lock used by the ledger."""

    name: str

    @abstractmethod
    def hold(self, db: Session, key: str) -> Iterator[None]:
        """Context manager holding the lock for ``key``.

        The lock is released on every exit path. ``db`` is the session whose
        transaction the guarded work runs in.
        """


class _LockEntry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class LocalKeyedLock(KeyedLock):
    """Thread-safe map of mutexes keyed by string.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the map only grows with the number of in-flight keys.
    """

    name = "local"

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    def _checkout(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs == 0:
                self._entries.pop(key, None)

    @contextmanager
    def hold(self, db: Session, key: str) -> Iterator[None]:
        entry = self._checkout(key)
        timeout = -1 if self._timeout is None else self._timeout
        if not entry.lock.acquire(timeout=timeout):
            self._checkin(key, entry)
            logger.warning("Timed out after %.1fs waiting for ledger lock %s", self._timeout, key)
            raise LockAcquisitionError(key)
        try:
            yield
        finally:
            entry.lock.release()
            self._checkin(key, entry)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)


class AdvisoryKeyedLock(KeyedLock):
    """PostgreSQL ``pg_advisory_xact_lock`` keyed by an md5-derived integer.

    The lock belongs to the session's current transaction, so it is released
    by the commit or rollback that ends the guarded work.
    """

    name = "advisory"

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    @contextmanager
    def hold(self, db: Session, key: str) -> Iterator[None]:
        lock_id = advisory_lock_id(key)
        try:
            if self._timeout is not None:
                # SET does not accept bind parameters
                db.execute(text(f"SET LOCAL lock_timeout = '{int(self._timeout * 1000)}ms'"))
            db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": lock_id})
        except DBAPIError as exc:
            db.rollback()
            logger.warning("Could not acquire advisory lock %s (%d): %s", key, lock_id, exc)
            raise LockAcquisitionError(key, str(exc.orig)) from exc
        try:
            yield
        finally:
            if db.in_transaction():
                db.rollback()


def build_lock_provider(engine: Engine) -> KeyedLock:
    """Create the lock provider configured by ``LEDGER_LOCK_BACKEND``."""
    backend = settings.LEDGER_LOCK_BACKEND
    timeout = settings.LEDGER_LOCK_TIMEOUT_SECONDS

    if backend == "auto":
        backend = "advisory" if engine.dialect.name == "postgresql" else "local"

    if backend == "advisory":
        if engine.dialect.name != "postgresql":
            raise ValueError(f"Advisory ledger locks require PostgreSQL, got {engine.dialect.name}")
        provider: KeyedLock = AdvisoryKeyedLock(timeout=timeout)
    elif backend == "local":
        provider = LocalKeyedLock(timeout=timeout)
    else:
        raise ValueError(f"Unknown LEDGER_LOCK_BACKEND: {backend!r}")

    logger.info("Ledger lock provider: %s", provider.name)
    return provider
