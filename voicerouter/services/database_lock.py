# voicerouter/services/database_lock.py
# -*- coding: utf-8 -*-
"""
Database-backed named locks (fallback for the redis lock).

Acquisition is an INSERT into `cache_locks`; the unique constraint on `key`
makes it atomic. Rows carry an expiry so a crashed holder cannot block the
key forever: expired rows for a key are deleted before each attempt.
Each statement runs on its own short connection, independent of the
request's ORM session.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from voicerouter.extensions import db
from voicerouter.database.models import CacheLockModel
from voicerouter.utils.exceptions import LockTimeout, LockBackendFailure

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Naive UTC timestamp, matching the `expires_at` column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseLock:
    poll_interval = 0.1 # Seconds between acquisition attempts

    @property
    def table(self):
        return CacheLockModel.__table__

    def _try_acquire(self, key: str, owner: str, lease_seconds: float) -> bool:
        now = _utcnow()
        with db.engine.begin() as conn:
            conn.execute(delete(self.table).where(self.table.c.key == key, self.table.c.expires_at <= now))
        try:
            with db.engine.begin() as conn:
                conn.execute(insert(self.table).values(
                    key=key, owner=owner, expires_at=now + timedelta(seconds=lease_seconds)))
        except IntegrityError:
            return False
        return True

    def acquire(self, key: str, lease_seconds: float, wait_seconds: float) -> str:
        """
        Block until the lock row is inserted or `wait_seconds` pass.

        Returns:
            str: The owner token needed to release the lock.
        Raises:
            LockTimeout: Another holder kept the lock for the whole wait.
            LockBackendFailure: The database itself failed.
        """
        owner = uuid.uuid4().hex
        deadline = time.monotonic() + wait_seconds
        while True:
            try:
                if self._try_acquire(key, owner, lease_seconds):
                    log.debug(f"Database lock '{key}' acquired by {owner}.")
                    return owner
            except SQLAlchemyError as e:
                log.critical(f"Database lock backend failure while acquiring '{key}': {e}")
                raise LockBackendFailure(f"Database lock backend failed: {e}") from e
            if time.monotonic() + self.poll_interval > deadline:
                raise LockTimeout(key)
            time.sleep(self.poll_interval)

    def release(self, key: str, owner: str) -> bool:
        """Delete the row only if `owner` still holds it. Returns True if a row was removed."""
        try:
            with db.engine.begin() as conn:
                result = conn.execute(delete(self.table).where(
                    self.table.c.key == key, self.table.c.owner == owner))
        except SQLAlchemyError as e:
            # The row expires on its own; the caller's result must not be lost.
            log.error(f"Failed to release database lock '{key}': {e}")
            return False
        if result.rowcount == 0:
            log.warning(f"Database lock '{key}' expired before release by {owner}.")
            return False
        return True

    @contextmanager
    def hold(self, key: str, lease_seconds: float, wait_seconds: float):
        owner = self.acquire(key, lease_seconds, wait_seconds)
        try:
            yield owner
        finally:
            self.release(key, owner)

    def cleanup_expired(self) -> int:
        """Remove every expired lock row. Returns the number removed."""
        try:
            with db.engine.begin() as conn:
                result = conn.execute(delete(self.table).where(self.table.c.expires_at <= _utcnow()))
        except SQLAlchemyError as e:
            raise LockBackendFailure(f"Database lock cleanup failed: {e}") from e
        if result.rowcount:
            log.info(f"Cleaned up {result.rowcount} expired database locks.")
        return result.rowcount

    def active_locks(self) -> int:
        """Number of unexpired lock rows."""
        try:
            with db.engine.connect() as conn:
                return conn.execute(
                    select(func.count()).select_from(self.table).where(self.table.c.expires_at > _utcnow())
                ).scalar_one()
        except SQLAlchemyError as e:
            raise LockBackendFailure(f"Database lock query failed: {e}") from e
