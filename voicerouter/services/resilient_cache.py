# voicerouter/services/resilient_cache.py
# -*- coding: utf-8 -*-
"""
Resilient Cache/Lock Layer.

Cache-aside key/value store and named mutual-exclusion locks on top of redis.
When redis cannot be reached the layer degrades instead of failing:
reads miss, writes become no-ops, `remember` calls the loader directly and
locks are taken from the `cache_locks` table. A health probe re-checks redis
at most once per CACHE_HEALTH_CHECK_INTERVAL, so fallback is never permanent.

Correctness never depends on the cache; only on the locks.
"""

import json
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

import redis
from redis.exceptions import RedisError, LockError

from voicerouter.utils.exceptions import LockTimeout, LockBackendFailure, CacheUnavailable

log = logging.getLogger(__name__)

_MISSING = object()


class ResilientCache:
    """Flask extension wrapping a redis client with a database lock fallback."""

    def __init__(self, app=None, client=None):
        self.client = None
        self.fallback_lock = None
        self.health_check_interval = 60
        self._primary_available = False
        self._last_health_check = None # time.monotonic() of the last probe or failure
        self._last_health_check_at = None # wall-clock twin for status()
        self._state_lock = threading.Lock()
        if app is not None:
            self.init_app(app, client=client)

    def init_app(self, app, client=None):
        """
        Bind to an application. Builds the redis client from REDIS_URL unless
        one is passed in; without either, every call goes to the fallback path.
        """
        from voicerouter.services.database_lock import DatabaseLock # Avoid import cycle with extensions

        if client is None and app.config.get('REDIS_URL'):
            client = redis.Redis.from_url(
                app.config['REDIS_URL'],
                socket_timeout=app.config.get('REDIS_SOCKET_TIMEOUT', 2),
                socket_connect_timeout=app.config.get('REDIS_CONNECT_TIMEOUT', 2),
                decode_responses=True,
            )
        self.client = client
        self.fallback_lock = DatabaseLock()
        self.health_check_interval = app.config.get('CACHE_HEALTH_CHECK_INTERVAL', 60)
        self._primary_available = client is not None
        self._last_health_check = None
        self._last_health_check_at = None
        app.extensions['resilient_cache'] = self

        if client is None:
            log.warning("No REDIS_URL configured; cache disabled and locks use the database fallback.")
        else:
            log.info("Resilient cache initialized with redis primary backend.")

    # --- Primary backend state ---

    def _primary_ready(self) -> bool:
        """True if redis should be tried now. Re-probes once the interval has elapsed."""
        if self.client is None:
            return False
        if self._primary_available:
            return True
        elapsed = time.monotonic() - (self._last_health_check or 0)
        if elapsed >= self.health_check_interval:
            return self._probe()
        return False

    def _mark_unavailable(self, exc: Exception, operation: str):
        with self._state_lock:
            was_available = self._primary_available
            self._primary_available = False
            self._last_health_check = time.monotonic()
            self._last_health_check_at = datetime.now(timezone.utc)
        if was_available:
            # Logged once per outage; later failures stay quiet until recovery.
            log.error(f"Redis primary backend unavailable during '{operation}': {exc}. Switching to fallback.")

    def _probe(self) -> bool:
        """Put/get/forget round trip against redis. Updates availability."""
        key = f"cache:health:{uuid.uuid4().hex}"
        try:
            self.client.set(key, 'ok', ex=10)
            healthy = self.client.get(key) == 'ok'
            self.client.delete(key)
        except RedisError as e:
            self._mark_unavailable(e, 'health_check')
            log.debug(f"Redis health check failed: {e}")
            return False

        with self._state_lock:
            was_available = self._primary_available
            self._primary_available = healthy
            self._last_health_check = time.monotonic()
            self._last_health_check_at = datetime.now(timezone.utc)
        if healthy and not was_available:
            log.info("Redis primary backend recovered; leaving fallback mode.")
        elif not healthy:
            log.warning("Redis health check round trip returned an unexpected value.")
        return healthy

    def force_health_check(self) -> bool:
        """Probe redis immediately, ignoring the re-check interval."""
        if self.client is None:
            return False
        return self._probe()

    # --- Key/value operations ---

    def _primary(self, operation: str, call):
        """
        Run `call(client)` against redis. Raises CacheUnavailable when redis is
        marked down or the call fails; callers bypass the cache on it.
        """
        if not self._primary_ready():
            raise CacheUnavailable()
        try:
            return call(self.client)
        except RedisError as e:
            self._mark_unavailable(e, operation)
            raise CacheUnavailable(f"Redis '{operation}' failed: {e}") from e

    def get(self, key: str, default=None):
        try:
            raw = self._primary('get', lambda client: client.get(key))
        except CacheUnavailable:
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            log.warning(f"Discarding undecodable cache entry '{key}'.")
            return default

    def put(self, key: str, value, ttl: int | None = None) -> bool:
        """Store a JSON-serializable value. Returns False if nothing was cached."""
        try:
            self._primary('put', lambda client: client.set(key, json.dumps(value), ex=ttl))
        except CacheUnavailable:
            return False
        return True

    def forget(self, key: str) -> bool:
        try:
            self._primary('forget', lambda client: client.delete(key))
        except CacheUnavailable:
            return False
        return True

    def remember(self, key: str, ttl: int | None, loader):
        """
        Cache-aside read: return the cached value, or call `loader`, cache and
        return its result. Exceptions from `loader` propagate unchanged.
        None results are returned but not cached.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = loader()
        if value is not None:
            self.put(key, value, ttl)
        return value

    # --- Locks ---

    @contextmanager
    def lock(self, name: str, lease_seconds: float = 5, wait_seconds: float = 3):
        """
        Hold the named lock for the duration of the block.

        Raises LockTimeout if the lock is not acquired within `wait_seconds`,
        LockBackendFailure if neither redis nor the database can provide it.
        The lease bounds how long a crashed holder can block others.
        """
        key = f"lock:{name}"
        if self._primary_ready():
            try:
                redis_lock = self.client.lock(key, timeout=lease_seconds,
                                              blocking_timeout=wait_seconds, sleep=0.05)
                acquired = redis_lock.acquire()
            except RedisError as e:
                self._mark_unavailable(e, 'lock')
            else:
                if not acquired:
                    raise LockTimeout(name)
                try:
                    yield
                finally:
                    self._release_primary(redis_lock, name)
                return

        log.warning(f"Acquiring lock '{name}' through the database fallback.")
        with self.fallback_lock.hold(key, lease_seconds, wait_seconds):
            yield

    def _release_primary(self, redis_lock, name: str):
        try:
            redis_lock.release()
        except LockError as e:
            # Lease expired before the body finished; someone else may hold it now.
            log.warning(f"Lock '{name}' was no longer owned at release: {e}")
        except RedisError as e:
            self._mark_unavailable(e, 'unlock')

    def with_lock(self, name: str, body, lease_seconds: float = 5, wait_seconds: float = 3):
        """Run `body()` while holding the named lock and return its result."""
        with self.lock(name, lease_seconds=lease_seconds, wait_seconds=wait_seconds):
            return body()

    # --- Monitoring ---

    def status(self) -> dict:
        primary_available = self.client is not None and self._primary_available
        seconds_since = None
        if self._last_health_check is not None:
            seconds_since = round(time.monotonic() - self._last_health_check, 3)

        active_fallback_locks = None
        if self.fallback_lock is not None:
            try:
                active_fallback_locks = self.fallback_lock.active_locks()
            except LockBackendFailure as e:
                log.error(f"Could not count fallback locks: {e}")

        return {
            'primary_available': primary_available,
            'using_fallback': not primary_available,
            'last_health_check': self._last_health_check_at.isoformat() if self._last_health_check_at else None,
            'seconds_since_health_check': seconds_since,
            'active_fallback_locks': active_fallback_locks,
        }
