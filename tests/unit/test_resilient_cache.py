# tests/unit/test_resilient_cache.py
# -*- coding: utf-8 -*-
"""
Unit tests for the cache/lock layer: redis primary (FakeRedis), outage
handling, health re-checks and the database lock fallback.
"""
import threading
import time
import pytest
from datetime import timedelta

from voicerouter.extensions import cache, db
from voicerouter.database.models import CacheLockModel
from voicerouter.services.database_lock import DatabaseLock, _utcnow
from voicerouter.utils.exceptions import LockTimeout


# --- Key/value with redis up ---

def test_put_get_forget(fake_redis):
    assert cache.put('k', {'a': 1}, ttl=60) is True
    assert cache.get('k') == {'a': 1}
    assert cache.forget('k') is True
    assert cache.get('k', 'missing') == 'missing'


def test_remember_loads_once(fake_redis):
    calls = []

    def loader():
        calls.append(1)
        return {'number': '1001'}

    assert cache.remember('ext', 60, loader) == {'number': '1001'}
    assert cache.remember('ext', 60, loader) == {'number': '1001'}
    assert len(calls) == 1


def test_remember_does_not_cache_none(fake_redis):
    calls = []

    def loader():
        calls.append(1)
        return None

    assert cache.remember('nothing', 60, loader) is None
    assert cache.remember('nothing', 60, loader) is None
    assert len(calls) == 2


def test_remember_propagates_loader_errors(fake_redis):
    def loader():
        raise RuntimeError("database exploded")

    with pytest.raises(RuntimeError, match="database exploded"):
        cache.remember('boom', 60, loader)


def test_undecodable_entry_is_a_miss(fake_redis):
    fake_redis.set('raw', 'not-json{')
    assert cache.get('raw', 'default') == 'default'


# --- Outage ---

def test_outage_degrades_to_loader(fake_redis):
    fake_redis.down = True
    assert cache.get('k', 'default') == 'default'
    assert cache.put('k', 1) is False
    assert cache.forget('k') is False
    assert cache.remember('k', 60, lambda: 'fresh') == 'fresh'
    status = cache.status()
    assert status['primary_available'] is False
    assert status['using_fallback'] is True


def test_outage_is_not_retried_before_interval(app, fake_redis):
    fake_redis.down = True
    cache.get('k')
    calls_after_failure = fake_redis.calls
    cache.get('k')
    cache.put('k', 1)
    assert fake_redis.calls == calls_after_failure # No redis traffic while marked down


def test_recovery_after_health_check(app, fake_redis):
    fake_redis.down = True
    cache.get('k')
    assert cache.status()['primary_available'] is False

    fake_redis.down = False
    assert cache.force_health_check() is True
    assert cache.put('k', 'v') is True
    assert cache.status()['primary_available'] is True


def test_health_recheck_after_interval(app, fake_redis, monkeypatch):
    fake_redis.down = True
    cache.get('k')
    fake_redis.down = False
    monkeypatch.setattr(cache, 'health_check_interval', 0)
    assert cache.put('k', 'v') is True # Probe ran on the next call


def test_no_client_means_cache_disabled(app):
    assert cache.client is None
    assert cache.put('k', 1) is False
    assert cache.remember('k', 60, lambda: 5) == 5
    assert cache.force_health_check() is False


# --- Locks on redis ---

def test_with_lock_returns_body_result_and_releases(fake_redis):
    assert cache.with_lock('group:1', lambda: 42, lease_seconds=5, wait_seconds=1) == 42
    assert fake_redis.get('lock:group:1') is None


def test_lock_released_when_body_raises(fake_redis):
    def body():
        raise ValueError("inside")

    with pytest.raises(ValueError):
        cache.with_lock('group:2', body)
    assert fake_redis.get('lock:group:2') is None


def test_lock_timeout_when_held(fake_redis):
    holder = fake_redis.lock('lock:group:3', timeout=5)
    assert holder.acquire()
    with pytest.raises(LockTimeout):
        cache.with_lock('group:3', lambda: None, wait_seconds=0.1)
    holder.release()


def test_same_name_serializes_and_different_names_do_not_block(app, fake_redis):
    active = {'group:a': 0, 'group:b': 0}
    peaks = {'group:a': 0, 'group:b': 0}
    guard = threading.Lock()

    def body(name):
        with guard:
            active[name] += 1
            peaks[name] = max(peaks[name], active[name])
        time.sleep(0.02)
        with guard:
            active[name] -= 1

    def worker(name):
        with app.app_context():
            cache.with_lock(name, lambda: body(name), lease_seconds=5, wait_seconds=5)

    threads = [threading.Thread(target=worker, args=(name,)) for name in ('group:a', 'group:b') * 4]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peaks['group:a'] == 1
    assert peaks['group:b'] == 1


def test_lock_falls_back_to_database_when_redis_down(session, fake_redis):
    fake_redis.down = True
    seen = []

    def body():
        seen.append(db.session.query(CacheLockModel).filter_by(key='lock:group:4').count())
        return 'ok'

    assert cache.with_lock('group:4', body) == 'ok'
    assert seen == [1] # Row existed while the body ran
    assert db.session.query(CacheLockModel).count() == 0


# --- Database lock ---

def test_database_lock_acquire_release(session):
    lock = DatabaseLock()
    owner = lock.acquire('lock:x', lease_seconds=5, wait_seconds=0.5)
    assert lock.active_locks() == 1
    assert lock.release('lock:x', 'someone-else') is False
    assert lock.release('lock:x', owner) is True
    assert lock.active_locks() == 0


def test_database_lock_times_out_while_held(session):
    lock = DatabaseLock()
    owner = lock.acquire('lock:y', lease_seconds=5, wait_seconds=0.5)
    with pytest.raises(LockTimeout):
        lock.acquire('lock:y', lease_seconds=5, wait_seconds=0.2)
    lock.release('lock:y', owner)


def test_database_lock_takes_over_expired_row(session):
    session.add(CacheLockModel(key='lock:z', owner='crashed', expires_at=_utcnow() - timedelta(seconds=1)))
    session.commit()

    lock = DatabaseLock()
    owner = lock.acquire('lock:z', lease_seconds=5, wait_seconds=0.2)
    assert owner != 'crashed'
    assert lock.release('lock:z', owner) is True


def test_database_lock_cleanup_expired(session):
    session.add(CacheLockModel(key='lock:old', owner='a', expires_at=_utcnow() - timedelta(seconds=30)))
    session.add(CacheLockModel(key='lock:new', owner='b', expires_at=_utcnow() + timedelta(seconds=30)))
    session.commit()

    assert DatabaseLock().cleanup_expired() == 1
    assert DatabaseLock().active_locks() == 1


def test_status_reports_fallback_locks(session):
    status = cache.status()
    assert status['using_fallback'] is True
    assert status['active_fallback_locks'] == 0
