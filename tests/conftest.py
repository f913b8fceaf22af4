# tests/conftest.py
# -*- coding: utf-8 -*-
"""
Pytest fixtures for unit and integration tests.

Sets up the Flask application in testing mode on an in-memory database,
provides an in-process redis double for the cache/lock layer, and a seeding
helper that commits tenant routing data (the database lock fallback works on
its own connections, so test data is committed and wiped after each test
rather than rolled back).
"""

import pytest
import os
import sys
import logging
import threading
import time
import uuid

# Add the project root directory to the Python path
project_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

from redis.exceptions import ConnectionError as RedisConnectionError, LockNotOwnedError

from voicerouter import create_app # Import the app factory
from voicerouter.extensions import db as _db, cache
from voicerouter.database.models import (
    TenantModel, ExtensionModel, RingGroupModel, RingGroupMemberModel, ConferenceRoomModel,
    BusinessHoursScheduleModel, BusinessHoursScheduleDayModel, BusinessHoursTimeRangeModel,
    BusinessHoursExceptionModel, BusinessHoursExceptionTimeRangeModel, IvrMenuModel, IvrMenuOptionModel,
    DidNumberModel, OutboundWhitelistModel,
)

# Configure logging for fixtures
log = logging.getLogger(__name__)


# ---- Redis double ----

class FakeRedis:
    """
    Thread-safe in-process stand-in for the subset of redis.Redis the cache
    layer uses. Setting `down = True` makes every call raise ConnectionError.
    """

    def __init__(self):
        self.down = False
        self.calls = 0
        self._data = {}
        self._expires = {}
        self._mutex = threading.RLock()

    def _check(self):
        self.calls += 1
        if self.down:
            raise RedisConnectionError("Connection refused (fake)")

    def _live(self, key):
        expires = self._expires.get(key)
        if expires is not None and expires <= time.monotonic():
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return key in self._data

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        with self._mutex:
            return self._data[key] if self._live(key) else None

    def set(self, key, value, ex=None, px=None, nx=False):
        self._check()
        with self._mutex:
            if nx and self._live(key):
                return None
            self._data[key] = value
            if ex is not None:
                self._expires[key] = time.monotonic() + ex
            elif px is not None:
                self._expires[key] = time.monotonic() + px / 1000
            else:
                self._expires.pop(key, None)
            return True

    def delete(self, *keys):
        self._check()
        removed = 0
        with self._mutex:
            for key in keys:
                if self._live(key):
                    removed += 1
                self._data.pop(key, None)
                self._expires.pop(key, None)
        return removed

    def keys(self):
        with self._mutex:
            return [key for key in list(self._data) if self._live(key)]

    def lock(self, name, timeout=None, sleep=0.1, blocking=True, blocking_timeout=None):
        return FakeRedisLock(self, name, timeout, sleep, blocking_timeout)


class FakeRedisLock:
    """Token lock with redis-py's acquire/release semantics."""

    def __init__(self, client, name, timeout, sleep, blocking_timeout):
        self.client = client
        self.name = name
        self.timeout = timeout
        self.sleep = sleep
        self.blocking_timeout = blocking_timeout
        self.token = None

    def acquire(self):
        token = uuid.uuid4().hex
        deadline = None if self.blocking_timeout is None else time.monotonic() + self.blocking_timeout
        while True:
            if self.client.set(self.name, token, ex=self.timeout, nx=True):
                self.token = token
                return True
            if deadline is not None and time.monotonic() > deadline:
                return False
            time.sleep(self.sleep)

    def release(self):
        if self.token is None or self.client.get(self.name) != self.token:
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")
        self.client.delete(self.name)
        self.token = None


# ---- Application Fixtures ----

@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application instance configured for 'testing'.
    Establishes an application context for the session.
    """
    log.info("Setting up session-scoped Flask app for testing...")
    _app = create_app(config_name='testing')

    ctx = _app.app_context()
    ctx.push()

    yield _app

    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Function-scoped test client for the Flask application."""
    return app.test_client()


# ---- Database Fixtures ----

@pytest.fixture(scope='session')
def db(app):
    """Creates all tables once per session and drops them at the end."""
    with app.app_context():
        _db.drop_all()
        _db.create_all()
        log.info("Test database tables created.")

        yield _db

        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def session(app, db):
    """
    Function-scoped database session. Everything the test committed is
    deleted afterwards, child tables first.
    """
    yield db.session

    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.remove()


# ---- Cache Fixtures ----

@pytest.fixture(scope='function')
def fake_redis(app):
    """Routes the cache/lock layer to a fresh FakeRedis for one test."""
    fake = FakeRedis()
    cache.init_app(app, client=fake)
    yield fake
    cache.init_app(app) # Back to the configured (cache-less) state


# ---- Seeding ----

class Seeder:
    """Creates committed routing data for one tenant at a time."""

    def __init__(self, session):
        self.session = session

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def tenant(self, name='Acme', timezone='UTC', **kwargs):
        return self._save(TenantModel(name=name, timezone=timezone, status=kwargs.pop('status', 'active'), **kwargs))

    def extension(self, tenant, number, type='user', status='active', configuration=None, **kwargs):
        return self._save(ExtensionModel(tenant_id=tenant.id, extension_number=number, type=type,
                                         status=status, configuration=configuration, **kwargs))

    def ring_group(self, tenant, members=(), name='Support', **kwargs):
        group = RingGroupModel(tenant_id=tenant.id, name=name, status=kwargs.pop('status', 'active'),
                               strategy=kwargs.pop('strategy', 'simultaneous'), **kwargs)
        for priority, extension in enumerate(members, start=1):
            group.members.append(RingGroupMemberModel(extension_id=extension.id, priority=priority))
        return self._save(group)

    def conference_room(self, tenant, name='Daily standup', **kwargs):
        return self._save(ConferenceRoomModel(tenant_id=tenant.id, name=name, **kwargs))

    def schedule(self, tenant, days=None, exceptions=None, **kwargs):
        """
        `days` maps weekday -> list of (start, end) ranges; a weekday mapped
        to None is disabled. `exceptions` maps date -> list of ranges, with
        None meaning closed all day.
        """
        kwargs.setdefault('open_hours_action_type', 'extension')
        kwargs.setdefault('closed_hours_action_type', 'voicemail')
        schedule = BusinessHoursScheduleModel(tenant_id=tenant.id, name=kwargs.pop('name', 'Office hours'),
                                              status=kwargs.pop('status', 'active'), **kwargs)
        for day_of_week, ranges in (days or {}).items():
            schedule.days.append(BusinessHoursScheduleDayModel(
                day_of_week=day_of_week, enabled=ranges is not None,
                time_ranges=[BusinessHoursTimeRangeModel(start_time=s, end_time=e) for s, e in ranges or ()]))
        for date_value, ranges in (exceptions or {}).items():
            schedule.exceptions.append(BusinessHoursExceptionModel(
                date=date_value, type='closed' if ranges is None else 'special_hours',
                time_ranges=[BusinessHoursExceptionTimeRangeModel(start_time=s, end_time=e) for s, e in ranges or ()]))
        return self._save(schedule)

    def ivr_menu(self, tenant, options=(), name='Main menu', **kwargs):
        """`options` is a sequence of (digits, destination_type, destination_id)."""
        menu = IvrMenuModel(tenant_id=tenant.id, name=name, status=kwargs.pop('status', 'active'),
                            max_turns=kwargs.pop('max_turns', 3),
                            failover_action=kwargs.pop('failover_action', 'hangup'), **kwargs)
        for priority, (digits, destination_type, destination_id) in enumerate(options, start=1):
            menu.options.append(IvrMenuOptionModel(input_digits=digits, destination_type=destination_type,
                                                   destination_id=destination_id, priority=priority))
        return self._save(menu)

    def did(self, tenant, phone_number, routing_type, routing_config=None, **kwargs):
        return self._save(DidNumberModel(tenant_id=tenant.id, phone_number=phone_number, routing_type=routing_type,
                                         routing_config=routing_config, status=kwargs.pop('status', 'active'),
                                         **kwargs))

    def whitelist(self, tenant, country, prefix=None, trunk='main-trunk', name=None):
        return self._save(OutboundWhitelistModel(tenant_id=tenant.id, name=name or f"{country} {prefix or ''}".strip(),
                                                 destination_country=country, destination_prefix=prefix,
                                                 outbound_trunk_name=trunk))


@pytest.fixture(scope='function')
def seed(session):
    return Seeder(session)
