# tests/integration/services/test_routing_cache_service.py
# -*- coding: utf-8 -*-
"""
Integration tests for cache-aside routing lookups and the write listeners
that invalidate them.
"""
import json
from datetime import date, datetime, timezone

from voicerouter.database.models import (
    ExtensionModel, BusinessHoursTimeRangeModel, BusinessHoursExceptionModel,
)
from voicerouter.services.business_hours_service import BusinessHoursService
from voicerouter.services.routing_cache_service import RoutingCacheService

MONDAY_10AM = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
MONDAY_6PM = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)


def remove_rows_silently(session, model):
    """Core delete: bypasses mapper events, so the cache is left as it was."""
    session.execute(model.__table__.delete())
    session.commit()


# --- Extensions ---

def test_extension_is_served_from_cache_after_first_read(session, seed, fake_redis):
    tenant = seed.tenant()
    seed.extension(tenant, '1001', configuration={'sip_uri': 'sip:1001@x'})

    first = RoutingCacheService.get_extension(tenant.id, '1001')
    assert RoutingCacheService.extension_key(tenant.id, '1001') in fake_redis.keys()

    remove_rows_silently(session, ExtensionModel)
    cached = RoutingCacheService.get_extension(tenant.id, '1001')

    assert cached.id == first.id
    assert cached.session_address == 'sip:1001@x'
    assert cached.is_active()


def test_missing_extension_is_not_cached(session, seed, fake_redis):
    tenant = seed.tenant()
    assert RoutingCacheService.get_extension(tenant.id, '404') is None
    assert RoutingCacheService.extension_key(tenant.id, '404') not in fake_redis.keys()
    assert RoutingCacheService.get_extension(tenant.id, '') is None


def test_extension_update_invalidates_entry(session, seed, fake_redis):
    tenant = seed.tenant()
    ext = seed.extension(tenant, '1002')
    assert RoutingCacheService.get_extension(tenant.id, '1002').is_active()

    ext.status = 'inactive'
    session.commit()

    assert RoutingCacheService.extension_key(tenant.id, '1002') not in fake_redis.keys()
    assert not RoutingCacheService.get_extension(tenant.id, '1002').is_active()


def test_invalidation_waits_for_commit(session, seed, fake_redis):
    tenant = seed.tenant()
    ext = seed.extension(tenant, '1009')
    key = RoutingCacheService.extension_key(tenant.id, '1009')
    RoutingCacheService.get_extension(tenant.id, '1009')

    ext.status = 'inactive'
    session.flush()
    assert key in fake_redis.keys()
    # A concurrent reader re-caching the still-committed row before the commit
    fake_redis.set(key, '{"stale": true}')

    session.commit()
    assert key not in fake_redis.keys()
    assert not RoutingCacheService.get_extension(tenant.id, '1009').is_active()


def test_rolled_back_change_keeps_cache_entry(session, seed, fake_redis):
    tenant = seed.tenant()
    ext = seed.extension(tenant, '1010')
    key = RoutingCacheService.extension_key(tenant.id, '1010')
    RoutingCacheService.get_extension(tenant.id, '1010')

    ext.status = 'inactive'
    session.flush()
    session.rollback()
    session.commit()

    assert key in fake_redis.keys()
    assert RoutingCacheService.get_extension(tenant.id, '1010').is_active()


def test_renumbered_extension_drops_old_key(session, seed, fake_redis):
    tenant = seed.tenant()
    ext = seed.extension(tenant, '1003')
    RoutingCacheService.get_extension(tenant.id, '1003')

    ext.extension_number = '1033'
    session.commit()

    assert RoutingCacheService.get_extension(tenant.id, '1003') is None
    assert RoutingCacheService.get_extension(tenant.id, '1033').id == ext.id


def test_deleted_extension_is_invalidated(session, seed, fake_redis):
    tenant = seed.tenant()
    ext = seed.extension(tenant, '1004')
    RoutingCacheService.get_extension(tenant.id, '1004')

    session.delete(ext)
    session.commit()
    assert RoutingCacheService.get_extension(tenant.id, '1004') is None


def test_cache_keys_are_tenant_scoped(session, seed, fake_redis):
    acme = seed.tenant()
    other = seed.tenant(name='Other')
    seed.extension(acme, '1005')
    assert RoutingCacheService.get_extension(other.id, '1005') is None
    assert RoutingCacheService.get_extension(acme.id, '1005') is not None


def test_lookup_works_without_redis(session, seed, fake_redis):
    tenant = seed.tenant()
    seed.extension(tenant, '1006')
    fake_redis.down = True
    assert RoutingCacheService.get_extension(tenant.id, '1006').extension_number == '1006'


def test_lookup_works_with_cache_disabled(session, seed):
    tenant = seed.tenant()
    seed.extension(tenant, '1007')
    assert RoutingCacheService.get_extension(tenant.id, '1007').extension_number == '1007'


def test_unloadable_extension_snapshot_falls_back_to_database(session, seed, fake_redis):
    tenant = seed.tenant()
    ext = seed.extension(tenant, '1008')
    key = RoutingCacheService.extension_key(tenant.id, '1008')
    fake_redis.set(key, json.dumps({'id': ext.id, 'tenant_id': tenant.id, 'extension_number': '1008'}))

    extension = RoutingCacheService.get_extension(tenant.id, '1008')

    assert extension.id == ext.id
    assert key not in fake_redis.keys()
    assert RoutingCacheService.get_extension(tenant.id, '1008').id == ext.id
    assert key in fake_redis.keys()


# --- Business hours ---

def test_cached_schedule_evaluates_like_the_stored_one(session, seed, fake_redis):
    tenant = seed.tenant()
    seed.schedule(tenant, {0: [('09:00', '17:00')], 6: None}, exceptions={date(2026, 12, 25): None})

    RoutingCacheService.get_active_business_hours(tenant.id)
    assert RoutingCacheService.business_hours_key(tenant.id) in fake_redis.keys()
    snapshot = RoutingCacheService.get_active_business_hours(tenant.id)

    assert BusinessHoursService.is_open(snapshot, 'UTC', MONDAY_10AM)
    assert not BusinessHoursService.is_open(snapshot, 'UTC', MONDAY_6PM)
    assert not BusinessHoursService.is_open(snapshot, 'UTC', datetime(2026, 12, 25, 10, 0, tzinfo=timezone.utc))


def test_unloadable_schedule_snapshot_falls_back_to_database(session, seed, fake_redis):
    tenant = seed.tenant()
    seed.schedule(tenant, {0: [('09:00', '17:00')]})
    key = RoutingCacheService.business_hours_key(tenant.id)
    fake_redis.set(key, json.dumps({'id': 'not-a-number'}))

    schedule = RoutingCacheService.get_active_business_hours(tenant.id)

    assert BusinessHoursService.is_open(schedule, 'UTC', MONDAY_10AM)
    assert key not in fake_redis.keys()


def test_no_active_schedule(session, seed, fake_redis):
    tenant = seed.tenant()
    seed.schedule(tenant, {0: [('09:00', '17:00')]}, status='inactive')
    assert RoutingCacheService.get_active_business_hours(tenant.id) is None


def test_time_range_change_invalidates_schedule(session, seed, fake_redis):
    tenant = seed.tenant()
    schedule = seed.schedule(tenant, {0: [('09:00', '17:00')]})
    RoutingCacheService.get_active_business_hours(tenant.id)

    session.add(BusinessHoursTimeRangeModel(day_id=schedule.days[0].id, start_time='17:00', end_time='20:00'))
    session.commit()

    assert RoutingCacheService.business_hours_key(tenant.id) not in fake_redis.keys()
    assert BusinessHoursService.is_open(RoutingCacheService.get_active_business_hours(tenant.id), 'UTC', MONDAY_6PM)


def test_exception_insert_invalidates_schedule(session, seed, fake_redis):
    tenant = seed.tenant()
    schedule = seed.schedule(tenant, {0: [('09:00', '17:00')]})
    RoutingCacheService.get_active_business_hours(tenant.id)

    session.add(BusinessHoursExceptionModel(schedule_id=schedule.id, date=date(2026, 10, 19), type='closed'))
    session.commit()

    assert not BusinessHoursService.is_open(RoutingCacheService.get_active_business_hours(tenant.id), 'UTC', MONDAY_10AM)


def test_schedule_deactivation_invalidates(session, seed, fake_redis):
    tenant = seed.tenant()
    schedule = seed.schedule(tenant, {0: [('09:00', '17:00')]})
    assert RoutingCacheService.get_active_business_hours(tenant.id) is not None

    schedule.status = 'inactive'
    session.commit()
    assert RoutingCacheService.get_active_business_hours(tenant.id) is None


# --- Bulk invalidation ---

def test_clear_tenant_cache(fake_redis):
    fake_redis.set(RoutingCacheService.extension_key(7, '1001'), '{}')
    fake_redis.set(RoutingCacheService.extension_key(7, '1002'), '{}')
    fake_redis.set(RoutingCacheService.business_hours_key(7), '{}')
    fake_redis.set(RoutingCacheService.business_hours_key(8), '{}')

    RoutingCacheService.clear_tenant_cache(7, ['1001', '1002'])

    assert fake_redis.keys() == [RoutingCacheService.business_hours_key(8)]
