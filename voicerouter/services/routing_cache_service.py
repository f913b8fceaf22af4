# voicerouter/services/routing_cache_service.py
# -*- coding: utf-8 -*-
"""
Routing Cache Service
Cache-aside access to the reference data read on every call (extensions and
the active business-hours schedule), plus the invalidation hooks the
management layer calls after writes.

Cached values are marshmallow snapshots; a cache outage only means an extra
database read.
"""
import logging
from flask import current_app
from marshmallow import ValidationError

from voicerouter.api.schemas.cache_schemas import ExtensionSnapshotSchema, BusinessHoursSnapshotSchema
from voicerouter.extensions import cache
from voicerouter.services.routing_repository import RoutingRepository

log = logging.getLogger(__name__)

extension_snapshot_schema = ExtensionSnapshotSchema()
business_hours_snapshot_schema = BusinessHoursSnapshotSchema()


class RoutingCacheService:

    @staticmethod
    def extension_key(tenant_id: int, extension_number: str) -> str:
        return f"routing:ext:{tenant_id}:{extension_number}"

    @staticmethod
    def business_hours_key(tenant_id: int) -> str:
        return f"routing:bh:{tenant_id}"

    @staticmethod
    def get_extension(tenant_id: int, extension_number: str):
        """
        Extension of the tenant with this number, active or not.

        Returns:
            ExtensionModel | None: A transient snapshot when served from cache.
        """
        if not extension_number:
            return None
        ttl = current_app.config.get('EXTENSION_CACHE_TTL', 1800)

        def load():
            extension = RoutingRepository.find_extension_by_number(tenant_id, extension_number)
            return extension_snapshot_schema.dump(extension) if extension else None

        key = RoutingCacheService.extension_key(tenant_id, extension_number)
        snapshot = cache.remember(key, ttl, load)
        if snapshot is None:
            return None
        try:
            return extension_snapshot_schema.load(snapshot)
        except (ValidationError, ValueError) as e:
            RoutingCacheService._discard(key, e)
            return RoutingRepository.find_extension_by_number(tenant_id, extension_number)

    @staticmethod
    def get_active_business_hours(tenant_id: int):
        """The tenant's active schedule with days, ranges and exceptions, or None."""
        ttl = current_app.config.get('BUSINESS_HOURS_CACHE_TTL', 900)

        def load():
            schedule = RoutingRepository.active_business_hours(tenant_id)
            return business_hours_snapshot_schema.dump(schedule) if schedule else None

        key = RoutingCacheService.business_hours_key(tenant_id)
        snapshot = cache.remember(key, ttl, load)
        if snapshot is None:
            return None
        try:
            return business_hours_snapshot_schema.load(snapshot)
        except (ValidationError, ValueError) as e:
            RoutingCacheService._discard(key, e)
            return RoutingRepository.active_business_hours(tenant_id)

    @staticmethod
    def _discard(key: str, error: Exception):
        """Unloadable snapshot (older layout, corrupted entry): drop it and read the database."""
        messages = getattr(error, 'messages', error)
        log.warning(f"Discarding unreadable cache entry '{key}': {messages}")
        cache.forget(key)

    # --- Invalidation hooks ---

    @staticmethod
    def invalidate_extension(tenant_id: int, extension_number: str):
        log.debug(f"Invalidating cached extension {extension_number} of tenant {tenant_id}")
        cache.forget(RoutingCacheService.extension_key(tenant_id, extension_number))

    @staticmethod
    def invalidate_business_hours(tenant_id: int):
        log.debug(f"Invalidating cached business hours of tenant {tenant_id}")
        cache.forget(RoutingCacheService.business_hours_key(tenant_id))

    @staticmethod
    def clear_tenant_cache(tenant_id: int, extension_numbers=()):
        """Drop every routing cache entry of a tenant (e.g. after a bulk import)."""
        for number in extension_numbers:
            RoutingCacheService.invalidate_extension(tenant_id, number)
        RoutingCacheService.invalidate_business_hours(tenant_id)
        log.info(f"Cleared routing cache for tenant {tenant_id} ({len(extension_numbers)} extensions)")
