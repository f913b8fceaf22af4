# voicerouter/database/listeners.py
# -*- coding: utf-8 -*-
"""
Cache invalidation on writes.

The management layer writes extensions and business hours through the same
models. Mapper events note which routing cache entries a flush touched, and
the session drops them once the transaction commits; a rolled back
transaction drops the notes instead.
"""
import logging
from flask import has_app_context
from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session, object_session

from voicerouter.database.models import (
    ExtensionModel, BusinessHoursScheduleModel, BusinessHoursScheduleDayModel, BusinessHoursTimeRangeModel,
    BusinessHoursExceptionModel, BusinessHoursExceptionTimeRangeModel,
)
from voicerouter.services.routing_cache_service import RoutingCacheService

log = logging.getLogger(__name__)

_registered = False

PENDING_KEY = 'routing_cache_invalidations'


def _schedule_tenant_id(connection, target):
    """Tenant owning the schedule that `target` (any business-hours row) belongs to."""
    schedules = BusinessHoursScheduleModel.__table__
    days = BusinessHoursScheduleDayModel.__table__
    exceptions = BusinessHoursExceptionModel.__table__

    if isinstance(target, BusinessHoursScheduleModel):
        return target.tenant_id
    if isinstance(target, (BusinessHoursScheduleDayModel, BusinessHoursExceptionModel)):
        query = select(schedules.c.tenant_id).where(schedules.c.id == target.schedule_id)
    elif isinstance(target, BusinessHoursTimeRangeModel):
        query = (select(schedules.c.tenant_id)
                 .join(days, days.c.schedule_id == schedules.c.id)
                 .where(days.c.id == target.day_id))
    elif isinstance(target, BusinessHoursExceptionTimeRangeModel):
        query = (select(schedules.c.tenant_id)
                 .join(exceptions, exceptions.c.schedule_id == schedules.c.id)
                 .where(exceptions.c.id == target.exception_id))
    else:
        return None
    return connection.execute(query).scalar()


def _defer(target, entry):
    """Queue an invalidation on the session flushing `target`."""
    session = object_session(target)
    if session is None:
        return
    session.info.setdefault(PENDING_KEY, set()).add(entry)


def _extension_changed(mapper, connection, target):
    _defer(target, ('extension', target.tenant_id, target.extension_number))
    # A renumbered extension must also drop its old key
    for old_number in inspect(target).attrs.extension_number.history.deleted or ():
        _defer(target, ('extension', target.tenant_id, old_number))


def _business_hours_changed(mapper, connection, target):
    tenant_id = _schedule_tenant_id(connection, target)
    if tenant_id is not None:
        _defer(target, ('business_hours', tenant_id))


def _invalidate_committed(session):
    pending = session.info.pop(PENDING_KEY, None)
    if not pending or not has_app_context():
        return
    for entry in pending:
        if entry[0] == 'extension':
            RoutingCacheService.invalidate_extension(entry[1], entry[2])
        else:
            RoutingCacheService.invalidate_business_hours(entry[1])


def _discard_rolled_back(session, previous_transaction):
    # Savepoint rollbacks keep the notes; the outer transaction may still commit
    if previous_transaction.parent is None:
        session.info.pop(PENDING_KEY, None)


def register_cache_listeners():
    """Attach the invalidation hooks once per process."""
    global _registered
    if _registered:
        return
    # Deletes hook in before the DELETE so expired attributes and parent rows can still be loaded
    for event_name in ('after_insert', 'after_update', 'before_delete'):
        event.listen(ExtensionModel, event_name, _extension_changed)
        for model in (BusinessHoursScheduleModel, BusinessHoursScheduleDayModel, BusinessHoursTimeRangeModel,
                      BusinessHoursExceptionModel, BusinessHoursExceptionTimeRangeModel):
            event.listen(model, event_name, _business_hours_changed)
    event.listen(Session, 'after_commit', _invalidate_committed)
    event.listen(Session, 'after_soft_rollback', _discard_rolled_back)
    _registered = True
    log.debug("Routing cache invalidation listeners registered.")
