# voicerouter/api/schemas/cache_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for cached routing snapshots and cache health output.

Snapshots are dumped from persistent models into plain dicts for redis and
loaded back into transient (session-less) model instances, so routing code
reads the same attributes whether the data came from cache or database.
"""
from marshmallow import Schema, fields, validate, post_load, EXCLUDE

from voicerouter.database.models import (
    ExtensionModel, BusinessHoursScheduleModel, BusinessHoursScheduleDayModel, BusinessHoursTimeRangeModel,
    BusinessHoursExceptionModel, BusinessHoursExceptionTimeRangeModel,
)


class ExtensionSnapshotSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    id = fields.Int(required=True)
    tenant_id = fields.Int(required=True)
    extension_number = fields.Str(required=True)
    type = fields.Str(required=True)
    status = fields.Str(required=True, validate=validate.OneOf(['active', 'inactive']))
    configuration = fields.Dict(allow_none=True, load_default=None)
    service_url = fields.Str(allow_none=True, load_default=None)

    @post_load
    def make_extension(self, data, **kwargs):
        return ExtensionModel(**data)


# --- Business hours (nested) ---

class TimeRangeSnapshotSchema(Schema):
    start_time = fields.Str(required=True)
    end_time = fields.Str(required=True)

    @post_load
    def make_range(self, data, **kwargs):
        return BusinessHoursTimeRangeModel(**data)


class ExceptionTimeRangeSnapshotSchema(TimeRangeSnapshotSchema):

    @post_load
    def make_range(self, data, **kwargs):
        return BusinessHoursExceptionTimeRangeModel(**data)


class ScheduleDaySnapshotSchema(Schema):
    day_of_week = fields.Int(required=True, validate=validate.Range(min=0, max=6))
    enabled = fields.Bool(required=True)
    time_ranges = fields.List(fields.Nested(TimeRangeSnapshotSchema()), load_default=list)

    @post_load
    def make_day(self, data, **kwargs):
        return BusinessHoursScheduleDayModel(**data)


class ExceptionSnapshotSchema(Schema):
    date = fields.Date(required=True)
    type = fields.Str(required=True, validate=validate.OneOf(['closed', 'special_hours']))
    name = fields.Str(allow_none=True, load_default=None)
    time_ranges = fields.List(fields.Nested(ExceptionTimeRangeSnapshotSchema()), load_default=list)

    @post_load
    def make_exception(self, data, **kwargs):
        return BusinessHoursExceptionModel(**data)


class BusinessHoursSnapshotSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    id = fields.Int(required=True)
    tenant_id = fields.Int(required=True)
    name = fields.Str(required=True)
    status = fields.Str(required=True, validate=validate.OneOf(['active', 'inactive']))
    open_hours_action_type = fields.Str(required=True)
    open_hours_target_id = fields.Str(allow_none=True, load_default=None)
    closed_hours_action_type = fields.Str(required=True)
    closed_hours_target_id = fields.Str(allow_none=True, load_default=None)
    days = fields.List(fields.Nested(ScheduleDaySnapshotSchema()), load_default=list)
    exceptions = fields.List(fields.Nested(ExceptionSnapshotSchema()), load_default=list)

    @post_load
    def make_schedule(self, data, **kwargs):
        return BusinessHoursScheduleModel(**data)


# --- Monitoring output ---

class CacheStatusSchema(Schema):
    primary_available = fields.Bool(required=True, dump_only=True, data_key="primaryAvailable")
    using_fallback = fields.Bool(required=True, dump_only=True, data_key="usingFallback")
    last_health_check = fields.Str(allow_none=True, dump_only=True, data_key="lastHealthCheck")
    seconds_since_health_check = fields.Float(allow_none=True, dump_only=True, data_key="secondsSinceHealthCheck")
    active_fallback_locks = fields.Int(allow_none=True, dump_only=True, data_key="activeFallbackLocks")
