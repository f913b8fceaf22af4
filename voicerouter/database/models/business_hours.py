# voicerouter/database/models/business_hours.py
# -*- coding: utf-8 -*-
"""
Business hours schedule models.

A schedule has one row per weekday (0=Monday .. 6=Sunday), each with zero or
more half-open [start, end) time ranges, plus dated exceptions (holidays or
special opening hours) that override the weekday for that calendar date.
Times are stored as 'HH:MM:SS' strings and compared lexicographically.
"""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates
from voicerouter.extensions import db


ACTION_TYPES = ('extension', 'ring_group', 'conference_room', 'ivr_menu', 'voicemail', 'hangup')
EXCEPTION_TYPES = ('closed', 'special_hours')


def normalize_time(value: str) -> str:
    """Zero-pad 'H:MM', 'HH:MM' or 'H:MM:SS' to 'HH:MM:SS' so lexicographic comparison stays correct."""
    if value is None:
        return value
    value = value.strip()
    parts = value.split(':')
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        return value # Unrecognized; stored as given
    if len(parts) == 2:
        parts.append('0')
    return ':'.join(f"{int(part):02d}" for part in parts)


class BusinessHoursScheduleModel(db.Model):
    """A tenant's opening-hours schedule with the actions to take while open and while closed."""
    __tablename__ = 'business_hours_schedules'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(10), nullable=False, default='active', index=True) # 'active', 'inactive'
    # Routing actions, each a (type, target id) pair mirroring RoutingTarget
    open_hours_action_type = db.Column(db.String(20), nullable=False, default='extension')
    open_hours_target_id = db.Column(db.String(50), nullable=True)
    closed_hours_action_type = db.Column(db.String(20), nullable=False, default='extension')
    closed_hours_target_id = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # --- Relationships ---
    days = db.relationship('BusinessHoursScheduleDayModel', back_populates='schedule',
                           cascade="all, delete-orphan", order_by='BusinessHoursScheduleDayModel.day_of_week')
    exceptions = db.relationship('BusinessHoursExceptionModel', back_populates='schedule',
                                 cascade="all, delete-orphan", order_by='BusinessHoursExceptionModel.date')

    @validates('open_hours_action_type', 'closed_hours_action_type')
    def validate_action_type(self, key, value):
        if value not in ACTION_TYPES:
            raise ValueError(f"{key} must be one of {ACTION_TYPES}")
        return value

    def is_active(self) -> bool:
        return self.status == 'active'

    def day(self, day_of_week: int):
        """Return the day row for a weekday index, or None if the schedule has none."""
        for schedule_day in self.days:
            if schedule_day.day_of_week == day_of_week:
                return schedule_day
        return None

    def exception_for(self, date_value):
        """Return the exception dated `date_value`, if any."""
        for exception in self.exceptions:
            if exception.date == date_value:
                return exception
        return None

    def __repr__(self):
        """Represent instance as a unique string."""
        return f"<BusinessHoursSchedule(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}', status='{self.status}')>"


class BusinessHoursScheduleDayModel(db.Model):
    """One weekday of a schedule."""
    __tablename__ = 'business_hours_schedule_days'

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey('business_hours_schedules.id', ondelete='CASCADE'), nullable=False, index=True)
    day_of_week = db.Column(db.Integer, nullable=False) # 0=Monday .. 6=Sunday
    enabled = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (db.UniqueConstraint('schedule_id', 'day_of_week', name='uq_schedule_day'),)

    # --- Relationships ---
    schedule = db.relationship('BusinessHoursScheduleModel', back_populates='days')
    time_ranges = db.relationship('BusinessHoursTimeRangeModel', back_populates='day',
                                  cascade="all, delete-orphan", order_by='BusinessHoursTimeRangeModel.start_time')

    def __repr__(self):
        return f"<BusinessHoursScheduleDay(schedule={self.schedule_id}, day={self.day_of_week}, enabled={self.enabled})>"


class BusinessHoursTimeRangeModel(db.Model):
    """Half-open [start_time, end_time) opening window of a weekday."""
    __tablename__ = 'business_hours_time_ranges'

    id = db.Column(db.Integer, primary_key=True)
    day_id = db.Column(db.Integer, db.ForeignKey('business_hours_schedule_days.id', ondelete='CASCADE'), nullable=False, index=True)
    start_time = db.Column(db.String(8), nullable=False) # 'HH:MM:SS'
    end_time = db.Column(db.String(8), nullable=False)

    day = db.relationship('BusinessHoursScheduleDayModel', back_populates='time_ranges')

    @validates('start_time', 'end_time')
    def validate_time(self, key, value):
        return normalize_time(value)

    def contains(self, wall_clock: str) -> bool:
        return self.start_time <= wall_clock < self.end_time

    def __repr__(self):
        return f"<BusinessHoursTimeRange({self.start_time}-{self.end_time})>"


class BusinessHoursExceptionModel(db.Model):
    """A dated override: the whole day closed, or open only during its own ranges."""
    __tablename__ = 'business_hours_exceptions'

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey('business_hours_schedules.id', ondelete='CASCADE'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(20), nullable=False, default='closed') # 'closed', 'special_hours'
    name = db.Column(db.String(100), nullable=True) # e.g. 'Christmas Day'

    __table_args__ = (db.UniqueConstraint('schedule_id', 'date', name='uq_schedule_exception_date'),)

    # --- Relationships ---
    schedule = db.relationship('BusinessHoursScheduleModel', back_populates='exceptions')
    time_ranges = db.relationship('BusinessHoursExceptionTimeRangeModel', back_populates='exception',
                                  cascade="all, delete-orphan", order_by='BusinessHoursExceptionTimeRangeModel.start_time')

    @validates('type')
    def validate_type(self, key, value):
        if value not in EXCEPTION_TYPES:
            raise ValueError(f"Exception type must be one of {EXCEPTION_TYPES}")
        return value

    def __repr__(self):
        return f"<BusinessHoursException(schedule={self.schedule_id}, date={self.date}, type='{self.type}')>"


class BusinessHoursExceptionTimeRangeModel(db.Model):
    """Half-open opening window of a special_hours exception."""
    __tablename__ = 'business_hours_exception_time_ranges'

    id = db.Column(db.Integer, primary_key=True)
    exception_id = db.Column(db.Integer, db.ForeignKey('business_hours_exceptions.id', ondelete='CASCADE'), nullable=False, index=True)
    start_time = db.Column(db.String(8), nullable=False)
    end_time = db.Column(db.String(8), nullable=False)

    exception = db.relationship('BusinessHoursExceptionModel', back_populates='time_ranges')

    @validates('start_time', 'end_time')
    def validate_time(self, key, value):
        return normalize_time(value)

    def contains(self, wall_clock: str) -> bool:
        return self.start_time <= wall_clock < self.end_time

    def __repr__(self):
        return f"<BusinessHoursExceptionTimeRange({self.start_time}-{self.end_time})>"
