# voicerouter/services/business_hours_service.py
# -*- coding: utf-8 -*-
"""
Business Hours Evaluator
Decides whether a schedule is open at a given instant, in the tenant's own
timezone, and which routing action applies. Pure: takes the schedule and
the instant, reads nothing else.
"""
import logging
from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from voicerouter.services.routing_target import RoutingTarget

log = logging.getLogger(__name__)


def resolve_timezone(name: str | None):
    """ZoneInfo for an IANA name; unknown or empty names fall back to UTC."""
    if not name:
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning(f"Unknown timezone '{name}', evaluating business hours in UTC.")
        return dt_timezone.utc


def local_time(now: datetime | None, timezone_name: str | None) -> datetime:
    """Convert `now` (naive = UTC) into the schedule's wall clock."""
    if now is None:
        now = datetime.now(dt_timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=dt_timezone.utc)
    return now.astimezone(resolve_timezone(timezone_name))


class BusinessHoursService:

    @staticmethod
    def is_open(schedule, timezone_name: str | None = None, now: datetime | None = None) -> bool:
        """
        Open/closed decision for `schedule` at `now`.

        Inactive schedules are closed. A dated exception for the local date
        overrides the weekday entirely: 'closed' is closed, 'special_hours'
        is open only within its own ranges. Otherwise a disabled weekday is
        closed and an enabled one is open within any of its [start, end) ranges.
        """
        if schedule is None or not schedule.is_active():
            return False

        local_now = local_time(now, timezone_name)
        wall_clock = local_now.strftime('%H:%M:%S')

        exception = schedule.exception_for(local_now.date())
        if exception is not None:
            if exception.type == 'closed':
                log.debug(f"Schedule {schedule.id}: closed exception on {local_now.date()}")
                return False
            return any(time_range.contains(wall_clock) for time_range in exception.time_ranges)

        day = schedule.day(local_now.weekday())
        if day is None or not day.enabled:
            return False
        return any(time_range.contains(wall_clock) for time_range in day.time_ranges)

    @staticmethod
    def status_label(schedule, timezone_name: str | None = None, now: datetime | None = None) -> str:
        return 'open' if BusinessHoursService.is_open(schedule, timezone_name, now) else 'closed'

    @staticmethod
    def current_routing_action(schedule, timezone_name: str | None = None, now: datetime | None = None) -> RoutingTarget:
        """
        The open-hours action while open, else the closed-hours action, bound
        to the schedule's own tenant.

        Raises:
            ConfigurationError: The applicable action is missing its target.
        """
        if BusinessHoursService.is_open(schedule, timezone_name, now):
            action_type, target_id = schedule.open_hours_action_type, schedule.open_hours_target_id
        else:
            action_type, target_id = schedule.closed_hours_action_type, schedule.closed_hours_target_id
        return RoutingTarget.of(action_type, schedule.tenant_id, target_id)
