# voicerouter/database/models/__init__.py
# -*- coding: utf-8 -*-
"""
Models Package Initialization.

Exposes model classes for easier importing throughout the application,
e.g., `from voicerouter.database.models import ExtensionModel`.
"""

# Import models from their respective files to make them available directly
from .tenant import TenantModel
from .extension import ExtensionModel
from .ring_group import RingGroupModel, RingGroupMemberModel
from .conference_room import ConferenceRoomModel
from .business_hours import (
    BusinessHoursScheduleModel,
    BusinessHoursScheduleDayModel,
    BusinessHoursTimeRangeModel,
    BusinessHoursExceptionModel,
    BusinessHoursExceptionTimeRangeModel,
)
from .ivr_menu import IvrMenuModel, IvrMenuOptionModel
from .did import DidNumberModel
from .outbound_whitelist import OutboundWhitelistModel
from .cache_lock import CacheLockModel

# This explicitly lists the models intended for public use from this package.
__all__ = [
    'TenantModel',
    'ExtensionModel',
    'RingGroupModel',
    'RingGroupMemberModel',
    'ConferenceRoomModel',
    'BusinessHoursScheduleModel',
    'BusinessHoursScheduleDayModel',
    'BusinessHoursTimeRangeModel',
    'BusinessHoursExceptionModel',
    'BusinessHoursExceptionTimeRangeModel',
    'IvrMenuModel',
    'IvrMenuOptionModel',
    'DidNumberModel',
    'OutboundWhitelistModel',
    'CacheLockModel',
]
