# voicerouter/services/routing_repository.py
# -*- coding: utf-8 -*-
"""
Routing Repository
Tenant-scoped, read-only lookups of routing reference data.
Every method takes the tenant id first; no query can escape its tenant.
This service is read-only and DOES NOT modify the database state.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from voicerouter.database.models import (
    TenantModel, DidNumberModel, ExtensionModel, RingGroupModel, RingGroupMemberModel,
    ConferenceRoomModel, IvrMenuModel, BusinessHoursScheduleModel, BusinessHoursScheduleDayModel,
    BusinessHoursExceptionModel, OutboundWhitelistModel,
)
from voicerouter.extensions import db
from voicerouter.utils.exceptions import ServiceError

log = logging.getLogger(__name__)


def as_id(value) -> int | None:
    """Coerce a stored id (often text in JSON config) to int; None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _number_variants(number: str) -> list:
    """'+15551230000' and '15551230000' refer to the same DID."""
    number = (number or '').strip()
    bare = number.lstrip('+')
    return list(dict.fromkeys([number, bare, f"+{bare}"]))


def _schedule_loader():
    return (
        selectinload(BusinessHoursScheduleModel.days).selectinload(BusinessHoursScheduleDayModel.time_ranges),
        selectinload(BusinessHoursScheduleModel.exceptions).selectinload(BusinessHoursExceptionModel.time_ranges),
    )


class RoutingRepository:

    @staticmethod
    def _run(description: str, query):
        try:
            return query()
        except SQLAlchemyError as e:
            log.error(f"Database error during {description}: {e}", exc_info=True)
            raise ServiceError(f"Database error during {description}.") from e

    @staticmethod
    def get_tenant(tenant_id: int) -> TenantModel | None:
        return RoutingRepository._run('tenant lookup', lambda: db.session.get(TenantModel, tenant_id))

    @staticmethod
    def find_did(tenant_id: int, phone_number: str) -> DidNumberModel | None:
        """Active DID of this tenant matching the dialed number (with or without '+')."""
        return RoutingRepository._run('DID lookup', lambda: db.session.query(DidNumberModel).filter(
            DidNumberModel.tenant_id == tenant_id,
            DidNumberModel.phone_number.in_(_number_variants(phone_number)),
            DidNumberModel.status == 'active',
        ).first())

    @staticmethod
    def get_extension(tenant_id: int, extension_id) -> ExtensionModel | None:
        ext_id = as_id(extension_id)
        if ext_id is None:
            return None
        return RoutingRepository._run('extension lookup', lambda: db.session.query(ExtensionModel).filter(
            ExtensionModel.tenant_id == tenant_id, ExtensionModel.id == ext_id).one_or_none())

    @staticmethod
    def find_extension_by_number(tenant_id: int, extension_number: str) -> ExtensionModel | None:
        if not extension_number:
            return None
        return RoutingRepository._run('extension lookup', lambda: db.session.query(ExtensionModel).filter(
            ExtensionModel.tenant_id == tenant_id,
            ExtensionModel.extension_number == str(extension_number).strip(),
        ).one_or_none())

    @staticmethod
    def get_ring_group(tenant_id: int, ring_group_id) -> RingGroupModel | None:
        group_id = as_id(ring_group_id)
        if group_id is None:
            return None
        return RoutingRepository._run('ring group lookup', lambda: db.session.query(RingGroupModel).filter(
            RingGroupModel.tenant_id == tenant_id, RingGroupModel.id == group_id).one_or_none())

    @staticmethod
    def ring_group_members(tenant_id: int, ring_group_id: int) -> list:
        """
        Active member extensions of a group, by priority ascending.

        Always hits the database and refreshes already-loaded instances, so a
        membership edit committed a moment ago is visible.
        """
        return RoutingRepository._run('ring group member lookup', lambda: db.session.query(ExtensionModel)
            .join(RingGroupMemberModel, RingGroupMemberModel.extension_id == ExtensionModel.id)
            .join(RingGroupModel, RingGroupModel.id == RingGroupMemberModel.ring_group_id)
            .filter(
                RingGroupModel.tenant_id == tenant_id,
                RingGroupModel.id == ring_group_id,
                ExtensionModel.tenant_id == tenant_id,
                ExtensionModel.status == 'active',
            )
            .order_by(RingGroupMemberModel.priority.asc(), RingGroupMemberModel.id.asc())
            .execution_options(populate_existing=True)
            .all())

    @staticmethod
    def find_ring_group_by_name(tenant_id: int, fragment: str) -> RingGroupModel | None:
        """First active group whose name contains `fragment` (case-insensitive)."""
        if not fragment:
            return None
        return RoutingRepository._run('ring group search', lambda: db.session.query(RingGroupModel).filter(
            RingGroupModel.tenant_id == tenant_id,
            RingGroupModel.status == 'active',
            RingGroupModel.name.ilike(f"%{fragment}%"),
        ).order_by(RingGroupModel.id.asc()).first())

    @staticmethod
    def first_active_ring_group(tenant_id: int) -> RingGroupModel | None:
        return RoutingRepository._run('ring group search', lambda: db.session.query(RingGroupModel).filter(
            RingGroupModel.tenant_id == tenant_id, RingGroupModel.status == 'active',
        ).order_by(RingGroupModel.id.asc()).first())

    @staticmethod
    def get_conference_room(tenant_id: int, room_id) -> ConferenceRoomModel | None:
        conf_id = as_id(room_id)
        if conf_id is None:
            return None
        return RoutingRepository._run('conference room lookup', lambda: db.session.query(ConferenceRoomModel).filter(
            ConferenceRoomModel.tenant_id == tenant_id, ConferenceRoomModel.id == conf_id).one_or_none())

    @staticmethod
    def get_ivr_menu(tenant_id: int, menu_id) -> IvrMenuModel | None:
        ivr_id = as_id(menu_id)
        if ivr_id is None:
            return None
        return RoutingRepository._run('IVR menu lookup', lambda: db.session.query(IvrMenuModel)
            .options(selectinload(IvrMenuModel.options))
            .filter(IvrMenuModel.tenant_id == tenant_id, IvrMenuModel.id == ivr_id).one_or_none())

    @staticmethod
    def active_business_hours(tenant_id: int) -> BusinessHoursScheduleModel | None:
        """The tenant's active schedule (lowest id if several are active)."""
        return RoutingRepository._run('business hours lookup', lambda: db.session.query(BusinessHoursScheduleModel)
            .options(*_schedule_loader())
            .filter(BusinessHoursScheduleModel.tenant_id == tenant_id, BusinessHoursScheduleModel.status == 'active')
            .order_by(BusinessHoursScheduleModel.id.asc()).first())

    @staticmethod
    def get_business_hours(tenant_id: int, schedule_id) -> BusinessHoursScheduleModel | None:
        bh_id = as_id(schedule_id)
        if bh_id is None:
            return None
        return RoutingRepository._run('business hours lookup', lambda: db.session.query(BusinessHoursScheduleModel)
            .options(*_schedule_loader())
            .filter(BusinessHoursScheduleModel.tenant_id == tenant_id, BusinessHoursScheduleModel.id == bh_id)
            .one_or_none())

    @staticmethod
    def whitelist_entries(tenant_id: int) -> list:
        """All outbound whitelist entries of the tenant, in id order."""
        return RoutingRepository._run('outbound whitelist lookup', lambda: db.session.query(OutboundWhitelistModel)
            .filter(OutboundWhitelistModel.tenant_id == tenant_id)
            .order_by(OutboundWhitelistModel.id.asc()).all())
