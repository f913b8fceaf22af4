# voicerouter/services/call_routing_service.py
# -*- coding: utf-8 -*-
"""
Call Routing Service
Top-level resolver for inbound call webhooks. Decides where a call goes and
returns the CallResponse the carrier should execute.

Resolution order (first applicable wins):
  1. active business-hours schedule evaluating closed -> closed-hours action
  2. DID matching the dialed number -> its routing type
  3. internal extension matching the dialed number -> its type
  4. caller is an internal extension -> outbound whitelist / trunk
  5. "Destination not found"

This service is read-only and DOES NOT modify routing data. Failures never
propagate: every error becomes a terminal protocol response.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from flask import current_app

from voicerouter.services.business_hours_service import BusinessHoursService
from voicerouter.services.ivr_service import IvrService
from voicerouter.services.outbound_whitelist_service import OutboundWhitelistService, normalize_number
from voicerouter.services.ring_group_service import RingGroupService
from voicerouter.services.routing_cache_service import RoutingCacheService
from voicerouter.services.routing_repository import RoutingRepository
from voicerouter.services.routing_target import RoutingTarget, TargetKind
from voicerouter.utils.exceptions import ServiceError, ResourceNotFound, ConfigurationError
from voicerouter.voice import instructions
from voicerouter.voice.instructions import CallResponse

log = logging.getLogger(__name__)

TERMINAL_CALL_STATUSES = ('completed', 'busy', 'failed', 'no-answer', 'canceled')
MAX_FORWARD_DEPTH = 5
E164_PATTERN = re.compile(r'^\+[1-9]\d{1,14}$')

NOT_CONFIGURED_MESSAGE = "The number you have dialed is not configured."
CONFIGURATION_ERROR_MESSAGE = "Extension configuration error"
SERVICE_ERROR_MESSAGE = "Service temporarily unavailable. Please try again later."


@dataclass(frozen=True)
class InboundCallEvent:
    """One webhook delivery from the carrier. Immutable, request-scoped."""
    tenant_id: int
    to: str
    caller: str
    call_id: str
    digits: str | None = None
    sequence_number: str | None = None
    call_status: str | None = None
    request_base_url: str | None = None # Scheme + host the webhook arrived on


@dataclass
class RoutingContext:
    tenant: object
    event: InboundCallEvent
    base_url: str
    now: datetime | None = None
    forward_depth: int = field(default=0)

    @property
    def tenant_id(self) -> int:
        return self.tenant.id


def dialed_user(number: str | None) -> str:
    """'sip:1001@pbx.example' -> '1001'; plain numbers pass through."""
    number = (number or '').strip()
    if number.lower().startswith(('sip:', 'sips:')):
        number = number.split(':', 1)[1].split('@', 1)[0]
    return number


def default_timeout() -> int:
    return current_app.config.get('DEFAULT_DIAL_TIMEOUT', 30)


class CallRoutingService:

    # --- Entry points ---

    @staticmethod
    def handle_inbound(event: InboundCallEvent, now: datetime | None = None) -> CallResponse:
        """Route a new inbound call. Always returns a response."""
        log.info(f"Inbound call {event.call_id} for tenant {event.tenant_id}: {event.caller} -> {event.to}")
        try:
            ctx = CallRoutingService._context(event, now)
            response = CallRoutingService._resolve_inbound(ctx)
        except ServiceError as e:
            response = CallRoutingService._error_response(event, e)
        log.info(f"Call {event.call_id} routed with outcome '{response.outcome.value}'")
        return response

    @staticmethod
    def handle_ivr_input(event: InboundCallEvent, menu_id, now: datetime | None = None,
                         callback_turn: int | None = None) -> CallResponse:
        """Apply one IVR DTMF turn and route the result. `callback_turn` comes from the Gather URL."""
        log.info(f"IVR input for call {event.call_id} (tenant {event.tenant_id}, menu {menu_id}, "
                 f"sequence {event.sequence_number}): digits={event.digits!r}")
        try:
            ctx = CallRoutingService._context(event, now)
            transition = IvrService.handle_input(ctx.tenant_id, menu_id, event.call_id, event.digits, ctx.base_url,
                                                 callback_turn=callback_turn)
            if transition.target is not None:
                response = CallRoutingService.dispatch(ctx, transition.target)
            else:
                response = transition.response
        except ServiceError as e:
            response = CallRoutingService._error_response(event, e)
        return response

    @staticmethod
    def handle_call_status(event: InboundCallEvent) -> bool:
        """
        Status callback. Terminal statuses drop the call's IVR state.
        Returns True if cleanup ran.
        """
        status = (event.call_status or '').lower()
        if status in TERMINAL_CALL_STATUSES:
            IvrService.cleanup(event.call_id)
            log.info(f"Call {event.call_id} ended ({status}); IVR state cleared.")
            return True
        log.debug(f"Call {event.call_id} status '{status}' ignored.")
        return False

    # --- Resolution pipeline ---

    @staticmethod
    def _context(event: InboundCallEvent, now: datetime | None) -> RoutingContext:
        tenant = RoutingRepository.get_tenant(event.tenant_id)
        if tenant is None or not tenant.is_active():
            raise ResourceNotFound(f"Tenant {event.tenant_id} not found or inactive.")
        base_url = (tenant.webhook_base_url or current_app.config.get('WEBHOOK_BASE_URL')
                    or event.request_base_url or '').rstrip('/')
        return RoutingContext(tenant=tenant, event=event, base_url=base_url, now=now)

    @staticmethod
    def _resolve_inbound(ctx: RoutingContext) -> CallResponse:
        tenant = ctx.tenant
        event = ctx.event

        # 1. Closed business hours override everything else.
        schedule = RoutingCacheService.get_active_business_hours(tenant.id)
        if schedule is not None and not BusinessHoursService.is_open(schedule, tenant.timezone, ctx.now):
            target = BusinessHoursService.current_routing_action(schedule, tenant.timezone, ctx.now)
            log.info(f"Call {event.call_id}: business hours '{schedule.name}' closed, routing to {target}")
            return CallRoutingService.dispatch(ctx, target)

        # 2. DID
        did = RoutingRepository.find_did(tenant.id, event.to)
        if did is not None:
            log.info(f"Call {event.call_id}: DID {did.phone_number} routing_type '{did.routing_type}'")
            target = RoutingTarget.from_did(did, lambda schedule_id: CallRoutingService._schedule_action(ctx, schedule_id))
            return CallRoutingService.dispatch(ctx, target)

        # 3. Internal extension dialing
        extension = RoutingCacheService.get_extension(tenant.id, dialed_user(event.to))
        if extension is not None and extension.is_active():
            log.info(f"Call {event.call_id}: internal extension {extension.extension_number} ({extension.type})")
            return CallRoutingService.route_extension(ctx, extension)

        # 4. Outbound from an internal extension
        outbound = CallRoutingService._route_outbound(ctx)
        if outbound is not None:
            return outbound

        # 5.
        log.warning(f"Call {event.call_id}: no destination for {event.to} (tenant {tenant.id})")
        return instructions.not_found()

    @staticmethod
    def _schedule_action(ctx: RoutingContext, schedule_id: str) -> RoutingTarget:
        schedule = RoutingRepository.get_business_hours(ctx.tenant_id, schedule_id)
        if schedule is None:
            raise ResourceNotFound(f"Business hours schedule {schedule_id} not found.")
        target = BusinessHoursService.current_routing_action(schedule, ctx.tenant.timezone, ctx.now)
        log.info(f"Call {ctx.event.call_id}: DID schedule '{schedule.name}' is "
                 f"{BusinessHoursService.status_label(schedule, ctx.tenant.timezone, ctx.now)}, routing to {target}")
        return target

    @staticmethod
    def _route_outbound(ctx: RoutingContext) -> CallResponse | None:
        event = ctx.event
        caller = RoutingCacheService.get_extension(ctx.tenant_id, dialed_user(event.caller))
        if caller is None or not caller.is_active():
            return None
        entry = OutboundWhitelistService.find_trunk(ctx.tenant_id, event.to)
        if entry is None:
            log.info(f"Call {event.call_id}: outbound call from extension {caller.extension_number} to {event.to} not whitelisted.")
            return None
        log.info(f"Call {event.call_id}: outbound via trunk '{entry.outbound_trunk_name}' (whitelist entry {entry.id})")
        return instructions.dial(normalize_number(event.to), timeout=default_timeout(),
                                 trunk=entry.outbound_trunk_name, caller_id=event.caller)

    # --- Destination dispatch ---

    @staticmethod
    def dispatch(ctx: RoutingContext, target: RoutingTarget) -> CallResponse:
        """Turn a RoutingTarget into a response. One branch per TargetKind."""
        tenant_id = ctx.tenant_id
        if target.tenant_id != tenant_id:
            raise ResourceNotFound(f"Routing target {target} does not belong to tenant {tenant_id}.")

        if target.kind == TargetKind.EXTENSION:
            extension = (RoutingRepository.get_extension(tenant_id, target.target_id)
                         or RoutingRepository.find_extension_by_number(tenant_id, target.target_id))
            if extension is None or not extension.is_active():
                raise ResourceNotFound(f"Extension {target.target_id} not found or inactive.")
            return CallRoutingService.route_extension(ctx, extension)

        elif target.kind == TargetKind.RING_GROUP:
            return RingGroupService.route(RoutingRepository.get_ring_group(tenant_id, target.target_id))

        elif target.kind == TargetKind.CONFERENCE_ROOM:
            return CallRoutingService._join_conference(tenant_id, target.target_id)

        elif target.kind == TargetKind.IVR_MENU:
            menu = RoutingRepository.get_ivr_menu(tenant_id, target.target_id)
            return IvrService.enter(menu, ctx.event.call_id, ctx.base_url).response

        elif target.kind == TargetKind.VOICEMAIL:
            return instructions.voicemail()

        elif target.kind == TargetKind.HANGUP:
            return instructions.hangup()

        raise ConfigurationError(f"Unhandled routing target kind {target.kind}.")

    @staticmethod
    def route_extension(ctx: RoutingContext, extension) -> CallResponse:
        """Branch on extension type."""
        tenant_id = ctx.tenant_id
        ext_type = extension.type

        if ext_type == 'user':
            if not extension.session_address:
                raise ConfigurationError(f"User extension {extension.extension_number} has no address.")
            return instructions.dial(extension.session_address, timeout=default_timeout())

        elif ext_type == 'forward':
            return CallRoutingService._route_forward(ctx, extension)

        elif ext_type == 'ring_group':
            return RingGroupService.route(CallRoutingService.ring_group_for_extension(tenant_id, extension))

        elif ext_type == 'conference':
            return CallRoutingService._join_conference(tenant_id, extension.config_value('conference_room_id'))

        elif ext_type == 'ivr':
            menu = RoutingRepository.get_ivr_menu(tenant_id, extension.config_value('ivr_id'))
            return IvrService.enter(menu, ctx.event.call_id, ctx.base_url).response

        elif ext_type == 'ai_assistant':
            address = extension.service_url or extension.config_value('sip_uri')
            if not address:
                raise ConfigurationError(f"AI assistant extension {extension.extension_number} has no service address.")
            log.info(f"Call {ctx.event.call_id}: connecting AI assistant {extension.extension_number} at {address}")
            return instructions.dial(address, timeout=default_timeout())

        raise ConfigurationError(f"Extension {extension.extension_number} has unsupported type '{ext_type}'.")

    @staticmethod
    def ring_group_for_extension(tenant_id: int, extension):
        """
        The ring group a ring_group extension points at.

        Without a configured ring_group_id, falls back to an active group whose
        name contains the extension number, then to the tenant's first active
        group. Raises ConfigurationError only if both fail.
        """
        group_id = extension.config_value('ring_group_id')
        try:
            if group_id in (None, ''):
                raise ConfigurationError(f"Ring group extension {extension.extension_number} has no ring_group_id.")
            return RoutingRepository.get_ring_group(tenant_id, group_id)
        except ConfigurationError as e:
            log.warning(f"{e} Trying best-effort ring group lookup.")
            group = (RoutingRepository.find_ring_group_by_name(tenant_id, extension.extension_number)
                     or RoutingRepository.first_active_ring_group(tenant_id))
            if group is None:
                raise
            log.info(f"Extension {extension.extension_number} resolved to ring group {group.id} ('{group.name}') by fallback lookup.")
            return group

    @staticmethod
    def _route_forward(ctx: RoutingContext, extension) -> CallResponse:
        """SIP URIs and E.164 numbers are dialed; anything else is an internal extension number."""
        forward_to = str(extension.config_value('forward_to') or '').strip()
        if not forward_to:
            raise ConfigurationError(f"Forward extension {extension.extension_number} has no forward_to.")
        if forward_to.lower().startswith(('sip:', 'sips:')) or E164_PATTERN.match(forward_to):
            return instructions.dial(forward_to, timeout=default_timeout())

        if ctx.forward_depth >= MAX_FORWARD_DEPTH:
            raise ConfigurationError(f"Forwarding loop detected at extension {extension.extension_number}.")
        internal = RoutingCacheService.get_extension(ctx.tenant_id, forward_to)
        if internal is None or not internal.is_active() or internal.id == extension.id:
            raise ResourceNotFound(f"Forward target {forward_to} of extension {extension.extension_number} is unavailable.")
        ctx.forward_depth += 1
        return CallRoutingService.route_extension(ctx, internal)

    @staticmethod
    def _join_conference(tenant_id: int, room_id) -> CallResponse:
        room = RoutingRepository.get_conference_room(tenant_id, room_id)
        if room is None:
            raise ResourceNotFound(f"Conference room {room_id} not found.")
        return instructions.join_conference(room.bridge_name, muted=room.mute_on_entry,
                                            beep=room.announce_join_leave,
                                            max_participants=room.max_participants)

    # --- Errors ---

    @staticmethod
    def _error_response(event: InboundCallEvent, error: ServiceError) -> CallResponse:
        if isinstance(error, ResourceNotFound):
            log.warning(f"Call {event.call_id}: {error}")
            return instructions.unavailable(NOT_CONFIGURED_MESSAGE)
        if isinstance(error, ConfigurationError):
            log.error(f"Call {event.call_id}: configuration error: {error}")
            return instructions.unavailable(CONFIGURATION_ERROR_MESSAGE)
        log.error(f"Call {event.call_id}: routing failed: {error}", exc_info=True)
        return instructions.unavailable(SERVICE_ERROR_MESSAGE)
