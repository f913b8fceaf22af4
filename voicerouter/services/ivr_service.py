# voicerouter/services/ivr_service.py
# -*- coding: utf-8 -*-
"""
IVR Navigation State Machine

    AwaitingInput --valid option--------------------------> Routed
    AwaitingInput --no input / invalid, turns <= max------> AwaitingInput
    AwaitingInput --no input / invalid, turns > max-------> Failover
    any           --menu missing / destination unusable---> Error

Routed and Failover hand a RoutingTarget back to the resolver; this module
never dials anything itself.
"""
import enum
import logging
from dataclasses import dataclass

from voicerouter.services.call_state_service import CallStateService
from voicerouter.services.routing_repository import RoutingRepository
from voicerouter.services.routing_target import RoutingTarget, TargetKind
from voicerouter.utils.exceptions import ConfigurationError
from voicerouter.voice import instructions
from voicerouter.voice.instructions import CallResponse, Outcome, Play, Say

log = logging.getLogger(__name__)

DEFAULT_PROMPT = "Please enter the number for your desired option."
INVALID_OPTION_MESSAGE = "Invalid menu option, please try again."
MENU_ERROR_MESSAGE = "Menu configuration error."
DESTINATION_GONE_MESSAGE = "Destination is no longer available."


class IvrState(str, enum.Enum):
    AWAITING_INPUT = 'awaiting_input'
    ROUTED = 'routed'
    FAILOVER = 'failover'
    ERROR = 'error'


@dataclass(frozen=True)
class IvrTransition:
    state: IvrState
    turn_count: int = 0
    response: CallResponse | None = None # Prompt or error document
    target: RoutingTarget | None = None # Where to go for Routed / Failover


def ivr_action_url(base_url: str, tenant_id: int, menu_id: int, turn: int | None = None) -> str:
    """Gather callback URL. `turn` comes back on the callback and stands in for missing call state."""
    url = f"{base_url.rstrip('/')}/api/voice/{tenant_id}/ivr-input?menu_id={menu_id}"
    if turn is not None:
        url += f"&turn={turn}"
    return url


def menu_prompt(menu, base_url: str):
    """Recorded audio wins over TTS text; otherwise the default prompt."""
    if menu.audio_file_path:
        url = menu.audio_file_path
        if not url.startswith(('http://', 'https://')):
            url = f"{base_url.rstrip('/')}/{url.lstrip('/')}"
        return Play(url)
    if menu.tts_text:
        return Say(menu.tts_text, voice=menu.tts_voice)
    return Say(DEFAULT_PROMPT)


class IvrService:

    @staticmethod
    def prompt(menu, base_url: str, preamble: str | None = None, turn: int = 0) -> CallResponse:
        return instructions.gather(menu_prompt(menu, base_url), ivr_action_url(base_url, menu.tenant_id, menu.id, turn),
                                   preamble=preamble)

    @staticmethod
    def enter(menu, call_id: str, base_url: str) -> IvrTransition:
        """
        First turn of a menu: start (or keep) the call's state and play the prompt.
        State left over from a different menu is reset to turn 0.
        """
        if menu is None or not menu.is_active():
            log.warning(f"IVR entry for call {call_id} refused: menu missing or inactive.")
            return IvrTransition(IvrState.ERROR, response=instructions.say_with_hangup(MENU_ERROR_MESSAGE, Outcome.UNAVAILABLE))

        state = CallStateService.get(call_id)
        if not state or state.get('menu_id') != menu.id:
            state = CallStateService.start(call_id, menu.id)
        log.info(f"IVR menu {menu.id} ('{menu.name}') presented to call {call_id}, turn {state['turn_count']}/{menu.max_turns}")
        return IvrTransition(IvrState.AWAITING_INPUT, turn_count=state['turn_count'],
                             response=IvrService.prompt(menu, base_url, turn=state['turn_count']))

    @staticmethod
    def handle_input(tenant_id: int, menu_id, call_id: str, digits: str | None, base_url: str,
                     callback_turn: int | None = None) -> IvrTransition:
        """
        Apply one DTMF turn (empty digits = the caller entered nothing).

        `callback_turn` is the turn count echoed by the Gather callback URL. It is
        only used when the cached state is missing, e.g. while redis is down.
        """
        digits = (digits or '').strip()
        menu = RoutingRepository.get_ivr_menu(tenant_id, menu_id)
        if menu is None or not menu.is_active():
            log.warning(f"IVR input for call {call_id}: menu {menu_id} of tenant {tenant_id} missing or inactive.")
            CallStateService.clear(call_id)
            return IvrTransition(IvrState.ERROR, response=instructions.say_with_hangup(MENU_ERROR_MESSAGE, Outcome.UNAVAILABLE))

        state = CallStateService.get(call_id)
        if not state or state.get('menu_id') != menu.id:
            # Expired TTL or cache outage: resume from the callback turn rather than drop the call.
            turn_count = max(callback_turn or 0, 0)
            log.info(f"No IVR state for call {call_id} on menu {menu.id}; resuming at turn {turn_count}.")
            state = CallStateService.start(call_id, menu.id, turn_count=turn_count)

        if digits:
            option = menu.option_for(digits)
            if option is not None:
                target = IvrService.resolve_destination(tenant_id, option.destination_type, option.destination_id)
                CallStateService.clear(call_id)
                if target is None:
                    log.warning(f"IVR menu {menu.id} option '{digits}' points at an unusable "
                                f"{option.destination_type} '{option.destination_id}'.")
                    return IvrTransition(IvrState.ERROR, turn_count=state['turn_count'],
                                         response=instructions.say_with_hangup(DESTINATION_GONE_MESSAGE, Outcome.UNAVAILABLE))
                log.info(f"IVR call {call_id} selected '{digits}' on menu {menu.id} -> {target}")
                return IvrTransition(IvrState.ROUTED, turn_count=state['turn_count'], target=target)

        state = CallStateService.record_turn(call_id, state, digits)
        turn_count = state['turn_count']
        if turn_count > menu.max_turns:
            log.info(f"IVR call {call_id} exceeded {menu.max_turns} turns on menu {menu.id}; failing over.")
            return IvrService.failover(menu, call_id, turn_count)

        preamble = INVALID_OPTION_MESSAGE if digits else None
        log.info(f"IVR call {call_id} {'invalid input ' + repr(digits) if digits else 'no input'} "
                 f"on menu {menu.id}, turn {turn_count}/{menu.max_turns}")
        return IvrTransition(IvrState.AWAITING_INPUT, turn_count=turn_count,
                             response=IvrService.prompt(menu, base_url, preamble=preamble, turn=turn_count))

    @staticmethod
    def failover(menu, call_id: str, turn_count: int = 0) -> IvrTransition:
        CallStateService.clear(call_id)
        if menu.failover_action == 'hangup':
            return IvrTransition(IvrState.FAILOVER, turn_count=turn_count,
                                 target=RoutingTarget(TargetKind.HANGUP, menu.tenant_id))
        target = IvrService.resolve_destination(menu.tenant_id, menu.failover_action, menu.failover_target_id)
        if target is None:
            log.warning(f"IVR menu {menu.id} failover {menu.failover_action} '{menu.failover_target_id}' is unusable.")
            return IvrTransition(IvrState.ERROR, turn_count=turn_count,
                                 response=instructions.say_with_hangup(DESTINATION_GONE_MESSAGE, Outcome.UNAVAILABLE))
        return IvrTransition(IvrState.FAILOVER, turn_count=turn_count, target=target)

    @staticmethod
    def resolve_destination(tenant_id: int, destination_type: str, destination_id) -> RoutingTarget | None:
        """
        Validate an option/failover destination within the tenant.

        Extensions are found by id, then by extension number. Extensions, ring
        groups and menus must be active; conference rooms only need to exist.
        Returns None when the destination cannot be used.
        """
        try:
            target = RoutingTarget.of(destination_type, tenant_id, destination_id)
        except ConfigurationError as e:
            log.warning(f"Invalid IVR destination: {e}")
            return None

        if target.kind == TargetKind.EXTENSION:
            extension = (RoutingRepository.get_extension(tenant_id, target.target_id)
                         or RoutingRepository.find_extension_by_number(tenant_id, target.target_id))
            if extension is None or not extension.is_active():
                return None
            return RoutingTarget(TargetKind.EXTENSION, tenant_id, str(extension.id))
        if target.kind == TargetKind.RING_GROUP:
            group = RoutingRepository.get_ring_group(tenant_id, target.target_id)
            return target if group is not None and group.is_active() else None
        if target.kind == TargetKind.IVR_MENU:
            menu = RoutingRepository.get_ivr_menu(tenant_id, target.target_id)
            return target if menu is not None and menu.is_active() else None
        if target.kind == TargetKind.CONFERENCE_ROOM:
            room = RoutingRepository.get_conference_room(tenant_id, target.target_id)
            return target if room is not None else None
        return target

    @staticmethod
    def cleanup(call_id: str):
        """Forget IVR state once the call has ended."""
        CallStateService.clear(call_id)
