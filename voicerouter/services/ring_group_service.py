# voicerouter/services/ring_group_service.py
# -*- coding: utf-8 -*-
"""
Ring Group Hunter
Builds the dial instruction for a ring group. Membership is read fresh under
a per-group lock so a call never dials a member set that is mid-edit.
"""
import logging
import time
from flask import current_app

from voicerouter.extensions import cache
from voicerouter.services.routing_repository import RoutingRepository
from voicerouter.utils.exceptions import LockTimeout, LockBackendFailure
from voicerouter.voice import instructions
from voicerouter.voice.instructions import CallResponse, Outcome

log = logging.getLogger(__name__)

NO_AGENTS_MESSAGE = "No agents available."
GROUP_UNAVAILABLE_MESSAGE = "Ring group not available."
TEMPORARILY_UNAVAILABLE_MESSAGE = "The service is temporarily unavailable. Please try again later."


class RingGroupService:

    @staticmethod
    def lock_name(ring_group_id: int) -> str:
        return f"ring_group:{ring_group_id}"

    @staticmethod
    def route(group) -> CallResponse:
        """
        Dial instruction for the group's active members, or its fallback.

        Lock contention is retried with exponential backoff; a broken lock
        backend answers "temporarily unavailable" at once. Never raises.
        """
        if group is None or not group.is_active():
            log.warning(f"Ring group routing refused: {group!r} missing or inactive.")
            return instructions.say_with_hangup(GROUP_UNAVAILABLE_MESSAGE, Outcome.NOT_FOUND)

        config = current_app.config
        lease = config.get('RING_GROUP_LOCK_LEASE', 5)
        wait = config.get('RING_GROUP_LOCK_WAIT', 3)
        attempts = config.get('RING_GROUP_LOCK_ATTEMPTS', 3)
        backoff = config.get('RING_GROUP_LOCK_BACKOFF', 0.1)

        for attempt in range(1, attempts + 1):
            try:
                return cache.with_lock(RingGroupService.lock_name(group.id),
                                       lambda: RingGroupService.build_dial(group),
                                       lease_seconds=lease, wait_seconds=wait)
            except LockTimeout:
                if attempt < attempts:
                    delay = backoff * (2 ** (attempt - 1))
                    log.warning(f"Ring group {group.id} lock busy (attempt {attempt}/{attempts}); retrying in {delay:.2f}s")
                    time.sleep(delay)
            except LockBackendFailure as e:
                log.critical(f"Ring group {group.id}: lock backend failure, no mutual exclusion available: {e}")
                return instructions.unavailable(TEMPORARILY_UNAVAILABLE_MESSAGE)

        log.error(f"Ring group {group.id}: lock not acquired after {attempts} attempts.")
        return instructions.unavailable(TEMPORARILY_UNAVAILABLE_MESSAGE)

    @staticmethod
    def build_dial(group) -> CallResponse:
        """Critical section: fresh member read, address mapping, dial list."""
        members = RoutingRepository.ring_group_members(group.tenant_id, group.id)
        addresses = list(dict.fromkeys(m.session_address for m in members if m.session_address))

        if not addresses:
            log.info(f"Ring group {group.id} has no reachable active members; running fallback '{group.fallback_action}'.")
            return RingGroupService.fallback(group)

        if group.strategy != 'simultaneous':
            # TODO: per-call cursor state for round_robin/sequential hunting.
            log.warning(f"Ring group {group.id}: strategy '{group.strategy}' is not implemented; ringing all members simultaneously.")

        timeout = group.timeout or current_app.config.get('DEFAULT_DIAL_TIMEOUT', 30)
        log.info(f"Ring group {group.id} dialing {len(addresses)} members for {timeout}s")
        return instructions.dial_many(addresses, timeout=timeout)

    @staticmethod
    def fallback(group) -> CallResponse:
        action = group.fallback_action
        if action == 'extension':
            extension = RoutingRepository.get_extension(group.tenant_id, group.fallback_extension_id)
            if extension is not None and extension.is_active() and extension.session_address:
                return instructions.dial(extension.session_address,
                                         timeout=current_app.config.get('DEFAULT_DIAL_TIMEOUT', 30))
            log.warning(f"Ring group {group.id} fallback extension {group.fallback_extension_id} is unusable.")
        elif action == 'voicemail':
            return instructions.voicemail()
        elif action == 'busy':
            return instructions.busy(group.fallback_message)
        elif action == 'hangup':
            if group.fallback_message:
                return instructions.say_with_hangup(group.fallback_message)
            return instructions.hangup()
        return instructions.say_with_hangup(NO_AGENTS_MESSAGE, Outcome.UNAVAILABLE)
