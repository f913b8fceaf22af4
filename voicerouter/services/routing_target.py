# voicerouter/services/routing_target.py
# -*- coding: utf-8 -*-
"""
RoutingTarget: where a call should go next.

Every resolution step (DID config, business hours action, IVR option or
failover) produces one of these. The resolver has exactly one branch per
TargetKind; nothing dispatches on raw type strings after parsing.
"""

import enum
from dataclasses import dataclass

from voicerouter.utils.exceptions import ConfigurationError


class TargetKind(str, enum.Enum):
    EXTENSION = 'extension'
    RING_GROUP = 'ring_group'
    CONFERENCE_ROOM = 'conference_room'
    IVR_MENU = 'ivr_menu'
    VOICEMAIL = 'voicemail'
    HANGUP = 'hangup'


# DID routing_type -> (target kind, key in routing_config holding the target id)
DID_ROUTES = {
    'extension': (TargetKind.EXTENSION, 'extension_id'),
    'ai_assistant': (TargetKind.EXTENSION, 'extension_id'),
    'ring_group': (TargetKind.RING_GROUP, 'ring_group_id'),
    'conference_room': (TargetKind.CONFERENCE_ROOM, 'conference_room_id'),
    'ivr_menu': (TargetKind.IVR_MENU, 'ivr_menu_id'),
}

# Kinds that can route without referencing an entity
TERMINAL_KINDS = (TargetKind.VOICEMAIL, TargetKind.HANGUP)


@dataclass(frozen=True)
class RoutingTarget:
    kind: TargetKind
    tenant_id: int
    # Stored as text: IVR options may hold an extension number in place of an id
    target_id: str | None = None

    @classmethod
    def of(cls, kind, tenant_id: int, target_id=None) -> 'RoutingTarget':
        """
        Build a target from a (type, id) pair as stored on schedules and menus.

        Raises:
            ConfigurationError: Unknown type, or an entity type with no id.
        """
        try:
            kind = TargetKind(kind)
        except ValueError:
            raise ConfigurationError(f"Unknown routing destination type '{kind}'.")
        target_id = str(target_id).strip() if target_id not in (None, '') else None
        if target_id is None and kind not in TERMINAL_KINDS:
            raise ConfigurationError(f"Routing destination '{kind.value}' has no target configured.")
        return cls(kind=kind, tenant_id=tenant_id, target_id=target_id)

    @classmethod
    def from_did(cls, did, resolve_schedule) -> 'RoutingTarget':
        """
        Parse a DID's routing_type + routing_config once.

        `business_hours` DIDs point at a schedule rather than a destination;
        `resolve_schedule(schedule_id)` evaluates it and returns its current
        action target.
        """
        config = did.routing_config or {}
        if did.routing_type == 'business_hours':
            schedule_id = config.get('business_hours_id')
            if schedule_id in (None, ''):
                raise ConfigurationError(f"DID {did.phone_number} routes to business hours without a schedule.")
            return resolve_schedule(str(schedule_id))

        if did.routing_type not in DID_ROUTES:
            raise ConfigurationError(f"DID {did.phone_number} has unsupported routing type '{did.routing_type}'.")
        kind, config_key = DID_ROUTES[did.routing_type]
        return cls.of(kind, did.tenant_id, config.get(config_key))

    def __str__(self):
        return f"{self.kind.value}:{self.target_id}@tenant{self.tenant_id}"
