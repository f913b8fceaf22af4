# voicerouter/services/call_state_service.py
# -*- coding: utf-8 -*-
"""
Per-call IVR state, keyed by the carrier call id and kept in the cache with
a TTL so abandoned calls clean themselves up.

State shape:
    {'menu_id': int, 'turn_count': int, 'started_at': iso, 'last_input_at': iso|None,
     'input_history': [{'digits': str, 'at': iso}, ...]}
"""
import logging
from datetime import datetime, timezone
from flask import current_app

from voicerouter.extensions import cache

log = logging.getLogger(__name__)

MAX_INPUT_HISTORY = 10


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CallStateService:

    @staticmethod
    def key(call_id: str) -> str:
        return f"ivr:call:{call_id}"

    @staticmethod
    def get(call_id: str) -> dict | None:
        return cache.get(CallStateService.key(call_id))

    @staticmethod
    def save(call_id: str, state: dict) -> dict:
        ttl = current_app.config.get('IVR_STATE_TTL', 3600)
        if not cache.put(CallStateService.key(call_id), state, ttl):
            log.warning(f"IVR state for call {call_id} could not be cached; turn counting is degraded.")
        return state

    @staticmethod
    def start(call_id: str, menu_id: int, turn_count: int = 0) -> dict:
        """Fresh state for `menu_id`, at turn 0 unless resuming a known count."""
        state = {
            'menu_id': menu_id,
            'turn_count': turn_count,
            'started_at': _now_iso(),
            'last_input_at': None,
            'input_history': [],
        }
        return CallStateService.save(call_id, state)

    @staticmethod
    def record_turn(call_id: str, state: dict, digits: str) -> dict:
        """Count an unproductive turn (no input or invalid digits) and persist it."""
        state['turn_count'] = int(state.get('turn_count', 0)) + 1
        state['last_input_at'] = _now_iso()
        history = list(state.get('input_history') or [])
        history.append({'digits': digits, 'at': state['last_input_at']})
        state['input_history'] = history[-MAX_INPUT_HISTORY:]
        return CallStateService.save(call_id, state)

    @staticmethod
    def clear(call_id: str):
        cache.forget(CallStateService.key(call_id))
