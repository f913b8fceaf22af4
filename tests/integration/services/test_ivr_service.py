# tests/integration/services/test_ivr_service.py
# -*- coding: utf-8 -*-
"""
Integration tests for the IVR state machine against seeded menus.
Per-call state lives in the cache, so most tests run with FakeRedis.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from voicerouter.services.call_state_service import CallStateService
from voicerouter.services.ivr_service import (
    IvrService, IvrState, DEFAULT_PROMPT, INVALID_OPTION_MESSAGE, MENU_ERROR_MESSAGE, DESTINATION_GONE_MESSAGE,
    ivr_action_url,
)
from voicerouter.services.routing_target import TargetKind
from voicerouter.voice.instructions import Gather, Play, Say

BASE_URL = 'https://pbx.test'


@pytest.fixture
def menu_setup(session, seed):
    tenant = seed.tenant()
    sales = seed.extension(tenant, '2001')
    support = seed.ring_group(tenant, name='Support')
    menu = seed.ivr_menu(tenant, max_turns=2, tts_text='Press 1 for sales, 2 for support.', options=[
        ('1', 'extension', str(sales.id)),
        ('2', 'ring_group', str(support.id)),
        ('3', 'extension', '2001'), # Number stored instead of id
        ('7', 'extension', '9999'),
        ('0', 'hangup', None),
    ])
    return tenant, menu, sales, support


def test_action_url():
    assert ivr_action_url('https://pbx.test/', 4, 9) == 'https://pbx.test/api/voice/4/ivr-input?menu_id=9'
    assert ivr_action_url(BASE_URL, 4, 9, 2) == 'https://pbx.test/api/voice/4/ivr-input?menu_id=9&turn=2'


# --- Entry ---

def test_enter_starts_state_at_turn_zero(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    transition = IvrService.enter(menu, 'CA1', BASE_URL)

    assert transition.state == IvrState.AWAITING_INPUT
    assert transition.turn_count == 0
    assert CallStateService.get('CA1')['menu_id'] == menu.id
    gather = transition.response.verbs[0]
    assert isinstance(gather, Gather)
    assert gather.action == ivr_action_url(BASE_URL, tenant.id, menu.id, 0)
    assert transition.response.spoken_text == ['Press 1 for sales, 2 for support.']


def test_enter_inactive_menu_is_error(session, seed):
    tenant = seed.tenant()
    menu = seed.ivr_menu(tenant, status='inactive')
    transition = IvrService.enter(menu, 'CA2', BASE_URL)
    assert transition.state == IvrState.ERROR
    assert transition.response.spoken_text == [MENU_ERROR_MESSAGE]


def test_audio_prompt_wins_and_relative_path_is_joined(session, seed):
    tenant = seed.tenant()
    menu = seed.ivr_menu(tenant, audio_file_path='/audio/main.wav', tts_text='ignored')
    prompt = IvrService.enter(menu, 'CA3', BASE_URL).response.verbs[0].prompt
    assert prompt == (Play('https://pbx.test/audio/main.wav'),)


def test_default_prompt_without_audio_or_text(session, seed):
    tenant = seed.tenant()
    menu = seed.ivr_menu(tenant)
    assert IvrService.enter(menu, 'CA4', BASE_URL).response.verbs[0].prompt == (Say(DEFAULT_PROMPT),)


# --- Valid options ---

def test_valid_option_routes_and_clears_state(menu_setup, fake_redis):
    tenant, menu, sales, _ = menu_setup
    IvrService.enter(menu, 'CA5', BASE_URL)

    transition = IvrService.handle_input(tenant.id, menu.id, 'CA5', '1', BASE_URL)

    assert transition.state == IvrState.ROUTED
    assert transition.target.kind == TargetKind.EXTENSION
    assert transition.target.target_id == str(sales.id)
    assert CallStateService.get('CA5') is None


def test_extension_option_falls_back_to_number_lookup(menu_setup):
    tenant, menu, sales, _ = menu_setup
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA6', '3', BASE_URL)
    assert transition.state == IvrState.ROUTED
    assert transition.target.target_id == str(sales.id)


def test_ring_group_option(menu_setup):
    tenant, menu, _, support = menu_setup
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA7', '2', BASE_URL)
    assert transition.target.kind == TargetKind.RING_GROUP
    assert transition.target.target_id == str(support.id)


def test_hangup_option(menu_setup):
    tenant, menu, _, _ = menu_setup
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA8', '0', BASE_URL)
    assert transition.state == IvrState.ROUTED
    assert transition.target.kind == TargetKind.HANGUP


def test_option_to_missing_extension_is_error(menu_setup):
    tenant, menu, _, _ = menu_setup
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA9', '7', BASE_URL)
    assert transition.state == IvrState.ERROR
    assert transition.response.spoken_text == [DESTINATION_GONE_MESSAGE]


def test_option_to_inactive_extension_is_error(session, seed):
    tenant = seed.tenant()
    gone = seed.extension(tenant, '2100', status='inactive')
    menu = seed.ivr_menu(tenant, options=[('1', 'extension', str(gone.id))])
    assert IvrService.handle_input(tenant.id, menu.id, 'CA10', '1', BASE_URL).state == IvrState.ERROR


def test_option_to_other_tenants_extension_is_error(session, seed):
    tenant = seed.tenant()
    other = seed.tenant(name='Other')
    foreign = seed.extension(other, '2200')
    menu = seed.ivr_menu(tenant, options=[('1', 'extension', str(foreign.id))])
    assert IvrService.handle_input(tenant.id, menu.id, 'CA11', '1', BASE_URL).state == IvrState.ERROR


def test_conference_room_option_only_needs_to_exist(session, seed):
    tenant = seed.tenant()
    room = seed.conference_room(tenant)
    menu = seed.ivr_menu(tenant, options=[('4', 'conference_room', str(room.id))])
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA12', '4', BASE_URL)
    assert transition.target.kind == TargetKind.CONFERENCE_ROOM


# --- Turn counting ---

def test_no_input_replays_menu_and_counts_turn(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    IvrService.enter(menu, 'CA13', BASE_URL)

    transition = IvrService.handle_input(tenant.id, menu.id, 'CA13', '', BASE_URL)

    assert transition.state == IvrState.AWAITING_INPUT
    assert transition.turn_count == 1
    assert transition.response.spoken_text == ['Press 1 for sales, 2 for support.']
    assert CallStateService.get('CA13')['turn_count'] == 1


def test_invalid_input_announces_and_counts_turn(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    IvrService.enter(menu, 'CA14', BASE_URL)

    transition = IvrService.handle_input(tenant.id, menu.id, 'CA14', '9', BASE_URL)

    assert transition.state == IvrState.AWAITING_INPUT
    assert transition.response.spoken_text[0] == INVALID_OPTION_MESSAGE
    state = CallStateService.get('CA14')
    assert state['input_history'][-1]['digits'] == '9'


def test_failover_exactly_when_turns_exceed_max(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup # max_turns=2
    IvrService.enter(menu, 'CA15', BASE_URL)

    first = IvrService.handle_input(tenant.id, menu.id, 'CA15', '', BASE_URL)
    second = IvrService.handle_input(tenant.id, menu.id, 'CA15', '8', BASE_URL)
    third = IvrService.handle_input(tenant.id, menu.id, 'CA15', None, BASE_URL)

    assert [first.turn_count, second.turn_count] == [1, 2]
    assert first.state == second.state == IvrState.AWAITING_INPUT
    assert third.state == IvrState.FAILOVER
    assert third.turn_count == 3
    assert third.target.kind == TargetKind.HANGUP
    assert CallStateService.get('CA15') is None


def test_unmapped_digit_on_turn_one_fails_over(session, seed, fake_redis):
    tenant = seed.tenant()
    menu = seed.ivr_menu(tenant, max_turns=1)
    CallStateService.save('CA16', {'menu_id': menu.id, 'turn_count': 1, 'input_history': []})

    transition = IvrService.handle_input(tenant.id, menu.id, 'CA16', '9', BASE_URL)
    assert transition.state == IvrState.FAILOVER


def test_failover_to_extension(session, seed, fake_redis):
    tenant = seed.tenant()
    operator = seed.extension(tenant, '2300')
    menu = seed.ivr_menu(tenant, max_turns=0, failover_action='extension', failover_target_id=str(operator.id))

    transition = IvrService.handle_input(tenant.id, menu.id, 'CA17', '', BASE_URL)
    assert transition.state == IvrState.FAILOVER
    assert transition.target.kind == TargetKind.EXTENSION
    assert transition.target.target_id == str(operator.id)


def test_failover_to_unusable_destination_is_error(session, seed, fake_redis):
    tenant = seed.tenant()
    menu = seed.ivr_menu(tenant, max_turns=0, failover_action='ring_group', failover_target_id='424242')
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA18', '', BASE_URL)
    assert transition.state == IvrState.ERROR


def test_missing_state_restarts_at_turn_zero(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA19', '', BASE_URL)
    assert transition.turn_count == 1


def turn_in(transition):
    """Turn count the carrier will echo back on the next Gather callback."""
    return int(parse_qs(urlparse(transition.response.verbs[0].action).query)['turn'][0])


def test_replayed_prompt_carries_turn_in_callback_url(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    IvrService.enter(menu, 'CA23', BASE_URL)
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA23', '9', BASE_URL)
    assert turn_in(transition) == 1


def test_missing_state_resumes_from_callback_turn(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup # max_turns=2
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA24', '', BASE_URL, callback_turn=1)
    assert transition.turn_count == 2
    assert turn_in(transition) == 2


def test_negative_callback_turn_is_ignored(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA25', '', BASE_URL, callback_turn=-5)
    assert transition.turn_count == 1


def test_cached_state_wins_over_callback_turn(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    IvrService.enter(menu, 'CA26', BASE_URL)
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA26', '', BASE_URL, callback_turn=2)
    assert transition.state == IvrState.AWAITING_INPUT
    assert transition.turn_count == 1


def test_fails_over_while_redis_is_down(session, seed, fake_redis):
    tenant = seed.tenant()
    menu = seed.ivr_menu(tenant, max_turns=1, options=[('1', 'hangup', None)])
    fake_redis.down = True

    entered = IvrService.enter(menu, 'CA27', BASE_URL)
    first = IvrService.handle_input(tenant.id, menu.id, 'CA27', '9', BASE_URL, callback_turn=turn_in(entered))
    second = IvrService.handle_input(tenant.id, menu.id, 'CA27', '9', BASE_URL, callback_turn=turn_in(first))

    assert CallStateService.get('CA27') is None
    assert (first.state, first.turn_count) == (IvrState.AWAITING_INPUT, 1)
    assert (second.state, second.turn_count) == (IvrState.FAILOVER, 2)
    assert second.target.kind == TargetKind.HANGUP


def test_state_from_another_menu_is_reset(menu_setup, fake_redis):
    tenant, menu, _, _ = menu_setup
    CallStateService.save('CA20', {'menu_id': menu.id + 100, 'turn_count': 5, 'input_history': []})
    transition = IvrService.handle_input(tenant.id, menu.id, 'CA20', '', BASE_URL)
    assert transition.state == IvrState.AWAITING_INPUT
    assert transition.turn_count == 1


def test_missing_menu_is_error(session, seed):
    tenant = seed.tenant()
    transition = IvrService.handle_input(tenant.id, 31337, 'CA21', '1', BASE_URL)
    assert transition.state == IvrState.ERROR
    assert transition.response.spoken_text == [MENU_ERROR_MESSAGE]


def test_cleanup_forgets_state(fake_redis):
    CallStateService.start('CA22', 1)
    IvrService.cleanup('CA22')
    assert CallStateService.get('CA22') is None
