# voicerouter/voice/cxml_builder.py
# -*- coding: utf-8 -*-
"""
Protocol Response Builder.

Renders a CallResponse into the XML document the carrier executes, using
twilio's TwiML builder (the CXML dialect is TwiML-compatible for every verb
used here). Pure: the same CallResponse always renders to the same string.
"""

import logging

from twilio.twiml.voice_response import VoiceResponse

from voicerouter.voice.instructions import (
    CallResponse, Dial, Say, Play, Gather, Redirect, Hangup, Voicemail,
)

log = logging.getLogger(__name__)


def _attrs(**kwargs) -> dict:
    """Drop unset attributes so they never render as empty strings."""
    return {key: value for key, value in kwargs.items() if value is not None}


def is_sip_uri(target: str) -> bool:
    return target.lower().startswith(('sip:', 'sips:'))


def _add_prompt(parent, verb):
    if isinstance(verb, Say):
        parent.say(verb.text, **_attrs(voice=verb.voice, language=verb.language))
    elif isinstance(verb, Play):
        parent.play(verb.url, **_attrs(loop=verb.loop))
    else:
        raise TypeError(f"Unsupported prompt verb: {verb!r}")


def _add_dial(response, verb: Dial):
    dial = response.dial(**_attrs(timeout=verb.timeout, trunks=verb.trunk,
                                  caller_id=verb.caller_id, action=verb.action))
    if verb.conference is not None:
        room = verb.conference
        dial.conference(room.name, **_attrs(muted=room.muted, beep=room.beep,
                                            max_participants=room.max_participants))
        return
    for target in verb.targets:
        if is_sip_uri(target):
            dial.sip(target)
        else:
            dial.number(target)


def render(call_response: CallResponse) -> str:
    """Render the instruction sequence as an XML document string."""
    response = VoiceResponse()
    for verb in call_response.verbs:
        if isinstance(verb, Dial):
            _add_dial(response, verb)
        elif isinstance(verb, (Say, Play)):
            _add_prompt(response, verb)
        elif isinstance(verb, Gather):
            gather = response.gather(**_attrs(action=verb.action, method=verb.method, timeout=verb.timeout,
                                              finish_on_key=verb.finish_on_key, min_digits=verb.min_digits,
                                              max_digits=verb.max_digits))
            for prompt in verb.prompt:
                _add_prompt(gather, prompt)
        elif isinstance(verb, Redirect):
            response.redirect(verb.url, method=verb.method)
        elif isinstance(verb, Hangup):
            response.hangup()
        elif isinstance(verb, Voicemail):
            response.add_child('Voicemail', **_attrs(action=verb.action, transcribe=verb.transcribe))
        else:
            raise TypeError(f"Unsupported call-control verb: {verb!r}")
    return str(response)
