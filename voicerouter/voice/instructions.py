# voicerouter/voice/instructions.py
# -*- coding: utf-8 -*-
"""
Call-control instruction algebra.

Routing code never builds markup directly. It returns a CallResponse, an
immutable sequence of verbs plus an outcome label, and the builder in
cxml_builder renders it for the carrier. Keeping these as plain values
makes every routing decision inspectable in tests.
"""

import enum
from dataclasses import dataclass, field

DEFAULT_DIAL_TIMEOUT = 30
DEFAULT_BUSY_MESSAGE = "All agents are currently busy. Please try again later."
DEFAULT_UNAVAILABLE_MESSAGE = "The extension you are trying to reach is unavailable."
DEFAULT_NOT_FOUND_MESSAGE = "Destination not found"


class Outcome(str, enum.Enum):
    """What the response does to the call, for logging and tests."""
    DIAL = 'dial'
    CONFERENCE = 'conference'
    PROMPT = 'prompt'
    VOICEMAIL = 'voicemail'
    BUSY = 'busy'
    UNAVAILABLE = 'unavailable'
    NOT_FOUND = 'not_found'
    HANGUP = 'hangup'


@dataclass(frozen=True)
class Say:
    text: str
    voice: str | None = None
    language: str | None = None


@dataclass(frozen=True)
class Play:
    url: str
    loop: int | None = None


@dataclass(frozen=True)
class Conference:
    name: str
    muted: bool = False
    beep: bool = True
    max_participants: int | None = None


@dataclass(frozen=True)
class Dial:
    """Dial one or more addresses at once, or join a conference."""
    targets: tuple = ()
    timeout: int = DEFAULT_DIAL_TIMEOUT
    trunk: str | None = None # Outbound trunk filter
    caller_id: str | None = None
    action: str | None = None
    conference: Conference | None = None


@dataclass(frozen=True)
class Gather:
    """Collect DTMF digits while playing `prompt` verbs, then POST them to `action`."""
    action: str
    prompt: tuple = ()
    timeout: int = 10
    finish_on_key: str = '#'
    min_digits: int = 1
    max_digits: int = 10
    method: str = 'POST'


@dataclass(frozen=True)
class Redirect:
    url: str
    method: str = 'POST'


@dataclass(frozen=True)
class Hangup:
    pass


@dataclass(frozen=True)
class Voicemail:
    action: str | None = None
    transcribe: bool | None = None


@dataclass(frozen=True)
class CallResponse:
    verbs: tuple = field(default_factory=tuple)
    outcome: Outcome = Outcome.HANGUP

    @property
    def dial(self) -> Dial | None:
        """The first Dial verb, if any."""
        for verb in self.verbs:
            if isinstance(verb, Dial):
                return verb
        return None

    @property
    def dialed_targets(self) -> tuple:
        dial_verb = self.dial
        return dial_verb.targets if dial_verb else ()

    @property
    def spoken_text(self) -> list:
        """Every Say text in order, including those nested in a Gather."""
        texts = []
        for verb in self.verbs:
            if isinstance(verb, Say):
                texts.append(verb.text)
            elif isinstance(verb, Gather):
                texts.extend(v.text for v in verb.prompt if isinstance(v, Say))
        return texts


# --- Builders ---

def dial(address: str, timeout: int = DEFAULT_DIAL_TIMEOUT, trunk: str | None = None,
         caller_id: str | None = None) -> CallResponse:
    return CallResponse((Dial(targets=(address,), timeout=timeout, trunk=trunk, caller_id=caller_id),), Outcome.DIAL)


def dial_many(addresses, timeout: int = DEFAULT_DIAL_TIMEOUT) -> CallResponse:
    """Ring every address simultaneously; the first to answer takes the call."""
    return CallResponse((Dial(targets=tuple(addresses), timeout=timeout),), Outcome.DIAL)


def say(text: str, voice: str | None = None) -> CallResponse:
    return CallResponse((Say(text, voice=voice),), Outcome.PROMPT)


def gather(prompt, action_url: str, preamble: str | None = None) -> CallResponse:
    """
    Present a menu and wait for digits.

    `prompt` is a Say/Play verb or plain text. `preamble` is spoken first
    (e.g. an invalid-option notice). The trailing Redirect re-posts to the
    same action when the caller enters nothing, so a silent turn still
    reaches the menu handler.
    """
    if isinstance(prompt, str):
        prompt = Say(prompt)
    prompt_verbs = (Say(preamble), prompt) if preamble else (prompt,)
    return CallResponse((Gather(action=action_url, prompt=prompt_verbs), Redirect(action_url)), Outcome.PROMPT)


def hangup() -> CallResponse:
    return CallResponse((Hangup(),), Outcome.HANGUP)


def say_with_hangup(message: str, outcome: Outcome = Outcome.HANGUP) -> CallResponse:
    return CallResponse((Say(message), Hangup()), outcome)


def busy(message: str | None = None) -> CallResponse:
    return say_with_hangup(message or DEFAULT_BUSY_MESSAGE, Outcome.BUSY)


def unavailable(message: str | None = None) -> CallResponse:
    return say_with_hangup(message or DEFAULT_UNAVAILABLE_MESSAGE, Outcome.UNAVAILABLE)


def not_found(message: str | None = None) -> CallResponse:
    return say_with_hangup(message or DEFAULT_NOT_FOUND_MESSAGE, Outcome.NOT_FOUND)


def voicemail(action: str | None = None) -> CallResponse:
    return CallResponse((Voicemail(action=action),), Outcome.VOICEMAIL)


def join_conference(name: str, muted: bool = False, beep: bool = True,
                    max_participants: int | None = None) -> CallResponse:
    room = Conference(name=name, muted=muted, beep=beep, max_participants=max_participants)
    return CallResponse((Dial(conference=room),), Outcome.CONFERENCE)
