"""
Conversation state machine.

`next_step` is a pure transition table; the side effects of each action live in
`messenger_bot.handlers.conversation`. Quick-reply clicks and postbacks carry the
same payload tokens, so both go through here. Free text is the `TEXT_INPUT`
trigger.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional

from database.models import ConversationState, NICKNAME_MAX_LENGTH
from messenger_bot.errors import UnknownConversationCommand, ValidationFailure


class Payload:
    """Postback / quick-reply payload tokens."""

    GET_STARTED = "get_started"
    INFO = "info"
    MENU_NICKNAME = "menu_nickname"
    NICKNAME_ASK_YES = "nickname_ask_yes"
    NICKNAME_ASK_NO = "nickname_ask_no"
    NICKNAME_CANCEL = "nickname_cancel"
    NICKNAME_DELETE = "nickname_delete"
    MENU_FEEDBACK = "menu_feedback"
    FEEDBACK_CANCEL = "feedback_cancel"


TEXT_INPUT = "<text>"


class Action(str, enum.Enum):
    WELCOME = "welcome"
    ABOUT = "about"
    ASK_NICKNAME = "ask_nickname"
    PROMPT_NICKNAME = "prompt_nickname"
    KEEP_NICKNAME = "keep_nickname"
    DELETE_NICKNAME = "delete_nickname"
    SAVE_NICKNAME = "save_nickname"
    PROMPT_FEEDBACK = "prompt_feedback"
    DISCARD_FEEDBACK = "discard_feedback"
    SAVE_FEEDBACK = "save_feedback"


@dataclass(frozen=True)
class Step:
    action: Action
    next_state: Optional[ConversationState]  # None keeps the current state


S = ConversationState

# Accepted in every state.
_ANY_STATE = {
    Payload.GET_STARTED: Step(Action.WELCOME, None),
    Payload.INFO: Step(Action.ABOUT, None),
    Payload.MENU_NICKNAME: Step(Action.ASK_NICKNAME, S.ASK_NICKNAME),
    Payload.MENU_FEEDBACK: Step(Action.PROMPT_FEEDBACK, S.FEEDBACK),
}

_TRANSITIONS = {
    S.ASK_NICKNAME: {
        Payload.NICKNAME_ASK_YES: Step(Action.PROMPT_NICKNAME, S.INPUT_NICKNAME),
        Payload.NICKNAME_ASK_NO: Step(Action.KEEP_NICKNAME, S.NO_STATE),
        Payload.NICKNAME_CANCEL: Step(Action.KEEP_NICKNAME, S.NO_STATE),
        Payload.NICKNAME_DELETE: Step(Action.DELETE_NICKNAME, S.NO_STATE),
    },
    S.INPUT_NICKNAME: {
        Payload.NICKNAME_CANCEL: Step(Action.KEEP_NICKNAME, S.NO_STATE),
        TEXT_INPUT: Step(Action.SAVE_NICKNAME, S.NO_STATE),
    },
    S.FEEDBACK: {
        Payload.FEEDBACK_CANCEL: Step(Action.DISCARD_FEEDBACK, S.NO_STATE),
        TEXT_INPUT: Step(Action.SAVE_FEEDBACK, S.NO_STATE),
    },
}


def next_step(state: ConversationState, trigger: str) -> Step:
    """
    Look up the transition for `trigger` in `state`.

    Raises:
        UnknownConversationCommand: the state does not accept the trigger.
    """
    state = ConversationState.coerce(state)
    step = _ANY_STATE.get(trigger) or _TRANSITIONS.get(state, {}).get(trigger)
    if step is None:
        raise UnknownConversationCommand(state, trigger)
    return step


def accepts_text(state: ConversationState) -> bool:
    return TEXT_INPUT in _TRANSITIONS.get(ConversationState.coerce(state), {})


_NICKNAME_RE = re.compile(r"^[A-Za-z0-9 ]+$")
_WHITESPACE_RE = re.compile(r"\s+")


def validate_nickname(text: str) -> str:
    """
    Normalize a nickname candidate (collapse whitespace, trim) and validate it.

    Raises:
        ValidationFailure: empty, longer than 24 chars, or not letters/digits/spaces.
    """
    nickname = _WHITESPACE_RE.sub(" ", text or "").strip()
    if not nickname:
        raise ValidationFailure("nickname is empty")
    if len(nickname) > NICKNAME_MAX_LENGTH:
        raise ValidationFailure(f"nickname is longer than {NICKNAME_MAX_LENGTH} characters")
    if not _NICKNAME_RE.match(nickname):
        raise ValidationFailure("nickname may only contain letters, digits and spaces")
    return nickname
