"""Reply directives and their Messenger Send API representation."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

MAX_TEMPLATE_BUTTONS = 3
MAX_QUICK_REPLIES = 13


class MessagingType(str, enum.Enum):
    RESPONSE = "RESPONSE"
    UPDATE = "UPDATE"
    NON_PROMOTIONAL_SUBSCRIPTION = "NON_PROMOTIONAL_SUBSCRIPTION"


class SenderAction(str, enum.Enum):
    MARK_SEEN = "mark_seen"
    TYPING_ON = "typing_on"
    TYPING_OFF = "typing_off"


# ---------------------------------------------------------------- buttons


@dataclass(frozen=True)
class LoginButton:
    url: str

    def to_wire(self) -> dict:
        return {"type": "account_link", "url": self.url}


@dataclass(frozen=True)
class LogoutButton:
    def to_wire(self) -> dict:
        return {"type": "account_unlink"}


@dataclass(frozen=True)
class UrlButton:
    url: str
    title: str

    def to_wire(self) -> dict:
        return {"type": "web_url", "url": self.url, "title": self.title}


@dataclass(frozen=True)
class PostbackButton:
    title: str
    payload: str

    def to_wire(self) -> dict:
        return {"type": "postback", "title": self.title, "payload": self.payload}


Button = Union[LoginButton, LogoutButton, UrlButton, PostbackButton]


# ---------------------------------------------------------- quick replies


@dataclass(frozen=True)
class QuickReplyOption:
    title: str
    payload: str
    image_url: Optional[str] = None

    def to_wire(self) -> dict:
        wire = {"content_type": "text", "title": self.title, "payload": self.payload}
        if self.image_url:
            wire["image_url"] = self.image_url
        return wire


@dataclass(frozen=True)
class LocationQuickReply:
    def to_wire(self) -> dict:
        return {"content_type": "location"}


# ------------------------------------------------------------- directives


@dataclass(frozen=True)
class TextReply:
    text: str

    @property
    def summary(self) -> str:
        return self.text


@dataclass(frozen=True)
class QuickReplies:
    text: str
    options: Sequence[Union[QuickReplyOption, LocationQuickReply]]

    def __post_init__(self):
        if not self.options or len(self.options) > MAX_QUICK_REPLIES:
            raise ValueError(f"quick replies need between 1 and {MAX_QUICK_REPLIES} options")

    @property
    def summary(self) -> str:
        return self.text


@dataclass(frozen=True)
class ButtonTemplate:
    text: str
    buttons: Sequence[Button]

    def __post_init__(self):
        if not isinstance(self.buttons, (list, tuple)) or not 0 < len(self.buttons) <= MAX_TEMPLATE_BUTTONS:
            raise ValueError(f"buttons has to be a sequence of 1 to {MAX_TEMPLATE_BUTTONS} buttons")

    @property
    def summary(self) -> str:
        return self.text

    def to_wire(self) -> dict:
        return {
            "template_type": "button",
            "text": self.text,
            "buttons": [button.to_wire() for button in self.buttons],
        }


@dataclass(frozen=True)
class Element:
    title: str
    subtitle: Optional[str] = None
    image_url: Optional[str] = None
    buttons: Sequence[Button] = field(default_factory=tuple)
    default_action: Optional[UrlButton] = None

    def to_wire(self) -> dict:
        wire: dict[str, Any] = {"title": self.title}
        if self.subtitle:
            wire["subtitle"] = self.subtitle
        if self.image_url:
            wire["image_url"] = self.image_url
        if self.buttons:
            wire["buttons"] = [button.to_wire() for button in self.buttons]
        if self.default_action is not None:
            action = self.default_action.to_wire()
            action.pop("title", None)
            wire["default_action"] = action
        return wire


@dataclass(frozen=True)
class ListTemplate:
    elements: Sequence[Element]
    buttons: Sequence[Button] = field(default_factory=tuple)
    big_top: bool = True

    def __post_init__(self):
        if not 2 <= len(self.elements) <= 4:
            raise ValueError("list templates need between 2 and 4 elements")
        if len(self.buttons) > 1:
            raise ValueError("list templates allow at most one button")

    @property
    def summary(self) -> str:
        return " / ".join(element.title for element in self.elements)

    def to_wire(self) -> dict:
        wire = {
            "template_type": "list",
            "top_element_style": "large" if self.big_top else "compact",
            "elements": [element.to_wire() for element in self.elements],
        }
        if self.buttons:
            wire["buttons"] = [button.to_wire() for button in self.buttons]
        return wire


Directive = Union[TextReply, QuickReplies, ButtonTemplate, ListTemplate]


def as_directive(reply: Union[str, Directive]) -> Directive:
    if isinstance(reply, str):
        return TextReply(reply)
    if isinstance(reply, (TextReply, QuickReplies, ButtonTemplate, ListTemplate)):
        return reply
    raise TypeError(f"unsupported reply type: {type(reply).__name__}")


def render_message(
    recipient_id: str,
    reply: Union[str, Directive],
    messaging_type: MessagingType = MessagingType.RESPONSE,
) -> dict:
    """Build the Send API request body for one reply."""
    directive = as_directive(reply)

    if isinstance(directive, TextReply):
        message: dict[str, Any] = {"text": directive.text}
    elif isinstance(directive, QuickReplies):
        message = {
            "text": directive.text,
            "quick_replies": [option.to_wire() for option in directive.options],
        }
    else:
        message = {"attachment": {"type": "template", "payload": directive.to_wire()}}

    return {
        "messaging_type": MessagingType(messaging_type).value,
        "recipient": {"id": str(recipient_id)},
        "message": message,
    }


def render_sender_action(recipient_id: str, action: SenderAction) -> dict:
    return {"recipient": {"id": str(recipient_id)}, "sender_action": SenderAction(action).value}
