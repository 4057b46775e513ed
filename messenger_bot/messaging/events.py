"""Typed inbound events, decoded once from a raw Messenger webhook entry."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from messenger_bot.errors import MalformedPayload
from messenger_bot.utils.datetime_utils import from_timestamp


class LinkingStatus(str, enum.Enum):
    LINKED = "linked"
    UNLINKED = "unlinked"


@dataclass(frozen=True)
class TextMessage:
    sender_id: str
    recipient_id: str
    timestamp: datetime
    message_id: str
    text: str


@dataclass(frozen=True)
class UnsupportedMessage:
    """A message without a text body (stickers, images, attachments)."""

    sender_id: str
    recipient_id: str
    timestamp: datetime
    message_id: Optional[str]


@dataclass(frozen=True)
class QuickReplyEvent:
    sender_id: str
    recipient_id: str
    timestamp: datetime
    message_id: Optional[str]
    text: Optional[str]
    payload: str


@dataclass(frozen=True)
class PostbackEvent:
    sender_id: str
    recipient_id: str
    timestamp: datetime
    title: Optional[str]
    payload: str


@dataclass(frozen=True)
class AccountLinkingEvent:
    sender_id: str
    recipient_id: str
    timestamp: datetime
    status: LinkingStatus
    authorization_code: Optional[str] = None


InboundEvent = Union[TextMessage, UnsupportedMessage, QuickReplyEvent, PostbackEvent, AccountLinkingEvent]

_KINDS = ("message", "postback", "account_linking")


def classify_entry(entry: Any) -> InboundEvent:
    """
    Classify one webhook `entry` into exactly one event variant.

    Messenger delivers a single item in `entry.messaging`; only that item is read.

    Raises:
        MalformedPayload: required fields are missing, or the item carries none
            or more than one of message/postback/account_linking.
    """
    if not isinstance(entry, dict):
        raise MalformedPayload("entry is not an object")

    messaging = entry.get("messaging")
    if not isinstance(messaging, list) or not messaging:
        raise MalformedPayload("entry has no messaging items")

    return classify_messaging(messaging[0])


def classify_messaging(item: Any) -> InboundEvent:
    if not isinstance(item, dict):
        raise MalformedPayload("messaging item is not an object")

    sender_id = _id_of(item, "sender")
    recipient_id = _id_of(item, "recipient")
    timestamp = _timestamp_of(item)

    present = [kind for kind in _KINDS if kind in item]
    if len(present) != 1:
        raise MalformedPayload(f"expected exactly one of {_KINDS}, got {present or 'none'}")
    kind = present[0]

    if kind == "message":
        message = _object(item, "message")
        message_id = _optional_str(message.get("mid"))
        text = message.get("text")
        quick_reply = message.get("quick_reply")

        if isinstance(quick_reply, dict) and quick_reply.get("payload") is not None:
            return QuickReplyEvent(
                sender_id=sender_id,
                recipient_id=recipient_id,
                timestamp=timestamp,
                message_id=message_id,
                text=text if isinstance(text, str) else None,
                payload=str(quick_reply["payload"]),
            )

        if not isinstance(text, str) or not text:
            return UnsupportedMessage(
                sender_id=sender_id,
                recipient_id=recipient_id,
                timestamp=timestamp,
                message_id=message_id,
            )

        if message_id is None:
            raise MalformedPayload("text message has no mid")

        return TextMessage(
            sender_id=sender_id,
            recipient_id=recipient_id,
            timestamp=timestamp,
            message_id=message_id,
            text=text,
        )

    if kind == "postback":
        postback = _object(item, "postback")
        payload = postback.get("payload")
        if payload is None:
            raise MalformedPayload("postback has no payload")
        return PostbackEvent(
            sender_id=sender_id,
            recipient_id=recipient_id,
            timestamp=timestamp,
            title=_optional_str(postback.get("title")),
            payload=str(payload),
        )

    linking = _object(item, "account_linking")
    try:
        status = LinkingStatus(str(linking.get("status") or "").lower())
    except ValueError as e:
        raise MalformedPayload(f"unknown account linking status: {linking.get('status')!r}") from e

    return AccountLinkingEvent(
        sender_id=sender_id,
        recipient_id=recipient_id,
        timestamp=timestamp,
        status=status,
        authorization_code=_optional_str(linking.get("authorization_code")),
    )


def _object(item: dict, key: str) -> dict:
    value = item.get(key)
    if not isinstance(value, dict):
        raise MalformedPayload(f"'{key}' is not an object")
    return value


def _id_of(item: dict, key: str) -> str:
    party = item.get(key)
    if not isinstance(party, dict) or party.get("id") in (None, ""):
        raise MalformedPayload(f"'{key}.id' is missing")
    return str(party["id"])


def _timestamp_of(item: dict) -> datetime:
    raw = item.get("timestamp")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedPayload("'timestamp' is missing or not a number")
    return from_timestamp(raw / 1000.0)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
